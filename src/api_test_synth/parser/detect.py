"""Auto-detect API documentation format."""

from pathlib import Path

import yaml


def detect_format(file_path: Path) -> str:
    """Detect the format of an API documentation file.

    Returns: 'openapi', 'swagger', or 'markdown'.
    """
    text = file_path.read_text(encoding="utf-8")

    # YAML is a superset of JSON, one parse covers both
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError:
        return "markdown"

    if isinstance(data, dict):
        return detect_version(data) or "markdown"
    return "markdown"


def detect_version(doc: dict) -> str | None:
    """Return 'openapi' for 3.x, 'swagger' for 2.x, None if neither."""
    if str(doc.get("openapi", "")).startswith("3"):
        return "openapi"
    if str(doc.get("swagger", "")).startswith("2"):
        return "swagger"

    # Heuristic fallback for documents missing the version key
    if "paths" in doc:
        if "components" in doc:
            return "openapi"
        if "definitions" in doc:
            return "swagger"
    return None
