"""Markdown/text API documentation parser.

Uses LLM to extract structured API endpoint definitions from unstructured
text documents and assembles them into a SpecDocument, so prose docs run
through the same deterministic pipeline as OpenAPI files.
"""

import json
import logging
import re
from pathlib import Path

from pydantic import ValidationError

from api_test_synth.errors import SpecParseError
from api_test_synth.llm import LlmClient
from api_test_synth.parser.base import Operation, Param, SpecDocument

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = """You are an API documentation parser. Extract all API endpoints from the given document.

Output a JSON object with these fields:
- title: API title (string)
- schemas: Object of {SchemaName: JSON Schema}, for data structures the document names
- endpoints: Array of endpoint objects

Each endpoint object must have these fields:
- method: HTTP method (GET/POST/PUT/DELETE/PATCH)
- path: URL path exactly as documented (e.g., /api/users/{id})
- summary: Brief description
- parameters: Array of {name, location (query/path/header), required (bool), param_type (string/integer/boolean/array/object), description, constraints}
- request_body: JSON Schema object with "properties" and "required", or null
- responses: Object of {status_code: JSON Schema of the response body, or null}
- auth_required: boolean
- tags: Array of strings

Use {"$ref": "#/components/schemas/SchemaName"} to point at entries of "schemas".
Only list status codes the document actually mentions.
Output ONLY the JSON object, no other text."""


def parse_markdown(file_path: Path, model: str | None = None) -> SpecDocument:
    """Parse a Markdown/text API document using LLM extraction."""
    text = file_path.read_text(encoding="utf-8")

    client = LlmClient(model=model)
    response = client.call(system=SYSTEM_PROMPT, user=text)

    # Extract JSON from response (might be wrapped in code blocks)
    json_str = _extract_json(response)
    try:
        data = json.loads(json_str)
    except json.JSONDecodeError as e:
        raise SpecParseError(f"LLM returned invalid JSON for {file_path}: {e}") from e

    if isinstance(data, list):
        data = {"endpoints": data}
    if not isinstance(data, dict):
        raise SpecParseError(f"LLM output for {file_path} is not an endpoint list")

    try:
        return _build_document(data)
    except (KeyError, TypeError, ValidationError) as e:
        raise SpecParseError(f"LLM output for {file_path} has an unexpected shape: {e}") from e


def _build_document(data: dict) -> SpecDocument:
    paths: dict[str, dict[str, Operation]] = {}
    for item in data.get("endpoints", []):
        method = item["method"].upper()
        paths.setdefault(item["path"], {})[method] = Operation(
            method=method,
            path=item["path"],
            summary=item.get("summary", ""),
            tags=item.get("tags", []),
            parameters=[Param(**p) for p in item.get("parameters", [])],
            request_body=item.get("request_body"),
            responses={str(code): schema for code, schema in (item.get("responses") or {}).items()},
            auth_required=bool(item.get("auth_required", False)),
        )

    logger.debug("Extracted %d paths from prose documentation", len(paths))
    return SpecDocument(
        title=data.get("title", ""),
        version="markdown",
        paths=paths,
        schemas=data.get("schemas") or {},
    )


def _extract_json(text: str) -> str:
    """Extract JSON from a response that might contain Markdown code blocks."""
    match = re.search(r"```(?:json)?\s*\n(.*?)```", text, re.DOTALL)
    if match:
        return match.group(1).strip()
    return text.strip()
