"""Immutable synthesizer configuration.

Built once per run (from a config file and CLI overrides) and passed into
the synthesizer. Core modules never read the process environment.
"""

import logging
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

from api_test_synth.auth import AuthConfig, NoAuth
from api_test_synth.errors import DataStoreError

logger = logging.getLogger(__name__)

DEFAULT_PREFIX = "/api/"
DEFAULT_FALLBACK_FIELD = "response"
DEFAULT_NON_DATA_FIELDS = frozenset({"status", "error", "message", "totalRecords", "filterValues"})
DEFAULT_NEGATIVE_CODES = ("400", "403", "404", "500")


class AllowListEntry(BaseModel):
    """One `{method, path, enabled}` row of the endpoint allow-list."""

    model_config = ConfigDict(frozen=True)

    method: str
    path: str
    enabled: bool = True

    @field_validator("method")
    @classmethod
    def _upper(cls, v: str) -> str:
        return v.upper()


class SynthConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    path_prefixes: tuple[str, ...] = (DEFAULT_PREFIX,)
    fallback_field: str = DEFAULT_FALLBACK_FIELD
    non_data_fields: frozenset[str] = DEFAULT_NON_DATA_FIELDS
    negative_status_codes: tuple[str, ...] = DEFAULT_NEGATIVE_CODES
    filter_mode: Literal["all", "config"] = "all"
    allow_list: tuple[AllowListEntry, ...] = ()
    workers: int = 1
    auth: AuthConfig = NoAuth()

    @field_validator("negative_status_codes", mode="before")
    @classmethod
    def _codes_as_str(cls, v: Any) -> Any:
        if isinstance(v, (list, tuple)):
            return tuple(str(code) for code in v)
        return v

    @field_validator("workers")
    @classmethod
    def _positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("workers must be >= 1")
        return v

    def is_enabled(self, method: str, path: str, endpoint_key: str) -> bool:
        """Apply the endpoint filter mode to one operation."""
        if self.filter_mode == "all":
            return True
        for entry in self.allow_list:
            if entry.method == method.upper() and entry.path in (path, endpoint_key):
                return entry.enabled
        return False


def _read_document(file_path: Path) -> Any:
    try:
        return yaml.safe_load(file_path.read_text(encoding="utf-8"))
    except (OSError, yaml.YAMLError) as e:
        raise DataStoreError(f"cannot load {file_path}: {e}") from e


def load_allow_list(file_path: Path) -> tuple[AllowListEntry, ...]:
    """Load allow-list entries from a list or an `{"endpoints": [...]}` document."""
    data = _read_document(file_path)
    if isinstance(data, dict):
        data = data.get("endpoints", [])
    if not isinstance(data, list):
        raise DataStoreError(f"allow-list {file_path} must be a list of entries")
    try:
        return tuple(AllowListEntry(**entry) for entry in data)
    except (TypeError, ValidationError) as e:
        raise DataStoreError(f"invalid allow-list entry in {file_path}: {e}") from e


def load_config(file_path: Path | None = None, **overrides: Any) -> SynthConfig:
    """Build a SynthConfig from an optional YAML/JSON file plus overrides.

    Overrides whose value is None are ignored so CLI options left unset do
    not clobber values from the file.
    """
    values: dict[str, Any] = {}
    if file_path is not None:
        data = _read_document(file_path) or {}
        if not isinstance(data, dict):
            raise DataStoreError(f"config {file_path} must be an object")
        values.update(data)

    values.update({k: v for k, v in overrides.items() if v is not None})

    try:
        config = SynthConfig(**values)
    except ValidationError as e:
        raise DataStoreError(f"invalid configuration: {e}") from e

    logger.debug(
        "Config loaded: prefixes=%s, fallback=%s, filter_mode=%s, workers=%d",
        config.path_prefixes, config.fallback_field, config.filter_mode, config.workers,
    )
    return config
