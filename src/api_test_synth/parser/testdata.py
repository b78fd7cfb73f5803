"""Centralized test data store.

The store is a JSON (or YAML) document maintained by hand:

    {
      "common": {...},
      "endpoints": {
        "orders/v1/create": {
          "request": {"customerId": 42},
          "expectedInResponse": {"response.account": 9328},
          "_comment": "happy path order"
        }
      }
    }

Keys are endpoint keys; a method-scoped key ("POST orders/v1/create") takes
precedence over the plain one when both exist.
"""

from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from api_test_synth.errors import DataStoreError, MissingTestDataError


class EndpointData(BaseModel):
    """Manual data for one endpoint."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    request: dict[str, Any] = {}
    expected_in_response: dict[str, Any] = Field(default_factory=dict, alias="expectedInResponse")
    comment: str | None = Field(default=None, alias="_comment")


class TestDataStore(BaseModel):
    """Read-only mapping of endpoint key to manual test data."""

    __test__ = False

    model_config = ConfigDict(frozen=True)

    common: dict[str, Any] = {}
    endpoints: dict[str, EndpointData] = {}

    def lookup(self, endpoint_key: str, method: str | None = None) -> EndpointData:
        """Return the entry for an endpoint, raising MissingTestDataError if absent."""
        if method:
            scoped = f"{method.upper()} {endpoint_key}"
            if scoped in self.endpoints:
                return self.endpoints[scoped]
        if endpoint_key in self.endpoints:
            return self.endpoints[endpoint_key]
        raise MissingTestDataError(endpoint_key)

    def get(self, endpoint_key: str, method: str | None = None) -> EndpointData | None:
        try:
            return self.lookup(endpoint_key, method)
        except MissingTestDataError:
            return None


def load_store(file_path: Path) -> TestDataStore:
    """Load a test data store from a JSON/YAML file."""
    try:
        data = yaml.safe_load(file_path.read_text(encoding="utf-8"))
    except (OSError, yaml.YAMLError) as e:
        raise DataStoreError(f"cannot load test data {file_path}: {e}") from e

    if data is None:
        return TestDataStore()
    if not isinstance(data, dict):
        raise DataStoreError(f"test data {file_path} must be an object")

    try:
        return TestDataStore(**data)
    except ValidationError as e:
        raise DataStoreError(f"invalid test data {file_path}: {e}") from e
