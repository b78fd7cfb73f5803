"""Merges manual test data with generated values for required fields.

Precedence per field, first match wins:

1. a manual value from the test data store;
2. for a required field, a value synthesized from its schema;
3. otherwise the field is left out of the payload.

Optional fields are never filled in speculatively.
"""

import logging
import math
from enum import Enum
from typing import Any

from pydantic import BaseModel

from api_test_synth.errors import MissingTestDataError, SchemaReferenceError
from api_test_synth.parser.base import SchemaNode
from api_test_synth.parser.testdata import TestDataStore
from api_test_synth.schema.extractor import schema_type
from api_test_synth.schema.resolver import SchemaResolver

logger = logging.getLogger(__name__)

AUTO_INTEGER = 1
AUTO_NUMBER = 1.0

STRING_FORMATS = {
    "date": "2024-01-01",
    "date-time": "2024-01-01T00:00:00Z",
    "time": "00:00:00",
    "email": "test@example.com",
    "uuid": "00000000-0000-0000-0000-000000000001",
    "uri": "https://example.com",
    "url": "https://example.com",
    "hostname": "example.com",
    "ipv4": "127.0.0.1",
    "ipv6": "::1",
}


class Provenance(str, Enum):
    MANUAL = "manual"
    AUTO = "auto-generated"


class FieldValue(BaseModel):
    value: Any = None
    provenance: Provenance


class ResolvedPayload(BaseModel):
    """Request payload for one endpoint with per-field provenance."""

    endpoint_key: str
    method: str
    fields: dict[str, FieldValue] = {}
    has_manual_data: bool = False
    issues: list[str] = []

    def body(self) -> dict[str, Any]:
        return {name: field.value for name, field in self.fields.items()}

    def provenance_of(self, name: str) -> Provenance | None:
        field = self.fields.get(name)
        return field.provenance if field else None


class TestDataReconciler:
    __test__ = False

    def __init__(self, resolver: SchemaResolver):
        self.resolver = resolver

    def reconcile(
        self,
        endpoint_key: str,
        required_fields: dict[str, SchemaNode],
        store: TestDataStore,
        method: str = "",
    ) -> ResolvedPayload:
        """Build the payload for one endpoint.

        A store without an entry for the endpoint is a coverage gap, not an
        error: the manual layer is empty and required fields are generated.
        """
        try:
            manual = store.lookup(endpoint_key, method).request
            has_manual = True
        except MissingTestDataError as e:
            logger.info("%s %s: %s, generating required fields only", method, endpoint_key, e)
            manual = {}
            has_manual = False

        fields: dict[str, FieldValue] = {}
        issues: list[str] = []

        for name, schema in required_fields.items():
            if name in manual:
                fields[name] = FieldValue(value=manual[name], provenance=Provenance.MANUAL)
                continue
            try:
                value = self.generate(schema, name)
            except SchemaReferenceError as e:
                logger.warning("%s %s field '%s': %s", method, endpoint_key, name, e)
                issues.append(f"{name}: {e}")
                value = None
            fields[name] = FieldValue(value=value, provenance=Provenance.AUTO)

        # manual values for optional or undeclared fields still win
        for name, value in manual.items():
            if name not in fields:
                fields[name] = FieldValue(value=value, provenance=Provenance.MANUAL)

        return ResolvedPayload(
            endpoint_key=endpoint_key,
            method=method,
            fields=fields,
            has_manual_data=has_manual,
            issues=issues,
        )

    def generate(self, schema: SchemaNode, name: str = "value", trail: tuple[str, ...] = ()) -> Any:
        """Synthesize a deterministic value from a schema node.

        Objects only get their required sub-fields. Raises
        CyclicReferenceError when required fields loop back on themselves.
        """
        node, trail = self.resolver.flatten(schema, trail)

        if node.get("enum"):
            return node["enum"][0]
        for key in ("example", "default"):
            if key in node:
                return node[key]

        t = schema_type(node)
        if t == "integer":
            value = max(AUTO_INTEGER, math.ceil(node.get("minimum", AUTO_INTEGER)))
            if "maximum" in node:
                value = min(value, math.floor(node["maximum"]))
            return value
        if t == "number":
            value = max(AUTO_NUMBER, float(node.get("minimum", AUTO_NUMBER)))
            if "maximum" in node:
                value = min(value, float(node["maximum"]))
            return value
        if t == "boolean":
            return True
        if t == "array":
            return [self.generate(node.get("items", {}), name, trail)]
        if t == "object":
            properties = node.get("properties", {})
            return {
                sub: self.generate(properties.get(sub, {}), sub, trail)
                for sub in node.get("required", [])
            }
        fmt = node.get("format")
        if fmt in STRING_FORMATS:
            return STRING_FORMATS[fmt]
        return f"test_{name}"
