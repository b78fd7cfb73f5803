"""Field extraction from request and response schemas."""

import logging
from typing import Literal

from pydantic import BaseModel

from api_test_synth.config import SynthConfig
from api_test_synth.errors import AmbiguousPrimaryFieldError, SchemaReferenceError
from api_test_synth.parser.base import Operation, SchemaNode
from .resolver import SchemaResolver

logger = logging.getLogger(__name__)

DATA_TYPES = ("object", "array")


class ResponseFieldMap(BaseModel):
    """Top-level properties of one response schema and its primary data field."""

    status_code: str
    fields: list[str] = []
    roles: dict[str, str] = {}  # field -> data / status / error / meta
    primary_field: str
    schema_state: Literal["resolved", "missing", "unresolvable"] = "resolved"
    note: str | None = None

    @property
    def ambiguous(self) -> bool:
        return self.schema_state == "resolved" and self.note is not None


def schema_type(node: SchemaNode) -> str | None:
    t = node.get("type")
    if isinstance(t, list):
        t = next((item for item in t if item != "null"), None)
    if t is None and "properties" in node:
        return "object"
    if t is None and "items" in node:
        return "array"
    return t


class FieldExtractor:
    def __init__(self, resolver: SchemaResolver, config: SynthConfig):
        self.resolver = resolver
        self.config = config

    def extract_response_fields(self, operation: Operation, status_code: str) -> ResponseFieldMap:
        """Read a response schema's properties and pick its primary data field.

        Reference errors are recovered here: the map falls back to the
        configured default field and carries the error text as its note.
        """
        fallback = self.config.fallback_field
        schema = operation.responses.get(status_code)
        if schema is None:
            return ResponseFieldMap(status_code=status_code, primary_field=fallback, schema_state="missing")

        try:
            resolved, _ = self.resolver.flatten(schema)
        except SchemaReferenceError as e:
            logger.warning("%s %s [%s]: %s", operation.method, operation.path, status_code, e)
            return ResponseFieldMap(
                status_code=status_code,
                primary_field=fallback,
                schema_state="unresolvable",
                note=str(e),
            )

        properties = resolved.get("properties", {})
        roles = {name: self._classify(name, prop) for name, prop in properties.items()}
        candidates = [name for name, role in roles.items() if role == "data"]

        note = None
        try:
            primary = self.select_primary_field(candidates)
        except AmbiguousPrimaryFieldError as e:
            primary = e.chosen
            note = str(e)
            logger.info("%s %s [%s]: %s", operation.method, operation.path, status_code, note)

        return ResponseFieldMap(
            status_code=status_code,
            fields=list(properties),
            roles=roles,
            primary_field=primary,
            note=note,
        )

    def select_primary_field(self, candidates: list[str]) -> str:
        """Return the single data candidate.

        Raises AmbiguousPrimaryFieldError when there are zero or several;
        its `chosen` attribute holds the deterministic tie-break (first in
        declaration order, or the configured fallback).
        """
        if len(candidates) == 1:
            return candidates[0]
        chosen = candidates[0] if candidates else self.config.fallback_field
        raise AmbiguousPrimaryFieldError(candidates, chosen)

    def extract_required_request_fields(self, operation: Operation) -> dict[str, SchemaNode]:
        """Map each required request-body field to its resolved schema.

        Raises SchemaReferenceError if the body schema itself cannot be
        resolved; a required field whose own ref is broken keeps its raw
        node so payload synthesis can report it.
        """
        if operation.request_body is None:
            return {}

        body, trail = self.resolver.flatten(operation.request_body)
        properties = body.get("properties", {})
        fields: dict[str, SchemaNode] = {}
        for name in body.get("required", []):
            prop = properties.get(name, {})
            try:
                fields[name], _ = self.resolver.flatten(prop, trail)
            except SchemaReferenceError as e:
                logger.warning("%s %s field '%s': %s", operation.method, operation.path, name, e)
                fields[name] = prop
        return fields

    def _classify(self, name: str, prop: SchemaNode) -> str:
        try:
            node = self.resolver.flatten(prop)[0]
        except SchemaReferenceError:
            return "meta"

        t = schema_type(node)
        if "error" in name.lower():
            return "error"
        if t == "boolean" and (name in self.config.non_data_fields or name.lower() in ("ok", "success", "status")):
            return "status"
        if t in DATA_TYPES and name not in self.config.non_data_fields:
            return "data"
        return "meta"
