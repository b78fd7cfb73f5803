"""Unified data models for parsed API documentation.

Both the OpenAPI/Swagger loader and the markdown extractor convert their
input into these models. Schemas stay plain JSON-schema dicts.
"""

from typing import Any, Iterator

from pydantic import BaseModel, ConfigDict

SchemaNode = dict[str, Any]

WRITE_METHODS = ("POST", "PUT", "PATCH")


class Param(BaseModel):
    """A single API parameter (query, path, header, or cookie)."""

    model_config = ConfigDict(frozen=True)

    name: str
    location: str  # query / path / header / cookie
    required: bool
    param_type: str  # string / integer / boolean / array / object
    description: str = ""
    constraints: dict = {}  # min, max, pattern, enum, etc.


class Operation(BaseModel):
    """One HTTP method on one path."""

    model_config = ConfigDict(frozen=True)

    method: str  # GET / POST / PUT / DELETE / PATCH
    path: str  # /api/users/{id}
    summary: str = ""
    operation_id: str | None = None
    tags: list[str] = []
    parameters: list[Param] = []
    request_body: SchemaNode | None = None
    content_type: str = "application/json"
    responses: dict[str, SchemaNode | None] = {}  # status code -> schema
    security: list[dict] = []
    auth_required: bool = False

    @property
    def is_write(self) -> bool:
        return self.method in WRITE_METHODS or self.request_body is not None

    def success_codes(self) -> list[str]:
        """Documented 2xx status codes, ascending."""
        return sorted(code for code in self.responses if code.startswith("2") and code.isdigit())


class SpecDocument(BaseModel):
    """A parsed OpenAPI 3 / Swagger 2 document in one internal shape."""

    model_config = ConfigDict(frozen=True)

    title: str = ""
    version: str = ""
    base_path: str = ""
    paths: dict[str, dict[str, Operation]] = {}
    schemas: dict[str, SchemaNode] = {}
    global_security: list[dict] = []

    @property
    def operations(self) -> Iterator[Operation]:
        """All operations in declaration order."""
        for methods in self.paths.values():
            yield from methods.values()

    def methods_for(self, path: str) -> list[str]:
        return list(self.paths.get(path, {}))
