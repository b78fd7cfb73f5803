"""OpenAPI / Swagger document parser.

Parses OpenAPI 3.x and Swagger 2.0 documents into a SpecDocument. Swagger 2
`definitions` are normalized into the same schema map OpenAPI 3 keeps under
`components.schemas`, and their refs are rewritten to match.
"""

import logging
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from api_test_synth.errors import SpecParseError
from .base import Operation, Param, SchemaNode, SpecDocument
from .detect import detect_version

logger = logging.getLogger(__name__)

HTTP_METHODS = ("GET", "POST", "PUT", "DELETE", "PATCH", "HEAD", "OPTIONS")

SCHEMA_REF_PREFIX = "#/components/schemas/"
SWAGGER2_REF_PREFIX = "#/definitions/"

BODY_CONTENT_TYPES = ("application/json", "multipart/form-data", "application/x-www-form-urlencoded")


def load_spec(file_path: Path) -> SpecDocument:
    """Parse an OpenAPI/Swagger file (JSON or YAML) into a SpecDocument."""
    try:
        text = file_path.read_text(encoding="utf-8")
    except OSError as e:
        raise SpecParseError(f"cannot read {file_path}: {e}") from e

    try:
        doc = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise SpecParseError(f"{file_path} is not valid JSON/YAML: {e}") from e

    return parse_spec(doc)


def parse_spec(doc: Any) -> SpecDocument:
    """Build a SpecDocument from an already decoded document."""
    if not isinstance(doc, dict):
        raise SpecParseError("API document root must be an object")

    version = detect_version(doc)
    if version is None:
        raise SpecParseError("document is neither OpenAPI 3.x nor Swagger 2.x")

    paths = doc.get("paths")
    if not isinstance(paths, dict):
        raise SpecParseError("document has no 'paths' object")

    if version == "swagger":
        doc = _rewrite_refs(doc)
        schemas = doc.get("definitions") or {}
        components = {}
        base_path = (doc.get("basePath") or "").rstrip("/")
    else:
        components = doc.get("components") or {}
        schemas = components.get("schemas") or {}
        base_path = ""

    if not isinstance(schemas, dict):
        raise SpecParseError("schema definitions must be an object")

    global_security = doc.get("security") or []
    parsed_paths: dict[str, dict[str, Operation]] = {}

    for path, methods in doc["paths"].items():
        if not isinstance(methods, dict):
            raise SpecParseError(f"path item for {path} must be an object")
        shared_params = methods.get("parameters", [])

        for method, operation in methods.items():
            if method.upper() not in HTTP_METHODS:
                continue
            if not isinstance(operation, dict):
                raise SpecParseError(f"{method.upper()} {path} must be an object")

            try:
                parsed = _parse_operation(
                    version, method.upper(), path, operation, shared_params, components, global_security
                )
            except (KeyError, TypeError, AttributeError, ValidationError) as e:
                raise SpecParseError(f"{method.upper()} {path} is malformed: {e!r}") from e
            parsed_paths.setdefault(path, {})[method.upper()] = parsed

    info = doc.get("info") or {}
    try:
        spec = SpecDocument(
            title=info.get("title", ""),
            version=str(doc.get("openapi") or doc.get("swagger") or ""),
            base_path=base_path,
            paths=parsed_paths,
            schemas=schemas,
            global_security=global_security,
        )
    except ValidationError as e:
        raise SpecParseError(f"document is malformed: {e}") from e
    logger.debug("Parsed %s document with %d paths", version, len(parsed_paths))
    return spec


def _parse_operation(
    version: str,
    method: str,
    path: str,
    operation: dict,
    shared_params: list,
    components: dict,
    global_security: list,
) -> Operation:
    raw_params = shared_params + operation.get("parameters", [])
    if version == "swagger":
        request_body, content_type = _swagger2_body(raw_params, operation)
        responses = _swagger2_responses(operation.get("responses", {}))
    else:
        body = _deref_component(operation.get("requestBody"), components, "requestBodies")
        request_body = _parse_request_body(body)
        content_type = _detect_content_type(body)
        responses = _parse_responses(operation.get("responses", {}), components)

    security = operation.get("security", global_security)

    return Operation(
        method=method,
        path=path,
        summary=operation.get("summary", ""),
        operation_id=operation.get("operationId"),
        tags=operation.get("tags", []),
        parameters=_parse_parameters(raw_params),
        request_body=request_body,
        content_type=content_type,
        responses=responses,
        security=security,
        auth_required=bool(security),
    )


def _rewrite_refs(node: Any) -> Any:
    """Copy a Swagger 2 tree, pointing definition refs at the schema map."""
    if isinstance(node, dict):
        out = {}
        for key, value in node.items():
            if key == "$ref" and isinstance(value, str) and value.startswith(SWAGGER2_REF_PREFIX):
                out[key] = SCHEMA_REF_PREFIX + value[len(SWAGGER2_REF_PREFIX):]
            else:
                out[key] = _rewrite_refs(value)
        return out
    if isinstance(node, list):
        return [_rewrite_refs(item) for item in node]
    return node


def _deref_component(node: dict | None, components: dict, section: str) -> dict | None:
    """Follow a single `#/components/<section>/X` ref, if present."""
    if not node or "$ref" not in node:
        return node
    prefix = f"#/components/{section}/"
    ref = node["$ref"]
    if ref.startswith(prefix):
        target = components.get(section, {}).get(ref[len(prefix):])
        if target is not None:
            return target
    logger.warning("Cannot follow %s reference %s", section, ref)
    return None


def _parse_parameters(params: list[dict]) -> list[Param]:
    result = []
    for p in params:
        if "$ref" in p or p.get("in") in ("body", "formData"):
            continue
        # Swagger 2 keeps type metadata on the parameter itself
        schema = p.get("schema", p)
        constraints = {}
        for key in ("minimum", "maximum", "minLength", "maxLength", "pattern", "enum"):
            if key in schema:
                constraints[key] = schema[key]

        result.append(
            Param(
                name=p["name"],
                location=p.get("in", "query"),
                required=p.get("required", False),
                param_type=schema.get("type", "string"),
                description=p.get("description", ""),
                constraints=constraints,
            )
        )
    return result


def _pick_media_schema(content: dict) -> SchemaNode | None:
    if "application/json" in content:
        return content["application/json"].get("schema")
    for media_type, media in content.items():
        if "json" in media_type:
            return media.get("schema")
    # Fallback: return first available schema
    for media in content.values():
        return media.get("schema")
    return None


def _parse_request_body(body: dict | None) -> SchemaNode | None:
    if not body:
        return None
    content = body.get("content", {})
    for content_type in BODY_CONTENT_TYPES:
        if content_type in content:
            return content[content_type].get("schema")
    return _pick_media_schema(content)


def _detect_content_type(body: dict | None) -> str:
    if not body:
        return "application/json"
    content = body.get("content", {})
    if "multipart/form-data" in content:
        return "multipart/form-data"
    return "application/json"


def _parse_responses(responses: dict, components: dict) -> dict[str, SchemaNode | None]:
    result = {}
    for status_code, resp in responses.items():
        resp = _deref_component(resp, components, "responses") or {}
        result[str(status_code)] = _pick_media_schema(resp.get("content", {}))
    return result


def _swagger2_body(params: list[dict], operation: dict) -> tuple[SchemaNode | None, str]:
    for p in params:
        if p.get("in") == "body":
            return p.get("schema"), "application/json"

    form = [p for p in params if p.get("in") == "formData"]
    if not form:
        return None, "application/json"

    schema: SchemaNode = {
        "type": "object",
        "properties": {
            p["name"]: {k: v for k, v in p.items() if k not in ("name", "in", "required", "description")}
            for p in form
        },
        "required": [p["name"] for p in form if p.get("required")],
    }
    consumes = operation.get("consumes", [])
    content_type = "multipart/form-data" if "multipart/form-data" in consumes or any(
        p.get("type") == "file" for p in form
    ) else "application/x-www-form-urlencoded"
    return schema, content_type


def _swagger2_responses(responses: dict) -> dict[str, SchemaNode | None]:
    return {str(code): (resp or {}).get("schema") for code, resp in responses.items()}
