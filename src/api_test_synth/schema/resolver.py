"""Resolves `$ref` pointers to concrete schema nodes."""

from api_test_synth.errors import CyclicReferenceError, UnresolvedReferenceError
from api_test_synth.parser.base import SchemaNode, SpecDocument

REF_PREFIXES = ("#/components/schemas/", "#/definitions/")


def ref_name(ref: str) -> str:
    """Map a local schema ref to its name in the schema map."""
    for prefix in REF_PREFIXES:
        if ref.startswith(prefix):
            return ref[len(prefix):]
    raise UnresolvedReferenceError(ref)


class SchemaResolver:
    """Pure lookups against one document's schema map."""

    def __init__(self, document: SpecDocument):
        self.document = document

    def resolve(self, node: SchemaNode) -> SchemaNode:
        """Follow a `$ref` chain until a node without `$ref` is reached."""
        resolved, _ = self.follow(node)
        return resolved

    def follow(self, node: SchemaNode, trail: tuple[str, ...] = ()) -> tuple[SchemaNode, tuple[str, ...]]:
        """Resolve `node`, extending `trail` with every schema name visited.

        Callers that walk into properties pass the returned trail back in,
        so cycles running through nested fields are caught as well.
        """
        current = node
        while "$ref" in current:
            name = ref_name(current["$ref"])
            if name in trail:
                raise CyclicReferenceError([*trail, name])
            trail = (*trail, name)
            target = self.document.schemas.get(name)
            if target is None:
                raise UnresolvedReferenceError(current["$ref"])
            current = target
        return current, trail

    def flatten(self, node: SchemaNode, trail: tuple[str, ...] = ()) -> tuple[SchemaNode, tuple[str, ...]]:
        """Resolve a node and collapse composition keywords.

        `allOf` members are merged (properties in order, `required` united);
        for `oneOf`/`anyOf` the first option is taken.
        """
        current, trail = self.follow(node, trail)

        for keyword in ("oneOf", "anyOf"):
            options = current.get(keyword)
            if options and "properties" not in current:
                return self.flatten(options[0], trail)

        members = current.get("allOf")
        if not members:
            return current, trail

        merged: SchemaNode = {k: v for k, v in current.items() if k != "allOf"}
        properties = dict(merged.get("properties", {}))
        required = list(merged.get("required", []))
        branch_trail = trail
        for member in members:
            part, member_trail = self.flatten(member, trail)
            branch_trail = tuple(dict.fromkeys(branch_trail + member_trail))
            for name, prop in part.get("properties", {}).items():
                properties.setdefault(name, prop)
            for name in part.get("required", []):
                if name not in required:
                    required.append(name)
            if not merged.get("type") and part.get("type"):
                merged["type"] = part["type"]

        merged["properties"] = properties
        merged["required"] = required
        if merged.get("type") is None:
            merged["type"] = "object"
        return merged, branch_trail
