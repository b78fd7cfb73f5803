"""Maps raw spec paths to endpoint keys."""

from typing import NamedTuple

from api_test_synth.config import DEFAULT_PREFIX


class NormalizedPath(NamedTuple):
    key: str
    mismatch: bool  # path was absolute but matched no configured prefix


def _canonical_prefix(prefix: str) -> str:
    return "/" + prefix.strip("/") + "/" if prefix.strip("/") else "/"


class EndpointNormalizer:
    """Strips a configured prefix from spec paths.

    With several prefixes the longest match wins. An absolute path that
    matches no prefix comes back unchanged and flagged, so it can never
    collide with a stripped key.
    """

    def __init__(self, prefixes: tuple[str, ...] = (DEFAULT_PREFIX,)):
        canonical = {_canonical_prefix(p) for p in prefixes}
        self.prefixes = sorted(canonical, key=len, reverse=True)

    def normalize(self, raw_path: str) -> NormalizedPath:
        if not raw_path.startswith("/"):
            return NormalizedPath(raw_path, False)

        for prefix in self.prefixes:
            if raw_path.startswith(prefix):
                return NormalizedPath(raw_path[len(prefix):], False)
            if raw_path + "/" == prefix:
                return NormalizedPath("", False)

        return NormalizedPath(raw_path, True)


def endpoint_id(method: str, key: str) -> str:
    """Method-scoped identifier, unique per (method, path)."""
    return f"{method.upper()} {key}"
