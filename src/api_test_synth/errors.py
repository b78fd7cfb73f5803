"""Error taxonomy for suite synthesis.

Structural errors (SpecParseError, DataStoreError) abort a run. Reference
errors are recovered per operation. MissingTestDataError and
AmbiguousPrimaryFieldError are soft: they end up in the coverage report.
"""


class SynthError(Exception):
    """Base class for all synthesizer errors."""


class SpecParseError(SynthError):
    """The API document is not parseable or lacks the minimal OpenAPI shape."""


class DataStoreError(SynthError):
    """A test data store, allow-list or config document is malformed."""


class SchemaReferenceError(SynthError):
    """A $ref could not be turned into a concrete schema."""


class CyclicReferenceError(SchemaReferenceError):
    def __init__(self, trail: list[str]):
        self.trail = list(trail)
        super().__init__("cyclic $ref: " + " -> ".join(self.trail))


class UnresolvedReferenceError(SchemaReferenceError):
    def __init__(self, ref: str):
        self.ref = ref
        super().__init__(f"unresolved $ref: {ref}")


class MissingTestDataError(SynthError):
    def __init__(self, endpoint_key: str):
        self.endpoint_key = endpoint_key
        super().__init__(f"no test data for '{endpoint_key}'")


class AmbiguousPrimaryFieldError(SynthError):
    """Zero or several equally ranked data candidates in a response schema."""

    def __init__(self, candidates: list[str], chosen: str):
        self.candidates = list(candidates)
        self.chosen = chosen
        if candidates:
            detail = f"candidates {', '.join(candidates)}"
        else:
            detail = "no data candidate"
        super().__init__(f"{detail}; using '{chosen}'")
