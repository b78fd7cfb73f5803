"""Scenario synthesis for a single operation."""

from enum import Enum
from typing import Any, Callable, Iterator, Literal, Mapping

from pydantic import BaseModel

from api_test_synth.config import SynthConfig
from api_test_synth.parser.base import Operation
from api_test_synth.parser.testdata import TestDataStore
from api_test_synth.schema.extractor import ResponseFieldMap
from .normalizer import endpoint_id
from .reconciler import ResolvedPayload

UNAUTHORIZED = 401


class ScenarioKind(str, Enum):
    POSITIVE = "positive"
    NEGATIVE_AUTH = "negative-auth"
    NEGATIVE_VALIDATION = "negative-validation"


class Assertion(BaseModel):
    """One response check: status code, non-null field, or field value."""

    kind: Literal["status", "present", "equals"]
    path: str | None = None
    expected: Any = None


class ScenarioModel(BaseModel):
    id: str
    title: str
    endpoint_key: str
    method: str
    path: str
    kind: ScenarioKind
    expected_status: int
    send_auth: bool = True
    primary_field: str | None = None
    payload: ResolvedPayload | None = None
    assertions: list[Assertion] = []
    comment: str | None = None


class ScenarioSequence:
    """Lazy, finite and restartable: every iteration rebuilds from scratch."""

    def __init__(self, build: Callable[[], Iterator[ScenarioModel]]):
        self._build = build

    def __iter__(self) -> Iterator[ScenarioModel]:
        return self._build()


class ScenarioSynthesizer:
    def __init__(self, config: SynthConfig):
        self.config = config

    def synthesize(
        self,
        operation: Operation,
        endpoint_key: str,
        response_fields: Mapping[str, ResponseFieldMap],
        payload: ResolvedPayload | None,
        store: TestDataStore,
    ) -> ScenarioSequence:
        """Scenarios for one operation, in a fixed order.

        Positive scenarios (one per documented 2xx) come first, then the
        negative-auth scenario every operation gets, then one
        negative-validation scenario per documented error code.
        """
        return ScenarioSequence(
            lambda: self._iter_scenarios(operation, endpoint_key, response_fields, payload, store)
        )

    def _iter_scenarios(self, operation, endpoint_key, response_fields, payload, store):
        ident = endpoint_id(operation.method, endpoint_key)
        entry = store.get(endpoint_key, operation.method)
        body = payload if operation.is_write else None

        for code in operation.success_codes():
            fields = response_fields.get(code)
            primary = fields.primary_field if fields else self.config.fallback_field

            assertions = [Assertion(kind="status", expected=int(code))]
            if fields is None or fields.schema_state != "missing":
                assertions.append(Assertion(kind="present", path=primary))
            if entry is not None:
                assertions.extend(
                    Assertion(kind="equals", path=path, expected=value)
                    for path, value in entry.expected_in_response.items()
                )

            yield ScenarioModel(
                id=f"{ident} positive {code}",
                title=f"{ident} succeeds with {code}",
                endpoint_key=endpoint_key,
                method=operation.method,
                path=operation.path,
                kind=ScenarioKind.POSITIVE,
                expected_status=int(code),
                primary_field=primary,
                payload=body,
                assertions=assertions,
                comment=entry.comment if entry else None,
            )

        yield ScenarioModel(
            id=f"{ident} negative-auth {UNAUTHORIZED}",
            title=f"{ident} without credentials is rejected with {UNAUTHORIZED}",
            endpoint_key=endpoint_key,
            method=operation.method,
            path=operation.path,
            kind=ScenarioKind.NEGATIVE_AUTH,
            expected_status=UNAUTHORIZED,
            send_auth=False,
            payload=body,
            assertions=[Assertion(kind="status", expected=UNAUTHORIZED)],
        )

        documented = [
            code for code in self.config.negative_status_codes
            if code in operation.responses and code != str(UNAUTHORIZED)
        ]
        for code in sorted(documented, key=int):
            yield ScenarioModel(
                id=f"{ident} negative-validation {code}",
                title=f"{ident} responds with documented {code}",
                endpoint_key=endpoint_key,
                method=operation.method,
                path=operation.path,
                kind=ScenarioKind.NEGATIVE_VALIDATION,
                expected_status=int(code),
                payload=body,
                assertions=[Assertion(kind="status", expected=int(code))],
            )
