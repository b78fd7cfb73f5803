"""Validates an actual response against a scenario's assertions.

Three levels are checked in order: status code, presence of the primary data
field, and every expected value from the test data store. Each assertion
passes or fails on its own.
"""

from typing import Any

from pydantic import BaseModel

from api_test_synth.config import DEFAULT_FALLBACK_FIELD
from .scenario import Assertion, ScenarioModel

_MISSING = object()


class AssertionResult(BaseModel):
    assertion: Assertion
    passed: bool
    actual: Any = None
    message: str = ""


class ValidationReport(BaseModel):
    scenario_id: str
    results: list[AssertionResult] = []

    @property
    def passed(self) -> bool:
        return all(r.passed for r in self.results)

    @property
    def failures(self) -> list[AssertionResult]:
        return [r for r in self.results if not r.passed]


def lookup(body: Any, path: str, primary_field: str | None = None, alias: str = DEFAULT_FALLBACK_FIELD) -> Any:
    """Resolve a dot-path against a response body.

    Numeric segments index lists. A leading `alias` segment the body does not
    have descends into the primary field instead. The alias is the literal
    `response` used in test data paths and does not follow a configured
    `fallback_field`. Returns `_MISSING` when any segment cannot be followed.
    """
    segments = path.split(".")
    current = body
    for i, segment in enumerate(segments):
        if isinstance(current, dict):
            if segment in current:
                current = current[segment]
            elif i == 0 and segment == alias and primary_field in current:
                current = current[primary_field]
            else:
                return _MISSING
        elif isinstance(current, list) and segment.isdigit():
            index = int(segment)
            if index >= len(current):
                return _MISSING
            current = current[index]
        else:
            return _MISSING
    return current


def _equals(actual: Any, expected: Any) -> bool:
    # bool is an int subclass; True must not match 1
    if isinstance(actual, bool) or isinstance(expected, bool):
        return type(actual) is type(expected) and actual == expected
    return actual == expected


def _check(assertion: Assertion, scenario: ScenarioModel, status_code: int, body: Any) -> AssertionResult:
    if assertion.kind == "status":
        passed = status_code == assertion.expected
        return AssertionResult(
            assertion=assertion,
            passed=passed,
            actual=status_code,
            message="" if passed else f"expected status {assertion.expected}, got {status_code}",
        )

    actual = lookup(body, assertion.path, scenario.primary_field)
    if actual is _MISSING:
        return AssertionResult(assertion=assertion, passed=False, message=f"'{assertion.path}' not found in response")

    if assertion.kind == "present":
        passed = actual is not None
        message = "" if passed else f"'{assertion.path}' is null"
    else:
        passed = _equals(actual, assertion.expected)
        message = "" if passed else f"'{assertion.path}': expected {assertion.expected!r}, got {actual!r}"
    return AssertionResult(assertion=assertion, passed=passed, actual=actual, message=message)


def validate_response(scenario: ScenarioModel, status_code: int, body: Any) -> ValidationReport:
    """Run every assertion of `scenario` against one response."""
    return ValidationReport(
        scenario_id=scenario.id,
        results=[_check(a, scenario, status_code, body) for a in scenario.assertions],
    )
