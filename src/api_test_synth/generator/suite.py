"""Suite synthesis: runs the per-operation pipeline over a whole document.

For each selected operation: normalize the path, extract response fields,
reconcile the request payload and synthesize scenarios. Operations share no
mutable state, so they may run in a thread pool; results are reassembled in
declaration order and the suite is only built once every operation is done.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from enum import Enum
from fnmatch import fnmatch
from typing import NamedTuple

from pydantic import BaseModel, Field

from api_test_synth.config import SynthConfig
from api_test_synth.errors import SchemaReferenceError
from api_test_synth.parser.base import Operation, SpecDocument
from api_test_synth.parser.testdata import TestDataStore
from api_test_synth.schema.extractor import FieldExtractor, ResponseFieldMap
from api_test_synth.schema.resolver import SchemaResolver
from .normalizer import EndpointNormalizer, endpoint_id
from .reconciler import ResolvedPayload, TestDataReconciler
from .scenario import ScenarioModel, ScenarioSynthesizer

logger = logging.getLogger(__name__)


class IssueKind(str, Enum):
    MISSING_TEST_DATA = "missing-test-data"
    UNRESOLVABLE_SCHEMA = "unresolvable-schema"
    AMBIGUOUS_PRIMARY_FIELD = "ambiguous-primary-field"
    MISSING_RESPONSE_SCHEMA = "missing-response-schema"
    NO_SUCCESS_RESPONSE = "no-success-response"
    PREFIX_MISMATCH = "prefix-mismatch"
    UNRESOLVABLE_REQUEST_FIELD = "unresolvable-request-field"
    UNUSED_TEST_DATA = "unused-test-data"


class CoverageIssue(BaseModel):
    endpoint: str
    kind: IssueKind
    detail: str = ""


class CoverageReport(BaseModel):
    """Soft failures and gaps found during one run."""

    operations: int = 0
    issues: list[CoverageIssue] = []

    def of_kind(self, kind: IssueKind) -> list[CoverageIssue]:
        return [i for i in self.issues if i.kind == kind]

    @property
    def missing_test_data(self) -> list[str]:
        return [i.endpoint for i in self.of_kind(IssueKind.MISSING_TEST_DATA)]

    @property
    def unresolvable_schemas(self) -> list[str]:
        return [i.endpoint for i in self.of_kind(IssueKind.UNRESOLVABLE_SCHEMA)]


class SuiteModel(BaseModel):
    title: str = ""
    scenarios: list[ScenarioModel] = []
    payloads: list[ResolvedPayload] = []
    coverage: CoverageReport = Field(default_factory=CoverageReport)
    auth_headers: dict[str, str] = {}


class OperationResult(NamedTuple):
    scenarios: list[ScenarioModel]
    payload: ResolvedPayload | None
    issues: list[CoverageIssue]


def filter_operations(operations: list[Operation], patterns: tuple[str, ...]) -> list[Operation]:
    """Keep operations matching any `"METHOD /path"` or `"/path"` glob pattern."""
    if not patterns:
        return operations
    result = []
    for op in operations:
        for pattern in patterns:
            method, _, path = pattern.strip().rpartition(" ")
            if method and method.upper() != op.method:
                continue
            if fnmatch(op.path, path):
                result.append(op)
                break
    return result


class SuiteSynthesizer:
    """Composes resolver, extractor, normalizer, reconciler and scenarios."""

    def __init__(self, document: SpecDocument, store: TestDataStore, config: SynthConfig | None = None):
        self.document = document
        self.store = store
        self.config = config or SynthConfig()

        resolver = SchemaResolver(document)
        self.extractor = FieldExtractor(resolver, self.config)
        self.normalizer = EndpointNormalizer(self.config.path_prefixes)
        self.reconciler = TestDataReconciler(resolver)
        self.scenarios = ScenarioSynthesizer(self.config)

    def endpoint_key(self, operation: Operation) -> str:
        return self.normalizer.normalize(self.document.base_path + operation.path).key

    def selected_operations(self, patterns: tuple[str, ...] = ()) -> list[Operation]:
        """Operations passing the configured filter mode and CLI patterns."""
        selected = [
            op for op in self.document.operations
            if self.config.is_enabled(op.method, op.path, self.endpoint_key(op))
        ]
        return filter_operations(selected, patterns)

    def build(self, patterns: tuple[str, ...] = ()) -> SuiteModel:
        operations = self.selected_operations(patterns)
        logger.info("Synthesizing %d operations with %d worker(s)", len(operations), self.config.workers)

        if self.config.workers > 1 and len(operations) > 1:
            with ThreadPoolExecutor(max_workers=self.config.workers) as pool:
                results = list(pool.map(self.process, operations))
        else:
            results = [self.process(op) for op in operations]

        scenarios: list[ScenarioModel] = []
        payloads: list[ResolvedPayload] = []
        issues: list[CoverageIssue] = []
        for result in results:
            scenarios.extend(result.scenarios)
            if result.payload is not None:
                payloads.append(result.payload)
            issues.extend(result.issues)
        issues.extend(self._unused_entries())

        return SuiteModel(
            title=self.document.title,
            scenarios=scenarios,
            payloads=payloads,
            coverage=CoverageReport(operations=len(operations), issues=issues),
            auth_headers=self.config.auth.headers(),
        )

    def process(self, operation: Operation) -> OperationResult:
        """Run the whole pipeline for one operation."""
        normalized = self.normalizer.normalize(self.document.base_path + operation.path)
        key = normalized.key
        ident = endpoint_id(operation.method, key)
        issues: list[CoverageIssue] = []

        def note(kind: IssueKind, detail: str = "") -> None:
            issues.append(CoverageIssue(endpoint=ident, kind=kind, detail=detail))

        if normalized.mismatch:
            note(IssueKind.PREFIX_MISMATCH, operation.path)
        if self.store.get(key, operation.method) is None:
            note(IssueKind.MISSING_TEST_DATA)

        success_codes = operation.success_codes()
        if not success_codes:
            note(IssueKind.NO_SUCCESS_RESPONSE)

        response_fields: dict[str, ResponseFieldMap] = {}
        for code in success_codes:
            fields = self.extractor.extract_response_fields(operation, code)
            response_fields[code] = fields
            if fields.schema_state == "unresolvable":
                note(IssueKind.UNRESOLVABLE_SCHEMA, f"{code}: {fields.note}")
            elif fields.schema_state == "missing":
                note(IssueKind.MISSING_RESPONSE_SCHEMA, code)
            elif fields.ambiguous:
                note(IssueKind.AMBIGUOUS_PRIMARY_FIELD, f"{code}: {fields.note}")

        payload = None
        if operation.is_write:
            try:
                required = self.extractor.extract_required_request_fields(operation)
            except SchemaReferenceError as e:
                logger.warning("%s: request body: %s", ident, e)
                note(IssueKind.UNRESOLVABLE_SCHEMA, f"request body: {e}")
                required = {}
            payload = self.reconciler.reconcile(key, required, self.store, operation.method)
            for detail in payload.issues:
                note(IssueKind.UNRESOLVABLE_REQUEST_FIELD, detail)

        scenarios = list(self.scenarios.synthesize(operation, key, response_fields, payload, self.store))
        logger.debug("%s: %d scenarios, %d coverage notes", ident, len(scenarios), len(issues))
        return OperationResult(scenarios, payload, issues)

    def _unused_entries(self) -> list[CoverageIssue]:
        """Store entries no operation of the document can use.

        Checked against every operation, not just the selected ones: an entry
        for a filtered-out operation is not stale.
        """
        used = set()
        for op in self.document.operations:
            key = self.endpoint_key(op)
            used.update((key, endpoint_id(op.method, key)))
        return [
            CoverageIssue(endpoint=name, kind=IssueKind.UNUSED_TEST_DATA)
            for name in self.store.endpoints
            if name not in used
        ]
