from api_test_synth.config import SynthConfig
from api_test_synth.generator.reconciler import Provenance, TestDataReconciler
from api_test_synth.parser.base import Operation, SpecDocument
from api_test_synth.parser.testdata import TestDataStore
from api_test_synth.schema.extractor import FieldExtractor
from api_test_synth.schema.resolver import SchemaResolver

ORDER_SCHEMAS = {
    "CreateOrder": {
        "type": "object",
        "required": ["customerId", "shipping"],
        "properties": {
            "customerId": {"type": "integer"},
            "note": {"type": "string"},
            "priority": {"type": "boolean"},
            "shipping": {"$ref": "#/components/schemas/Address"},
        },
    },
    "Address": {
        "type": "object",
        "required": ["city"],
        "properties": {"city": {"type": "string"}, "zip": {"type": "string"}},
    },
}


def _reconciler(schemas=None):
    return TestDataReconciler(SchemaResolver(SpecDocument(schemas=schemas or {})))


def _required(schemas, body):
    resolver = SchemaResolver(SpecDocument(schemas=schemas))
    op = Operation(method="POST", path="/api/orders/v1/create", request_body=body)
    return FieldExtractor(resolver, SynthConfig()).extract_required_request_fields(op)


def _store(endpoints):
    return TestDataStore(endpoints=endpoints)


class TestPrecedence:
    def test_missing_store_entry_auto_generates_required(self):
        payload = _reconciler().reconcile(
            "orders/v1/create", {"customerId": {"type": "integer"}}, TestDataStore(), "POST"
        )
        assert isinstance(payload.fields["customerId"].value, int)
        assert payload.provenance_of("customerId") is Provenance.AUTO
        assert payload.has_manual_data is False

    def test_manual_value_wins(self):
        store = _store({"orders/v1/create": {"request": {"customerId": 7}}})
        payload = _reconciler().reconcile("orders/v1/create", {"customerId": {"type": "integer"}}, store, "POST")
        assert payload.body() == {"customerId": 7}
        assert payload.provenance_of("customerId") is Provenance.MANUAL
        assert payload.has_manual_data is True

    def test_method_scoped_entry_preferred(self):
        store = _store({
            "orders": {"request": {"id": "plain"}},
            "PUT orders": {"request": {"id": "scoped"}},
        })
        reconciler = _reconciler()
        assert reconciler.reconcile("orders", {}, store, "PUT").body() == {"id": "scoped"}
        assert reconciler.reconcile("orders", {}, store, "POST").body() == {"id": "plain"}

    def test_optional_fields_omitted(self):
        required = _required(ORDER_SCHEMAS, {"$ref": "#/components/schemas/CreateOrder"})
        payload = _reconciler(ORDER_SCHEMAS).reconcile("orders/v1/create", required, TestDataStore(), "POST")
        assert set(payload.fields) == {"customerId", "shipping"}
        assert payload.fields["shipping"].value == {"city": "test_city"}

    def test_manual_optional_field_kept(self):
        required = _required(ORDER_SCHEMAS, {"$ref": "#/components/schemas/CreateOrder"})
        store = _store({"orders/v1/create": {"request": {"note": "leave at door"}}})
        payload = _reconciler(ORDER_SCHEMAS).reconcile("orders/v1/create", required, store, "POST")
        assert list(payload.fields) == ["customerId", "shipping", "note"]
        assert payload.provenance_of("note") is Provenance.MANUAL
        assert payload.provenance_of("customerId") is Provenance.AUTO
        assert "priority" not in payload.fields

    def test_every_required_field_present(self):
        required = {
            "a": {"type": "string"},
            "b": {"type": "integer"},
            "c": {"$ref": "#/components/schemas/Missing"},
        }
        store = _store({"k": {"request": {"a": "manual"}}})
        payload = _reconciler().reconcile("k", required, store, "POST")
        assert set(payload.fields) == {"a", "b", "c"}


class TestGenerate:
    def test_scalar_types(self):
        reconciler = _reconciler()
        assert reconciler.generate({"type": "string"}, "name") == "test_name"
        assert reconciler.generate({"type": "integer"}) == 1
        assert reconciler.generate({"type": "number"}) == 1.0
        assert reconciler.generate({"type": "boolean"}) is True

    def test_enum_example_and_default_preferred(self):
        reconciler = _reconciler()
        assert reconciler.generate({"type": "string", "enum": ["dog", "cat"]}) == "dog"
        assert reconciler.generate({"type": "string", "example": "Fido"}) == "Fido"
        assert reconciler.generate({"type": "integer", "default": 25}) == 25

    def test_minimum_respected(self):
        assert _reconciler().generate({"type": "integer", "minimum": 10}) == 10

    def test_maximum_clamps_value(self):
        reconciler = _reconciler()
        assert reconciler.generate({"type": "integer", "minimum": -5, "maximum": 0}) == 0
        assert reconciler.generate({"type": "number", "maximum": 0.5}) == 0.5

    def test_fractional_minimum_on_integer_stays_integral(self):
        value = _reconciler().generate({"type": "integer", "minimum": 2.5})
        assert value == 3
        assert isinstance(value, int)

    def test_string_format(self):
        reconciler = _reconciler()
        assert reconciler.generate({"type": "string", "format": "email"}) == "test@example.com"
        assert reconciler.generate({"type": "string", "format": "date"}) == "2024-01-01"

    def test_array_has_single_item(self):
        value = _reconciler().generate({"type": "array", "items": {"type": "integer"}})
        assert value == [1]

    def test_object_only_required_sub_fields(self):
        value = _reconciler(ORDER_SCHEMAS).generate({"$ref": "#/components/schemas/CreateOrder"})
        assert value == {"customerId": 1, "shipping": {"city": "test_city"}}

    def test_deterministic(self):
        reconciler = _reconciler(ORDER_SCHEMAS)
        ref = {"$ref": "#/components/schemas/CreateOrder"}
        assert reconciler.generate(ref) == reconciler.generate(ref)


class TestBrokenSchemas:
    def test_cyclic_required_field_reported(self):
        schemas = {
            "Node": {
                "type": "object",
                "required": ["child"],
                "properties": {"child": {"$ref": "#/components/schemas/Node"}},
            }
        }
        required = {"child": {"$ref": "#/components/schemas/Node"}}
        payload = _reconciler(schemas).reconcile("tree", required, TestDataStore(), "POST")
        assert "child" in payload.fields
        assert payload.fields["child"].value is None
        assert len(payload.issues) == 1
        assert "cyclic" in payload.issues[0]

    def test_optional_recursion_is_not_a_cycle(self):
        schemas = {
            "Node": {
                "type": "object",
                "required": ["name"],
                "properties": {"name": {"type": "string"}, "child": {"$ref": "#/components/schemas/Node"}},
            }
        }
        payload = _reconciler(schemas).reconcile(
            "tree", {"node": {"$ref": "#/components/schemas/Node"}}, TestDataStore(), "POST"
        )
        assert payload.body() == {"node": {"name": "test_name"}}
        assert payload.issues == []
