"""Tests for the schema, endpoint and snapshot diff engine."""

from __future__ import annotations

import pytest

from contractcompat.diff import SchemaDiffEngine
from contractcompat.errors import UnknownSchemaReference
from contractcompat.models import (
    ArrayType,
    ContractSnapshot,
    EndpointSignature,
    FieldSchema,
    ObjectSchema,
    ObjectType,
    QueryParam,
)
from contractcompat.types import DiffKind, HttpMethod


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _make_schema(*fields: FieldSchema, name: str = "ScenarioDto") -> ObjectSchema:
    return ObjectSchema(qualified_name=name, fields=fields)


def _field(name: str, type_: str = "string", **kwargs) -> FieldSchema:
    return FieldSchema(name=name, type=type_, **kwargs)


def _owner(*fields: FieldSchema) -> FieldSchema:
    return FieldSchema(
        name="owner",
        type=ObjectType(shape=ObjectSchema(qualified_name="OwnerDto", fields=fields)),
    )


def _tags(item_type: str = "string", nullable: bool = False) -> FieldSchema:
    return FieldSchema(
        name="tags",
        type=ArrayType(items=FieldSchema(name="[]", type=item_type, nullable=nullable)),
    )


def _endpoint(method: str, path: str, **kwargs) -> EndpointSignature:
    return EndpointSignature(method=HttpMethod(method), path=path, **kwargs)


def _summary(entries) -> set:
    return {(e.kind, e.location, e.before, e.after) for e in entries}


# Pairs used by the reflexivity / anti-symmetry checks
_BASE = _make_schema(
    _field("id"),
    _field("name"),
    _field("description", required=False),
    _owner(_field("email")),
    _tags(),
)

_VARIANTS = [
    _make_schema(_field("id"), _field("name")),
    _make_schema(
        _field("id", "int64"),
        _field("name", nullable=True),
        _field("description", required=True),
        _owner(_field("email"), _field("phone")),
        _tags("int32"),
        _field("createdAt"),
    ),
    _make_schema(
        _field("title"),
        _field("description", required=False, nullable=True),
        _field("owner"),
        _tags(nullable=True),
    ),
]


# ---------------------------------------------------------------------------
# Schema diffs
# ---------------------------------------------------------------------------


class TestSchemaDiffProperties:
    @pytest.mark.parametrize("schema", [_BASE] + _VARIANTS)
    def test_diff_with_itself_is_empty(self, schema):
        assert SchemaDiffEngine().diff(schema, schema) == []

    @pytest.mark.parametrize("variant", _VARIANTS)
    def test_reverse_diff_holds_inverse_entries(self, variant):
        engine = SchemaDiffEngine()
        forward = engine.diff(_BASE, variant)
        backward = engine.diff(variant, _BASE)
        assert forward
        assert _summary(backward) == _summary(e.inverse() for e in forward)

    def test_locations_symmetric(self):
        engine = SchemaDiffEngine()
        variant = _VARIANTS[1]
        forward = {e.location for e in engine.diff(_BASE, variant)}
        backward = {e.location for e in engine.diff(variant, _BASE)}
        assert forward == backward


class TestSchemaDiff:
    def test_field_removed(self):
        before = _make_schema(_field("name"), _field("description"))
        after = _make_schema(_field("name"))
        entries = SchemaDiffEngine().diff(before, after)
        assert len(entries) == 1
        assert entries[0].kind == DiffKind.FIELD_REMOVED
        assert entries[0].subject == "ScenarioDto"
        assert entries[0].location == "description"
        assert entries[0].before == "string"

    def test_rename_is_remove_plus_add(self):
        before = _make_schema(_field("name"))
        after = _make_schema(_field("title"))
        kinds = [(e.kind, e.location) for e in SchemaDiffEngine().diff(before, after)]
        assert kinds == [
            (DiffKind.FIELD_REMOVED, "name"),
            (DiffKind.FIELD_ADDED, "title"),
        ]

    def test_order_follows_before_then_added(self):
        before = _make_schema(_field("b"), _field("a"))
        after = _make_schema(_field("c"), _field("a", "int64"))
        locations = [e.location for e in SchemaDiffEngine().diff(before, after)]
        assert locations == ["b", "a", "c"]

    def test_field_order_alone_is_no_change(self):
        before = _make_schema(_field("a"), _field("b"))
        after = _make_schema(_field("b"), _field("a"))
        assert SchemaDiffEngine().diff(before, after) == []

    def test_type_change(self):
        entries = SchemaDiffEngine().diff(
            _make_schema(_field("count", "int32")),
            _make_schema(_field("count", "int64")),
        )
        assert _summary(entries) == {(DiffKind.FIELD_TYPE_CHANGED, "count", "int32", "int64")}

    def test_requiredness_and_nullability(self):
        entries = SchemaDiffEngine().diff(
            _make_schema(_field("name", required=False, nullable=True)),
            _make_schema(_field("name", required=True, nullable=False)),
        )
        assert _summary(entries) == {
            (DiffKind.FIELD_REQUIREDNESS_CHANGED, "name", "optional", "required"),
            (DiffKind.FIELD_NO_LONGER_NULLABLE, "name", "true", "false"),
        }

    def test_nested_object_uses_dotted_location(self):
        entries = SchemaDiffEngine().diff(
            _make_schema(_owner(_field("email"), _field("phone"))),
            _make_schema(_owner(_field("email"))),
        )
        assert len(entries) == 1
        assert entries[0].kind == DiffKind.FIELD_REMOVED
        assert entries[0].location == "owner.phone"
        assert entries[0].subject == "ScenarioDto"

    def test_nested_object_renamed_type_is_no_change(self):
        before = _make_schema(_owner(_field("email")))
        after = _make_schema(FieldSchema(
            name="owner",
            type=ObjectType(shape=ObjectSchema(qualified_name="UserDto", fields=[_field("email")])),
        ))
        assert SchemaDiffEngine().diff(before, after) == []

    def test_array_items_compared(self):
        entries = SchemaDiffEngine().diff(_make_schema(_tags("string")), _make_schema(_tags("int64")))
        assert _summary(entries) == {(DiffKind.FIELD_TYPE_CHANGED, "tags[]", "string", "int64")}

    def test_object_replaced_by_primitive(self):
        entries = SchemaDiffEngine().diff(
            _make_schema(_owner(_field("email"))),
            _make_schema(_field("owner", "string")),
        )
        assert _summary(entries) == {
            (DiffKind.FIELD_TYPE_CHANGED, "owner", "object<OwnerDto>", "string")
        }


# ---------------------------------------------------------------------------
# Endpoint diffs
# ---------------------------------------------------------------------------


class TestEndpointDiff:
    def test_identical_endpoint(self):
        ep = _endpoint("GET", "/scenarios/{id}", query_params={"filter": QueryParam()})
        assert SchemaDiffEngine().diff_endpoint(ep, ep) == []

    def test_method_change(self):
        entries = SchemaDiffEngine().diff_endpoint(
            _endpoint("GET", "/scenarios"), _endpoint("POST", "/scenarios")
        )
        assert len(entries) == 1
        entry = entries[0]
        assert entry.kind == DiffKind.ENDPOINT_METHOD_CHANGED
        assert entry.subject == "GET /scenarios"
        assert entry.location == "/scenarios"
        assert (entry.before, entry.after) == ("GET", "POST")

    def test_path_params(self):
        entries = SchemaDiffEngine().diff_endpoint(
            _endpoint("GET", "/scenarios/{id}"),
            _endpoint("GET", "/scenarios/{scenarioId}/{rev}"),
        )
        assert [(e.kind, e.location) for e in entries] == [
            (DiffKind.PATH_PARAM_REMOVED, "id"),
            (DiffKind.PATH_PARAM_ADDED, "rev"),
            (DiffKind.PATH_PARAM_ADDED, "scenarioId"),
        ]

    def test_query_params(self):
        before = _endpoint("GET", "/scenarios", query_params={
            "page": QueryParam(required=False),
            "sort": QueryParam(),
        })
        after = _endpoint("GET", "/scenarios", query_params={
            "filter": QueryParam(required=True),
            "page": QueryParam(required=True),
        })
        entries = SchemaDiffEngine().diff_endpoint(before, after)
        assert [(e.kind, e.location, e.before, e.after) for e in entries] == [
            (DiffKind.QUERY_PARAM_ADDED, "filter", None, "required"),
            (DiffKind.QUERY_PARAM_REQUIREDNESS_CHANGED, "page", "optional", "required"),
            (DiffKind.QUERY_PARAM_REMOVED, "sort", "optional", None),
        ]

    def test_query_param_type_change_not_an_entry(self):
        before = _endpoint("GET", "/scenarios", query_params={"page": QueryParam(type="int32")})
        after = _endpoint("GET", "/scenarios", query_params={"page": QueryParam(type="string")})
        assert SchemaDiffEngine().diff_endpoint(before, after) == []

    def test_body_fields_diffed_against_resolved_schemas(self):
        ep = _endpoint("GET", "/scenarios", response_body="ScenarioDto")
        entries = SchemaDiffEngine().diff_endpoint(
            ep, ep,
            {"ScenarioDto": _make_schema(_field("name"), _field("description"))},
            {"ScenarioDto": _make_schema(_field("name"))},
        )
        assert _summary(entries) == {(DiffKind.FIELD_REMOVED, "description", "string", None)}
        assert entries[0].subject == "ScenarioDto"

    def test_body_added(self):
        entries = SchemaDiffEngine().diff_endpoint(
            _endpoint("POST", "/scenarios"),
            _endpoint("POST", "/scenarios", request_body="CreateScenario"),
            {},
            {"CreateScenario": _make_schema(_field("name"), name="CreateScenario")},
        )
        assert [(e.kind, e.subject, e.location) for e in entries] == [
            (DiffKind.FIELD_ADDED, "CreateScenario", "name")
        ]

    def test_shared_body_schema_diffed_once(self):
        ep = _endpoint(
            "PUT", "/scenarios/{id}", request_body="ScenarioDto", response_body="ScenarioDto"
        )
        entries = SchemaDiffEngine().diff_endpoint(
            ep, ep,
            {"ScenarioDto": _make_schema(_field("name"), _field("description"))},
            {"ScenarioDto": _make_schema(_field("name"))},
        )
        assert [(e.kind, e.subject, e.location) for e in entries] == [
            (DiffKind.FIELD_REMOVED, "ScenarioDto", "description")
        ]

    def test_distinct_body_schemas_both_diffed(self):
        before = _endpoint(
            "PUT", "/scenarios/{id}", request_body="UpdateScenario", response_body="ScenarioDto"
        )
        entries = SchemaDiffEngine().diff_endpoint(
            before, before,
            {
                "UpdateScenario": _make_schema(_field("name"), name="UpdateScenario"),
                "ScenarioDto": _make_schema(_field("name")),
            },
            {
                "UpdateScenario": _make_schema(name="UpdateScenario"),
                "ScenarioDto": _make_schema(),
            },
        )
        assert [(e.subject, e.location) for e in entries] == [
            ("UpdateScenario", "name"),
            ("ScenarioDto", "name"),
        ]

    def test_unknown_body_reference_raises(self):
        ep = _endpoint("GET", "/scenarios", response_body="Missing")
        with pytest.raises(UnknownSchemaReference, match="Missing"):
            SchemaDiffEngine().diff_endpoint(ep, ep, {}, {})


# ---------------------------------------------------------------------------
# Snapshot diffs
# ---------------------------------------------------------------------------


class TestSnapshotDiff:
    def test_identical_snapshots_empty(self):
        snap = ContractSnapshot(
            service="param-service",
            endpoints=[_endpoint("GET", "/scenarios", response_body="ScenarioDto")],
            schemas={"ScenarioDto": _make_schema(_field("name"))},
        )
        assert SchemaDiffEngine().diff_snapshots(snap, snap).is_empty

    def test_endpoint_added_and_removed(self):
        before = ContractSnapshot(service="s", endpoints=[_endpoint("GET", "/a")])
        after = ContractSnapshot(service="s", endpoints=[_endpoint("GET", "/b")])
        result = SchemaDiffEngine().diff_snapshots(before, after)
        assert [e.kind for e in result.entries_for("GET /a")] == [DiffKind.ENDPOINT_REMOVED]
        assert [e.kind for e in result.entries_for("GET /b")] == [DiffKind.ENDPOINT_ADDED]

    def test_renamed_placeholder_pairs_endpoints(self):
        before = ContractSnapshot(service="s", endpoints=[_endpoint("GET", "/s/{id}")])
        after = ContractSnapshot(service="s", endpoints=[_endpoint("GET", "/s/{scenarioId}")])
        result = SchemaDiffEngine().diff_snapshots(before, after)
        assert list(result.endpoint_diffs) == ["GET /s/{id}"]
        assert [e.kind for e in result.entries_for("GET /s/{id}")] == [
            DiffKind.PATH_PARAM_REMOVED,
            DiffKind.PATH_PARAM_ADDED,
        ]

    def test_method_change_pairs_endpoints(self):
        before = ContractSnapshot(service="s", endpoints=[_endpoint("PUT", "/s/{id}")])
        after = ContractSnapshot(service="s", endpoints=[_endpoint("PATCH", "/s/{id}")])
        result = SchemaDiffEngine().diff_snapshots(before, after)
        assert [e.kind for e in result.entries_for("PUT /s/{id}")] == [
            DiffKind.ENDPOINT_METHOD_CHANGED
        ]

    def test_unresolved_reference_recorded(self):
        snap = ContractSnapshot(
            service="s", endpoints=[_endpoint("GET", "/a", response_body="Gone")]
        )
        result = SchemaDiffEngine().diff_snapshots(snap, snap)
        assert "GET /a" in result.unresolved
        assert not result.is_empty

    def test_schema_removed_lists_fields(self):
        before = ContractSnapshot(
            service="s", schemas={"ScenarioDto": _make_schema(_field("a"), _field("b"))}
        )
        after = ContractSnapshot(service="s")
        result = SchemaDiffEngine().diff_snapshots(before, after)
        assert [(e.kind, e.location) for e in result.entries_for("ScenarioDto")] == [
            (DiffKind.FIELD_REMOVED, "a"),
            (DiffKind.FIELD_REMOVED, "b"),
        ]
