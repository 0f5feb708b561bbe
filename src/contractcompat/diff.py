"""
Schema diff engine.

Computes structural differences between two versions of a DTO schema, an
endpoint signature, or a whole service snapshot.  Each difference is an
atomic ``SchemaDiffEntry``; classification happens later in
``CompatibilityClassifier``.

Field identity is the field name and nothing else, so a rename always
surfaces as ``FIELD_REMOVED`` + ``FIELD_ADDED``.

Ordering rules keep output stable: fields follow the *before* schema's
order with after-only names appended; path and query params are sorted
by name.

Usage::

    from contractcompat.diff import SchemaDiffEngine

    engine = SchemaDiffEngine()
    entries = engine.diff(old_dto, new_dto)
    snapshot_diff = engine.diff_snapshots(current, proposed)
"""

from __future__ import annotations

import logging
from typing import Iterable, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field

from contractcompat.errors import UnknownSchemaReference
from contractcompat.models import (
    ContractSnapshot,
    EndpointSignature,
    FieldSchema,
    ObjectSchema,
    SchemaDiffEntry,
    TypeTag,
)
from contractcompat.types import OPTIONAL, REQUIRED, DiffKind

logger = logging.getLogger(__name__)


def _requiredness(required: bool) -> str:
    return REQUIRED if required else OPTIONAL


class SnapshotDiff(BaseModel):
    """All differences between two snapshots of one provider, by subject."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    provider: str
    endpoint_diffs: dict[str, tuple[SchemaDiffEntry, ...]] = Field(default_factory=dict)
    schema_diffs: dict[str, tuple[SchemaDiffEntry, ...]] = Field(default_factory=dict)
    unresolved: dict[str, str] = Field(
        default_factory=dict,
        description="Endpoint id -> reason its bodies could not be compared",
    )

    def entries_for(self, subject: str) -> tuple[SchemaDiffEntry, ...]:
        if subject in self.endpoint_diffs:
            return self.endpoint_diffs[subject]
        return self.schema_diffs.get(subject, ())

    @property
    def entries(self) -> list[SchemaDiffEntry]:
        out: list[SchemaDiffEntry] = []
        for entries in self.endpoint_diffs.values():
            out.extend(entries)
        for entries in self.schema_diffs.values():
            out.extend(entries)
        return out

    @property
    def subjects(self) -> list[str]:
        """Subjects with at least one entry or an unresolved body, sorted."""
        changed = {s for s, e in self.endpoint_diffs.items() if e}
        changed |= {s for s, e in self.schema_diffs.items() if e}
        return sorted(changed | set(self.unresolved))

    @property
    def is_empty(self) -> bool:
        return not self.unresolved and not any(self.endpoint_diffs.values()) and not any(
            self.schema_diffs.values()
        )


class SchemaDiffEngine:
    """Computes ordered diff entries between schema, endpoint and snapshot versions."""

    # -- schemas -----------------------------------------------------------

    def diff(self, before: ObjectSchema, after: ObjectSchema) -> list[SchemaDiffEntry]:
        """Diff two versions of one DTO schema.

        Nested object and array differences are flattened into the result
        with dotted locations (``owner.email``, ``tags[]``).
        """
        return self._diff_fields(before.qualified_name, "", before.fields, after.fields)

    def _diff_fields(
        self,
        subject: str,
        prefix: str,
        before: Iterable[FieldSchema],
        after: Iterable[FieldSchema],
    ) -> list[SchemaDiffEntry]:
        before_map = {f.name: f for f in before}
        after_map = {f.name: f for f in after}
        names = list(before_map) + [n for n in after_map if n not in before_map]

        entries: list[SchemaDiffEntry] = []
        for name in names:
            location = f"{prefix}{name}"
            old = before_map.get(name)
            new = after_map.get(name)
            if new is None:
                entries.append(SchemaDiffEntry(
                    kind=DiffKind.FIELD_REMOVED,
                    subject=subject,
                    location=location,
                    before=old.type.render(),
                ))
            elif old is None:
                entries.append(SchemaDiffEntry(
                    kind=DiffKind.FIELD_ADDED,
                    subject=subject,
                    location=location,
                    after=new.type.render(),
                ))
            else:
                entries.extend(self._diff_field(subject, location, old, new))
        return entries

    def _diff_field(
        self, subject: str, location: str, old: FieldSchema, new: FieldSchema
    ) -> list[SchemaDiffEntry]:
        entries = self._diff_type(subject, location, old.type, new.type)

        if old.required != new.required:
            entries.append(SchemaDiffEntry(
                kind=DiffKind.FIELD_REQUIREDNESS_CHANGED,
                subject=subject,
                location=location,
                before=_requiredness(old.required),
                after=_requiredness(new.required),
            ))

        if old.nullable != new.nullable:
            entries.append(SchemaDiffEntry(
                kind=(
                    DiffKind.FIELD_NOW_NULLABLE
                    if new.nullable
                    else DiffKind.FIELD_NO_LONGER_NULLABLE
                ),
                subject=subject,
                location=location,
                before=str(old.nullable).lower(),
                after=str(new.nullable).lower(),
            ))
        return entries

    def _diff_type(
        self, subject: str, location: str, old: TypeTag, new: TypeTag
    ) -> list[SchemaDiffEntry]:
        # Nested objects compare by field structure, not by qualified name
        if old.kind == "object" and new.kind == "object":
            return self._diff_fields(
                subject, f"{location}.", old.shape.fields, new.shape.fields
            )
        if old.kind == "array" and new.kind == "array":
            return self._diff_field(subject, f"{location}[]", old.items, new.items)
        if old == new:
            return []
        return [SchemaDiffEntry(
            kind=DiffKind.FIELD_TYPE_CHANGED,
            subject=subject,
            location=location,
            before=old.render(),
            after=new.render(),
        )]

    # -- endpoints ---------------------------------------------------------

    def diff_endpoint(
        self,
        before: EndpointSignature,
        after: EndpointSignature,
        before_schemas: Optional[Mapping[str, ObjectSchema]] = None,
        after_schemas: Optional[Mapping[str, ObjectSchema]] = None,
    ) -> list[SchemaDiffEntry]:
        """Diff two versions of one endpoint.

        Body references are resolved through the given schema maps.  A
        body present on only one side yields one added/removed entry per
        top-level field of that body.

        Raises:
            UnknownSchemaReference: If a body reference cannot be resolved.
        """
        subject = before.endpoint_id
        entries: list[SchemaDiffEntry] = []

        if before.method != after.method:
            entries.append(SchemaDiffEntry(
                kind=DiffKind.ENDPOINT_METHOD_CHANGED,
                subject=subject,
                location=before.shape,
                before=before.method.value,
                after=after.method.value,
            ))

        for name in sorted(before.path_params - after.path_params):
            entries.append(SchemaDiffEntry(
                kind=DiffKind.PATH_PARAM_REMOVED, subject=subject, location=name,
                before=name,
            ))
        for name in sorted(after.path_params - before.path_params):
            entries.append(SchemaDiffEntry(
                kind=DiffKind.PATH_PARAM_ADDED, subject=subject, location=name,
                after=name,
            ))

        entries.extend(self._diff_query_params(subject, before, after))

        compared: set[tuple[Optional[str], Optional[str]]] = set()
        for attr in ("request_body", "response_body"):
            old_ref = getattr(before, attr)
            new_ref = getattr(after, attr)
            if old_ref is None and new_ref is None:
                continue
            # A schema shared by request and response is diffed once
            if (old_ref, new_ref) in compared:
                continue
            compared.add((old_ref, new_ref))
            old_schema = _resolve(old_ref, before_schemas, "before")
            new_schema = _resolve(new_ref, after_schemas, "after")
            if old_schema is not None and new_schema is not None:
                entries.extend(self._diff_fields(
                    old_schema.qualified_name, "", old_schema.fields, new_schema.fields
                ))
            elif old_schema is not None:
                entries.extend(self._diff_fields(
                    old_schema.qualified_name, "", old_schema.fields, ()
                ))
            elif new_schema is not None:
                entries.extend(self._diff_fields(
                    new_schema.qualified_name, "", (), new_schema.fields
                ))
        return entries

    def _diff_query_params(
        self, subject: str, before: EndpointSignature, after: EndpointSignature
    ) -> list[SchemaDiffEntry]:
        entries: list[SchemaDiffEntry] = []
        for name in sorted(set(before.query_params) | set(after.query_params)):
            old = before.query_params.get(name)
            new = after.query_params.get(name)
            if new is None:
                entries.append(SchemaDiffEntry(
                    kind=DiffKind.QUERY_PARAM_REMOVED, subject=subject, location=name,
                    before=_requiredness(old.required),
                ))
            elif old is None:
                entries.append(SchemaDiffEntry(
                    kind=DiffKind.QUERY_PARAM_ADDED, subject=subject, location=name,
                    after=_requiredness(new.required),
                ))
            else:
                if old.required != new.required:
                    entries.append(SchemaDiffEntry(
                        kind=DiffKind.QUERY_PARAM_REQUIREDNESS_CHANGED,
                        subject=subject,
                        location=name,
                        before=_requiredness(old.required),
                        after=_requiredness(new.required),
                    ))
                if old.type != new.type:
                    # No diff kind covers query param types; surfaced in logs only
                    logger.info(
                        "Query param type change ignored: %s?%s %s -> %s",
                        subject, name, old.type.render(), new.type.render(),
                    )
        return entries

    # -- snapshots ---------------------------------------------------------

    def diff_snapshots(
        self, before: ContractSnapshot, after: ContractSnapshot
    ) -> SnapshotDiff:
        """Diff every endpoint and schema of two snapshots of one provider.

        Endpoints pair by exact id first, then by same method and path
        shape (renamed placeholders), then by path shape alone when
        exactly one endpoint on each side remains for it (a method
        change).  Unresolvable body references are recorded in
        ``unresolved`` instead of raising.
        """
        endpoint_diffs: dict[str, tuple[SchemaDiffEntry, ...]] = {}
        unresolved: dict[str, str] = {}

        pairs, removed, added = _pair_endpoints(before.endpoints, after.endpoints)
        for old, new in pairs:
            try:
                entries = self.diff_endpoint(old, new, before.schemas, after.schemas)
            except UnknownSchemaReference as exc:
                logger.warning("Cannot diff %s of %s: %s", old.endpoint_id, before.service, exc)
                unresolved[old.endpoint_id] = str(exc)
                continue
            endpoint_diffs[old.endpoint_id] = tuple(entries)
        for old in removed:
            endpoint_diffs[old.endpoint_id] = (SchemaDiffEntry(
                kind=DiffKind.ENDPOINT_REMOVED,
                subject=old.endpoint_id,
                location=old.endpoint_id,
                before=old.endpoint_id,
            ),)
        for new in added:
            endpoint_diffs[new.endpoint_id] = (SchemaDiffEntry(
                kind=DiffKind.ENDPOINT_ADDED,
                subject=new.endpoint_id,
                location=new.endpoint_id,
                after=new.endpoint_id,
            ),)

        schema_diffs: dict[str, tuple[SchemaDiffEntry, ...]] = {}
        names = list(before.schemas) + [n for n in after.schemas if n not in before.schemas]
        for name in names:
            old_schema = before.schemas.get(name)
            new_schema = after.schemas.get(name)
            old_fields = old_schema.fields if old_schema else ()
            new_fields = new_schema.fields if new_schema else ()
            schema_diffs[name] = tuple(self._diff_fields(name, "", old_fields, new_fields))

        return SnapshotDiff(
            provider=before.service,
            endpoint_diffs=endpoint_diffs,
            schema_diffs=schema_diffs,
            unresolved=unresolved,
        )


# ---------------------------------------------------------------------------
# Module-level helpers
# ---------------------------------------------------------------------------


def _resolve(
    reference: Optional[str],
    schemas: Optional[Mapping[str, ObjectSchema]],
    side: str,
) -> Optional[ObjectSchema]:
    if reference is None:
        return None
    if schemas is None or reference not in schemas:
        raise UnknownSchemaReference(reference, side)
    return schemas[reference]


def _pair_endpoints(
    before: Iterable[EndpointSignature], after: Iterable[EndpointSignature]
) -> tuple[
    list[tuple[EndpointSignature, EndpointSignature]],
    list[EndpointSignature],
    list[EndpointSignature],
]:
    """Match endpoint versions; return (pairs, removed, added)."""
    old_map = {ep.endpoint_id: ep for ep in before}
    new_map = {ep.endpoint_id: ep for ep in after}

    pairs = [(ep, new_map[eid]) for eid, ep in old_map.items() if eid in new_map]
    old_left = [ep for eid, ep in old_map.items() if eid not in new_map]
    new_left = [ep for eid, ep in new_map.items() if eid not in old_map]

    for same_method in (True, False):
        still_old: list[EndpointSignature] = []
        for old in old_left:
            candidates = [
                new for new in new_left
                if new.shape == old.shape and (new.method == old.method) == same_method
            ]
            others = [o for o in old_left if o.shape == old.shape and o is not old]
            if len(candidates) == 1 and (same_method or not others):
                pairs.append((old, candidates[0]))
                new_left.remove(candidates[0])
            else:
                still_old.append(old)
        old_left = still_old

    return pairs, old_left, new_left
