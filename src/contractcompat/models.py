"""
Pydantic v2 models for service contract snapshots and analysis results.

Snapshots describe one service's exported REST surface (endpoints and DTO
schemas); consumer edges describe which part of a provider's surface a
consumer depends on.  Diff entries, verdicts, rollout plans and the final
``Report`` are the engine's outputs.

Every model is frozen and uses ``extra="forbid"`` so unknown keys are
rejected at parse time and nothing downstream can mutate a snapshot.

Usage::

    from contractcompat.models import ContractSnapshot
    import yaml

    with open("param-service.snapshot.yaml") as fh:
        raw = yaml.safe_load(fh)
    snapshot = ContractSnapshot.model_validate(raw)
"""

from __future__ import annotations

import re
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_serializer,
    field_validator,
    model_validator,
)

from contractcompat.types import (
    FIELD_DIFF_KINDS,
    INVERSE_KIND,
    PATH_PARAM_DIFF_KINDS,
    QUERY_PARAM_DIFF_KINDS,
    Classification,
    DiffKind,
    HttpMethod,
)

_PATH_PARAM_RE = re.compile(r"\{([^{}]+)\}")
_MEMBER_ROOT_RE = re.compile(r"[.\[]")


def endpoint_id(method: HttpMethod | str, path: str) -> str:
    """Return the canonical ``"METHOD /path"`` identifier of an endpoint."""
    value = method.value if isinstance(method, HttpMethod) else str(method).upper()
    return f"{value} {path}"


def normalize_endpoint_id(raw: str) -> str:
    """Normalise a user-supplied endpoint id (``"get  /x"`` -> ``"GET /x"``)."""
    parts = raw.split(None, 1)
    if len(parts) != 2:
        raise ValueError(f"Endpoint id must be 'METHOD /path', got '{raw}'")
    method = HttpMethod(parts[0].upper())
    return endpoint_id(method, parts[1].strip())


def path_template_params(path: str) -> list[str]:
    """Return the ``{param}`` placeholder names of a path template, in order."""
    return _PATH_PARAM_RE.findall(path)


def path_shape(path: str) -> str:
    """Return the path template with placeholder names erased."""
    return _PATH_PARAM_RE.sub("{}", path)


# ---------------------------------------------------------------------------
# Type tags
# ---------------------------------------------------------------------------


class PrimitiveType(BaseModel):
    """A scalar type identified by name (``string``, ``int64``, ...)."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    kind: Literal["primitive"] = "primitive"
    name: str = Field(..., min_length=1)

    def render(self) -> str:
        return self.name


class ArrayType(BaseModel):
    """A homogeneous array; ``items`` describes a single element."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    kind: Literal["array"] = "array"
    items: FieldSchema

    def render(self) -> str:
        return f"array<{self.items.type.render()}>"


class ObjectType(BaseModel):
    """A nested object with its own field list."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    kind: Literal["object"] = "object"
    shape: ObjectSchema

    def render(self) -> str:
        return f"object<{self.shape.qualified_name}>"


class EnumType(BaseModel):
    """A closed set of string values."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    kind: Literal["enum"] = "enum"
    values: frozenset[str] = Field(default_factory=frozenset)

    @field_serializer("values")
    def _sorted_values(self, v: frozenset[str]) -> list[str]:
        return sorted(v)

    def render(self) -> str:
        return "enum<" + "|".join(sorted(self.values)) + ">"


class UnknownType(BaseModel):
    """Extraction could not determine the type."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    kind: Literal["unknown"] = "unknown"

    def render(self) -> str:
        return "unknown"


TypeTag = Annotated[
    Union[PrimitiveType, ArrayType, ObjectType, EnumType, UnknownType],
    Field(discriminator="kind"),
]


def _coerce_type_tag(value: Any) -> Any:
    """Accept ``"string"`` / ``"unknown"`` shorthand in place of a tag mapping."""
    if isinstance(value, str):
        if value == "unknown":
            return {"kind": "unknown"}
        return {"kind": "primitive", "name": value}
    return value


# ---------------------------------------------------------------------------
# Schemas
# ---------------------------------------------------------------------------


class FieldSchema(BaseModel):
    """One field of a DTO."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str = Field(..., min_length=1)
    type: TypeTag = Field(default_factory=UnknownType)
    required: bool = True
    nullable: bool = False

    @field_validator("type", mode="before")
    @classmethod
    def _shorthand_type(cls, v: Any) -> Any:
        return _coerce_type_tag(v)


class ObjectSchema(BaseModel):
    """A DTO schema.  Field order is preserved but carries no meaning."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    qualified_name: str = Field(..., min_length=1)
    fields: tuple[FieldSchema, ...] = ()

    @model_validator(mode="after")
    def _check_unique_field_names(self) -> "ObjectSchema":
        seen: set[str] = set()
        for f in self.fields:
            if f.name in seen:
                raise ValueError(
                    f"Duplicate field '{f.name}' in schema '{self.qualified_name}'"
                )
            seen.add(f.name)
        return self

    def field_map(self) -> dict[str, FieldSchema]:
        return {f.name: f for f in self.fields}

    @property
    def field_names(self) -> list[str]:
        return [f.name for f in self.fields]


ArrayType.model_rebuild()
ObjectType.model_rebuild()
FieldSchema.model_rebuild()


# ---------------------------------------------------------------------------
# Endpoints and snapshots
# ---------------------------------------------------------------------------


class QueryParam(BaseModel):
    """A declared query parameter."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    required: bool = False
    type: TypeTag = Field(default_factory=UnknownType)

    @field_validator("type", mode="before")
    @classmethod
    def _shorthand_type(cls, v: Any) -> Any:
        return _coerce_type_tag(v)


class EndpointSignature(BaseModel):
    """A REST endpoint.  Bodies reference schemas by qualified name."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    method: HttpMethod
    path: str = Field(..., min_length=1, description="Path template with {param} placeholders")
    path_params: frozenset[str] = Field(default_factory=frozenset)
    query_params: dict[str, QueryParam] = Field(default_factory=dict)
    request_body: Optional[str] = Field(None, description="Qualified schema name")
    response_body: Optional[str] = Field(None, description="Qualified schema name")

    @field_serializer("path_params")
    def _sorted_path_params(self, v: frozenset[str]) -> list[str]:
        return sorted(v)

    @model_validator(mode="before")
    @classmethod
    def _default_path_params(cls, data: Any) -> Any:
        """Derive ``path_params`` from the template when it is omitted."""
        if isinstance(data, dict) and "path_params" not in data and "path" in data:
            data = dict(data)
            data["path_params"] = path_template_params(str(data["path"]))
        return data

    @field_validator("method", mode="before")
    @classmethod
    def _upper_method(cls, v: Any) -> Any:
        return v.upper() if isinstance(v, str) else v

    @model_validator(mode="after")
    def _check_path_params(self) -> "EndpointSignature":
        missing = [p for p in path_template_params(self.path) if p not in self.path_params]
        if missing:
            raise ValueError(
                f"Path '{self.path}' uses undeclared path params: {', '.join(missing)}"
            )
        return self

    @property
    def endpoint_id(self) -> str:
        return endpoint_id(self.method, self.path)

    @property
    def shape(self) -> str:
        return path_shape(self.path)


class ContractSnapshot(BaseModel):
    """One service's full exported surface at one point in time."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    service: str = Field(..., min_length=1)
    endpoints: tuple[EndpointSignature, ...] = ()
    schemas: dict[str, ObjectSchema] = Field(default_factory=dict)

    @field_validator("schemas", mode="before")
    @classmethod
    def _schemas_from_list(cls, v: Any) -> Any:
        """Allow schemas to be given as a list keyed by ``qualified_name``."""
        if isinstance(v, (list, tuple)):
            out: dict[str, Any] = {}
            for item in v:
                name = (
                    item.qualified_name
                    if isinstance(item, ObjectSchema)
                    else item.get("qualified_name")
                )
                if name in out:
                    raise ValueError(f"Duplicate schema '{name}'")
                out[name] = item
            return out
        return v

    @model_validator(mode="after")
    def _check_keys(self) -> "ContractSnapshot":
        for key, schema in self.schemas.items():
            if key != schema.qualified_name:
                raise ValueError(
                    f"Schema key '{key}' does not match qualified name "
                    f"'{schema.qualified_name}'"
                )
        seen: set[str] = set()
        for ep in self.endpoints:
            if ep.endpoint_id in seen:
                raise ValueError(f"Duplicate endpoint '{ep.endpoint_id}' in '{self.service}'")
            seen.add(ep.endpoint_id)
        return self

    def endpoint_map(self) -> dict[str, EndpointSignature]:
        return {ep.endpoint_id: ep for ep in self.endpoints}

    def has_reference(self, reference: str) -> bool:
        """Whether *reference* names one of this snapshot's endpoints or schemas."""
        return reference in self.schemas or reference in self.endpoint_map()


# ---------------------------------------------------------------------------
# Diff entries and usage
# ---------------------------------------------------------------------------


class SchemaDiffEntry(BaseModel):
    """One atomic difference between two versions of a schema or endpoint.

    ``subject`` is the schema qualified name or endpoint id on the *before*
    side.  ``location`` is the dotted field path within the schema, the
    parameter name, or, for endpoint-level kinds, the endpoint id (the path
    for method changes).
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    kind: DiffKind
    subject: str
    location: str
    before: Optional[str] = None
    after: Optional[str] = None

    @property
    def is_field_level(self) -> bool:
        return self.kind in FIELD_DIFF_KINDS

    @property
    def reference(self) -> str:
        """Usage-set reference this entry touches."""
        if self.kind in FIELD_DIFF_KINDS:
            return f"{self.subject}.{self.location}"
        if self.kind in QUERY_PARAM_DIFF_KINDS:
            return f"{self.subject}?{self.location}"
        if self.kind in PATH_PARAM_DIFF_KINDS:
            return f"{self.subject}#{self.location}"
        return self.subject

    def inverse(self, subject: Optional[str] = None) -> "SchemaDiffEntry":
        """Return the entry the reversed diff would produce."""
        return SchemaDiffEntry(
            kind=INVERSE_KIND[self.kind],
            subject=subject or self.subject,
            location=self.location,
            before=self.after,
            after=self.before,
        )


def _overlaps(a: str, b: str) -> bool:
    """True if one dotted field reference equals or contains the other."""
    if a == b:
        return True
    for outer, inner in ((a, b), (b, a)):
        if inner.startswith(outer) and inner[len(outer)] in ".[":
            return True
    return False


def _within(member: str, subject: str) -> bool:
    """True if a usage member names a field or query param of *subject*."""
    return (
        len(member) > len(subject)
        and member.startswith(subject)
        and member[len(subject)] in ".[?"
    )


class UsageSet(BaseModel):
    """Field- and parameter-level subset of a provider's surface a consumer touches.

    Members are ``"Schema.field.path"`` for DTO fields and
    ``"METHOD /path?param"`` for query params.  A bare parameter name
    counts only for the endpoints listed in ``endpoints``.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    members: frozenset[str] = Field(default_factory=frozenset)
    endpoints: frozenset[str] = Field(
        default_factory=frozenset,
        description="Endpoint ids that bare parameter names apply to",
    )

    def references(self, entry: SchemaDiffEntry) -> bool:
        """Whether the consumer touches what *entry* changed.

        Endpoint-level and path-param entries always apply: a consumer of
        the endpoint cannot avoid them.
        """
        if entry.kind in FIELD_DIFF_KINDS:
            ref = entry.reference
            return any(_overlaps(ref, m) for m in self.members)
        if entry.kind in QUERY_PARAM_DIFF_KINDS:
            if entry.reference in self.members:
                return True
            return entry.location in self.members and entry.subject in self.endpoints
        return True


class ConsumerEdge(BaseModel):
    """Which part of *provider*'s surface *consumer* depends on."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    consumer: str = Field(..., min_length=1)
    provider: str = Field(..., min_length=1)
    used_endpoints: frozenset[str] = Field(default_factory=frozenset)
    used_schemas: frozenset[str] = Field(default_factory=frozenset)
    used_members: Optional[frozenset[str]] = Field(
        None, description="Field/param usage; None when extraction could not tell"
    )

    @field_serializer("used_endpoints", "used_schemas", "used_members")
    def _sorted_usage(self, v: Optional[frozenset[str]]) -> Optional[list[str]]:
        return None if v is None else sorted(v)

    @field_validator("used_endpoints", mode="before")
    @classmethod
    def _normalize_endpoints(cls, v: Any) -> Any:
        if isinstance(v, (list, tuple, set, frozenset)):
            return frozenset(normalize_endpoint_id(str(item)) for item in v)
        return v

    @model_validator(mode="after")
    def _check_not_self(self) -> "ConsumerEdge":
        if self.consumer == self.provider:
            raise ValueError(f"Service '{self.consumer}' cannot consume itself")
        return self

    @property
    def key(self) -> tuple[str, str]:
        return (self.consumer, self.provider)

    @property
    def references(self) -> frozenset[str]:
        return self.used_endpoints | self.used_schemas

    @property
    def member_roots(self) -> frozenset[str]:
        """Subjects named by used members: ``ScenarioDto.name`` -> ``ScenarioDto``.

        Schema names end at the first ``.`` or ``[``, endpoint ids at ``?``.
        Bare parameter names have no root.
        """
        roots: set[str] = set()
        for member in self.used_members or ():
            if "?" in member:
                roots.add(member.split("?", 1)[0])
                continue
            head = _MEMBER_ROOT_RE.split(member, 1)
            if len(head) == 2 and head[0]:
                roots.add(head[0])
        return frozenset(roots)

    def covers(self, subject: str) -> bool:
        """Whether *subject* is used directly or through one of its members."""
        if subject in self.references:
            return True
        return any(_within(m, subject) for m in self.used_members or ())

    @property
    def usage(self) -> Optional[UsageSet]:
        if self.used_members is None:
            return None
        return UsageSet(members=self.used_members, endpoints=self.used_endpoints)

    def merge(self, other: "ConsumerEdge") -> "ConsumerEdge":
        """Union two edges between the same pair.

        Known usage merged with unknown usage stays unknown.
        """
        if other.key != self.key:
            raise ValueError(f"Cannot merge edge {other.key} into {self.key}")
        members: Optional[frozenset[str]] = None
        if self.used_members is not None and other.used_members is not None:
            members = self.used_members | other.used_members
        return ConsumerEdge(
            consumer=self.consumer,
            provider=self.provider,
            used_endpoints=self.used_endpoints | other.used_endpoints,
            used_schemas=self.used_schemas | other.used_schemas,
            used_members=members,
        )


# ---------------------------------------------------------------------------
# Graph, verdicts, rollout, report
# ---------------------------------------------------------------------------


class ContractGraph(BaseModel):
    """Directed provider -> consumer graph over a set of services."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    services: frozenset[str] = Field(default_factory=frozenset)
    edges: tuple[ConsumerEdge, ...] = ()
    warnings: tuple[str, ...] = ()

    @field_serializer("services")
    def _sorted_services(self, v: frozenset[str]) -> list[str]:
        return sorted(v)

    def consumers_of(self, provider: str) -> list[ConsumerEdge]:
        return [e for e in self.edges if e.provider == provider]

    def providers_of(self, consumer: str) -> list[ConsumerEdge]:
        return [e for e in self.edges if e.consumer == consumer]

    def get_edge(self, consumer: str, provider: str) -> Optional[ConsumerEdge]:
        for e in self.edges:
            if e.consumer == consumer and e.provider == provider:
                return e
        return None


class CompatibilityVerdict(BaseModel):
    """Classification of one provider subject for one consumer."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    subject: str
    provider: str
    consumer: str
    classification: Classification
    reasons: tuple[SchemaDiffEntry, ...] = ()

    @property
    def sort_key(self) -> tuple[str, str, str]:
        return (self.provider, self.subject, self.consumer)


class RolloutPlan(BaseModel):
    """Ordered deployment phases; services inside a phase deploy in parallel."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    phases: tuple[tuple[str, ...], ...] = ()

    @property
    def services(self) -> list[str]:
        return [s for phase in self.phases for s in phase]

    def phase_of(self, service: str) -> Optional[int]:
        for index, phase in enumerate(self.phases):
            if service in phase:
                return index
        return None


class SnapshotSet(BaseModel):
    """A batch of extraction output: snapshots, consumer edges, failures."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    snapshots: tuple[ContractSnapshot, ...] = ()
    edges: tuple[ConsumerEdge, ...] = ()
    failures: dict[str, str] = Field(
        default_factory=dict, description="Service id -> extraction failure reason"
    )


class Report(BaseModel):
    """Structured analysis result handed to an external renderer."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    graph: ContractGraph
    verdicts: tuple[CompatibilityVerdict, ...] = ()
    rollout: Optional[RolloutPlan] = None
    warnings: tuple[str, ...] = ()
    cycle: tuple[str, ...] = Field(
        default=(), description="Services on a breaking-change cycle, if planning failed"
    )

    @property
    def breaking_verdicts(self) -> list[CompatibilityVerdict]:
        return [v for v in self.verdicts if v.classification == Classification.BREAKING]

    @property
    def unknown_verdicts(self) -> list[CompatibilityVerdict]:
        return [v for v in self.verdicts if v.classification == Classification.UNKNOWN]

    @property
    def has_breaking_changes(self) -> bool:
        return bool(self.breaking_verdicts)

    @property
    def worst(self) -> Classification:
        result = Classification.COMPATIBLE
        for v in self.verdicts:
            result = result.worst(v.classification)
        return result

    def to_dict(self) -> dict[str, Any]:
        """Serialise to a plain dict for JSON/YAML emission."""
        data = self.model_dump(mode="json")
        data["summary"] = {
            "worst": self.worst.value,
            "verdicts": len(self.verdicts),
            "breaking": len(self.breaking_verdicts),
            "unknown": len(self.unknown_verdicts),
        }
        return data
