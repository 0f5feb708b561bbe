"""
Cross-service contract compatibility analysis.

Builds a provider -> consumer graph from declarative service contract
snapshots, diffs proposed snapshots against current ones, classifies
each change per consumer, and plans a phased rollout.

Public API::

    from contractcompat import (
        # Models
        ContractSnapshot,
        EndpointSignature,
        ObjectSchema,
        FieldSchema,
        ConsumerEdge,
        ContractGraph,
        SchemaDiffEntry,
        CompatibilityVerdict,
        RolloutPlan,
        Report,
        # Components
        ContractGraphBuilder,
        SchemaDiffEngine,
        CompatibilityClassifier,
        RolloutPlanner,
        CompatibilityEngine,
        # Extraction
        ExtractionAdapter,
        extract_all,
    )
"""

from contractcompat.classifier import CompatibilityClassifier
from contractcompat.diff import SchemaDiffEngine, SnapshotDiff
from contractcompat.engine import CompatibilityEngine
from contractcompat.errors import (
    ContractCompatError,
    CyclicDependencyError,
    DanglingEdgeWarning,
    DuplicateServiceError,
    ExtractionFailure,
    StaleReferenceWarning,
    UnknownSchemaReference,
)
from contractcompat.extraction import ExtractionAdapter, ExtractionOutput, extract_all
from contractcompat.graph import ContractGraphBuilder
from contractcompat.loader import SnapshotSetLoader, YamlSnapshotAdapter
from contractcompat.models import (
    ArrayType,
    CompatibilityVerdict,
    ConsumerEdge,
    ContractGraph,
    ContractSnapshot,
    EndpointSignature,
    EnumType,
    FieldSchema,
    ObjectSchema,
    ObjectType,
    PrimitiveType,
    QueryParam,
    Report,
    RolloutPlan,
    SchemaDiffEntry,
    SnapshotSet,
    UnknownType,
    UsageSet,
)
from contractcompat.rollout import RolloutPlanner
from contractcompat.types import Classification, DiffKind, HttpMethod

__version__ = "0.1.0"

__all__ = [
    # Types
    "Classification",
    "DiffKind",
    "HttpMethod",
    # Models
    "PrimitiveType",
    "ArrayType",
    "ObjectType",
    "EnumType",
    "UnknownType",
    "FieldSchema",
    "ObjectSchema",
    "QueryParam",
    "EndpointSignature",
    "ContractSnapshot",
    "ConsumerEdge",
    "UsageSet",
    "ContractGraph",
    "SchemaDiffEntry",
    "CompatibilityVerdict",
    "RolloutPlan",
    "SnapshotSet",
    "Report",
    # Components
    "ContractGraphBuilder",
    "SchemaDiffEngine",
    "SnapshotDiff",
    "CompatibilityClassifier",
    "RolloutPlanner",
    "CompatibilityEngine",
    # Extraction
    "ExtractionAdapter",
    "ExtractionOutput",
    "extract_all",
    "SnapshotSetLoader",
    "YamlSnapshotAdapter",
    # Errors
    "ContractCompatError",
    "ExtractionFailure",
    "DuplicateServiceError",
    "CyclicDependencyError",
    "UnknownSchemaReference",
    "DanglingEdgeWarning",
    "StaleReferenceWarning",
]
