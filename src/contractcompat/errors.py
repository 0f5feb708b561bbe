"""
Error and warning taxonomy for contract compatibility analysis.

Hard failures (identity violations, structural impossibilities) derive from
``ContractCompatError`` and propagate to the caller.  Recoverable
per-component conditions are either caught by the engine and downgraded to
``Unknown`` (``ExtractionFailure``, ``UnknownSchemaReference``) or recorded
as warning messages (``DanglingEdgeWarning``, ``StaleReferenceWarning``).
"""

from __future__ import annotations

from typing import Iterable


class ContractCompatError(Exception):
    """Base class for all contract compatibility errors."""


class ExtractionFailure(ContractCompatError):
    """An extraction adapter could not produce a snapshot for one service."""

    def __init__(self, service: str, reason: str) -> None:
        self.service = service
        self.reason = reason
        super().__init__(f"Extraction failed for service '{service}': {reason}")


class DuplicateServiceError(ContractCompatError):
    """Two snapshots in one collection share a service id."""

    def __init__(self, service: str) -> None:
        self.service = service
        super().__init__(
            f"Duplicate service id '{service}': snapshot identity is ambiguous"
        )


class CyclicDependencyError(ContractCompatError):
    """The breaking-change subgraph contains a cycle, so no phased rollout exists."""

    def __init__(self, members: Iterable[str]) -> None:
        self.members = tuple(sorted(set(members)))
        super().__init__(
            "Breaking changes form a dependency cycle between services: "
            + ", ".join(self.members)
        )


class UnknownSchemaReference(ContractCompatError):
    """An endpoint body references a schema missing from its snapshot."""

    def __init__(self, schema: str, side: str = "") -> None:
        self.schema = schema
        self.side = side
        where = f" ({side} snapshot)" if side else ""
        super().__init__(f"Unknown schema reference '{schema}'{where}")


class DanglingEdgeWarning(UserWarning):
    """A consumer edge points at a provider with no snapshot."""

    def __init__(self, consumer: str, provider: str) -> None:
        self.consumer = consumer
        self.provider = provider
        super().__init__(
            f"Dangling edge: '{consumer}' consumes unknown provider '{provider}'"
        )


class StaleReferenceWarning(UserWarning):
    """A consumer edge references surface absent from the provider snapshot."""

    def __init__(self, consumer: str, provider: str, reference: str) -> None:
        self.consumer = consumer
        self.provider = provider
        self.reference = reference
        super().__init__(
            f"Stale reference: '{consumer}' uses '{reference}' "
            f"which '{provider}' does not expose"
        )
