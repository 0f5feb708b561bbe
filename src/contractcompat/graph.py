"""
Contract graph builder.

Assembles the provider -> consumer graph from a collection of snapshots
and consumer edges.  Edges between the same (consumer, provider) pair are
merged; edges to providers with no snapshot are dropped and recorded as
dangling; references to surface the provider does not expose are
recorded as stale.  Only duplicate service ids are fatal.

Usage::

    from contractcompat.graph import ContractGraphBuilder

    graph = ContractGraphBuilder().build(snapshots, edges)
    for warning in graph.warnings:
        print(warning)
"""

from __future__ import annotations

import logging
from typing import Iterable

from contractcompat.errors import (
    DanglingEdgeWarning,
    DuplicateServiceError,
    StaleReferenceWarning,
)
from contractcompat.models import ConsumerEdge, ContractGraph, ContractSnapshot
from contractcompat.otel import emit_graph_built

logger = logging.getLogger(__name__)


def index_snapshots(snapshots: Iterable[ContractSnapshot]) -> dict[str, ContractSnapshot]:
    """Map service id -> snapshot, rejecting duplicate ids."""
    by_service: dict[str, ContractSnapshot] = {}
    for snapshot in snapshots:
        if snapshot.service in by_service:
            raise DuplicateServiceError(snapshot.service)
        by_service[snapshot.service] = snapshot
    return by_service


class ContractGraphBuilder:
    """Builds a ``ContractGraph`` from snapshots and consumer edges."""

    def build(
        self,
        snapshots: Iterable[ContractSnapshot],
        edges: Iterable[ConsumerEdge],
        unextracted: Iterable[str] = (),
    ) -> ContractGraph:
        """Build the graph.

        Args:
            snapshots: Current snapshot of every known service.
            edges: Consumer edges emitted by extraction.
            unextracted: Services that exist but failed extraction; edges
                to them are kept rather than reported as dangling.

        Returns:
            Immutable ``ContractGraph`` with recorded warnings.

        Raises:
            DuplicateServiceError: If two snapshots share a service id.
        """
        by_service = index_snapshots(snapshots)
        known = set(by_service) | set(unextracted)
        warnings: list[str] = []

        merged: dict[tuple[str, str], ConsumerEdge] = {}
        for edge in edges:
            if edge.provider not in known:
                dangling = DanglingEdgeWarning(edge.consumer, edge.provider)
                logger.warning("%s", dangling)
                warnings.append(str(dangling))
                continue
            existing = merged.get(edge.key)
            merged[edge.key] = existing.merge(edge) if existing else edge

        ordered = sorted(merged.values(), key=lambda e: (e.provider, e.consumer))
        for edge in ordered:
            warnings.extend(self._stale_references(edge, by_service.get(edge.provider)))

        services = known | {e.consumer for e in ordered}
        graph = ContractGraph(
            services=frozenset(services),
            edges=tuple(ordered),
            warnings=tuple(warnings),
        )
        emit_graph_built(graph)
        return graph

    @staticmethod
    def _stale_references(
        edge: ConsumerEdge, snapshot: ContractSnapshot | None
    ) -> list[str]:
        if snapshot is None:
            return []
        stale: list[str] = []
        for reference in sorted(edge.references):
            if not snapshot.has_reference(reference):
                warning = StaleReferenceWarning(edge.consumer, edge.provider, reference)
                logger.warning("%s", warning)
                stale.append(str(warning))
        return stale
