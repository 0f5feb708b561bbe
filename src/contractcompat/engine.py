"""
Compatibility engine: the public entry point.

Runs the full analysis over pre-assembled inputs:

1. Build the contract graph from the current snapshots and consumer edges.
2. Diff each provider's current snapshot against its proposed one.
3. Classify every changed subject for every consumer that uses it.
4. Plan a phased rollout over the breaking-change subgraph.

Recoverable conditions never abort the run.  A provider that failed
extraction yields ``UNKNOWN`` verdicts for its consumers, a consumer that
failed extraction gets ``UNKNOWN`` for every changed subject, an
unresolvable body reference yields ``UNKNOWN`` for that endpoint, and a
breaking-change cycle omits the rollout plan (the cycle is reported
instead).  Only a duplicate service id propagates.

Usage::

    from contractcompat.engine import CompatibilityEngine

    report = CompatibilityEngine().analyze(current, proposed, edges)
    if report.has_breaking_changes:
        for verdict in report.breaking_verdicts:
            print(verdict.provider, verdict.subject, verdict.consumer)
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Iterable, Mapping, Optional

from contractcompat.classifier import CompatibilityClassifier
from contractcompat.config import get_max_workers
from contractcompat.diff import SchemaDiffEngine, SnapshotDiff
from contractcompat.errors import CyclicDependencyError
from contractcompat.graph import ContractGraphBuilder, index_snapshots
from contractcompat.models import (
    CompatibilityVerdict,
    ConsumerEdge,
    ContractSnapshot,
    Report,
    RolloutPlan,
    SnapshotSet,
)
from contractcompat.otel import (
    emit_analysis_complete,
    emit_breaking_verdict,
    emit_diff_complete,
    emit_rollout_cycle,
)
from contractcompat.rollout import RolloutPlanner
from contractcompat.types import Classification

logger = logging.getLogger(__name__)

_EdgeOutcome = tuple[list[CompatibilityVerdict], list[str]]


class CompatibilityEngine:
    """Runs graph build, diff, classification and rollout planning."""

    def __init__(
        self,
        builder: Optional[ContractGraphBuilder] = None,
        differ: Optional[SchemaDiffEngine] = None,
        classifier: Optional[CompatibilityClassifier] = None,
        planner: Optional[RolloutPlanner] = None,
        max_workers: Optional[int] = None,
    ) -> None:
        self._builder = builder or ContractGraphBuilder()
        self._differ = differ or SchemaDiffEngine()
        self._classifier = classifier or CompatibilityClassifier()
        self._planner = planner or RolloutPlanner()
        self._max_workers = max_workers

    def analyze(
        self,
        current: Iterable[ContractSnapshot],
        proposed: Iterable[ContractSnapshot],
        edges: Iterable[ConsumerEdge],
        failures: Optional[Mapping[str, str]] = None,
    ) -> Report:
        """Analyse proposed snapshots against the current state.

        Args:
            current: Current snapshot of every extracted service.
            proposed: Next snapshot for one or more services; services not
                listed are unchanged.
            edges: Consumer edges from extraction.
            failures: Service id -> reason for services extraction could
                not snapshot.

        Returns:
            Best-effort ``Report``.

        Raises:
            DuplicateServiceError: If either snapshot collection repeats a
                service id.
        """
        failures = dict(sorted((failures or {}).items()))
        current = list(current)
        proposed_map = index_snapshots(proposed)

        graph = self._builder.build(current, edges, unextracted=failures)
        current_map = index_snapshots(current)
        warnings = list(graph.warnings)

        for service, reason in failures.items():
            logger.warning("Extraction failed for %s: %s", service, reason)
            warnings.append(f"Extraction failed for '{service}': {reason}")

        for service in sorted(set(proposed_map) - set(current_map)):
            if service not in failures:
                warnings.append(
                    f"Proposed snapshot for '{service}' has no current baseline; not diffed"
                )

        diffs: dict[str, SnapshotDiff] = {}
        for service in sorted(set(proposed_map) & set(current_map)):
            if service in failures:
                continue
            snapshot_diff = self._differ.diff_snapshots(
                current_map[service], proposed_map[service]
            )
            emit_diff_complete(service, snapshot_diff.entries)
            if not snapshot_diff.is_empty:
                diffs[service] = snapshot_diff

        relevant = [
            e for e in graph.edges if e.provider in diffs or e.provider in failures
        ]
        outcomes = self._run_edges(relevant, diffs, failures)

        verdicts: list[CompatibilityVerdict] = []
        for service in failures:
            if graph.providers_of(service) or not diffs:
                continue
            verdicts.extend(_unextracted_consumer_verdicts(service, diffs))
            warnings.append(
                f"Usage of '{service}' unknown; every changed subject reported as unknown for it"
            )
        for edge_verdicts, edge_warnings in outcomes:
            verdicts.extend(edge_verdicts)
            warnings.extend(edge_warnings)
        verdicts.sort(key=lambda v: v.sort_key)

        breaking_subjects: dict[str, set[str]] = {}
        for verdict in verdicts:
            if verdict.classification == Classification.BREAKING:
                breaking_subjects.setdefault(verdict.provider, set()).add(verdict.subject)

        rollout: Optional[RolloutPlan] = None
        cycle: tuple[str, ...] = ()
        try:
            rollout = self._planner.plan(graph, breaking_subjects, verdicts)
        except CyclicDependencyError as exc:
            emit_rollout_cycle(exc)
            cycle = exc.members
            warnings.append(str(exc))

        report = Report(
            graph=graph,
            verdicts=tuple(verdicts),
            rollout=rollout,
            warnings=tuple(warnings),
            cycle=cycle,
        )
        for verdict in report.breaking_verdicts:
            emit_breaking_verdict(verdict)
        emit_analysis_complete(report)
        return report

    def analyze_sets(self, current: SnapshotSet, proposed: SnapshotSet) -> Report:
        """Analyse two extraction batches.

        Consumer edges come from the current batch; failures from both.
        """
        failures = {**proposed.failures, **current.failures}
        return self.analyze(current.snapshots, proposed.snapshots, current.edges, failures)

    # -- internal helpers --------------------------------------------------

    def _run_edges(
        self,
        edges: list[ConsumerEdge],
        diffs: Mapping[str, SnapshotDiff],
        failures: Mapping[str, str],
    ) -> list[_EdgeOutcome]:
        workers = self._max_workers or get_max_workers()
        if workers <= 1 or len(edges) <= 1:
            return [self._edge_verdicts(e, diffs, failures) for e in edges]
        with ThreadPoolExecutor(max_workers=workers) as pool:
            return list(pool.map(lambda e: self._edge_verdicts(e, diffs, failures), edges))

    def _edge_verdicts(
        self,
        edge: ConsumerEdge,
        diffs: Mapping[str, SnapshotDiff],
        failures: Mapping[str, str],
    ) -> _EdgeOutcome:
        """Verdicts for every changed subject one consumer uses on one provider."""
        verdicts: list[CompatibilityVerdict] = []
        warnings: list[str] = []

        if edge.provider in failures:
            for subject in sorted(edge.references | edge.member_roots):
                verdicts.append(CompatibilityVerdict(
                    subject=subject,
                    provider=edge.provider,
                    consumer=edge.consumer,
                    classification=Classification.UNKNOWN,
                ))
            return verdicts, warnings

        snapshot_diff = diffs[edge.provider]
        usage = edge.usage
        for subject in snapshot_diff.subjects:
            if not edge.covers(subject):
                continue
            if subject in snapshot_diff.unresolved:
                verdicts.append(CompatibilityVerdict(
                    subject=subject,
                    provider=edge.provider,
                    consumer=edge.consumer,
                    classification=Classification.UNKNOWN,
                ))
                warnings.append(
                    f"{edge.provider} {subject}: {snapshot_diff.unresolved[subject]}"
                )
                continue
            entries = snapshot_diff.entries_for(subject)
            verdicts.append(self._classifier.verdict(
                subject, edge.provider, edge.consumer, entries, usage
            ))
            warnings.extend(self._classifier.warnings(
                edge.provider, edge.consumer, entries, usage
            ))
        return verdicts, warnings


def _unextracted_consumer_verdicts(
    service: str, diffs: Mapping[str, SnapshotDiff]
) -> list[CompatibilityVerdict]:
    """``UNKNOWN`` for every changed subject, for a service whose usage is unknown.

    A service that failed extraction has no consumer edges, so any changed
    provider subject may be one it depends on.
    """
    verdicts: list[CompatibilityVerdict] = []
    for provider, snapshot_diff in diffs.items():
        for subject in snapshot_diff.subjects:
            verdicts.append(CompatibilityVerdict(
                subject=subject,
                provider=provider,
                consumer=service,
                classification=Classification.UNKNOWN,
                reasons=snapshot_diff.entries_for(subject),
            ))
    return verdicts
