"""
Rollout order planner.

Orders the services touched by breaking changes into deployment phases:
a provider shipping a breaking change (behind a backward-compatible shim)
deploys in an earlier phase than every consumer that must be updated for
the new contract.  Consumers of non-breaking changes are left out and may
deploy at any time.

Only the breaking-change subgraph must be acyclic.  Cycles in the full
consumer graph (bidirectional calls) are normal and ignored here.

Usage::

    from contractcompat.rollout import RolloutPlanner

    plan = RolloutPlanner().plan(graph, {"param-service": {"ScenarioDto"}})
    for index, phase in enumerate(plan.phases):
        print(index, ", ".join(phase))
"""

from __future__ import annotations

import logging
from typing import Iterable, Mapping, Optional

from contractcompat.errors import CyclicDependencyError
from contractcompat.models import CompatibilityVerdict, ContractGraph, RolloutPlan
from contractcompat.otel import emit_rollout_planned
from contractcompat.types import Classification

logger = logging.getLogger(__name__)


class RolloutPlanner:
    """Computes phased deployment order from breaking changes."""

    def plan(
        self,
        graph: ContractGraph,
        breaking_subjects: Mapping[str, Iterable[str]],
        verdicts: Optional[Iterable[CompatibilityVerdict]] = None,
    ) -> RolloutPlan:
        """Plan deployment phases.

        Args:
            graph: Contract graph.
            breaking_subjects: Provider -> subject ids with breaking changes.
            verdicts: When given, an edge counts only if its consumer has a
                ``BREAKING`` verdict on one of those subjects.

        Returns:
            ``RolloutPlan``; empty when nothing breaks.

        Raises:
            CyclicDependencyError: If the breaking-change subgraph has a cycle.
        """
        dependents = self.breaking_subgraph(graph, breaking_subjects, verdicts)
        nodes = set(dependents)
        for consumers in dependents.values():
            nodes |= consumers

        indegree = {node: 0 for node in nodes}
        for consumers in dependents.values():
            for consumer in consumers:
                indegree[consumer] += 1

        phases: list[tuple[str, ...]] = []
        ready = sorted(n for n in nodes if indegree[n] == 0)
        placed = 0
        while ready:
            phases.append(tuple(ready))
            placed += len(ready)
            following: list[str] = []
            for node in ready:
                for consumer in dependents.get(node, ()):
                    indegree[consumer] -= 1
                    if indegree[consumer] == 0:
                        following.append(consumer)
            ready = sorted(following)

        if placed < len(nodes):
            remaining = {n for n in nodes if indegree[n] > 0}
            raise CyclicDependencyError(_cycle_members(dependents, remaining))

        plan = RolloutPlan(phases=tuple(phases))
        emit_rollout_planned(plan)
        return plan

    @staticmethod
    def breaking_subgraph(
        graph: ContractGraph,
        breaking_subjects: Mapping[str, Iterable[str]],
        verdicts: Optional[Iterable[CompatibilityVerdict]] = None,
    ) -> dict[str, set[str]]:
        """Provider -> consumers, restricted to edges carrying a breaking subject."""
        breaking = {p: frozenset(s) for p, s in breaking_subjects.items()}
        confirmed: Optional[set[tuple[str, str, str]]] = None
        if verdicts is not None:
            confirmed = {
                (v.provider, v.consumer, v.subject)
                for v in verdicts
                if v.classification == Classification.BREAKING
            }

        dependents: dict[str, set[str]] = {}
        for edge in graph.edges:
            subjects = frozenset(
                s for s in breaking.get(edge.provider, ()) if edge.covers(s)
            )
            if confirmed is not None:
                subjects = frozenset(
                    s for s in subjects if (edge.provider, edge.consumer, s) in confirmed
                )
            if not subjects:
                continue
            logger.debug(
                "Breaking edge %s -> %s via %s",
                edge.provider, edge.consumer, ", ".join(sorted(subjects)),
            )
            dependents.setdefault(edge.provider, set()).add(edge.consumer)
        return dependents


def _cycle_members(dependents: Mapping[str, set[str]], remaining: set[str]) -> list[str]:
    """Services in *remaining* that can reach themselves, i.e. lie on a cycle."""
    members: list[str] = []
    for start in sorted(remaining):
        stack = [c for c in dependents.get(start, ()) if c in remaining]
        seen: set[str] = set()
        while stack:
            node = stack.pop()
            if node == start:
                members.append(start)
                break
            if node in seen:
                continue
            seen.add(node)
            stack.extend(c for c in dependents.get(node, ()) if c in remaining)
    return members
