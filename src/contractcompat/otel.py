"""
Span events for contract compatibility analysis.

Every ``emit_*`` function logs its event and, when OpenTelemetry is
installed and the current span is recording, attaches it to that span.
Breaking verdicts and cycles log at WARNING, everything else at DEBUG.

Usage::

    from contractcompat.otel import emit_graph_built, emit_breaking_verdict

    emit_graph_built(graph)
    for verdict in report.breaking_verdicts:
        emit_breaking_verdict(verdict)
"""

from __future__ import annotations

import logging
from typing import Mapping, Optional, Sequence, Union

from contractcompat.errors import CyclicDependencyError
from contractcompat.models import (
    CompatibilityVerdict,
    ContractGraph,
    Report,
    RolloutPlan,
    SchemaDiffEntry,
)

try:
    from opentelemetry import trace as otel_trace

    _HAS_OTEL = True
except ImportError:  # pragma: no cover
    _HAS_OTEL = False

logger = logging.getLogger(__name__)

AttrValue = Union[str, int, float, bool]


def _add_span_event(name: str, attributes: Mapping[str, Optional[AttrValue]]) -> None:
    """Attach *name* to the recording span; ``None`` attributes are dropped."""
    if not _HAS_OTEL:
        return
    span = otel_trace.get_current_span()
    if not span.is_recording():
        return
    span.add_event(
        name=name,
        attributes={k: v for k, v in attributes.items() if v is not None},
    )


def emit_graph_built(graph: ContractGraph) -> None:
    """Emit a span event summarising a built contract graph.

    Event name: ``contract.graph.built``
    """
    attrs: dict[str, AttrValue] = {
        "graph.services": len(graph.services),
        "graph.edges": len(graph.edges),
        "graph.warnings": len(graph.warnings),
    }
    logger.debug(
        "Contract graph built: services=%d edges=%d warnings=%d",
        len(graph.services),
        len(graph.edges),
        len(graph.warnings),
    )
    _add_span_event("contract.graph.built", attrs)


def emit_diff_complete(provider: str, entries: Sequence[SchemaDiffEntry]) -> None:
    """Emit a span event for one provider's snapshot diff.

    Event name: ``contract.diff.complete``
    """
    subjects = {e.subject for e in entries}
    attrs: dict[str, AttrValue] = {
        "diff.provider": provider,
        "diff.entries": len(entries),
        "diff.subjects": len(subjects),
    }
    logger.debug(
        "Diff complete: provider=%s entries=%d subjects=%d",
        provider,
        len(entries),
        len(subjects),
    )
    _add_span_event("contract.diff.complete", attrs)


def emit_breaking_verdict(verdict: CompatibilityVerdict) -> None:
    """Emit a span event for a breaking verdict.

    Event name: ``contract.verdict.breaking``
    """
    kinds = sorted({r.kind.value for r in verdict.reasons})
    attrs: dict[str, AttrValue] = {
        "verdict.provider": verdict.provider,
        "verdict.consumer": verdict.consumer,
        "verdict.subject": verdict.subject,
        "verdict.reasons": len(verdict.reasons),
        "verdict.kinds": ",".join(kinds),
    }
    logger.warning(
        "Breaking change: %s %s -> consumer %s (%s)",
        verdict.provider,
        verdict.subject,
        verdict.consumer,
        ", ".join(kinds),
    )
    _add_span_event("contract.verdict.breaking", attrs)


def emit_rollout_planned(plan: RolloutPlan) -> None:
    """Emit a span event for a computed rollout plan.

    Event name: ``contract.rollout.planned``
    """
    attrs: dict[str, AttrValue] = {
        "rollout.phases": len(plan.phases),
        "rollout.services": len(plan.services),
    }
    logger.debug(
        "Rollout planned: phases=%d services=%d",
        len(plan.phases),
        len(plan.services),
    )
    _add_span_event("contract.rollout.planned", attrs)


def emit_rollout_cycle(error: CyclicDependencyError) -> None:
    """Emit a span event when rollout planning hits a cycle.

    Event name: ``contract.rollout.cycle``
    """
    attrs: dict[str, AttrValue] = {
        "rollout.cycle_members": ",".join(error.members),
        "rollout.cycle_size": len(error.members),
    }
    logger.warning("Rollout planning failed: %s", error)
    _add_span_event("contract.rollout.cycle", attrs)


def emit_analysis_complete(report: Report) -> None:
    """Emit a span event summarising a full analysis run.

    Event name: ``contract.analysis.complete``
    """
    attrs: dict[str, Optional[AttrValue]] = {
        "analysis.verdicts": len(report.verdicts),
        "analysis.breaking": len(report.breaking_verdicts),
        "analysis.unknown": len(report.unknown_verdicts),
        "analysis.worst": report.worst.value,
        "analysis.warnings": len(report.warnings),
        "analysis.planned": report.rollout is not None,
        "analysis.cycle": ",".join(report.cycle) or None,
    }
    logger.debug(
        "Analysis complete: verdicts=%d breaking=%d unknown=%d worst=%s",
        len(report.verdicts),
        len(report.breaking_verdicts),
        len(report.unknown_verdicts),
        report.worst.value,
    )
    _add_span_event("contract.analysis.complete", attrs)
