"""
Extraction adapter interface and parallel extraction barrier.

The engine does not parse source code.  Any front-end that can turn a
service's source tree into a ``ContractSnapshot`` plus the consumer edges
that service emits can plug in by implementing ``ExtractionAdapter``.

``extract_all()`` runs one adapter over many services on a thread pool,
waits for every extraction to finish, and returns a ``SnapshotSet``.  A
failing service is recorded in ``SnapshotSet.failures`` and never aborts
the rest of the batch.

Usage::

    from contractcompat.extraction import extract_all

    batch = extract_all(adapter, {"param-service": Path("svc/param")}, max_workers=4)
    for service, reason in batch.failures.items():
        print(f"{service}: {reason}")
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from pathlib import Path
from typing import Mapping, Optional, Protocol, Union, runtime_checkable

from pydantic import BaseModel, ConfigDict

from contractcompat.config import get_max_workers
from contractcompat.errors import ExtractionFailure
from contractcompat.models import ConsumerEdge, ContractSnapshot, SnapshotSet

logger = logging.getLogger(__name__)

SourceRef = Union[str, Path]


class ExtractionOutput(BaseModel):
    """What an adapter returns for one service."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    snapshot: ContractSnapshot
    edges: tuple[ConsumerEdge, ...] = ()


@runtime_checkable
class ExtractionAdapter(Protocol):
    """Capability that extracts one service's contract surface.

    Implementations raise ``ExtractionFailure`` when a service cannot be
    extracted.  They must not mutate shared state: ``extract_all`` calls
    them concurrently.
    """

    def extract(self, service: str, source: SourceRef) -> ExtractionOutput:
        ...


def extract_all(
    adapter: ExtractionAdapter,
    sources: Mapping[str, SourceRef],
    max_workers: Optional[int] = None,
) -> SnapshotSet:
    """Extract every service in *sources* and join the results.

    Args:
        adapter: Extraction front-end.
        sources: Service id -> source tree (or pre-extracted document).
        max_workers: Thread count; defaults to ``config.max_workers``.

    Returns:
        ``SnapshotSet`` sorted by service id, with per-service failures.
    """
    workers = max_workers or get_max_workers()
    snapshots: list[ContractSnapshot] = []
    edges: list[ConsumerEdge] = []
    failures: dict[str, str] = {}

    with ThreadPoolExecutor(max_workers=workers) as pool:
        futures = {
            pool.submit(_extract_one, adapter, service, source): service
            for service, source in sources.items()
        }
        for future in as_completed(futures):
            service = futures[future]
            outcome = future.result()
            if isinstance(outcome, ExtractionFailure):
                failures[service] = outcome.reason
                continue
            snapshots.append(outcome.snapshot)
            edges.extend(outcome.edges)

    snapshots.sort(key=lambda s: s.service)
    edges.sort(key=lambda e: e.key)

    logger.debug(
        "Extraction complete: services=%d, snapshots=%d, edges=%d, failures=%d",
        len(sources),
        len(snapshots),
        len(edges),
        len(failures),
    )
    return SnapshotSet(
        snapshots=tuple(snapshots),
        edges=tuple(edges),
        failures=dict(sorted(failures.items())),
    )


def _extract_one(
    adapter: ExtractionAdapter, service: str, source: SourceRef
) -> Union[ExtractionOutput, ExtractionFailure]:
    """Run one extraction, converting any failure into an ``ExtractionFailure``."""
    try:
        output = adapter.extract(service, source)
    except ExtractionFailure as exc:
        logger.warning("Extraction failed for %s: %s", service, exc.reason)
        return exc
    except Exception as exc:
        logger.warning(
            "Extraction raised for %s: %s", service, exc, exc_info=True
        )
        return ExtractionFailure(service, f"{type(exc).__name__}: {exc}")

    if output.snapshot.service != service:
        reason = (
            f"adapter returned snapshot for '{output.snapshot.service}'"
        )
        logger.warning("Extraction mismatch for %s: %s", service, reason)
        return ExtractionFailure(service, reason)

    foreign = sorted({e.consumer for e in output.edges if e.consumer != service})
    if foreign:
        reason = f"adapter returned edges for other consumers: {', '.join(foreign)}"
        logger.warning("Extraction mismatch for %s: %s", service, reason)
        return ExtractionFailure(service, reason)

    return output
