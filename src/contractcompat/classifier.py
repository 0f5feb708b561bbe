"""
Compatibility classifier.

Turns diff entries into a ``Classification`` for one consumer.  Each entry
is classified by a closed per-kind table, then entries are combined
worst-case (``COMPATIBLE < UNKNOWN < BREAKING``).

Usage data narrows what applies: with a known usage set only field
entries the consumer touches count, and a removed query param breaks only
consumers that send it.  Without usage data nothing field-level can be
proven safe, so field entries that would be compatible become
``UNKNOWN`` instead.

Usage::

    from contractcompat.classifier import CompatibilityClassifier

    classifier = CompatibilityClassifier()
    level = classifier.classify(entries, edge.usage)
"""

from __future__ import annotations

import logging
from typing import Iterable, Optional

from contractcompat.models import CompatibilityVerdict, SchemaDiffEntry, UsageSet
from contractcompat.types import REQUIRED, Classification, DiffKind

logger = logging.getLogger(__name__)

# Kinds whose classification never depends on values or usage.  An added
# path param is breaking: templates carry no defaults, so existing callers
# cannot build the new URL.
_ALWAYS_BREAKING = frozenset({
    DiffKind.FIELD_REMOVED,
    DiffKind.ENDPOINT_REMOVED,
    DiffKind.ENDPOINT_METHOD_CHANGED,
    DiffKind.PATH_PARAM_REMOVED,
    DiffKind.PATH_PARAM_ADDED,
    DiffKind.FIELD_TYPE_CHANGED,
    DiffKind.FIELD_NO_LONGER_NULLABLE,
})

_ALWAYS_COMPATIBLE = frozenset({
    DiffKind.FIELD_ADDED,
    DiffKind.ENDPOINT_ADDED,
    DiffKind.FIELD_NOW_NULLABLE,
})

# Breaking only when the value moves to "required"
_BREAKING_WHEN_REQUIRED = frozenset({
    DiffKind.QUERY_PARAM_ADDED,
    DiffKind.QUERY_PARAM_REQUIREDNESS_CHANGED,
    DiffKind.FIELD_REQUIREDNESS_CHANGED,
})


class CompatibilityClassifier:
    """Classifies diff entries for a consumer, optionally using its usage set."""

    def classify_entry(
        self, entry: SchemaDiffEntry, consumer_usage: Optional[UsageSet] = None
    ) -> Classification:
        """Classify a single entry."""
        level = self._table(entry, consumer_usage)
        if (
            level == Classification.COMPATIBLE
            and consumer_usage is None
            and entry.is_field_level
        ):
            return Classification.UNKNOWN
        return level

    def applicable(
        self,
        diffs: Iterable[SchemaDiffEntry],
        consumer_usage: Optional[UsageSet] = None,
    ) -> list[SchemaDiffEntry]:
        """Entries that concern the consumer.

        Field entries apply only when the usage set references them;
        everything else (endpoint, path and query param entries) always
        applies.  With unknown usage every entry applies.
        """
        if consumer_usage is None:
            return list(diffs)
        return [
            e for e in diffs
            if not e.is_field_level or consumer_usage.references(e)
        ]

    def classify(
        self,
        diffs: Iterable[SchemaDiffEntry],
        consumer_usage: Optional[UsageSet] = None,
    ) -> Classification:
        """Worst classification across the entries that apply to the consumer.

        An empty set of applicable entries is ``COMPATIBLE``.
        """
        result = Classification.COMPATIBLE
        for entry in self.applicable(diffs, consumer_usage):
            result = result.worst(self.classify_entry(entry, consumer_usage))
        return result

    def verdict(
        self,
        subject: str,
        provider: str,
        consumer: str,
        diffs: Iterable[SchemaDiffEntry],
        consumer_usage: Optional[UsageSet] = None,
    ) -> CompatibilityVerdict:
        """Build the verdict for one (subject, consumer) pair.

        ``reasons`` holds the applicable entries in diff order.
        """
        reasons = self.applicable(diffs, consumer_usage)
        classification = Classification.COMPATIBLE
        for entry in reasons:
            classification = classification.worst(
                self.classify_entry(entry, consumer_usage)
            )
        logger.debug(
            "Verdict %s %s -> %s: %s (%d reason(s))",
            provider, subject, consumer, classification.value, len(reasons),
        )
        return CompatibilityVerdict(
            subject=subject,
            provider=provider,
            consumer=consumer,
            classification=classification,
            reasons=tuple(reasons),
        )

    def warnings(
        self,
        provider: str,
        consumer: str,
        diffs: Iterable[SchemaDiffEntry],
        consumer_usage: Optional[UsageSet] = None,
    ) -> list[str]:
        """Warnings for changes classified compatible only because they are unused."""
        if consumer_usage is None:
            return []
        out: list[str] = []
        for entry in diffs:
            if entry.kind == DiffKind.QUERY_PARAM_REMOVED and not consumer_usage.references(entry):
                out.append(
                    f"Query param '{entry.location}' removed from {provider} "
                    f"{entry.subject}; '{consumer}' does not send it"
                )
        return out

    # -- internal helpers --------------------------------------------------

    @staticmethod
    def _table(
        entry: SchemaDiffEntry, consumer_usage: Optional[UsageSet]
    ) -> Classification:
        kind = entry.kind
        if kind in _ALWAYS_BREAKING:
            return Classification.BREAKING
        if kind in _BREAKING_WHEN_REQUIRED:
            if entry.after == REQUIRED:
                return Classification.BREAKING
            return Classification.COMPATIBLE
        if kind == DiffKind.QUERY_PARAM_REMOVED:
            if consumer_usage is None:
                return Classification.UNKNOWN
            if consumer_usage.references(entry):
                return Classification.BREAKING
            return Classification.COMPATIBLE
        if kind in _ALWAYS_COMPATIBLE:
            return Classification.COMPATIBLE
        logger.warning("Unclassified diff kind %s; treating as unknown", kind.value)
        return Classification.UNKNOWN
