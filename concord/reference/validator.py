"""Reference-fact validation for specification sources.

Compares each measurement a specification source declares (or states in
its text) against the baseline for its category, and reports the
significant deviations as ReferenceFinding records that the factual and
safety analyzers fold into their scores.
"""

from __future__ import annotations

import logging
import tomllib
from abc import ABC, abstractmethod
from pathlib import Path

from concord.analyzers.text import extract_claims, normalize_unit
from concord.schemas.analysis import Dimension, Severity
from concord.schemas.sources import (
    ReferenceFact,
    ReferenceFinding,
    SourceKind,
    SourceResponse,
)

logger = logging.getLogger(__name__)

# Deviations from these laws are always critical, whatever their size
ENERGY_CONSERVATION_LAWS = frozenset({"energy_conservation", "first_law_thermodynamics"})

# (variance above which, severity) from most to least severe
_VARIANCE_BANDS: list[tuple[float, Severity]] = [
    (0.20, Severity.CRITICAL),
    (0.10, Severity.HIGH),
    (0.05, Severity.MEDIUM),
]


class ReferenceFactProvider(ABC):
    """Pluggable source of baseline values keyed by measurement category."""

    @abstractmethod
    def facts(self) -> dict[str, ReferenceFact]:
        """Return all known facts keyed by category."""


class StaticReferenceFacts(ReferenceFactProvider):
    """Fixed fact table built from a list or loaded from TOML."""

    def __init__(self, facts: list[ReferenceFact] | dict[str, ReferenceFact]) -> None:
        if isinstance(facts, dict):
            self._facts = dict(facts)
        else:
            self._facts = {fact.category: fact for fact in facts}

    def facts(self) -> dict[str, ReferenceFact]:
        return dict(self._facts)

    @classmethod
    def from_toml(cls, path: Path) -> StaticReferenceFacts:
        """Load facts from ``[facts.<category>]`` tables.

        Raises:
            FileNotFoundError: If the file does not exist.
            ValueError: If the file has no [facts] section.
        """
        if not path.exists():
            raise FileNotFoundError(f"Reference facts not found: {path}")

        with open(path, "rb") as f:
            raw = tomllib.load(f)

        section = raw.get("facts")
        if not section or not isinstance(section, dict):
            raise ValueError(f"No [facts] section found in {path}")

        return cls([
            ReferenceFact(category=category, **entry)
            for category, entry in section.items()
            if isinstance(entry, dict)
        ])


def relative_variance(actual: float, expected: float) -> float:
    """|actual - expected| / |expected|; absolute difference when expected is 0."""
    if expected == 0:
        return abs(actual)
    return abs(actual - expected) / abs(expected)


def band_severity(fact: ReferenceFact, variance: float) -> Severity:
    """Severity for a significant deviation, never below the fact's own."""
    if fact.law in ENERGY_CONSERVATION_LAWS:
        return Severity.CRITICAL

    banded = Severity.LOW
    for bound, severity in _VARIANCE_BANDS:
        if variance > bound:
            banded = severity
            break
    return banded if banded.rank >= fact.severity.rank else fact.severity


class ReferenceFactValidator:
    """Checks specification sources against a ReferenceFactProvider."""

    def __init__(self, provider: ReferenceFactProvider) -> None:
        self._provider = provider

    def validate(
        self,
        sources: list[SourceResponse],
        dimension: Dimension | None = None,
    ) -> list[ReferenceFinding]:
        """Return significant deviations, optionally for one target dimension.

        Free-text sources are skipped. A measurement is taken from the
        source's declared ``measurements`` first, then from the first claim
        in its text whose unit matches the fact's unit.
        """
        facts = self._provider.facts()
        findings: list[ReferenceFinding] = []

        for source in sources:
            if source.kind != SourceKind.SPECIFICATION:
                continue
            for category, fact in facts.items():
                if dimension is not None and fact.dimension != dimension:
                    continue
                actual = self._measurement(source, category, fact)
                if actual is None:
                    continue

                variance = relative_variance(actual, fact.expected_value)
                if variance <= fact.tolerance:
                    continue

                finding = ReferenceFinding(
                    source_id=source.source_id,
                    category=category,
                    law=fact.law,
                    expected=fact.expected_value,
                    actual=actual,
                    variance=variance,
                    severity=band_severity(fact, variance),
                    dimension=fact.dimension,
                )
                logger.debug("Reference deviation: %s", finding.description)
                findings.append(finding)

        return findings

    @staticmethod
    def _measurement(
        source: SourceResponse,
        category: str,
        fact: ReferenceFact,
    ) -> float | None:
        if category in source.measurements:
            return source.measurements[category]
        if not fact.unit:
            return None

        normalized = normalize_unit(fact.unit)
        if normalized is None:
            return None
        unit, factor = normalized
        for claim in extract_claims(source.text):
            if claim.unit == unit:
                # Report in the fact's own unit
                return claim.value / factor
        return None
