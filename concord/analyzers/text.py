"""Shared text helpers for the rule-based analyzers.

Sentence splitting, procedure step extraction, and numeric claim
extraction with unit normalization.
"""

from __future__ import annotations

import re
from typing import NamedTuple

_SENTENCE_SPLIT_RE = re.compile(r"(?<=[.!?;])\s+|\n+")

# Numbered ("1.", "2)", "Step 3:") or bulleted ("-", "*", "•") lines
_STEP_PREFIX_RE = re.compile(r"^\s*(?:(?:step\s+)?\d+[.):]|[-*•])\s+", re.IGNORECASE)

ACTION_VERBS = frozenset({
    "adjust", "apply", "attach", "check", "clean", "close", "connect",
    "disable", "disconnect", "disengage", "drain", "enable", "energize",
    "engage", "fill", "inspect", "install", "isolate", "lock", "loosen",
    "lubricate", "measure", "mount", "open", "place", "press", "release",
    "remove", "replace", "reset", "set", "start", "stop", "switch", "tag",
    "test", "tighten", "torque", "turn", "unlock", "verify", "wait", "wear",
})


def split_sentences(text: str) -> list[str]:
    """Split text into trimmed, non-empty sentences and lines."""
    return [s.strip() for s in _SENTENCE_SPLIT_RE.split(text) if s and s.strip()]


def extract_steps(text: str) -> list[str]:
    """Extract imperative procedure steps.

    A step is a numbered or bulleted line, or any sentence whose first
    word is a known action verb.
    """
    steps: list[str] = []
    for line in text.splitlines():
        match = _STEP_PREFIX_RE.match(line)
        if match:
            body = line[match.end():].strip()
            if body:
                steps.append(body)
            continue
        for sentence in split_sentences(line):
            first = sentence.split(maxsplit=1)[0].lower().strip(",:")
            if first in ACTION_VERBS:
                steps.append(sentence)
    return steps


# ── Numeric claims ───────────────────────────────────────────────


class Claim(NamedTuple):
    """A numeric value with a normalized unit, as found in a source."""

    value: float
    unit: str
    text: str


# Alternation order matters: longer spellings first
_UNIT_PATTERN = (
    r"ft[-\s·.]?lbs?|foot[-\s]pounds?|lb[-\s·.]?ft|"
    r"in[-\s·.]?lbs?|inch[-\s]pounds?|"
    r"n[-\s·.]?m|newton[-\s]meters?|"
    r"kilovolts?|kv|millivolts?|mv|volts?|vac|vdc|v|"
    r"milliamps?|ma|amperes?|amps?|a|"
    r"kilowatts?|kw|watts?|w|"
    r"ohms?|ω|"
    r"psi|kpa|bar|"
    r"rpm|"
    r"°\s?[cf]|degrees?\s+[cf]\b|degrees?|"
    r"millimeters?|mm|centimeters?|cm|meters?|m|"
    r"inches|inch|feet|foot|ft"
)

_CLAIM_RE = re.compile(
    r"(?<![\w.])(\d+(?:,\d{3})*(?:\.\d+)?)\s*-?\s*(" + _UNIT_PATTERN + r")(?![\w])",
    re.IGNORECASE,
)

# Single-letter and ambiguous spellings only count in these exact cases
_CASE_SENSITIVE = {"a": "A", "w": "W", "m": "m", "v": None, "ma": "mA", "mv": "mV"}

_UNIT_TABLE: list[tuple[re.Pattern[str], str, float]] = [
    (re.compile(r"^(?:ft[-\s·.]?lbs?|foot[-\s]pounds?|lb[-\s·.]?ft)$"), "N·m", 1.35582),
    (re.compile(r"^(?:in[-\s·.]?lbs?|inch[-\s]pounds?)$"), "N·m", 0.112985),
    (re.compile(r"^(?:n[-\s·.]?m|newton[-\s]meters?)$"), "N·m", 1.0),
    (re.compile(r"^(?:kilovolts?|kv)$"), "V", 1000.0),
    (re.compile(r"^(?:millivolts?|mv)$"), "V", 0.001),
    (re.compile(r"^(?:volts?|vac|vdc|v)$"), "V", 1.0),
    (re.compile(r"^(?:milliamps?|ma)$"), "A", 0.001),
    (re.compile(r"^(?:amperes?|amps?|a)$"), "A", 1.0),
    (re.compile(r"^(?:kilowatts?|kw)$"), "W", 1000.0),
    (re.compile(r"^(?:watts?|w)$"), "W", 1.0),
    (re.compile(r"^(?:ohms?|ω)$"), "ohm", 1.0),
    (re.compile(r"^psi$"), "psi", 1.0),
    (re.compile(r"^kpa$"), "psi", 0.145038),
    (re.compile(r"^bar$"), "psi", 14.5038),
    (re.compile(r"^rpm$"), "rpm", 1.0),
    (re.compile(r"^(?:°\s?c|degrees?\s+c)$"), "degC", 1.0),
    (re.compile(r"^(?:°\s?f|degrees?\s+f)$"), "degF", 1.0),
    (re.compile(r"^degrees?$"), "deg", 1.0),
    (re.compile(r"^(?:millimeters?|mm)$"), "m", 0.001),
    (re.compile(r"^(?:centimeters?|cm)$"), "m", 0.01),
    (re.compile(r"^(?:meters?|m)$"), "m", 1.0),
    (re.compile(r"^(?:inches|inch)$"), "m", 0.0254),
    (re.compile(r"^(?:feet|foot|ft)$"), "m", 0.3048),
]


def normalize_unit(raw: str) -> tuple[str, float] | None:
    """Map a unit spelling to (canonical unit, conversion factor).

    Returns None for spellings that are too ambiguous in their given case,
    such as a lowercase "a" or "w" in running prose.
    """
    lowered = raw.lower().strip()
    if lowered in _CASE_SENSITIVE:
        required = _CASE_SENSITIVE[lowered]
        if required is not None and raw.strip() != required:
            return None
    for pattern, unit, factor in _UNIT_TABLE:
        if pattern.match(lowered):
            return unit, factor
    return None


def extract_claims(text: str) -> list[Claim]:
    """Extract numeric claims with units, normalized to canonical units.

    "35 ft-lb" and "47.5 N·m" both normalize to newton-metres, so they
    compare directly.
    """
    claims: list[Claim] = []
    for match in _CLAIM_RE.finditer(text):
        normalized = normalize_unit(match.group(2))
        if normalized is None:
            continue
        unit, factor = normalized
        value = float(match.group(1).replace(",", "")) * factor
        claims.append(Claim(value=value, unit=unit, text=match.group(0).strip()))
    return claims


def relative_difference(a: float, b: float) -> float:
    """|a - b| relative to the smaller magnitude; inf when only one is zero."""
    smaller = min(abs(a), abs(b))
    if smaller == 0:
        return 0.0 if a == b else float("inf")
    return abs(a - b) / smaller
