"""Tests for the rule-based analyzers: semantic, factual, procedure, safety."""

from __future__ import annotations

import pytest

from concord.analyzers import (
    ArbitrationContext,
    FactualAnalyzer,
    PairwiseAnalyzer,
    ProcedureAnalyzer,
    SafetyAnalyzer,
    SemanticAnalyzer,
    default_analyzers,
)
from concord.analyzers.safety import classify_posture, safety_sentences, source_postures
from concord.analyzers.semantic import assert_sides
from concord.providers.heuristic import LexicalInferenceBackend
from concord.reference import ReferenceFactValidator, StaticReferenceFacts
from concord.schemas.analysis import Dimension, Severity
from concord.schemas.config import ArbitrationConfig
from concord.schemas.sources import ReferenceFact, SourceKind, SourceResponse


# ── Helpers ───────────────────────────────────────────────────


def _src(source_id: str, text: str, **overrides) -> SourceResponse:
    return SourceResponse(source_id=source_id, text=text, **overrides)


def _make_context(facts: list[ReferenceFact] | None = None, **config) -> ArbitrationContext:
    validator = ReferenceFactValidator(StaticReferenceFacts(facts)) if facts else None
    return ArbitrationContext(
        config=ArbitrationConfig(**config),
        backend=LexicalInferenceBackend(),
        reference_validator=validator,
    )


# ── default_analyzers ─────────────────────────────────────────


class TestDefaultAnalyzers:
    def test_one_per_dimension_in_order(self):
        assert [a.dimension for a in default_analyzers()] == list(Dimension)

    def test_types(self):
        types = [type(a) for a in default_analyzers()]
        assert types == [
            PairwiseAnalyzer, SemanticAnalyzer, FactualAnalyzer,
            ProcedureAnalyzer, SafetyAnalyzer,
        ]


# ── ArbitrationContext ────────────────────────────────────────


class TestArbitrationContext:
    def test_partial_scores_clamped(self):
        ctx = _make_context()
        ctx.record_partial(Dimension.FACTUAL, 1.6)
        assert ctx.partial_score(Dimension.FACTUAL) == 1.0

    def test_unrecorded_partial_is_zero(self):
        assert _make_context().partial_score(Dimension.SAFETY) == 0.0

    def test_fresh_context_per_request(self):
        first, second = _make_context(), _make_context()
        first.record_partial(Dimension.SEMANTIC, 0.7)
        assert second.partial_score(Dimension.SEMANTIC) == 0.0

    def test_reference_findings_without_validator(self):
        assert _make_context().reference_findings([_src("a", "x")], Dimension.FACTUAL) == []


# ═══════════════════════════════════════════════════════════════
# Semantic
# ═══════════════════════════════════════════════════════════════


class TestAssertSides:
    def test_current_type(self):
        assert assert_sides("Use the AC adapter.") == {"current type": {"AC"}}

    def test_current_type_is_case_sensitive(self):
        assert "current type" not in assert_sides("Put the dc motor back on the rack.")

    def test_de_energized_does_not_read_as_energized(self):
        assert assert_sides("De-energize the panel.")["energization"] == {"de-energized"}

    def test_rotation_counterclockwise_only(self):
        assert assert_sides("Turn the knob counterclockwise.")["rotation"] == {"counterclockwise"}

    def test_both_sides(self):
        sides = assert_sides("Wire in series first, then in parallel.")
        assert sides["wiring"] == {"series", "parallel"}


class TestSemanticAnalyzer:
    async def test_opposing_concepts(self):
        sources = [
            _src("manual", "Wire the cells in series."),
            _src("forum", "Wire the cells in parallel."),
        ]
        result = await SemanticAnalyzer().analyze(sources, _make_context())

        assert result.dimension == Dimension.SEMANTIC
        assert result.score == pytest.approx(0.7)
        assert result.confidence == 0.85
        assert result.contradictions == ["manual says series, forum says parallel (wiring)"]
        assert result.findings[0].severity == Severity.MEDIUM
        assert result.findings[0].sources == ["manual", "forum"]

    async def test_high_severity_concept(self):
        sources = [
            _src("a", "Connect it to the AC supply."),
            _src("b", "Connect it to the DC supply."),
        ]
        result = await SemanticAnalyzer().analyze(sources, _make_context())
        assert result.findings[0].severity == Severity.HIGH

    async def test_agreement(self):
        sources = [_src("a", "Wire in series."), _src("b", "Always wire in series.")]
        result = await SemanticAnalyzer().analyze(sources, _make_context())
        assert result.score == 0.0
        assert result.findings == []

    async def test_source_asserting_both_sides_is_not_a_conflict(self):
        sources = [
            _src("a", "Wire in series or in parallel."),
            _src("b", "Wire in parallel."),
        ]
        result = await SemanticAnalyzer().analyze(sources, _make_context())
        assert result.score == 0.0

    async def test_score_saturates(self):
        sources = [
            _src("a", "Wire in series."),
            _src("b", "Wire in parallel."),
            _src("c", "Wire in series."),
        ]
        result = await SemanticAnalyzer().analyze(sources, _make_context())
        # a/b and b/c conflict
        assert result.score == 1.0
        assert len(result.findings) == 2

    async def test_duplicate_source_ids_kept_apart(self):
        sources = [_src("dup", "Wire in series."), _src("dup", "Wire in parallel.")]
        result = await SemanticAnalyzer().analyze(sources, _make_context())
        assert len(result.findings) == 1

    async def test_single_source(self):
        result = await SemanticAnalyzer().analyze([_src("a", "in series")], _make_context())
        assert result.score == 0.0
        assert result.confidence == 0.85


# ═══════════════════════════════════════════════════════════════
# Factual
# ═══════════════════════════════════════════════════════════════


class TestFactualAnalyzer:
    async def test_torque_disagreement(self):
        sources = [
            _src("a", "Torque the bolts to 35 ft-lb."),
            _src("b", "Torque the bolts to 45 ft-lb."),
        ]
        result = await FactualAnalyzer().analyze(sources, _make_context())

        assert result.score == pytest.approx(0.8)
        assert result.confidence == 0.9
        assert result.contradictions == ["a says 35 ft-lb, b says 45 ft-lb (29% apart)"]
        assert result.findings[0].severity == Severity.HIGH

    async def test_medium_disagreement(self):
        sources = [_src("a", "Set it to 40 psi."), _src("b", "Set it to 46 psi.")]
        result = await FactualAnalyzer().analyze(sources, _make_context())
        assert result.findings[0].severity == Severity.MEDIUM

    async def test_within_ten_percent_agrees(self):
        sources = [_src("a", "Torque to 35 ft-lb."), _src("b", "Torque to 37 ft-lb.")]
        result = await FactualAnalyzer().analyze(sources, _make_context())
        assert result.score == 0.0

    async def test_units_are_normalized(self):
        sources = [_src("a", "Torque to 35 ft-lb."), _src("b", "Torque to 47.5 N·m.")]
        result = await FactualAnalyzer().analyze(sources, _make_context())
        assert result.score == 0.0

    async def test_different_units_never_compared(self):
        sources = [_src("a", "Supply 240 V."), _src("b", "Draw 15 A.")]
        result = await FactualAnalyzer().analyze(sources, _make_context())
        assert result.findings == []

    async def test_only_unmatched_claims_conflict(self):
        sources = [
            _src("a", "Input is 240 V and output is 12 V."),
            _src("b", "The adapter outputs 12 V."),
        ]
        result = await FactualAnalyzer().analyze(sources, _make_context())
        # 240 V in a is nearest to 12 V in b, so it still conflicts once
        assert len(result.findings) == 1
        assert "240 V" in result.contradictions[0]

    async def test_zero_against_nonzero(self):
        sources = [_src("a", "Gap of 0 mm."), _src("b", "Gap of 2 mm.")]
        result = await FactualAnalyzer().analyze(sources, _make_context())
        assert "infinitely apart" in result.contradictions[0]

    async def test_reference_findings_fold_in(self):
        facts = [ReferenceFact(
            category="torque", law="manufacturer_spec", expected_value=35.0,
            unit="ft-lb", tolerance=0.05,
        )]
        sources = [_src(
            "spec", "Torque to 50 ft-lb.", kind=SourceKind.SPECIFICATION,
        )]
        result = await FactualAnalyzer().analyze(sources, _make_context(facts))

        assert result.score == pytest.approx(0.8)
        assert result.findings[0].severity == Severity.CRITICAL
        assert result.findings[0].sources == ["spec"]
        assert "deviates" in result.contradictions[0]

    async def test_partial_score_published(self):
        ctx = _make_context()
        sources = [_src("a", "35 ft-lb"), _src("b", "45 ft-lb")]
        await FactualAnalyzer().analyze(sources, ctx)
        assert ctx.partial_score(Dimension.FACTUAL) == pytest.approx(0.8)


# ═══════════════════════════════════════════════════════════════
# Procedure
# ═══════════════════════════════════════════════════════════════


class TestProcedureAnalyzer:
    async def test_install_versus_remove(self):
        sources = [
            _src("manual", "1. Install the relay cover\n2. Start the engine"),
            _src("video", "1. Remove the relay cover\n2. Start the engine"),
        ]
        result = await ProcedureAnalyzer().analyze(sources, _make_context())

        assert result.score == pytest.approx(0.6)
        assert result.confidence == 0.8
        assert result.findings[0].severity == Severity.HIGH
        assert result.contradictions == [
            "manual says 'Install the relay cover' (install), "
            "video says 'Remove the relay cover' (remove)"
        ]

    async def test_inflected_forms(self):
        sources = [
            _src("a", "- Tightened the upper hose clamp"),
            _src("b", "- Loosening the upper hose clamp"),
        ]
        result = await ProcedureAnalyzer().analyze(sources, _make_context())
        assert "(tighten)" in result.contradictions[0]

    async def test_phrasal_verbs(self):
        sources = [
            _src("a", "Turn on the main breaker."),
            _src("b", "Turn off the main breaker."),
        ]
        result = await ProcedureAnalyzer().analyze(sources, _make_context())
        assert len(result.findings) == 1

    async def test_different_objects_do_not_conflict(self):
        sources = [_src("a", "Install the cover."), _src("b", "Remove the battery.")]
        result = await ProcedureAnalyzer().analyze(sources, _make_context())
        assert result.score == 0.0

    async def test_same_verb_does_not_conflict(self):
        sources = [
            _src("a", "Remove the relay cover carefully."),
            _src("b", "Remove the relay cover."),
        ]
        result = await ProcedureAnalyzer().analyze(sources, _make_context())
        assert result.findings == []

    async def test_disconnect_is_not_connect(self):
        sources = [
            _src("a", "Disconnect the negative battery cable."),
            _src("b", "Disconnect the negative battery cable first."),
        ]
        result = await ProcedureAnalyzer().analyze(sources, _make_context())
        assert result.findings == []

    async def test_score_saturates(self):
        sources = [
            _src("a", "Install the relay cover. Lock the access panel door."),
            _src("b", "Remove the relay cover. Unlock the access panel door."),
        ]
        result = await ProcedureAnalyzer().analyze(sources, _make_context())
        assert len(result.findings) == 2
        assert result.score == 1.0


# ═══════════════════════════════════════════════════════════════
# Safety
# ═══════════════════════════════════════════════════════════════


class TestSafetyPostures:
    def test_safety_sentences(self):
        text = "Remove the cover. Wear insulated gloves. Check the level."
        assert safety_sentences(text) == ["Wear insulated gloves."]

    def test_de_energized(self):
        assert classify_posture("De-energize the circuit before testing.") == {
            "electrical": "de-energized",
        }

    def test_energized(self):
        assert classify_posture("Test the circuit with power on.") == {
            "electrical": "energized",
        }

    def test_negated_unsafe_posture_is_safe(self):
        assert classify_posture("Never work on live circuits.") == {
            "electrical": "de-energized",
        }

    def test_negation_of_another_clause_keeps_posture(self):
        sentence = "Keep the power on and do not remove the cover while testing."
        assert classify_posture(sentence) == {"electrical": "energized"}

    def test_negator_after_posture_term_is_ignored(self):
        assert classify_posture("Work on it live, never skip the gloves.") == {
            "electrical": "energized",
        }

    def test_bare_no_is_not_a_negator(self):
        assert classify_posture("No problem working it live.") == {
            "electrical": "energized",
        }

    def test_negator_within_window(self):
        assert classify_posture("Do not test it live.") == {"electrical": "de-energized"}

    def test_ambiguous_sentence_takes_no_posture(self):
        assert classify_posture("De-energize it, then energize it to test.") == {}

    def test_work_permit_axis(self):
        assert classify_posture("This is hot work.") == {"work permit": "hot work"}

    def test_source_postures_collects_all(self):
        postures = source_postures(
            "Lock out the breaker and confirm it is dead. Treat this as cold work."
        )
        assert postures == {"electrical": {"de-energized"}, "work permit": {"cold work"}}


class TestSafetyAnalyzer:
    async def test_opposing_postures_are_critical(self):
        sources = [
            _src("manual", "De-energize the circuit before testing."),
            _src("forum", "Test the circuit with power on."),
        ]
        result = await SafetyAnalyzer().analyze(sources, _make_context())

        assert result.score == 1.0
        assert result.confidence == 0.95
        assert result.findings[0].severity == Severity.CRITICAL
        assert result.contradictions == [
            "manual requires de-energized, forum requires energized (electrical)"
        ]

    async def test_agreeing_postures(self):
        sources = [
            _src("a", "De-energize the circuit before testing."),
            _src("b", "Never test live circuits."),
        ]
        result = await SafetyAnalyzer().analyze(sources, _make_context())
        assert result.score == 0.0
        assert result.findings == []

    async def test_live_work_with_unrelated_negation_conflicts(self):
        sources = [
            _src("manual", "De-energize the panel before testing."),
            _src("forum", "Keep the power on and do not remove the cover while testing."),
        ]
        result = await SafetyAnalyzer().analyze(sources, _make_context())

        assert result.score == 1.0
        assert result.findings[0].severity == Severity.CRITICAL
        assert result.contradictions == [
            "manual requires de-energized, forum requires energized (electrical)"
        ]

    async def test_non_safety_text(self):
        sources = [_src("a", "Remove the cover."), _src("b", "Install the cover.")]
        result = await SafetyAnalyzer().analyze(sources, _make_context())
        assert result.score == 0.0

    async def test_permit_conflict(self):
        sources = [_src("a", "This is hot work."), _src("b", "This counts as cold work.")]
        result = await SafetyAnalyzer().analyze(sources, _make_context())
        assert "(work permit)" in result.contradictions[0]

    async def test_safety_reference_fact(self):
        facts = [ReferenceFact(
            category="supply_voltage", law="ohms_law", expected_value=240.0,
            dimension=Dimension.SAFETY,
        )]
        sources = [_src(
            "spec", "Supply ratings.", kind=SourceKind.SPECIFICATION,
            measurements={"supply_voltage": 480.0},
        )]
        result = await SafetyAnalyzer().analyze(sources, _make_context(facts))

        assert result.score == 1.0
        assert result.findings[0].severity == Severity.CRITICAL
        assert result.findings[0].dimension == Dimension.SAFETY
