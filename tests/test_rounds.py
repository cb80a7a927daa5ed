"""Tests for round continuation, round-2 queries, and the phase machine."""

from __future__ import annotations

from research_synthesis.contracts import GapPriority, ResearchGap, RoundPhase, SynthesisOutput
from research_synthesis.scoring.rounds import (
    advance_phase,
    get_round2_queries,
    should_proceed_to_round2,
)


def _gap(priority, index: int = 0, query: str | None = None) -> ResearchGap:
    return ResearchGap(
        id=f"gap-s-r1-{index}",
        session_id="s",
        round=1,
        description=f"missing {index}",
        suggested_query=query or f"q{index}",
        priority=priority,
        resolved=False,
    )


def _output(confidence: float, gaps: list[ResearchGap] | None = None) -> SynthesisOutput:
    return SynthesisOutput(answer="a", citations=[], gaps=gaps or [], confidence=confidence)


class TestShouldProceedToRound2:
    def test_high_confidence_stops_regardless_of_gaps(self):
        output = _output(0.9, [_gap(GapPriority.HIGH)])
        assert should_proceed_to_round2(output, min_confidence=0.85) is False

    def test_threshold_is_inclusive(self):
        output = _output(0.85, [_gap(GapPriority.HIGH)])
        assert should_proceed_to_round2(output, min_confidence=0.85) is False

    def test_no_gaps_stops(self):
        assert should_proceed_to_round2(_output(0.5), min_confidence=0.85) is False

    def test_only_low_gaps_stops(self):
        output = _output(0.5, [_gap("low")])
        assert should_proceed_to_round2(output, min_confidence=0.85) is False

    def test_high_gap_proceeds(self):
        output = _output(0.5, [_gap("high")])
        assert should_proceed_to_round2(output, min_confidence=0.85) is True

    def test_medium_gap_proceeds(self):
        output = _output(0.5, [_gap(GapPriority.LOW), _gap(GapPriority.MEDIUM)])
        assert should_proceed_to_round2(output) is True


class TestGetRound2Queries:
    def test_sorted_by_priority_stable(self):
        gaps = [
            _gap(GapPriority.LOW, 0),
            _gap(GapPriority.HIGH, 1),
            _gap(GapPriority.MEDIUM, 2),
            _gap(GapPriority.HIGH, 3),
        ]
        assert get_round2_queries(gaps, max_gaps=4) == ["q1", "q3", "q2", "q0"]

    def test_bounded_by_max_gaps(self):
        gaps = [_gap(GapPriority.HIGH, i) for i in range(5)]
        assert get_round2_queries(gaps) == ["q0", "q1", "q2"]

    def test_custom_weights_reorder(self):
        weights = {GapPriority.HIGH: 1.0, GapPriority.MEDIUM: 2.0, GapPriority.LOW: 3.0}
        gaps = [_gap(GapPriority.HIGH, 0), _gap(GapPriority.LOW, 1)]
        assert get_round2_queries(gaps, priority_weights=weights) == ["q1", "q0"]

    def test_empty(self):
        assert get_round2_queries([]) == []

    def test_does_not_mutate_input(self):
        gaps = [_gap(GapPriority.LOW, 0), _gap(GapPriority.HIGH, 1)]
        get_round2_queries(gaps)
        assert [g["id"] for g in gaps] == ["gap-s-r1-0", "gap-s-r1-1"]


class TestAdvancePhase:
    def test_round1_waits_for_output(self):
        assert advance_phase(RoundPhase.AWAITING_ROUND1) == RoundPhase.AWAITING_ROUND1

    def test_round1_output_moves_to_evaluation(self):
        phase = advance_phase(RoundPhase.AWAITING_ROUND1, output=_output(0.5))
        assert phase == RoundPhase.EVALUATING_GAPS

    def test_evaluation_proceeds_on_significant_gaps(self):
        phase = advance_phase(
            RoundPhase.EVALUATING_GAPS,
            output=_output(0.5, [_gap(GapPriority.HIGH)]),
            current_round=1,
        )
        assert phase == RoundPhase.AWAITING_ROUND2

    def test_evaluation_completes_when_confident(self):
        phase = advance_phase(
            RoundPhase.EVALUATING_GAPS,
            output=_output(0.9, [_gap(GapPriority.HIGH)]),
        )
        assert phase == RoundPhase.COMPLETE

    def test_skip_round2(self):
        phase = advance_phase(
            RoundPhase.EVALUATING_GAPS,
            output=_output(0.4, [_gap(GapPriority.HIGH)]),
            skip_round2=True,
        )
        assert phase == RoundPhase.COMPLETE

    def test_round_budget_exhausted(self):
        phase = advance_phase(
            RoundPhase.EVALUATING_GAPS,
            output=_output(0.4, [_gap(GapPriority.HIGH)]),
            current_round=1,
            max_rounds=1,
        )
        assert phase == RoundPhase.COMPLETE

    def test_round2_output_completes(self):
        phase = advance_phase(RoundPhase.AWAITING_ROUND2, output=_output(0.4))
        assert phase == RoundPhase.COMPLETE

    def test_complete_is_terminal(self):
        assert advance_phase(RoundPhase.COMPLETE, output=_output(0.1)) == RoundPhase.COMPLETE
