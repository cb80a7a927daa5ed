"""Tests for confidence estimation and clamping."""

from research_synthesis.contracts import Citation, GapPriority, ResearchGap
from research_synthesis.scoring.confidence import (
    clamp_confidence,
    estimate_confidence,
    priority_weight,
    resolve_confidence,
)


def _citations(n: int) -> list[Citation]:
    return [Citation(id=i, url=f"https://s{i}.com") for i in range(1, n + 1)]


def _gap(priority: GapPriority) -> ResearchGap:
    return ResearchGap(
        id="gap-s-r1-0",
        session_id="s",
        round=1,
        description="missing",
        suggested_query="q",
        priority=priority,
        resolved=False,
    )


class TestClampConfidence:
    def test_floor(self):
        assert clamp_confidence(-1.0) == 0.3
        assert clamp_confidence(0.1) == 0.3

    def test_ceiling(self):
        assert clamp_confidence(1.0) == 0.95
        assert clamp_confidence(0.99) == 0.95

    def test_passthrough(self):
        assert clamp_confidence(0.7) == 0.7


class TestEstimateConfidence:
    def test_base_score(self):
        assert abs(estimate_confidence("short", [], []) - 0.6) < 1e-9

    def test_length_bonuses(self):
        assert abs(estimate_confidence("x" * 1001, [], []) - 0.7) < 1e-9
        assert abs(estimate_confidence("x" * 2001, [], []) - 0.75) < 1e-9

    def test_length_thresholds_are_strict(self):
        assert abs(estimate_confidence("x" * 1000, [], []) - 0.6) < 1e-9

    def test_citation_bonuses(self):
        assert abs(estimate_confidence("a", _citations(3), []) - 0.7) < 1e-9
        assert abs(estimate_confidence("a", _citations(5), []) - 0.75) < 1e-9

    def test_gap_penalty_by_priority(self):
        # high weighs 3 -> 0.15 penalty
        assert abs(estimate_confidence("a", [], [_gap(GapPriority.HIGH)]) - 0.45) < 1e-9
        # low weighs 1 -> 0.05 penalty
        assert abs(estimate_confidence("a", [], [_gap(GapPriority.LOW)]) - 0.55) < 1e-9

    def test_custom_priority_weights(self):
        weights = {GapPriority.HIGH: 0.0, GapPriority.MEDIUM: 0.0, GapPriority.LOW: 0.0}
        score = estimate_confidence("a", [], [_gap(GapPriority.HIGH)], priority_weights=weights)
        assert abs(score - 0.6) < 1e-9

    def test_monotonic_in_length_and_citations(self):
        gaps = [_gap(GapPriority.MEDIUM)]
        rich = estimate_confidence("x" * 2500, _citations(5), gaps)
        poor = estimate_confidence("x" * 500, _citations(1), gaps)
        assert rich >= poor
        for score in (rich, poor):
            assert 0.3 <= score <= 0.95

    def test_many_gaps_clamped_to_floor(self):
        gaps = [_gap(GapPriority.HIGH)] * 10
        assert estimate_confidence("a", [], gaps) == 0.3

    def test_maximum_clamped_to_ceiling(self):
        weights = {GapPriority.HIGH: -10.0, GapPriority.MEDIUM: 2.0, GapPriority.LOW: 1.0}
        score = estimate_confidence(
            "x" * 3000, _citations(6), [_gap(GapPriority.HIGH)], priority_weights=weights
        )
        assert score == 0.95


class TestPriorityWeight:
    def test_accepts_plain_strings(self):
        weights = {GapPriority.HIGH: 3.0, GapPriority.MEDIUM: 2.0, GapPriority.LOW: 1.0}
        assert priority_weight(weights, "high") == 3.0
        assert priority_weight(weights, GapPriority.LOW) == 1.0

    def test_unknown_priority_weighs_zero(self):
        assert priority_weight({GapPriority.HIGH: 3.0}, "urgent") == 0.0


class TestResolveConfidence:
    def test_uses_reported_value(self):
        assert resolve_confidence({"confidence": 0.72, "gaps": []}, "a", [], []) == 0.72

    def test_reported_value_is_clamped(self):
        assert resolve_confidence({"confidence": 1.0}, "a", [], []) == 0.95
        assert resolve_confidence({"confidence": 0}, "a", [], []) == 0.3

    def test_falls_back_without_analysis(self):
        assert abs(resolve_confidence(None, "a", [], []) - 0.6) < 1e-9

    def test_falls_back_on_non_numeric(self):
        assert abs(resolve_confidence({"confidence": "high"}, "a", [], []) - 0.6) < 1e-9
        assert abs(resolve_confidence({"confidence": True}, "a", [], []) - 0.6) < 1e-9
        assert abs(resolve_confidence({"gaps": []}, "a", [], []) - 0.6) < 1e-9
