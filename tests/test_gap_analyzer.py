"""Tests for turning raw gap records into ResearchGap entities."""

from __future__ import annotations

from research_synthesis.agents.gap_analyzer import (
    make_gap_id,
    mark_gaps_resolved,
    transform_gaps,
)
from research_synthesis.contracts import GapPriority


def _raw(i: int, priority: str | None = "high") -> dict:
    gap = {"description": f"gap {i}", "suggestedQuery": f"query {i}"}
    if priority is not None:
        gap["priority"] = priority
    return gap


class TestTransformGaps:
    def test_none_returns_empty(self):
        assert transform_gaps(None, "s1", 1) == []

    def test_missing_or_non_list_gaps(self):
        assert transform_gaps({"confidence": 0.5}, "s1", 1) == []
        assert transform_gaps({"gaps": "none"}, "s1", 1) == []

    def test_deterministic_ids_and_fields(self):
        gaps = transform_gaps({"gaps": [_raw(0), _raw(1, "low")]}, "sess", 2)
        assert [g["id"] for g in gaps] == ["gap-sess-r2-0", "gap-sess-r2-1"]
        assert gaps[0]["session_id"] == "sess"
        assert gaps[0]["round"] == 2
        assert gaps[0]["description"] == "gap 0"
        assert gaps[0]["suggested_query"] == "query 0"
        assert gaps[1]["priority"] == GapPriority.LOW
        assert all(g["resolved"] is False for g in gaps)

    def test_bounded_by_max_gaps_in_given_order(self):
        raw = [_raw(0, "low"), _raw(1, "high"), _raw(2, "medium"), _raw(3, "high")]
        gaps = transform_gaps({"gaps": raw}, "s1", 1, max_gaps=3)
        assert len(gaps) == 3
        # No re-sorting: order matches input
        assert [g["description"] for g in gaps] == ["gap 0", "gap 1", "gap 2"]

    def test_default_max_gaps_is_three(self):
        gaps = transform_gaps({"gaps": [_raw(i) for i in range(6)]}, "s1", 1)
        assert len(gaps) == 3

    def test_missing_or_invalid_priority_defaults_to_medium(self):
        gaps = transform_gaps({"gaps": [_raw(0, None), _raw(1, "urgent"), _raw(2, "HIGH")]}, "s", 1)
        assert gaps[0]["priority"] == GapPriority.MEDIUM
        assert gaps[1]["priority"] == GapPriority.MEDIUM
        assert gaps[2]["priority"] == GapPriority.HIGH

    def test_non_object_records_skipped_ids_stay_positional(self):
        gaps = transform_gaps({"gaps": ["junk", _raw(1)]}, "s", 1)
        assert len(gaps) == 1
        assert gaps[0]["id"] == "gap-s-r1-1"

    def test_missing_text_fields_default_to_empty(self):
        gaps = transform_gaps({"gaps": [{}]}, "s", 1)
        assert gaps[0]["description"] == ""
        assert gaps[0]["suggested_query"] == ""


class TestMarkGapsResolved:
    def test_returns_resolved_copies(self):
        gaps = transform_gaps({"gaps": [_raw(0)]}, "s", 1)
        resolved = mark_gaps_resolved(gaps)
        assert resolved[0]["resolved"] is True
        assert gaps[0]["resolved"] is False
        assert resolved[0]["id"] == gaps[0]["id"]


class TestMakeGapId:
    def test_format(self):
        assert make_gap_id("abc", 1, 4) == "gap-abc-r1-4"
