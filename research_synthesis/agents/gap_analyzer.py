"""Gap transformer: raw model gap records to identified ResearchGap entities.

Gap ids are positional and deterministic (gap-{session}-r{round}-{index}) so a
round's gaps can be addressed without a database round-trip.
"""

from __future__ import annotations

from research_synthesis.config import DEFAULT_MAX_GAPS_TO_ADDRESS
from research_synthesis.contracts import GapAnalysis, GapPriority, ResearchGap


def make_gap_id(session_id: str, round_number: int, index: int) -> str:
    return f"gap-{session_id}-r{round_number}-{index}"


def _coerce_priority(value: object) -> GapPriority:
    if isinstance(value, str):
        try:
            return GapPriority(value.strip().lower())
        except ValueError:
            pass
    return GapPriority.MEDIUM


def transform_gaps(
    gap_analysis: GapAnalysis | None,
    session_id: str,
    round_number: int,
    *,
    max_gaps: int = DEFAULT_MAX_GAPS_TO_ADDRESS,
) -> list[ResearchGap]:
    """Bound and identify the model's gap records, preserving their order."""
    if not gap_analysis:
        return []
    raw_gaps = gap_analysis.get("gaps")
    if not isinstance(raw_gaps, list):
        return []

    gaps: list[ResearchGap] = []
    for index, raw in enumerate(raw_gaps[:max_gaps]):
        if not isinstance(raw, dict):
            continue
        gaps.append(
            ResearchGap(
                id=make_gap_id(session_id, round_number, index),
                session_id=session_id,
                round=round_number,
                description=str(raw.get("description") or ""),
                suggested_query=str(raw.get("suggestedQuery") or ""),
                priority=_coerce_priority(raw.get("priority")),
                resolved=False,
            )
        )
    return gaps


def mark_gaps_resolved(gaps: list[ResearchGap]) -> list[ResearchGap]:
    """Copies of ``gaps`` flagged as addressed by a later round."""
    return [ResearchGap(**{**g, "resolved": True}) for g in gaps]
