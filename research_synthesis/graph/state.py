"""ResearchLoopState: the single state object flowing through the round graph."""

from __future__ import annotations

import operator
from typing import Annotated, TypedDict

from research_synthesis.contracts import (
    Citation,
    ResearchGap,
    ResearchNote,
    RoundPhase,
    SynthesisOutput,
)

# --- Scalar reducers (last-write-wins) ---


def _replace(existing: str, new: str) -> str:
    return new


def _replace_int(existing: int, new: int) -> int:
    return new


def _replace_float(existing: float, new: float) -> float:
    return new


def _replace_bool(existing: bool, new: bool) -> bool:
    return new


def _replace_list(existing: list, new: list) -> list:
    """Replace-last-write for list fields (overwrites, not appends)."""
    return new


def _replace_dict(existing: dict, new: dict) -> dict:
    """Replace-last-write for dict fields."""
    return new


# --- Graph State ---


class ResearchLoopState(TypedDict):
    # Input (set once)
    research_question: str
    session_id: Annotated[str, _replace]
    skip_round2: Annotated[bool, _replace_bool]

    # Notes accumulate: round-2 retrieval appends to round-1 notes
    notes: Annotated[list[ResearchNote], operator.add]

    # Control
    phase: Annotated[RoundPhase, _replace]
    current_round: Annotated[int, _replace_int]
    round2_queries: Annotated[list[str], _replace_list]
    round2_note_count: Annotated[int, _replace_int]

    # Per-round results
    round1_output: Annotated[SynthesisOutput, _replace_dict]
    round2_output: Annotated[SynthesisOutput, _replace_dict]

    # Current view (what a caller would show)
    answer: Annotated[str, _replace]
    citations: Annotated[list[Citation], _replace_list]  # aligned with answer markers
    all_citations: Annotated[list[Citation], _replace_list]  # every source across rounds
    gaps: Annotated[list[ResearchGap], _replace_list]
    confidence: Annotated[float, _replace_float]

    # Output
    final_report: Annotated[str, _replace]
