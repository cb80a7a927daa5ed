"""Round continuation and the round-phase state machine.

The caller owns the session's RoundPhase; advance_phase is a pure transition.

    AWAITING_ROUND1 --output--> EVALUATING_GAPS
    EVALUATING_GAPS --proceed--> AWAITING_ROUND2
    EVALUATING_GAPS --stop-----> COMPLETE
    AWAITING_ROUND2 --output--> COMPLETE
"""

from __future__ import annotations

from collections.abc import Mapping

from research_synthesis.config import (
    DEFAULT_GAP_PRIORITY_WEIGHTS,
    DEFAULT_MAX_GAPS_TO_ADDRESS,
    DEFAULT_MIN_CONFIDENCE_TO_COMPLETE,
)
from research_synthesis.contracts import GapPriority, ResearchGap, RoundPhase, SynthesisOutput
from research_synthesis.scoring.confidence import priority_weight

_SIGNIFICANT = (GapPriority.HIGH, GapPriority.MEDIUM)


def should_proceed_to_round2(
    output: SynthesisOutput,
    *,
    min_confidence: float = DEFAULT_MIN_CONFIDENCE_TO_COMPLETE,
) -> bool:
    """Another round is worth it only below the confidence bar with a non-low gap."""
    if output["confidence"] >= min_confidence:
        return False
    return any(g["priority"] in _SIGNIFICANT for g in output["gaps"])


def get_round2_queries(
    gaps: list[ResearchGap],
    *,
    priority_weights: Mapping[GapPriority, float] = DEFAULT_GAP_PRIORITY_WEIGHTS,
    max_gaps: int = DEFAULT_MAX_GAPS_TO_ADDRESS,
) -> list[str]:
    """Suggested queries of the highest-priority gaps (stable within a priority)."""
    ranked = sorted(
        gaps, key=lambda g: priority_weight(priority_weights, g["priority"]), reverse=True
    )
    return [g["suggested_query"] for g in ranked[:max_gaps]]


def advance_phase(
    phase: RoundPhase,
    *,
    output: SynthesisOutput | None = None,
    current_round: int = 1,
    max_rounds: int = 2,
    min_confidence: float = DEFAULT_MIN_CONFIDENCE_TO_COMPLETE,
    skip_round2: bool = False,
) -> RoundPhase:
    """Next phase of the round loop.

    Phases that wait on a synthesis result stay put until ``output`` is given.
    """
    if phase == RoundPhase.COMPLETE:
        return RoundPhase.COMPLETE

    if phase in (RoundPhase.AWAITING_ROUND1, RoundPhase.AWAITING_ROUND2):
        if output is None:
            return phase
        if phase == RoundPhase.AWAITING_ROUND1:
            return RoundPhase.EVALUATING_GAPS
        return RoundPhase.COMPLETE

    # EVALUATING_GAPS
    if output is None or skip_round2 or current_round >= max_rounds:
        return RoundPhase.COMPLETE
    if should_proceed_to_round2(output, min_confidence=min_confidence):
        return RoundPhase.AWAITING_ROUND2
    return RoundPhase.COMPLETE
