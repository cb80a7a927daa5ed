"""Confidence scoring for synthesized answers."""

from __future__ import annotations

from collections.abc import Mapping

from research_synthesis.config import DEFAULT_GAP_PRIORITY_WEIGHTS
from research_synthesis.contracts import Citation, GapAnalysis, GapPriority, ResearchGap

CONFIDENCE_FLOOR = 0.3
CONFIDENCE_CEILING = 0.95
BASE_CONFIDENCE = 0.6
GAP_PENALTY_UNIT = 0.05


def priority_weight(priority_weights: Mapping[GapPriority, float], priority: str) -> float:
    """Weight of a gap priority; unknown priorities weigh nothing."""
    try:
        return priority_weights.get(GapPriority(priority), 0.0)
    except ValueError:
        return 0.0


def clamp_confidence(score: float) -> float:
    """Clamp a score into [0.3, 0.95]."""
    return max(CONFIDENCE_FLOOR, min(CONFIDENCE_CEILING, score))


def estimate_confidence(
    answer: str,
    citations: list[Citation],
    gaps: list[ResearchGap],
    *,
    priority_weights: Mapping[GapPriority, float] = DEFAULT_GAP_PRIORITY_WEIGHTS,
) -> float:
    """Heuristic confidence for answers whose output carried no score.

    Rewards answer length and citation coverage, penalizes open gaps by
    priority weight.
    """
    score = BASE_CONFIDENCE

    # Answer completeness
    if len(answer) > 1000:
        score += 0.1
    if len(answer) > 2000:
        score += 0.05

    # Citation coverage
    if len(citations) >= 3:
        score += 0.1
    if len(citations) >= 5:
        score += 0.05

    gap_penalty = sum(
        priority_weight(priority_weights, g["priority"]) * GAP_PENALTY_UNIT for g in gaps
    )
    score -= gap_penalty

    return clamp_confidence(score)


def resolve_confidence(
    gap_analysis: GapAnalysis | None,
    answer: str,
    citations: list[Citation],
    gaps: list[ResearchGap],
    *,
    priority_weights: Mapping[GapPriority, float] = DEFAULT_GAP_PRIORITY_WEIGHTS,
) -> float:
    """Model-reported confidence when present and numeric, else the estimate."""
    reported = gap_analysis.get("confidence") if gap_analysis else None
    if isinstance(reported, (int, float)) and not isinstance(reported, bool):
        return clamp_confidence(float(reported))
    return estimate_confidence(answer, citations, gaps, priority_weights=priority_weights)
