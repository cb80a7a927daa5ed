"""Single source of truth for all types, enums, and protocols."""

from __future__ import annotations

from collections.abc import AsyncIterator, Callable
from enum import Enum
from typing import NotRequired, Protocol, TypedDict, runtime_checkable

# --- Enums ---


class GapPriority(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class RoundPhase(str, Enum):
    """Where a research session sits in the round 1 -> round 2 loop."""

    AWAITING_ROUND1 = "awaiting_round1"
    EVALUATING_GAPS = "evaluating_gaps"
    AWAITING_ROUND2 = "awaiting_round2"
    COMPLETE = "complete"


# --- Data Types ---


class Citation(TypedDict):
    id: int  # 1-based presentation number, reassigned on every recompute
    url: str  # natural key for dedup
    title: NotRequired[str]
    snippet: NotRequired[str]
    favicon: NotRequired[str]
    domain: NotRequired[str]


class ResearchNote(TypedDict):
    sub_question_id: str
    content: str
    citations: list[Citation]
    confidence: float  # 0-1


class ResearchGap(TypedDict):
    id: str  # f"gap-{session_id}-r{round}-{index}"
    session_id: str
    round: int  # >= 1
    description: str
    suggested_query: str
    priority: GapPriority
    resolved: bool


class RawGap(TypedDict, total=False):
    """A gap record as emitted by the model (camelCase keys)."""

    description: str
    suggestedQuery: str
    priority: str


class GapAnalysis(TypedDict, total=False):
    """Structured block trailing the synthesized answer."""

    gaps: list[RawGap]
    confidence: float


class ParsedResponse(TypedDict):
    answer: str
    gap_analysis: GapAnalysis | None


class SynthesisInput(TypedDict):
    query: str
    notes: list[ResearchNote]
    previous_answer: NotRequired[str]  # round >= 2 only
    gaps: NotRequired[list[ResearchGap]]  # round >= 2 only


class SynthesisOutput(TypedDict):
    answer: str  # Markdown with inline [N] markers
    citations: list[Citation]  # citations[N-1] <-> marker [N]
    gaps: list[ResearchGap]
    confidence: float  # 0.3-0.95


class TokenUsage(TypedDict):
    agent: str
    model: str
    input_tokens: int
    output_tokens: int
    cost_usd: float
    timestamp: str


class RunEvent(TypedDict):
    """One synthesis round, as a JSONL line in the session's event log."""

    round: int
    ts: str  # ISO 8601
    elapsed_s: float
    notes: int
    sources_available: int  # collected citations offered to the model
    citations_used: int  # citations the answer's markers resolve to
    gaps: int
    structured: bool  # output carried a parseable gap-analysis block
    confidence: float
    tokens: int
    cost: float


class SessionSummary(TypedDict):
    """Rounds recorded for a session, latest attempt per round."""

    session_id: str
    rounds: list[int]
    confidence_by_round: dict[int, float]
    latest_confidence: float
    open_gaps: int  # gaps reported by the latest round
    tokens: int
    cost: float


# --- Callbacks ---

ProgressCallback = Callable[[float, str], None]  # (percent, partial_text)


# --- Protocols ---


@runtime_checkable
class GenerationService(Protocol):
    """Streaming text generation. Chunks arrive in order; exhaustion means complete."""

    def stream(self, *, system: str, prompt: str) -> AsyncIterator[str]: ...


@runtime_checkable
class Retriever(Protocol):
    """Turns follow-up queries into research notes (external collaborator)."""

    async def __call__(
        self, queries: list[str], *, context: str | None = None
    ) -> list[ResearchNote]: ...
