"""Synthesizer: one synthesis round against the generation service.

Round pipeline:
  1. Prompt from query, notes, and (round 2) previous answer + gaps
  2. Stream generation, reporting throttled progress
  3. Parse answer + gap-analysis block
  4. Transform gaps, align citations with the answer's markers
  5. Confidence: model-reported if present, else heuristic

Nothing is returned until the stream completes. A generation failure raises
SynthesisError; a caller-requested stop raises SynthesisCancelled with the
text received so far.
"""

from __future__ import annotations

import asyncio
import sys
import time
from collections.abc import AsyncIterator, Callable

from research_synthesis.agents.gap_analyzer import transform_gaps
from research_synthesis.agents.prompts import build_synthesis_prompt
from research_synthesis.agents.response_parser import parse_response
from research_synthesis.config import SynthesisConfig
from research_synthesis.contracts import (
    GenerationService,
    ProgressCallback,
    SynthesisInput,
    SynthesisOutput,
)
from research_synthesis.event_log.writer import EventLog
from research_synthesis.reporting.citations import (
    collect_citations,
    renumber_citations,
)
from research_synthesis.scoring.confidence import resolve_confidence

STREAMING_PROGRESS_CAP = 90.0


class SynthesisError(RuntimeError):
    """The generation service failed; the round produced no output."""


class SynthesisCancelled(Exception):
    """The caller stopped the round mid-stream."""

    def __init__(self, partial_text: str) -> None:
        super().__init__(f"synthesis cancelled after {len(partial_text)} chars")
        self.partial_text = partial_text


class ProgressThrottle:
    """Rate-limits streaming progress updates; completion is never dropped."""

    def __init__(
        self,
        callback: ProgressCallback | None,
        *,
        interval_s: float,
        target_chars: int,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._callback = callback
        self._interval_s = interval_s
        self._target_chars = max(1, target_chars)
        self._clock = clock
        self._last_update: float | None = None

    def estimate(self, text: str) -> float:
        return min(STREAMING_PROGRESS_CAP, 100.0 * len(text) / self._target_chars)

    def update(self, text: str) -> None:
        if self._callback is None:
            return
        now = self._clock()
        if self._last_update is not None and now - self._last_update < self._interval_s:
            return
        self._last_update = now
        self._callback(self.estimate(text), text)

    def complete(self, text: str) -> None:
        if self._callback is not None:
            self._callback(100.0, text)


async def _next_chunk(
    chunks: AsyncIterator[str], cancel_event: asyncio.Event | None
) -> str | None:
    """Next chunk, or None once ``cancel_event`` is set.

    Waits on the stream and the event together, so a stalled stream can
    still be stopped. Raises StopAsyncIteration when the stream is exhausted.
    """
    if cancel_event is None:
        return await anext(chunks)
    if cancel_event.is_set():
        return None

    pull = asyncio.ensure_future(anext(chunks))
    stop = asyncio.ensure_future(cancel_event.wait())
    try:
        await asyncio.wait({pull, stop}, return_when=asyncio.FIRST_COMPLETED)
    finally:
        pending = [t for t in (pull, stop) if not t.done()]
        for task in pending:
            task.cancel()
        if pending:
            # The generator must be idle before it can be closed
            await asyncio.wait(pending)

    if stop.done() and not stop.cancelled():
        return None
    return pull.result()


async def _stream_text(
    service: GenerationService,
    *,
    system: str,
    prompt: str,
    throttle: ProgressThrottle,
    cancel_event: asyncio.Event | None,
    label: str,
) -> str:
    """Accumulate chunks in arrival order.

    Only failures of the service itself become SynthesisError; errors from the
    progress callback propagate unchanged. The stream is closed on every exit
    path so an abandoned generation releases its connection.
    """
    text = ""
    try:
        chunks = service.stream(system=system, prompt=prompt)
    except Exception as e:
        raise _generation_failed(label, e) from e
    try:
        while True:
            try:
                chunk = await _next_chunk(chunks, cancel_event)
            except StopAsyncIteration:
                break
            except Exception as e:
                raise _generation_failed(label, e) from e
            if chunk is None:
                raise SynthesisCancelled(text)
            text += chunk
            throttle.update(text)
    finally:
        aclose = getattr(chunks, "aclose", None)
        if aclose is not None:
            await aclose()
    return text


def _generation_failed(label: str, cause: Exception) -> SynthesisError:
    print(f"ERROR: synthesis {label} failed: {cause}", file=sys.stderr)
    return SynthesisError(f"Synthesis {label} failed: {cause}")


async def synthesize_answer(
    synthesis_input: SynthesisInput,
    session_id: str,
    round_number: int,
    service: GenerationService,
    *,
    config: SynthesisConfig | None = None,
    on_progress: ProgressCallback | None = None,
    cancel_event: asyncio.Event | None = None,
    event_log: EventLog | None = None,
    clock: Callable[[], float] = time.monotonic,
) -> SynthesisOutput:
    """Run one synthesis round and return an index-aligned SynthesisOutput."""
    config = config or SynthesisConfig()
    start = time.monotonic()

    if cancel_event is not None and cancel_event.is_set():
        raise SynthesisCancelled("")

    prompt = build_synthesis_prompt(synthesis_input)
    throttle = ProgressThrottle(
        on_progress,
        interval_s=config.progress_interval_s,
        target_chars=config.progress_target_chars,
        clock=clock,
    )
    tokens_before = getattr(service, "total_tokens", 0)
    cost_before = getattr(service, "total_cost", 0.0)

    full_text = await _stream_text(
        service,
        system=config.system_prompt,
        prompt=prompt,
        throttle=throttle,
        cancel_event=cancel_event,
        label=f"round {round_number} for session {session_id}",
    )
    throttle.complete(full_text)

    parsed = parse_response(full_text)
    gaps = transform_gaps(
        parsed["gap_analysis"],
        session_id,
        round_number,
        max_gaps=config.max_gaps_to_address,
    )

    all_citations = collect_citations(synthesis_input["notes"])
    answer, citations = renumber_citations(parsed["answer"], all_citations)

    confidence = resolve_confidence(
        parsed["gap_analysis"],
        answer,
        citations,
        gaps,
        priority_weights=config.gap_priority_weights,
    )
    output = SynthesisOutput(
        answer=answer,
        citations=citations,
        gaps=gaps,
        confidence=confidence,
    )

    if event_log is not None:
        # Usage deltas are only known for services that track them (GenerationClient)
        event_log.record_round(
            round_number,
            output,
            elapsed_s=time.monotonic() - start,
            notes=len(synthesis_input["notes"]),
            sources_available=len(all_citations),
            structured=parsed["gap_analysis"] is not None,
            tokens=getattr(service, "total_tokens", 0) - tokens_before,
            cost=getattr(service, "total_cost", 0.0) - cost_before,
        )

    return output
