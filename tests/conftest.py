"""Test fixtures and fakes."""

from __future__ import annotations

from collections.abc import AsyncIterator

import pytest

from research_synthesis.contracts import Citation, ResearchNote


class FakeGenerationService:
    """Streams canned chunks; optionally fails after a number of chunks."""

    def __init__(self, chunks: list[str], *, fail_after: int | None = None) -> None:
        self.chunks = chunks
        self.fail_after = fail_after
        self.calls: list[dict[str, str]] = []
        self.closed = False
        self.consumed = 0

    async def stream(self, *, system: str, prompt: str) -> AsyncIterator[str]:
        self.calls.append({"system": system, "prompt": prompt})
        try:
            for i, chunk in enumerate(self.chunks):
                if self.fail_after is not None and i >= self.fail_after:
                    raise ConnectionError("generation service unreachable")
                self.consumed += 1
                yield chunk
        finally:
            self.closed = True


class FakeClock:
    """Monotonic clock advancing a fixed step on every read."""

    def __init__(self, step: float) -> None:
        self.step = step
        self.now = 0.0

    def __call__(self) -> float:
        self.now += self.step
        return self.now


@pytest.fixture
def make_service():
    """Factory for FakeGenerationService instances."""
    return FakeGenerationService


@pytest.fixture
def make_clock():
    """Factory for FakeClock instances."""
    return FakeClock


@pytest.fixture
def onboarding_notes() -> list[ResearchNote]:
    return [
        ResearchNote(
            sub_question_id="sq-1",
            content="X helps with onboarding[1]",
            citations=[Citation(id=1, url="http://x.com", title="X docs")],
            confidence=0.8,
        ),
        ResearchNote(
            sub_question_id="sq-2",
            content="Y covers pricing[1]",
            citations=[Citation(id=1, url="http://y.com", title="Y pricing")],
            confidence=0.7,
        ),
    ]


@pytest.fixture
def overlapping_notes() -> list[ResearchNote]:
    """Citations A, B, A, C by URL across two notes."""
    return [
        ResearchNote(
            sub_question_id="sq-1",
            content="First note",
            citations=[Citation(id=1, url="https://a.com"), Citation(id=2, url="https://b.com")],
            confidence=0.9,
        ),
        ResearchNote(
            sub_question_id="sq-2",
            content="Second note",
            citations=[Citation(id=1, url="https://a.com"), Citation(id=2, url="https://c.com")],
            confidence=0.6,
        ),
    ]


@pytest.fixture
def five_citations() -> list[Citation]:
    return [
        Citation(id=i, url=f"https://source{i}.org", title=f"Source {i}") for i in range(1, 6)
    ]
