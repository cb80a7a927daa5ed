"""GenerationClient: Anthropic streaming wrapper with token tracking and concurrency control."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from datetime import datetime, timezone

import anthropic

from research_synthesis.contracts import TokenUsage

# Pricing per million tokens (as of 2025)
_PRICING: dict[str, dict[str, float]] = {
    "claude-opus-4-6": {"input": 15.0, "output": 75.0},
    "claude-sonnet-4-6": {"input": 3.0, "output": 15.0},
}


class GenerationClient:
    """Streams text from the Anthropic Messages API.

    Satisfies the GenerationService protocol. Does not retry: a failed
    stream raises the SDK error to the caller, who owns the retry policy.
    """

    def __init__(
        self,
        *,
        api_key: str,
        model: str,
        max_tokens: int = 4000,
        max_concurrent: int = 5,
        agent_name: str = "synthesizer",
    ) -> None:
        self.model = model
        self.agent_name = agent_name
        self._max_tokens = max_tokens
        self._client = anthropic.AsyncAnthropic(api_key=api_key)
        self._semaphore = asyncio.Semaphore(max_concurrent)
        self._usage_log: list[TokenUsage] = []

    async def stream(self, *, system: str, prompt: str) -> AsyncIterator[str]:
        """Yield text chunks in arrival order.

        Closing the generator early (cancellation) closes the HTTP stream.
        """
        async with self._semaphore:
            async with self._client.messages.stream(
                model=self.model,
                max_tokens=self._max_tokens,
                system=system,
                messages=[{"role": "user", "content": prompt}],
            ) as stream:
                async for text in stream.text_stream:
                    yield text
                message = await stream.get_final_message()
            self._track_usage(message)

    def _track_usage(self, message) -> TokenUsage:
        input_tokens = message.usage.input_tokens
        output_tokens = message.usage.output_tokens

        pricing = _PRICING.get(self.model, {"input": 3.0, "output": 15.0})
        cost = (input_tokens * pricing["input"] + output_tokens * pricing["output"]) / 1_000_000

        usage = TokenUsage(
            agent=self.agent_name,
            model=self.model,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            cost_usd=round(cost, 6),
            timestamp=datetime.now(timezone.utc).isoformat(),
        )
        self._usage_log.append(usage)
        return usage

    @property
    def usage_log(self) -> list[TokenUsage]:
        return list(self._usage_log)

    @property
    def total_tokens(self) -> int:
        return sum(u["input_tokens"] + u["output_tokens"] for u in self._usage_log)

    @property
    def total_cost(self) -> float:
        return sum(u["cost_usd"] for u in self._usage_log)
