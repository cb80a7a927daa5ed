"""Streaming display for real-time progress during synthesis."""

from __future__ import annotations

import sys
from typing import Any

from research_synthesis.contracts import ProgressCallback

# Human-readable labels for graph node names
NODE_LABELS: dict[str, str] = {
    "synthesize_round1": "Synthesizing answer (round 1)",
    "evaluate_gaps": "Evaluating gaps",
    "research_round2": "Researching follow-up queries",
    "synthesize_round2": "Synthesizing answer (round 2)",
    "finalize": "Finalizing report",
}


class StreamDisplay:
    """Prints progress to stderr from LangGraph astream events or synthesis callbacks."""

    def __init__(self, *, verbose: bool = False) -> None:
        self._verbose = verbose
        self._current_node: str | None = None
        self._round: int = 0
        self._last_percent: int = -1

    def _print(self, msg: str) -> None:
        print(msg, file=sys.stderr, flush=True)

    def handle_update(self, update: dict[str, Any]) -> None:
        """Handle an 'updates' stream event (node_name -> state_update)."""
        for node_name, state_delta in update.items():
            label = NODE_LABELS.get(node_name, node_name)
            self._current_node = node_name

            if isinstance(state_delta, dict):
                new_round = self._detect_round(state_delta)
                if new_round and new_round != self._round:
                    self._round = new_round
                    self._print(f"\n--- Round {self._round} ---")

            self._print(f"  [{label}]")

            if self._verbose and isinstance(state_delta, dict):
                self._print_details(state_delta)

    def handle_custom(self, event: dict[str, Any]) -> None:
        """Handle a 'custom' stream event (granular progress from nodes)."""
        kind = event.get("kind", "")
        msg = event.get("message", "")

        if kind == "synthesize_progress":
            self.show_progress(event.get("progress", 0.0), event.get("chars", 0))
        elif kind == "gap_found":
            self._print(f"    gap: {msg}")
        elif kind == "round2_plan":
            queries = event.get("queries", [])
            self._print(f"    Follow-up queries ({len(queries)}):")
            for q in queries:
                self._print(f"      > {q}")
        elif msg:
            self._print(f"    {msg}")

    def show_progress(self, progress: float, chars: int) -> None:
        percent = int(progress)
        if percent == self._last_percent:
            return
        self._last_percent = percent
        self._print(f"    synthesize: {percent:3d}% ({chars:,} chars)")

    def progress_callback(self) -> ProgressCallback:
        """A synthesis progress callback that renders through this display."""

        def _on_progress(progress: float, partial_text: str) -> None:
            self.show_progress(progress, len(partial_text))

        return _on_progress

    def _detect_round(self, state_delta: dict) -> int | None:
        """Extract current_round from state delta if present."""
        return state_delta.get("current_round")

    def _print_details(self, state_delta: dict) -> None:
        """Print verbose details about what a node produced."""
        counts: dict[str, str] = {}
        if "notes" in state_delta:
            counts["notes"] = str(len(state_delta["notes"]))
        if "citations" in state_delta:
            counts["citations"] = str(len(state_delta["citations"]))
        if "gaps" in state_delta:
            counts["gaps"] = str(len(state_delta["gaps"]))
        if "confidence" in state_delta:
            counts["confidence"] = f"{state_delta['confidence']:.2f}"

        if counts:
            detail = ", ".join(f"{k}={v}" for k, v in counts.items())
            self._print(f"    -> {detail}")
