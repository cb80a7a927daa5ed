"""Per-session round log: one JSONL line per synthesis round.

Rounds of one session may run in separate processes (the CLI runs one round
per invocation), so the log is the only place the session's history lives.
A re-run round is appended, and the latest line for a round wins on read.
"""

from __future__ import annotations

import json
import sys
from datetime import datetime, timezone
from pathlib import Path

from research_synthesis.contracts import RunEvent, SessionSummary, SynthesisOutput


class EventLog:
    """Append-only round log under ``<log_dir>/<session_id>/rounds.jsonl``."""

    _FILENAME = "rounds.jsonl"

    def __init__(self, log_dir: str | Path, session_id: str) -> None:
        self.session_id = session_id
        self._dir = Path(log_dir) / session_id
        self._dir.mkdir(parents=True, exist_ok=True)

    @property
    def path(self) -> Path:
        return self._dir / self._FILENAME

    def record_round(
        self,
        round_number: int,
        output: SynthesisOutput,
        *,
        elapsed_s: float,
        notes: int,
        sources_available: int,
        structured: bool,
        tokens: int = 0,
        cost: float = 0.0,
    ) -> RunEvent:
        """Append the result of one synthesis round and return the logged event."""
        event = RunEvent(
            round=round_number,
            ts=datetime.now(timezone.utc).isoformat(),
            elapsed_s=round(elapsed_s, 3),
            notes=notes,
            sources_available=sources_available,
            citations_used=len(output["citations"]),
            gaps=len(output["gaps"]),
            structured=structured,
            confidence=output["confidence"],
            tokens=tokens,
            cost=round(cost, 6),
        )
        with self.path.open("a", encoding="utf-8") as f:
            f.write(json.dumps(event, ensure_ascii=False) + "\n")
        return event

    def rounds(self) -> dict[int, RunEvent]:
        """Latest logged event per round, keyed and ordered by round number.

        Lines that are not valid JSON or lack a round number are skipped with
        a warning.
        """
        if not self.path.exists():
            return {}
        latest: dict[int, RunEvent] = {}
        for lineno, line in enumerate(self.path.read_text(encoding="utf-8").splitlines(), 1):
            if not line.strip():
                continue
            try:
                event = json.loads(line)
                round_number = int(event["round"])
            except (json.JSONDecodeError, KeyError, TypeError, ValueError):
                print(
                    f"WARNING: skipping corrupt line {lineno} in {self.path}",
                    file=sys.stderr,
                )
                continue
            latest[round_number] = event
        return dict(sorted(latest.items()))

    def summarize(self) -> SessionSummary | None:
        """Session-level view across all logged rounds, or None if nothing is logged."""
        by_round = self.rounds()
        if not by_round:
            return None
        last = by_round[max(by_round)]
        return SessionSummary(
            session_id=self.session_id,
            rounds=list(by_round),
            confidence_by_round={r: e["confidence"] for r, e in by_round.items()},
            latest_confidence=last["confidence"],
            open_gaps=last["gaps"],
            tokens=sum(e.get("tokens", 0) for e in by_round.values()),
            cost=round(sum(e.get("cost", 0.0) for e in by_round.values()), 6),
        )


def format_summary(summary: SessionSummary) -> str:
    """One-line session summary, e.g. ``rounds 1, 2 | confidence 0.55 -> 0.82``."""
    rounds = ", ".join(str(r) for r in summary["rounds"])
    trend = " -> ".join(f"{c:.2f}" for c in summary["confidence_by_round"].values())
    return (
        f"Session {summary['session_id']}: rounds {rounds} | confidence {trend} | "
        f"{summary['open_gaps']} open gap(s) | {summary['tokens']:,} tokens | "
        f"${summary['cost']:.4f}"
    )
