"""CLI entry point: python -m research_synthesis <notes.json> --question <query>"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from pathlib import Path

from research_synthesis.agents.base import GenerationClient
from research_synthesis.agents.synthesizer import SynthesisError, synthesize_answer
from research_synthesis.config import get_settings
from research_synthesis.contracts import (
    Citation,
    GapPriority,
    ResearchGap,
    ResearchNote,
    SynthesisInput,
    SynthesisOutput,
)
from research_synthesis.event_log.writer import EventLog, format_summary
from research_synthesis.graph.builder import new_session_id
from research_synthesis.reporting.citations import merge_citations
from research_synthesis.reporting.renderer import render_report
from research_synthesis.scoring.rounds import get_round2_queries, should_proceed_to_round2
from research_synthesis.streaming import StreamDisplay


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="research-synthesis",
        description="Synthesize research notes into a cited answer with gap analysis",
    )
    parser.add_argument(
        "notes",
        type=str,
        help="JSON file holding a list of research notes",
    )
    parser.add_argument(
        "--question",
        type=str,
        required=True,
        help="The research question the notes address",
    )
    parser.add_argument(
        "--session-id",
        type=str,
        default=None,
        help="Session ID used in gap IDs and the event log (default: generated)",
    )
    parser.add_argument(
        "--round",
        type=int,
        default=1,
        help="Round number (default: 1, or 2 when --previous is given)",
    )
    parser.add_argument(
        "--previous",
        type=str,
        default=None,
        metavar="OUTPUT_JSON",
        help="A previous round's --json output; its answer and gaps feed this round",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        default=False,
        help="Print the synthesis output as JSON instead of a Markdown report",
    )
    parser.add_argument(
        "--output",
        type=str,
        default=None,
        help="Also write the result to this file",
    )
    parser.add_argument(
        "--no-stream",
        action="store_true",
        default=False,
        help="Disable live progress output",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        default=False,
        help="Show detailed progress",
    )
    parser.add_argument(
        "--no-log",
        action="store_true",
        default=False,
        help="Disable session event logging",
    )
    args = parser.parse_args(argv)

    if args.round < 1:
        parser.error("--round must be >= 1")

    return args


def _load_citation(raw: dict, position: int) -> Citation:
    # Stored ids are presentation numbers only; position is authoritative
    cit = Citation(id=position, url=raw["url"])
    for key in ("title", "snippet", "favicon", "domain"):
        if raw.get(key):
            cit[key] = raw[key]
    return cit


def load_notes(path: str | Path) -> list[ResearchNote]:
    """Read research notes from JSON. Accepts snake_case or camelCase keys."""
    data = json.loads(Path(path).read_text(encoding="utf-8"))
    if isinstance(data, dict):
        data = data.get("notes", [])

    notes: list[ResearchNote] = []
    for raw in data:
        notes.append(
            ResearchNote(
                sub_question_id=str(raw.get("sub_question_id") or raw.get("subQuestionId") or ""),
                content=raw.get("content", ""),
                citations=[
                    _load_citation(c, i) for i, c in enumerate(raw.get("citations", []), start=1)
                ],
                confidence=float(raw.get("confidence", 0.0)),
            )
        )
    return notes


def _load_gap(raw: dict) -> ResearchGap:
    try:
        priority = GapPriority(raw.get("priority", "medium"))
    except ValueError:
        priority = GapPriority.MEDIUM
    return ResearchGap(
        id=raw["id"],
        session_id=raw.get("session_id", ""),
        round=int(raw.get("round", 1)),
        description=raw.get("description", ""),
        suggested_query=raw.get("suggested_query", ""),
        priority=priority,
        resolved=bool(raw.get("resolved", False)),
    )


def load_previous(path: str | Path) -> SynthesisOutput:
    """Read a previous round's JSON output."""
    data = json.loads(Path(path).read_text(encoding="utf-8"))
    return SynthesisOutput(
        answer=data.get("answer", ""),
        citations=[_load_citation(c, i) for i, c in enumerate(data.get("citations", []), start=1)],
        gaps=[_load_gap(g) for g in data.get("gaps", [])],
        confidence=float(data.get("confidence", 0.0)),
    )


def _write_result(text: str, output_path: str | None) -> None:
    sys.stdout.buffer.write(text.encode("utf-8"))
    sys.stdout.buffer.write(b"\n")
    sys.stdout.buffer.flush()

    if output_path:
        path = Path(output_path)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text, encoding="utf-8")
        print(f"\nResult saved to: {path}", file=sys.stderr)


async def run(args: argparse.Namespace) -> None:
    settings = get_settings()

    # Validate
    errors = settings.validate()
    if errors:
        for err in errors:
            print(f"ERROR: {err}", file=sys.stderr)
        sys.exit(1)
    for warn in settings.warnings():
        print(f"WARNING: {warn}", file=sys.stderr)

    synthesis_config = settings.synthesis_config()
    session_id = args.session_id or new_session_id()
    notes = load_notes(args.notes)
    if not notes:
        print("WARNING: no research notes supplied; the answer will be uncited.", file=sys.stderr)

    synthesis_input = SynthesisInput(query=args.question, notes=notes)
    round_number = args.round
    previous: SynthesisOutput | None = None
    if args.previous:
        previous = load_previous(args.previous)
        synthesis_input["previous_answer"] = previous["answer"]
        synthesis_input["gaps"] = previous["gaps"]
        round_number = max(round_number, 2)

    service = GenerationClient(
        api_key=settings.anthropic_api_key,
        model=settings.synthesis_model,
        max_tokens=settings.synthesis_max_tokens,
        max_concurrent=settings.max_concurrent_requests,
    )
    event_log = None if args.no_log else EventLog(settings.run_log_dir, session_id)
    display = StreamDisplay(verbose=args.verbose)

    print(f"Session: {session_id} | round {round_number}", file=sys.stderr)
    try:
        output = await synthesize_answer(
            synthesis_input,
            session_id,
            round_number,
            service,
            config=synthesis_config,
            on_progress=None if args.no_stream else display.progress_callback(),
            event_log=event_log,
        )
    except SynthesisError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        sys.exit(1)

    if args.json:
        text = json.dumps(output, indent=2, ensure_ascii=False)
    else:
        all_citations = (
            merge_citations(previous["citations"], output["citations"])
            if previous
            else output["citations"]
        )
        text = render_report(
            {
                "research_question": args.question,
                "session_id": session_id,
                "current_round": round_number,
                "answer": output["answer"],
                "citations": output["citations"],
                "all_citations": all_citations,
                "gaps": output["gaps"],
                "confidence": output["confidence"],
            }
        )
    _write_result(text, args.output)

    # Round continuation summary
    print(
        f"Completed: {len(output['citations'])} citation(s) | {len(output['gaps'])} gap(s) | "
        f"confidence {output['confidence']:.2f} | {service.total_tokens:,} tokens | "
        f"${service.total_cost:.4f}",
        file=sys.stderr,
    )
    if event_log is not None:
        summary = event_log.summarize()
        if summary is not None:
            print(format_summary(summary), file=sys.stderr)
    if round_number < synthesis_config.max_rounds and should_proceed_to_round2(
        output, min_confidence=synthesis_config.min_confidence_to_complete
    ):
        queries = get_round2_queries(
            output["gaps"],
            priority_weights=synthesis_config.gap_priority_weights,
            max_gaps=synthesis_config.max_gaps_to_address,
        )
        print("Another round is recommended. Follow-up queries:", file=sys.stderr)
        for q in queries:
            print(f"  > {q}", file=sys.stderr)


def main() -> None:
    asyncio.run(run(parse_args()))


if __name__ == "__main__":
    main()
