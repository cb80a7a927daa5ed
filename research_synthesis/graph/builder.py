"""StateGraph construction: wires the round 1 -> evaluate -> round 2 -> merge loop."""

from __future__ import annotations

import os
import sys
from datetime import datetime, timezone

from langchain_core.runnables import RunnableConfig
from langgraph.checkpoint.base import BaseCheckpointSaver
from langgraph.graph import END, StateGraph
from langgraph.graph.state import CompiledStateGraph

from research_synthesis.agents.gap_analyzer import mark_gaps_resolved
from research_synthesis.agents.synthesizer import synthesize_answer
from research_synthesis.config import SynthesisConfig
from research_synthesis.contracts import (
    GapPriority,
    GenerationService,
    ProgressCallback,
    Retriever,
    RoundPhase,
    SynthesisInput,
)
from research_synthesis.event_log.writer import EventLog
from research_synthesis.graph.state import ResearchLoopState
from research_synthesis.reporting.citations import merge_citations
from research_synthesis.reporting.renderer import render_report
from research_synthesis.scoring.rounds import advance_phase, get_round2_queries


def new_session_id() -> str:
    """Generate a unique session ID: research-YYYYMMDD-HHMMSS-XXXX."""
    ts = datetime.now(timezone.utc).strftime("%Y%m%d-%H%M%S")
    suffix = os.urandom(2).hex()
    return f"research-{ts}-{suffix}"


def _get_stream_writer(config: RunnableConfig | None) -> callable | None:
    """Safely extract a stream writer from LangGraph config, if available."""
    if config is None:
        return None
    try:
        from langgraph.config import get_stream_writer

        return get_stream_writer()
    except (ImportError, Exception):
        return None


def _progress_forwarder(writer, round_number: int) -> ProgressCallback | None:
    """Turn synthesis progress into custom stream events."""
    if writer is None:
        return None

    def _forward(progress: float, partial_text: str) -> None:
        writer(
            {
                "kind": "synthesize_progress",
                "round": round_number,
                "progress": progress,
                "chars": len(partial_text),
            }
        )

    return _forward


def build_graph(
    service: GenerationService,
    retriever: Retriever,
    *,
    synthesis_config: SynthesisConfig | None = None,
    event_log: EventLog | None = None,
    checkpointer: BaseCheckpointSaver | None = None,
) -> CompiledStateGraph:
    """Build and compile the research round graph.

    Input state needs ``research_question`` and round-1 ``notes``; ``session_id``
    and ``skip_round2`` are optional. Returns a compiled StateGraph ready to invoke.
    """
    synthesis_config = synthesis_config or SynthesisConfig()

    # --- Node functions (closures over service/retriever) ---

    async def synthesize_round1_node(
        state: ResearchLoopState, config: RunnableConfig | None = None
    ) -> dict:
        writer = _get_stream_writer(config)
        session_id = state.get("session_id") or new_session_id()
        output = await synthesize_answer(
            SynthesisInput(query=state["research_question"], notes=state.get("notes", [])),
            session_id,
            1,
            service,
            config=synthesis_config,
            on_progress=_progress_forwarder(writer, 1),
            event_log=event_log,
        )
        return {
            "session_id": session_id,
            "current_round": 1,
            "phase": advance_phase(RoundPhase.AWAITING_ROUND1, output=output),
            "round1_output": output,
            "answer": output["answer"],
            "citations": output["citations"],
            "all_citations": output["citations"],
            "gaps": output["gaps"],
            "confidence": output["confidence"],
        }

    async def evaluate_gaps_node(
        state: ResearchLoopState, config: RunnableConfig | None = None
    ) -> dict:
        """Decide on a second round and plan its queries."""
        writer = _get_stream_writer(config)
        output = state["round1_output"]
        phase = advance_phase(
            state.get("phase", RoundPhase.EVALUATING_GAPS),
            output=output,
            current_round=state.get("current_round", 1),
            max_rounds=synthesis_config.max_rounds,
            min_confidence=synthesis_config.min_confidence_to_complete,
            skip_round2=state.get("skip_round2", False),
        )
        if phase != RoundPhase.AWAITING_ROUND2:
            return {"phase": phase, "round2_queries": []}

        queries = get_round2_queries(
            output["gaps"],
            priority_weights=synthesis_config.gap_priority_weights,
            max_gaps=synthesis_config.max_gaps_to_address,
        )
        if writer:
            for gap in output["gaps"]:
                if gap["priority"] != GapPriority.LOW:
                    writer({"kind": "gap_found", "message": gap["description"]})
            writer({"kind": "round2_plan", "queries": queries})
        return {"phase": phase, "round2_queries": queries}

    async def research_round2_node(state: ResearchLoopState) -> dict:
        """Fetch follow-up notes; the round-1 answer is retrieval context."""
        new_notes = await retriever(
            state.get("round2_queries", []),
            context=state["round1_output"]["answer"],
        )
        return {
            "notes": list(new_notes),
            "round2_note_count": len(new_notes),
            "current_round": 2,
        }

    async def synthesize_round2_node(
        state: ResearchLoopState, config: RunnableConfig | None = None
    ) -> dict:
        writer = _get_stream_writer(config)
        round1 = state["round1_output"]

        if not state.get("round2_note_count", 0):
            print(
                "WARNING: round 2 retrieval returned no notes, keeping the round 1 answer",
                file=sys.stderr,
            )
            return {"phase": advance_phase(RoundPhase.AWAITING_ROUND2, output=round1)}

        output = await synthesize_answer(
            SynthesisInput(
                query=state["research_question"],
                notes=state["notes"],
                previous_answer=round1["answer"],
                gaps=round1["gaps"],
            ),
            state["session_id"],
            2,
            service,
            config=synthesis_config,
            on_progress=_progress_forwarder(writer, 2),
            event_log=event_log,
        )
        return {
            "phase": advance_phase(RoundPhase.AWAITING_ROUND2, output=output),
            "round2_output": output,
            "answer": output["answer"],
            "citations": output["citations"],
            "all_citations": merge_citations(round1["citations"], output["citations"]),
            "gaps": mark_gaps_resolved(round1["gaps"]) + output["gaps"],
            "confidence": output["confidence"],
        }

    async def finalize_node(state: ResearchLoopState) -> dict:
        """Render the final report."""
        return {
            "phase": RoundPhase.COMPLETE,
            "final_report": render_report(state),
        }

    # --- Routing ---

    def route_after_evaluation(state: ResearchLoopState) -> str:
        if state.get("phase") == RoundPhase.AWAITING_ROUND2:
            return "research_round2"
        return "finalize"

    # --- Build graph ---

    graph = StateGraph(ResearchLoopState)

    graph.add_node("synthesize_round1", synthesize_round1_node)
    graph.add_node("evaluate_gaps", evaluate_gaps_node)
    graph.add_node("research_round2", research_round2_node)
    graph.add_node("synthesize_round2", synthesize_round2_node)
    graph.add_node("finalize", finalize_node)

    graph.set_entry_point("synthesize_round1")
    graph.add_edge("synthesize_round1", "evaluate_gaps")

    # Conditional: evaluate_gaps -> research_round2 (gaps worth filling) or -> finalize
    graph.add_conditional_edges(
        "evaluate_gaps",
        route_after_evaluation,
        {"research_round2": "research_round2", "finalize": "finalize"},
    )

    graph.add_edge("research_round2", "synthesize_round2")
    graph.add_edge("synthesize_round2", "finalize")
    graph.add_edge("finalize", END)

    return graph.compile(checkpointer=checkpointer)
