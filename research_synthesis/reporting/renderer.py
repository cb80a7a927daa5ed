"""Markdown report generation with YAML frontmatter."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import TYPE_CHECKING

import yaml

from research_synthesis.contracts import GapPriority
from research_synthesis.reporting.citations import build_bibliography

if TYPE_CHECKING:
    from research_synthesis.graph.state import ResearchLoopState


def render_report(state: "ResearchLoopState") -> str:
    """Render a Markdown research report from a finished (or single-round) result.

    The answer's [N] markers already index ``citations``; no renumbering here.
    """
    research_question = state["research_question"]
    answer = state.get("answer", "")
    citations = state.get("citations", [])
    all_citations = state.get("all_citations", citations)
    gaps = state.get("gaps", [])
    open_gaps = [g for g in gaps if not g["resolved"]]
    confidence = state.get("confidence", 0.0)

    # --- YAML Frontmatter ---
    frontmatter = {
        "title": f"Research Report: {research_question}",
        "generated": datetime.now(timezone.utc).isoformat(),
        "session_id": state.get("session_id", ""),
        "rounds": state.get("current_round", 1),
        "confidence": round(confidence, 2),
        "total_citations": len(citations),
        "sources_consulted": len(all_citations),
        "open_gaps": len(open_gaps),
        "resolved_gaps": len(gaps) - len(open_gaps),
    }

    lines: list[str] = []
    lines.append("---")
    lines.append(yaml.dump(frontmatter, default_flow_style=False, sort_keys=False).strip())
    lines.append("---")
    lines.append("")

    # --- Title ---
    lines.append(f"# {research_question}")
    lines.append("")

    # --- Answer ---
    lines.append(answer)
    lines.append("")

    # --- Open Gaps ---
    if open_gaps:
        lines.append("## Open Research Gaps")
        lines.append("")
        for gap in open_gaps:
            priority = GapPriority(gap["priority"]).value.capitalize()
            line = f"- **{priority}**: {gap['description']}"
            if gap["suggested_query"]:
                line += f" (follow-up: *{gap['suggested_query']}*)"
            lines.append(line)
        lines.append("")

    # --- Bibliography ---
    if citations:
        lines.append("## References")
        lines.append("")
        lines.append(build_bibliography(citations))
        lines.append("")

    # --- Metadata ---
    lines.append("---")
    lines.append("")
    lines.append(
        f"*Synthesized in {frontmatter['rounds']} round(s) | "
        f"confidence {confidence:.0%} | {len(all_citations)} source(s) consulted*"
    )

    return "\n".join(lines)
