"""Synthesis prompt assembly.

The user prompt carries the query, one block per research note, and (on
round 2) the gaps to address plus the previous answer. Each note lists its
sources with the note's own local numbering; the Source Index section lists
the collected, deduplicated citations, and that index is the numbering the
model is asked to cite with.
"""

from __future__ import annotations

from research_synthesis.contracts import Citation, ResearchNote, SynthesisInput
from research_synthesis.reporting.citations import collect_citations

SYNTHESIS_SYSTEM = """\
You are a research synthesis assistant. Your job is to combine research notes \
into a comprehensive, well-structured answer.

Guidelines:
1. Synthesize information from multiple sources, don't just concatenate.
2. Maintain factual accuracy - only include information from the notes.
3. Use clear structure with sections when appropriate.
4. Include inline citations using [1], [2], etc. format, numbered by the Source Index.
5. Acknowledge any gaps or uncertainties in the research.
6. Write in a clear, professional tone.

After your answer, output a JSON block with:
```json
{
  "gaps": [
    {
      "description": "what information is missing",
      "suggestedQuery": "specific search query to fill this gap",
      "priority": "high" | "medium" | "low"
    }
  ],
  "confidence": 0.0-1.0
}
```
"confidence" is how confident you are that the answer is complete.
"""


def _format_note(index: int, note: ResearchNote) -> str:
    sources = ", ".join(f"[{i}] {c['url']}" for i, c in enumerate(note["citations"], start=1))
    return (
        f"## Research Note {index}\n"
        f"Question: {note['sub_question_id']}\n"
        f"Content:\n{note['content']}\n"
        f"Sources: {sources}\n"
        f"Confidence: {round(note['confidence'] * 100)}%"
    )


def _format_source_index(citations: list[Citation]) -> str:
    lines: list[str] = []
    for cit in citations:
        title = cit.get("title") or cit["url"]
        lines.append(f"[{cit['id']}] {title} - {cit['url']}")
    return "\n".join(lines)


def build_synthesis_prompt(synthesis_input: SynthesisInput) -> str:
    """Assemble the user prompt for one synthesis round."""
    notes = synthesis_input["notes"]
    gaps = synthesis_input.get("gaps") or []
    previous_answer = synthesis_input.get("previous_answer")

    parts = [f"# Research Query\n{synthesis_input['query']}"]

    notes_section = "\n\n".join(_format_note(i, n) for i, n in enumerate(notes, start=1))
    parts.append(f"# Research Notes\n{notes_section}")

    citations = collect_citations(notes)
    if citations:
        parts.append(f"# Source Index\n{_format_source_index(citations)}")

    if gaps:
        gap_lines = "\n".join(f"- {g['description']}" for g in gaps)
        parts.append(f"## Gaps to Address\n{gap_lines}")

    if previous_answer:
        parts.append(
            f"## Previous Answer (Round 1)\n{previous_answer}\n\n"
            "Please improve upon this answer by addressing the gaps and "
            "incorporating new research."
        )

    parts.append(
        "Please synthesize these research notes into a comprehensive answer. "
        "Use inline citations [1], [2], etc. to reference sources by their "
        "Source Index number."
    )
    return "\n\n".join(parts)
