"""Citation collection, extraction, renumbering, merging, and bibliography.

All operations are order-preserving and return new lists of new dicts.
A citation's ``id`` is its 1-based position in the list it was returned in.
"""

from __future__ import annotations

import re

from research_synthesis.contracts import Citation, ResearchNote

_MARKER_RE = re.compile(r"\[(\d+)\]")


def _with_id(cit: Citation, new_id: int) -> Citation:
    return Citation(**{**cit, "id": new_id})


def _marker_numbers(answer: str) -> list[int]:
    """Distinct marker numbers in order of first appearance."""
    seen: dict[int, None] = {}
    for match in _MARKER_RE.finditer(answer):
        seen.setdefault(int(match.group(1)), None)
    return list(seen)


def collect_citations(notes: list[ResearchNote]) -> list[Citation]:
    """Deduplicate citations across notes by URL, first occurrence wins."""
    seen_urls: set[str] = set()
    collected: list[Citation] = []
    for note in notes:
        for cit in note["citations"]:
            if cit["url"] in seen_urls:
                continue
            seen_urls.add(cit["url"])
            collected.append(_with_id(cit, len(collected) + 1))
    return collected


def extract_used_citations(answer: str, all_citations: list[Citation]) -> list[Citation]:
    """Citations referenced by [N] markers, in order of first appearance.

    Markers outside 1..len(all_citations) are ignored.
    """
    used: list[Citation] = []
    for num in _marker_numbers(answer):
        idx = num - 1
        if 0 <= idx < len(all_citations):
            used.append(_with_id(all_citations[idx], len(used) + 1))
    return used


def renumber_citations(answer: str, citations: list[Citation]) -> tuple[str, list[Citation]]:
    """Compact marker numbers to 1..K in order of first appearance.

    Returns (answer, citations) where marker [k] refers to citations[k-1].
    Markers with no matching citation are left as written.
    """
    old_to_new: dict[int, int] = {}
    renumbered: list[Citation] = []
    for num in _marker_numbers(answer):
        if 1 <= num <= len(citations):
            old_to_new[num] = len(renumbered) + 1
            renumbered.append(_with_id(citations[num - 1], old_to_new[num]))

    def _replace(match: re.Match[str]) -> str:
        new = old_to_new.get(int(match.group(1)))
        return f"[{new}]" if new is not None else match.group(0)

    # Single pass, so [10] never collides with a rewritten [1]
    return _MARKER_RE.sub(_replace, answer), renumbered


def merge_citations(
    round1_citations: list[Citation],
    round2_citations: list[Citation],
) -> list[Citation]:
    """Append round-2 citations whose URL round 1 does not already have."""
    merged = list(round1_citations)
    seen_urls = {c["url"] for c in merged}
    for cit in round2_citations:
        if cit["url"] in seen_urls:
            continue
        seen_urls.add(cit["url"])
        merged.append(_with_id(cit, len(merged) + 1))
    return merged


def build_bibliography(citations: list[Citation]) -> str:
    """Render citations as a numbered bibliography in Markdown.

    Expects already-renumbered citations.
    """
    if not citations:
        return ""

    lines: list[str] = []
    for i, cit in enumerate(citations, start=1):
        title = cit.get("title") or cit["url"]
        line = f"{i}. [{title}]({cit['url']})"
        if cit.get("domain"):
            line += f" - *{cit['domain']}*"
        lines.append(line)

    return "\n".join(lines)
