"""Split raw synthesis output into the narrative answer and its gap analysis.

The model is asked to end its answer with a JSON block. Matching is a
best-effort regex: the leftmost of either a ```json fenced block or a bare
object mentioning both "gaps" and "confidence". An unrelated JSON-looking
substring earlier in the answer can be matched instead (false-positive
truncation); that behavior is known and left as-is.

Nothing here raises. Any miss degrades to "whole text is the answer, no gaps".
"""

from __future__ import annotations

import json
import re
import sys

from research_synthesis.contracts import GapAnalysis, ParsedResponse

_STRUCTURED_BLOCK_RE = re.compile(
    r"```json\s*([\s\S]*?)\s*```|\{[\s\S]*\"gaps\"[\s\S]*\"confidence\"[\s\S]*\}",
    re.IGNORECASE,
)


def _warn(msg: str) -> None:
    print(f"WARNING: {msg}", file=sys.stderr)


def parse_response(content: str) -> ParsedResponse:
    """Separate the answer text from the trailing gap-analysis block."""
    match = _STRUCTURED_BLOCK_RE.search(content)
    if match is None:
        _warn("synthesis output carried no gap-analysis block")
        return ParsedResponse(answer=content.strip(), gap_analysis=None)

    payload = match.group(1) if match.group(1) is not None else match.group(0)
    try:
        data = json.loads(payload)
    except json.JSONDecodeError as e:
        _warn(f"gap-analysis block is not valid JSON ({e}); keeping full text as answer")
        return ParsedResponse(answer=content.strip(), gap_analysis=None)

    if not isinstance(data, dict):
        _warn(f"gap-analysis block is a {type(data).__name__}, expected an object")
        return ParsedResponse(answer=content.strip(), gap_analysis=None)

    answer = (content[: match.start()] + content[match.end() :]).strip()
    return ParsedResponse(answer=answer, gap_analysis=GapAnalysis(**data))
