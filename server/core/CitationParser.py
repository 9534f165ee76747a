"""Turns the model's structured `cited_answer` output into a CitedAnswer.

Malformed output is a data-quality problem, not an error: anything that does
not parse degrades to the "no answer" text and invalid citations are dropped.
"""

import json
from typing import Any

from server.models.chat import CitedAnswer

NO_ANSWER_TEXT = "I don't know the answer based on the selected pages."
NO_CONTEXT_TEXT = "The selected pages contain no content relevant to this question."


def _to_index(value: Any) -> int | None:
    # bool is an int subclass
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            return None
    return None


def _decode(raw: Any) -> dict | None:
    if isinstance(raw, dict):
        return raw
    if isinstance(raw, (str, bytes)):
        try:
            decoded = json.loads(raw)
        except ValueError:
            return None
        return decoded if isinstance(decoded, dict) else None
    return None


def validate_cited_answer(raw: Any, fragment_count: int) -> CitedAnswer:
    """Validate raw tool output against the number of retrieved fragments.

    Args:
        raw (Any): Tool-call arguments, as decoded dict or JSON text.
        fragment_count (int): Number of fragments shown to the model.

    Returns:
        CitedAnswer: Citations deduplicated in first-seen order, limited to
            [0, fragment_count). An empty or missing answer yields NO_ANSWER_TEXT
            without citations.
    """
    data = _decode(raw)
    if data is None:
        return CitedAnswer(answer=NO_ANSWER_TEXT)

    answer = data.get("answer")
    if not isinstance(answer, str) or not answer.strip():
        return CitedAnswer(answer=NO_ANSWER_TEXT)

    raw_citations = data.get("citations")
    if not isinstance(raw_citations, list):
        raw_citations = []

    citations: list[int] = []
    for value in raw_citations:
        index = _to_index(value)
        if index is None or not 0 <= index < fragment_count or index in citations:
            continue
        citations.append(index)
    return CitedAnswer(answer=answer.strip(), citations=citations)
