from __future__ import annotations

from dataclasses import dataclass
from typing import List, Mapping

from ..pipeline.hierarchy import Forest
from ..pipeline.identity import resolve_user_name
from .text import message_date, message_text
from .traversal import ForestWalk

SNIPPET_RADIUS = 40


@dataclass
class SearchHit:
    message_id: int
    depth: int
    root_id: int
    author: str
    date: str
    snippet: str


def _snippet(text: str, pos: int, length: int) -> str:
    start = max(0, pos - SNIPPET_RADIUS)
    end = min(len(text), pos + length + SNIPPET_RADIUS)
    snippet = " ".join(text[start:end].split())
    if start > 0:
        snippet = "..." + snippet
    if end < len(text):
        snippet += "..."
    return snippet


def search_forest(forest: Forest, term: str, user_map: Mapping[int, str]) -> List[SearchHit]:
    """
    Case-insensitive substring search over display text, in walk order.
    """
    needle = (term or "").strip().lower()
    if not needle:
        return []
    hits: List[SearchHit] = []
    root_id = None
    for step in ForestWalk(forest):
        if step.depth == 0:
            root_id = step.message.id
        text = message_text(step.message)
        pos = text.lower().find(needle)
        if pos < 0:
            continue
        hits.append(
            SearchHit(
                message_id=step.message.id,
                depth=step.depth,
                root_id=root_id,
                author=resolve_user_name(step.message.sender_id, user_map),
                date=message_date(step.message),
                snippet=_snippet(text, pos, len(needle)),
            )
        )
    return hits


def count_label(count: int) -> str:
    if count == 0:
        return "No results found"
    return f"{count} result{'s' if count != 1 else ''} found"
