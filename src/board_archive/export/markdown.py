from __future__ import annotations

from dataclasses import dataclass
from typing import List, Mapping, Optional

from ..pipeline.hierarchy import Forest
from ..pipeline.identity import resolve_user_name
from ..utils.time import utc_now_iso
from .text import message_date, message_text
from .traversal import ForestWalk

MAX_HEADING_LEVEL = 6


def _section_number(counters: List[int], depth: int) -> str:
    del counters[depth + 1 :]
    if len(counters) == depth + 1:
        counters[depth] += 1
    else:
        counters.append(1)
    return ".".join(str(n) for n in counters)


@dataclass
class MarkdownExporter:
    scope_name: str
    scope_id: Optional[str] = None
    generated_at: Optional[str] = None

    def header(self, forest: Forest) -> List[str]:
        scope = self.scope_name if not self.scope_id else f"{self.scope_name} ({self.scope_id})"
        return [
            f"# Message Archive: {self.scope_name}",
            "",
            f"- Generated on: {self.generated_at or utc_now_iso()}",
            f"- Scope: {scope}",
            f"- Threads: {forest.thread_count}",
            f"- Messages: {forest.message_count}",
            f"- Messages with missing parents: {forest.missing_parent_count}",
            "",
        ]

    def export(self, forest: Forest, user_map: Mapping[int, str]) -> str:
        lines = self.header(forest)
        counters: List[int] = []
        for step in ForestWalk(forest):
            msg = step.message
            number = _section_number(counters, step.depth)
            level = min(2 + step.depth, MAX_HEADING_LEVEL)
            lines.append(f"{'#' * level} {number}. {resolve_user_name(msg.sender_id, user_map)}")
            lines.append("")
            lines.append(f"- **Date:** {message_date(msg)}")
            lines.append(f"- **ID:** {msg.id}")
            if step.parent is not None:
                lines.append(f"- **In reply to:** {step.parent.id}")
            lines.append("")
            lines.append(message_text(msg))
            lines.append("")
        return "\n".join(lines).rstrip("\n") + "\n"
