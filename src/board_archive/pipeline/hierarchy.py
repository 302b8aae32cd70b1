from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Iterable, List, Mapping, Set, Tuple, Union

from ..schemas.messages import Message


@dataclass
class Forest:
    roots: List[Message]
    missing_parent_count: int
    message_count: int

    @property
    def thread_count(self) -> int:
        return len(self.roots)

    def summary(self) -> str:
        text = f"Displaying {self.thread_count} threads with {self.message_count} total messages"
        if self.missing_parent_count > 0:
            text += f" ({self.missing_parent_count} messages with missing parents)"
        return text


def _sort_key(msg: Message) -> Tuple[datetime, int]:
    return (msg.timestamp, msg.id)


def _reachable(starts: Iterable[Message]) -> Set[int]:
    seen: Set[int] = set()
    stack = list(starts)
    while stack:
        node = stack.pop()
        if node.id in seen:
            continue
        seen.add(node.id)
        stack.extend(node.children)
    return seen


def build_forest(messages: Union[Mapping[int, Message], Iterable[Message]]) -> Forest:
    """
    Build reply trees from a canonical message set.

    Roots: messages without a parent, or whose parent id is not in the set (counted as missing).
    A reply cycle is cut at its oldest member, which also counts as missing.
    Roots are newest first, replies oldest first; id breaks timestamp ties.
    The input is not mutated: each node is a fresh copy, so repeated builds give identical forests.
    """
    items = list(messages.values()) if isinstance(messages, Mapping) else list(messages)
    nodes: Dict[int, Message] = {m.id: m.model_copy(update={"children": []}) for m in items}

    roots: List[Message] = []
    missing = 0
    for node in nodes.values():
        parent_id = node.replied_to_id
        if parent_id is None:
            roots.append(node)
            continue
        parent = nodes.get(parent_id)
        if parent is None or parent_id == node.id:
            roots.append(node)
            missing += 1
            continue
        parent.children.append(node)

    # Reply cycles (1 -> 2 -> 1) have no root above them; promote the oldest member of each.
    reached = _reachable(roots)
    for node in sorted(nodes.values(), key=_sort_key):
        if node.id in reached:
            continue
        parent = nodes[node.replied_to_id]
        parent.children = [c for c in parent.children if c.id != node.id]
        roots.append(node)
        missing += 1
        reached |= _reachable([node])

    for node in nodes.values():
        node.children.sort(key=_sort_key)
    roots.sort(key=_sort_key, reverse=True)

    return Forest(roots=roots, missing_parent_count=missing, message_count=len(nodes))
