from __future__ import annotations

from typing import Callable, Iterator, List, Mapping, NamedTuple, Optional, Protocol, Tuple

from ..pipeline.hierarchy import Forest
from ..schemas.messages import Message


class WalkStep(NamedTuple):
    message: Message
    depth: int
    parent: Optional[Message]


class ForestWalk:
    """
    Depth-first, pre-order walk over a forest.

    Each iteration starts over, so one walk can feed several consumers.
    `expand(message)` is asked after a message is yielded; returning False skips its replies,
    which is how collapsed threads are left out of an interactive view.
    """

    def __init__(self, forest: Forest, expand: Optional[Callable[[Message], bool]] = None) -> None:
        self.forest = forest
        self.expand = expand

    def __iter__(self) -> Iterator[WalkStep]:
        stack: List[Tuple[Message, int, Optional[Message]]] = [
            (root, 0, None) for root in reversed(self.forest.roots)
        ]
        while stack:
            msg, depth, parent = stack.pop()
            yield WalkStep(msg, depth, parent)
            if not msg.children:
                continue
            if self.expand is not None and not self.expand(msg):
                continue
            for child in reversed(msg.children):
                stack.append((child, depth + 1, msg))


class TreeExporter(Protocol):
    def export(self, forest: Forest, user_map: Mapping[int, str]) -> str:
        ...
