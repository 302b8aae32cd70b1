from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Sequence, Tuple

from ..ingestion.normalize import (
    message_references,
    normalize_batch,
    normalize_references,
)
from ..schemas.messages import Message, Reference
from ..utils.json_utils import wrap_value_list

# Outcomes of a single conflict resolution
INSERT = "inserted"
REPLACE = "replaced"
KEEP = "duplicates"


@dataclass
class ReconciliationResult:
    messages: Dict[int, Message]
    counts: Dict[str, int]
    checkpoint: Any = None

    def ordered(self) -> List[Message]:
        """Canonical messages sorted by id descending."""
        return [self.messages[k] for k in sorted(self.messages, reverse=True)]


@dataclass
class GroupMerge:
    messages_doc: Dict[str, Any]
    references_doc: Dict[str, Any]
    counts: Dict[str, int] = field(default_factory=dict)
    checkpoint: Any = None


def _new_counts() -> Dict[str, int]:
    return {"input": 0, INSERT: 0, REPLACE: 0, KEEP: 0}


def resolve_conflict(existing: Message, incoming: Message) -> str:
    """
    Decide which record survives for an id seen twice.
    Full data beats a stub; between two full records the strictly larger body wins; anything else keeps the first.
    """
    if existing.is_stub and not incoming.is_stub:
        return REPLACE
    if not existing.is_stub and not incoming.is_stub:
        if existing.body != incoming.body and incoming.content_size > existing.content_size:
            return REPLACE
    return KEEP


def reconcile_batches(
    batches: Iterable[Sequence[Message]],
    checkpoint: Any = None,
) -> ReconciliationResult:
    """
    Merge normalized batches (in arrival order) into one canonical id -> Message mapping.
    `checkpoint` is passed through untouched.
    """
    canonical: Dict[int, Message] = {}
    counts = _new_counts()
    for batch in batches:
        for msg in batch:
            counts["input"] += 1
            existing = canonical.get(msg.id)
            if existing is None:
                canonical[msg.id] = msg
                counts[INSERT] += 1
                continue
            outcome = resolve_conflict(existing, msg)
            if outcome == REPLACE:
                # keep any hierarchy already hung on the old entry
                canonical[msg.id] = msg.model_copy(update={"children": existing.children})
            counts[outcome] += 1
    return ReconciliationResult(messages=canonical, counts=counts, checkpoint=checkpoint)


def _reference_size(ref: Reference) -> int:
    return len(json.dumps(ref.raw, sort_keys=True, ensure_ascii=False, default=str))


def reconcile_references(batches: Iterable[Sequence[Reference]]) -> Dict[Tuple[str, int], Reference]:
    canonical: Dict[Tuple[str, int], Reference] = {}
    for batch in batches:
        for ref in batch:
            existing = canonical.get(ref.key)
            if existing is None:
                canonical[ref.key] = ref
                continue
            if existing.is_stub and not ref.is_stub:
                canonical[ref.key] = ref
            elif not existing.is_stub and not ref.is_stub:
                if existing.raw != ref.raw and _reference_size(ref) > _reference_size(existing):
                    canonical[ref.key] = ref
    return canonical


def _sorted_references(refs: Dict[Tuple[str, int], Reference]) -> List[Reference]:
    return [refs[k] for k in sorted(refs, reverse=True)]


def merge_group_batches(
    message_batches: Sequence[List[Any]],
    reference_batches: Sequence[List[Any]],
    checkpoint: Any = None,
) -> GroupMerge:
    """
    Group-level merge of raw record batches.
    Output documents are ordered by id (messages) and (type, id) (references), both descending,
    so re-running over the same inputs yields byte-identical files.
    """
    discarded = 0
    normalized: List[List[Message]] = []
    for raws in message_batches:
        res = normalize_batch(raws)
        discarded += res.discarded
        normalized.append(res.messages)

    result = reconcile_batches(normalized, checkpoint=checkpoint)
    refs = reconcile_references(normalize_references(raws) for raws in reference_batches)

    counts = dict(result.counts)
    counts["discarded"] = discarded
    counts["messages"] = len(result.messages)
    counts["references"] = len(refs)

    return GroupMerge(
        messages_doc=wrap_value_list([m.raw for m in result.ordered()]),
        references_doc=wrap_value_list([r.raw for r in _sorted_references(refs)]),
        counts=counts,
        checkpoint=result.checkpoint,
    )


def reconcile_scope(
    message_raws: Iterable[Any],
    reference_raws: Iterable[Any],
    checkpoint: Any = None,
) -> Tuple[ReconciliationResult, List[Reference]]:
    """
    Canonical set for one scope: the message batch first, then message-typed references as stubs.
    """
    res = normalize_batch(message_raws)
    refs = list(reconcile_references([normalize_references(reference_raws)]).values())
    result = reconcile_batches([res.messages, message_references(refs)], checkpoint=checkpoint)
    result.counts["discarded"] = res.discarded
    return result, refs

