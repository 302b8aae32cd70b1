from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

from ..schemas.messages import Message, MessageBody, Reference

# Keys the feed attaches to link a record to its group/thread without carrying content.
LINKAGE_KEYS = {"group_created_id", "created_association", "network_id", "group_id", "thread_id"}

REFERENCE_TYPES = {"user", "message"}


def _is_ascii_digits(s: str) -> bool:
    # "¹".isdigit() and "٣".isdigit() are True too
    return s.isascii() and s.isdigit()


def canonical_id(value: Any) -> Optional[int]:
    """
    Canonicalize an id sent as number or string to an int.
    Strings are parsed digit-wise so 19-digit ids keep full precision.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if value.is_integer() else None
    if isinstance(value, str):
        s = value.strip()
        if s.startswith("-"):
            return -int(s[1:]) if _is_ascii_digits(s[1:]) else None
        if _is_ascii_digits(s):
            return int(s)
    return None


def _populated(value: Any) -> bool:
    return value not in (None, "", [], {})


def _body_from_raw(raw: Dict[str, Any]) -> MessageBody:
    body = raw.get("body")
    if not isinstance(body, dict):
        return MessageBody()

    def _text(key: str) -> Optional[str]:
        v = body.get(key)
        if v is None:
            return None
        return v if isinstance(v, str) else str(v)

    return MessageBody(plain=_text("plain"), parsed=_text("parsed"), rich=_text("rich"))


def is_bookkeeping_record(raw: Dict[str, Any]) -> bool:
    """
    True for feed artifacts that only link a record to its scope (e.g. {"id": ..., "group_created_id": ...}).
    """
    populated = {k for k, v in raw.items() if k != "id" and _populated(v)}
    if not populated:
        return False
    if not populated <= LINKAGE_KEYS:
        return False
    return not _populated(raw.get("sender_id")) and _body_from_raw(raw).is_empty()


def normalize_message(raw: Any) -> Optional[Message]:
    """
    Returns a Message, or None when the record is unusable (no id, or a bookkeeping artifact).
    """
    if not isinstance(raw, dict):
        return None
    msg_id = canonical_id(raw.get("id"))
    if msg_id is None:
        return None
    if is_bookkeeping_record(raw):
        return None

    created_at = raw.get("created_at")
    excerpt = raw.get("content_excerpt")
    return Message(
        id=msg_id,
        sender_id=canonical_id(raw.get("sender_id")),
        replied_to_id=canonical_id(raw.get("replied_to_id")),
        thread_id=canonical_id(raw.get("thread_id")),
        created_at=str(created_at) if _populated(created_at) else None,
        body=_body_from_raw(raw),
        content_excerpt=str(excerpt) if _populated(excerpt) else None,
        raw=raw,
    )


def normalize_reference(raw: Any) -> Optional[Reference]:
    if not isinstance(raw, dict):
        return None
    ref_id = canonical_id(raw.get("id"))
    if ref_id is None:
        return None
    ref_type = raw.get("type")
    ref_type = ref_type if ref_type in REFERENCE_TYPES else "unlabeled"
    full_name = raw.get("full_name")
    return Reference(
        type=ref_type,
        id=ref_id,
        full_name=str(full_name) if _populated(full_name) else None,
        raw=raw,
    )


def reference_to_message(ref: Reference) -> Optional[Message]:
    """Message-typed references stand in as stub messages."""
    if ref.type != "message":
        return None
    return normalize_message(ref.raw)


@dataclass
class NormalizeResult:
    messages: List[Message] = field(default_factory=list)
    discarded: int = 0


def normalize_batch(raws: Iterable[Any]) -> NormalizeResult:
    result = NormalizeResult()
    for raw in raws:
        msg = normalize_message(raw)
        if msg is None:
            result.discarded += 1
            continue
        result.messages.append(msg)
    return result


def normalize_references(raws: Iterable[Any]) -> List[Reference]:
    refs: List[Reference] = []
    for raw in raws:
        ref = normalize_reference(raw)
        if ref is not None:
            refs.append(ref)
    return refs


def message_references(refs: Iterable[Reference]) -> List[Message]:
    out: List[Message] = []
    for ref in refs:
        msg = reference_to_message(ref)
        if msg is not None:
            out.append(msg)
    return out
