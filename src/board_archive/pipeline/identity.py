from __future__ import annotations

from typing import Any, Dict, Iterable, Mapping

from ..ingestion.normalize import canonical_id
from ..schemas.messages import Reference


def build_user_map(references: Iterable[Reference]) -> Dict[int, str]:
    """
    id -> full_name from user references.
    Unlabeled entries that carry a full_name are included as well; message references never are.
    """
    users: Dict[int, str] = {}
    for ref in references:
        if ref.type == "message" or not ref.full_name:
            continue
        if ref.type == "unlabeled" and ref.id in users:
            continue
        users[ref.id] = ref.full_name
    return users


def resolve_user_name(sender_id: Any, user_map: Mapping[int, str]) -> str:
    key = canonical_id(sender_id)
    if key is not None and key in user_map:
        return user_map[key]
    if key is not None:
        return f"User ID: {key}"
    if sender_id is None or sender_id == "":
        return "User ID: unknown"
    return f"User ID: {sender_id}"
