from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from ..utils.time import parse_created_at


class MessageBody(BaseModel):
    plain: Optional[str] = None
    parsed: Optional[str] = None
    rich: Optional[str] = None

    def is_empty(self) -> bool:
        return not (self.plain or self.parsed or self.rich)

    def size(self) -> int:
        return sum(len(part or "") for part in (self.plain, self.parsed, self.rich))


class Message(BaseModel):
    # Required fields
    id: int

    # Optional linkage
    sender_id: Optional[int] = None
    replied_to_id: Optional[int] = None
    thread_id: Optional[int] = None
    created_at: Optional[str] = None

    # Content
    body: MessageBody = Field(default_factory=MessageBody)
    content_excerpt: Optional[str] = None

    # Populated only by the hierarchy builder
    children: List["Message"] = Field(default_factory=list)

    # Raw preservation
    raw: Optional[Dict[str, Any]] = None

    @property
    def is_stub(self) -> bool:
        return self.body.is_empty()

    @property
    def content_size(self) -> int:
        return self.body.size()

    @property
    def timestamp(self) -> datetime:
        return parse_created_at(self.created_at)


Message.model_rebuild()


class Reference(BaseModel):
    type: str = "unlabeled"  # "user" | "message" | "unlabeled"
    id: int
    full_name: Optional[str] = None
    raw: Dict[str, Any] = Field(default_factory=dict)

    @property
    def key(self) -> tuple:
        return (self.type, self.id)

    @property
    def is_stub(self) -> bool:
        return not any(v not in (None, "", [], {}) for k, v in self.raw.items() if k not in {"id", "type"})


class ScopeEntry(BaseModel):
    """
    One archived group as listed in groups-config.json.
    `last_message_id` is the delta checkpoint handed back to the fetch workflow; it is never interpreted here.
    """

    model_config = ConfigDict(populate_by_name=True)

    group_name: str = Field(alias="groupName")
    group_id: Optional[Union[int, str]] = Field(default=None, alias="groupId")
    last_message_id: Optional[Union[int, str]] = Field(default=None, alias="lastMessageId")
