from __future__ import annotations

import re
from typing import Optional

from ..schemas.messages import Message
from ..utils.time import format_utc

NO_CONTENT = "[No content]"

_BR_RE = re.compile(r"<br\s*/?>", re.IGNORECASE)
_TAG_RE = re.compile(r"<[^>]+>")

# &amp; last so "&amp;lt;" decodes to "&lt;" and not "<"
_ENTITIES = (("&lt;", "<"), ("&gt;", ">"), ("&quot;", '"'), ("&amp;", "&"))


def strip_rich_text(html: Optional[str]) -> str:
    """Tags removed, <br> as line breaks. Leading line breaks are kept; trailing whitespace is dropped."""
    if not html:
        return ""
    text = _BR_RE.sub("\n", html)
    text = _TAG_RE.sub("", text)
    for entity, char in _ENTITIES:
        text = text.replace(entity, char)
    return text.lstrip(" \t").rstrip()


def message_text(msg: Message) -> str:
    """
    Display text for a message: plain, then parsed, then rich (tags stripped), then the excerpt.
    """
    body = msg.body
    if body.plain:
        return body.plain
    if body.parsed:
        return body.parsed
    if body.rich:
        rich = strip_rich_text(body.rich)
        if rich.strip():
            return rich
    if msg.content_excerpt:
        return msg.content_excerpt
    return NO_CONTENT


def message_date(msg: Message) -> str:
    return format_utc(msg.created_at)
