from __future__ import annotations

from typing import Any, Dict, List

import pandas as pd
import streamlit as st

from ..export.search import SearchHit, count_label, search_forest
from ..export.text import message_date, message_text
from ..export.traversal import ForestWalk
from ..io.archive_store import ScopeView
from ..pipeline.identity import resolve_user_name
from ..schemas.messages import Message

MAX_INDENT = 6


def _replies_key(msg: Message) -> str:
    return f"replies-{msg.id}"


def _is_expanded(msg: Message) -> bool:
    return bool(st.session_state.get(_replies_key(msg)))


def render_summary(view: ScopeView) -> None:
    forest = view.forest
    cols = st.columns(3)
    cols[0].metric("Threads", f"{forest.thread_count}")
    cols[1].metric("Messages", f"{forest.message_count}")
    cols[2].metric("Missing parents", f"{forest.missing_parent_count}")
    st.caption(forest.summary())


def render_threads(view: ScopeView) -> None:
    """
    Render threads newest first. Replies stay hidden until their parent's toggle is switched on.
    """
    if not view.forest.roots:
        st.info("No messages in this group.")
        return
    for step in ForestWalk(view.forest, expand=_is_expanded):
        msg = step.message
        if step.depth:
            _, body = st.columns([min(step.depth, MAX_INDENT), 24])
        else:
            st.divider()
            body = st.container()
        with body:
            st.markdown(f"**{resolve_user_name(msg.sender_id, view.user_map)}** · {message_date(msg)}")
            st.text(message_text(msg))
            if msg.children:
                st.toggle(f"Replies ({len(msg.children)})", key=_replies_key(msg))


def _hits_to_dataframe(hits: List[SearchHit]) -> pd.DataFrame:
    rows: List[Dict[str, Any]] = [
        {
            "message_id": str(hit.message_id),
            "thread": str(hit.root_id),
            "depth": hit.depth,
            "author": hit.author,
            "date": hit.date,
            "snippet": hit.snippet,
        }
        for hit in hits
    ]
    return pd.DataFrame(rows, columns=["message_id", "thread", "depth", "author", "date", "snippet"])


def render_search(view: ScopeView) -> None:
    term = st.text_input("Search messages", value=st.session_state.get("search_term", ""))
    st.session_state["search_term"] = term
    if not term.strip():
        return
    hits = search_forest(view.forest, term, view.user_map)
    st.caption(count_label(len(hits)))
    if hits:
        st.dataframe(_hits_to_dataframe(hits), hide_index=True, use_container_width=True)
