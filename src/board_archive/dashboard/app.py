from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import List, Optional

import streamlit as st
from dotenv import load_dotenv

from board_archive.config import ConfigError, load_config
from board_archive.dashboard.data import list_groups, load_group_view
from board_archive.dashboard.ui import render_search, render_summary, render_threads
from board_archive.io.archive_store import ScopeError, ScopeView

load_dotenv()


def _parse_args(argv: List[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(add_help=False)
    parser.add_argument("--config", type=str, default="config.yml")
    # Allow streamlit to pass unknown flags; we only parse after '--'
    return parser.parse_known_intermixed_args(argv)[0]


def _sidebar_group_selector(groups: List[str]) -> Optional[str]:
    st.sidebar.header("Groups")
    if not groups:
        st.sidebar.error("No groups found")
        st.stop()
    current = st.query_params.get("group")
    idx = groups.index(current) if current in groups else None
    group = st.sidebar.radio("Group", options=groups, index=idx)
    if group and group != current:
        st.query_params["group"] = group
    return group


def _load_view(root_dir: Path, group: str) -> Optional[ScopeView]:
    try:
        return load_group_view(root_dir, group, int(st.session_state.get("data_version", 0)))
    except ScopeError as e:
        st.error(f"Failed to load messages for {group}: {e}")
        return None


def main() -> None:
    args = _parse_args(sys.argv[1:])
    st.set_page_config(page_title="Board Archive", layout="wide")
    try:
        cfg = load_config(Path(args.config))
    except (FileNotFoundError, ConfigError) as e:
        st.error(str(e))
        st.stop()

    try:
        groups = list_groups(Path(cfg["archive"]["groups_config"]))
    except ConfigError as e:
        st.error(f"Error loading groups: {e}")
        st.stop()
    group = _sidebar_group_selector(groups)
    if st.sidebar.button("Reload data"):
        st.session_state["data_version"] = int(st.session_state.get("data_version", 0)) + 1

    if not group:
        st.title("Board Archive")
        st.info("Please select a group to view messages")
        return

    st.title(group)
    view = _load_view(Path(cfg["archive"]["root_dir"]), group)
    if view is None:
        return
    render_summary(view)
    render_search(view)
    render_threads(view)


if __name__ == "__main__":
    main()
