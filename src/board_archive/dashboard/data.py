from __future__ import annotations

from pathlib import Path
from typing import List, Optional

import streamlit as st

from ..config import group_names, load_scopes
from ..io.archive_store import ArchiveStore, ScopeView


@st.cache_data(show_spinner=False)
def list_groups(groups_config: Path) -> List[str]:
    """
    Group names from groups-config.json, sorted alphabetically. Empty if the file is missing.
    """
    groups_config = Path(groups_config)
    if not groups_config.exists():
        return []
    return group_names(load_scopes(groups_config))


@st.cache_data(show_spinner=False)
def load_group_view(root_dir: Path, group: str, cache_bust: Optional[int] = None) -> ScopeView:
    return ArchiveStore(Path(root_dir)).load_group(group)
