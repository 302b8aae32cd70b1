from __future__ import annotations

import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from ..pipeline.hierarchy import Forest, build_forest
from ..pipeline.identity import build_user_map
from ..pipeline.reconciliation import GroupMerge, merge_group_batches, reconcile_scope
from ..utils.json_utils import read_json, value_list, write_json

MESSAGES = "Messages"
REFERENCES = "References"


class ScopeError(Exception):
    """A structural failure (missing directory/file, unreadable JSON) for one scope."""

    def __init__(self, scope: str, message: str) -> None:
        super().__init__(f"[{scope}] {message}")
        self.scope = scope


class MergeError(ScopeError):
    pass


@dataclass
class ScopeView:
    scope: str
    forest: Forest
    user_map: Dict[int, str]
    counts: Dict[str, int] = field(default_factory=dict)


@dataclass
class MergeReport:
    scope: str
    merge: GroupMerge
    consumed: List[Path]
    written: List[Path]


def _read_values(path: Path, scope: str) -> List[Any]:
    try:
        return value_list(read_json(path))
    except FileNotFoundError as e:
        raise ScopeError(scope, f"File not found: {path}") from e
    except ValueError as e:
        raise ScopeError(scope, f"Failed to parse {path.name}: {e}") from e
    except OSError as e:
        raise ScopeError(scope, f"Failed to read {path.name}: {e}") from e


def build_view(scope: str, message_raws: List[Any], reference_raws: List[Any]) -> ScopeView:
    result, refs = reconcile_scope(message_raws, reference_raws)
    forest = build_forest(result.messages)
    counts = dict(result.counts)
    counts["missing_parents"] = forest.missing_parent_count
    return ScopeView(scope=scope, forest=forest, user_map=build_user_map(refs), counts=counts)


class ArchiveStore:
    """
    Directory layout, one folder per group:
      <root>/<group>/<group> Messages.json       canonical messages
      <root>/<group>/<group> References.json     canonical references
      <root>/<group>/<group> Messages <n>.json   partial batches from the fetch workflow
    """

    def __init__(self, root: Path) -> None:
        self.root = Path(root)

    def scope_dir(self, group: str) -> Path:
        d = self.root / group
        if not d.is_dir():
            raise ScopeError(group, f"Scope directory not found: {d}")
        return d

    def canonical_path(self, group: str, kind: str) -> Path:
        return self.root / group / f"{group} {kind}.json"

    def numbered_batches(self, group: str, kind: str) -> List[Path]:
        pattern = re.compile(rf"^{re.escape(group)} {kind} (\d+)\.json$")
        d = self.scope_dir(group)
        try:
            children = list(d.iterdir())
        except OSError as e:
            raise ScopeError(group, f"Failed to list {d}: {e}") from e
        found: List[Tuple[int, Path]] = []
        for child in children:
            m = pattern.match(child.name)
            if m and child.is_file():
                found.append((int(m.group(1)), child))
        found.sort()
        return [p for _, p in found]

    def _batches(self, group: str, kind: str) -> Tuple[List[List[Any]], List[Path]]:
        batches: List[List[Any]] = []
        canonical = self.canonical_path(group, kind)
        if canonical.exists():
            batches.append(_read_values(canonical, group))
        numbered = self.numbered_batches(group, kind)
        for path in numbered:
            batches.append(_read_values(path, group))
        return batches, numbered

    def merge_group(self, group: str, checkpoint: Any = None) -> MergeReport:
        """
        Fold numbered batches into the canonical files.
        Sequence: read everything, reconcile, write canonical files, then remove the consumed batches.
        Nothing is removed unless both canonical files were written.
        """
        self.scope_dir(group)
        message_batches, message_files = self._batches(group, MESSAGES)
        reference_batches, reference_files = self._batches(group, REFERENCES)
        if not message_batches:
            raise ScopeError(group, f"No message files found in {self.root / group}")

        merge = merge_group_batches(message_batches, reference_batches, checkpoint=checkpoint)

        written: List[Path] = []
        try:
            for kind, doc in ((MESSAGES, merge.messages_doc), (REFERENCES, merge.references_doc)):
                if kind == REFERENCES and not reference_batches:
                    continue
                path = self.canonical_path(group, kind)
                write_json(path, doc)
                written.append(path)
        except OSError as e:
            raise MergeError(group, f"Failed to write canonical files: {e}") from e

        consumed = message_files + reference_files
        for path in consumed:
            try:
                path.unlink()
            except FileNotFoundError:
                continue
            except OSError as e:
                raise MergeError(group, f"Merged, but failed to remove {path.name}: {e}") from e

        return MergeReport(scope=group, merge=merge, consumed=consumed, written=written)

    def load_group(self, group: str) -> ScopeView:
        self.scope_dir(group)
        messages_path = self.canonical_path(group, MESSAGES)
        if not messages_path.exists():
            raise ScopeError(group, f"Messages file not found: {messages_path}")
        message_raws = _read_values(messages_path, group)

        references_path = self.canonical_path(group, REFERENCES)
        reference_raws: List[Any] = []
        if references_path.exists():
            reference_raws = _read_values(references_path, group)
        return build_view(group, message_raws, reference_raws)


def load_thread_export(path: Path, scope: Optional[str] = None) -> ScopeView:
    """Per-thread export input: {"messages": [...], "references": [...]}."""
    path = Path(path)
    scope = scope or path.stem
    try:
        doc = read_json(path)
    except FileNotFoundError as e:
        raise ScopeError(scope, f"File not found: {path}") from e
    except ValueError as e:
        raise ScopeError(scope, f"Failed to parse {path.name}: {e}") from e
    except OSError as e:
        raise ScopeError(scope, f"Failed to read {path.name}: {e}") from e
    if not isinstance(doc, dict) or not isinstance(doc.get("messages"), list):
        raise ScopeError(scope, f"{path.name} must be an object with a 'messages' list")
    refs = doc.get("references")
    return build_view(scope, doc["messages"], refs if isinstance(refs, list) else [])
