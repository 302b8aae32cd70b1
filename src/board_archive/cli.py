from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Any, Dict, List

from dotenv import load_dotenv
from rich.console import Console
from rich.table import Table

from .config import ConfigError, find_scope, group_names, load_config, load_scopes, save_scopes, update_checkpoint
from .export.markdown import MarkdownExporter
from .export.search import count_label, search_forest
from .export.traversal import TreeExporter
from .io.archive_store import ArchiveStore, ScopeError, ScopeView, load_thread_export
from .schemas.messages import ScopeEntry
from .utils.time import utc_now_iso

load_dotenv()  # automatically load variables from .env if present
console = Console()


def _load_config_or_exit(config_path: Path) -> Dict[str, Any]:
    try:
        return load_config(config_path)
    except FileNotFoundError as e:
        console.print(f"[red]Error:[/red] {e}")
        sys.exit(2)
    except ConfigError as e:
        console.print(f"[red]Config error:[/red] {e}")
        sys.exit(2)


def _load_scopes_or_exit(cfg: Dict[str, Any]) -> List[ScopeEntry]:
    path = Path(cfg["archive"]["groups_config"])
    try:
        return load_scopes(path)
    except FileNotFoundError as e:
        console.print(f"[red]Error:[/red] {e}")
        sys.exit(2)
    except ConfigError as e:
        console.print(f"[red]Config error:[/red] {e}")
        sys.exit(2)


def _store(cfg: Dict[str, Any]) -> ArchiveStore:
    return ArchiveStore(Path(cfg["archive"]["root_dir"]))


def cmd_groups(args: argparse.Namespace) -> int:
    cfg = _load_config_or_exit(Path(args.config))
    scopes = _load_scopes_or_exit(cfg)
    if not scopes:
        console.print("[yellow]No groups found[/yellow]")
        return 0
    for name in group_names(scopes):
        scope = find_scope(scopes, name)
        console.print(f"[bold]{name}[/bold]  id={scope.group_id or '-'}  lastMessageId={scope.last_message_id or '-'}")
    return 0


def cmd_merge(args: argparse.Namespace) -> int:
    cfg = _load_config_or_exit(Path(args.config))
    scopes = _load_scopes_or_exit(cfg)
    store = _store(cfg)

    if args.all:
        targets = [find_scope(scopes, name) for name in group_names(scopes)]
    else:
        scope = find_scope(scopes, args.group) or ScopeEntry(group_name=args.group)
        targets = [scope]

    failed = 0
    for scope in targets:
        try:
            report = store.merge_group(scope.group_name, checkpoint=scope.last_message_id)
        except ScopeError as e:
            console.print(f"[red]Merge failed for {e.scope}:[/red] {e}")
            failed += 1
            continue
        counts = report.merge.counts
        console.print(
            f"[green]{scope.group_name}[/green]: messages={counts['messages']} references={counts['references']} "
            f"replaced={counts['replaced']} duplicates={counts['duplicates']} discarded={counts['discarded']} "
            f"batches_consumed={len(report.consumed)}"
        )
        if report.merge.checkpoint is not None:
            console.print(f"[bold]Checkpoint:[/bold] lastMessageId={report.merge.checkpoint}")
    return 1 if failed else 0


def _load_view(args: argparse.Namespace, cfg: Dict[str, Any]) -> ScopeView:
    if getattr(args, "thread", None):
        return load_thread_export(Path(args.thread))
    return _store(cfg).load_group(args.group)


def cmd_export(args: argparse.Namespace) -> int:
    cfg = _load_config_or_exit(Path(args.config))
    try:
        view = _load_view(args, cfg)
    except ScopeError as e:
        console.print(f"[red]Export failed for {e.scope}:[/red] {e}")
        return 1

    scope_id = None
    if args.group:
        scopes = _load_scopes_or_exit(cfg)
        scope = find_scope(scopes, args.group)
        scope_id = str(scope.group_id) if scope and scope.group_id is not None else None

    exporter: TreeExporter = MarkdownExporter(scope_name=view.scope, scope_id=scope_id, generated_at=utc_now_iso())
    text = exporter.export(view.forest, view.user_map)

    out_path = Path(args.output) if args.output else Path(cfg["export"]["output_dir"]) / f"{view.scope}.md"
    try:
        out_path.parent.mkdir(parents=True, exist_ok=True)
        out_path.write_text(text, encoding="utf-8")
    except OSError as e:
        console.print(f"[red]Failed to write export:[/red] {e}")
        return 1

    console.print(f"[bold]{view.forest.summary()}[/bold]")
    console.print(f"[bold]Wrote:[/bold] {out_path}")
    return 0


def cmd_summary(args: argparse.Namespace) -> int:
    cfg = _load_config_or_exit(Path(args.config))
    try:
        view = _load_view(args, cfg)
    except ScopeError as e:
        console.print(f"[red]Failed to load {e.scope}:[/red] {e}")
        return 1
    console.print(view.forest.summary())
    if view.counts.get("discarded"):
        console.print(f"[yellow]Discarded records:[/yellow] {view.counts['discarded']}")
    return 0


def cmd_search(args: argparse.Namespace) -> int:
    cfg = _load_config_or_exit(Path(args.config))
    try:
        view = _load_view(args, cfg)
    except ScopeError as e:
        console.print(f"[red]Failed to load {e.scope}:[/red] {e}")
        return 1

    hits = search_forest(view.forest, args.term, view.user_map)
    console.print(count_label(len(hits)))
    if hits:
        table = Table("ID", "Thread", "Depth", "Author", "Date", "Snippet")
        for hit in hits:
            table.add_row(str(hit.message_id), str(hit.root_id), str(hit.depth), hit.author, hit.date, hit.snippet)
        console.print(table)
    return 0


def cmd_checkpoint(args: argparse.Namespace) -> int:
    cfg = _load_config_or_exit(Path(args.config))
    scopes = _load_scopes_or_exit(cfg)
    try:
        updated = update_checkpoint(scopes, args.group, args.last_message_id)
    except ConfigError as e:
        console.print(f"[red]Config error:[/red] {e}")
        return 2
    save_scopes(Path(cfg["archive"]["groups_config"]), updated)
    console.print(f"[green]{args.group}[/green]: lastMessageId={args.last_message_id}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="board-archive",
        description="Merge, rebuild and export archived discussion-board threads.",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    def _add_config(p: argparse.ArgumentParser) -> None:
        p.add_argument("--config", type=str, default="config.yml", help="Path to config.yml")

    def _add_source(p: argparse.ArgumentParser) -> None:
        src = p.add_mutually_exclusive_group(required=True)
        src.add_argument("--group", type=str, help="Group name (archive subdirectory)")
        src.add_argument("--thread", type=str, help="Per-thread export JSON ({messages, references})")

    p_groups = sub.add_parser("groups", help="List configured groups")
    _add_config(p_groups)
    p_groups.set_defaults(func=cmd_groups)

    p_merge = sub.add_parser("merge", help="Fold numbered batch files into the canonical group files")
    _add_config(p_merge)
    target = p_merge.add_mutually_exclusive_group(required=True)
    target.add_argument("--group", type=str, help="Group name to merge")
    target.add_argument("--all", action="store_true", help="Merge every configured group")
    p_merge.set_defaults(func=cmd_merge)

    p_export = sub.add_parser("export", help="Export a group or thread as Markdown")
    _add_config(p_export)
    _add_source(p_export)
    p_export.add_argument("--output", type=str, help="Output .md path")
    p_export.set_defaults(func=cmd_export)

    p_summary = sub.add_parser("summary", help="Print thread/message counts")
    _add_config(p_summary)
    _add_source(p_summary)
    p_summary.set_defaults(func=cmd_summary)

    p_search = sub.add_parser("search", help="Search message text")
    _add_config(p_search)
    _add_source(p_search)
    p_search.add_argument("term", type=str, help="Text to look for (case-insensitive)")
    p_search.set_defaults(func=cmd_search)

    p_ckpt = sub.add_parser("checkpoint", help="Set a group's lastMessageId in the scope config")
    _add_config(p_ckpt)
    p_ckpt.add_argument("--group", type=str, required=True)
    p_ckpt.add_argument("--last-message-id", type=str, required=True)
    p_ckpt.set_defaults(func=cmd_checkpoint)

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        return args.func(args)
    except SystemExit:
        raise
    except Exception as e:
        console.print(f"[red]Unexpected error:[/red] {e}")
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
