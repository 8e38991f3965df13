"""CLI entrypoint."""

from __future__ import annotations

import argparse
from dataclasses import replace
from pathlib import Path
import sys

from attachment_store.config import AppConfig, load_config
from attachment_store.db.repo import Repository
from attachment_store.db.session import init_db, make_engine, make_session_factory
from attachment_store.errors import AttachmentStoreError
from attachment_store.pipeline.orchestrator import TREES, insert_attachment, run_cleanup
from attachment_store.scan.references import ReferenceScanner
from attachment_store.storage.cas import embed_markup
from attachment_store.util.format import format_bytes
from attachment_store.util.json import json_dumps_safe
from attachment_store.util.logging import configure_logging
from attachment_store.util.time import parse_datetime


def _build_config(base: AppConfig, args: argparse.Namespace) -> AppConfig:
    return replace(
        base,
        notes_dir=Path(args.notes_dir).expanduser() if args.notes_dir else base.notes_dir,
        journal_dir=Path(args.journal_dir).expanduser() if args.journal_dir else base.journal_dir,
        db_url=args.db_url or base.db_url,
        log_level=args.log_level or base.log_level,
    )


def _add_common(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--notes-dir", help="Notes tree override")
    parser.add_argument("--journal-dir", help="Journal tree override")
    parser.add_argument("--db-url", help="Run ledger database URL override")
    parser.add_argument("--log-level", help="Log level override")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log to stderr at the configured level")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="attachment-store")
    subparsers = parser.add_subparsers(dest="command", required=True)

    clean_parser = subparsers.add_parser("clean", help="Remove unused and duplicate images")
    clean_parser.add_argument("--dry-run", action="store_true", help="Report what would change without touching files")
    clean_parser.add_argument("--json", action="store_true", help="Print statistics as JSON")
    _add_common(clean_parser)

    insert_parser = subparsers.add_parser("insert", help="Store an image and print the markdown to embed")
    insert_parser.add_argument("file", help="Image file to insert, or - for stdin")
    insert_parser.add_argument("--tree", choices=TREES, default="notes", help="Tree to store the image in")
    insert_parser.add_argument("--base-name", default="image", help="Filename prefix")
    _add_common(insert_parser)

    refs_parser = subparsers.add_parser("refs", help="List attachment references")
    refs_parser.add_argument("--broken", action="store_true", help="Only show references to missing files")
    _add_common(refs_parser)

    history_parser = subparsers.add_parser("history", help="Show recorded cleanup runs")
    history_parser.add_argument("--since", help="Only show runs started after this datetime (ISO)")
    history_parser.add_argument("--limit", type=int, default=20, help="Max runs to show")
    _add_common(history_parser)

    return parser


def _print_stats(stats) -> None:
    verb = "would be " if stats.dry_run else ""
    print(f"Unused images {verb}deleted:    {stats.unused_deleted}")
    print(f"Duplicate images {verb}deleted: {stats.duplicates_deleted}")
    print(f"References {verb}updated:       {stats.references_updated}")
    print(f"Space {verb}freed:              {format_bytes(stats.bytes_freed)}")
    if stats.errors:
        print(f"Skipped {len(stats.errors)} file(s):")
        for error in stats.errors:
            print(f"  [{error.stage}] {error.path}: {error.message}")


def _command_clean(config: AppConfig, args: argparse.Namespace) -> int:
    stats = run_cleanup(config, dry_run=args.dry_run)
    if args.json:
        print(json_dumps_safe(stats, indent=2))
    else:
        _print_stats(stats)
    return 0


def _command_insert(config: AppConfig, args: argparse.Namespace) -> int:
    data = sys.stdin.buffer.read() if args.file == "-" else Path(args.file).read_bytes()
    filename = insert_attachment(config, data, tree=args.tree, base_name=args.base_name)
    if filename is None:
        print("No image data to insert", file=sys.stderr)
        return 1
    print(embed_markup(filename))
    return 0


def _command_refs(config: AppConfig, args: argparse.Namespace) -> int:
    for ref in ReferenceScanner(config.tree_roots):
        if args.broken and ref.resolved_path.exists():
            continue
        print(f"{ref.document}:{ref.line} {ref.raw_path}")
    return 0


def _command_history(config: AppConfig, args: argparse.Namespace) -> int:
    engine = make_engine(config.db_url)
    init_db(engine)
    session_factory = make_session_factory(engine=engine)
    with session_factory() as session:
        runs = Repository(session).recent_runs(since=parse_datetime(args.since), limit=args.limit)
        for run in runs:
            stats = run.stats or {}
            mode = " (dry run)" if run.dry_run else ""
            print(
                f"{run.started_at.isoformat(timespec='seconds')} {run.status}{mode}: "
                f"{stats.get('unused_deleted', 0)} unused, "
                f"{stats.get('duplicates_deleted', 0)} duplicates, "
                f"{stats.get('references_updated', 0)} references, "
                f"{format_bytes(stats.get('bytes_freed', 0))} freed"
            )
    return 0


COMMANDS = {
    "clean": _command_clean,
    "insert": _command_insert,
    "refs": _command_refs,
    "history": _command_history,
}


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    config = _build_config(load_config(), args)
    configure_logging(config.log_level, config.log_file, verbose=args.verbose)

    try:
        return COMMANDS[args.command](config, args)
    except (AttachmentStoreError, OSError, ValueError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
