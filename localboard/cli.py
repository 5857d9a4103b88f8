#!/usr/bin/env python3
"""
localboard command line.

Usage:
    localboard serve [--host 127.0.0.1] [--port 3000]
    localboard backup              # snapshot the store now
    localboard backups             # list snapshots, newest first
    localboard cleanup --keep 7    # delete all but the newest N snapshots
    localboard check               # PRAGMA integrity_check
    localboard verify              # end-to-end smoke test on a throwaway store

Global options:
    --config PATH     YAML config (overrides LOCALBOARD_CONFIG)
    --data-dir DIR    data directory (overrides config and LOCALBOARD_DATA_DIR)
"""
import argparse
import logging
import sys
import tempfile
from pathlib import Path

from .app import KanbanApp
from .commands import invoke
from .config import Config


def _call(kanban: KanbanApp, name: str, payload=None):
    result = invoke(kanban, name, payload)
    if not result.ok:
        raise SystemExit(f"❌ {name}: {result.error}")
    return result.value


def cmd_serve(kanban: KanbanApp, args) -> int:
    from .server import serve

    host = args.host or kanban.config.host
    port = args.port or kanban.config.port
    print(f"""
╔═══════════════════════════════════════╗
║  localboard                           ║
╠═══════════════════════════════════════╣
║  URL:  http://{host}:{port:<20}║
║  DB:   {str(kanban.config.db_path):<31}║
╚═══════════════════════════════════════╝
""")
    serve(kanban, host, port)
    return 0


def cmd_backup(kanban: KanbanApp, args) -> int:
    print(_call(kanban, "createBackup"))
    return 0


def cmd_backups(kanban: KanbanApp, args) -> int:
    backups = _call(kanban, "listBackups")
    if not backups:
        print("No backups.")
    for b in backups:
        print(f"{b['filename']:<48} {b['size']:>10}  {b['path']}")
    return 0


def cmd_cleanup(kanban: KanbanApp, args) -> int:
    deleted = _call(kanban, "cleanupOldBackups", {"keepCount": args.keep})
    print(f"Deleted {deleted} backup(s)")
    return 0


def cmd_check(kanban: KanbanApp, args) -> int:
    ok = _call(kanban, "checkIntegrity")
    print("✅ integrity ok" if ok else "❌ integrity check failed")
    return 0 if ok else 1


def run_verify() -> int:
    """Walk the board → columns → cards → move → cascade path on a temp store."""
    print("=" * 60)
    print("localboard verification")
    print("=" * 60)

    with tempfile.TemporaryDirectory(prefix="localboard-verify-") as tmp:
        config = Config(data_dir=tmp)
        with KanbanApp.open(config) as kanban:
            print("\n[1/5] Creating board and columns...")
            board = _call(kanban, "createBoard", {"input": {"name": "My Project"}})
            todo = _call(kanban, "createColumn", {"input": {"boardId": board["id"], "name": "To Do"}})
            doing = _call(kanban, "createColumn", {"input": {"boardId": board["id"], "name": "In Progress"}})
            print(f"✅ {todo['name']} (order {todo['order']}), {doing['name']} (order {doing['order']})")

            print("\n[2/5] Creating cards...")
            first = _call(kanban, "createCard", {"input": {"columnId": todo["id"], "title": "Task 1"}})
            _call(kanban, "createCard", {"input": {"columnId": todo["id"], "title": "Task 2"}})
            print("✅ 2 cards in To Do")

            print("\n[3/5] Moving a card...")
            _call(kanban, "moveCard", {"id": first["id"], "input": {"columnId": doing["id"], "order": 1}})
            left = _call(kanban, "listCardsForColumn", {"columnId": todo["id"]})
            right = _call(kanban, "listCardsForColumn", {"columnId": doing["id"]})
            if len(left) != 1 or len(right) != 1:
                print(f"❌ expected 1/1 cards, got {len(left)}/{len(right)}")
                return 1
            print("✅ To Do: 1 card, In Progress: 1 card")

            print("\n[4/5] Deleting board...")
            _call(kanban, "deleteBoard", {"id": board["id"]})
            remaining = _call(kanban, "listCardsForBoard", {"boardId": board["id"]})
            if remaining or _call(kanban, "getCard", {"id": first["id"]}) is not None:
                print("❌ cascade delete left cards behind")
                return 1
            print("✅ columns and cards removed")

            print("\n[5/5] Backup and integrity...")
            path = _call(kanban, "createBackup")
            ok = _call(kanban, "checkIntegrity")
            print(f"✅ backup {path}, integrity {'ok' if ok else 'FAILED'}")

    print("\n" + "=" * 60)
    print("✅ ALL CHECKS PASSED")
    print("=" * 60)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="localboard", description="Local-first kanban board store")
    parser.add_argument("--config", help="Path to config.yaml")
    parser.add_argument("--data-dir", help="Directory holding kanban.db and backups/")
    sub = parser.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve", help="Run the HTTP command surface")
    serve.add_argument("--host", help="Bind address (use 0.0.0.0 to expose on network)")
    serve.add_argument("--port", type=int)

    sub.add_parser("backup", help="Snapshot the database now")
    sub.add_parser("backups", help="List snapshots, newest first")

    cleanup = sub.add_parser("cleanup", help="Delete all but the newest snapshots")
    cleanup.add_argument("--keep", type=int, default=7)

    sub.add_parser("check", help="Run the SQLite integrity check")
    sub.add_parser("verify", help="End-to-end smoke test on a temporary store")
    return parser


COMMANDS = {
    "serve": cmd_serve,
    "backup": cmd_backup,
    "backups": cmd_backups,
    "cleanup": cmd_cleanup,
    "check": cmd_check,
}


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)

    config = Config.load(args.config)
    if args.data_dir:
        config.data_dir = str(Path(args.data_dir).expanduser())

    logging.basicConfig(
        level=getattr(logging, str(config.log_level).upper(), logging.INFO),
        format="%(asctime)s [localboard] %(levelname)s: %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )

    if args.command == "verify":
        return run_verify()

    with KanbanApp.open(config) as kanban:
        return COMMANDS[args.command](kanban, args)


if __name__ == "__main__":
    sys.exit(main())
