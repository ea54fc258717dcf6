"""
SnifferDeck CLI — drive the sniffer lifecycle from a terminal.

Each command loads the current state from the control service, runs one
controller operation and prints the resulting rows.

Usage examples:
    snifferdeck list
    snifferdeck create --port 8080 --url http://example.com --name api
    snifferdeck start 8080
    snifferdeck export --out ./backup
    snifferdeck import ./backup/config.json --apply
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import List, Optional

from snifferdeck.base.config import get_config, setup_logging
from snifferdeck.base.errors import handle_error
from snifferdeck.control.editors import editors_for
from snifferdeck.control.guards import row_state
from snifferdeck.control.notify import NotificationLevel
from snifferdeck.control.sync import SyncController
from snifferdeck.data.codec import DirectoryFileSink
from snifferdeck.data.models import ConfigRow, PartialSnifferConfig, RowField

logger = logging.getLogger(__name__)


class ConsoleNotifier:
    def notify(self, message: str, level: NotificationLevel) -> None:
        if level is NotificationLevel.ERROR:
            print(f"❌ {message}", file=sys.stderr)
        else:
            print(f"✅ {message}")


def print_rows(rows: List[ConfigRow]) -> None:
    if not rows:
        print("(no sniffers)")
        return
    print(f"{'PORT':<7}{'STATE':<13}{'NAME':<20}DOWNSTREAM")
    for row in rows:
        port = row.config.port if row.config.port is not None else "-"
        url = row.config.downstream_url or "-"
        print(f"{port!s:<7}{row_state(row).value:<13}{row.display_name:<20}{url}")


async def _edit(controller: SyncController, args: argparse.Namespace) -> bool:
    store = controller.store
    idx = store.find_by_port(args.target)
    if idx is None:
        print(f"❌ No sniffer on port {args.target}", file=sys.stderr)
        return False
    key = store.get(idx).key

    # First press enters edit mode, second press saves
    if not await controller.edit(idx):
        return False
    values = {
        RowField.PORT: args.port,
        RowField.DOWNSTREAM_URL: args.url,
        RowField.NAME: args.name,
    }
    for editor in editors_for(store, key):
        if values[editor.field] is not None:
            editor.set(values[editor.field])

    idx = store.index_of(key)
    if idx is None:
        return False
    if not store.get(idx).config.is_complete:
        print(
            f"❌ Cannot save port {args.target}: port must be a whole number "
            "in 1..65535 and the downstream URL must be set",
            file=sys.stderr,
        )
        return False
    return await controller.edit(idx)


async def _import(controller: SyncController, args: argparse.Namespace) -> bool:
    if not controller.import_file(args.file):
        return False
    if not args.apply:
        return True

    # Each create reloads and replaces the drafts, so take the configs first
    configs = [row.config for row in controller.store.snapshot()]
    results = [await controller.create(config) for config in configs]
    return all(results)


async def run(args: argparse.Namespace) -> int:
    cfg = get_config()
    setup_logging(cfg)
    controller = SyncController.from_config(cfg, notifier=ConsoleNotifier())
    if args.command == "export" and args.out:
        controller.file_sink = DirectoryFileSink(args.out)

    try:
        if args.command == "import":
            ok = await _import(controller, args)
        else:
            # reload, not bootstrap(): one-shot commands never show a blank draft
            ok = await controller.reload()
            if args.command == "create":
                draft = PartialSnifferConfig(port=args.port, downstream_url=args.url, name=args.name)
                ok = await controller.create(draft)
            elif args.command == "edit":
                ok = await _edit(controller, args)
            elif args.command == "start":
                ok = await controller.start(args.port)
            elif args.command == "stop":
                ok = await controller.stop(args.port)
            elif args.command == "delete":
                idx = controller.store.find_by_port(args.port)
                ok = idx is not None and await controller.delete(idx)
            elif args.command == "export":
                ok = ok and controller.export() is not None

        print_rows(controller.store.snapshot())
    finally:
        await controller.aclose()
    return 0 if ok else 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="snifferdeck", description="Sniffer configuration deck")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("list", help="Show every sniffer known to the control service")

    create = sub.add_parser("create", help="Create a sniffer")
    create.add_argument("--port", type=int, required=True)
    create.add_argument("--url", required=True, help="Downstream URL to forward to")
    create.add_argument("--name", default="")

    edit = sub.add_parser("edit", help="Change a stopped sniffer")
    edit.add_argument("target", type=int, metavar="PORT")
    edit.add_argument("--port", help="New port")
    edit.add_argument("--url", help="New downstream URL")
    edit.add_argument("--name", help="New display name")

    for name, text in (("start", "Start sniffing"), ("stop", "Stop sniffing"), ("delete", "Delete a stopped sniffer")):
        cmd = sub.add_parser(name, help=text)
        cmd.add_argument("port", type=int)

    export = sub.add_parser("export", help="Write config.json")
    export.add_argument("--out", type=Path, help="Target directory (default: SNIFFERDECK_EXPORT_DIR or cwd)")

    imp = sub.add_parser("import", help="Load a config.json as drafts")
    imp.add_argument("file", type=Path)
    imp.add_argument("--apply", action="store_true", help="Create every imported entry on the control service")

    return parser


def main(argv: Optional[List[str]] = None) -> None:
    args = build_parser().parse_args(argv)
    try:
        code = asyncio.run(run(args))
    except Exception as e:
        err = handle_error(e, context=f"snifferdeck {args.command}")
        logger.debug(err.to_json())
        print(f"❌ {err}", file=sys.stderr)
        code = 1
    sys.exit(code)


if __name__ == "__main__":
    main()
