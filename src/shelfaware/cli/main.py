from __future__ import annotations

import argparse
import asyncio
import json
import os
import sys
from typing import Sequence

from .. import config
from ..errors import ProductValidationError
from ..logging import get_logger, set_level
from ..notifier.expiry import SESSION_USER_KEY
from ..paths import expand_abs
from ..service import InventoryService, build_notifier, scan_image, scan_text
from ..store.db import InventoryDatabase

LOG = get_logger("cli-main")


def _open_db(ns: argparse.Namespace) -> InventoryDatabase:
    if ns.db:
        return InventoryDatabase(db_path=expand_abs(ns.db))
    return InventoryDatabase(root_dir=os.getcwd())


def _add_extract_cli(subparsers: argparse._SubParsersAction) -> None:
    extract_cmd = subparsers.add_parser("extract", help="Extract an expiry date from label text or a label photo.")
    src = extract_cmd.add_mutually_exclusive_group(required=True)
    src.add_argument("--text", help="Recognized label text")
    src.add_argument("--image", help="Path to a label photo (OCR via Tesseract)")
    extract_cmd.add_argument(
        "--keep-past",
        action="store_true",
        help="Keep dates before today when scanning an image",
    )

    def _extract(ns: argparse.Namespace) -> int:
        if ns.image:
            result = scan_image(
                expand_abs(ns.image),
                future_only=not ns.keep_past,
                tesseract_cmd=config.load_tesseract_cmd(os.getcwd()),
            )
        else:
            result = scan_text(ns.text)
        print(json.dumps(result.to_dict(), ensure_ascii=False))
        return 0 if result.expiry_date else 1

    extract_cmd.set_defaults(handler=_extract)


def _add_products_cli(subparsers: argparse._SubParsersAction) -> None:
    products = subparsers.add_parser("products", help="Add or list tracked products.")
    products_sub = products.add_subparsers(dest="products_cmd", required=True)

    add = products_sub.add_parser("add", help="Add a product")
    add.add_argument("--user", required=True)
    add.add_argument("--name", required=True)
    add.add_argument("--category", required=True)
    add.add_argument("--custom-category")
    date_src = add.add_mutually_exclusive_group(required=True)
    date_src.add_argument("--expiry-date", help="YYYY-MM-DD")
    date_src.add_argument("--from-text", help="Label text to extract the expiry date from")
    add.add_argument("--reminder-days", type=int)

    def _add(ns: argparse.Namespace) -> int:
        svc = InventoryService(_open_db(ns), dotenv_dir=os.getcwd())
        expiry = ns.expiry_date
        if ns.from_text is not None:
            expiry = scan_text(ns.from_text).expiry_date
            if expiry is None:
                LOG.error("No expiry date found in the given text.")
                return 1
        try:
            product = svc.add_product(
                ns.user,
                name=ns.name,
                category=ns.category,
                expiry_date=expiry,
                reminder_days=ns.reminder_days,
                custom_category=ns.custom_category,
            )
        except ProductValidationError as exc:
            for field, message in sorted(exc.errors.items()):
                LOG.error(f"{field}: {message}")
            return 2
        print(json.dumps(product.to_dict(), ensure_ascii=False))
        return 0

    add.set_defaults(handler=_add)

    ls = products_sub.add_parser("list", help="List products of a user")
    ls.add_argument("--user", required=True)
    ls.add_argument("--status", choices=["all", "expired", "expiring_soon"], default="all")

    def _list(ns: argparse.Namespace) -> int:
        svc = InventoryService(_open_db(ns), dotenv_dir=os.getcwd())
        for product in svc.list_products(ns.user, status=ns.status):
            print(json.dumps(product.to_dict(), ensure_ascii=False))
        return 0

    ls.set_defaults(handler=_list)


def _add_notifier_cli(subparsers: argparse._SubParsersAction) -> None:
    check = subparsers.add_parser("check", help="Run one expiry check for a user.")
    check.add_argument("--user", required=True)

    def _check(ns: argparse.Namespace) -> int:
        notifier = build_notifier(_open_db(ns), dotenv_dir=os.getcwd())
        created = asyncio.run(notifier.check_expiring_products(ns.user))
        for record in created:
            print(json.dumps(record.to_dict(), ensure_ascii=False))
        return 0

    check.set_defaults(handler=_check)

    watch = subparsers.add_parser("watch", help="Check now, then keep checking on a fixed interval.")
    watch.add_argument("--user", help="User to watch (defaults to the last session user)")
    watch.add_argument("--interval-hours", type=float)

    def _watch(ns: argparse.Namespace) -> int:
        db = _open_db(ns)
        user_id = ns.user or db.get_setting(SESSION_USER_KEY)
        if not user_id:
            LOG.error("No --user given and no previous session user stored.")
            return 2
        notifier = build_notifier(db, dotenv_dir=os.getcwd(), interval_hours=ns.interval_hours)

        async def _serve() -> None:
            if not await notifier.start(user_id):
                return
            LOG.info(f"Watching user={user_id} every {notifier.interval_hours}h. Press Ctrl+C to stop.")
            try:
                await asyncio.Event().wait()
            finally:
                notifier.stop()

        try:
            asyncio.run(_serve())
        except KeyboardInterrupt:
            LOG.info("Watch mode interrupted by user. Exiting.")
        return 0

    watch.set_defaults(handler=_watch)


def _add_db_cli(subparsers: argparse._SubParsersAction) -> None:
    db_cmd = subparsers.add_parser("db", help="Inventory database utilities.")
    db_sub = db_cmd.add_subparsers(dest="db_cmd", required=True)
    init = db_sub.add_parser("init", help="Create/ensure the inventory DB schema exists")

    def _init(ns: argparse.Namespace) -> int:
        db = _open_db(ns)
        LOG.info(f"Inventory DB ready at: {db.db_path}")
        print(db.db_path)
        return 0

    init.set_defaults(handler=_init)


def _add_serve_cli(subparsers: argparse._SubParsersAction) -> None:
    serve = subparsers.add_parser("serve", help="Run the JSON API.")
    serve.add_argument("--host", default="127.0.0.1")
    serve.add_argument("--port", type=int, default=8001)
    serve.add_argument("--log-level", default="info")
    serve.add_argument(
        "--allow-origin",
        action="append",
        dest="allow_origins",
        help="Allowed CORS origin (can be provided multiple times, use '*' for any).",
    )

    def _serve(ns: argparse.Namespace) -> int:
        from ..api import create_app
        import uvicorn

        app = create_app(root_dir=os.getcwd(), db=_open_db(ns), allow_origins=ns.allow_origins)
        uvicorn.run(app, host=ns.host, port=ns.port, log_level=ns.log_level)
        return 0

    serve.set_defaults(handler=_serve)


def main(argv: Sequence[str] | None = None) -> int:
    provided = list(argv) if argv is not None else sys.argv[1:]
    LOG.debug(f"CLI invoked with arguments: {provided}")

    parser = argparse.ArgumentParser(
        prog="shelfaware",
        description="Expiry-date extraction and expiry alerts for tracked products.",
    )
    parser.add_argument("--db", help="Path to the inventory SQLite file (default: var/inventory under the project root)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log at DEBUG level")
    subparsers = parser.add_subparsers(dest="command", required=True)

    _add_extract_cli(subparsers)
    _add_products_cli(subparsers)
    _add_notifier_cli(subparsers)
    _add_db_cli(subparsers)
    _add_serve_cli(subparsers)

    args = parser.parse_args(provided)
    if args.verbose:
        set_level("DEBUG")
    code = args.handler(args)
    LOG.info(f"Subcommand '{args.command}' finished with exit code {code}.")
    return code


if __name__ == "__main__":
    sys.exit(main())
