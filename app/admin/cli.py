"""Operator command line for mappings, time slots and the system-status flag.

Examples::

    python -m app.admin.cli slots
    python -m app.admin.cli set-link 09:00 https://shopee.vn/product/1/2 https://s.shopee.vn/abc
    python -m app.admin.cli export 09:00 --out artifacts/csv
    python -m app.admin.cli status off
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import sys
from pathlib import Path

from dotenv import load_dotenv

from app.admin.editor import AdminMappingEditor
from app.errors import ValidationFailure
from app.gateways.backend import BACKEND_URL, BackendClient
from app.gateways.catalog import CatalogClient
from app.gateways.registry import TimeSlotRegistryClient
from app.logic import spreadsheet
from app.logic.affiliate_cache import AffiliateLinkCache
from app.logic.resolve import RecordSnapshot, resolve_link, resolver_chain
from app.logic.status import SystemStatusToggle

EXIT_OK = 0
EXIT_ERROR = 1


def _print_notice(message: str) -> None:
    print(message, file=sys.stderr)


async def _with_editor(args: argparse.Namespace, action) -> int:
    backend = BackendClient(args.backend_url)
    registry = TimeSlotRegistryClient()
    catalog = CatalogClient()
    editor = AdminMappingEditor(backend, registry, catalog, notify=_print_notice)
    try:
        await editor.start()
        slot = getattr(args, "slot", "")
        if slot:
            await editor.select_time_slot(slot)
        return await action(editor)
    finally:
        await backend.close()
        await registry.close()
        await catalog.close()


async def cmd_slots(args: argparse.Namespace) -> int:
    async def action(editor: AdminMappingEditor) -> int:
        for slot in editor.session.time_slots:
            marker = "*" if slot.time in editor.session.all_records else " "
            state = "active" if slot.is_active else "inactive"
            print(f"{marker} {slot.time:<12} {slot.label} ({state})")
        return EXIT_OK

    return await _with_editor(args, action)


async def cmd_show(args: argparse.Namespace) -> int:
    async def action(editor: AdminMappingEditor) -> int:
        print(editor.summary())
        for row in editor.rows():
            sub_ids = ",".join(row.sub_ids.values())
            print(f"{row.original_link}\t{row.conversion_link}\t{sub_ids}\t{row.reason}")
        return EXIT_OK

    return await _with_editor(args, action)


async def cmd_set_link(args: argparse.Namespace) -> int:
    async def action(editor: AdminMappingEditor) -> int:
        ok = await editor.edit_conversion_link(args.link, args.value)
        return EXIT_OK if ok else EXIT_ERROR

    return await _with_editor(args, action)


async def cmd_set_sub_id(args: argparse.Namespace) -> int:
    async def action(editor: AdminMappingEditor) -> int:
        ok = await editor.edit_sub_id(args.link, args.index, args.value)
        return EXIT_OK if ok else EXIT_ERROR

    return await _with_editor(args, action)


async def cmd_set_reason(args: argparse.Namespace) -> int:
    async def action(editor: AdminMappingEditor) -> int:
        ok = await editor.edit_reason(args.link, args.reason)
        return EXIT_OK if ok else EXIT_ERROR

    return await _with_editor(args, action)


async def cmd_export(args: argparse.Namespace) -> int:
    async def action(editor: AdminMappingEditor) -> int:
        try:
            path = editor.export_file(args.out)
        except ValidationFailure as exc:
            _print_notice(str(exc))
            return EXIT_ERROR
        print(f"Exported {len(editor.session.products)} rows to {path}")
        return EXIT_OK

    return await _with_editor(args, action)


async def cmd_import(args: argparse.Namespace) -> int:
    async def action(editor: AdminMappingEditor) -> int:
        ok = await editor.import_file(args.file)
        return EXIT_OK if ok else EXIT_ERROR

    return await _with_editor(args, action)


async def cmd_clear(args: argparse.Namespace) -> int:
    async def action(editor: AdminMappingEditor) -> int:
        ok = await editor.clear_time_slot()
        return EXIT_OK if ok else EXIT_ERROR

    return await _with_editor(args, action)


async def cmd_clear_all(args: argparse.Namespace) -> int:
    if not args.yes:
        _print_notice("Refusing to delete every time slot without --yes")
        return EXIT_ERROR

    async def action(editor: AdminMappingEditor) -> int:
        ok = await editor.clear_all()
        return EXIT_OK if ok else EXIT_ERROR

    return await _with_editor(args, action)


async def cmd_status(args: argparse.Namespace) -> int:
    backend = BackendClient(args.backend_url)
    toggle = SystemStatusToggle(backend, notify=_print_notice)
    try:
        await toggle.load()
        if args.state is not None and not await toggle.set(args.state == "on"):
            return EXIT_ERROR
    finally:
        await backend.close()
    print("active" if toggle.is_active else "maintenance")
    return EXIT_OK


async def cmd_open(args: argparse.Namespace) -> int:
    backend = BackendClient(args.backend_url)
    try:
        resolvers = resolver_chain(RecordSnapshot(backend), args.slot, AffiliateLinkCache(), args.aff_id)
        print(await resolve_link(args.link, resolvers))
    finally:
        await backend.close()
    return EXIT_OK


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="flashsale-admin", description="Flash-sale affiliate link manager")
    parser.add_argument("--backend-url", default=BACKEND_URL)
    sub = parser.add_subparsers(dest="cmd")

    p = sub.add_parser("slots", help="List offered time slots (reconciles storage first)")
    p.set_defaults(func=cmd_slots)

    p = sub.add_parser("show", help="Show mapping rows for a time slot")
    p.add_argument("slot")
    p.set_defaults(func=cmd_show)

    p = sub.add_parser("set-link", help="Set or clear (empty value) a conversion link")
    p.add_argument("slot")
    p.add_argument("link")
    p.add_argument("value")
    p.set_defaults(func=cmd_set_link)

    p = sub.add_parser("set-sub-id", help="Set one of the five sub-ids")
    p.add_argument("slot")
    p.add_argument("link")
    p.add_argument("index", type=int, choices=range(1, 6))
    p.add_argument("value")
    p.set_defaults(func=cmd_set_sub_id)

    p = sub.add_parser("set-reason", help="Set or clear (empty value) a failure reason")
    p.add_argument("slot")
    p.add_argument("link")
    p.add_argument("reason")
    p.set_defaults(func=cmd_set_reason)

    p = sub.add_parser("export", help="Export a time slot to CSV")
    p.add_argument("slot")
    p.add_argument("--out", type=Path, default=spreadsheet.OUTPUT_DIR)
    p.set_defaults(func=cmd_export)

    p = sub.add_parser("import", help="Import mappings for a time slot from CSV")
    p.add_argument("slot")
    p.add_argument("file", type=Path)
    p.set_defaults(func=cmd_import)

    p = sub.add_parser("clear", help="Delete the mappings of one time slot")
    p.add_argument("slot")
    p.set_defaults(func=cmd_clear)

    p = sub.add_parser("clear-all", help="Delete the mappings of every time slot")
    p.add_argument("--yes", action="store_true")
    p.set_defaults(func=cmd_clear_all)

    p = sub.add_parser("status", help="Show or set the system-status flag")
    p.add_argument("state", nargs="?", choices=["on", "off"])
    p.set_defaults(func=cmd_status)

    p = sub.add_parser("open", help="Resolve the link a shopper would be sent to")
    p.add_argument("link")
    p.add_argument("--slot", default="")
    p.add_argument("--aff-id", default="")
    p.set_defaults(func=cmd_open)
    return parser


def main(argv: list[str] | None = None) -> int:
    load_dotenv()
    logging.basicConfig(
        level=os.environ.get("LOG_LEVEL", "INFO"),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    parser = build_parser()
    args = parser.parse_args(argv)
    if not args.cmd:
        parser.print_help()
        return EXIT_ERROR
    return asyncio.run(args.func(args))


if __name__ == "__main__":
    raise SystemExit(main())
