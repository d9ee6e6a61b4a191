# -*- coding: utf-8 -*-
# cardsheet/cli.py
import argparse
import asyncio
import logging
import sys
import urllib.parse
from pathlib import Path
from typing import List, Optional

import aiofiles

from .config import PDF_FILENAME, SHEET_SIZES, CardSheetConfig
from .geometry import compute_geometry
from .models import SheetLayout
from .services.storage import FileStorage
from .session import CardSheetSession
from .utils.logger import setup_logging

logger = logging.getLogger(__name__)

URL_SCHEMES = ('http', 'https', 'data')


def _is_url(source: str) -> bool:
    return urllib.parse.urlparse(source).scheme in URL_SCHEMES


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="cardsheet", description="Lay out card-sized labels on printable sheets")
    p.add_argument("--state-dir", default=None, help="Directory holding the saved sheet")
    p.add_argument("--log-dir", default=None, help="Directory for log files")
    p.add_argument("--sheet-size", default=None, choices=sorted(SHEET_SIZES), help="Page size")
    p.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    sub = p.add_subparsers(dest="command", required=True)

    add = sub.add_parser("add", help="Frame images and add them to the sheet")
    add.add_argument("sources", nargs="*", help="Image files or URLs")
    add.add_argument("--urls-file", default=None, help="Text file with one image URL per line")
    add.add_argument("--zoom", type=float, default=None, help="Zoom factor (1 to 4)")
    add.add_argument("--pan", type=float, nargs=2, metavar=("DX", "DY"), default=None,
                     help="Offset from centre in canvas pixels")

    edit = sub.add_parser("edit", help="Reframe a card already on the sheet")
    edit.add_argument("slot", type=int, help="Slot number as shown by list")
    edit.add_argument("--zoom", type=float, default=None)
    edit.add_argument("--pan", type=float, nargs=2, metavar=("DX", "DY"), default=None)
    edit.add_argument("--reset", action="store_true", help="Back to cover-fit before applying changes")

    sub.add_parser("list", help="Show sheet slots")

    remove = sub.add_parser("remove", help="Remove a card, leaving an empty slot")
    remove.add_argument("slot", type=int)

    move = sub.add_parser("move", help="Move a card to another slot (swaps with its occupant)")
    move.add_argument("from_slot", type=int)
    move.add_argument("to_slot", type=int)

    sub.add_parser("clear", help="Remove every card")

    oversize = sub.add_parser("oversize", help="Set the bleed per edge in mm and rebake cards")
    oversize.add_argument("mm", type=float)

    trim = sub.add_parser("trim", help="Draw the trim guide into exported cards")
    trim.add_argument("state", choices=["on", "off"])

    pdf = sub.add_parser("pdf", help="Write the printable PDF")
    pdf.add_argument("--out", default=PDF_FILENAME, help="Output file path")

    preview = sub.add_parser("preview", help="Render one sheet page as PNG")
    preview.add_argument("--page", type=int, default=1)
    preview.add_argument("--width", type=int, default=420, help="Width in pixels")
    preview.add_argument("--out", default="sheet-preview.png")

    export = sub.add_parser("export", help="Export the sheet as JSON")
    export.add_argument("--dir", default=".", help="Target directory")

    imp = sub.add_parser("import", help="Replace the sheet with an exported JSON file")
    imp.add_argument("path")

    return p


def _apply_framing(session: CardSheetSession, zoom: Optional[float], pan: Optional[List[float]]):
    if zoom is not None:
        session.set_zoom(zoom)
    if pan is not None:
        session.pan(pan[0], pan[1])


async def cmd_add(session: CardSheetSession, args: argparse.Namespace) -> int:
    if not args.sources and not args.urls_file:
        print("Nothing to add: pass image files, URLs or --urls-file")
        return 2

    failures = 0
    for source in args.sources:
        loaded = await (session.load_image_url(source) if _is_url(source) else session.load_image_file(source))
        if not loaded:
            print(f"{source}: {session.status}")
            failures += 1
            continue
        _apply_framing(session, args.zoom, args.pan)
        index = session.add_to_sheet()
        print(f"slot {index + 1}: {source}")

    if args.urls_file:
        async with aiofiles.open(args.urls_file, 'r', encoding='utf-8') as f:
            urls = (await f.read()).splitlines()
        result = await session.import_urls(urls)
        for url, error in result.failed:
            print(f"{url}: {error}")
        failures += len(result.failed)

    return 1 if failures else 0


async def cmd_edit(session: CardSheetSession, args: argparse.Namespace) -> int:
    if not await session.edit_card(args.slot - 1):
        return 1
    if args.reset:
        session.reset_view()
    _apply_framing(session, args.zoom, args.pan)
    session.add_to_sheet()
    return 0


async def cmd_list(session: CardSheetSession, args: argparse.Namespace) -> int:
    placements = {p.index: p for p in session.paginator.layout_for(len(session.store))}
    geometry = session.geometry
    print(f"Label {geometry.label_width_mm:.2f} x {geometry.label_height_mm:.2f} mm, "
          f"oversize {geometry.oversize_mm} mm, trim guide in export: "
          f"{'on' if session.include_trim_in_export else 'off'}")
    for index, card in enumerate(session.store):
        p = placements[index]
        where = f"page {p.page + 1} col {p.column + 1} row {p.row + 1}"
        if card is None:
            print(f"{index + 1:>3}  {where}  (empty)")
            continue
        framing = ''
        if card.transform is not None:
            framing = f"  zoom {card.transform.zoom:.2f} pan ({card.transform.offset_x:.0f}, {card.transform.offset_y:.0f})"
        print(f"{index + 1:>3}  {where}  {card.id[:8]}{framing}")
    print(f"{session.store.count()} card(s) on {session.paginator.page_count(len(session.store))} page(s)")
    return 0


async def cmd_remove(session: CardSheetSession, args: argparse.Namespace) -> int:
    session.remove_card(args.slot - 1)
    return 0


async def cmd_move(session: CardSheetSession, args: argparse.Namespace) -> int:
    session.move_card(args.from_slot - 1, args.to_slot - 1)
    return 0


async def cmd_clear(session: CardSheetSession, args: argparse.Namespace) -> int:
    session.clear_sheet()
    return 0


async def cmd_oversize(session: CardSheetSession, args: argparse.Namespace) -> int:
    rebaked = await session.set_oversize(args.mm)
    if session.oversize_mm != compute_geometry(args.mm, session.config).oversize_mm:
        return 1
    print(f"Oversize {session.oversize_mm} mm, {rebaked} card(s) rebaked")
    return 0


async def cmd_trim(session: CardSheetSession, args: argparse.Namespace) -> int:
    rebaked = await session.set_include_trim_in_export(args.state == "on")
    print(f"Trim guide {args.state}, {rebaked} card(s) rebaked")
    return 0


async def cmd_pdf(session: CardSheetSession, args: argparse.Namespace) -> int:
    path = await session.write_pdf(args.out)
    if path is None:
        return 1
    print(str(path))
    return 0


async def cmd_preview(session: CardSheetSession, args: argparse.Namespace) -> int:
    png = session.render_preview(args.page - 1, args.width)
    async with aiofiles.open(args.out, 'wb') as f:
        await f.write(png)
    print(args.out)
    return 0


async def cmd_export(session: CardSheetSession, args: argparse.Namespace) -> int:
    path = await session.export_snapshot(args.dir)
    if path is None:
        return 1
    print(str(path))
    return 0


async def cmd_import(session: CardSheetSession, args: argparse.Namespace) -> int:
    return 0 if await session.import_snapshot(args.path) else 1


COMMANDS = {
    "add": cmd_add,
    "edit": cmd_edit,
    "list": cmd_list,
    "remove": cmd_remove,
    "move": cmd_move,
    "clear": cmd_clear,
    "oversize": cmd_oversize,
    "trim": cmd_trim,
    "pdf": cmd_pdf,
    "preview": cmd_preview,
    "export": cmd_export,
    "import": cmd_import,
}


def build_config(args: argparse.Namespace) -> CardSheetConfig:
    config = CardSheetConfig.from_env()
    if args.state_dir:
        config.storage_dir = Path(args.state_dir)
    if args.log_dir:
        config.log_dir = Path(args.log_dir)
    if args.sheet_size:
        width, height = SHEET_SIZES[args.sheet_size]
        sheet = config.sheet
        config.sheet = SheetLayout(
            columns=sheet.columns, rows_per_page=sheet.rows_per_page,
            page_width_mm=width, page_height_mm=height, margin_mm=sheet.margin_mm,
            loose_rows_per_page=sheet.loose_rows_per_page, loose_margin_mm=sheet.loose_margin_mm,
        )
    return config


async def run(args: argparse.Namespace, config: CardSheetConfig) -> int:
    session = CardSheetSession(config, storage=FileStorage(config.storage_dir))
    await session.restore()
    try:
        code = await COMMANDS[args.command](session, args)
    finally:
        session.close()
    if session.status:
        print(session.status)
    return code


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    config = build_config(args)
    setup_logging(str(config.log_dir), logging.DEBUG if args.verbose else logging.WARNING)
    logger.debug(f"Command {args.command} with state in {config.storage_dir}")
    return asyncio.run(run(args, config))


if __name__ == "__main__":
    sys.exit(main())
