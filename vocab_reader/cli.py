"""vocab-reader

Annotate selections of a text file and export the notes as a PDF.

Example:
  vocab-reader --input article.txt --select world --select 你好 --out notes.pdf

Lookups go to the Youdao API (YOUDAO_APP_KEY / YOUDAO_APP_SECRET). Without
credentials every selection is still listed, marked as a failed lookup.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import List, Optional

from .config import load_settings
from .errors import ExportFailure
from .export import ExportPipeline
from .render import PillowRasterizer, ReportlabWriter
from .session import Session
from .speech import BrowserSpeechEngine
from .youdao import YoudaoDictionary


def read_selections(args: argparse.Namespace) -> List[str]:
    selections = list(args.select or [])
    if args.select_file:
        for line in Path(args.select_file).read_text(encoding="utf-8").splitlines():
            if line.strip():
                selections.append(line)
    return selections


def build_session(font_path: str = "", scale: float = 2.0) -> Session:
    settings = load_settings()
    return Session(
        dictionary=YoudaoDictionary.from_settings(settings),
        speech_engine=BrowserSpeechEngine(),
        exporter=ExportPipeline(
            PillowRasterizer(font_path=font_path or settings.export_font_path),
            ReportlabWriter,
            scale=max(scale, settings.export_scale),
        ),
    )


async def run(session: Session, text: str, selections: List[str], out: Optional[Path]) -> int:
    session.replace_document(text)
    await asyncio.gather(*(session.select(s) for s in selections))

    for entry in session.store:
        phonetic = f" [{entry.phonetic}]" if entry.phonetic else ""
        print(f"{entry.word}{phonetic}: {entry.meaning}")

    if out is None:
        return 0
    try:
        pages = await session.export(out)
    except ExportFailure as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 1
    print(f"Wrote {pages} page(s) to {out}")
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    ap = argparse.ArgumentParser(description="Annotate selected words of a text and export study notes as PDF")
    ap.add_argument("--input", required=True, help="Path to a UTF-8 text file")
    ap.add_argument("--select", action="append", help="Text to look up (repeatable)")
    ap.add_argument("--select-file", default=None, help="File with one selection per line")
    ap.add_argument("--out", default=None, help="PDF output path; omit to only print annotations")
    ap.add_argument("--font", default="", help="TrueType font for the PDF (use one with CJK glyphs for zh text)")
    ap.add_argument("--scale", type=float, default=2.0, help="Rasterization scale (>= 2)")
    ap.add_argument("-v", "--verbose", action="store_true")
    args = ap.parse_args(argv)

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING)

    text = Path(args.input).read_text(encoding="utf-8")
    selections = read_selections(args)
    if not selections:
        print("WARNING: no selections given; exporting the text only.", file=sys.stderr)

    session = build_session(font_path=args.font, scale=args.scale)
    return asyncio.run(run(session, text, selections, Path(args.out) if args.out else None))


if __name__ == "__main__":
    sys.exit(main())
