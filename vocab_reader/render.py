from __future__ import annotations

import io
import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

from PIL import Image, ImageColor, ImageDraw, ImageFont
from reportlab.lib.pagesizes import landscape, portrait
from reportlab.lib.utils import ImageReader
from reportlab.pdfgen import canvas

from .annotations import RGB
from .view import Block, Control, Pane, Run, ViewRoot

logger = logging.getLogger(__name__)

HIGHLIGHT_FILL: RGB = (229, 241, 255)
HIGHLIGHT_LINE: RGB = (0, 122, 255)
BUTTON_FILL: RGB = (0, 122, 255)
BUTTON_TEXT: RGB = (255, 255, 255)
CARD_PADDING = 12
CARD_GAP = 8

_PIECE_RE = re.compile(r"\n|[^\S\n]+|[^\s]+")


@dataclass
class Raster:
    image: Image.Image
    width: int
    height: int


def css_px(value: Optional[str], default: float) -> float:
    """Parse '14px' / '14' into a number; 'auto', 'none' and junk give the default."""
    if value is None:
        return default
    value = str(value).strip().lower()
    if value.endswith("px"):
        value = value[:-2]
    try:
        return float(value)
    except ValueError:
        return default


def css_color(value: Optional[str], default: RGB) -> RGB:
    if not value:
        return default
    try:
        return ImageColor.getrgb(value)[:3]
    except ValueError:
        return default


def line_height(style: Dict[str, str], font_size: float) -> float:
    raw = style.get("line-height", "")
    if raw.strip().endswith("px"):
        return css_px(raw, font_size * 1.5)
    return font_size * css_px(raw, 1.5)


def expanded(pane: Pane) -> bool:
    """Whether the pane shows its whole content instead of a scrolled window."""
    return pane.style.get("overflow") == "visible" and pane.style.get("height", "auto") == "auto"


# One drawing instruction in unscaled pane coordinates.
Op = Tuple[Any, ...]


class PillowRasterizer:
    """Draws a ViewRoot into an RGB image with Pillow."""

    def __init__(self, font_path: str = "") -> None:
        self.font_path = font_path
        self._fonts: Dict[int, Any] = {}

    def font(self, size: float):
        key = max(1, int(round(size)))
        if key not in self._fonts:
            if self.font_path:
                self._fonts[key] = ImageFont.truetype(self.font_path, key)
            else:
                self._fonts[key] = ImageFont.load_default(size=key)
        return self._fonts[key]

    def _wrap(self, runs: List[Run], size: float, width: float) -> List[List[Tuple[str, Run]]]:
        font = self.font(size)
        lines: List[List[Tuple[str, Run]]] = [[]]
        used = 0.0
        for run in runs:
            for piece in _PIECE_RE.findall(run.text):
                if piece == "\n":
                    lines.append([])
                    used = 0.0
                    continue
                piece_w = font.getlength(piece)
                if used + piece_w <= width:
                    lines[-1].append((piece, run))
                    used += piece_w
                    continue
                if piece.isspace():
                    continue
                if piece_w <= width:
                    lines.append([(piece, run)])
                    used = piece_w
                    continue
                # Long unbroken text (e.g. zh sentences): break by character.
                for ch in piece:
                    ch_w = font.getlength(ch)
                    if used + ch_w > width and lines[-1]:
                        lines.append([])
                        used = 0.0
                    lines[-1].append((ch, run))
                    used += ch_w
        return lines

    def _layout_controls(self, controls: List[Control], right: float, top: float, size: float) -> List[Op]:
        ops: List[Op] = []
        x = right
        for control in reversed(controls):
            if not control.visible:
                continue
            w = self.font(size).getlength(control.label) + size
            x -= w
            ops.append(("rect", (x, top, x + w, top + size * 1.6), BUTTON_FILL, None, size * 0.8))
            ops.append(("text", (x + size / 2, top + size * 0.3), control.label, size, BUTTON_TEXT))
            x -= size / 2
        return ops

    def _layout_block(self, block: Block, x: float, y: float, width: float, size: float, lh: float) -> Tuple[List[Op], float]:
        ops: List[Op] = []
        pad = CARD_PADDING if block.fill else 0
        lines = self._wrap(block.runs, size, width - 2 * pad)
        height = len(lines) * lh + 2 * pad
        if block.fill:
            ops.append(("rect", (x, y, x + width, y + height), block.fill, block.border, 10))
            if block.control is not None:
                ops.extend(self._layout_controls([block.control], x + width - pad, y + pad, size * 0.8))
        cy = y + pad
        font = self.font(size)
        for line in lines:
            cx = x + pad
            for piece, run in line:
                w = font.getlength(piece)
                if run.highlighted and not piece.isspace():
                    ops.append(("rect", (cx, cy, cx + w, cy + lh), HIGHLIGHT_FILL, None, 0))
                    ops.append(("line", (cx, cy + lh - 2, cx + w, cy + lh - 2), HIGHLIGHT_LINE, 2))
                ops.append(("text", (cx, cy + (lh - size) / 2), piece, size, run.color))
                cx += w
            cy += lh
        return ops, height

    def layout_pane(self, pane: Pane, width: float) -> Tuple[List[Op], float]:
        """Return draw ops and the full content height of a pane."""
        size = css_px(pane.style.get("font-size"), 16)
        lh = line_height(pane.style, size)
        pad = css_px(pane.style.get("padding"), 0)
        inner = max(1.0, width - 2 * pad)
        ops: List[Op] = []
        y = pad
        if pane.title:
            ops.append(("text", (pad, y), pane.title, size * 1.2, (29, 29, 31)))
        ops.extend(self._layout_controls(pane.controls, width - pad, y, size * 0.8))
        y += size * 2
        for block in pane.blocks:
            block_ops, h = self._layout_block(block, pad, y, inner, size, lh)
            ops.extend(block_ops)
            y += h + (CARD_GAP if block.fill else 0)
        return ops, y + pad

    def pane_height(self, pane: Pane, content_height: float) -> float:
        if expanded(pane):
            return content_height
        height = css_px(pane.style.get("height"), content_height)
        max_height = css_px(pane.style.get("max-height"), height)
        return min(height, max_height)

    def capture(self, view: ViewRoot, scale: float = 2.0, background: str = "#FFFFFF") -> Raster:
        width = css_px(view.container.style.get("width"), 1200)
        widths = (width * 0.7, width * 0.3)
        laid_out = []
        for pane, pane_w in zip(view.panes, widths):
            ops, content_h = self.layout_pane(pane, pane_w)
            visible_h = self.pane_height(pane, content_h)
            offset = 0 if expanded(pane) else min(pane.scroll_top, max(0, content_h - visible_h))
            laid_out.append((pane, ops, visible_h, offset))

        content_h = max(h for _, _, h, _ in laid_out)
        if view.container.style.get("height", "auto") == "auto":
            height = content_h
        else:
            height = min(content_h, css_px(view.container.style.get("height"), content_h))
        bg = css_color(background, (255, 255, 255))
        image = Image.new("RGB", (max(1, int(width * scale)), max(1, int(height * scale))), bg)

        x0 = 0.0
        for (pane, ops, visible_h, offset), pane_w in zip(laid_out, widths):
            pane_img = Image.new("RGB", (max(1, int(pane_w * scale)), max(1, int(visible_h * scale))), bg)
            self._paint(ImageDraw.Draw(pane_img), ops, scale, -offset)
            image.paste(pane_img, (int(x0 * scale), 0))
            x0 += pane_w
        logger.debug("Captured view at %sx: %dx%d px", scale, image.width, image.height)
        return Raster(image=image, width=image.width, height=image.height)

    def _paint(self, draw: ImageDraw.ImageDraw, ops: List[Op], scale: float, dy: float) -> None:
        def box(b):
            return (b[0] * scale, (b[1] + dy) * scale, b[2] * scale, (b[3] + dy) * scale)

        for op in ops:
            kind = op[0]
            if kind == "rect":
                _, b, fill, outline, radius = op
                draw.rounded_rectangle(box(b), radius=radius * scale, fill=fill, outline=outline, width=max(1, int(scale)))
            elif kind == "line":
                _, b, fill, w = op
                draw.line(box(b), fill=fill, width=max(1, int(w * scale)))
            elif kind == "text":
                _, (x, y), text, size, fill = op
                draw.text((x * scale, (y + dy) * scale), text, font=self.font(size * scale), fill=fill)


class ReportlabWriter:
    """Output writer that buffers PDF pages in memory until save()."""

    def __init__(self) -> None:
        self._buffer: Optional[io.BytesIO] = None
        self._canvas: Optional[canvas.Canvas] = None
        self.page_size: Tuple[float, float] = (0.0, 0.0)
        self.pages = 0

    def new_document(self, page_width: float, page_height: float, orientation: str = "landscape") -> None:
        size = (page_width, page_height)
        self.page_size = landscape(size) if orientation == "landscape" else portrait(size)
        self._buffer = io.BytesIO()
        self._canvas = canvas.Canvas(self._buffer, pagesize=self.page_size)
        self.pages = 0

    def add_page(self, image: Image.Image, x_offset: float = 0, y_offset: float = 0) -> None:
        if self._canvas is None:
            raise RuntimeError("new_document() must be called before add_page()")
        page_w, page_h = self.page_size
        # reportlab measures y upward from the bottom edge; y_offset moves the image down.
        self._canvas.drawImage(ImageReader(image), x_offset, -y_offset, width=page_w, height=page_h)
        self._canvas.showPage()
        self.pages += 1

    def save(self, target: Union[str, Path, io.IOBase]) -> None:
        if self._canvas is None or self._buffer is None:
            raise RuntimeError("nothing to save")
        self._canvas.save()
        data = self._buffer.getvalue()
        if hasattr(target, "write"):
            target.write(data)
        else:
            Path(target).write_bytes(data)
