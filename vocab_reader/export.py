"""Export the live view as a multi-page PDF.

The view is temporarily re-styled for capture (controls hidden, panes
expanded to their full content), rasterized, cut into page-height bands
and written one band per page. Styles and scroll offsets are restored
whether or not capture succeeds.
"""

from __future__ import annotations

import asyncio
import logging
import math
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterator, List, Protocol, Tuple

from PIL import Image

from .errors import ExportFailure
from .render import Raster, css_color
from .view import CLEAR_BUTTON, DOCUMENT_PANE, SPEAK_BUTTON, Element, ViewRoot

logger = logging.getLogger(__name__)

# A4 landscape, in points.
PAGE_WIDTH = 842
PAGE_HEIGHT = 595
EXPORT_BACKGROUND = "#FFFFFF"

HIDDEN_CONTROLS = (SPEAK_BUTTON, CLEAR_BUTTON)

EXPANDED_PANE_STYLE = {
    "height": "auto",
    "max-height": "none",
    "overflow": "visible",
    "font-size": "14px",
    "padding": "20px",
}
EXPANDED_CONTAINER_STYLE = {
    "height": "auto",
    "max-height": "none",
    "overflow": "visible",
    "background-color": EXPORT_BACKGROUND,
}


class Rasterizer(Protocol):
    def capture(self, view: ViewRoot, scale: float = 2.0, background: str = EXPORT_BACKGROUND) -> Raster:
        ...


class OutputWriter(Protocol):
    def new_document(self, page_width: float, page_height: float, orientation: str = "landscape") -> None:
        ...

    def add_page(self, image: Image.Image, x_offset: float = 0, y_offset: float = 0) -> None:
        ...

    def save(self, target: Any) -> None:
        ...


@dataclass(frozen=True)
class PageBand:
    top: int
    height: int


def page_bands(raster_width: int, raster_height: int, page_width: float, page_height: float) -> List[PageBand]:
    """Slice a raster scaled to page_width into page-height bands, top to bottom.

    Bands are measured in raster pixels. The last band may run past the
    bottom of the raster; it is never dropped.
    """
    if raster_width <= 0 or raster_height <= 0:
        return []
    band = max(1, round(page_height * raster_width / page_width))
    count = max(1, math.ceil(raster_height / band))
    return [PageBand(top=i * band, height=band) for i in range(count)]


def crop_band(image: Image.Image, band: PageBand, background: str = EXPORT_BACKGROUND) -> Image.Image:
    page = Image.new("RGB", (image.width, band.height), css_color(background, (255, 255, 255)))
    bottom = min(image.height, band.top + band.height)
    page.paste(image.crop((0, band.top, image.width, bottom)), (0, 0))
    return page


@contextmanager
def export_presentation(view: ViewRoot) -> Iterator[ViewRoot]:
    """Apply capture styles to the view and restore the originals on exit."""
    saved: List[Tuple[Element, Dict[str, str], int]] = [
        (el, dict(el.style), el.scroll_top) for el in view.elements()
    ]
    try:
        for control in view.controls():
            if control.name in HIDDEN_CONTROLS:
                control.style["display"] = "none"
        for pane in view.panes:
            pane.style.update(EXPANDED_PANE_STYLE)
            if pane.name == DOCUMENT_PANE:
                pane.style["line-height"] = "1.6"
            pane.scroll_top = 0
        view.container.style.update(EXPANDED_CONTAINER_STYLE)
        view.container.scroll_top = 0
        yield view
    finally:
        for el, style, scroll_top in saved:
            el.style = style
            el.scroll_top = scroll_top


class ExportPipeline:
    def __init__(
        self,
        rasterizer: Rasterizer,
        writer_factory: Callable[[], OutputWriter],
        scale: float = 2.0,
        page_width: float = PAGE_WIDTH,
        page_height: float = PAGE_HEIGHT,
        background: str = EXPORT_BACKGROUND,
    ) -> None:
        self.rasterizer = rasterizer
        self.writer_factory = writer_factory
        self.scale = max(2.0, scale)
        self.page_width = page_width
        self.page_height = page_height
        self.background = background

    async def capture(self, view: ViewRoot) -> Raster:
        with export_presentation(view):
            # Rasterizing is CPU-bound; the caller holds the document edit lock meanwhile.
            return await asyncio.to_thread(
                self.rasterizer.capture, view, scale=self.scale, background=self.background
            )

    def paginate(self, raster: Raster) -> List[Image.Image]:
        bands = page_bands(raster.width, raster.height, self.page_width, self.page_height)
        return [crop_band(raster.image, band, self.background) for band in bands]

    async def export_document(self, view: ViewRoot, target: Any) -> int:
        """Write the view to target as a PDF and return the page count.

        Raises ExportFailure; nothing is written to target in that case.
        """
        try:
            raster = await self.capture(view)
            pages = self.paginate(raster)
            if not pages:
                raise ExportFailure("nothing to export: empty capture")
            writer = self.writer_factory()
            writer.new_document(self.page_width, self.page_height, "landscape")
            for page in pages:
                writer.add_page(page, 0, 0)
            writer.save(target)
        except Exception as e:
            logger.exception("PDF export failed")
            if isinstance(e, ExportFailure):
                raise
            raise ExportFailure(str(e)) from e
        logger.info("Exported %d page(s)", len(pages))
        return len(pages)
