"""Presentation tree that the rasterizer draws.

Styles are kept as inline CSS-like string maps so the export step can
override and later restore them exactly.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional, Sequence, Tuple

from .annotations import PALETTE, RGB
from .models import RenderedToken, WordCard

DOCUMENT_PANE = "left-content-scroll"
WORDS_PANE = "right-content-scroll"
SPEAK_BUTTON = "speak-button"
CLEAR_BUTTON = "clear-button"

TEXT_COLOR: RGB = (29, 29, 31)
MUTED_COLOR: RGB = (134, 134, 139)


@dataclass
class Run:
    text: str
    highlighted: bool = False
    color: RGB = TEXT_COLOR


@dataclass
class Element:
    name: str
    style: Dict[str, str] = field(default_factory=dict)
    scroll_top: int = 0

    @property
    def visible(self) -> bool:
        return self.style.get("display") != "none"


@dataclass
class Control(Element):
    label: str = ""


@dataclass
class Block:
    """A paragraph, or a word card when it has a fill color."""

    runs: List[Run] = field(default_factory=list)
    fill: Optional[RGB] = None
    border: Optional[RGB] = None
    control: Optional[Control] = None


@dataclass
class Pane(Element):
    title: str = ""
    blocks: List[Block] = field(default_factory=list)
    controls: List[Control] = field(default_factory=list)


@dataclass
class ViewRoot:
    container: Element
    left: Pane
    right: Pane

    @property
    def panes(self) -> Tuple[Pane, Pane]:
        return self.left, self.right

    def controls(self) -> Iterator[Control]:
        for pane in self.panes:
            yield from pane.controls
            for block in pane.blocks:
                if block.control is not None:
                    yield block.control

    def elements(self) -> Iterator[Element]:
        yield self.container
        yield from self.panes
        yield from self.controls()

    def pane(self, name: str) -> Pane:
        for pane in self.panes:
            if pane.name == name:
                return pane
        raise KeyError(name)


def _document_blocks(tokens: Sequence[RenderedToken]) -> List[Block]:
    runs = [Run(text=t.text, highlighted=t.highlighted) for t in tokens]
    return [Block(runs=runs)] if runs else []


def _word_blocks(cards: Sequence[WordCard]) -> List[Block]:
    colors = {c.name: c for c in PALETTE}
    blocks: List[Block] = []
    for card in cards:
        color = colors[card.color]
        runs = [Run(text=card.word + "\n")]
        if card.phonetic:
            runs.append(Run(text=card.phonetic + "\n", color=MUTED_COLOR))
        runs.append(Run(text=card.meaning))
        blocks.append(
            Block(
                runs=runs,
                fill=color.fill,
                border=color.border,
                control=Control(name=SPEAK_BUTTON, label="speak"),
            )
        )
    return blocks


def build_view(
    tokens: Sequence[RenderedToken],
    cards: Sequence[WordCard],
    previous: Optional[ViewRoot] = None,
) -> ViewRoot:
    """Build the two-pane view; scroll offsets carry over from the previous view."""
    left = Pane(
        name=DOCUMENT_PANE,
        style={"height": "720px", "overflow": "auto", "font-size": "17px", "line-height": "1.6", "padding": "32px"},
        title="Document",
        blocks=_document_blocks(tokens),
        controls=[Control(name=SPEAK_BUTTON, label="read aloud")],
    )
    if tokens:
        left.controls.append(Control(name=CLEAR_BUTTON, label="clear"))
    right = Pane(
        name=WORDS_PANE,
        style={"height": "720px", "overflow": "auto", "font-size": "14px", "line-height": "1.5", "padding": "16px"},
        title=f"Saved ({len(cards)})",
        blocks=_word_blocks(cards),
    )
    container = Element(
        name="exportContent",
        style={"width": "1200px", "height": "800px", "overflow": "hidden", "background-color": "#FFFFFF"},
    )
    if previous is not None:
        left.scroll_top = previous.left.scroll_top
        right.scroll_top = previous.right.scroll_top
        container.scroll_top = previous.container.scroll_top
    return ViewRoot(container=container, left=left, right=right)
