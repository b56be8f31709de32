from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, Iterator, List, Optional, Set, Tuple

from .models import AnnotatedWord, WordCard

logger = logging.getLogger(__name__)

RGB = Tuple[int, int, int]


@dataclass(frozen=True)
class PaletteColor:
    name: str
    fill: RGB
    border: RGB


# Pastel card colors (100 fill / 300 border shades).
PALETTE: Tuple[PaletteColor, ...] = (
    PaletteColor("blue", (219, 234, 254), (147, 197, 253)),
    PaletteColor("green", (220, 252, 231), (134, 239, 172)),
    PaletteColor("yellow", (254, 249, 195), (253, 224, 71)),
    PaletteColor("pink", (252, 231, 243), (249, 168, 212)),
    PaletteColor("purple", (243, 232, 255), (216, 180, 254)),
    PaletteColor("indigo", (224, 231, 255), (165, 180, 252)),
    PaletteColor("red", (254, 226, 226), (252, 165, 165)),
    PaletteColor("orange", (255, 237, 213), (253, 186, 116)),
)


def color_for(word: str) -> PaletteColor:
    """Card color for a word: sum of its code points, modulo the palette size."""
    return PALETTE[sum(ord(ch) for ch in word) % len(PALETTE)]


class AnnotationStore:
    """Annotated words (most recent first) plus the set of highlighted word texts.

    Entries are keyed by the exact word text. The highlight set only ever
    holds texts that have an entry.
    """

    def __init__(self) -> None:
        self._words: List[AnnotatedWord] = []
        self._index: Dict[str, AnnotatedWord] = {}
        self._highlighted: Set[str] = set()
        # Bumped by clear_all so lookups started before a clear can be discarded.
        self.generation = 0

    def __contains__(self, word: object) -> bool:
        return word in self._index

    def __len__(self) -> int:
        return len(self._words)

    def __iter__(self) -> Iterator[AnnotatedWord]:
        return iter(list(self._words))

    @property
    def words(self) -> List[AnnotatedWord]:
        return list(self._words)

    @property
    def highlighted(self) -> frozenset[str]:
        return frozenset(self._highlighted)

    def get(self, word: str) -> Optional[AnnotatedWord]:
        return self._index.get(word)

    def is_highlighted(self, word: str) -> bool:
        return word in self._highlighted

    def upsert(self, entry: AnnotatedWord) -> bool:
        """Insert at the front. Returns False (and keeps the existing entry) if the word is known."""
        if entry.word in self._index:
            logger.debug("Skipping duplicate annotation for %r", entry.word)
            return False
        self._words.insert(0, entry)
        self._index[entry.word] = entry
        return True

    def delete(self, word: str) -> bool:
        if word not in self._index:
            return False
        del self._index[word]
        self._words = [w for w in self._words if w.word != word]
        self._highlighted.discard(word)
        return True

    def highlight(self, word: str) -> bool:
        if word not in self._index:
            return False
        self._highlighted.add(word)
        return True

    def clear_highlights(self) -> None:
        self._highlighted = set()

    def clear_all(self) -> None:
        self._words = []
        self._index = {}
        self._highlighted = set()
        self.generation += 1

    def cards(self) -> List[WordCard]:
        return [WordCard(**w.model_dump(), color=color_for(w.word).name) for w in self._words]
