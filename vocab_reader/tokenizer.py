"""Split a document into display tokens.

Tokens always concatenate back to the exact input, so the rendered view
never drops or reorders characters:

    "".join(t.text for t in tokenize(text, lang)) == text

zh text is split into sentence-like segments at runs of 。！？； and at line
breaks; the delimiters become their own non-word tokens.

Everything else is split into word runs, whitespace runs and single
punctuation characters.
"""

from __future__ import annotations

import re
from typing import List

from .models import Token

_ZH_DELIMITER_RE = re.compile(r"([。！？；]+|[\n\r]+)")
_EN_TOKEN_RE = re.compile(r"\w+|\s+|[^\w\s]")


def _is_word(piece: str) -> bool:
    return bool(piece.strip())


def tokenize_zh(text: str) -> List[Token]:
    tokens: List[Token] = []
    # re.split with a capture group alternates segment, delimiter, segment, ...
    for i, piece in enumerate(_ZH_DELIMITER_RE.split(text)):
        if not piece:
            continue
        is_delimiter = i % 2 == 1
        tokens.append(Token(text=piece, is_word=not is_delimiter and _is_word(piece)))
    return tokens


def tokenize_en(text: str) -> List[Token]:
    return [Token(text=piece, is_word=_is_word(piece)) for piece in _EN_TOKEN_RE.findall(text)]


def tokenize(text: str, language: str) -> List[Token]:
    if not text:
        return []
    if language == "zh":
        return tokenize_zh(text)
    return tokenize_en(text)
