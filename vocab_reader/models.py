from __future__ import annotations

from typing import Optional, List, Literal
from pydantic import BaseModel, ConfigDict, Field

LanguageTag = Literal["zh", "en", "unknown"]


class Token(BaseModel):
    text: str
    is_word: bool


class RenderedToken(Token):
    highlighted: bool = False


class AnnotatedWord(BaseModel):
    model_config = ConfigDict(frozen=True)

    word: str
    phonetic: str
    meaning: str
    language: LanguageTag


class WordCard(AnnotatedWord):
    color: str  # palette color name


# Provider payload. Field names keep the provider's spelling (errorCode).
class DictionaryBasic(BaseModel):
    phonetic: Optional[str] = None
    explains: Optional[List[str]] = None


class DictionaryWebEntry(BaseModel):
    key: str
    value: List[str]


class DictionaryResponse(BaseModel):
    errorCode: str
    translation: Optional[List[str]] = None
    basic: Optional[DictionaryBasic] = None
    web: Optional[List[DictionaryWebEntry]] = None


class Utterance(BaseModel):
    id: str
    text: str
    locale: str


class PlaybackState(BaseModel):
    active: bool
    utterance: Optional[Utterance] = None


class DocumentIn(BaseModel):
    text: str


class SelectionIn(BaseModel):
    text: str


class SpeakWordIn(BaseModel):
    word: str


class SpeechErrorIn(BaseModel):
    reason: str = ""


class TranslateIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    text: str
    source: str = Field(alias="from")
