from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, Optional, Protocol, Tuple

from pydantic import ValidationError

from .annotations import AnnotationStore
from .errors import LookupFailure
from .language import detect, provider_language
from .models import AnnotatedWord, DictionaryResponse

logger = logging.getLogger(__name__)

NO_TRANSLATION = "(no translation)"
LOOKUP_FAILED = "(lookup failed)"


class Dictionary(Protocol):
    async def lookup(self, text: str, source: str) -> Any:
        """Return the provider payload for text; source is a provider language code."""
        ...


def best_meaning(response: DictionaryResponse) -> str:
    if response.translation and response.translation[0]:
        return response.translation[0]
    explains = response.basic.explains if response.basic else None
    if explains:
        return "\n".join(explains)
    return NO_TRANSLATION


def parse_response(text: str, payload: Any) -> DictionaryResponse:
    try:
        response = DictionaryResponse.model_validate(payload)
    except ValidationError as e:
        raise LookupFailure(text, f"malformed response: {e.error_count()} error(s)") from e
    if response.errorCode != "0":
        raise LookupFailure(text, f"provider error code {response.errorCode}")
    return response


def annotation_from_response(text: str, language: str, payload: Any) -> AnnotatedWord:
    response = parse_response(text, payload)
    phonetic = (response.basic.phonetic if response.basic else None) or ""
    return AnnotatedWord(word=text, phonetic=phonetic, meaning=best_meaning(response), language=language)


def placeholder(text: str, language: str) -> AnnotatedWord:
    return AnnotatedWord(word=text, phonetic="", meaning=LOOKUP_FAILED, language=language)


class SelectionResolver:
    """Turns selected text into annotations, one dictionary call per distinct text.

    A selection for text that is already annotated only re-highlights it.
    Selections for the same text that arrive while its lookup is in flight
    wait on that lookup instead of starting another one.
    """

    def __init__(self, store: AnnotationStore, dictionary: Dictionary) -> None:
        self.store = store
        self.dictionary = dictionary
        # keyed by (text, store generation): a lookup started before a clear is
        # never shared with selections made after it
        self._pending: Dict[Tuple[str, int], "asyncio.Future[Optional[AnnotatedWord]]"] = {}

    @property
    def pending(self) -> frozenset[str]:
        return frozenset(text for text, _ in self._pending)

    async def on_selection(self, raw_text: Optional[str]) -> Optional[AnnotatedWord]:
        text = (raw_text or "").strip()
        if not text:
            return None

        language = detect(text)
        if text in self.store:
            self.store.highlight(text)
            return self.store.get(text)

        key = (text, self.store.generation)
        task = self._pending.get(key)
        if task is None:
            task = asyncio.ensure_future(self._resolve(text, language, key[1]))
            self._pending[key] = task
        # shield: a cancelled waiter must not cancel the shared lookup
        return await asyncio.shield(task)

    async def _resolve(self, text: str, language: str, generation: int) -> Optional[AnnotatedWord]:
        try:
            try:
                payload = await self.dictionary.lookup(text, provider_language(language))
                entry = annotation_from_response(text, language, payload)
            except LookupFailure as e:
                logger.warning("Dictionary lookup failed for %r: %s", text, e.reason)
                entry = placeholder(text, language)
            except Exception as e:
                logger.warning("Dictionary lookup failed for %r: %s", text, e)
                entry = placeholder(text, language)
        finally:
            self._pending.pop((text, generation), None)

        if generation != self.store.generation:
            logger.debug("Dropping late lookup for %r; document was cleared", text)
            return None
        self.store.upsert(entry)
        self.store.highlight(text)
        return self.store.get(text)
