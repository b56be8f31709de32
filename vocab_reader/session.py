from __future__ import annotations

import asyncio
import logging
import uuid
from collections import OrderedDict
from typing import Any, List, Optional

from .annotations import AnnotationStore
from .errors import DocumentBusyError
from .export import ExportPipeline
from .language import detect
from .models import AnnotatedWord, LanguageTag, PlaybackState, RenderedToken, Token
from .selection import Dictionary, SelectionResolver
from .speech import SpeechController, SpeechEngine
from .tokenizer import tokenize
from .view import ViewRoot, build_view

logger = logging.getLogger(__name__)


class Session:
    """All state for one reader: the document, its annotations, playback and the view.

    State changes only through the methods below. While an export is
    capturing, the document is locked against edits.
    """

    def __init__(
        self,
        dictionary: Dictionary,
        speech_engine: SpeechEngine,
        exporter: ExportPipeline,
        session_id: Optional[str] = None,
    ) -> None:
        self.id = session_id or uuid.uuid4().hex
        self.document = ""
        self.store = AnnotationStore()
        self.resolver = SelectionResolver(self.store, dictionary)
        self.speech = SpeechController(speech_engine)
        self.exporter = exporter
        self._edit_lock = asyncio.Lock()
        self._view: Optional[ViewRoot] = None

    @property
    def language(self) -> LanguageTag:
        return detect(self.document)

    @property
    def exporting(self) -> bool:
        return self._edit_lock.locked()

    def _check_editable(self) -> None:
        if self.exporting:
            raise DocumentBusyError("document is locked while an export is in progress")

    def replace_document(self, text: str) -> None:
        """Swap in new text; highlights belong to the old text and are dropped."""
        self._check_editable()
        text = text or ""
        if text != self.document:
            self.store.clear_highlights()
        self.document = text

    def clear(self) -> None:
        self._check_editable()
        self.document = ""
        self.store.clear_all()

    def tokens(self) -> List[Token]:
        return tokenize(self.document, self.language)

    def rendered_tokens(self) -> List[RenderedToken]:
        return [
            RenderedToken(text=t.text, is_word=t.is_word, highlighted=t.is_word and self.store.is_highlighted(t.text))
            for t in self.tokens()
        ]

    async def select(self, text: Optional[str]) -> Optional[AnnotatedWord]:
        return await self.resolver.on_selection(text)

    def delete_word(self, word: str) -> bool:
        return self.store.delete(word)

    def toggle_speech(self) -> PlaybackState:
        return self.speech.toggle(self.document)

    def speak_word(self, word: str) -> Optional[PlaybackState]:
        entry = self.store.get(word)
        if entry is None:
            return None
        self.speech.speak(entry.word, entry.language)
        return self.speech.state

    def _rebuild_view(self) -> ViewRoot:
        self._view = build_view(self.rendered_tokens(), self.store.cards(), previous=self._view)
        return self._view

    def view(self) -> ViewRoot:
        # the view under capture carries export styles; rebuilding from it
        # would lose the offsets the export restores
        if self.exporting and self._view is not None:
            return self._view
        return self._rebuild_view()

    def scroll_to(self, pane: str, offset: int) -> None:
        self._check_editable()
        self.view().pane(pane).scroll_top = max(0, int(offset))

    async def export(self, target: Any) -> int:
        async with self._edit_lock:
            return await self.exporter.export_document(self._rebuild_view(), target)


class SessionRegistry:
    """In-memory sessions; nothing outlives the process.

    At most max_sessions are kept. Creating one more evicts the session
    that was least recently looked up.
    """

    def __init__(self, factory, max_sessions: int = 1000) -> None:
        self._factory = factory
        self.max_sessions = max(1, max_sessions)
        self._sessions: "OrderedDict[str, Session]" = OrderedDict()

    def __len__(self) -> int:
        return len(self._sessions)

    def create(self) -> Session:
        while len(self._sessions) >= self.max_sessions:
            oldest, evicted = self._sessions.popitem(last=False)
            evicted.speech.stop()
            logger.info("Evicted idle session %s", oldest)
        session = self._factory()
        self._sessions[session.id] = session
        logger.info("Created session %s", session.id)
        return session

    def get(self, session_id: str) -> Optional[Session]:
        session = self._sessions.get(session_id)
        if session is not None:
            self._sessions.move_to_end(session_id)
        return session

    def drop(self, session_id: str) -> bool:
        session = self._sessions.pop(session_id, None)
        if session is None:
            return False
        session.speech.stop()
        return True
