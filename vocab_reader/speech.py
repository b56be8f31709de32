from __future__ import annotations

import logging
import uuid
from typing import Callable, Dict, List, Optional, Protocol, Tuple

from .errors import SpeechFailure
from .language import detect, locale_for
from .models import PlaybackState, Utterance

logger = logging.getLogger(__name__)


class SpeechEngine(Protocol):
    def speak(self, utterance: Utterance, on_end: Callable[[], None]) -> None:
        """Start speaking; on_end fires once when playback finishes naturally."""
        ...

    def cancel_active(self) -> None:
        ...


class SpeechController:
    """Owns the single speaking slot.

    At most one utterance is active. Starting a new one cancels the old one
    first, and a completion callback only changes state if it belongs to the
    utterance that is still active.
    """

    def __init__(self, engine: SpeechEngine) -> None:
        self.engine = engine
        self._active: Optional[Utterance] = None

    @property
    def state(self) -> PlaybackState:
        return PlaybackState(active=self._active is not None, utterance=self._active)

    @property
    def active(self) -> Optional[Utterance]:
        return self._active

    def speak(self, text: str, language: str) -> Optional[Utterance]:
        self.stop()
        utterance = Utterance(id=uuid.uuid4().hex, text=text, locale=locale_for(language))
        # Set before starting: an engine may report completion synchronously.
        self._active = utterance
        try:
            self.engine.speak(utterance, lambda: self._finished(utterance))
        except Exception as e:
            logger.warning("Speech engine failed to start: %s", e)
            self._finished(utterance)
            return None
        return utterance

    def stop(self) -> None:
        if self._active is None:
            return
        self._active = None
        try:
            self.engine.cancel_active()
        except Exception as e:
            logger.warning("Speech engine failed to cancel: %s", e)

    def toggle(self, document: str) -> PlaybackState:
        """Whole-document readback: stop if speaking, otherwise read the document."""
        if self._active is not None:
            self.stop()
        elif document:
            self.speak(document, detect(document))
        return self.state

    def fail(self, utterance: Utterance, reason: str = "") -> None:
        logger.warning("Speech failed for utterance %s: %s", utterance.id, reason or "engine error")
        self._finished(utterance)

    def _finished(self, utterance: Utterance) -> None:
        if self._active is not utterance:
            logger.debug("Ignoring completion of stale utterance %s", utterance.id)
            return
        self._active = None


class BrowserSpeechEngine:
    """Speech engine driven by the web client.

    Speaking queues an utterance for the client to play with its own
    synthesis API. The client reports back with the utterance id when
    playback ends or fails.
    """

    def __init__(self) -> None:
        self._callbacks: Dict[str, Tuple[Utterance, Callable[[], None]]] = {}
        self.commands: List[dict] = []
        self.current: Optional[Utterance] = None

    def speak(self, utterance: Utterance, on_end: Callable[[], None]) -> None:
        self._callbacks[utterance.id] = (utterance, on_end)
        self.current = utterance
        self.commands.append({"action": "speak", "utterance": utterance.model_dump()})

    def cancel_active(self) -> None:
        if self.current is not None:
            utterance_id = self.current.id
            queued = [
                c for c in self.commands
                if c["action"] == "speak" and c["utterance"]["id"] == utterance_id
            ]
            if queued:
                # the client never saw it; drop the speak instead of queueing a cancel
                self.commands.remove(queued[0])
            else:
                self.commands.append({"action": "cancel", "utterance_id": utterance_id})
            self._callbacks.pop(utterance_id, None)
        self.current = None

    def drain(self) -> List[dict]:
        commands, self.commands = self.commands, []
        return commands

    def _release(self, utterance_id: str) -> Tuple[Utterance, Callable[[], None]]:
        entry = self._callbacks.pop(utterance_id, None)
        if entry is None:
            raise SpeechFailure(f"unknown or cancelled utterance: {utterance_id}")
        if self.current is entry[0]:
            self.current = None
        return entry

    def ended(self, utterance_id: str) -> Utterance:
        utterance, on_end = self._release(utterance_id)
        on_end()
        return utterance

    def failed(self, utterance_id: str) -> Utterance:
        utterance, _ = self._release(utterance_id)
        return utterance
