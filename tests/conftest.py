from __future__ import annotations

import asyncio
from typing import Any, Callable, Dict, List, Optional, Tuple

import pytest
from PIL import Image

from vocab_reader.export import ExportPipeline
from vocab_reader.models import Utterance
from vocab_reader.render import Raster
from vocab_reader.session import Session


def ok_payload(translation: Optional[List[str]] = None, phonetic: str = "", explains=None) -> dict:
    payload: Dict[str, Any] = {"errorCode": "0"}
    if translation is not None:
        payload["translation"] = translation
    basic: Dict[str, Any] = {}
    if phonetic:
        basic["phonetic"] = phonetic
    if explains is not None:
        basic["explains"] = explains
    if basic:
        payload["basic"] = basic
    return payload


class FakeDictionary:
    """Answers from a canned table; an optional gate holds lookups until released."""

    def __init__(self, answers: Optional[Dict[str, Any]] = None) -> None:
        self.answers = answers or {}
        self.calls: List[Tuple[str, str]] = []
        self.gate: Optional[asyncio.Event] = None

    async def lookup(self, text: str, source: str) -> Any:
        self.calls.append((text, source))
        if self.gate is not None:
            await self.gate.wait()
        answer = self.answers.get(text, ok_payload(translation=[f"<{text}>"]))
        if isinstance(answer, Exception):
            raise answer
        return answer


class FakeSpeechEngine:
    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.spoken: List[Utterance] = []
        self.callbacks: Dict[str, Callable[[], None]] = {}
        self.cancels = 0

    def speak(self, utterance: Utterance, on_end: Callable[[], None]) -> None:
        if self.fail:
            raise RuntimeError("no voices available")
        self.spoken.append(utterance)
        self.callbacks[utterance.id] = on_end

    def cancel_active(self) -> None:
        self.cancels += 1

    def finish(self, utterance: Utterance) -> None:
        self.callbacks[utterance.id]()


class FakeRasterizer:
    def __init__(self, width: int = 842, height: int = 1000, error: Optional[Exception] = None) -> None:
        self.width = width
        self.height = height
        self.error = error
        self.seen_styles: List[Dict[str, Dict[str, str]]] = []
        self.calls: List[Dict[str, Any]] = []

    def capture(self, view, scale: float = 2.0, background: str = "#FFFFFF") -> Raster:
        self.calls.append({"scale": scale, "background": background})
        self.seen_styles.append({el.name + str(i): dict(el.style) for i, el in enumerate(view.elements())})
        if self.error is not None:
            raise self.error
        image = Image.new("RGB", (self.width, self.height), (10, 20, 30))
        return Raster(image=image, width=self.width, height=self.height)


class FakeWriter:
    instances: List["FakeWriter"] = []

    def __init__(self, fail_on_save: bool = False) -> None:
        self.fail_on_save = fail_on_save
        self.document: Optional[Tuple[float, float, str]] = None
        self.pages: List[Tuple[Image.Image, float, float]] = []
        self.saved_to: List[Any] = []
        FakeWriter.instances.append(self)

    def new_document(self, page_width: float, page_height: float, orientation: str = "landscape") -> None:
        self.document = (page_width, page_height, orientation)

    def add_page(self, image: Image.Image, x_offset: float = 0, y_offset: float = 0) -> None:
        self.pages.append((image, x_offset, y_offset))

    def save(self, target: Any) -> None:
        if self.fail_on_save:
            raise OSError("disk full")
        self.saved_to.append(target)


@pytest.fixture
def dictionary() -> FakeDictionary:
    return FakeDictionary()


@pytest.fixture
def speech_engine() -> FakeSpeechEngine:
    return FakeSpeechEngine()


@pytest.fixture
def rasterizer() -> FakeRasterizer:
    return FakeRasterizer()


@pytest.fixture
def writers():
    FakeWriter.instances = []
    yield FakeWriter.instances
    FakeWriter.instances = []


@pytest.fixture
def session(dictionary, speech_engine, rasterizer, writers) -> Session:
    return Session(
        dictionary=dictionary,
        speech_engine=speech_engine,
        exporter=ExportPipeline(rasterizer, FakeWriter),
    )
