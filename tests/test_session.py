from __future__ import annotations

import asyncio
import threading
import time

import pytest

from conftest import FakeRasterizer, FakeSpeechEngine, FakeWriter, ok_payload

from vocab_reader.errors import DocumentBusyError
from vocab_reader.export import ExportPipeline
from vocab_reader.selection import LOOKUP_FAILED
from vocab_reader.session import Session, SessionRegistry
from vocab_reader.view import DOCUMENT_PANE, WORDS_PANE


def test_scenario_select_world(session, dictionary) -> None:
    dictionary.answers["world"] = ok_payload(translation=["世界"])
    session.replace_document("Hello world. 你好世界。")
    assert session.language == "zh"

    entry = asyncio.run(session.select("world"))
    assert entry.meaning == "世界"
    assert [w.word for w in session.store.words] == ["world"]
    assert session.store.highlighted == {"world"}

    asyncio.run(session.select("world"))
    assert len(dictionary.calls) == 1
    assert len(session.store) == 1


def test_rendered_tokens_mark_highlighted_words(session) -> None:
    session.replace_document("Hello world, hello")
    asyncio.run(session.select("hello"))
    highlighted = [t.text for t in session.rendered_tokens() if t.highlighted]
    assert highlighted == ["hello"]
    assert "".join(t.text for t in session.rendered_tokens()) == "Hello world, hello"


def test_failed_lookup_scenario(session, dictionary) -> None:
    dictionary.answers["world"] = {"errorCode": "50"}
    session.replace_document("Hello world")
    entry = asyncio.run(session.select("world"))
    assert entry.meaning == LOOKUP_FAILED
    assert session.delete_word("world")
    assert len(session.store) == 0


def test_replacing_document_drops_highlights_but_keeps_words(session) -> None:
    session.replace_document("Hello world")
    asyncio.run(session.select("world"))
    session.replace_document("Hello world")
    assert session.store.highlighted == {"world"}
    session.replace_document("Another text")
    assert session.store.highlighted == frozenset()
    assert len(session.store) == 1


def test_clear_cascades(session) -> None:
    session.replace_document("Hello world")
    asyncio.run(session.select("world"))
    session.clear()
    assert session.document == ""
    assert len(session.store) == 0
    assert session.store.highlighted == frozenset()
    assert session.tokens() == []


def test_speak_word_uses_recorded_language(session, speech_engine) -> None:
    session.replace_document("Hello 你好")
    asyncio.run(session.select("你好"))
    assert session.speak_word("missing") is None
    state = session.speak_word("你好")
    assert state.active
    assert speech_engine.spoken[-1].locale == "zh-CN"


def test_toggle_speech_reads_document(session, speech_engine) -> None:
    session.replace_document("Plain English text")
    assert session.toggle_speech().active
    assert speech_engine.spoken[-1].text == "Plain English text"
    assert speech_engine.spoken[-1].locale == "en-US"
    assert not session.toggle_speech().active


def test_export_uses_current_view(session, writers) -> None:
    session.replace_document("Hello world")
    asyncio.run(session.select("world"))
    session.scroll_to(WORDS_PANE, 30)
    pages = asyncio.run(session.export("notes.pdf"))
    assert pages == 2
    assert writers[0].saved_to == ["notes.pdf"]
    # scroll offsets survive both the export and view rebuilds
    assert session.view().pane(WORDS_PANE).scroll_top == 30


def test_scroll_to_unknown_pane(session) -> None:
    with pytest.raises(KeyError):
        session.scroll_to("sidebar", 10)
    session.scroll_to(DOCUMENT_PANE, -5)
    assert session.view().left.scroll_top == 0


def test_document_is_locked_during_export(dictionary, speech_engine, writers) -> None:
    class SlowRasterizer(FakeRasterizer):
        def capture(self, view, scale=2.0, background="#FFFFFF"):
            time.sleep(0.05)
            return super().capture(view, scale, background)

    session = Session(dictionary, speech_engine, ExportPipeline(SlowRasterizer(), FakeWriter))
    session.replace_document("Hello")

    async def _run():
        export = asyncio.ensure_future(session.export("out.pdf"))
        await asyncio.sleep(0.01)
        assert session.exporting
        with pytest.raises(DocumentBusyError):
            session.replace_document("edited mid-export")
        with pytest.raises(DocumentBusyError):
            session.clear()
        await export
        assert not session.exporting
        session.replace_document("edited after export")

    asyncio.run(_run())
    assert session.document == "edited after export"


def test_scroll_during_export_is_refused_and_offsets_restored(dictionary, speech_engine, writers) -> None:
    release = threading.Event()

    class BlockedRasterizer(FakeRasterizer):
        def capture(self, view, scale=2.0, background="#FFFFFF"):
            release.wait(timeout=5)
            return super().capture(view, scale, background)

    session = Session(dictionary, speech_engine, ExportPipeline(BlockedRasterizer(), FakeWriter))
    session.replace_document("Hello world")
    session.scroll_to(DOCUMENT_PANE, 120)
    session.scroll_to(WORDS_PANE, 15)

    async def _run():
        export = asyncio.ensure_future(session.export("out.pdf"))
        await asyncio.sleep(0.01)
        try:
            assert session.exporting
            with pytest.raises(DocumentBusyError):
                session.scroll_to(WORDS_PANE, 30)
            # reading the view mid-capture must not replace it
            assert session.view().left.scroll_top == 0
        finally:
            release.set()
        await export

    asyncio.run(_run())
    view = session.view()
    assert view.left.scroll_top == 120
    assert view.pane(WORDS_PANE).scroll_top == 15
    session.scroll_to(WORDS_PANE, 30)
    assert session.view().pane(WORDS_PANE).scroll_top == 30


def test_registry(dictionary, speech_engine) -> None:
    registry = SessionRegistry(
        lambda: Session(dictionary, speech_engine, ExportPipeline(FakeRasterizer(), lambda: None))
    )
    first = registry.create()
    second = registry.create()
    assert first.id != second.id
    assert registry.get(first.id) is first
    assert len(registry) == 2
    assert registry.drop(first.id)
    assert registry.get(first.id) is None
    assert not registry.drop(first.id)


def test_registry_evicts_least_recently_used(dictionary) -> None:
    engines = []

    def factory():
        engine = FakeSpeechEngine()
        engines.append(engine)
        return Session(dictionary, engine, ExportPipeline(FakeRasterizer(), FakeWriter))

    registry = SessionRegistry(factory, max_sessions=2)
    first = registry.create()
    second = registry.create()
    first.replace_document("Hello")
    first.toggle_speech()
    registry.get(second.id)

    third = registry.create()
    assert len(registry) == 2
    assert registry.get(first.id) is None
    assert registry.get(second.id) is second
    assert registry.get(third.id) is third
    # evicted sessions stop their readback
    assert engines[0].cancels == 1
    assert not first.speech.state.active
