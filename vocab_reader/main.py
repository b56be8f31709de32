from __future__ import annotations

import io
import logging
from urllib.parse import quote

from fastapi import FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response

from .config import load_settings
from .errors import DocumentBusyError, ExportFailure, SpeechFailure
from .export import ExportPipeline
from .models import DocumentIn, SelectionIn, SpeakWordIn, SpeechErrorIn, TranslateIn
from .render import PillowRasterizer, ReportlabWriter
from .session import Session, SessionRegistry
from .speech import BrowserSpeechEngine
from .view import DOCUMENT_PANE, WORDS_PANE
from .youdao import YoudaoDictionary

settings = load_settings()
logging.basicConfig(level=getattr(logging, settings.log_level, logging.INFO))
logger = logging.getLogger(__name__)

dictionary = YoudaoDictionary.from_settings(settings)
rasterizer = PillowRasterizer(font_path=settings.export_font_path)


def new_session() -> Session:
    return Session(
        dictionary=dictionary,
        speech_engine=BrowserSpeechEngine(),
        exporter=ExportPipeline(rasterizer, ReportlabWriter, scale=settings.export_scale),
    )


sessions = SessionRegistry(new_session, max_sessions=settings.max_sessions)

# Session state is only touched from async endpoints, i.e. on the event loop.
# /translate blocks on the provider and stays sync (thread pool).
app = FastAPI()

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=False,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["*"],
)


@app.get("/health")
def health():
    return {
        "ok": True,
        "sessions": len(sessions),
        "dictionary_configured": bool(settings.youdao_app_key and settings.youdao_app_secret),
    }


def find_session(session_id: str) -> Session:
    session = sessions.get(session_id)
    if session is None:
        raise HTTPException(404, detail=f"session_id not found: {session_id}")
    return session


def document_payload(session: Session) -> dict:
    return {"text": session.document, "language": session.language}


@app.post("/sessions")
async def create_session():
    return {"id": sessions.create().id}


@app.delete("/sessions/{session_id}")
async def delete_session(session_id: str):
    if not sessions.drop(session_id):
        raise HTTPException(404, detail=f"session_id not found: {session_id}")
    logger.info("Dropped session %s", session_id)
    return {"ok": True}


@app.get("/sessions/{session_id}/document")
async def get_document(session_id: str):
    return document_payload(find_session(session_id))


@app.put("/sessions/{session_id}/document")
async def put_document(session_id: str, body: DocumentIn):
    session = find_session(session_id)
    try:
        session.replace_document(body.text)
    except DocumentBusyError as e:
        raise HTTPException(409, detail=str(e))
    return document_payload(session)


@app.delete("/sessions/{session_id}/document")
async def clear_document(session_id: str):
    session = find_session(session_id)
    try:
        session.clear()
    except DocumentBusyError as e:
        raise HTTPException(409, detail=str(e))
    return document_payload(session)


@app.get("/sessions/{session_id}/tokens")
async def get_tokens(session_id: str):
    session = find_session(session_id)
    return {
        "language": session.language,
        "tokens": [t.model_dump() for t in session.rendered_tokens()],
    }


@app.post("/sessions/{session_id}/selection")
async def post_selection(session_id: str, body: SelectionIn):
    session = find_session(session_id)
    entry = await session.select(body.text)
    return {"entry": entry.model_dump() if entry else None}


@app.get("/sessions/{session_id}/words")
async def get_words(session_id: str):
    session = find_session(session_id)
    return {
        "words": [c.model_dump() for c in session.store.cards()],
        "highlighted": sorted(session.store.highlighted),
    }


@app.delete("/sessions/{session_id}/words/{word:path}")
async def delete_word(session_id: str, word: str):
    session = find_session(session_id)
    if not session.delete_word(word):
        raise HTTPException(404, detail=f"word not found: {word}")
    return {"ok": True, "word": word}


def playback_payload(session: Session) -> dict:
    engine = session.speech.engine
    commands = engine.drain() if isinstance(engine, BrowserSpeechEngine) else []
    return {"state": session.speech.state.model_dump(), "commands": commands}


@app.get("/sessions/{session_id}/speech")
async def get_speech(session_id: str):
    return playback_payload(find_session(session_id))


@app.post("/sessions/{session_id}/speech/toggle")
async def toggle_speech(session_id: str):
    session = find_session(session_id)
    session.toggle_speech()
    return playback_payload(session)


@app.post("/sessions/{session_id}/speech/word")
async def speak_word(session_id: str, body: SpeakWordIn):
    session = find_session(session_id)
    if session.speak_word(body.word) is None:
        raise HTTPException(404, detail=f"word not found: {body.word}")
    return playback_payload(session)


def browser_engine(session: Session) -> BrowserSpeechEngine:
    engine = session.speech.engine
    if not isinstance(engine, BrowserSpeechEngine):
        raise HTTPException(400, detail="speech is not driven by the client in this session")
    return engine


@app.post("/sessions/{session_id}/speech/{utterance_id}/end")
async def speech_ended(session_id: str, utterance_id: str):
    session = find_session(session_id)
    try:
        browser_engine(session).ended(utterance_id)
    except SpeechFailure as e:
        raise HTTPException(404, detail=str(e))
    return playback_payload(session)


@app.post("/sessions/{session_id}/speech/{utterance_id}/error")
async def speech_failed(session_id: str, utterance_id: str, body: SpeechErrorIn):
    session = find_session(session_id)
    try:
        utterance = browser_engine(session).failed(utterance_id)
    except SpeechFailure as e:
        raise HTTPException(404, detail=str(e))
    session.speech.fail(utterance, body.reason)
    return playback_payload(session)


@app.put("/sessions/{session_id}/view/scroll")
async def scroll_view(
    session_id: str,
    pane: str = Query(..., description=f"{DOCUMENT_PANE} or {WORDS_PANE}"),
    offset: int = Query(..., ge=0),
):
    session = find_session(session_id)
    try:
        session.scroll_to(pane, offset)
    except KeyError:
        raise HTTPException(400, detail=f"unknown pane: {pane}")
    except DocumentBusyError as e:
        raise HTTPException(409, detail=str(e))
    return {"pane": pane, "offset": offset}


@app.post("/sessions/{session_id}/export")
async def export_pdf(session_id: str):
    session = find_session(session_id)
    buf = io.BytesIO()
    try:
        pages = await session.export(buf)
    except ExportFailure as e:
        raise HTTPException(500, detail=f"export failed: {e}")
    filename = settings.export_filename
    return Response(
        content=buf.getvalue(),
        media_type="application/pdf",
        headers={
            "Content-Disposition": f"attachment; filename*=UTF-8''{quote(filename)}",
            "X-Page-Count": str(pages),
        },
    )


@app.post("/translate")
def translate(body: TranslateIn):
    status, payload = dictionary.translate_proxy(body.text, body.source)
    return JSONResponse(payload, status_code=status)
