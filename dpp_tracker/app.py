"""FastAPI application exposing DPP practice sessions to the UI."""
from __future__ import annotations

import logging

logging.basicConfig(level=logging.INFO, format="%(name)s | %(message)s")

from fastapi import FastAPI, HTTPException, Request

from dpp_tracker.config import Settings, load_settings, save_settings
from dpp_tracker.db import Database
from dpp_tracker.errors import InvalidSessionError, NoSelectionError, QuestionFetchError
from dpp_tracker.importer import validate_question
from dpp_tracker.models import Question
from dpp_tracker.providers.base import AttemptSink, QuestionProvider
from dpp_tracker.sync import AttemptSync
from dpp_tracker.tracker import NEXT, PREVIOUS, AttemptTracker

app = FastAPI(title="DPP Tracker")

# Global state (initialized in startup)
_db: Database | None = None
_settings: Settings | None = None
_active_sessions: dict[str, AttemptSync] = {}  # session_id -> sync (owns its tracker)

log = logging.getLogger("dpp_tracker.app")


def get_db() -> Database:
    assert _db is not None
    return _db


def get_settings() -> Settings:
    assert _settings is not None
    return _settings


def _get_backend() -> tuple[QuestionProvider, AttemptSink]:
    s = get_settings()
    if s.backend == "local":
        from dpp_tracker.providers.local import LocalAttemptSink, LocalQuestionProvider
        db = get_db()
        return LocalQuestionProvider(db), LocalAttemptSink(db)
    elif s.backend == "pocketbase":
        from dpp_tracker.providers.pocketbase import PocketBaseClient
        client = PocketBaseClient(
            base_url=s.pocketbase_url,
            token=s.pocketbase_token,
            questions_collection=s.questions_collection,
            attempts_collection=s.attempts_collection,
            timeout=s.request_timeout,
        )
        return client, client
    raise ValueError(f"Unknown backend: {s.backend}")


@app.on_event("startup")
async def startup():
    global _db, _settings
    if _db is not None:
        return  # Already initialized (e.g. by tests)
    _settings = load_settings()
    _db = Database(_settings.db_full_path)


@app.on_event("shutdown")
async def shutdown():
    for sync in _active_sessions.values():
        sync.cancel_pending()
    if _db:
        _db.close()


def _get_session(session_id: str) -> AttemptSync:
    sync = _active_sessions.get(session_id)
    if sync is None:
        raise HTTPException(404, "Session not found")
    return sync


def _sync_error(sync: AttemptSync) -> str | None:
    err = sync.last_error
    if err is not None and err.session_id == sync.tracker.session_id:
        return str(err)
    return None


def _session_state(sync: AttemptSync) -> dict:
    tracker = sync.tracker
    q = tracker.current_question
    entry = tracker.entry_for(q.id)
    state = {
        "session_id": tracker.session_id,
        "subject": tracker.subject,
        "lesson_name": tracker.lesson_name,
        "question": q.to_public_dict(),
        "entry": entry.to_dict(),
        "progress": tracker.progress(),
        "can_previous": tracker.can_advance(PREVIOUS),
        "can_next": tracker.can_advance(NEXT),
        "sync_error": _sync_error(sync),
    }
    if entry.checked:
        state["solution"] = {
            "correct_option": q.correct_option,
            "explanation_text": q.explanation_text,
            "explanation_image": q.explanation_image,
        }
    return state


async def _body(request: Request) -> dict:
    return await request.json() if await request.body() else {}


# ── API: Lessons ──────────────────────────────────────────────────────────

@app.get("/api/subjects/{subject}/lessons")
async def api_lessons(subject: str):
    provider, _ = _get_backend()
    try:
        lessons = await provider.get_lessons(subject)
    except QuestionFetchError as e:
        raise HTTPException(502, str(e))
    return {"subject": subject, "lessons": lessons}


@app.post("/api/questions")
async def api_add_question(request: Request):
    body = await _body(request)
    body.setdefault("id", "")
    try:
        q = Question.from_dict(body)
    except (KeyError, TypeError, ValueError) as e:
        raise HTTPException(422, f"Invalid question: {e}")
    problems = validate_question(q)
    if problems:
        raise HTTPException(422, "; ".join(problems))
    provider, _ = _get_backend()
    try:
        saved = await provider.add_question(q)
    except QuestionFetchError as e:
        raise HTTPException(502, str(e))
    return saved.to_dict()


# ── API: Session management ──────────────────────────────────────────────

@app.post("/api/session/start")
async def api_session_start(request: Request):
    body = await _body(request)
    subject = body.get("subject", "")
    lesson_name = body.get("lesson_name", "")
    user_id = body.get("user_id") or None
    if not subject or not lesson_name:
        raise HTTPException(400, "Subject or lesson name is missing.")

    provider, sink = _get_backend()
    sync = AttemptSync(AttemptTracker(), sink)
    try:
        session_id = await sync.open_session(provider, subject, lesson_name, user_id)
    except QuestionFetchError as e:
        raise HTTPException(502, str(e))
    except InvalidSessionError as e:
        # An empty lesson is a normal state for the UI, not a failure
        return {"session_id": None, "empty": True, "message": str(e)}

    _active_sessions[session_id] = sync
    get_db().start_session(session_id, subject, lesson_name, user_id)
    return _session_state(sync)


@app.get("/api/session/{session_id}")
async def api_session_state(session_id: str):
    return _session_state(_get_session(session_id))


@app.post("/api/session/{session_id}/select")
async def api_session_select(session_id: str, request: Request):
    sync = _get_session(session_id)
    body = await _body(request)
    question_id = body.get("question_id") or sync.tracker.current_question.id
    try:
        applied = sync.tracker.select_option(question_id, body.get("option", ""))
    except KeyError:
        raise HTTPException(404, "Question not in this session")
    except ValueError as e:
        raise HTTPException(400, str(e))
    return {"applied": applied, **_session_state(sync)}


@app.post("/api/session/{session_id}/check")
async def api_session_check(session_id: str, request: Request):
    sync = _get_session(session_id)
    body = await _body(request)
    question_id = body.get("question_id") or sync.tracker.current_question.id
    try:
        entry = sync.check_answer(question_id)
    except KeyError:
        raise HTTPException(404, "Question not in this session")
    except NoSelectionError as e:
        raise HTTPException(409, str(e))
    return {"correct": entry.is_correct, "status": entry.status, **_session_state(sync)}


@app.post("/api/session/{session_id}/advance")
async def api_session_advance(session_id: str, request: Request):
    sync = _get_session(session_id)
    body = await _body(request)
    direction = body.get("direction", NEXT)
    if direction not in (NEXT, PREVIOUS):
        raise HTTPException(400, f"Unknown direction: {direction}")
    moved = sync.tracker.advance(direction)
    return {"moved": moved, **_session_state(sync)}


@app.get("/api/session/{session_id}/summary")
async def api_session_summary(session_id: str):
    sync = _get_session(session_id)
    tracker = sync.tracker
    return tracker.build_summary(tracker.elapsed_seconds()).to_dict()


@app.post("/api/session/{session_id}/retry-save")
async def api_session_retry(session_id: str):
    sync = _get_session(session_id)
    task = sync.retry()
    if task is None:
        return {"retried": False, "sync_error": None}
    await task
    return {"retried": True, "sync_error": _sync_error(sync)}


@app.post("/api/session/{session_id}/end")
async def api_session_end(session_id: str):
    sync = _get_session(session_id)
    summary = await sync.end_session()
    get_db().end_session(session_id, summary.total_questions, summary.score)
    result = {"summary": summary.to_dict(), "sync_error": _sync_error(sync)}
    _active_sessions.pop(session_id, None)
    return result


# ── API: Stats ────────────────────────────────────────────────────────────

@app.get("/api/stats")
async def api_stats():
    stats = get_db().get_stats()
    stats["active_sessions"] = len(_active_sessions)
    stats["backend"] = get_settings().backend
    return stats


# ── API: Settings ─────────────────────────────────────────────────────────

@app.get("/api/settings")
async def api_get_settings():
    return get_settings().to_public_dict()


@app.put("/api/settings")
async def api_put_settings(request: Request):
    global _settings
    body = await request.json()
    current = get_settings().to_dict()
    for key, value in body.items():
        if key in current and not (key == "pocketbase_token" and value == "***"):
            current[key] = value
    if current["backend"] not in ("local", "pocketbase"):
        raise HTTPException(400, f"Unknown backend: {current['backend']}")
    _settings = Settings(**current)
    save_settings(_settings)
    return _settings.to_public_dict()
