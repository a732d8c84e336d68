"""CLI entry point for dpp-tracker.

Usage:
  python -m dpp_tracker serve [--port PORT] [--host HOST]
  python -m dpp_tracker stop
  python -m dpp_tracker status
  python -m dpp_tracker import [FILE ...]
  python -m dpp_tracker lessons SUBJECT
  python -m dpp_tracker stats
"""
from __future__ import annotations

import asyncio
import os
import signal
import sys
from pathlib import Path

PID_FILE = Path(__file__).resolve().parent.parent / ".server.pid"


def main():
    args = sys.argv[1:]
    command = args[0] if args else "serve"

    if command == "serve":
        _serve(args[1:])
    elif command == "stop":
        _stop()
    elif command == "status":
        _status()
    elif command == "import":
        _import_questions(args[1:])
    elif command == "lessons":
        _lessons(args[1:])
    elif command == "stats":
        _stats()
    else:
        print(f"Unknown command: {command}")
        print("Commands: serve, stop, status, import, lessons, stats")
        sys.exit(1)


def _parse_flag(args: list[str], name: str, default: str) -> str:
    for i, a in enumerate(args):
        if a == name and i + 1 < len(args):
            return args[i + 1]
    return default


def _read_pid() -> int | None:
    """Read PID from file, return None if stale or missing."""
    if not PID_FILE.exists():
        return None
    try:
        pid = int(PID_FILE.read_text().strip())
        os.kill(pid, 0)
        return pid
    except (ValueError, ProcessLookupError, PermissionError):
        PID_FILE.unlink(missing_ok=True)
        return None


def _stop() -> bool:
    """Stop a running server. Returns True if a server was stopped."""
    pid = _read_pid()
    if pid is None:
        print("Server is not running.")
        return False
    try:
        os.kill(pid, signal.SIGTERM)
        print(f"Stopped server (PID {pid}).")
        return True
    except ProcessLookupError:
        print("Server was not running (stale PID file removed).")
        return False
    finally:
        PID_FILE.unlink(missing_ok=True)


def _status():
    pid = _read_pid()
    if pid is None:
        print("Server is not running.")
    else:
        print(f"Server is running (PID {pid}).")


def _serve(args: list[str]):
    import uvicorn

    existing = _read_pid()
    if existing is not None:
        print(f"Server already running (PID {existing}). Use 'stop' first.")
        sys.exit(1)

    port = int(_parse_flag(args, "--port", "8765"))
    host = _parse_flag(args, "--host", "127.0.0.1")
    PID_FILE.write_text(str(os.getpid()))

    print(f"Starting DPP Tracker on http://{host}:{port}")
    print("Press Ctrl+C to stop\n")
    try:
        uvicorn.run(
            "dpp_tracker.app:app",
            host=host,
            port=port,
            reload=False,
            timeout_graceful_shutdown=5,
        )
    finally:
        PID_FILE.unlink(missing_ok=True)


def _import_questions(args: list[str]):
    from dpp_tracker.config import load_settings
    from dpp_tracker.db import Database
    from dpp_tracker.importer import parse_question_file

    settings = load_settings()
    db = Database(settings.db_full_path)
    files = [Path(a) for a in args] or settings.resolved_question_files()

    total = 0
    for qf in files:
        if not qf.exists():
            print(f"  Skipping (not found): {qf}")
            continue
        print(f"  Parsing: {qf.name}")
        db.delete_questions_by_source(qf.name)
        questions = parse_question_file(qf)
        n = db.import_questions(questions, source_file=qf.name)
        lessons = {(q.subject, q.lesson_name) for q in questions}
        print(f"    {n} questions in {len(lessons)} lessons")
        total += n

    print(f"\nImported {total} questions; {db.get_question_count()} in bank")
    db.close()


def _lessons(args: list[str]):
    if not args:
        print("Usage: python -m dpp_tracker lessons SUBJECT")
        sys.exit(1)
    subject = args[0]

    from dpp_tracker.config import load_settings
    from dpp_tracker.db import Database
    from dpp_tracker.errors import QuestionFetchError

    settings = load_settings()
    if settings.backend == "pocketbase":
        from dpp_tracker.providers.pocketbase import PocketBaseClient
        provider = PocketBaseClient(
            base_url=settings.pocketbase_url,
            token=settings.pocketbase_token,
            questions_collection=settings.questions_collection,
            attempts_collection=settings.attempts_collection,
            timeout=settings.request_timeout,
        )
        db = None
    else:
        from dpp_tracker.providers.local import LocalQuestionProvider
        db = Database(settings.db_full_path)
        provider = LocalQuestionProvider(db)

    try:
        lessons = asyncio.run(provider.get_lessons(subject))
    except QuestionFetchError as e:
        print(f"Error: {e}")
        sys.exit(1)
    finally:
        if db is not None:
            db.close()

    if not lessons:
        print(f"No lessons found for {subject}.")
    for name in lessons:
        print(f"  {name}")


def _stats():
    from dpp_tracker.config import load_settings
    from dpp_tracker.db import Database

    settings = load_settings()
    db = Database(settings.db_full_path)
    stats = db.get_stats()

    print("DPP Tracker Stats")
    print("=" * 40)
    print(f"Questions in bank:  {stats['total_questions']}")
    print(f"Lessons:            {stats['total_lessons']}")
    print(f"Subjects:           {', '.join(stats['subjects']) or '-'}")
    print(f"Saved attempts:     {stats['saved_attempts']}")
    print(f"Sessions completed: {stats['completed_sessions']}")
    print(f"Questions answered: {stats['questions_answered']}")
    print(f"Overall accuracy:   {stats['accuracy']}%")
    db.close()


if __name__ == "__main__":
    main()
