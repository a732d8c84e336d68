from __future__ import annotations

import json
import sqlite3
import uuid
from datetime import datetime, timezone
from pathlib import Path

from dpp_tracker.models import AttemptSummary, PYQInfo, Question

SCHEMA = """
CREATE TABLE IF NOT EXISTS questions (
    seq INTEGER PRIMARY KEY AUTOINCREMENT,
    id TEXT NOT NULL UNIQUE,
    subject TEXT NOT NULL,
    lesson_name TEXT NOT NULL,
    lesson_topic TEXT,
    difficulty TEXT NOT NULL DEFAULT 'Medium',
    tags TEXT,
    is_pyq INTEGER DEFAULT 0,
    pyq_info_json TEXT,
    question_type TEXT DEFAULT 'text',
    question_text TEXT,
    question_image TEXT,
    options_format TEXT DEFAULT 'text_options',
    option_texts_json TEXT DEFAULT '{}',
    option_images_json TEXT DEFAULT '{}',
    correct_option TEXT NOT NULL,
    explanation_text TEXT,
    explanation_image TEXT,
    source_file TEXT,
    created_at TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_questions_lesson ON questions (subject, lesson_name);

CREATE TABLE IF NOT EXISTS attempts (
    user_key TEXT NOT NULL,
    subject TEXT NOT NULL,
    lesson_name TEXT NOT NULL,
    user_id TEXT,
    questions_json TEXT NOT NULL,
    score INTEGER NOT NULL,
    total_questions INTEGER NOT NULL,
    time_taken_seconds INTEGER,
    attempt_date TEXT NOT NULL,
    PRIMARY KEY (user_key, subject, lesson_name)
);

CREATE TABLE IF NOT EXISTS sessions (
    id TEXT PRIMARY KEY,
    user_id TEXT,
    subject TEXT NOT NULL,
    lesson_name TEXT NOT NULL,
    started_at TEXT NOT NULL,
    ended_at TEXT,
    questions_total INTEGER DEFAULT 0,
    questions_correct INTEGER DEFAULT 0
);
"""

ANONYMOUS = ""


def _row_to_question(row: sqlite3.Row) -> Question:
    pyq_raw = row["pyq_info_json"]
    return Question(
        id=row["id"],
        subject=row["subject"],
        lesson_name=row["lesson_name"],
        correct_option=row["correct_option"],
        difficulty=row["difficulty"],
        is_pyq=bool(row["is_pyq"]),
        pyq_info=PYQInfo.from_dict(json.loads(pyq_raw)) if pyq_raw else None,
        lesson_topic=row["lesson_topic"] or "",
        tags=row["tags"] or "",
        question_type=row["question_type"] or "text",
        question_text=row["question_text"] or "",
        question_image=row["question_image"] or "",
        options_format=row["options_format"] or "text_options",
        option_texts=json.loads(row["option_texts_json"] or "{}"),
        option_images=json.loads(row["option_images_json"] or "{}"),
        explanation_text=row["explanation_text"] or "",
        explanation_image=row["explanation_image"] or "",
    )


class Database:
    def __init__(self, db_path: Path):
        self.db_path = db_path
        self.conn = sqlite3.connect(str(db_path), check_same_thread=False)
        self.conn.row_factory = sqlite3.Row
        self.conn.execute("PRAGMA journal_mode=WAL")
        self._init_schema()

    def _init_schema(self) -> None:
        self.conn.executescript(SCHEMA)
        self.conn.commit()

    def close(self) -> None:
        self.conn.close()

    # ── Question bank ─────────────────────────────────────────────────────

    def save_question(self, q: Question, source_file: str | None = None) -> None:
        """Insert or update a question, keeping its original lesson position."""
        self.conn.execute(
            "INSERT INTO questions "
            "(id, subject, lesson_name, lesson_topic, difficulty, tags, is_pyq, "
            "pyq_info_json, question_type, question_text, question_image, "
            "options_format, option_texts_json, option_images_json, correct_option, "
            "explanation_text, explanation_image, source_file, created_at) "
            "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?) "
            "ON CONFLICT(id) DO UPDATE SET "
            "subject=excluded.subject, lesson_name=excluded.lesson_name, "
            "lesson_topic=excluded.lesson_topic, difficulty=excluded.difficulty, "
            "tags=excluded.tags, is_pyq=excluded.is_pyq, "
            "pyq_info_json=excluded.pyq_info_json, question_type=excluded.question_type, "
            "question_text=excluded.question_text, question_image=excluded.question_image, "
            "options_format=excluded.options_format, "
            "option_texts_json=excluded.option_texts_json, "
            "option_images_json=excluded.option_images_json, "
            "correct_option=excluded.correct_option, "
            "explanation_text=excluded.explanation_text, "
            "explanation_image=excluded.explanation_image, "
            "source_file=excluded.source_file",
            (
                q.id,
                q.subject,
                q.lesson_name,
                q.lesson_topic,
                q.difficulty,
                q.tags,
                1 if q.is_pyq else 0,
                json.dumps(q.pyq_info.to_dict()) if q.pyq_info else None,
                q.question_type,
                q.question_text,
                q.question_image,
                q.options_format,
                json.dumps(q.option_texts),
                json.dumps(q.option_images),
                q.correct_option,
                q.explanation_text,
                q.explanation_image,
                source_file,
                datetime.now(timezone.utc).isoformat(),
            ),
        )
        self.conn.commit()

    def import_questions(self, questions: list[Question], source_file: str | None = None) -> int:
        for q in questions:
            self.save_question(q, source_file)
        return len(questions)

    def new_question_id(self) -> str:
        return uuid.uuid4().hex[:15]

    def delete_questions_by_source(self, source_file: str) -> int:
        cur = self.conn.execute(
            "DELETE FROM questions WHERE source_file = ?", (source_file,)
        )
        self.conn.commit()
        return cur.rowcount

    def get_question_count(self) -> int:
        row = self.conn.execute("SELECT COUNT(*) FROM questions").fetchone()
        return row[0]

    def get_questions(self, subject: str, lesson_name: str) -> list[Question]:
        """Lesson questions in insertion order."""
        rows = self.conn.execute(
            "SELECT * FROM questions WHERE subject = ? AND lesson_name = ? ORDER BY seq",
            (subject, lesson_name),
        ).fetchall()
        return [_row_to_question(r) for r in rows]

    def get_lessons(self, subject: str) -> list[str]:
        rows = self.conn.execute(
            "SELECT lesson_name, MIN(seq) AS first_seq FROM questions "
            "WHERE subject = ? GROUP BY lesson_name ORDER BY first_seq",
            (subject,),
        ).fetchall()
        return [r["lesson_name"] for r in rows]

    def get_subjects(self) -> list[str]:
        rows = self.conn.execute(
            "SELECT DISTINCT subject FROM questions ORDER BY subject"
        ).fetchall()
        return [r[0] for r in rows]

    # ── Attempts ──────────────────────────────────────────────────────────

    def upsert_attempt(self, summary: AttemptSummary) -> AttemptSummary:
        """Last write wins per (user, subject, lesson). Anonymous users share one key."""
        now = datetime.now(timezone.utc).isoformat()
        self.conn.execute(
            "INSERT INTO attempts (user_key, subject, lesson_name, user_id, questions_json, "
            "score, total_questions, time_taken_seconds, attempt_date) "
            "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?) "
            "ON CONFLICT(user_key, subject, lesson_name) DO UPDATE SET "
            "questions_json=excluded.questions_json, score=excluded.score, "
            "total_questions=excluded.total_questions, "
            "time_taken_seconds=excluded.time_taken_seconds, "
            "attempt_date=excluded.attempt_date",
            (
                summary.user_id or ANONYMOUS,
                summary.subject,
                summary.lesson_name,
                summary.user_id,
                json.dumps([e.to_dict() for e in summary.questions_attempted]),
                summary.score,
                summary.total_questions,
                summary.time_taken_seconds,
                now,
            ),
        )
        self.conn.commit()
        return self.get_attempt(summary.user_id, summary.subject, summary.lesson_name)

    def get_attempt(
        self, user_id: str | None, subject: str, lesson_name: str
    ) -> AttemptSummary | None:
        row = self.conn.execute(
            "SELECT * FROM attempts WHERE user_key = ? AND subject = ? AND lesson_name = ?",
            (user_id or ANONYMOUS, subject, lesson_name),
        ).fetchone()
        if row is None:
            return None
        return AttemptSummary.from_dict({
            "userId": row["user_id"],
            "subject": row["subject"],
            "lessonName": row["lesson_name"],
            "questionsAttempted": json.loads(row["questions_json"]),
            "score": row["score"],
            "totalQuestions": row["total_questions"],
            "timeTakenSeconds": row["time_taken_seconds"],
            "attemptDate": row["attempt_date"],
        })

    def get_attempt_count(self) -> int:
        row = self.conn.execute("SELECT COUNT(*) FROM attempts").fetchone()
        return row[0]

    # ── Sessions ──────────────────────────────────────────────────────────

    def start_session(
        self, session_id: str, subject: str, lesson_name: str, user_id: str | None = None
    ) -> None:
        now = datetime.now(timezone.utc).isoformat()
        self.conn.execute(
            "INSERT INTO sessions (id, user_id, subject, lesson_name, started_at) "
            "VALUES (?, ?, ?, ?, ?)",
            (session_id, user_id, subject, lesson_name, now),
        )
        self.conn.commit()

    def end_session(self, session_id: str, total: int, correct: int) -> None:
        now = datetime.now(timezone.utc).isoformat()
        self.conn.execute(
            "UPDATE sessions SET ended_at=?, questions_total=?, questions_correct=? "
            "WHERE id=?",
            (now, total, correct, session_id),
        )
        self.conn.commit()

    def get_session_history(self, limit: int = 20) -> list[dict]:
        rows = self.conn.execute(
            "SELECT * FROM sessions ORDER BY started_at DESC LIMIT ?", (limit,)
        ).fetchall()
        return [dict(r) for r in rows]

    def get_stats(self) -> dict:
        sessions = self.conn.execute(
            "SELECT COUNT(*) AS cnt, "
            "COALESCE(SUM(questions_total), 0) AS total, "
            "COALESCE(SUM(questions_correct), 0) AS correct "
            "FROM sessions WHERE ended_at IS NOT NULL"
        ).fetchone()
        lessons = self.conn.execute(
            "SELECT COUNT(*) FROM (SELECT DISTINCT subject, lesson_name FROM questions)"
        ).fetchone()

        total = sessions["total"]
        correct = sessions["correct"]
        return {
            "total_questions": self.get_question_count(),
            "total_lessons": lessons[0],
            "subjects": self.get_subjects(),
            "saved_attempts": self.get_attempt_count(),
            "completed_sessions": sessions["cnt"],
            "questions_answered": total,
            "questions_correct": correct,
            "accuracy": round(correct / total * 100, 1) if total > 0 else 0,
        }
