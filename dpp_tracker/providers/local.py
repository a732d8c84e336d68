from __future__ import annotations

import sqlite3

from dpp_tracker.db import Database
from dpp_tracker.errors import PersistenceError, QuestionFetchError
from dpp_tracker.models import AttemptSummary, Question
from dpp_tracker.providers.base import AttemptSink, QuestionProvider


class LocalQuestionProvider(QuestionProvider):
    def __init__(self, db: Database):
        self.db = db

    async def get_questions(self, subject: str, lesson_name: str) -> list[Question]:
        try:
            return self.db.get_questions(subject, lesson_name)
        except sqlite3.Error as e:
            raise QuestionFetchError(f"Could not load questions: {e}") from e

    async def get_lessons(self, subject: str) -> list[str]:
        return self.db.get_lessons(subject)

    async def add_question(self, question: Question) -> Question:
        if not question.id:
            question.id = self.db.new_question_id()
        self.db.save_question(question)
        return question

    def name(self) -> str:
        return f"local/{self.db.db_path.name}"


class LocalAttemptSink(AttemptSink):
    def __init__(self, db: Database):
        self.db = db

    async def save_attempt(self, summary: AttemptSummary) -> AttemptSummary:
        try:
            return self.db.upsert_attempt(summary)
        except sqlite3.Error as e:
            raise PersistenceError(f"Attempt save failed: {e}") from e

    async def load_attempt(
        self, user_id: str | None, subject: str, lesson_name: str
    ) -> AttemptSummary | None:
        try:
            return self.db.get_attempt(user_id, subject, lesson_name)
        except sqlite3.Error as e:
            raise PersistenceError(f"Could not load saved attempt: {e}") from e

    def name(self) -> str:
        return f"local/{self.db.db_path.name}"
