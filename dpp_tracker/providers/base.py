from __future__ import annotations

from abc import ABC, abstractmethod

from dpp_tracker.models import AttemptSummary, Question


class QuestionProvider(ABC):
    @abstractmethod
    async def get_questions(self, subject: str, lesson_name: str) -> list[Question]:
        """Ordered questions for a lesson. Empty list when the lesson has none;
        raises QuestionFetchError on transient failure."""
        ...

    async def get_lessons(self, subject: str) -> list[str]:
        return []

    async def add_question(self, question: Question) -> Question:
        raise NotImplementedError(f"{self.name()} does not accept new questions")

    @abstractmethod
    def name(self) -> str:
        ...


class AttemptSink(ABC):
    @abstractmethod
    async def save_attempt(self, summary: AttemptSummary) -> AttemptSummary:
        """Upsert keyed by (user_id or anonymous, subject, lesson_name).

        Returns the stored summary (with attempt_date set); raises
        PersistenceError on failure.
        """
        ...

    @abstractmethod
    async def load_attempt(
        self, user_id: str | None, subject: str, lesson_name: str
    ) -> AttemptSummary | None:
        ...

    @abstractmethod
    def name(self) -> str:
        ...
