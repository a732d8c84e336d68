"""Shared test fixtures."""
from __future__ import annotations

import pytest

from dpp_tracker.db import Database
from dpp_tracker.errors import PersistenceError
from dpp_tracker.models import AttemptSummary, PYQInfo, Question
from dpp_tracker.providers.base import AttemptSink


def make_question(qid: str, correct: str, difficulty: str = "Medium", **kwargs) -> Question:
    return Question(
        id=qid,
        subject=kwargs.pop("subject", "Physics"),
        lesson_name=kwargs.pop("lesson_name", "Kinematics"),
        correct_option=correct,
        difficulty=difficulty,
        question_text=kwargs.pop("question_text", f"Question {qid}"),
        option_texts=kwargs.pop(
            "option_texts", {"A": "1 m/s", "B": "2 m/s", "C": "3 m/s", "D": "4 m/s"}
        ),
        **kwargs,
    )


@pytest.fixture
def tmp_db(tmp_path):
    """Create a fresh temporary database."""
    db = Database(tmp_path / "test.db")
    yield db
    db.close()


@pytest.fixture
def sample_questions():
    """Three Kinematics questions with answers A, B, C."""
    return [
        make_question("q1", "A", "Easy"),
        make_question(
            "q2", "B", "Hard",
            is_pyq=True,
            pyq_info=PYQInfo("JEE Main", "2023", "24-01-2023", "Shift 1"),
        ),
        make_question("q3", "C", "Medium", explanation_text="Use v = u + at."),
    ]


@pytest.fixture
def populated_db(tmp_db, sample_questions):
    """A database with the Kinematics lesson and one Optics question."""
    tmp_db.import_questions(sample_questions, source_file="physics.json")
    tmp_db.save_question(make_question("o1", "D", lesson_name="Optics"), "physics.json")
    return tmp_db


class FakeSink(AttemptSink):
    """In-memory sink; set ``fail`` to make saves raise PersistenceError."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.saved: dict[tuple, AttemptSummary] = {}
        self.calls: list[AttemptSummary] = []

    async def save_attempt(self, summary: AttemptSummary) -> AttemptSummary:
        self.calls.append(summary)
        if self.fail:
            raise PersistenceError("sink unavailable")
        key = (summary.user_id or "", summary.subject, summary.lesson_name)
        self.saved[key] = summary
        return summary

    async def load_attempt(self, user_id, subject, lesson_name):
        if self.fail:
            raise PersistenceError("sink unavailable")
        return self.saved.get((user_id or "", subject, lesson_name))

    def name(self) -> str:
        return "fake-sink"


@pytest.fixture
def fake_sink():
    return FakeSink()


@pytest.fixture(name="make_question")
def make_question_fixture():
    return make_question
