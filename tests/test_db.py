"""Tests for the database layer."""
from __future__ import annotations

from dpp_tracker.models import AttemptEntry, AttemptSummary


def _summary(user_id, score, statuses=("correct", "skipped", "skipped")):
    entries = []
    for i, status in enumerate(statuses, 1):
        if status == "correct":
            entries.append(AttemptEntry(f"q{i}", "A", True))
        elif status == "incorrect":
            entries.append(AttemptEntry(f"q{i}", "D", False))
        else:
            entries.append(AttemptEntry(f"q{i}", None, False))
    return AttemptSummary(user_id, "Physics", "Kinematics", entries, score, len(entries))


class TestQuestions:
    def test_import_and_count(self, tmp_db, sample_questions):
        assert tmp_db.import_questions(sample_questions) == 3
        assert tmp_db.get_question_count() == 3

    def test_lesson_order_is_stable(self, populated_db):
        qs = populated_db.get_questions("Physics", "Kinematics")
        assert [q.id for q in qs] == ["q1", "q2", "q3"]

    def test_update_keeps_position(self, populated_db, sample_questions):
        q1 = sample_questions[0]
        q1.question_text = "Edited"
        populated_db.save_question(q1)
        qs = populated_db.get_questions("Physics", "Kinematics")
        assert [q.id for q in qs] == ["q1", "q2", "q3"]
        assert qs[0].question_text == "Edited"
        assert populated_db.get_question_count() == 4

    def test_question_fields_roundtrip(self, populated_db, sample_questions):
        q2 = populated_db.get_questions("Physics", "Kinematics")[1]
        assert q2 == sample_questions[1]

    def test_unknown_lesson_is_empty(self, populated_db):
        assert populated_db.get_questions("Physics", "Thermodynamics") == []

    def test_lessons_and_subjects(self, populated_db):
        assert populated_db.get_lessons("Physics") == ["Kinematics", "Optics"]
        assert populated_db.get_lessons("Biology") == []
        assert populated_db.get_subjects() == ["Physics"]

    def test_delete_by_source(self, populated_db):
        assert populated_db.delete_questions_by_source("physics.json") == 4
        assert populated_db.get_question_count() == 0


class TestAttempts:
    def test_upsert_creates(self, tmp_db):
        stored = tmp_db.upsert_attempt(_summary("user1", 1))
        assert stored.score == 1
        assert stored.attempt_date is not None
        assert tmp_db.get_attempt_count() == 1

    def test_upsert_last_write_wins(self, tmp_db):
        tmp_db.upsert_attempt(_summary("user1", 1))
        tmp_db.upsert_attempt(_summary("user1", 2, ("correct", "correct", "incorrect")))
        stored = tmp_db.get_attempt("user1", "Physics", "Kinematics")
        assert stored.score == 2
        assert [e.status for e in stored.questions_attempted] == ["correct", "correct", "incorrect"]
        assert tmp_db.get_attempt_count() == 1

    def test_anonymous_attempts(self, tmp_db):
        tmp_db.upsert_attempt(_summary(None, 0))
        stored = tmp_db.get_attempt(None, "Physics", "Kinematics")
        assert stored is not None
        assert stored.user_id is None
        assert tmp_db.get_attempt("user1", "Physics", "Kinematics") is None

    def test_users_are_separate(self, tmp_db):
        tmp_db.upsert_attempt(_summary("user1", 1))
        tmp_db.upsert_attempt(_summary("user2", 0))
        assert tmp_db.get_attempt_count() == 2


class TestSessions:
    def test_session_log_and_stats(self, populated_db):
        populated_db.start_session("s1", "Physics", "Kinematics", "user1")
        populated_db.start_session("s2", "Physics", "Optics")
        populated_db.end_session("s1", 3, 2)

        stats = populated_db.get_stats()
        assert stats["completed_sessions"] == 1
        assert stats["questions_answered"] == 3
        assert stats["accuracy"] == 66.7
        assert stats["total_lessons"] == 2
        assert len(populated_db.get_session_history()) == 2

    def test_empty_stats(self, tmp_db):
        stats = tmp_db.get_stats()
        assert stats["total_questions"] == 0
        assert stats["accuracy"] == 0
