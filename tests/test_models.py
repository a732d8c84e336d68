"""Tests for data models."""
from __future__ import annotations

from dpp_tracker.models import (
    AttemptEntry,
    AttemptSummary,
    PYQInfo,
    Question,
    format_pyq_info,
)


class TestAttemptEntryStatus:
    def test_blank_entry_is_skipped(self):
        e = AttemptEntry("q1", None, False)
        assert e.status == "skipped"

    def test_untouched_entry_is_unattempted(self):
        e = AttemptEntry("q1")
        assert e.status == "unattempted"
        assert not e.checked

    def test_selected_unchecked(self):
        e = AttemptEntry("q1", "A")
        assert e.status == "unattempted"
        assert not e.checked

    def test_correct_and_incorrect(self):
        assert AttemptEntry("q1", "A", True).status == "correct"
        assert AttemptEntry("q1", "B", False).status == "incorrect"

    def test_to_dict(self):
        d = AttemptEntry("q1", "C", False).to_dict()
        assert d == {
            "questionId": "q1",
            "selectedOption": "C",
            "isCorrect": False,
            "status": "incorrect",
        }


class TestQuestion:
    def test_from_record(self):
        q = Question.from_dict({
            "id": "abc",
            "subject": "Chemistry",
            "lessonName": "Mole Concept",
            "difficulty": "Hard",
            "isPYQ": True,
            "pyqInfo": {"examName": "MHT CET", "year": 2022},
            "questionText": "How many moles?",
            "optionAText": "1",
            "optionBText": "2",
            "optionCImage": "https://example.org/c.png",
            "correctOption": " b ",
        })
        assert q.correct_option == "B"
        assert q.lesson_name == "Mole Concept"
        assert q.option_texts == {"A": "1", "B": "2"}
        assert q.option_images == {"C": "https://example.org/c.png"}
        assert q.pyq_info.year == "2022"

    def test_non_string_correct_option(self):
        q = Question.from_dict({"id": "abc", "correctOption": 1})
        assert q.correct_option == "1"

    def test_public_dict_hides_answer(self, sample_questions):
        d = sample_questions[2].to_public_dict()
        assert "correctOption" not in d
        assert "explanationText" not in d
        assert d["optionAText"] == "1 m/s"

    def test_dict_roundtrip(self, sample_questions):
        q = sample_questions[1]
        assert Question.from_dict(q.to_dict()) == q


class TestPYQInfo:
    def test_full_label(self):
        info = PYQInfo("JEE Main", "2023", "24-01-2023", "Shift 1")
        assert format_pyq_info(info) == "JEE Main 2023 (24-01-2023 Shift 1)"

    def test_shift_na_omitted(self):
        info = PYQInfo("NEET", "2021", "", "N/A")
        assert format_pyq_info(info) == "NEET 2021"

    def test_none(self):
        assert format_pyq_info(None) == ""


class TestAttemptSummary:
    def test_to_dict_fields(self):
        s = AttemptSummary(
            user_id=None,
            subject="Physics",
            lesson_name="Kinematics",
            questions_attempted=[AttemptEntry("q1", "A", True)],
            score=1,
            total_questions=1,
            time_taken_seconds=42,
        )
        d = s.to_dict()
        assert d["userId"] is None
        assert d["lessonName"] == "Kinematics"
        assert d["questionsAttempted"][0]["status"] == "correct"
        assert d["timeTakenSeconds"] == 42
        assert "attemptDate" not in d

    def test_from_record_empty_user(self):
        s = AttemptSummary.from_dict({
            "userId": "",
            "subject": "Physics",
            "lessonName": "Kinematics",
            "questionsAttempted": [
                {"questionId": "q1", "selectedOption": None, "isCorrect": False, "status": "skipped"},
            ],
            "score": 0,
            "totalQuestions": 1,
        })
        assert s.user_id is None
        assert s.questions_attempted[0].status == "skipped"
