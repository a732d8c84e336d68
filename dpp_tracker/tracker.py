"""In-memory attempt state for one DPP practice session (one subject + lesson).

The tracker owns the ordered question list, the current position and the
per-question answer entries. It performs no I/O: fetching questions and
saving summaries belong to the caller (see ``dpp_tracker.sync``).
"""
from __future__ import annotations

import logging
import time
import uuid

from dpp_tracker.errors import InvalidSessionError, NoSelectionError
from dpp_tracker.models import (
    OPTION_KEYS,
    STATUS_CORRECT,
    STATUS_INCORRECT,
    STATUS_UNATTEMPTED,
    AttemptEntry,
    AttemptSummary,
    Question,
)

log = logging.getLogger("dpp_tracker.tracker")

NEXT = "next"
PREVIOUS = "previous"


class AttemptTracker:
    def __init__(self):
        self.session_id: str | None = None
        self.user_id: str | None = None
        self.subject = ""
        self.lesson_name = ""
        self.questions: list[Question] = []
        self.current_index = 0
        self.entries: dict[str, AttemptEntry] = {}
        self._by_id: dict[str, Question] = {}
        self._started_at: float | None = None

    # ── Lifecycle ─────────────────────────────────────────────────────────

    def load_session(
        self,
        subject: str,
        lesson_name: str,
        questions: list[Question],
        user_id: str | None = None,
    ) -> str:
        """Start a fresh session and return its identity token.

        Validation happens before any state is touched, so a failed load
        leaves the previous session (if any) exactly as it was.
        """
        if not subject or not lesson_name:
            raise InvalidSessionError("Subject or lesson name is missing.")
        if not questions:
            raise InvalidSessionError(
                f"No questions found for {subject} / {lesson_name}."
            )
        by_id = {}
        for q in questions:
            if q.id in by_id:
                raise InvalidSessionError(f"Duplicate question id: {q.id}")
            by_id[q.id] = q

        self.session_id = uuid.uuid4().hex
        self.user_id = user_id
        self.subject = subject
        self.lesson_name = lesson_name
        self.questions = list(questions)
        self._by_id = by_id
        self.entries = {}
        self.current_index = 0
        self._started_at = time.monotonic()
        log.info(
            "Session %s loaded: %s / %s (%d questions, user=%s)",
            self.session_id[:8], subject, lesson_name, len(questions), user_id or "anonymous",
        )
        return self.session_id

    @property
    def loaded(self) -> bool:
        return self.session_id is not None

    def _require_loaded(self) -> None:
        if not self.loaded:
            raise InvalidSessionError("No session loaded.")

    def _question(self, question_id: str) -> Question:
        try:
            return self._by_id[question_id]
        except KeyError:
            raise KeyError(f"Unknown question id: {question_id}") from None

    # ── Intents ───────────────────────────────────────────────────────────

    def select_option(self, question_id: str, option_key: str) -> bool:
        """Record a selection. Returns False (no-op) once the answer is checked."""
        self._require_loaded()
        self._question(question_id)
        if option_key not in OPTION_KEYS:
            raise ValueError(f"Unknown option key: {option_key!r}")

        entry = self.entries.get(question_id)
        if entry is not None and entry.checked:
            return False
        if entry is None:
            entry = self.entries[question_id] = AttemptEntry(question_id)
        entry.selected_option = option_key
        return True

    def check_answer(self, question_id: str) -> AttemptEntry:
        """Judge the selected option against the single correct key.

        A checked entry is final: checking it again returns the stored
        result unchanged.
        """
        self._require_loaded()
        question = self._question(question_id)
        entry = self.entries.get(question_id)
        if entry is None or entry.selected_option is None:
            raise NoSelectionError(question_id)
        if entry.checked:
            return entry

        entry.is_correct = entry.selected_option == question.correct_option
        log.info(
            "Session %s: %s answered %s (%s)",
            self.session_id[:8], question_id, entry.selected_option, entry.status,
        )
        return entry

    def can_advance(self, direction: str) -> bool:
        """Moving forward needs the current answer checked; review is always open."""
        self._require_loaded()
        if direction == NEXT:
            if self.current_index >= len(self.questions) - 1:
                return False
            return len(self.questions) == 1 or self.is_checked(self.current_question.id)
        if direction == PREVIOUS:
            return self.current_index > 0
        raise ValueError(f"Unknown direction: {direction!r}")

    def advance(self, direction: str) -> bool:
        """Move to the next or previous question. Returns False when refused."""
        if not self.can_advance(direction):
            return False
        self.current_index += 1 if direction == NEXT else -1
        return True

    # ── Reads ─────────────────────────────────────────────────────────────

    @property
    def current_question(self) -> Question:
        self._require_loaded()
        return self.questions[self.current_index]

    def entry_for(self, question_id: str) -> AttemptEntry:
        """Stored entry, or a blank unattempted one for an untouched question."""
        self._question(question_id)
        entry = self.entries.get(question_id)
        if entry is None:
            return AttemptEntry(question_id)
        return AttemptEntry(entry.question_id, entry.selected_option, entry.is_correct)

    def is_checked(self, question_id: str) -> bool:
        entry = self.entries.get(question_id)
        return entry is not None and entry.checked

    def elapsed_seconds(self) -> int | None:
        if self._started_at is None:
            return None
        return int(time.monotonic() - self._started_at)

    def build_summary(self, time_taken_seconds: int | None = None) -> AttemptSummary:
        """Snapshot of the whole session, one entry per question in order.

        Untouched questions are reported as skipped with no selection and
        ``isCorrect`` False. Never mutates tracker state.
        """
        self._require_loaded()
        rows: list[AttemptEntry] = []
        for q in self.questions:
            entry = self.entries.get(q.id)
            if entry is None:
                rows.append(AttemptEntry(q.id, None, False))
            else:
                rows.append(AttemptEntry(q.id, entry.selected_option, entry.is_correct))
        score = sum(1 for e in rows if e.status == STATUS_CORRECT)
        return AttemptSummary(
            user_id=self.user_id,
            subject=self.subject,
            lesson_name=self.lesson_name,
            questions_attempted=rows,
            score=score,
            total_questions=len(self.questions),
            time_taken_seconds=time_taken_seconds,
        )

    def progress(self) -> dict:
        """Header counters: checked answers and accuracy over them."""
        self._require_loaded()
        checked = [e for e in self.entries.values() if e.checked]
        correct = sum(1 for e in checked if e.is_correct)
        return {
            "total": len(self.questions),
            "solved": len(checked),
            "correct": correct,
            "accuracy": round(correct / len(checked) * 100, 1) if checked else 0,
            "current_index": self.current_index,
        }

    def filter_by_difficulty(self, difficulty: str | None) -> list[Question]:
        self._require_loaded()
        if not difficulty or difficulty == "All":
            return list(self.questions)
        return [q for q in self.questions if q.difficulty == difficulty]

    # ── Restore ───────────────────────────────────────────────────────────

    def hydrate(self, summary: AttemptSummary) -> int:
        """Restore entries from a previously saved summary of this lesson.

        Rows for questions no longer in the lesson, and skipped rows, are
        ignored. Returns the number of entries restored.
        """
        self._require_loaded()
        if (summary.subject, summary.lesson_name) != (self.subject, self.lesson_name):
            raise InvalidSessionError(
                f"Saved attempt is for {summary.subject} / {summary.lesson_name}, "
                f"not {self.subject} / {self.lesson_name}."
            )
        restored = 0
        for row in summary.questions_attempted:
            if row.question_id not in self._by_id or row.selected_option is None:
                continue
            if row.status == STATUS_UNATTEMPTED:
                is_correct = None
            elif row.status in (STATUS_CORRECT, STATUS_INCORRECT):
                # Judged against the current answer key
                is_correct = row.selected_option == self._by_id[row.question_id].correct_option
            else:
                continue
            self.entries[row.question_id] = AttemptEntry(
                row.question_id, row.selected_option, is_correct
            )
            restored += 1
        return restored
