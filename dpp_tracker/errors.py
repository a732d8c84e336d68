from __future__ import annotations


class TrackerError(Exception):
    pass


class InvalidSessionError(TrackerError):
    """Question list empty, scope missing, or no session loaded."""


class NoSelectionError(TrackerError):
    """An answer was checked before any option was selected."""

    def __init__(self, question_id: str):
        super().__init__(f"No option selected for question {question_id}")
        self.question_id = question_id


class QuestionFetchError(TrackerError):
    """The question provider failed transiently (not an empty lesson)."""


class PersistenceError(TrackerError):
    """Saving an attempt summary to the sink failed."""

    def __init__(self, message: str, session_id: str | None = None):
        super().__init__(message)
        self.session_id = session_id
