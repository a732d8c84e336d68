from __future__ import annotations

from dataclasses import dataclass, field

OPTION_KEYS = ("A", "B", "C", "D")
DIFFICULTIES = ("Easy", "Medium", "Hard")

STATUS_CORRECT = "correct"
STATUS_INCORRECT = "incorrect"
STATUS_SKIPPED = "skipped"
STATUS_UNATTEMPTED = "unattempted"


@dataclass
class PYQInfo:
    exam_name: str = ""
    year: str = ""
    date: str = ""  # already formatted for display
    shift: str = ""

    def to_dict(self) -> dict:
        return {
            "examName": self.exam_name,
            "year": self.year,
            "date": self.date,
            "shift": self.shift,
        }

    @classmethod
    def from_dict(cls, data: dict | None) -> PYQInfo | None:
        if not data:
            return None
        return cls(
            exam_name=data.get("examName", "") or "",
            year=str(data.get("year", "") or ""),
            date=data.get("date", "") or "",
            shift=data.get("shift", "") or "",
        )


def format_pyq_info(info: PYQInfo | None) -> str:
    """Badge label like ``JEE Main 2023 (24-01-2023 Shift 1)``."""
    if info is None:
        return ""
    parts = [p for p in (info.exam_name, info.year) if p]
    date_and_shift = []
    if info.date:
        date_and_shift.append(info.date)
    if info.shift and info.shift != "N/A":
        date_and_shift.append(info.shift)
    if date_and_shift:
        parts.append(f"({' '.join(date_and_shift)})")
    return " ".join(parts)


@dataclass
class Question:
    id: str
    subject: str
    lesson_name: str
    correct_option: str  # A | B | C | D
    difficulty: str = "Medium"  # Easy | Medium | Hard
    is_pyq: bool = False
    pyq_info: PYQInfo | None = None
    lesson_topic: str = ""
    tags: str = ""
    question_type: str = "text"  # text | image | text_image
    question_text: str = ""
    question_image: str = ""
    options_format: str = "text_options"  # text_options | image_options
    option_texts: dict[str, str] = field(default_factory=dict)
    option_images: dict[str, str] = field(default_factory=dict)
    explanation_text: str = ""
    explanation_image: str = ""

    def to_dict(self) -> dict:
        d = {
            "id": self.id,
            "subject": self.subject,
            "lessonName": self.lesson_name,
            "lessonTopic": self.lesson_topic,
            "difficulty": self.difficulty,
            "tags": self.tags,
            "isPYQ": self.is_pyq,
            "pyqInfo": self.pyq_info.to_dict() if self.pyq_info else None,
            "questionType": self.question_type,
            "questionText": self.question_text,
            "questionImage": self.question_image,
            "optionsFormat": self.options_format,
            "correctOption": self.correct_option,
            "explanationText": self.explanation_text,
            "explanationImage": self.explanation_image,
        }
        for key in OPTION_KEYS:
            d[f"option{key}Text"] = self.option_texts.get(key, "")
            d[f"option{key}Image"] = self.option_images.get(key, "")
        return d

    def to_public_dict(self) -> dict:
        """Presentation payload with the answer and solution withheld."""
        d = self.to_dict()
        for k in ("correctOption", "explanationText", "explanationImage"):
            d.pop(k)
        return d

    @classmethod
    def from_dict(cls, data: dict) -> Question:
        option_texts = {}
        option_images = {}
        for key in OPTION_KEYS:
            if data.get(f"option{key}Text"):
                option_texts[key] = data[f"option{key}Text"]
            if data.get(f"option{key}Image"):
                option_images[key] = data[f"option{key}Image"]
        return cls(
            id=str(data["id"]),
            subject=data.get("subject", ""),
            lesson_name=data.get("lessonName", ""),
            correct_option=str(data.get("correctOption") or "").strip().upper(),
            difficulty=data.get("difficulty") or "Medium",
            is_pyq=bool(data.get("isPYQ", False)),
            pyq_info=PYQInfo.from_dict(data.get("pyqInfo")),
            lesson_topic=data.get("lessonTopic", "") or "",
            tags=data.get("tags", "") or "",
            question_type=data.get("questionType") or "text",
            question_text=data.get("questionText", "") or "",
            question_image=data.get("questionImage", "") or "",
            options_format=data.get("optionsFormat") or "text_options",
            option_texts=option_texts,
            option_images=option_images,
            explanation_text=data.get("explanationText", "") or "",
            explanation_image=data.get("explanationImage", "") or "",
        )


@dataclass
class AttemptEntry:
    question_id: str
    selected_option: str | None = None
    is_correct: bool | None = None  # None until the answer is checked

    @property
    def checked(self) -> bool:
        return self.is_correct is not None

    @property
    def status(self) -> str:
        if self.is_correct is True:
            return STATUS_CORRECT
        if self.is_correct is False:
            # isCorrect False with no selection only appears in a closed-out summary
            return STATUS_SKIPPED if self.selected_option is None else STATUS_INCORRECT
        return STATUS_UNATTEMPTED

    def to_dict(self) -> dict:
        return {
            "questionId": self.question_id,
            "selectedOption": self.selected_option,
            "isCorrect": self.is_correct,
            "status": self.status,
        }

    @classmethod
    def from_dict(cls, data: dict) -> AttemptEntry:
        return cls(
            question_id=str(data["questionId"]),
            selected_option=data.get("selectedOption"),
            is_correct=data.get("isCorrect"),
        )


@dataclass
class AttemptSummary:
    user_id: str | None
    subject: str
    lesson_name: str
    questions_attempted: list[AttemptEntry]
    score: int
    total_questions: int
    time_taken_seconds: int | None = None
    attempt_date: str | None = None  # stamped by the sink

    def to_dict(self) -> dict:
        d = {
            "userId": self.user_id,
            "subject": self.subject,
            "lessonName": self.lesson_name,
            "questionsAttempted": [e.to_dict() for e in self.questions_attempted],
            "score": self.score,
            "totalQuestions": self.total_questions,
        }
        if self.time_taken_seconds is not None:
            d["timeTakenSeconds"] = self.time_taken_seconds
        if self.attempt_date is not None:
            d["attemptDate"] = self.attempt_date
        return d

    @classmethod
    def from_dict(cls, data: dict) -> AttemptSummary:
        entries = [AttemptEntry.from_dict(e) for e in data.get("questionsAttempted") or []]
        return cls(
            user_id=data.get("userId") or None,
            subject=data.get("subject", ""),
            lesson_name=data.get("lessonName", ""),
            questions_attempted=entries,
            score=int(data.get("score", 0)),
            total_questions=int(data.get("totalQuestions", len(entries))),
            time_taken_seconds=data.get("timeTakenSeconds"),
            attempt_date=data.get("attemptDate") or None,
        )
