"""Load lesson question banks from JSON exports.

Accepts either a bare list of question records or ``{"questions": [...]}``.
Records use the question bank field names (``subject``, ``lessonName``,
``correctOption``, ``optionAText`` ...). Invalid records are skipped with a
warning; records without an ``id`` get a stable one derived from the file
name and position.
"""
from __future__ import annotations

import json
import logging
from pathlib import Path

from dpp_tracker.models import DIFFICULTIES, OPTION_KEYS, Question

log = logging.getLogger("dpp_tracker.import")


def validate_question(q: Question) -> list[str]:
    problems = []
    if not q.subject:
        problems.append("subject is required")
    if not q.lesson_name:
        problems.append("lessonName is required")
    if q.difficulty not in DIFFICULTIES:
        problems.append(f"difficulty must be one of {', '.join(DIFFICULTIES)}")
    if q.correct_option not in OPTION_KEYS:
        problems.append(f"correctOption must be one of {', '.join(OPTION_KEYS)}")
    if not q.question_text and not q.question_image:
        problems.append("question text or image is required")
    if q.correct_option in OPTION_KEYS and not (
        q.option_texts.get(q.correct_option) or q.option_images.get(q.correct_option)
    ):
        problems.append(f"option {q.correct_option} is marked correct but is empty")
    return problems


def parse_question_file(path: Path) -> list[Question]:
    data = json.loads(path.read_text())
    records = data.get("questions", []) if isinstance(data, dict) else data

    questions: list[Question] = []
    for i, record in enumerate(records, 1):
        if not isinstance(record, dict):
            log.warning("%s #%d: not an object, skipped", path.name, i)
            continue
        record = dict(record)
        record.setdefault("id", f"{path.stem}-{i:04d}")
        q = Question.from_dict(record)
        problems = validate_question(q)
        if problems:
            log.warning("%s #%d (%s): %s, skipped", path.name, i, q.id, "; ".join(problems))
            continue
        questions.append(q)
    return questions
