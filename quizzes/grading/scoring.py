from collections.abc import Mapping
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Iterable, List, Optional, Union

from .answers import ANSWER_KEY, CORRECT_KEY, normalize_answers

MCQ = 'mcq'
WRITTEN = 'written'

Number = Union[int, float, Decimal]


@dataclass
class QuestionGrade:
    question_id: str
    question_type: str
    answer: str
    is_correct: Optional[bool]
    max_points: Number
    points_earned: Number

    @property
    def answered(self) -> bool:
        return bool(self.answer)


def _field(question: Any, name: str, default=None):
    # Questions arrive either as plain dicts or as QuizQuestion instances.
    if isinstance(question, Mapping):
        return question.get(name, default)
    return getattr(question, name, default)


def _points(question: Any) -> Number:
    return _field(question, 'points') or 0


def _earns_points(question: Any, entry: Mapping) -> bool:
    question_type = _field(question, 'question_type')
    is_correct = entry.get(CORRECT_KEY, False)

    if question_type == MCQ:
        # An explicit verdict wins; ungraded answers fall back to exact text match.
        if is_correct is True:
            return True
        return is_correct is None and entry.get(ANSWER_KEY) == _field(question, 'correct_answer')

    if question_type == WRITTEN:
        return is_correct is True

    return False


def grade_breakdown(raw_answers: Any, questions: Iterable) -> List[QuestionGrade]:
    """Per-question view of how ``calculate_score`` arrives at its total."""
    normalized = normalize_answers(raw_answers)
    grades = []

    for question in questions:
        question_id = str(_field(question, 'id'))
        entry = normalized.get(question_id)
        if not isinstance(entry, Mapping):
            entry = None

        max_points = _points(question)
        earned = max_points if entry is not None and _earns_points(question, entry) else 0

        grades.append(QuestionGrade(
            question_id=question_id,
            question_type=_field(question, 'question_type') or '',
            answer=(entry.get(ANSWER_KEY) or '') if entry else '',
            is_correct=entry.get(CORRECT_KEY) if entry else None,
            max_points=max_points,
            points_earned=earned,
        ))

    return grades


def calculate_score(raw_answers: Any, questions: Iterable) -> Number:
    return sum((grade.points_earned for grade in grade_breakdown(raw_answers, questions)), 0)


def calculate_max_score(questions: Iterable) -> Number:
    return sum((_points(question) for question in questions), 0)
