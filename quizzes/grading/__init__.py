from .answers import (
    create_answer_entry, convert_legacy_to_current, convert_current_to_legacy,
    is_current_format, normalize_answers, get_answer_text, get_correctness,
    set_correctness,
)
from .scoring import QuestionGrade, grade_breakdown, calculate_score, calculate_max_score

__all__ = [
    'create_answer_entry', 'convert_legacy_to_current', 'convert_current_to_legacy',
    'is_current_format', 'normalize_answers', 'get_answer_text', 'get_correctness',
    'set_correctness', 'QuestionGrade', 'grade_breakdown', 'calculate_score',
    'calculate_max_score',
]
