"""
Answer set normalization for quiz attempts.

Attempt answers have been stored in two shapes over time:

    legacy:  {"<question_id>": "Paris"}
    current: {"<question_id>": {"answer": "Paris", "isCorrect": null}}

Both are still present in the database, sometimes JSON-encoded as a string.
Every read goes through ``normalize_answers`` so callers only ever see the
current shape. Nothing here raises on malformed input.
"""
import json
import logging
from collections.abc import Mapping
from typing import Any, Optional

logger = logging.getLogger(__name__)

ANSWER_KEY = 'answer'
CORRECT_KEY = 'isCorrect'


def create_answer_entry(answer_text: Optional[str], is_correct: Optional[bool] = None) -> dict:
    return {ANSWER_KEY: answer_text or '', CORRECT_KEY: is_correct}


def convert_legacy_to_current(legacy_answers: Mapping) -> dict:
    """Wrap each raw answer string; correctness is unknown after conversion."""
    return {
        question_id: create_answer_entry(answer)
        for question_id, answer in legacy_answers.items()
    }


def convert_current_to_legacy(current_answers: Mapping) -> dict:
    """Drop grading state, keeping only the answer text."""
    return {
        question_id: entry.get(ANSWER_KEY) if isinstance(entry, Mapping) else entry
        for question_id, entry in current_answers.items()
    }


def _is_entry(value: Any) -> bool:
    return isinstance(value, Mapping) and ANSWER_KEY in value and CORRECT_KEY in value


def is_current_format(value: Any) -> bool:
    # A single matching entry marks the whole set as current, even when other
    # entries are still raw strings.
    if not isinstance(value, Mapping):
        return False
    return any(_is_entry(entry) for entry in value.values())


def normalize_answers(raw_answers: Any) -> dict:
    if not raw_answers:
        return {}

    if is_current_format(raw_answers):
        return raw_answers

    if isinstance(raw_answers, Mapping):
        return convert_legacy_to_current(raw_answers)

    if isinstance(raw_answers, str):
        try:
            parsed = json.loads(raw_answers)
        except (ValueError, RecursionError):
            logger.debug("Discarding unparseable answer payload (%d chars)", len(raw_answers))
            return {}
        return normalize_answers(parsed)

    return {}


def _get_entry(normalized: Mapping, question_id) -> Optional[Mapping]:
    entry = normalized.get(str(question_id))
    return entry if isinstance(entry, Mapping) else None


def get_answer_text(raw_answers: Any, question_id) -> str:
    entry = _get_entry(normalize_answers(raw_answers), question_id)
    if entry is None:
        return ''
    return entry.get(ANSWER_KEY) or ''


def get_correctness(raw_answers: Any, question_id) -> Optional[bool]:
    entry = _get_entry(normalize_answers(raw_answers), question_id)
    if entry is None:
        return None
    return entry.get(CORRECT_KEY)


def set_correctness(raw_answers: Any, question_id, is_correct: Optional[bool]) -> dict:
    """
    Return a copy of the answer set with one entry's verdict replaced.

    The input is never mutated. A question that was never answered gets an
    entry with empty answer text.
    """
    normalized = normalize_answers(raw_answers)
    key = str(question_id)
    entry = normalized.get(key)
    if not isinstance(entry, Mapping):
        # absent, or a raw string left over in a mixed-format set
        entry = {ANSWER_KEY: entry if isinstance(entry, str) else ''}

    updated = dict(normalized)
    updated[key] = {**entry, CORRECT_KEY: is_correct}
    return updated
