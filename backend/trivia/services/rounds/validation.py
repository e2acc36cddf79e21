"""Sanitize raw submission values before they reach the evaluator.

Each validator returns the cleaned value, or ``None`` when the input cannot
be accepted for the question; the engine reports that as ``invalid-input``.
"""

import math

from trivia.models import ChoiceKey, OrderedListKey, Question
from .question_types import InputShape, config_for

MAX_ANSWER_LENGTH = 500
MAX_CHOICE_ID_LENGTH = 50


def sanitize_text(value, max_length=MAX_ANSWER_LENGTH) -> str:
    if value is None or isinstance(value, (dict, list, tuple, bool)):
        return ''
    return str(value).strip()[:max_length]


def _extract(value, *keys):
    # transport payloads may wrap the value, e.g. {"answer": "..."} or {"choiceId": "a"}
    if isinstance(value, dict):
        for key in keys:
            if key in value:
                return value[key]
        return None
    return value


def validate_text(value):
    text = sanitize_text(_extract(value, 'answer', 'answerText', 'guess'))
    return text or None


def validate_choice(value, question: Question):
    choice_id = sanitize_text(_extract(value, 'choiceId', 'choice'), MAX_CHOICE_ID_LENGTH)
    if not choice_id or not isinstance(question.key, ChoiceKey):
        return None
    if choice_id not in question.choice_ids():
        return None
    return choice_id


def validate_number(value):
    value = _extract(value, 'value', 'answer')
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(number) or math.isinf(number):
        return None
    return number


def validate_order(value, question: Question):
    value = _extract(value, 'order', 'orderedIds')
    if not isinstance(value, (list, tuple)) or not isinstance(question.key, OrderedListKey):
        return None
    order = tuple(sanitize_text(item, MAX_CHOICE_ID_LENGTH) for item in value)
    expected = [item.id for item in question.key.items]
    if sorted(order) != sorted(expected):
        return None
    return order


def validate_submission(question: Question, value):
    """Clean ``value`` according to the question's input shape."""
    shape = config_for(question.kind).input_shape
    if shape in (InputShape.TEXT, InputShape.MULTI_TEXT):
        return validate_text(value)
    if shape is InputShape.CHOICE:
        return validate_choice(value, question)
    if shape is InputShape.NUMBER:
        return validate_number(value)
    if shape is InputShape.ORDERING:
        return validate_order(value, question)
    return None
