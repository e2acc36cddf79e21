"""Kind-dispatched answer evaluation.

``evaluate`` is pure: it never touches round state. Multi-entry callers pass
the ids already found so a canonical answer can only be credited once.
"""

from dataclasses import dataclass
from typing import Iterable, Optional

from trivia.models import (
    Answer,
    ChoiceKey,
    FAR_BAND,
    FreeTextKey,
    MultiEntryKey,
    NumericKey,
    OrderedListKey,
    Question,
)
from .normalization import normalize_for_comparison
from .question_types import QuestionKind


@dataclass(frozen=True)
class Evaluation:
    correct: bool
    matched: Optional[str] = None
    matched_answer_id: Optional[str] = None
    score: Optional[float] = None
    proximity: Optional[str] = None


INCORRECT = Evaluation(correct=False)


def _lookup_alias(question: Question, alias_map, text) -> Optional[Answer]:
    normalized = normalize_for_comparison(text, question.match_mode)
    if not normalized:
        return None
    return alias_map.get(normalized)


def _evaluate_free_text(question: Question, value, found) -> Evaluation:
    key: FreeTextKey = question.key
    answer = _lookup_alias(question, key.alias_map, value)
    if answer is None:
        return INCORRECT
    return Evaluation(correct=True, matched=answer.display, matched_answer_id=answer.id)


def _evaluate_choice(question: Question, value, found) -> Evaluation:
    key: ChoiceKey = question.key
    for choice in key.choices:
        if choice.id == value:
            return Evaluation(correct=choice.id == key.correct_choice_id, matched=choice.text, matched_answer_id=choice.id)
    return INCORRECT


def proximity_band(key: NumericKey, value: float) -> str:
    distance = abs(float(value) - key.correct_value)
    if distance <= key.tolerance:
        return key.bands[0].label if key.bands else 'exact'
    for band in key.bands:
        if distance <= band.max_distance:
            return band.label
    return FAR_BAND


def _evaluate_numeric(question: Question, value, found) -> Evaluation:
    key: NumericKey = question.key
    try:
        number = float(value)
    except (TypeError, ValueError):
        return INCORRECT
    distance = abs(number - key.correct_value)
    return Evaluation(
        correct=distance <= key.tolerance,
        matched=None,
        score=distance,
        proximity=proximity_band(key, number),
    )


def _evaluate_multi_entry(question: Question, value, found) -> Evaluation:
    key: MultiEntryKey = question.key
    answer = _lookup_alias(question, key.alias_map, value)
    if answer is None:
        return INCORRECT
    if answer.id in found:
        # a repeat of an answer already credited: matched, but earns nothing
        return Evaluation(correct=False, matched=answer.display, matched_answer_id=answer.id)
    return Evaluation(correct=True, matched=answer.display, matched_answer_id=answer.id)


def _evaluate_ordered_list(question: Question, value, found) -> Evaluation:
    key: OrderedListKey = question.key
    submitted = list(value or ())
    score = sum(1 for expected, got in zip(key.correct_order, submitted) if expected == got)
    return Evaluation(correct=score == len(key.correct_order) and len(submitted) == len(key.correct_order), score=score)


EVALUATORS = {
    QuestionKind.FREE_TEXT: _evaluate_free_text,
    QuestionKind.MULTIPLE_CHOICE: _evaluate_choice,
    QuestionKind.TRUE_FALSE: _evaluate_choice,
    QuestionKind.NUMERIC: _evaluate_numeric,
    QuestionKind.MULTI_ENTRY: _evaluate_multi_entry,
    QuestionKind.ORDERED_LIST: _evaluate_ordered_list,
}


def evaluate(question: Question, value, *, found: Iterable[str] = ()) -> Evaluation:
    """Check ``value`` against ``question``; returns an ``Evaluation``."""
    if question is None or value is None:
        return INCORRECT
    return EVALUATORS[question.kind](question, value, frozenset(found))
