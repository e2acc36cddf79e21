"""Question kinds and their behavioral configuration.

This table is the single place that decides how a kind of question behaves
during a round: whether players may retry, whether they learn the result
immediately, and which condition ends the round early.
"""

from dataclasses import dataclass
from enum import Enum


class QuestionKind(str, Enum):
    FREE_TEXT = 'free-text'
    MULTIPLE_CHOICE = 'multiple-choice'
    TRUE_FALSE = 'true-false'
    MULTI_ENTRY = 'multi-entry'
    NUMERIC = 'numeric'
    ORDERED_LIST = 'ordered-list'

    @classmethod
    def parse(cls, value) -> 'QuestionKind':
        """Return the kind named by ``value``, defaulting to free-text."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value or '').strip().lower())
        except ValueError:
            return cls.FREE_TEXT


class InputShape(str, Enum):
    TEXT = 'text'
    CHOICE = 'choice'
    NUMBER = 'number'
    MULTI_TEXT = 'multi-text'
    ORDERING = 'ordering'


@dataclass(frozen=True)
class QuestionTypeConfig:
    allows_retry: bool
    reveals_on_submit: bool
    ends_on_all_correct: bool
    ends_on_all_submitted: bool
    input_shape: InputShape
    min_choices: int = 0
    max_choices: int = 0


QUESTION_TYPE_CONFIG = {
    QuestionKind.FREE_TEXT: QuestionTypeConfig(
        allows_retry=True,
        reveals_on_submit=True,
        ends_on_all_correct=True,
        ends_on_all_submitted=False,
        input_shape=InputShape.TEXT,
    ),
    QuestionKind.MULTIPLE_CHOICE: QuestionTypeConfig(
        allows_retry=False,
        reveals_on_submit=False,
        ends_on_all_correct=False,
        ends_on_all_submitted=True,
        input_shape=InputShape.CHOICE,
        min_choices=2,
        max_choices=6,
    ),
    QuestionKind.TRUE_FALSE: QuestionTypeConfig(
        allows_retry=False,
        reveals_on_submit=False,
        ends_on_all_correct=False,
        ends_on_all_submitted=True,
        input_shape=InputShape.CHOICE,
        min_choices=2,
        max_choices=2,
    ),
    # Each accepted guess is one attempt; the player keeps guessing until
    # every answer is found or the guess budget runs out.
    QuestionKind.MULTI_ENTRY: QuestionTypeConfig(
        allows_retry=True,
        reveals_on_submit=True,
        ends_on_all_correct=True,
        ends_on_all_submitted=False,
        input_shape=InputShape.MULTI_TEXT,
    ),
    QuestionKind.NUMERIC: QuestionTypeConfig(
        allows_retry=False,
        reveals_on_submit=False,
        ends_on_all_correct=False,
        ends_on_all_submitted=True,
        input_shape=InputShape.NUMBER,
    ),
    QuestionKind.ORDERED_LIST: QuestionTypeConfig(
        allows_retry=False,
        reveals_on_submit=False,
        ends_on_all_correct=False,
        ends_on_all_submitted=True,
        input_shape=InputShape.ORDERING,
    ),
}

TRUE_FALSE_CHOICES = (
    ('true', 'True'),
    ('false', 'False'),
)

CHOICE_KINDS = frozenset({QuestionKind.MULTIPLE_CHOICE, QuestionKind.TRUE_FALSE})


def config_for(kind) -> QuestionTypeConfig:
    """Look up the behavior of ``kind``; unknown kinds behave like free-text."""
    if not isinstance(kind, QuestionKind):
        kind = QuestionKind.parse(kind)
    return QUESTION_TYPE_CONFIG.get(kind, QUESTION_TYPE_CONFIG[QuestionKind.FREE_TEXT])


def is_choice_kind(kind) -> bool:
    return QuestionKind.parse(kind) in CHOICE_KINDS
