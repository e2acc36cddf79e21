"""Question and round records.

Questions are immutable once built. Each one exposes exactly two
projections: ``to_client_dict`` (safe to send while a round is running) and
``to_reveal_dict`` (correctness data included, sent once the round ends).
"""

from dataclasses import dataclass, field
from typing import Mapping, Optional, Tuple, Union

from trivia.services.rounds.normalization import DEFAULT_MATCH_MODE, MatchMode
from trivia.services.rounds.question_types import QuestionKind, TRUE_FALSE_CHOICES


@dataclass(frozen=True)
class Content:
    type: str = 'text'
    text: str = ''
    url: Optional[str] = None
    alt: Optional[str] = None

    def to_dict(self):
        if self.type == 'text':
            return {'type': 'text', 'text': self.text}
        data = {'type': self.type, 'url': self.url}
        if self.alt:
            data['alt'] = self.alt
        if self.text:
            data['text'] = self.text
        return data


@dataclass(frozen=True)
class Answer:
    id: str
    display: str
    aliases: Tuple[str, ...] = ()
    normalized_aliases: Tuple[str, ...] = ()


@dataclass(frozen=True)
class Choice:
    id: str
    text: str
    correct: bool = False


@dataclass(frozen=True)
class ProximityBand:
    label: str
    max_distance: float


DEFAULT_PROXIMITY_BANDS = (
    ProximityBand('exact', 0),
    ProximityBand('very-close', 1),
    ProximityBand('close', 5),
    ProximityBand('near', 10),
)
FAR_BAND = 'far'


@dataclass(frozen=True)
class OrderedItem:
    id: str
    text: str


@dataclass(frozen=True)
class FreeTextKey:
    answers: Tuple[Answer, ...]
    alias_map: Mapping[str, Answer]


@dataclass(frozen=True)
class ChoiceKey:
    choices: Tuple[Choice, ...]
    correct_choice_id: str


@dataclass(frozen=True)
class NumericKey:
    correct_value: float
    min_value: Optional[float] = None
    max_value: Optional[float] = None
    unit: Optional[str] = None
    tolerance: float = 1e-9
    bands: Tuple[ProximityBand, ...] = DEFAULT_PROXIMITY_BANDS


@dataclass(frozen=True)
class MultiEntryKey:
    answers: Tuple[Answer, ...]
    alias_map: Mapping[str, Answer]
    max_guesses: int = 15


@dataclass(frozen=True)
class OrderedListKey:
    items: Tuple[OrderedItem, ...]
    correct_order: Tuple[str, ...]


AnswerKey = Union[FreeTextKey, ChoiceKey, NumericKey, MultiEntryKey, OrderedListKey]


def _format_number(value):
    if value is None:
        return None
    if float(value).is_integer():
        return int(value)
    return value


@dataclass(frozen=True)
class Question:
    id: str
    kind: QuestionKind
    title: str
    key: AnswerKey
    content: Content = field(default_factory=Content)
    tags: frozenset = frozenset()
    match_mode: MatchMode = DEFAULT_MATCH_MODE
    generator_type: Optional[str] = None

    @property
    def primary_answer(self) -> str:
        key = self.key
        if isinstance(key, (FreeTextKey, MultiEntryKey)):
            return key.answers[0].display if key.answers else 'Unknown'
        if isinstance(key, ChoiceKey):
            for choice in key.choices:
                if choice.id == key.correct_choice_id:
                    return choice.text
            return 'Unknown'
        if isinstance(key, NumericKey):
            return str(_format_number(key.correct_value))
        if isinstance(key, OrderedListKey):
            by_id = {item.id: item.text for item in key.items}
            return ', '.join(by_id.get(item_id, item_id) for item_id in key.correct_order)
        return 'Unknown'

    def choice_ids(self) -> Tuple[str, ...]:
        if isinstance(self.key, ChoiceKey):
            return tuple(c.id for c in self.key.choices)
        return ()

    def to_client_dict(self):
        data = {
            'id': self.id,
            'type': self.kind.value,
            'title': self.title,
            'prompt': self.title,
            'content': self.content.to_dict(),
            'tags': sorted(self.tags),
        }
        key = self.key
        if isinstance(key, ChoiceKey):
            data['choices'] = [{'id': c.id, 'text': c.text} for c in key.choices]
        elif isinstance(key, NumericKey):
            data['min'] = _format_number(key.min_value)
            data['max'] = _format_number(key.max_value)
            if key.unit:
                data['unit'] = key.unit
        elif isinstance(key, MultiEntryKey):
            data['totalAnswers'] = len(key.answers)
            data['maxGuesses'] = key.max_guesses
        elif isinstance(key, OrderedListKey):
            data['items'] = [{'id': i.id, 'text': i.text} for i in key.items]
        return data

    def to_reveal_dict(self):
        data = {
            'id': self.id,
            'type': self.kind.value,
            'title': self.title,
            'content': self.content.to_dict(),
            'primaryAnswer': self.primary_answer,
        }
        key = self.key
        if isinstance(key, ChoiceKey):
            data['choices'] = [{'id': c.id, 'text': c.text, 'correct': c.correct} for c in key.choices]
            data['correctChoiceId'] = key.correct_choice_id
            if self.kind is QuestionKind.TRUE_FALSE:
                data['correctAnswer'] = key.correct_choice_id == 'true'
        elif isinstance(key, (FreeTextKey, MultiEntryKey)):
            data['answers'] = [a.display for a in key.answers]
        elif isinstance(key, NumericKey):
            data['correctAnswer'] = _format_number(key.correct_value)
            data['min'] = _format_number(key.min_value)
            data['max'] = _format_number(key.max_value)
            if key.unit:
                data['unit'] = key.unit
        elif isinstance(key, OrderedListKey):
            data['items'] = [{'id': i.id, 'text': i.text} for i in key.items]
            data['correctOrder'] = list(key.correct_order)
        return data


def true_false_key(correct: bool) -> ChoiceKey:
    correct_id = 'true' if correct else 'false'
    return ChoiceKey(
        choices=tuple(Choice(id=cid, text=text, correct=(cid == correct_id)) for cid, text in TRUE_FALSE_CHOICES),
        correct_choice_id=correct_id,
    )
