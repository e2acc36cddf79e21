"""In-memory question catalog with a tag index and weighted selection."""

import logging
import random
from collections import Counter
from typing import Iterable, Optional, Protocol, Set

from trivia.models import Question
from .errors import CatalogLoadError
from .loader import build_questions, load_questions
from .question_types import QuestionKind

logger = logging.getLogger(__name__)

# Fixed share of rounds per kind, independent of how many questions of each
# kind the catalog happens to hold.
QUESTION_KIND_WEIGHTS = {
    QuestionKind.FREE_TEXT: 25,
    QuestionKind.MULTI_ENTRY: 25,
    QuestionKind.MULTIPLE_CHOICE: 20,
    QuestionKind.ORDERED_LIST: 20,
    QuestionKind.TRUE_FALSE: 5,
    QuestionKind.NUMERIC: 5,
}


class QuestionSource(Protocol):
    """What the filter engine and round engine need from a catalog."""

    def by_id(self, question_id: str) -> Optional[Question]: ...

    def ids_for_tag(self, tag: str) -> Set[str]: ...

    def all_ids(self) -> Set[str]: ...

    def pick_weighted(self, eligible_ids: Iterable[str], rng: Optional[random.Random] = None) -> Optional[Question]: ...


class QuestionCatalog:
    """Holds every question plus a tag -> ids index.

    The index is built once here and never mutated; every accessor returns
    a fresh set so callers cannot corrupt it.
    """

    def __init__(self, questions: Iterable[Question], weights=None):
        self._questions = {}
        for question in questions:
            if question.id in self._questions:
                raise CatalogLoadError(f"duplicate question id {question.id}")
            self._questions[question.id] = question
        if not self._questions:
            raise CatalogLoadError('catalog contains no questions')

        self._all_ids = frozenset(self._questions)
        index = {}
        for question in self._questions.values():
            for tag in question.tags:
                index.setdefault(tag, set()).add(question.id)
        self._tag_index = {tag: frozenset(ids) for tag, ids in index.items()}
        self._weights = dict(QUESTION_KIND_WEIGHTS if weights is None else weights)

    @classmethod
    def from_records(cls, records, weights=None) -> 'QuestionCatalog':
        return cls(build_questions(records), weights=weights)

    @classmethod
    def from_path(cls, path, weights=None) -> 'QuestionCatalog':
        return cls(load_questions(path), weights=weights)

    def __len__(self):
        return len(self._questions)

    def __contains__(self, question_id):
        return question_id in self._questions

    def by_id(self, question_id) -> Optional[Question]:
        return self._questions.get(question_id)

    def ids_for_tag(self, tag) -> Set[str]:
        if not tag:
            return set()
        return set(self._tag_index.get(str(tag).strip().lower(), ()))

    def all_ids(self) -> Set[str]:
        return set(self._all_ids)

    def tag_counts(self) -> dict:
        return {tag: len(ids) for tag, ids in sorted(self._tag_index.items())}

    def kind_counts(self) -> dict:
        counts = Counter(q.kind.value for q in self._questions.values())
        return dict(sorted(counts.items()))

    def pick_weighted(self, eligible_ids, rng=None) -> Optional[Question]:
        """Draw a kind by weight, then a question of that kind uniformly."""
        rng = rng or random
        eligible = [self._questions[qid] for qid in sorted(set(eligible_ids)) if qid in self._questions]
        if not eligible:
            return None

        by_kind = {}
        for question in eligible:
            by_kind.setdefault(question.kind, []).append(question)

        kinds = [k for k, w in self._weights.items() if w > 0 and by_kind.get(k)]
        if not kinds:
            logger.debug('[catalog] no weighted kind among eligible questions, picking uniformly')
            return rng.choice(eligible)

        kind = rng.choices(kinds, weights=[self._weights[k] for k in kinds], k=1)[0]
        return rng.choice(by_kind[kind])
