"""Round lifecycle: start, submit, end-condition checks and finalization.

``RoundEngine`` is the only owner of round state. Every lobby has at most
one round (active or ended); starting a new one replaces it. Callers only
ever receive frozen snapshots (payloads, submissions, summaries).

All operations for one lobby run under that lobby's lock, so a player with
no retries cannot slip in two submissions and a round cannot be finalized
twice. Different lobbies never share mutable state.
"""

import logging
import random
import threading
import time
import uuid
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Dict, Iterable, Optional, Set, Tuple

from trivia.models import ChoiceKey, MultiEntryKey, Question
from .catalog import QuestionSource
from .errors import RoundConfigError
from .evaluator import evaluate
from .question_types import QuestionKind, config_for, is_choice_kind
from .tag_filter import TagFilterEngine, is_match_all
from .validation import validate_submission

logger = logging.getLogger(__name__)

ALL_CORRECT = 'all-correct'
ALL_SUBMITTED = 'all-submitted'
TIMER = 'timer'
END_REASONS = (ALL_CORRECT, ALL_SUBMITTED, TIMER)


class SubmitStatus(str, Enum):
    CORRECT = 'correct'
    INCORRECT = 'incorrect'
    SUBMITTED = 'submitted'
    ALREADY_CORRECT = 'already-correct'
    ALREADY_SUBMITTED = 'already-submitted'
    INVALID_INPUT = 'invalid-input'
    NO_ROUND = 'no-round'
    ROUND_ENDED = 'round-ended'


def _now_ms() -> int:
    return int(time.time() * 1000)


@dataclass(frozen=True)
class Submission:
    player_id: str
    kind: QuestionKind
    submitted_at: int
    sequence: int
    correct: bool = False
    attempts: int = 1
    answer_text: Optional[str] = None
    choice_id: Optional[str] = None
    numeric_value: Optional[float] = None
    submitted_order: Tuple[str, ...] = ()
    matched_display: Optional[str] = None
    found_answer_ids: Tuple[str, ...] = ()
    found_answers: Tuple[str, ...] = ()
    wrong_guesses: Tuple[str, ...] = ()
    score: Optional[float] = None
    proximity: Optional[str] = None

    def to_dict(self, reveal=True):
        """Serialize for the transport; ``reveal=False`` hides correctness."""
        data = {
            'playerId': self.player_id,
            'type': self.kind.value,
            'submittedAt': self.submitted_at,
            'attempts': self.attempts,
        }
        if self.answer_text is not None:
            data['answerText'] = self.answer_text
        if self.choice_id is not None:
            data['choiceId'] = self.choice_id
        if self.numeric_value is not None:
            data['value'] = self.numeric_value
        if self.submitted_order:
            data['order'] = list(self.submitted_order)
        if self.kind is QuestionKind.MULTI_ENTRY:
            data['foundAnswers'] = list(self.found_answers)
            data['wrongGuesses'] = list(self.wrong_guesses)
        if reveal:
            data['isCorrect'] = self.correct
            if self.matched_display is not None:
                data['matchedAnswerDisplay'] = self.matched_display
            if self.score is not None:
                data['score'] = self.score
            if self.proximity is not None:
                data['proximity'] = self.proximity
        return data


@dataclass(frozen=True)
class SubmitResult:
    status: SubmitStatus
    entry: Optional[Submission] = None
    duplicate: bool = False

    def to_dict(self):
        data = {'status': self.status.value, 'entry': None}
        if self.entry is not None:
            reveal = config_for(self.entry.kind).reveals_on_submit
            data['entry'] = self.entry.to_dict(reveal=reveal)
        if self.duplicate:
            data['duplicate'] = True
        return data


@dataclass(frozen=True)
class RoundPayload:
    lobby_id: str
    round_id: str
    question: dict
    started_at: int
    duration_ms: int
    ends_at: int

    def to_dict(self):
        return {
            'lobbyId': self.lobby_id,
            'roundId': self.round_id,
            'question': self.question,
            'startedAt': self.started_at,
            'durationMs': self.duration_ms,
            'endsAt': self.ends_at,
        }


@dataclass(frozen=True)
class Responder:
    player_id: str
    submitted_at: int
    elapsed_ms: int
    answer_text: Optional[str] = None
    choice_id: Optional[str] = None
    matched_display: Optional[str] = None

    def to_dict(self):
        return {
            'playerId': self.player_id,
            'answerText': self.answer_text,
            'choiceId': self.choice_id,
            'matchedAnswerDisplay': self.matched_display,
            'submittedAt': self.submitted_at,
            'elapsedMs': self.elapsed_ms,
        }


@dataclass(frozen=True)
class ChoiceTally:
    choice_id: str
    text: str
    correct: bool
    count: int

    def to_dict(self):
        return {'choiceId': self.choice_id, 'text': self.text, 'correct': self.correct, 'count': self.count}


@dataclass(frozen=True)
class PlayerResult:
    player_id: str
    correct: bool
    submitted_at: int
    elapsed_ms: int
    attempts: int
    score: Optional[float] = None
    proximity: Optional[str] = None

    def to_dict(self):
        return {
            'playerId': self.player_id,
            'isCorrect': self.correct,
            'submittedAt': self.submitted_at,
            'elapsedMs': self.elapsed_ms,
            'attempts': self.attempts,
            'score': self.score,
            'proximity': self.proximity,
        }


@dataclass(frozen=True)
class RoundSummary:
    lobby_id: str
    round_id: str
    reason: str
    question: dict
    correct_answer: str
    correct_responders: Tuple[Responder, ...]
    player_results: Tuple[PlayerResult, ...]
    choice_distribution: Optional[Tuple[ChoiceTally, ...]]
    total_submissions: int
    correct_count: int
    started_at: int
    ended_at: int

    def to_dict(self):
        return {
            'lobbyId': self.lobby_id,
            'roundId': self.round_id,
            'reason': self.reason,
            'question': self.question,
            'correctAnswer': self.correct_answer,
            'correctResponders': [r.to_dict() for r in self.correct_responders],
            'playerResults': [r.to_dict() for r in self.player_results],
            'choiceDistribution': (
                [c.to_dict() for c in self.choice_distribution] if self.choice_distribution is not None else None
            ),
            'totalSubmissions': self.total_submissions,
            'correctCount': self.correct_count,
            'startedAt': self.started_at,
            'endedAt': self.ended_at,
        }


@dataclass
class Round:
    lobby_id: str
    question: Question
    started_at: int
    duration_ms: int
    round_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    is_active: bool = True
    ended_at: Optional[int] = None
    end_reason: Optional[str] = None
    submissions: Dict[str, Submission] = field(default_factory=dict)
    summary: Optional[RoundSummary] = None
    _sequence: int = 0

    @property
    def ends_at(self) -> int:
        return self.started_at + self.duration_ms

    def next_sequence(self) -> int:
        self._sequence += 1
        return self._sequence

    def payload(self) -> RoundPayload:
        return RoundPayload(
            lobby_id=self.lobby_id,
            round_id=self.round_id,
            question=self.question.to_client_dict(),
            started_at=self.started_at,
            duration_ms=self.duration_ms,
            ends_at=self.ends_at,
        )


@dataclass(frozen=True)
class FilterUpdate:
    expression: str
    valid: bool
    total: int
    error: Optional[str] = None

    def to_dict(self):
        data = {'expression': self.expression, 'valid': self.valid, 'total': self.total}
        if self.error:
            data['error'] = self.error
        return data


class RoundEngine:
    def __init__(self, catalog: QuestionSource, *, filter_engine=None, clock=None, rng=None, default_filter='*'):
        self.catalog = catalog
        self.filter_engine = filter_engine or TagFilterEngine(catalog)
        self._clock = clock or _now_ms
        self._rng = rng or random.Random()
        self._default_filter = default_filter or '*'
        self._rounds: Dict[str, Round] = {}
        self._filters: Dict[str, str] = {}
        self._used_question_ids: Dict[str, set] = {}
        self._locks: Dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    def _lock_for(self, lobby_id, create=True) -> Optional[threading.Lock]:
        with self._locks_guard:
            lock = self._locks.get(lobby_id)
            if lock is None and create:
                lock = self._locks[lobby_id] = threading.Lock()
            return lock

    # ---- question filter ----

    def set_filter(self, lobby_id, expression) -> FilterUpdate:
        expression = '*' if is_match_all(expression) else str(expression).strip()
        validation = self.filter_engine.validate(expression)
        total = len(self.filter_engine.compile(expression))
        with self._lock_for(lobby_id):
            self._filters[lobby_id] = expression
        logger.info(f"[filter-set] lobby={lobby_id} expression={expression!r} valid={validation.valid} total={total}")
        return FilterUpdate(expression=expression, valid=validation.valid, total=total, error=validation.error)

    def filter_for(self, lobby_id) -> str:
        return self._filters.get(lobby_id, self._default_filter)

    def _pick_question(self, lobby_id) -> Question:
        eligible = self.filter_engine.compile(self.filter_for(lobby_id))
        if not eligible:
            logger.warning(f"[round-start] lobby={lobby_id} filter matched no questions, using full catalog")
            eligible = self.catalog.all_ids()

        used = self._used_question_ids.setdefault(lobby_id, set())
        fresh = eligible - used
        if not fresh:
            logger.info(f"[round-start] lobby={lobby_id} every eligible question used, recycling pool")
            used.difference_update(eligible)
            fresh = eligible

        question = self.catalog.pick_weighted(fresh, rng=self._rng)
        if question is None:
            raise RoundConfigError(f"no selectable question for lobby {lobby_id}")
        used.add(question.id)
        return question

    # ---- lifecycle ----

    def start(self, lobby_id, duration_ms) -> RoundPayload:
        try:
            duration_ms = int(duration_ms)
        except (TypeError, ValueError):
            raise RoundConfigError(f"invalid round duration {duration_ms!r}")
        if duration_ms <= 0:
            raise RoundConfigError(f"round duration must be positive, got {duration_ms}")

        with self._lock_for(lobby_id):
            question = self._pick_question(lobby_id)
            round_ = Round(lobby_id=lobby_id, question=question, started_at=self._clock(), duration_ms=duration_ms)
            self._rounds[lobby_id] = round_
            logger.info(
                f"[round-start] lobby={lobby_id} round={round_.round_id} question={question.id} "
                f"type={question.kind.value} duration={duration_ms}ms"
            )
            return round_.payload()

    def submit(self, lobby_id, player_id, value) -> SubmitResult:
        lock = self._lock_for(lobby_id, create=False)
        if lock is None:
            return SubmitResult(SubmitStatus.NO_ROUND)
        with lock:
            round_ = self._rounds.get(lobby_id)
            if round_ is None:
                return SubmitResult(SubmitStatus.NO_ROUND)
            if not round_.is_active:
                return SubmitResult(SubmitStatus.ROUND_ENDED)
            if player_id is None or player_id == '':
                return SubmitResult(SubmitStatus.INVALID_INPUT)

            question = round_.question
            cfg = config_for(question.kind)
            previous = round_.submissions.get(player_id)
            if previous is not None:
                if cfg.allows_retry and previous.correct:
                    return SubmitResult(SubmitStatus.ALREADY_CORRECT, previous)
                if not cfg.allows_retry or self._out_of_guesses(question, previous):
                    return SubmitResult(SubmitStatus.ALREADY_SUBMITTED, previous)

            cleaned = validate_submission(question, value)
            if cleaned is None:
                return SubmitResult(SubmitStatus.INVALID_INPUT, previous)

            if question.kind is QuestionKind.MULTI_ENTRY:
                result = self._submit_guess(round_, player_id, cleaned, previous)
            else:
                result = self._submit_answer(round_, player_id, cleaned, previous)
            logger.debug(f"[submit] lobby={lobby_id} player={player_id} status={result.status.value}")
            return result

    @staticmethod
    def _out_of_guesses(question: Question, entry: Submission) -> bool:
        if not isinstance(question.key, MultiEntryKey):
            return False
        return len(entry.found_answer_ids) + len(entry.wrong_guesses) >= question.key.max_guesses

    def _submit_answer(self, round_: Round, player_id, cleaned, previous) -> SubmitResult:
        question = round_.question
        evaluation = evaluate(question, cleaned)
        fields = {}
        if question.kind is QuestionKind.FREE_TEXT:
            fields['answer_text'] = cleaned
        elif is_choice_kind(question.kind):
            fields['choice_id'] = cleaned
        elif question.kind is QuestionKind.NUMERIC:
            fields.update(numeric_value=cleaned, proximity=evaluation.proximity)
        elif question.kind is QuestionKind.ORDERED_LIST:
            fields['submitted_order'] = tuple(cleaned)

        entry = Submission(
            player_id=player_id,
            kind=question.kind,
            submitted_at=self._clock(),
            sequence=round_.next_sequence(),
            correct=evaluation.correct,
            attempts=(previous.attempts + 1) if previous else 1,
            matched_display=evaluation.matched,
            score=evaluation.score,
            **fields,
        )
        round_.submissions[player_id] = entry

        if config_for(question.kind).reveals_on_submit:
            status = SubmitStatus.CORRECT if entry.correct else SubmitStatus.INCORRECT
        else:
            status = SubmitStatus.SUBMITTED
        return SubmitResult(status, entry)

    def _submit_guess(self, round_: Round, player_id, guess, previous) -> SubmitResult:
        question = round_.question
        found_ids = previous.found_answer_ids if previous else ()
        evaluation = evaluate(question, guess, found=found_ids)

        if not evaluation.correct and evaluation.matched_answer_id in found_ids:
            return SubmitResult(SubmitStatus.INCORRECT, previous, duplicate=True)

        base = previous or Submission(
            player_id=player_id,
            kind=question.kind,
            submitted_at=self._clock(),
            sequence=0,
            attempts=0,
        )
        if evaluation.correct:
            updates = {
                'found_answer_ids': base.found_answer_ids + (evaluation.matched_answer_id,),
                'found_answers': base.found_answers + (evaluation.matched,),
                'matched_display': evaluation.matched,
            }
        else:
            updates = {'wrong_guesses': base.wrong_guesses + (guess,)}

        total = len(question.key.answers)
        found_count = len(updates.get('found_answer_ids', base.found_answer_ids))
        entry = replace(
            base,
            submitted_at=self._clock(),
            sequence=round_.next_sequence(),
            attempts=base.attempts + 1,
            answer_text=guess,
            correct=found_count >= total,
            score=found_count,
            **updates,
        )
        round_.submissions[player_id] = entry
        status = SubmitStatus.CORRECT if evaluation.correct else SubmitStatus.INCORRECT
        return SubmitResult(status, entry)

    def check_end(self, lobby_id, player_ids: Iterable[str]) -> Optional[str]:
        """Return the reason the round should end now, or None."""
        lock = self._lock_for(lobby_id, create=False)
        if lock is None:
            return None
        with lock:
            round_ = self._rounds.get(lobby_id)
            if round_ is None or not round_.is_active:
                return None
            players = list(dict.fromkeys(player_ids))
            if not players:
                return None
            cfg = config_for(round_.question.kind)
            entries = [round_.submissions.get(pid) for pid in players]
            if cfg.ends_on_all_correct and all(e is not None and e.correct for e in entries):
                return ALL_CORRECT
            if cfg.ends_on_all_submitted and all(e is not None for e in entries):
                return ALL_SUBMITTED
            return None

    def finalize(self, lobby_id, reason, round_id=None) -> Optional[RoundSummary]:
        """End the lobby's active round once and return its summary.

        With ``round_id`` the round is only ended if it is still that round,
        so a timer left over from an earlier round never ends a newer one.
        """
        if reason not in END_REASONS:
            raise RoundConfigError(f"unknown end reason {reason!r}")
        lock = self._lock_for(lobby_id, create=False)
        if lock is None:
            return None
        with lock:
            round_ = self._rounds.get(lobby_id)
            if round_ is None or not round_.is_active:
                return None
            if round_id is not None and round_.round_id != round_id:
                return None
            round_.is_active = False
            round_.ended_at = self._clock()
            round_.end_reason = reason
            round_.summary = build_round_summary(round_)
            logger.info(
                f"[round-end] lobby={lobby_id} round={round_.round_id} reason={reason} "
                f"submissions={round_.summary.total_submissions} correct={round_.summary.correct_count}"
            )
            return round_.summary

    # ---- read-only views ----

    def _view(self, lobby_id, read, default=None):
        # read-only access never allocates a lock for an unknown lobby
        lock = self._lock_for(lobby_id, create=False)
        if lock is None:
            return default
        with lock:
            round_ = self._rounds.get(lobby_id)
            return default if round_ is None else read(round_)

    def round_payload(self, lobby_id) -> Optional[RoundPayload]:
        return self._view(lobby_id, lambda r: r.payload() if r.is_active else None)

    def is_active(self, lobby_id, round_id=None) -> bool:
        return self._view(
            lobby_id, lambda r: r.is_active and (round_id is None or r.round_id == round_id), default=False
        )

    def submission_for(self, lobby_id, player_id) -> Optional[Submission]:
        return self._view(lobby_id, lambda r: r.submissions.get(player_id))

    def last_summary(self, lobby_id) -> Optional[RoundSummary]:
        return self._view(lobby_id, lambda r: r.summary)

    def reset_lobby(self, lobby_id) -> None:
        """Forget which questions the lobby has already seen."""
        lock = self._lock_for(lobby_id, create=False)
        if lock is None:
            return
        with lock:
            self._used_question_ids.pop(lobby_id, None)
        logger.info(f"[lobby-reset] lobby={lobby_id} question history cleared")

    def clear_lobby(self, lobby_id) -> None:
        """Drop every trace of the lobby, including its lock."""
        lock = self._lock_for(lobby_id, create=False)
        if lock is None:
            return
        with lock:
            self._rounds.pop(lobby_id, None)
            self._filters.pop(lobby_id, None)
            self._used_question_ids.pop(lobby_id, None)
        with self._locks_guard:
            self._locks.pop(lobby_id, None)
        logger.info(f"[lobby-clear] lobby={lobby_id}")

    def tracked_lobbies(self) -> Set[str]:
        with self._locks_guard:
            return set(self._locks) | set(self._rounds) | set(self._filters) | set(self._used_question_ids)


def _result_order(kind: QuestionKind):
    if kind is QuestionKind.NUMERIC:
        return lambda s: (s.score if s.score is not None else float('inf'), s.submitted_at, s.sequence)
    if kind in (QuestionKind.ORDERED_LIST, QuestionKind.MULTI_ENTRY):
        return lambda s: (-(s.score or 0), s.submitted_at, s.sequence)
    return lambda s: (not s.correct, s.submitted_at, s.sequence)


def build_round_summary(round_: Round) -> RoundSummary:
    question = round_.question
    entries = list(round_.submissions.values())
    started = round_.started_at

    correct = sorted((e for e in entries if e.correct), key=lambda e: (e.submitted_at, e.sequence))
    responders = tuple(
        Responder(
            player_id=e.player_id,
            submitted_at=e.submitted_at,
            elapsed_ms=max(0, e.submitted_at - started),
            answer_text=e.answer_text,
            choice_id=e.choice_id,
            matched_display=e.matched_display,
        )
        for e in correct
    )
    results = tuple(
        PlayerResult(
            player_id=e.player_id,
            correct=e.correct,
            submitted_at=e.submitted_at,
            elapsed_ms=max(0, e.submitted_at - started),
            attempts=e.attempts,
            score=e.score,
            proximity=e.proximity,
        )
        for e in sorted(entries, key=_result_order(question.kind))
    )

    distribution = None
    if is_choice_kind(question.kind) and isinstance(question.key, ChoiceKey):
        distribution = tuple(
            ChoiceTally(
                choice_id=choice.id,
                text=choice.text,
                correct=choice.correct,
                count=sum(1 for e in entries if e.choice_id == choice.id),
            )
            for choice in question.key.choices
        )

    return RoundSummary(
        lobby_id=round_.lobby_id,
        round_id=round_.round_id,
        reason=round_.end_reason,
        question=question.to_reveal_dict(),
        correct_answer=question.primary_answer,
        correct_responders=responders,
        player_results=results,
        choice_distribution=distribution,
        total_submissions=len(entries),
        correct_count=len(correct),
        started_at=started,
        ended_at=round_.ended_at,
    )
