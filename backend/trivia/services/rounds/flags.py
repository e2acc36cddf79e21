"""Player reports about questions that look wrong.

Flags live in memory for the lifetime of the process. A player can flag a
given question once; an operator clears a question's flags after review.
"""

import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from .catalog import QuestionSource

logger = logging.getLogger(__name__)

MAX_REASON_LENGTH = 500
DEFAULT_REASON = 'No reason provided'


@dataclass(frozen=True)
class Flag:
    player_id: str
    player_name: str
    reason: str
    lobby_id: Optional[str]
    flagged_at: int

    def to_dict(self):
        return {
            'playerId': self.player_id,
            'playerName': self.player_name,
            'reason': self.reason,
            'lobbyId': self.lobby_id,
            'flaggedAt': self.flagged_at,
        }


@dataclass(frozen=True)
class FlagResult:
    success: bool
    flag_count: int
    error: Optional[str] = None

    def to_dict(self):
        data = {'success': self.success, 'flagCount': self.flag_count}
        if self.error:
            data['error'] = self.error
        return data


@dataclass
class _FlagRecord:
    question_id: str
    title: str
    flags: List[Flag] = field(default_factory=list)


class QuestionFlagRegistry:
    def __init__(self, catalog: QuestionSource, clock=None):
        self.catalog = catalog
        self._clock = clock or (lambda: int(time.time() * 1000))
        self._records: Dict[str, _FlagRecord] = {}
        self._lock = threading.Lock()

    def flag(self, question_id, player_id, player_name=None, reason=None, lobby_id=None) -> FlagResult:
        """Record ``player_id``'s flag on ``question_id``.

        Unknown questions and repeat flags by the same player are refused;
        the result carries the question's flag count either way.
        """
        if not question_id or not isinstance(question_id, str):
            return FlagResult(success=False, flag_count=0, error='Invalid question ID')
        question = self.catalog.by_id(question_id)
        if question is None:
            return FlagResult(success=False, flag_count=0, error='Question not found')

        player_id = str(player_id)
        reason = str(reason).strip()[:MAX_REASON_LENGTH] if reason else ''
        with self._lock:
            record = self._records.get(question_id)
            if record is None:
                record = _FlagRecord(question_id=question_id, title=question.title)
            if any(f.player_id == player_id for f in record.flags):
                return FlagResult(success=False, flag_count=len(record.flags), error='Already flagged by this player')
            record.flags.append(Flag(
                player_id=player_id,
                player_name=str(player_name) if player_name else player_id,
                reason=reason or DEFAULT_REASON,
                lobby_id=lobby_id,
                flagged_at=self._clock(),
            ))
            self._records[question_id] = record
            count = len(record.flags)
        logger.info(f"[flag] question={question_id} player={player_id} lobby={lobby_id} total={count}")
        return FlagResult(success=True, flag_count=count)

    def flagged(self) -> List[dict]:
        with self._lock:
            return [
                {
                    'questionId': record.question_id,
                    'title': record.title,
                    'flagCount': len(record.flags),
                    'flags': [f.to_dict() for f in record.flags],
                }
                for record in self._records.values()
            ]

    def clear(self, question_id) -> bool:
        with self._lock:
            removed = self._records.pop(question_id, None) is not None
        if removed:
            logger.info(f"[flag-clear] question={question_id}")
        return removed
