"""Answer normalization with configurable strictness.

The same function normalizes aliases when a question is built and player
input when it is evaluated, so the two can never drift apart.
"""

import logging
import re
from enum import Enum

logger = logging.getLogger(__name__)


class MatchMode(str, Enum):
    # case-insensitive, every punctuation mark stripped, whitespace collapsed
    LOOSE = 'loose'
    # case-insensitive, minor punctuation (quotes, periods, commas...) stripped
    NORMAL = 'normal'
    # case-insensitive, punctuation kept
    STRICT = 'strict'
    # case-sensitive, only surrounding whitespace trimmed
    EXACT = 'exact'


DEFAULT_MATCH_MODE = MatchMode.NORMAL

_MINOR_PUNCTUATION = re.compile(r"['‘’\"“”`.,!?;:]")
_ALL_PUNCTUATION = re.compile(r'[^\w\s]|_')
_MULTIPLE_SPACES = re.compile(r'\s+')

# Lyric generators produce answers whose punctuation is unreliable.
_LOOSE_GENERATORS = frozenset({'fill-missing-word', 'next-line'})


def parse_match_mode(value) -> MatchMode:
    if isinstance(value, MatchMode):
        return value
    try:
        return MatchMode(value)
    except ValueError:
        logger.warning(f"[normalize] invalid match_mode={value!r}, falling back to {DEFAULT_MATCH_MODE.value}")
        return DEFAULT_MATCH_MODE


def normalize_for_comparison(text, match_mode=DEFAULT_MATCH_MODE) -> str:
    if not text or not isinstance(text, str):
        return ''
    mode = parse_match_mode(match_mode)
    normalized = text.strip()

    if mode is MatchMode.EXACT:
        return normalized
    if mode is MatchMode.STRICT:
        return normalized.lower()
    if mode is MatchMode.LOOSE:
        normalized = _ALL_PUNCTUATION.sub('', normalized.lower())
    else:
        normalized = _MINOR_PUNCTUATION.sub('', normalized.lower())
    return _MULTIPLE_SPACES.sub(' ', normalized).strip()


def recommended_match_mode(generator_type) -> MatchMode:
    if generator_type in _LOOSE_GENERATORS:
        return MatchMode.LOOSE
    return DEFAULT_MATCH_MODE


def resolve_match_mode(explicit=None, generator_type=None) -> MatchMode:
    """Pick the match mode for a question: explicit > generator default > normal."""
    if explicit:
        try:
            return MatchMode(explicit)
        except ValueError:
            logger.warning(f"[normalize] ignoring unknown matchMode={explicit!r}")
    if generator_type:
        return recommended_match_mode(generator_type)
    return DEFAULT_MATCH_MODE
