"""Exceptions raised by the round engine and its collaborators."""

from typing import Optional


class TriviaError(Exception):
    """Base class for every error raised by the trivia services."""


class CatalogLoadError(TriviaError):
    """The question catalog could not be built; the server cannot serve."""


class FilterSyntaxError(TriviaError):
    """A tag-filter expression could not be tokenized or parsed."""

    def __init__(self, message: str, position: Optional[int] = None):
        super().__init__(message)
        self.position = position


class RoundConfigError(TriviaError):
    """A round was requested with settings that can never produce a round."""
