"""Exceptions raised by Tagkeeper and the bookkeeping behind its error policy."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class ErrorCategory(Enum):
    """Kinds of recoverable failure during a translation run."""

    BATCH_FAILED = "batch failed"
    ENTRY_MISSING = "entry missing from reply"


class TagkeeperError(Exception):
    """Base exception for all custom errors."""


class AbortRequested(TagkeeperError):
    """The user chose to stop the run at an error prompt."""


class NonInteractiveAbort(TagkeeperError):
    """Too many errors without a terminal to ask what to do."""


class UnsupportedFileTypeError(TagkeeperError):
    """The entry file is neither JSON nor CSV."""


class EntryFormatError(TagkeeperError):
    """An entry or translations file cannot be read as expected."""


class OverwriteRefusedError(TagkeeperError):
    """Writing would replace an existing file without consent."""


class TranslationProviderConfigurationError(TagkeeperError):
    """A provider cannot be built from the available settings."""


class TranslationProviderError(TagkeeperError):
    """A provider request failed or its reply could not be used."""


@dataclass
class ErrorRecord:
    category: ErrorCategory
    message: str
    details: Optional[str] = None


class ErrorTracker:
    """Counts errors in a row of one category, and errors overall."""

    def __init__(self, consecutive_limit: int = 3, total_limit: int = 10) -> None:
        self.consecutive_limit = consecutive_limit
        self.total_limit = total_limit
        self.last_category: Optional[ErrorCategory] = None
        self.consecutive = 0
        self.total = 0

    def register(self, category: ErrorCategory) -> tuple[int, int, bool]:
        """Count one error; return the streak, the total and whether a limit is hit."""

        self.consecutive = self.consecutive + 1 if category is self.last_category else 1
        self.last_category = category
        self.total += 1
        limit_hit = self.consecutive >= self.consecutive_limit or self.total >= self.total_limit
        return self.consecutive, self.total, limit_hit

    def reset_consecutive(self) -> None:
        self.consecutive = 0
        self.last_category = None
