"""Core data structures for the Tagkeeper engine."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List

from .catalog import PLACEHOLDER_PREFIX


@dataclass(frozen=True)
class Entry:
    """A single translatable record exported by a table or message parser."""

    source_id: str
    index: int
    label: str
    original: str
    max_bytes: int = 0

    @property
    def key(self) -> str:
        return f"{self.source_id}:{self.index}"


@dataclass(frozen=True)
class ProtectedToken:
    """A non-translatable substring lifted out of a source text."""

    index: int
    original: str

    @property
    def placeholder(self) -> str:
        return f"{PLACEHOLDER_PREFIX}{self.index}"


@dataclass(frozen=True)
class ProtectionResult:
    """Placeholder-substituted text plus the tokens needed to restore it."""

    clean_text: str
    tokens: List[ProtectedToken] = field(default_factory=list)


@dataclass(frozen=True)
class RepairPreview:
    before: str
    after: str
    has_diff: bool


@dataclass(frozen=True)
class RepairItem:
    """A proposed repair of one stored translation, pending review."""

    key: str
    before: str
    after: str
    has_diff: bool


@dataclass
class TextSegment:
    """A protected entry text ready to be sent to a translation provider."""

    segment_id: str
    text: str


@dataclass
class Batch:
    """A batch of segments constrained by a character budget."""

    batch_id: int
    segments: List[TextSegment]
