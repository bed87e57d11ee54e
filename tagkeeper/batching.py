"""Batching of protected entry texts for translation providers."""

from __future__ import annotations

import re
from typing import Dict, List, Mapping, Sequence

from .catalog import PLACEHOLDER_PREFIX
from .protection import protect
from .structures import Batch, Entry, ProtectionResult, TextSegment

PLACEHOLDER_RE = re.compile(re.escape(PLACEHOLDER_PREFIX) + r"\d+")


def has_translatable_text(text: str) -> bool:
    """Whether anything but placeholders, digits and punctuation is left."""

    residue = PLACEHOLDER_RE.sub("", text)
    return any(char.isalpha() for char in residue)


def protect_entries(entries: Sequence[Entry]) -> Dict[str, ProtectionResult]:
    """Protect every entry original, keyed by entry key."""

    return {entry.key: protect(entry.original) for entry in entries}


def build_segments(
    entries: Sequence[Entry],
    protected: Mapping[str, ProtectionResult],
) -> List[TextSegment]:
    """Turn entries into provider segments.

    Entries with nothing to translate are skipped, and so are entries whose
    original already holds placeholder text such as ``TAG_0``.
    """

    segments: List[TextSegment] = []
    for entry in entries:
        if PLACEHOLDER_RE.search(entry.original):
            continue
        result = protected[entry.key]
        if not has_translatable_text(result.clean_text):
            continue
        segments.append(TextSegment(segment_id=entry.key, text=result.clean_text))
    return segments


class BatchBuilder:
    """Groups segments into requests bounded by characters and by entry count.

    A segment longer than the character budget goes out alone, never split.
    """

    def __init__(self, budget: int, max_entries: int = 50) -> None:
        self.budget = max(1, budget)
        self.max_entries = max(1, max_entries)

    def build(self, segments: Sequence[TextSegment]) -> List[Batch]:
        batches: List[Batch] = []
        pending: List[TextSegment] = []
        pending_chars = 0

        def flush() -> None:
            if pending:
                batches.append(Batch(batch_id=len(batches) + 1, segments=list(pending)))
                pending.clear()

        for segment in segments:
            size = len(segment.text)
            full = len(pending) >= self.max_entries
            if full or (pending and pending_chars + size > self.budget):
                flush()
                pending_chars = 0
            pending.append(segment)
            pending_chars += size
            if size > self.budget:
                flush()
                pending_chars = 0

        flush()
        return batches
