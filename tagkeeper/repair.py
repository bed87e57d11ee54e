"""Local audit and repair of translations made outside the placeholder cycle.

A translation handed back by a human editor or a text-generation service
may have lost some of the tokens its original carried, and may contain
bracket or brace tags that were never in the original. ``repair_locally``
reconciles the two without any knowledge of how the translation was
produced:

* tag-shaped substrings that do not hold a required token are deleted,
  together with the space that would otherwise be left doubled;
* each missing required token is inserted at the word boundary closest to
  its relative offset in the original, keeping the original order, and
  tokens that touched in the original stay glued together.

Tokens already present are never moved or removed, so a correct
translation comes back unchanged and a repaired one is stable under a
second pass.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from typing import Dict, List, Sequence, Tuple

from .catalog import TagMatch, required_tokens, scan
from .structures import RepairPreview


@dataclass(frozen=True)
class TagAudit:
    """Structural differences between an original and its translation."""

    missing: Tuple[str, ...]
    hallucinated: Tuple[str, ...]

    @property
    def ok(self) -> bool:
        return not self.missing and not self.hallucinated


@dataclass(frozen=True)
class _Placement:
    token: TagMatch
    relative: float


def _relative_offsets(original: str, required: Sequence[TagMatch]) -> List[float]:
    """Position of each token within the original's plain (token-free) text."""

    plain_length = len(original) - sum(len(match.text) for match in required)
    scale = max(plain_length, 1)
    offsets: List[float] = []
    consumed = 0
    for match in required:
        offsets.append((match.start - consumed) / scale)
        consumed += len(match.text)
    return offsets


def _missing_placements(
    original: str,
    required: Sequence[TagMatch],
    translation: str,
) -> List[_Placement]:
    available: Dict[str, int] = {}
    used: Counter = Counter()
    missing: List[_Placement] = []
    for match, relative in zip(required, _relative_offsets(original, required)):
        if match.text not in available:
            available[match.text] = translation.count(match.text)
        used[match.text] += 1
        if used[match.text] > available[match.text]:
            missing.append(_Placement(token=match, relative=relative))
    return missing


def _occurrences(text: str, tokens: Sequence[str]) -> List[Tuple[int, int]]:
    spans: List[Tuple[int, int]] = []
    for token in set(tokens):
        start = text.find(token)
        while start != -1:
            spans.append((start, start + len(token)))
            start = text.find(token, start + 1)
    return spans


def _hallucinated(translation: str, required: Sequence[str]) -> List[TagMatch]:
    """Tag-shaped spans that do not touch any occurrence of a required token."""

    kept = _occurrences(translation, required)
    return [
        match
        for match in scan(translation)
        if match.pattern.strippable
        and not any(start < match.end and end > match.start for start, end in kept)
    ]


def _remove_spans(text: str, spans: Sequence[TagMatch]) -> str:
    result = text
    for match in sorted(spans, key=lambda item: item.start, reverse=True):
        before, after = result[:match.start], result[match.end:]
        if before.endswith(" ") and (not after or after.startswith(" ")):
            before = before[:-1]
        elif not before and after.startswith(" "):
            after = after[1:]
        result = before + after
    return result


def _strip_hallucinated(translation: str, required: Sequence[str]) -> str:
    result = translation
    while True:
        invented = _hallucinated(result, required)
        if not invented:
            return result
        result = _remove_spans(result, invented)


def _word_boundaries(text: str) -> List[int]:
    """Offsets where an insertion cannot split a word or an existing token."""

    blocked = set()
    for match in scan(text):
        blocked.update(range(match.start + 1, match.end))
    bounds = {0, len(text)}
    bounds.update(
        index + 1
        for index, char in enumerate(text)
        if char.isspace() and index + 1 not in blocked
    )
    return sorted(bounds)


def _snap(target: int, bounds: Sequence[int]) -> int:
    best = bounds[0]
    for bound in bounds:
        if abs(bound - target) < abs(best - target):
            best = bound
    return best


def _insert_missing(text: str, placements: Sequence[_Placement]) -> str:
    bounds = _word_boundaries(text)
    groups: List[Tuple[int, List[TagMatch]]] = []
    for placement in placements:
        position = _snap(round(placement.relative * len(text)), bounds)
        if groups and groups[-1][0] == position:
            groups[-1][1].append(placement.token)
        else:
            groups.append((position, [placement.token]))

    result = text
    for position, tokens in reversed(groups):
        chunk = tokens[0].text
        for previous, token in zip(tokens, tokens[1:]):
            chunk += ("" if previous.end == token.start else " ") + token.text
        before, after = result[:position], result[position:]
        if before and not before[-1].isspace():
            chunk = " " + chunk
        if after and not after[0].isspace():
            chunk = chunk + " "
        result = before + chunk + after
    return result


def repair_locally(original: str, translation: str) -> str:
    """Return ``translation`` with missing tokens restored and invented ones removed."""

    required = required_tokens(original)
    required_texts = [match.text for match in required]

    repaired = _strip_hallucinated(translation, required_texts)
    missing = _missing_placements(original, required, repaired)
    if missing:
        repaired = _insert_missing(repaired, missing)

    if repaired == translation:
        return translation
    return repaired


def audit_translation(original: str, translation: str) -> TagAudit:
    required = required_tokens(original)
    required_texts = [match.text for match in required]
    missing = _missing_placements(original, required, translation)
    return TagAudit(
        missing=tuple(placement.token.text for placement in missing),
        hallucinated=tuple(match.text for match in _hallucinated(translation, required_texts)),
    )


def has_required_tokens(original: str, translation: str) -> bool:
    """Whether ``translation`` carries every token its original requires."""

    required = required_tokens(original)
    return not _missing_placements(original, required, translation)


def preview(original: str, translation: str) -> RepairPreview:
    """Describe what ``repair_locally`` would change, without applying it."""

    after = repair_locally(original, translation)
    return RepairPreview(before=translation, after=after, has_diff=after != translation)
