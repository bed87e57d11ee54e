"""Repair of bracket damage around ``[Tag:Value]`` and ``[TAG]N`` tags.

Right-to-left rendering and text-generation services tend to flip, mismatch
or drop the brackets of technical tags. Each tag of the original that is no
longer present verbatim is looked for in its damaged forms and rewritten.
Brackets are only ever touched as part of a tag that was positively
identified, so unrelated bracketed prose survives as is.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Tuple

TAG_VALUE_PATTERN = re.compile(r"\[\w+:[^\]]*?\s*\](?:\s*\([^)]{1,100}\))?")
TAG_NUMBER_PATTERN = re.compile(r"\[([A-Z]{2,10})\](\d+)")

_HAS_VALUE_TAG = re.compile(r"\[\w+:[^\]]*?\s*\]")


@dataclass
class BracketFixStats:
    reversed: int = 0
    mismatched: int = 0
    bare: int = 0

    @property
    def total(self) -> int:
        return self.reversed + self.mismatched + self.bare


@dataclass
class BracketFixResult:
    text: str
    stats: BracketFixStats = field(default_factory=BracketFixStats)


def has_technical_bracket_tag(text: str) -> bool:
    """Whether ``text`` holds a ``[Tag:Value]`` or ``[TAG]N`` style tag."""

    return bool(_HAS_VALUE_TAG.search(text) or TAG_NUMBER_PATTERN.search(text))


def _replace_first(pattern: str, replacement: str, text: str) -> Tuple[str, bool]:
    result, count = re.subn(pattern, lambda _: replacement, text, count=1)
    return result, bool(count)


def _fix_value_tag(tag: str, text: str, stats: BracketFixStats) -> str:
    inner = tag[1:tag.index("]")]
    fixed = f"[{inner}]"
    escaped = re.escape(inner)

    text, done = _replace_first(rf"\]\s*{escaped}\s*\[", fixed, text)
    if done:
        stats.reversed += 1
        return text

    for pattern in (rf"\]\s*{escaped}\s*\]", rf"\[\s*{escaped}\s*\["):
        text, done = _replace_first(pattern, fixed, text)
        if done:
            stats.mismatched += 1
            return text

    text, done = _replace_first(rf"(?<!\[){escaped}(?!\])", fixed, text)
    if done:
        stats.bare += 1
        return text

    flipped = re.escape(inner[::-1])
    for pattern in (rf"\[\s*{flipped}\s*\]", rf"\]\s*{flipped}\s*\["):
        text, done = _replace_first(pattern, fixed, text)
        if done:
            stats.reversed += 1
            return text
    return text


def _fix_number_tag(tag: str, name: str, number: str, text: str, stats: BracketFixStats) -> str:
    name_re, number_re = re.escape(name), re.escape(number)

    text, done = _replace_first(rf"\]{name_re}\[{number_re}", tag, text)
    if done:
        stats.reversed += 1
        return text

    for pattern in (rf"\[{name_re}\[{number_re}", rf"\]{name_re}\]{number_re}"):
        text, done = _replace_first(pattern, tag, text)
        if done:
            stats.mismatched += 1
            return text

    text, done = _replace_first(rf"(?<!\[){name_re}(?!\])\s*{number_re}", tag, text)
    if done:
        stats.bare += 1
        return text

    text, done = _replace_first(rf"\[{name_re}\]\s+{number_re}", tag, text)
    if done:
        stats.mismatched += 1
    return text


def fix_tag_brackets(original: str, translation: str) -> BracketFixResult:
    """Restore the brackets of ``original``'s tags that ``translation`` mangled.

    Tags already present verbatim are skipped, which makes the fix
    idempotent. When no damaged form is recognised the translation is
    returned unchanged.
    """

    stats = BracketFixStats()
    result = translation

    for found in TAG_VALUE_PATTERN.finditer(original):
        tag = found.group(0)
        # A translated aside after the tag does not count as damage.
        if tag[:tag.index("]") + 1] in result:
            continue
        result = _fix_value_tag(tag, result, stats)

    for found in TAG_NUMBER_PATTERN.finditer(original):
        tag = found.group(0)
        if tag in result:
            continue
        result = _fix_number_tag(tag, found.group(1), found.group(2), result, stats)

    return BracketFixResult(text=result, stats=stats)
