"""Ordered catalog of the token shapes that must survive translation."""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum, auto
from typing import Iterator, List, Sequence, Tuple

PLACEHOLDER_PREFIX = "TAG_"

# Stat, currency and unit short codes that games print verbatim.
PROTECTED_ABBREVIATIONS = (
    "EXP", "PST", "CP", "SP", "HP", "AP", "TP", "WP", "DP",
    "ATK", "DEF", "AGI", "DEX", "LUK", "CRI", "BLK",
    "DPS", "DOT", "AOE", "HoT", "MPH",
    "Lv", "LV", "MAX", "DLC", "NPC", "QTE", "UI", "HUD",
    "KO", "NG", "NG+",
    "kg", "km", "cm", "mm",
)


class Constraint(Enum):
    """Extra conditions a regex hit must satisfy to count as a match."""

    NONE = auto()
    WHOLE_WORD = auto()
    ATOMIC_RUN = auto()


class TagFamily(Enum):
    ICON = "icon"
    BRACKET = "bracket"
    BRACE = "brace"
    CONTROL = "control"
    MARKUP = "markup"
    ASIDE = "aside"
    ABBREVIATION = "abbreviation"


@dataclass(frozen=True)
class TagPattern:
    """One rule of the catalog.

    ``required`` rules produce tokens that a translation must carry over
    verbatim; the others are only shielded from the translator.
    """

    name: str
    regex: re.Pattern[str]
    priority: int
    family: TagFamily
    constraint: Constraint = Constraint.NONE
    required: bool = True

    @property
    def strippable(self) -> bool:
        """Whether an invented occurrence of this shape should be removed."""

        return self.family in (TagFamily.BRACKET, TagFamily.BRACE)


@dataclass(frozen=True)
class TagMatch:
    start: int
    end: int
    text: str
    pattern: TagPattern


def _abbreviation_regex() -> re.Pattern[str]:
    ordered = sorted(PROTECTED_ABBREVIATIONS, key=len, reverse=True)
    return re.compile("|".join(re.escape(item) for item in ordered))


def _rule(
    name: str,
    expression: str | re.Pattern[str],
    family: TagFamily,
    **options,
) -> Tuple[str, re.Pattern[str], TagFamily, dict]:
    regex = re.compile(expression) if isinstance(expression, str) else expression
    return name, regex, family, options


_RULES = (
    _rule("icon_run", r"[\uE000-\uF8FF]+", TagFamily.ICON, constraint=Constraint.ATOMIC_RUN),
    _rule(
        "bracket_value",
        r"\[\w+:[^\]]*?\s*\](?:\s*\([^)]{1,100}\))?",
        TagFamily.BRACKET,
    ),
    _rule("numbered_bracket", r"\d+\[[A-Z]{2,10}\]", TagFamily.BRACKET),
    _rule("bracket_numbered", r"\[[A-Z]{2,10}\]\d+", TagFamily.BRACKET),
    _rule("bracket_name", r"\[[A-Z]{2,10}\]", TagFamily.BRACKET),
    _rule("bracket_assignment", r"\[\w+=\w[^\]]*\]", TagFamily.BRACKET),
    _rule("brace_value", r"\{\w+:\w[^}]*\}", TagFamily.BRACE),
    _rule("brace_placeholder", r"\{\w+\}", TagFamily.BRACE),
    _rule("control_marker", r"[\uFFF9-\uFFFC]", TagFamily.CONTROL),
    _rule("markup", r"<[\w/][^>]*>", TagFamily.MARKUP, required=False),
    _rule("aside", r"\([A-Z][^)]{1,100}\)", TagFamily.ASIDE, required=False),
    _rule(
        "abbreviation",
        _abbreviation_regex(),
        TagFamily.ABBREVIATION,
        constraint=Constraint.WHOLE_WORD,
        required=False,
    ),
)

CATALOG: Tuple[TagPattern, ...] = tuple(
    TagPattern(name=name, regex=regex, priority=rank, family=family, **options)
    for rank, (name, regex, family, options) in enumerate(_RULES)
)


def placeholder(index: int) -> str:
    """Return the placeholder label for the token at ``index``."""

    return f"{PLACEHOLDER_PREFIX}{index}"


def _is_letter(text: str, position: int) -> bool:
    return 0 <= position < len(text) and text[position].isalpha()


def _satisfies(pattern: TagPattern, text: str, start: int, end: int) -> bool:
    if pattern.constraint is Constraint.WHOLE_WORD:
        return not (_is_letter(text, start - 1) or _is_letter(text, end))
    if pattern.constraint is Constraint.ATOMIC_RUN:
        # A run cut short by a consumed span would be split in two.
        for position in (start - 1, end):
            if 0 <= position < len(text) and pattern.regex.fullmatch(text[position]):
                return False
    return True


def _free_gaps(consumed: Sequence[Tuple[int, int]], length: int) -> Iterator[Tuple[int, int]]:
    cursor = 0
    for start, end in consumed:
        if start > cursor:
            yield cursor, start
        cursor = max(cursor, end)
    if cursor < length:
        yield cursor, length


def _search_gap(
    pattern: TagPattern,
    text: str,
    gap_start: int,
    gap_end: int,
) -> Iterator[TagMatch]:
    position = gap_start
    while position < gap_end:
        found = pattern.regex.search(text, position, gap_end)
        if found is None:
            return
        start, end = found.span()
        if end == start or not _satisfies(pattern, text, start, end):
            position = start + 1
            continue
        yield TagMatch(start=start, end=end, text=found.group(0), pattern=pattern)
        position = end


def scan(text: str, patterns: Sequence[TagPattern] = CATALOG) -> List[TagMatch]:
    """Return every non-overlapping token in ``text`` ordered by offset.

    Patterns run in priority order, each one only over the characters that
    earlier patterns left unclaimed.
    """

    if not text:
        return []

    consumed: List[Tuple[int, int]] = []
    matches: List[TagMatch] = []
    for pattern in sorted(patterns, key=lambda item: item.priority):
        found = [
            match
            for gap_start, gap_end in list(_free_gaps(consumed, len(text)))
            for match in _search_gap(pattern, text, gap_start, gap_end)
        ]
        if not found:
            continue
        matches.extend(found)
        consumed = sorted(consumed + [(match.start, match.end) for match in found])

    matches.sort(key=lambda match: match.start)
    return matches


def required_tokens(text: str) -> List[TagMatch]:
    """Return the tokens of ``text`` that a translation has to keep verbatim."""

    return [match for match in scan(text) if match.pattern.required]


def strippable_tokens(text: str) -> List[TagMatch]:
    """Return the bracket and brace shaped tokens found in ``text``."""

    return [match for match in scan(text) if match.pattern.strippable]
