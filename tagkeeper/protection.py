"""Placeholder substitution around an opaque translation step."""

from __future__ import annotations

import re
from typing import List, Sequence

from .catalog import placeholder, scan
from .structures import ProtectedToken, ProtectionResult


def protect(text: str) -> ProtectionResult:
    """Swap every protected token in ``text`` for a ``TAG_<n>`` placeholder.

    Literal ``TAG_<n>`` text already present in ``text`` is left as is and
    cannot be told apart from a placeholder afterwards, so :func:`restore`
    would replace it too.
    """

    matches = scan(text)
    if not matches:
        return ProtectionResult(clean_text=text, tokens=[])

    tokens: List[ProtectedToken] = []
    parts: List[str] = []
    cursor = 0
    for index, match in enumerate(matches):
        parts.append(text[cursor:match.start])
        parts.append(placeholder(index))
        tokens.append(ProtectedToken(index=index, original=match.text))
        cursor = match.end
    parts.append(text[cursor:])
    return ProtectionResult(clean_text="".join(parts), tokens=tokens)


def _placeholder_pattern(tokens: Sequence[ProtectedToken]) -> re.Pattern[str]:
    # Longest label first so TAG_12 is never read as TAG_1 followed by "2".
    labels = sorted({token.placeholder for token in tokens}, key=len, reverse=True)
    return re.compile("|".join(re.escape(label) for label in labels))


def restore(transformed: str, tokens: Sequence[ProtectedToken]) -> str:
    """Put the original tokens back wherever their placeholders ended up.

    Substitution happens in a single pass, so a restored token that itself
    contains placeholder-like text is never substituted again. Placeholders
    with no matching token are left untouched.
    """

    if not tokens or not transformed:
        return transformed

    originals = {token.placeholder: token.original for token in tokens}
    return _placeholder_pattern(tokens).sub(
        lambda found: originals[found.group(0)],
        transformed,
    )


def missing_placeholders(transformed: str, tokens: Sequence[ProtectedToken]) -> List[ProtectedToken]:
    """Return the tokens whose placeholder the transform dropped or mangled."""

    return [token for token in tokens if token.placeholder not in transformed]
