"""Entry-level audit signals and batch repair helpers."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Collection, Dict, List, Mapping, Optional, Sequence

from .brackets import fix_tag_brackets, has_technical_bracket_tag
from .repair import TagAudit, audit_translation, repair_locally
from .structures import Entry, RepairItem


@dataclass(frozen=True)
class EntryAudit:
    key: str
    tags: TagAudit
    byte_length: int
    max_bytes: int

    @property
    def damaged(self) -> bool:
        return bool(self.tags.missing or self.tags.hallucinated)

    @property
    def over_budget(self) -> bool:
        return self.max_bytes > 0 and self.byte_length > self.max_bytes


@dataclass
class AuditReport:
    """Counts the host shows on its quality overview."""

    total: int = 0
    untranslated: int = 0
    damaged_keys: List[str] = field(default_factory=list)
    over_budget_keys: List[str] = field(default_factory=list)
    audits: List[EntryAudit] = field(default_factory=list)

    @property
    def damaged(self) -> int:
        return len(self.damaged_keys)

    @property
    def over_budget(self) -> int:
        return len(self.over_budget_keys)

    @property
    def clean(self) -> bool:
        return not self.damaged_keys and not self.over_budget_keys


def audit_entry(entry: Entry, translation: str) -> EntryAudit:
    return EntryAudit(
        key=entry.key,
        tags=audit_translation(entry.original, translation),
        byte_length=len(translation.encode("utf-8")),
        max_bytes=entry.max_bytes,
    )


def audit_entries(entries: Sequence[Entry], translations: Mapping[str, str]) -> AuditReport:
    """Audit every translated entry; blank translations count as untranslated."""

    report = AuditReport(total=len(entries))
    for entry in entries:
        translation = translations.get(entry.key, "")
        if not translation.strip():
            report.untranslated += 1
            continue
        result = audit_entry(entry, translation)
        report.audits.append(result)
        if result.damaged:
            report.damaged_keys.append(entry.key)
        if result.over_budget:
            report.over_budget_keys.append(entry.key)
    return report


def collect_repairs(
    entries: Sequence[Entry],
    translations: Mapping[str, str],
    keys: Optional[Collection[str]] = None,
) -> List[RepairItem]:
    """Preview local repairs for the given keys (all entries by default).

    Bracket damage around technical tags is undone before the local repair.
    Only entries whose repair would change something are returned.
    """

    items: List[RepairItem] = []
    for entry in entries:
        if keys is not None and entry.key not in keys:
            continue
        translation = translations.get(entry.key, "")
        if not translation.strip():
            continue
        fixed = translation
        if has_technical_bracket_tag(entry.original):
            fixed = fix_tag_brackets(entry.original, translation).text
        after = repair_locally(entry.original, fixed)
        if after != translation:
            items.append(RepairItem(key=entry.key, before=translation, after=after, has_diff=True))
    return items


def apply_repairs(
    translations: Mapping[str, str],
    items: Sequence[RepairItem],
    accepted: Optional[Collection[str]] = None,
) -> Dict[str, str]:
    """Return a new mapping with the accepted repairs applied.

    An item is skipped when its stored translation no longer matches the
    ``before`` it was previewed against.
    """

    updated = dict(translations)
    for item in items:
        if accepted is not None and item.key not in accepted:
            continue
        if updated.get(item.key) != item.before:
            continue
        updated[item.key] = item.after
    return updated
