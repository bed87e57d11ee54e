"""Entry sources and the translations store.

The binary table and message parsers live outside this package; they export
their records to JSON or CSV, which the sources below read back as
:class:`~tagkeeper.structures.Entry` objects.
"""

from __future__ import annotations

import csv
import json
import pathlib
from abc import ABC, abstractmethod
from typing import Any, Dict, Iterable, List, Mapping, Tuple

from .errors import EntryFormatError, UnsupportedFileTypeError
from .structures import Entry

REQUIRED_FIELDS = ("source_id", "index", "original")


def _entry_from_record(record: Mapping[str, Any], *, location: str) -> Entry:
    missing = [name for name in REQUIRED_FIELDS if record.get(name) in (None, "")]
    if missing:
        raise EntryFormatError(
            f"{location}: missing required field(s): {', '.join(missing)}."
        )
    try:
        index = int(record["index"])
        max_bytes = int(record.get("max_bytes") or 0)
    except (TypeError, ValueError) as exc:
        raise EntryFormatError(f"{location}: index and max_bytes must be integers.") from exc

    original = record["original"]
    if not isinstance(original, str):
        raise EntryFormatError(f"{location}: original must be a string.")

    return Entry(
        source_id=str(record["source_id"]),
        index=index,
        label=str(record.get("label") or ""),
        original=original,
        max_bytes=max_bytes,
    )


class BaseEntrySource(ABC):
    """Common base class for entry sources."""

    def __init__(self, source_path: pathlib.Path):
        self.source_path = source_path
        self.entries: List[Entry] = []

    @abstractmethod
    def load_entries(self) -> List[Entry]:
        """Read every entry of the source."""

    def register_entries(self, entries: Iterable[Entry]) -> List[Entry]:
        """Store the entries, refusing duplicate keys."""

        seen = set()
        registered: List[Entry] = []
        for entry in entries:
            if entry.key in seen:
                raise EntryFormatError(
                    f"{self.source_path}: duplicate entry key '{entry.key}'."
                )
            seen.add(entry.key)
            registered.append(entry)
        self.entries = registered
        return self.entries


class JsonEntrySource(BaseEntrySource):
    """Reads a JSON list of records, optionally wrapped as ``{"entries": [...]}``."""

    def load_entries(self) -> List[Entry]:
        payload = _read_json(self.source_path)
        if isinstance(payload, dict):
            payload = payload.get("entries")
        if not isinstance(payload, list):
            raise EntryFormatError(
                f"{self.source_path}: expected a list of entries or an 'entries' key."
            )

        entries: List[Entry] = []
        for position, record in enumerate(payload):
            location = f"{self.source_path.name} entry {position + 1}"
            if not isinstance(record, dict):
                raise EntryFormatError(f"{location}: expected an object.")
            entries.append(_entry_from_record(record, location=location))
        return self.register_entries(entries)


class CsvEntrySource(BaseEntrySource):
    """Reads a CSV export whose header names the entry fields."""

    def load_entries(self) -> List[Entry]:
        try:
            with self.source_path.open("r", encoding="utf-8-sig", newline="") as handle:
                reader = csv.DictReader(handle)
                fields = reader.fieldnames or []
                missing = [name for name in REQUIRED_FIELDS if name not in fields]
                if missing:
                    raise EntryFormatError(
                        f"{self.source_path}: CSV header lacks column(s): {', '.join(missing)}."
                    )
                entries = [
                    _entry_from_record(row, location=f"{self.source_path.name} line {reader.line_num}")
                    for row in reader
                ]
        except OSError as exc:
            raise EntryFormatError(f"Could not read {self.source_path}: {exc}") from exc
        except UnicodeDecodeError as exc:
            raise EntryFormatError(f"{self.source_path} is not valid UTF-8: {exc}") from exc
        return self.register_entries(entries)


SOURCES = {
    ".json": ("json", JsonEntrySource),
    ".csv": ("csv", CsvEntrySource),
}


def detect_source(path: pathlib.Path) -> Tuple[str, BaseEntrySource]:
    """Return the format name and an entry source for ``path``."""

    suffix = path.suffix.lower()
    if suffix not in SOURCES:
        raise UnsupportedFileTypeError(
            f"Unsupported entry file type '{suffix or path.name}'. Use .json or .csv."
        )
    name, source_cls = SOURCES[suffix]
    return name, source_cls(path)


def load_entries(path: pathlib.Path) -> List[Entry]:
    _, source = detect_source(path)
    return source.load_entries()


def _read_json(path: pathlib.Path) -> Any:
    try:
        with path.open("r", encoding="utf-8-sig") as handle:
            return json.load(handle)
    except OSError as exc:
        raise EntryFormatError(f"Could not read {path}: {exc}") from exc
    except UnicodeDecodeError as exc:
        raise EntryFormatError(f"{path} is not valid UTF-8: {exc}") from exc
    except json.JSONDecodeError as exc:
        raise EntryFormatError(f"{path} is not valid JSON: {exc}") from exc


def load_translations(path: pathlib.Path) -> Dict[str, str]:
    """Load a ``{key: translation}`` mapping."""

    payload = _read_json(path)
    if isinstance(payload, dict) and isinstance(payload.get("translations"), dict):
        payload = payload["translations"]
    if not isinstance(payload, dict):
        raise EntryFormatError(f"{path}: expected an object mapping keys to translations.")

    translations: Dict[str, str] = {}
    for key, value in payload.items():
        if not isinstance(value, str):
            raise EntryFormatError(f"{path}: translation for '{key}' is not a string.")
        translations[str(key)] = value
    return translations


def save_translations(path: pathlib.Path, translations: Mapping[str, str]) -> None:
    with path.open("w", encoding="utf-8") as handle:
        json.dump(dict(translations), handle, ensure_ascii=False, indent=2)
        handle.write("\n")
