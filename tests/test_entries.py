import json

import pytest

from tagkeeper.entries import (
    detect_source,
    load_entries,
    load_translations,
    save_translations,
)
from tagkeeper.errors import EntryFormatError, UnsupportedFileTypeError


def write_json(path, payload):
    path.write_text(json.dumps(payload, ensure_ascii=False), encoding="utf-8")
    return path


def test_json_list(tmp_path):
    path = write_json(tmp_path / "entries.json", [
        {"source_id": "msg_ask", "index": 0, "label": "greet", "original": "Hello {name}"},
        {"source_id": "msg_ask", "index": "1", "original": "Bye", "max_bytes": 12},
    ])
    entries = load_entries(path)
    assert [entry.key for entry in entries] == ["msg_ask:0", "msg_ask:1"]
    assert entries[0].label == "greet"
    assert entries[1].max_bytes == 12
    assert entries[1].label == ""


def test_json_wrapped_in_entries_key(tmp_path):
    path = write_json(tmp_path / "entries.json", {
        "entries": [{"source_id": "s", "index": 3, "original": "Hi"}],
    })
    assert load_entries(path)[0].key == "s:3"


def test_csv_source(tmp_path):
    path = tmp_path / "entries.csv"
    path.write_text(
        "source_id,index,label,original,max_bytes\n"
        'msg,0,a,"Press 1[ML], then jump",40\n'
        "msg,1,b,Hello,\n",
        encoding="utf-8",
    )
    name, source = detect_source(path)
    entries = source.load_entries()
    assert name == "csv"
    assert entries[0].original == "Press 1[ML], then jump"
    assert entries[0].max_bytes == 40
    assert entries[1].max_bytes == 0


def test_csv_missing_column(tmp_path):
    path = tmp_path / "entries.csv"
    path.write_text("source_id,original\nmsg,Hello\n", encoding="utf-8")
    with pytest.raises(EntryFormatError):
        load_entries(path)


def test_unsupported_suffix(tmp_path):
    with pytest.raises(UnsupportedFileTypeError):
        detect_source(tmp_path / "entries.bdat")


@pytest.mark.parametrize("payload", [
    [{"source_id": "s", "original": "Hi"}],
    [{"source_id": "s", "index": "x", "original": "Hi"}],
    [{"source_id": "s", "index": 0, "original": 5}],
    [{"source_id": "s", "index": 0, "original": "a"}, {"source_id": "s", "index": 0, "original": "b"}],
    {"rows": []},
    ["not an object"],
])
def test_invalid_entries(tmp_path, payload):
    path = write_json(tmp_path / "entries.json", payload)
    with pytest.raises(EntryFormatError):
        load_entries(path)


def test_invalid_json(tmp_path):
    path = tmp_path / "entries.json"
    path.write_text("{not json", encoding="utf-8")
    with pytest.raises(EntryFormatError):
        load_entries(path)


def test_translations_round_trip(tmp_path):
    path = tmp_path / "out.json"
    save_translations(path, {"msg:0": "مرحبا [ML:Name]"})
    assert "مرحبا" in path.read_text(encoding="utf-8")
    assert load_translations(path) == {"msg:0": "مرحبا [ML:Name]"}


def test_translations_accept_wrapped_object(tmp_path):
    path = write_json(tmp_path / "t.json", {"translations": {"a:0": "x"}})
    assert load_translations(path) == {"a:0": "x"}


def test_translations_reject_non_strings(tmp_path):
    path = write_json(tmp_path / "t.json", {"a:0": 3})
    with pytest.raises(EntryFormatError):
        load_translations(path)


@pytest.mark.parametrize("name,loader", [
    ("entries.json", load_entries),
    ("entries.csv", load_entries),
    ("translations.json", load_translations),
])
def test_non_utf8_files_are_rejected(tmp_path, name, loader):
    path = tmp_path / name
    path.write_bytes(b"\xff\xfe\xff")
    with pytest.raises(EntryFormatError, match="not valid UTF-8"):
        loader(path)
