import json
import re

import pytest

from tagkeeper.entries import load_translations
from tagkeeper.errors import NonInteractiveAbort, OverwriteRefusedError, TranslationProviderError
from tagkeeper.protection import protect
from tagkeeper.providers import EchoTranslationProvider, TranslationProvider
from tagkeeper.translator import TranslationRunner, finalise_translation, validate_paths

ENTRIES = [
    {"source_id": "msg", "index": 0, "original": "Press 1[ML] to attack"},
    {"source_id": "msg", "index": 1, "original": "\ue000\ue001"},
    {"source_id": "msg", "index": 2, "original": "[Color:Red]danger[Color:White]"},
]


class DroppingProvider(TranslationProvider):
    """Returns every segment with its placeholders removed."""

    def translate(self, segments, *, source_language, target_language, model=None):
        return {
            segment.segment_id: " ".join(re.sub(r"TAG_\d+", "", segment.text).split())
            for segment in segments
        }


class FailingProvider(TranslationProvider):
    def __init__(self):
        self.calls = 0

    def translate(self, segments, *, source_language, target_language, model=None):
        self.calls += 1
        raise TranslationProviderError("service down")


class ForgetfulProvider(TranslationProvider):
    def translate(self, segments, *, source_language, target_language, model=None):
        return {}


@pytest.fixture
def entries_file(tmp_path):
    path = tmp_path / "entries.json"
    path.write_text(json.dumps(ENTRIES), encoding="utf-8")
    return path


def make_runner(entries_file, provider, **overrides):
    options = dict(
        input_path=entries_file,
        output_path=entries_file.with_name("out.json"),
        target_language="fr",
        source_language=None,
        provider_name="test",
        model=None,
        batch_budget=2000,
        interactive=False,
        verbose=False,
        provider_debug=False,
        provider=provider,
    )
    options.update(overrides)
    runner = TranslationRunner(**options)
    runner.retry_backoff = [0, 0, 0]
    return runner


def test_echo_run_reproduces_originals(entries_file):
    runner = make_runner(entries_file, EchoTranslationProvider())
    summary = runner.run()

    translations = load_translations(runner.output_path)
    assert translations == {
        "msg:0": "Press 1[ML] to attack",
        "msg:1": "\ue000\ue001",
        "msg:2": "[Color:Red]danger[Color:White]",
    }
    assert summary.entry_format == "json"
    assert summary.total_entries == 3
    assert summary.translated_entries == 2
    assert summary.passthrough_entries == 1
    assert summary.skipped_entries == 0
    assert summary.repaired_entries == 0
    assert summary.total_batches == 1
    assert summary.total_errors == 0


def test_dropped_placeholders_are_repaired(entries_file):
    runner = make_runner(entries_file, DroppingProvider())
    summary = runner.run()

    translations = load_translations(runner.output_path)
    assert "1[ML]" in translations["msg:0"]
    assert translations["msg:2"].count("[Color:") == 2
    assert summary.repaired_entries == 2


def test_failing_batch_is_skipped_after_retries(entries_file):
    provider = FailingProvider()
    runner = make_runner(entries_file, provider)
    summary = runner.run()

    assert provider.calls == runner.max_retries + 1
    assert summary.skipped_entries == 2
    assert summary.passthrough_entries == 1
    assert summary.total_errors == 1
    assert load_translations(runner.output_path) == {"msg:1": "\ue000\ue001"}


def test_missing_translations_abort_non_interactive_run(tmp_path):
    path = tmp_path / "entries.json"
    path.write_text(json.dumps([
        {"source_id": "msg", "index": index, "original": f"Line {index}"}
        for index in range(3)
    ]), encoding="utf-8")
    runner = make_runner(path, ForgetfulProvider())
    with pytest.raises(NonInteractiveAbort):
        runner.run()


def test_finalise_translation_reinserts_lost_tag():
    original = "[ML:Name] here"
    protection = protect(original)
    assert finalise_translation(original, protection, "ici") == "[ML:Name] ici"


def test_finalise_translation_restores_placeholders():
    original = "Press 1[ML] to attack"
    protection = protect(original)
    assert finalise_translation(original, protection, "Appuyez sur TAG_0 pour attaquer") == (
        "Appuyez sur 1[ML] pour attaquer"
    )


def test_validate_paths(tmp_path):
    source = tmp_path / "entries.json"
    with pytest.raises(FileNotFoundError):
        validate_paths(source, tmp_path / "out.json", force_overwrite=False)

    source.write_text("[]", encoding="utf-8")
    with pytest.raises(OverwriteRefusedError):
        validate_paths(source, source, force_overwrite=True)

    existing = tmp_path / "out.json"
    existing.write_text("{}", encoding="utf-8")
    with pytest.raises(OverwriteRefusedError):
        validate_paths(source, existing, force_overwrite=False)
    validate_paths(source, existing, force_overwrite=True)


def test_retry_count_is_configurable(entries_file):
    provider = FailingProvider()
    runner = make_runner(entries_file, provider, max_retries=1)
    runner.run()
    assert provider.calls == 2


def test_placeholder_text_in_original_is_kept_verbatim(tmp_path):
    path = tmp_path / "entries.json"
    path.write_text(json.dumps([
        {"source_id": "msg", "index": 0, "original": "TAG_0 {x} opens the door"},
    ]), encoding="utf-8")
    runner = make_runner(path, DroppingProvider())
    summary = runner.run()

    assert load_translations(runner.output_path) == {"msg:0": "TAG_0 {x} opens the door"}
    assert summary.passthrough_entries == 1
    assert summary.total_batches == 0
