"""Protect, translate and restore every entry of an entry file."""

from __future__ import annotations

import pathlib
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

from .batching import BatchBuilder, build_segments, protect_entries
from .brackets import fix_tag_brackets, has_technical_bracket_tag
from .entries import detect_source, save_translations
from .errors import (
    ErrorCategory,
    OverwriteRefusedError,
    TagkeeperError,
    TranslationProviderError,
)
from .policy import RETRY, ErrorPolicy
from .protection import missing_placeholders, restore
from .providers import TranslationProvider, build_provider
from .repair import repair_locally
from .structures import Batch, Entry, ProtectionResult


@dataclass
class TranslationSummary:
    """Report returned after processing an entry file."""

    input_path: pathlib.Path
    output_path: pathlib.Path
    entry_format: str
    total_entries: int
    translated_entries: int
    passthrough_entries: int
    skipped_entries: int
    repaired_entries: int
    total_batches: int
    total_errors: int
    provider_name: str
    model: str | None
    target_language: str
    source_language: str | None
    elapsed_seconds: float
    error_messages: List[str] = field(default_factory=list)


@dataclass
class _RunState:
    entries: Dict[str, Entry]
    protected: Dict[str, ProtectionResult]
    translations: Dict[str, str] = field(default_factory=dict)
    passthrough: int = 0
    repaired: int = 0


def finalise_translation(original: str, protection: ProtectionResult, transformed: str) -> str:
    """Turn raw provider output back into a translation carrying every token.

    Placeholders are restored first, then bracket damage around technical
    tags is undone, and finally any token the provider lost is reinserted.
    """

    restored = restore(transformed, protection.tokens)
    if has_technical_bracket_tag(original):
        restored = fix_tag_brackets(original, restored).text
    return repair_locally(original, restored)


class TranslationRunner:
    """Runs one entry file through a provider and writes the translations store."""

    def __init__(
        self,
        *,
        input_path: pathlib.Path,
        output_path: pathlib.Path,
        target_language: str,
        source_language: str | None,
        provider_name: str | None,
        model: str | None,
        batch_budget: int,
        interactive: bool,
        verbose: bool,
        provider_debug: bool,
        max_retries: int = 3,
        provider: Optional[TranslationProvider] = None,
        settings: Optional[Any] = None,
    ) -> None:
        self.input_path = input_path
        self.output_path = output_path
        self.target_language = target_language
        self.source_language = source_language
        self.provider_name = provider_name
        self.model = model
        self.batch_budget = batch_budget
        self.interactive = interactive
        self.verbose = verbose
        self.provider_debug = provider_debug
        self.max_retries = max_retries
        self.provider = provider
        self.settings = settings

        self.error_policy = ErrorPolicy(interactive=interactive)
        self.retry_backoff = [1, 4, 9]

    def run(self) -> TranslationSummary:
        started = time.time()

        entry_format, source = detect_source(self.input_path)
        entries = source.load_entries()
        state = _RunState(
            entries={entry.key: entry for entry in entries},
            protected=protect_entries(entries),
        )
        segments = build_segments(entries, state.protected)
        queued = {segment.segment_id for segment in segments}

        # Tag-only entries and entries already holding placeholder text keep their original.
        for entry in entries:
            if entry.key not in queued:
                state.translations[entry.key] = entry.original
                state.passthrough += 1

        batches = BatchBuilder(self.batch_budget).build(segments)
        if self.verbose:
            print(
                f"Loaded {len(entries)} {entry_format} entries: {len(segments)} to translate "
                f"in {len(batches)} batch(es), {state.passthrough} kept as is."
            )

        provider = self.provider or build_provider(
            self.provider_name,
            debug=self.provider_debug,
            settings=self.settings,
        )
        for batch in batches:
            reply = self._request_batch(provider, batch)
            if reply is not None:
                self._store_batch(batch, reply, state)

        save_translations(self.output_path, state.translations)

        translated = len(state.translations) - state.passthrough
        return TranslationSummary(
            input_path=self.input_path,
            output_path=self.output_path,
            entry_format=entry_format,
            total_entries=len(entries),
            translated_entries=translated,
            passthrough_entries=state.passthrough,
            skipped_entries=len(entries) - len(state.translations),
            repaired_entries=state.repaired,
            total_batches=len(batches),
            total_errors=len(self.error_policy.records),
            provider_name=self.provider_name or "openai",
            model=self.model,
            target_language=self.target_language,
            source_language=self.source_language,
            elapsed_seconds=time.time() - started,
            error_messages=[record.message for record in self.error_policy.records],
        )

    def _request_batch(self, provider: TranslationProvider, batch: Batch) -> Optional[Mapping[str, str]]:
        """Return the provider's reply for ``batch``, or ``None`` when it is given up."""

        failures = 0
        while True:
            try:
                return provider.translate(
                    batch.segments,
                    source_language=self.source_language,
                    target_language=self.target_language,
                    model=self.model,
                )
            except TranslationProviderError as exc:
                failures += 1
                if failures <= self.max_retries:
                    delay = self.retry_backoff[min(failures, len(self.retry_backoff)) - 1]
                    print(
                        f"Batch {batch.batch_id} failed ({exc}); "
                        f"retry {failures} of {self.max_retries} in {delay}s."
                    )
                    time.sleep(delay)
                    continue

                decision = self.error_policy.handle_error(
                    ErrorCategory.BATCH_FAILED,
                    f"Batch {batch.batch_id} failed after {failures} attempt(s): {exc}",
                )
                if decision == RETRY:
                    failures = 0
                    continue
                if self.verbose:
                    keys = ", ".join(segment.segment_id for segment in batch.segments)
                    print(f"Leaving untranslated: {keys}")
                return None

    def _store_batch(self, batch: Batch, reply: Mapping[str, str], state: _RunState) -> None:
        for segment in batch.segments:
            key = segment.segment_id
            transformed = reply.get(key)
            if transformed is None:
                self.error_policy.handle_error(
                    ErrorCategory.ENTRY_MISSING,
                    f"The provider did not return entry {key}; leaving it untranslated.",
                )
                continue

            protection = state.protected[key]
            lost = missing_placeholders(transformed, protection.tokens)
            if lost and self.verbose:
                labels = ", ".join(token.placeholder for token in lost)
                print(f"{key}: provider lost {labels}")

            final = finalise_translation(state.entries[key].original, protection, transformed)
            if final != restore(transformed, protection.tokens):
                state.repaired += 1
            state.translations[key] = final

        if self.verbose:
            size = sum(len(segment.text) for segment in batch.segments)
            print(f"Batch {batch.batch_id}: {len(batch.segments)} entries, {size} chars.")
        self.error_policy.record_success()


def validate_paths(
    input_path: pathlib.Path,
    output_path: pathlib.Path,
    force_overwrite: bool,
) -> None:
    """Check the entry file exists and the output may be written."""

    if not input_path.exists():
        raise FileNotFoundError(
            f"Input file not found: {input_path}. Provide a readable .json or .csv entry file."
        )
    if not input_path.is_file():
        raise TagkeeperError(f"{input_path} is not a file.")
    if input_path.resolve() == output_path.resolve():
        raise OverwriteRefusedError(
            "The output path is the entry file itself; choose another output path."
        )
    if output_path.exists() and not force_overwrite:
        raise OverwriteRefusedError(
            f"{output_path} already exists; pass --force to overwrite it."
        )
