"""Command line interface for Tagkeeper.

``translate`` runs an entry file through a provider; ``audit`` and
``repair`` check and fix translations produced any other way; ``protect``
shows what a single string looks like to a provider.
"""

from __future__ import annotations

import argparse
import pathlib
import sys
from typing import Iterable, List, Optional

from .audit import AuditReport, apply_repairs, audit_entries, collect_repairs
from .configuration import get_settings
from .entries import load_entries, load_translations, save_translations
from .errors import (
    AbortRequested,
    NonInteractiveAbort,
    OverwriteRefusedError,
    TagkeeperError,
)
from .protection import protect
from .structures import RepairItem
from .translator import TranslationRunner, TranslationSummary, validate_paths

OFFLINE_PROVIDERS = {"echo", "noop", "mock"}
DEFAULT_BATCH_BUDGET = 2000
DEFAULT_MAX_RETRIES = 3


def _add_entry_files(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("entries", help="Entry file exported by a parser (.json or .csv).")
    parser.add_argument("translations", help="Translations JSON mapping entry keys to text.")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="tagkeeper",
        description=(
            "Translate extracted game text without losing icon codes, "
            "formatting tags or variables, and repair translations that did."
        ),
    )
    commands = parser.add_subparsers(dest="command", required=True)

    translate = commands.add_parser("translate", help="Translate every entry of an entry file.")
    translate.add_argument("entries", help="Entry file exported by a parser (.json or .csv).")
    translate.add_argument("-t", "--target-language", required=True, help="Language to translate into.")
    translate.add_argument("-s", "--source-language", help="Language of the originals, if known.")
    translate.add_argument(
        "-o",
        "--output",
        help="Translations JSON to write (default: <entries>_<language>.json).",
    )
    translate.add_argument(
        "-p",
        "--provider",
        help="openai (default), legacy-openai, or echo for an offline dry run.",
    )
    translate.add_argument("-m", "--model", help="Model or deployment name.")
    translate.add_argument(
        "-b",
        "--batch-guidance",
        type=int,
        help=f"Approximate characters per request (default: {DEFAULT_BATCH_BUDGET}).",
    )
    translate.add_argument("-f", "--force", action="store_true", help="Overwrite an existing output file.")
    translate.add_argument(
        "--non-interactive",
        action="store_true",
        help="Never prompt; stop when the error limit is reached.",
    )
    translate.add_argument("-v", "--verbose", action="store_true", help="Report progress per batch.")
    translate.add_argument(
        "--debug-provider",
        action="store_true",
        help="Dump provider requests and replies to stderr.",
    )
    translate.set_defaults(handler=_translate_command)

    audit = commands.add_parser("audit", help="Find lost or invented tags and byte overflows.")
    _add_entry_files(audit)
    audit.add_argument(
        "--strict",
        action="store_true",
        help="Exit with status 1 when any entry is flagged.",
    )
    audit.add_argument("-v", "--verbose", action="store_true", help="List each flagged entry.")
    audit.set_defaults(handler=_audit_command)

    repair = commands.add_parser("repair", help="Preview or apply local tag repairs.")
    _add_entry_files(repair)
    repair.add_argument("--apply", action="store_true", help="Write the repaired translations.")
    repair.add_argument("-o", "--output", help="Write repairs here instead of over the translations file.")
    repair.add_argument("-f", "--force", action="store_true", help="Overwrite an existing --output file.")
    repair.set_defaults(handler=_repair_command)

    protect_cmd = commands.add_parser("protect", help="Show placeholders and tokens for one string.")
    protect_cmd.add_argument("text")
    protect_cmd.set_defaults(handler=_protect_command)
    return parser


def derive_output_path(input_path: pathlib.Path, language: str) -> pathlib.Path:
    suffix = "".join(char for char in language.strip() if char.isalnum() or char == "-")
    return input_path.with_name(f"{input_path.stem}_{suffix or 'translated'}.json")


def execute_translation(
    *,
    input_file: str,
    output_file: str | None,
    target_language: str,
    source_language: str | None,
    provider: str | None,
    model: str | None,
    batch_guidance: int | None,
    force_overwrite: bool,
    non_interactive: bool,
    verbose: bool,
    provider_debug: bool,
) -> tuple[int, TranslationSummary | None, str | None]:
    """Run a translation and return the exit code, summary and message."""

    input_path = pathlib.Path(input_file).expanduser().resolve()
    output_path = (
        pathlib.Path(output_file).expanduser().resolve()
        if output_file
        else derive_output_path(input_path, target_language)
    )
    max_retries = DEFAULT_MAX_RETRIES
    settings = None

    try:
        validate_paths(input_path, output_path, force_overwrite=force_overwrite)
        if (provider or "openai").strip().lower() not in OFFLINE_PROVIDERS:
            settings = get_settings()
            model = model or settings.TAGKEEPER_MODEL
            batch_guidance = batch_guidance or settings.TAGKEEPER_BATCH_BUDGET
            max_retries = settings.TAGKEEPER_MAX_RETRIES
            provider_debug = provider_debug or settings.TAGKEEPER_PROVIDER_DEBUG

        output_path.parent.mkdir(parents=True, exist_ok=True)
        runner = TranslationRunner(
            input_path=input_path,
            output_path=output_path,
            target_language=target_language,
            source_language=source_language,
            provider_name=provider,
            model=model,
            batch_budget=batch_guidance or DEFAULT_BATCH_BUDGET,
            interactive=not non_interactive,
            verbose=verbose,
            provider_debug=provider_debug,
            max_retries=max_retries,
            settings=settings,
        )
        summary = runner.run()
    except (NonInteractiveAbort, AbortRequested) as exc:
        return 2, None, str(exc)
    except KeyboardInterrupt:
        return 2, None, "Translation interrupted; nothing was written."
    except (FileNotFoundError, TagkeeperError) as exc:
        return 1, None, str(exc)

    return 0, summary, None


def print_summary(summary: TranslationSummary) -> None:
    rows = [
        ("Entry file", f"{summary.input_path} ({summary.entry_format})"),
        ("Translations", str(summary.output_path)),
        (
            "Entries",
            f"{summary.translated_entries} translated, {summary.passthrough_entries} kept, "
            f"{summary.skipped_entries} skipped of {summary.total_entries}",
        ),
        ("Tag repairs", str(summary.repaired_entries)),
        ("Batches", str(summary.total_batches)),
        ("Provider", summary.provider_name + (f" ({summary.model})" if summary.model else "")),
        ("Languages", f"{summary.source_language or 'auto'} -> {summary.target_language}"),
        ("Elapsed", f"{summary.elapsed_seconds:.2f}s"),
    ]
    print("\nTranslation complete.")
    for label, value in rows:
        print(f"  {label + ':':<14}{value}")
    if summary.error_messages:
        print(f"  {summary.total_errors} error(s):")
        for message in summary.error_messages:
            print(f"    - {message}")


def print_audit(report: AuditReport, *, verbose: bool) -> None:
    print(f"Entries:        {report.total} ({report.total - report.untranslated} translated)")
    print(f"Damaged tags:   {report.damaged}")
    print(f"Over budget:    {report.over_budget}")
    if not verbose:
        return
    for result in report.audits:
        if not (result.damaged or result.over_budget):
            continue
        print(f"\n{result.key}")
        if result.tags.missing:
            print(f"  missing:      {' '.join(map(repr, result.tags.missing))}")
        if result.tags.hallucinated:
            print(f"  invented:     {' '.join(map(repr, result.tags.hallucinated))}")
        if result.over_budget:
            print(f"  bytes:        {result.byte_length}/{result.max_bytes}")


def print_repairs(items: List[RepairItem]) -> None:
    for item in items:
        print(f"\n{item.key}\n  - {item.before}\n  + {item.after}")
    print(f"\n{len(items)} translation(s) can be repaired locally.")


def _translate_command(args: argparse.Namespace) -> int:
    exit_code, summary, message = execute_translation(
        input_file=args.entries,
        output_file=args.output,
        target_language=args.target_language,
        source_language=args.source_language,
        provider=args.provider,
        model=args.model,
        batch_guidance=args.batch_guidance,
        force_overwrite=args.force,
        non_interactive=args.non_interactive,
        verbose=args.verbose,
        provider_debug=args.debug_provider,
    )
    if message:
        print(message)
    if summary:
        print_summary(summary)
    return exit_code


def _audit_command(args: argparse.Namespace) -> int:
    entries = load_entries(pathlib.Path(args.entries))
    translations = load_translations(pathlib.Path(args.translations))
    report = audit_entries(entries, translations)
    print_audit(report, verbose=args.verbose)
    return 1 if args.strict and not report.clean else 0


def _repair_command(args: argparse.Namespace) -> int:
    source = pathlib.Path(args.translations)
    target = pathlib.Path(args.output) if args.output else source
    entries = load_entries(pathlib.Path(args.entries))
    translations = load_translations(source)

    items = collect_repairs(entries, translations)
    print_repairs(items)
    if not (args.apply and items):
        return 0
    if target != source and target.exists() and not args.force:
        raise OverwriteRefusedError(f"{target} already exists; pass --force to overwrite it.")
    save_translations(target, apply_repairs(translations, items))
    print(f"Wrote {len(items)} repair(s) to {target}.")
    return 0


def _protect_command(args: argparse.Namespace) -> int:
    result = protect(args.text)
    print(result.clean_text)
    for token in result.tokens:
        print(f"  {token.placeholder}: {token.original!r}")
    return 0


def main(argv: Optional[Iterable[str]] = None) -> int:
    args = build_parser().parse_args(list(argv) if argv is not None else None)
    try:
        return args.handler(args)
    except TagkeeperError as exc:
        print(exc)
        return 1


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
