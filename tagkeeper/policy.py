"""What a translation run does when batches or entries keep failing."""

from __future__ import annotations

from typing import Callable, List, Optional

from .errors import (
    AbortRequested,
    ErrorCategory,
    ErrorRecord,
    ErrorTracker,
    NonInteractiveAbort,
)

CONTINUE = "continue"
RETRY = "retry"

_ANSWERS = {
    "c": CONTINUE,
    "continue": CONTINUE,
    "r": RETRY,
    "retry": RETRY,
}


class ErrorPolicy:
    """Records every handled error and escalates once the tracker hits a limit.

    Below the limits an error is reported and the run goes on. At a limit the
    user is asked to continue, retry or abort; a non-interactive run stops
    instead.
    """

    def __init__(
        self,
        *,
        interactive: bool,
        prompt: Callable[[str], str] = input,
        tracker: Optional[ErrorTracker] = None,
    ) -> None:
        self.interactive = interactive
        self.prompt = prompt
        self.tracker = tracker or ErrorTracker()
        self.records: List[ErrorRecord] = []

    def record_success(self) -> None:
        self.tracker.reset_consecutive()

    def handle_error(
        self,
        category: ErrorCategory,
        message: str,
        details: Optional[str] = None,
    ) -> str:
        """Report ``message`` and return :data:`CONTINUE` or :data:`RETRY`."""

        self.records.append(ErrorRecord(category=category, message=message, details=details))
        streak, total, limit_hit = self.tracker.register(category)
        print(message)
        if not limit_hit:
            return CONTINUE

        if not self.interactive:
            raise NonInteractiveAbort(
                f"Stopping after {total} error(s) ({streak} in a row): "
                "the error limit was reached in non-interactive mode."
            )

        if streak >= self.tracker.consecutive_limit:
            question = f"{streak} errors in a row ({category.value})."
        else:
            question = f"{total} errors so far."
        while True:
            answer = self.prompt(f"{question} Continue, retry or abort? [c/r/a] ").strip().lower()
            if answer in {"a", "abort"}:
                raise AbortRequested("Run aborted at the error prompt.")
            if answer in _ANSWERS:
                return _ANSWERS[answer]
            print("Answer c (continue), r (retry) or a (abort).")
