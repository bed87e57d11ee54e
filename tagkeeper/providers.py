"""Translation backends for placeholder-protected game text.

A backend only ever sees ``TAG_<n>`` placeholders, never the tokens they
stand for, and its reply is treated as untrusted: whatever it does to the
placeholders is reconciled afterwards by
:func:`~tagkeeper.translator.finalise_translation`.
"""

from __future__ import annotations

import json
import os
import re
import sys
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, Mapping, Optional, Sequence, Tuple

from .errors import (
    TranslationProviderConfigurationError,
    TranslationProviderError,
)
from .structures import TextSegment

SYSTEM_PROMPT = (
    "You translate dialogue, menus and item descriptions of a video game. "
    "The user message is a JSON object with a target language, an optional "
    "source language and an 'entries' object mapping keys to texts. "
    "Texts contain placeholders such as TAG_0 and TAG_1 standing for button "
    "icons, colour codes and variables. Every placeholder must appear in your "
    "translation exactly as often as in the source, spelled identically. You "
    "may move a placeholder so the sentence reads naturally. Never translate, "
    "renumber or join placeholders, and never add brackets, braces or tags "
    "that the source does not have. Keep digits and line breaks. "
    'Reply with JSON only, shaped as {"entries": {"<key>": "<translation>"}}, '
    "using the same keys you were given."
)

_FENCE = re.compile(r"^```[\w-]*\n(?P<body>.*?)\n?```$", re.DOTALL)

_AZURE_SETTINGS = (
    "AZURE_OPENAI_API_KEY",
    "AZURE_OPENAI_ENDPOINT",
    "AZURE_OPENAI_API_VERSION",
    "AZURE_OPENAI_DEPLOYMENT_NAME",
)


class TranslationProvider(ABC):
    """Turns protected segment texts into translated ones, keyed by segment id."""

    @abstractmethod
    def translate(
        self,
        segments: Sequence[TextSegment],
        *,
        source_language: str | None,
        target_language: str,
        model: str | None = None,
    ) -> Dict[str, str]:
        ...


class EchoTranslationProvider(TranslationProvider):
    """Hands every protected text back untouched; for dry runs and tests."""

    def translate(
        self,
        segments: Sequence[TextSegment],
        *,
        source_language: str | None,
        target_language: str,
        model: str | None = None,
    ) -> Dict[str, str]:
        return {segment.segment_id: segment.text for segment in segments}


def _normalise_backend(value: str | None) -> str:
    kind = (value or "openai").strip().lower().replace("-", "_")
    if kind in {"azure_openai", "azure_open_ai", "azureopenai"}:
        return "azure_openai"
    return "openai"


def _open_client(lookup: Callable[[str], Optional[str]], backend: str) -> Tuple[Any, str]:
    """Create an OpenAI or Azure OpenAI client plus its default model."""

    try:
        import openai
    except ImportError as exc:  # pragma: no cover - import guard
        raise TranslationProviderConfigurationError(
            "The openai package is required for this provider: `pip install openai`."
        ) from exc

    if backend == "azure_openai":
        values = {name: lookup(name) for name in _AZURE_SETTINGS}
        absent = [name for name, value in values.items() if not value]
        if absent:
            raise TranslationProviderConfigurationError(
                "Azure OpenAI needs these settings: " + ", ".join(absent) + "."
            )
        client = openai.AzureOpenAI(
            api_key=values["AZURE_OPENAI_API_KEY"],
            api_version=values["AZURE_OPENAI_API_VERSION"],
            azure_endpoint=values["AZURE_OPENAI_ENDPOINT"],
        )
        return client, str(values["AZURE_OPENAI_DEPLOYMENT_NAME"])

    api_key = lookup("OPENAI_API_KEY")
    if not api_key:
        raise TranslationProviderConfigurationError(
            "OPENAI_API_KEY is not set; configure it or pick the echo provider."
        )
    return openai.OpenAI(api_key=api_key), OpenAITranslationProvider.DEFAULT_MODEL


class OpenAITranslationProvider(TranslationProvider):
    """Sends one batch per request through the OpenAI Responses API."""

    DEFAULT_MODEL = "gpt-5-mini"

    def __init__(self, *, debug: bool = False, settings: Optional[Any] = None) -> None:
        self.debug = debug
        self.settings = settings
        self.provider_kind = _normalise_backend(self._setting("LLM_PROVIDER"))
        self._client, self._default_model = _open_client(self._setting, self.provider_kind)

    def _setting(self, name: str) -> str | None:
        value = getattr(self.settings, name, None) if self.settings is not None else None
        if value:
            return str(value)
        return os.getenv(name)

    def translate(
        self,
        segments: Sequence[TextSegment],
        *,
        source_language: str | None,
        target_language: str,
        model: str | None = None,
    ) -> Dict[str, str]:
        if not segments:
            return {}

        request = {
            "target_language": target_language,
            "source_language": source_language,
            "entries": {segment.segment_id: segment.text for segment in segments},
        }
        self._log_debug("request", request)
        reply = self._complete(json.dumps(request, ensure_ascii=False), model or self._default_model)
        self._log_debug("reply", reply)
        return self._parse_reply(reply)

    def _complete(self, user_message: str, model: str) -> str:
        """Return the model's raw text reply to ``user_message``."""

        try:
            response = self._client.responses.create(
                model=model,
                instructions=SYSTEM_PROMPT,
                input=user_message,
            )
        except Exception as exc:  # pragma: no cover - network call
            raise TranslationProviderError(f"Request to the translation service failed: {exc}") from exc
        self._log_debug("response", self._dump(response))

        text = getattr(response, "output_text", None)
        if not text:
            raise TranslationProviderError("The translation service sent an empty reply.")
        return str(text)

    @staticmethod
    def _strip_code_fence(text: str) -> str:
        stripped = text.strip()
        fenced = _FENCE.match(stripped)
        return fenced.group("body").strip() if fenced else stripped

    def _parse_reply(self, reply: str) -> Dict[str, str]:
        try:
            payload = json.loads(self._strip_code_fence(reply))
        except json.JSONDecodeError as exc:
            raise TranslationProviderError(f"The translation service sent invalid JSON: {exc}") from exc

        entries = payload.get("entries") if isinstance(payload, dict) else None
        if not isinstance(entries, Mapping):
            raise TranslationProviderError("The reply has no 'entries' object.")
        if not all(isinstance(value, str) for value in entries.values()):
            raise TranslationProviderError("Every translation in the reply must be a string.")
        return {str(key): value for key, value in entries.items()}

    def _log_debug(self, label: str, payload: Any) -> None:
        if not self.debug:
            return
        if not isinstance(payload, str):
            payload = json.dumps(payload, ensure_ascii=False, indent=2, default=str)
        print(f"[tagkeeper][provider-debug] {label}:\n{payload}", file=sys.stderr)

    @staticmethod
    def _dump(response: Any) -> Any:
        dump = getattr(response, "model_dump", None)
        return dump() if callable(dump) else repr(response)


class LegacyOpenAITranslationProvider(OpenAITranslationProvider):
    """Same exchange over Chat Completions, for deployments without Responses."""

    def _complete(self, user_message: str, model: str) -> str:
        try:
            response = self._client.chat.completions.create(
                model=model,
                temperature=0,
                messages=[
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {"role": "user", "content": user_message},
                ],
            )
        except Exception as exc:  # pragma: no cover - network call
            raise TranslationProviderError(f"Request to the translation service failed: {exc}") from exc
        self._log_debug("response", self._dump(response))

        choices = getattr(response, "choices", None) or []
        contents = [getattr(getattr(choice, "message", None), "content", None) for choice in choices]
        text = next((content for content in contents if content), None)
        if not text:
            raise TranslationProviderError("The translation service sent an empty reply.")
        return str(text)


PROVIDERS: Dict[str, Callable[..., TranslationProvider]] = {
    "openai": OpenAITranslationProvider,
    "legacy-openai": LegacyOpenAITranslationProvider,
    "echo": lambda **_: EchoTranslationProvider(),
}

_ALIASES = {
    "gpt": "openai",
    "default": "openai",
    "legacy": "legacy-openai",
    "legacy_openai": "legacy-openai",
    "openai-legacy": "legacy-openai",
    "noop": "echo",
    "mock": "echo",
}


def build_provider(
    name: str | None,
    *,
    debug: bool = False,
    settings: Optional[Any] = None,
) -> TranslationProvider:
    key = (name or "openai").strip().lower()
    key = _ALIASES.get(key, key)
    if key not in PROVIDERS:
        known = ", ".join(sorted(PROVIDERS))
        raise TranslationProviderConfigurationError(
            f"Unknown translation provider '{name}'. Choose one of: {known}."
        )
    return PROVIDERS[key](debug=debug, settings=settings)
