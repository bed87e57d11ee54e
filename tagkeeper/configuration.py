"""Prepper-backed settings for the ``translate`` command.

Sources are layered with later ones winning: YAML files that Prepper
discovers for the ``Tagkeeper`` app name, a ``.env`` file in the working
directory, then the process environment. Auditing, repairing and protecting
need no settings at all, so nothing here is loaded unless a networked
provider is about to be used.
"""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Iterable, List, Literal, Mapping, Sequence

from dotenv import dotenv_values
from prepper import (
    ConfigNotFound,
    Field,
    IoError,
    SchemaError,
    SchemaModel,
    ValidationError,
    model_validator,
)
from prepper.config import ConfigInstance
from prepper.loaders import _parse_file, _path_to_source, discover_file_paths
from prepper.merge import merge_layer
from prepper.provenance import ProvenanceRecorder

from .errors import TranslationProviderConfigurationError

APP_NAME = "Tagkeeper"

_AZURE_FIELDS = (
    "AZURE_OPENAI_API_KEY",
    "AZURE_OPENAI_ENDPOINT",
    "AZURE_OPENAI_API_VERSION",
    "AZURE_OPENAI_DEPLOYMENT_NAME",
)


class TagkeeperConfig(SchemaModel):
    LLM_PROVIDER: Literal["azure_openai", "openai"] = Field(
        default="openai",
        description="Backend behind the openai provider: OpenAI or Azure OpenAI.",
    )
    OPENAI_API_KEY: str | None = Field(default=None, secret=True)
    AZURE_OPENAI_API_KEY: str | None = Field(default=None, secret=True)
    AZURE_OPENAI_ENDPOINT: str | None = Field(default=None)
    AZURE_OPENAI_API_VERSION: str | None = Field(default=None)
    AZURE_OPENAI_DEPLOYMENT_NAME: str | None = Field(default=None)
    TAGKEEPER_MODEL: str | None = Field(
        default=None,
        description="Model used when the command line does not name one.",
    )
    TAGKEEPER_BATCH_BUDGET: int = Field(
        default=2000,
        description="Approximate maximum characters of protected text per request.",
    )
    TAGKEEPER_MAX_RETRIES: int = Field(
        default=3,
        description="Automatic retries of a failed batch before the error policy decides.",
    )
    TAGKEEPER_PROVIDER_DEBUG: bool = Field(default=False)

    @model_validator(mode="before")
    def _normalise_provider(data: Any) -> Any:
        if isinstance(data, dict) and isinstance(data.get("LLM_PROVIDER"), str):
            kind = data["LLM_PROVIDER"].strip().lower().replace("-", "_")
            data["LLM_PROVIDER"] = (
                "azure_openai" if kind in {"azure_openai", "azure_open_ai", "azureopenai"} else "openai"
            )
        return data


def _bullets(title: str, problems: Iterable[str]) -> str:
    return title + "\n" + "\n".join(f"- {problem}" for problem in problems)


@lru_cache(maxsize=1)
def _load_config_instance(app_dir: Path | None = None) -> ConfigInstance:
    base_dir = app_dir or Path.cwd()
    provenance = ProvenanceRecorder()
    try:
        layers = _read_yaml_layers(base_dir, provenance)
        _merge_env_layers(layers, base_dir, provenance)
        if not layers:
            raise ConfigNotFound("No configuration sources were found.")
        model = TagkeeperConfig.validate(layers, provenance=provenance)
    except ConfigNotFound as exc:
        raise TranslationProviderConfigurationError(
            "No Tagkeeper settings found. Put them in a Tagkeeper YAML file, a "
            ".env file in the working directory, or the environment, or use "
            "the echo provider for an offline run."
        ) from exc
    except IoError as exc:
        raise TranslationProviderConfigurationError(f"Could not read settings: {exc}") from exc
    except SchemaError as exc:
        raise TranslationProviderConfigurationError(f"Settings schema error: {exc}") from exc
    except ValidationError as exc:
        raise TranslationProviderConfigurationError(
            _format_validation_errors(exc.to_dict())
        ) from exc

    _check_provider_settings(model)
    return ConfigInstance(
        model=model,
        provenance=provenance,
        env_prefix=None,
        schema_cls=TagkeeperConfig,
    )


def _read_yaml_layers(app_dir: Path, provenance: ProvenanceRecorder) -> dict[str, Any]:
    merged: dict[str, Any] = {}
    for path, label in discover_file_paths(APP_NAME, "yaml", app_dir=app_dir, extra_paths=None):
        parsed = _parse_file(path, "yaml")
        if not isinstance(parsed, Mapping):
            raise IoError(f"{path} must hold a mapping of setting names to values.")
        merge_layer(
            merged,
            parsed,
            provenance=provenance,
            source=_path_to_source(label, "yaml", path),
            layer="file",
        )
    return merged


def _merge_env_layers(
    target: dict[str, Any],
    app_dir: Path,
    provenance: ProvenanceRecorder,
) -> None:
    """Merge ``.env`` values, then process environment variables, into ``target``.

    Only names the schema knows are taken, so unrelated variables never
    trip validation.
    """

    known = set(TagkeeperConfig.__field_infos__.keys())
    layers: List[tuple[str, Mapping[str, Any]]] = []
    dotenv_path = app_dir / ".env"
    if dotenv_path.exists():
        layers.append((".env", dotenv_values(dotenv_path)))
    layers.append(("process", os.environ))

    for origin, values in layers:
        for name in sorted(known.intersection(values)):
            if values[name] is None:
                continue
            merge_layer(
                target,
                {name: values[name]},
                provenance=provenance,
                source=f"env:{origin}:{name}",
                layer="env",
            )


def _check_provider_settings(settings: TagkeeperConfig) -> None:
    problems: List[str] = []
    if settings.TAGKEEPER_BATCH_BUDGET < 1:
        problems.append("TAGKEEPER_BATCH_BUDGET must be a positive number of characters.")
    if settings.TAGKEEPER_MAX_RETRIES < 0:
        problems.append("TAGKEEPER_MAX_RETRIES cannot be negative.")

    if settings.LLM_PROVIDER == "azure_openai":
        absent = [name for name in _AZURE_FIELDS if not getattr(settings, name)]
        if absent:
            problems.append(f"LLM_PROVIDER 'azure_openai' also needs {', '.join(absent)}.")
    elif not settings.OPENAI_API_KEY:
        problems.append("LLM_PROVIDER 'openai' needs OPENAI_API_KEY.")

    if problems:
        raise TranslationProviderConfigurationError(_bullets("Invalid Tagkeeper settings:", problems))


def _format_validation_errors(entries: Sequence[dict[str, Any]]) -> str:
    problems: List[str] = []
    for entry in entries:
        path = entry.get("path") or []
        if isinstance(path, (list, tuple)):
            location = ".".join(str(part) for part in path if part not in {None, ""})
        else:
            location = str(path)
        text = str(entry.get("message") or entry.get("msg") or "Invalid value")
        if location:
            text = f"{location}: {text}"
        if entry.get("source"):
            text += f" (source: {entry['source']})"
        problems.append(text)
    return _bullets("Invalid Tagkeeper settings:", problems)


def get_config(app_dir: Path | None = None) -> ConfigInstance:
    return _load_config_instance(app_dir=app_dir)


def get_settings(app_dir: Path | None = None) -> TagkeeperConfig:
    """Load, validate and cache the settings; raise on anything missing."""

    return get_config(app_dir=app_dir).model()
