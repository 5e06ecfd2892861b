"""YAML configuration and language seeding for dictionary-editor."""

from __future__ import annotations

import logging
import os
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any

import yaml

from dictionary_editor.exceptions import ConfigError
from dictionary_editor.languages import normalize_code

if TYPE_CHECKING:
    from dictionary_editor.editor import DictionaryEditor

logger = logging.getLogger(__name__)

DB_ENV_VAR = "DICTIONARY_EDITOR_DB"
DEFAULT_DATABASE = "dictionary.db"

_LANGUAGE_KEYS = frozenset({
    "code", "name", "script", "transliteration_scheme", "enabled",
})


@dataclass(frozen=True, slots=True)
class LanguageSeed:
    """A language to create when seeding a fresh database."""

    code: str
    name: str
    script: str
    transliteration_scheme: str | None = None
    enabled: bool = True


@dataclass(frozen=True, slots=True)
class EditorConfig:
    database: str = DEFAULT_DATABASE
    languages: tuple[LanguageSeed, ...] = field(default_factory=tuple)


def load_config(
    source: str | Path | Mapping[str, Any] | None = None,
    *,
    environ: Mapping[str, str] | None = None,
) -> EditorConfig:
    """Load editor configuration.

    Args:
        source: Path to a YAML file, a YAML string, an already parsed
            mapping, or None for the defaults.
        environ: Environment to read ``DICTIONARY_EDITOR_DB`` from
            (defaults to ``os.environ``).

    Returns:
        EditorConfig object

    Raises:
        ConfigError: If the file is missing, is not valid YAML, or does
            not have the expected shape.
    """
    if source is None:
        data: Mapping[str, Any] = {}
    elif isinstance(source, Mapping):
        data = source
    elif isinstance(source, Path) or _is_file_path(source):
        data = _load_yaml_file(Path(source))
    else:
        data = _parse_yaml(source, "configuration")

    config = _parse_config(data)

    env = os.environ if environ is None else environ
    override = env.get(DB_ENV_VAR, "").strip()
    if override:
        logger.debug("Database path overridden by %s", DB_ENV_VAR)
        config = EditorConfig(database=override, languages=config.languages)
    return config


def seed_languages(
    editor: DictionaryEditor,
    languages: Iterable[LanguageSeed],
    actor: str | None = None,
) -> list[str]:
    """Create each language that does not exist yet.

    Existing languages are left untouched, so seeding twice is harmless.
    Returns the codes that were created.
    """
    existing = {lang.code for lang in editor.list_languages()}
    created: list[str] = []
    with editor.batch():
        for seed in languages:
            code = normalize_code(seed.code)
            if code in existing:
                continue
            editor.create_language(
                seed.code,
                seed.name,
                seed.script,
                transliteration_scheme=seed.transliteration_scheme,
                enabled=seed.enabled,
                actor=actor,
            )
            existing.add(code)
            created.append(code)
            logger.debug("Seeded language %s", code)
    return created


def _is_file_path(s: str) -> bool:
    """Check if a string looks like a file path."""
    if "\n" in s:
        return False
    if "/" in s or "\\" in s:
        return True
    return s.endswith((".yaml", ".yml"))


def _load_yaml_file(path: Path) -> Mapping[str, Any]:
    if not path.exists():
        raise ConfigError(f"Configuration file not found: {path}")
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Cannot read configuration file {path}: {e}") from e
    return _parse_yaml(text, str(path))


def _parse_yaml(text: str, origin: str) -> Mapping[str, Any]:
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as e:
        mark = getattr(e, "problem_mark", None)
        where = f" (line {mark.line + 1})" if mark is not None else ""
        raise ConfigError(f"Invalid YAML in {origin}{where}: {e}") from e
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"YAML root of {origin} must be a mapping")
    return data


def _parse_config(data: Mapping[str, Any]) -> EditorConfig:
    database = data.get("database", DEFAULT_DATABASE)
    if not isinstance(database, str) or not database.strip():
        raise ConfigError("'database' must be a non-empty string")

    raw_languages = data.get("languages") or []
    if not isinstance(raw_languages, list):
        raise ConfigError("'languages' must be a list")

    return EditorConfig(
        database=database.strip(),
        languages=tuple(
            _parse_language(item, i) for i, item in enumerate(raw_languages)
        ),
    )


def _parse_language(item: Any, index: int) -> LanguageSeed:
    where = f"languages[{index}]"
    if not isinstance(item, dict):
        raise ConfigError(f"{where} must be a mapping")

    unknown = set(item) - _LANGUAGE_KEYS
    if unknown:
        raise ConfigError(f"{where} has unknown keys: {', '.join(sorted(unknown))}")

    values: dict[str, Any] = {}
    for key in ("code", "name", "script"):
        value = item.get(key)
        if not isinstance(value, str) or not value.strip():
            raise ConfigError(f"{where}.{key} is required")
        values[key] = value.strip()

    scheme = item.get("transliteration_scheme")
    if scheme is not None and not isinstance(scheme, str):
        raise ConfigError(f"{where}.transliteration_scheme must be a string")

    enabled = item.get("enabled", True)
    if not isinstance(enabled, bool):
        raise ConfigError(f"{where}.enabled must be true or false")

    return LanguageSeed(
        transliteration_scheme=scheme,
        enabled=enabled,
        **values,
    )
