"""
Layered configuration loading.

Later layers win:
1. Defaults declared on the Settings models
2. YAML configuration file
3. Flat environment variables understood by the container image
   (START_URL, MAX_PAGES, WAIT_AFTER_CLICK_MS, OUTPUT_PATH, HEADLESS,
   MAX_CONCURRENCY, SAME_DOMAIN_ONLY)
4. Prefixed environment variables, COOKIE_HARVESTER__{SECTION}__{KEY}
   e.g. COOKIE_HARVESTER__CRAWLER__MAX_PAGES=50
5. Explicit overrides passed to apply_overrides() (the CLI options)
"""

import os
from pathlib import Path
from typing import Any, Mapping

import yaml
from pydantic import ValidationError

from cookie_harvester.config.settings import Settings
from cookie_harvester.core.exceptions import ConfigurationError

ENV_PREFIX = "COOKIE_HARVESTER"

# Flat variable name -> (section, key)
LEGACY_ENV_VARS: dict[str, tuple[str, str]] = {
    "START_URL": ("crawler", "start_url"),
    "MAX_PAGES": ("crawler", "max_pages"),
    "WAIT_AFTER_CLICK_MS": ("crawler", "wait_after_click_ms"),
    "MAX_CONCURRENCY": ("crawler", "max_concurrency"),
    "SAME_DOMAIN_ONLY": ("crawler", "same_domain_only"),
    "HEADLESS": ("browser", "headless"),
    "OUTPUT_PATH": ("output", "path"),
}

# Keys taken verbatim from the environment, never coerced
RAW_STRING_KEYS = frozenset({"start_url", "path", "file_path", "user_agent"})

_TRUE = ("true", "yes", "on")
_FALSE = ("false", "no", "off")
_NULL = ("none", "null", "")

CONFIG_SEARCH_PATHS = (
    Path("config.yaml"),
    Path("config") / "config.yaml",
)


def _deep_merge(base: dict[str, Any], override: Mapping[str, Any]) -> dict[str, Any]:
    """Merge override into a copy of base, recursing into nested mappings."""
    merged = dict(base)
    for key, value in override.items():
        current = merged.get(key)
        if isinstance(current, dict) and isinstance(value, Mapping):
            merged[key] = _deep_merge(current, value)
        else:
            merged[key] = value
    return merged


def _parse_env_value(value: str) -> Any:
    """
    Coerce an environment string to int, float, bool or None.

    Numbers are tried before booleans so that MAX_PAGES=1 stays an
    integer; pydantic still accepts 0/1 for boolean fields. Anything
    else is returned unchanged.
    """
    text = value.strip()

    for number_type in (int, float):
        try:
            return number_type(text)
        except ValueError:
            continue

    lowered = text.lower()
    if lowered in _TRUE:
        return True
    if lowered in _FALSE:
        return False
    if lowered in _NULL:
        return None
    return value


def _coerce(key: str, value: str) -> Any:
    return value if key in RAW_STRING_KEYS else _parse_env_value(value)


def _set_nested(target: dict[str, Any], path: list[str], value: Any) -> None:
    for part in path[:-1]:
        target = target.setdefault(part, {})
    target[path[-1]] = value


def _env_layer(environ: Mapping[str, str], prefix: str) -> dict[str, Any]:
    """
    Collect overrides from the environment.

    Flat container variables are applied first so that a prefixed
    variable for the same setting replaces them. A blank flat variable
    counts as unset and leaves the lower layers in place.
    """
    layer: dict[str, Any] = {}

    for name, (section, key) in LEGACY_ENV_VARS.items():
        value = environ.get(name, "")
        if value.strip():
            _set_nested(layer, [section, key], _coerce(key, value))

    marker = f"{prefix}__"
    for name, value in environ.items():
        if not name.startswith(marker):
            continue
        path = name[len(marker):].lower().split("__")
        # A bare COOKIE_HARVESTER__SECTION names no setting
        if len(path) < 2 or not all(path):
            continue
        _set_nested(layer, path, _coerce(path[-1], value))

    return layer


def _load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Read a YAML mapping.

    Raises:
        ConfigurationError: The file is missing, not valid YAML, or its
            top level is not a mapping
    """
    if not path.is_file():
        raise ConfigurationError(
            f"Configuration file not found: {path}", details={"path": str(path)})

    try:
        content = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as e:
        raise ConfigurationError(
            f"Invalid YAML in configuration file: {e}", details={"path": str(path)}) from e

    if content is None:
        return {}
    if not isinstance(content, dict):
        raise ConfigurationError(
            f"Configuration file must contain a mapping, got: {type(content).__name__}",
            details={"path": str(path)},
        )
    return content


def _validate(data: dict[str, Any]) -> Settings:
    try:
        return Settings.model_validate(data)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid configuration: {e}") from e


def load_config(
    config_path: Path | str | None = None,
    env_prefix: str = ENV_PREFIX,
) -> Settings:
    """
    Build Settings from defaults, an optional YAML file and the environment.

    Args:
        config_path: YAML file to read; None skips the file layer
        env_prefix: Prefix of the nested environment variables

    Returns:
        Validated Settings instance

    Raises:
        ConfigurationError: If the file is missing or unreadable, or a
            merged value fails validation
    """
    data: dict[str, Any] = {}
    if config_path is not None:
        data = _load_yaml_file(Path(config_path))

    return _validate(_deep_merge(data, _env_layer(os.environ, env_prefix)))


def apply_overrides(settings: Settings, overrides: Mapping[str, Mapping[str, Any]]) -> Settings:
    """
    Return a new Settings with nested overrides applied and re-validated.

    None values are dropped, so CLI options the user did not pass keep
    the loaded value.

    Example:
        >>> apply_overrides(settings, {"crawler": {"max_pages": 5, "start_url": None}})
    """
    cleaned: dict[str, Any] = {}
    for section, values in overrides.items():
        kept = {k: v for k, v in values.items() if v is not None}
        if kept:
            cleaned[section] = kept
    if not cleaned:
        return settings

    return _validate(_deep_merge(settings.model_dump(), cleaned))


def get_default_config_path() -> Path | None:
    """
    Locate a config.yaml to use when none was given explicitly.

    Looks in the working directory, then ./config/, then
    ~/.cookie_harvester/. Returns None if none exists.
    """
    candidates = [Path.cwd() / p for p in CONFIG_SEARCH_PATHS]
    candidates.append(Path.home() / ".cookie_harvester" / "config.yaml")

    for candidate in candidates:
        if candidate.is_file():
            return candidate
    return None
