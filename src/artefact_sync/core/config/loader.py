"""
Layered configuration for artefact-sync.

Sources, lowest precedence first:

    built-in defaults
    user file     ~/.config/artefact-sync/config.json (honours XDG_CONFIG_HOME)
    project file  ./.artefact-sync.json
    environment   ARTEFACT_SYNC_* and SUPABASE_* variables

JSON files are merged key by key, so a project file only needs the keys it
changes. The merged result is validated once into an ``AppConfig``.
"""

import json
import logging
import os
from collections.abc import Callable
from pathlib import Path
from typing import Any

from .models import AppConfig

logger = logging.getLogger(__name__)

APP_NAME = "artefact-sync"
PROJECT_CONFIG_NAME = ".artefact-sync.json"

_config_cache: AppConfig | None = None


def get_xdg_config_home() -> Path:
    """Base directory for user config files."""
    configured = os.environ.get("XDG_CONFIG_HOME")
    return Path(configured) if configured else Path.home() / ".config"


def get_user_config_path() -> Path:
    return get_xdg_config_home() / APP_NAME / "config.json"


def get_project_config_path(project_dir: Path | None = None) -> Path:
    """Project config file inside ``project_dir`` (the cwd by default)."""
    return (project_dir or Path.cwd()) / PROJECT_CONFIG_NAME


def deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """
    Return ``base`` updated with ``override``, merging nested sections.

    Neither argument is modified.

    Example:
        >>> deep_merge({"sync": {"prune_stale": True}}, {"sync": {"source_name": "X"}})
        {'sync': {'prune_stale': True, 'source_name': 'X'}}
    """
    merged = dict(base)
    for key, value in override.items():
        current = merged.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            merged[key] = deep_merge(current, value)
        else:
            merged[key] = value
    return merged


def load_json_file(path: Path) -> dict[str, Any] | None:
    """
    Read one config file.

    A missing file is silently skipped. A file that cannot be read or is not
    a JSON object is skipped with a warning so a typo never blocks a sync.
    """
    if not path.exists():
        return None
    try:
        data = json.loads(path.read_text())
    except (json.JSONDecodeError, OSError) as e:
        logger.warning("Failed to parse config at %s: %s", path, e)
        return None
    if not isinstance(data, dict):
        logger.warning("Ignoring config at %s: top level is not an object", path)
        return None
    return data


def _text(raw: str) -> str:
    return raw


def _lower(raw: str) -> str:
    return raw.lower()


def _flag(raw: str) -> bool:
    return raw.strip().lower() not in ("", "0", "false", "no", "off")


def _count(minimum: int) -> Callable[[str], int]:
    def parse(raw: str) -> int:
        number = int(raw)
        if number < minimum:
            raise ValueError(f"must be >= {minimum}")
        return number

    return parse


# variable -> (section, key, parser)
ENV_OVERRIDES: dict[str, tuple[str, str, Callable[[str], Any]]] = {
    "ARTEFACT_SYNC_GITHUB_API_URL": ("github", "api_url", _text),
    "ARTEFACT_SYNC_MAX_CONCURRENCY": ("github", "max_concurrency", _count(1)),
    "ARTEFACT_SYNC_BLOB_RETRIES": ("github", "blob_retries", _count(0)),
    "ARTEFACT_SYNC_DEFAULT_BRANCH": ("sync", "default_branch", _text),
    "ARTEFACT_SYNC_SKIP_UNCHANGED": ("sync", "skip_unchanged", _flag),
    "ARTEFACT_SYNC_STORE": ("store", "backend", _lower),
    "SUPABASE_URL": ("store", "supabase_url", _text),
    "SUPABASE_SERVICE_ROLE_KEY": ("store", "supabase_key", _text),
}


def apply_env_overrides(config_dict: dict[str, Any]) -> dict[str, Any]:
    """
    Layer the variables in ``ENV_OVERRIDES`` on top of ``config_dict``.

    Empty variables are ignored, as are numbers that do not parse or are out
    of range (with a warning).
    """
    overrides: dict[str, dict[str, Any]] = {}
    for name, (section, key, parse) in ENV_OVERRIDES.items():
        raw = os.environ.get(name)
        if not raw:
            continue
        try:
            value = parse(raw)
        except ValueError as e:
            logger.warning("Ignoring %s: %s", name, e)
            continue
        overrides.setdefault(section, {})[key] = value
    return deep_merge(config_dict, overrides)


def get_default_config() -> dict[str, Any]:
    """Built-in defaults, as a plain dict ready for merging."""
    return AppConfig().model_dump(mode="json", exclude_none=True)


def load_config(project_dir: Path | None = None, use_cache: bool = True) -> AppConfig:
    """
    Merge every config source and validate the result.

    Args:
        project_dir: Directory holding .artefact-sync.json (defaults to cwd)
        use_cache: Reuse the config from an earlier call in this process

    Returns:
        Validated AppConfig

    Raises:
        ValidationError: If the merged values are invalid

    Example:
        >>> load_config().sync.default_branch
        'main'
    """
    global _config_cache

    if use_cache and _config_cache is not None:
        return _config_cache

    merged = get_default_config()
    for path in (get_user_config_path(), get_project_config_path(project_dir)):
        layer = load_json_file(path)
        if layer:
            logger.debug("Loaded config layer %s", path)
            merged = deep_merge(merged, layer)

    _config_cache = AppConfig(**apply_env_overrides(merged))
    return _config_cache


def clear_cache() -> None:
    """Forget the cached config (tests, or after editing config files)."""
    global _config_cache
    _config_cache = None
