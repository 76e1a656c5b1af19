"""
Layered .env loading.

Store credentials (SUPABASE_URL, SUPABASE_SERVICE_ROLE_KEY) usually live in
.env files rather than in the JSON config. Precedence, highest first:

    exported shell variables > project .env.local > project .env > user .env

Values are only ever written into ``os.environ``; nothing here is logged.
"""

from __future__ import annotations

import os
from collections.abc import Iterable
from pathlib import Path

from dotenv import dotenv_values

from .loader import APP_NAME, get_xdg_config_home


def user_env_path() -> Path:
    """~/.config/artefact-sync/.env (or XDG equivalent)."""
    return get_xdg_config_home() / APP_NAME / ".env"


def default_project_env_paths(project_dir: Path) -> list[Path]:
    """Project files in increasing precedence."""
    return [project_dir / ".env", project_dir / ".env.local"]


def read_env_file(path: Path) -> dict[str, str]:
    """Variables defined in ``path``; keys without a value are skipped."""
    if not path.is_file():
        return {}
    return {key: value for key, value in dotenv_values(path).items() if value is not None}


def load_layered_env(
    *,
    project_dir: Path | None = None,
    user_env_paths: Iterable[Path] | None = None,
    project_env_paths: Iterable[Path] | None = None,
) -> set[str]:
    """
    Export variables from the user and project .env files.

    Later files override earlier ones; none of them overrides a variable that
    was already set before this call.

    Args:
        project_dir: Directory holding the project .env files (defaults to cwd)
        user_env_paths: User files to read instead of the XDG default
        project_env_paths: Project files to read instead of the defaults

    Returns:
        Names of the variables this call set
    """
    if user_env_paths is None:
        user_env_paths = [user_env_path()]
    if project_env_paths is None:
        project_env_paths = default_project_env_paths(project_dir or Path.cwd())

    layered: dict[str, str] = {}
    for path in [*user_env_paths, *project_env_paths]:
        layered.update(read_env_file(Path(path)))

    exported = {key: value for key, value in layered.items() if key not in os.environ}
    os.environ.update(exported)
    return set(exported)
