"""Where sfhelper keeps its files.

Locations follow the XDG base directory conventions:

- ``$XDG_CONFIG_HOME/sfhelper`` (default ``~/.config/sfhelper``) holds
  config.toml and an optional theme.toml.
- ``$XDG_CACHE_HOME/sfhelper`` (default ``~/.cache/sfhelper``) holds the
  delta packages of runs started with ``--keep-work-dir``.
"""

import os
from pathlib import Path

APP_NAME = "sfhelper"


def _xdg_base(env_var: str, fallback: str) -> Path:
    # An empty variable counts as unset.
    value = os.environ.get(env_var)
    root = Path(value) if value else Path.home() / fallback
    return root / APP_NAME


def get_config_dir() -> Path:
    """Directory holding config.toml and theme.toml."""
    return _xdg_base("XDG_CONFIG_HOME", ".config")


def get_cache_dir() -> Path:
    """Directory holding kept work directories."""
    return _xdg_base("XDG_CACHE_HOME", ".cache")


def get_config_path() -> Path:
    """Path of the user's config.toml."""
    return get_config_dir() / "config.toml"


def get_user_theme_path() -> Path:
    """Path of the user's color overrides."""
    return get_config_dir() / "theme.toml"


def _ensure_dir(path: Path, purpose: str) -> Path:
    """Create ``path`` and its parents.

    Raises:
        RuntimeError: The directory could not be created. The message
            names ``purpose`` so the CLI can show it as-is.
    """
    try:
        path.mkdir(parents=True, exist_ok=True)
    except PermissionError as e:
        raise RuntimeError(f"Cannot create {purpose} directory {path}: Permission denied") from e
    except OSError as e:
        raise RuntimeError(f"Cannot create {purpose} directory {path}: {e}") from e
    return path


def ensure_config_dir() -> Path:
    """Create the config directory if needed and return it."""
    return _ensure_dir(get_config_dir(), "config")


def ensure_work_dir(name: str) -> Path:
    """Create ``<cache>/runs/<name>`` for a kept delta package.

    Args:
        name: Run identifier, usually a UTC timestamp.

    Raises:
        RuntimeError: The directory could not be created.
    """
    return _ensure_dir(get_cache_dir() / "runs" / name, "work")
