"""Console color theme.

Colors come from the bundled data/theme.toml, optionally overridden
per color by ~/.config/sfhelper/theme.toml. An invalid override never
breaks the CLI: the defaults are used instead.
"""

import logging
import tomllib
from importlib import resources
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator
from rich.theme import Theme

from sfhelper.core.paths import get_user_theme_path

logger = logging.getLogger(__name__)

_HEX_DIGITS = frozenset("0123456789abcdefABCDEF")


class ThemeColors(BaseModel):
    """Hex colors (#RGB or #RRGGBB) for every console style."""

    model_config = ConfigDict(extra="forbid")

    text: str = "#ffffff"
    muted: str = "#b2bec3"
    header: str = "#69B9A1"
    border: str = "#29526d"
    success: str = "#03b971"
    warning: str = "#f5b332"
    error: str = "#f53263"
    info: str = "#0ec1c8"
    # components being deleted and the lines/files touched for them
    deleted: str = "#f53263"
    neutralized: str = "#faf870"
    file: str = "#0e8ac8"

    @field_validator("*", mode="before")
    @classmethod
    def check_hex(cls, value: object, info: Any) -> str:
        """Reject anything that is not a #RGB or #RRGGBB string."""
        name = info.field_name
        if not isinstance(value, str):
            raise ValueError(f"{name}: color must be a string")
        color = value.strip()
        if not color.startswith("#"):
            raise ValueError(f"{name}: color must start with '#'")
        digits = color[1:]
        if len(digits) not in (3, 6):
            raise ValueError(f"{name}: color must be #RGB or #RRGGBB format")
        if not set(digits) <= _HEX_DIGITS:
            raise ValueError(f"{name}: invalid hex color '{color}'")
        return color

    def to_styles(self) -> dict[str, str]:
        """Map the colors to Rich style definitions."""
        styles = self.model_dump()
        styles["error"] = f"bold {self.error}"
        styles["deleted"] = f"bold {self.deleted}"
        styles["bold_header"] = f"bold {self.header}"
        styles["dim"] = self.muted
        return styles


def get_bundled_theme_path() -> Path:
    """Location of the theme file shipped with the package."""
    return Path(str(resources.files("sfhelper.data").joinpath("theme.toml")))


def _load_toml_colors(path: Path) -> dict[str, str] | None:
    """Read the [colors] table of a theme file.

    Returns:
        Color name to value mapping, or None if the file is missing or unusable.
    """
    try:
        with open(path, "rb") as f:
            data = tomllib.load(f)
    except FileNotFoundError:
        return None
    except (tomllib.TOMLDecodeError, OSError) as e:
        logger.warning("Ignoring theme file %s: %s", path, e)
        return None

    colors = data.get("colors", {})
    if not isinstance(colors, dict):
        logger.warning("Ignoring theme file %s: [colors] is not a table", path)
        return None
    return {key: value for key, value in colors.items() if isinstance(value, str)}


def load_theme() -> ThemeColors:
    """Merge the bundled colors with the user's overrides."""
    colors = _load_toml_colors(get_bundled_theme_path()) or {}
    overrides = _load_toml_colors(get_user_theme_path())
    if overrides:
        colors.update(overrides)

    try:
        return ThemeColors.model_validate(colors)
    except ValidationError as e:
        logger.warning("Invalid theme colors, using defaults: %s", e)
        return ThemeColors()


def get_rich_theme(colors: ThemeColors | None = None) -> Theme:
    """Build a Rich Theme, loading the colors if none are given."""
    return Theme((colors or load_theme()).to_styles())


_cached_theme: Theme | None = None


def get_theme() -> Theme:
    """Return the process-wide Rich theme, loading it on first use."""
    global _cached_theme
    if _cached_theme is None:
        _cached_theme = get_rich_theme()
    return _cached_theme


def reload_theme() -> Theme:
    """Reload the theme files and replace the cached theme."""
    global _cached_theme
    _cached_theme = get_rich_theme()
    return _cached_theme
