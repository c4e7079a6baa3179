"""Helper configuration and settings.

This module provides the configuration model and I/O functions for
sfhelper. Every value can be overridden on the command line; the file
only supplies defaults.

Configuration is stored in ~/.config/sfhelper/config.toml
"""

import logging
import os
import tomllib
from pathlib import Path
from tempfile import NamedTemporaryFile
from typing import Annotated

import tomli_w
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from sfhelper.core.paths import ensure_config_dir, get_config_path
from sfhelper.core.snapshot import DEFAULT_STASH_MESSAGE
from sfhelper.models.deploy import DeployMode, TestLevel

logger = logging.getLogger(__name__)


class HelperConfig(BaseModel):
    """Configuration for sfhelper.

    Attributes:
        target_org: Default target org alias. None requires --target-org.
        base_branch: Base revision for git-diff mode.
        mode: Default deploy mode.
        source_dir: Source directory scanned for dependencies.
        test_level: Test execution policy for deployments.
        stash_message: Message of the temporary stash entry.
        delta_timeout_seconds: Limit for each delta CLI call (None = no limit).
        deploy_timeout_seconds: Limit for the deployment (None = no limit).
    """

    model_config = ConfigDict(extra="forbid")

    target_org: Annotated[
        str | None,
        Field(description="Default target org alias"),
    ] = None
    base_branch: Annotated[
        str,
        Field(min_length=1, description="Base revision for git-diff mode"),
    ] = "main"
    mode: Annotated[
        DeployMode,
        Field(description="Deploy mode (git-diff or org-snapshot)"),
    ] = DeployMode.GIT_DIFF
    source_dir: Annotated[
        str,
        Field(min_length=1, description="Source directory scanned for dependencies"),
    ] = "force-app"
    test_level: Annotated[
        TestLevel,
        Field(description="Apex test level for deployments"),
    ] = TestLevel.RUN_LOCAL_TESTS
    stash_message: Annotated[
        str,
        Field(min_length=1, description="Message of the temporary stash entry"),
    ] = DEFAULT_STASH_MESSAGE
    delta_timeout_seconds: Annotated[
        int | None,
        Field(ge=60, le=7200, description="Timeout per delta CLI call (60-7200)"),
    ] = None
    deploy_timeout_seconds: Annotated[
        int | None,
        Field(ge=60, le=7200, description="Timeout for the deployment (60-7200)"),
    ] = None


class ConfigError(Exception):
    """Base exception for configuration errors."""


class ConfigParseError(ConfigError):
    """Raised when the config file cannot be parsed."""


def load_config(path: Path | None = None) -> HelperConfig:
    """Load configuration from a TOML file.

    A missing file is not an error: defaults are returned.

    Args:
        path: Path to the config file. If None, uses default config path.

    Returns:
        Validated HelperConfig object.

    Raises:
        ConfigParseError: If the TOML syntax is invalid.
        ConfigError: If the file cannot be read or the content doesn't match the schema.
    """
    config_path = path or get_config_path()

    if not config_path.exists():
        logger.debug("No config file at %s, using defaults", config_path)
        return HelperConfig()

    try:
        with open(config_path, "rb") as f:
            data = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ConfigParseError(f"Invalid TOML syntax in {config_path}: {e}") from e
    except OSError as e:
        raise ConfigError(f"Failed to read config: {e}") from e

    try:
        return HelperConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid config content in {config_path}: {e}") from e


def save_config(config: HelperConfig, path: Path | None = None) -> Path:
    """Save configuration to a TOML file.

    The file is written atomically by first writing to a temporary file
    and then using os.replace() for atomic rename.

    Args:
        config: The HelperConfig object to save.
        path: Path to save the config. If None, uses default config path.

    Returns:
        Path where the config was saved.

    Raises:
        ConfigError: If the file cannot be written.
    """
    if path is None:
        try:
            ensure_config_dir()
        except RuntimeError as e:
            raise ConfigError(str(e)) from e
        config_path = get_config_path()
    else:
        config_path = path
        config_path.parent.mkdir(parents=True, exist_ok=True)

    data = config_to_dict(config)

    tmp_path: Path | None = None
    try:
        with NamedTemporaryFile(
            mode="wb",
            dir=config_path.parent,
            delete=False,
            suffix=".tmp",
        ) as f:
            tmp_path = Path(f.name)
            tomli_w.dump(data, f)
        os.replace(str(tmp_path), str(config_path))
    except OSError as e:
        if tmp_path is not None and tmp_path.exists():
            tmp_path.unlink()
        raise ConfigError(f"Failed to write config: {e}") from e

    return config_path


def config_to_dict(config: HelperConfig) -> dict[str, object]:
    """Convert HelperConfig to a dictionary for TOML serialization.

    TOML has no null, so unset optional values are left out.

    Args:
        config: The HelperConfig to convert.

    Returns:
        Dictionary ready for TOML serialization.
    """
    return config.model_dump(mode="json", exclude_none=True)
