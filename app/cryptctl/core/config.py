"""cryptctl configuration.

Settings live in ~/.config/cryptctl/config.toml. The file is optional;
without it every field takes its default.
"""

import tomllib
from pathlib import Path
from typing import Annotated, Literal

import tomli_w
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from cryptctl.core.errors import ConfigError
from cryptctl.core.paths import ensure_config_dir, get_config_path

FilesystemChoice = Literal["ext4", "xfs", "btrfs"]


class CryptctlConfig(BaseModel):
    """User configuration for cryptctl.

    Attributes:
        default_filesystem: Filesystem created by ``create`` when none is given.
        luks_type: LUKS on-disk format for new containers.
        mount_options: Extra ``mount -o`` options applied on every mount.
        command_timeout: Per-command timeout in seconds (None = no limit).
        mount_table: Mount table parsed during discovery.
        keyfile_permission_warning: Warn about group/other readable keyfiles.
    """

    model_config = ConfigDict(extra="forbid")

    default_filesystem: Annotated[
        FilesystemChoice,
        Field(description="Filesystem for new containers"),
    ] = "ext4"
    luks_type: Annotated[
        Literal["luks1", "luks2"],
        Field(description="LUKS header format"),
    ] = "luks2"
    mount_options: Annotated[
        list[str],
        Field(default_factory=list, description="Extra mount options (e.g. ['noatime'])"),
    ]
    command_timeout: Annotated[
        float | None,
        Field(gt=0, description="Timeout for external commands in seconds"),
    ] = None
    mount_table: Annotated[
        Path,
        Field(description="Mount table parsed during discovery"),
    ] = Path("/proc/mounts")
    keyfile_permission_warning: Annotated[
        bool,
        Field(description="Warn about keyfiles readable by group or others"),
    ] = True


def load_config(path: Path | None = None) -> CryptctlConfig:
    """Load configuration from a TOML file.

    Args:
        path: Path to the config file. If None, uses the default config path.

    Returns:
        Validated CryptctlConfig (defaults when the file does not exist).

    Raises:
        ConfigError: If the file cannot be read, parsed or validated.
    """
    config_path = path or get_config_path()

    if not config_path.exists():
        return CryptctlConfig()

    try:
        with open(config_path, "rb") as f:
            data = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(f"Invalid TOML syntax in {config_path}: {e}") from e
    except OSError as e:
        raise ConfigError(f"Failed to read config {config_path}: {e}") from e

    try:
        return CryptctlConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid config {config_path}: {e}") from e


def save_config(config: CryptctlConfig, path: Path | None = None) -> Path:
    """Write configuration to a TOML file.

    Args:
        config: Configuration to save.
        path: Target path. If None, uses the default config path.

    Returns:
        The path written.

    Raises:
        ConfigError: If the file cannot be written.
    """
    if path is None:
        try:
            ensure_config_dir()
        except RuntimeError as e:
            raise ConfigError(str(e)) from e
        path = get_config_path()

    data = config.model_dump(mode="json", exclude_none=True)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "wb") as f:
            tomli_w.dump(data, f)
    except OSError as e:
        raise ConfigError(f"Failed to write config {path}: {e}") from e
    return path
