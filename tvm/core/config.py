"""
Configuration and directory layout for tvm.

A single ``Settings`` instance is built once per invocation and passed to
every component. Values come from built-in defaults, an optional YAML file
and ``TVM_*`` environment variables, in that order.

Directory Structure:
    Data directory (~/.local/share/tvm/):
        - versions/<version>/<binary> : Installed releases (the install root)
        - staging/                    : Installs in progress, renamed into versions/

    Cache directory (~/.cache/tvm/):
        - downloads/ : Transient release archives, removed after use
        - locks/     : Per-version install locks
"""

import logging
import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml

from tvm.core.exceptions import ConfigError
from tvm.core.platform import detect_platform

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://releases.hashicorp.com/terraform/"
DEFAULT_BINARY_NAME = "terraform"
CONFIG_FILE_NAME = "config.yaml"

# Environment variable -> (field name, converter)
ENV_OVERRIDES = {
    "TVM_BASE_URL": ("base_url", str),
    "TVM_BINARY_NAME": ("binary_name", str),
    "TVM_DATA_DIR": ("data_dir", Path),
    "TVM_CACHE_DIR": ("cache_dir", Path),
    "TVM_MAX_WORKERS": ("max_workers", int),
    "TVM_TIMEOUT": ("timeout", float),
}


def _xdg_dir(env: Mapping[str, str], variable: str, fallback: str) -> Path:
    value = env.get(variable)
    if value:
        return Path(value)
    return Path.home() / fallback


def default_data_dir(env: Mapping[str, str] = os.environ) -> Path:
    """
    Get the default data directory.

    Returns:
        $XDG_DATA_HOME/tvm, or ~/.local/share/tvm when unset
    """
    return _xdg_dir(env, "XDG_DATA_HOME", ".local/share") / "tvm"


def default_cache_dir(env: Mapping[str, str] = os.environ) -> Path:
    """
    Get the default cache directory.

    Returns:
        $XDG_CACHE_HOME/tvm, or ~/.cache/tvm when unset
    """
    return _xdg_dir(env, "XDG_CACHE_HOME", ".cache") / "tvm"


def default_config_file(env: Mapping[str, str] = os.environ) -> Path:
    """Get the default user configuration file path."""
    return _xdg_dir(env, "XDG_CONFIG_HOME", ".config") / "tvm" / CONFIG_FILE_NAME


@dataclass(frozen=True)
class Settings:
    """
    Explicit configuration shared by all components.

    Attributes:
        base_url: Catalog root (always ends with '/')
        binary_name: Name of the delegated tool's executable
        data_dir: Directory holding the install root
        cache_dir: Directory holding transient downloads and locks
        os_name: Catalog OS name to select downloads for
        arch: Catalog architecture name to select downloads for
        max_workers: Size of the catalog fetch pool
        timeout: Per-request HTTP timeout in seconds
        max_retries: Archive download attempts
        verify_signature: GPG-verify checksum manifests
        gpg_keyring: Optional keyring passed to gpg
    """

    base_url: str = DEFAULT_BASE_URL
    binary_name: str = DEFAULT_BINARY_NAME
    data_dir: Path = field(default_factory=default_data_dir)
    cache_dir: Path = field(default_factory=default_cache_dir)
    os_name: str = field(default_factory=lambda: detect_platform().os)
    arch: str = field(default_factory=lambda: detect_platform().arch)
    max_workers: int = 8
    timeout: float = 30
    max_retries: int = 3
    verify_signature: bool = False
    gpg_keyring: Optional[Path] = None

    def __post_init__(self):
        if not self.base_url.endswith("/"):
            object.__setattr__(self, "base_url", self.base_url + "/")
        if self.max_workers < 1:
            raise ConfigError(f"max_workers must be at least 1, got {self.max_workers}")
        if self.max_retries < 1:
            raise ConfigError(f"max_retries must be at least 1, got {self.max_retries}")

    @property
    def versions_dir(self) -> Path:
        """Install root: one subdirectory per installed version."""
        return self.data_dir / "versions"

    @property
    def staging_dir(self) -> Path:
        """Staging area on the same filesystem as the install root."""
        return self.data_dir / "staging"

    @property
    def downloads_dir(self) -> Path:
        return self.cache_dir / "downloads"

    @property
    def lock_dir(self) -> Path:
        return self.cache_dir / "locks"


def load_yaml_config(config_file: Path, required: bool = False) -> Dict[str, Any]:
    """
    Load and parse a YAML configuration file.

    Args:
        config_file: Path to YAML configuration file
        required: If True, raise error if file doesn't exist

    Returns:
        Configuration dictionary (empty dict if file doesn't exist and not required)

    Raises:
        ConfigError: If the file is required but missing, or is not valid YAML
    """
    if not config_file.exists():
        if required:
            raise ConfigError(f"Configuration file not found: {config_file}")
        logger.debug(f"Config file not found (optional): {config_file}")
        return {}

    logger.debug(f"Loading configuration from {config_file}")

    try:
        with open(config_file, "r", encoding="utf-8") as f:
            config = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {config_file}: {e}") from e

    if config is None:
        return {}
    if not isinstance(config, dict):
        raise ConfigError(f"Expected a mapping in {config_file}")
    return config


def _coerce(name: str, value: Any) -> Any:
    path_fields = {"data_dir", "cache_dir", "gpg_keyring"}
    if name in path_fields and value is not None:
        return Path(os.path.expanduser(str(value)))
    return value


def load_settings(
    config_file: Optional[Path] = None,
    env: Mapping[str, str] = os.environ,
) -> Settings:
    """
    Build settings from defaults, a YAML file and the environment.

    Args:
        config_file: Explicit configuration file (must exist). If None, the
            user configuration file is read when present.
        env: Environment mapping used for XDG paths and TVM_* overrides

    Returns:
        Settings instance

    Raises:
        ConfigError: On unreadable files, unknown keys or bad values
    """
    if config_file is not None:
        raw = load_yaml_config(Path(config_file), required=True)
    else:
        raw = load_yaml_config(default_config_file(env))

    known = {f.name for f in fields(Settings)}
    unknown = sorted(set(raw) - known)
    if unknown:
        raise ConfigError(f"Unknown configuration keys: {', '.join(unknown)}")

    values = {name: _coerce(name, value) for name, value in raw.items()}
    values.setdefault("data_dir", default_data_dir(env))
    values.setdefault("cache_dir", default_cache_dir(env))

    for variable, (name, converter) in ENV_OVERRIDES.items():
        if variable in env:
            try:
                values[name] = converter(env[variable])
            except ValueError as e:
                raise ConfigError(f"Invalid value for {variable}: {env[variable]}") from e

    try:
        settings = Settings(**values)
    except TypeError as e:
        raise ConfigError(f"Invalid configuration: {e}") from e
    except RuntimeError as e:
        # Platform detection failed; os_name and arch can be set explicitly
        raise ConfigError(f"{e}. Set os_name and arch in the configuration file") from e

    logger.debug(f"Loaded settings: {settings}")
    return settings


def ensure_directories(settings: Settings) -> Settings:
    """
    Create every directory tvm writes to.

    Args:
        settings: Settings naming the directories

    Returns:
        The same settings, for chaining

    Raises:
        ConfigError: If a directory cannot be created
    """
    for path in (
        settings.data_dir,
        settings.versions_dir,
        settings.staging_dir,
        settings.cache_dir,
        settings.downloads_dir,
        settings.lock_dir,
    ):
        try:
            path.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise ConfigError(f"Could not create directory {path}: {e}") from e

    return settings


__all__ = [
    "Settings",
    "load_settings",
    "load_yaml_config",
    "ensure_directories",
    "default_data_dir",
    "default_cache_dir",
    "default_config_file",
]
