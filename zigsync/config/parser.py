"""YAML configuration parser for zigsync.

Settings are layered: built-in defaults, then an optional ``zigsync.yaml``
file, then ``ZIGSYNC_*`` environment variables. Command-line flags are applied
on top by the CLI.
"""

import logging
import os
import sys
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml

from zigsync.core.exceptions import ConfigError

logger = logging.getLogger(__name__)

ZIG_DOWNLOAD_INDEX_URL = "https://ziglang.org/download/index.json"
MASTER_INDEX = "master"
CONFIG_FILE_NAME = "zigsync.yaml"

_ENV_PREFIX = "ZIGSYNC_"
_TRUE_VALUES = ("1", "true", "yes", "on")
_FALSE_VALUES = ("0", "false", "no", "off", "")


@dataclass(frozen=True)
class UpdaterConfig:
    """Settings for one update run."""

    index_url: str = ZIG_DOWNLOAD_INDEX_URL
    default_version: str = MASTER_INDEX
    install_dir: Optional[Path] = None  # None: directory of the running executable
    timeout: Optional[float] = None  # None: block until the server answers
    verify_checksum: bool = False

    def resolve_install_dir(self) -> Path:
        """Directory that receives extracted toolchains and the entry point."""
        if self.install_dir is not None:
            return Path(self.install_dir).expanduser().resolve()
        return default_install_dir()


def default_install_dir() -> Path:
    """
    Directory containing the currently running executable.

    Under ``python -m zigsync`` argv[0] is the package's ``__main__.py``;
    the interpreter's directory (where the console script lives) is used
    instead.
    """
    program = sys.argv[0] if sys.argv else ""
    if not program or Path(program).name == "__main__.py":
        return Path(sys.executable).resolve().parent
    return Path(program).resolve().parent


def load_config(
    config_file: Optional[Path] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> UpdaterConfig:
    """
    Build the effective configuration.

    Args:
        config_file: Explicit YAML file; must exist if given
        environ: Environment mapping (defaults to os.environ)

    Returns:
        Merged configuration

    Raises:
        ConfigError: If a named file is missing, or any value is invalid
    """
    environ = os.environ if environ is None else environ
    config = UpdaterConfig()

    required = config_file is not None
    if config_file is None and environ.get(f"{_ENV_PREFIX}CONFIG"):
        config_file = Path(environ[f"{_ENV_PREFIX}CONFIG"])
        required = True

    if config_file is None:
        install_dir = _env_install_dir(environ) or config.resolve_install_dir()
        config_file = install_dir / CONFIG_FILE_NAME

    data = load_yaml_config(Path(config_file), required=required)
    if data:
        config = replace(config, **_parse_and_validate(data, source=str(config_file)))

    overrides = _environment_overrides(environ)
    if overrides:
        config = replace(config, **overrides)

    logger.debug(f"Effective configuration: {config}")
    return config


def load_yaml_config(config_file: Path, required: bool = False) -> Dict[str, Any]:
    """
    Load and parse a YAML configuration file.

    Returns:
        Configuration dictionary (empty dict if file doesn't exist and not required)

    Raises:
        ConfigError: If required and missing, or the YAML is invalid
    """
    if not config_file.exists():
        if required:
            raise ConfigError(f"Configuration file not found: {config_file}")
        logger.debug(f"Config file not found (optional): {config_file}")
        return {}

    logger.debug(f"Loading configuration from {config_file}")

    try:
        with open(config_file, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {config_file}: {e}") from e
    except OSError as e:
        raise ConfigError(f"Cannot read {config_file}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"{config_file}: top level must be a mapping")
    return data


def _parse_and_validate(data: Dict[str, Any], source: str) -> Dict[str, Any]:
    """Validate a raw mapping and convert it into UpdaterConfig keyword arguments."""
    known = {f.name for f in fields(UpdaterConfig)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise ConfigError(f"{source}: unknown setting(s): {', '.join(unknown)}")

    values: Dict[str, Any] = {}
    for key, value in data.items():
        if key in ("index_url", "default_version"):
            if not isinstance(value, str) or not value.strip():
                raise ConfigError(f"{source}: '{key}' must be a non-empty string")
            values[key] = value.strip()
        elif key == "install_dir":
            values[key] = None if value is None else Path(str(value))
        elif key == "timeout":
            values[key] = _parse_timeout(value, source)
        elif key == "verify_checksum":
            if not isinstance(value, bool):
                raise ConfigError(f"{source}: 'verify_checksum' must be true or false")
            values[key] = value
    return values


def _parse_timeout(value: Any, source: str) -> Optional[float]:
    if value is None:
        return None
    try:
        timeout = float(value)
    except (TypeError, ValueError):
        raise ConfigError(f"{source}: 'timeout' must be a number, got {value!r}")
    if timeout <= 0:
        raise ConfigError(f"{source}: 'timeout' must be positive")
    return timeout


def _env_install_dir(environ: Mapping[str, str]) -> Optional[Path]:
    value = environ.get(f"{_ENV_PREFIX}INSTALL_DIR")
    return Path(value).expanduser().resolve() if value else None


def _environment_overrides(environ: Mapping[str, str]) -> Dict[str, Any]:
    """Collect ZIGSYNC_* overrides."""
    source = "environment"
    values: Dict[str, Any] = {}

    for key in ("index_url", "default_version"):
        value = environ.get(f"{_ENV_PREFIX}{key.upper()}")
        if value:
            values[key] = value.strip()

    install_dir = _env_install_dir(environ)
    if install_dir is not None:
        values["install_dir"] = install_dir

    timeout = environ.get(f"{_ENV_PREFIX}TIMEOUT")
    if timeout:
        values["timeout"] = _parse_timeout(timeout, source)

    verify = environ.get(f"{_ENV_PREFIX}VERIFY_CHECKSUM")
    if verify is not None:
        lowered = verify.strip().lower()
        if lowered in _TRUE_VALUES:
            values["verify_checksum"] = True
        elif lowered in _FALSE_VALUES:
            values["verify_checksum"] = False
        else:
            raise ConfigError(
                f"{_ENV_PREFIX}VERIFY_CHECKSUM must be a boolean, got {verify!r}"
            )

    return values
