"""
Configuration for zigsync.

Example:
    >>> from zigsync.config import load_config
    >>> config = load_config()
    >>> config.index_url
    'https://ziglang.org/download/index.json'
"""

from zigsync.config.parser import (
    CONFIG_FILE_NAME,
    MASTER_INDEX,
    ZIG_DOWNLOAD_INDEX_URL,
    UpdaterConfig,
    default_install_dir,
    load_config,
    load_yaml_config,
)

__all__ = [
    "CONFIG_FILE_NAME",
    "MASTER_INDEX",
    "ZIG_DOWNLOAD_INDEX_URL",
    "UpdaterConfig",
    "default_install_dir",
    "load_config",
    "load_yaml_config",
]
