"""
Configuration for configrepo.

Configuration is read from a JSON, TOML or YAML file, merged over the
defaults, then overridden by CONFIGREPO_* environment variables. The store
section is turned into a validated StoreSettings; a bad value fails when
the settings are built, not on first use.
"""

import os
import json
import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

import logging
import sys

import yaml

from .exit_codes import ConfigError

logger = logging.getLogger("configrepo")

ENV_PREFIX = "CONFIGREPO_"
DEFAULT_LOG_FORMAT = "%(levelname)s: %(message)s"


def configure_logging(level: str = "INFO", fmt: str = DEFAULT_LOG_FORMAT) -> None:
    """Send configrepo log records to stderr at ``level``."""
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(fmt))
    logger.handlers[:] = [handler]
    logger.setLevel(getattr(logging, str(level).upper(), logging.INFO))
    logger.propagate = False


@dataclass(frozen=True)
class StoreSettings:
    """
    Where and how the store keeps its files.

    Attributes:
        owner: GitHub account owning the configuration repository
        repo: Configuration repository name
        ref: Branch every release is merged into
        base_path: Directory holding one subdirectory per app
        verify_ref: Check the ref did not move before merging
        max_retries: Republish attempts after a moved ref or merge conflict
        base_delay: First backoff delay in seconds
        max_delay: Backoff delay cap in seconds
    """

    owner: str
    repo: str
    ref: str = "main"
    base_path: str = "apps"
    verify_ref: bool = False
    max_retries: int = 0
    base_delay: float = 1.0
    max_delay: float = 60.0

    def __post_init__(self):
        if not self.owner:
            raise ConfigError("store.owner is required")
        if not self.repo:
            raise ConfigError("store.repo is required")
        if not self.ref:
            raise ConfigError("store.ref must not be empty")
        base_path = str(self.base_path).strip('/')
        if not base_path:
            raise ConfigError("store.base_path must not be empty")
        object.__setattr__(self, 'base_path', base_path)
        if self.max_retries < 0:
            raise ConfigError("store.max_retries must be >= 0")
        if self.base_delay < 0 or self.max_delay < 0:
            raise ConfigError("store.base_delay and store.max_delay must be >= 0")

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> 'StoreSettings':
        """Build settings from the ``store`` section of a loaded config."""
        store = config.get('store') or {}
        try:
            return cls(
                owner=store.get('owner', ''),
                repo=store.get('repo', ''),
                ref=store.get('ref', 'main'),
                base_path=store.get('base_path', 'apps'),
                verify_ref=bool(store.get('verify_ref', False)),
                max_retries=int(store.get('max_retries', 0)),
                base_delay=float(store.get('base_delay', 1.0)),
                max_delay=float(store.get('max_delay', 60.0)),
            )
        except (TypeError, ValueError) as e:
            raise ConfigError(f"invalid store settings: {e}") from e


def get_config_path() -> Path:
    """Get the path to the configuration file.

    Checks in order:
    1. CONFIGREPO_CONFIG environment variable
    2. ~/.configrepo/config.{json,toml,yaml,yml}
    """
    if 'CONFIGREPO_CONFIG' in os.environ:
        return Path(os.environ['CONFIGREPO_CONFIG']).expanduser()

    config_dir = Path.home() / '.configrepo'
    for filename in ['config.json', 'config.toml', 'config.yaml', 'config.yml']:
        path = config_dir / filename
        if path.exists():
            return path

    # Nothing on disk; load_config falls back to defaults.
    return config_dir / 'config.json'


def get_default_config() -> Dict[str, Any]:
    """Get default configuration."""
    return {
        "github": {
            "token": "",
            "api_url": "https://api.github.com",
            "timeout_seconds": 30,
        },
        "store": {
            "owner": "",
            "repo": "",
            "ref": "main",
            "base_path": "apps",
            "verify_ref": False,
            "max_retries": 0,
            "base_delay": 1.0,
            "max_delay": 60.0,
        },
        "logging": {
            "level": "INFO",
            "format": DEFAULT_LOG_FORMAT,
        },
    }


def _read_config_file(config_path: Path) -> Dict[str, Any]:
    suffix = config_path.suffix.lower()
    try:
        if suffix == '.toml':
            with open(config_path, 'rb') as f:
                data = tomllib.load(f)
        elif suffix in ('.yaml', '.yml'):
            with open(config_path, 'r') as f:
                data = yaml.safe_load(f)
        else:
            with open(config_path, 'r') as f:
                data = json.load(f)
    except (OSError, ValueError, yaml.YAMLError) as e:
        raise ConfigError(f"Error loading config from {config_path}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Config file {config_path} must contain a mapping")
    return data


def load_config(config_path: Optional[Path] = None) -> Dict[str, Any]:
    """
    Load configuration from file, defaults and environment.

    Raises:
        ConfigError: If the config file exists but cannot be parsed
    """
    config_path = config_path or get_config_path()
    config = get_default_config()

    if config_path.exists():
        config = merge_configs(config, _read_config_file(config_path))
        logger.debug(f"Loaded config from {config_path}")

    config = apply_env_overrides(config)

    # GITHUB_TOKEN is the conventional place for the token.
    if not config['github'].get('token'):
        config['github']['token'] = os.environ.get('GITHUB_TOKEN', '')

    return config


def merge_configs(base_config: Dict[str, Any], override_config: Dict[str, Any]) -> Dict[str, Any]:
    """
    Deep-merge ``override_config`` into a copy of ``base_config``.

    Nested dicts are merged key by key; any other value replaces the base.
    """
    merged = dict(base_config)
    for key, value in override_config.items():
        current = merged.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            merged[key] = merge_configs(current, value)
        else:
            merged[key] = value
    return merged


def _typed(value: str) -> Any:
    lowered = value.lower()
    if lowered in ('true', 'yes', 'on'):
        return True
    if lowered in ('false', 'no', 'off'):
        return False
    if value.isdigit():
        return int(value)
    return value


def apply_env_overrides(config: Dict[str, Any]) -> Dict[str, Any]:
    """
    Apply CONFIGREPO_<SECTION>_<KEY> environment variables.

    The section is the first word after the prefix and the key is the rest,
    so CONFIGREPO_STORE_BASE_PATH sets ``store.base_path``. Variables naming
    an unknown section or key are ignored.
    """
    for env_key, value in os.environ.items():
        if not env_key.startswith(ENV_PREFIX) or env_key == 'CONFIGREPO_CONFIG':
            continue

        section, _, key = env_key[len(ENV_PREFIX):].lower().partition('_')
        target = config.get(section)
        if not isinstance(target, dict) or key not in target:
            logger.debug(f"Ignoring {env_key}: no setting {section}.{key}")
            continue

        target[key] = _typed(value)

    return config
