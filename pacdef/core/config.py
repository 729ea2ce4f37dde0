"""
Central configuration for pacdef.

Path resolution:
    1. $XDG_CONFIG_HOME/pacdef if XDG_CONFIG_HOME is set
    2. ~/.config/pacdef otherwise

Structure:
    <config_dir>/pacdef.yaml    - Settings (optional)
    <config_dir>/groups/        - Group files, one per group, may be nested

pacdef.yaml format (every key optional):
    review: confirm-all          # none | per-action | confirm-all
    backends: [pacman, flatpak]  # enabled backends, default: all available
    disabled_backends: [rustup]
    aur_helper: paru
    aur_rm_args: [-Rsn]
    requery_before_apply: false
    parallel_queries: true
    groups_dir: ~/dotfiles/pacdef

The configuration is read once at startup and is immutable for the run.
"""

import logging
import os
from dataclasses import dataclass, replace
from enum import Enum
from pathlib import Path
from typing import Optional, Tuple

import yaml

from .errors import ConfigError

logger = logging.getLogger(__name__)

CONFIG_FILE_NAME = "pacdef.yaml"
GROUPS_DIR_NAME = "groups"

DEFAULT_AUR_HELPER = "paru"
DEFAULT_AUR_RM_ARGS = ("-Rsn",)

_KNOWN_KEYS = {
    'review', 'backends', 'disabled_backends', 'aur_helper', 'aur_rm_args',
    'requery_before_apply', 'parallel_queries', 'groups_dir',
}


class ReviewMode(Enum):
    """How computed actions are confirmed before being applied."""
    NONE = "none"                # apply everything without asking
    PER_ACTION = "per-action"    # ask for every action
    CONFIRM_ALL = "confirm-all"  # one yes/no for the whole plan


def get_config_dir() -> Path:
    """Get the pacdef configuration directory."""
    xdg = os.environ.get('XDG_CONFIG_HOME')
    if xdg:
        return Path(xdg) / "pacdef"
    return Path.home() / ".config" / "pacdef"


def get_config_path() -> Path:
    """Get the default path of pacdef.yaml."""
    return get_config_dir() / CONFIG_FILE_NAME


def get_group_dir() -> Path:
    """Get the default group directory."""
    return get_config_dir() / GROUPS_DIR_NAME


@dataclass(frozen=True)
class Config:
    """Settings for one pacdef run."""
    group_dir: Path
    review: ReviewMode = ReviewMode.CONFIRM_ALL
    enabled_backends: Optional[Tuple[str, ...]] = None
    disabled_backends: Tuple[str, ...] = ()
    aur_helper: str = DEFAULT_AUR_HELPER
    aur_rm_args: Tuple[str, ...] = DEFAULT_AUR_RM_ARGS
    requery_before_apply: bool = False
    parallel_queries: bool = True

    @classmethod
    def default(cls) -> 'Config':
        return cls(group_dir=get_group_dir())

    @classmethod
    def load(cls, path: Path = None) -> 'Config':
        """Load configuration from a YAML file.

        A missing file yields the defaults. An explicitly given path must
        exist.

        Args:
            path: Config file, default: get_config_path()

        Raises:
            ConfigError: unreadable file, invalid YAML or invalid values
        """
        explicit = path is not None
        path = Path(path) if explicit else get_config_path()

        if not path.exists():
            if explicit:
                raise ConfigError(f"config file {path} not found")
            logger.debug(f"No config file at {path}, using defaults")
            return cls.default()

        try:
            with open(path) as f:
                data = yaml.safe_load(f)
        except OSError as e:
            raise ConfigError(f"cannot read {path}: {e}") from e
        except yaml.YAMLError as e:
            raise ConfigError(f"invalid YAML in {path}: {e}") from e

        return cls.from_dict(data or {}, source=path)

    @classmethod
    def from_dict(cls, data: dict, source: Path = None) -> 'Config':
        """Build a Config from parsed YAML data."""
        where = f" in {source}" if source else ""
        if not isinstance(data, dict):
            raise ConfigError(f"top level must be a mapping{where}")

        for key in sorted(set(data) - _KNOWN_KEYS):
            logger.warning(f"Ignoring unknown config key '{key}'{where}")

        config = cls.default()
        changes = {}

        if 'review' in data:
            try:
                changes['review'] = ReviewMode(str(data['review']))
            except ValueError:
                valid = ', '.join(m.value for m in ReviewMode)
                raise ConfigError(
                    f"invalid review mode '{data['review']}'{where} (expected one of: {valid})"
                ) from None

        if data.get('backends') is not None:
            changes['enabled_backends'] = _str_tuple(data['backends'], 'backends', where)
        if data.get('disabled_backends') is not None:
            changes['disabled_backends'] = _str_tuple(
                data['disabled_backends'], 'disabled_backends', where)
        if data.get('aur_rm_args') is not None:
            changes['aur_rm_args'] = _str_tuple(data['aur_rm_args'], 'aur_rm_args', where)

        if 'aur_helper' in data:
            helper = data['aur_helper']
            if not isinstance(helper, str) or not helper.strip():
                raise ConfigError(f"aur_helper must be a non-empty string{where}")
            changes['aur_helper'] = helper.strip()

        for key in ('requery_before_apply', 'parallel_queries'):
            if key in data:
                if not isinstance(data[key], bool):
                    raise ConfigError(f"{key} must be true or false{where}")
                changes[key] = data[key]

        if data.get('groups_dir') is not None:
            changes['group_dir'] = Path(str(data['groups_dir'])).expanduser()

        return replace(config, **changes)

    def with_overrides(self, group_dir: Path = None) -> 'Config':
        """Return a copy with the --groups-dir override applied.

        --review and --backend are per-command and do not change the Config.
        """
        if group_dir is None:
            return self
        return replace(self, group_dir=Path(group_dir).expanduser())

    def backend_enabled(self, tag: str) -> bool:
        """Check whether a backend tag is enabled by this configuration."""
        if tag in self.disabled_backends:
            return False
        if self.enabled_backends is None:
            return True
        return tag in self.enabled_backends


def _str_tuple(value, key: str, where: str) -> Tuple[str, ...]:
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, (list, tuple)) or not all(isinstance(v, str) for v in value):
        raise ConfigError(f"{key} must be a list of strings{where}")
    return tuple(value)
