"""Shared setup for commands: exit codes, registry and group loading."""

import logging
from typing import Dict, List, Optional, Tuple

from .. import colors
from ...core.backend import Backend, BackendRegistry
from ...core.backends import create_registry
from ...core.config import Config
from ...core.errors import ParseError
from ...core.groups import GroupStore
from ...core.reconcile import Plan

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_PARSE_ERROR = 2    # group file or config file
EXIT_QUERY_ERROR = 3    # at least one backend could not be queried
EXIT_APPLY_FAILED = 4   # at least one batch failed
EXIT_INTERRUPTED = 130


def build_registry(args, config: Config) -> BackendRegistry:
    return create_registry(config, noconfirm=getattr(args, 'noconfirm', False))


def load_groups(config: Config, registry: BackendRegistry) -> Optional[GroupStore]:
    """Load every group; print the error and return None on a parse error."""
    try:
        return GroupStore.from_directory(config.group_dir, registry.known_tags())
    except ParseError as e:
        print(colors.error(f"Error: {e}"))
        return None


def active_backends(args, config: Config, registry: BackendRegistry) -> Tuple[Dict[str, Backend], List[str]]:
    """Backends taking part in this run, honouring --backend.

    Returns:
        (active backends by tag, tags usable without the --backend filter)
    """
    only = getattr(args, 'backend', None)
    if only:
        unknown = sorted(set(only) - set(registry.known_tags()))
        for tag in unknown:
            print(colors.warning(f"WARNING: unknown backend '{tag}' ignored"))
    active = registry.active(config, only=only)
    usable = list(registry.active(config)) if only else list(active)
    logger.debug(f"Active backends: {', '.join(active) or 'none'}")
    return active, usable


def plan_exit_code(plan: Plan) -> int:
    return EXIT_QUERY_ERROR if plan.query_errors else EXIT_OK
