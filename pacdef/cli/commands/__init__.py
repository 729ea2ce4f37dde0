"""CLI command modules."""

from .sync import (
    cmd_sync,
    cmd_clean,
    cmd_review,
    cmd_unmanaged,
)
from .groups import (
    cmd_groups,
    cmd_groups_list,
    cmd_groups_show,
    cmd_groups_new,
    cmd_groups_edit,
    cmd_groups_import,
    cmd_groups_remove,
    cmd_search,
)
from .common import (
    EXIT_OK,
    EXIT_ERROR,
    EXIT_PARSE_ERROR,
    EXIT_QUERY_ERROR,
    EXIT_APPLY_FAILED,
    EXIT_INTERRUPTED,
)

__all__ = [
    # Convergence commands
    'cmd_sync',
    'cmd_clean',
    'cmd_review',
    'cmd_unmanaged',
    # Group commands
    'cmd_groups',
    'cmd_groups_list',
    'cmd_groups_show',
    'cmd_groups_new',
    'cmd_groups_edit',
    'cmd_groups_import',
    'cmd_groups_remove',
    'cmd_search',
    # Exit codes
    'EXIT_OK',
    'EXIT_ERROR',
    'EXIT_PARSE_ERROR',
    'EXIT_QUERY_ERROR',
    'EXIT_APPLY_FAILED',
    'EXIT_INTERRUPTED',
]
