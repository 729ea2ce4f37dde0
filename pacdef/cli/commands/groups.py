"""Group management commands: list, show, new, edit, import, remove, search."""

import os
import re
import shlex
import subprocess
from typing import TYPE_CHECKING, List

if TYPE_CHECKING:
    from ...core.config import Config

from .common import (
    EXIT_ERROR,
    EXIT_OK,
    EXIT_PARSE_ERROR,
    build_registry,
    load_groups,
)


def run_editor(paths: List) -> int:
    """Open files in $EDITOR (default: vi); returns the editor exit status."""
    editor = os.environ.get('VISUAL') or os.environ.get('EDITOR') or 'vi'
    cmd = shlex.split(editor) + [str(p) for p in paths]
    try:
        return subprocess.run(cmd).returncode
    except FileNotFoundError:
        print(f"Error: editor '{cmd[0]}' not found")
        return 127


def cmd_groups_list(args, config: 'Config') -> int:
    from .. import display

    store = load_groups(config, build_registry(args, config))
    if store is None:
        return EXIT_PARSE_ERROR

    names = sorted(g.name for g in store.groups())
    if display.get_mode() == display.DisplayMode.JSON:
        display.print_json(names)
    else:
        for name in names:
            print(name)
    return EXIT_OK


def cmd_groups_show(args, config: 'Config') -> int:
    from .. import colors, display

    store = load_groups(config, build_registry(args, config))
    if store is None:
        return EXIT_PARSE_ERROR

    groups = []
    for name in args.groups:
        group = store.get(name)
        if group is None:
            print(colors.error(f"Error: group '{name}' not found"))
            return EXIT_ERROR
        groups.append(group)

    if display.get_mode() == display.DisplayMode.JSON:
        display.print_json({
            g.name: {backend: sorted(g.packages(backend)) for backend in g.backends()}
            for g in groups
        })
        return EXIT_OK

    for index, group in enumerate(groups):
        if len(groups) > 1:
            print(colors.bold(group.name))
            print('-' * len(group.name))
        print(group.render())
        if index < len(groups) - 1:
            print()
    return EXIT_OK


def cmd_groups_new(args, config: 'Config') -> int:
    from ...core.errors import GroupError
    from ...core.groups import create_group_files
    from .. import colors

    try:
        paths = create_group_files(config.group_dir, args.groups)
    except GroupError as e:
        print(colors.error(f"Error: {e}"))
        return EXIT_ERROR

    for path in paths:
        print(f"Created {path}")

    if getattr(args, 'edit', False):
        if run_editor(paths) != 0:
            print(colors.error("Error: editor exited with error"))
            return EXIT_ERROR
    return EXIT_OK


def cmd_groups_edit(args, config: 'Config') -> int:
    from ...core.errors import GroupError
    from ...core.groups import resolve_group_files
    from .. import colors

    try:
        paths = resolve_group_files(config.group_dir, args.groups)
    except GroupError as e:
        print(colors.error(f"Error: {e}"))
        return EXIT_ERROR

    if run_editor(paths) != 0:
        print(colors.error("Error: editor exited with error"))
        return EXIT_ERROR

    # Catch mistakes right away instead of at the next sync
    if load_groups(config, build_registry(args, config)) is None:
        return EXIT_PARSE_ERROR
    return EXIT_OK


def cmd_groups_import(args, config: 'Config') -> int:
    from ...core.groups import import_group_files
    from .. import colors

    created, skipped = import_group_files(config.group_dir, args.files)
    for link in created:
        print(f"Imported {link.name}")
    for path, reason in skipped:
        print(colors.warning(f"Skipping {path}: {reason}"))
    return EXIT_OK if created or not skipped else EXIT_ERROR


def cmd_groups_remove(args, config: 'Config') -> int:
    from ...core.errors import GroupError
    from ...core.groups import remove_group_files
    from .. import colors

    try:
        paths = remove_group_files(config.group_dir, args.groups)
    except GroupError as e:
        print(colors.error(f"Error: {e}"))
        return EXIT_ERROR

    for path in paths:
        print(f"Removed {path}")
    return EXIT_OK


def cmd_groups(args, config: 'Config') -> int:
    """Route 'groups' subcommands."""
    sub = getattr(args, 'groups_command', None)
    if sub in (None, 'list', 'ls', 'l'):
        return cmd_groups_list(args, config)
    elif sub in ('show', 'sh'):
        return cmd_groups_show(args, config)
    elif sub in ('new', 'n'):
        return cmd_groups_new(args, config)
    elif sub in ('edit', 'e'):
        return cmd_groups_edit(args, config)
    elif sub in ('import', 'i'):
        return cmd_groups_import(args, config)
    elif sub in ('remove', 'rm', 'r'):
        return cmd_groups_remove(args, config)

    print(f"Unknown groups command: {sub}")
    return EXIT_ERROR


def cmd_search(args, config: 'Config') -> int:
    """Search declared packages by regular expression."""
    from .. import colors, display

    store = load_groups(config, build_registry(args, config))
    if store is None:
        return EXIT_PARSE_ERROR

    try:
        hits = store.search(args.pattern)
    except re.error as e:
        print(colors.error(f"Error: invalid pattern '{args.pattern}': {e}"))
        return EXIT_ERROR

    if display.get_mode() == display.DisplayMode.JSON:
        display.print_json([
            {'group': group, 'backend': backend, 'package': pkg}
            for group, backend, pkg in hits
        ])
        return EXIT_OK

    if not hits:
        print(colors.warning(f"No package matching '{args.pattern}'"))
        return EXIT_ERROR

    width = max(len(group) for group, _, _ in hits)
    for group, backend, pkg in hits:
        print(f"{group:<{width}}  {colors.info(backend)}  {pkg}")
    return EXIT_OK
