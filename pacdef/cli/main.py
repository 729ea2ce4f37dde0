"""
Main CLI entry point for pacdef

Commands, with short aliases:
- pacdef sync / pacdef s        install declared packages that are missing
- pacdef clean / pacdef c       remove packages no group declares
- pacdef review / pacdef diff   show what would change, change nothing
- pacdef unmanaged / pacdef u   list packages no group declares
- pacdef groups / pacdef g      list, show, new, edit, import, remove groups
- pacdef search / pacdef se     search declared packages
"""

import argparse
import logging
import sys
from pathlib import Path

from .. import __version__
from .commands import (
    EXIT_ERROR,
    EXIT_INTERRUPTED,
    EXIT_PARSE_ERROR,
    cmd_clean,
    cmd_groups,
    cmd_review,
    cmd_search,
    cmd_sync,
    cmd_unmanaged,
)


def print_quickstart_guide(group_dir: Path):
    """Print a quick start guide for new users with no groups yet."""
    from . import colors

    print(f"""
{colors.bold('pacdef - declarative multi-backend package manager')}

{colors.warning(f'No groups found in {group_dir}')}

{colors.bold('Quick Start:')}

  1. Create a group and list packages per backend:
     {colors.success('pacdef groups new base --edit')}

       [pacman]
       git
       vim

  2. See what differs from the installed system:
     {colors.success('pacdef review')}

  3. Install what is missing:
     {colors.success('pacdef sync')}

{colors.bold('More help:')}
  pacdef --help
""")


def create_parser() -> argparse.ArgumentParser:
    """Create the main argument parser with all commands and aliases."""

    parser = argparse.ArgumentParser(
        prog='pacdef',
        description='Declarative multi-backend package manager for Linux',
        epilog='Use "pacdef <command> --help" for command-specific help.'
    )

    parser.add_argument(
        '--version', '-V',
        action='version',
        version=f'pacdef {__version__}'
    )
    parser.add_argument(
        '--verbose', '-v',
        action='store_true',
        help='Verbose output (debug logging on stderr)'
    )
    parser.add_argument(
        '--nocolor',
        action='store_true',
        help='Disable colored output'
    )
    parser.add_argument(
        '--config',
        metavar='FILE',
        help='Configuration file (default: ~/.config/pacdef/pacdef.yaml)'
    )
    parser.add_argument(
        '--groups-dir',
        metavar='DIR',
        help='Group directory (default: ~/.config/pacdef/groups)'
    )

    # Parent parser for display options (inherited by subparsers)
    display_parent = argparse.ArgumentParser(add_help=False)
    display_parent.add_argument(
        '--json',
        action='store_true',
        help='JSON output for scripting'
    )
    display_parent.add_argument(
        '--flat',
        action='store_true',
        help='Flat output (one item per line, parsable)'
    )
    display_parent.add_argument(
        '--show-all',
        action='store_true',
        help='Do not truncate package lists'
    )

    # Parent parser for commands that query backends
    backend_parent = argparse.ArgumentParser(add_help=False)
    backend_parent.add_argument(
        '--backend', '-b',
        action='append',
        metavar='TAG',
        help='Only use this backend (repeatable)'
    )

    # Parent parser for commands that change the system
    apply_parent = argparse.ArgumentParser(add_help=False)
    apply_parent.add_argument(
        '--noconfirm', '--unreviewed',
        dest='noconfirm',
        action='store_true',
        help='Apply without review, and pass non-interactive flags to package managers'
    )
    apply_parent.add_argument(
        '--review',
        dest='review_mode',
        choices=['none', 'per-action', 'confirm-all'],
        help='Review mode for this run (default: from config)'
    )

    subparsers = parser.add_subparsers(dest='command', metavar='<command>')

    # =========================================================================
    # sync / clean / review / unmanaged
    # =========================================================================
    sync_parser = subparsers.add_parser(
        'sync', aliases=['s'],
        help='Install declared packages that are missing',
        parents=[display_parent, backend_parent, apply_parent]
    )
    sync_parser.add_argument(
        '--prune',
        action='store_true',
        help='Also remove explicitly installed packages that no group declares'
    )

    subparsers.add_parser(
        'clean', aliases=['c'],
        help='Remove explicitly installed packages that no group declares',
        parents=[display_parent, backend_parent, apply_parent]
    )

    subparsers.add_parser(
        'review', aliases=['diff', 'd'],
        help='Show what would be installed and removed (changes nothing)',
        parents=[display_parent, backend_parent]
    )

    subparsers.add_parser(
        'unmanaged', aliases=['u'],
        help='List explicitly installed packages that no group declares',
        parents=[display_parent, backend_parent]
    )

    # =========================================================================
    # groups
    # =========================================================================
    groups_parser = subparsers.add_parser(
        'groups', aliases=['g'],
        help='Manage group files',
    )
    groups_subparsers = groups_parser.add_subparsers(dest='groups_command', metavar='<action>')

    groups_subparsers.add_parser('list', aliases=['ls', 'l'], help='List groups',
                                 parents=[display_parent])

    groups_show = groups_subparsers.add_parser('show', aliases=['sh'], help='Show group contents',
                                               parents=[display_parent])
    groups_show.add_argument('groups', nargs='+', help='Group names')

    groups_new = groups_subparsers.add_parser('new', aliases=['n'], help='Create empty groups')
    groups_new.add_argument('groups', nargs='+', help='Group names')
    groups_new.add_argument('--edit', '-e', action='store_true', help='Open the new groups in $EDITOR')

    groups_edit = groups_subparsers.add_parser('edit', aliases=['e'], help='Edit groups in $EDITOR')
    groups_edit.add_argument('groups', nargs='+', help='Group names')

    groups_import = groups_subparsers.add_parser(
        'import', aliases=['i'], help='Symlink existing files into the group directory')
    groups_import.add_argument('files', nargs='+', help='Group files to import')

    groups_remove = groups_subparsers.add_parser('remove', aliases=['rm', 'r'], help='Delete groups')
    groups_remove.add_argument('groups', nargs='+', help='Group names')

    # =========================================================================
    # search / version
    # =========================================================================
    search_parser = subparsers.add_parser(
        'search', aliases=['se'],
        help='Search declared packages (regular expression)',
        parents=[display_parent]
    )
    search_parser.add_argument('pattern', help='Regular expression matched against package names')

    subparsers.add_parser('version', help='Show version')

    return parser


def setup_logging(verbose: bool):
    """Debug logging on stderr with --verbose, warnings only otherwise."""
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format='%(name)s - %(levelname)s - %(message)s',
            stream=sys.stderr
        )
    else:
        logging.basicConfig(level=logging.WARNING, format='%(levelname)s: %(message)s',
                            stream=sys.stderr)


def load_config(args):
    """Load the configuration file and apply command line overrides."""
    from ..core.config import Config

    config = Config.load(Path(args.config).expanduser() if args.config else None)
    return config.with_overrides(group_dir=args.groups_dir)


def main(argv=None) -> int:
    """Main CLI entry point."""
    parser = create_parser()
    args = parser.parse_args(argv)

    setup_logging(getattr(args, 'verbose', False))

    from . import colors
    colors.init(nocolor=getattr(args, 'nocolor', False))

    from . import display
    if getattr(args, 'json', False):
        display.init(mode='json', show_all=True)
    elif getattr(args, 'flat', False):
        display.init(mode='flat', show_all=True)
    else:
        display.init(mode='columns', show_all=getattr(args, 'show_all', False))

    if args.command == 'version':
        print(f"pacdef, version: {__version__}")
        return 0

    from ..core.errors import ConfigError
    try:
        config = load_config(args)
    except ConfigError as e:
        print(colors.error(f"Error: {e}"))
        return EXIT_PARSE_ERROR

    if not args.command:
        from ..core.groups import discover_group_files
        if not discover_group_files(config.group_dir):
            print_quickstart_guide(config.group_dir)
            return 0
        parser.print_help()
        return EXIT_ERROR

    try:
        if args.command in ('sync', 's'):
            return cmd_sync(args, config)

        elif args.command in ('clean', 'c'):
            return cmd_clean(args, config)

        elif args.command in ('review', 'diff', 'd'):
            return cmd_review(args, config)

        elif args.command in ('unmanaged', 'u'):
            return cmd_unmanaged(args, config)

        elif args.command in ('groups', 'g'):
            return cmd_groups(args, config)

        elif args.command in ('search', 'se'):
            return cmd_search(args, config)

        else:
            print(f"Unknown command: {args.command}")
            return EXIT_ERROR

    except KeyboardInterrupt:
        print("\nInterrupted")
        return EXIT_INTERRUPTED

    except Exception as e:
        if args.verbose:
            import traceback
            traceback.print_exc()
        else:
            print(f"Error: {e}")
        return EXIT_ERROR


if __name__ == '__main__':
    sys.exit(main())
