"""Display utilities for the pacdef CLI.

Output modes:
- columns: Multi-column package lists (default, human-friendly)
- flat: One "backend package" per line (parsable by scripts)
- json: JSON documents (programmatic consumption)
"""

import json
import shutil
from enum import Enum
from typing import Any, Callable, List, Optional

from . import colors
from ..core.apply import ApplyReport
from ..core.reconcile import ActionKind, Plan


class DisplayMode(Enum):
    """Output display mode."""
    COLUMNS = "columns"
    FLAT = "flat"
    JSON = "json"


_display_mode = DisplayMode.COLUMNS
_show_all = False


def init(mode: str = "columns", show_all: bool = False):
    """Initialize display settings.

    Args:
        mode: Display mode ("columns", "flat", "json")
        show_all: If True, never truncate package lists
    """
    global _display_mode, _show_all
    _display_mode = DisplayMode(mode) if mode else DisplayMode.COLUMNS
    _show_all = show_all


def get_mode() -> DisplayMode:
    return _display_mode


def get_terminal_width() -> int:
    """Get terminal width, with fallback to 80 columns."""
    return shutil.get_terminal_size((80, 24)).columns


def format_package_list(
    packages: List[str],
    max_lines: int = 10,
    show_all: Optional[bool] = None,
    indent: int = 2,
    column_gap: int = 2,
    color_func: Optional[Callable[[str], str]] = None,
    terminal_width: Optional[int] = None
) -> List[str]:
    """Lay out packages in columns, truncating after max_lines.

    Args:
        packages: Package names, already in display order
        max_lines: Lines shown before "... and N more" (unless show_all)
        show_all: Override global show_all setting
        indent: Spaces before each line
        column_gap: Spaces between columns
        color_func: Optional colorize function
        terminal_width: Override terminal width (for testing)

    Returns:
        Lines ready to print
    """
    if not packages:
        return []

    show_all = _show_all if show_all is None else show_all
    width = (terminal_width or get_terminal_width()) - indent
    col_width = max(len(p) for p in packages) + column_gap
    num_cols = max(1, width // col_width)

    rows = [packages[i:i + num_cols] for i in range(0, len(packages), num_cols)]
    hidden = 0
    if not show_all and len(rows) > max_lines:
        hidden = sum(len(r) for r in rows[max_lines:])
        rows = rows[:max_lines]

    prefix = " " * indent
    result = []
    for row in rows:
        cells = []
        for pkg in row:
            # Pad on the raw length so escape codes do not break alignment
            shown = color_func(pkg) if color_func else pkg
            cells.append(shown + " " * (col_width - len(pkg)))
        result.append(prefix + "".join(cells).rstrip())

    if hidden:
        result.append(prefix + f"... and {hidden} more")
    return result


def print_package_list(packages: List[str], indent: int = 2,
                       color_func: Optional[Callable[[str], str]] = None):
    for line in format_package_list(packages, indent=indent, color_func=color_func):
        print(line)


def print_json(data: Any) -> None:
    print(json.dumps(data, ensure_ascii=False, indent=2))


def print_plan(plan: Plan) -> None:
    """Print the plan partitioned by backend and action kind."""
    if _display_mode == DisplayMode.JSON:
        print_json(plan.to_dict())
        return

    partitioned = plan.by_backend()

    if _display_mode == DisplayMode.FLAT:
        for backend in sorted(partitioned):
            for kind, sign in ((ActionKind.INSTALL, '+'), (ActionKind.REMOVE, '-')):
                for pkg in partitioned[backend][kind]:
                    print(f"{sign} {backend} {pkg}")
        return

    for backend in sorted(partitioned):
        kinds = partitioned[backend]
        print(colors.backend(backend))
        if kinds[ActionKind.INSTALL]:
            print(f"  {colors.success(f'install ({len(kinds[ActionKind.INSTALL])}):')}")
            print_package_list(kinds[ActionKind.INSTALL], indent=4, color_func=colors.pkg_install)
        if kinds[ActionKind.REMOVE]:
            print(f"  {colors.error(f'remove ({len(kinds[ActionKind.REMOVE])}):')}")
            print_package_list(kinds[ActionKind.REMOVE], indent=4, color_func=colors.pkg_remove)
        print()


def print_problems(plan: Plan) -> None:
    """Print configuration warnings and skipped backends to stdout."""
    if _display_mode == DisplayMode.JSON:
        return
    for warning in plan.warnings:
        print(colors.warning(f"WARNING: {warning}"))
    for error in plan.query_errors:
        print(colors.warning(f"WARNING: skipping backend '{error.backend}': {error.reason}"))


def print_report(report: ApplyReport) -> None:
    """Print the end-of-run summary, failures per backend and package."""
    applied = sum(len(r.packages) for r in report.applied)
    if report.failures:
        print(colors.error(f"\nCompleted with failures ({applied} package(s) changed):"))
        for failure in report.failures:
            print(f"  {colors.backend(failure.backend)} {failure.kind.value}: {failure.reason}")
            for pkg in failure.packages:
                detail = failure.details.get(pkg)
                if detail is None:
                    continue
                first, *rest = detail.splitlines() or ['']
                print(f"    {colors.error(pkg)}: {first}")
                for line in rest:
                    print(f"      {colors.dim(line)}")
    elif report.interrupted:
        print(colors.warning(f"\nInterrupted after {applied} package(s) changed"))
    else:
        print(colors.success(f"\nDone: {applied} package(s) changed"))

    for backend, kind, packages in report.skipped:
        print(colors.warning(f"  skipped {backend} {kind.value}: {' '.join(packages)}"))
