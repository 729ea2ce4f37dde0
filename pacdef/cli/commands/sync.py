"""Convergence commands: sync, clean, review and unmanaged."""

from typing import TYPE_CHECKING, Iterable

if TYPE_CHECKING:
    from ...core.config import Config

from .common import (
    EXIT_APPLY_FAILED,
    EXIT_INTERRUPTED,
    EXIT_OK,
    EXIT_PARSE_ERROR,
    EXIT_QUERY_ERROR,
    active_backends,
    build_registry,
    load_groups,
    plan_exit_code,
)


def _review_mode(args, config: 'Config'):
    from ...core.config import ReviewMode

    if getattr(args, 'noconfirm', False):
        return ReviewMode.NONE
    if getattr(args, 'review_mode', None):
        return ReviewMode(args.review_mode)
    return config.review


def _converge(args, config: 'Config', kinds: Iterable, title: str) -> int:
    """Compute, review and apply a plan restricted to some action kinds."""
    from ...core.apply import ReviewApplyController
    from ...core.reconcile import Reconciler
    from .. import colors, display
    from ..prompt import InteractivePrompt

    kinds = list(kinds)
    registry = build_registry(args, config)
    store = load_groups(config, registry)
    if store is None:
        return EXIT_PARSE_ERROR

    active, usable = active_backends(args, config, registry)
    reconciler = Reconciler(store)
    plan = reconciler.plan(active, parallel=config.parallel_queries, active=usable).filtered(kinds)
    display.print_problems(plan)

    if plan.is_empty():
        print(colors.info("Nothing to do."))
        return plan_exit_code(plan)

    print(f"\n{colors.bold(title)}\n")
    display.print_plan(plan)

    requery = None
    if config.requery_before_apply:
        def requery():
            return reconciler.plan(active, parallel=config.parallel_queries, active=usable).filtered(kinds)

    def batch_start(tag, kind, packages):
        print(colors.info(f"\n:: {tag}: {kind.value} {len(packages)} package(s)"))

    controller = ReviewApplyController(
        plan, active,
        review=_review_mode(args, config),
        confirmer=InteractivePrompt(),
        requery=requery,
        on_batch_start=batch_start,
    )

    if not controller.review():
        print(colors.warning("Aborted, nothing changed."))
        return plan_exit_code(plan)

    report = controller.apply()
    display.print_report(report)

    if report.failures:
        return EXIT_APPLY_FAILED
    if report.interrupted:
        return EXIT_INTERRUPTED
    return plan_exit_code(plan)


def cmd_sync(args, config: 'Config') -> int:
    """Install declared packages that are missing (and remove unmanaged ones with --prune)."""
    from ...core.reconcile import ActionKind

    if getattr(args, 'prune', False):
        return _converge(args, config, [ActionKind.INSTALL, ActionKind.REMOVE],
                         "The following changes will be made:")
    return _converge(args, config, [ActionKind.INSTALL],
                     "Would install the following packages:")


def cmd_clean(args, config: 'Config') -> int:
    """Remove explicitly installed packages that no group declares."""
    from ...core.reconcile import ActionKind

    return _converge(args, config, [ActionKind.REMOVE],
                     "Would remove the following packages:")


def cmd_review(args, config: 'Config') -> int:
    """Show what a full convergence would do; never changes anything."""
    from ...core.reconcile import Reconciler
    from .. import colors, display

    registry = build_registry(args, config)
    store = load_groups(config, registry)
    if store is None:
        return EXIT_PARSE_ERROR

    active, usable = active_backends(args, config, registry)
    plan = Reconciler(store).plan(active, parallel=config.parallel_queries, active=usable)
    display.print_problems(plan)

    if plan.is_empty():
        if display.get_mode() == display.DisplayMode.JSON:
            display.print_plan(plan)
        else:
            print(colors.success("Everything is in sync."))
        return plan_exit_code(plan)

    display.print_plan(plan)
    if display.get_mode() == display.DisplayMode.COLUMNS:
        installs, removals = len(plan.installs()), len(plan.removals())
        print(f"{colors.count(installs)} to install, {colors.count(removals)} to remove")
    return plan_exit_code(plan)


def cmd_unmanaged(args, config: 'Config') -> int:
    """List explicitly installed packages that no group declares."""
    from ...core.reconcile import Reconciler
    from .. import colors, display

    registry = build_registry(args, config)
    store = load_groups(config, registry)
    if store is None:
        return EXIT_PARSE_ERROR

    active, usable = active_backends(args, config, registry)
    plan = Reconciler(store).unmanaged(active, parallel=config.parallel_queries, active=usable)
    display.print_problems(plan)

    if display.get_mode() == display.DisplayMode.JSON:
        display.print_json({
            backend: [a.package for a in plan.removals(backend)]
            for backend in plan.backends
        })
        return plan_exit_code(plan)

    if plan.is_empty():
        print(colors.success("No unmanaged packages."))
        return plan_exit_code(plan)

    for backend in plan.backends:
        packages = [a.package for a in plan.removals(backend)]
        if not packages:
            continue
        if display.get_mode() == display.DisplayMode.FLAT:
            for pkg in packages:
                print(f"{backend} {pkg}")
            continue
        print(colors.backend(backend))
        for pkg in packages:
            print(f"  {pkg}")
        print()

    return EXIT_QUERY_ERROR if plan.query_errors else EXIT_OK
