"""
Reconciler

Computes, per backend, which declared packages are missing and which
explicitly installed packages are not declared:

    to_install = desired_set(backend) - installed ids
    to_remove  = explicit installed ids - desired_set(backend)

Dependency-origin packages are never removal candidates. Backends are
independent: a backend whose query failed contributes no actions and is
reported in Plan.query_errors.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterable, List, Mapping, Sequence, Tuple

from .backend import Backend, InstalledPackage
from .errors import BackendQueryError, ConfigurationWarning
from .groups import GroupStore

logger = logging.getLogger(__name__)


class ActionKind(Enum):
    """Kind of convergence action."""
    INSTALL = "install"
    REMOVE = "remove"


@dataclass(frozen=True)
class Action:
    """Install or remove one package on one backend."""
    kind: ActionKind
    backend: str
    package: str

    @classmethod
    def install(cls, backend: str, package: str) -> 'Action':
        return cls(ActionKind.INSTALL, backend, package)

    @classmethod
    def remove(cls, backend: str, package: str) -> 'Action':
        return cls(ActionKind.REMOVE, backend, package)

    def __str__(self) -> str:
        return f"{self.kind.value} {self.backend}/{self.package}"


@dataclass
class Plan:
    """Reconciler output for one run."""
    actions: List[Action] = field(default_factory=list)
    warnings: List[ConfigurationWarning] = field(default_factory=list)
    query_errors: List[BackendQueryError] = field(default_factory=list)
    backends: List[str] = field(default_factory=list)

    def is_empty(self) -> bool:
        return not self.actions

    def installs(self, backend: str = None) -> List[Action]:
        return [a for a in self.actions if a.kind is ActionKind.INSTALL
                and (backend is None or a.backend == backend)]

    def removals(self, backend: str = None) -> List[Action]:
        return [a for a in self.actions if a.kind is ActionKind.REMOVE
                and (backend is None or a.backend == backend)]

    def for_backend(self, backend: str) -> List[Action]:
        return [a for a in self.actions if a.backend == backend]

    def by_backend(self) -> Dict[str, Dict[ActionKind, List[str]]]:
        """Partition package names by backend and action kind."""
        result: Dict[str, Dict[ActionKind, List[str]]] = {}
        for action in self.actions:
            kinds = result.setdefault(action.backend, {ActionKind.INSTALL: [], ActionKind.REMOVE: []})
            kinds[action.kind].append(action.package)
        return result

    def filtered(self, kinds: Iterable[ActionKind]) -> 'Plan':
        """Copy of the plan keeping only some action kinds."""
        kinds = set(kinds)
        return Plan(
            actions=[a for a in self.actions if a.kind in kinds],
            warnings=list(self.warnings),
            query_errors=list(self.query_errors),
            backends=list(self.backends),
        )

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON output."""
        return {
            'backends': {
                backend: {kind.value: pkgs for kind, pkgs in kinds.items()}
                for backend, kinds in self.by_backend().items()
            },
            'warnings': [
                {'group': w.group, 'backend': w.backend, 'packages': list(w.packages)}
                for w in self.warnings
            ],
            'query_errors': [
                {'backend': e.backend, 'error': e.reason} for e in self.query_errors
            ],
        }


Snapshot = Sequence[InstalledPackage]


def diff_backend(desired: Iterable[str], installed: Snapshot) -> Tuple[List[str], List[str]]:
    """Diff one backend.

    Args:
        desired: Declared package ids
        installed: Installed packages reported by the backend

    Returns:
        (to_install, to_remove), each sorted
    """
    desired = set(desired)
    installed_ids = {p.id for p in installed}
    explicit_ids = {p.id for p in installed if p.is_explicit}

    to_install = sorted(desired - installed_ids)
    to_remove = sorted(explicit_ids - desired)
    return to_install, to_remove


def collect_snapshots(backends: Mapping[str, Backend], parallel: bool = True
                      ) -> Tuple[Dict[str, List[InstalledPackage]], List[BackendQueryError]]:
    """Query installed packages of every backend.

    A failing backend does not cancel the others. Results are keyed and
    ordered by tag whatever order the queries complete in.

    Returns:
        (snapshots, errors) - failed backends are absent from snapshots
    """
    tags = sorted(backends)
    outcomes: Dict[str, object] = {}

    def query(tag: str):
        try:
            return list(backends[tag].installed())
        except BackendQueryError as e:
            return e
        except Exception as e:
            return BackendQueryError(tag, str(e) or type(e).__name__)

    if parallel and len(tags) > 1:
        with ThreadPoolExecutor(max_workers=len(tags)) as executor:
            futures = {tag: executor.submit(query, tag) for tag in tags}
            for tag in tags:
                outcomes[tag] = futures[tag].result()
    else:
        for tag in tags:
            outcomes[tag] = query(tag)

    snapshots = {}
    errors = []
    for tag in tags:
        outcome = outcomes[tag]
        if isinstance(outcome, BackendQueryError):
            logger.info(f"Skipping backend '{tag}': {outcome.reason}")
            errors.append(outcome)
        else:
            logger.debug(f"{tag}: {len(outcome)} installed package(s)")
            snapshots[tag] = outcome
    return snapshots, errors


class Reconciler:
    """Turns a GroupStore and installed snapshots into a Plan.

    Usage:
        reconciler = Reconciler(store)
        plan = reconciler.plan(registry.active(config), parallel=config.parallel_queries)
        for action in plan.actions:
            print(action)
    """

    def __init__(self, store: GroupStore):
        self.store = store

    def compute(self, snapshots: Mapping[str, Snapshot],
                active: Iterable[str] = None,
                query_errors: Iterable[BackendQueryError] = ()) -> Plan:
        """Compute the plan from snapshots already collected.

        Pure function of the store and the snapshots.

        Args:
            snapshots: tag -> installed packages for each backend queried successfully
            active: Tags active this run (default: the snapshot keys). Tags
                that are active but failed their query belong here too, so
                that their declarations are not reported as inactive.
            query_errors: Query failures, copied into the plan
        """
        query_errors = list(query_errors)
        active_tags = set(active) if active is not None else set(snapshots)
        active_tags |= set(snapshots)

        plan = Plan(query_errors=query_errors, backends=sorted(snapshots))

        for group in self.store.groups():
            for backend in group.backends():
                if backend not in active_tags and group.packages(backend):
                    warning = ConfigurationWarning(
                        group=group.name,
                        backend=backend,
                        packages=tuple(sorted(group.packages(backend))),
                    )
                    logger.info(str(warning))
                    plan.warnings.append(warning)

        for tag in sorted(snapshots):
            to_install, to_remove = diff_backend(self.store.desired_set(tag), snapshots[tag])
            plan.actions.extend(Action.install(tag, p) for p in to_install)
            plan.actions.extend(Action.remove(tag, p) for p in to_remove)

        return plan

    def plan(self, backends: Mapping[str, Backend], parallel: bool = True,
             active: Iterable[str] = None) -> Plan:
        """Query the backends and compute the plan.

        Args:
            backends: Backends to query, by tag
            parallel: Query backends concurrently
            active: Tags not to warn about (default: the queried tags).
                Used when a --backend filter hides usable backends.
        """
        snapshots, errors = collect_snapshots(backends, parallel=parallel)
        active = set(backends) | set(active or ())
        return self.compute(snapshots, active=active, query_errors=errors)

    def unmanaged(self, backends: Mapping[str, Backend], parallel: bool = True,
                  active: Iterable[str] = None) -> Plan:
        """Installed explicit packages that no group declares."""
        return self.plan(backends, parallel=parallel, active=active).filtered([ActionKind.REMOVE])

    def missing(self, backends: Mapping[str, Backend], parallel: bool = True,
                active: Iterable[str] = None) -> Plan:
        """Declared packages that are not installed."""
        return self.plan(backends, parallel=parallel, active=active).filtered([ActionKind.INSTALL])
