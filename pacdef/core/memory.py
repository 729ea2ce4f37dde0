"""In-memory backend.

Implements the Backend contract over a dict. Used by the test suite; it
never touches the system.
"""

import logging
from typing import Dict, Iterable, List, Optional, Set

from .backend import Backend, InstalledPackage, MutationResult, Origin, Repo
from .errors import BackendMutationError, BackendQueryError

logger = logging.getLogger(__name__)


class InMemoryBackend(Backend):
    """Backend whose package database is a dict.

    Args:
        tag: Backend tag
        packages: package -> Origin (or InstalledPackage values)
        available: Result of is_available()
        query_error: If set, installed() raises BackendQueryError with it
        fail_packages: package -> detail; install/remove of these fails

    Attributes:
        calls: ('install'|'remove', tuple(packages)) for every call that
            reached the package database
    """

    def __init__(self, tag: str, packages: Dict[str, object] = None,
                 available: bool = True, query_error: Optional[str] = None,
                 fail_packages: Dict[str, str] = None):
        self.tag = tag
        self._db: Dict[str, InstalledPackage] = {}
        for name, value in (packages or {}).items():
            self._db[name] = _to_installed(name, value)
        self._available = available
        self.query_error = query_error
        self.fail_packages = dict(fail_packages or {})
        self.calls: List[tuple] = []

    def is_available(self) -> bool:
        return self._available

    def installed(self) -> List[InstalledPackage]:
        if self.query_error:
            raise BackendQueryError(self.tag, self.query_error)
        return [self._db[name] for name in sorted(self._db)]

    def install(self, packages: Iterable[str]) -> MutationResult:
        pkgs = tuple(sorted(set(packages)))
        if not pkgs:
            return MutationResult(self.tag, 'install')
        self.calls.append(('install', pkgs))
        self._check_failures('install', pkgs)
        for name in pkgs:
            if name not in self._db:
                self._db[name] = InstalledPackage(name, Origin.EXPLICIT, Repo.NATIVE)
            elif self._db[name].origin is Origin.DEPENDENCY:
                # Asking for a dependency explicitly promotes it
                self._db[name] = InstalledPackage(name, Origin.EXPLICIT, self._db[name].repo)
        return MutationResult(self.tag, 'install', pkgs)

    def remove(self, packages: Iterable[str]) -> MutationResult:
        pkgs = tuple(sorted(set(packages)))
        if not pkgs:
            return MutationResult(self.tag, 'remove')
        self.calls.append(('remove', pkgs))
        self._check_failures('remove', pkgs)
        for name in pkgs:
            self._db.pop(name, None)
        return MutationResult(self.tag, 'remove', pkgs)

    def _check_failures(self, kind: str, pkgs: tuple):
        failures = {p: self.fail_packages[p] for p in pkgs if p in self.fail_packages}
        if failures:
            raise BackendMutationError(self.tag, kind, failures)

    def names(self) -> Set[str]:
        return set(self._db)


def _to_installed(name: str, value) -> InstalledPackage:
    if isinstance(value, InstalledPackage):
        return value
    if isinstance(value, Origin):
        return InstalledPackage(name, value)
    if value is None:
        return InstalledPackage(name)
    raise TypeError(f"cannot build InstalledPackage from {value!r}")
