"""Backend contract and registry.

The engine only talks to package managers through the Backend interface.
Adapters are leaves: they hold no state shared with other adapters and are
looked up by tag in a BackendRegistry built once at startup.

Contract every adapter must honour:
    - installed() distinguishes Explicit from Dependency origin reliably
    - install()/remove() with an empty set is a no-op that succeeds
    - installing an installed package or removing an absent one succeeds
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterable, List, Optional, Tuple

logger = logging.getLogger(__name__)


class Origin(Enum):
    """Why a package is installed."""
    EXPLICIT = "explicit"      # requested by the user
    DEPENDENCY = "dependency"  # pulled in by another package


class Repo(Enum):
    """Where an installed package comes from."""
    NATIVE = "native"    # distribution repositories
    FOREIGN = "foreign"  # AUR, local builds, third-party remotes


@dataclass(frozen=True)
class InstalledPackage:
    """One package as reported by a backend."""
    id: str
    origin: Origin = Origin.EXPLICIT
    repo: Repo = Repo.NATIVE

    @property
    def is_explicit(self) -> bool:
        return self.origin is Origin.EXPLICIT


@dataclass(frozen=True)
class MutationResult:
    """Successful outcome of an install or remove batch."""
    backend: str
    kind: str
    packages: Tuple[str, ...] = field(default_factory=tuple)


class Backend(ABC):
    """Abstract base class for package manager adapters.

    Subclasses set `tag` and implement installed(), install() and remove().

    Example:
        >>> backend = FlatpakBackend()
        >>> if backend.is_available():
        ...     explicit = [p.id for p in backend.installed() if p.is_explicit]
    """

    tag: str = ""

    def id(self) -> str:
        """Stable short tag of this backend, used as group file section name."""
        return self.tag

    def is_available(self) -> bool:
        """Check if the package manager can be used on this host."""
        return True

    @abstractmethod
    def installed(self) -> List[InstalledPackage]:
        """Report installed packages.

        Raises:
            BackendQueryError: the package database could not be read
        """

    @abstractmethod
    def install(self, packages: Iterable[str]) -> MutationResult:
        """Install packages in one batch.

        Raises:
            BackendMutationError: with per-package detail where available
        """

    @abstractmethod
    def remove(self, packages: Iterable[str]) -> MutationResult:
        """Remove packages in one batch.

        Raises:
            BackendMutationError: with per-package detail where available
        """

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.tag}>"


class BackendRegistry:
    """Adapters known to this build, keyed by tag.

    known_tags() is what group files may reference. active() narrows it to
    the adapters that are enabled by configuration and usable on the host.
    """

    def __init__(self, backends: Iterable[Backend] = ()):
        self._backends: Dict[str, Backend] = {}
        for backend in backends:
            self.register(backend)

    def register(self, backend: Backend):
        tag = backend.id()
        if not tag:
            raise ValueError(f"{type(backend).__name__} has no tag")
        if tag in self._backends:
            raise ValueError(f"backend '{tag}' registered twice")
        self._backends[tag] = backend

    def known_tags(self) -> List[str]:
        return sorted(self._backends)

    def get(self, tag: str) -> Optional[Backend]:
        return self._backends.get(tag)

    def active(self, config=None, only: Iterable[str] = None) -> Dict[str, Backend]:
        """Resolve the backends that take part in this run.

        Args:
            config: Config, filters through Config.backend_enabled()
            only: Restrict to these tags (the --backend filter)

        Returns:
            tag -> Backend, sorted by tag
        """
        only = set(only) if only else None
        result = {}
        for tag in sorted(self._backends):
            backend = self._backends[tag]
            if only is not None and tag not in only:
                continue
            if config is not None and not config.backend_enabled(tag):
                logger.debug(f"Backend {tag} disabled by configuration")
                continue
            if not backend.is_available():
                logger.debug(f"Backend {tag} not available on this host")
                continue
            result[tag] = backend
        return result
