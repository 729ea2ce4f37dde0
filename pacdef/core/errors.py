"""Error taxonomy for pacdef.

ParseError and ConfigError are fatal and stop a run before any backend is
queried. BackendQueryError and BackendMutationError are collected per backend
and reported together at the end of a run. ConfigurationWarning is never
raised, it is a value carried in the plan.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Optional, Tuple


class PacdefError(Exception):
    """Base class for all pacdef errors."""


class ParseError(PacdefError):
    """Raised when a group file cannot be loaded."""

    def __init__(self, file: Path, line: Optional[int], reason: str):
        self.file = Path(file)
        self.line = line
        self.reason = reason
        location = f"{self.file}:{line}" if line is not None else str(self.file)
        super().__init__(f"{location}: {reason}")


class ConfigError(PacdefError):
    """Raised when the configuration file is invalid."""


class GroupError(PacdefError):
    """Raised by group management (new/remove/edit/import) operations."""


class BackendQueryError(PacdefError):
    """Raised when a backend cannot report its installed packages."""

    def __init__(self, backend: str, reason: str):
        self.backend = backend
        self.reason = reason
        super().__init__(f"{backend}: {reason}")


class BackendMutationError(PacdefError):
    """Raised when an install or remove batch fails.

    Args:
        backend: Backend tag
        kind: 'install' or 'remove'
        failures: package -> adapter-provided detail. Packages of the batch
            missing from this mapping are not known to have failed.
        reason: Overall message for the batch
        done: Packages of the batch that were changed before the failure
    """

    def __init__(self, backend: str, kind: str, failures: Dict[str, str],
                 reason: str = "", done: Tuple[str, ...] = ()):
        self.backend = backend
        self.kind = kind
        self.failures = dict(failures)
        self.done = tuple(done)
        self.reason = reason or f"{kind} failed for {len(self.failures)} package(s)"
        super().__init__(f"{backend}: {self.reason}")


@dataclass(frozen=True)
class ConfigurationWarning:
    """A group declares packages for a backend that is not active this run."""
    group: str
    backend: str
    packages: Tuple[str, ...] = field(default_factory=tuple)

    def __str__(self) -> str:
        return (f"group '{self.group}' declares {len(self.packages)} package(s) "
                f"for inactive backend '{self.backend}'")
