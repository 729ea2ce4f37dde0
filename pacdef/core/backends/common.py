"""Shared plumbing for adapters driving a package manager command."""

import logging
import os
import shutil
import signal
import subprocess
from typing import Iterable, List, Sequence, Set, Tuple

from ..backend import Backend, InstalledPackage, MutationResult
from ..errors import BackendMutationError, BackendQueryError

logger = logging.getLogger(__name__)

# Lines of stderr kept as failure detail
DETAIL_LINES = 5


def which(cmd: str) -> bool:
    return shutil.which(cmd) is not None


def is_root() -> bool:
    return os.geteuid() == 0


def run_capture(cmd: Sequence[str], timeout: int = 300) -> Tuple[int, str, str]:
    """Run a command and capture its output.

    Returns:
        (returncode, stdout, stderr); 127 if the command does not exist
    """
    logger.debug(f"Running: {' '.join(cmd)}")
    try:
        p = subprocess.run(list(cmd), stdout=subprocess.PIPE, stderr=subprocess.PIPE,
                           text=True, timeout=timeout)
        return p.returncode, p.stdout, p.stderr
    except FileNotFoundError:
        return 127, "", f"Command not found: {cmd[0]}"
    except subprocess.TimeoutExpired:
        return 124, "", f"Timed out after {timeout}s: {' '.join(cmd)}"


def _ignore_sigint():
    signal.signal(signal.SIGINT, signal.SIG_IGN)


def run_mutation(cmd: Sequence[str]) -> Tuple[int, str]:
    """Run a command that changes the system; its stdout goes to the terminal.

    The child ignores SIGINT so a Ctrl+C on the terminal cannot cancel a
    package manager transaction halfway. There is no timeout for the same
    reason. The child stays in the foreground process group, sudo and the
    package manager prompts need the terminal.

    Returns:
        (returncode, stderr); 127 if the command does not exist
    """
    logger.debug(f"Running: {' '.join(cmd)}")
    try:
        p = subprocess.run(list(cmd), stderr=subprocess.PIPE, text=True,
                           preexec_fn=_ignore_sigint)
    except FileNotFoundError:
        return 127, f"Command not found: {cmd[0]}"
    return p.returncode, p.stderr or ""


def lines(output: str) -> List[str]:
    return [x.strip() for x in output.splitlines() if x.strip()]


def tail(text: str, count: int = DETAIL_LINES) -> str:
    kept = lines(text)[-count:]
    return "\n".join(kept)


class CommandBackend(Backend):
    """Backend driving a package manager binary.

    Subclasses provide query() and the install/remove command lines.
    install() skips packages that are already installed and remove() skips
    absent ones, so both are no-ops when there is nothing to change.

    Args:
        noconfirm: Pass the package manager's non-interactive switch
    """

    binary: str = ""
    needs_root: bool = True

    def __init__(self, noconfirm: bool = False):
        self.noconfirm = noconfirm

    def is_available(self) -> bool:
        return which(self.binary)

    def query(self) -> List[InstalledPackage]:
        raise NotImplementedError

    def install_command(self, packages: List[str]) -> List[str]:
        raise NotImplementedError

    def remove_command(self, packages: List[str]) -> List[str]:
        raise NotImplementedError

    def installed(self) -> List[InstalledPackage]:
        return self.query()

    def run_query(self, cmd: Sequence[str]) -> List[str]:
        """Run a read-only command, return its non-empty output lines."""
        rc, out, err = run_capture(cmd)
        if rc != 0:
            raise BackendQueryError(self.tag, f"'{' '.join(cmd)}' failed ({rc}): {tail(err) or 'no output'}")
        return lines(out)

    def privileged(self, cmd: List[str]) -> List[str]:
        if self.needs_root and not is_root():
            return ['sudo'] + cmd
        return cmd

    def _installed_ids(self, kind: str) -> Set[str]:
        try:
            return {p.id for p in self.installed()}
        except BackendQueryError as e:
            raise BackendMutationError(self.tag, kind, {}, f"cannot read installed packages: {e.reason}") from e

    def install(self, packages: Iterable[str]) -> MutationResult:
        wanted = sorted(set(packages))
        if not wanted:
            return MutationResult(self.tag, 'install')
        present = self._installed_ids('install')
        todo = [p for p in wanted if p not in present]
        if not todo:
            return MutationResult(self.tag, 'install')
        self._mutate('install', self.install_command(todo), todo)
        return MutationResult(self.tag, 'install', tuple(todo))

    def remove(self, packages: Iterable[str]) -> MutationResult:
        wanted = sorted(set(packages))
        if not wanted:
            return MutationResult(self.tag, 'remove')
        present = self._installed_ids('remove')
        todo = [p for p in wanted if p in present]
        if not todo:
            return MutationResult(self.tag, 'remove')
        self._mutate('remove', self.remove_command(todo), todo)
        return MutationResult(self.tag, 'remove', tuple(todo))

    def _mutate(self, kind: str, cmd: List[str], packages: List[str]):
        """Run a mutating command, see run_mutation()."""
        rc, err = run_mutation(cmd)
        if rc != 0:
            detail = tail(err) or f"exit status {rc}"
            raise BackendMutationError(
                self.tag, kind, {pkg: detail for pkg in packages},
                f"'{' '.join(cmd[:3])} ...' exited with status {rc}",
            )
        if err:
            logger.debug(f"{self.tag} stderr: {err.strip()}")
