"""rustup backend: toolchains and components.

Package ids:
    toolchain/<toolchain>                e.g. toolchain/stable
    component/<toolchain>/<component>    e.g. component/stable/clippy
"""

import logging
from typing import Dict, Iterable, List, Tuple

from ..backend import InstalledPackage, MutationResult
from ..errors import BackendMutationError
from .common import CommandBackend, run_mutation, tail

logger = logging.getLogger(__name__)

# Components whose installed name is "<component>-<target>" with a one-word component
_SINGLE_WORD_COMPONENTS = {'cargo', 'rustfmt', 'clippy', 'miri', 'rls', 'rustc'}


def parse_component(line: str) -> str:
    """Strip the target triple from an installed component name."""
    parts = line.split('-', 2)
    if parts[0] in _SINGLE_WORD_COMPONENTS or len(parts) == 1:
        return parts[0]
    return f"{parts[0]}-{parts[1]}"


def split_id(package: str) -> Tuple[str, List[str]]:
    """Split a package id into its kind and path parts."""
    kind, _, rest = package.partition('/')
    return kind, rest.split('/') if rest else []


class RustupBackend(CommandBackend):
    """Toolchains and components; rustup has no notion of dependencies."""

    tag = "rustup"
    binary = "rustup"
    needs_root = False

    def query(self) -> List[InstalledPackage]:
        toolchains = [line.split('-', 1)[0] for line in self.run_query(['rustup', 'toolchain', 'list'])
                      if not line.startswith('no installed toolchains')]
        result = [InstalledPackage(f"toolchain/{t}") for t in toolchains]
        for toolchain in toolchains:
            installed = self.run_query(
                ['rustup', 'component', 'list', '--installed', '--toolchain', toolchain])
            result.extend(
                InstalledPackage(f"component/{toolchain}/{parse_component(c)}") for c in installed
            )
        return result

    def install(self, packages: Iterable[str]) -> MutationResult:
        # Toolchains first, their components need them
        wanted = sorted(set(packages), key=lambda p: (split_id(p)[0] != 'toolchain', p))
        if not wanted:
            return MutationResult(self.tag, 'install')
        present = self._installed_ids('install')
        todo = [p for p in wanted if p not in present]
        return self._run_each('install', todo)

    def remove(self, packages: Iterable[str]) -> MutationResult:
        # Components first, removing a toolchain removes its components
        wanted = sorted(set(packages), key=lambda p: (split_id(p)[0] == 'toolchain', p))
        if not wanted:
            return MutationResult(self.tag, 'remove')
        present = self._installed_ids('remove')
        todo = [p for p in wanted if p in present]
        return self._run_each('remove', todo)

    def _command(self, kind: str, package: str) -> List[str]:
        what, parts = split_id(package)
        if what == 'toolchain' and len(parts) == 1:
            verb = 'install' if kind == 'install' else 'uninstall'
            return ['rustup', 'toolchain', verb, parts[0]]
        if what == 'component' and len(parts) == 2:
            verb = 'add' if kind == 'install' else 'remove'
            return ['rustup', 'component', verb, '--toolchain', parts[0], parts[1]]
        raise ValueError(f"invalid rustup package id '{package}'")

    def _run_each(self, kind: str, packages: List[str]) -> MutationResult:
        failures: Dict[str, str] = {}
        done = []
        for package in packages:
            try:
                cmd = self._command(kind, package)
            except ValueError as e:
                failures[package] = str(e)
                continue
            rc, err = run_mutation(cmd)
            if rc != 0:
                failures[package] = tail(err) or f"exit status {rc}"
                logger.debug(f"rustup {kind} {package} failed: {failures[package]}")
            else:
                done.append(package)
        if failures:
            raise BackendMutationError(self.tag, kind, failures, done=tuple(done))
        return MutationResult(self.tag, kind, tuple(done))
