"""Flatpak backend."""

from typing import List

from ..backend import InstalledPackage, Origin, Repo
from .common import CommandBackend


class FlatpakBackend(CommandBackend):
    """Flatpak applications (explicit) and runtimes (dependencies).

    Args:
        system: Manage the system installation instead of the user one
    """

    tag = "flatpak"
    binary = "flatpak"

    def __init__(self, system: bool = False, noconfirm: bool = False):
        super().__init__(noconfirm=noconfirm)
        self.system = system
        self.needs_root = system

    @property
    def _scope(self) -> str:
        return '--system' if self.system else '--user'

    def query(self) -> List[InstalledPackage]:
        apps = self.run_query(['flatpak', 'list', self._scope, '--app', '--columns=application'])
        runtimes = self.run_query(['flatpak', 'list', self._scope, '--runtime', '--columns=application'])
        result = [InstalledPackage(a, Origin.EXPLICIT, Repo.FOREIGN) for a in apps]
        app_ids = set(apps)
        result.extend(
            InstalledPackage(r, Origin.DEPENDENCY, Repo.FOREIGN)
            for r in runtimes if r not in app_ids
        )
        return result

    def install_command(self, packages: List[str]) -> List[str]:
        cmd = ['flatpak', 'install', self._scope]
        if self.noconfirm:
            cmd.append('--noninteractive')
        return self.privileged(cmd + packages)

    def remove_command(self, packages: List[str]) -> List[str]:
        cmd = ['flatpak', 'uninstall', self._scope]
        if self.noconfirm:
            cmd.append('--noninteractive')
        return self.privileged(cmd + packages)
