"""Fedora/RHEL dnf backend."""

from typing import List

from ..backend import InstalledPackage, Origin
from .common import CommandBackend


class DnfBackend(CommandBackend):
    """rpm packages managed by dnf; explicit means user-installed for dnf."""

    tag = "dnf"
    binary = "dnf"

    def query(self) -> List[InstalledPackage]:
        names = set(self.run_query(['rpm', '-qa', '--qf', '%{NAME}\n']))
        names.discard('gpg-pubkey')
        user = set(self.run_query(['dnf', 'repoquery', '--userinstalled', '--qf', '%{name}']))
        return [
            InstalledPackage(name, Origin.EXPLICIT if name in user else Origin.DEPENDENCY)
            for name in sorted(names)
        ]

    def install_command(self, packages: List[str]) -> List[str]:
        cmd = ['dnf', 'install']
        if self.noconfirm:
            cmd.append('--assumeyes')
        return self.privileged(cmd + packages)

    def remove_command(self, packages: List[str]) -> List[str]:
        cmd = ['dnf', 'remove']
        if self.noconfirm:
            cmd.append('--assumeyes')
        return self.privileged(cmd + packages)
