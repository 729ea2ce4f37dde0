"""Debian/Ubuntu apt backend."""

from typing import List

from ..backend import InstalledPackage, Origin
from .common import CommandBackend

# Only fully installed packages, not config-files leftovers
_INSTALLED_STATUS = "install ok installed"


class AptBackend(CommandBackend):
    """dpkg/apt packages; explicit means `apt-mark showmanual`."""

    tag = "apt"
    binary = "apt-get"

    def query(self) -> List[InstalledPackage]:
        rows = self.run_query(['dpkg-query', '-W', '-f=${Package}\t${Status}\n'])
        manual = set(self.run_query(['apt-mark', 'showmanual']))
        result = []
        for row in rows:
            name, _, status = row.partition('\t')
            if status.strip() != _INSTALLED_STATUS:
                continue
            origin = Origin.EXPLICIT if name in manual else Origin.DEPENDENCY
            result.append(InstalledPackage(name, origin))
        return result

    def install_command(self, packages: List[str]) -> List[str]:
        cmd = ['apt-get', 'install']
        if self.noconfirm:
            cmd.append('--yes')
        return self.privileged(cmd + packages)

    def remove_command(self, packages: List[str]) -> List[str]:
        cmd = ['apt-get', 'remove']
        if self.noconfirm:
            cmd.append('--yes')
        return self.privileged(cmd + packages)
