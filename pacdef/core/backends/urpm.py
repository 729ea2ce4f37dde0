"""Mageia backend (urpm / urpmi).

Installed packages are read from the rpm database with the python3-rpm
bindings. Packages pulled in as dependencies are listed by urpmi/urpm in
installed-through-deps.list; everything else counts as explicit.
"""

import logging
from pathlib import Path
from typing import List, Set

from ..backend import InstalledPackage, Origin
from ..errors import BackendQueryError
from .common import CommandBackend, which

try:
    import rpm
    HAS_RPM = True
except ImportError:
    HAS_RPM = False

logger = logging.getLogger(__name__)

UNREQUESTED_FILE = Path('var/lib/rpm/installed-through-deps.list')


def read_unrequested(path: Path) -> Set[str]:
    """Read the list of packages installed as dependencies.

    Lines may carry a trailing reason ("name\\t(required by foo)").
    """
    unrequested = set()
    if not path.exists():
        return unrequested
    for line in path.read_text().splitlines():
        line = line.strip()
        if line and not line.startswith('#'):
            unrequested.add(line.split()[0])
    return unrequested


class UrpmBackend(CommandBackend):
    """rpm packages installed through urpm (or urpmi as a fallback).

    Args:
        root: Installation root
    """

    tag = "urpm"
    binary = "urpm"

    def __init__(self, root: str = "/", noconfirm: bool = False):
        super().__init__(noconfirm=noconfirm)
        self.root = root
        self.binary = "urpm" if which("urpm") else "urpmi"

    def is_available(self) -> bool:
        return HAS_RPM and which(self.binary)

    def query(self) -> List[InstalledPackage]:
        if not HAS_RPM:
            raise BackendQueryError(self.tag, "python3-rpm is not installed")
        try:
            ts = rpm.TransactionSet(self.root)
            names = {hdr[rpm.RPMTAG_NAME] for hdr in ts.dbMatch()}
        except rpm.error as e:
            raise BackendQueryError(self.tag, f"cannot read rpm database: {e}") from e
        names.discard('gpg-pubkey')

        try:
            unrequested = read_unrequested(Path(self.root) / UNREQUESTED_FILE)
        except OSError as e:
            raise BackendQueryError(self.tag, f"cannot read {UNREQUESTED_FILE}: {e}") from e

        return [
            InstalledPackage(name, Origin.DEPENDENCY if name in unrequested else Origin.EXPLICIT)
            for name in sorted(names)
        ]

    def install_command(self, packages: List[str]) -> List[str]:
        cmd = ['urpm', 'install'] if self.binary == "urpm" else ['urpmi']
        if self.noconfirm:
            cmd.append('--auto')
        return self.privileged(cmd + packages)

    def remove_command(self, packages: List[str]) -> List[str]:
        cmd = ['urpm', 'erase'] if self.binary == "urpm" else ['urpme']
        if self.noconfirm:
            cmd.append('--auto')
        return self.privileged(cmd + packages)
