"""Arch Linux pacman backend (with optional AUR helper)."""

from typing import List, Sequence

from ..backend import InstalledPackage, Origin, Repo
from ..config import DEFAULT_AUR_HELPER, DEFAULT_AUR_RM_ARGS
from .common import CommandBackend, lines, run_capture, which


class PacmanBackend(CommandBackend):
    """pacman packages, installed through an AUR helper when one is configured.

    Explicit packages come from `pacman -Qqe`, foreign (AUR, local builds)
    from `pacman -Qqm`. AUR helpers escalate privileges themselves and must
    not be started as root through sudo.
    """

    tag = "pacman"
    binary = "pacman"

    def __init__(self, aur_helper: str = DEFAULT_AUR_HELPER,
                 aur_rm_args: Sequence[str] = DEFAULT_AUR_RM_ARGS,
                 noconfirm: bool = False):
        super().__init__(noconfirm=noconfirm)
        self.aur_helper = aur_helper if which(aur_helper) else "pacman"
        self.aur_rm_args = list(aur_rm_args)
        self.needs_root = self.aur_helper == "pacman"

    def query(self) -> List[InstalledPackage]:
        all_pkgs = self.run_query(['pacman', '-Qq'])
        explicit = set(self.run_query(['pacman', '-Qqe']))
        # -Qqm exits 1 when there are no foreign packages
        foreign = set(self._foreign())
        return [
            InstalledPackage(
                name,
                Origin.EXPLICIT if name in explicit else Origin.DEPENDENCY,
                Repo.FOREIGN if name in foreign else Repo.NATIVE,
            )
            for name in all_pkgs
        ]

    def _foreign(self) -> List[str]:
        rc, out, _ = run_capture(['pacman', '-Qqm'])
        return lines(out) if rc in (0, 1) else []

    def install_command(self, packages: List[str]) -> List[str]:
        cmd = [self.aur_helper, '-S', '--needed']
        if self.noconfirm:
            cmd.append('--noconfirm')
        return self.privileged(cmd + packages)

    def remove_command(self, packages: List[str]) -> List[str]:
        cmd = [self.aur_helper] + self.aur_rm_args
        if self.noconfirm:
            cmd.append('--noconfirm')
        return self.privileged(cmd + packages)
