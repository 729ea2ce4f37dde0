"""Package manager adapters shipped with pacdef."""

from ..backend import BackendRegistry
from .apt import AptBackend
from .dnf import DnfBackend
from .flatpak import FlatpakBackend
from .pacman import PacmanBackend
from .rustup import RustupBackend
from .urpm import UrpmBackend


def create_registry(config=None, noconfirm: bool = False) -> BackendRegistry:
    """Build the registry of every compiled-in adapter.

    Args:
        config: Config supplying adapter settings (AUR helper...)
        noconfirm: Pass non-interactive switches to the package managers
    """
    if config is not None:
        pacman = PacmanBackend(aur_helper=config.aur_helper,
                               aur_rm_args=config.aur_rm_args,
                               noconfirm=noconfirm)
    else:
        pacman = PacmanBackend(noconfirm=noconfirm)

    return BackendRegistry([
        AptBackend(noconfirm=noconfirm),
        DnfBackend(noconfirm=noconfirm),
        FlatpakBackend(noconfirm=noconfirm),
        pacman,
        RustupBackend(noconfirm=noconfirm),
        UrpmBackend(noconfirm=noconfirm),
    ])


__all__ = [
    'create_registry',
    'AptBackend', 'DnfBackend', 'FlatpakBackend', 'PacmanBackend',
    'RustupBackend', 'UrpmBackend',
]
