"""
pacdef - Declarative multi-backend package manager for Linux

Desired packages are listed in plain text group files. pacdef compares them
with what each system package manager reports as installed and proposes the
install/remove actions needed to converge:
- One group file per bundle of packages, sections per backend
- pacman, apt, dnf, flatpak, rustup and urpm backends
- Review before apply, failures isolated per backend
"""

__version__ = "1.6.0"
__author__ = "pacdef contributors"
