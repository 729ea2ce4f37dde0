"""
Group Store

Loads group files and merges them into the desired package set.

Group file grammar:
    # comment
    [backend-tag]
    package-id
    package-id   # trailing comment
    [other-backend-tag]
    package-id

Group names are derived from the path relative to the group directory,
without the file extension, using '/' between directory levels:
    <group_dir>/base             -> base
    <group_dir>/desktop/kde.txt  -> desktop/kde

Hidden files and editor backups (name ending in '~') are skipped.
Symlinks are followed (this is how 'groups import' works).
"""

import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, FrozenSet, Iterable, List, Optional, Tuple

from .errors import GroupError, ParseError

logger = logging.getLogger(__name__)

_SECTION_RE = re.compile(r'^\[\s*([^\[\]\s]+)\s*\]$')
# Characters that cannot be passed through to a package manager invocation
_INVALID_ID_RE = re.compile(r'[\s\x00-\x1f\x7f]')


@dataclass(frozen=True)
class Group:
    """A named set of packages per backend, read from one group file."""
    name: str
    sections: Dict[str, FrozenSet[str]] = field(default_factory=dict)
    paths: Tuple[Path, ...] = ()

    def packages(self, backend: str) -> FrozenSet[str]:
        """Packages this group declares for a backend."""
        return self.sections.get(backend, frozenset())

    def backends(self) -> List[str]:
        return sorted(self.sections)

    def is_empty(self) -> bool:
        return not any(self.sections.values())

    def merged(self, other: 'Group') -> 'Group':
        """Union of two groups with the same name."""
        sections = {k: frozenset(v) for k, v in self.sections.items()}
        for backend, pkgs in other.sections.items():
            sections[backend] = sections.get(backend, frozenset()) | pkgs
        paths = self.paths + tuple(p for p in other.paths if p not in self.paths)
        return Group(name=self.name, sections=sections, paths=paths)

    def render(self) -> str:
        """Render the group back to group file syntax (sorted)."""
        blocks = []
        for backend in self.backends():
            lines = [f"[{backend}]"] + sorted(self.sections[backend])
            blocks.append("\n".join(lines))
        return "\n\n".join(blocks)


def parse_group_text(text: str, name: str, known_backends: Iterable[str],
                     path: Path = None) -> Group:
    """Parse group file contents.

    Args:
        text: File contents
        name: Group name
        known_backends: Backend tags that may appear as section headers
        path: Source file, used in error messages

    Returns:
        Group with duplicate lines collapsed

    Raises:
        ParseError: unknown or malformed section header, package outside of
            a section, package id with whitespace or control characters
    """
    known = set(known_backends)
    source = Path(path) if path is not None else Path(name)
    sections: Dict[str, set] = {}
    current: Optional[str] = None

    for lineno, raw in enumerate(text.splitlines(), start=1):
        line = raw.split('#', 1)[0].strip()
        if not line:
            continue

        if line.startswith('['):
            match = _SECTION_RE.match(line)
            if not match:
                raise ParseError(source, lineno, f"malformed section header '{line}'")
            tag = match.group(1)
            if tag not in known:
                raise ParseError(source, lineno, f"unknown backend '{tag}'")
            current = tag
            sections.setdefault(current, set())
            continue

        if current is None:
            raise ParseError(source, lineno, f"package '{line}' outside of a backend section")

        if _INVALID_ID_RE.search(line):
            raise ParseError(
                source, lineno,
                f"invalid package identifier {line!r} (whitespace or control character)"
            )

        sections[current].add(line)

    return Group(
        name=name,
        sections={tag: frozenset(pkgs) for tag, pkgs in sections.items()},
        paths=(source,),
    )


def group_name_for(path: Path, root: Path = None) -> str:
    """Derive the group name of a file."""
    path = Path(path)
    if root is not None:
        try:
            rel = path.relative_to(root)
        except ValueError:
            rel = Path(path.name)
    else:
        rel = Path(path.name)
    rel = rel.with_suffix('') if rel.suffix else rel
    return rel.as_posix()


def discover_group_files(root: Path) -> List[Path]:
    """List group files under root, recursively, in a stable order.

    Symlinked directories are followed once; loops are skipped.
    """
    root = Path(root)
    if not root.is_dir():
        return []

    files = []
    seen_dirs = set()
    for dirpath, dirnames, filenames in os.walk(root, followlinks=True):
        real = os.path.realpath(dirpath)
        if real in seen_dirs:
            dirnames[:] = []
            continue
        seen_dirs.add(real)

        dirnames[:] = sorted(d for d in dirnames if not d.startswith('.'))
        for name in sorted(filenames):
            if name.startswith('.') or name.endswith('~'):
                continue
            files.append(Path(dirpath) / name)
    return files


class GroupStore:
    """Loaded groups and the desired set derived from them.

    Usage:
        store = GroupStore.from_directory(config.group_dir, registry.known_tags())
        for group in store.groups():
            print(group.name)
        store.desired_set('pacman')
    """

    def __init__(self, groups: Iterable[Group] = ()):
        self._groups: Dict[str, Group] = {}
        for group in groups:
            self._add(group)

    def _add(self, group: Group):
        existing = self._groups.get(group.name)
        if existing is None:
            self._groups[group.name] = group
        else:
            logger.debug(f"Merging group '{group.name}' from {', '.join(map(str, group.paths))}")
            self._groups[group.name] = existing.merged(group)

    @classmethod
    def load(cls, paths: Iterable[Path], known_backends: Iterable[str],
             root: Path = None) -> 'GroupStore':
        """Load a set of group files.

        The whole load fails on the first error; a partially loaded store
        is never returned.

        Args:
            paths: Group files. The same file given twice is read once.
            known_backends: Valid section tags
            root: Directory the group names are relative to

        Raises:
            ParseError: see parse_group_text(); also I/O failures
        """
        known = frozenset(known_backends)
        store = cls()
        seen = set()

        for path in paths:
            path = Path(path)
            key = os.path.realpath(path)
            if key in seen:
                continue
            seen.add(key)

            try:
                text = path.read_text(encoding='utf-8')
            except UnicodeDecodeError as e:
                raise ParseError(path, None, f"not valid UTF-8: {e}") from e
            except OSError as e:
                raise ParseError(path, None, f"cannot read file: {e.strerror or e}") from e

            group = parse_group_text(text, group_name_for(path, root), known, path)
            store._add(group)

        logger.debug(f"Loaded {len(store._groups)} group(s)")
        return store

    @classmethod
    def from_directory(cls, root: Path, known_backends: Iterable[str]) -> 'GroupStore':
        """Load every group file under a directory."""
        root = Path(root)
        if not root.exists():
            logger.warning(f"Group directory {root} does not exist")
        return cls.load(discover_group_files(root), known_backends, root=root)

    def groups(self) -> List[Group]:
        """Groups in discovery order."""
        return list(self._groups.values())

    def get(self, name: str) -> Optional[Group]:
        return self._groups.get(name)

    def __len__(self) -> int:
        return len(self._groups)

    def __contains__(self, name: str) -> bool:
        return name in self._groups

    def backends(self) -> List[str]:
        """Backend tags declared by at least one group."""
        tags = set()
        for group in self._groups.values():
            tags.update(group.sections)
        return sorted(tags)

    def desired_set(self, backend: str) -> FrozenSet[str]:
        """Union of packages declared for a backend across all groups."""
        result = set()
        for group in self._groups.values():
            result |= group.packages(backend)
        return frozenset(result)

    def declaring_groups(self, backend: str, package: str) -> List[str]:
        """Names of the groups declaring a package."""
        return [g.name for g in self._groups.values() if package in g.packages(backend)]

    def search(self, pattern: str) -> List[Tuple[str, str, str]]:
        """Find declared packages whose name matches a regular expression.

        Returns:
            Sorted list of (group, backend, package)

        Raises:
            re.error: invalid pattern
        """
        regex = re.compile(pattern)
        hits = []
        for group in self._groups.values():
            for backend, pkgs in group.sections.items():
                for pkg in pkgs:
                    if regex.search(pkg):
                        hits.append((group.name, backend, pkg))
        return sorted(hits)


# =============================================================================
# Group file management
# =============================================================================

def find_group_file(root: Path, name: str) -> Optional[Path]:
    """Locate the file of a group by name, without parsing any file."""
    root = Path(root)
    direct = root / name
    if direct.is_file():
        return direct
    for path in discover_group_files(root):
        if group_name_for(path, root) == name:
            return path
    return None


def _check_name(name: str):
    parts = Path(name).parts
    if not name or Path(name).is_absolute() or '..' in parts or any(p.startswith('.') for p in parts):
        raise GroupError(f"invalid group name '{name}'")


def resolve_group_files(root: Path, names: Iterable[str]) -> List[Path]:
    """Map group names to their files; all must exist.

    Raises:
        GroupError: a group was not found
    """
    paths = []
    for name in names:
        path = find_group_file(root, name)
        if path is None:
            raise GroupError(f"group '{name}' not found in {root}")
        paths.append(path)
    return paths


def create_group_files(root: Path, names: Iterable[str]) -> List[Path]:
    """Create empty group files.

    Nothing is created unless every group can be created.

    Raises:
        GroupError: invalid name, or the group already exists
    """
    root = Path(root)
    names = list(names)
    paths = []
    for name in names:
        _check_name(name)
        existing = find_group_file(root, name)
        if existing is not None:
            raise GroupError(f"group '{name}' already exists under {existing}")
        paths.append(root / name)

    for path in paths:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.touch(exist_ok=False)
        logger.info(f"Created group file {path}")
    return paths


def remove_group_files(root: Path, names: Iterable[str]) -> List[Path]:
    """Delete group files. Imported groups lose the symlink only.

    Nothing is removed unless every group exists.
    """
    paths = resolve_group_files(root, names)
    for path in paths:
        path.unlink()
        logger.info(f"Removed group file {path}")
    return paths


def import_group_files(root: Path, files: Iterable[Path]) -> Tuple[List[Path], List[Tuple[Path, str]]]:
    """Symlink existing files into the group directory.

    Missing files and names already taken are skipped, not fatal.

    Returns:
        (created links, [(file, reason) skipped])
    """
    root = Path(root)
    root.mkdir(parents=True, exist_ok=True)
    created, skipped = [], []

    for file in files:
        target = Path(file).expanduser().absolute()
        if not target.is_file():
            skipped.append((target, "file does not exist"))
            continue
        link = root / target.name
        if link.exists() or link.is_symlink():
            skipped.append((target, f"group {target.name} already exists"))
            continue
        link.symlink_to(target)
        logger.info(f"Imported {target} as {link}")
        created.append(link)

    return created, skipped
