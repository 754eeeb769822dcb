from __future__ import annotations
import os
from typing import AbstractSet, Dict, FrozenSet, Iterable, List, Optional, Set

from .errors import GroupExists, GroupNotFound, ParseError, UnknownBackend
from .models import Group, Package


def strip_comment(line: str) -> str:
    """Cut ``line`` at the first ``#`` that is not preceded by a backslash."""
    i = 0
    while True:
        i = line.find("#", i)
        if i < 0:
            return line
        if i == 0 or line[i - 1] != "\\":
            return line[:i]
        i += 1


def parse_group_text(text: str, path: str = "") -> Dict[str, List[Package]]:
    """Parse one group file into ``{section: [packages]}``.

    Packages keep their first-seen order; duplicates inside a section are
    dropped. Sections without packages are kept (empty list).
    """
    sections: Dict[str, List[Package]] = {}
    seen: Dict[str, Set[Package]] = {}
    current: Optional[str] = None

    for line_no, raw in enumerate(text.splitlines(), start=1):
        stripped = raw.strip()
        if stripped.startswith("[") and "]" in stripped:
            current = stripped[1:stripped.index("]")].strip()
            sections.setdefault(current, [])
            seen.setdefault(current, set())
            continue

        token = strip_comment(raw).strip()
        if not token:
            continue
        if current is None:
            raise ParseError(ParseError.NO_ACTIVE_SECTION, path=path, line_no=line_no, line=raw)
        try:
            p = Package.parse(token)
        except ParseError as e:
            raise e.located(path, line_no) from None
        if p not in seen[current]:
            seen[current].add(p)
            sections[current].append(p)

    return sections


def group_from_text(name: str, text: str, path: str = "",
                    known_backends: Optional[AbstractSet[str]] = None) -> Group:
    parsed = parse_group_text(text, path)
    if known_backends is not None:
        for section in parsed:
            if section not in known_backends:
                raise UnknownBackend(section, path)
    return Group(name=name, sections={k: frozenset(v) for k, v in parsed.items()}, path=path)


def group_name_for(path: str) -> str:
    return os.path.splitext(os.path.basename(path))[0]


def load_group_file(path: str, known_backends: Optional[AbstractSet[str]] = None) -> Group:
    with open(path, "r", encoding="utf-8") as f:
        text = f.read()
    return group_from_text(group_name_for(path), text, path, known_backends)


def group_files(group_dir: str) -> List[str]:
    if not os.path.isdir(group_dir):
        return []
    out: List[str] = []
    for entry in sorted(os.listdir(group_dir)):
        if entry.startswith("."):
            continue
        p = os.path.join(group_dir, entry)
        if os.path.isfile(p):
            out.append(p)
    return out


def load_groups(group_dir: str, known_backends: Optional[AbstractSet[str]] = None) -> List[Group]:
    return [load_group_file(p, known_backends) for p in group_files(group_dir)]


class GroupStore:
    """All groups of one invocation plus the derived per-backend managed sets."""

    def __init__(self, groups: Iterable[Group] = ()):
        self._groups: FrozenSet[Group] = frozenset(groups)
        self._managed: Optional[Dict[str, FrozenSet[Package]]] = None

    @classmethod
    def from_groups(cls, groups: Iterable[Group]) -> GroupStore:
        return cls(groups)

    @property
    def groups(self) -> FrozenSet[Group]:
        return self._groups

    def with_group(self, group: Group) -> GroupStore:
        """Return a new store where ``group`` replaces any group of the same name."""
        kept = [g for g in self._groups if g.name != group.name]
        return GroupStore(kept + [group])

    def without_group(self, name: str) -> GroupStore:
        return GroupStore(g for g in self._groups if g.name != name)

    def _managed_map(self) -> Dict[str, FrozenSet[Package]]:
        if self._managed is None:
            acc: Dict[str, Set[Package]] = {}
            for g in self._groups:
                for backend, pkgs in g.sections.items():
                    acc.setdefault(backend, set()).update(pkgs)
            self._managed = {k: frozenset(v) for k, v in acc.items()}
        return self._managed

    def managed_for(self, backend: str) -> FrozenSet[Package]:
        return self._managed_map().get(backend, frozenset())

    def all_managed_backends(self) -> Set[str]:
        return {b for b, pkgs in self._managed_map().items() if pkgs}

    def group_names(self) -> List[str]:
        return sorted(g.name for g in self._groups)


# ---------- group directory ----------

def group_path(group_dir: str, name: str) -> str:
    """Path of group ``name``.

    A group is named by its file stem, so ``dev`` resolves to an existing
    ``dev.conf``. Falls back to ``group_dir/name`` for new groups.
    """
    p = os.path.join(group_dir, name)
    if os.path.isfile(p):
        return p
    for f in group_files(group_dir):
        if group_name_for(f) == name:
            return f
    return p


def existing_group_path(group_dir: str, name: str) -> str:
    p = group_path(group_dir, name)
    if not os.path.isfile(p):
        raise GroupNotFound(f"group file {p} not found")
    return p


def new_group(group_dir: str, name: str) -> str:
    os.makedirs(group_dir, exist_ok=True)
    p = group_path(group_dir, name)
    if os.path.lexists(p):
        raise GroupExists(f"group {name} already exists")
    with open(p, "w", encoding="utf-8"):
        pass
    return p


def remove_group(group_dir: str, name: str) -> str:
    p = existing_group_path(group_dir, name)
    os.remove(p)
    return p


def import_group(group_dir: str, source: str) -> str:
    source = os.path.abspath(os.path.expanduser(source))
    if not os.path.isfile(source):
        raise GroupNotFound(f"file {source} not found")
    os.makedirs(group_dir, exist_ok=True)
    target = os.path.join(group_dir, os.path.basename(source))
    if os.path.lexists(target) or os.path.lexists(group_path(group_dir, group_name_for(source))):
        raise GroupExists(f"group {os.path.basename(source)} already exists")
    os.symlink(source, target)
    return target


def add_to_group_file(path: str, backend: str, package: Package) -> bool:
    """Write ``package`` into the ``[backend]`` section of the group file.

    The line is inserted after the last package line of an existing
    section, or a new section is appended. Returns False if the package
    was already listed there.
    """
    text = ""
    if os.path.exists(path):
        with open(path, "r", encoding="utf-8") as f:
            text = f.read()
    parsed = parse_group_text(text, path)
    if package in parsed.get(backend, []):
        return False

    lines = text.splitlines()
    insert_at: Optional[int] = None
    current: Optional[str] = None
    for i, raw in enumerate(lines):
        stripped = raw.strip()
        if stripped.startswith("[") and "]" in stripped:
            current = stripped[1:stripped.index("]")].strip()
            if current == backend:
                insert_at = i + 1
            continue
        if current == backend and strip_comment(raw).strip():
            insert_at = i + 1

    if insert_at is None:
        if lines and lines[-1].strip():
            lines.append("")
        lines.extend([f"[{backend}]", package.render()])
    else:
        lines.insert(insert_at, package.render())

    os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        f.write("\n".join(lines) + "\n")
    return True
