from __future__ import annotations
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, Optional, Set

from .errors import BackendError, ParseError


@dataclass(frozen=True, order=True)
class Package:
    """One package token, optionally qualified as ``prefix/name``.

    An empty prefix means "no prefix". Identity and ordering use the
    ``(prefix, name)`` tuple, so ``foo`` and ``extra/foo`` are two
    different packages.
    """
    prefix: str
    name: str

    @classmethod
    def parse(cls, raw: str) -> Package:
        """Parse a stripped token; ``render`` gives the token back unchanged."""
        token = raw.strip()
        if "/" in token:
            prefix, name = token.split("/", 1)
        else:
            prefix, name = "", token
        if not name.strip():
            raise ParseError(ParseError.EMPTY_NAME, line=raw)
        if (not prefix and "/" in token) or prefix != prefix.strip() or name != name.strip():
            raise ParseError(ParseError.MALFORMED, line=raw)
        return cls(prefix=prefix, name=name)

    def render(self) -> str:
        return f"{self.prefix}/{self.name}" if self.prefix else self.name

    def __str__(self) -> str:
        return self.render()


@dataclass(frozen=True)
class Group:
    name: str
    sections: Dict[str, FrozenSet[Package]]
    path: str = ""

    def __hash__(self) -> int:
        return hash((self.name, self.path))


@dataclass
class ReconcileResult:
    backend: str
    managed: Set[Package] = field(default_factory=set)
    installed: Set[Package] = field(default_factory=set)
    error: Optional[BackendError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    # a failed query says nothing about the machine, so both diffs stay empty
    @property
    def to_install(self) -> Set[Package]:
        return set() if self.error else self.managed - self.installed

    @property
    def unmanaged(self) -> Set[Package]:
        return set() if self.error else self.installed - self.managed
