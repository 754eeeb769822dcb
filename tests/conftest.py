from __future__ import annotations

import io
from typing import AbstractSet, Iterable, List, Pattern, Set

import pytest
from rich.console import Console

from pacdef.backends import Backend
from pacdef.errors import PartialFailure, QueryFailed
from pacdef.groups import GroupStore, group_from_text
from pacdef.models import Package


def pkgs(*tokens: str) -> Set[Package]:
    return {Package.parse(t) for t in tokens}


class FakeBackend(Backend):
    """In-memory package manager; ``broken`` packages fail to install/remove."""

    def __init__(self, name: str, installed: Iterable[str] = (), available: Iterable[str] = (),
                 broken: Iterable[str] = (), query_fails: bool = False, present: bool = True):
        super().__init__()
        self.NAME = name
        self.installed = pkgs(*installed)
        self.available = pkgs(*available)
        self.broken = pkgs(*broken)
        self.query_fails = query_fails
        self.present = present
        self.calls: List[tuple] = []

    def is_available(self) -> bool:
        return self.present

    def list_explicit_installed(self) -> Set[Package]:
        self.calls.append(("query",))
        if self.query_fails:
            raise QueryFailed(self.NAME, 1, "database locked")
        return set(self.installed)

    def _mutate(self, action: str, packages: AbstractSet[Package], noconfirm: bool) -> None:
        self.calls.append((action, frozenset(packages), noconfirm))
        failed = set(packages) & self.broken
        ok = set(packages) - failed
        if action == "install":
            self.installed |= ok
        else:
            self.installed -= ok
        if failed:
            raise PartialFailure(self.NAME, ok, failed)

    def install(self, packages: AbstractSet[Package], noconfirm: bool = False) -> None:
        self._mutate("install", packages, noconfirm)

    def remove(self, packages: AbstractSet[Package], noconfirm: bool = False) -> None:
        self._mutate("remove", packages, noconfirm)

    def search(self, pattern: Pattern[str]) -> List[Package]:
        return sorted(p for p in self.available | self.installed if pattern.search(p.name))


def make_store(*texts: str) -> GroupStore:
    return GroupStore.from_groups(
        group_from_text(f"g{i}", text, f"g{i}") for i, text in enumerate(texts)
    )


class Answers:
    def __init__(self, *answers: bool):
        self.answers = list(answers)
        self.questions: List[str] = []

    def __call__(self, question: str) -> bool:
        self.questions.append(question)
        return self.answers.pop(0)


@pytest.fixture
def out() -> Console:
    return Console(file=io.StringIO(), width=200, color_system=None)


def text_of(console: Console) -> str:
    return console.file.getvalue()  # type: ignore[attr-defined]
