from __future__ import annotations
from dataclasses import dataclass, field
from typing import Callable, Iterable

from rich.console import Console
from rich.markup import escape
from rich.prompt import Confirm

from .models import Package

console = Console(highlight=False)


def ask_user(question: str) -> bool:
    return Confirm.ask(question, default=True, console=console)


@dataclass(frozen=True)
class Confirmation:
    """Confirmation policy handed to every action; ``noconfirm`` answers yes."""
    noconfirm: bool = False
    ask: Callable[[str], bool] = field(default=ask_user)

    def confirm(self, question: str) -> bool:
        if self.noconfirm:
            return True
        return bool(self.ask(question))


def print_packages(out: Console, backend: str, packages: Iterable[Package], indent: str = "  ") -> None:
    out.print(f"{indent}[b]{backend}[/b]")
    for p in sorted(packages):
        out.print(f"{indent}  {p.render()}", markup=False)


def warn(out: Console, msg: str) -> None:
    out.print(f"[yellow]WARNING:[/yellow] {escape(msg)}", soft_wrap=True)


def error(out: Console, msg: str) -> None:
    out.print(f"[red]error:[/red] {escape(msg)}", soft_wrap=True)
