from __future__ import annotations
from typing import List

from rich.markup import escape

from textual.app import ComposeResult
from textual.containers import Container, Horizontal
from textual.screen import ModalScreen
from textual.widgets import Button, Input, Static


class ConfirmModal(ModalScreen[bool]):
    def __init__(self, title: str, body: str):
        super().__init__()
        self._title = title
        self._body = body

    def compose(self) -> ComposeResult:
        yield Container(
            Static(f"[b]{escape(self._title)}[/b]"),
            Static(self._body, markup=False),
            Horizontal(
                Button("Cancel", id="no", variant="error"),
                Button("OK", id="yes", variant="success"),
            ),
            id="modal",
        )

    def on_button_pressed(self, event: Button.Pressed) -> None:
        self.dismiss(event.button.id == "yes")


class GroupInputModal(ModalScreen[str]):
    """Ask for the group a package should be written to; "" means cancelled."""

    def __init__(self, title: str, groups: List[str]):
        super().__init__()
        self._title = title
        self._groups = groups

    def compose(self) -> ComposeResult:
        hint = ", ".join(self._groups) if self._groups else "(no groups yet, a new file is created)"
        yield Container(
            Static(f"[b]{escape(self._title)}[/b]"),
            Static(f"Groups: {hint}", markup=False),
            Input(placeholder="group name", id="group_input"),
            Horizontal(
                Button("OK", id="ok", variant="success"),
                Button("Cancel", id="cancel", variant="error"),
            ),
            id="modal",
        )

    def on_mount(self) -> None:
        self.query_one("#group_input", Input).focus()

    def on_input_submitted(self, event: Input.Submitted) -> None:
        self.dismiss(event.value.strip())

    def on_button_pressed(self, event: Button.Pressed) -> None:
        if event.button.id == "cancel":
            self.dismiss("")
        else:
            self.dismiss(self.query_one("#group_input", Input).value.strip())
