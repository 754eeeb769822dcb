from __future__ import annotations
from typing import List, Optional

from textual.app import App, ComposeResult
from textual.widgets import Footer, Header, Static

from .modals import ConfirmModal, GroupInputModal
from .review import ABORTED, DONE, Decision, ReviewError, ReviewPlan, ReviewSession

def plan_body(plan: ReviewPlan) -> str:
    lines: List[str] = []
    for group in sorted(plan.assignments):
        lines.append(f"add to group {group}:")
        lines.extend(f"  [{b}] {p.render()}" for b, p in plan.assignments[group])
    for backend in sorted(plan.removals):
        lines.append(f"remove with {backend}:")
        lines.extend(f"  {p.render()}" for p in sorted(plan.removals[backend]))
    return "\n".join(lines)


class ReviewApp(App[Optional[ReviewPlan]]):
    """Walks a ReviewSession one package at a time.

    Exits with the confirmed plan, or None when aborted or cancelled.
    With ``noconfirm`` the finished plan is returned without the confirm
    dialog.
    """

    TITLE = "pacdef review"

    CSS = """
    Screen { background: $background; }
    #statusbar { height: auto; border: round $primary; background: $boost; padding: 0 2; margin: 0 1 1 1; }
    .topcard { height: auto; border: round $primary; background: $panel; padding: 1 2; margin: 0 1 1 1; }
    .infobox { border: round $primary; background: $boost; padding: 1 2; margin: 0 1 1 1; }
    #modal { width: 92%; max-width: 120; height: auto; padding: 1 2; border: round $primary; background: $panel; }
    """

    BINDINGS = [
        ("r", "remove", "Remove"),
        ("k", "keep", "Keep"),
        ("s", "skip", "Skip"),
        ("g", "assign", "Assign to group"),
        ("b", "back", "Back"),
        ("q", "abort", "Abort"),
    ]

    def __init__(self, session: ReviewSession, group_names: List[str], noconfirm: bool = False):
        super().__init__()
        self.session = session
        self.group_names = list(group_names)
        self.noconfirm = noconfirm
        self._modal_open = False

    def compose(self) -> ComposeResult:
        yield Header()
        yield Static("", id="statusbar")
        yield Static(
            "[b]Unmanaged packages[/b]\n"
            "[dim]r remove · k keep · s skip · g assign to group · b back · q abort[/dim]",
            classes="topcard",
        )
        yield Static("", id="current", classes="infobox")
        yield Footer()

    def on_mount(self) -> None:
        if self.session.state == DONE:
            self._finish()
        else:
            self.refresh_view()

    def refresh_view(self) -> None:
        s = self.session
        self.query_one("#statusbar", Static).update(
            f"Package {min(s.index + 1, len(s.items))}/{len(s.items)}   remaining: {s.remaining}"
        )
        cur = s.current
        body = f"{cur[0]}\n\n{cur[1].render()}" if cur else ""
        self.query_one("#current", Static).update(body)

    def _accepting_input(self) -> bool:
        return not self._modal_open and self.session.current is not None

    def _decide(self, decision: Decision, group: Optional[str] = None) -> None:
        self.session.decide(decision, group)
        if self.session.state == DONE:
            self._finish()
        else:
            self.refresh_view()

    def action_remove(self) -> None:
        if self._accepting_input():
            self._decide(Decision.REMOVE)

    def action_keep(self) -> None:
        if self._accepting_input():
            self._decide(Decision.KEEP)

    def action_skip(self) -> None:
        if self._accepting_input():
            self._decide(Decision.SKIP)

    def action_back(self) -> None:
        if not self._modal_open:
            self.session.back()
            self.refresh_view()

    def action_assign(self) -> None:
        if not self._accepting_input():
            return
        backend, p = self.session.current
        self._modal_open = True
        self.push_screen(
            GroupInputModal(f"Assign {p.render()} ({backend}) to group", self.group_names),
            callback=self._on_group_chosen,
        )

    def _on_group_chosen(self, group: Optional[str]) -> None:
        self._modal_open = False
        if not group:
            return
        try:
            self._decide(Decision.MANAGE, group)
        except ReviewError as e:
            self.notify(str(e), severity="error")
            return
        if group not in self.group_names:
            self.group_names.append(group)

    def action_abort(self) -> None:
        if self._modal_open:
            return
        self.session.abort()
        self.exit(None)

    def _finish(self) -> None:
        plan = self.session.finish()
        if plan.is_empty() or self.noconfirm:
            self.exit(plan)
            return
        self._modal_open = True

        def _done(ok: Optional[bool]) -> None:
            self._modal_open = False
            if ok:
                self.exit(plan)
            else:
                self.session.abort()
                self.exit(None)

        self.push_screen(ConfirmModal("Apply review?", plan_body(plan)), callback=_done)


def run_review(session: ReviewSession, group_names: List[str],
               noconfirm: bool = False) -> Optional[ReviewPlan]:
    if session.state == ABORTED:
        return None
    return ReviewApp(session, group_names, noconfirm).run()
