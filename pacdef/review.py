"""Interactive review of unmanaged packages.

The session walks every unmanaged package once. Decisions are only
recorded while reviewing; nothing touches the machine or the group
files until :func:`apply_review` commits the finished plan in one batch.
An aborted session yields an empty plan.
"""
from __future__ import annotations
import os
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Mapping, Optional, Set, Tuple

from rich.console import Console

from .backends import Backend
from .config import Config
from .errors import BackendError, PacdefError
from .groups import GroupStore, add_to_group_file, group_path, load_group_file
from .history import log_history
from .models import Package, ReconcileResult
from .ui import Confirmation, console as default_console, error, print_packages


class Decision(Enum):
    REMOVE = "remove"
    KEEP = "keep"
    SKIP = "skip"
    MANAGE = "manage"


REVIEWING = "reviewing"
DONE = "done"
ABORTED = "aborted"


class ReviewError(PacdefError):
    pass


@dataclass
class ReviewPlan:
    removals: Dict[str, Set[Package]] = field(default_factory=dict)
    assignments: Dict[str, List[Tuple[str, Package]]] = field(default_factory=dict)
    kept: List[Tuple[str, Package]] = field(default_factory=list)
    skipped: List[Tuple[str, Package]] = field(default_factory=list)

    def is_empty(self) -> bool:
        return not self.removals and not self.assignments

    def summary(self) -> str:
        n_rm = sum(len(v) for v in self.removals.values())
        n_as = sum(len(v) for v in self.assignments.values())
        return f"remove={n_rm} assign={n_as} keep={len(self.kept)} skip={len(self.skipped)}"


class ReviewSession:
    def __init__(self, results: List[ReconcileResult]):
        self.items: List[Tuple[str, Package]] = [
            (r.backend, p) for r in results for p in sorted(r.unmanaged)
        ]
        self.decisions: List[Tuple[Decision, Optional[str]]] = []
        self.state = REVIEWING if self.items else DONE

    @property
    def index(self) -> int:
        return len(self.decisions)

    @property
    def current(self) -> Optional[Tuple[str, Package]]:
        if self.state != REVIEWING:
            return None
        return self.items[self.index]

    @property
    def remaining(self) -> int:
        return len(self.items) - self.index

    def decide(self, decision: Decision, group: Optional[str] = None) -> None:
        if self.state != REVIEWING:
            raise ReviewError(f"review is {self.state}, no package pending")
        if decision is Decision.MANAGE:
            group = (group or "").strip()
            if not group or os.sep in group or group.startswith("."):
                raise ReviewError(f"invalid group name {group!r}")
        else:
            group = None
        self.decisions.append((decision, group))
        if self.index == len(self.items):
            self.state = DONE

    def back(self) -> None:
        """Undo the previous decision."""
        if self.state == ABORTED or not self.decisions:
            return
        self.decisions.pop()
        self.state = REVIEWING

    def abort(self) -> None:
        self.state = ABORTED

    def finish(self) -> ReviewPlan:
        if self.state == REVIEWING:
            raise ReviewError(f"{self.remaining} package(s) still pending")
        plan = ReviewPlan()
        if self.state == ABORTED:
            return plan
        for (backend, p), (decision, group) in zip(self.items, self.decisions):
            if decision is Decision.REMOVE:
                plan.removals.setdefault(backend, set()).add(p)
            elif decision is Decision.MANAGE:
                plan.assignments.setdefault(group or "", []).append((backend, p))
            elif decision is Decision.KEEP:
                plan.kept.append((backend, p))
            else:
                plan.skipped.append((backend, p))
        return plan


def apply_review(plan: ReviewPlan, store: GroupStore, backends: Mapping[str, Backend],
                 config: Config, confirm: Confirmation,
                 out: Optional[Console] = None) -> Tuple[int, GroupStore]:
    """Commit a finished plan after one confirmation covering all of it.

    Group assignments are written first, then removals run. A declined
    confirmation leaves group files and packages untouched. Returns the
    exit status and the group store rebuilt from the rewritten group
    files.
    """
    out = out or default_console
    status = 0
    if plan.is_empty():
        return status, store

    for group in sorted(plan.assignments):
        out.print(f"Would add to group {group}:", markup=False)
        for backend, p in plan.assignments[group]:
            out.print(f"  [{backend}] {p.render()}", markup=False)
    if plan.removals:
        out.print("Would remove the following packages and their dependencies:")
        for backend in sorted(plan.removals):
            print_packages(out, backend, plan.removals[backend])
    if not confirm.confirm("Apply these changes?"):
        out.print("review cancelled, nothing changed")
        return status, store

    for group in sorted(plan.assignments):
        path = group_path(config.group_dir, group)
        written: List[str] = []
        for backend, p in plan.assignments[group]:
            if add_to_group_file(path, backend, p):
                written.append(f"[{backend}] {p.render()}")
        if written and config.cache_dir:
            log_history(config.history_log, f"{group}-assign", written, 0)
        store = store.with_group(load_group_file(path))
        out.print(f"added {len(written)} package(s) to group {group}", markup=False)

    for backend in sorted(plan.removals):
        try:
            backends[backend].remove(plan.removals[backend], noconfirm=confirm.noconfirm)
        except BackendError as e:
            error(out, str(e))
            status = 1

    return status, store
