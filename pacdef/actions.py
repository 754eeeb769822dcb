from __future__ import annotations
import re
from typing import Dict, List, Mapping, Optional, Tuple

from rich.console import Console

from .backends import Backend
from .engine import reconcile
from .errors import BackendError, PacdefError
from .groups import GroupStore
from .models import Package, ReconcileResult
from .ui import Confirmation, console as default_console, print_packages, warn, error


def _report_failed(out: Console, results: List[ReconcileResult]) -> int:
    status = 0
    for r in results:
        if r.error is not None:
            warn(out, f"skipping backend '{r.backend}': {r.error}")
            status = 1
    return status


def sync(store: GroupStore, backends: Mapping[str, Backend], confirm: Confirmation,
         out: Optional[Console] = None) -> int:
    """Install every managed package that is not explicitly installed yet."""
    out = out or default_console
    results = reconcile(store, backends)
    status = _report_failed(out, results)

    todo = [r for r in results if r.to_install]
    if not todo:
        out.print("nothing to do")
        return status

    for r in todo:
        out.print("Would install the following packages:")
        print_packages(out, r.backend, r.to_install)
        if not confirm.confirm(f"Install {len(r.to_install)} package(s) with {r.backend}?"):
            out.print(f"skipped {r.backend}")
            continue
        try:
            backends[r.backend].install(r.to_install, noconfirm=confirm.noconfirm)
        except BackendError as e:
            error(out, str(e))
            status = 1
    return status


def prefix_mismatches(r: ReconcileResult) -> List[Tuple[Package, Package]]:
    """Unmanaged packages whose name is declared in a group under another prefix."""
    by_name: Dict[str, List[Package]] = {}
    for m in r.managed:
        by_name.setdefault(m.name, []).append(m)
    return [
        (p, m)
        for p in sorted(r.unmanaged)
        for m in sorted(by_name.get(p.name, ()))
        if m.prefix != p.prefix
    ]


def clean(store: GroupStore, backends: Mapping[str, Backend], confirm: Confirmation,
          out: Optional[Console] = None) -> int:
    """Remove every explicitly installed package that no group declares."""
    out = out or default_console
    results = reconcile(store, backends, all_registered=True)
    status = _report_failed(out, results)

    todo = [r for r in results if r.unmanaged]
    if not todo:
        out.print("nothing to do")
        return status

    for r in todo:
        out.print("Would remove the following packages and their dependencies:")
        print_packages(out, r.backend, r.unmanaged)
        for p, m in prefix_mismatches(r):
            warn(out, f"{r.backend}: {p.render()} is declared as {m.render()}; "
                      "the prefix differs, so it is removed as unmanaged")
        if not confirm.confirm(f"Remove {len(r.unmanaged)} package(s) with {r.backend}?"):
            out.print(f"skipped {r.backend}")
            continue
        try:
            backends[r.backend].remove(r.unmanaged, noconfirm=confirm.noconfirm)
        except BackendError as e:
            error(out, str(e))
            status = 1
    return status


def unmanaged(store: GroupStore, backends: Mapping[str, Backend],
              out: Optional[Console] = None) -> int:
    out = out or default_console
    results = reconcile(store, backends, all_registered=True)
    status = _report_failed(out, results)
    for r in results:
        if r.unmanaged:
            print_packages(out, r.backend, r.unmanaged, indent="")
    return status


def compile_pattern(pattern: str) -> "re.Pattern[str]":
    try:
        return re.compile(pattern)
    except re.error as e:
        raise PacdefError(f"invalid search pattern {pattern!r}: {e}") from None


def search_all(backends: Mapping[str, Backend], pattern: str,
               out: Optional[Console] = None) -> Tuple[List[Tuple[str, Package]], int]:
    """Fan ``pattern`` out to every registered backend whose tool is installed.

    Returns the tagged hits and the number of backends whose search failed.
    """
    out = out or default_console
    rx = compile_pattern(pattern)
    hits: List[Tuple[str, Package]] = []
    failures = 0
    for name, backend in backends.items():
        if not backend.is_available():
            continue
        try:
            found = backend.search(rx)
        except BackendError as e:
            warn(out, f"skipping backend '{name}': {e}")
            failures += 1
            continue
        hits.extend((name, p) for p in found)
    return hits, failures


def search(backends: Mapping[str, Backend], pattern: str,
           out: Optional[Console] = None) -> int:
    out = out or default_console
    hits, _ = search_all(backends, pattern, out)
    if not hits:
        out.print(f"no packages matching {pattern!r}", markup=False)
        return 1
    for name, p in hits:
        out.print(f"{name}\t{p.render()}", markup=False)
    return 0
