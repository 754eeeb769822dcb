from __future__ import annotations
import argparse
import os
from typing import Dict, List, Optional

from rich.console import Console

from . import __version__, actions
from .arch import run_editor
from .backends import Backend, backend_registry
from .config import Config, load_config
from .engine import reconcile
from .errors import PacdefError
from .groups import (
    GroupStore,
    existing_group_path,
    group_files,
    group_name_for,
    import_group,
    load_groups,
    new_group,
    remove_group,
)
from .history import parse_history
from .review import ReviewSession, apply_review
from .ui import Confirmation, console, error, warn


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(prog="pacdef", description="declarative package management")
    ap.add_argument("--config", default="", help="path to config.json")
    sub = ap.add_subparsers(dest="command", required=True)

    group = sub.add_parser("group", help="manage group files").add_subparsers(dest="action", required=True)
    p = group.add_parser("edit", help="edit group files")
    p.add_argument("groups", nargs="+")
    p = group.add_parser("import", help="symlink files into the group directory")
    p.add_argument("files", nargs="+")
    group.add_parser("list", help="list groups")
    p = group.add_parser("new", help="create new group files")
    p.add_argument("groups", nargs="+")
    p.add_argument("-e", "--edit", action="store_true", help="open the new files in the editor")
    p = group.add_parser("remove", help="remove group files")
    p.add_argument("groups", nargs="+")
    p = group.add_parser("show", help="print group files")
    p.add_argument("groups", nargs="+")

    package = sub.add_parser("package", help="reconcile packages").add_subparsers(dest="action", required=True)
    for name, helptext in (
        ("clean", "remove unmanaged packages"),
        ("review", "decide per unmanaged package"),
        ("sync", "install managed packages"),
    ):
        p = package.add_parser(name, help=helptext)
        p.add_argument("--noconfirm", action="store_true", help="do not ask for confirmation")
    p = package.add_parser("search", help="search packages by regex")
    p.add_argument("pattern")
    package.add_parser("unmanaged", help="show unmanaged packages")
    package.add_parser("history", help="show past install/remove runs")

    sub.add_parser("version", help="show version")
    return ap


def load_store(config: Config, backends: Dict[str, Backend]) -> GroupStore:
    """Parse every group file; sections must name a registered backend."""
    return GroupStore.from_groups(load_groups(config.group_dir, set(backends)))


# ---------- group ----------

def _edit(config: Config, paths: List[str]) -> int:
    rc = run_editor(paths, config.editor)
    if rc != 0:
        raise PacdefError(f"editor exited with error (rc={rc})")
    return 0


def run_group(args: argparse.Namespace, config: Config, out: Console) -> int:
    gd = config.group_dir
    if args.action == "list":
        for name in sorted(group_name_for(p) for p in group_files(gd)):
            out.print(name, markup=False)
        return 0
    if args.action == "show":
        for i, name in enumerate(args.groups):
            path = existing_group_path(gd, name)
            with open(path, "r", encoding="utf-8") as f:
                if i:
                    out.print()
                out.print(f.read().rstrip("\n"), markup=False, highlight=False)
        return 0
    if args.action == "new":
        paths = [new_group(gd, name) for name in args.groups]
        return _edit(config, paths) if args.edit else 0
    if args.action == "remove":
        paths = [existing_group_path(gd, name) for name in args.groups]
        for name in args.groups:
            remove_group(gd, name)
        out.print(f"removed {len(paths)} group(s)")
        return 0
    if args.action == "import":
        for f in args.files:
            target = import_group(gd, f)
            out.print(f"imported {target}", markup=False)
        return 0
    if args.action == "edit":
        return _edit(config, [existing_group_path(gd, name) for name in args.groups])
    raise PacdefError(f"unknown group action {args.action}")


# ---------- package ----------

def review_packages(store: GroupStore, backends: Dict[str, Backend], config: Config,
                    noconfirm: bool, out: Console) -> int:
    from .ui_app import run_review

    results = reconcile(store, backends, all_registered=True)
    status = 0
    for r in results:
        if r.error is not None:
            warn(out, f"skipping backend '{r.backend}': {r.error}")
            status = 1
    session = ReviewSession(results)
    if not session.items:
        out.print("nothing to review")
        return status

    plan = run_review(session, store.group_names(), noconfirm)
    if plan is None:
        out.print("review aborted, nothing changed")
        return status
    if plan.is_empty():
        out.print(f"nothing to apply ({plan.summary()})")
        return status

    # the plan was confirmed inside the review screen, or --noconfirm was given
    confirm = Confirmation(noconfirm=noconfirm, ask=lambda q: True)
    rc, _ = apply_review(plan, store, backends, config, confirm, out)
    return rc or status


def run_package(args: argparse.Namespace, config: Config, out: Console) -> int:
    if args.action == "history":
        for e in parse_history(config.history_log):
            out.print(f"{e['ts']}  {e['action']}  rc={e['rc']}", markup=False)
            for c in e["cmds"]:
                out.print(f"    {c}", markup=False)
        return 0

    backends = backend_registry(config)
    if args.action == "search":
        return actions.search(backends, args.pattern, out)

    store = load_store(config, backends)
    if args.action == "unmanaged":
        return actions.unmanaged(store, backends, out)

    confirm = Confirmation(noconfirm=args.noconfirm)
    if args.action == "sync":
        return actions.sync(store, backends, confirm, out)
    if args.action == "clean":
        return actions.clean(store, backends, confirm, out)
    if args.action == "review":
        return review_packages(store, backends, config, args.noconfirm, out)
    raise PacdefError(f"unknown package action {args.action}")


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    if args.command == "version":
        console.print(f"pacdef, version: {__version__}")
        return 0
    try:
        config = load_config(os.path.expanduser(args.config) if args.config else "")
        if args.command == "group":
            return run_group(args, config, console)
        return run_package(args, config, console)
    except PacdefError as e:
        error(console, str(e))
        return 1
    except OSError as e:
        error(console, str(e))
        return 1
    except KeyboardInterrupt:
        console.print("\naborted")
        return 1
