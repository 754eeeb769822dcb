from __future__ import annotations
import json
import re
import threading
from typing import AbstractSet, Callable, Dict, List, Optional, Pattern, Set, Tuple, Type

from .arch import cmd_line, run_capture, run_interactive, which
from .cache import cached_search
from .config import Config
from .errors import PacdefError, PartialFailure, QueryFailed
from .history import log_history
from .models import Package

Runner = Callable[..., Tuple[int, str]]
Interactive = Callable[[List[str]], int]


class Backend:
    """One package manager behind the four-operation contract.

    Subclasses only describe commands and output formats; locking,
    history logging and partial-failure detection live here.
    """

    NAME = ""
    BINARY = ""

    def __init__(self, config: Optional[Config] = None,
                 runner: Runner = run_capture,
                 interactive: Interactive = run_interactive):
        self.config = config or Config()
        self.runner = runner
        self.interactive = interactive
        self._lock = threading.Lock()

    def name(self) -> str:
        return self.NAME

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.NAME}>"

    def is_available(self) -> bool:
        return which(self.BINARY)

    def capture(self, cmd: List[str]) -> Tuple[int, str]:
        return self.runner(cmd, timeout=self.config.timeout_sec)

    # ---------- contract ----------
    def list_explicit_installed(self) -> Set[Package]:
        rc, out = self.capture(self.query_cmd())
        if rc != 0:
            raise QueryFailed(self.NAME, rc, out)
        return self.parse_installed(out)

    def install(self, packages: AbstractSet[Package], noconfirm: bool = False) -> None:
        if packages:
            self._apply("install", packages, self.install_cmds(sorted(packages), noconfirm), expect_installed=True)

    def remove(self, packages: AbstractSet[Package], noconfirm: bool = False) -> None:
        if packages:
            self._apply("remove", packages, self.remove_cmds(sorted(packages), noconfirm), expect_installed=False)

    def search(self, pattern: Pattern[str]) -> List[Package]:
        return sorted(p for p in self.list_explicit_installed() if pattern.search(p.name))

    # ---------- per tool ----------
    def query_cmd(self) -> List[str]:
        raise NotImplementedError

    def parse_installed(self, out: str) -> Set[Package]:
        return {Package("", ln.strip()) for ln in out.splitlines() if ln.strip()}

    def install_cmds(self, packages: List[Package], noconfirm: bool) -> List[List[str]]:
        raise NotImplementedError

    def remove_cmds(self, packages: List[Package], noconfirm: bool) -> List[List[str]]:
        raise NotImplementedError

    # ---------- internals ----------
    def _apply(self, action: str, packages: AbstractSet[Package],
               cmds: List[List[str]], expect_installed: bool) -> None:
        with self._lock:
            failed_rc = 0
            for cmd in cmds:
                rc = self.interactive(cmd)
                if self.config.cache_dir:
                    log_history(self.config.history_log, f"{self.NAME}-{action}", [cmd_line(cmd)], rc)
                if rc != 0:
                    failed_rc = rc
            if failed_rc == 0:
                return

            try:
                now = {p.name for p in self.list_explicit_installed()}
            except QueryFailed:
                raise PartialFailure(self.NAME, set(), set(packages)) from None

            succeeded = {p for p in packages if (p.name in now) == expect_installed}
            failed = set(packages) - succeeded
            if failed:
                raise PartialFailure(self.NAME, succeeded, failed)


class Pacman(Backend):
    NAME = "pacman"
    BINARY = "pacman"

    def helper(self) -> Optional[str]:
        h = self.config.aur_helper
        return h if h and which(h) else None

    def _base(self) -> List[str]:
        h = self.helper()
        return [h] if h else ["sudo", "pacman"]

    def query_cmd(self) -> List[str]:
        return ["pacman", "-Qqe"]

    def install_cmds(self, packages: List[Package], noconfirm: bool) -> List[List[str]]:
        cmd = self._base() + ["-S", "--needed"] + [p.render() for p in packages]
        if noconfirm:
            cmd.append("--noconfirm")
        return [cmd]

    def remove_cmds(self, packages: List[Package], noconfirm: bool) -> List[List[str]]:
        # pacman removes by name only
        cmd = self._base() + ["-Rs"] + list(self.config.aur_rm_args) + [p.name for p in packages]
        if noconfirm:
            cmd.append("--noconfirm")
        return [cmd]

    def _fetch_search(self, query: str) -> List[str]:
        rc, out = self.capture([self.helper() or "pacman", "-Ss", query])
        # pacman -Ss exits 1 when nothing matched
        if rc not in (0, 1):
            raise QueryFailed(self.NAME, rc, out)
        tokens: List[str] = []
        for ln in out.splitlines():
            if ln[:1].isspace():
                continue
            m = re.match(r"^(\S+)/(\S+)\s", ln)
            if m:
                tokens.append(f"{m.group(1)}/{m.group(2)}")
        return tokens

    def search(self, pattern: Pattern[str]) -> List[Package]:
        if self.config.cache_dir:
            tokens = cached_search(self.config.search_cache_file, self.NAME, pattern.pattern, self._fetch_search)
        else:
            tokens = self._fetch_search(pattern.pattern)
        found = {Package.parse(t) for t in tokens}
        return sorted(p for p in found if pattern.search(p.name))


class Rust(Backend):
    NAME = "rust"
    BINARY = "cargo"

    def query_cmd(self) -> List[str]:
        return ["cargo", "install", "--list"]

    def parse_installed(self, out: str) -> Set[Package]:
        # "ripgrep v14.1.0:" followed by indented binary names
        out_set: Set[Package] = set()
        for ln in out.splitlines():
            if not ln.strip() or ln[:1].isspace():
                continue
            out_set.add(Package("", ln.split()[0].rstrip(":")))
        return out_set

    def install_cmds(self, packages: List[Package], noconfirm: bool) -> List[List[str]]:
        return [["cargo", "install"] + [p.render() for p in packages]]

    def remove_cmds(self, packages: List[Package], noconfirm: bool) -> List[List[str]]:
        return [["cargo", "uninstall"] + [p.name for p in packages]]


class Python(Backend):
    NAME = "python"
    BINARY = "pip"

    def is_available(self) -> bool:
        return which(self.config.pip_binary)

    def query_cmd(self) -> List[str]:
        return [self.config.pip_binary, "list", "--user", "--not-required", "--format=json"]

    def parse_installed(self, out: str) -> Set[Package]:
        try:
            rows = json.loads(out or "[]")
        except ValueError:
            raise QueryFailed(self.NAME, 0, "unparsable pip output") from None
        return {Package("", str(r["name"])) for r in rows if isinstance(r, dict) and r.get("name")}

    def install_cmds(self, packages: List[Package], noconfirm: bool) -> List[List[str]]:
        return [[self.config.pip_binary, "install", "--user"] + [p.render() for p in packages]]

    def remove_cmds(self, packages: List[Package], noconfirm: bool) -> List[List[str]]:
        # confirmation already happened in pacdef
        return [[self.config.pip_binary, "uninstall", "-y"] + [p.name for p in packages]]


class Flatpak(Backend):
    NAME = "flatpak"
    BINARY = "flatpak"

    def query_cmd(self) -> List[str]:
        return ["flatpak", "list", "--app", "--columns=application"]

    def parse_installed(self, out: str) -> Set[Package]:
        return {
            Package("", ln.strip())
            for ln in out.splitlines()
            if ln.strip() and ln.strip() != "Application ID"
        }

    def install_cmds(self, packages: List[Package], noconfirm: bool) -> List[List[str]]:
        by_remote: Dict[str, List[str]] = {}
        for p in packages:
            by_remote.setdefault(p.prefix, []).append(p.name)
        cmds: List[List[str]] = []
        for remote in sorted(by_remote):
            cmd = ["flatpak", "install"] + ([remote] if remote else []) + by_remote[remote]
            if noconfirm:
                cmd.append("-y")
            cmds.append(cmd)
        return cmds

    def remove_cmds(self, packages: List[Package], noconfirm: bool) -> List[List[str]]:
        cmd = ["flatpak", "uninstall"] + [p.name for p in packages]
        if noconfirm:
            cmd.append("-y")
        return [cmd]

    def search(self, pattern: Pattern[str]) -> List[Package]:
        rc, out = self.capture(["flatpak", "remote-ls", "--app", "--columns=origin,application"])
        if rc != 0:
            raise QueryFailed(self.NAME, rc, out)
        found: Set[Package] = set()
        for ln in out.splitlines():
            parts = ln.split()
            if len(parts) == 2 and pattern.search(parts[1]):
                found.add(Package(parts[0], parts[1]))
        return sorted(found)


BACKEND_TYPES: Tuple[Type[Backend], ...] = (Pacman, Rust, Python, Flatpak)
KNOWN_BACKENDS = frozenset(t.NAME for t in BACKEND_TYPES)


def backend_registry(config: Config, runner: Runner = run_capture,
                     interactive: Interactive = run_interactive) -> Dict[str, Backend]:
    """Registered backends in fixed order, minus the disabled ones."""
    unknown = set(config.disabled_backends) - KNOWN_BACKENDS
    if unknown:
        raise PacdefError(f"config: unknown backend(s) in disabled_backends: {', '.join(sorted(unknown))}")
    return {
        t.NAME: t(config, runner=runner, interactive=interactive)
        for t in BACKEND_TYPES
        if t.NAME not in config.disabled_backends
    }
