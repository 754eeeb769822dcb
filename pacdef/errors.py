from __future__ import annotations
from typing import AbstractSet, Iterable, List


class PacdefError(Exception):
    pass


class ParseError(PacdefError):
    NO_ACTIVE_SECTION = "NoActiveSection"
    EMPTY_NAME = "EmptyName"
    MALFORMED = "MalformedToken"

    def __init__(self, kind: str, path: str = "", line_no: int = 0, line: str = ""):
        self.kind = kind
        self.path = path
        self.line_no = line_no
        self.line = line
        super().__init__(str(self))

    def located(self, path: str = "", line_no: int = 0) -> ParseError:
        return ParseError(self.kind, path or self.path, line_no or self.line_no, self.line)

    def __str__(self) -> str:
        where = self.path or "<group>"
        if self.line_no:
            where += f":{self.line_no}"
        if self.kind == self.NO_ACTIVE_SECTION:
            msg = "package line before any [section] header"
        elif self.kind == self.MALFORMED:
            msg = "empty prefix or blanks around '/'"
        else:
            msg = "empty package name"
        return f"{where}: {msg}: {self.line.strip()!r}"


class UnknownBackend(PacdefError):
    def __init__(self, section: str, path: str = ""):
        self.section = section
        self.path = path
        super().__init__(f"{path or '<group>'}: no registered backend for section [{section}]")


class GroupNotFound(PacdefError):
    pass


class GroupExists(PacdefError):
    pass


class BackendError(PacdefError):
    def __init__(self, backend: str, message: str):
        self.backend = backend
        super().__init__(f"{backend}: {message}")


class QueryFailed(BackendError):
    def __init__(self, backend: str, rc: int, output: str = ""):
        self.rc = rc
        self.output = output
        tail = output.strip().splitlines()[-1] if output.strip() else ""
        msg = f"querying installed packages failed (rc={rc})"
        if tail:
            msg += f": {tail}"
        super().__init__(backend, msg)


class PartialFailure(BackendError):
    def __init__(self, backend: str, succeeded: AbstractSet, failed: AbstractSet):
        self.succeeded = frozenset(succeeded)
        self.failed = frozenset(failed)
        super().__init__(
            backend,
            f"{len(self.failed)} package(s) failed: {_join(self.failed)}"
            + (f" (succeeded: {_join(self.succeeded)})" if self.succeeded else ""),
        )


def _join(pkgs: Iterable) -> str:
    xs: List[str] = sorted(str(p) for p in pkgs)
    return ", ".join(xs)
