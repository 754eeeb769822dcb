from __future__ import annotations
import os
import shlex
import shutil
import subprocess
from typing import List, Optional, Tuple

DEFAULT_TIMEOUT = 300


def which(cmd: str) -> bool:
    return shutil.which(cmd) is not None


def run_capture(cmd: List[str], timeout: Optional[int] = DEFAULT_TIMEOUT) -> Tuple[int, str]:
    try:
        p = subprocess.run(
            cmd,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            stdin=subprocess.DEVNULL,
            text=True,
            timeout=timeout,
        )
        return p.returncode, p.stdout
    except FileNotFoundError:
        return 127, f"Command not found: {cmd[0]}"
    except subprocess.TimeoutExpired:
        return 124, f"Command timed out after {timeout}s: {cmd_line(cmd)}"


def run_interactive(cmd: List[str]) -> int:
    """Run ``cmd`` attached to the terminal (sudo and tool prompts stay visible)."""
    try:
        return subprocess.call(cmd)
    except FileNotFoundError:
        return 127


def cmd_line(cmd: List[str]) -> str:
    return " ".join(shlex.quote(c) for c in cmd)


def editor_command(fallback: str = "vi") -> List[str]:
    editor = os.environ.get("VISUAL") or os.environ.get("EDITOR") or fallback
    return shlex.split(editor)


def run_editor(files: List[str], fallback: str = "vi") -> int:
    return run_interactive(editor_command(fallback) + files)
