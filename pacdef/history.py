from __future__ import annotations
import os, time, re
from typing import Any, Dict, List

# one block per run:
#   [2024-05-01 12:00:00] pacman-install rc=0
#     sudo pacman -S --needed foo
_HEAD = re.compile(r"^\[(.*?)\]\s+(\S+)-(\w+)\s+rc=(-?\d+)$")


def log_history(path: str, action: str, lines: List[str], rc: int) -> None:
    """Append one block; ``action`` is ``<backend-or-group>-<verb>``."""
    os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
    ts = time.strftime("%Y-%m-%d %H:%M:%S")
    with open(path, "a", encoding="utf-8") as f:
        f.write(f"[{ts}] {action} rc={rc}\n")
        f.writelines(f"  {l}\n" for l in lines)
        f.write("\n")


def parse_history(path: str, max_entries: int = 500) -> List[Dict[str, Any]]:
    """Newest-first entries; blocks with an unreadable head line are skipped."""
    if not os.path.exists(path):
        return []
    with open(path, "r", encoding="utf-8") as f:
        blocks = [b.strip() for b in f.read().split("\n\n") if b.strip()]
    entries: List[Dict[str, Any]] = []
    for b in reversed(blocks):
        head, *rest = b.splitlines()
        m = _HEAD.match(head.strip())
        if not m:
            continue
        entries.append({
            "ts": m.group(1),
            "action": f"{m.group(2)}-{m.group(3)}",
            "target": m.group(2),
            "verb": m.group(3),
            "rc": int(m.group(4)),
            "cmds": [ln.strip() for ln in rest if ln.strip()],
        })
        if len(entries) >= max_entries:
            break
    return entries
