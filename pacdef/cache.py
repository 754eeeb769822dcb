from __future__ import annotations
import json, os, time
from typing import Any, Callable, List


def load_json_safe(path: str, default: Any) -> Any:
    try:
        if not os.path.exists(path):
            return default
        with open(path, "r", encoding="utf-8") as f:
            raw = f.read()
        if not raw.strip():
            return default
        return json.loads(raw)
    except (OSError, ValueError):
        return default


def save_json(path: str, obj: Any) -> None:
    os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(obj, f, indent=2, ensure_ascii=False)


def cached_search(cache_file: str, backend: str, query: str,
                  fetch: Callable[[str], List[str]], ttl_sec: int = 1800) -> List[str]:
    """Return search tokens for ``query``, calling ``fetch`` on a cache miss.

    The whole cache is dropped once it is older than ``ttl_sec``.
    """
    cache = load_json_safe(cache_file, {"ts": 0})
    if not isinstance(cache, dict):
        cache = {"ts": 0}
    now = int(time.time())
    if now - int(cache.get("ts", 0)) > ttl_sec:
        cache = {"ts": now}

    per_backend = cache.setdefault(backend, {})
    if query in per_backend:
        return list(per_backend[query])

    results = fetch(query)[:500]
    per_backend[query] = results
    cache["ts"] = now
    try:
        save_json(cache_file, cache)
    except OSError:
        pass
    return results
