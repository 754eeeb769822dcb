from __future__ import annotations
from concurrent.futures import ThreadPoolExecutor
from typing import Dict, List, Mapping, Optional

from .backends import Backend
from .errors import BackendError
from .groups import GroupStore
from .models import ReconcileResult


def backends_to_check(store: GroupStore, backends: Mapping[str, Backend],
                      all_registered: bool = False) -> List[str]:
    """Backend names to reconcile, in registry order.

    By default only backends that appear in some group are queried;
    ``all_registered`` adds every other registered backend whose tool is
    installed (unmanaged/clean/review).
    """
    used = store.all_managed_backends()
    if all_registered:
        return [name for name, b in backends.items() if name in used or b.is_available()]
    return [name for name in backends if name in used]


def _query(backend: Backend) -> ReconcileResult:
    res = ReconcileResult(backend=backend.name())
    try:
        res.installed = set(backend.list_explicit_installed())
    except BackendError as e:
        res.error = e
    return res


def reconcile(store: GroupStore, backends: Mapping[str, Backend],
              all_registered: bool = False, max_workers: Optional[int] = None) -> List[ReconcileResult]:
    """Join managed sets with live explicit installs, one result per backend.

    Queries run concurrently; a failing backend only marks its own
    result as failed.
    """
    names = backends_to_check(store, backends, all_registered)
    if not names:
        return []

    with ThreadPoolExecutor(max_workers=max_workers or len(names)) as pool:
        futures = {name: pool.submit(_query, backends[name]) for name in names}
        by_name: Dict[str, ReconcileResult] = {name: f.result() for name, f in futures.items()}

    out: List[ReconcileResult] = []
    for name in names:
        res = by_name[name]
        res.managed = set(store.managed_for(name))
        out.append(res)
    return out
