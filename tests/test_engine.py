import threading
import time

from pacdef.engine import backends_to_check, reconcile

from conftest import FakeBackend, make_store, pkgs


def test_prefixed_installed_package_is_distinct():
    store = make_store("[pacman]\nfoo\nbar\n")
    backends = {"pacman": FakeBackend("pacman", installed=["foo", "extra/foo", "qux"])}
    [res] = reconcile(store, backends)
    assert res.backend == "pacman"
    assert res.to_install == pkgs("bar")
    assert res.unmanaged == pkgs("extra/foo", "qux")


def test_only_backends_used_by_groups_are_queried():
    store = make_store("[rust]\nbat\n")
    pacman = FakeBackend("pacman", installed=["foo"])
    rust = FakeBackend("rust", installed=["bat"])
    backends = {"pacman": pacman, "rust": rust}
    results = reconcile(store, backends)
    assert [r.backend for r in results] == ["rust"]
    assert pacman.calls == []


def test_all_registered_includes_unused_backends():
    store = make_store("[rust]\nbat\n")
    backends = {"pacman": FakeBackend("pacman", installed=["foo"]), "rust": FakeBackend("rust", installed=["bat"])}
    assert backends_to_check(store, backends, all_registered=True) == ["pacman", "rust"]
    results = reconcile(store, backends, all_registered=True)
    assert [r.backend for r in results] == ["pacman", "rust"]
    assert results[0].managed == set()
    assert results[0].unmanaged == pkgs("foo")
    assert results[1].unmanaged == set()


def test_failing_backend_is_isolated():
    store = make_store("[pacman]\nfoo\n[rust]\nbat\n")
    backends = {
        "pacman": FakeBackend("pacman", query_fails=True),
        "rust": FakeBackend("rust", installed=[]),
    }
    pac, rust = reconcile(store, backends)
    assert not pac.ok
    assert "database locked" in str(pac.error)
    assert pac.to_install == set() and pac.unmanaged == set()
    assert rust.ok
    assert rust.to_install == pkgs("bat")


def test_equal_sets_give_empty_diffs():
    store = make_store("[pacman]\nfoo\nextra/bar\n")
    [res] = reconcile(store, {"pacman": FakeBackend("pacman", installed=["foo", "extra/bar"])})
    assert res.to_install == set()
    assert res.unmanaged == set()


def test_to_install_and_unmanaged_never_overlap():
    store = make_store("[pacman]\na\nb\nc\ncore/d\n", "[pacman]\nc\ne\n")
    [res] = reconcile(store, {"pacman": FakeBackend("pacman", installed=["b", "d", "e", "f", "core/d"])})
    assert res.to_install == pkgs("a", "c")
    assert res.unmanaged == pkgs("d", "f")
    assert not res.to_install & res.unmanaged


class SlowBackend(FakeBackend):
    def __init__(self, name, delay, barrier=None, **kw):
        super().__init__(name, **kw)
        self.delay = delay
        self.barrier = barrier

    def list_explicit_installed(self):
        if self.barrier is not None:
            self.barrier.wait(timeout=5)
        time.sleep(self.delay)
        return super().list_explicit_installed()


def test_queries_run_concurrently_and_keep_order():
    barrier = threading.Barrier(2)
    store = make_store("[pacman]\nfoo\n[rust]\nbat\n")
    backends = {
        "pacman": SlowBackend("pacman", 0.05, barrier, installed=["foo"]),
        "rust": SlowBackend("rust", 0.0, barrier, installed=[]),
    }
    results = reconcile(store, backends)
    assert [r.backend for r in results] == ["pacman", "rust"]
    assert [r.ok for r in results] == [True, True]


def test_unused_backend_without_tool_is_skipped():
    store = make_store("[rust]\nbat\n")
    flatpak = FakeBackend("flatpak", installed=["org.gimp.GIMP"], present=False)
    rust = FakeBackend("rust", installed=["bat"], present=False)
    results = reconcile(store, {"flatpak": flatpak, "rust": rust}, all_registered=True)
    assert [r.backend for r in results] == ["rust"]
    assert flatpak.calls == []
