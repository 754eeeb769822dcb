import pytest

from pacdef import actions
from pacdef.engine import reconcile
from pacdef.errors import PacdefError
from pacdef.ui import Confirmation

from conftest import Answers, FakeBackend, make_store, pkgs, text_of


def test_sync_installs_missing_after_confirmation(out):
    store = make_store("[pacman]\nfoo\nbar\n[rust]\nbat\n")
    pacman = FakeBackend("pacman", installed=["foo"])
    rust = FakeBackend("rust", installed=["bat"])
    answers = Answers(True)
    rc = actions.sync(store, {"pacman": pacman, "rust": rust}, Confirmation(ask=answers), out)
    assert rc == 0
    assert len(answers.questions) == 1
    assert ("install", frozenset(pkgs("bar")), False) in pacman.calls
    assert [c for c in rust.calls if c[0] == "install"] == []
    assert "bar" in text_of(out)


def test_sync_declined_changes_nothing(out):
    store = make_store("[pacman]\nfoo\n")
    pacman = FakeBackend("pacman")
    rc = actions.sync(store, {"pacman": pacman}, Confirmation(ask=Answers(False)), out)
    assert rc == 0
    assert pacman.installed == set()
    assert [c for c in pacman.calls if c[0] == "install"] == []


def test_sync_noconfirm_never_asks(out):
    store = make_store("[pacman]\nfoo\n")
    pacman = FakeBackend("pacman")
    asked = Answers()
    rc = actions.sync(store, {"pacman": pacman}, Confirmation(noconfirm=True, ask=asked), out)
    assert rc == 0
    assert asked.questions == []
    assert ("install", frozenset(pkgs("foo")), True) in pacman.calls


def test_sync_is_idempotent(out):
    store = make_store("[pacman]\nfoo\nextra/bar\n[rust]\nbat\n")
    backends = {"pacman": FakeBackend("pacman", installed=["qux"]), "rust": FakeBackend("rust")}
    assert actions.sync(store, backends, Confirmation(noconfirm=True), out) == 0
    for res in reconcile(store, backends):
        assert res.to_install == set()


def test_sync_nothing_to_do(out):
    store = make_store("[pacman]\nfoo\n")
    rc = actions.sync(store, {"pacman": FakeBackend("pacman", installed=["foo"])}, Confirmation(ask=Answers()), out)
    assert rc == 0
    assert "nothing to do" in text_of(out)


def test_sync_partial_failure_is_reported(out):
    store = make_store("[pacman]\nfoo\nbar\n[rust]\nbat\n")
    pacman = FakeBackend("pacman", broken=["bar"])
    rust = FakeBackend("rust")
    rc = actions.sync(store, {"pacman": pacman, "rust": rust}, Confirmation(noconfirm=True), out)
    assert rc == 1
    assert pacman.installed == pkgs("foo")
    assert rust.installed == pkgs("bat")
    assert "1 package(s) failed: bar" in text_of(out)


def test_sync_query_failure_sets_status_but_continues(out):
    store = make_store("[pacman]\nfoo\n[rust]\nbat\n")
    rust = FakeBackend("rust")
    rc = actions.sync(store, {"pacman": FakeBackend("pacman", query_fails=True), "rust": rust},
                      Confirmation(noconfirm=True), out)
    assert rc == 1
    assert rust.installed == pkgs("bat")
    assert "skipping backend 'pacman'" in text_of(out)


def test_clean_removes_unmanaged_from_every_backend(out):
    store = make_store("[pacman]\nfoo\n")
    pacman = FakeBackend("pacman", installed=["foo", "junk"])
    flatpak = FakeBackend("flatpak", installed=["org.gimp.GIMP"])
    answers = Answers(True, False)
    rc = actions.clean(store, {"pacman": pacman, "flatpak": flatpak}, Confirmation(ask=answers), out)
    assert rc == 0
    assert pacman.installed == pkgs("foo")
    assert flatpak.installed == pkgs("org.gimp.GIMP")
    assert len(answers.questions) == 2


def test_clean_warns_about_prefix_declared_package(out):
    store = make_store("[pacman]\nextra/neovim\nfoo\n")
    pacman = FakeBackend("pacman", installed=["foo", "neovim"])
    rc = actions.clean(store, {"pacman": pacman}, Confirmation(ask=Answers(False)), out)
    assert rc == 0
    text = text_of(out)
    assert "WARNING:" in text
    assert "neovim is declared as extra/neovim" in text
    assert pacman.installed == pkgs("foo", "neovim")


def test_prefix_mismatches_ignores_exact_matches():
    [r] = reconcile(make_store("[pacman]\nfoo\nextra/bar\n"),
                    {"pacman": FakeBackend("pacman", installed=["foo", "extra/bar", "bar", "baz"])})
    assert [(p.render(), m.render()) for p, m in actions.prefix_mismatches(r)] == [("bar", "extra/bar")]


def test_unmanaged_prints_sorted(out):
    store = make_store("[pacman]\nfoo\n")
    pacman = FakeBackend("pacman", installed=["foo", "zsh", "extra/abc", "bash"])
    assert actions.unmanaged(store, {"pacman": pacman}, out) == 0
    lines = [ln.strip() for ln in text_of(out).splitlines()]
    assert lines == ["pacman", "bash", "zsh", "extra/abc"]
    assert [c for c in pacman.calls if c[0] != "query"] == []


def test_search_tags_results_by_backend(out):
    backends = {
        "pacman": FakeBackend("pacman", available=["libfoo", "extra/libbar", "foo"]),
        "rust": FakeBackend("rust", available=["ripgrep"]),
    }
    hits, failures = actions.search_all(backends, "^lib.*", out)
    assert failures == 0
    assert {b for b, _ in hits} == {"pacman"}
    assert sorted(p.render() for _, p in hits) == ["extra/libbar", "libfoo"]
    assert actions.search(backends, "^lib.*", out) == 0


def test_search_without_hits_fails(out):
    backends = {"pacman": FakeBackend("pacman", available=["foo"])}
    assert actions.search(backends, "^lib.*", out) == 1
    assert "no packages matching" in text_of(out)


def test_search_invalid_pattern(out):
    with pytest.raises(PacdefError):
        actions.search({"pacman": FakeBackend("pacman")}, "lib(", out)


def test_search_skips_backends_without_tool(out):
    backends = {
        "pacman": FakeBackend("pacman", available=["libfoo"], present=False),
        "rust": FakeBackend("rust", available=["libc"]),
    }
    hits, _ = actions.search_all(backends, "^lib", out)
    assert [(b, p.render()) for b, p in hits] == [("rust", "libc")]
