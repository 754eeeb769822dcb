from __future__ import annotations
import os
from dataclasses import dataclass, field
from typing import Any, Dict, List

from .cache import load_json_safe

APP_NAME = "pacdef"


def config_home() -> str:
    return os.environ.get("XDG_CONFIG_HOME") or os.path.expanduser("~/.config")


def cache_home() -> str:
    return os.environ.get("XDG_CACHE_HOME") or os.path.expanduser("~/.cache")


DEFAULTS: Dict[str, Any] = {
    "aur_helper": "paru",
    "aur_rm_args": [],
    "disabled_backends": [],
    "pip_binary": "pip",
    "timeout_sec": 300,
    "editor": "vi",
}


@dataclass(frozen=True)
class Config:
    aur_helper: str = "paru"
    aur_rm_args: List[str] = field(default_factory=list)
    disabled_backends: List[str] = field(default_factory=list)
    pip_binary: str = "pip"
    timeout_sec: int = 300
    editor: str = "vi"
    config_dir: str = ""
    cache_dir: str = ""

    @property
    def group_dir(self) -> str:
        return os.path.join(self.config_dir, "groups")

    @property
    def history_log(self) -> str:
        return os.path.join(self.cache_dir, "history.log")

    @property
    def search_cache_file(self) -> str:
        return os.path.join(self.cache_dir, "search_cache.json")


def load_config(path: str = "") -> Config:
    config_dir = os.path.join(config_home(), APP_NAME)
    path = path or os.path.join(config_dir, "config.json")
    cfg = load_json_safe(path, dict(DEFAULTS))
    if not isinstance(cfg, dict):
        cfg = dict(DEFAULTS)
    for k, v in DEFAULTS.items():
        cfg.setdefault(k, v)

    try:
        timeout = int(cfg["timeout_sec"])
    except (TypeError, ValueError):
        timeout = DEFAULTS["timeout_sec"]

    return Config(
        aur_helper=str(cfg["aur_helper"]).strip() or DEFAULTS["aur_helper"],
        aur_rm_args=[str(x) for x in cfg["aur_rm_args"] or []],
        disabled_backends=[str(x) for x in cfg["disabled_backends"] or []],
        pip_binary=str(cfg["pip_binary"]).strip() or DEFAULTS["pip_binary"],
        timeout_sec=timeout,
        editor=str(cfg["editor"]).strip() or DEFAULTS["editor"],
        config_dir=config_dir,
        cache_dir=os.path.join(cache_home(), APP_NAME),
    )
