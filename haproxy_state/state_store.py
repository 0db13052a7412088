from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict

import yaml

from .lib.env import PATHS, detect_os_family
from .lib.lookup import lookup_bool

logger = logging.getLogger(__name__)

ENABLE_LOOKUP_KEY = "haproxy::enable"


def _detect_format(path: Path) -> str:
    ext = path.suffix.lower().lstrip(".")
    if ext in {"json", "yaml", "yml"}:
        return ext
    # Default to JSON for unknown extensions.
    return "json"


def load_state(path: str) -> Dict[str, Any]:
    p = Path(path)
    if not p.exists():
        return {}

    if _detect_format(p) in {"yaml", "yml"}:
        data = yaml.safe_load(p.read_text(encoding="utf-8")) or {}
    else:
        data = json.loads(p.read_text(encoding="utf-8"))

    if not isinstance(data, dict):
        raise ValueError(f"State file must be an object/dict, got {type(data)}")

    return data


def save_state(path: str, state: Dict[str, Any]) -> None:
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)

    # Option mappings are order-sensitive: never sort keys on save.
    if _detect_format(p) in {"yaml", "yml"}:
        p.write_text(yaml.safe_dump(state, sort_keys=False), encoding="utf-8")
    else:
        p.write_text(json.dumps(state, indent=2) + "\n", encoding="utf-8")


def default_global_options() -> Dict[str, Any]:
    return {
        "log": "127.0.0.1 local0",
        "chroot": "/var/lib/haproxy",
        "pidfile": "/var/run/haproxy.pid",
        "maxconn": "4000",
        "user": "haproxy",
        "group": "haproxy",
        "daemon": "",
        "stats": "socket /var/lib/haproxy/stats",
    }


def default_defaults_options() -> Dict[str, Any]:
    return {
        "log": "global",
        "stats": "enable",
        "option": "redispatch",
        "retries": "3",
        "timeout": [
            "http-request 10s",
            "queue 1m",
            "connect 10s",
            "client 1m",
            "server 1m",
            "check 10s",
        ],
        "maxconn": "8000",
    }


def ensure_defaults(state: Dict[str, Any]) -> Dict[str, Any]:
    """Fill required keys with sane defaults (without overriding user values)."""

    state.setdefault("version", "1.0")
    state.setdefault("config", {})
    state.setdefault("execution", {})

    cfg = state["config"]
    # None: ask the hierarchy (haproxy::enable), falling back to true.
    cfg.setdefault("enable", None)
    cfg.setdefault("hierarchy", [])
    cfg.setdefault("manage_service", True)
    cfg.setdefault("package_name", "haproxy")
    cfg.setdefault("service_name", "haproxy")
    cfg.setdefault("os_family", None)
    cfg.setdefault("config_path", PATHS.config_default)
    cfg.setdefault("config_owner", "root")
    cfg.setdefault("config_group", "root")
    cfg.setdefault("config_mode", "0644")
    cfg.setdefault("global_options", default_global_options())
    cfg.setdefault("defaults_options", default_defaults_options())
    cfg.setdefault("listeners", [])
    cfg.setdefault("balancer_members", [])
    # e.g. "/etc/init.d/haproxy reload"; None uses systemctl reload-or-restart.
    cfg.setdefault("restart_command", None)
    cfg.setdefault("renotify_pending", True)
    cfg.setdefault("parallel", False)
    cfg.setdefault("dry_run", False)

    mon = cfg.setdefault("monitor", {})
    mon.setdefault("enabled", True)
    mon.setdefault("sink", PATHS.checks_default)
    mon.setdefault("check_command", "check_haproxy")
    mon.setdefault("host_name", None)

    exe = state["execution"]
    exe.setdefault("current_step", None)
    exe.setdefault("errors", [])
    exe.setdefault("pending_notifications", {})
    exe.setdefault("reports", {})

    return state


def effective_enable(cfg: Dict[str, Any]) -> bool:
    if cfg.get("enable") is not None:
        return bool(cfg["enable"])
    return lookup_bool(cfg.get("hierarchy") or [], ENABLE_LOOKUP_KEY, True)


def effective_os_family(cfg: Dict[str, Any]) -> str:
    return cfg.get("os_family") or detect_os_family()


def parse_mode(mode: Any) -> int | None:
    if mode is None or isinstance(mode, int):
        return mode
    return int(str(mode), 8)
