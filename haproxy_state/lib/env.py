from __future__ import annotations

import socket
from dataclasses import dataclass
from pathlib import Path

DEBIAN_IDS = {"debian", "ubuntu", "linuxmint", "raspbian"}
REDHAT_IDS = {"rhel", "centos", "fedora", "rocky", "almalinux", "ol", "amzn"}


@dataclass(frozen=True)
class Paths:
    state_default: str = "/var/lib/haproxy-state/state.json"
    log_default: str = "/var/log/haproxy-state.log"
    config_default: str = "/etc/haproxy/haproxy.cfg"
    debian_defaults: str = "/etc/default/haproxy"
    checks_default: str = "/var/lib/haproxy-state/checks.jsonl"


PATHS = Paths()


def detect_os_family(os_release: str = "/etc/os-release") -> str:
    """Return "debian", "redhat" or "unknown" from os-release ID/ID_LIKE."""

    p = Path(os_release)
    if not p.exists():
        return "unknown"
    ids: set[str] = set()
    for line in p.read_text(encoding="utf-8").splitlines():
        key, _, value = line.partition("=")
        if key in {"ID", "ID_LIKE"}:
            ids.update(value.strip().strip('"').split())
    if ids & DEBIAN_IDS:
        return "debian"
    if ids & REDHAT_IDS:
        return "redhat"
    return "unknown"


def fqdn() -> str:
    return socket.getfqdn()
