from __future__ import annotations

from pathlib import Path
from typing import Any, Callable, Dict, List

import pytest

from haproxy_state.lib import pkg, service
from haproxy_state.lib.command import CmdResult
from haproxy_state.state_store import ensure_defaults


class FakeCommands:
    """Records commands instead of running them; `returncodes` maps argv[0:2] to an exit code."""

    def __init__(self) -> None:
        self.calls: List[List[str]] = []
        self.returncodes: Dict[tuple, int] = {}
        self.fail: Callable[[List[str]], bool] = lambda argv: False

    def __call__(self, argv, **kwargs: Any) -> CmdResult:
        argv = list(argv)
        self.calls.append(argv)
        if self.fail(argv):
            raise RuntimeError(f"Command failed: {' '.join(argv)}")
        rc = self.returncodes.get(tuple(argv[:2]), 0)
        return CmdResult(returncode=rc)


@pytest.fixture
def commands(monkeypatch: pytest.MonkeyPatch) -> FakeCommands:
    fake = FakeCommands()
    monkeypatch.setattr(pkg, "run_cmd", fake)
    monkeypatch.setattr(service, "run_cmd", fake)
    return fake


@pytest.fixture
def desired_state(tmp_path: Path) -> Dict[str, Any]:
    state = ensure_defaults(
        {
            "config": {
                "enable": True,
                "os_family": "debian",
                "config_path": str(tmp_path / "etc/haproxy/haproxy.cfg"),
                "defaults_file": str(tmp_path / "etc/default/haproxy"),
                "config_owner": None,
                "config_group": None,
                "global_options": {
                    "daemon": "",
                    "maxconn": "4000",
                    "chroot": str(tmp_path / "var/lib/haproxy"),
                },
                "defaults_options": {"timeout": ["connect 10s", "client 1m"]},
                "listeners": [
                    {
                        "name": "puppet00",
                        "ipaddress": "10.0.0.1",
                        "ports": "8140",
                        "options": {"balance": "roundrobin"},
                    }
                ],
                "balancer_members": [
                    {
                        "listening_service": "puppet00",
                        "name": "web01",
                        "ipaddress": "10.0.0.2",
                        "ports": "8140",
                        "options": ["check"],
                    }
                ],
                "monitor": {
                    "sink": str(tmp_path / "checks.jsonl"),
                    "host_name": "lb1.example.com",
                },
            }
        }
    )
    return state
