from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict

import pytest

from haproxy_state.pipeline import RunContext
from haproxy_state.steps import ConfigureStep, MonitorStep, PackageStep, ServiceStep
from haproxy_state.steps.step_20_configure import HEADER, render_listener, render_member

RELOAD = ["systemctl", "reload-or-restart", "haproxy"]


def _cfg(state: Dict[str, Any]) -> Dict[str, Any]:
    return state["config"]


def test_configure_writes_assembled_config(desired_state, commands, tmp_path: Path) -> None:
    ConfigureStep().run(desired_state, RunContext())

    chroot = tmp_path / "var/lib/haproxy"
    expected = (
        HEADER
        + "global\n"
        + "  daemon\n"
        + "  maxconn 4000\n"
        + f"  chroot {chroot}\n"
        + "\n"
        + "defaults\n"
        + "  timeout connect 10s\n"
        + "  timeout client 1m\n"
        + "\n"
        + "listen puppet00\n"
        + "  bind 10.0.0.1:8140\n"
        + "  mode tcp\n"
        + "  balance roundrobin\n"
        + "  server web01 10.0.0.2:8140 check\n"
    )
    config_path = Path(_cfg(desired_state)["config_path"])
    assert config_path.read_text(encoding="utf-8") == expected
    assert Path(_cfg(desired_state)["defaults_file"]).read_text(encoding="utf-8") == HEADER + "ENABLED=1\n"
    assert chroot.is_dir()

    reports = desired_state["execution"]["reports"]
    assert reports[str(config_path)]["changed"] is True
    # Both targets changed, the shared reload fires once.
    assert commands.calls == [RELOAD]


def test_configure_second_pass_is_quiet(desired_state, commands) -> None:
    ConfigureStep().run(desired_state, RunContext())
    ConfigureStep().run(desired_state, RunContext())

    assert commands.calls == [RELOAD]
    assert all(not r["changed"] for r in desired_state["execution"]["reports"].values())


def test_configure_change_triggers_reload(desired_state, commands) -> None:
    ConfigureStep().run(desired_state, RunContext())
    _cfg(desired_state)["global_options"]["maxconn"] = "8000"
    ConfigureStep().run(desired_state, RunContext())

    assert commands.calls == [RELOAD, RELOAD]
    assert "  maxconn 8000\n" in Path(_cfg(desired_state)["config_path"]).read_text(encoding="utf-8")


def test_configure_uses_restart_command(desired_state, commands) -> None:
    _cfg(desired_state)["restart_command"] = "/etc/init.d/haproxy reload"
    ConfigureStep().run(desired_state, RunContext())

    assert commands.calls == [["/etc/init.d/haproxy", "reload"]]


def test_failed_reload_is_persisted_and_retried(desired_state, commands) -> None:
    commands.fail = lambda argv: argv == RELOAD
    ConfigureStep().run(desired_state, RunContext())

    exe = desired_state["execution"]
    config_path = _cfg(desired_state)["config_path"]
    assert exe["pending_notifications"][config_path] == ["reload_service haproxy"]
    assert exe["errors"][0]["target"] == config_path
    assert Path(config_path).exists()

    commands.fail = lambda argv: False
    ConfigureStep().run(desired_state, RunContext())

    assert exe["pending_notifications"] == {}
    assert commands.calls == [RELOAD, RELOAD]


def test_dry_run_does_not_settle_a_failed_reload(desired_state, commands) -> None:
    config_path = _cfg(desired_state)["config_path"]
    commands.fail = lambda argv: argv == RELOAD
    ConfigureStep().run(desired_state, RunContext())

    commands.fail = lambda argv: False
    ConfigureStep().run(desired_state, RunContext(dry_run=True))

    assert desired_state["execution"]["pending_notifications"][config_path] == ["reload_service haproxy"]

    commands.calls.clear()
    ConfigureStep().run(desired_state, RunContext())

    assert commands.calls == [RELOAD]
    assert desired_state["execution"]["pending_notifications"] == {}


def test_unmanaged_service_is_never_reloaded(desired_state, commands) -> None:
    _cfg(desired_state)["manage_service"] = False
    ConfigureStep().run(desired_state, RunContext())

    assert commands.calls == []
    assert Path(_cfg(desired_state)["config_path"]).exists()


def test_redhat_has_no_defaults_file(desired_state, commands) -> None:
    _cfg(desired_state)["os_family"] = "redhat"
    ConfigureStep().run(desired_state, RunContext())

    assert not Path(_cfg(desired_state)["defaults_file"]).exists()
    assert list(desired_state["execution"]["reports"]) == [_cfg(desired_state)["config_path"]]


def test_disabled_through_hierarchy_declares_nothing(desired_state, commands, tmp_path: Path) -> None:
    data = tmp_path / "node.yaml"
    data.write_text("haproxy::enable: false\n", encoding="utf-8")
    _cfg(desired_state)["enable"] = None
    _cfg(desired_state)["hierarchy"] = [str(data)]

    ConfigureStep().run(desired_state, RunContext())

    assert desired_state["execution"]["reports"] == {}
    assert not Path(_cfg(desired_state)["config_path"]).exists()


def test_invalid_listener_option_aborts_config_only(desired_state, commands) -> None:
    _cfg(desired_state)["listeners"][0]["options"] = {"maxconn": 100}
    ConfigureStep().run(desired_state, RunContext())

    reports = desired_state["execution"]["reports"]
    assert reports[_cfg(desired_state)["config_path"]]["error"]
    assert not Path(_cfg(desired_state)["config_path"]).exists()
    assert reports[_cfg(desired_state)["defaults_file"]]["changed"] is True


@pytest.mark.parametrize(
    "section,entry",
    [
        ("listeners", {"ipaddress": "10.0.0.1", "ports": "80"}),
        ("balancer_members", {"name": "web02", "ipaddress": "10.0.0.3"}),
        ("balancer_members", {"name": "web02", "listening_service": "puppet00"}),
    ],
)
def test_incomplete_entry_aborts_config_only(desired_state, commands, section, entry) -> None:
    _cfg(desired_state)[section].append(entry)
    ConfigureStep().run(desired_state, RunContext())

    reports = desired_state["execution"]["reports"]
    assert "missing" in reports[_cfg(desired_state)["config_path"]]["error"]
    assert not Path(_cfg(desired_state)["config_path"]).exists()
    assert Path(_cfg(desired_state)["defaults_file"]).read_text(encoding="utf-8") == HEADER + "ENABLED=1\n"


def test_dry_run_writes_nothing(desired_state, commands) -> None:
    ConfigureStep().run(desired_state, RunContext(dry_run=True))

    assert not Path(_cfg(desired_state)["config_path"]).exists()
    assert desired_state["execution"]["reports"][_cfg(desired_state)["config_path"]]["changed"] is True


def test_render_listener_with_several_ports() -> None:
    text = render_listener({"name": "web", "ipaddress": "0.0.0.0", "ports": ["80", "443"], "mode": "http"})
    assert text == "\nlisten web\n  bind 0.0.0.0:80\n  bind 0.0.0.0:443\n  mode http\n"


def test_render_member_requires_address() -> None:
    with pytest.raises(ValueError):
        render_member({"name": "web01", "listening_service": "web"})


def test_package_installed_when_missing(desired_state, commands) -> None:
    commands.returncodes[("dpkg-query", "-W")] = 1
    PackageStep().run(desired_state, RunContext())

    assert commands.calls[-1] == ["apt-get", "install", "-y", "haproxy"]
    assert desired_state["execution"]["decisions"]["package_changed"] is True


def test_package_removed_when_disabled_on_redhat(desired_state, commands) -> None:
    _cfg(desired_state).update(enable=False, os_family="redhat")
    PackageStep().run(desired_state, RunContext())

    assert commands.calls == [["rpm", "-q", "haproxy"], ["yum", "remove", "-y", "haproxy"]]


def test_service_started_and_enabled(desired_state, commands) -> None:
    commands.returncodes[("systemctl", "is-active")] = 3
    ServiceStep().run(desired_state, RunContext())

    assert commands.calls[1:] == [["systemctl", "start", "haproxy"], ["systemctl", "enable", "haproxy"]]


def test_service_stopped_when_disabled(desired_state, commands) -> None:
    _cfg(desired_state)["enable"] = False
    ServiceStep().run(desired_state, RunContext())

    assert commands.calls[1:] == [["systemctl", "stop", "haproxy"], ["systemctl", "disable", "haproxy"]]


def test_monitor_check_published(desired_state) -> None:
    MonitorStep().run(desired_state, RunContext())

    sink = Path(_cfg(desired_state)["monitor"]["sink"])
    records = [json.loads(line) for line in sink.read_text(encoding="utf-8").splitlines()]
    assert len(records) == 1
    assert records[0]["host_name"] == "lb1.example.com"
    assert records[0]["check_command"] == "check_haproxy"
    assert desired_state["execution"]["decisions"]["check_published"] is True


def test_monitor_sink_failure_is_not_fatal(desired_state, tmp_path: Path) -> None:
    sink = tmp_path / "sink-dir"
    sink.mkdir()
    _cfg(desired_state)["monitor"]["sink"] = str(sink)

    MonitorStep().run(desired_state, RunContext())

    assert desired_state["execution"]["decisions"]["check_published"] is False


def test_monitor_check_published_once_until_it_changes(desired_state) -> None:
    sink = Path(_cfg(desired_state)["monitor"]["sink"])
    for _ in range(3):
        MonitorStep().run(desired_state, RunContext())

    assert len(sink.read_text(encoding="utf-8").splitlines()) == 1
    assert desired_state["execution"]["decisions"]["check_published"] is False

    _cfg(desired_state)["monitor"]["check_command"] = "check_haproxy_stats"
    MonitorStep().run(desired_state, RunContext())

    lines = sink.read_text(encoding="utf-8").splitlines()
    assert len(lines) == 2
    assert json.loads(lines[-1])["check_command"] == "check_haproxy_stats"


def test_monitor_check_republished_when_sink_is_lost(desired_state) -> None:
    sink = Path(_cfg(desired_state)["monitor"]["sink"])
    MonitorStep().run(desired_state, RunContext())
    sink.unlink()

    MonitorStep().run(desired_state, RunContext())

    assert len(sink.read_text(encoding="utf-8").splitlines()) == 1
    assert desired_state["execution"]["decisions"]["check_published"] is True
