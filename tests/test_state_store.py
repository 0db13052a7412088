from __future__ import annotations

from pathlib import Path

import pytest

from haproxy_state.lib.env import detect_os_family
from haproxy_state.lib.lookup import lookup, lookup_bool
from haproxy_state.state_store import effective_enable, ensure_defaults, load_state, parse_mode, save_state


def test_defaults_do_not_override_user_values() -> None:
    state = ensure_defaults({"config": {"package_name": "haproxy18", "global_options": {"daemon": ""}}})
    cfg = state["config"]

    assert cfg["package_name"] == "haproxy18"
    assert cfg["global_options"] == {"daemon": ""}
    assert list(cfg["defaults_options"])[:3] == ["log", "stats", "option"]
    assert state["execution"]["pending_notifications"] == {}


@pytest.mark.parametrize("name", ["state.json", "state.yaml"])
def test_save_and_load_preserve_option_order(tmp_path: Path, name: str) -> None:
    path = tmp_path / name
    state = ensure_defaults({})
    save_state(str(path), state)

    loaded = load_state(str(path))
    assert list(loaded["config"]["global_options"]) == [
        "log", "chroot", "pidfile", "maxconn", "user", "group", "daemon", "stats",
    ]
    assert loaded["config"]["defaults_options"]["timeout"][0] == "http-request 10s"


def test_missing_state_file_is_empty(tmp_path: Path) -> None:
    assert load_state(str(tmp_path / "missing.json")) == {}


def test_state_must_be_a_mapping(tmp_path: Path) -> None:
    path = tmp_path / "state.yaml"
    path.write_text("- a\n- b\n", encoding="utf-8")
    with pytest.raises(ValueError):
        load_state(str(path))


@pytest.mark.parametrize("mode,expected", [("0644", 0o644), ("640", 0o640), (0o600, 0o600), (None, None)])
def test_parse_mode(mode, expected) -> None:
    assert parse_mode(mode) == expected


def test_lookup_first_file_wins(tmp_path: Path) -> None:
    node = tmp_path / "node.yaml"
    common = tmp_path / "common.yaml"
    node.write_text("haproxy::enable: false\n", encoding="utf-8")
    common.write_text("haproxy::enable: true\nother: 1\n", encoding="utf-8")
    hierarchy = [str(tmp_path / "absent.yaml"), str(node), str(common)]

    assert lookup_bool(hierarchy, "haproxy::enable", True) is False
    assert lookup(hierarchy, "other") == 1
    assert lookup(hierarchy, "nothing", "fallback") == "fallback"


def test_lookup_bool_rejects_non_boolean(tmp_path: Path) -> None:
    data = tmp_path / "common.yaml"
    data.write_text("haproxy::enable: 'yes please'\n", encoding="utf-8")
    with pytest.raises(ValueError):
        lookup_bool([str(data)], "haproxy::enable", True)


def test_effective_enable_prefers_explicit_value(tmp_path: Path) -> None:
    data = tmp_path / "common.yaml"
    data.write_text("haproxy::enable: false\n", encoding="utf-8")

    assert effective_enable({"enable": True, "hierarchy": [str(data)]}) is True
    assert effective_enable({"enable": None, "hierarchy": [str(data)]}) is False
    assert effective_enable({"enable": None, "hierarchy": []}) is True


@pytest.mark.parametrize(
    "content,expected",
    [
        ('ID=ubuntu\nID_LIKE=debian\n', "debian"),
        ('ID="rocky"\nID_LIKE="rhel centos fedora"\n', "redhat"),
        ('ID=alpine\n', "unknown"),
    ],
)
def test_detect_os_family(tmp_path: Path, content: str, expected: str) -> None:
    path = tmp_path / "os-release"
    path.write_text(content, encoding="utf-8")
    assert detect_os_family(str(path)) == expected
