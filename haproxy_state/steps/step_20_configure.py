from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, List

from ..convergence import ConvergencePass
from ..lib.env import PATHS
from ..lib.fragments import Fragment
from ..lib.notify import DependentAction
from ..lib.render import render_options, render_section
from ..lib.service import reload_service
from ..lib.writer import TargetFile
from ..pipeline import RunContext
from ..state_store import effective_enable, effective_os_family, parse_mode

logger = logging.getLogger(__name__)

HEADER = "# This file is managed by haproxy-state. Local changes will be overwritten.\n"


def _as_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return [str(v) for v in value]
    return [p.strip() for p in str(value).split(",") if p.strip()]


def _require(entry: Dict[str, Any], key: str, kind: str) -> str:
    value = entry.get(key)
    if not value:
        raise ValueError(f"{kind} entry is missing {key!r}: {entry!r}")
    return str(value)


def render_base(global_options: Dict[str, Any], defaults_options: Dict[str, Any]) -> str:
    return render_section("global", global_options) + "\n" + render_section("defaults", defaults_options)


def render_listener(listener: Dict[str, Any]) -> str:
    name = _require(listener, "name", "listener")
    ip = str(listener.get("ipaddress") or "*")
    text = f"\nlisten {name}\n"
    for port in _as_list(listener.get("ports")):
        text += f"  bind {ip}:{port}\n"
    options: Dict[str, Any] = {"mode": str(listener.get("mode") or "tcp")}
    options.update(listener.get("options") or {})
    return text + render_options(options, indent="  ")


def render_member(member: Dict[str, Any]) -> str:
    name = _require(member, "name", "balancer member")
    ip = _require(member, "ipaddress", "balancer member")
    options = member.get("options") or []
    opts = " ".join(str(o) for o in options) if isinstance(options, (list, tuple)) else str(options)
    lines = []
    for port in _as_list(member.get("ports")) or [""]:
        addr = f"{ip}:{port}" if port else ip
        lines.append(" ".join(p for p in ["  server", name, addr, opts] if p) + "\n")
    return "".join(lines)


def declare(cp: ConvergencePass, cfg: Dict[str, Any], os_family: str) -> None:
    """Declare target files, fragments and dependents for an enabled HAProxy."""

    config_path = str(cfg.get("config_path") or PATHS.config_default)
    cp.declare_target(
        TargetFile(
            path=config_path,
            owner=cfg.get("config_owner"),
            group=cfg.get("config_group"),
            mode=parse_mode(cfg.get("config_mode")),
        )
    )
    cp.register(Fragment(name="haproxy-header", target=config_path, order="00", content=HEADER))

    global_options = cfg.get("global_options") or {}
    defaults_options = cfg.get("defaults_options") or {}
    cp.register_rendered(
        name="haproxy-base",
        target=config_path,
        order="10",
        render=lambda: render_base(global_options, defaults_options),
    )

    for listener in cfg.get("listeners") or []:
        try:
            name = _require(listener, "name", "listener")
        except ValueError as e:
            cp.fail_target(config_path, e)
            continue
        cp.register_rendered(
            name=f"{name}_listen_block",
            target=config_path,
            order=f"20-{name}-00",
            render=lambda listener=listener: render_listener(listener),
        )

    for member in cfg.get("balancer_members") or []:
        try:
            service = _require(member, "listening_service", "balancer member")
            member_name = _require(member, "name", "balancer member")
        except ValueError as e:
            cp.fail_target(config_path, e)
            continue
        cp.register_rendered(
            name=f"{service}_balancermember_{member_name}",
            target=config_path,
            order=f"20-{service}-01-{member_name}",
            render=lambda member=member: render_member(member),
        )

    targets = [config_path]
    if os_family == "debian":
        defaults_path = str(cfg.get("defaults_file") or PATHS.debian_defaults)
        cp.declare_target(TargetFile(path=defaults_path, owner=cfg.get("config_owner"), group=cfg.get("config_group")))
        cp.register(Fragment(name="haproxy-defaults-header", target=defaults_path, order="00", content=HEADER))
        cp.register(Fragment(name="haproxy-defaults-enabled", target=defaults_path, order="10", content="ENABLED=1\n"))
        targets.append(defaults_path)

    if cfg.get("manage_service", True):
        service = str(cfg.get("service_name") or "haproxy")
        for t in targets:
            cp.add_dependent(DependentAction(target=t, kind="reload_service", args=(service,)))


def _ensure_chroot_dir(cfg: Dict[str, Any], *, dry_run: bool) -> None:
    chroot = (cfg.get("global_options") or {}).get("chroot")
    if not isinstance(chroot, str) or not chroot:
        return
    p = Path(chroot)
    if p.is_dir():
        return
    if dry_run:
        logger.info("Would create chroot directory %s", str(p))
        return
    p.mkdir(parents=True, exist_ok=True)
    logger.info("Created chroot directory %s", str(p))


class ConfigureStep:
    step_id = "20_configure"

    def run(self, state: Dict[str, Any], ctx: RunContext) -> Dict[str, Any]:
        cfg = state.get("config") or {}
        exe = state.setdefault("execution", {})
        enable = effective_enable(cfg)
        os_family = effective_os_family(cfg)

        restart_command = cfg.get("restart_command")
        handlers = {
            "reload_service": lambda action: reload_service(
                action.args[0], restart_command=restart_command, dry_run=ctx.dry_run
            ),
        }
        cp = ConvergencePass(
            handlers=handlers,
            pending=exe.get("pending_notifications") or {},
            renotify_pending=bool(cfg.get("renotify_pending", True)),
            dry_run=ctx.dry_run,
            cancel=ctx.cancel,
        )

        if enable:
            _ensure_chroot_dir(cfg, dry_run=ctx.dry_run)
            declare(cp, cfg, os_family)
        else:
            logger.info("HAProxy disabled; no configuration declared")

        reports = cp.run(parallel=ctx.parallel)

        exe["reports"] = {t: r.to_dict() for t, r in reports.items()}
        exe["pending_notifications"] = cp.pending
        for r in reports.values():
            if r.error is not None:
                exe.setdefault("errors", []).append({"step": self.step_id, "target": r.target, "error": str(r.error)})
            logger.info("Target %s changed=%s notified=%s", r.target, r.changed, list(r.notified))
        return state
