from __future__ import annotations

import logging
import shlex
from typing import Sequence

from .command import run_cmd

logger = logging.getLogger(__name__)


def service_active(name: str, *, dry_run: bool = False) -> bool:
    if dry_run:
        return False
    return run_cmd(["systemctl", "is-active", "--quiet", name], check=False).returncode == 0


def ensure_service(name: str, *, running: bool = True, enable: bool = True, dry_run: bool = False) -> None:
    active = service_active(name, dry_run=dry_run)
    if running and not active:
        run_cmd(["systemctl", "start", name], dry_run=dry_run)
    elif not running and active:
        run_cmd(["systemctl", "stop", name], dry_run=dry_run)
    run_cmd(["systemctl", "enable" if enable else "disable", name], dry_run=dry_run)


def reload_service(name: str, *, restart_command: str | Sequence[str] | None = None, dry_run: bool = False) -> None:
    """Reload a service, via restart_command when one is configured."""

    if restart_command:
        argv = shlex.split(restart_command) if isinstance(restart_command, str) else list(restart_command)
    else:
        argv = ["systemctl", "reload-or-restart", name]
    run_cmd(argv, dry_run=dry_run)
