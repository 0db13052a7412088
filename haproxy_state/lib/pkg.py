from __future__ import annotations

import logging

from .command import run_cmd

logger = logging.getLogger(__name__)


def package_installed(name: str, os_family: str, *, dry_run: bool = False) -> bool:
    """Return True if the OS package manager reports `name` as installed."""
    if dry_run:
        # Planning only; assume nothing is installed so the intent gets logged.
        return False
    if os_family == "debian":
        r = run_cmd(["dpkg-query", "-W", "-f=${Status}", name], check=False)
        return r.returncode == 0 and "install ok installed" in r.stdout
    r = run_cmd(["rpm", "-q", name], check=False)
    return r.returncode == 0


def ensure_package(name: str, os_family: str, *, present: bool = True, dry_run: bool = False) -> bool:
    """Install or remove a package. Returns True if a change was made."""

    installed = package_installed(name, os_family, dry_run=dry_run)
    if installed == present:
        logger.info("Package %s already %s", name, "present" if present else "absent")
        return False

    if os_family == "debian":
        argv = ["apt-get", "install" if present else "remove", "-y", name]
        env = {"DEBIAN_FRONTEND": "noninteractive"}
    else:
        argv = ["yum", "install" if present else "remove", "-y", name]
        env = None
    run_cmd(argv, env=env, dry_run=dry_run)
    return True
