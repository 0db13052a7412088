from __future__ import annotations

import logging
import os
import shlex
import subprocess
from dataclasses import dataclass
from typing import Mapping, Sequence

logger = logging.getLogger(__name__)


class CommandError(RuntimeError):
    """A package or service command exited non-zero."""

    def __init__(self, argv: Sequence[str], returncode: int, stderr: str) -> None:
        detail = stderr.strip()
        msg = f"{_fmt_argv(argv)} exited with {returncode}"
        super().__init__(f"{msg}: {detail}" if detail else msg)
        self.returncode = returncode


@dataclass(frozen=True)
class CmdResult:
    # Probes (dpkg-query, rpm -q, systemctl is-active) only need these two.
    returncode: int
    stdout: str = ""


def _fmt_argv(argv: Sequence[str]) -> str:
    return " ".join(shlex.quote(a) for a in argv)


def run_cmd(
    argv: Sequence[str],
    *,
    check: bool = True,
    env: Mapping[str, str] | None = None,
    dry_run: bool = False,
) -> CmdResult:
    """Run a package or service command.

    Mutating commands are skipped in a dry run and reported as succeeded, so
    a planned reload looks the same as a real one in the pass report.
    """

    argv_list = list(argv)
    if dry_run:
        logger.info("Would run %s", _fmt_argv(argv_list))
        return CmdResult(returncode=0)

    logger.info("Running %s", _fmt_argv(argv_list))
    p = subprocess.run(
        argv_list,
        text=True,
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
        env=dict(os.environ, **(env or {})),
    )
    if p.stderr:
        logger.debug("%s stderr: %s", argv_list[0], p.stderr.strip())

    if check and p.returncode != 0:
        raise CommandError(argv_list, p.returncode, p.stderr)
    return CmdResult(returncode=p.returncode, stdout=p.stdout)
