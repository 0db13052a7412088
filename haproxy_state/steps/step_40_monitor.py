from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict

from ..lib.env import PATHS, fqdn
from ..lib.monitor import CheckSink, check_digest, check_record, publish_check
from ..pipeline import RunContext
from ..state_store import effective_enable

logger = logging.getLogger(__name__)


class MonitorStep:
    step_id = "40_monitor"

    def run(self, state: Dict[str, Any], ctx: RunContext) -> Dict[str, Any]:
        cfg = state.get("config") or {}
        mon = cfg.get("monitor") or {}
        if not effective_enable(cfg) or not mon.get("enabled", True):
            return state

        record = check_record(
            host_name=str(mon.get("host_name") or fqdn()),
            check_command=str(mon.get("check_command") or "check_haproxy"),
            service_description=str(cfg.get("service_name") or "haproxy"),
            extra=mon.get("extra"),
        )
        sink = CheckSink(path=Path(mon.get("sink") or PATHS.checks_default))
        decisions = state.setdefault("execution", {}).setdefault("decisions", {})
        published = publish_check(sink, record, last_digest=decisions.get("check_digest"), dry_run=ctx.dry_run)

        decisions["check_published"] = published
        if published:
            decisions["check_digest"] = check_digest(record)
        return state
