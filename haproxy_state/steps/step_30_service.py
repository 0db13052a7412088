from __future__ import annotations

import logging
from typing import Any, Dict

from ..lib.service import ensure_service
from ..pipeline import RunContext
from ..state_store import effective_enable

logger = logging.getLogger(__name__)


class ServiceStep:
    step_id = "30_service"

    def run(self, state: Dict[str, Any], ctx: RunContext) -> Dict[str, Any]:
        cfg = state.get("config") or {}
        if not cfg.get("manage_service", True):
            logger.info("Service management disabled; leaving service untouched")
            return state

        enable = effective_enable(cfg)
        name = str(cfg.get("service_name") or "haproxy")
        ensure_service(name, running=enable, enable=enable, dry_run=ctx.dry_run)

        state.setdefault("execution", {}).setdefault("decisions", {})["service"] = {
            "name": name,
            "ensure": "running" if enable else "stopped",
        }
        return state
