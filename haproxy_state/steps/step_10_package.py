from __future__ import annotations

import logging
from typing import Any, Dict

from ..lib.pkg import ensure_package
from ..pipeline import RunContext
from ..state_store import effective_enable, effective_os_family

logger = logging.getLogger(__name__)


class PackageStep:
    step_id = "10_package"

    def run(self, state: Dict[str, Any], ctx: RunContext) -> Dict[str, Any]:
        cfg = state.get("config") or {}
        enable = effective_enable(cfg)
        os_family = effective_os_family(cfg)
        name = str(cfg.get("package_name") or "haproxy")

        changed = ensure_package(name, os_family, present=enable, dry_run=ctx.dry_run)

        decisions = state.setdefault("execution", {}).setdefault("decisions", {})
        decisions["enable"] = enable
        decisions["os_family"] = os_family
        decisions["package_changed"] = changed
        logger.info("Package %s ensure=%s (os_family=%s)", name, "present" if enable else "absent", os_family)
        return state
