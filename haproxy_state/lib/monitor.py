from __future__ import annotations

import hashlib
import json
import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CheckSink:
    """JSON lines file collected by the monitoring system.

    A line is appended only when the exported check changes, so the newest
    line is always the current definition.
    """

    path: Path

    def publish(self, record: Dict[str, Any]) -> None:
        record = dict(record)
        record.setdefault("ts", time.time())
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with self.path.open("a", encoding="utf-8") as f:
            f.write(json.dumps(record, sort_keys=True) + "\n")


def check_record(
    *,
    host_name: str,
    check_command: str,
    service_description: str = "haproxy",
    extra: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    r: Dict[str, Any] = {
        "host_name": host_name,
        "check_command": check_command,
        "service_description": service_description,
    }
    if extra:
        r.update(extra)
    return r


def check_digest(record: Dict[str, Any]) -> str:
    return hashlib.sha256(json.dumps(record, sort_keys=True).encode("utf-8")).hexdigest()


def publish_check(
    sink: CheckSink,
    record: Dict[str, Any],
    *,
    last_digest: Optional[str] = None,
    dry_run: bool = False,
) -> bool:
    """Publish `record` unless the sink already ends with it.

    Returns True when a line was written. Failures are logged, never raised.
    """

    if check_digest(record) == last_digest and sink.path.exists():
        logger.info("Monitoring check for %s unchanged", record.get("host_name"))
        return False
    if dry_run:
        logger.info("Would publish check %s to %s", record.get("check_command"), str(sink.path))
        return False
    try:
        sink.publish(record)
    except OSError as e:
        logger.warning("Non-fatal: could not publish monitoring check to %s: %s", str(sink.path), e)
        return False
    logger.info("Published monitoring check for %s", record.get("host_name"))
    return True
