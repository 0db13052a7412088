from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Protocol, Sequence

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RunContext:
    dry_run: bool = False
    parallel: bool = False
    cancel: threading.Event = field(default_factory=threading.Event)


class Step(Protocol):
    """A single idempotent step, run on every pass."""

    step_id: str

    def run(self, state: Dict[str, Any], ctx: RunContext) -> Dict[str, Any]:
        ...


@dataclass(frozen=True)
class PipelineResult:
    state: Dict[str, Any]
    ran_steps: List[str]
    skipped_steps: List[str]


def run_pipeline(
    *,
    state: Dict[str, Any],
    steps: Sequence[Step],
    ctx: RunContext,
    start_at: Optional[str] = None,
    stop_after: Optional[str] = None,
) -> PipelineResult:
    """Run steps in order; a step failure aborts the steps after it."""

    ran: List[str] = []
    skipped: List[str] = []

    started = start_at is None
    stopped = False

    for step in steps:
        if not started and step.step_id == start_at:
            started = True
        if not started or stopped:
            skipped.append(step.step_id)
            continue
        if ctx.cancel.is_set():
            logger.warning("Pass cancelled; skipping step %s", step.step_id)
            skipped.append(step.step_id)
            continue

        state.setdefault("execution", {})["current_step"] = step.step_id
        logger.info("Running step %s", step.step_id)
        state = step.run(state, ctx)
        ran.append(step.step_id)

        if stop_after is not None and step.step_id == stop_after:
            logger.info("Stopping after %s", stop_after)
            stopped = True

    state.setdefault("execution", {})["current_step"] = None
    return PipelineResult(state=state, ran_steps=ran, skipped_steps=skipped)
