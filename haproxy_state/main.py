from __future__ import annotations

import argparse
import logging
from typing import Any, Dict, Optional

from .lib.env import PATHS
from .logging_utils import configure_logging
from .pipeline import RunContext, run_pipeline
from .state_store import ensure_defaults, load_state, save_state
from .steps import ConfigureStep, MonitorStep, PackageStep, ServiceStep

logger = logging.getLogger(__name__)


def build_steps():
    # Package before config, config before service.
    return [
        PackageStep(),
        ConfigureStep(),
        ServiceStep(),
        MonitorStep(),
    ]


def run(
    *,
    state_path: str = PATHS.state_default,
    log_path: str = PATHS.log_default,
    start_at: Optional[str] = None,
    stop_after: Optional[str] = None,
    dry_run: Optional[bool] = None,
    parallel: Optional[bool] = None,
    verbose: bool = False,
    ctx: Optional[RunContext] = None,
) -> Dict[str, Any]:
    """Run one convergence pass, persisting state for the next one."""

    actual_log_path = configure_logging(log_path, verbose=verbose)

    state = ensure_defaults(load_state(state_path))
    cfg = state["config"]
    exe = state["execution"]
    exe.setdefault("paths", {})["log_path_actual"] = actual_log_path
    exe["errors"] = []

    if ctx is None:
        ctx = RunContext(
            dry_run=bool(cfg.get("dry_run")) if dry_run is None else dry_run,
            parallel=bool(cfg.get("parallel")) if parallel is None else parallel,
        )

    try:
        result = run_pipeline(
            state=state,
            steps=build_steps(),
            ctx=ctx,
            start_at=start_at,
            stop_after=stop_after,
        )
        state = result.state
        state["execution"]["summary"] = {
            "ran_steps": result.ran_steps,
            "skipped_steps": result.skipped_steps,
        }
        return state
    except Exception as e:
        logger.exception("Convergence pass failed")
        state.setdefault("execution", {}).setdefault("errors", []).append(
            {
                "step": (state.get("execution") or {}).get("current_step"),
                "error": str(e),
            }
        )
        raise
    finally:
        save_state(state_path, state)


def main(argv: Optional[list[str]] = None) -> int:
    p = argparse.ArgumentParser(prog="haproxy-state")
    p.add_argument("--state", default=PATHS.state_default, help="Path to desired state and run record (json|yaml)")
    p.add_argument("--log", default=PATHS.log_default, help="Path to log file")
    p.add_argument("--start-at", default=None, help="Start at step_id (e.g. 20_configure)")
    p.add_argument("--stop-after", default=None, help="Stop after step_id")
    p.add_argument("--dry-run", action="store_true", default=None, help="Log intended changes without applying them")
    p.add_argument("--parallel", action="store_true", default=None, help="Reconcile independent targets in parallel")
    p.add_argument("-v", "--verbose", action="store_true", help="Log command stderr and lock waits")

    args = p.parse_args(argv)

    state = run(
        state_path=args.state,
        log_path=args.log,
        start_at=args.start_at,
        stop_after=args.stop_after,
        dry_run=args.dry_run,
        parallel=args.parallel,
        verbose=args.verbose,
    )
    return 1 if state["execution"].get("errors") else 0


if __name__ == "__main__":
    raise SystemExit(main())
