from __future__ import annotations

import logging
import os
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import replace
from typing import Callable, Dict, List, Mapping, Optional, Set, Tuple

from .errors import DependentActionError, DuplicateFragmentError
from .lib.fragments import Fragment, FragmentStore, Order
from .lib.locks import target_lock
from .lib.notify import DependentAction, Handler, notify
from .lib.writer import ChangeReport, TargetFile, reconcile

logger = logging.getLogger(__name__)


class ConvergencePass:
    """One convergence pass: fragment registration, assembly, write, notify.

    A fresh FragmentStore is used for every pass. Errors are isolated per
    target: a failed target gets an error in its ChangeReport and the other
    targets are still reconciled.

    `pending` maps a target path to dependent action keys that did not run in
    an earlier pass (failed, or skipped by cancellation). With
    `renotify_pending` those targets are notified even when unchanged.
    """

    def __init__(
        self,
        *,
        handlers: Mapping[str, Handler],
        pending: Optional[Mapping[str, List[str]]] = None,
        renotify_pending: bool = True,
        dry_run: bool = False,
        cancel: Optional[threading.Event] = None,
    ) -> None:
        self.store = FragmentStore()
        self.targets: Dict[str, TargetFile] = {}
        self.dependents: List[DependentAction] = []
        self.handlers = dict(handlers)
        self.pending: Dict[str, List[str]] = {k: list(v) for k, v in (pending or {}).items()}
        self.renotify_pending = renotify_pending
        self.dry_run = dry_run
        self.cancel = cancel or threading.Event()
        self._failed: Dict[str, BaseException] = {}

    def declare_target(self, target_file: TargetFile) -> None:
        self.targets[target_file.path] = target_file

    def fail_target(self, target: str, error: BaseException) -> None:
        logger.error("Target %s aborted for this pass: %s", target, error)
        self._failed.setdefault(target, error)

    def register(self, fragment: Fragment) -> bool:
        try:
            self.store.register(fragment)
        except DuplicateFragmentError as e:
            self.fail_target(fragment.target, e)
            return False
        return True

    def register_rendered(self, *, name: str, target: str, order: Order, render: Callable[[], str]) -> bool:
        """Render a fragment now and register it; a render failure aborts only its target."""

        try:
            content = render()
        except ValueError as e:
            # InvalidOptionValueError, or a declaration missing a required field.
            self.fail_target(target, e)
            return False
        return self.register(Fragment(name=name, target=target, order=order, content=content))

    def _set_pending(self, target: str, keys: List[str]) -> None:
        # A dry run reports what would happen; it never settles or records retries.
        if not self.dry_run:
            self.pending[target] = keys

    def _clear_pending(self, target: str) -> None:
        if not self.dry_run:
            self.pending.pop(target, None)

    def add_dependent(self, action: DependentAction) -> None:
        if action not in self.dependents:
            self.dependents.append(action)

    def _groups(self) -> List[List[str]]:
        # Targets sharing a dependent action are reconciled sequentially.
        groups: List[Tuple[Set[str], List[str]]] = []
        for target in self.targets:
            keys = {a.key for a in self.dependents if a.target == target}
            merged_keys, merged_targets = set(keys), [target]
            rest = []
            for g_keys, g_targets in groups:
                if g_keys & keys:
                    merged_keys |= g_keys
                    merged_targets = g_targets + merged_targets
                else:
                    rest.append((g_keys, g_targets))
            groups = rest + [(merged_keys, merged_targets)]
        return [targets for _, targets in groups]

    def run(self, *, parallel: bool = False, max_workers: Optional[int] = None) -> Dict[str, ChangeReport]:
        for stale in [t for t in self.pending if t not in self.targets]:
            logger.info("Dropping pending notifications for undeclared target %s", stale)
            self._clear_pending(stale)

        groups = self._groups()
        reports: Dict[str, ChangeReport] = {}
        try:
            if parallel and len(groups) > 1:
                with ThreadPoolExecutor(max_workers=max_workers) as pool:
                    for group_reports in pool.map(self._run_group, groups):
                        reports.update(group_reports)
            else:
                for group in groups:
                    reports.update(self._run_group(group))
        finally:
            self.store.reset()
        return reports

    def _run_group(self, targets: List[str]) -> Dict[str, ChangeReport]:
        fired: Set[str] = set()
        return {t: self._converge_target(self.targets[t], fired) for t in targets}

    def _converge_target(self, target_file: TargetFile, fired: Set[str]) -> ChangeReport:
        target = target_file.path

        if target in self._failed:
            return ChangeReport(target=target, changed=False, existed=os.path.exists(target), error=self._failed[target])

        if self.cancel.is_set():
            logger.warning("Pass cancelled; skipping %s", target)
            return ChangeReport(target=target, changed=False, existed=os.path.exists(target), cancelled=True)

        with target_lock(target):
            try:
                report = reconcile(self.store, target_file, dry_run=self.dry_run)
            except Exception as e:
                logger.exception("Reconcile of %s failed", target)
                return ChangeReport(target=target, changed=False, existed=os.path.exists(target), error=e)

            deps = [a for a in self.dependents if a.target == target]
            if not deps:
                self._clear_pending(target)
                return report

            force = self.renotify_pending and bool(self.pending.get(target))

            if self.cancel.is_set():
                if report.changed or force:
                    self._set_pending(target, sorted({a.key for a in deps} | set(self.pending.get(target, []))))
                    logger.warning("Pass cancelled after reconciling %s; notifications deferred", target)
                return replace(report, cancelled=True)

            if force and not report.changed:
                logger.info("Re-notifying dependents of %s (pending from an earlier pass)", target)

            try:
                invoked = notify(report, deps, self.handlers, already_fired=fired, force=force)
            except DependentActionError as e:
                self._set_pending(target, [a.key for a in e.failed])
                return replace(report, notified=tuple(e.invoked), error=e)

            if report.changed or force:
                self._clear_pending(target)
            return replace(report, notified=tuple(invoked))
