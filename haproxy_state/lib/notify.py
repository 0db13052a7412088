from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Iterable, List, Mapping, Optional, Set, Tuple

from ..errors import DependentActionError
from .writer import ChangeReport

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DependentAction:
    """A side effect bound to one target file, e.g. reload_service haproxy."""

    target: str
    kind: str
    args: Tuple[str, ...] = ()

    @property
    def key(self) -> str:
        return " ".join([self.kind, *self.args])

    def __str__(self) -> str:
        return self.key


Handler = Callable[[DependentAction], None]


def notify(
    report: ChangeReport,
    dependents: Iterable[DependentAction],
    handlers: Mapping[str, Handler],
    *,
    already_fired: Optional[Set[str]] = None,
    force: bool = False,
) -> List[str]:
    """Invoke the dependents of a changed target, each at most once.

    Actions whose key is in `already_fired` are skipped; fired keys are added
    to it. All actions run even if one fails; failures are then raised as a
    single DependentActionError. Returns the keys of the actions invoked.
    """

    if not (report.changed or force):
        return []

    fired = already_fired if already_fired is not None else set()
    invoked: List[str] = []
    failed: List[DependentAction] = []
    first_error: Optional[BaseException] = None

    for action in dependents:
        if action.target != report.target or action.key in fired:
            continue
        fired.add(action.key)
        handler = handlers.get(action.kind)
        try:
            if handler is None:
                raise KeyError(f"no handler registered for {action.kind!r}")
            logger.info("Notifying %s (target %s)", action.key, report.target)
            handler(action)
            invoked.append(action.key)
        except Exception as e:
            logger.error("Dependent action %s for %s failed: %s", action.key, report.target, e)
            failed.append(action)
            if first_error is None:
                first_error = e

    if failed:
        raise DependentActionError(report.target, failed[0], failed, invoked) from first_error
    return invoked
