from __future__ import annotations

import logging
import os
import threading
from contextlib import contextmanager
from typing import Dict, Iterator

logger = logging.getLogger(__name__)

_registry_lock = threading.Lock()
_target_locks: Dict[str, threading.Lock] = {}


def _lock_for(path: str) -> threading.Lock:
    key = os.path.abspath(path)
    with _registry_lock:
        lock = _target_locks.get(key)
        if lock is None:
            lock = _target_locks[key] = threading.Lock()
        return lock


@contextmanager
def target_lock(path: str) -> Iterator[None]:
    """Serialize reconcile-then-notify for one target path across passes."""

    lock = _lock_for(path)
    if not lock.acquire(blocking=False):
        logger.debug("Waiting for another pass to finish with %s", path)
        lock.acquire()
    try:
        yield
    finally:
        lock.release()
