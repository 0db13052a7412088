from __future__ import annotations

import logging
import os
from pathlib import Path

from .lib.env import PATHS

DEFAULT_LOG_PATH = PATHS.log_default
FALLBACK_LOG_NAME = "haproxy-state.log"

_HANDLER_NAME = "haproxy-state"
_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def _open_log(log_path: str) -> logging.FileHandler:
    try:
        Path(log_path).parent.mkdir(parents=True, exist_ok=True)
        return logging.FileHandler(log_path)
    except OSError:
        # Non-root runs cannot write under /var/log.
        return logging.FileHandler(str(Path.cwd() / FALLBACK_LOG_NAME))


def configure_logging(log_path: str = DEFAULT_LOG_PATH, *, verbose: bool = False, console: bool = True) -> str:
    """Attach the pass log file (and console) to the root logger.

    Calling it again only adjusts the level; the file chosen by the first call
    keeps receiving records. Returns the path actually written to.
    """

    root = logging.getLogger()
    root.setLevel(logging.DEBUG if verbose else logging.INFO)

    for h in root.handlers:
        if h.get_name() == _HANDLER_NAME and isinstance(h, logging.FileHandler):
            return h.baseFilename

    fmt = logging.Formatter(fmt=_FORMAT, datefmt="%Y-%m-%dT%H:%M:%S%z")
    file_handler = _open_log(log_path)
    handlers: list[logging.Handler] = [file_handler]
    if console:
        handlers.append(logging.StreamHandler())
    for h in handlers:
        h.set_name(_HANDLER_NAME)
        h.setFormatter(fmt)
        root.addHandler(h)

    chosen = file_handler.baseFilename
    if chosen != os.path.abspath(log_path):
        logging.getLogger(__name__).warning("Log path %s not writable; logging to %s", log_path, chosen)
    return chosen
