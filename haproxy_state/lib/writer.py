from __future__ import annotations

import grp
import logging
import os
import pwd
import stat
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Tuple, Union

from ..errors import WriteError
from .assemble import assemble
from .fragments import FragmentStore

logger = logging.getLogger(__name__)

DEFAULT_MODE = 0o644


@dataclass(frozen=True)
class TargetFile:
    """A destination file assembled from fragments.

    owner/group accept a name or a numeric id; None leaves them unmanaged.
    mode None keeps the mode of an existing file.
    """

    path: str
    owner: Union[str, int, None] = None
    group: Union[str, int, None] = None
    mode: Optional[int] = DEFAULT_MODE
    require_non_empty: bool = False


@dataclass(frozen=True)
class ChangeReport:
    target: str
    changed: bool
    existed: bool = True
    content_changed: bool = False
    metadata_changed: bool = False
    error: Optional[BaseException] = None
    notified: Tuple[str, ...] = ()
    cancelled: bool = False

    @property
    def ok(self) -> bool:
        return self.error is None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "target": self.target,
            "changed": self.changed,
            "existed": self.existed,
            "content_changed": self.content_changed,
            "metadata_changed": self.metadata_changed,
            "error": None if self.error is None else str(self.error),
            "notified": list(self.notified),
            "cancelled": self.cancelled,
        }


def _resolve_ids(tf: TargetFile) -> Tuple[Optional[int], Optional[int]]:
    try:
        uid = tf.owner if (tf.owner is None or isinstance(tf.owner, int)) else pwd.getpwnam(tf.owner).pw_uid
        gid = tf.group if (tf.group is None or isinstance(tf.group, int)) else grp.getgrnam(tf.group).gr_gid
    except KeyError as e:
        raise WriteError(tf.path, f"unknown owner/group {e}") from e
    return uid, gid


def _metadata_matches(st: os.stat_result, uid: Optional[int], gid: Optional[int], mode: int) -> bool:
    if uid is not None and st.st_uid != uid:
        return False
    if gid is not None and st.st_gid != gid:
        return False
    return stat.S_IMODE(st.st_mode) == mode


def _atomic_write(path: Path, data: bytes, *, uid: Optional[int], gid: Optional[int], mode: int) -> None:
    tmp_path: Optional[str] = None
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=str(path.parent))
        with os.fdopen(fd, "wb") as fh:
            fh.write(data)
            fh.flush()
            os.fsync(fh.fileno())
            os.fchmod(fh.fileno(), mode)
            if uid is not None or gid is not None:
                os.fchown(fh.fileno(), -1 if uid is None else uid, -1 if gid is None else gid)
        os.replace(tmp_path, path)
        tmp_path = None
    except OSError as e:
        raise WriteError(str(path), str(e)) from e
    finally:
        if tmp_path is not None and os.path.exists(tmp_path):
            try:
                os.remove(tmp_path)
            except OSError:
                logger.warning("Could not remove temporary file %s", tmp_path)


def reconcile(store: FragmentStore, target_file: TargetFile, *, dry_run: bool = False) -> ChangeReport:
    """Write the assembled content of a target file if it differs from disk.

    The destination is replaced atomically; on failure WriteError is raised
    and the previous file is left untouched.
    """

    path = Path(target_file.path)
    st: Optional[os.stat_result] = None
    try:
        previous = path.read_bytes()
        st = path.stat()
    except FileNotFoundError:
        previous = b""
    except OSError as e:
        raise WriteError(str(path), f"cannot read current content: {e}") from e
    existed = st is not None

    assembled = assemble(store, target_file.path, require_non_empty=target_file.require_non_empty).encode("utf-8")
    uid, gid = _resolve_ids(target_file)

    mode = target_file.mode
    if mode is None:
        mode = stat.S_IMODE(st.st_mode) if st is not None else DEFAULT_MODE

    content_changed = (not existed) or assembled != previous
    metadata_changed = st is not None and not _metadata_matches(st, uid, gid, mode)

    if not content_changed and not metadata_changed:
        logger.debug("No change needed: %s", path)
        return ChangeReport(target=target_file.path, changed=False, existed=existed)

    if dry_run:
        logger.info("Would write %s (%d bytes)", str(path), len(assembled))
    else:
        _atomic_write(path, assembled, uid=uid, gid=gid, mode=mode)
        logger.info(
            "Wrote %s (content_changed=%s metadata_changed=%s)", str(path), content_changed, metadata_changed
        )

    return ChangeReport(
        target=target_file.path,
        changed=True,
        existed=existed,
        content_changed=content_changed,
        metadata_changed=metadata_changed,
    )
