from __future__ import annotations

import logging
import os
from pathlib import Path

logger = logging.getLogger(__name__)


def check_root_ownership(root: str) -> Path:
    """Refuse to serve a root the current process does not own."""
    path = Path(root).resolve()
    try:
        st = path.stat()
    except OSError as exc:
        raise RuntimeError(f'Root directory is not accessible: {path}') from exc

    if not path.is_dir():
        raise RuntimeError(f'Root directory path must be a folder: {path}')

    uid, gid = os.getuid(), os.getgid()
    logger.info('Root dir owner uid=%d gid=%d, process uid=%d gid=%d', st.st_uid, st.st_gid, uid, gid)
    if st.st_uid != uid or st.st_gid != gid:
        raise RuntimeError('UID/GID of the process does not match the owner of the root directory')
    return path
