from __future__ import annotations

import errno
import logging
import os
import posixpath
import shutil
import stat
import tempfile
from pathlib import Path
from typing import BinaryIO

from ..schemas import DirectoryListing
from .listing import list_directories_only, list_directory
from .paths import InvalidPathError, normalize_client_path, validate_name, validate_path

logger = logging.getLogger(__name__)

_CHUNK_SIZE = 1024 * 1024
# link()/fchmod() are missing on vfat/exFAT and many FUSE/SMB mounts
_UNSUPPORTED_ERRNOS = {errno.EPERM, errno.ENOTSUP, errno.EOPNOTSUPP, errno.ENOSYS}


def _current_umask() -> int:
    mask = os.umask(0)
    os.umask(mask)
    return mask


_UMASK = _current_umask()


class UploadTooLargeError(ValueError):
    pass


def _exists(path: Path) -> bool:
    return path.exists() or path.is_symlink()


def _fsync_dir(path: Path) -> None:
    dir_fd = os.open(str(path), os.O_RDONLY)
    try:
        os.fsync(dir_fd)
    finally:
        os.close(dir_fd)


def _upload_mode(target: Path, overwrite: bool) -> int:
    """Permissions a freshly created file would get, or the replaced file's own."""
    if overwrite:
        try:
            return stat.S_IMODE(target.stat().st_mode)
        except FileNotFoundError:
            pass
    return 0o666 & ~_UMASK


def _publish_no_clobber(tmp_path: str, target: Path, mode: int) -> None:
    try:
        # link() refuses to clobber, unlike replace()
        os.link(tmp_path, target)
    except FileExistsError:
        raise
    except OSError as exc:
        if exc.errno not in _UNSUPPORTED_ERRNOS:
            raise
        # claim the name first so a concurrent writer still sees a conflict
        os.close(os.open(target, os.O_CREAT | os.O_EXCL | os.O_WRONLY, mode))
        try:
            os.replace(tmp_path, target)
        except OSError:
            os.unlink(target)
            raise
    else:
        os.unlink(tmp_path)


def _apply_mode(fd: int, mode: int) -> None:
    try:
        os.fchmod(fd, mode)
    except OSError as exc:
        # vfat/exFAT have no permission bits to set
        if exc.errno not in _UNSUPPORTED_ERRNOS:
            raise
        logger.debug('Cannot set mode %o on upload: %s', mode, exc)


def _write_stream(source: BinaryIO, target: Path, overwrite: bool, max_bytes: int | None) -> int:
    """Copy ``source`` next to ``target`` and publish it in one step.

    The data lands in a temp file in the destination directory first, so a
    failed copy never leaves a truncated ``target`` behind.
    """
    mode = _upload_mode(target, overwrite)
    fd, tmp_path = tempfile.mkstemp(prefix=f'.{target.name}.', suffix='.upload', dir=str(target.parent))
    written = 0
    try:
        with os.fdopen(fd, 'wb') as dst:
            while chunk := source.read(_CHUNK_SIZE):
                written += len(chunk)
                if max_bytes is not None and written > max_bytes:
                    raise UploadTooLargeError(f'Upload exceeds {max_bytes} bytes')
                dst.write(chunk)
            dst.flush()
            _apply_mode(dst.fileno(), mode)
            os.fsync(dst.fileno())

        if overwrite:
            os.replace(tmp_path, target)
        else:
            _publish_no_clobber(tmp_path, target, mode)
        _fsync_dir(target.parent)
    except Exception:
        try:
            os.unlink(tmp_path)
        except FileNotFoundError:
            pass
        raise
    return written


class FileOps:
    """Filesystem operations confined to a single root directory."""

    def __init__(self, root: str):
        self.root = Path(root).resolve()

    def safe_path(self, rel: str) -> Path:
        return validate_path(rel, str(self.root))

    def entry_path(self, rel: str) -> Path:
        """Like ``safe_path`` but keeps a symlink in the last component as is.

        Mutations act on the directory entry the client named, not on what a
        link points at. The root itself is never a valid entry.
        """
        resolved = self.safe_path(rel)
        trimmed = rel.rstrip('/')
        name = posixpath.basename(trimmed)
        if name in {'', '.', '..'}:
            entry = resolved
        else:
            entry = self.safe_path(posixpath.dirname(trimmed)) / name
        if resolved == self.root or entry == self.root:
            raise InvalidPathError('Operation not allowed on the root directory')
        return entry

    def list_dir(self, rel: str) -> DirectoryListing:
        return list_directory(self.safe_path(rel), normalize_client_path(rel))

    def list_subdirs(self, rel: str) -> DirectoryListing:
        return list_directories_only(self.safe_path(rel), normalize_client_path(rel))

    def save_upload(
        self,
        rel_dir: str,
        filename: str,
        source: BinaryIO,
        *,
        overwrite: bool = False,
        create_path: bool = False,
        max_bytes: int | None = None,
    ) -> Path:
        """Store an uploaded stream as ``rel_dir/filename``.

        Raises ``FileExistsError`` when the file is already there and
        ``overwrite`` is false; the existing file is left untouched.
        """
        validate_name(filename)
        target_dir = self.safe_path(rel_dir)
        if create_path:
            try:
                target_dir.mkdir(parents=True, exist_ok=True)
            except FileExistsError:
                raise NotADirectoryError('Target path is not a directory') from None
        if not target_dir.is_dir():
            raise FileNotFoundError('Target directory not found')

        target = target_dir / filename
        if _exists(target) and not overwrite:
            raise FileExistsError(filename)

        try:
            written = _write_stream(source, target, overwrite, max_bytes)
        except FileExistsError:
            # another writer got there first
            raise FileExistsError(filename) from None
        logger.info('Uploaded %s (%d bytes)', target, written)
        return target

    def delete(self, rel: str) -> None:
        target = self.entry_path(rel)
        logger.info('Deleting %s', target)
        if target.is_symlink() or not target.is_dir():
            target.unlink(missing_ok=True)
        else:
            shutil.rmtree(target)

    def rename(self, rel: str, new_name: str) -> Path:
        validate_name(new_name)
        source = self.entry_path(rel)
        if not _exists(source):
            raise FileNotFoundError('Source not found')

        target = source.parent / new_name
        if target == source:
            return target
        if _exists(target):
            raise FileExistsError(new_name)

        source.rename(target)
        logger.info('Renamed %s -> %s', source, target)
        return target

    def mkdir(self, rel: str, name: str) -> Path:
        if not name.strip('/'):
            raise InvalidPathError('Folder name is required')
        target = self.safe_path(posixpath.join(rel, name.lstrip('/')))
        target.mkdir(parents=True, exist_ok=True)
        logger.info('Created directory %s', target)
        return target

    def move(self, rel_source: str, rel_dest_dir: str) -> Path:
        source = self.entry_path(rel_source)
        dest_dir = self.safe_path(rel_dest_dir)
        if not _exists(source):
            raise FileNotFoundError('Source not found')
        if not dest_dir.exists():
            raise FileNotFoundError('Destination not found')
        if not dest_dir.is_dir():
            raise NotADirectoryError('Destination is not a directory')
        if not source.is_symlink() and source.is_dir() and (dest_dir == source or source in dest_dir.parents):
            raise InvalidPathError('Cannot move a directory into itself')

        target = dest_dir / source.name
        if _exists(target):
            raise FileExistsError('Destination already exists')

        os.rename(source, target)
        logger.info('Moved %s -> %s', source, target)
        return target
