from __future__ import annotations

import logging
import os
import posixpath
from datetime import datetime, timezone
from pathlib import Path

from ..schemas import DirectoryListing, FileEntry
from .paths import display_name, parent_client_path

logger = logging.getLogger(__name__)

_UNITS = 'KMGTPE'


def format_size(size: int) -> str:
    """Human readable size in binary units, e.g. ``1536 -> '1.5 KB'``."""
    if size < 1024:
        return f'{size} B'
    div, exp = 1024, 0
    n = size // 1024
    while n >= 1024 and exp < len(_UNITS) - 1:
        div *= 1024
        exp += 1
        n //= 1024
    return f'{size / div:.1f} {_UNITS[exp]}B'


def _ensure_directory(target: Path) -> None:
    if not target.exists():
        raise FileNotFoundError('Path not found')
    if not target.is_dir():
        raise NotADirectoryError('Path is not a directory')


def _entry(client_path: str, raw_name: str, **fields) -> FileEntry:
    name = display_name(raw_name)
    return FileEntry(name=name, path=posixpath.join(client_path, name), **fields)


def list_directory(target: Path, client_path: str) -> DirectoryListing:
    """List immediate children of ``target``, directories first then by name.

    ``client_path`` is the root-relative spelling of ``target`` shown to the
    client. Entries whose metadata cannot be read are left out of the result.
    """
    _ensure_directory(target)

    rows: list[tuple[bool, bytes, FileEntry]] = []
    for entry in target.iterdir():
        try:
            stat = entry.stat()
            is_dir = entry.is_dir()
        except OSError as exc:
            logger.debug('Skipping %s: %s', entry, exc)
            continue

        size = 0 if is_dir else stat.st_size
        # Creation time is not portable; modification time stands in for it.
        mod_time = datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc)
        item = _entry(
            client_path,
            entry.name,
            is_dir=is_dir,
            size=size,
            mod_time=mod_time,
            create_time=mod_time,
            size_formatted=format_size(size),
        )
        rows.append((not is_dir, os.fsencode(entry.name), item))

    rows.sort(key=lambda row: row[:2])
    logger.info('Listed %s: %d entries', client_path, len(rows))
    return DirectoryListing(
        current_path=client_path,
        parent_path=parent_client_path(client_path),
        files=[row[2] for row in rows],
    )


def list_directories_only(target: Path, client_path: str) -> DirectoryListing:
    _ensure_directory(target)

    rows: list[tuple[bytes, FileEntry]] = []
    for entry in target.iterdir():
        try:
            if not entry.is_dir():
                continue
            stat = entry.stat()
        except OSError:
            continue
        mod_time = datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc)
        rows.append((os.fsencode(entry.name), _entry(client_path, entry.name, is_dir=True, mod_time=mod_time)))

    rows.sort(key=lambda row: row[0])
    return DirectoryListing(
        current_path=client_path,
        parent_path=parent_client_path(client_path),
        files=[row[1] for row in rows],
    )
