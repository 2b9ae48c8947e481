from __future__ import annotations

import os
import posixpath
from pathlib import Path


class InvalidPathError(ValueError):
    """Client path is malformed or cannot be mapped below the root."""


class PathEscapeError(InvalidPathError):
    """Client path resolves outside the root."""


def validate_path(requested_path: str, root: str) -> Path:
    """Map a root-relative client path onto the filesystem.

    Leading slashes are ignored, so ``/docs`` and ``docs`` both name
    ``<root>/docs``. The result is canonical and is guaranteed to be the root
    itself or one of its descendants; sibling directories that merely share
    the root's string prefix are rejected.
    """
    if '\x00' in requested_path:
        raise InvalidPathError('Invalid path')

    base = Path(root).resolve(strict=False)
    try:
        candidate = (base / requested_path.lstrip('/')).resolve(strict=False)
    except (OSError, ValueError) as exc:
        raise InvalidPathError('Invalid path') from exc

    if base != candidate and base not in candidate.parents:
        raise PathEscapeError('Path traversal detected')
    return candidate


def validate_name(name: str) -> str:
    """Accept a single path component only."""
    if not name or name in {'.', '..'} or '/' in name or '\\' in name or '\x00' in name:
        raise InvalidPathError(f'Invalid name: {name!r}')
    return name


def parent_client_path(client_path: str) -> str:
    # '' marks the root; nothing is exposed above it
    if client_path in {'', '/'}:
        return ''
    return posixpath.dirname(client_path.rstrip('/')) or '/'


def normalize_client_path(requested_path: str) -> str:
    """Canonical form of a client path as the client spelled it, e.g. ``sub/./x/`` -> ``/sub/x``.

    Only meaningful for paths already accepted by ``validate_path``.
    """
    return posixpath.normpath('/' + requested_path.lstrip('/'))


def display_name(name: str) -> str:
    # Undecodable bytes come back from the OS as lone surrogates, which JSON cannot carry.
    return os.fsencode(name).decode('utf-8', 'replace')
