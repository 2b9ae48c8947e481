from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile

from ..config import settings
from ..deps import get_file_ops
from ..schemas import (
    ApiResponse,
    DeleteRequest,
    DirectoryListing,
    MkdirRequest,
    MoveRequest,
    RenameRequest,
    UploadConflict,
)
from ..services.file_ops import FileOps, UploadTooLargeError
from ..services.paths import InvalidPathError, PathEscapeError

logger = logging.getLogger(__name__)

router = APIRouter(prefix='/api', tags=['files'])

_FS_ERRORS = (InvalidPathError, UploadTooLargeError, OSError)


def _http_error(exc: Exception, io_detail: str, escape_status: int = 400) -> HTTPException:
    if isinstance(exc, PathEscapeError):
        logger.warning('Rejected path outside root: %s', exc)
        detail = 'Access denied' if escape_status == 403 else 'Invalid path'
        return HTTPException(status_code=escape_status, detail=detail)
    if isinstance(exc, InvalidPathError):
        return HTTPException(status_code=400, detail=str(exc))
    if isinstance(exc, UploadTooLargeError):
        return HTTPException(status_code=413, detail=str(exc))
    if isinstance(exc, FileNotFoundError):
        return HTTPException(status_code=404, detail='Path not found')
    if isinstance(exc, NotADirectoryError):
        return HTTPException(status_code=400, detail='Path is not a directory')
    if isinstance(exc, FileExistsError):
        return HTTPException(status_code=409, detail='Destination already exists')
    logger.error('%s: %s', io_detail, exc)
    return HTTPException(status_code=500, detail=io_detail)


@router.get('/list', response_model=DirectoryListing)
def list_files(path: str = Query(default='/'), ops: FileOps = Depends(get_file_ops)):
    logger.info('Listing directory: %s', path)
    try:
        return ops.list_dir(path)
    except _FS_ERRORS as exc:
        raise _http_error(exc, 'Error reading directory', escape_status=403) from exc


@router.get('/ls', response_model=DirectoryListing)
def list_folders(path: str = Query(default='/'), ops: FileOps = Depends(get_file_ops)):
    try:
        return ops.list_subdirs(path)
    except _FS_ERRORS as exc:
        raise _http_error(exc, 'Error reading directory', escape_status=403) from exc


@router.post('/upload')
def upload(
    path: str = Form(default='/'),
    overwrite: bool = Form(default=False),
    create_path: bool = Form(default=False, alias='createPath'),
    file: UploadFile = File(...),
    ops: FileOps = Depends(get_file_ops),
):
    if not file.filename:
        raise HTTPException(status_code=400, detail='Error getting uploaded file')

    try:
        ops.save_upload(
            path,
            file.filename,
            file.file,
            overwrite=overwrite,
            create_path=create_path,
            max_bytes=settings.max_upload_bytes,
        )
    except FileExistsError:
        return UploadConflict(filename=file.filename)
    except _FS_ERRORS as exc:
        raise _http_error(exc, 'Error saving file') from exc
    return ApiResponse(success=True, message='File uploaded successfully')


@router.delete('/delete')
def delete(payload: DeleteRequest, ops: FileOps = Depends(get_file_ops)):
    try:
        ops.delete(payload.path)
    except _FS_ERRORS as exc:
        raise _http_error(exc, 'Error deleting file') from exc
    return ApiResponse(success=True, message='File deleted successfully')


@router.post('/rename')
def rename(payload: RenameRequest, ops: FileOps = Depends(get_file_ops)):
    try:
        ops.rename(payload.old_path, payload.new_name)
    except _FS_ERRORS as exc:
        raise _http_error(exc, 'Error renaming file') from exc
    return ApiResponse(success=True, message='File renamed successfully')


@router.post('/mkdir')
def mkdir(payload: MkdirRequest, ops: FileOps = Depends(get_file_ops)):
    try:
        ops.mkdir(payload.path, payload.name)
    except _FS_ERRORS as exc:
        raise _http_error(exc, 'Error creating directory') from exc
    return ApiResponse(success=True, message='Directory created successfully')


@router.post('/move')
def move(payload: MoveRequest, ops: FileOps = Depends(get_file_ops)):
    try:
        ops.move(payload.source, payload.destination)
    except _FS_ERRORS as exc:
        raise _http_error(exc, 'Error moving file') from exc
    return ApiResponse(success=True, message='File moved successfully')
