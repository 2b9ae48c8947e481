from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class FileEntry(_CamelModel):
    name: str
    path: str
    is_dir: bool
    size: int = 0
    mod_time: datetime
    create_time: Optional[datetime] = None
    size_formatted: Optional[str] = None


class DirectoryListing(_CamelModel):
    current_path: str
    parent_path: str
    files: list[FileEntry] = Field(default_factory=list)


class DeleteRequest(BaseModel):
    path: str


class RenameRequest(_CamelModel):
    old_path: str
    new_name: str


class MkdirRequest(BaseModel):
    path: str = '/'
    name: str


class MoveRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    source: str = Field(alias='from')
    destination: str = Field(alias='to')


class ApiResponse(BaseModel):
    success: bool
    message: str


class UploadConflict(BaseModel):
    success: bool = False
    conflict: bool = True
    error: str = 'File already exists'
    filename: str
