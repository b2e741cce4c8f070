from datetime import datetime

from pydantic import BaseModel


class ResolvedPath(BaseModel):
    full_path: str
    rel_path: str
    is_dir: bool
    size: int
    mtime: datetime


class Breadcrumb(BaseModel):
    name: str
    path: str
    is_root: bool


class DirectoryEntry(BaseModel):
    is_dir: bool
    is_compressed: bool
    icon_name: str
    name: str
    path: str
    size: int
    human_size: str
    mtime: datetime
    last_modified: str
    symlink_path: str = ""
    url_path: str = ""


class TrashEntry(DirectoryEntry):
    bucket: str
    trashed_at: datetime
    trashed_on: str
    restore_path: str = ""
