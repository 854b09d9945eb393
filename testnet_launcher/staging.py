"""
Staging of artifacts into the directories shared between the launcher and launched services.

Every launched service gets a directory that the launcher can write to and that the service sees
at a different absolute path. A SharedPath addresses one location in that storage from both sides.
"""

from __future__ import annotations

from dataclasses import dataclass
import logging
import os
import os.path
import posixpath
import shutil
from typing import Iterable, Optional

from .exceptions import StagingError

LOG = logging.getLogger(__name__)


@dataclass(frozen=True)
class SharedPath:
    local_path: str
    "absolute path on the launcher's filesystem"

    service_path: str
    "absolute path of the same storage inside the launched service"

    def child(self, name: str) -> SharedPath:
        return SharedPath(
            local_path=os.path.join(self.local_path, name),
            service_path=posixpath.join(self.service_path, name),
        )


@dataclass(frozen=True)
class StagedFile:
    """
    A file or directory a service expects to find in its shared directory before it starts.

    Exactly one of source (a launcher-local file or directory to copy) or content (text to write)
    is set.
    """
    dest: SharedPath
    source: Optional[str] = None
    content: Optional[str] = None

    def __post_init__(self):
        if (self.source is None) == (self.content is None):
            raise ValueError("StagedFile needs exactly one of source or content")


def copy_to_shared_path(source: str, dest: SharedPath) -> None:
    """
    Copy a file or a whole directory tree into a shared path, creating parent directories.

    Existing files at the destination are overwritten.

    :param source: launcher-local path of the file or directory to copy
    :param dest: the destination
    :raise StagingError: if the source is missing or unreadable or the copy fails
    """
    if not os.path.exists(source):
        raise StagingError(f"cannot stage {source} to {dest.local_path}: source does not exist")
    try:
        if os.path.isdir(source):
            shutil.copytree(source, dest.local_path, dirs_exist_ok=True)
        else:
            os.makedirs(os.path.dirname(dest.local_path), exist_ok=True)
            shutil.copyfile(source, dest.local_path)
    except OSError as err:
        raise StagingError(f"failed to copy {source} to {dest.local_path}: {err}") from err
    LOG.debug(f"Staged {source} at {dest.local_path}")


def write_to_shared_path(content: str, dest: SharedPath) -> None:
    """
    Write text content to a shared path, creating parent directories.

    :param content: the file content
    :param dest: the destination
    :raise StagingError: if the file cannot be written
    """
    try:
        os.makedirs(os.path.dirname(dest.local_path), exist_ok=True)
        with open(dest.local_path, 'w') as f:
            f.write(content)
    except OSError as err:
        raise StagingError(f"failed to write {dest.local_path}: {err}") from err


def make_shared_dirs(*paths: SharedPath) -> None:
    """
    Create directories which must not already exist, in order.

    :raise StagingError: if a directory exists already or cannot be created
    """
    for path in paths:
        try:
            os.mkdir(path.local_path)
        except OSError as err:
            raise StagingError(f"failed to create directory {path.local_path}: {err}") from err


def stage_files(files: Iterable[StagedFile]) -> None:
    for staged in files:
        if staged.source is not None:
            copy_to_shared_path(staged.source, staged.dest)
        else:
            write_to_shared_path(staged.content, staged.dest)
