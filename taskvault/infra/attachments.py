from __future__ import annotations

import logging
import re
import shutil
import time
from pathlib import Path, PurePosixPath
from typing import Protocol

from taskvault.domain.errors import StorageError

logger = logging.getLogger(__name__)

_UNSAFE_CHARS = re.compile(r"[^a-zA-Z0-9._-]")


class AttachmentStorage(Protocol):
    def store_file(self, task_id: str, source_path: str | Path) -> str: ...

    def store_bytes(self, task_id: str, data: bytes, suffix: str = ".png") -> str: ...

    def resolve(self, relative_path: str) -> Path: ...

    def delete(self, relative_path: str) -> None: ...

    def delete_all(self, task_id: str) -> None: ...


def safe_filename(name: str) -> str:
    return _UNSAFE_CHARS.sub("_", name) or "file"


def basename(relative_path: str) -> str:
    return relative_path.replace("\\", "/").rsplit("/", 1)[-1]


class LocalAttachmentStorage:
    """Attachments under ``<root>/<task_id>/``; callers only ever see relative paths."""

    def __init__(self, root: str | Path) -> None:
        self._root = Path(root)

    @property
    def root(self) -> Path:
        return self._root

    def store_file(self, task_id: str, source_path: str | Path) -> str:
        source = Path(source_path)
        relative = f"{self._task_dir_name(task_id)}/{safe_filename(source.name)}"
        target = self.resolve(relative)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            shutil.copyfile(source, target)
        except OSError as exc:
            raise StorageError(f"Cannot store attachment {source}: {exc}") from exc
        logger.info("Stored attachment task=%s path=%s", task_id, relative)
        return relative

    def store_bytes(self, task_id: str, data: bytes, suffix: str = ".png") -> str:
        relative = f"{self._task_dir_name(task_id)}/paste_{int(time.time() * 1000)}{suffix}"
        target = self.resolve(relative)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(data)
        except OSError as exc:
            raise StorageError(f"Cannot store pasted image for task {task_id}: {exc}") from exc
        logger.info("Stored pasted image task=%s path=%s", task_id, relative)
        return relative

    def resolve(self, relative_path: str) -> Path:
        parts = PurePosixPath(relative_path.replace("\\", "/")).parts
        if not parts or parts[0] == "/" or ".." in parts:
            raise StorageError(f"Attachment path {relative_path!r} is not relative to storage")
        return self._root.joinpath(*parts)

    def delete(self, relative_path: str) -> None:
        path = self.resolve(relative_path)
        try:
            path.unlink(missing_ok=True)
        except OSError as exc:
            raise StorageError(f"Cannot delete attachment {relative_path}: {exc}") from exc

    def delete_all(self, task_id: str) -> None:
        task_dir = self._root / self._task_dir_name(task_id)
        if not task_dir.exists():
            return
        try:
            shutil.rmtree(task_dir)
        except OSError as exc:
            raise StorageError(f"Cannot delete attachments of task {task_id}: {exc}") from exc

    @staticmethod
    def _task_dir_name(task_id: str) -> str:
        name = safe_filename(task_id)
        if name in (".", ".."):
            raise StorageError(f"Invalid task id for storage: {task_id!r}")
        return name
