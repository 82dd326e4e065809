from __future__ import annotations

import logging
import os

from .errors import AlreadyExistsError, NotASymlinkError, SymlinkFailedError

logger = logging.getLogger(__name__)

BACKUP_SUFFIX = ".backup"


def exists(path: str) -> bool:
    """True for anything at ``path``, including dangling symlinks."""
    return os.path.lexists(path)


def is_symlink(path: str) -> bool:
    return os.path.islink(path)


def backup_path(path: str) -> str:
    return path + BACKUP_SUFFIX


class SymlinkManager:
    """Single-entry link operations. Each call either completes or raises; nothing is left half-done."""

    def exists(self, path: str) -> bool:
        return exists(path)

    def is_symlink(self, path: str) -> bool:
        return is_symlink(path)

    def create(self, source: str, target: str, *, backup_existing: bool = False) -> None:
        target_dir = os.path.dirname(target)
        try:
            os.makedirs(target_dir, exist_ok=True)
        except OSError as e:
            raise SymlinkFailedError(f"Could not create directory {target_dir}: {e}") from e

        if exists(target):
            if is_symlink(target):
                try:
                    os.unlink(target)
                except OSError as e:
                    raise SymlinkFailedError(f"Could not remove existing symlink {target}: {e}") from e
            elif not backup_existing:
                raise AlreadyExistsError(f"File exists at {target} (enable backup_existing to replace it).")
            else:
                backup = backup_path(target)
                if exists(backup):
                    raise AlreadyExistsError(f"Backup already exists at {backup}; refusing to overwrite it.")
                try:
                    os.rename(target, backup)
                except OSError as e:
                    raise SymlinkFailedError(f"Could not back up {target}: {e}") from e
                logger.info("backed up %s to %s", target, backup)

        try:
            os.symlink(source, target)
        except OSError as e:
            raise SymlinkFailedError(f"Could not create symlink {target} -> {source}: {e}") from e

    def remove(self, target: str) -> None:
        if not exists(target):
            return
        if not is_symlink(target):
            raise NotASymlinkError(f"Target is not a symlink: {target}")
        try:
            os.unlink(target)
        except OSError as e:
            raise SymlinkFailedError(f"Could not remove symlink {target}: {e}") from e

    def read_link(self, path: str) -> str:
        if not is_symlink(path):
            raise NotASymlinkError(f"Not a symlink: {path}")
        try:
            return os.readlink(path)
        except OSError as e:
            raise SymlinkFailedError(f"Could not read symlink {path}: {e}") from e

    def verify(self, link: str, expected_target: str) -> bool:
        if not is_symlink(link):
            return False
        return self.read_link(link) == expected_target

    def create_backup(self, path: str) -> None:
        if not exists(path) or is_symlink(path):
            return
        backup = backup_path(path)
        # One backup generation only.
        if exists(backup):
            return
        try:
            os.rename(path, backup)
        except OSError as e:
            raise SymlinkFailedError(f"Could not create backup of {path}: {e}") from e

    def restore_backup(self, path: str) -> None:
        backup = backup_path(path)
        if not exists(backup):
            raise SymlinkFailedError(f"Backup file not found: {backup}")
        if exists(path):
            try:
                os.unlink(path)
            except OSError as e:
                raise SymlinkFailedError(f"Could not remove {path} before restoring backup: {e}") from e
        try:
            os.rename(backup, path)
        except OSError as e:
            raise SymlinkFailedError(f"Could not restore backup {backup}: {e}") from e

    def cleanup_backups(self, path: str) -> None:
        backup = backup_path(path)
        if not exists(backup):
            return
        try:
            os.unlink(backup)
        except OSError as e:
            raise SymlinkFailedError(f"Could not remove backup {backup}: {e}") from e
