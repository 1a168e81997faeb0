"""Filesystem helpers for rdpprovisioner."""

import logging
import os
import shutil
import sys

from rdpprovisioner.constants import DIR_MODE, FILE_MODE
from rdpprovisioner.errors import ProvisionerError


class FileSystemService:
    """Encapsulates file and directory side effects."""

    def __init__(self, logger: logging.Logger):
        self.logger = logger

    def set_permissions(self, path: str, mode: int):
        if sys.platform == "win32":
            return

        try:
            os.chmod(path, mode)
        except Exception as exc:
            self.logger.warning("Could not set permissions on %s: %s", path, exc)

    def ensure_dir(self, path: str, mode: int = DIR_MODE):
        """Creates ``path`` with ``mode``. Existing directories keep their mode."""
        if os.path.isdir(path):
            return
        try:
            os.makedirs(path, exist_ok=True)
        except OSError as exc:
            raise ProvisionerError(f"Could not create directory {path}: {exc}") from exc
        self.set_permissions(path, mode)

    def write_text(self, path: str, content: str, mode: int = FILE_MODE):
        """Overwrites ``path`` with ``content`` using LF line endings."""
        self.ensure_dir(os.path.dirname(path) or ".")
        try:
            with open(path, "w", encoding="utf-8", newline="\n") as file_obj:
                file_obj.write(content)
        except OSError as exc:
            raise ProvisionerError(f"Could not write {path}: {exc}") from exc
        self.set_permissions(path, mode)
        self.logger.debug("Wrote %s", path)

    def copy_file(self, source: str, destination: str, mode: int = FILE_MODE):
        if os.path.abspath(source) == os.path.abspath(destination):
            return
        try:
            shutil.copyfile(source, destination)
        except OSError as exc:
            raise ProvisionerError(f"Could not copy {source} to {destination}: {exc}") from exc
        self.set_permissions(destination, mode)
