"""File system utilities."""

import logging
import os
import secrets
from pathlib import Path
from typing import Optional, Sequence

logger = logging.getLogger("fastcert")

# Permissions for private keys and for world-readable certificates
PRIVATE_FILE_MODE = 0o600
PUBLIC_FILE_MODE = 0o644


class FileUtils:
    """Utility class for file operations."""

    @staticmethod
    def ensure_directory(path: Path, mode: int = 0o755) -> None:
        """
        Ensure directory exists, create if not.

        Args:
            path: Directory path to ensure
            mode: Permission bits for newly created directories
        """
        path.mkdir(parents=True, exist_ok=True, mode=mode)
        logger.debug(f"Ensured directory exists: {path}")

    @staticmethod
    def read_binary_file(path: Path) -> bytes:
        """
        Read file contents as bytes.

        Args:
            path: File path to read

        Returns:
            File contents as bytes
        """
        with open(path, "rb") as f:
            return f.read()

    @staticmethod
    def write_binary_file(path: Path, content: bytes, mode: Optional[int] = None) -> None:
        """
        Write binary content to file.

        When a mode is given the file is created with it and the mode is
        re-applied afterwards, so an existing file with looser permissions is
        tightened as well.

        Args:
            path: File path to write
            content: Binary content to write
            mode: Optional POSIX permission bits
        """
        FileUtils.ensure_directory(path.parent)
        if mode is None:
            with open(path, "wb") as f:
                f.write(content)
        else:
            with open(path, "wb", opener=lambda p, flags: os.open(p, flags, mode)) as f:
                f.write(content)
            FileUtils.set_permissions(path, mode)
        logger.debug(f"Wrote file: {path}")

    @staticmethod
    def staging_path(path: Path) -> Path:
        """Hidden temporary name next to ``path`` that keeps its suffix."""
        return path.with_name(f".{secrets.token_hex(4)}-{path.name}")

    @staticmethod
    def write_binary_files(outputs: Sequence[tuple[Path, bytes, Optional[int]]]) -> None:
        """
        Write several files so that either all of them land or none does.

        Every file is first written under a temporary name in its target
        directory and only renamed into place once all writes succeeded.
        Files already at the target paths are untouched if a write fails.

        Args:
            outputs: ``(path, content, mode)`` triples

        Raises:
            OSError: If a write fails, after the temporary files are removed
        """
        staged = []
        try:
            for path, content, mode in outputs:
                temp = FileUtils.staging_path(path)
                staged.append(temp)
                FileUtils.write_binary_file(temp, content, mode=mode)
        except OSError:
            for temp in staged:
                FileUtils.remove_file(temp)
            raise

        for temp, (path, _, _) in zip(staged, outputs):
            os.replace(temp, path)
            logger.debug(f"Moved {temp.name} to {path}")

    @staticmethod
    def set_permissions(path: Path, mode: int) -> None:
        """
        Apply POSIX permission bits. Does nothing on non-POSIX systems.

        Args:
            path: File to change
            mode: Permission bits
        """
        if os.name != "posix":
            return
        os.chmod(path, mode)

    @staticmethod
    def remove_file(path: Path) -> None:
        """
        Delete a file if it exists.

        Args:
            path: File to delete
        """
        if path.exists():
            path.unlink()
            logger.debug(f"Removed file: {path}")
