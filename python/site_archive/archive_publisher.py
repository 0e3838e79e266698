"""
Finalization and delivery of the archive container.

The tar container is gzip-compressed in a single pass, then either left in
the staging directory or moved to the requested destination. The destination
is only ever replaced atomically: it holds either its old content or the
complete new archive, never a partial file.
"""

import errno
import gzip
import os
import shutil
from typing import Optional
from colored_logger import get_colored_logger

from .errors import ArchiveIOError, DestinationExistsError, MoveFailedError
from .path_utils import TempFileManager

logger = get_colored_logger(__name__)


class ArchivePublisher:
    """Compresses the staged container and delivers it."""

    def __init__(self, compression_level: int = 6, chunk_size: int = 1024 * 1024):
        self.compression_level = compression_level
        self.chunk_size = max(1024, chunk_size)  # Minimum 1KB chunks

    def compress(self, container_path: str) -> str:
        """
        Gzip the container next to itself and remove the uncompressed tar.

        Raises:
            ArchiveIOError: If compression fails (the tar is left in place)
        """
        compressed_path = f"{container_path}.gz"
        temp_path = TempFileManager.generate_temp_path(compressed_path)

        try:
            with open(container_path, "rb") as src, open(temp_path, "wb") as raw:
                # Pinned header mtime and name keep output reproducible
                with gzip.GzipFile(
                    filename="",
                    mode="wb",
                    fileobj=raw,
                    compresslevel=self.compression_level,
                    mtime=0,
                ) as dst:
                    shutil.copyfileobj(src, dst, self.chunk_size)
            os.replace(temp_path, compressed_path)
        except OSError as e:
            TempFileManager.cleanup_temp_file(temp_path)
            raise ArchiveIOError(
                f"Failed to compress archive {container_path}: {e}"
            ) from e

        try:
            os.remove(container_path)
        except OSError as e:
            logger.warning(
                "Could not remove uncompressed container %s: %s", container_path, e
            )

        return compressed_path

    def check_destination(self, destination: str, overwrite: bool) -> None:
        """
        Raise if the destination cannot receive the archive.

        Raises:
            DestinationExistsError: Destination exists and overwrite is off
            MoveFailedError: Destination is a directory or its parent is missing
        """
        if os.path.isdir(destination):
            raise MoveFailedError(f"Destination {destination} is a directory")

        if os.path.lexists(destination) and not overwrite:
            raise DestinationExistsError(destination)

        parent = os.path.dirname(destination) or "."
        if not os.path.isdir(parent):
            raise MoveFailedError(
                f"Destination directory {parent} does not exist"
            )

    def _copy_across_devices(self, staged_path: str, destination: str) -> None:
        """Copy into a sibling temp file, swap it in, then drop the source."""
        temp_path = TempFileManager.generate_temp_path(destination)
        try:
            shutil.copyfile(staged_path, temp_path)
            os.replace(temp_path, destination)
        except OSError as e:
            TempFileManager.cleanup_temp_file(temp_path)
            raise MoveFailedError(
                f"Failed moving archive from {staged_path} to {destination}: {e}"
            ) from e

        try:
            os.remove(staged_path)
        except OSError as e:
            logger.warning(
                "Archive delivered but staged copy %s could not be removed: %s",
                staged_path,
                e,
            )

    def deliver(self, staged_path: str, destination: str, overwrite: bool) -> str:
        """Move the staged archive to destination and return the final path."""
        destination = os.path.abspath(os.path.expanduser(destination))
        self.check_destination(destination, overwrite)
        if os.path.lexists(destination):
            logger.notice(
                "The destination file %s already exists and will be overwritten",
                destination,
            )

        logger.info("Moving archive file from %s to %s", staged_path, destination)
        try:
            os.replace(staged_path, destination)
        except OSError as e:
            if e.errno != errno.EXDEV:
                raise MoveFailedError(
                    f"Failed moving archive from {staged_path} to {destination}: {e}"
                ) from e
            logger.debug("Cross-device move, falling back to copy: %s", destination)
            self._copy_across_devices(staged_path, destination)

        return destination

    def publish(
        self,
        container_path: str,
        destination: Optional[str] = None,
        overwrite: bool = False,
    ) -> str:
        """
        Compress the container and deliver it.

        Returns:
            The staged .tar.gz path when no destination is given, otherwise
            the absolute destination path
        """
        staged_path = self.compress(container_path)

        if not destination:
            return staged_path

        return self.deliver(staged_path, destination, overwrite)
