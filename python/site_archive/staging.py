"""
Staging area lifecycle for one archive invocation.

PipelineContext owns the staging directory and a StagingCleaner. Intermediate
artifacts (database dump directory, manifest scratch file, uncompressed
container) are registered as they are created and removed when the context
exits, whatever the outcome. An atexit hook covers exits that never reach
the context's __exit__.
"""

import atexit
import os
import shutil
from pathlib import Path
from typing import List
from colored_logger import get_colored_logger

from .errors import ArchiveIOError

logger = get_colored_logger(__name__)


class StagingCleaner:
    """Best-effort removal of registered staging artifacts, run exactly once."""

    def __init__(self):
        self._paths: List[str] = []
        self._done = False

    @property
    def paths(self) -> List[str]:
        return list(self._paths)

    @property
    def done(self) -> bool:
        return self._done

    def register(self, path: str) -> None:
        """Register a staging file or directory for removal."""
        path = str(path)
        if path not in self._paths:
            self._paths.append(path)

    def _remove_path(self, path: str) -> None:
        if os.path.isdir(path) and not os.path.islink(path):
            shutil.rmtree(path)
        elif os.path.lexists(path):
            os.remove(path)

    def cleanup(self) -> None:
        """Remove every registered artifact; failures are logged, never raised."""
        if self._done:
            return
        self._done = True

        for path in self._paths:
            try:
                self._remove_path(path)
                logger.debug("Removed staging artifact: %s", path)
            except OSError as e:
                logger.warning("Failed to remove staging artifact %s: %s", path, e)


class PipelineContext:
    """
    Scopes a staging directory and its cleanup to a with-block.

    Usage:
        with PipelineContext(staging_dir) as context:
            context.register_cleanup(context.staging_path("MANIFEST.yml"))
            ...
    """

    def __init__(self, staging_dir: str):
        self.staging_dir = str(staging_dir)
        self.cleaner = StagingCleaner()
        self._atexit_registered = False

    def __enter__(self) -> "PipelineContext":
        try:
            Path(self.staging_dir).mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise ArchiveIOError(
                f"Failed to create staging directory {self.staging_dir}: {e}"
            ) from e

        atexit.register(self.cleaner.cleanup)
        self._atexit_registered = True
        logger.debug("Staging directory ready: %s", self.staging_dir)
        return self

    def __exit__(self, exc_type, exc_value, traceback) -> bool:
        self.close()
        # Never swallow the pipeline's own exception
        return False

    def close(self) -> None:
        """Run the cleaner and drop the atexit fallback."""
        self.cleaner.cleanup()
        if self._atexit_registered:
            atexit.unregister(self.cleaner.cleanup)
            self._atexit_registered = False

    def staging_path(self, name: str) -> str:
        return os.path.join(self.staging_dir, name)

    def register_cleanup(self, path: str) -> None:
        self.cleaner.register(path)
