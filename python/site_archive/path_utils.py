"""
Path utilities for archive staging.

Staging directories are unique per invocation so concurrent dumps never share
an in-progress container.
"""

import os
import random
from datetime import datetime
from pathlib import Path
from colored_logger import get_colored_logger

logger = get_colored_logger(__name__)

DEFAULT_BACKUP_BASE = "~/site-archive-backups"
ARCHIVES_SUBDIR = "archives"
STAGING_DIR_NAME = "archive"


class ArchivePathGenerator:
    """Generates per-invocation staging directory paths."""

    def generate_timestamp(self) -> str:
        """Generate timestamp for staging directory naming."""
        return datetime.now().strftime("%Y%m%d_%H%M%S")

    def generate_random_suffix(self, min_val: int = 1000, max_val: int = 9999) -> str:
        """Generate random suffix for uniqueness."""
        return f"{random.randint(min_val, max_val)}"

    def resolve_base_directory(self, base_directory: str = "") -> Path:
        """Expand the configured backup base directory."""
        return Path(os.path.expanduser(base_directory or DEFAULT_BACKUP_BASE))

    def generate_staging_dir(self, base_directory: str = "") -> str:
        """
        Return <base>/archives/<timestamp>_<suffix>/archive.

        The directory is not created here; PipelineContext does that.
        """
        base = self.resolve_base_directory(base_directory)
        run_name = f"{self.generate_timestamp()}_{self.generate_random_suffix()}"
        staging_dir = base / ARCHIVES_SUBDIR / run_name / STAGING_DIR_NAME

        # Regenerate on collision
        while staging_dir.exists():
            run_name = f"{self.generate_timestamp()}_{self.generate_random_suffix()}"
            staging_dir = base / ARCHIVES_SUBDIR / run_name / STAGING_DIR_NAME

        return str(staging_dir)


class TempFileManager:
    """Manages temporary sibling files used for atomic writes."""

    @staticmethod
    def generate_temp_path(base_path: str, suffix: str = "tmp") -> str:
        """Generate temporary file path next to base_path."""
        return f"{base_path}.{suffix}.{os.getpid()}"

    @staticmethod
    def cleanup_temp_file(temp_path: str) -> None:
        """Clean up temporary file safely."""
        if os.path.exists(temp_path):
            try:
                os.remove(temp_path)
            except OSError as e:
                logger.debug("Failed to cleanup temp file %s: %s", temp_path, e)
