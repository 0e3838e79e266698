"""
Tar container assembly for archive components.

Each component is walked in a deterministic order (entries sorted by name,
a directory before its contents) and every surviving path is streamed into an
uncompressed tar under "<component>/<relative path>". Excluded directories are
pruned. Symbolic links are stored as links and never followed.
"""

import os
import tarfile
from contextlib import contextmanager
from typing import Callable, Dict, Iterator, List, Optional, Sequence, Tuple
from colored_logger import get_colored_logger

from .errors import ArchiveIOError, NothingSelectedError
from .models import Component
from .path_matcher import PathMatcher
from .sensitive_data import SensitiveDataGuard

logger = get_colored_logger(__name__)

ENTRY_FILE = "file"
ENTRY_SYMLINK = "symlink"


class ComponentStats:
    """Counters for one component's walk."""

    def __init__(self, name: str):
        self.name = name
        self.total_files = 0
        self.total_size = 0
        self.excluded_paths = 0
        self.symlinks = 0
        self.skipped_special = 0

    def to_dict(self) -> Dict[str, int]:
        return {
            "total_files": self.total_files,
            "total_size": self.total_size,
            "excluded_paths": self.excluded_paths,
            "symlinks": self.symlinks,
            "skipped_special": self.skipped_special,
        }


class ArchiveBuilder:
    """Streams component trees into a tar container."""

    def __init__(self, guard_factory=SensitiveDataGuard):
        self.guard_factory = guard_factory

    @contextmanager
    def open_container(self, container_path: str) -> Iterator[tarfile.TarFile]:
        """Open a new uncompressed tar for writing."""
        try:
            container = tarfile.open(
                container_path, mode="w", format=tarfile.PAX_FORMAT
            )
        except (OSError, tarfile.TarError) as e:
            raise ArchiveIOError(
                f"Cannot create archive container {container_path}: {e}"
            ) from e

        try:
            yield container
        finally:
            container.close()

    def _scan_directory(self, directory: str) -> List[os.DirEntry]:
        try:
            with os.scandir(directory) as it:
                return sorted(it, key=lambda entry: entry.name)
        except OSError as e:
            raise ArchiveIOError(f"Cannot read directory {directory}: {e}") from e

    def iter_entries(
        self,
        root_path: str,
        matcher: PathMatcher,
        stats: Optional[ComponentStats] = None,
        relative_dir: str = "",
    ) -> Iterator[Tuple[str, str, str]]:
        """
        Yield (absolute path, relative path, kind) for every archivable path.

        Directories are descended into rather than yielded; excluded paths are
        logged and skipped together with everything beneath them.
        """
        directory = root_path
        if relative_dir:
            directory = os.path.join(root_path, relative_dir)

        for entry in self._scan_directory(directory):
            relative = f"{relative_dir}/{entry.name}" if relative_dir else entry.name

            rule = matcher.match(relative)
            if rule is not None:
                logger.info("Path excluded (%s): %s", rule, relative)
                if stats:
                    stats.excluded_paths += 1
                continue

            if entry.is_symlink():
                yield entry.path, relative, ENTRY_SYMLINK
            elif entry.is_dir(follow_symlinks=False):
                yield from self.iter_entries(root_path, matcher, stats, relative)
            elif entry.is_file(follow_symlinks=False):
                yield entry.path, relative, ENTRY_FILE
            else:
                logger.warning("Skipping special file: %s", relative)
                if stats:
                    stats.skipped_special += 1

    def _add_namespace_folder(
        self, container: tarfile.TarFile, component: Component
    ) -> None:
        folder = tarfile.TarInfo(name=component.name)
        folder.type = tarfile.DIRTYPE
        folder.mode = 0o755
        folder.mtime = int(os.stat(component.root_path).st_mtime)
        container.addfile(folder)

    def add_file(
        self, container: tarfile.TarFile, source_path: str, archive_name: str
    ) -> None:
        """Add a single file or symlink without following links."""
        try:
            container.add(source_path, arcname=archive_name, recursive=False)
        except (OSError, tarfile.TarError) as e:
            raise ArchiveIOError(
                f"Failed to add {source_path} to archive as {archive_name}: {e}"
            ) from e

    def add(self, container: tarfile.TarFile, component: Component) -> ComponentStats:
        """
        Add one component under its namespace folder.

        Raises:
            ArchiveIOError: Unreadable source or unwritable container
            SensitiveDataFoundError: A canonical settings file holds credentials
        """
        if not os.path.isdir(component.root_path):
            raise ArchiveIOError(
                f"Root directory of component {component.name} not found: "
                f"{component.root_path}"
            )

        logger.info("Adding %s directory to archive...", component.root_path)
        matcher = PathMatcher(component.exclude_rules)
        guard = (
            self.guard_factory(component.docroot_prefix)
            if component.scan_settings
            else None
        )
        stats = ComponentStats(component.name)

        try:
            self._add_namespace_folder(container, component)
        except (OSError, tarfile.TarError) as e:
            raise ArchiveIOError(
                f"Failed to add folder {component.name} to archive: {e}"
            ) from e

        for source_path, relative, kind in self.iter_entries(
            component.root_path, matcher, stats
        ):
            if kind == ENTRY_SYMLINK:
                logger.debug("Storing symlink without following it: %s", relative)
                stats.symlinks += 1
            elif guard is not None and guard.applies_to(relative):
                guard.check(source_path, relative)

            self.add_file(container, source_path, f"{component.name}/{relative}")
            if kind == ENTRY_FILE:
                stats.total_files += 1
                stats.total_size += os.path.getsize(source_path)

        logger.progress(
            "%s directory has been added to archive (%d files, %.2f MB, %d excluded)",
            component.root_path,
            stats.total_files,
            stats.total_size / (1024 * 1024),
            stats.excluded_paths,
        )
        return stats

    def build(
        self,
        container_path: str,
        components: Sequence[Component],
        finalize: Optional[Callable[[tarfile.TarFile], None]] = None,
    ) -> Dict[str, ComponentStats]:
        """
        Create a container holding every component, in the given order.

        ``finalize`` is called with the still-open container once every
        component has been added, e.g. to append the manifest.
        """
        if not components:
            raise NothingSelectedError("Nothing to archive")

        results = {}
        with self.open_container(container_path) as container:
            for component in components:
                results[component.name] = self.add(container, component)
            if finalize is not None:
                finalize(container)
        return results
