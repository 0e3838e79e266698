"""
Site path resolution.

The archive pipeline only needs two answers about a site: where a logical
location ("root" for the docroot, "files" for the public files directory)
lives on disk, and whether the docroot is nested one level below the project
root (the composer "web/" layout).
"""

import os
from pathlib import Path
from typing import Optional, Protocol, Sequence, Tuple
from colored_logger import get_colored_logger

from .errors import UnresolvablePathError

logger = get_colored_logger(__name__)

LOCATION_ROOT = "root"
LOCATION_FILES = "files"

DEFAULT_DOCROOT_NAMES = ("web", "docroot")
DEFAULT_FILES_PATH = "sites/default/files"


class SitePathResolver(Protocol):
    """Interface the component collector consumes."""

    def resolve(self, location: str) -> str:
        """Return the absolute path of a logical location."""
        ...

    def is_nested_docroot(self) -> bool:
        """True when the docroot is a subdirectory of the project root."""
        ...


class FilesystemSiteResolver:
    """
    Resolves site locations by inspecting the directory layout.

    A site root containing one of ``docroot_names`` as a directory that looks
    like a docroot (has ``sites/`` or ``index.php``) uses a nested docroot;
    otherwise the site root is the docroot itself.
    """

    def __init__(
        self,
        site_root: str,
        docroot_names: Sequence[str] = DEFAULT_DOCROOT_NAMES,
        files_path: Optional[str] = None,
    ):
        self.site_root = site_root
        self.docroot_names = tuple(docroot_names)
        self.files_path = files_path
        self._layout: Optional[Tuple[Path, bool]] = None

    def _looks_like_docroot(self, candidate: Path) -> bool:
        return candidate.is_dir() and (
            (candidate / "sites").is_dir() or (candidate / "index.php").is_file()
        )

    def _detect_layout(self) -> Tuple[Path, bool]:
        if self._layout is not None:
            return self._layout

        root = Path(os.path.expanduser(self.site_root)).resolve()
        if not root.is_dir():
            raise UnresolvablePathError(f"Site root not found: {self.site_root}")

        for name in self.docroot_names:
            candidate = root / name
            if self._looks_like_docroot(candidate):
                logger.debug("Nested docroot detected: %s", candidate)
                self._layout = (candidate, True)
                return self._layout

        self._layout = (root, False)
        return self._layout

    def is_nested_docroot(self) -> bool:
        return self._detect_layout()[1]

    def _resolve_files(self, docroot: Path) -> Path:
        files_path = Path(os.path.expanduser(self.files_path or DEFAULT_FILES_PATH))
        if not files_path.is_absolute():
            files_path = docroot / files_path
        return files_path

    def resolve(self, location: str) -> str:
        """
        Resolve "root" or "files" to an existing absolute directory.

        Raises:
            UnresolvablePathError: Unknown location or missing directory
        """
        docroot = self._detect_layout()[0]

        if location == LOCATION_ROOT:
            return str(docroot)

        if location == LOCATION_FILES:
            files_dir = self._resolve_files(docroot)
            if not files_dir.is_dir():
                raise UnresolvablePathError(
                    f"Files directory not found: {files_dir}"
                )
            return str(files_dir)

        raise UnresolvablePathError(f"Unknown site location: {location}")
