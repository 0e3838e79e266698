"""
MANIFEST.yml generation and inspection.

The manifest is written once, after every component has been staged, and is
added to the container as a top-level file next to the component folders.
Readers must check ``formatversion`` before trusting the document's shape.
"""

import os
import tarfile
import time
from collections import OrderedDict
from typing import Any, Dict, Optional

import yaml
from colored_logger import get_colored_logger

from .errors import ArchiveIOError, UnsupportedManifestError
from .models import (
    COMPONENT_CODE,
    COMPONENT_DATABASE,
    COMPONENT_FILES,
    MANIFEST_FORMAT_VERSION,
    DumpOptions,
    Manifest,
)
from .version import __version__

logger = get_colored_logger(__name__)

MANIFEST_FILE_NAME = "MANIFEST.yml"
DEFAULT_GENERATOR = "site-archive dump"


class ManifestWriter:
    """Renders the archive manifest into the staging directory."""

    def __init__(
        self,
        staging_dir: str,
        default_generator: str = DEFAULT_GENERATOR,
        default_generator_version: str = __version__,
    ):
        self.staging_dir = staging_dir
        self.default_generator = default_generator
        self.default_generator_version = default_generator_version

    @property
    def manifest_path(self) -> str:
        return os.path.join(self.staging_dir, MANIFEST_FILE_NAME)

    def build_manifest(
        self, options: DumpOptions, datestamp: Optional[int] = None
    ) -> Manifest:
        """Build the manifest record; datestamp defaults to the current time."""
        return Manifest(
            datestamp=int(time.time()) if datestamp is None else datestamp,
            components={
                COMPONENT_CODE: options.code,
                COMPONENT_FILES: options.files,
                COMPONENT_DATABASE: options.db,
            },
            description=options.description,
            tags=options.tags,
            generator=options.generator or self.default_generator,
            generatorversion=options.generator_version
            or self.default_generator_version,
        )

    def render(self, manifest: Manifest) -> str:
        return yaml.safe_dump(
            manifest.to_dict(),
            default_flow_style=False,
            sort_keys=False,
            allow_unicode=True,
        )

    def write(self, options: DumpOptions) -> str:
        """
        Write MANIFEST.yml to the staging directory and return its path.

        Raises:
            ArchiveIOError: If the file cannot be written
        """
        logger.info("Creating %s file...", MANIFEST_FILE_NAME)
        content = self.render(self.build_manifest(options))
        try:
            with open(self.manifest_path, "w", encoding="utf-8") as f:
                f.write(content)
        except OSError as e:
            raise ArchiveIOError(
                f"Failed to write manifest {self.manifest_path}: {e}"
            ) from e

        logger.info("Manifest file has been created: %s", self.manifest_path)
        return self.manifest_path


class ManifestReader:
    """Reads MANIFEST.yml back out of a finished .tar.gz archive."""

    def _open(self, archive_path: str) -> tarfile.TarFile:
        try:
            return tarfile.open(archive_path, mode="r:*")
        except (OSError, tarfile.TarError) as e:
            raise ArchiveIOError(f"Cannot open archive {archive_path}: {e}") from e

    def parse(self, content: str) -> Dict[str, Any]:
        """
        Parse manifest text and check its format version.

        Raises:
            UnsupportedManifestError: Not a mapping or unknown formatversion
        """
        try:
            manifest = yaml.safe_load(content)
        except yaml.YAMLError as e:
            raise UnsupportedManifestError(f"Manifest is not valid YAML: {e}") from e

        if not isinstance(manifest, dict):
            raise UnsupportedManifestError("Manifest is not a key-value document")

        version = manifest.get("formatversion")
        if str(version) != MANIFEST_FORMAT_VERSION:
            raise UnsupportedManifestError(
                f"Unsupported manifest format version: {version!r}"
            )
        return manifest

    def read(self, archive_path: str) -> Dict[str, Any]:
        with self._open(archive_path) as archive:
            try:
                member = archive.getmember(MANIFEST_FILE_NAME)
            except KeyError:
                raise UnsupportedManifestError(
                    f"{MANIFEST_FILE_NAME} not found in {archive_path}"
                ) from None
            handle = archive.extractfile(member)
            if handle is None:
                raise UnsupportedManifestError(
                    f"{MANIFEST_FILE_NAME} in {archive_path} is not a regular file"
                )
            return self.parse(handle.read().decode("utf-8"))

    def summarize(self, archive_path: str) -> Dict[str, int]:
        """Count file entries per top-level component folder."""
        counts: Dict[str, int] = OrderedDict()
        with self._open(archive_path) as archive:
            for member in archive:
                top, _, rest = member.name.partition("/")
                if rest and not member.isdir():
                    counts[top] = counts.get(top, 0) + 1
        return counts
