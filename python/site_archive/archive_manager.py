"""
Site Archive Manager - orchestrates a full code/files/database dump.

Coordinates component collection, container assembly, manifest generation
and publishing inside a PipelineContext so that staging artifacts are
cleaned up on every exit path.
"""

import os
import shlex
import time
from typing import Any, Dict, Optional
from colored_logger import get_colored_logger

from .archive_builder import ArchiveBuilder, ComponentStats
from .archive_publisher import ArchivePublisher
from .component_collector import ComponentCollector, select_components
from .config import load_config
from .dumpers import CommandDatabaseDumper, DatabaseDumper, SqliteDatabaseDumper
from .manifest import DEFAULT_GENERATOR, MANIFEST_FILE_NAME, ManifestWriter
from .models import DumpOptions
from .path_utils import ArchivePathGenerator
from .resolvers import DEFAULT_DOCROOT_NAMES, FilesystemSiteResolver, SitePathResolver
from .staging import PipelineContext
from .version import __version__

logger = get_colored_logger(__name__)

ARCHIVE_FILE_NAME = "archive.tar"


class SiteArchiveManager:
    """
    Orchestrates archive creation using focused components.

    - Component discovery: ComponentCollector
    - Container assembly: ArchiveBuilder (with SensitiveDataGuard)
    - Manifest: ManifestWriter
    - Compression and delivery: ArchivePublisher
    - Staging lifecycle: PipelineContext / StagingCleaner
    """

    def __init__(
        self,
        resolver: SitePathResolver,
        dumper: Optional[DatabaseDumper] = None,
        staging_base: str = "",
        staging_dir: Optional[str] = None,
        default_generator: str = DEFAULT_GENERATOR,
        default_generator_version: str = __version__,
        builder: Optional[ArchiveBuilder] = None,
        publisher: Optional[ArchivePublisher] = None,
        path_generator: Optional[ArchivePathGenerator] = None,
    ):
        """
        Initialize SiteArchiveManager.

        Args:
            resolver: Locates the site docroot and public files directory
            dumper: Database dump provider (required when dumping the database)
            staging_base: Base directory for per-run staging directories
            staging_dir: Explicit staging directory (overrides staging_base)
            default_generator: Manifest generator name when not overridden
            default_generator_version: Manifest generator version
        """
        self.collector = ComponentCollector(resolver, dumper)
        self.staging_base = staging_base
        self.staging_dir = staging_dir
        self.default_generator = default_generator
        self.default_generator_version = default_generator_version
        self.builder = builder or ArchiveBuilder()
        self.publisher = publisher or ArchivePublisher()
        self.path_generator = path_generator or ArchivePathGenerator()
        self.last_stats: Dict[str, ComponentStats] = {}

    def _prepare_staging_dir(self) -> str:
        if self.staging_dir:
            return self.staging_dir
        return self.path_generator.generate_staging_dir(self.staging_base)

    def dump(self, options: DumpOptions, apply_defaults: bool = True) -> str:
        """
        Create the archive and return its final path.

        Args:
            options: Component selection, destination and manifest fields
            apply_defaults: Select every component when none was requested

        Raises:
            SiteArchiveError: Any pipeline failure; nothing is delivered
        """
        if apply_defaults:
            select_components(options)

        # Fail before doing any work when the destination is unusable
        if options.destination:
            self.publisher.check_destination(
                os.path.abspath(os.path.expanduser(options.destination)),
                options.overwrite,
            )

        start_time = time.time()
        staging_dir = self._prepare_staging_dir()

        with PipelineContext(staging_dir) as context:
            components = self.collector.collect(options, context)

            container_path = context.staging_path(ARCHIVE_FILE_NAME)
            context.register_cleanup(container_path)
            manifest_writer = ManifestWriter(
                staging_dir, self.default_generator, self.default_generator_version
            )

            def add_manifest(container):
                manifest_path = manifest_writer.write(options)
                context.register_cleanup(manifest_path)
                self.builder.add_file(container, manifest_path, MANIFEST_FILE_NAME)

            logger.info("Creating archive...")
            self.last_stats = self.builder.build(
                container_path, components, finalize=add_manifest
            )

            final_path = self.publisher.publish(
                container_path, options.destination, options.overwrite
            )

        logger.success(
            "Archive file has been created: %s (%d files, %d excluded, "
            "%.2f MB, %.2f seconds)",
            final_path,
            sum(stats.total_files for stats in self.last_stats.values()),
            sum(stats.excluded_paths for stats in self.last_stats.values()),
            os.path.getsize(final_path) / (1024 * 1024),
            time.time() - start_time,
        )
        return final_path


def create_dumper(database_config: Dict[str, Any]) -> Optional[DatabaseDumper]:
    """Build the configured dump provider (None when the driver is "none")."""
    driver = str(database_config.get("driver") or "none").lower()

    if driver == "none":
        return None

    if driver == "sqlite":
        path = database_config.get("path")
        if not path:
            raise ValueError("database.path is required for the sqlite driver")
        return SqliteDatabaseDumper(os.path.expanduser(str(path)))

    if driver == "command":
        command = database_config.get("command") or []
        if isinstance(command, str):
            command = shlex.split(command)
        return CommandDatabaseDumper(command, timeout=database_config.get("timeout"))

    raise ValueError(f"Unsupported database driver: {driver}")


def create_site_archive(
    options: DumpOptions, config: Optional[Dict[str, Any]] = None
) -> str:
    """
    Convenience function to dump a site described by configuration.

    Args:
        options: Dump options (code exclusions from config are appended)
        config: Configuration dictionary (loaded via load_config if None)

    Returns:
        Path to the created archive
    """
    config = config if config is not None else load_config()
    site = config.get("site", {})

    docroot_names = site.get("docroot_names") or DEFAULT_DOCROOT_NAMES
    if isinstance(docroot_names, str):
        docroot_names = [docroot_names]

    resolver = FilesystemSiteResolver(
        site.get("root") or ".", docroot_names, site.get("files_path")
    )

    extra_excludes = config.get("code", {}).get("exclude_paths") or []
    if isinstance(extra_excludes, str):
        extra_excludes = [extra_excludes]
    for path in extra_excludes:
        if path not in options.exclude_code_paths:
            options.exclude_code_paths.append(path)

    manifest_config = config.get("manifest", {})
    manager = SiteArchiveManager(
        resolver,
        create_dumper(config.get("database", {})),
        staging_base=config.get("staging", {}).get("base_directory") or "",
        default_generator=manifest_config.get("generator") or DEFAULT_GENERATOR,
        default_generator_version=str(
            manifest_config.get("generator_version") or __version__
        ),
    )
    return manager.dump(options)
