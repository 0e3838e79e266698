"""
Component discovery for the site archive.

Turns the code/files/db selection into an ordered list of Components, each
with its root directory and exclusion rules. The database component is
produced by running the dump provider into the staging area.
"""

import os
from pathlib import Path
from typing import List, Optional
from colored_logger import get_colored_logger

from .dumpers import DatabaseDumper
from .errors import ArchiveIOError, DumpFailedError, NothingSelectedError
from .models import (
    COMPONENT_CODE,
    COMPONENT_DATABASE,
    COMPONENT_FILES,
    Component,
    DumpOptions,
)
from .path_matcher import (
    contrib_subtree_rules,
    docroot_prefix,
    files_directory_rule,
    literal_rules,
    settings_override_rule,
)
from .resolvers import LOCATION_FILES, LOCATION_ROOT, SitePathResolver
from .staging import PipelineContext

logger = get_colored_logger(__name__)

# Version control and composer-managed dependencies
CODE_FIXED_EXCLUDES = (".git", "vendor")

# Generated asset caches inside the public files directory
FILES_FIXED_EXCLUDES = ("css", "js", "styles", "php")

SQL_DUMP_FILE_NAME = "database.sql"


def select_components(options: DumpOptions) -> DumpOptions:
    """Select all components when none was requested explicitly."""
    if not options.any_selected():
        options.code = options.files = options.db = True
    return options


class ComponentCollector:
    """Builds the ordered component list for one dump."""

    def __init__(
        self, resolver: SitePathResolver, dumper: Optional[DatabaseDumper] = None
    ):
        self.resolver = resolver
        self.dumper = dumper

    def docroot_layout(self):
        """Return (project_root, docroot_prefix) for the site."""
        docroot = self.resolver.resolve(LOCATION_ROOT)
        if self.resolver.is_nested_docroot():
            return os.path.dirname(docroot), docroot_prefix(os.path.basename(docroot))
        return docroot, ""

    def code_component(self, options: DumpOptions) -> Component:
        project_root, prefix = self.docroot_layout()

        rules = literal_rules(options.exclude_code_paths)
        rules += literal_rules(CODE_FIXED_EXCLUDES)
        rules += [files_directory_rule(prefix), settings_override_rule(prefix)]
        if prefix:
            rules += contrib_subtree_rules(prefix)

        logger.debug(
            "Code component: root=%s, docroot prefix=%r, %d exclusion rules",
            project_root,
            prefix,
            len(rules),
        )
        return Component(
            name=COMPONENT_CODE,
            root_path=project_root,
            exclude_rules=tuple(rules),
            scan_settings=True,
            docroot_prefix=prefix,
        )

    def files_component(self) -> Component:
        files_dir = self.resolver.resolve(LOCATION_FILES)
        return Component(
            name=COMPONENT_FILES,
            root_path=files_dir,
            exclude_rules=tuple(literal_rules(FILES_FIXED_EXCLUDES)),
        )

    def database_component(
        self, options: DumpOptions, context: PipelineContext
    ) -> Component:
        """
        Dump the database into <staging>/database and return it as a component.

        Raises:
            ArchiveIOError: If the staging subdirectory cannot be created
            DumpFailedError: If the dump provider reports failure
        """
        if self.dumper is None:
            raise DumpFailedError(
                "No database dump provider configured. Pass --db-path or "
                "--db-command, or select components explicitly."
            )

        logger.info("Creating database SQL dump file...")
        database_dir = context.staging_path(COMPONENT_DATABASE)
        try:
            Path(database_dir).mkdir()
        except OSError as e:
            raise ArchiveIOError(
                f"Failed to create directory {database_dir} for database archive: {e}"
            ) from e
        context.register_cleanup(database_dir)

        result_file = os.path.join(database_dir, SQL_DUMP_FILE_NAME)
        try:
            succeeded = self.dumper.dump(result_file, options.database_selection())
        except Exception as e:
            raise DumpFailedError(f"Unable to dump database: {e}") from e

        if not succeeded:
            raise DumpFailedError(
                "Unable to dump database. Rerun with --debug to see any error message."
            )

        return Component(name=COMPONENT_DATABASE, root_path=database_dir)

    def collect(
        self, options: DumpOptions, context: PipelineContext
    ) -> List[Component]:
        """
        Return the selected components in code, files, database order.

        Raises:
            NothingSelectedError: If no component is selected
        """
        if not options.any_selected():
            raise NothingSelectedError("Nothing to archive")

        components = []
        if options.code:
            components.append(self.code_component(options))
        if options.files:
            components.append(self.files_component())
        if options.db:
            components.append(self.database_component(options, context))

        return components
