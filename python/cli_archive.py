#!/usr/bin/env python3
"""
Site Archive CLI Tool

Backs up a site's code, public files and database into a single .tar.gz
with a MANIFEST.yml describing its contents.

Usage:
    python3 cli_archive.py dump --root /var/www/site --db-path /var/www/site/db.sqlite
    python3 cli_archive.py dump --root /var/www/site --code --files --destination /backups/site.tar.gz
    python3 cli_archive.py info /backups/site.tar.gz
"""

import argparse
import logging
import shlex
import sys
from typing import List, Optional

from colored_logger import setup_colored_logging, get_colored_logger
from site_archive import (
    DumpOptions,
    ManifestReader,
    SiteArchiveError,
    create_site_archive,
    load_config,
)

logger = get_colored_logger(__name__)


def _parse_csv(csv_str: Optional[str]) -> List[str]:
    """
    Splits a comma-separated string into a list of non-empty items, stripping whitespace.
    """
    if not csv_str:
        return []
    return [item.strip() for item in csv_str.split(",") if item.strip()]


class ArchiveCLI:
    """Command-line interface for site archive dumps."""

    def __init__(self):
        self.parser = self._create_parser()

    def _create_parser(self) -> argparse.ArgumentParser:
        """Create the argument parser with all commands and options."""
        parser = argparse.ArgumentParser(
            description="Back up site code, files and database into a single archive",
            formatter_class=argparse.RawDescriptionHelpFormatter,
            epilog="""
Examples:
  # Archive code, files and an SQLite database
  python3 cli_archive.py dump --root /var/www/site --db-path /var/www/site/db.sqlite

  # Archive only the public files directory to a fixed destination
  python3 cli_archive.py dump --root /var/www/site --files --destination /backups/files.tar.gz

  # Dump the database with an external command
  python3 cli_archive.py dump --db --db-command "mysqldump --result-file={result_file} site"

  # Show the manifest of an existing archive
  python3 cli_archive.py info /backups/files.tar.gz
            """,
        )
        parser.add_argument(
            "--debug", action="store_true", help="Show debug output"
        )

        subparsers = parser.add_subparsers(dest="command", help="Available commands")

        dump_parser = subparsers.add_parser(
            "dump", help="Back up code, files and database into a single file"
        )
        dump_parser.add_argument(
            "--root", help="Site root (project root or docroot); default: config or ."
        )
        dump_parser.add_argument("--code", action="store_true", help="Archive codebase")
        dump_parser.add_argument(
            "--files", action="store_true", help="Archive public files directory"
        )
        dump_parser.add_argument(
            "--db", action="store_true", help="Archive database SQL dump"
        )
        dump_parser.add_argument(
            "--destination",
            help="Full path and filename of the archive; default: staging directory",
        )
        dump_parser.add_argument(
            "--overwrite",
            action="store_true",
            help="Overwrite the destination file if it exists",
        )
        dump_parser.add_argument("--description", help="Describe the archive contents")
        dump_parser.add_argument(
            "--tags", help="Tags for the archive manifest, delimited by commas"
        )
        dump_parser.add_argument(
            "--generator", help="Generator name stored in MANIFEST.yml"
        )
        dump_parser.add_argument(
            "--generatorversion", help="Generator version stored in MANIFEST.yml"
        )
        dump_parser.add_argument(
            "--exclude-code-paths",
            help="Comma-separated code paths (relative to the project root) to skip",
        )
        dump_parser.add_argument(
            "--skip-tables", help="Comma-separated tables to leave out of the dump"
        )
        dump_parser.add_argument(
            "--structure-tables",
            help="Comma-separated tables dumped without their data",
        )
        dump_parser.add_argument("--db-path", help="SQLite database file to dump")
        dump_parser.add_argument(
            "--db-command",
            help='Dump command; "{result_file}" is replaced with the target file',
        )
        dump_parser.add_argument(
            "--files-path",
            help="Public files directory (relative to the docroot or absolute)",
        )
        dump_parser.add_argument(
            "--staging-dir", help="Base directory for staging archives"
        )
        dump_parser.add_argument("--config", help="Path to a site-archive.yml file")
        dump_parser.add_argument(
            "--debug",
            action="store_true",
            default=argparse.SUPPRESS,
            help="Show debug output",
        )

        info_parser = subparsers.add_parser(
            "info", help="Display the manifest of an existing archive"
        )
        info_parser.add_argument("archive_path", help="Path to the .tar.gz archive")

        return parser

    def run(self, args: Optional[list] = None) -> int:
        """Run the CLI with the given arguments."""
        parsed_args = self.parser.parse_args(args)

        if not parsed_args.command:
            self.parser.print_help()
            return 1

        if parsed_args.debug:
            logging.getLogger().setLevel(logging.DEBUG)

        try:
            if parsed_args.command == "dump":
                return self._handle_dump(parsed_args)
            elif parsed_args.command == "info":
                return self._handle_info(parsed_args)
            else:
                logger.error("Unknown command: %s", parsed_args.command)
                return 1

        except KeyboardInterrupt:
            logger.info("Operation cancelled by user")
            return 130
        except Exception as e:
            logger.error("Error: %s", e)
            logger.debug("Full error details:", exc_info=True)
            return 1

    def _build_config(self, args) -> dict:
        """Load configuration and apply command-line overrides."""
        config = load_config(args.config)

        if args.root:
            config["site"]["root"] = args.root
        if args.files_path:
            config["site"]["files_path"] = args.files_path
        if args.staging_dir:
            config["staging"]["base_directory"] = args.staging_dir
        if args.db_path:
            config["database"].update(driver="sqlite", path=args.db_path)
        if args.db_command:
            config["database"].update(
                driver="command", command=shlex.split(args.db_command)
            )

        return config

    def _build_options(self, args) -> DumpOptions:
        return DumpOptions(
            code=args.code,
            files=args.files,
            db=args.db,
            destination=args.destination,
            overwrite=args.overwrite,
            description=args.description,
            tags=args.tags,
            generator=args.generator,
            generator_version=args.generatorversion,
            exclude_code_paths=_parse_csv(args.exclude_code_paths),
            skip_tables=_parse_csv(args.skip_tables),
            structure_tables=_parse_csv(args.structure_tables),
        )

    def _handle_dump(self, args) -> int:
        """Handle the 'dump' command."""
        config = self._build_config(args)
        options = self._build_options(args)

        try:
            create_site_archive(options, config)
        except SiteArchiveError as e:
            logger.error("%s", e)
            return 1

        return 0

    def _handle_info(self, args) -> int:
        """Handle the 'info' command."""
        reader = ManifestReader()

        try:
            manifest = reader.read(args.archive_path)
            counts = reader.summarize(args.archive_path)
        except SiteArchiveError as e:
            logger.error("Failed to read archive info: %s", e)
            return 1

        logger.info("Archive: %s", args.archive_path)
        logger.info("Format version: %s", manifest.get("formatversion"))
        logger.info("Created: %s", manifest.get("datestamp"))
        logger.info(
            "Generator: %s %s",
            manifest.get("generator"),
            manifest.get("generatorversion"),
        )
        if manifest.get("description"):
            logger.info("Description: %s", manifest["description"])
        if manifest.get("tags"):
            logger.info("Tags: %s", manifest["tags"])

        for component, present in (manifest.get("components") or {}).items():
            logger.info(
                "  %s: %s (%d entries)",
                component,
                "yes" if present else "no",
                counts.get(component, 0),
            )
        return 0


def main():
    """Main entry point for the CLI."""
    setup_colored_logging(level=logging.INFO)

    cli = ArchiveCLI()
    return cli.run()


if __name__ == "__main__":
    sys.exit(main())
