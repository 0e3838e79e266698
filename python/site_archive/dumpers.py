"""
Database dump providers.

The pipeline treats a dump provider as a black box: it is handed a target
file and the table selection options and reports success as a boolean.
"""

import sqlite3
import subprocess
from pathlib import Path
from typing import Dict, List, Optional, Protocol, Sequence
from colored_logger import get_colored_logger

logger = get_colored_logger(__name__)

RESULT_FILE_PLACEHOLDER = "{result_file}"


class DatabaseDumper(Protocol):
    """Interface the component collector consumes."""

    def dump(self, target_file: str, selection: Dict[str, List[str]]) -> bool:
        """Write an SQL dump to target_file; return False on failure."""
        ...


class SqliteDatabaseDumper:
    """
    Dumps an SQLite database with iterdump().

    Statements are tied to their table through sqlite_master.tbl_name, so
    indexes and triggers of a skipped table are left out together with it.
    """

    def __init__(self, database_path: str):
        self.database_path = database_path

    def _schema_owners(self, connection: sqlite3.Connection) -> Dict[str, str]:
        """Map each schema statement as iterdump() emits it to its table."""
        rows = connection.execute(
            "SELECT sql, tbl_name FROM sqlite_master "
            "WHERE sql NOT NULL AND type IN ('table', 'index', 'trigger')"
        )
        return {f"{sql};": table for sql, table in rows}

    def _insert_table(self, statement: str) -> Optional[str]:
        if not statement.startswith('INSERT INTO "'):
            return None
        remainder = statement[len('INSERT INTO "') :]
        end = 0
        # Quotes inside the name are doubled
        while True:
            end = remainder.index('"', end)
            if remainder.startswith('""', end):
                end += 2
                continue
            return remainder[:end].replace('""', '"')

    def _keep_statement(
        self,
        statement: str,
        owners: Dict[str, str],
        skip: Sequence[str],
        structure_only: Sequence[str],
    ) -> bool:
        table = self._insert_table(statement)
        if table is not None:
            return table not in skip and table not in structure_only

        table = owners.get(statement)
        return table is None or table not in skip

    def dump(self, target_file: str, selection: Dict[str, List[str]]) -> bool:
        if not Path(self.database_path).is_file():
            logger.error("SQLite database not found: %s", self.database_path)
            return False

        skip = selection.get("skip_tables", [])
        structure_only = selection.get("structure_tables", [])

        try:
            connection = sqlite3.connect(self.database_path)
            try:
                owners = self._schema_owners(connection)
                with open(target_file, "w", encoding="utf-8") as f:
                    for statement in connection.iterdump():
                        if self._keep_statement(
                            statement, owners, skip, structure_only
                        ):
                            f.write(f"{statement}\n")
            finally:
                connection.close()
        except (sqlite3.Error, OSError) as e:
            logger.error("SQLite dump failed for %s: %s", self.database_path, e)
            return False

        logger.debug("SQLite dump written to %s", target_file)
        return True


class CommandDatabaseDumper:
    """
    Runs an external dump command such as mysqldump or pg_dump.

    ``command`` is an argv list; "{result_file}" in any argument is replaced
    with the target file. Without a placeholder, stdout is written to the
    target file. Skip/structure table selection is the command's business.
    """

    def __init__(self, command: Sequence[str], timeout: Optional[int] = None):
        if not command:
            raise ValueError("Dump command must not be empty")
        self.command = list(command)
        self.timeout = timeout

    def build_command(self, target_file: str) -> List[str]:
        return [
            arg.replace(RESULT_FILE_PLACEHOLDER, target_file) for arg in self.command
        ]

    def dump(self, target_file: str, selection: Dict[str, List[str]]) -> bool:
        cmd = self.build_command(target_file)
        writes_result_file = any(RESULT_FILE_PLACEHOLDER in arg for arg in self.command)
        logger.debug("Running dump command: %s", " ".join(cmd))

        try:
            if writes_result_file:
                result = subprocess.run(
                    cmd,
                    capture_output=True,
                    text=True,
                    timeout=self.timeout,
                    check=False,
                )
            else:
                with open(target_file, "wb") as out:
                    result = subprocess.run(
                        cmd,
                        stdout=out,
                        stderr=subprocess.PIPE,
                        timeout=self.timeout,
                        check=False,
                    )
        except subprocess.TimeoutExpired:
            logger.error("Dump command timed out after %ss", self.timeout)
            return False
        except OSError as e:
            logger.error("Dump command could not be started: %s", e)
            return False

        if result.returncode != 0:
            stderr = result.stderr
            if isinstance(stderr, bytes):
                stderr = stderr.decode("utf-8", errors="replace")
            logger.error(
                "Dump command failed (code %d): %s",
                result.returncode,
                (stderr or "").strip(),
            )
            return False

        return True
