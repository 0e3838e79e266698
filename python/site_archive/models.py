"""
Data model shared by the archive pipeline stages.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

COMPONENT_CODE = "code"
COMPONENT_FILES = "files"
COMPONENT_DATABASE = "database"

# Order in which selected components land in the container
COMPONENT_ORDER = (COMPONENT_CODE, COMPONENT_FILES, COMPONENT_DATABASE)

MANIFEST_FORMAT_VERSION = "1.0"


@dataclass(frozen=True)
class Component:
    """One logical part of the backup with its own root and exclusion rules."""

    name: str
    root_path: str
    exclude_rules: Tuple[Any, ...] = ()
    scan_settings: bool = False
    docroot_prefix: str = ""


@dataclass
class DumpOptions:
    """Options for a single archive dump invocation."""

    code: bool = False
    files: bool = False
    db: bool = False
    destination: Optional[str] = None
    overwrite: bool = False
    description: Optional[str] = None
    tags: Optional[str] = None
    generator: Optional[str] = None
    generator_version: Optional[str] = None
    exclude_code_paths: List[str] = field(default_factory=list)
    skip_tables: List[str] = field(default_factory=list)
    structure_tables: List[str] = field(default_factory=list)

    def any_selected(self) -> bool:
        return self.code or self.files or self.db

    def database_selection(self) -> Dict[str, List[str]]:
        """Table selection handed opaquely to the dump provider."""
        return {
            "skip_tables": list(self.skip_tables),
            "structure_tables": list(self.structure_tables),
        }


@dataclass(frozen=True)
class Manifest:
    """Metadata record bundled as MANIFEST.yml next to the component folders."""

    datestamp: int
    components: Dict[str, bool]
    generator: str
    generatorversion: str
    description: Optional[str] = None
    tags: Optional[str] = None
    formatversion: str = MANIFEST_FORMAT_VERSION

    def to_dict(self) -> Dict[str, Any]:
        return {
            "datestamp": self.datestamp,
            "formatversion": self.formatversion,
            "components": {
                COMPONENT_CODE: bool(self.components.get(COMPONENT_CODE, False)),
                COMPONENT_FILES: bool(self.components.get(COMPONENT_FILES, False)),
                COMPONENT_DATABASE: bool(
                    self.components.get(COMPONENT_DATABASE, False)
                ),
            },
            "description": self.description,
            "tags": self.tags,
            "generator": self.generator,
            "generatorversion": self.generatorversion,
        }
