from .version import __version__

from .errors import (
    SiteArchiveError,
    NothingSelectedError,
    UnresolvablePathError,
    DumpFailedError,
    SensitiveDataFoundError,
    SettingsEvaluationError,
    ArchiveIOError,
    DestinationExistsError,
    MoveFailedError,
    UnsupportedManifestError,
)
from .models import Component, DumpOptions, Manifest
from .path_matcher import (
    PathMatcher,
    LiteralRule,
    TemplateRule,
    literal_rules,
    files_directory_rule,
    settings_override_rule,
    contrib_subtree_rules,
)
from .sensitive_data import SensitiveDataGuard, SettingsFileEvaluator
from .resolvers import SitePathResolver, FilesystemSiteResolver
from .dumpers import DatabaseDumper, SqliteDatabaseDumper, CommandDatabaseDumper
from .staging import PipelineContext, StagingCleaner
from .component_collector import ComponentCollector, select_components
from .archive_builder import ArchiveBuilder, ComponentStats
from .manifest import ManifestWriter, ManifestReader
from .archive_publisher import ArchivePublisher
from .path_utils import ArchivePathGenerator, TempFileManager
from .config import load_config

# Main orchestrator
from .archive_manager import SiteArchiveManager, create_site_archive

__all__ = [
    "__version__",
    # Errors
    "SiteArchiveError",
    "NothingSelectedError",
    "UnresolvablePathError",
    "DumpFailedError",
    "SensitiveDataFoundError",
    "SettingsEvaluationError",
    "ArchiveIOError",
    "DestinationExistsError",
    "MoveFailedError",
    "UnsupportedManifestError",
    # Data model
    "Component",
    "DumpOptions",
    "Manifest",
    # Path rules
    "PathMatcher",
    "LiteralRule",
    "TemplateRule",
    "literal_rules",
    "files_directory_rule",
    "settings_override_rule",
    "contrib_subtree_rules",
    # Credentials guard
    "SensitiveDataGuard",
    "SettingsFileEvaluator",
    # Collaborators
    "SitePathResolver",
    "FilesystemSiteResolver",
    "DatabaseDumper",
    "SqliteDatabaseDumper",
    "CommandDatabaseDumper",
    # Pipeline stages
    "PipelineContext",
    "StagingCleaner",
    "ComponentCollector",
    "select_components",
    "ArchiveBuilder",
    "ComponentStats",
    "ManifestWriter",
    "ManifestReader",
    "ArchivePublisher",
    "ArchivePathGenerator",
    "TempFileManager",
    "load_config",
    # Orchestration
    "SiteArchiveManager",
    "create_site_archive",
]
