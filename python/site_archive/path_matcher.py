"""
Path exclusion rules for archive components.

Rules are a small tagged variant: a LiteralRule matches one relative path
exactly, a TemplateRule is a regular expression template with the docroot
prefix (and optionally an artifact kind) substituted in. Both are compiled
once and evaluated against paths relative to a component root, always using
"/" as the separator.
"""

import os
import re
from dataclasses import dataclass
from typing import Iterable, List, Optional, Pattern, Sequence, Tuple, Union

# Templates take a "{docroot}" prefix: "" or "<docroot name>/"
FILES_DIRECTORY_TEMPLATE = r"^{docroot}sites/[^/]+/files$"
SETTINGS_OVERRIDE_TEMPLATE = r"^{docroot}sites/[^/]+/settings\..+\.php$"
SETTINGS_FILE_TEMPLATE = r"^{docroot}sites/[^/]+/settings\.php$"
CONTRIB_SUBTREE_TEMPLATE = (
    r"^{docroot}(?:"
    r"(?!(?:modules|themes|profiles|sites)$)[^/]+"
    r"|(?:sites/[^/]+/)?{kind}/contrib"
    r")$"
)

CONTRIB_KINDS = ("modules", "themes", "profiles")


def normalize_relative_path(path: str) -> str:
    """Normalize separators and strip leading "./" and surrounding slashes."""
    normalized = path.replace(os.sep, "/").replace("\\", "/")
    while normalized.startswith("./"):
        normalized = normalized[2:]
    return normalized.strip("/")


@dataclass(frozen=True)
class LiteralRule:
    """Excludes exactly one path relative to the component root."""

    path: str

    def compile(self) -> Pattern:
        return re.compile("^" + re.escape(normalize_relative_path(self.path)) + "$")

    def __str__(self) -> str:
        return self.path


@dataclass(frozen=True)
class TemplateRule:
    """Regular expression template with named parameters substituted in."""

    template: str
    params: Tuple[Tuple[str, str], ...] = ()

    def compile(self) -> Pattern:
        values = {name: re.escape(value) for name, value in self.params}
        return re.compile(self.template.format(**values))

    def __str__(self) -> str:
        return self.compile().pattern


PatternRule = Union[LiteralRule, TemplateRule]


def docroot_prefix(docroot_name: Optional[str]) -> str:
    """Return the template prefix for a nested docroot name ("" when flat)."""
    if not docroot_name:
        return ""
    return normalize_relative_path(docroot_name) + "/"


def literal_rules(paths: Iterable[str]) -> List[LiteralRule]:
    """Build literal rules, dropping blank entries."""
    rules = []
    for path in paths:
        normalized = normalize_relative_path(path.strip())
        if normalized:
            rules.append(LiteralRule(normalized))
    return rules


def files_directory_rule(prefix: str) -> TemplateRule:
    return TemplateRule(FILES_DIRECTORY_TEMPLATE, (("docroot", prefix),))


def settings_override_rule(prefix: str) -> TemplateRule:
    return TemplateRule(SETTINGS_OVERRIDE_TEMPLATE, (("docroot", prefix),))


def settings_file_rule(prefix: str) -> TemplateRule:
    return TemplateRule(SETTINGS_FILE_TEMPLATE, (("docroot", prefix),))


def contrib_subtree_rules(prefix: str) -> List[TemplateRule]:
    """
    Rules excluding what composer rebuilds in a nested docroot.

    Each rule excludes every docroot top-level entry other than
    modules/themes/profiles/sites, plus the contrib folder of its kind at the
    docroot level or inside any sites/<site> directory.
    """
    return [
        TemplateRule(CONTRIB_SUBTREE_TEMPLATE, (("docroot", prefix), ("kind", kind)))
        for kind in CONTRIB_KINDS
    ]


class PathMatcher:
    """Decides whether a path relative to a component root is excluded."""

    def __init__(self, rules: Sequence[PatternRule] = ()):
        self.rules = tuple(rules)
        self._compiled = [(rule, rule.compile()) for rule in self.rules]

    @staticmethod
    def _candidate_paths(relative_path: str) -> List[str]:
        """The path itself and every ancestor, shallowest first."""
        parts = normalize_relative_path(relative_path).split("/")
        return ["/".join(parts[: i + 1]) for i in range(len(parts))]

    def match(self, relative_path: str) -> Optional[PatternRule]:
        """
        Return the first rule excluding the path, or None.

        A rule matching an ancestor directory excludes everything beneath it.
        """
        candidates = self._candidate_paths(relative_path)
        for rule, pattern in self._compiled:
            for candidate in candidates:
                if pattern.match(candidate):
                    return rule
        return None

    def excludes(self, relative_path: str) -> bool:
        return self.match(relative_path) is not None
