"""
Guard against archiving database credentials.

The canonical per-site settings file (sites/<site>/settings.php) must not
define database connection settings; those belong in a settings.*.php
override, which the code component excludes. The check is security-relevant:
only trusted site trees should be passed into the pipeline.

The settings file is PHP. Rather than executing it, SettingsFileEvaluator
tokenizes the source and statically replays every assignment to $databases.
This never runs file content as code, at the price of not following
include/require statements and treating any non-literal right-hand side as
defining connection settings.

Only writes through the literal name $databases are seen. These forms are
not detected:

    $db = &$databases; $db['default'] = [...];   reference alias
    [$databases] = [[...]];                      list destructuring
    ${'databases'} = [...];                      variable variable
"""

import re
from pathlib import Path
from typing import List, Optional, Tuple
from colored_logger import get_colored_logger

from .errors import SensitiveDataFoundError, SettingsEvaluationError
from .path_matcher import normalize_relative_path, settings_file_rule

logger = get_colored_logger(__name__)

DATABASES_VARIABLE = "databases"

# Token kinds
VARIABLE = "variable"
NAME = "name"
NUMBER = "number"
STRING = "string"
OP = "op"

Token = Tuple[str, str]

_NAME_RE = re.compile(r"[A-Za-z_\x80-\uffff][A-Za-z0-9_\x80-\uffff]*")
_NUMBER_RE = re.compile(r"[0-9][0-9A-Za-z_.]*")
_HEREDOC_RE = re.compile(r"<<<[ \t]*(['\"]?)([A-Za-z_][A-Za-z0-9_]*)\1\r?\n")

# Longest first so that "===" is not read as "==" followed by "="
_OPERATORS = (
    "===",
    "!==",
    "<=>",
    "??=",
    "**=",
    "==",
    "!=",
    "<>",
    "=>",
    "+=",
    "-=",
    "*=",
    "/=",
    ".=",
    "%=",
    "&=",
    "|=",
    "^=",
    "->",
    "::",
    "<=",
    ">=",
    "&&",
    "||",
    "??",
    "++",
    "--",
)

ASSIGNMENT_OPERATORS = {
    "=",
    "+=",
    "-=",
    "*=",
    "/=",
    ".=",
    "%=",
    "&=",
    "|=",
    "^=",
    "**=",
    "??=",
}

_OPENERS = {"(": ")", "[": "]", "{": "}"}
_CLOSERS = {")", "]", "}"}


class PhpSyntaxError(ValueError):
    """Raised when the tokenizer hits an unterminated construct."""

    pass


def _skip_line_comment(source: str, pos: int) -> int:
    """Return the position after a // or # comment (ends at newline or ?>)."""
    newline = source.find("\n", pos)
    closing_tag = source.find("?>", pos)
    ends = [end for end in (newline, closing_tag) if end != -1]
    return min(ends) if ends else len(source)


def _find_string_end(source: str, pos: int, quote: str) -> int:
    """Return the index of the closing quote of the string opening at pos."""
    i = pos + 1
    while i < len(source):
        char = source[i]
        if char == "\\":
            i += 2
            continue
        if char == quote:
            return i
        i += 1
    raise PhpSyntaxError(f"Unterminated string literal at offset {pos}")


def _read_heredoc(source: str, pos: int, tokens: List[Token]) -> int:
    match = _HEREDOC_RE.match(source, pos)
    if not match:
        raise PhpSyntaxError(f"Malformed heredoc at offset {pos}")

    label = match.group(2)
    closing = re.compile(r"^[ \t]*" + re.escape(label) + r"\b", re.MULTILINE)
    end_match = closing.search(source, match.end())
    if not end_match:
        raise PhpSyntaxError(f"Unterminated heredoc {label} at offset {pos}")

    tokens.append((STRING, source[match.end() : end_match.start()]))
    return end_match.end()


def tokenize_php(source: str) -> List[Token]:
    """
    Split PHP source into a flat token list.

    Inline HTML outside <?php ... ?> is skipped, comments are dropped and a
    closing tag is emitted as ";" since it terminates the statement.
    """
    tokens: List[Token] = []
    pos = 0
    length = len(source)
    in_code = False

    while pos < length:
        if not in_code:
            start = source.find("<?", pos)
            if start == -1:
                break
            if source.startswith("<?php", start):
                pos = start + 5
            elif source.startswith("<?=", start):
                pos = start + 3
            else:
                pos = start + 2
            in_code = True
            continue

        char = source[pos]

        if char.isspace():
            pos += 1
        elif source.startswith("?>", pos):
            tokens.append((OP, ";"))
            in_code = False
            pos += 2
        elif source.startswith("/*", pos):
            end = source.find("*/", pos + 2)
            if end == -1:
                raise PhpSyntaxError(f"Unterminated comment at offset {pos}")
            pos = end + 2
        elif char == "#" or source.startswith("//", pos):
            pos = _skip_line_comment(source, pos)
        elif char in ("'", '"', "`"):
            end = _find_string_end(source, pos, char)
            tokens.append((STRING, source[pos + 1 : end]))
            pos = end + 1
        elif source.startswith("<<<", pos):
            pos = _read_heredoc(source, pos, tokens)
        elif char == "$" and _NAME_RE.match(source, pos + 1):
            match = _NAME_RE.match(source, pos + 1)
            tokens.append((VARIABLE, match.group(0)))
            pos = match.end()
        elif _NAME_RE.match(source, pos):
            match = _NAME_RE.match(source, pos)
            tokens.append((NAME, match.group(0)))
            pos = match.end()
        elif _NUMBER_RE.match(source, pos):
            match = _NUMBER_RE.match(source, pos)
            tokens.append((NUMBER, match.group(0)))
            pos = match.end()
        else:
            operator = next(
                (op for op in _OPERATORS if source.startswith(op, pos)), char
            )
            tokens.append((OP, operator))
            pos += len(operator)

    return tokens


def _skip_subscript(tokens: List[Token], index: int) -> int:
    """Given tokens[index] == "[", return the index after its matching "]"."""
    depth = 0
    for i in range(index, len(tokens)):
        kind, value = tokens[i]
        if kind != OP:
            continue
        if value == "[":
            depth += 1
        elif value == "]":
            depth -= 1
            if depth == 0:
                return i + 1
    return len(tokens)


def _statement_end(tokens: List[Token], start: int) -> int:
    """Index of the ";" (or enclosing block close) ending the statement."""
    depth = 0
    for i in range(start, len(tokens)):
        kind, value = tokens[i]
        if kind != OP:
            continue
        if value in _OPENERS:
            depth += 1
        elif value in _CLOSERS:
            depth -= 1
            if depth < 0:
                return i
        elif value == ";" and depth == 0:
            return i
    return len(tokens)


def _is_empty_literal(tokens: List[Token]) -> bool:
    values = [value.lower() for _, value in tokens]
    return values in (["[", "]"], ["array", "(", ")"], ["null"], ["false"])


def _is_unset_call(tokens: List[Token], index: int) -> bool:
    return (
        index >= 2
        and index + 1 < len(tokens)
        and tokens[index - 1] == (OP, "(")
        and tokens[index - 2][0] == NAME
        and tokens[index - 2][1].lower() == "unset"
        and tokens[index + 1] == (OP, ")")
    )


class SettingsFileEvaluator:
    """Statically evaluates whether a PHP settings file defines $databases."""

    def defines_database_settings(self, source: str) -> bool:
        """Replay assignments to $databases and report whether it ends non-empty."""
        tokens = tokenize_php(source)
        defined = False
        i = 0

        while i < len(tokens):
            kind, value = tokens[i]
            if kind != VARIABLE or value != DATABASES_VARIABLE:
                i += 1
                continue

            if _is_unset_call(tokens, i):
                defined = False
                i += 1
                continue

            j = i + 1
            subscripted = False
            while j < len(tokens) and tokens[j] == (OP, "["):
                j = _skip_subscript(tokens, j)
                subscripted = True

            if (
                j < len(tokens)
                and tokens[j][0] == OP
                and tokens[j][1] in ASSIGNMENT_OPERATORS
            ):
                operator = tokens[j][1]
                end = _statement_end(tokens, j + 1)
                right_hand_side = tokens[j + 1 : end]

                if subscripted:
                    defined = True
                elif operator == "=":
                    defined = not _is_empty_literal(right_hand_side)
                elif not _is_empty_literal(right_hand_side):
                    defined = True

                i = end
                continue

            i = j

        return defined

    def _read_source(self, file_path: Path) -> str:
        raw = file_path.read_bytes()
        try:
            return raw.decode("utf-8")
        except UnicodeDecodeError:
            logger.debug("Non-UTF-8 settings file, reading as latin1: %s", file_path)
            return raw.decode("latin1")

    def evaluate(self, file_path: str) -> bool:
        """
        Evaluate a settings file on disk.

        Raises:
            SettingsEvaluationError: If the file cannot be read or tokenized
        """
        path = Path(file_path)
        try:
            source = self._read_source(path)
            return self.defines_database_settings(source)
        except OSError as e:
            raise SettingsEvaluationError(
                f"Cannot read settings file {file_path}: {e}"
            ) from e
        except PhpSyntaxError as e:
            raise SettingsEvaluationError(
                f"Cannot evaluate settings file {file_path}: {e}"
            ) from e


class SensitiveDataGuard:
    """Refuses to archive canonical settings files carrying credentials."""

    def __init__(
        self,
        docroot_prefix: str = "",
        evaluator: Optional[SettingsFileEvaluator] = None,
    ):
        self.docroot_prefix = docroot_prefix
        self.evaluator = evaluator or SettingsFileEvaluator()
        self._settings_pattern = settings_file_rule(docroot_prefix).compile()

    def applies_to(self, relative_path: str) -> bool:
        """True for <docroot>sites/<site>/settings.php only."""
        return bool(
            self._settings_pattern.match(normalize_relative_path(relative_path))
        )

    def check(self, absolute_path: str, relative_path: str) -> None:
        """
        Fail when the settings file defines database connection settings.

        Raises:
            SensitiveDataFoundError: If $databases is non-empty
            SettingsEvaluationError: If the file cannot be evaluated
        """
        logger.debug("Checking %s for database credentials", relative_path)
        if self.evaluator.evaluate(absolute_path):
            raise SensitiveDataFoundError(normalize_relative_path(relative_path))
