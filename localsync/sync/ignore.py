# LocalSync Ignore Rules
# Include/exclude globs compiled to regular expressions, ignore-file rules via pathspec

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable

import pathspec

from localsync.utils.paths import normalize_relative_path

logger = logging.getLogger(__name__)

IGNORE_FILE_NAME = ".gitignore"


def _glob_body(pattern: str) -> str:
    """Translate glob syntax to an unanchored regex body."""
    out: list[str] = []
    i = 0
    n = len(pattern)
    while i < n:
        char = pattern[i]
        if char == "*":
            if pattern.startswith("**", i):
                # "**/" may also match zero directories
                if pattern.startswith("**/", i):
                    out.append("(?:.*/)?")
                    i += 3
                else:
                    out.append(".*")
                    i += 2
                continue
            out.append("[^/]*")
        elif char == "?":
            out.append("[^/]")
        else:
            out.append(re.escape(char))
        i += 1
    return "".join(out)


def glob_to_regex(pattern: str) -> re.Pattern[str]:
    """
    Compile a glob to an anchored regular expression.

    Supports:
    - ** for any path components (crosses "/")
    - * for any characters within one path component
    - ? for a single character other than "/"

    Args:
        pattern: Glob pattern, relative to the sync root.

    Returns:
        Compiled regex matching whole relative paths.
    """
    return re.compile(f"^{_glob_body(normalize_relative_path(pattern))}$")


def compile_ignore_lines(lines: Iterable[str]) -> pathspec.PathSpec:
    """
    Compile ignore-file lines with gitignore semantics.

    Blank lines and "#" comments carry no rule and "!" negates. A trailing
    "/" matches everything below that directory, a pattern without an
    interior "/" matches at any depth, and later lines override earlier
    ones. Lines pathspec rejects are skipped.

    Args:
        lines: Raw ignore-file lines.

    Returns:
        Compiled spec; match_file() is True for ignored paths.
    """
    valid: list[str] = []
    for line in lines:
        try:
            pathspec.GitIgnoreSpec.from_lines([line])
        except ValueError as e:
            logger.debug("Skipping malformed ignore line %r: %s", line, e)
            continue
        valid.append(line)
    return pathspec.GitIgnoreSpec.from_lines(valid)


def read_ignore_file(root: Path) -> list[str]:
    """
    Read ignore-file lines from the sync root.

    Args:
        root: Sync root directory.

    Returns:
        Lines of the ignore file, or an empty list if there is none.
    """
    ignore_path = root / IGNORE_FILE_NAME
    if not ignore_path.is_file():
        return []
    try:
        return ignore_path.read_text(encoding="utf-8", errors="replace").splitlines()
    except OSError as e:
        logger.warning("Could not read %s: %s", ignore_path, e)
        return []


@dataclass
class IgnoreRules:
    """
    Compiled include, exclude and ignore-file rules.

    A path survives only if it matches an include pattern (when any are
    configured), matches no exclude pattern, and is left un-ignored by the
    ignore-file rules.
    """

    include: list[re.Pattern[str]] = field(default_factory=list)
    exclude: list[re.Pattern[str]] = field(default_factory=list)
    ignore_spec: pathspec.PathSpec = field(default_factory=lambda: compile_ignore_lines([]))

    @classmethod
    def compile(
        cls,
        include_patterns: Iterable[str] = (),
        exclude_patterns: Iterable[str] = (),
        ignore_lines: Iterable[str] = (),
    ) -> "IgnoreRules":
        """Compile patterns, skipping any that fail to compile."""
        return cls(
            include=_compile_globs(include_patterns),
            exclude=_compile_globs(exclude_patterns),
            ignore_spec=compile_ignore_lines(ignore_lines),
        )

    @classmethod
    def for_root(
        cls,
        root: Path,
        include_patterns: Iterable[str] = (),
        exclude_patterns: Iterable[str] = (),
    ) -> "IgnoreRules":
        """Compile patterns together with the root's ignore file."""
        return cls.compile(include_patterns, exclude_patterns, read_ignore_file(root))

    def is_ignored_by_rules(self, relative_path: str) -> bool:
        return self.ignore_spec.match_file(relative_path)

    def is_included(self, relative_path: str) -> bool:
        """
        Check whether a relative path passes every rule.

        Args:
            relative_path: Path relative to the sync root.

        Returns:
            True if the path should be synchronized.
        """
        rel = normalize_relative_path(relative_path)
        if self.include and not any(reg.match(rel) for reg in self.include):
            return False
        if any(reg.match(rel) for reg in self.exclude):
            return False
        return not self.is_ignored_by_rules(rel)


def _compile_globs(patterns: Iterable[str]) -> list[re.Pattern[str]]:
    compiled = []
    for pattern in patterns:
        try:
            compiled.append(glob_to_regex(pattern))
        except re.error as e:
            logger.debug("Skipping malformed pattern %r: %s", pattern, e)
    return compiled
