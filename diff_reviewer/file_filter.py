#!/usr/bin/env python3
"""
File filtering module for the AI Diff Reviewer.
Removes files from the review when their target path matches an exclude pattern.
"""

import re
from typing import Iterable, List, Optional, Pattern, Sequence, Union

from diff_reviewer.logging_config import get_logger, with_context
from diff_reviewer.models import FileChange

logger = get_logger(__name__)


def parse_patterns(value: Union[str, Iterable[str], None]) -> List[str]:
    """
    Normalise an exclude setting into a list of patterns.

    Accepts a comma-separated string (the action input form) or a list (the YAML form).
    Items are trimmed and empty items are dropped, so a stray comma never matches everything.
    """
    if value is None:
        return []
    items = value.split(",") if isinstance(value, str) else list(value)
    patterns = []
    for item in items:
        pattern = str(item).strip()
        if pattern.startswith("./"):
            pattern = pattern[2:]
        if pattern:
            patterns.append(pattern)
    return patterns


def glob_to_regex(pattern: str) -> Pattern:
    """
    Compile a path glob.

    ``*`` and ``?`` stay within one path segment, ``**`` as a whole segment spans
    directories (``**/`` may match none), and ``[...]``/``[!...]`` are character classes.
    """
    out = []
    i = 0
    n = len(pattern)
    while i < n:
        c = pattern[i]
        if c == "*":
            j = i
            while j < n and pattern[j] == "*":
                j += 1
            segment_start = i == 0 or pattern[i - 1] == "/"
            segment_end = j == n or pattern[j] == "/"
            if j - i >= 2 and segment_start and segment_end:
                if j < n:
                    out.append("(?:.*/)?")
                    j += 1
                else:
                    out.append(".*")
            else:
                out.append("[^/]*")
            i = j
        elif c == "?":
            out.append("[^/]")
            i += 1
        elif c == "[":
            j = i + 1
            if j < n and pattern[j] in "!^":
                j += 1
            if j < n and pattern[j] == "]":
                j += 1
            close = pattern.find("]", j)
            if close == -1:
                out.append(re.escape(c))
                i += 1
                continue
            body = pattern[i + 1:close]
            negate = body[:1] in ("!", "^")
            if negate:
                body = body[1:]
            body = body.replace("\\", "\\\\").replace("[", "\\[")
            out.append(f"[^/{body}]" if negate else f"[{body}]")
            i = close + 1
        else:
            out.append(re.escape(c))
            i += 1
    return re.compile("".join(out))


class FileFilter:
    """
    A class to filter file changes from the review based on configured glob patterns.
    """

    def __init__(self, patterns: Union[str, Sequence[str], None] = None):
        """
        Initialize the FileFilter.

        Args:
            patterns: Exclude globs, as a list or a comma-separated string
        """
        self.exclude_patterns = parse_patterns(patterns)
        self._compiled = [(pattern, glob_to_regex(pattern)) for pattern in self.exclude_patterns]

        logger.debug("FileFilter initialized",
                     context={"exclude_patterns": self.exclude_patterns})

    @property
    def enabled(self) -> bool:
        return bool(self._compiled)

    def matching_pattern(self, path: str) -> Optional[str]:
        """Return the first pattern matching ``path``, or None."""
        for pattern, regex in self._compiled:
            if regex.fullmatch(path):
                return pattern
        return None

    def should_exclude_file(self, change: FileChange) -> bool:
        """
        Determine if a file should be excluded from the review.

        Args:
            change: The parsed file change; its target (post-rename) path is matched

        Returns:
            True if the file should be excluded, False otherwise
        """
        pattern = self.matching_pattern(change.path)
        if pattern is not None:
            logger.debug(f"Excluding file due to pattern match: {change.path}",
                         context={"filename": change.path, "pattern": pattern})
            return True
        return False

    @with_context
    def filter_files(self, changes: List[FileChange]) -> List[FileChange]:
        """
        Filter file changes based on the configured patterns.

        Args:
            changes: Parsed file changes, in diff order

        Returns:
            The file changes to include in the review, order preserved
        """
        if not self.enabled or not changes:
            return list(changes)

        original_count = len(changes)
        filtered = [change for change in changes if not self.should_exclude_file(change)]
        excluded_count = original_count - len(filtered)

        if excluded_count > 0:
            logger.info(f"Excluded {excluded_count} files from review",
                        context={"original_count": original_count,
                                 "filtered_count": len(filtered)})

        return filtered
