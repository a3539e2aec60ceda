"""
Unified diff parsing for the AI Diff Reviewer.
Turns the diff text returned by GitHub into FileChange records with target line
numbers and diff positions for every line.
"""

import re
from typing import List, Optional, Tuple

from diff_reviewer.custom_exceptions import MalformedDiffError
from diff_reviewer.logging_config import get_logger
from diff_reviewer.models import DiffLine, FileChange, Hunk, LineKind

logger = get_logger(__name__)

HUNK_HEADER_RE = re.compile(r'^@@ -(\d+)(?:,(\d+))? \+(\d+)(?:,(\d+))? @@ ?(.*)$')
GIT_HEADER_RE = re.compile(r'^diff --git "?a/(.+?)"? "?b/(.+?)"?$')

DEV_NULL = "/dev/null"


def _clean_path(raw: str) -> str:
    """Strip timestamps, quotes and the a/ or b/ prefix from a ---/+++ path."""
    path = raw.split("\t", 1)[0].strip()
    if path.startswith('"') and path.endswith('"') and len(path) >= 2:
        path = path[1:-1]
    if path == DEV_NULL:
        return path
    if path.startswith("a/") or path.startswith("b/"):
        path = path[2:]
    return path


def split_diff_lines(diff_text: str) -> List[str]:
    """
    Split diff text on newlines only.

    Form feeds, U+2028 and the other separators ``str.splitlines`` honours are
    ordinary characters inside a diff line. A trailing CR is dropped from each line.
    """
    lines = diff_text.split("\n")
    if lines and lines[-1] == "":
        lines.pop()
    return [line[:-1] if line.endswith("\r") else line for line in lines]


def _count_overflow(kind: LineKind, remaining_source: int, remaining_target: int) -> Optional[str]:
    if kind is LineKind.ADDED and remaining_target <= 0:
        return "more added lines than the hunk header declares"
    if kind is LineKind.REMOVED and remaining_source <= 0:
        return "more removed lines than the hunk header declares"
    if kind is LineKind.CONTEXT and (remaining_source <= 0 or remaining_target <= 0):
        return "more context lines than the hunk header declares"
    return None


class DiffParser:
    """
    Stateful single-pass parser over unified diff text.

    A hunk stays open while its header's source or target line count is not
    exhausted, so content lines that look like file headers (``--- x``) are read
    as content.
    """

    def parse(self, diff_text: str) -> List[FileChange]:
        """
        Parse a complete diff.

        Raises:
            MalformedDiffError: On the first hunk header that cannot be parsed
        """
        changes, _ = self._parse(diff_text, strict=True)
        return changes

    def parse_lenient(self, diff_text: str) -> Tuple[List[FileChange], List[MalformedDiffError]]:
        """
        Parse a complete diff, leaving out files whose hunks cannot be parsed.

        Returns:
            Tuple of (parsed file changes, errors for the files left out)
        """
        return self._parse(diff_text, strict=False)

    def _parse(self, diff_text: str, strict: bool) -> Tuple[List[FileChange], List[MalformedDiffError]]:
        changes: List[FileChange] = []
        errors: List[MalformedDiffError] = []

        current: Optional[FileChange] = None
        hunk: Optional[Hunk] = None
        header_seen = False
        broken = False
        remaining_source = remaining_target = 0
        target_line = 0
        position = 0

        lines = split_diff_lines(diff_text)
        for index, line in enumerate(lines):
            # Hunk content
            if hunk is not None and not broken and (remaining_source > 0 or remaining_target > 0):
                kind = None
                if line.startswith("+"):
                    kind = LineKind.ADDED
                elif line.startswith("-"):
                    kind = LineKind.REMOVED
                elif line.startswith(" ") or (line == "" and remaining_source > 0 and remaining_target > 0):
                    kind = LineKind.CONTEXT

                if kind is not None:
                    overflow = _count_overflow(kind, remaining_source, remaining_target)
                    if overflow:
                        error = MalformedDiffError(current.path, overflow)
                        if strict:
                            raise error
                        logger.warning(f"Skipping file with inconsistent hunk: {current.path}",
                                       context={"path": current.path, "reason": overflow})
                        errors.append(error)
                        broken = True
                        if changes and changes[-1] is current:
                            changes.pop()
                        continue

                    position += 1
                    number = None
                    if kind is LineKind.REMOVED:
                        remaining_source -= 1
                    else:
                        target_line += 1
                        number = target_line
                        remaining_target -= 1
                        if kind is LineKind.CONTEXT:
                            remaining_source -= 1
                    hunk.lines.append(DiffLine(kind=kind, content=line[1:],
                                               target_line_number=number, position=position))
                    continue
                # Anything else ends a hunk early (trailing context truncated by the source)

            if line.startswith("\\"):
                if hunk is not None and not broken:
                    position += 1
                    if hunk.lines:
                        hunk.markers[len(hunk.lines) - 1] = line
                continue

            if line.startswith("diff --git "):
                current = self._start_file(line)
                changes.append(current)
                hunk = None
                header_seen = False
                broken = False
                remaining_source = remaining_target = 0
                position = 0
                continue

            if line.startswith("--- ") and index + 1 < len(lines) and lines[index + 1].startswith("+++ "):
                source = _clean_path(line[4:])
                if current is None or broken or header_seen or current.hunks:
                    # Plain unified diff without git headers
                    current = FileChange(path=source)
                    changes.append(current)
                    hunk = None
                    broken = False
                    position = 0
                header_seen = True
                if source == DEV_NULL:
                    current.is_new_file = True
                elif source != current.path:
                    current.previous_path = source
                continue

            if broken or (current is not None and current.is_binary):
                continue

            if line.startswith("+++ ") and current is not None and hunk is None:
                target = _clean_path(line[4:])
                if target == DEV_NULL:
                    # Deleted files keep the path named by the headers seen so far
                    current.is_deleted_file = True
                else:
                    if current.path != target and current.previous_path is None and not current.is_new_file:
                        current.previous_path = current.path
                    current.path = target
                    if current.previous_path == current.path:
                        current.previous_path = None
                continue

            if line.startswith("@@"):
                try:
                    hunk = self._start_hunk(line, current)
                except MalformedDiffError as e:
                    if strict:
                        raise
                    logger.warning(f"Skipping file with malformed hunk header: {e.path}",
                                   context={"path": e.path, "header": line})
                    errors.append(e)
                    broken = True
                    hunk = None
                    if current is not None and changes and changes[-1] is current:
                        changes.pop()
                    continue
                position = 0 if not current.hunks else position + 1
                current.hunks.append(hunk)
                remaining_source = hunk.source_count
                remaining_target = hunk.target_count
                target_line = hunk.target_start - 1
                continue

            if current is None:
                continue

            if line.startswith("rename from "):
                current.previous_path = line[len("rename from "):].strip()
            elif line.startswith("rename to "):
                current.path = line[len("rename to "):].strip()
            elif line.startswith("new file mode"):
                current.is_new_file = True
            elif line.startswith("deleted file mode"):
                current.is_deleted_file = True
            elif line.startswith("Binary files ") or line.startswith("GIT binary patch"):
                current.is_binary = True
                current.hunks = []
                hunk = None

        for change in changes:
            logger.debug(f"Parsed {change.path}: {len(change.hunks)} hunks, "
                         f"{len(change.added_lines())} added lines",
                         context={"path": change.path, "previous_path": change.previous_path,
                                  "binary": change.is_binary})
        return changes, errors

    @staticmethod
    def _start_file(line: str) -> FileChange:
        match = GIT_HEADER_RE.match(line)
        if match:
            return FileChange(path=match.group(2))
        # Unusual header; the ---/+++ lines will name the file
        return FileChange(path=line[len("diff --git "):].strip())

    @staticmethod
    def _start_hunk(line: str, current: Optional[FileChange]) -> Hunk:
        path = current.path if current is not None else None
        if current is None:
            raise MalformedDiffError(None, f"hunk header outside of a file: {line!r}")

        match = HUNK_HEADER_RE.match(line)
        if not match:
            raise MalformedDiffError(path, f"unparseable hunk header {line!r}")

        source_start = int(match.group(1))
        source_count = int(match.group(2)) if match.group(2) is not None else 1
        target_start = int(match.group(3))
        target_count = int(match.group(4)) if match.group(4) is not None else 1

        if target_start == 0:
            if target_count != 0:
                raise MalformedDiffError(path, f"target range starts at line 0 in {line!r}")
            # Nothing survives in the target; no line number is ever assigned from it
            target_start = 1

        return Hunk(
            source_start=source_start,
            source_count=source_count,
            target_start=target_start,
            target_count=target_count,
            section=match.group(5).strip(),
        )


def parse_diff(diff_text: str) -> List[FileChange]:
    """
    Parse unified diff text into file changes.

    Args:
        diff_text: The complete diff of a change set

    Returns:
        Ordered list of FileChange records

    Raises:
        MalformedDiffError: If a hunk header cannot be parsed
    """
    return DiffParser().parse(diff_text)


def parse_patch(path: str, patch: str) -> FileChange:
    """
    Parse the per-file ``patch`` field of GitHub's pull request files API,
    which carries hunks without file headers.
    """
    changes = DiffParser().parse(f"diff --git a/{path} b/{path}\n{patch}")
    return changes[0]
