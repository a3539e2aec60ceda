"""
Data model shared by the review pipeline stages.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Tuple


class LineKind(str, Enum):
    ADDED = "added"
    REMOVED = "removed"
    CONTEXT = "context"

    @property
    def prefix(self) -> str:
        return {"added": "+", "removed": "-", "context": " "}[self.value]


class Severity(str, Enum):
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"

    @classmethod
    def parse(cls, value: Optional[str]) -> Optional["Severity"]:
        """Lenient conversion of a provider supplied severity; unknown values give None."""
        if value is None:
            return None
        normalized = str(value).strip().lower()
        aliases = {
            "low": cls.INFO, "minor": cls.INFO, "nit": cls.INFO, "suggestion": cls.INFO,
            "medium": cls.WARNING, "major": cls.WARNING,
            "high": cls.ERROR, "critical": cls.ERROR,
        }
        if normalized in aliases:
            return aliases[normalized]
        try:
            return cls(normalized)
        except ValueError:
            return None


@dataclass(frozen=True)
class ReviewContext:
    """
    Canonical description of what is being reviewed, independent of the trigger.

    ``commit_range`` is set whenever the diff must be computed between two commits
    (push and PR synchronize); otherwise the full pull request diff is used.
    """

    owner: str
    repo: str
    title: str = ""
    description: str = ""
    pull_number: Optional[int] = None
    commit_range: Optional[Tuple[str, str]] = None

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.repo}"

    @property
    def has_pull_request(self) -> bool:
        return self.pull_number is not None


@dataclass(frozen=True)
class DiffLine:
    kind: LineKind
    content: str
    target_line_number: Optional[int] = None
    # GitHub diff position: 1-based offset below the file's first hunk header
    position: int = 0

    def render(self) -> str:
        return f"{self.kind.prefix}{self.content}"


@dataclass
class Hunk:
    source_start: int
    source_count: int
    target_start: int
    target_count: int
    section: str = ""
    lines: List[DiffLine] = field(default_factory=list)
    # Rendered text of "\ No newline at end of file" markers, keyed by preceding line index
    markers: Dict[int, str] = field(default_factory=dict)

    @property
    def header(self) -> str:
        header = f"@@ -{self.source_start},{self.source_count} +{self.target_start},{self.target_count} @@"
        if self.section:
            header += f" {self.section}"
        return header

    def target_lines(self) -> List[DiffLine]:
        return [line for line in self.lines if line.target_line_number is not None]

    def render(self) -> str:
        """Hunk text including its header."""
        out = [self.header]
        for index, line in enumerate(self.lines):
            out.append(line.render())
            if index in self.markers:
                out.append(self.markers[index])
        return "\n".join(out)


@dataclass
class FileChange:
    """All changes to one file within a diff."""

    path: str
    previous_path: Optional[str] = None
    hunks: List[Hunk] = field(default_factory=list)
    is_binary: bool = False
    is_new_file: bool = False
    is_deleted_file: bool = False

    @property
    def is_renamed(self) -> bool:
        return self.previous_path is not None and self.previous_path != self.path

    def target_lines(self) -> List[DiffLine]:
        return [line for hunk in self.hunks for line in hunk.target_lines()]

    def added_lines(self) -> List[DiffLine]:
        return [line for hunk in self.hunks for line in hunk.lines if line.kind is LineKind.ADDED]

    def line_at(self, target_line_number: int) -> Optional[DiffLine]:
        """The added or context line carrying ``target_line_number``, if the diff covers it."""
        for hunk in self.hunks:
            for line in hunk.lines:
                if line.target_line_number == target_line_number:
                    return line
        return None

    def patch_text(self) -> str:
        """All hunks concatenated in order, each with its header."""
        return "\n".join(hunk.render() for hunk in self.hunks)


@dataclass(frozen=True)
class Finding:
    path: str
    line: int
    message: str
    severity: Optional[Severity] = None


@dataclass(frozen=True)
class ReviewComment:
    path: str
    line: int
    body: str
    position: Optional[int] = None

    def to_github(self) -> Dict[str, object]:
        """Payload entry for the pull request review API, anchored on the new file."""
        return {"path": self.path, "line": self.line, "side": "RIGHT", "body": self.body}


@dataclass(frozen=True)
class AnalysisRequest:
    path: str
    hunk_text: str
    title: str
    description: str
    file_change: Optional[FileChange] = field(default=None, compare=False)


@dataclass
class FileAnalysisResult:
    """Outcome of analysing one file: findings, or the reason the analysis failed."""

    path: str
    findings: List[Finding] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def failed(cls, path: str, reason: str) -> "FileAnalysisResult":
        return cls(path=path, error=reason)


@dataclass
class MappingResult:
    comments: List[ReviewComment] = field(default_factory=list)
    dropped: List[Finding] = field(default_factory=list)
    demoted: List[Finding] = field(default_factory=list)

    def extend(self, other: "MappingResult") -> None:
        self.comments.extend(other.comments)
        self.dropped.extend(other.dropped)
        self.demoted.extend(other.demoted)


class RunStatus(str, Enum):
    COMPLETE = "complete"
    DEGRADED = "degraded"
    UNSUPPORTED = "unsupported"
    NO_CHANGES = "no_changes"


@dataclass
class ReviewReport:
    """Everything a run produced, used for the final log line and report sinks."""

    status: RunStatus
    context: Optional[ReviewContext] = None
    reason: str = ""
    reviewed_files: List[str] = field(default_factory=list)
    skipped_files: Dict[str, str] = field(default_factory=dict)
    excluded_files: List[str] = field(default_factory=list)
    comments: List[ReviewComment] = field(default_factory=list)
    dropped_count: int = 0
    demoted: List[Finding] = field(default_factory=list)
    posted: bool = False

    def render_summary(self) -> str:
        """Markdown summary of the run, used as review body and notification text."""
        lines = ["# AI Review Summary", ""]
        if self.context is not None:
            lines.append(f"**Target:** {self.context.title or self.context.full_name}")
            if self.context.commit_range:
                base, head = self.context.commit_range
                lines.append(f"**Range:** `{base[:7]}...{head[:7]}`")
            lines.append("")
        lines.append(f"- Files reviewed: {len(self.reviewed_files)}")
        lines.append(f"- Inline comments: {len(self.comments)}")
        if self.excluded_files:
            lines.append(f"- Files excluded by pattern: {len(self.excluded_files)}")
        if self.dropped_count:
            lines.append(f"- Findings not on added lines (dropped): {self.dropped_count}")

        if self.skipped_files:
            lines += ["", "## Skipped files", ""]
            for path, reason in sorted(self.skipped_files.items()):
                lines.append(f"- `{path}`: {reason}")

        if self.demoted:
            lines += ["", "## Additional notes", ""]
            for finding in self.demoted:
                lines.append(f"- `{finding.path}:{finding.line}`: {finding.message}")

        if self.comments and not self.posted:
            lines += ["", "## Findings", ""]
            for comment in self.comments:
                lines.append(f"- `{comment.path}:{comment.line}`: {comment.body}")

        return "\n".join(lines)
