"""
Maps analysis findings onto lines GitHub can anchor review comments to.
"""

from typing import Dict, Iterable, List

from diff_reviewer.custom_exceptions import InvalidConfigurationError
from diff_reviewer.logging_config import get_logger
from diff_reviewer.models import FileAnalysisResult, FileChange, Finding, LineKind, MappingResult, ReviewComment

logger = get_logger(__name__)

DROP = "drop"
SUMMARY = "summary"
UNMAPPED_POLICIES = (DROP, SUMMARY)

SEVERITY_LABELS = {
    "info": "Suggestion",
    "warning": "Warning",
    "error": "Issue",
}


def format_body(finding: Finding) -> str:
    if finding.severity is None:
        return finding.message
    return f"**{SEVERITY_LABELS[finding.severity.value]}:** {finding.message}"


class CommentMapper:
    """
    Turns findings into inline comments.

    Only lines added by the change can carry a comment. Findings on context or
    removed lines, or on lines outside the diff, are dropped, or kept as summary
    notes when the policy is ``summary``.
    """

    def __init__(self, unmapped_policy: str = DROP):
        if unmapped_policy not in UNMAPPED_POLICIES:
            raise InvalidConfigurationError("review.unmapped_findings",
                                            f"must be one of {', '.join(UNMAPPED_POLICIES)}")
        self.unmapped_policy = unmapped_policy

    def map_findings(self, change: FileChange, findings: Iterable[Finding]) -> MappingResult:
        result = MappingResult()
        for finding in findings:
            line = change.line_at(finding.line) if finding.path == change.path else None
            if line is not None and line.kind is LineKind.ADDED:
                result.comments.append(ReviewComment(
                    path=change.path,
                    line=finding.line,
                    body=format_body(finding),
                    position=line.position,
                ))
                continue

            reason = "not in diff" if line is None else f"{line.kind.value} line"
            logger.debug(f"Finding at {finding.path}:{finding.line} cannot be anchored ({reason})",
                         context={"policy": self.unmapped_policy})
            if self.unmapped_policy == SUMMARY:
                result.demoted.append(finding)
            else:
                result.dropped.append(finding)

        result.comments.sort(key=lambda comment: comment.line)
        result.demoted.sort(key=lambda finding: finding.line)
        return result

    def map_all(self, changes: Iterable[FileChange], results: Iterable[FileAnalysisResult]) -> MappingResult:
        """Map every successful file result; output ordered by path, then line."""
        by_path: Dict[str, FileChange] = {change.path: change for change in changes}
        combined = MappingResult()
        for file_result in sorted(results, key=lambda r: r.path):
            if not file_result.ok or not file_result.findings:
                continue
            change = by_path.get(file_result.path)
            if change is None:
                logger.warning(f"Findings returned for unknown file {file_result.path}; ignoring")
                continue
            combined.extend(self.map_findings(change, file_result.findings))

        if combined.dropped or combined.demoted:
            logger.info(f"{len(combined.dropped) + len(combined.demoted)} findings could not be "
                        f"anchored to added lines",
                        context={"dropped": len(combined.dropped), "demoted": len(combined.demoted)})
        return combined


def sort_comments(comments: List[ReviewComment]) -> List[ReviewComment]:
    return sorted(comments, key=lambda comment: (comment.path, comment.line))
