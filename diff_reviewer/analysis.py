#!/usr/bin/env python3
"""
Per-file analysis for the AI Diff Reviewer.
Builds the review prompt for one file's hunks, sends it to the model and extracts
line findings from the answer.
"""

import json
import re
from typing import Any, List, Optional, Protocol

from diff_reviewer.custom_exceptions import AnalysisServiceError, DiffReviewerError
from diff_reviewer.logging_config import get_logger
from diff_reviewer.models import AnalysisRequest, Finding, LineKind, Severity

logger = get_logger(__name__)

INSTRUCTIONS = (
    "Your task is to review a code change in a pull request. Instructions:\n"
    '- Respond with JSON only, in this format: {"reviews": [{"lineNumber": <line_number>, '
    '"reviewComment": "<review comment>", "severity": "<info|warning|error>"}]}\n'
    "- lineNumber is the number printed in the left column of the diff below. Only comment on "
    "lines starting with '+' (added lines).\n"
    "- Comment only when there is something to improve: bugs, security problems, performance, "
    "unclear logic. Otherwise \"reviews\" must be an empty array.\n"
    "- Do not give compliments or positive comments.\n"
    "- Write each comment in GitHub Markdown.\n"
    "- Use the title and description only as context; comment on the code.\n"
    "- Never suggest adding comments to the code.\n"
)

FENCE_RE = re.compile(r"^```(?:json)?\s*\n?(.*?)\n?```\s*$", re.DOTALL)

# Markdown fallback: "### path/to/file.ext:42" followed by the comment body
MARKDOWN_FINDING_RE = re.compile(r'^### ([^:\n]+):(\d+)\s*\n(.*?)(?=^### [^:\n]+:\d+|\Z)', re.DOTALL | re.MULTILINE)


class CompletionModel(Protocol):
    def generate_response(self, prompt: str) -> str:
        ...


def render_hunks_for_prompt(request: AnalysisRequest) -> str:
    """
    Render the file's hunks with each line's target line number in a left column.

    Removed lines have no target number and get a blank column.
    """
    change = request.file_change
    if change is None:
        return request.hunk_text

    out = []
    for hunk in change.hunks:
        out.append(hunk.header)
        for line in hunk.lines:
            number = str(line.target_line_number) if line.kind is not LineKind.REMOVED else ""
            out.append(f"{number:>6} {line.render()}")
    return "\n".join(out)


def build_prompt(request: AnalysisRequest) -> str:
    """Build the review prompt for one file."""
    return (
        f"{INSTRUCTIONS}\n"
        f'Review the following diff of the file "{request.path}", taking the title and description '
        f"into account.\n\n"
        f"Title: {request.title}\n"
        f"Description:\n---\n{request.description or 'No description provided.'}\n---\n\n"
        f"Diff to review:\n```diff\n{render_hunks_for_prompt(request)}\n```\n"
    )


def _strip_fence(text: str) -> str:
    text = text.strip()
    match = FENCE_RE.match(text)
    return match.group(1).strip() if match else text


def _finding_from_item(path: str, item: Any) -> Optional[Finding]:
    if not isinstance(item, dict):
        return None
    line = item.get("lineNumber", item.get("line"))
    message = item.get("reviewComment", item.get("message"))
    try:
        line = int(line)
    except (TypeError, ValueError):
        return None
    if not isinstance(message, str) or not message.strip():
        return None
    return Finding(path=path, line=line, message=message.strip(),
                   severity=Severity.parse(item.get("severity")))


def parse_findings(path: str, response_text: str) -> List[Finding]:
    """
    Extract findings for ``path`` from a model response.

    Accepts ``{"reviews": [...]}`` or a bare list, optionally fenced as ```json; falls back
    to "### file:line" markdown sections.

    Raises:
        AnalysisServiceError: If the response has neither shape
    """
    text = _strip_fence(response_text or "")
    if not text:
        raise AnalysisServiceError(path, "empty response from model")

    try:
        data = json.loads(text)
    except json.JSONDecodeError:
        data = None

    if data is not None:
        items = data.get("reviews") if isinstance(data, dict) else data
        if not isinstance(items, list):
            raise AnalysisServiceError(path, "response JSON has no 'reviews' list")
        findings = []
        for item in items:
            finding = _finding_from_item(path, item)
            if finding is None:
                logger.warning(f"Ignoring malformed review item for {path}", context={"item": item})
                continue
            findings.append(finding)
        return findings

    sections = list(MARKDOWN_FINDING_RE.finditer(text))
    if not sections:
        raise AnalysisServiceError(path, "response is neither JSON nor '### file:line' markdown")

    findings = []
    for match in sections:
        mentioned = match.group(1).strip().strip("`")
        if not (path.endswith(mentioned) or mentioned.endswith(path)):
            logger.debug(f"Ignoring markdown finding for another file: {mentioned}")
            continue
        body = match.group(3).strip()
        if body:
            findings.append(Finding(path=path, line=int(match.group(2)), message=body))
    return findings


class ReviewAnalyzer:
    """Analysis service: one prompt and one model call per file."""

    def __init__(self, model: CompletionModel):
        self.model = model

    def analyze(self, request: AnalysisRequest) -> List[Finding]:
        """
        Review one file.

        Raises:
            AnalysisServiceError: If the model call fails or the answer cannot be used
        """
        prompt = build_prompt(request)
        logger.debug(f"Sending {request.path} for review", context={"prompt_chars": len(prompt)})
        try:
            response_text = self.model.generate_response(prompt)
        except DiffReviewerError as e:
            raise AnalysisServiceError(request.path, e.message) from e

        findings = parse_findings(request.path, response_text)
        logger.info(f"Model returned {len(findings)} findings for {request.path}")
        return findings
