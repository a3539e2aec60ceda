#!/usr/bin/env python3
"""
Main script for the AI Diff Reviewer.
Normalizes the triggering event, fetches and parses the diff, has each file reviewed
by an AI model and posts the findings as inline review comments.
"""

import argparse
import logging
import os
import signal
import sys
from typing import Any, Dict, List, Optional

from dotenv import load_dotenv

from diff_reviewer.analysis import ReviewAnalyzer
from diff_reviewer.comment_mapper import CommentMapper, sort_comments
from diff_reviewer.config import ReviewerConfig, load_config
from diff_reviewer.custom_exceptions import DiffReviewerError, GitHubAPIError, UnsupportedEventError
from diff_reviewer.diff_parser import DiffParser
from diff_reviewer.event_normalizer import load_event, normalize_event
from diff_reviewer.file_filter import FileFilter
from diff_reviewer.github_client import GitHubClient
from diff_reviewer.logging_config import get_logger, setup_logging
from diff_reviewer.model_adapters import ModelAdapter
from diff_reviewer.models import FileChange, ReviewContext, ReviewReport, RunStatus
from diff_reviewer.notifier import EmailNotifier
from diff_reviewer.orchestrator import DEFAULT_MAX_WORKERS, ReviewOrchestrator

logger = get_logger("review")


class ReviewPipeline:
    """
    The review stages for one normalized context:
    diff fetch, parse, filter, analyse, map, deliver.
    """

    def __init__(self, github: GitHubClient, analyzer: ReviewAnalyzer,
                 file_filter: Optional[FileFilter] = None,
                 mapper: Optional[CommentMapper] = None,
                 max_workers: int = DEFAULT_MAX_WORKERS,
                 notifier: Optional[EmailNotifier] = None):
        self.github = github
        self.file_filter = file_filter or FileFilter()
        self.mapper = mapper or CommentMapper()
        self.orchestrator = ReviewOrchestrator(analyzer, max_workers=max_workers)
        self.notifier = notifier

    def run(self, context: ReviewContext) -> ReviewReport:
        """
        Review the change a context points at.

        Raises:
            GitHubAPIError: If the diff cannot be fetched
        """
        report = ReviewReport(status=RunStatus.COMPLETE, context=context)

        diff = self.github.get_diff(context)
        if not diff.strip():
            logger.info("No diff found; nothing to review")
            report.status = RunStatus.NO_CHANGES
            return report

        changes, errors = DiffParser().parse_lenient(diff)
        for error in errors:
            report.skipped_files[error.path or "<unknown>"] = error.message

        retained = self.file_filter.filter_files(changes)
        retained_paths = {change.path for change in retained}
        report.excluded_files = [change.path for change in changes if change.path not in retained_paths]
        self._log_unreviewable(retained)

        results = self.orchestrator.analyze(retained, context)
        for result in results:
            if result.ok:
                report.reviewed_files.append(result.path)
            else:
                report.skipped_files[result.path] = result.error

        mapping = self.mapper.map_all(retained, results)
        report.comments = sort_comments(mapping.comments)
        report.dropped_count = len(mapping.dropped)
        report.demoted = mapping.demoted

        if report.skipped_files:
            report.status = RunStatus.DEGRADED
            for path, reason in sorted(report.skipped_files.items()):
                logger.warning(f"Skipped {path}: {reason}")

        self._deliver(report)
        return report

    @staticmethod
    def _log_unreviewable(changes: List[FileChange]) -> None:
        for change in changes:
            if change.is_binary:
                logger.info(f"Skipping binary file {change.path}")
            elif not change.hunks:
                logger.info(f"No hunks to review in {change.path}")
            elif not change.added_lines():
                logger.info(f"{change.path} only removes lines; inline comments are not possible")

    def _deliver(self, report: ReviewReport) -> None:
        context = report.context
        if context.has_pull_request:
            if report.comments or report.demoted:
                body = report.render_summary() if report.demoted else ""
                try:
                    self.github.create_review(context, report.comments, body=body)
                    report.posted = True
                except GitHubAPIError as e:
                    logger.error(f"Failed to post review comments: {e.message}",
                                 context={"error_code": e.error_code})
                    report.status = RunStatus.DEGRADED
                    report.reason = e.message
            else:
                logger.info("No comments to post")
        else:
            # No pull request to comment on; the summary is the result
            logger.info(f"Review result for {context.title}:\n{report.render_summary()}",
                        context={"comments": len(report.comments)})

        if self.notifier is not None:
            self.notifier.notify(report)


def run_review(config: ReviewerConfig, event_name: Optional[str], payload: Dict[str, Any],
               github: Optional[GitHubClient] = None,
               model: Optional[Any] = None,
               notifier: Optional[EmailNotifier] = None) -> ReviewReport:
    """
    Review the change behind one trigger event.

    Args:
        config: Resolved reviewer configuration
        event_name: The event kind (``pull_request`` or ``push``)
        payload: The decoded event payload
        github: GitHub client (built from the config when omitted)
        model: Completion model (a ModelAdapter built from the config when omitted)
        notifier: Report notifier (an EmailNotifier built from the config when omitted)

    Returns:
        The run report

    Raises:
        DiffReviewerError: On fatal errors (invalid event, configuration, diff fetch)
    """
    try:
        context = normalize_event(event_name, payload)
    except UnsupportedEventError as e:
        logger.info(f"{e.reason}; nothing to do")
        return ReviewReport(status=RunStatus.UNSUPPORTED, reason=e.reason)

    pipeline = ReviewPipeline(
        github=github or GitHubClient(config.github_token, api_url=config.github_api_url),
        analyzer=ReviewAnalyzer(model or ModelAdapter(config.model)),
        file_filter=FileFilter(config.exclude),
        mapper=CommentMapper(config.unmapped_findings),
        max_workers=config.max_workers,
        notifier=notifier or EmailNotifier(config.mail),
    )
    report = pipeline.run(context)

    logger.info(f"Review finished: {report.status.value}",
                context={"reviewed": len(report.reviewed_files), "skipped": len(report.skipped_files),
                         "comments": len(report.comments), "dropped": report.dropped_count})
    return report


def review_pr(config_path: Optional[str] = None, event_name: Optional[str] = None,
              event_path: Optional[str] = None) -> ReviewReport:
    """Load configuration and the event payload from the environment, then run the review."""
    config = load_config(config_path)
    payload = load_event(event_path or config.event_path)
    return run_review(config, event_name or config.event_name, payload)


def _raise_interrupt(signum, frame):
    raise KeyboardInterrupt(f"received signal {signum}")


def _exit_now(code: int) -> None:
    """
    Exit without joining worker threads.

    Analysis threads may still be blocked on provider calls; a normal interpreter
    exit would wait for each of them to return.
    """
    sys.stdout.flush()
    sys.stderr.flush()
    logging.shutdown()
    os._exit(code)


def main(argv: Optional[List[str]] = None) -> int:
    """Command-line entry point."""
    parser = argparse.ArgumentParser(description="AI Diff Reviewer")
    parser.add_argument("-c", "--config", help="Path to config file")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable verbose logging")
    parser.add_argument("--event-name", help="Event kind (defaults to GITHUB_EVENT_NAME)")
    parser.add_argument("--event-path", help="Event payload file (defaults to GITHUB_EVENT_PATH)")
    args = parser.parse_args(argv)

    load_dotenv()
    setup_logging(log_level="DEBUG" if args.verbose else None)
    # CI timeouts arrive as SIGTERM; treat them like Ctrl-C so in-flight work is abandoned
    signal.signal(signal.SIGTERM, _raise_interrupt)

    logger.info("=========================================================")
    logger.info("Starting AI Diff Review")
    logger.info("=========================================================")

    try:
        report = review_pr(config_path=args.config, event_name=args.event_name, event_path=args.event_path)
    except DiffReviewerError as e:
        logger.error(f"AI Diff Review failed: {e.message}", context={"error_code": e.error_code})
        print(f"::error::{e.message}")
        return 1
    except KeyboardInterrupt:
        logger.error("AI Diff Review cancelled; no comments were posted")
        print("::error::Review cancelled")
        _exit_now(1)
        return 1
    except Exception as e:
        logger.error(f"AI Diff Review failed unexpectedly: {e}", exc_info=True)
        print(f"::error::{e}")
        return 1

    logger.info("=========================================================")
    logger.info(f"AI Diff Review completed ({report.status.value})")
    logger.info("=========================================================")
    return 0


if __name__ == "__main__":
    sys.exit(main())
