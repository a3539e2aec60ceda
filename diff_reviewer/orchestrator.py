"""
Review orchestration: one analysis call per reviewable file, run on a bounded
thread pool, with failures recorded per file.
"""

from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from typing import Dict, List, Protocol

from diff_reviewer.logging_config import get_logger
from diff_reviewer.models import AnalysisRequest, FileAnalysisResult, FileChange, Finding, ReviewContext

logger = get_logger(__name__)

DEFAULT_MAX_WORKERS = 4


class Analyzer(Protocol):
    def analyze(self, request: AnalysisRequest) -> List[Finding]:
        ...


def build_request(change: FileChange, context: ReviewContext) -> AnalysisRequest:
    """Analysis request for one file: all of its hunks, plus the shared title and description."""
    return AnalysisRequest(
        path=change.path,
        hunk_text=change.patch_text(),
        title=context.title,
        description=context.description,
        file_change=change,
    )


class ReviewOrchestrator:
    def __init__(self, analyzer: Analyzer, max_workers: int = DEFAULT_MAX_WORKERS):
        if max_workers < 1:
            raise ValueError("max_workers must be at least 1")
        self.analyzer = analyzer
        self.max_workers = max_workers

    def _analyze_file(self, request: AnalysisRequest) -> FileAnalysisResult:
        try:
            findings = self.analyzer.analyze(request)
        except Exception as e:
            # One bad file must not stop the others
            logger.warning(f"Analysis failed for {request.path}: {e}",
                           context={"path": request.path, "error_type": type(e).__name__})
            return FileAnalysisResult.failed(request.path, str(e))

        # Findings are only kept for the file that was asked about
        findings = [finding for finding in findings if finding.path == request.path]
        return FileAnalysisResult(path=request.path, findings=findings)

    def analyze(self, changes: List[FileChange], context: ReviewContext) -> List[FileAnalysisResult]:
        """
        Analyse every file that has at least one hunk.

        Returns:
            One result per analysed file, sorted by path

        If the caller is interrupted while waiting, pending analyses are cancelled
        and the interruption propagates; no partial results are returned.
        """
        analysis_requests = [build_request(change, context) for change in changes if change.hunks]
        if not analysis_requests:
            logger.info("No files with hunks to analyse")
            return []

        workers = min(self.max_workers, len(analysis_requests))
        logger.info(f"Analysing {len(analysis_requests)} files with {workers} workers")

        results: Dict[str, FileAnalysisResult] = {}
        executor = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="analysis")
        try:
            futures: Dict[Future, str] = {
                executor.submit(self._analyze_file, request): request.path for request in analysis_requests
            }
            for future in as_completed(futures):
                results[futures[future]] = future.result()
        except BaseException:
            logger.warning("Review interrupted; abandoning in-flight analyses")
            executor.shutdown(wait=False, cancel_futures=True)
            raise
        executor.shutdown(wait=True)

        failed = [result for result in results.values() if not result.ok]
        if failed and len(failed) == len(results):
            logger.error("Analysis failed for every file; the run will post no comments",
                         context={"failed_files": [result.path for result in failed]})
        elif failed:
            logger.warning(f"Analysis failed for {len(failed)} of {len(results)} files",
                           context={"failed_files": [result.path for result in failed]})

        return [results[path] for path in sorted(results)]
