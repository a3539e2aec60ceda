"""
GitHub API operations for the AI Diff Reviewer.
Fetches diffs for pull requests and commit ranges, and posts review comments.
"""

from typing import Any, Dict, List, Optional

import requests

from diff_reviewer.custom_exceptions import GitHubAPIError
from diff_reviewer.logging_config import get_logger
from diff_reviewer.models import ReviewComment, ReviewContext

logger = get_logger(__name__)

GITHUB_API_URL = "https://api.github.com"
DIFF_MEDIA_TYPE = "application/vnd.github.v3.diff"
JSON_MEDIA_TYPE = "application/vnd.github.v3+json"


class GitHubClient:
    """Thin wrapper over the GitHub REST endpoints the reviewer needs."""

    def __init__(self, token: str, api_url: str = GITHUB_API_URL, timeout: float = 30,
                 session: Optional[requests.Session] = None):
        self.api_url = api_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({
            "Authorization": f"Bearer {token}",
            "X-GitHub-Api-Version": "2022-11-28",
            "User-Agent": "ai-diff-reviewer",
        })

    def _request(self, method: str, endpoint: str, accept: str = JSON_MEDIA_TYPE,
                 **kwargs: Any) -> requests.Response:
        url = f"{self.api_url}{endpoint}"
        try:
            response = self.session.request(method, url, headers={"Accept": accept},
                                            timeout=self.timeout, **kwargs)
            response.raise_for_status()
            return response
        except requests.HTTPError as e:
            status = e.response.status_code if e.response is not None else None
            text = e.response.text[:500] if e.response is not None else None
            logger.error(f"GitHub API request failed: {method} {endpoint}",
                         context={"status_code": status, "response": text})
            raise GitHubAPIError(endpoint, status_code=status, response_text=text) from e
        except requests.RequestException as e:
            logger.error(f"GitHub API request failed: {method} {endpoint}: {e}")
            raise GitHubAPIError(endpoint, response_text=str(e)) from e

    def get_pull_request_diff(self, owner: str, repo: str, pull_number: int) -> str:
        """
        Fetch the full diff of a pull request.

        Raises:
            GitHubAPIError: If the request fails
        """
        logger.info(f"Fetching diff for PR #{pull_number} in {owner}/{repo}")
        response = self._request("GET", f"/repos/{owner}/{repo}/pulls/{pull_number}", accept=DIFF_MEDIA_TYPE)
        return response.text

    def compare_commits_diff(self, owner: str, repo: str, base: str, head: str) -> str:
        """
        Fetch the diff between two commits.

        Raises:
            GitHubAPIError: If the request fails
        """
        logger.info(f"Fetching diff {base[:7]}...{head[:7]} in {owner}/{repo}")
        response = self._request("GET", f"/repos/{owner}/{repo}/compare/{base}...{head}", accept=DIFF_MEDIA_TYPE)
        return response.text

    def get_diff(self, context: ReviewContext) -> str:
        """Fetch the diff a review context targets: its commit range if set, else the full PR."""
        if context.commit_range is not None:
            base, head = context.commit_range
            diff = self.compare_commits_diff(context.owner, context.repo, base, head)
        elif context.pull_number is not None:
            diff = self.get_pull_request_diff(context.owner, context.repo, context.pull_number)
        else:
            raise ValueError("review context has neither a commit range nor a pull request number")

        logger.info(f"Retrieved diff of size {len(diff)} bytes",
                    context={"files": diff.count("diff --git ")})
        return diff

    def create_review(self, context: ReviewContext, comments: List[ReviewComment],
                      body: str = "") -> Dict[str, Any]:
        """
        Post one pull request review carrying all inline comments.

        Args:
            context: Review context; must reference a pull request
            comments: Inline comments anchored to added lines
            body: Optional review summary text

        Returns:
            The created review as returned by GitHub

        Raises:
            GitHubAPIError: If the request fails
        """
        if context.pull_number is None:
            raise ValueError("cannot post a review without a pull request number")

        payload: Dict[str, Any] = {
            "event": "COMMENT",
            "comments": [comment.to_github() for comment in comments],
        }
        if body:
            payload["body"] = body
        if context.commit_range is not None:
            # Anchor on the pushed head so lines refer to the reviewed diff
            payload["commit_id"] = context.commit_range[1]

        logger.info(f"Posting review with {len(comments)} comments on PR #{context.pull_number} "
                    f"in {context.full_name}")
        response = self._request(
            "POST",
            f"/repos/{context.owner}/{context.repo}/pulls/{context.pull_number}/reviews",
            json=payload,
        )
        return response.json()
