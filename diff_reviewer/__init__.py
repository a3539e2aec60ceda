"""AI Diff Reviewer: reviews GitHub pull request and push diffs with an AI model."""

__version__ = "0.1.0"
