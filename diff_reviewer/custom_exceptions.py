"""
Custom exceptions for the AI Diff Reviewer.
Provides centralized error definitions with error codes for easier debugging.
"""

from typing import Optional


class DiffReviewerError(Exception):
    """Base exception class for all AI Diff Reviewer errors."""

    def __init__(self, message: str, error_code: int):
        """
        Initialize the base exception.

        Args:
            message: Descriptive error message
            error_code: Numeric error code identifying the error type
        """
        self.error_code = error_code
        self.message = message
        super().__init__(f"[Error {error_code}] {message}")


# Configuration Errors (1000-1999)
class FatalConfigError(DiffReviewerError):
    """Base class for errors that make a run impossible to start."""

    def __init__(self, message: str, error_code: int = 1000):
        super().__init__(message, error_code)


class MissingConfigurationError(FatalConfigError):
    """Error raised when a required configuration is missing."""

    def __init__(self, config_key: str, error_code: int = 1001):
        self.config_key = config_key
        super().__init__(f"Missing required configuration: {config_key}", error_code)


class InvalidConfigurationError(FatalConfigError):
    """Error raised when a configuration value is invalid."""

    def __init__(self, config_key: str, reason: str, error_code: int = 1002):
        self.config_key = config_key
        super().__init__(f"Invalid configuration value for {config_key}: {reason}", error_code)


class InvalidEventError(FatalConfigError):
    """Error raised when the trigger event payload is unreadable or lacks identifiers."""

    def __init__(self, reason: str, error_code: int = 1003):
        super().__init__(f"Invalid event payload: {reason}", error_code)


# API Errors (2000-2999)
class APIError(DiffReviewerError):
    """Base class for API related errors."""

    def __init__(self, message: str, error_code: int = 2000,
                 status_code: Optional[int] = None, response_text: Optional[str] = None):
        self.status_code = status_code
        self.response_text = response_text
        details = f" (Status: {status_code})" if status_code else ""
        super().__init__(f"{message}{details}", error_code)


class GitHubAPIError(APIError):
    """Error raised when a GitHub API call fails."""

    def __init__(self, endpoint: str, status_code: Optional[int] = None,
                 response_text: Optional[str] = None, error_code: int = 2001):
        self.endpoint = endpoint
        super().__init__(
            f"GitHub API error calling {endpoint}",
            error_code,
            status_code,
            response_text
        )


class AIProviderAPIError(APIError):
    """Error raised when an AI provider API call fails."""

    def __init__(self, provider: str, status_code: Optional[int] = None,
                 response_text: Optional[str] = None, error_code: int = 2002):
        self.provider = provider
        super().__init__(
            f"{provider} API error",
            error_code,
            status_code,
            response_text
        )


# Authentication Errors (3000-3999)
class AuthenticationError(FatalConfigError):
    """Base class for authentication related errors."""

    def __init__(self, message: str, error_code: int = 3000):
        super().__init__(message, error_code)


class MissingAPIKeyError(AuthenticationError):
    """Error raised when an API key is missing."""

    def __init__(self, provider: str, error_code: int = 3001):
        super().__init__(f"API key for {provider} not found in config or environment variables", error_code)


# Content Processing Errors (4000-4999)
class ContentProcessingError(DiffReviewerError):
    """Base class for content processing related errors."""

    def __init__(self, message: str, error_code: int = 4000):
        super().__init__(message, error_code)


class MalformedDiffError(ContentProcessingError):
    """Error raised when a hunk header in a diff cannot be parsed."""

    def __init__(self, path: Optional[str], reason: str, error_code: int = 4001):
        self.path = path
        where = f" in {path}" if path else ""
        super().__init__(f"Failed to parse diff{where}: {reason}", error_code)


class AnalysisServiceError(ContentProcessingError):
    """Error raised when analysing one file fails (provider failure or unusable response)."""

    def __init__(self, path: str, reason: str, error_code: int = 4002):
        self.path = path
        self.reason = reason
        super().__init__(f"Failed to analyse {path}: {reason}", error_code)


# Event and Resource Errors (5000-5999)
class UnsupportedEventError(DiffReviewerError):
    """
    Raised when the trigger is not one the reviewer handles.

    Not a failure: the run ends successfully without output.
    """

    def __init__(self, reason: str, error_code: int = 5001):
        self.reason = reason
        super().__init__(f"Unsupported event: {reason}", error_code)


class UnsupportedProviderError(FatalConfigError):
    """Error raised when an unsupported provider is requested."""

    def __init__(self, provider: str, error_code: int = 5002):
        super().__init__(f"Unsupported provider: {provider}", error_code)


# Notification Errors (6000-6999)
class NotificationError(DiffReviewerError):
    """Error raised when a best-effort notification cannot be delivered."""

    def __init__(self, reason: str, error_code: int = 6001):
        super().__init__(f"Failed to send notification: {reason}", error_code)
