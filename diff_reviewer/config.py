"""
Configuration loading for the AI Diff Reviewer.

Settings come from defaults, an optional YAML file, then GitHub Action inputs
(``INPUT_<NAME>`` environment variables), later sources winning.
"""

import os
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

import yaml

from diff_reviewer.comment_mapper import UNMAPPED_POLICIES
from diff_reviewer.custom_exceptions import InvalidConfigurationError, MissingConfigurationError
from diff_reviewer.file_filter import parse_patterns
from diff_reviewer.logging_config import get_logger, with_context
from diff_reviewer.orchestrator import DEFAULT_MAX_WORKERS

logger = get_logger(__name__)

DEFAULT_CONFIG_PATH = "config.yaml"

MAIL_FIELDS = ("host", "port", "secure", "user", "pass", "from", "to")

TRUE_VALUES = ("1", "true", "yes", "on")
FALSE_VALUES = ("0", "false", "no", "off", "")


@dataclass(frozen=True)
class MailSettings:
    host: Optional[str] = None
    port: Optional[int] = None
    secure: Optional[bool] = None
    user: Optional[str] = None
    password: Optional[str] = None
    sender: Optional[str] = None
    recipients: List[str] = field(default_factory=list)

    def missing(self) -> List[str]:
        values = {
            "host": self.host, "port": self.port, "secure": self.secure, "user": self.user,
            "pass": self.password, "from": self.sender, "to": self.recipients,
        }
        return [name for name in MAIL_FIELDS if values[name] in (None, "", [])]

    @property
    def complete(self) -> bool:
        return not self.missing()


@dataclass(frozen=True)
class ReviewerConfig:
    github_token: str
    model: Dict[str, Any] = field(default_factory=dict)
    exclude: List[str] = field(default_factory=list)
    max_workers: int = DEFAULT_MAX_WORKERS
    unmapped_findings: str = "drop"
    mail: MailSettings = field(default_factory=MailSettings)
    github_api_url: str = "https://api.github.com"
    event_name: Optional[str] = None
    event_path: Optional[str] = None


def _input(environ: Mapping[str, str], name: str) -> Optional[str]:
    """Read a GitHub Action input; unset and blank inputs count as absent."""
    value = environ.get(f"INPUT_{name.upper()}")
    if value is None or not value.strip():
        return None
    return value.strip()


def _to_bool(key: str, value: Any) -> Optional[bool]:
    if value is None or isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in TRUE_VALUES:
        return True
    if text in FALSE_VALUES:
        return False
    raise InvalidConfigurationError(key, f"expected a boolean, got {value!r}")


def _to_int(key: str, value: Any, minimum: Optional[int] = None) -> Optional[int]:
    if value is None:
        return None
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise InvalidConfigurationError(key, f"expected an integer, got {value!r}")
    if minimum is not None and number < minimum:
        raise InvalidConfigurationError(key, f"must be at least {minimum}")
    return number


def _recipients(value: Any) -> List[str]:
    if not value:
        return []
    items = value.split(",") if isinstance(value, str) else list(value)
    return [str(item).strip() for item in items if str(item).strip()]


@with_context
def load_yaml_config(config_path: Optional[str]) -> Dict[str, Any]:
    """
    Load the YAML configuration file.

    An explicitly given path must exist; the default ``config.yaml`` is optional.

    Raises:
        MissingConfigurationError: If an explicitly given config file does not exist
        InvalidConfigurationError: If the file is not valid YAML or not a mapping
    """
    path = config_path or DEFAULT_CONFIG_PATH
    if not os.path.exists(path):
        if config_path:
            logger.error(f"Config file not found: {path}", context={"config_path": path})
            raise MissingConfigurationError("config_file")
        logger.debug("No config file found, using defaults and action inputs")
        return {}

    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        logger.error(f"Failed to parse YAML in config file: {e}", context={"config_path": path})
        raise InvalidConfigurationError("config_file", f"Invalid YAML format: {e}")

    if not isinstance(data, dict):
        raise InvalidConfigurationError("config_file", "top level must be a mapping")
    return data


def load_config(config_path: Optional[str] = None,
                environ: Optional[Mapping[str, str]] = None) -> ReviewerConfig:
    """
    Build the reviewer configuration.

    Args:
        config_path: Path to a YAML config file (default: optional ``config.yaml``)
        environ: Environment to read inputs from (default: ``os.environ``)

    Returns:
        The resolved configuration

    Raises:
        MissingConfigurationError: If the GitHub token is missing
        InvalidConfigurationError: If a value is malformed
    """
    environ = os.environ if environ is None else environ
    data = load_yaml_config(config_path)

    github_token = _input(environ, "github_token") or environ.get("GITHUB_TOKEN")
    if not github_token:
        logger.error("GITHUB_TOKEN environment variable is required")
        raise MissingConfigurationError("GITHUB_TOKEN")

    model = dict(data.get("model") or {})
    overrides = {
        "provider": _input(environ, "ai_provider"),
        "model": _input(environ, "ai_model"),
        "endpoint": _input(environ, "ai_endpoint"),
        "api_key": _input(environ, "api_key"),
        "max_tokens": _input(environ, "max_tokens"),
    }
    model.update({key: value for key, value in overrides.items() if value is not None})
    model.setdefault("provider", "openai")
    if "max_tokens" in model:
        model["max_tokens"] = _to_int("model.max_tokens", model["max_tokens"], minimum=1)

    review = data.get("review") or {}
    exclude_value = _input(environ, "exclude")
    exclude = parse_patterns(exclude_value if exclude_value is not None else review.get("exclude"))

    max_workers = _to_int("review.max_workers",
                          _input(environ, "max_workers") or review.get("max_workers", DEFAULT_MAX_WORKERS),
                          minimum=1)

    unmapped = (_input(environ, "unmapped_findings") or review.get("unmapped_findings") or "drop").lower()
    if unmapped not in UNMAPPED_POLICIES:
        raise InvalidConfigurationError("review.unmapped_findings",
                                        f"must be one of {', '.join(UNMAPPED_POLICIES)}")

    mail_data = dict(((data.get("notification") or {}).get("email")) or {})
    for name in MAIL_FIELDS:
        value = _input(environ, f"mail_{name}")
        if value is not None:
            mail_data[name] = value
    mail = MailSettings(
        host=mail_data.get("host"),
        port=_to_int("notification.email.port", mail_data.get("port"), minimum=1),
        secure=_to_bool("notification.email.secure", mail_data.get("secure")),
        user=mail_data.get("user"),
        password=mail_data.get("pass"),
        sender=mail_data.get("from"),
        recipients=_recipients(mail_data.get("to")),
    )

    config = ReviewerConfig(
        github_token=github_token,
        model=model,
        exclude=exclude,
        max_workers=max_workers,
        unmapped_findings=unmapped,
        mail=mail,
        github_api_url=environ.get("GITHUB_API_URL", "https://api.github.com"),
        event_name=environ.get("GITHUB_EVENT_NAME"),
        event_path=environ.get("GITHUB_EVENT_PATH"),
    )

    logger.debug("Successfully loaded configuration",
                 context={"provider": model.get("provider"), "exclude": exclude,
                          "max_workers": max_workers, "unmapped_findings": unmapped,
                          "mail_configured": mail.complete})
    return config
