"""
Normalizes GitHub Actions trigger events into a ReviewContext.

Only ``pull_request`` (``opened``/``synchronize``) and ``push`` are reviewed; the
rest of the pipeline never looks at the event kind again.
"""

import json
from typing import Any, Dict, Optional, Tuple

from diff_reviewer.custom_exceptions import InvalidEventError, UnsupportedEventError
from diff_reviewer.logging_config import get_logger, with_context
from diff_reviewer.models import ReviewContext

logger = get_logger(__name__)

SUPPORTED_PR_ACTIONS = ("opened", "synchronize")
NULL_SHA = "0" * 40


@with_context
def load_event(event_path: Optional[str]) -> Dict[str, Any]:
    """
    Read the event payload written by the runner.

    Raises:
        InvalidEventError: If the file is missing, unreadable or not a JSON object
    """
    if not event_path:
        raise InvalidEventError("no event payload path given (GITHUB_EVENT_PATH)")
    try:
        with open(event_path, "r", encoding="utf-8") as f:
            payload = json.load(f)
    except OSError as e:
        raise InvalidEventError(f"cannot read {event_path}: {e}")
    except json.JSONDecodeError as e:
        raise InvalidEventError(f"{event_path} is not valid JSON: {e}")

    if not isinstance(payload, dict):
        raise InvalidEventError(f"{event_path} does not contain a JSON object")
    return payload


def _require(mapping: Any, *keys: str) -> Any:
    value = mapping
    for key in keys:
        if not isinstance(value, dict) or value.get(key) in (None, ""):
            raise InvalidEventError(f"missing '{'.'.join(keys)}'")
        value = value[key]
    return value


def _repository(payload: Dict[str, Any]) -> Tuple[str, str]:
    repository = _require(payload, "repository")
    owner_info = _require(repository, "owner")
    owner = owner_info.get("login") or owner_info.get("name")
    if not owner:
        raise InvalidEventError("missing 'repository.owner.login'")
    return owner, _require(repository, "name")


def _from_pull_request(payload: Dict[str, Any]) -> ReviewContext:
    action = payload.get("action")
    if action not in SUPPORTED_PR_ACTIONS:
        raise UnsupportedEventError(f"pull_request action '{action}'")

    owner, repo = _repository(payload)
    pull_request = _require(payload, "pull_request")
    number = pull_request.get("number") or payload.get("number")
    if not number:
        raise InvalidEventError("missing 'pull_request.number'")

    commit_range = None
    if action == "synchronize":
        # Only what this push added to the PR, not the whole PR again
        commit_range = (_require(payload, "before"), _require(payload, "after"))

    return ReviewContext(
        owner=owner,
        repo=repo,
        pull_number=int(number),
        commit_range=commit_range,
        title=pull_request.get("title") or "",
        description=pull_request.get("body") or "",
    )


def _from_push(payload: Dict[str, Any]) -> ReviewContext:
    repository = _require(payload, "repository")
    owner_info = _require(repository, "owner")
    owner = owner_info.get("name") or owner_info.get("login")
    if not owner:
        raise InvalidEventError("missing 'repository.owner.name'")
    repo = _require(repository, "name")

    before = _require(payload, "before")
    after = _require(payload, "after")
    if before == NULL_SHA:
        raise UnsupportedEventError("push creating a branch has no base commit to compare")
    if after == NULL_SHA:
        raise UnsupportedEventError("push deleting a branch has nothing to review")

    head_commit = payload.get("head_commit") or {}
    return ReviewContext(
        owner=owner,
        repo=repo,
        commit_range=(before, after),
        title=f"Push analysis: {after}",
        description=head_commit.get("message") or "",
    )


@with_context
def normalize_event(event_name: Optional[str], payload: Dict[str, Any]) -> ReviewContext:
    """
    Build the ReviewContext for a trigger event.

    Args:
        event_name: The event kind (GITHUB_EVENT_NAME)
        payload: The decoded event payload

    Returns:
        The normalized ReviewContext

    Raises:
        UnsupportedEventError: For event kinds or PR actions that are not reviewed
        InvalidEventError: If a supported event lacks the identifiers needed for the review
    """
    if event_name == "pull_request":
        context = _from_pull_request(payload)
    elif event_name == "push":
        context = _from_push(payload)
    else:
        raise UnsupportedEventError(f"event type '{event_name}'")

    logger.info(f"Normalized {event_name} event for {context.full_name}",
                context={"pull_number": context.pull_number,
                         "commit_range": context.commit_range})
    return context
