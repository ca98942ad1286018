"""Event payload helpers for Forgejo webhook/action events.

Forgejo's ``issue_comment`` payloads do not always flag pull requests the way
GitHub's do, so several fields are checked.
"""

import json
from pathlib import Path
from typing import Any, Literal
from urllib.parse import urlparse

from forgebridge.core.logging import get_logger
from forgebridge.shared.exceptions import ConfigError

logger = get_logger(__name__)

EntityType = Literal["pr", "issue"]

PR_EVENTS = {"pull_request", "pull_request_review", "pull_request_review_comment"}


def is_forgejo_issue_pr(event_name: str, payload: dict[str, Any]) -> bool:
    """Check whether an ``issue_comment`` event belongs to a pull request.

    Args:
        event_name: Event name (e.g. "issue_comment")
        payload: Event payload

    Returns:
        True if the commented issue is a pull request
    """
    if event_name != "issue_comment":
        return False

    issue = payload.get("issue")
    if not issue:
        return False

    logger.debug(
        "forgejo.context.issue_fields",
        pull_request=bool(issue.get("pull_request")),
        pr=bool(issue.get("pr")),
        html_url=issue.get("html_url"),
    )

    if issue.get("pull_request") or issue.get("pr"):
        return True

    # Forgejo PR pages live under /{owner}/{repo}/pulls/{number}
    html_url = issue.get("html_url") or ""
    if "/pulls/" in html_url:
        return True

    return bool(issue.get("is_pull") or issue.get("is_pr") or issue.get("pull_request_url"))


def get_forgejo_entity_type(event_name: str, payload: dict[str, Any]) -> EntityType:
    """Classify the event's entity as pull request or issue."""
    if event_name in PR_EVENTS:
        return "pr"
    if event_name == "issue_comment":
        return "pr" if is_forgejo_issue_pr(event_name, payload) else "issue"
    return "issue"


def extract_external_url(payload: dict[str, Any]) -> str | None:
    """Extract the forge's browser origin from an event payload.

    Looks at the issue, pull request, then comment ``html_url``.

    Returns:
        ``scheme://host`` or None if no usable URL is present
    """
    for key in ("issue", "pull_request", "comment"):
        html_url = (payload.get(key) or {}).get("html_url")
        if not html_url:
            continue
        parsed = urlparse(html_url)
        if parsed.scheme and parsed.netloc:
            return f"{parsed.scheme}://{parsed.netloc}"
        logger.warning("forgejo.context.bad_html_url", html_url=html_url)
        return None
    return None


def load_event_payload(path: str) -> dict[str, Any]:
    """Read the event payload the workflow runner wrote to disk.

    Raises:
        ConfigError: If the file is missing or is not a JSON object
    """
    try:
        payload = json.loads(Path(path).read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        raise ConfigError(f"Cannot read event payload {path}: {e}") from e
    if not isinstance(payload, dict):
        raise ConfigError(f"Cannot read event payload {path}: not a JSON object")
    return payload
