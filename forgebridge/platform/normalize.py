"""Mapping of forge-specific enumerations onto canonical values.

Both adapters route every state and change-type value through these
functions, so the canonical model only ever holds the four change types and
four review states it declares.
"""

from forgebridge.shared.models import ChangeType, PullRequestState, ReviewState

_CHANGE_TYPES: dict[str, ChangeType] = {
    "added": "added",
    "removed": "removed",
    "deleted": "removed",
    "renamed": "renamed",
    "modified": "modified",
}

_REVIEW_STATES: dict[str, ReviewState] = {
    "APPROVED": "APPROVED",
    "PENDING": "PENDING",
    "COMMENT": "COMMENTED",
    "COMMENTED": "COMMENTED",
    "REQUEST_CHANGES": "CHANGES_REQUESTED",
    "CHANGES_REQUESTED": "CHANGES_REQUESTED",
}


def map_change_type(status: str | None) -> ChangeType:
    """Map a forge file status (any case) to a canonical change type.

    ``deleted`` becomes ``removed``; anything unknown (copied, changed, ...)
    becomes ``modified``.
    """
    if not status:
        return "modified"
    return _CHANGE_TYPES.get(status.strip().lower(), "modified")


def map_review_state(state: str | None) -> ReviewState:
    """Map a forge review state (any case) to a canonical review state.

    Unknown values (e.g. Forgejo's REQUEST_REVIEW, GitHub's DISMISSED)
    become ``COMMENTED``.
    """
    if not state:
        return "COMMENTED"
    return _REVIEW_STATES.get(state.strip().upper(), "COMMENTED")


def resolve_pull_request_state(state: str | None, merged: bool | None) -> PullRequestState:
    """Compute the canonical pull request state.

    Args:
        state: Forge state value (open/closed, or GitHub GraphQL OPEN/CLOSED/MERGED)
        merged: Forge merged flag

    Returns:
        "merged" if the forge signals a merge, else "open" or "closed"
    """
    normalized = (state or "").strip().lower()
    if merged or normalized == "merged":
        return "merged"
    if normalized == "open":
        return "open"
    return "closed"
