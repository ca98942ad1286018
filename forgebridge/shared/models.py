"""Canonical, forge-independent models for issues and pull requests.

Every model is a frozen snapshot taken at fetch time. Adapters build them from
raw forge payloads; nothing downstream ever sees a forge-specific field name.
"""

from datetime import UTC, datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

IssueState = Literal["open", "closed"]
PullRequestState = Literal["open", "closed", "merged"]
ChangeType = Literal["added", "removed", "modified", "renamed"]
ReviewState = Literal["PENDING", "COMMENTED", "APPROVED", "CHANGES_REQUESTED"]


def _ensure_timezone(v: datetime | str | None) -> datetime | None:
    """Parse ISO timestamps and make them timezone-aware (UTC if naive)."""
    if v is None or v == "":
        return None
    if isinstance(v, str):
        v = datetime.fromisoformat(v.replace("Z", "+00:00"))
    if v.tzinfo is None:
        return v.replace(tzinfo=UTC)
    return v


class CanonicalModel(BaseModel):
    """Base configuration shared by all canonical models."""

    model_config = ConfigDict(frozen=True)


class User(CanonicalModel):
    """Forge account.

    Attributes:
        login: Account login
        name: Display name, if the forge exposes one
        email: Public email, if the forge exposes one
        id: Forge-numeric id; 0 when the transport does not expose it
        user_type: Account type reported by GitHub REST (User, Bot, Organization)
    """

    login: str = Field(..., description="Account login")
    name: str | None = Field(None, description="Display name")
    email: str | None = Field(None, description="Public email")
    id: int = Field(0, description="Best-effort numeric id")
    user_type: str | None = Field(None, description="Account type, GitHub only")


class Comment(CanonicalModel):
    """Conversation comment on an issue or pull request."""

    id: int = Field(..., description="Forge-native id used for updates")
    node_id: str | None = Field(None, description="Opaque GraphQL id, never used for REST")
    body: str = ""
    author: User
    created_at: datetime
    updated_at: datetime | None = None

    @field_validator("created_at", "updated_at", mode="before")
    @classmethod
    def ensure_timezone(cls, v: datetime | str | None) -> datetime | None:
        """Ensure timestamps are timezone-aware."""
        return _ensure_timezone(v)


class Issue(CanonicalModel):
    """Issue with its conversation."""

    number: int
    title: str
    body: str = ""
    state: IssueState
    author: User
    created_at: datetime
    comments: list[Comment] = Field(default_factory=list)

    @field_validator("created_at", mode="before")
    @classmethod
    def ensure_timezone(cls, v: datetime | str) -> datetime | None:
        """Ensure timestamp is timezone-aware."""
        return _ensure_timezone(v)


class CommitAuthor(CanonicalModel):
    """Git author of a commit (not necessarily a forge account)."""

    name: str = ""
    email: str = ""


class Commit(CanonicalModel):
    """Commit on a pull request branch."""

    oid: str
    message: str
    author: CommitAuthor


class PullRequestFile(CanonicalModel):
    """File changed by a pull request."""

    path: str
    additions: int = 0
    deletions: int = 0
    change_type: ChangeType


class ReviewComment(CanonicalModel):
    """Inline comment attached to a review."""

    id: int
    node_id: str | None = None
    body: str = ""
    path: str = ""
    line: int = Field(0, description="0 when the forge reports no line")
    author: User
    created_at: datetime

    @field_validator("created_at", mode="before")
    @classmethod
    def ensure_timezone(cls, v: datetime | str) -> datetime | None:
        """Ensure timestamp is timezone-aware."""
        return _ensure_timezone(v)


class Review(CanonicalModel):
    """Pull request review and its inline comments."""

    id: int
    node_id: str | None = None
    author: User
    body: str = ""
    state: ReviewState
    submitted_at: datetime | None = Field(None, description="None for pending reviews")
    comments: list[ReviewComment] = Field(default_factory=list)

    @field_validator("submitted_at", mode="before")
    @classmethod
    def ensure_timezone(cls, v: datetime | str | None) -> datetime | None:
        """Ensure timestamp is timezone-aware."""
        return _ensure_timezone(v)


class PullRequest(CanonicalModel):
    """Pull request with commits, files, conversation and reviews.

    ``state`` is always resolved from the forge's open/closed value together
    with its merged signal, so ``merged`` means the same on every forge.
    """

    number: int
    title: str
    body: str = ""
    state: PullRequestState
    author: User
    base_ref_name: str
    head_ref_name: str
    head_ref_oid: str
    created_at: datetime
    additions: int = 0
    deletions: int = 0
    commits: list[Commit] = Field(default_factory=list)
    files: list[PullRequestFile] = Field(default_factory=list)
    comments: list[Comment] = Field(default_factory=list)
    reviews: list[Review] = Field(default_factory=list)

    @field_validator("created_at", mode="before")
    @classmethod
    def ensure_timezone(cls, v: datetime | str) -> datetime | None:
        """Ensure timestamp is timezone-aware."""
        return _ensure_timezone(v)


class Repository(CanonicalModel):
    """Repository identity and default branch."""

    owner: str
    name: str
    default_branch: str


class Branch(CanonicalModel):
    """Branch head."""

    name: str
    sha: str
