"""Platform client capability interface.

A forge is supported by providing an object with these coroutines; the data
fetcher depends only on this Protocol, never on a concrete client.
"""

from typing import Any, Protocol, runtime_checkable

from pydantic import BaseModel, ConfigDict

from forgebridge.platform.detector import Platform
from forgebridge.shared.models import Branch, Comment, Issue, PullRequest, Repository, User


class CreateCommentParams(BaseModel):
    """Parameters for posting a comment on an issue or pull request."""

    model_config = ConfigDict(frozen=True)

    owner: str
    repo: str
    issue_number: int
    body: str


class UpdateCommentParams(BaseModel):
    """Parameters for editing an existing conversation comment."""

    model_config = ConfigDict(frozen=True)

    owner: str
    repo: str
    comment_id: int
    body: str


class CreateBranchParams(BaseModel):
    """Parameters for creating a branch at a commit."""

    model_config = ConfigDict(frozen=True)

    owner: str
    repo: str
    branch: str
    sha: str


@runtime_checkable
class PlatformClient(Protocol):
    """Capabilities every forge client offers.

    Every operation either returns a canonical model or raises
    PlatformAPIError; none of them retries.
    """

    platform: Platform

    async def get_issue(self, owner: str, repo: str, number: int) -> Issue:
        """Fetch an issue with its comments."""
        ...

    async def get_pull_request(self, owner: str, repo: str, number: int) -> PullRequest:
        """Fetch a pull request with commits, files, comments and reviews."""
        ...

    async def create_issue_comment(self, params: CreateCommentParams) -> Comment:
        """Post a comment and return it."""
        ...

    async def update_issue_comment(self, params: UpdateCommentParams) -> Comment:
        """Replace a comment body and return the updated comment."""
        ...

    async def get_repository(self, owner: str, repo: str) -> Repository:
        """Fetch repository metadata."""
        ...

    async def get_default_branch(self, owner: str, repo: str) -> str:
        """Return the repository's default branch name."""
        ...

    async def create_branch(self, params: CreateBranchParams) -> None:
        """Create a branch pointing at ``params.sha``."""
        ...

    async def get_branch(self, owner: str, repo: str, branch: str) -> Branch:
        """Fetch a branch head."""
        ...

    async def get_user(self, login: str) -> User:
        """Fetch a user profile."""
        ...

    async def get_collaborator_permission(self, owner: str, repo: str, username: str) -> str:
        """Return the user's permission level on the repository."""
        ...

    async def graphql(self, query: str, variables: dict[str, Any]) -> dict[str, Any]:
        """Run a GraphQL query; raises UnsupportedCapabilityError where unavailable."""
        ...

    async def close(self) -> None:
        """Close the client and cleanup resources."""
        ...
