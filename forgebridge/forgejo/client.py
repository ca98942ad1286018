"""Forgejo/Gitea client implementing the platform client capabilities.

Forgejo has no GraphQL API, so a pull request is assembled from several REST
calls issued concurrently, plus one call per review for its inline comments.
"""

from typing import Any

import aiohttp

from forgebridge.core.logging import get_logger
from forgebridge.platform.detector import Platform, normalize_api_url
from forgebridge.platform.interface import (
    CreateBranchParams,
    CreateCommentParams,
    UpdateCommentParams,
)
from forgebridge.platform.normalize import (
    map_change_type,
    map_review_state,
    resolve_pull_request_state,
)
from forgebridge.shared.exceptions import PlatformAPIError, UnsupportedCapabilityError
from forgebridge.shared.models import (
    Branch,
    Comment,
    Commit,
    CommitAuthor,
    Issue,
    PullRequest,
    PullRequestFile,
    Repository,
    Review,
    ReviewComment,
    User,
)
from forgebridge.shared.tasks import gather_all, gather_fields

logger = get_logger(__name__)

# Page size for list endpoints (Forgejo's default maximum)
PAGE_LIMIT = 50

# Login Forgejo shows for deleted accounts
GHOST_LOGIN = "Ghost"


def _user(data: dict[str, Any] | None) -> User:
    if not data:
        return User(login=GHOST_LOGIN)
    # Forgejo has no reliable account-type field
    return User(
        login=data.get("login") or data.get("username") or GHOST_LOGIN,
        name=data.get("full_name") or None,
        email=data.get("email") or None,
        id=data.get("id") or 0,
    )


def _comment(data: dict[str, Any]) -> Comment:
    return Comment(
        id=data["id"],
        body=data.get("body") or "",
        author=_user(data.get("user")),
        created_at=data["created_at"],
        updated_at=data.get("updated_at"),
    )


def _review_comment(data: dict[str, Any]) -> ReviewComment:
    return ReviewComment(
        id=data["id"],
        body=data.get("body") or "",
        path=data.get("path") or "",
        line=(
            data.get("line")
            or data.get("position")
            or data.get("original_line")
            or data.get("original_position")
            or 0
        ),
        author=_user(data.get("user")),
        created_at=data["created_at"],
    )


class ForgejoClient:
    """Async Forgejo REST API client.

    Attributes:
        platform: Forge this client talks to
    """

    platform = Platform.FORGEJO

    def __init__(
        self,
        api_url: str,
        token: str,
        session: aiohttp.ClientSession | None = None,
    ) -> None:
        """Initialize Forgejo client.

        Args:
            api_url: Instance URL or API base URL (normalized to end in /api/v1)
            token: Forgejo access token
            session: Optional pre-built aiohttp session
        """
        self.api_url = normalize_api_url(api_url, Platform.FORGEJO)
        self.token = token
        self.session = session

    async def __aenter__(self) -> "ForgejoClient":
        """Context manager entry: create aiohttp session."""
        await self._ensure_session()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: Any,
    ) -> None:
        """Context manager exit: close aiohttp session."""
        await self.close()

    async def _ensure_session(self) -> aiohttp.ClientSession:
        """Ensure aiohttp session exists.

        Returns:
            Active aiohttp session
        """
        if self.session is None or self.session.closed:
            self.session = aiohttp.ClientSession(
                headers={
                    "Authorization": f"token {self.token}",
                    "Content-Type": "application/json",
                    "Accept": "application/json",
                }
            )
        return self.session

    async def close(self) -> None:
        """Close the client and cleanup resources."""
        if self.session is not None and not self.session.closed:
            await self.session.close()
        self.session = None

    async def _request(
        self,
        method: str,
        path: str,
        json: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
    ) -> Any:
        """Make API request.

        Args:
            method: HTTP method
            path: Path below the API base URL
            json: JSON request body
            params: Query parameters

        Returns:
            Decoded JSON response, or None for empty responses

        Raises:
            PlatformAPIError: On non-2xx responses (status and body embedded) or
                network failures (status 0)
        """
        session = await self._ensure_session()
        url = f"{self.api_url}{path}"

        try:
            async with session.request(method, url, json=json, params=params) as response:
                if response.status >= 400:
                    text = await response.text()
                    logger.warning(
                        "forgejo.request.failed",
                        method=method,
                        path=path,
                        status=response.status,
                    )
                    raise PlatformAPIError(response.status, path, text[:500])

                if response.status == 204:
                    return None
                return await response.json()

        except aiohttp.ClientError as e:
            logger.error("forgejo.request.network_error", method=method, path=path, error=str(e))
            raise PlatformAPIError(0, path, str(e)) from e

    async def _paginate(self, path: str) -> list[dict[str, Any]]:
        """Fetch every page of a list endpoint.

        Stops at the first page shorter than PAGE_LIMIT. Items are keyed by
        ``id`` where they have one: an item created mid-fetch shifts the page
        window, so the next page can repeat the previous page's last item.
        """
        items: list[dict[str, Any]] = []
        seen: set[Any] = set()
        page = 1
        while True:
            batch = await self._request("GET", path, params={"page": page, "limit": PAGE_LIMIT})
            batch = batch or []
            for item in batch:
                item_id = item.get("id")
                if item_id is not None:
                    if item_id in seen:
                        logger.debug("forgejo.paginate.duplicate", path=path, id=item_id)
                        continue
                    seen.add(item_id)
                items.append(item)
            if len(batch) < PAGE_LIMIT:
                return items
            page += 1

    async def graphql(self, query: str, variables: dict[str, Any]) -> dict[str, Any]:
        """Forgejo has no GraphQL endpoint.

        Raises:
            UnsupportedCapabilityError: Always
        """
        raise UnsupportedCapabilityError("GraphQL API is not supported on Forgejo")

    async def get_issue(self, owner: str, repo: str, number: int) -> Issue:
        """Fetch an issue and its comments concurrently.

        Args:
            owner: Repository owner
            repo: Repository name
            number: Issue number

        Returns:
            Canonical Issue
        """
        base = f"/repos/{owner}/{repo}/issues/{number}"
        results = await gather_fields(
            issue=self._request("GET", base),
            comments=self._paginate(f"{base}/comments"),
        )
        issue = results["issue"]

        return Issue(
            number=issue["number"],
            title=issue["title"],
            body=issue.get("body") or "",
            state="open" if issue.get("state") == "open" else "closed",
            author=_user(issue.get("user")),
            created_at=issue["created_at"],
            comments=[_comment(c) for c in results["comments"]],
        )

    async def _get_review_comments(
        self, owner: str, repo: str, number: int, reviews: list[dict[str, Any]]
    ) -> dict[int, list[dict[str, Any]]]:
        """Fetch inline comments of every review, keyed by review id."""
        review_ids = [review["id"] for review in reviews]
        batches = await gather_all(
            *(
                self._request("GET", f"/repos/{owner}/{repo}/pulls/{number}/reviews/{rid}/comments")
                for rid in review_ids
            )
        )
        return {rid: batch or [] for rid, batch in zip(review_ids, batches, strict=True)}

    async def get_pull_request(self, owner: str, repo: str, number: int) -> PullRequest:
        """Fetch a pull request from five concurrent REST calls.

        Conversation comments live under the issue endpoint; review comments
        are fetched per review since the review list does not embed them.

        Args:
            owner: Repository owner
            repo: Repository name
            number: Pull request number

        Returns:
            Canonical PullRequest
        """
        pulls = f"/repos/{owner}/{repo}/pulls/{number}"
        results = await gather_fields(
            pr=self._request("GET", pulls),
            commits=self._paginate(f"{pulls}/commits"),
            files=self._paginate(f"{pulls}/files"),
            comments=self._paginate(f"/repos/{owner}/{repo}/issues/{number}/comments"),
            reviews=self._paginate(f"{pulls}/reviews"),
        )
        pr = results["pr"]
        review_comments = await self._get_review_comments(owner, repo, number, results["reviews"])

        commits = [
            Commit(
                oid=c["sha"],
                message=c["commit"]["message"],
                author=CommitAuthor(
                    name=(c["commit"].get("author") or {}).get("name") or "",
                    email=(c["commit"].get("author") or {}).get("email") or "",
                ),
            )
            for c in results["commits"]
        ]

        files = [
            PullRequestFile(
                path=f["filename"],
                additions=f.get("additions") or 0,
                deletions=f.get("deletions") or 0,
                change_type=map_change_type(f.get("status")),
            )
            for f in results["files"]
        ]

        reviews = [
            Review(
                id=r["id"],
                author=_user(r.get("user")),
                body=r.get("body") or "",
                state=map_review_state(r.get("state")),
                submitted_at=r.get("submitted_at"),
                comments=[_review_comment(rc) for rc in review_comments[r["id"]]],
            )
            for r in results["reviews"]
        ]

        merged = bool(pr.get("merged")) or pr.get("merged_at") is not None

        logger.debug(
            "forgejo.pull_request.fetched",
            number=number,
            commits=len(commits),
            files=len(files),
            reviews=len(reviews),
        )

        return PullRequest(
            number=pr["number"],
            title=pr["title"],
            body=pr.get("body") or "",
            state=resolve_pull_request_state(pr.get("state"), merged),
            author=_user(pr.get("user")),
            base_ref_name=pr["base"]["ref"],
            head_ref_name=pr["head"]["ref"],
            head_ref_oid=pr["head"]["sha"],
            created_at=pr["created_at"],
            additions=pr.get("additions") or 0,
            deletions=pr.get("deletions") or 0,
            commits=commits,
            files=files,
            comments=[_comment(c) for c in results["comments"]],
            reviews=reviews,
        )

    async def create_issue_comment(self, params: CreateCommentParams) -> Comment:
        """Post a comment on an issue or pull request."""
        data = await self._request(
            "POST",
            f"/repos/{params.owner}/{params.repo}/issues/{params.issue_number}/comments",
            json={"body": params.body},
        )
        return _comment(data)

    async def update_issue_comment(self, params: UpdateCommentParams) -> Comment:
        """Replace the body of a conversation comment."""
        data = await self._request(
            "PATCH",
            f"/repos/{params.owner}/{params.repo}/issues/comments/{params.comment_id}",
            json={"body": params.body},
        )
        return _comment(data)

    async def get_repository(self, owner: str, repo: str) -> Repository:
        data = await self._request("GET", f"/repos/{owner}/{repo}")
        return Repository(
            owner=data["owner"]["login"],
            name=data["name"],
            default_branch=data["default_branch"],
        )

    async def get_default_branch(self, owner: str, repo: str) -> str:
        repository = await self.get_repository(owner, repo)
        return repository.default_branch

    async def create_branch(self, params: CreateBranchParams) -> None:
        """Create a branch from a commit.

        Forgejo's branch endpoint accepts a commit id as the branch source.
        """
        await self._request(
            "POST",
            f"/repos/{params.owner}/{params.repo}/branches",
            json={"new_branch_name": params.branch, "old_ref_name": params.sha},
        )

    async def get_branch(self, owner: str, repo: str, branch: str) -> Branch:
        data = await self._request("GET", f"/repos/{owner}/{repo}/branches/{branch}")
        return Branch(name=data.get("name") or branch, sha=data["commit"]["id"])

    async def get_user(self, login: str) -> User:
        data = await self._request("GET", f"/users/{login}")
        return _user(data)

    async def get_collaborator_permission(self, owner: str, repo: str, username: str) -> str:
        data = await self._request(
            "GET", f"/repos/{owner}/{repo}/collaborators/{username}/permission"
        )
        permission: str = data.get("permission") or "none"
        return permission
