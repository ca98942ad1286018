"""GitHub client implementing the platform client capabilities.

Simple lookups go through REST; a pull request is fetched with a single
GraphQL query so reviews and their comments arrive in one round trip.
"""

from typing import Any

import aiohttp

from forgebridge.core.logging import get_logger
from forgebridge.github.queries import PULL_REQUEST_QUERY
from forgebridge.platform.detector import DEFAULT_GITHUB_API_URL, Platform, normalize_api_url
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
from forgebridge.shared.exceptions import PlatformAPIError
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
from forgebridge.shared.tasks import gather_all

logger = get_logger(__name__)

# Page size for REST list endpoints (GitHub maximum)
PER_PAGE = 100

# Login GitHub shows for deleted accounts
GHOST_LOGIN = "ghost"


def graphql_url_for(api_url: str) -> str:
    """Derive the GraphQL endpoint from a REST base URL.

    GitHub Enterprise Server serves REST under ``/api/v3`` and GraphQL
    under ``/api/graphql``.
    """
    if api_url.endswith("/api/v3"):
        return f"{api_url.removesuffix('/v3')}/graphql"
    return f"{api_url}/graphql"


def _nodes(connection: dict[str, Any] | None) -> list[dict[str, Any]]:
    """Non-null nodes of a GraphQL connection."""
    if not connection:
        return []
    return [node for node in connection.get("nodes") or [] if node]


def _rest_user(data: dict[str, Any] | None) -> User:
    if not data:
        return User(login=GHOST_LOGIN)
    return User(
        login=data.get("login") or GHOST_LOGIN,
        name=data.get("name"),
        email=data.get("email"),
        id=data.get("id") or 0,
        user_type=data.get("type"),
    )


def _graphql_user(data: dict[str, Any] | None) -> User:
    # GraphQL actors expose no numeric id
    return User(login=(data or {}).get("login") or GHOST_LOGIN, id=0)


def _rest_comment(data: dict[str, Any]) -> Comment:
    return Comment(
        id=data["id"],
        node_id=data.get("node_id"),
        body=data.get("body") or "",
        author=_rest_user(data.get("user")),
        created_at=data["created_at"],
        updated_at=data.get("updated_at"),
    )


class GitHubClient:
    """Async GitHub API client.

    Attributes:
        API_VERSION: Value sent in the X-GitHub-Api-Version header
        platform: Forge this client talks to
    """

    API_VERSION = "2022-11-28"
    platform = Platform.GITHUB

    def __init__(
        self,
        token: str,
        api_url: str = DEFAULT_GITHUB_API_URL,
        session: aiohttp.ClientSession | None = None,
    ) -> None:
        """Initialize GitHub client.

        Args:
            token: GitHub token (PAT, app or workflow token)
            api_url: REST base URL
            session: Optional pre-built aiohttp session
        """
        self.token = token
        self.api_url = normalize_api_url(api_url, Platform.GITHUB)
        self.graphql_url = graphql_url_for(self.api_url)
        self.session = session

    async def __aenter__(self) -> "GitHubClient":
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
                    "Authorization": f"Bearer {self.token}",
                    "Accept": "application/vnd.github+json",
                    "X-GitHub-Api-Version": self.API_VERSION,
                    "User-Agent": "forgebridge",
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
        """Make a REST request.

        Args:
            method: HTTP method
            path: Path below the API base URL
            json: JSON request body
            params: Query parameters

        Returns:
            Decoded JSON response, or None for empty responses

        Raises:
            PlatformAPIError: On non-2xx responses or network failures
        """
        session = await self._ensure_session()
        url = f"{self.api_url}{path}"

        try:
            async with session.request(method, url, json=json, params=params) as response:
                if response.status >= 400:
                    text = await response.text()
                    logger.warning(
                        "github.request.failed",
                        method=method,
                        path=path,
                        status=response.status,
                    )
                    raise PlatformAPIError(response.status, path, text[:500])

                if response.status == 204:
                    return None
                return await response.json()

        except aiohttp.ClientError as e:
            logger.error("github.request.network_error", method=method, path=path, error=str(e))
            raise PlatformAPIError(0, path, str(e)) from e

    async def graphql(self, query: str, variables: dict[str, Any]) -> dict[str, Any]:
        """Run a GraphQL query.

        Args:
            query: GraphQL document
            variables: Query variables

        Returns:
            The ``data`` member of the response

        Raises:
            PlatformAPIError: On HTTP errors, network failures or a GraphQL error payload
        """
        session = await self._ensure_session()
        payload = {"query": query, "variables": variables}

        try:
            async with session.request("POST", self.graphql_url, json=payload) as response:
                if response.status >= 400:
                    text = await response.text()
                    raise PlatformAPIError(response.status, "graphql", text[:500])
                result: dict[str, Any] = await response.json()
                status = response.status
        except aiohttp.ClientError as e:
            logger.error("github.graphql.network_error", error=str(e))
            raise PlatformAPIError(0, "graphql", str(e)) from e

        errors = result.get("errors")
        if errors:
            messages = "; ".join(str(error.get("message", error)) for error in errors)
            not_found = any(error.get("type") == "NOT_FOUND" for error in errors)
            logger.warning("github.graphql.errors", count=len(errors), not_found=not_found)
            raise PlatformAPIError(404 if not_found else status, "graphql", messages)

        data: dict[str, Any] = result.get("data") or {}
        return data

    async def _paginate(self, path: str) -> list[dict[str, Any]]:
        """Fetch every page of a REST list endpoint.

        Stops at the first page shorter than PER_PAGE.
        """
        items: list[dict[str, Any]] = []
        page = 1
        while True:
            batch = await self._request("GET", path, params={"page": page, "per_page": PER_PAGE})
            batch = batch or []
            items.extend(batch)
            if len(batch) < PER_PAGE:
                return items
            page += 1

    async def get_issue(self, owner: str, repo: str, number: int) -> Issue:
        """Fetch an issue and all of its comments.

        Args:
            owner: Repository owner
            repo: Repository name
            number: Issue number

        Returns:
            Canonical Issue
        """
        issue, comments = await gather_all(
            self._request("GET", f"/repos/{owner}/{repo}/issues/{number}"),
            self._paginate(f"/repos/{owner}/{repo}/issues/{number}/comments"),
        )

        return Issue(
            number=issue["number"],
            title=issue["title"],
            body=issue.get("body") or "",
            state="open" if issue.get("state") == "open" else "closed",
            author=_rest_user(issue.get("user")),
            created_at=issue["created_at"],
            comments=[_rest_comment(c) for c in comments],
        )

    async def get_pull_request(self, owner: str, repo: str, number: int) -> PullRequest:
        """Fetch a pull request with a single GraphQL query.

        Args:
            owner: Repository owner
            repo: Repository name
            number: Pull request number

        Returns:
            Canonical PullRequest

        Raises:
            PlatformAPIError: If the query fails or the pull request does not exist
        """
        data = await self.graphql(
            PULL_REQUEST_QUERY,
            {"owner": owner, "repo": repo, "number": number},
        )
        pr = (data.get("repository") or {}).get("pullRequest")
        if pr is None:
            raise PlatformAPIError(
                404, "graphql", f"Pull request {owner}/{repo}#{number} not found"
            )

        commits = [
            Commit(
                oid=node["commit"]["oid"],
                message=node["commit"]["message"],
                author=CommitAuthor(
                    name=(node["commit"].get("author") or {}).get("name") or "",
                    email=(node["commit"].get("author") or {}).get("email") or "",
                ),
            )
            for node in _nodes(pr.get("commits"))
        ]

        files = [
            PullRequestFile(
                path=node["path"],
                additions=node.get("additions") or 0,
                deletions=node.get("deletions") or 0,
                change_type=map_change_type(node.get("changeType")),
            )
            for node in _nodes(pr.get("files"))
        ]

        comments = [
            Comment(
                id=node.get("databaseId") or 0,
                node_id=node.get("id"),
                body=node.get("body") or "",
                author=_graphql_user(node.get("author")),
                created_at=node["createdAt"],
                updated_at=node.get("updatedAt"),
            )
            for node in _nodes(pr.get("comments"))
        ]

        reviews = [
            Review(
                id=node.get("databaseId") or 0,
                node_id=node.get("id"),
                author=_graphql_user(node.get("author")),
                body=node.get("body") or "",
                state=map_review_state(node.get("state")),
                submitted_at=node.get("submittedAt"),
                comments=[
                    ReviewComment(
                        id=rc.get("databaseId") or 0,
                        node_id=rc.get("id"),
                        body=rc.get("body") or "",
                        path=rc.get("path") or "",
                        line=rc.get("line") or rc.get("originalLine") or 0,
                        author=_graphql_user(rc.get("author")),
                        created_at=rc["createdAt"],
                    )
                    for rc in _nodes(node.get("comments"))
                ],
            )
            for node in _nodes(pr.get("reviews"))
        ]

        logger.debug(
            "github.pull_request.fetched",
            number=number,
            commits=len(commits),
            files=len(files),
            reviews=len(reviews),
        )

        return PullRequest(
            number=pr["number"],
            title=pr["title"],
            body=pr.get("body") or "",
            state=resolve_pull_request_state(pr.get("state"), pr.get("merged")),
            author=_graphql_user(pr.get("author")),
            base_ref_name=pr["baseRefName"],
            head_ref_name=pr["headRefName"],
            head_ref_oid=pr["headRefOid"],
            created_at=pr["createdAt"],
            additions=pr.get("additions") or 0,
            deletions=pr.get("deletions") or 0,
            commits=commits,
            files=files,
            comments=comments,
            reviews=reviews,
        )

    async def create_issue_comment(self, params: CreateCommentParams) -> Comment:
        """Post a comment on an issue or pull request."""
        data = await self._request(
            "POST",
            f"/repos/{params.owner}/{params.repo}/issues/{params.issue_number}/comments",
            json={"body": params.body},
        )
        return _rest_comment(data)

    async def update_issue_comment(self, params: UpdateCommentParams) -> Comment:
        """Replace the body of a conversation comment."""
        data = await self._request(
            "PATCH",
            f"/repos/{params.owner}/{params.repo}/issues/comments/{params.comment_id}",
            json={"body": params.body},
        )
        return _rest_comment(data)

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
        """Create a git ref for a new branch."""
        await self._request(
            "POST",
            f"/repos/{params.owner}/{params.repo}/git/refs",
            json={"ref": f"refs/heads/{params.branch}", "sha": params.sha},
        )

    async def get_branch(self, owner: str, repo: str, branch: str) -> Branch:
        data = await self._request("GET", f"/repos/{owner}/{repo}/branches/{branch}")
        return Branch(name=data.get("name") or branch, sha=data["commit"]["sha"])

    async def get_user(self, login: str) -> User:
        data = await self._request("GET", f"/users/{login}")
        return _rest_user(data)

    async def get_collaborator_permission(self, owner: str, repo: str, username: str) -> str:
        data = await self._request(
            "GET", f"/repos/{owner}/{repo}/collaborators/{username}/permission"
        )
        permission: str = data.get("permission") or "none"
        return permission
