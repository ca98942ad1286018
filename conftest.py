"""Shared pytest fixtures for forgebridge tests."""

import json
from collections.abc import Callable, Iterator
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest
import structlog

# Environment variables that influence platform detection
PLATFORM_ENV_VARS = (
    "GITHUB_API_URL",
    "GITHUB_SERVER_URL",
    "GITHUB_TOKEN",
    "OVERRIDE_GITHUB_TOKEN",
    "GITHUB_REPOSITORY",
    "GITHUB_ACTOR",
    "ENTITY_NUMBER",
    "IS_PR",
    "GITHUB_EVENT_NAME",
    "GITHUB_EVENT_PATH",
    "GITHUB_RUN_ID",
    "BRANCH_NAME",
    "USE_FORGEJO",
    "FORGEJO_API_URL",
    "FORGEJO_TOKEN",
    "FORGEJO_EXTERNAL_URL",
    "FORGEJO_EXTRACTED_URL",
    "INPUT_USE_FORGEJO",
    "INPUT_FORGEJO_URL",
    "INPUT_FORGEJO_TOKEN",
    "INPUT_FORGEJO_EXTERNAL_URL",
    "LOG_LEVEL",
)


@pytest.fixture(autouse=True)
def isolated_environment(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    """Clear platform env vars, cached settings/config and logging setup around each test."""
    import forgebridge.core.config
    import forgebridge.platform.detector

    for name in PLATFORM_ENV_VARS:
        monkeypatch.delenv(name, raising=False)

    forgebridge.core.config._settings = None
    forgebridge.platform.detector._platform_config = None

    yield

    forgebridge.core.config._settings = None
    forgebridge.platform.detector._platform_config = None
    # setup_logging binds the current sys.stderr, which capsys closes afterwards
    structlog.reset_defaults()


def _make_response(status: int = 200, payload: Any = None, text: str | None = None) -> MagicMock:
    """Build a mock aiohttp response usable as an async context manager."""
    response = MagicMock()
    response.status = status
    response.headers = {"Content-Type": "application/json"}
    response.json = AsyncMock(return_value=payload)
    response.text = AsyncMock(return_value=text if text is not None else json.dumps(payload))
    response.read = AsyncMock(return_value=b"")
    response.__aenter__ = AsyncMock(return_value=response)
    response.__aexit__ = AsyncMock(return_value=None)
    return response


@pytest.fixture
def make_response() -> Callable[..., MagicMock]:
    """Factory for mock aiohttp responses.

    Returns:
        Callable taking (status, payload, text)
    """
    return _make_response


@pytest.fixture
def make_session() -> Callable[[dict[tuple[str, str], Any]], MagicMock]:
    """Factory for mock aiohttp sessions routing requests by (method, url).

    Route values are either a payload (served with status 200) or a mock
    response. Unknown routes answer 404.

    Returns:
        Callable taking the route table
    """

    def factory(routes: dict[tuple[str, str], Any]) -> MagicMock:
        def request(method: str, url: str, **kwargs: Any) -> MagicMock:
            route = routes.get((method, url))
            if route is None:
                return _make_response(404, text='{"message": "Not Found"}')
            if isinstance(route, MagicMock):
                return route
            return _make_response(200, route)

        session = MagicMock()
        session.closed = False
        session.close = AsyncMock()
        session.request = MagicMock(side_effect=request)
        return session

    return factory


@pytest.fixture
def github_pr_graphql() -> dict[str, Any]:
    """GitHub GraphQL response for a merged pull request.

    Returns:
        Full GraphQL response body
    """
    return {
        "data": {
            "repository": {
                "pullRequest": {
                    "number": 7,
                    "title": "Add parser",
                    "body": "Adds a parser\n\n![diagram](https://github.com/user-attachments/assets/abc123)",
                    "author": {"login": "alice"},
                    "baseRefName": "main",
                    "headRefName": "feature/parser",
                    "headRefOid": "deadbeef",
                    "createdAt": "2025-01-09T12:00:00Z",
                    "additions": 12,
                    "deletions": 3,
                    "state": "CLOSED",
                    "merged": True,
                    "commits": {
                        "nodes": [
                            {
                                "commit": {
                                    "oid": "deadbeef",
                                    "message": "Add parser",
                                    "author": {"name": "Alice", "email": "alice@example.com"},
                                }
                            }
                        ]
                    },
                    "files": {
                        "nodes": [
                            {
                                "path": "src/parser.py",
                                "additions": 10,
                                "deletions": 0,
                                "changeType": "ADDED",
                            },
                            {
                                "path": "src/old.py",
                                "additions": 0,
                                "deletions": 3,
                                "changeType": "DELETED",
                            },
                            {
                                "path": "README.md",
                                "additions": 2,
                                "deletions": 0,
                                "changeType": "MODIFIED",
                            },
                        ]
                    },
                    "comments": {
                        "nodes": [
                            {
                                "id": "IC_kwDOA1",
                                "databaseId": 101,
                                "body": "Looks good",
                                "author": {"login": "bob"},
                                "createdAt": "2025-01-09T13:00:00Z",
                                "updatedAt": "2025-01-09T13:00:00Z",
                            }
                        ]
                    },
                    "reviews": {
                        "nodes": [
                            {
                                "id": "PRR_kwDOA1",
                                "databaseId": 201,
                                "author": {"login": "bob"},
                                "body": "Please rename",
                                "state": "CHANGES_REQUESTED",
                                "submittedAt": "2025-01-09T14:00:00Z",
                                "comments": {
                                    "nodes": [
                                        {
                                            "id": "PRRC_kwDOA1",
                                            "databaseId": 301,
                                            "body": "rename this",
                                            "path": "src/parser.py",
                                            "line": 4,
                                            "originalLine": 4,
                                            "author": {"login": "bob"},
                                            "createdAt": "2025-01-09T14:00:00Z",
                                        }
                                    ]
                                },
                            }
                        ]
                    },
                }
            }
        }
    }


@pytest.fixture
def forgejo_pr_payloads() -> dict[str, Any]:
    """Forgejo REST responses describing the same pull request.

    Returns:
        Mapping of endpoint suffix to response body
    """
    alice = {
        "id": 1,
        "login": "alice",
        "full_name": "Alice Liddell",
        "email": "alice@noreply.forge.example",
    }
    bob = {
        "id": 2,
        "login": "bob",
        "full_name": "Bob Builder",
        "email": "bob@noreply.forge.example",
    }
    return {
        "pr": {
            "number": 7,
            "title": "Add parser",
            "body": "Adds a parser\n\n![diagram](https://github.com/user-attachments/assets/abc123)",
            "user": alice,
            "base": {"ref": "main"},
            "head": {"ref": "feature/parser", "sha": "deadbeef"},
            "created_at": "2025-01-09T12:00:00Z",
            "additions": 12,
            "deletions": 3,
            "state": "closed",
            "merged": True,
            "merged_at": "2025-01-10T09:00:00Z",
        },
        "commits": [
            {
                "sha": "deadbeef",
                "commit": {
                    "message": "Add parser",
                    "author": {
                        "name": "Alice",
                        "email": "alice@example.com",
                        "date": "2025-01-09T11:00:00Z",
                    },
                },
            }
        ],
        "files": [
            {"filename": "src/parser.py", "status": "added", "additions": 10, "deletions": 0},
            {"filename": "src/old.py", "status": "deleted", "additions": 0, "deletions": 3},
            {"filename": "README.md", "status": "modified", "additions": 2, "deletions": 0},
        ],
        "comments": [
            {
                "id": 101,
                "body": "Looks good",
                "user": bob,
                "created_at": "2025-01-09T13:00:00Z",
                "updated_at": "2025-01-09T13:00:00Z",
            }
        ],
        "reviews": [
            {
                "id": 201,
                "user": bob,
                "body": "Please rename",
                "state": "REQUEST_CHANGES",
                "submitted_at": "2025-01-09T14:00:00Z",
            }
        ],
        "review_comments": {
            201: [
                {
                    "id": 301,
                    "body": "rename this",
                    "path": "src/parser.py",
                    "position": 4,
                    "user": bob,
                    "created_at": "2025-01-09T14:00:00Z",
                }
            ]
        },
    }


@pytest.fixture
def forgejo_pr_routes(
    forgejo_pr_payloads: dict[str, Any],
) -> dict[tuple[str, str], Any]:
    """Route table serving the Forgejo pull request at forge.example.

    Returns:
        Route table for make_session
    """
    api = "https://forge.example/api/v1/repos/owner/repo"
    routes: dict[tuple[str, str], Any] = {
        ("GET", f"{api}/pulls/7"): forgejo_pr_payloads["pr"],
        ("GET", f"{api}/pulls/7/commits"): forgejo_pr_payloads["commits"],
        ("GET", f"{api}/pulls/7/files"): forgejo_pr_payloads["files"],
        ("GET", f"{api}/issues/7/comments"): forgejo_pr_payloads["comments"],
        ("GET", f"{api}/pulls/7/reviews"): forgejo_pr_payloads["reviews"],
    }
    for review_id, comments in forgejo_pr_payloads["review_comments"].items():
        routes[("GET", f"{api}/pulls/7/reviews/{review_id}/comments")] = comments
    return routes
