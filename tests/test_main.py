"""Tests for the forgebridge entry point."""

import json
from collections.abc import Callable
from pathlib import Path
from typing import Any
from unittest.mock import MagicMock

import pytest

from forgebridge.core.config import Settings
from forgebridge.forgejo.client import ForgejoClient
from forgebridge.main import main, run
from forgebridge.platform.detector import PlatformConfig
from forgebridge.shared.exceptions import ActorValidationError, ConfigError

SessionFactory = Callable[[dict[tuple[str, str], Any]], MagicMock]

REPO = "https://forge.example/api/v1/repos/owner/repo"


@pytest.fixture
def forgejo_settings() -> Settings:
    """Settings for a Forgejo pull request run triggered by alice."""
    return Settings(
        forgejo_api_url="https://forge.example",
        forgejo_token="fj_token",
        github_repository="owner/repo",
        github_actor="alice",
        entity_number=7,
        is_pr=True,
    )


@pytest.fixture
def patch_client(
    monkeypatch: pytest.MonkeyPatch,
    make_session: SessionFactory,
) -> Callable[[dict[tuple[str, str], Any]], MagicMock]:
    """Route clients built by run() to a mock session."""

    def install(routes: dict[tuple[str, str], Any]) -> MagicMock:
        session = make_session(routes)

        def factory(config: PlatformConfig, token: str) -> ForgejoClient:
            return ForgejoClient(config.api_url, token, session=session)

        monkeypatch.setattr("forgebridge.main.create_platform_client", factory)
        return session

    return install


@pytest.mark.asyncio
async def test_run_returns_result_json(
    forgejo_settings: Settings,
    forgejo_pr_routes: dict[tuple[str, str], Any],
    patch_client: Callable[[dict[tuple[str, str], Any]], MagicMock],
) -> None:
    """Test a full run: permission check, actor check, fetch, serialize."""
    forgejo_pr_routes[("GET", f"{REPO}/collaborators/alice/permission")] = {"permission": "write"}
    forgejo_pr_routes[("GET", "https://forge.example/api/v1/users/alice")] = {
        "id": 1,
        "login": "alice",
        "full_name": "Alice Liddell",
    }
    session = patch_client(forgejo_pr_routes)

    output = json.loads(await run(forgejo_settings))

    assert output["context_data"]["number"] == 7
    assert output["context_data"]["state"] == "merged"
    assert output["trigger_display_name"] == "Alice Liddell"
    assert output["image_url_map"] == {}
    assert output["external_base_url"] == "https://forge.example"
    assert "job_run_link" not in output
    session.close.assert_awaited_once()


@pytest.mark.asyncio
async def test_run_rejects_actor_without_write_access(
    forgejo_settings: Settings,
    forgejo_pr_routes: dict[tuple[str, str], Any],
    patch_client: Callable[[dict[tuple[str, str], Any]], MagicMock],
) -> None:
    """Test that read-only actors stop the run before any fetch."""
    forgejo_pr_routes[("GET", f"{REPO}/collaborators/alice/permission")] = {"permission": "read"}
    session = patch_client(forgejo_pr_routes)

    with pytest.raises(ActorValidationError, match="write permissions"):
        await run(forgejo_settings)

    requested = [call.args[1] for call in session.request.call_args_list]
    assert requested == [f"{REPO}/collaborators/alice/permission"]
    session.close.assert_awaited_once()


@pytest.mark.asyncio
async def test_forgejo_comment_on_pull_request_uses_event_payload(
    tmp_path: Path,
    forgejo_pr_routes: dict[tuple[str, str], Any],
    patch_client: Callable[[dict[tuple[str, str], Any]], MagicMock],
) -> None:
    """Test that an issue_comment on a pull request fetches the pull request."""
    event_path = tmp_path / "event.json"
    event_path.write_text(
        json.dumps(
            {
                "action": "created",
                "issue": {
                    "number": 7,
                    "html_url": "https://code.forge.example/owner/repo/pulls/7",
                },
                "comment": {"id": 55, "body": "@bot please fix"},
            }
        )
    )
    settings = Settings(
        forgejo_api_url="https://forge.example",
        forgejo_token="fj_token",
        github_repository="owner/repo",
        entity_number=7,
        is_pr=False,
        github_event_name="issue_comment",
        github_event_path=str(event_path),
        github_run_id="42",
        branch_name="fix/parser",
    )
    patch_client(forgejo_pr_routes)

    output = json.loads(await run(settings))

    assert output["context_data"]["head_ref_oid"] == "deadbeef"
    assert len(output["changed_files"]) == 3
    assert output["external_base_url"] == "https://code.forge.example"
    assert output["job_run_link"] == (
        "[View job run](https://code.forge.example/owner/repo/actions/runs/42)"
    )
    assert output["branch_link"] == (
        "\n[View branch](https://code.forge.example/owner/repo/src/branch/fix/parser)"
    )


@pytest.mark.asyncio
async def test_configured_extracted_url_wins_over_payload(
    tmp_path: Path,
    forgejo_pr_routes: dict[tuple[str, str], Any],
    patch_client: Callable[[dict[tuple[str, str], Any]], MagicMock],
) -> None:
    """Test that an explicitly extracted URL is not replaced by the payload's."""
    event_path = tmp_path / "event.json"
    event_path.write_text(
        json.dumps(
            {
                "pull_request": {
                    "number": 7,
                    "html_url": "https://internal.forge.example/owner/repo/pulls/7",
                }
            }
        )
    )
    settings = Settings(
        forgejo_api_url="https://forge.example",
        forgejo_token="fj_token",
        forgejo_extracted_url="https://public.forge.example/",
        github_repository="owner/repo",
        entity_number=7,
        github_event_name="pull_request",
        github_event_path=str(event_path),
    )
    patch_client(forgejo_pr_routes)

    output = json.loads(await run(settings))

    assert output["context_data"]["number"] == 7
    assert output["external_base_url"] == "https://public.forge.example"


@pytest.mark.asyncio
async def test_unreadable_event_payload_raises(tmp_path: Path) -> None:
    """Test that a missing event file is a configuration error."""
    settings = Settings(
        forgejo_api_url="https://forge.example",
        forgejo_token="fj_token",
        github_repository="owner/repo",
        entity_number=7,
        github_event_name="issue_comment",
        github_event_path=str(tmp_path / "missing.json"),
    )

    with pytest.raises(ConfigError, match="Cannot read event payload"):
        await run(settings)


@pytest.mark.asyncio
async def test_run_requires_repository_and_number() -> None:
    """Test that missing event settings raise ConfigError."""
    with pytest.raises(ConfigError, match="GITHUB_REPOSITORY"):
        await run(Settings(github_token="gh_token"))


@pytest.mark.asyncio
async def test_run_requires_token() -> None:
    """Test that a Forgejo run without a token raises ConfigError."""
    settings = Settings(use_forgejo=True, github_repository="owner/repo", entity_number=1)

    with pytest.raises(ConfigError, match="FORGEJO_TOKEN"):
        await run(settings)


def test_main_exits_on_failure(
    monkeypatch: pytest.MonkeyPatch,
    capsys: pytest.CaptureFixture[str],
) -> None:
    """Test that main() logs the failure and exits with status 1."""
    monkeypatch.setenv("GITHUB_TOKEN", "gh_token")

    with pytest.raises(SystemExit) as exc_info:
        main()

    assert exc_info.value.code == 1
    log_data = json.loads(capsys.readouterr().err.strip().splitlines()[-1])
    assert log_data["event"] == "app.failed"
    assert log_data["error_type"] == "ConfigError"


def test_main_exits_on_invalid_settings(
    monkeypatch: pytest.MonkeyPatch,
    capsys: pytest.CaptureFixture[str],
) -> None:
    """Test that invalid configuration is reported on stderr."""
    monkeypatch.setenv("LOG_LEVEL", "VERBOSE")

    with pytest.raises(SystemExit) as exc_info:
        main()

    assert exc_info.value.code == 1
    assert "Configuration error" in capsys.readouterr().err


def test_main_prints_result_to_stdout(
    monkeypatch: pytest.MonkeyPatch,
    capsys: pytest.CaptureFixture[str],
    forgejo_pr_routes: dict[tuple[str, str], Any],
    patch_client: Callable[[dict[tuple[str, str], Any]], MagicMock],
) -> None:
    """Test that stdout carries only the result while logs go to stderr."""
    monkeypatch.setenv("FORGEJO_API_URL", "https://forge.example")
    monkeypatch.setenv("FORGEJO_TOKEN", "fj_token")
    monkeypatch.setenv("GITHUB_REPOSITORY", "owner/repo")
    monkeypatch.setenv("ENTITY_NUMBER", "7")
    monkeypatch.setenv("IS_PR", "true")
    patch_client(forgejo_pr_routes)

    main()

    captured = capsys.readouterr()
    assert json.loads(captured.out)["context_data"]["head_ref_oid"] == "deadbeef"
    assert "platform_data.fetched" in captured.err
    assert "fj_token" not in captured.err
