"""forgebridge entry point.

Resolves the forge for the current run, validates the triggering actor and
prints the canonical context of the issue or pull request as JSON, together
with browser links for the run.
"""

import asyncio
import json
import sys
from typing import Any

from forgebridge.core.config import Settings, get_settings
from forgebridge.core.logging import get_logger, setup_logging
from forgebridge.platform.context import (
    extract_external_url,
    get_forgejo_entity_type,
    load_event_payload,
)
from forgebridge.platform.data_fetcher import fetch_platform_data, split_repository
from forgebridge.platform.detector import (
    Platform,
    PlatformConfig,
    detect_platform,
    setup_platform_token,
)
from forgebridge.platform.factory import create_platform_client
from forgebridge.platform.url_utils import (
    create_branch_link,
    create_job_run_link,
    get_external_base_url,
)
from forgebridge.platform.validation import check_human_actor, check_write_permissions
from forgebridge.shared.exceptions import ActorValidationError, ConfigError, ForgeBridgeError

logger = get_logger(__name__)


def apply_event_context(settings: Settings, config: PlatformConfig) -> Settings:
    """Refine settings from the Forgejo event payload, if one is available.

    Forgejo reports comments on pull requests as ``issue_comment`` events, so
    the entity kind is taken from the payload rather than IS_PR. The payload's
    ``html_url`` also yields the browser origin when none was extracted yet.
    """
    if config.platform != Platform.FORGEJO:
        return settings
    if not settings.github_event_name or not settings.github_event_path:
        return settings

    payload = load_event_payload(settings.github_event_path)
    update: dict[str, Any] = {
        "is_pr": get_forgejo_entity_type(settings.github_event_name, payload) == "pr"
    }
    external_url = extract_external_url(payload)
    if external_url and not settings.forgejo_extracted_url:
        update["forgejo_extracted_url"] = external_url

    logger.debug("forgejo.event.applied", event=settings.github_event_name, **update)
    return settings.model_copy(update=update)


async def run(settings: Settings) -> str:
    """Fetch the configured entity and return it serialized as JSON.

    Args:
        settings: Application settings

    Returns:
        FetchDataResult as JSON, plus the forge's external base URL and, when
        configured, links to the workflow run and the working branch

    Raises:
        ConfigError: If the repository, entity number, token or event payload
            is missing or malformed
        ActorValidationError: If the actor may not trigger a run
    """
    if not settings.github_repository or settings.entity_number is None:
        raise ConfigError("GITHUB_REPOSITORY and ENTITY_NUMBER must be set")

    config = detect_platform(settings)
    logger.info("platform.detected", platform=config.platform.value, api_url=config.api_url)
    settings = apply_event_context(settings, config)

    token = setup_platform_token(settings)
    owner, repo = split_repository(settings.github_repository)
    client = create_platform_client(config, token)

    try:
        if settings.github_actor:
            if not await check_write_permissions(
                client, owner, repo, settings.github_actor, config
            ):
                raise ActorValidationError(
                    f"Actor {settings.github_actor} does not have write permissions to the repository"
                )
            await check_human_actor(client, settings.github_actor, config)

        result = await fetch_platform_data(
            repository=settings.github_repository,
            pr_number=settings.entity_number,
            is_pr=settings.is_pr,
            trigger_username=settings.github_actor,
            token=token,
            client=client,
        )
    finally:
        await client.close()

    output = result.model_dump(mode="json")
    output["external_base_url"] = get_external_base_url(config, settings)
    if settings.github_run_id:
        output["job_run_link"] = create_job_run_link(
            owner, repo, settings.github_run_id, config, settings
        )
    if settings.branch_name:
        output["branch_link"] = create_branch_link(
            owner, repo, settings.branch_name, config, settings
        )
    return json.dumps(output, indent=2)


def main() -> None:
    """Console script entry point."""
    try:
        settings = get_settings()
    except ConfigError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        sys.exit(1)

    setup_logging(settings.log_level)

    try:
        output = asyncio.run(run(settings))
    except ForgeBridgeError as e:
        logger.error("app.failed", error=str(e), error_type=type(e).__name__)
        sys.exit(1)

    print(output)


if __name__ == "__main__":
    main()
