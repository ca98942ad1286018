"""Checks on the actor that triggered a run."""

from forgebridge.core.logging import get_logger
from forgebridge.platform.detector import Platform, PlatformConfig
from forgebridge.platform.interface import PlatformClient
from forgebridge.shared.exceptions import ActorValidationError, PlatformAPIError

logger = get_logger(__name__)

# GitHub: admin/maintain/write; Forgejo adds owner
WRITE_PERMISSIONS = {"admin", "write", "owner", "maintain"}

NON_HUMAN_TYPES = {"Bot", "Organization"}


async def check_human_actor(
    client: PlatformClient,
    actor: str,
    config: PlatformConfig,
) -> None:
    """Ensure the run was triggered by a human account.

    GitHub requires the account type to be ``User``. Forgejo exposes no
    reliable account type, so only explicit bot/organization types are
    rejected and a missing user endpoint (404) is tolerated.

    Raises:
        ActorValidationError: If the actor is not a human account
        PlatformAPIError: If the lookup fails for any other reason
    """
    try:
        user = await client.get_user(actor)
    except PlatformAPIError as e:
        if e.is_not_found and config.platform == Platform.FORGEJO:
            logger.info("actor.lookup_unavailable", actor=actor, platform=config.platform.value)
            return
        raise

    if config.platform == Platform.FORGEJO:
        if user.user_type in NON_HUMAN_TYPES:
            raise ActorValidationError(
                f"Workflow initiated by non-human actor: {actor} (type: {user.user_type})."
            )
    elif user.user_type != "User":
        raise ActorValidationError(
            f"Workflow initiated by non-human actor: {actor} (type: {user.user_type})."
        )

    logger.info("actor.verified", actor=actor, platform=config.platform.value)


async def check_write_permissions(
    client: PlatformClient,
    owner: str,
    repo: str,
    actor: str,
    config: PlatformConfig,
) -> bool:
    """Check whether the actor can write to the repository.

    Forgejo instances without the permission endpoint (404) are allowed
    through.

    Returns:
        True if the actor has write access

    Raises:
        PlatformAPIError: If the permission lookup fails
    """
    try:
        permission = await client.get_collaborator_permission(owner, repo, actor)
    except PlatformAPIError as e:
        if e.is_not_found and config.platform == Platform.FORGEJO:
            logger.warning("permissions.endpoint_unavailable", actor=actor)
            return True
        logger.error("permissions.check_failed", actor=actor, error=str(e))
        raise

    if permission in WRITE_PERMISSIONS:
        logger.info("permissions.granted", actor=actor, permission=permission)
        return True

    logger.warning("permissions.insufficient", actor=actor, permission=permission)
    return False
