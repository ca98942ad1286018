"""Platform client construction.

New forges are added by registering a factory in CLIENT_FACTORIES.
"""

from collections.abc import Callable

from forgebridge.core.logging import get_logger
from forgebridge.forgejo.client import ForgejoClient
from forgebridge.github.client import GitHubClient
from forgebridge.platform.detector import (
    Platform,
    PlatformConfig,
    get_platform_config,
    get_platform_token,
)
from forgebridge.platform.interface import PlatformClient

logger = get_logger(__name__)


def _github_client(config: PlatformConfig, token: str) -> PlatformClient:
    return GitHubClient(token=token, api_url=config.api_url)


def _forgejo_client(config: PlatformConfig, token: str) -> PlatformClient:
    return ForgejoClient(api_url=config.api_url, token=token)


CLIENT_FACTORIES: dict[Platform, Callable[[PlatformConfig, str], PlatformClient]] = {
    Platform.GITHUB: _github_client,
    Platform.FORGEJO: _forgejo_client,
}


def create_platform_client(
    config: PlatformConfig | None = None,
    token: str | None = None,
) -> PlatformClient:
    """Create the client for the active forge.

    Args:
        config: Resolved platform config (defaults to the process-wide config)
        token: Credential (defaults to the platform token from settings)

    Returns:
        Client implementing PlatformClient
    """
    config = config or get_platform_config()
    auth_token = token or get_platform_token()

    factory = CLIENT_FACTORIES[config.platform]
    logger.debug("platform.client.created", platform=config.platform.value, api_url=config.api_url)
    return factory(config, auth_token)
