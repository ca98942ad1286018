"""Platform detection: decide whether the run targets GitHub or Forgejo."""

from enum import Enum

from pydantic import BaseModel, ConfigDict

from forgebridge.core.config import Settings, get_settings
from forgebridge.shared.exceptions import ConfigError

DEFAULT_GITHUB_API_URL = "https://api.github.com"

# Substrings of an API URL that identify a Forgejo/Gitea instance
FORGEJO_URL_MARKERS = ("/api/v1", "forgejo", "gitea")

# Cached process-wide config
_platform_config: "PlatformConfig | None" = None


class Platform(str, Enum):
    """Supported forges."""

    GITHUB = "github"
    FORGEJO = "forgejo"


class PlatformConfig(BaseModel):
    """Resolved platform for the current run.

    Attributes:
        platform: Active forge
        api_url: Base API URL as configured (not normalized)
        api_version: API version, "v1" for Forgejo
        is_graphql_supported: Whether the forge offers a GraphQL endpoint
    """

    model_config = ConfigDict(frozen=True)

    platform: Platform
    api_url: str
    api_version: str | None = None
    is_graphql_supported: bool


def _forgejo_config(api_url: str) -> PlatformConfig:
    return PlatformConfig(
        platform=Platform.FORGEJO,
        api_url=api_url,
        api_version="v1",
        is_graphql_supported=False,
    )


def detect_platform(settings: Settings | None = None) -> PlatformConfig:
    """Detect the active forge from configuration.

    First match wins: explicit Forgejo flag, any Forgejo setting, a
    Forgejo-looking API URL, otherwise GitHub.

    Args:
        settings: Settings to inspect (defaults to the global settings)

    Returns:
        PlatformConfig for the detected forge
    """
    settings = settings or get_settings()
    github_api_url = settings.github_api_url or DEFAULT_GITHUB_API_URL

    if settings.use_forgejo:
        return _forgejo_config(settings.forgejo_api_url or github_api_url)

    if settings.forgejo_api_url or settings.forgejo_token:
        return _forgejo_config(settings.forgejo_api_url or github_api_url)

    if any(marker in github_api_url for marker in FORGEJO_URL_MARKERS):
        return _forgejo_config(github_api_url)

    return PlatformConfig(
        platform=Platform.GITHUB,
        api_url=github_api_url,
        is_graphql_supported=True,
    )


def get_platform_config() -> PlatformConfig:
    """Get or detect the process-wide PlatformConfig (cached singleton)."""
    global _platform_config
    if _platform_config is None:
        _platform_config = detect_platform()
    return _platform_config


def get_platform_token(settings: Settings | None = None) -> str:
    """Get the credential for the detected forge.

    Forgejo prefers FORGEJO_TOKEN and falls back to GITHUB_TOKEN; GitHub
    only uses GITHUB_TOKEN.

    Returns:
        Token, or empty string if none is configured
    """
    settings = settings or get_settings()
    config = detect_platform(settings)

    if config.platform == Platform.FORGEJO:
        return settings.forgejo_token or settings.github_token or ""

    return settings.github_token or ""


def setup_platform_token(settings: Settings | None = None) -> str:
    """Resolve the token a run must authenticate with.

    Args:
        settings: Settings to inspect (defaults to the global settings)

    Returns:
        Non-empty token

    Raises:
        ConfigError: If no token is configured for the detected forge
    """
    settings = settings or get_settings()
    config = detect_platform(settings)

    if config.platform == Platform.FORGEJO:
        token = settings.forgejo_token or settings.override_github_token or settings.github_token
        if not token:
            raise ConfigError(
                "No Forgejo token found. Please provide FORGEJO_TOKEN in your repository secrets."
            )
        return token

    token = settings.override_github_token or settings.github_token
    if not token:
        raise ConfigError("No GitHub token found. Please provide GITHUB_TOKEN.")
    return token


def normalize_api_url(url: str, platform: Platform) -> str:
    """Normalize an API base URL.

    Strips a trailing slash; Forgejo URLs always end in ``/api/v1``.
    The URL itself is not validated.

    Example:
        >>> normalize_api_url("https://forge.example/api", Platform.FORGEJO)
        'https://forge.example/api/v1'
    """
    url = url.removesuffix("/")

    if platform == Platform.FORGEJO and not url.endswith("/api/v1"):
        if url.endswith("/api"):
            return f"{url}/v1"
        return f"{url}/api/v1"

    return url
