"""Links to forge web pages (as opposed to API endpoints)."""

from urllib.parse import urlparse

from forgebridge.core.config import Settings, get_settings
from forgebridge.core.logging import get_logger
from forgebridge.platform.detector import Platform, PlatformConfig, get_platform_config

logger = get_logger(__name__)


def _origin(url: str) -> str | None:
    parsed = urlparse(url)
    if not parsed.scheme or not parsed.netloc:
        return None
    return f"{parsed.scheme}://{parsed.netloc}"


def get_external_base_url(
    config: PlatformConfig | None = None,
    settings: Settings | None = None,
) -> str:
    """Get the browser-facing base URL of the forge.

    For Forgejo, in order: the URL extracted from the event payload, the
    configured external URL, then the API URL without its path. GitHub
    (and any Forgejo fallthrough) uses the configured server URL.
    """
    config = config or get_platform_config()
    settings = settings or get_settings()

    if config.platform == Platform.FORGEJO:
        if settings.forgejo_extracted_url:
            return settings.forgejo_extracted_url.removesuffix("/")

        for name, value in (
            ("forgejo_external_url", settings.forgejo_external_url),
            ("forgejo_api_url", settings.forgejo_api_url),
        ):
            if not value:
                continue
            origin = _origin(value)
            if origin:
                return origin
            logger.warning("url.parse_failed", setting=name, value=value)

    return settings.github_server_url.removesuffix("/")


def create_job_run_link(
    owner: str,
    repo: str,
    run_id: str,
    config: PlatformConfig | None = None,
    settings: Settings | None = None,
) -> str:
    """Markdown link to a workflow run (same path layout on both forges)."""
    base_url = get_external_base_url(config, settings)
    return f"[View job run]({base_url}/{owner}/{repo}/actions/runs/{run_id})"


def create_branch_link(
    owner: str,
    repo: str,
    branch_name: str,
    config: PlatformConfig | None = None,
    settings: Settings | None = None,
) -> str:
    """Markdown link to a branch, preceded by a newline.

    Forgejo browses branches under ``src/branch``, GitHub under ``tree``.
    """
    config = config or get_platform_config()
    base_url = get_external_base_url(config, settings)

    if config.platform == Platform.FORGEJO:
        branch_url = f"{base_url}/{owner}/{repo}/src/branch/{branch_name}"
    else:
        branch_url = f"{base_url}/{owner}/{repo}/tree/{branch_name}"

    return f"\n[View branch]({branch_url})"
