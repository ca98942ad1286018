"""Platform-agnostic data fetcher.

Turns (repository, number, kind) into one canonical snapshot of an issue or
pull request, whichever forge hosts it. Failures that would leave the primary
entity incomplete are raised; failures of optional enrichment (image
resolution, trigger display name) are recorded as degradations instead.
"""

from functools import partial
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from forgebridge.core.config import get_settings
from forgebridge.core.logging import entity_correlation_id, get_logger, set_correlation_id
from forgebridge.platform.detector import (
    Platform,
    PlatformConfig,
    get_platform_config,
    get_platform_token,
)
from forgebridge.platform.factory import create_platform_client
from forgebridge.platform.images import (
    CommentWithImages,
    ImageDownloader,
    download_comment_images,
)
from forgebridge.platform.interface import PlatformClient
from forgebridge.shared.exceptions import ConfigError, ForgeBridgeError, PlatformDataError
from forgebridge.shared.models import (
    Comment,
    Issue,
    PullRequest,
    PullRequestFile,
    Review,
    User,
)

logger = get_logger(__name__)


class Degradation(BaseModel):
    """An optional enrichment step that failed and was replaced by a fallback."""

    model_config = ConfigDict(frozen=True)

    step: Literal["images", "trigger_display_name"]
    reason: str


class FetchDataResult(BaseModel):
    """Canonical context handed to branch setup and prompt construction.

    Attributes:
        context_data: The issue or pull request
        comments: Conversation comments of the entity
        changed_files: Files changed by the pull request (empty for issues)
        review_data: Reviews of the pull request, None if there are none
        image_url_map: Original image URL to local path (GitHub only)
        trigger_display_name: Display name of the triggering user
        degradations: Enrichment steps that fell back to a default
    """

    model_config = ConfigDict(frozen=True)

    context_data: PullRequest | Issue
    comments: list[Comment] = Field(default_factory=list)
    changed_files: list[PullRequestFile] = Field(default_factory=list)
    review_data: list[Review] | None = None
    image_url_map: dict[str, str] = Field(default_factory=dict)
    trigger_display_name: str | None = None
    degradations: list[Degradation] = Field(default_factory=list)

    @property
    def is_pr(self) -> bool:
        """Whether the fetched entity is a pull request."""
        return isinstance(self.context_data, PullRequest)

    @property
    def is_degraded(self) -> bool:
        """Whether any enrichment step fell back to a default."""
        return bool(self.degradations)


def split_repository(repository: str) -> tuple[str, str]:
    """Split ``owner/repo``.

    Raises:
        ConfigError: If the value is not exactly two non-empty parts
    """
    parts = repository.split("/")
    if len(parts) != 2 or not all(part.strip() for part in parts):
        raise ConfigError(
            f"Invalid repository format: {repository!r}. Expected 'owner/repo'."
        )
    return parts[0].strip(), parts[1].strip()


def _parse_number(value: int | str) -> int:
    try:
        number = int(value)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"Invalid issue or pull request number: {value!r}") from e
    if number <= 0:
        raise ConfigError(f"Invalid issue or pull request number: {value!r}")
    return number


def _with_computed_totals(pr: PullRequest) -> PullRequest:
    """Derive additions/deletions from the file list when the forge reported none."""
    if pr.additions or pr.deletions or not pr.files:
        return pr
    return pr.model_copy(
        update={
            "additions": sum(f.additions for f in pr.files),
            "deletions": sum(f.deletions for f in pr.files),
        }
    )


def _login_only(user: User) -> User:
    return User(login=user.login, id=user.id)


def _project_authors(entity: PullRequest | Issue) -> PullRequest | Issue:
    """Reduce every nested author to login and numeric id.

    Display names, emails and account types are only exposed by some forges
    and transports, so they are dropped from the snapshot.
    """
    update: dict[str, object] = {
        "author": _login_only(entity.author),
        "comments": [
            c.model_copy(update={"author": _login_only(c.author)}) for c in entity.comments
        ],
    }
    if isinstance(entity, PullRequest):
        update["reviews"] = [
            review.model_copy(
                update={
                    "author": _login_only(review.author),
                    "comments": [
                        rc.model_copy(update={"author": _login_only(rc.author)})
                        for rc in review.comments
                    ],
                }
            )
            for review in entity.reviews
        ]
    return entity.model_copy(update=update)


def _ensure_unique_ids(entity: PullRequest | Issue) -> None:
    """Reject payloads where two comments or reviews share a forge id.

    Id 0 marks a transport without numeric ids and is not checked.
    """
    keys = [("comment", c.id) for c in entity.comments]
    if isinstance(entity, PullRequest):
        for review in entity.reviews:
            keys.append(("review", review.id))
            keys.extend(("review_comment", rc.id) for rc in review.comments)

    seen: set[tuple[str, int]] = set()
    for key in keys:
        if key[1] == 0:
            continue
        if key in seen:
            raise PlatformDataError(f"Duplicate {key[0]} id {key[1]} in #{entity.number}")
        seen.add(key)


def _bodies(entity: PullRequest | Issue) -> list[CommentWithImages]:
    bodies = [CommentWithImages(body=entity.body)]
    bodies.extend(CommentWithImages(body=c.body) for c in entity.comments)
    if isinstance(entity, PullRequest):
        for review in entity.reviews:
            bodies.append(CommentWithImages(body=review.body))
            bodies.extend(CommentWithImages(body=rc.body) for rc in review.comments)
    return bodies


async def fetch_platform_data(
    *,
    repository: str,
    pr_number: int | str,
    is_pr: bool,
    trigger_username: str | None = None,
    token: str | None = None,
    client: PlatformClient | None = None,
    config: PlatformConfig | None = None,
    image_downloader: ImageDownloader | None = None,
) -> FetchDataResult:
    """Fetch an issue or pull request and normalize it.

    Args:
        repository: Repository as ``owner/repo``
        pr_number: Issue or pull request number
        is_pr: Whether the entity is a pull request
        trigger_username: Login of the user who triggered the run
        token: Credential used when a client has to be created
        client: Pre-built platform client (one is created otherwise)
        config: Platform config used when a client has to be created
        image_downloader: Image resolver for the GitHub image pass

    Returns:
        FetchDataResult snapshot

    Raises:
        ConfigError: If repository or number are malformed (before any request)
        PlatformAPIError: If fetching the primary entity fails
        PlatformDataError: If the payload violates id uniqueness
    """
    owner, repo = split_repository(repository)
    number = _parse_number(pr_number)

    owns_client = client is None
    platform_client = client or create_platform_client(config or get_platform_config(), token)
    set_correlation_id(entity_correlation_id(owner, repo, number))

    try:
        entity: PullRequest | Issue
        try:
            if is_pr:
                entity = _with_computed_totals(
                    await platform_client.get_pull_request(owner, repo, number)
                )
            else:
                entity = await platform_client.get_issue(owner, repo, number)
            entity = _project_authors(entity)
            _ensure_unique_ids(entity)
        except Exception as e:
            logger.error(
                "platform_data.fetch_failed",
                platform=platform_client.platform.value,
                is_pr=is_pr,
                error=str(e),
            )
            raise

        degradations: list[Degradation] = []

        image_url_map: dict[str, str] = {}
        if platform_client.platform == Platform.GITHUB:
            downloader = image_downloader or partial(
                download_comment_images,
                download_dir=get_settings().image_download_dir,
                token=token or get_platform_token(),
            )
            try:
                image_url_map = await downloader(_bodies(entity))
            except (ForgeBridgeError, OSError) as e:
                logger.warning("platform_data.images_failed", error=str(e))
                degradations.append(Degradation(step="images", reason=str(e)))

        trigger_display_name: str | None = None
        if trigger_username:
            try:
                user = await platform_client.get_user(trigger_username)
                trigger_display_name = user.name or user.login
            except ForgeBridgeError as e:
                logger.warning(
                    "platform_data.trigger_user_failed",
                    username=trigger_username,
                    error=str(e),
                )
                trigger_display_name = trigger_username
                degradations.append(Degradation(step="trigger_display_name", reason=str(e)))

        result = FetchDataResult(
            context_data=entity,
            comments=entity.comments,
            changed_files=entity.files if isinstance(entity, PullRequest) else [],
            review_data=(entity.reviews or None) if isinstance(entity, PullRequest) else None,
            image_url_map=image_url_map,
            trigger_display_name=trigger_display_name,
            degradations=degradations,
        )

        logger.info(
            "platform_data.fetched",
            platform=platform_client.platform.value,
            is_pr=is_pr,
            comments=len(result.comments),
            files=len(result.changed_files),
            images=len(image_url_map),
            degraded=result.is_degraded,
        )
        return result

    finally:
        if owns_client:
            await platform_client.close()
