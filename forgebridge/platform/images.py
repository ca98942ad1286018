"""Image side channel: download images attached to GitHub bodies.

The agent cannot fetch authenticated attachment URLs itself, so every image
referenced in an issue, pull request, comment or review is saved locally and
the original URL is mapped to the local path.
"""

import hashlib
import re
from pathlib import Path
from typing import Protocol
from urllib.parse import urlparse

import aiohttp
from pydantic import BaseModel, Field

from forgebridge.core.logging import get_logger
from forgebridge.shared.exceptions import ImageDownloadError

logger = get_logger(__name__)

# Hosts serving files users attach to GitHub issues and comments
GITHUB_IMAGE_PREFIXES = (
    "https://github.com/user-attachments/assets/",
    "https://user-images.githubusercontent.com/",
    "https://private-user-images.githubusercontent.com/",
)

MARKDOWN_IMAGE_RE = re.compile(r"!\[[^\]]*\]\((?P<url>[^)\s]+)(?:\s+\"[^\"]*\")?\)")
HTML_IMAGE_RE = re.compile(r"<img\s[^>]*?src=[\"'](?P<url>[^\"']+)[\"']", re.IGNORECASE)

CONTENT_TYPE_SUFFIXES = {
    "image/png": ".png",
    "image/jpeg": ".jpg",
    "image/gif": ".gif",
    "image/webp": ".webp",
    "image/svg+xml": ".svg",
}


class CommentWithImages(BaseModel):
    """A text body and any image URLs already known for it."""

    body: str = ""
    images: list[str] = Field(default_factory=list)


class ImageDownloader(Protocol):
    """Resolves image references found in bodies to downloadable locations."""

    async def __call__(self, comments: list[CommentWithImages]) -> dict[str, str]:
        """Return a mapping from original image URL to resolved location."""
        ...


def extract_image_urls(body: str | None) -> list[str]:
    """Find GitHub-hosted image URLs in markdown and HTML image tags.

    Returns:
        URLs in order of first appearance, without duplicates
    """
    if not body:
        return []
    found = [m.group("url") for m in MARKDOWN_IMAGE_RE.finditer(body)]
    found += [m.group("url") for m in HTML_IMAGE_RE.finditer(body)]
    urls = [url for url in found if url.startswith(GITHUB_IMAGE_PREFIXES)]
    return list(dict.fromkeys(urls))


def _local_name(url: str, content_type: str | None) -> str:
    digest = hashlib.sha256(url.encode()).hexdigest()[:16]
    suffix = Path(urlparse(url).path).suffix.lower()
    if not suffix and content_type:
        suffix = CONTENT_TYPE_SUFFIXES.get(content_type.split(";")[0].strip(), "")
    return f"image-{digest}{suffix}"


async def _download(session: aiohttp.ClientSession, url: str, target_dir: Path) -> str:
    try:
        async with session.get(url) as response:
            if response.status != 200:
                raise ImageDownloadError(f"GET {url} returned {response.status}")
            content = await response.read()
            path = target_dir / _local_name(url, response.headers.get("Content-Type"))
    except aiohttp.ClientError as e:
        raise ImageDownloadError(f"GET {url} failed: {e}") from e

    path.write_bytes(content)
    return str(path)


async def download_comment_images(
    comments: list[CommentWithImages],
    download_dir: str = "/tmp/github-images",
    token: str | None = None,
    session: aiohttp.ClientSession | None = None,
) -> dict[str, str]:
    """Download every image referenced by the given bodies.

    Images that fail to download are logged and left out of the mapping.

    Args:
        comments: Bodies to scan, with any pre-extracted image URLs
        download_dir: Directory images are written to
        token: GitHub token for private attachments
        session: Optional aiohttp session to reuse

    Returns:
        Mapping from original image URL to local file path
    """
    urls: list[str] = []
    for comment in comments:
        urls.extend(comment.images)
        urls.extend(extract_image_urls(comment.body))
    urls = list(dict.fromkeys(urls))
    if not urls:
        return {}

    target_dir = Path(download_dir)
    target_dir.mkdir(parents=True, exist_ok=True)

    owns_session = session is None
    if session is None:
        headers = {"Authorization": f"Bearer {token}"} if token else {}
        session = aiohttp.ClientSession(headers=headers)

    url_map: dict[str, str] = {}
    try:
        for url in urls:
            try:
                url_map[url] = await _download(session, url, target_dir)
            except ImageDownloadError as e:
                logger.warning("images.download.failed", url=url, error=str(e))
    finally:
        if owns_session:
            await session.close()

    logger.info("images.downloaded", found=len(urls), downloaded=len(url_map))
    return url_map
