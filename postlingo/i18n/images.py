"""
Image relocation for the batch job.

The content store hands out signed image URLs that expire after about an
hour. Before a post is stored and translated, every image pointing at such
a URL is downloaded once and the reference rewritten to a stable local
path, so neither the source entry nor any translation carries an expiring
link. A failed download leaves the original URL in place.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path, PurePosixPath
from urllib.parse import urlsplit

import httpx
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
    wait_none,
)

from postlingo.core.utils import short_hash

logger = logging.getLogger(__name__)


_IMAGE_REF = re.compile(r"(!\[[^\]]*\]\()([^)\s]+)((?:\s+\"[^\"]*\")?\))")

_KNOWN_EXTENSIONS = {".png", ".jpg", ".jpeg", ".gif", ".webp", ".svg", ".avif"}


class ImageRelocator:
    """
    Downloads transient images and rewrites markdown to point at local copies.

    Files are content-addressed by a hash of the URL (query string removed,
    since the signature changes on every fetch) and never downloaded twice.
    """

    def __init__(
        self,
        image_dir: Path | str,
        url_prefix: str,
        transient_pattern: str,
        client: httpx.AsyncClient | None = None,
        timeout: float = 30.0,
        attempts: int = 3,
        retry_wait: bool = True,
    ):
        self.image_dir = Path(image_dir)
        self.url_prefix = url_prefix.rstrip("/")
        self.transient = re.compile(transient_pattern)
        self.timeout = timeout
        self.attempts = attempts
        self.retry_wait = retry_wait
        self._client = client
        self._relocated: dict[str, str] = {}

    def is_transient(self, url: str) -> bool:
        return bool(self.transient.search(url))

    def local_name(self, url: str) -> str:
        """File name for a URL: hash of the URL without query, plus extension."""
        parts = urlsplit(url)
        stable = parts._replace(query="", fragment="").geturl()
        suffix = PurePosixPath(parts.path).suffix.lower()
        if suffix not in _KNOWN_EXTENSIONS:
            suffix = ".png"
        return f"{short_hash(stable, 16)}{suffix}"

    async def relocate(self, markdown: str) -> str:
        """
        Rewrite every transient image reference in `markdown`.

        Returns:
            Markdown with local image paths where the download succeeded
        """
        urls = {m.group(2) for m in _IMAGE_REF.finditer(markdown) if self.is_transient(m.group(2))}
        if not urls:
            return markdown

        for url in urls:
            if url not in self._relocated:
                local = await self._localize(url)
                if local is not None:
                    self._relocated[url] = local

        def _rewrite(match: re.Match[str]) -> str:
            url = match.group(2)
            return f"{match.group(1)}{self._relocated.get(url, url)}{match.group(3)}"

        return _IMAGE_REF.sub(_rewrite, markdown)

    async def _localize(self, url: str) -> str | None:
        name = self.local_name(url)
        path = self.image_dir / name
        public_url = f"{self.url_prefix}/{name}"

        if path.exists():
            logger.debug(f"Image already downloaded: {name}")
            return public_url

        try:
            data = await self._download(url)
            self.image_dir.mkdir(parents=True, exist_ok=True)
            path.write_bytes(data)
        except (httpx.HTTPError, OSError) as e:
            logger.warning(f"Could not relocate image {urlsplit(url).path}: {e!r}; keeping original URL")
            return None

        logger.info(f"Downloaded image {name} ({len(data)} bytes)")
        return public_url

    async def _download(self, url: str) -> bytes:
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.attempts),
            wait=wait_exponential(multiplier=1, min=1, max=8) if self.retry_wait else wait_none(),
            retry=retry_if_exception_type(httpx.HTTPError),
            reraise=True,
        )
        async for attempt in retrying:
            with attempt:
                return await self._fetch(url)
        raise AssertionError("unreachable")  # pragma: no cover

    async def _fetch(self, url: str) -> bytes:
        if self._client is not None:
            response = await self._client.get(url, timeout=self.timeout)
        else:
            async with httpx.AsyncClient(timeout=self.timeout, follow_redirects=True) as client:
                response = await client.get(url)
        response.raise_for_status()
        return response.content
