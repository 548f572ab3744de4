"""
Website Fetcher
===============

Downloads a church website and reduces it to plain text suitable for an AI
prompt.
"""

from __future__ import annotations

import logging
import re
import time
from collections.abc import Callable

import httpx
from bs4 import BeautifulSoup, Comment

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10.0
MAX_TEXT_CHARS = 50_000
MAX_RESPONSE_BYTES = 2_000_000

_STRIPPED_TAGS = ["script", "style", "noscript"]
_WHITESPACE = re.compile(r"\s+")


class WebsiteFetchError(Exception):
    """Raised when a website cannot be fetched."""


def html_to_text(html: str, max_chars: int = MAX_TEXT_CHARS) -> str:
    """
    Convert HTML to plain text.

    Script, style and noscript elements and comments are dropped, entities
    are decoded and whitespace is collapsed.
    """
    soup = BeautifulSoup(html, "html.parser")
    for tag in soup(_STRIPPED_TAGS):
        tag.decompose()
    for comment in soup.find_all(string=lambda s: isinstance(s, Comment)):
        comment.extract()

    text = _WHITESPACE.sub(" ", soup.get_text(" ", strip=True)).strip()
    return text[:max_chars]


class WebsiteFetcher:
    """
    Fetches church websites within a total time and size budget.

    The timeout bounds the whole download, not just each network phase, and
    the body is read in chunks so an oversized page is abandoned early.
    """

    def __init__(
        self,
        contact_email: str,
        timeout: float = DEFAULT_TIMEOUT,
        max_bytes: int = MAX_RESPONSE_BYTES,
        http_client: httpx.Client | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.user_agent = f"ChurchDirectory/1.0 ({contact_email})"
        self.timeout = timeout
        self.max_bytes = max_bytes
        self._clock = clock
        self._http = http_client or httpx.Client(timeout=timeout, follow_redirects=True)

    def fetch_text(self, url: str) -> str:
        """
        Fetch a page and return its cleaned text.

        Raises:
            WebsiteFetchError: On timeout, oversized body, invalid URL,
                transport error or non-2xx status.
        """
        deadline = self._clock() + self.timeout
        try:
            with self._http.stream(
                "GET",
                url,
                headers={"User-Agent": self.user_agent},
                timeout=self.timeout,
            ) as response:
                if not response.is_success:
                    raise WebsiteFetchError(f"HTTP {response.status_code}")
                body = self._read_body(response, deadline)
                encoding = response.encoding or "utf-8"
        except httpx.TimeoutException as e:
            raise WebsiteFetchError(f"Timeout after {self.timeout}s") from e
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise WebsiteFetchError(str(e)) from e

        text = html_to_text(body.decode(encoding, errors="replace"))
        logger.debug(f"Fetched {url}: {len(text)} chars of text")
        return text

    def _read_body(self, response: httpx.Response, deadline: float) -> bytes:
        chunks: list[bytes] = []
        size = 0
        for chunk in response.iter_bytes():
            if self._clock() > deadline:
                raise WebsiteFetchError(f"Timeout after {self.timeout}s")
            size += len(chunk)
            if size > self.max_bytes:
                raise WebsiteFetchError(f"Response larger than {self.max_bytes} bytes")
            chunks.append(chunk)
        return b"".join(chunks)

    def close(self) -> None:
        self._http.close()
