"""Shared base class for httpx-based torrent index providers.

Holds the plumbing every scraper needs: the shared ``httpx.AsyncClient``,
a per-provider logger and a fetch helper that logs failures instead of
raising. Subclasses structurally satisfy ``ProviderPort``.
"""

from __future__ import annotations

import asyncio
import re

import httpx
import structlog

from corsaro.domain.entities.candidates import RawCandidate
from corsaro.domain.ports.provider import ProviderScope

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
    "AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/131.0.0.0 Safari/537.36"
)
DEFAULT_TIMEOUT = 8.0
DEFAULT_MAX_CONCURRENT = 5

_DIGITS_RE = re.compile(r"\d+")


def to_int(text: str | None) -> int:
    """First run of digits in *text* (thousand separators ignored), else 0."""
    if not text:
        return 0
    match = _DIGITS_RE.search(text.replace(",", "").replace(".", ""))
    return int(match.group()) if match else 0


class ProviderBase:
    """Shared base for scraping providers.

    Subclasses **must** set ``name`` and override ``search()``.
    """

    name: str = ""
    scope: ProviderScope = "global"

    _timeout: float = DEFAULT_TIMEOUT
    _max_concurrent: int = DEFAULT_MAX_CONCURRENT
    _user_agent: str = DEFAULT_USER_AGENT

    def __init__(
        self,
        *,
        http_client: httpx.AsyncClient,
        timeout: float | None = None,
    ) -> None:
        self._client = http_client
        if timeout is not None:
            self._timeout = timeout
        self._log = structlog.get_logger(self.name or __name__)

    async def _safe_fetch(
        self,
        url: str,
        *,
        context: str = "",
        **kwargs: object,
    ) -> httpx.Response | None:
        """GET *url* with structured error logging.

        Returns ``None`` on failure instead of raising.
        """
        try:
            resp = await self._client.get(
                url,
                timeout=self._timeout,
                follow_redirects=True,
                headers={"User-Agent": self._user_agent},
                **kwargs,
            )
            resp.raise_for_status()
            return resp
        except httpx.TimeoutException:
            self._log.warning(f"{self.name}_timeout", url=url, context=context)
        except httpx.HTTPStatusError as exc:
            self._log.warning(
                f"{self.name}_http_error",
                url=url,
                status=exc.response.status_code,
                context=context,
            )
        except httpx.HTTPError as exc:
            self._log.warning(
                f"{self.name}_fetch_error",
                url=url,
                error=str(exc),
                context=context,
            )
        return None

    def _new_semaphore(self) -> asyncio.Semaphore:
        """Bound for concurrent detail page fetches."""
        return asyncio.Semaphore(self._max_concurrent)

    async def search(self, query: str, year: int | None = None) -> list[RawCandidate]:
        raise NotImplementedError(f"{type(self).__name__}.search() not implemented")
