"""Real-Debrid REST client (async httpx).

Only the torrent endpoints needed to confirm a cached torrent and turn it
into a direct link are implemented. HTTP failures are mapped onto the
``DebridError`` hierarchy so callers can tell a bad token from a
throttled or flaky service.
"""

from __future__ import annotations

from typing import Any

import httpx
import structlog

from corsaro.domain.entities.streams import DebridFile, DebridTorrent, UnrestrictedLink
from corsaro.domain.errors import (
    DebridAuthError,
    DebridError,
    DebridPermissionDenied,
    DebridRateLimited,
    DebridServiceUnavailable,
    DebridTransientError,
)

log = structlog.get_logger(__name__)

_BASE_URL = "https://api.real-debrid.com/rest/1.0"
DEFAULT_TIMEOUT = 20.0

_STATUS_ERRORS: dict[int, type[DebridError]] = {
    401: DebridAuthError,
    403: DebridPermissionDenied,
    429: DebridRateLimited,
    503: DebridServiceUnavailable,
}


def _error_for_status(status: int, body: str) -> DebridError:
    error_cls = _STATUS_ERRORS.get(status, DebridTransientError)
    return error_cls(f"HTTP {status}: {body[:200]}", status=status)


class RealDebridClient:
    """Real-Debrid API client bound to one user token.

    Implements ``DebridClientPort`` from domain.ports.debrid. The shared
    ``httpx.AsyncClient`` is owned by the caller.
    """

    def __init__(
        self,
        *,
        api_key: str,
        http_client: httpx.AsyncClient,
        base_url: str = _BASE_URL,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        self._http = http_client
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._headers = {"Authorization": f"Bearer {api_key}"}

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    async def _request(
        self,
        method: str,
        path: str,
        *,
        data: dict[str, str] | None = None,
    ) -> Any:
        """Send one request. Returns parsed JSON or None for empty bodies."""
        url = f"{self._base_url}{path}"
        try:
            resp = await self._http.request(
                method,
                url,
                data=data,
                headers=self._headers,
                timeout=self._timeout,
            )
        except httpx.TimeoutException as exc:
            raise DebridTransientError(f"timeout on {path}") from exc
        except httpx.HTTPError as exc:
            raise DebridTransientError(f"network error on {path}: {exc}") from exc

        if resp.status_code >= 400:
            error = _error_for_status(resp.status_code, resp.text)
            log.debug(
                "realdebrid_http_error",
                path=path,
                status=resp.status_code,
                code=error.code,
            )
            raise error

        if resp.status_code == 204 or not resp.content:
            return None
        try:
            return resp.json()
        except ValueError as exc:
            raise DebridTransientError(f"invalid JSON from {path}") from exc

    @staticmethod
    def _parse_torrent(data: dict[str, Any]) -> DebridTorrent:
        files = tuple(
            DebridFile(
                id=int(f.get("id", 0)),
                path=str(f.get("path", "")),
                size_bytes=int(f.get("bytes") or 0),
                selected=bool(f.get("selected")),
            )
            for f in data.get("files") or []
        )
        return DebridTorrent(
            id=str(data.get("id", "")),
            status=str(data.get("status", "")),
            filename=str(data.get("filename", "")),
            files=files,
            links=tuple(str(link) for link in data.get("links") or []),
        )

    # ------------------------------------------------------------------
    # Public API (DebridClientPort)
    # ------------------------------------------------------------------

    async def add_magnet(self, magnet_uri: str) -> str:
        data = await self._request(
            "POST", "/torrents/addMagnet", data={"magnet": magnet_uri}
        )
        if not isinstance(data, dict) or not data.get("id"):
            raise DebridTransientError("addMagnet returned no torrent id")
        return str(data["id"])

    async def get_info(self, torrent_id: str) -> DebridTorrent:
        data = await self._request("GET", f"/torrents/info/{torrent_id}")
        if not isinstance(data, dict):
            raise DebridTransientError("torrent info is not an object")
        return self._parse_torrent(data)

    async def select_files(self, torrent_id: str, file_ids: list[int] | None) -> None:
        files = "all" if not file_ids else ",".join(str(i) for i in file_ids)
        await self._request(
            "POST", f"/torrents/selectFiles/{torrent_id}", data={"files": files}
        )

    async def unrestrict_link(self, link: str) -> UnrestrictedLink:
        data = await self._request("POST", "/unrestrict/link", data={"link": link})
        if not isinstance(data, dict) or not data.get("download"):
            raise DebridTransientError("unrestrict returned no download url")
        return UnrestrictedLink(
            url=str(data["download"]),
            filename=str(data.get("filename", "")),
            size_bytes=int(data.get("filesize") or 0),
        )

    async def delete_torrent(self, torrent_id: str) -> None:
        await self._request("DELETE", f"/torrents/delete/{torrent_id}")
