"""Generic Torznab indexer client (Jackett, Prowlarr and friends).

Feed format: http://torznab.com/schemas/2015/feed
"""

from __future__ import annotations

from urllib.parse import quote
from xml.etree import ElementTree as ET

import httpx

from corsaro.domain.entities.candidates import RawCandidate
from corsaro.domain.ports.provider import ProviderScope

from .base import ProviderBase, to_int

_TORZNAB_NS = "http://torznab.com/schemas/2015/feed"
_ATTR_TAG = f"{{{_TORZNAB_NS}}}attr"


def _attributes(item: ET.Element) -> dict[str, str]:
    return {
        attr.get("name", ""): attr.get("value", "")
        for attr in item.iter(_ATTR_TAG)
    }


def _magnet_for(item: ET.Element, attrs: dict[str, str], title: str) -> str:
    magnet = attrs.get("magneturl", "")
    if magnet.startswith("magnet:"):
        return magnet
    enclosure = item.find("enclosure")
    for url in (
        item.findtext("link") or "",
        enclosure.get("url", "") if enclosure is not None else "",
    ):
        if url.startswith("magnet:"):
            return url
    info_hash = attrs.get("infohash", "")
    if info_hash:
        return f"magnet:?xt=urn:btih:{info_hash}&dn={quote(title)}"
    return ""


def parse_feed(xml_text: str, source_name: str) -> list[RawCandidate]:
    """Items of a Torznab RSS feed that carry a magnet or info-hash."""
    root = ET.fromstring(xml_text)
    results: list[RawCandidate] = []
    for item in root.iter("item"):
        title = (item.findtext("title") or "").strip()
        if not title:
            continue
        attrs = _attributes(item)
        magnet = _magnet_for(item, attrs, title)
        if not magnet:
            continue
        size = to_int(item.findtext("size") or attrs.get("size"))
        results.append(
            RawCandidate(
                display_title=title,
                magnet_uri=magnet,
                source_name=source_name,
                size_hint_bytes=size or None,
                seeders=to_int(attrs.get("seeders")),
            )
        )
    return results


class TorznabProvider(ProviderBase):
    """Any Torznab endpoint exposed as a provider.

    Operators register one instance per indexer; ``scope`` is usually
    ``"local"`` for Italian trackers.
    """

    def __init__(
        self,
        *,
        name: str,
        url: str,
        http_client: httpx.AsyncClient,
        api_key: str = "",
        scope: ProviderScope = "local",
        categories: tuple[int, ...] = (),
        timeout: float | None = None,
    ) -> None:
        self.name = name
        self.scope = scope
        super().__init__(http_client=http_client, timeout=timeout)
        self._url = url
        self._api_key = api_key
        self._categories = categories

    async def search(self, query: str, year: int | None = None) -> list[RawCandidate]:
        params: dict[str, str] = {"t": "search", "q": query}
        if self._api_key:
            params["apikey"] = self._api_key
        if self._categories:
            params["cat"] = ",".join(str(c) for c in self._categories)

        resp = await self._safe_fetch(self._url, context="search", params=params)
        if resp is None:
            return []
        try:
            results = parse_feed(resp.text, self.name)
        except ET.ParseError:
            self._log.warning(f"{self.name}_invalid_feed", url=self._url)
            return []
        self._log.debug("torznab_search_done", indexer=self.name, results=len(results))
        return results
