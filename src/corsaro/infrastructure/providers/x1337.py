"""1337x scraper.

The search page lists releases sorted by seeders; the magnet link only
appears on each release's detail page, so the first rows are expanded
concurrently.
"""

from __future__ import annotations

import asyncio
import re
from dataclasses import dataclass
from urllib.parse import quote, urljoin

import httpx

from corsaro.domain.entities.candidates import RawCandidate
from corsaro.infrastructure.common.html_selectors import (
    extract_attr,
    parse_html,
    select_items,
)
from corsaro.infrastructure.pipeline.normalizer import extract_info_hash

from .base import ProviderBase, to_int

_BASE_URL = "https://1337x.to"
_MAX_ROWS = 5
_MAX_RESULTS = 5

LANGUAGE_RE = re.compile(
    r"\b(ITA|ITALIAN|ITALIANO|MULTI|DUAL|MD|SUB[\s._-]?ITA)\b", re.IGNORECASE
)


@dataclass(frozen=True)
class ListingRow:
    title: str
    href: str
    seeders: int


def parse_search_page(html: str, base_url: str = _BASE_URL) -> list[ListingRow]:
    """Language-matching rows among the first listed results."""
    soup = parse_html(html)
    rows: list[ListingRow] = []
    for tr in select_items(soup, "table.table-list tr")[:_MAX_ROWS]:
        links = tr.select(".name a")
        if len(links) < 2:
            continue
        link = links[1]
        title = link.get_text(strip=True)
        href = link.get("href")
        if not title or not href or not LANGUAGE_RE.search(title):
            continue
        seeds = tr.select_one(".seeds")
        rows.append(
            ListingRow(
                title=title,
                href=urljoin(base_url + "/", str(href)),
                seeders=to_int(seeds.get_text(strip=True) if seeds else ""),
            )
        )
    return rows


def parse_detail_page(html: str) -> str:
    return extract_attr(parse_html(html), 'a[href^="magnet:"]', "href")


class X1337Provider(ProviderBase):
    """Global-scope provider backed by 1337x."""

    name = "1337x"
    scope = "global"

    def __init__(
        self,
        *,
        http_client: httpx.AsyncClient,
        timeout: float | None = None,
        base_url: str = _BASE_URL,
    ) -> None:
        super().__init__(http_client=http_client, timeout=timeout)
        self._base_url = base_url.rstrip("/")

    async def _expand(
        self, row: ListingRow, sem: asyncio.Semaphore
    ) -> RawCandidate | None:
        async with sem:
            resp = await self._safe_fetch(row.href, context="detail")
        if resp is None:
            return None
        magnet = parse_detail_page(resp.text)
        if not magnet:
            return None
        return RawCandidate(
            display_title=row.title,
            magnet_uri=magnet,
            source_name="1337x",
            size_hint_bytes=0,
            seeders=row.seeders,
        )

    async def search(self, query: str, year: int | None = None) -> list[RawCandidate]:
        url = f"{self._base_url}/sort-search/{quote(query)}/seeders/desc/1/"
        resp = await self._safe_fetch(url, context="search")
        if resp is None:
            return []

        rows = parse_search_page(resp.text, self._base_url)
        if not rows:
            return []

        sem = self._new_semaphore()
        expanded = await asyncio.gather(*(self._expand(row, sem) for row in rows))

        seen: set[str] = set()
        results: list[RawCandidate] = []
        for candidate in expanded:
            if candidate is None:
                continue
            info_hash = extract_info_hash(candidate.magnet_uri)
            if info_hash is None or info_hash in seen:
                continue
            seen.add(info_hash)
            results.append(candidate)

        results.sort(key=lambda r: r.seeders or 0, reverse=True)
        self._log.debug("x1337_search_done", query=query, results=len(results))
        return results[:_MAX_RESULTS]
