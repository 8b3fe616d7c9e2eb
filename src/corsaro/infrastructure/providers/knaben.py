"""Knaben meta-search scraper (knaben.org).

Knaben aggregates many public trackers and renders results as a plain
HTML table: category, title (with magnet link), size, date, seeders.
Up to two result pages are read.
"""

from __future__ import annotations

import re
from urllib.parse import quote

import httpx
from bs4 import Tag

from corsaro.domain.entities.candidates import RawCandidate
from corsaro.infrastructure.common.html_selectors import (
    extract_attr,
    extract_text,
    parse_html,
    select_items,
)
from corsaro.infrastructure.common.parsers import parse_size_to_bytes

from .base import ProviderBase, to_int

_BASE_URL = "https://knaben.org"
_MAX_PAGES = 2

ADULT_KEYWORDS: tuple[str, ...] = (
    "xxx",
    "porn",
    "hardcore",
    "erotic",
    "hentai",
    "sex",
    "adult",
)
_CATEGORY_NOISE_RE = re.compile(r"[\s.\-]+")
_LANGUAGE_RE = re.compile(r"ITA|ITALIAN|MULTI|DUAL")


def is_adult(category: str, title: str) -> bool:
    cat = _CATEGORY_NOISE_RE.sub("", category.lower())
    name = title.lower()
    return any(k in cat or k in name for k in ADULT_KEYWORDS)


def _parse_row(row: Tag, year: int | None) -> RawCandidate | None:
    cells = row.find_all("td", recursive=False) or row.find_all("td")
    if len(cells) < 5:
        return None

    category = cells[0].get_text(" ", strip=True)
    name = extract_attr(cells[1], "a[title]", "title") or extract_text(
        cells[1], "a"
    )
    if not name:
        return None
    if is_adult(category, name):
        return None
    if not _LANGUAGE_RE.search(name.upper()):
        return None
    if year is not None and str(year) not in name:
        return None

    magnet = extract_attr(row, 'a[href^="magnet:?"]', "href")
    if not magnet:
        return None

    return RawCandidate(
        display_title=name,
        magnet_uri=magnet,
        source_name="Knaben",
        size_hint_bytes=parse_size_to_bytes(cells[2].get_text(strip=True)),
        seeders=to_int(cells[4].get_text(strip=True)),
    )


def parse_results_page(
    html: str, year: int | None = None
) -> tuple[int, list[RawCandidate]]:
    """Parse one Knaben result page.

    Returns the number of table rows seen (0 ends pagination) and the
    candidates that passed the row filters.
    """
    soup = parse_html(html)
    rows = select_items(soup, "table.table tbody tr", "table tbody tr")
    results: list[RawCandidate] = []
    for row in rows:
        candidate = _parse_row(row, year)
        if candidate is not None:
            results.append(candidate)
    return len(rows), results


class KnabenProvider(ProviderBase):
    """Global-scope provider backed by knaben.org."""

    name = "knaben"
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

    async def search(self, query: str, year: int | None = None) -> list[RawCandidate]:
        results: list[RawCandidate] = []
        for page in range(1, _MAX_PAGES + 1):
            url = f"{self._base_url}/search/{quote(query)}/0/{page}/"
            resp = await self._safe_fetch(url, context=f"page_{page}")
            if resp is None:
                break
            row_count, items = parse_results_page(resp.text, year)
            if row_count == 0:
                break
            results.extend(items)

        results.sort(
            key=lambda r: (r.seeders or 0, r.size_hint_bytes or 0), reverse=True
        )
        self._log.debug("knaben_search_done", query=query, results=len(results))
        return results
