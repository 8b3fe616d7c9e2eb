"""Parsing utilities for data extraction."""

from __future__ import annotations

import re

_SIZE_RE = re.compile(r"([\d.,]+)\s*([KMGT]?I?B)\b", re.IGNORECASE)

_MULTIPLIERS: dict[str, int] = {
    "B": 1,
    "KB": 1024,
    "MB": 1024**2,
    "GB": 1024**3,
    "TB": 1024**4,
    "KIB": 1024,
    "MIB": 1024**2,
    "GIB": 1024**3,
    "TIB": 1024**4,
}

_UNITS = ("B", "KB", "MB", "GB", "TB")


def parse_size_to_bytes(size_str: str) -> int:
    """Parse size string to bytes.

    Supports formats:
        - "1234" (raw bytes)
        - "4.5 GB" / "4,5 GB"
        - "700 MiB"
        - "1.2 TB"

    Units are binary (1 KB = 1024 B). Unparseable input yields 0.
    """
    if not size_str:
        return 0

    size_str = size_str.strip()
    if size_str.isdigit():
        return int(size_str)

    match = _SIZE_RE.search(size_str)
    if not match:
        return 0

    number = match.group(1)
    if "," in number and "." in number:
        number = number.replace(",", "")
    try:
        value = float(number.replace(",", "."))
    except ValueError:
        return 0
    return round(value * _MULTIPLIERS.get(match.group(2).upper(), 1))


def format_bytes(size: int | None) -> str:
    """Human readable size with two decimals at most.

    >>> format_bytes(1536)
    '1.5 KB'
    """
    if not size or size <= 0:
        return "0 B"
    exponent = 0
    while exponent < len(_UNITS) - 1 and size >= 1024 ** (exponent + 1):
        exponent += 1
    value = size / 1024**exponent
    text = f"{value:.2f}".rstrip("0").rstrip(".")
    return f"{text} {_UNITS[exponent]}"
