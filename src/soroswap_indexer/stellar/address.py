"""Stellar address helpers."""

from __future__ import annotations

import re

_ADDRESS_RE = re.compile(r"^[A-Z0-9]{56}$")


def is_address(value: object) -> bool:
    return isinstance(value, str) and bool(_ADDRESS_RE.match(value))


def shorten_address(address: str, chars: int = 4) -> str:
    """``CABC...WXYZ`` form for logs and CLI output."""
    if not address:
        return ""
    if not is_address(address):
        raise ValueError(f"Invalid 'address' parameter '{address}'.")
    return f"{address[:chars]}...{address[56 - chars:]}"
