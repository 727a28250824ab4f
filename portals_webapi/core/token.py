"""
portals_webapi.core.token - Anti-forgery token sources
=======================================================
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from portals_webapi.core.session import PortalSession


_INPUT_RE = re.compile(r"<input\b[^>]*>", re.IGNORECASE)
_VALUE_RE = re.compile(r"""\bvalue\s*=\s*["']([^"']*)["']""", re.IGNORECASE)


class TokenSource(Protocol):
    """Anything able to hand out an anti-forgery token."""

    def get_token(self) -> str:
        ...


def parse_token_html(html: str) -> str:
    """
    Extract the token from the hidden ``__RequestVerificationToken`` input.

    Raises
    ------
    ValueError
        If the markup holds no such input or its value is empty.
    """
    for tag in _INPUT_RE.findall(html or ""):
        if "__RequestVerificationToken" not in tag:
            continue
        m = _VALUE_RE.search(tag)
        if m and m.group(1):
            return m.group(1)
    raise ValueError("No __RequestVerificationToken input found in token page")


class PortalTokenSource:
    """
    Fetches a new token from the portal's token page on every call.

    Tokens are never cached; each one authenticates a single request.
    """

    def __init__(self, session: "PortalSession") -> None:
        self.session = session

    def get_token(self) -> str:
        url = self.session.url(self.session.cfg.token_path)
        r = self.session.send("GET", url, headers={"Accept": "text/html"})
        return parse_token_html(r.text)


class StaticTokenSource:
    """Returns a fixed token. Handy for tests and pre-fetched tokens."""

    def __init__(self, token: str) -> None:
        self.token = token

    def get_token(self) -> str:
        return self.token
