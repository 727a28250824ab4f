"""
portals_webapi.core.validation - Session validity checks
=========================================================

An expired portal session does not fail with 401: the site redirects to its
sign-in page, which answers 200 with HTML. Validators spot such responses so
they are reported as an invalid session instead of a success.
"""

from __future__ import annotations

from typing import Iterable, Protocol
from urllib.parse import urlsplit

from requests import Response


class SessionValidator(Protocol):
    """Decides whether a 2xx response came from a live session."""

    def is_valid(self, response: Response) -> bool:
        ...


class LoginRedirectValidator:
    """
    Flags responses that were redirected to a sign-in page.

    Parameters
    ----------
    login_paths : iterable of str
        Path prefixes (case-insensitive) of the site's sign-in pages
    """

    def __init__(self, login_paths: Iterable[str] = ("/signin", "/account/login")) -> None:
        self.login_paths = tuple(p.lower().rstrip("/") for p in login_paths)

    def _is_login_url(self, url: str) -> bool:
        path = urlsplit(url or "").path.lower()
        # strip a leading language segment, e.g. /en-US/SignIn
        segments = [s for s in path.split("/") if s]
        candidates = {"/" + "/".join(segments)}
        if len(segments) > 1:
            candidates.add("/" + "/".join(segments[1:]))
        return any(c.startswith(p) for c in candidates for p in self.login_paths)

    def is_valid(self, response: Response) -> bool:
        if not response.history:
            return True
        return not self._is_login_url(response.url)


class AlwaysValid:
    """Accepts every response."""

    def is_valid(self, response: Response) -> bool:
        return True
