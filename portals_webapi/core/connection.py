"""
portals_webapi.core.connection - High-level connection management
==================================================================

Provides a ConnectionContext that builds the portal session from explicit
arguments or PORTAL_* environment variables.
"""

from __future__ import annotations

import os
from typing import Dict, Optional, TYPE_CHECKING

from dotenv import load_dotenv

from portals_webapi.core.session import PortalConfig, PortalSession

if TYPE_CHECKING:
    from portals_webapi.webapi.json_query import JsonQueryClient
    from portals_webapi.webapi.service import WebApiService


AUTH_COOKIE_NAME = ".AspNet.ApplicationCookie"


class ConnectionContext:
    """
    High-level connection manager for a portal site.

    Parameters
    ----------
    base_url : str, optional
        Site root. Falls back to PORTAL_BASE_URL env var.
    lang : str, optional
        Site language code. Falls back to PORTAL_LANG env var, then "en-US".
    auth_cookie : str, optional
        Value of the signed-in user's application cookie. Falls back to
        PORTAL_AUTH_COOKIE env var. Anonymous access when unset.
    cookies : dict, optional
        Any further cookies to send.
    verify : bool, optional
        SSL verification. Falls back to PORTAL_VERIFY_TLS env var.
    timeout : float, optional
        Request timeout in seconds. Falls back to PORTAL_TIMEOUT env var.
    env_file : str, optional
        A .env file loaded before the environment is read.

    Examples
    --------
    >>> with ConnectionContext() as conn:  # reads PORTAL_* env vars
    ...     api = conn.get_service()
    ...     contact = api.retrieve("contacts", contact_id, ["fullname"])
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        lang: Optional[str] = None,
        auth_cookie: Optional[str] = None,
        cookies: Optional[Dict[str, str]] = None,
        verify: Optional[bool] = None,
        timeout: Optional[float] = None,
        env_file: Optional[str] = None,
    ) -> None:
        if env_file:
            load_dotenv(env_file)

        self._base_url = (base_url or os.environ.get("PORTAL_BASE_URL", "")).rstrip("/")
        self._lang = lang or os.environ.get("PORTAL_LANG") or "en-US"

        self._cookies: Dict[str, str] = dict(cookies or {})
        auth_cookie = auth_cookie or os.environ.get("PORTAL_AUTH_COOKIE")
        if auth_cookie:
            self._cookies[AUTH_COOKIE_NAME] = auth_cookie

        if verify is not None:
            self._verify = verify
        else:
            self._verify = os.environ.get("PORTAL_VERIFY_TLS", "true").lower() != "false"

        if timeout is not None:
            self._timeout = float(timeout)
        else:
            self._timeout = float(os.environ.get("PORTAL_TIMEOUT", "60"))

        if not self._base_url:
            raise ValueError(
                "Missing base_url. Set PORTAL_BASE_URL environment variable "
                "or pass base_url parameter."
            )

        self._session: Optional[PortalSession] = None

    @property
    def session(self) -> PortalSession:
        """Get or create the underlying portal session."""
        if self._session is None:
            self._session = PortalSession(self.config)
        return self._session

    @property
    def config(self) -> PortalConfig:
        return PortalConfig(
            base_url=self._base_url,
            lang=self._lang,
            cookies=dict(self._cookies),
            verify=self._verify,
            timeout=self._timeout,
        )

    def close(self) -> None:
        """Close the connection."""
        if self._session is not None:
            self._session.close()
            self._session = None

    def __enter__(self) -> "ConnectionContext":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def get_service(self) -> "WebApiService":
        """Data API client bound to this connection."""
        from portals_webapi.webapi.service import WebApiService
        return WebApiService(self.session)

    def get_json_client(self) -> "JsonQueryClient":
        """Legacy JSON endpoint client bound to this connection."""
        from portals_webapi.webapi.json_query import JsonQueryClient
        return JsonQueryClient(self.session)

    @property
    def base_url(self) -> str:
        """The configured base URL."""
        return self._base_url

    @property
    def lang(self) -> str:
        """The configured site language."""
        return self._lang
