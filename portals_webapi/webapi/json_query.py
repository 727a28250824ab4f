"""
portals_webapi.webapi.json_query - Legacy JSON endpoint
========================================================
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional
from urllib.parse import quote, urlencode

from portals_webapi.core.session import PortalSession, TransportError

logger = logging.getLogger("portals_webapi.json")


class JsonQueryClient:
    """
    Client for the site's ``/<lang>/json/`` endpoint.

    These reads are not data API calls, so no anti-forgery token is sent.

    Examples
    --------
    >>> client = JsonQueryClient(sess)
    >>> client.get_json_data("getSnippetData", {"snippetList": "snippet1,snippet2"})
    """

    def __init__(self, sess: PortalSession, lang: Optional[str] = None) -> None:
        self.sess = sess
        self.lang = lang or sess.cfg.lang

    def build_url(self, json_key: str, json_args: Optional[Dict[str, Any]] = None) -> str:
        query = urlencode(json_args or {})
        return self.sess.url(f"/{self.lang}/json/?request={quote(json_key)}&{query}")

    def get_json_data(self, json_key: str, json_args: Optional[Dict[str, Any]] = None) -> Any:
        """
        Run a named JSON request.

        Raises
        ------
        TransportError
            Network failure, non-2xx status or a body that is not JSON.
        """
        url = self.build_url(json_key, json_args)
        try:
            r = self.sess.send("GET", url, headers={"Content-Type": "application/json"})
        except TransportError as exc:
            logger.warning("Request failed: %s %s", exc.status, exc.body[:200])
            raise
        try:
            return r.json()
        except ValueError as exc:
            logger.warning("Request failed: non-JSON response from %s", url)
            raise TransportError(r.status_code, r.text, url, dict(r.headers), error=exc) from exc
