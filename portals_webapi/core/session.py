"""
portals_webapi.core.session - Authenticated portal HTTP session
================================================================

Low-level request dispatch for the portal data API with:
- A fresh anti-forgery token fetched before every request
- Session validation of apparently successful responses
- Connection pooling (optional transport-level retries, off by default)
- Error extraction from OData error bodies
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple, Union
from urllib.parse import urlsplit
import logging
import time

import requests
from requests import Response, Session
from requests.adapters import HTTPAdapter
from requests.structures import CaseInsensitiveDict
from urllib3.util.retry import Retry

from portals_webapi.core.token import PortalTokenSource, TokenSource
from portals_webapi.core.validation import LoginRedirectValidator, SessionValidator


TOKEN_HEADER = "__RequestVerificationToken"

ALLOWED_METHODS = frozenset({"GET", "POST", "PATCH", "PUT", "DELETE"})


class PortalError(RuntimeError):
    """Base class for every failure surfaced by the portal client."""


class TokenUnavailableError(PortalError):
    """
    Raised when the anti-forgery token could not be obtained.

    The HTTP request it was meant to authenticate is never sent.

    Attributes
    ----------
    error : Exception
        The error raised by the token source
    """

    def __init__(self, error: BaseException):
        super().__init__(f"Anti-forgery token unavailable: {error}")
        self.error = error


class TransportError(PortalError):
    """
    Raised on a network failure or a non-2xx response.

    Attributes
    ----------
    status : int or None
        HTTP status code, None when no response was received
    body : str
        Response body or extracted OData error (truncated for display)
    url : str
        The URL that was called
    headers : dict
        Response headers
    error : Exception or None
        The underlying requests exception, if any
    """

    def __init__(
        self,
        status: Optional[int],
        body: str,
        url: str,
        headers: Optional[Dict[str, str]] = None,
        error: Optional[BaseException] = None,
    ):
        snippet = (body or "")[:1200]
        label = status if status is not None else "network"
        super().__init__(f"Portal request failed ({label}) for {url}: {snippet}")
        self.status = status
        self.body = body or ""
        self.url = url
        self.headers = headers or {}
        self.error = error


class SessionInvalidError(PortalError):
    """
    Raised when a successful-looking response came from an expired session.

    Callers typically redirect the user to sign in again.
    """

    def __init__(self, response: Response, url: str):
        super().__init__(f"Portal session is no longer valid for {url}")
        self.response = response
        self.status = response.status_code
        self.url = url


@dataclass
class PortalConfig:
    """
    Connection configuration for a portal site.

    Parameters
    ----------
    base_url : str
        Site root, e.g. "https://contoso.powerappsportals.com"
    lang : str
        Language code used by the legacy JSON endpoint (default: "en-US")
    cookies : dict
        Authentication cookies of the signed-in user
    timeout : float
        Request timeout in seconds (default: 60.0)
    retries : int
        Transport-level retry attempts (default: 0, no retry)
    backoff : float
        Backoff factor for retries (default: 0.5)
    verify : bool or str
        SSL verification (True, False, or path to CA bundle)
    user_agent : str
        User-Agent header value
    token_path : str
        Path of the page serving the anti-forgery token
    login_paths : tuple of str
        Paths that indicate a redirect to the sign-in page

    Examples
    --------
    >>> cfg = PortalConfig(
    ...     base_url="https://contoso.powerappsportals.com",
    ...     cookies={".AspNet.ApplicationCookie": "..."},
    ... )
    """
    base_url: str
    lang: str = "en-US"
    cookies: Dict[str, str] = field(default_factory=dict)
    timeout: float = 60.0
    retries: int = 0
    backoff: float = 0.5
    verify: Union[bool, str] = True
    user_agent: str = "portals-webapi/0.1"
    token_path: str = "/_layout/tokenhtml"
    login_paths: Tuple[str, ...] = ("/signin", "/account/login")

    @property
    def origin(self) -> str:
        """scheme://host[:port] of the base URL."""
        parts = urlsplit(self.base_url)
        return f"{parts.scheme}://{parts.netloc}"


@dataclass
class WebApiRequest:
    """
    Description of a single outbound data API request.

    ``url`` is either absolute or a site-relative path such as
    ``/_api/accounts(...)``.
    """
    url: str
    method: str = "GET"
    headers: Optional[Dict[str, str]] = None
    data: Optional[Union[str, bytes]] = None
    content_type: str = "application/json"
    params: Optional[Dict[str, str]] = None
    binary: bool = False


@dataclass
class WebApiResponse:
    """Successful outcome of a dispatched request."""
    payload: Any
    status: int
    response: Response

    @property
    def headers(self) -> CaseInsensitiveDict:
        """Response headers, looked up case-insensitively."""
        return self.response.headers


class PortalSession:
    """
    HTTP session for the portal data API.

    Every call to :meth:`safe_request` fetches a new anti-forgery token,
    injects it, sends the request and validates the session before
    returning. Use as a context manager for automatic cleanup.

    Parameters
    ----------
    cfg : PortalConfig
        Connection configuration
    token_source : TokenSource, optional
        Where tokens come from. Defaults to the portal's token page.
    validator : SessionValidator, optional
        Session check applied to successful responses. Defaults to
        :class:`LoginRedirectValidator`.

    Examples
    --------
    >>> with PortalSession(cfg) as sess:
    ...     res = sess.safe_request(WebApiRequest("/_api/contacts?$top=1"))
    ...     print(res.payload["value"])
    """

    def __init__(
        self,
        cfg: PortalConfig,
        *,
        token_source: Optional[TokenSource] = None,
        validator: Optional[SessionValidator] = None,
    ) -> None:
        if not cfg.base_url:
            raise ValueError("PortalConfig.base_url must be set")

        self.cfg = cfg
        self.base = cfg.base_url.rstrip("/")
        self.timeout = float(cfg.timeout)
        self.verify = cfg.verify
        self.logger = logging.getLogger("portals_webapi.webapi")

        self.session = self._build_session()

        self.token_source = token_source or PortalTokenSource(self)
        self.validator = validator or LoginRedirectValidator(cfg.login_paths)

    def close(self) -> None:
        """Close the underlying HTTP session."""
        self.session.close()

    def __enter__(self) -> "PortalSession":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # ---------------- session ----------------

    def _build_session(self) -> Session:
        sess = requests.Session()

        sess.headers.update({
            "Accept": "application/json",
            "OData-Version": "4.0",
            "OData-MaxVersion": "4.0",
            "X-Requested-With": "XMLHttpRequest",
            "User-Agent": self.cfg.user_agent,
        })
        for name, value in self.cfg.cookies.items():
            sess.cookies.set(name, value)

        retry = Retry(
            total=self.cfg.retries,
            backoff_factor=self.cfg.backoff,
            status_forcelist=(429, 502, 503, 504),
            allowed_methods=frozenset({"GET", "HEAD", "OPTIONS"}),
            raise_on_status=False,
        )
        adapter = HTTPAdapter(max_retries=retry, pool_connections=10, pool_maxsize=20)
        sess.mount("https://", adapter)
        sess.mount("http://", adapter)
        return sess

    # ---------------- helpers ----------------

    def url(self, path: str) -> str:
        """Resolve a site-relative path against the base URL."""
        if path.startswith(("http://", "https://")):
            return path
        return f"{self.base}/{path.lstrip('/')}"

    def _payload(self, r: Response, binary: bool) -> Any:
        if binary:
            return r.content
        if not r.content:
            return None
        ctype = (r.headers.get("Content-Type") or "").lower()
        if "json" in ctype:
            try:
                return r.json()
            except ValueError:
                pass
        return {"raw": r.text, "content_type": r.headers.get("Content-Type", "")}

    def _extract_error(self, r: Response) -> str:
        try:
            data = r.json()
        except ValueError:
            return r.text
        if not isinstance(data, dict):
            return r.text
        err = data.get("error")
        if not isinstance(err, dict):
            return r.text

        code = err.get("code")
        message = err.get("message")
        if isinstance(message, dict):
            message = message.get("value")

        parts = []
        if code:
            parts.append(f"code={code}")
        if message:
            parts.append(f"message={message}")
        return " | ".join(parts) or r.text

    def raise_for_error(self, r: Response, url: str) -> None:
        if not 200 <= r.status_code < 300:
            raise TransportError(r.status_code, self._extract_error(r), url, dict(r.headers))

    def send(
        self,
        method: str,
        url: str,
        *,
        headers: Optional[Dict[str, str]] = None,
        params: Optional[Dict[str, str]] = None,
        data: Optional[Union[str, bytes]] = None,
    ) -> Response:
        """
        Issue one HTTP call without a token or session check.

        Network errors and non-2xx statuses raise :class:`TransportError`.
        """
        t0 = time.perf_counter()
        try:
            r = self.session.request(
                method=method,
                url=url,
                params=params,
                headers=headers,
                data=data,
                timeout=self.timeout,
                verify=self.verify,
            )
        except requests.RequestException as exc:
            raise TransportError(None, str(exc), url, error=exc) from exc
        dt = (time.perf_counter() - t0) * 1000.0
        self.logger.debug("%s %s %s %sms", method.upper(), url, r.status_code, round(dt, 1))
        self.raise_for_error(r, url)
        return r

    # ---------------- dispatch ----------------

    def safe_request(self, request: WebApiRequest) -> WebApiResponse:
        """
        Send a request authenticated with a freshly fetched token.

        Parameters
        ----------
        request : WebApiRequest
            What to send. Its header mapping is created when missing and
            receives the ``__RequestVerificationToken`` entry.

        Returns
        -------
        WebApiResponse
            Parsed payload, status and raw response

        Raises
        ------
        TokenUnavailableError
            The token source failed; nothing was sent.
        TransportError
            Network failure or non-2xx status.
        SessionInvalidError
            The response came from an expired session.
        """
        method = (request.method or "GET").upper()
        if method not in ALLOWED_METHODS:
            raise ValueError(f"Unsupported method {request.method!r}")

        try:
            token = self.token_source.get_token()
        except Exception as exc:
            self.logger.warning("Could not obtain anti-forgery token: %s", exc)
            raise TokenUnavailableError(exc) from exc

        if request.headers is None:
            request.headers = {}
        request.headers[TOKEN_HEADER] = token

        headers = CaseInsensitiveDict(request.headers)
        if request.data is not None:
            headers.setdefault("Content-Type", request.content_type)

        url = self.url(request.url)
        r = self.send(method, url, headers=headers, params=request.params, data=request.data)

        if not self.validator.is_valid(r):
            self.logger.info("Session expired while calling %s", url)
            raise SessionInvalidError(r, url)

        return WebApiResponse(self._payload(r, request.binary), r.status_code, r)
