"""
portals_webapi.core - Core connectivity and request dispatch
=============================================================

- PortalConfig: Connection configuration
- PortalSession: Authenticated request dispatcher (token, send, session check)
- WebApiRequest / WebApiResponse: Request description and successful outcome
- TokenUnavailableError, TransportError, SessionInvalidError: Failure outcomes
- ConnectionContext: Env-driven connection manager

"""

from portals_webapi.core.session import (
    PortalConfig,
    PortalSession,
    WebApiRequest,
    WebApiResponse,
    PortalError,
    TokenUnavailableError,
    TransportError,
    SessionInvalidError,
    TOKEN_HEADER,
)
from portals_webapi.core.token import PortalTokenSource, StaticTokenSource, parse_token_html
from portals_webapi.core.validation import LoginRedirectValidator, AlwaysValid
from portals_webapi.core.connection import ConnectionContext

__all__ = [
    "PortalConfig",
    "PortalSession",
    "WebApiRequest",
    "WebApiResponse",
    "PortalError",
    "TokenUnavailableError",
    "TransportError",
    "SessionInvalidError",
    "TOKEN_HEADER",
    "PortalTokenSource",
    "StaticTokenSource",
    "parse_token_html",
    "LoginRedirectValidator",
    "AlwaysValid",
    "ConnectionContext",
]
