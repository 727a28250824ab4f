"""
Portal Web API Python client (portals_webapi)
=============================================

Client for a portal site's ``/_api`` data API: entity CRUD, column updates,
relationship links and file columns, each request carrying a fresh
anti-forgery token. Also wraps the legacy ``/<lang>/json/`` endpoint.

Usage
-----
>>> from portals_webapi import ConnectionContext
>>>
>>> with ConnectionContext() as conn:
...     api = conn.get_service()
...     contact_id = api.create("contacts", {"firstname": "Ada"})
...     f = api.download_file("contacts", contact_id, "cr0_resume")
...     f.save("downloads")

Subpackages
-----------
- portals_webapi.core: Configuration, token sources, request dispatch
- portals_webapi.webapi: Data API operations, file helpers, JSON endpoint

"""

__version__ = "0.1.0"

from portals_webapi.core.session import (
    PortalConfig,
    PortalSession,
    WebApiRequest,
    WebApiResponse,
    PortalError,
    TokenUnavailableError,
    TransportError,
    SessionInvalidError,
)

from portals_webapi.core.connection import ConnectionContext

from portals_webapi.webapi import (
    WebApiService,
    JsonQueryClient,
    DownloadedFile,
    resolve_filename,
)

__all__ = [
    # Version
    "__version__",
    # Core
    "PortalConfig",
    "PortalSession",
    "WebApiRequest",
    "WebApiResponse",
    "PortalError",
    "TokenUnavailableError",
    "TransportError",
    "SessionInvalidError",
    "ConnectionContext",
    # Web API
    "WebApiService",
    "JsonQueryClient",
    "DownloadedFile",
    "resolve_filename",
]
