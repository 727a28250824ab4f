"""
portals_webapi.webapi - Portal data API and JSON endpoint access
=================================================================

- WebApiService: Entity CRUD, column updates, relationships and file columns
- JsonQueryClient: The legacy ``/<lang>/json/`` endpoint
- resolve_filename / DownloadedFile: File download helpers

"""

from portals_webapi.webapi.service import WebApiService, entity_path, escape_odata_literal
from portals_webapi.webapi.files import DownloadedFile, resolve_filename
from portals_webapi.webapi.json_query import JsonQueryClient

__all__ = [
    "WebApiService",
    "entity_path",
    "escape_odata_literal",
    "DownloadedFile",
    "resolve_filename",
    "JsonQueryClient",
]
