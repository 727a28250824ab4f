"""
portals_webapi.webapi.service - Portal data API client
=======================================================

Request builders for the portal's ``/_api`` endpoints. Each operation
builds one request description and hands it to
:meth:`PortalSession.safe_request`.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Generator, List, Optional, Sequence, Union
from urllib.parse import quote, urlencode

from portals_webapi.core.session import PortalSession, WebApiRequest, WebApiResponse
from portals_webapi.webapi.files import DownloadedFile, resolve_filename

logger = logging.getLogger("portals_webapi.webapi")

API_ROOT = "/_api/"
DEFAULT_CACHE_COLUMN = "mnp_refreshcache"
DEFAULT_FILE_NAME = "file.bin"


def escape_odata_literal(value: str) -> str:
    """
    Escape a string value for use in OData $filter expressions.

    Examples
    --------
    >>> escape_odata_literal("O'Brien")
    "O''Brien"
    """
    return value.replace("'", "''")


def _join_csv(items: Sequence[str]) -> str:
    """Join items as comma-separated values, stripping whitespace."""
    return ",".join([s.strip() for s in items if s and s.strip()])


def _dumps(data: Any) -> str:
    return json.dumps(data, separators=(",", ":"))


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def entity_path(entity_set: str, entity_id: Optional[str] = None, *segments: str) -> str:
    """
    Build ``/_api/<entity_set>(<id>)[/<segment>...]``.

    >>> entity_path("contacts", "1234", "photo", "$value")
    '/_api/contacts(1234)/photo/$value'
    """
    path = API_ROOT + entity_set
    if entity_id is not None:
        path += "(" + str(entity_id) + ")"
    for seg in segments:
        path += "/" + seg
    return path


class WebApiService:
    """
    Portal data API client.

    Parameters
    ----------
    sess : PortalSession
        Active portal session

    Examples
    --------
    >>> with PortalSession(cfg) as sess:
    ...     api = WebApiService(sess)
    ...     new_id = api.create("contacts", {"firstname": "Ada"})
    ...     api.update_column("contacts", new_id, "jobtitle", "Engineer")
    ...     api.retrieve("contacts", new_id, ["firstname", "jobtitle"])
    """

    def __init__(self, sess: PortalSession) -> None:
        self.sess = sess

    def _send(self, request: WebApiRequest) -> WebApiResponse:
        return self.sess.safe_request(request)

    def _reference(self, entity_set: str, entity_id: str) -> str:
        return self.sess.cfg.origin + entity_path(entity_set, entity_id)

    # ---------------- reads ----------------

    def retrieve(
        self,
        entity_set: str,
        entity_id: str,
        attributes: Optional[List[str]] = None,
    ) -> Any:
        """
        Retrieve a single record.

        Parameters
        ----------
        entity_set : str
            Entity set name (plural logical name), e.g. "contacts"
        entity_id : str
            Record GUID
        attributes : list of str, optional
            Columns for $select. Anything that is not a list selects nothing.

        Returns
        -------
        dict
            The record
        """
        select = ",".join(attributes) if isinstance(attributes, list) else ""
        url = entity_path(entity_set, entity_id) + "?$select=" + select
        return self._send(WebApiRequest(url)).payload

    def iterate(
        self,
        entity_set: str,
        *,
        max_pages: Optional[int] = None,
        **query: str,
    ) -> Generator[List[Dict[str, Any]], None, None]:
        """
        Iterate through pages of an entity set, following ``@odata.nextLink``.

        Keyword arguments are sent as query options, e.g. ``**{"$top": "5"}``.
        """
        url = entity_path(entity_set)
        if query:
            url += "?" + urlencode(query, safe="$,()'@/:", quote_via=quote)

        seen = set()
        yielded = 0
        while url:
            if url in seen:
                return
            seen.add(url)

            p = self._send(WebApiRequest(url)).payload or {}
            chunk = p.get("value") or []
            if chunk:
                yield chunk
                yielded += 1
                if max_pages is not None and yielded >= int(max_pages):
                    return

            url = p.get("@odata.nextLink")

    def retrieve_multiple(
        self,
        entity_set: str,
        *,
        fields: Optional[List[str]] = None,
        filter_expr: Optional[str] = None,
        orderby: Optional[str] = None,
        top: Optional[int] = None,
        expand: Optional[str] = None,
        max_pages: Optional[int] = None,
        extra_params: Optional[Dict[str, str]] = None,
    ) -> List[Dict[str, Any]]:
        """
        Query an entity set and collect every page.

        Examples
        --------
        >>> api.retrieve_multiple(
        ...     "contacts",
        ...     fields=["fullname", "emailaddress1"],
        ...     filter_expr=f"lastname eq '{escape_odata_literal(name)}'",
        ...     top=50,
        ... )
        """
        params: Dict[str, str] = {}
        if extra_params:
            params.update(extra_params)
        if fields:
            params["$select"] = _join_csv(fields)
        if filter_expr:
            params["$filter"] = filter_expr
        if orderby:
            params["$orderby"] = orderby
        if expand:
            params["$expand"] = expand
        if top is not None:
            params["$top"] = str(int(top))

        out: List[Dict[str, Any]] = []
        for page in self.iterate(entity_set, max_pages=max_pages, **params):
            out.extend(page)
        return out

    # ---------------- writes ----------------

    def create(self, entity_set: str, entity_data: Dict[str, Any]) -> Optional[str]:
        """
        Create a record.

        Returns
        -------
        str or None
            Id of the new record, from the ``entityid`` response header
        """
        res = self._send(WebApiRequest(
            entity_path(entity_set),
            method="POST",
            data=_dumps(entity_data),
        ))
        entity_id = res.headers.get("entityid")
        logger.info("Created %s record %s", entity_set, entity_id)
        return entity_id

    def update(self, entity_set: str, entity_id: str, entity_data: Dict[str, Any]) -> WebApiResponse:
        """Update a record (PATCH)."""
        return self._send(WebApiRequest(
            entity_path(entity_set, entity_id),
            method="PATCH",
            data=_dumps(entity_data),
        ))

    def update_column(self, entity_set: str, entity_id: str, column: str, value: Any) -> WebApiResponse:
        """Set a single column (PUT to the column's own URL)."""
        return self._send(WebApiRequest(
            entity_path(entity_set, entity_id, column),
            method="PUT",
            data=_dumps({"value": value}),
        ))

    def refresh_cache(
        self,
        entity_set: str,
        entity_id: str,
        column: Optional[str] = None,
    ) -> WebApiResponse:
        """
        Stamp a datetime column with the current UTC time.

        Touching the record forces the portal to drop its cached copy. The
        table needs a datetime column for this (``mnp_refreshcache`` unless
        another is named) and matching table permissions.
        """
        return self.update_column(entity_set, entity_id, column or DEFAULT_CACHE_COLUMN, _now_iso())

    def delete(self, entity_set: str, entity_id: str) -> WebApiResponse:
        return self._send(WebApiRequest(entity_path(entity_set, entity_id), method="DELETE"))

    def delete_column(self, entity_set: str, entity_id: str, column: str) -> WebApiResponse:
        """Clear a single column value."""
        return self._send(WebApiRequest(entity_path(entity_set, entity_id, column), method="DELETE"))

    # ---------------- relationships ----------------

    def associate(
        self,
        source_set: str,
        source_id: str,
        relationship: str,
        target_set: str,
        target_id: str,
    ) -> WebApiResponse:
        """Link two records through a navigation property."""
        return self._send(WebApiRequest(
            entity_path(source_set, source_id, relationship, "$ref"),
            method="POST",
            data=_dumps({"@odata.id": self._reference(target_set, target_id)}),
        ))

    def disassociate(
        self,
        source_set: str,
        source_id: str,
        relationship: str,
        target_set: str,
        target_id: str,
    ) -> WebApiResponse:
        """Remove a link created by :meth:`associate`."""
        url = (entity_path(source_set, source_id, relationship, "$ref")
               + "?$id=" + self._reference(target_set, target_id))
        return self._send(WebApiRequest(url, method="DELETE"))

    # ---------------- files ----------------

    def upload_file(
        self,
        entity_set: str,
        entity_id: str,
        file_column: str,
        file_name: str,
        content: Union[bytes, str],
    ) -> WebApiResponse:
        """
        Upload a file into a file column.

        The portal only accepts PUT for this, not PATCH. Text content is
        sent as UTF-8.
        """
        if isinstance(content, str):
            content = content.encode("utf-8")
        url = entity_path(entity_set, entity_id, file_column) + "?x-ms-file-name=" + quote(file_name)
        res = self._send(WebApiRequest(
            url,
            method="PUT",
            data=content,
            content_type="application/octet-stream",
        ))
        logger.info("File uploaded: %s to %s(%s)/%s", file_name, entity_set, entity_id, file_column)
        return res

    def download_file(
        self,
        entity_set: str,
        entity_id: str,
        file_column: str,
        default_file_name: Optional[str] = None,
    ) -> DownloadedFile:
        """
        Download the content of a file column.

        Parameters
        ----------
        default_file_name : str, optional
            Name used when the response carries no usable
            ``Content-Disposition``. Defaults to "file.bin".

        Returns
        -------
        DownloadedFile
            Content and resolved name; call ``.save(directory)`` to write it
        """
        if default_file_name is None:
            default_file_name = DEFAULT_FILE_NAME

        res = self._send(WebApiRequest(
            entity_path(entity_set, entity_id, file_column, "$value"),
            binary=True,
        ))
        name = resolve_filename(res.headers.get("Content-Disposition"), default_file_name)
        logger.info("File retrieved. Name: %s", name)
        return DownloadedFile(
            name=name,
            content=res.payload,
            content_type=res.headers.get("Content-Type") or "application/octet-stream",
        )
