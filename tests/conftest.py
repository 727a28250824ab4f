"""
Pytest configuration and shared fixtures.
"""

import json

import pytest
import requests
from requests.structures import CaseInsensitiveDict
from unittest.mock import Mock

from portals_webapi.core.session import PortalConfig, WebApiResponse


BASE_URL = "https://portal.test"


def make_response(
    status=200,
    json_body=None,
    content=b"",
    headers=None,
    url=BASE_URL + "/_api/contacts",
    history=None,
):
    """Build a real requests.Response without touching the network."""
    r = requests.Response()
    r.status_code = status
    hdrs = dict(headers or {})
    if json_body is not None:
        content = json.dumps(json_body).encode("utf-8")
        hdrs.setdefault("Content-Type", "application/json; odata.metadata=minimal")
    r._content = content
    r.headers = CaseInsensitiveDict(hdrs)
    r.url = url
    r.history = history or []
    r.encoding = "utf-8"
    return r


@pytest.fixture
def config():
    return PortalConfig(base_url=BASE_URL + "/", lang="en-US")


@pytest.fixture
def mock_session(config):
    """Create a mock PortalSession whose safe_request returns 204s."""
    session = Mock()
    session.cfg = config
    session.base = BASE_URL
    session.timeout = 60.0
    session.verify = True
    session.url = Mock(side_effect=lambda p: p if p.startswith("http") else BASE_URL + "/" + p.lstrip("/"))
    session.safe_request = Mock(
        side_effect=lambda req: WebApiResponse(None, 204, make_response(204))
    )
    return session


@pytest.fixture
def sample_contacts_page():
    """Sample OData v4 collection response."""
    return {
        "@odata.context": BASE_URL + "/_api/$metadata#contacts(fullname)",
        "value": [
            {"contactid": "1f2e3d4c-0000-0000-0000-000000000001", "fullname": "Ada Lovelace"},
            {"contactid": "1f2e3d4c-0000-0000-0000-000000000002", "fullname": "Alan Turing"},
        ],
    }


@pytest.fixture
def token_html():
    """Markup served by the portal token page."""
    return (
        '<input name="__RequestVerificationToken" type="hidden" '
        'value="CfDJ8-token-value_123" />'
    )


@pytest.fixture
def response_factory():
    return make_response
