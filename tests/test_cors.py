"""
Tests for CORS headers and preflight handling.
"""

import azure.functions as func
import pytest

from plaques_api.cors import cors_headers, preflight_response
from plaques_api.triggers import PlaqueListTrigger, PlaqueSearchTrigger


def make_request(method="GET", origin=None):
    return func.HttpRequest(
        method=method,
        url="http://localhost:7071/api/list",
        headers={"Origin": origin} if origin else {},
        params={},
        body=b""
    )


@pytest.mark.parametrize("origin", ["https://csp-plaques.web.app", "http://localhost:3000"])
def test_allow_listed_origin_is_echoed(plaques_config, origin):
    headers = cors_headers(make_request(origin=origin), plaques_config)

    assert headers["Access-Control-Allow-Origin"] == origin
    assert headers["Vary"] == "Origin"


@pytest.mark.parametrize("origin", [None, "https://evil.example"])
def test_other_origins_get_wildcard(plaques_config, origin):
    headers = cors_headers(make_request(origin=origin), plaques_config)

    assert headers == {"Access-Control-Allow-Origin": "*"}


def test_preflight_response(plaques_config):
    response = preflight_response(make_request("OPTIONS", "http://localhost:3000"), plaques_config)

    assert response.status_code == 204
    assert response.get_body() == b""
    assert response.headers.get("Access-Control-Allow-Origin") == "http://localhost:3000"
    assert response.headers.get("Access-Control-Allow-Methods") == "GET, OPTIONS"
    assert response.headers.get("Access-Control-Allow-Headers") == "Content-Type"
    assert response.headers.get("Access-Control-Max-Age") == "3600"


@pytest.mark.parametrize("trigger_cls", [PlaqueListTrigger, PlaqueSearchTrigger])
def test_trigger_preflight_skips_database(service, mock_repository, trigger_cls):
    response = trigger_cls(service).handle(make_request("OPTIONS"))

    assert response.status_code == 204
    assert response.headers.get("Access-Control-Allow-Origin") == "*"
    mock_repository.list_plaques.assert_not_called()
    mock_repository.search_plaques.assert_not_called()


def test_get_response_carries_wildcard(service, mock_repository):
    mock_repository.list_plaques.return_value = ([], 0)

    response = PlaqueListTrigger(service).handle(make_request())

    assert response.status_code == 200
    assert response.headers.get("Access-Control-Allow-Origin") == "*"
