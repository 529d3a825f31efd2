"""
Tests for the requests based API client, with the HTTP session mocked out.
"""

from unittest.mock import MagicMock

import pytest
import requests

from marketplace_client import MarketplaceAPI


def make_response(status_code=200, payload=None, text=""):
    response = MagicMock(spec=requests.Response)
    response.status_code = status_code
    response.content = b"{}" if payload is not None else b""
    response.text = text
    if payload is not None:
        response.json.return_value = payload
    else:
        response.json.side_effect = ValueError("no json")
    if status_code >= 400:
        response.raise_for_status.side_effect = requests.HTTPError(f"{status_code} error", response=response)
    return response


@pytest.fixture
def session():
    return MagicMock(spec=requests.Session)


@pytest.fixture
def api(session):
    return MarketplaceAPI(base_url="http://api.test/", session=session, timeout=5)


def test_login_stores_token(api, session):
    session.request.return_value = make_response(payload={"access_token": "abc", "token_type": "bearer"})
    data, error = api.login("dev@example.com", "s3cure-password")
    assert error is None
    assert data["access_token"] == "abc"
    assert api.api_key == "abc"

    kwargs = session.request.call_args.kwargs
    assert kwargs["method"] == "POST"
    assert kwargs["url"] == "http://api.test/api/v1/users/login"
    assert kwargs["json"] == {"email": "dev@example.com", "password": "s3cure-password"}
    assert "Authorization" not in kwargs["headers"]


def test_token_is_sent(api, session):
    api.api_key = "abc"
    session.request.return_value = make_response(payload={"id": 1, "jobId": 5})
    data, error = api.get_budget(5)
    assert error is None
    assert data["jobId"] == 5
    kwargs = session.request.call_args.kwargs
    assert kwargs["url"] == "http://api.test/api/v1/budgets/5"
    assert kwargs["headers"] == {"Authorization": "Bearer abc"}
    assert kwargs["timeout"] == 5


def test_milestone_calls(api, session):
    session.request.return_value = make_response(payload={"id": 1})
    api.update_milestone_status(3, "IN_PROGRESS", notes="Started")
    assert session.request.call_args.kwargs["json"] == {"status": "IN_PROGRESS", "notes": "Started"}

    api.pay_milestone(3, 1500, reference="INV-1")
    kwargs = session.request.call_args.kwargs
    assert kwargs["url"].endswith("/budgets/milestones/3/payments")
    assert kwargs["json"] == {"amount": 1500, "currency": "USD", "reference": "INV-1"}


def test_http_error_uses_detail(api, session):
    session.request.return_value = make_response(404, payload={"detail": "Budget not found for this job"})
    data, error = api.get_budget(5)
    assert data is None
    assert error == {"status_code": 404, "message": "Budget not found for this job"}


def test_http_error_without_json(api, session):
    session.request.return_value = make_response(502, text="Bad Gateway")
    _, error = api.convert_currency(10, "USD", "EUR")
    assert error == {"status_code": 502, "message": "Bad Gateway"}


def test_connection_error(api, session):
    session.request.side_effect = requests.ConnectionError("connection refused")
    data, error = api.get_budget(5)
    assert data is None
    assert error["status_code"] is None
    assert "connection refused" in error["message"]


def test_search_profiles_returns_results(api, session):
    session.request.return_value = make_response(payload={"results": [{"userId": 3}], "total": 1})
    results, error = api.search_profiles("python", minExperience=3)
    assert error is None
    assert results == [{"userId": 3}]
    assert session.request.call_args.kwargs["params"] == {"query": "python", "minExperience": 3}


def test_search_profiles_error(api, session):
    session.request.return_value = make_response(400, payload={"detail": "Search query must be at least 2 characters long"})
    results, error = api.search_profiles("p")
    assert results == []
    assert error["status_code"] == 400
