"""
Tests for request ids, structured logging and error bodies
"""
import json
import logging
import uuid

from company_roster.api.deps import get_current_user_id
from company_roster.core.exceptions import AuthenticationError
from company_roster.main import app
from company_roster.utils.logging import JSONFormatter, RequestContextFilter, request_id_var


def make_record(message="Member added"):
    return logging.LogRecord("company_roster.test", logging.INFO, __file__, 1, message, None, None)


def test_json_formatter_carries_roster_fields():
    record = make_record()
    record.user_id = "u1"
    record.company_id = 7

    payload = json.loads(JSONFormatter().format(record))

    assert payload["message"] == "Member added"
    assert payload["user_id"] == "u1"
    assert payload["company_id"] == 7
    assert "request_id" not in payload


def test_request_context_filter_adds_current_request_id():
    token = request_id_var.set("req-123")
    try:
        record = make_record()
        assert RequestContextFilter().filter(record) is True
    finally:
        request_id_var.reset(token)

    assert json.loads(JSONFormatter().format(record))["request_id"] == "req-123"


def test_request_context_filter_outside_a_request():
    record = make_record()
    RequestContextFilter().filter(record)
    assert not hasattr(record, "request_id")


def test_request_id_is_generated(client):
    response = client.get("/companies", headers={"X-User-Id": "u1"})

    assert response.status_code == 200
    uuid.UUID(response.headers["x-request-id"])


def test_incoming_request_id_is_echoed(client):
    response = client.get("/companies", headers={"X-User-Id": "u1", "X-Request-ID": "trace-abc"})
    assert response.headers["x-request-id"] == "trace-abc"


def test_rejected_requests_carry_request_id(client):
    response = client.get("/companies", headers={"X-Request-ID": "trace-401"})

    assert response.status_code == 401
    assert response.headers["x-request-id"] == "trace-401"


def test_authentication_error_body_has_type(client):
    def no_caller():
        raise AuthenticationError()

    app.dependency_overrides[get_current_user_id] = no_caller

    response = client.get("/companies", headers={"X-User-Id": "u1"})

    assert response.status_code == 401
    assert response.json() == {"detail": "Missing user id", "type": "authentication_error"}
