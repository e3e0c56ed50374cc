from __future__ import annotations

import logging
import uuid

import pytest
from fastapi.testclient import TestClient

from console.models.user import User
from tests.conftest import auth


def test_request_id_generated_when_absent(client: TestClient) -> None:
    req_id = client.get("/health").headers.get("x-request-id")
    assert req_id is not None
    uuid.UUID(req_id)


def test_request_id_echoed_when_sent(client: TestClient) -> None:
    resp = client.get("/health", headers={"X-Request-ID": "trace-abc"})
    assert resp.headers["x-request-id"] == "trace-abc"


def test_rejected_requests_still_carry_request_id(client: TestClient) -> None:
    resp = client.get("/console/users/info")
    assert resp.status_code == 401
    assert resp.headers.get("x-request-id") is not None


def test_service_logs_carry_request_id(
    client: TestClient,
    admin_user: User,
    root_user: User,
    caplog: pytest.LogCaptureFixture,
) -> None:
    with caplog.at_level(logging.WARNING, logger="console.services.accounts"):
        client.delete(
            f"/console/users/{root_user.id}",
            headers={**auth(admin_user), "X-Request-ID": "del-root-1"},
        )
    refusals = [r for r in caplog.records if "Refused to delete root" in r.getMessage()]
    assert refusals
    assert refusals[0].request_id == "del-root-1"  # type: ignore[attr-defined]
