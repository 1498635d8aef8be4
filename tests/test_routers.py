import json

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from conftest import ROOT, make_response
from ninja_dispatch.dependencies import get_service
from ninja_dispatch.errors import InvalidWrapperArgs
from ninja_dispatch.main import app
from ninja_dispatch.routers.webhooks import build_webhook_router
from ninja_dispatch.services.webhooks import SIGNATURE_HEADER, sign_payload


@pytest.fixture
def client(service):
    app.dependency_overrides[get_service] = lambda: service
    yield TestClient(app)
    app.dependency_overrides.clear()


def _signed(payload: dict, secret: str = "secret"):
    body = json.dumps(payload)
    return body, {SIGNATURE_HEADER: sign_payload(body, secret), "Content-Type": "application/json"}


def test_root(client):
    assert client.get("/").json() == {"status": "ONLINE", "engine": "Ninja Dispatch"}


def test_track(client, session):
    session.route(
        "GET",
        f"{ROOT}/1.0/orders/tracking-events/",
        lambda **_: make_response(json={"tracking_number": "NV1", "events": [{"status": "Completed"}]}),
    )

    response = client.get("/track/NV1")

    assert response.status_code == 200
    assert response.json()["events"][0]["status"] == "Completed"


def test_track_remote_error_is_bad_gateway(client):
    response = client.get("/track/NV404")

    assert response.status_code == 502
    assert "Not Found" in response.json()["detail"]


def test_webhook_accepted(client):
    body, headers = _signed({"status": "Completed", "tracking_id": "NV1"})

    response = client.post("/webhooks/ninjavan", content=body, headers=headers)

    assert response.status_code == 200
    assert response.json() == {"received": True, "accepted": True}


@pytest.mark.parametrize(
    "headers, code",
    [
        ({}, 9901),
        ({SIGNATURE_HEADER: "forged"}, 9902),
    ],
)
def test_webhook_rejections_still_answer_200(client, headers, code):
    response = client.post("/webhooks/ninjavan", content=json.dumps({"status": "Completed"}), headers=headers)

    assert response.status_code == 200
    assert response.json()["code"] == code


def test_failing_callback_still_answers_200(service):
    def explode(_event):
        raise RuntimeError("db down")

    local = FastAPI()
    local.include_router(build_webhook_router(lambda: service, ["Completed"], on_success=explode))
    body, headers = _signed({"status": "Completed"})

    response = TestClient(local).post("/webhooks/ninjavan", content=body, headers=headers)

    assert response.status_code == 200
    assert response.json()["accepted"] is False


def test_custom_failure_callback_and_path(service):
    seen = []
    local = FastAPI()
    local.include_router(
        build_webhook_router(
            lambda: service,
            ["Completed"],
            on_failure=lambda rejection, data: seen.append((rejection.code, data)),
            path="/hooks/nv",
        )
    )
    body, headers = _signed({"status": "Pickup Fail"})

    TestClient(local).post("/hooks/nv", content=body, headers=headers)

    assert seen == [(9904, {"event": "Pickup Fail", "status": "Pickup Fail"})]


def test_unknown_registered_event_fails_at_build_time(service):
    with pytest.raises(InvalidWrapperArgs):
        build_webhook_router(lambda: service, ["Teleported"])


def test_broken_service_setup_still_answers_200():
    def missing_credentials():
        raise RuntimeError("NINJAVAN_CLIENT_ID is not set")

    local = FastAPI()
    local.include_router(build_webhook_router(missing_credentials, ["Completed"]))
    body, headers = _signed({"status": "Completed"})

    response = TestClient(local).post("/webhooks/ninjavan", content=body, headers=headers)

    assert response.status_code == 200
    assert response.json() == {"received": True, "accepted": False}
