import pytest

from conftest import ROOT, FakeNinjaVan, RecordingLogger, build_order, make_response
from ninja_dispatch.errors import InputValidationError, InvalidWrapperArgs, RemoteCallError
from ninja_dispatch.logger import LogMessages as ms
from ninja_dispatch.services.ninjavan import NinjaVanService
from ninja_dispatch.services.waybills import FileWaybillStore


@pytest.mark.parametrize(
    "args",
    [
        {"client_secret": "s", "country_code": "SG"},
        {"client_id": "c", "client_secret": "s", "country_code": "US"},
        {"client_id": "c", "client_secret": "s", "country_code": "SG", "base_url": "ftp://nope"},
    ],
)
def test_invalid_wrapper_args(args):
    with pytest.raises(InvalidWrapperArgs) as exc:
        NinjaVanService(args)

    assert exc.value.code == 9900


def test_base_url_defaults_to_sandbox_in_development(monkeypatch):
    monkeypatch.setenv("NINJAVAN_ENV", "development")

    service = NinjaVanService({"client_id": "c", "client_secret": "s", "country_code": "SG"})

    assert service.root == "https://api-sandbox.ninjavan.co/sg"


def test_create_order_sends_the_carrier_payload(service, session):
    result = service.create_order(build_order("ABC123", comments="label only"))

    assert result.tracking_number == "PFX-ABC123"
    call = session.calls_to("POST", f"{ROOT}/4.0/orders")[0]
    assert call["headers"]["Authorization"] == "Bearer tok"
    assert call["json"]["from"]["name"] == "Kedai Runcit"
    assert "comments" not in call["json"]
    assert call["json"]["parcel_job"]["delivery_start_date"] == "2023-02-20"


def test_create_order_rejects_bad_postcode_locally(service, session):
    order = build_order()
    order["to"]["address"]["postcode"] = "123"

    with pytest.raises(InputValidationError):
        service.create_order(order, token="Bearer given")

    assert session.calls == []


def test_explicit_token_skips_the_token_endpoint(service, ninja):
    service.cancel_order("NV1", token="Bearer given")

    assert ninja.token_calls == 0
    assert ninja.canceled == ["NV1"]


def test_cancel_order_error(service, ninja):
    ninja.fail_cancel.add("NV1")

    with pytest.raises(RemoteCallError, match="cannot cancel NV1"):
        service.cancel_order("NV1")


def test_token_failure_is_logged_as_the_operation_error(service, session):
    log = service.log = RecordingLogger()
    session.route(
        "POST",
        FakeNinjaVan.TOKEN_URL,
        lambda **_: make_response(401, json={"error": {"title": "Unauthorized", "message": "bad client"}}),
    )

    with pytest.raises(RemoteCallError):
        service.create_order(build_order())

    with pytest.raises(RemoteCallError):
        service.cancel_order("NV1")

    assert ms.CREATE_ORDER_ERROR in log.messages
    assert ms.CANCEL_ORDER_ERROR in log.messages


def test_generate_waybill_is_fetched_once_with_a_store(service, session, tmp_path):
    service.waybill_store = FileWaybillStore(tmp_path)
    session.route("GET", f"{ROOT}/2.0/reports/waybill", lambda **_: make_response(content=b"%PDF-waybill"))

    first = service.generate_waybill("NV1")
    second = service.generate_waybill("NV1")

    assert first == second == b"%PDF-waybill"
    calls = session.calls_to("GET", f"{ROOT}/2.0/reports/waybill")
    assert len(calls) == 1
    assert calls[0]["params"] == {"h": 1, "tids": "NV1"}
    assert (tmp_path / "waybill-NV1.pdf").read_bytes() == b"%PDF-waybill"


def test_generate_waybill_can_show_shipper_details(service, session):
    session.route("GET", f"{ROOT}/2.0/reports/waybill", lambda **_: make_response(content=b"%PDF"))

    service.generate_waybill("NV1", show_shipper_details=True)

    assert session.calls_to("GET", f"{ROOT}/2.0/reports/waybill")[0]["params"]["h"] == 0


def test_track_order(service, session):
    session.route(
        "GET",
        f"{ROOT}/1.0/orders/tracking-events/",
        lambda **_: make_response(
            json={
                "tracking_number": "NV1",
                "is_full_history_available": True,
                "events": [{"status": "Pending Pickup", "timestamp": "2023-02-20T09:00:00Z"}],
            }
        ),
    )

    result = service.track_order("NV1")

    assert result.events[0].status == "Pending Pickup"


def test_track_orders_repeats_the_query_parameter(service, session):
    session.route(
        "GET",
        f"{ROOT}/1.0/orders/tracking-events",
        lambda **_: make_response(json={"data": [{"tracking_number": "NV1"}, {"tracking_number": "NV2"}]}),
    )

    result = service.track_orders(["NV1", "NV2"])

    assert [r.tracking_number for r in result.data] == ["NV1", "NV2"]
    call = session.calls_to("GET", f"{ROOT}/1.0/orders/tracking-events")[0]
    assert call["params"] == [("tracking_number", "NV1"), ("tracking_number", "NV2")]
