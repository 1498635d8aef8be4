import json as jsonlib
import threading
from typing import Any, Callable, Dict, List, Optional

import pytest
import requests

from ninja_dispatch.services.ninjavan import NinjaVanService

BASE_URL = "https://api.test"
ROOT = f"{BASE_URL}/sg"


def make_response(
    status: int = 200,
    json: Any = None,
    text: Optional[str] = None,
    content: Optional[bytes] = None,
    content_type: Optional[str] = None,
) -> requests.Response:
    response = requests.Response()
    response.status_code = status
    response.encoding = "utf-8"
    if json is not None:
        response._content = jsonlib.dumps(json).encode("utf-8")
        response.headers["Content-Type"] = content_type or "application/json"
    elif text is not None:
        response._content = text.encode("utf-8")
        response.headers["Content-Type"] = content_type or "text/plain; charset=utf-8"
    else:
        response._content = content or b""
        response.headers["Content-Type"] = content_type or "application/pdf"
    return response


class FakeSession:
    """Stands in for requests.Session; routes by method and url prefix."""

    def __init__(self):
        self.routes: List[tuple] = []
        self.calls: List[dict] = []
        self._lock = threading.Lock()

    def route(self, method: str, prefix: str, handler: Callable[..., requests.Response]) -> None:
        # most recent registration wins
        self.routes.insert(0, (method, prefix, handler))

    def request(self, method, url, headers=None, json=None, params=None, timeout=None, allow_redirects=True):
        with self._lock:
            self.calls.append(
                {"method": method, "url": url, "headers": headers or {}, "json": json, "params": params}
            )
        for route_method, prefix, handler in self.routes:
            if route_method == method and url.startswith(prefix):
                return handler(url=url, json=json, params=params, headers=headers or {})
        return make_response(404, json={"error": {"title": "Not Found", "message": url}})

    def calls_to(self, method: str, prefix: str) -> List[dict]:
        return [c for c in self.calls if c["method"] == method and c["url"].startswith(prefix)]


class FakeNinjaVan:
    """
    Enough of the Ninja Van API for orchestration tests.

    - orders whose requested number is in `fail_create` are rejected
    - tracking numbers in `fail_cancel` cannot be cancelled
    - `echo[requested]` overrides fields of the created order's answer; a list
      gives one override per call
    """

    TOKEN_URL = f"{ROOT}/2.0/oauth/access_token"
    ORDERS_URL = f"{ROOT}/4.0/orders"
    CANCEL_URL = f"{ROOT}/2.2/orders/"

    def __init__(self, session: FakeSession, prefix: str = "PFX-"):
        self.session = session
        self.prefix = prefix
        self.fail_create: set = set()
        self.fail_cancel: set = set()
        self.echo: Dict[str, Any] = {}
        self.created: List[str] = []
        self.canceled: List[str] = []
        self._counter = 0
        self._lock = threading.Lock()

        session.route("POST", self.TOKEN_URL, self._token)
        session.route("POST", self.ORDERS_URL, self._create)
        session.route("DELETE", self.CANCEL_URL, self._cancel)

    @property
    def token_calls(self) -> int:
        return len(self.session.calls_to("POST", self.TOKEN_URL))

    def _token(self, **_kwargs):
        return make_response(
            json={"access_token": "tok", "token_type": "bearer", "expires": 1999999999, "expires_in": 3600}
        )

    def _create(self, json=None, **_kwargs):
        requested = json.get("requested_tracking_number")
        if requested in self.fail_create:
            return make_response(
                400,
                json={"error": {"title": "Invalid order", "message": f"rejected {requested}"}},
            )
        with self._lock:
            self._counter += 1
            generated = f"NV{self._counter:06d}"
        body = {
            "tracking_number": self.prefix + requested if requested else generated,
            "requested_tracking_number": requested,
            "service_type": json.get("service_type"),
            "service_level": json.get("service_level"),
            "from": json.get("from"),
            "to": json.get("to"),
            "parcel_job": json.get("parcel_job"),
        }
        override = self.echo.get(requested, {})
        if isinstance(override, list):
            # one answer per call, in arrival order
            with self._lock:
                override = override.pop(0) if override else {}
        body.update(override)
        with self._lock:
            self.created.append(body["tracking_number"])
        return make_response(json=body)

    def _cancel(self, url, **_kwargs):
        tracking_number = url.rsplit("/", 1)[-1]
        if tracking_number in self.fail_cancel:
            return make_response(500, text=f"cannot cancel {tracking_number}")
        with self._lock:
            self.canceled.append(tracking_number)
        return make_response(
            json={"trackingId": tracking_number, "status": "Cancelled", "updatedAt": "2023-02-20T09:00:00Z"}
        )


class RecordingLogger:
    """Keeps every message it gets, in order."""

    def __init__(self):
        self.records: List[tuple] = []

    def bind(self, **_context):
        return self

    def debug(self, message, *args, **kwargs):
        self.records.append(("debug", message))

    def info(self, message, *args, **kwargs):
        self.records.append(("info", message))

    def warning(self, message, *args, **kwargs):
        self.records.append(("warning", message))

    def error(self, message, *args, **kwargs):
        self.records.append(("error", message))

    @property
    def messages(self) -> List[str]:
        return [m for _, m in self.records]


def build_order(requested: Optional[str] = None, **overrides) -> dict:
    order = {
        "service_type": "Parcel",
        "service_level": "Standard",
        "from": {
            "name": "Kedai Runcit",
            "phone_number": "+6591234567",
            "address": {"country": "SG", "address1": "30 Jalan Kilang Barat", "postcode": "159363"},
        },
        "to": {
            "name": "Tan Ah Kow",
            "email": "ahkow@example.com",
            "address": {
                "country": "SG",
                "address1": "1 Raffles Place",
                "address2": "#20-01",
                "postcode": "048616",
            },
        },
        "parcel_job": {
            "delivery_start_date": "2023-02-20",
            "delivery_timeslot": {"start_time": "09:00", "end_time": "22:00", "timezone": "Asia/Singapore"},
            "dimensions": {"weight": 2.5},
            "cash_on_delivery": 12.5,
        },
    }
    if requested:
        order["requested_tracking_number"] = requested
    order.update(overrides)
    return order


@pytest.fixture
def session() -> FakeSession:
    return FakeSession()


@pytest.fixture
def ninja(session) -> FakeNinjaVan:
    return FakeNinjaVan(session)


@pytest.fixture
def rendered() -> list:
    return []


@pytest.fixture
def service(session, ninja, rendered) -> NinjaVanService:
    def renderer(labels, title=None):
        rendered.append(list(labels))
        return b"%PDF-fake"

    return NinjaVanService(
        {"client_id": "client", "client_secret": "secret", "country_code": "SG", "base_url": BASE_URL},
        session=session,
        label_renderer=renderer,
    )
