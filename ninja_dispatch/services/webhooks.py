import base64
import hashlib
import hmac
import json
from enum import IntEnum
from typing import Any, Callable, Iterable, List, Optional, Union

from pydantic import BaseModel

from ninja_dispatch.errors import InvalidWrapperArgs
from ninja_dispatch.logger import NULL_LOGGER, LogMessages as ms
from ninja_dispatch.schemas import WebhookEvent, WebhookRejection

SIGNATURE_HEADER = "X-Ninjavan-Hmac-Sha256"
WILDCARD = "*"
UNPARSEABLE_BODY = "Couldn't parse body"

WEBHOOK_EVENT_TYPES = (
    "Cancelled",
    "Returned to Sender",
    "Successful Delivery",
    "Completed",
    "Customs Held",
    "Customs Cleared",
    "Cross Border Transit",
    "Staging",
    "Parcel Measurements Update",
    "Parcel Weight",
    "Parcel Size",
    "Van En-route to Pickup",
    "Return to Sender Triggered",
    "Pending Pickup at Distribution Point",
    "Arrived at Distribution Point",
    "On Vehicle for Delivery (RTS)",
    "First Attempt Delivery Fail",
    "Pending Reschedule",
    "On Vehicle for Delivery",
    "Arrived at Origin Hub",
    "Transferred to 3PL",
    "Arrived at Sorting Hub",
    "En-route to Sorting Hub",
    "Pickup Fail",
    "Successful Pickup",
    "Pending Pickup",
)


class WebhookErrorCode(IntEnum):
    INVALID_ARGS = 9900
    NO_SIGNATURE = 9901
    INVALID_SIGNATURE = 9902
    NO_EVENT_TYPE = 9903
    NOT_REGISTERED = 9904
    INVALID_EVENT_TYPE = 9905


class WebhookResult(BaseModel):
    accepted: bool
    event: Optional[WebhookEvent] = None
    rejection: Optional[WebhookRejection] = None
    data: Any = None


FailureCallback = Callable[[WebhookRejection, Any], Any]
SuccessCallback = Callable[[WebhookEvent], Any]


def is_event_type(value: Any) -> bool:
    return isinstance(value, str) and value in WEBHOOK_EVENT_TYPES


def validate_registered_events(events: Iterable[str]) -> List[str]:
    """Setup-time check; the carrier never sends anything outside the known set."""
    events = list(events)
    unknown = [e for e in events if e != WILDCARD and not is_event_type(e)]
    if not events or unknown:
        raise InvalidWrapperArgs(
            f"Invalid registered webhook events: {', '.join(unknown) or '(none)'}"
        )
    return events


def _as_bytes(value: Union[str, bytes]) -> bytes:
    return value.encode("utf-8") if isinstance(value, str) else value


def sign_payload(body: Union[str, bytes], secret: str) -> str:
    digest = hmac.new(_as_bytes(secret), _as_bytes(body), hashlib.sha256).digest()
    return base64.b64encode(digest).decode("ascii")


def verify_signature(body: Union[str, bytes], signature: Optional[str], secret: str) -> bool:
    if not signature or not secret:
        return False
    expected = sign_payload(body, secret)
    return hmac.compare_digest(expected.encode("ascii"), _as_bytes(signature))


def _parse(body: Union[str, bytes]) -> Any:
    try:
        return json.loads(body)
    except (TypeError, ValueError):
        return None


def receive_webhook(
    body: Union[str, bytes],
    signature: Optional[str],
    secret: str,
    registered_events: Iterable[str],
    on_failure: Optional[FailureCallback] = None,
    on_success: Optional[SuccessCallback] = None,
    log=None,
) -> WebhookResult:
    """
    Authenticates and classifies one inbound event.

    Ninja Van disables an endpoint after too many non-200 answers, so nothing
    here raises: every rejection carries a stable code (9901-9905) and goes to
    `on_failure`, and the caller decides which codes are fatal.
    """
    log = log or NULL_LOGGER
    registered = set(registered_events)
    log.info(ms.RUN_RECEIVE_WEBHOOK)

    parsed = _parse(body)
    log.bind(signature=signature).info(ms.EXTRACTED_PAYLOAD)

    def reject(code: WebhookErrorCode, message: str, data: Any = None) -> WebhookResult:
        rejection = WebhookRejection(code=int(code), message=message)
        if data is None:
            data = {"body": parsed if parsed is not None else UNPARSEABLE_BODY}
        if on_failure is not None:
            on_failure(rejection, data)
        return WebhookResult(accepted=False, rejection=rejection, data=data)

    if not signature:
        log.error(ms.NO_SIGNATURE_HEADER)
        return reject(WebhookErrorCode.NO_SIGNATURE, "No signature header found")

    if not verify_signature(body, signature, secret):
        log.error(ms.INVALID_SIGNATURE)
        return reject(WebhookErrorCode.INVALID_SIGNATURE, "Invalid signature")
    log.info(ms.VALID_SIGNATURE)

    payload = parsed if isinstance(parsed, dict) else {}
    event_type = payload.get("status")
    log.bind(event=event_type).info(ms.EXTRACTED_EVENT)

    if not event_type:
        log.error(ms.NO_EVENT_TYPE)
        return reject(WebhookErrorCode.NO_EVENT_TYPE, "No event type found")

    if not is_event_type(event_type):
        log.bind(event=event_type).error(ms.INVALID_EVENT_TYPE)
        return reject(WebhookErrorCode.INVALID_EVENT_TYPE, f"Invalid event type: {event_type}")
    log.bind(event=event_type).info(ms.VALID_EVENT_TYPE)

    if event_type not in registered and WILDCARD not in registered:
        log.bind(event=event_type).error(ms.NOT_REGISTERED_EVENT_TYPE)
        return reject(
            WebhookErrorCode.NOT_REGISTERED,
            f"Event type not registered: {event_type}",
            data={"event": event_type, **payload},
        )

    log.bind(event=event_type).info(ms.REGISTERED_EVENT_TYPE)
    event = WebhookEvent(event=event_type, payload=payload)
    if on_success is not None:
        on_success(event)
    return WebhookResult(accepted=True, event=event)
