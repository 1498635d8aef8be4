"""
Logging for ninja_dispatch, based on loguru.

Nothing here is process-wide: every service call takes a logger handle and
falls back to `NullLogger`, so logging stays opt-in per call.

    from ninja_dispatch.logger import get_logger

    log = get_logger(True)
    log.bind(tracking_number="NV123").info(LogMessages.RUN_TRACK_ORDER)
"""

from __future__ import annotations

from typing import Any, Union

from loguru import logger as _loguru


class NullLogger:
    """Swallows everything; same surface as a bound loguru logger."""

    def bind(self, **_context: Any) -> "NullLogger":
        return self

    def debug(self, _message: str, *args: Any, **kwargs: Any) -> None:
        return None

    def info(self, _message: str, *args: Any, **kwargs: Any) -> None:
        return None

    def warning(self, _message: str, *args: Any, **kwargs: Any) -> None:
        return None

    def error(self, _message: str, *args: Any, **kwargs: Any) -> None:
        return None


NULL_LOGGER = NullLogger()


def get_logger(enabled: bool = False):
    if enabled:
        return _loguru.bind(component="ninja_dispatch")
    return NULL_LOGGER


def resolve_logger(value: Union[bool, Any, None], fallback: Any = None):
    """
    Turns the `log` argument of a public call into a logger handle.
    - None  -> fallback (the service's own handle) or NullLogger
    - bool  -> loguru / NullLogger
    - other -> used as is
    """
    if value is None:
        return fallback if fallback is not None else NULL_LOGGER
    if isinstance(value, bool):
        return get_logger(value)
    return value


class LogMessages:
    # wrapper
    INITIALIZING_WRAPPER = "Initializing Wrapper"
    INVALID_WRAPPER_ARGS = "Invalid Wrapper Args"
    INITIALIZED_WRAPPER = "Initialized Wrapper"

    # token
    RUN_GET_TOKEN = "Running get token"
    GETTING_TOKEN = "Getting token from cache first"
    TOKEN_FROM_CACHE = "Got token from cache"
    TOKEN_NOT_IN_CACHE = "Token not in cache"
    TOKEN_CACHED = "Token cached"
    TOKEN_NOT_CACHED = "Token not cached"
    GET_TOKEN_ERROR = "Get token error"

    # create
    RUN_CREATE_ORDER = "Run create order"
    CREATE_ORDER_ERROR = "Create order error"
    RUN_CREATE_ORDERS = "Run create orders"
    CREATING_ORDERS = "Creating orders"
    ALL_ORDERS_CREATED = "All orders created"
    SOME_ORDERS_FAILED = "Some orders failed"
    COMPENSATING = "Cancelling successful orders of a failed strict batch"
    COMPENSATION_FAILED = "Compensation failed, manual reconciliation required"

    # cancel
    RUN_CANCEL_ORDER = "Run cancel order"
    CANCEL_ORDER_ERROR = "Cancel order error"
    RUN_CANCEL_ORDERS = "Run cancel orders"
    CANCELING_ORDERS = "Canceling orders"
    ALL_ORDERS_CANCELED = "All orders canceled"
    SOME_CANCELATION_FAILED = "Some cancelation failed"

    # waybill
    RUN_GENERATE_WAYBILL = "Run generate waybill"
    GETTING_WAYBILL = "Getting waybill from store first"
    WAYBILL_FROM_STORE = "Got waybill from store"
    WAYBILL_NOT_IN_STORE = "Waybill not in store"
    WAYBILL_STORED = "Waybill stored"
    WAYBILL_NOT_STORED = "Waybill not stored"
    WAYBILL_PENDING = (
        "Waybills exist only for fully processed orders (after the Pending Pickup "
        "webhook); an empty document means the order is still queued"
    )
    GENERATE_WAYBILL_ERROR = "Generate waybill error"

    # tracking
    RUN_TRACK_ORDER = "Run track order"
    TRACK_ORDER_ERROR = "Track order error"
    RUN_TRACK_ORDERS = "Run track orders"
    TRACK_ORDERS_ERROR = "Track orders error"

    # labels
    RUN_CUSTOM_WAYBILL = "Run custom waybill"
    RUN_CUSTOM_WAYBILLS = "Run custom waybills"

    # webhooks
    RUN_RECEIVE_WEBHOOK = "Run receive webhook"
    EXTRACTED_PAYLOAD = "Extracted payload"
    NO_SIGNATURE_HEADER = "No signature header"
    INVALID_SIGNATURE = "Invalid signature"
    VALID_SIGNATURE = "Valid signature"
    EXTRACTED_EVENT = "Extracted event"
    NO_EVENT_TYPE = "No event type"
    VALID_EVENT_TYPE = "Valid event type"
    REGISTERED_EVENT_TYPE = "Registered event type"
    NOT_REGISTERED_EVENT_TYPE = "Not registered event type"
    INVALID_EVENT_TYPE = "Invalid event type"

    # api call
    VALIDATING_API_CALL_ARGS = "Validating api call args"
    INVALID_API_CALL_ARGS = "Invalid api call args"
    VALID_API_CALL_ARGS = "Valid api call args"
    CALLING_API = "Calling api"
    API_RESPONDED = "Api responded"
    GETTING_RESPONSE_BODY = "Getting response body"
    GOT_RESPONSE_BODY = "Got response body"
    API_RESPONDED_WITH_ERROR = "Api responded with error"
    VALIDATING_API_RESPONSE = "Validating api response"
    INVALID_API_RESPONSE = "Invalid api response"
    VALID_API_RESPONSE = "Valid api response"

    # express
    RUN_EXPRESS = "Run express"
    WANT_TRACKING_NUMBER = "Want tracking number"
    NO_TRACKING_NUMBERS_PREFIX = "No tracking numbers prefix"
    UNEXPECTED_TRACKING_NUMBER = "Unexpected tracking number"
    UNUSED_TRACKING_NUMBER = "Unused tracking number"
    DIFFERENT_TRACKING_NUMBER = "Different tracking number"
    FAILED_TO_CREATE_ORDERS = "Failed to create orders"
    RENDERING_LABELS = "Rendering labels"
    LABELS_FAILED = "Failed to render labels, cancelling created orders"
    TOO_MANY_ORDERS = "Too many orders for one label batch"
