import asyncio
from datetime import datetime
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from ninja_dispatch.errors import (
    BatchCreationError,
    CompensationFailedError,
    LabelRenderingError,
    MissingTrackingPrefixError,
    NinjaDispatchError,
    ReconciliationError,
    WaybillLimitError,
)
from ninja_dispatch.logger import NULL_LOGGER, LogMessages as ms
from ninja_dispatch.schemas import BatchOutcome, CustomWaybill, ExpressOutcome, OrderResult
from ninja_dispatch.services import batch
from ninja_dispatch.services.labels import MAX_LABELS

if TYPE_CHECKING:
    from ninja_dispatch.services.ninjavan import NinjaVanService


def _field(obj: Any, name: str, alias: Optional[str] = None) -> Any:
    """Reads a field off a model or a plain dict request."""
    if obj is None:
        return None
    if isinstance(obj, dict):
        if name in obj:
            return obj[name]
        return obj.get(alias) if alias else None
    return getattr(obj, name, None)


def _requested_id(order: Any) -> Optional[str]:
    return _field(order, "requested_tracking_number") or None


def _person(order: Any, is_sender: bool) -> Any:
    return _field(order, "from_", "from") if is_sender else _field(order, "to")


def _tracking_map(orders: List[Any], prefix: str) -> Dict[str, Optional[str]]:
    return {prefix + rid: None for rid in (_requested_id(o) for o in orders) if rid}


def _suffix(cancelation: BatchOutcome) -> str:
    if cancelation.ok:
        return ""
    return (
        " Unable to cancel some created orders, manual intervention required: "
        + ", ".join(cancelation.error or [])
    )


def _format_delivery_date(result: OrderResult, request: Any) -> str:
    job = result.parcel_job
    start_date = (job.delivery_start_date if job else None) or _field(_field(request, "parcel_job"), "delivery_start_date")
    slot = (job.delivery_timeslot if job else None) or _field(_field(request, "parcel_job"), "delivery_timeslot")

    text = ""
    if start_date:
        try:
            # 2023-02-20 -> 20 Feb 2023
            text = datetime.strptime(str(start_date), "%Y-%m-%d").strftime("%d %b %Y")
        except ValueError:
            text = str(start_date)
    start, end = _field(slot, "start_time"), _field(slot, "end_time")
    if start and end:
        text = f"{text} {start} - {end}".strip()
    return text


def _merge_address(address: Any, orders: List[Any], is_sender: bool) -> str:
    """`address1 address2, COUNTRY postcode`, postcode recovered from the matching request."""
    address1 = _field(address, "address1") or ""
    postcode = _field(address, "postcode")
    if not postcode:
        for order in orders:
            original = _field(_person(order, is_sender), "address")
            if _field(original, "address1") == address1 and _field(original, "postcode"):
                postcode = _field(original, "postcode")
                break

    street = " ".join(p for p in (address1, _field(address, "address2")) if p)
    tail = " ".join(p for p in (_field(address, "country"), postcode) if p)
    return f"{street}, {tail}" if tail else street


def _label(result: OrderResult, request: Any, orders: List[Any], show_sender_details: bool) -> CustomWaybill:
    sender = result.from_ or _person(request, True)
    receiver = result.to or _person(request, False)
    job = result.parcel_job
    request_job = _field(request, "parcel_job")

    cod = (job.cash_on_delivery if job else None) or _field(request_job, "cash_on_delivery") or 0
    dimensions = (job.dimensions if job else None) or _field(request_job, "dimensions")
    comments = _field(request, "comments") or (job.delivery_instructions if job else None) \
        or _field(request_job, "delivery_instructions")

    return CustomWaybill(
        tracking_id=result.tracking_number,
        type=result.service_type or _field(request, "service_type") or "Parcel",
        weight=_field(dimensions, "weight") or 1,
        receiver={
            "name": _field(receiver, "name") or "",
            "contact": _field(receiver, "phone_number") or _field(receiver, "email") or "",
            "address": _merge_address(_field(receiver, "address"), orders, is_sender=False),
        },
        sender={
            "name": _field(sender, "name") or "",
            "contact": (_field(sender, "phone_number") or _field(sender, "email")) if show_sender_details else None,
            "address": _merge_address(_field(sender, "address"), orders, is_sender=True) if show_sender_details else None,
        },
        cod={"amount": cod, "currency": ""},
        delivery_date=_format_delivery_date(result, request),
        comments=comments,
    )


async def express(
    service: "NinjaVanService",
    orders: List[Any],
    tracking_prefix: Optional[str] = None,
    show_sender_details: bool = False,
    limitless: bool = False,
    log=None,
) -> ExpressOutcome:
    """
    Creates every order or none, makes sure the carrier used the requested
    tracking numbers, then renders one label per order.

    Ninja Van reserves a requested tracking number even when its order is
    cancelled, so requested numbers must be fresh on every call.
    """
    log = log or NULL_LOGGER
    orders = list(orders)
    log.info(ms.RUN_EXPRESS)

    if not limitless and len(orders) > MAX_LABELS:
        log.bind(total=len(orders)).error(ms.TOO_MANY_ORDERS)
        raise WaybillLimitError(
            f"Express renders one label per order and is limited to {MAX_LABELS} orders, "
            "use the limitless option to bypass this limit"
        )

    wants_tracking_number = any(_requested_id(o) for o in orders)
    if wants_tracking_number and not tracking_prefix:
        log.error(ms.NO_TRACKING_NUMBERS_PREFIX)
        raise MissingTrackingPrefixError(
            "A tracking number prefix is required when orders carry requested_tracking_number"
        )
    expected = _tracking_map(orders, tracking_prefix) if wants_tracking_number else {}
    log.bind(total=len(orders), requested=len(expected)).info(ms.WANT_TRACKING_NUMBER)

    try:
        token = await asyncio.to_thread(service.get_token)
        outcome = await batch.create_orders(service, orders, token=token, strict=True, log=log)

        if not outcome.ok:
            if outcome.cancelation is None or not outcome.cancelation.ok:
                failed_cancel = ", ".join((outcome.cancelation.error or []) if outcome.cancelation else [])
                raise CompensationFailedError(
                    "Failed to cancel orders that were created, manual intervention required. "
                    f"Failed to create orders: {', '.join(outcome.error or [])}. "
                    f"Failed to cancel orders: {failed_cancel}. "
                    "Cancel the orders that were just created one by one.",
                    outcome=outcome,
                )
            raise BatchCreationError(", ".join(outcome.error or []), outcome=outcome)

        async def reverse_creation() -> BatchOutcome:
            ids = [result.tracking_number for result in outcome.data]
            return await batch.cancel_orders(service, ids, token=token, log=log)

        if wants_tracking_number:
            for result in outcome.data:
                if not result.requested_tracking_number:
                    continue
                key = tracking_prefix + result.requested_tracking_number
                used = result.tracking_number
                # each requested number may be claimed by one result only
                if key not in expected or expected[key] is not None:
                    log.bind(requested=key, used=used).error(ms.UNEXPECTED_TRACKING_NUMBER)
                    cancelation = await reverse_creation()
                    raise ReconciliationError(
                        f"Ninja Van returned tracking number {used} for "
                        f"{key}, which was never requested or already used.{_suffix(cancelation)}",
                        kind=ReconciliationError.UNEXPECTED,
                        requested=key,
                        used=used,
                        cancelation=cancelation,
                    )
                if used != key:
                    log.bind(requested=key, used=used).error(ms.DIFFERENT_TRACKING_NUMBER)
                    cancelation = await reverse_creation()
                    raise ReconciliationError(
                        f"Ninja Van used a different tracking number {used} instead of {key}.{_suffix(cancelation)}",
                        kind=ReconciliationError.MISMATCH,
                        requested=key,
                        used=used,
                        cancelation=cancelation,
                    )
                expected[key] = used

            for key, used in expected.items():
                if used is None:
                    log.bind(requested=key).error(ms.UNUSED_TRACKING_NUMBER)
                    cancelation = await reverse_creation()
                    raise ReconciliationError(
                        f"Ninja Van didn't use the tracking number {key} that you provided.{_suffix(cancelation)}",
                        kind=ReconciliationError.UNUSED,
                        requested=key,
                        cancelation=cancelation,
                    )

        # a strict batch that is ok holds one result per order, in order
        labels = [
            _label(result, request, orders, show_sender_details)
            for result, request in zip(outcome.data, orders)
        ]
        log.bind(total=len(labels)).info(ms.RENDERING_LABELS)
        try:
            waybills = await asyncio.to_thread(service.custom_waybills, labels, None, limitless)
        except Exception as e:
            log.bind(error=str(e)).error(ms.LABELS_FAILED)
            cancelation = await reverse_creation()
            raise LabelRenderingError(
                f"Orders were created but their labels could not be rendered: {e}.{_suffix(cancelation)}",
                outcome=outcome,
                cancelation=cancelation,
            ) from e

        return ExpressOutcome(
            ok=outcome.ok,
            stats=outcome.stats,
            data=outcome.data,
            error=outcome.error,
            cancelation=outcome.cancelation,
            waybills=waybills,
        )
    except NinjaDispatchError as e:
        log.bind(error=str(e)).error(ms.FAILED_TO_CREATE_ORDERS)
        raise
