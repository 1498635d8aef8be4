import asyncio
from typing import TYPE_CHECKING, Any, Callable, Iterable, List, Optional, Sequence, Tuple, Union

from ninja_dispatch.errors import error_message
from ninja_dispatch.logger import NULL_LOGGER, LogMessages as ms
from ninja_dispatch.schemas import BatchOutcome, BatchStats, Token

if TYPE_CHECKING:
    from ninja_dispatch.services.ninjavan import NinjaVanService


async def _settle(calls: Sequence[Callable[[], Any]], max_concurrency: Optional[int] = None) -> List[Any]:
    """
    Runs every blocking call in a worker thread and waits for all of them.
    Results come back in input order; a failed call yields its exception.
    """
    semaphore = asyncio.Semaphore(max_concurrency) if max_concurrency else None

    async def _run(call: Callable[[], Any]) -> Any:
        if semaphore is None:
            return await asyncio.to_thread(call)
        async with semaphore:
            return await asyncio.to_thread(call)

    return await asyncio.gather(*(_run(call) for call in calls), return_exceptions=True)


def _partition(results: List[Any]) -> Tuple[List[Any], List[BaseException]]:
    fulfilled, rejected = [], []
    for r in results:
        if isinstance(r, Exception):
            rejected.append(r)
        elif isinstance(r, BaseException):
            # KeyboardInterrupt and friends are not batch failures
            raise r
        else:
            fulfilled.append(r)
    return fulfilled, rejected


def _outcome(fulfilled: List[Any], rejected: List[BaseException], cancelation: Optional[BatchOutcome] = None) -> BatchOutcome:
    return BatchOutcome(
        ok=not rejected,
        stats=BatchStats(
            total=len(fulfilled) + len(rejected),
            success=len(fulfilled),
            failed=len(rejected),
        ),
        data=fulfilled,
        error=[error_message(e) for e in rejected] if rejected else None,
        cancelation=cancelation,
    )


async def _shared_token(service: "NinjaVanService", token: Union[Token, str, None]) -> Union[Token, str]:
    # one token for the whole batch, fetched before fan-out
    if token is not None:
        return token
    return await asyncio.to_thread(service.get_token)


async def create_orders(
    service: "NinjaVanService",
    orders: Iterable[Any],
    token: Union[Token, str, None] = None,
    strict: bool = False,
    log=None,
    max_concurrency: Optional[int] = None,
) -> BatchOutcome:
    """
    Creates every order concurrently.

    With `strict`, a batch with any failure is rolled back: every order that
    was created gets cancelled and the cancellation batch is returned as
    `cancelation`. If that rollback is not ok, orders exist on the carrier
    side the caller has no record of (`requires_manual_reconciliation`).
    """
    log = log or NULL_LOGGER
    orders = list(orders)
    log.info(ms.RUN_CREATE_ORDERS)

    log.info(ms.GETTING_TOKEN)
    token = await _shared_token(service, token)

    log.bind(total=len(orders), strict=strict).info(ms.CREATING_ORDERS)
    results = await _settle(
        [lambda order=order: service.create_order(order, token) for order in orders],
        max_concurrency,
    )
    fulfilled, rejected = _partition(results)

    if not rejected:
        log.bind(total=len(fulfilled)).info(ms.ALL_ORDERS_CREATED)
        return _outcome(fulfilled, rejected)

    log.bind(total=len(results), failed=len(rejected)).error(ms.SOME_ORDERS_FAILED)
    if not strict:
        return _outcome(fulfilled, rejected)

    tracking_numbers = [result.tracking_number for result in fulfilled]
    log.bind(canceling=tracking_numbers).info(ms.COMPENSATING)
    cancelation = await cancel_orders(service, tracking_numbers, token=token, log=log, max_concurrency=max_concurrency)
    if not cancelation.ok:
        log.bind(failed=cancelation.error).error(ms.COMPENSATION_FAILED)

    return _outcome(fulfilled, rejected, cancelation=cancelation)


async def cancel_orders(
    service: "NinjaVanService",
    tracking_numbers: Iterable[str],
    token: Union[Token, str, None] = None,
    log=None,
    max_concurrency: Optional[int] = None,
) -> BatchOutcome:
    """Cancels every tracking number concurrently. Failures are reported, never retried."""
    log = log or NULL_LOGGER
    tracking_numbers = list(tracking_numbers)
    log.info(ms.RUN_CANCEL_ORDERS)

    token = await _shared_token(service, token)

    log.bind(total=len(tracking_numbers), canceling=tracking_numbers).info(ms.CANCELING_ORDERS)
    results = await _settle(
        [lambda tn=tn: service.cancel_order(tn, token) for tn in tracking_numbers],
        max_concurrency,
    )
    fulfilled, rejected = _partition(results)

    if not rejected:
        log.bind(total=len(fulfilled)).info(ms.ALL_ORDERS_CANCELED)
    else:
        log.bind(total=len(results), failed=len(rejected)).error(ms.SOME_CANCELATION_FAILED)

    return _outcome(fulfilled, rejected)
