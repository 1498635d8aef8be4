from typing import Any, Callable, Iterable, List, Optional, Union

import requests
from pydantic import ValidationError

from ninja_dispatch.errors import InvalidWrapperArgs, NinjaDispatchError, WaybillLimitError
from ninja_dispatch.logger import LogMessages as ms, resolve_logger
from ninja_dispatch.schemas import (
    CancelOrder,
    CancelOrderResponse,
    CreateOrder,
    CustomWaybill,
    GenerateWaybill,
    GenerateWaybillResponse,
    OrderResult,
    Token,
    TrackOrder,
    TrackOrderResponse,
    TrackOrders,
    TrackOrdersResponse,
    WrapperArgs,
)
from ninja_dispatch.services import batch, express, webhooks
from ninja_dispatch.services.credentials import CredentialProvider, TokenCache
from ninja_dispatch.services.labels import MAX_LABELS, render_labels
from ninja_dispatch.services.pipeline import invoke
from ninja_dispatch.services.transport import DEFAULT_TIMEOUT, RemoteCallExecutor
from ninja_dispatch.services.waybills import WaybillStore

LabelRenderer = Callable[[List[CustomWaybill], Optional[str]], Any]


class NinjaVanService:
    """
    Client for one Ninja Van account.

    Single-order operations are blocking; the batch, express and webhook
    entry points delegate to their own modules.
    """

    def __init__(
        self,
        args: Union[WrapperArgs, dict],
        token_cache: Optional[TokenCache] = None,
        session: Optional[requests.Session] = None,
        waybill_store: Optional[WaybillStore] = None,
        label_renderer: Optional[LabelRenderer] = None,
        log=None,
        timeout: float = DEFAULT_TIMEOUT,
    ):
        self.log = resolve_logger(log)
        self.log.info(ms.INITIALIZING_WRAPPER)
        try:
            self.args = args if isinstance(args, WrapperArgs) else WrapperArgs.model_validate(args)
        except ValidationError as e:
            self.log.bind(error=str(e)).error(ms.INVALID_WRAPPER_ARGS)
            raise InvalidWrapperArgs(f"{ms.INVALID_WRAPPER_ARGS} {e}") from e

        self.executor = RemoteCallExecutor(session=session, timeout=timeout)
        self.credentials = CredentialProvider(self.args, self.executor, cache=token_cache, log=self.log)
        self.waybill_store = waybill_store
        self.label_renderer = label_renderer or render_labels
        self.log.bind(base_url=self.args.base_url, country_code=self.args.country_code).info(
            ms.INITIALIZED_WRAPPER
        )

    # ------------------------------------------------------------------
    # urls
    # ------------------------------------------------------------------

    @property
    def root(self) -> str:
        return f"{self.args.base_url}/{self.args.country_code}"

    def _authorization(self, token: Union[Token, str, None]) -> str:
        if token is None:
            token = self.get_token()
        return token.authorization if isinstance(token, Token) else token

    # ------------------------------------------------------------------
    # single-order operations
    # ------------------------------------------------------------------

    def get_token(self) -> Token:
        return self.credentials.get_token()

    def create_order(self, order: Any, token: Union[Token, str, None] = None) -> OrderResult:
        self.log.info(ms.RUN_CREATE_ORDER)
        url = f"{self.root}/4.0/orders"
        try:
            auth = self._authorization(token)
            return invoke(
                CreateOrder,
                OrderResult,
                {"url": url, "input": order},
                lambda a: self.executor.request("POST", a.url, token=auth, json=a.input.payload()),
                log=self.log,
            )
        except NinjaDispatchError as e:
            self.log.bind(error=str(e)).error(ms.CREATE_ORDER_ERROR)
            raise

    def cancel_order(self, tracking_number: str, token: Union[Token, str, None] = None) -> CancelOrderResponse:
        log = self.log.bind(tracking_number=tracking_number)
        log.info(ms.RUN_CANCEL_ORDER)
        url = f"{self.root}/2.2/orders/{tracking_number}"
        try:
            auth = self._authorization(token)
            return invoke(
                CancelOrder,
                CancelOrderResponse,
                {"url": url},
                lambda a: self.executor.request("DELETE", a.url, token=auth),
                log=self.log,
            )
        except NinjaDispatchError as e:
            log.bind(error=str(e)).error(ms.CANCEL_ORDER_ERROR)
            raise

    def generate_waybill(
        self,
        tracking_number: str,
        show_shipper_details: bool = False,
        token: Union[Token, str, None] = None,
    ) -> Any:
        """
        The carrier's own waybill PDF. Only available once the order is fully
        processed (Pending Pickup); the endpoint is rate limited, so configure
        a waybill store to fetch each one once.
        """
        name = f"waybill-{tracking_number}"
        log = self.log.bind(tracking_number=tracking_number, name=name)
        log.info(ms.RUN_GENERATE_WAYBILL)

        if self.waybill_store is not None:
            log.info(ms.GETTING_WAYBILL)
            stored = self.waybill_store.get(name)
            if stored:
                log.info(ms.WAYBILL_FROM_STORE)
                return stored
            log.info(ms.WAYBILL_NOT_IN_STORE)

        # h=1 hides the shipper's contact details, h=0 shows them
        params = {"h": 0 if show_shipper_details else 1, "tids": tracking_number}
        url = f"{self.root}/2.0/reports/waybill"
        try:
            auth = self._authorization(token)
            data = invoke(
                GenerateWaybill,
                GenerateWaybillResponse,
                {"url": url},
                lambda a: self.executor.request("GET", a.url, token=auth, params=params, accept="application/pdf"),
                exceptional=True,
                log=self.log,
            )
        except NinjaDispatchError as e:
            log.bind(error=str(e)).error(ms.GENERATE_WAYBILL_ERROR)
            raise
        log.info(ms.WAYBILL_PENDING)

        if self.waybill_store is not None and isinstance(data, bytes):
            path = self.waybill_store.put(name, data)
            if path:
                log.bind(path=path).info(ms.WAYBILL_STORED)
            else:
                log.error(ms.WAYBILL_NOT_STORED)
        return data

    def track_order(self, tracking_number: str, token: Union[Token, str, None] = None) -> TrackOrderResponse:
        """Prefer webhooks for tracking; this is for on-demand lookups."""
        log = self.log.bind(tracking_number=tracking_number)
        log.info(ms.RUN_TRACK_ORDER)
        url = f"{self.root}/1.0/orders/tracking-events/{tracking_number}"
        try:
            auth = self._authorization(token)
            return invoke(
                TrackOrder,
                TrackOrderResponse,
                {"url": url},
                lambda a: self.executor.request("GET", a.url, token=auth),
                log=self.log,
            )
        except NinjaDispatchError as e:
            log.bind(error=str(e)).error(ms.TRACK_ORDER_ERROR)
            raise

    def track_orders(self, tracking_numbers: Iterable[str], token: Union[Token, str, None] = None) -> TrackOrdersResponse:
        tracking_numbers = list(tracking_numbers)
        self.log.bind(total=len(tracking_numbers)).info(ms.RUN_TRACK_ORDERS)
        url = f"{self.root}/1.0/orders/tracking-events"
        params = [("tracking_number", tn) for tn in tracking_numbers]
        try:
            auth = self._authorization(token)
            return invoke(
                TrackOrders,
                TrackOrdersResponse,
                {"url": url},
                lambda a: self.executor.request("GET", a.url, token=auth, params=params),
                log=self.log,
            )
        except NinjaDispatchError as e:
            self.log.bind(error=str(e)).error(ms.TRACK_ORDERS_ERROR)
            raise

    # ------------------------------------------------------------------
    # labels
    # ------------------------------------------------------------------

    def custom_waybill(self, label: Union[CustomWaybill, dict]) -> Any:
        self.log.info(ms.RUN_CUSTOM_WAYBILL)
        return self.label_renderer([CustomWaybill.model_validate(label)], None)

    def custom_waybills(
        self,
        labels: Iterable[Union[CustomWaybill, dict]],
        title: Optional[str] = None,
        limitless: bool = False,
    ) -> Any:
        labels = [CustomWaybill.model_validate(label) for label in labels]
        self.log.bind(total=len(labels)).info(ms.RUN_CUSTOM_WAYBILLS)
        if not limitless and len(labels) > MAX_LABELS:
            raise WaybillLimitError(
                f"You can only generate {MAX_LABELS} waybills at a time, "
                "use the limitless option to bypass this limit"
            )
        return self.label_renderer(labels, title)

    # ------------------------------------------------------------------
    # batch / express / webhooks
    # ------------------------------------------------------------------

    async def create_orders(self, orders, token=None, strict=False, log=None, max_concurrency=None):
        return await batch.create_orders(
            self, orders, token=token, strict=strict,
            log=resolve_logger(log, self.log), max_concurrency=max_concurrency,
        )

    async def cancel_orders(self, tracking_numbers, token=None, log=None, max_concurrency=None):
        return await batch.cancel_orders(
            self, tracking_numbers, token=token,
            log=resolve_logger(log, self.log), max_concurrency=max_concurrency,
        )

    async def express(self, orders, tracking_prefix=None, show_sender_details=False, limitless=False, log=None):
        return await express.express(
            self, orders, tracking_prefix=tracking_prefix,
            show_sender_details=show_sender_details, limitless=limitless,
            log=resolve_logger(log, self.log),
        )

    def receive_webhook(self, body, signature, registered_events, on_failure=None, on_success=None, log=None):
        return webhooks.receive_webhook(
            body,
            signature,
            secret=self.args.client_secret,
            registered_events=registered_events,
            on_failure=on_failure,
            on_success=on_success,
            log=resolve_logger(log, self.log),
        )
