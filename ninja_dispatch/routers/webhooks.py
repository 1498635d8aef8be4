from typing import Any, Callable, Iterable, Optional

from fastapi import APIRouter, Request
from loguru import logger

from ninja_dispatch.schemas import WebhookEvent, WebhookRejection
from ninja_dispatch.services.ninjavan import NinjaVanService
from ninja_dispatch.services.webhooks import SIGNATURE_HEADER, validate_registered_events


def _report_failure(rejection: WebhookRejection, data: Any) -> None:
    logger.bind(code=rejection.code, data=data).warning(f"Webhook rejected: {rejection.message}")


def _report_success(event: WebhookEvent) -> None:
    logger.bind(tracking_id=event.tracking_id).info(f"Webhook received: {event.event}")


def build_webhook_router(
    service_factory: Callable[[], NinjaVanService],
    registered_events: Iterable[str] = ("*",),
    on_failure: Optional[Callable[[WebhookRejection, Any], Any]] = None,
    on_success: Optional[Callable[[WebhookEvent], Any]] = None,
    path: str = "/webhooks/ninjavan",
) -> APIRouter:
    """
    POST endpoint for Ninja Van tracking webhooks.

    Always answers 200: Ninja Van turns an endpoint off after repeated
    non-200 answers, so rejections go to `on_failure` instead.
    """
    events = validate_registered_events(registered_events)
    on_failure = on_failure or _report_failure
    on_success = on_success or _report_success

    router = APIRouter(tags=["Webhooks"])

    @router.post(path)
    async def receive(request: Request):
        body = await request.body()
        signature = request.headers.get(SIGNATURE_HEADER)
        # resolved in the handler so a broken setup still answers 200; overrides still apply
        factory = request.app.dependency_overrides.get(service_factory, service_factory)
        try:
            service = factory()
        except Exception:
            logger.exception("Webhook service unavailable")
            return {"received": True, "accepted": False}

        try:
            result = service.receive_webhook(
                body, signature, events, on_failure=on_failure, on_success=on_success
            )
        except Exception:
            # a failing callback still answers 200
            logger.exception("Webhook callback failed")
            return {"received": True, "accepted": False}

        response = {"received": True, "accepted": result.accepted}
        if result.rejection is not None:
            response["code"] = result.rejection.code
        return response

    return router
