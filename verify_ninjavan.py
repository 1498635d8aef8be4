import asyncio
import json
import uuid
from datetime import date, timedelta

from ninja_dispatch.config import load_settings
from ninja_dispatch.dependencies import build_service


def _sample_order(requested_id=None):
    address = {"country": "SG", "address1": "30 Jalan Kilang Barat", "postcode": "159363"}
    order = {
        "service_type": "Parcel",
        "service_level": "Standard",
        "from": {"name": "Sandbox Sender", "phone_number": "+6591234567", "address": address},
        "to": {"name": "Sandbox Receiver", "email": "receiver@example.com", "address": address},
        "parcel_job": {"delivery_start_date": (date.today() + timedelta(days=1)).isoformat()},
        "comments": "sandbox check",
    }
    if requested_id:
        order["requested_tracking_number"] = requested_id
    return order


def run_ninjavan_check():
    print("--- STARTING NINJA VAN VERIFICATION ---")

    # Point NINJAVAN_ENV=development at the sandbox before running this
    settings = load_settings()
    service = build_service(settings)

    try:
        token = service.get_token()
        print(f"[Pass] Token acquired: {token.access_token[:15]}...")
    except Exception as e:
        print(f"[Fail] Authentication failed: {e}")
        return

    try:
        created = service.create_order(_sample_order(), token)
        print(f"[Pass] Order created: {created.tracking_number}")
        canceled = service.cancel_order(created.tracking_number, token)
        print(f"[Pass] Order canceled: {json.dumps(canceled.model_dump(), indent=2)}")
    except Exception as e:
        print(f"[Fail] Single order round trip failed: {e}")
        return

    if not settings.tracking_prefix:
        print("[Skip] NINJAVAN_TRACKING_PREFIX not set, express check skipped.")
        return

    # requested numbers are burned even when cancelled, so use fresh ones
    requested = uuid.uuid4().hex[:10].upper()
    try:
        outcome = asyncio.run(
            service.express([_sample_order(requested)], tracking_prefix=settings.tracking_prefix)
        )
        print(f"[Pass] Express created {outcome.stats.success} order(s), label PDF {len(outcome.waybills)} bytes")
        asyncio.run(service.cancel_orders([r.tracking_number for r in outcome.data]))
    except Exception as e:
        print(f"[Fail] Express check failed: {e}")


if __name__ == "__main__":
    run_ninjavan_check()
