import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

# Locate .env in the project root
env_path = Path(__file__).resolve().parent.parent / '.env'
load_dotenv(dotenv_path=env_path)


def _require_env(name: str) -> str:
    value = os.getenv(name)
    if not value:
        raise RuntimeError(f"Missing required environment variable: {name}")
    return value


def _get_bool(name: str, fallback: bool = False) -> bool:
    raw_value = os.getenv(name)
    if raw_value is None:
        return fallback
    return raw_value.strip().lower() in {"1", "true", "yes", "on"}


def _get_list(name: str, fallback: str = "") -> List[str]:
    raw_value = os.getenv(name, fallback)
    if not raw_value:
        return []
    return [item.strip() for item in raw_value.split(",") if item.strip()]


@dataclass(frozen=True)
class Settings:
    client_id: str
    client_secret: str
    country_code: str = "SG"
    base_url: Optional[str] = None
    tracking_prefix: Optional[str] = None
    waybill_dir: Optional[str] = None
    log_enabled: bool = False
    http_timeout: float = 30.0
    webhook_events: List[str] = field(default_factory=lambda: ["*"])
    supabase_url: Optional[str] = None
    supabase_key: Optional[str] = None

    def wrapper_args(self) -> dict:
        """Arguments accepted by `NinjaVanService`."""
        args = {
            "client_id": self.client_id,
            "client_secret": self.client_secret,
            "country_code": self.country_code,
        }
        if self.base_url:
            args["base_url"] = self.base_url
        return args


def load_settings() -> Settings:
    """Reads the NINJAVAN_* variables (and optional Supabase ones) from the environment."""
    return Settings(
        client_id=_require_env("NINJAVAN_CLIENT_ID"),
        client_secret=_require_env("NINJAVAN_CLIENT_SECRET"),
        country_code=os.getenv("NINJAVAN_COUNTRY_CODE", "SG"),
        base_url=os.getenv("NINJAVAN_BASE_URL") or None,
        tracking_prefix=os.getenv("NINJAVAN_TRACKING_PREFIX") or None,
        waybill_dir=os.getenv("NINJAVAN_WAYBILL_DIR") or None,
        log_enabled=_get_bool("NINJAVAN_LOG"),
        http_timeout=float(os.getenv("NINJAVAN_HTTP_TIMEOUT", "30")),
        webhook_events=load_webhook_events(),
        supabase_url=os.getenv("SUPABASE_URL") or None,
        supabase_key=os.getenv("SUPABASE_KEY") or None,
    )


def default_base_url() -> str:
    if os.getenv("NINJAVAN_ENV", "").lower() == "development":
        return "https://api-sandbox.ninjavan.co"
    return "https://api.ninjavan.co"


def load_webhook_events() -> List[str]:
    # read on its own so routers can be built before credentials exist
    return _get_list("NINJAVAN_WEBHOOK_EVENTS", "*")
