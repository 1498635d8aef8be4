from functools import lru_cache

from ninja_dispatch.config import Settings, load_settings
from ninja_dispatch.logger import get_logger
from ninja_dispatch.services.credentials import MemoryTokenCache, SupabaseTokenCache
from ninja_dispatch.services.ninjavan import NinjaVanService
from ninja_dispatch.services.supabase_client import get_supabase
from ninja_dispatch.services.waybills import FileWaybillStore


@lru_cache
def get_settings() -> Settings:
    return load_settings()


def build_service(settings: Settings) -> NinjaVanService:
    """One service per account, wired from settings."""
    if settings.supabase_url and settings.supabase_key:
        token_cache = SupabaseTokenCache(get_supabase(settings))
    else:
        token_cache = MemoryTokenCache()

    waybill_store = FileWaybillStore(settings.waybill_dir) if settings.waybill_dir else None

    return NinjaVanService(
        settings.wrapper_args(),
        token_cache=token_cache,
        waybill_store=waybill_store,
        log=get_logger(settings.log_enabled),
        timeout=settings.http_timeout,
    )


@lru_cache
def get_service() -> NinjaVanService:
    return build_service(get_settings())
