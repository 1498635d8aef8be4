from supabase import Client, create_client

from ninja_dispatch.config import Settings


def get_supabase(settings: Settings) -> Client:
    if not settings.supabase_url or not settings.supabase_key:
        raise RuntimeError("Supabase credentials missing from .env")
    return create_client(settings.supabase_url, settings.supabase_key)
