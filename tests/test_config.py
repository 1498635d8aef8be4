import pytest

from ninja_dispatch.config import default_base_url, load_settings, load_webhook_events
from ninja_dispatch.dependencies import build_service
from ninja_dispatch.services.credentials import MemoryTokenCache, SupabaseTokenCache
from ninja_dispatch.services.waybills import FileWaybillStore

ENV = (
    "NINJAVAN_CLIENT_ID",
    "NINJAVAN_CLIENT_SECRET",
    "NINJAVAN_COUNTRY_CODE",
    "NINJAVAN_BASE_URL",
    "NINJAVAN_ENV",
    "NINJAVAN_TRACKING_PREFIX",
    "NINJAVAN_WAYBILL_DIR",
    "NINJAVAN_LOG",
    "NINJAVAN_WEBHOOK_EVENTS",
    "NINJAVAN_HTTP_TIMEOUT",
    "SUPABASE_URL",
    "SUPABASE_KEY",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


def test_credentials_are_required(clean_env):
    clean_env.setenv("NINJAVAN_CLIENT_ID", "c")

    with pytest.raises(RuntimeError, match="NINJAVAN_CLIENT_SECRET"):
        load_settings()


def test_defaults(clean_env):
    clean_env.setenv("NINJAVAN_CLIENT_ID", "c")
    clean_env.setenv("NINJAVAN_CLIENT_SECRET", "s")

    settings = load_settings()

    assert settings.country_code == "SG"
    assert settings.http_timeout == 30.0
    assert settings.webhook_events == ["*"]
    assert settings.log_enabled is False
    assert settings.wrapper_args() == {"client_id": "c", "client_secret": "s", "country_code": "SG"}
    assert default_base_url() == "https://api.ninjavan.co"


def test_overrides(clean_env, tmp_path):
    clean_env.setenv("NINJAVAN_CLIENT_ID", "c")
    clean_env.setenv("NINJAVAN_CLIENT_SECRET", "s")
    clean_env.setenv("NINJAVAN_COUNTRY_CODE", "MY")
    clean_env.setenv("NINJAVAN_BASE_URL", "https://api.test")
    clean_env.setenv("NINJAVAN_LOG", "true")
    clean_env.setenv("NINJAVAN_WEBHOOK_EVENTS", "Completed, Pickup Fail")
    clean_env.setenv("NINJAVAN_HTTP_TIMEOUT", "5")
    clean_env.setenv("NINJAVAN_WAYBILL_DIR", str(tmp_path))

    settings = load_settings()
    service = build_service(settings)

    assert settings.webhook_events == ["Completed", "Pickup Fail"]
    assert load_webhook_events() == ["Completed", "Pickup Fail"]
    assert service.root == "https://api.test/my"
    assert service.executor.timeout == 5.0
    assert isinstance(service.credentials.cache, MemoryTokenCache)
    assert isinstance(service.waybill_store, FileWaybillStore)


def test_supabase_settings_switch_the_token_cache(clean_env, monkeypatch):
    clean_env.setenv("NINJAVAN_CLIENT_ID", "c")
    clean_env.setenv("NINJAVAN_CLIENT_SECRET", "s")
    clean_env.setenv("SUPABASE_URL", "https://db.test")
    clean_env.setenv("SUPABASE_KEY", "key")
    monkeypatch.setattr("ninja_dispatch.dependencies.get_supabase", lambda settings: object())

    service = build_service(load_settings())

    assert isinstance(service.credentials.cache, SupabaseTokenCache)
