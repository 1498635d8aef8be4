import threading
from datetime import datetime
from typing import Dict, Optional, Protocol

from ninja_dispatch.errors import NinjaDispatchError
from ninja_dispatch.logger import NULL_LOGGER, LogMessages as ms
from ninja_dispatch.schemas import GetToken, GetTokenResponse, Token, WrapperArgs
from ninja_dispatch.services.pipeline import invoke
from ninja_dispatch.services.transport import RemoteCallExecutor


class TokenCache(Protocol):
    def get(self, key: str) -> Optional[Token]:
        ...

    def put(self, key: str, token: Token) -> bool:
        ...


class MemoryTokenCache:
    """Process-local cache; expired tokens read as missing."""

    def __init__(self):
        self._tokens: Dict[str, Token] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[Token]:
        with self._lock:
            token = self._tokens.get(key)
            if token and token.is_expired():
                del self._tokens[key]
                return None
            return token

    def put(self, key: str, token: Token) -> bool:
        with self._lock:
            self._tokens[key] = token
        return True


class SupabaseTokenCache:
    """
    Keeps tokens in a Supabase `preferences` table (`name`, `type`, `value`),
    one `system` row per account key, so several workers share one token.
    """

    def __init__(self, client, table: str = "preferences"):
        self.client = client
        self.table = table

    def get(self, key: str) -> Optional[Token]:
        resp = (
            self.client.table(self.table)
            .select("value")
            .eq("type", "system")
            .eq("name", key)
            .limit(1)
            .execute()
        )
        row = resp.data[0] if resp.data else None
        if not row or not row.get("value"):
            return None

        value = row["value"]
        token = Token(
            access_token=value["token"],
            token_type=value["token_type"],
            expires_at=datetime.fromisoformat(value["expires_at"]),
        )
        return None if token.is_expired() else token

    def put(self, key: str, token: Token) -> bool:
        payload = {
            "name": key,
            "type": "system",
            "value": {
                "token": token.access_token,
                "token_type": token.token_type,
                "expires_at": token.expires_at.isoformat(),
            },
        }
        resp = self.client.table(self.table).upsert(payload, on_conflict="name,type").execute()
        return bool(resp.data)


class CredentialProvider:
    """Hands out a valid access token, from the cache when possible."""

    def __init__(self, args: WrapperArgs, executor: RemoteCallExecutor, cache: Optional[TokenCache] = None, log=None):
        self.args = args
        self.executor = executor
        self.cache = cache if cache is not None else MemoryTokenCache()
        self.log = log or NULL_LOGGER

    @property
    def cache_key(self) -> str:
        return f"{self.args.base_url}/{self.args.country_code}?client_id={self.args.client_id}"

    @property
    def url(self) -> str:
        return f"{self.args.base_url}/{self.args.country_code}/2.0/oauth/access_token"

    def get_token(self) -> Token:
        log = self.log.bind(key=self.cache_key)
        log.info(ms.RUN_GET_TOKEN)

        log.info(ms.GETTING_TOKEN)
        cached = self.cache.get(self.cache_key)
        if cached:
            log.info(ms.TOKEN_FROM_CACHE)
            return cached
        log.info(ms.TOKEN_NOT_IN_CACHE)

        try:
            data = invoke(
                GetToken,
                GetTokenResponse,
                {
                    "url": self.url,
                    "input": {
                        "client_id": self.args.client_id,
                        "client_secret": self.args.client_secret,
                    },
                },
                lambda a: self.executor.request("POST", a.url, json=a.input.model_dump()),
                log=self.log,
            )
        except NinjaDispatchError as e:
            log.bind(error=str(e)).error(ms.GET_TOKEN_ERROR)
            raise

        token = Token.from_response(data)
        # a cache that cannot store is not fatal; the token is still good
        try:
            cached_ok = self.cache.put(self.cache_key, token)
        except Exception as e:
            log.bind(error=str(e)).error(ms.TOKEN_NOT_CACHED)
            cached_ok = False
        if cached_ok:
            log.info(ms.TOKEN_CACHED)
        else:
            log.error(ms.TOKEN_NOT_CACHED)

        return token
