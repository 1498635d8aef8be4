from dataclasses import dataclass
from typing import Any, Callable, Optional, Union

import requests

from ninja_dispatch.errors import RemoteCallError

SUCCESS_STATUS = 200
DEFAULT_TIMEOUT = 30.0


@dataclass(frozen=True)
class JsonBody:
    value: Any
    kind: str = "json"


@dataclass(frozen=True)
class TextBody:
    value: str
    kind: str = "text"


@dataclass(frozen=True)
class BinaryBody:
    value: bytes
    kind: str = "binary"


ParsedBody = Union[JsonBody, TextBody, BinaryBody]


@dataclass(frozen=True)
class RemoteResult:
    status_code: int
    body: ParsedBody

    @property
    def ok(self) -> bool:
        return self.status_code == SUCCESS_STATUS


def parse_body(response: requests.Response) -> ParsedBody:
    """JSON, text or raw bytes, picked once from the declared content type."""
    content_type = (response.headers.get("content-type") or "").lower()
    if "json" in content_type:
        try:
            return JsonBody(response.json())
        except ValueError as e:
            raise RemoteCallError(
                f"Malformed JSON body (status {response.status_code})",
                status_code=response.status_code,
                body=response.text,
            ) from e
    if "text" in content_type:
        return TextBody(response.text)
    return BinaryBody(response.content)


def execute(send: Callable[[], requests.Response]) -> RemoteResult:
    """Runs one call, exactly once, and normalizes what came back."""
    response = send()
    return RemoteResult(status_code=response.status_code, body=parse_body(response))


class RemoteCallExecutor:
    """Authenticated calls against the carrier API through a shared requests session."""

    def __init__(self, session: Optional[requests.Session] = None, timeout: float = DEFAULT_TIMEOUT):
        self.session = session or requests.Session()
        self.timeout = timeout

    def request(
        self,
        method: str,
        url: str,
        token: Optional[str] = None,
        json: Any = None,
        params: Any = None,
        accept: str = "application/json",
    ) -> requests.Response:
        headers = {"Content-Type": "application/json", "Accept": accept}
        if token:
            headers["Authorization"] = token
        try:
            return self.session.request(
                method,
                url,
                headers=headers,
                json=json,
                params=params,
                timeout=self.timeout,
                allow_redirects=True,
            )
        except requests.RequestException as e:
            raise RemoteCallError(f"{method} {url} failed: {e}") from e
