"""MockAPI 스타일 REST 컬렉션 클라이언트.

`base/resource[/id]`에 대한 list/get/create/update/delete를 HTTP로 옮기고,
5xx와 네트워크 오류는 선형 backoff로 재시도한다. 4xx는 즉시 실패.
"""

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, Dict, Optional
from urllib.parse import quote

import httpx

logger = logging.getLogger(__name__)

DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_BACKOFF_SECONDS = 0.4

TokenProvider = Callable[[], Optional[str]]
Sleeper = Callable[[float], Awaitable[None]]


class RequestError(Exception):
    def __init__(
        self,
        method: str,
        url: str,
        status: Optional[int] = None,
        cause: Optional[BaseException] = None,
    ) -> None:
        self.method = method
        self.url = url
        self.status = status
        self.cause = cause
        if status is not None:
            reason = str(status)
        elif cause is not None:
            reason = f"{type(cause).__name__}: {cause}"
        else:
            reason = "failed"
        super().__init__(f"{method} {url} -> {reason}")


class ClientRequestError(RequestError):
    """4xx 응답. 재시도하지 않는다."""


class RequestExhaustedError(RequestError):
    """재시도 횟수를 모두 소진함."""


class Outcome(Enum):
    SUCCESS = "success"
    RETRYABLE = "retryable"
    TERMINAL = "terminal"


@dataclass
class AttemptResult:
    outcome: Outcome
    response: Optional[httpx.Response] = None
    error: Optional[BaseException] = None

    @property
    def status(self) -> Optional[int]:
        return self.response.status_code if self.response is not None else None


def classify_response(response: httpx.Response) -> AttemptResult:
    if response.is_success:
        return AttemptResult(Outcome.SUCCESS, response=response)
    if response.status_code >= 500:
        return AttemptResult(Outcome.RETRYABLE, response=response)
    return AttemptResult(Outcome.TERMINAL, response=response)


class RemoteCollectionClient:
    def __init__(
        self,
        base_url: str,
        resource: str,
        token_provider: Optional[TokenProvider] = None,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        backoff: float = DEFAULT_BACKOFF_SECONDS,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        sleep: Optional[Sleeper] = None,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.base_url = base_url.rstrip("/")
        self.resource = resource.strip("/")
        self.max_attempts = max_attempts
        self.backoff = backoff
        self._token_provider = token_provider
        self._sleep = sleep or asyncio.sleep
        client_kwargs: Dict[str, object] = {"transport": transport}
        if timeout is not None:
            client_kwargs["timeout"] = timeout
        self._http = httpx.AsyncClient(**client_kwargs)

    async def __aenter__(self) -> "RemoteCollectionClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    def build_url(self, sheet_id: Optional[str] = None) -> str:
        url = f"{self.base_url}/{self.resource}"
        if sheet_id is not None:
            url = f"{url}/{quote(str(sheet_id), safe='')}"
        return url

    def _headers(self, has_body: bool) -> Dict[str, str]:
        headers = {"Accept": "application/json"}
        if has_body:
            headers["Content-Type"] = "application/json"
        token = self._token_provider() if self._token_provider else None
        if token:
            headers["Authorization"] = f"Bearer {token}"
        return headers

    async def _attempt(
        self,
        method: str,
        url: str,
        params: Optional[Dict[str, str]],
        body: Optional[dict],
    ) -> AttemptResult:
        # 저장소는 쿠키가 필요 없다. 이전 응답의 쿠키도 보내지 않음
        self._http.cookies.clear()
        try:
            response = await self._http.request(
                method,
                url,
                params=params,
                json=body,
                headers=self._headers(body is not None),
            )
        except httpx.TransportError as exc:
            return AttemptResult(Outcome.RETRYABLE, error=exc)
        return classify_response(response)

    async def request(
        self,
        method: str,
        url: str,
        params: Optional[Dict[str, str]] = None,
        body: Optional[dict] = None,
    ) -> object:
        last: Optional[AttemptResult] = None
        for attempt in range(1, self.max_attempts + 1):
            last = await self._attempt(method, url, params, body)
            if last.outcome is Outcome.SUCCESS:
                logger.debug(f"{method} {url} -> {last.status} (attempt {attempt})")
                return self._decode(method, url, last.response)
            if last.outcome is Outcome.TERMINAL:
                logger.warning(f"{method} {url} -> {last.status}, not retrying")
                raise ClientRequestError(method, url, status=last.status)

            reason = last.status if last.status is not None else last.error
            logger.warning(f"{method} {url} attempt {attempt}/{self.max_attempts} failed: {reason}")
            if attempt < self.max_attempts:
                delay = self.backoff * attempt
                logger.warning(f"retrying {method} {url} in {delay:.1f}s")
                await self._sleep(delay)

        if last is None:
            raise RequestError(method, url)
        raise RequestExhaustedError(method, url, status=last.status, cause=last.error) from last.error

    @staticmethod
    def _decode(method: str, url: str, response: httpx.Response) -> object:
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as exc:
            raise RequestError(method, url, status=response.status_code, cause=exc) from exc

    async def list(self, filters: Optional[Dict[str, object]] = None) -> object:
        params = None
        if filters:
            params = {str(key): str(value) for key, value in filters.items()}
        return await self.request("GET", self.build_url(), params=params)

    async def get(self, sheet_id: str) -> object:
        return await self.request("GET", self.build_url(sheet_id))

    async def create(self, document: dict) -> object:
        return await self.request("POST", self.build_url(), body=document)

    async def update(self, sheet_id: str, document: dict) -> object:
        return await self.request("PUT", self.build_url(sheet_id), body=document)

    async def delete(self, sheet_id: str) -> object:
        return await self.request("DELETE", self.build_url(sheet_id))
