import asyncio
import json
from typing import Dict, List

import httpx
import pytest

from evalix.services.remote_client import RemoteCollectionClient
from evalix.services.sheet_service import SheetService

BASE_URL = "https://example.mockapi.io/api/v1"
RESOURCE = "sheets"


class FakeSheetStore:
    """In-memory stand-in for the hosted collection (MockAPI semantics)."""

    def __init__(self) -> None:
        self.items: List[Dict[str, object]] = []
        self.requests: List[httpx.Request] = []
        self._next_id = 1

    def seed(self, item: Dict[str, object]) -> Dict[str, object]:
        record = dict(item)
        record.setdefault("id", str(self._next_id))
        self._next_id += 1
        self.items.append(record)
        return record

    def find(self, year: int, period: int) -> List[Dict[str, object]]:
        return [
            item for item in self.items
            if str(item.get("year")) == str(year) and str(item.get("period")) == str(period)
        ]

    def count(self, method: str) -> int:
        return sum(1 for request in self.requests if request.method == method)

    async def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        # lets concurrent callers interleave between request and response
        await asyncio.sleep(0)

        parts = request.url.path.rstrip("/").split("/")
        sheet_id = parts[-1] if parts[-1] != RESOURCE else None
        body = json.loads(request.content) if request.content else None

        if request.method == "GET" and sheet_id is None:
            params = dict(request.url.params)
            found = [
                item for item in self.items
                if all(str(item.get(key)) == value for key, value in params.items())
            ]
            return httpx.Response(200, json=found)

        if request.method == "POST":
            return httpx.Response(201, json=self.seed(body))

        current = next((item for item in self.items if item["id"] == sheet_id), None)
        if current is None:
            return httpx.Response(404, json="Not found")
        if request.method == "GET":
            return httpx.Response(200, json=current)
        if request.method == "PUT":
            replaced = {**body, "id": sheet_id}
            self.items[self.items.index(current)] = replaced
            return httpx.Response(200, json=replaced)
        if request.method == "DELETE":
            self.items.remove(current)
            return httpx.Response(200, json=current)
        return httpx.Response(405)


class SleepRecorder:
    def __init__(self) -> None:
        self.delays: List[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


@pytest.fixture
def store():
    return FakeSheetStore()


@pytest.fixture
def sleeps():
    return SleepRecorder()


def make_client(handler, sleep=None, **kwargs) -> RemoteCollectionClient:
    return RemoteCollectionClient(
        BASE_URL,
        RESOURCE,
        transport=httpx.MockTransport(handler),
        sleep=sleep or SleepRecorder(),
        **kwargs,
    )


@pytest.fixture
def service(store, sleeps):
    return SheetService(make_client(store.handler, sleep=sleeps))
