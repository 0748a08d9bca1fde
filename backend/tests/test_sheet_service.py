import asyncio

import httpx
import pytest

from evalix.models import DEFAULT_NEXT_AUTO_ID
from evalix.services.remote_client import ClientRequestError, RequestExhaustedError
from evalix.services.sheet_service import (
    PeriodLocks,
    SheetFormatError,
    SheetService,
    build_document,
    make_empty_sheet,
    normalize_sheet,
)

from conftest import make_client


def test_normalize_coerces_string_fields():
    sheet = normalize_sheet(
        {"id": 7, "year": "2025", "period": "2", "nextAutoId": "1010", "autoIdEnabled": "false", "rows": [{"name": "Ana"}]}
    )
    assert sheet.id == "7"
    assert (sheet.year, sheet.period) == (2025, 2)
    assert sheet.next_auto_id == 1010
    assert sheet.auto_id_enabled is False
    assert sheet.rows == [{"name": "Ana"}]


def test_normalize_defaults():
    sheet = normalize_sheet({"year": 2025, "period": 1, "rows": "not a list"})
    assert sheet.next_auto_id == DEFAULT_NEXT_AUTO_ID
    assert sheet.auto_id_enabled is True
    assert sheet.rows == []


def test_normalize_rejects_non_numeric_year():
    with pytest.raises(SheetFormatError):
        normalize_sheet({"year": "abc", "period": 1})


def test_build_document_defaults():
    assert build_document(2025, 1, None) == make_empty_sheet(2025, 1)
    document = build_document("2025", "3", {"nextAutoId": "1005", "autoIdEnabled": False, "rows": [{"a": 1}]})
    assert document == {
        "year": 2025,
        "period": 3,
        "nextAutoId": 1005,
        "autoIdEnabled": False,
        "rows": [{"a": 1}],
    }


@pytest.mark.asyncio
async def test_get_sheet_creates_on_empty_store(store, service):
    sheet = await service.get_sheet(2025, 1)

    assert sheet.id is not None
    assert (sheet.year, sheet.period) == (2025, 1)
    assert sheet.next_auto_id == 1001
    assert sheet.auto_id_enabled is True
    assert sheet.rows == []
    assert store.count("GET") == 1
    assert store.count("POST") == 1
    assert store.items == [{"id": sheet.id, **make_empty_sheet(2025, 1)}]


@pytest.mark.asyncio
async def test_get_sheet_is_find_or_create(store, service):
    first = await service.get_sheet(2025, 1)
    second = await service.get_sheet(2025, 1)

    assert second.id == first.id
    assert len(store.find(2025, 1)) == 1
    assert store.count("POST") == 1


@pytest.mark.asyncio
async def test_get_sheet_normalizes_stored_record(store, service):
    store.seed({"year": "2025", "period": "1", "rows": [{"studentId": "1001"}]})

    sheet = await service.get_sheet(2025, 1)

    assert sheet.next_auto_id == 1001
    assert sheet.auto_id_enabled is True
    assert sheet.rows == [{"studentId": "1001"}]
    assert store.count("POST") == 0


@pytest.mark.asyncio
async def test_save_sheet_replaces_rows(store, service):
    await service.save_sheet(2025, 1, {"rows": [{"studentId": "1"}, {"studentId": "2"}], "extra": "x"})
    saved = await service.save_sheet(2025, 1, {"rows": [{"studentId": "3"}]})

    stored = store.find(2025, 1)
    assert len(stored) == 1
    assert stored[0]["rows"] == [{"studentId": "3"}]
    assert "extra" not in stored[0]
    assert saved["rows"] == [{"studentId": "3"}]
    assert store.count("POST") == 1
    assert store.count("PUT") == 1


@pytest.mark.asyncio
async def test_save_sheet_returns_store_record(store, service):
    store.seed({"year": 2025, "period": 1})

    saved = await service.save_sheet(2025, 1, {"nextAutoId": "1002"})

    assert saved["nextAutoId"] == 1002
    assert saved["id"] == "1"


@pytest.mark.asyncio
async def test_scenario_create_then_save(store, service):
    sheet = await service.get_sheet(2025, 1)

    updated = await service.save_sheet(
        2025, 1, {"rows": [{"studentId": "1001", "n1": 4.5, "n2": 4.2, "n3": 0, "n4": 0}]}
    )

    assert updated["id"] == sheet.id
    assert len(store.items) == 1
    assert len(store.items[0]["rows"]) == 1


@pytest.mark.asyncio
async def test_utility_passthroughs(store, service):
    first = store.seed({"year": 2024, "period": 1})
    store.seed({"year": 2024, "period": 2})

    assert len(await service.list_all_sheets()) == 2
    await service.delete_sheet_by_id(first["id"])
    assert [item["period"] for item in store.items] == [2]


@pytest.mark.asyncio
async def test_failures_propagate(sleeps):
    def handler(request):
        return httpx.Response(503)

    service = SheetService(make_client(handler, sleep=sleeps))
    with pytest.raises(RequestExhaustedError):
        await service.get_sheet(2025, 1)

    service = SheetService(make_client(lambda request: httpx.Response(401), sleep=sleeps))
    with pytest.raises(ClientRequestError):
        await service.save_sheet(2025, 1, {})


@pytest.mark.asyncio
async def test_concurrent_get_sheet_can_duplicate_without_lock(store, service):
    await asyncio.gather(service.get_sheet(2026, 1), service.get_sheet(2026, 1))

    assert len(store.find(2026, 1)) == 2


@pytest.mark.asyncio
async def test_period_lock_serializes_find_or_create(store, sleeps):
    service = SheetService(make_client(store.handler, sleep=sleeps), lock_periods=True)

    first, second = await asyncio.gather(service.get_sheet(2026, 1), service.get_sheet(2026, 1))

    assert first.id == second.id
    assert len(store.find(2026, 1)) == 1


@pytest.mark.asyncio
async def test_append_row_assigns_ids_under_one_lock(store, sleeps):
    service = SheetService(make_client(store.handler, sleep=sleeps), lock_periods=True)

    await asyncio.gather(
        service.append_row(2025, 1, {"name": "Ana"}),
        service.append_row(2025, 1, {"name": "Luis"}),
        service.append_row(2025, 1, {"studentId": "77", "name": "Marta"}),
    )

    stored = store.find(2025, 1)
    assert len(stored) == 1
    assert sorted(row["studentId"] for row in stored[0]["rows"]) == ["1001", "1002", "77"]
    assert stored[0]["nextAutoId"] == 1003


@pytest.mark.asyncio
async def test_period_locks_drop_idle_entries():
    locks = PeriodLocks()
    order = []

    async def hold(name):
        async with locks.hold(2025, 1):
            order.append(name)
            assert len(locks) == 1
            await asyncio.sleep(0)

    await asyncio.gather(hold("a"), hold("b"))

    assert order == ["a", "b"]
    assert len(locks) == 0


@pytest.mark.asyncio
async def test_services_sharing_locks_serialize(store, sleeps):
    locks = PeriodLocks()
    first = SheetService(make_client(store.handler, sleep=sleeps), lock_periods=True, locks=locks)
    second = SheetService(make_client(store.handler, sleep=sleeps), lock_periods=True, locks=locks)

    await asyncio.gather(first.get_sheet(2026, 2), second.get_sheet(2026, 2))

    assert len(store.find(2026, 2)) == 1
