import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, List, Optional, Tuple

from ..models import DEFAULT_NEXT_AUTO_ID, Sheet
from .grading_service import assign_student_id, recalculate_rows
from .remote_client import RemoteCollectionClient

logger = logging.getLogger(__name__)


class SheetFormatError(ValueError):
    pass


def _to_int(value: object, field: str) -> int:
    try:
        return int(float(str(value).strip()))
    except (TypeError, ValueError):
        raise SheetFormatError(f"{field} is not numeric: {value!r}") from None


def _to_bool(value: object) -> bool:
    if isinstance(value, str):
        return value.strip().lower() not in ("", "false", "0", "no", "off")
    return bool(value)


def make_empty_sheet(year: int, period: int) -> dict:
    return {
        "year": int(year),
        "period": int(period),
        "nextAutoId": DEFAULT_NEXT_AUTO_ID,
        "autoIdEnabled": True,
        "rows": [],
    }


def build_document(year: int, period: int, payload: Optional[dict]) -> dict:
    """저장용 문서 생성. 누락된 필드는 기본값으로 채운다 (전체 교체용)."""
    payload = payload or {}
    next_auto_id = payload.get("nextAutoId")
    auto_id_enabled = payload.get("autoIdEnabled")
    rows = payload.get("rows")
    return {
        "year": int(year),
        "period": int(period),
        "nextAutoId": DEFAULT_NEXT_AUTO_ID if next_auto_id is None else _to_int(next_auto_id, "nextAutoId"),
        "autoIdEnabled": True if auto_id_enabled is None else _to_bool(auto_id_enabled),
        "rows": rows if isinstance(rows, list) else [],
    }


def normalize_sheet(raw: dict) -> Sheet:
    """저장소에서 받은 느슨한 JSON을 Sheet로 정규화."""
    if not isinstance(raw, dict):
        raise SheetFormatError(f"sheet record is not an object: {raw!r}")
    data = dict(raw)
    data["year"] = _to_int(raw.get("year"), "year")
    data["period"] = _to_int(raw.get("period"), "period")
    next_auto_id = raw.get("nextAutoId")
    data["nextAutoId"] = _to_int(next_auto_id, "nextAutoId") if next_auto_id not in (None, "", 0) else DEFAULT_NEXT_AUTO_ID
    auto_id_enabled = raw.get("autoIdEnabled")
    data["autoIdEnabled"] = True if auto_id_enabled is None else _to_bool(auto_id_enabled)
    data["rows"] = raw.get("rows") if isinstance(raw.get("rows"), list) else []
    if data.get("id") is not None:
        data["id"] = str(data["id"])
    return Sheet.model_validate(data)


class PeriodLocks:
    """(year, period)별 asyncio.Lock 모음. 대기자가 없으면 항목을 지운다."""

    def __init__(self) -> None:
        self._locks: Dict[Tuple[int, int], asyncio.Lock] = {}
        self._holders: Dict[Tuple[int, int], int] = {}

    def __len__(self) -> int:
        return len(self._locks)

    @asynccontextmanager
    async def hold(self, year: int, period: int) -> AsyncIterator[None]:
        key = (int(year), int(period))
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._holders[key] = self._holders.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._holders[key] -= 1
            if not self._holders[key]:
                del self._holders[key]
                del self._locks[key]


class SheetService:
    def __init__(
        self,
        client: RemoteCollectionClient,
        lock_periods: bool = False,
        locks: Optional[PeriodLocks] = None,
    ) -> None:
        self.client = client
        self.lock_periods = lock_periods
        self.locks = locks if locks is not None else PeriodLocks()

    @asynccontextmanager
    async def _period_lock(self, year: int, period: int) -> AsyncIterator[None]:
        if not self.lock_periods:
            yield
            return
        async with self.locks.hold(year, period):
            yield

    async def _find(self, year: int, period: int) -> Optional[dict]:
        found = await self.client.list({"year": year, "period": period})
        if isinstance(found, list) and found:
            if len(found) > 1:
                logger.warning(f"{len(found)} sheets stored for {year}/{period}, using the first")
            return found[0]
        return None

    async def _get_or_create(self, year: int, period: int) -> Sheet:
        current = await self._find(year, period)
        if current is not None:
            return normalize_sheet(current)
        logger.info(f"no sheet for {year}/{period}, creating an empty one")
        created = await self.client.create(make_empty_sheet(year, period))
        return normalize_sheet(created)

    async def _upsert(self, year: int, period: int, document: dict) -> object:
        current = await self._find(year, period)
        if current is not None:
            logger.info(f"updating sheet {current.get('id')} for {year}/{period}")
            return await self.client.update(current.get("id"), document)
        logger.info(f"creating sheet for {year}/{period}")
        return await self.client.create(document)

    async def get_sheet(self, year: int, period: int) -> Sheet:
        async with self._period_lock(year, period):
            return await self._get_or_create(year, period)

    async def save_sheet(self, year: int, period: int, payload: Optional[dict]) -> object:
        document = build_document(year, period, payload)
        async with self._period_lock(year, period):
            return await self._upsert(year, period, document)

    async def append_row(self, year: int, period: int, row: dict) -> object:
        """행 추가: 읽기-번호 부여-저장을 하나의 period lock 안에서 수행."""
        async with self._period_lock(year, period):
            sheet = await self._get_or_create(year, period)
            new_row, next_auto_id = assign_student_id(row, sheet.next_auto_id, sheet.auto_id_enabled)
            document = build_document(
                year,
                period,
                {
                    "nextAutoId": next_auto_id,
                    "autoIdEnabled": sheet.auto_id_enabled,
                    "rows": recalculate_rows([*sheet.rows, new_row]),
                },
            )
            return await self._upsert(year, period, document)

    async def list_all_sheets(self) -> List[dict]:
        return await self.client.list()

    async def delete_sheet_by_id(self, sheet_id: str) -> object:
        return await self.client.delete(sheet_id)
