import logging
from typing import AsyncIterator, Dict, List, Optional

from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse, JSONResponse

from .config import get_settings, is_enabled, static_token_provider
from .models import RowCreate, SheetPayload
from .services.grading_service import recalculate_rows, summarize_rows
from .services.remote_client import RemoteCollectionClient, RequestError
from .services.sheet_service import PeriodLocks, SheetFormatError, SheetService
from .ui import UI_HTML

settings = get_settings()
logging.basicConfig(
    level=str(settings.get("LOG_LEVEL", "INFO")).upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="Evalix Grade Sheets API")
# 요청마다 SheetService가 새로 만들어지므로 lock 모음은 앱 단위로 공유
app.state.period_locks = PeriodLocks()

app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        origin.strip()
        for origin in str(settings.get("CORS_ORIGINS", "")).split(",")
        if origin.strip()
    ],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)


def build_client(config: Optional[Dict[str, object]] = None) -> RemoteCollectionClient:
    config = config or get_settings()
    timeout = str(config.get("SHEETS_TIMEOUT") or "").strip()
    return RemoteCollectionClient(
        base_url=str(config["SHEETS_API_BASE"]),
        resource=str(config["SHEETS_RESOURCE"]),
        token_provider=static_token_provider(str(config.get("SHEETS_API_TOKEN") or "")),
        max_attempts=int(config.get("SHEETS_MAX_ATTEMPTS", 3)),
        backoff=int(config.get("SHEETS_BACKOFF_MS", 400)) / 1000.0,
        timeout=float(timeout) if timeout else None,
    )


async def get_sheet_service() -> AsyncIterator[SheetService]:
    config = get_settings()
    async with build_client(config) as client:
        yield SheetService(
            client,
            lock_periods=is_enabled(config.get("SHEETS_LOCK_PERIODS")),
            locks=app.state.period_locks,
        )


@app.exception_handler(RequestError)
async def request_error_handler(request: Request, exc: RequestError) -> JSONResponse:
    logger.error(f"remote store request failed: {exc}")
    return JSONResponse(
        status_code=502,
        content={
            "detail": str(exc),
            "method": exc.method,
            "url": exc.url,
            "upstream_status": exc.status,
        },
    )


@app.exception_handler(SheetFormatError)
async def sheet_format_error_handler(request: Request, exc: SheetFormatError) -> JSONResponse:
    logger.error(f"malformed sheet from remote store: {exc}")
    return JSONResponse(status_code=502, content={"detail": str(exc)})


@app.get("/health")
def health_check() -> dict:
    return {"status": "ok"}


@app.get("/ui", response_class=HTMLResponse)
def ui_page():
    return UI_HTML


@app.get("/sheets")
async def list_sheets(service: SheetService = Depends(get_sheet_service)) -> List[dict]:
    found = await service.list_all_sheets()
    return found if isinstance(found, list) else []


@app.get("/sheets/{year}/{period}")
async def get_sheet(year: int, period: int, service: SheetService = Depends(get_sheet_service)) -> dict:
    sheet = await service.get_sheet(year, period)
    result = sheet.model_dump(by_alias=True)
    result["summary"] = summarize_rows(sheet.rows)
    return result


@app.put("/sheets/{year}/{period}")
async def save_sheet(
    year: int,
    period: int,
    payload: SheetPayload,
    service: SheetService = Depends(get_sheet_service),
) -> dict:
    raw = payload.to_raw()
    if payload.rows is not None:
        raw["rows"] = recalculate_rows(payload.rows)
    return await service.save_sheet(year, period, raw)


@app.post("/sheets/{year}/{period}/rows")
async def add_row(
    year: int,
    period: int,
    row: RowCreate,
    service: SheetService = Depends(get_sheet_service),
) -> dict:
    return await service.append_row(year, period, row.model_dump(by_alias=True))


@app.delete("/sheets/{sheet_id}")
async def delete_sheet(sheet_id: str, service: SheetService = Depends(get_sheet_service)) -> dict:
    await service.delete_sheet_by_id(sheet_id)
    return {"deleted": True, "sheet_id": sheet_id}
