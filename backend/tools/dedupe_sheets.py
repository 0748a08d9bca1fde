import argparse
import asyncio
import sys
from typing import Dict, List, Optional, Sequence, Tuple

from evalix.main import build_client
from evalix.services.sheet_service import SheetService


def group_duplicates(sheets: List[dict]) -> Dict[Tuple[str, str], List[dict]]:
    """같은 (year, period)에 두 개 이상 저장된 sheet 묶음. 저장소 순서를 유지한다."""
    groups: Dict[Tuple[str, str], List[dict]] = {}
    for sheet in sheets:
        if not isinstance(sheet, dict):
            continue
        key = (str(sheet.get("year")), str(sheet.get("period")))
        groups.setdefault(key, []).append(sheet)
    return {key: items for key, items in groups.items() if len(items) > 1}


async def dedupe(service: SheetService, delete: bool) -> int:
    sheets = await service.list_all_sheets()
    duplicates = group_duplicates(sheets if isinstance(sheets, list) else [])
    if not duplicates:
        print("[INFO] No duplicate sheets.")
        return 0

    removed = 0
    for (year, period), items in duplicates.items():
        keep, extras = items[0], items[1:]
        print(f"[INFO] {year}/{period}: keeping {keep.get('id')}, extra {[s.get('id') for s in extras]}")
        if not delete:
            continue
        for extra in extras:
            await service.delete_sheet_by_id(str(extra.get("id")))
            removed += 1
    print(f"[INFO] Removed {removed} sheets.")
    return removed


async def _run(delete: bool) -> int:
    async with build_client() as client:
        await dedupe(SheetService(client), delete)
    return 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Report (and optionally remove) duplicate grade sheets.")
    parser.add_argument("--delete", action="store_true", help="delete every duplicate but the first")
    args = parser.parse_args(argv)
    return asyncio.run(_run(args.delete))


if __name__ == "__main__":
    raise SystemExit(main(sys.argv[1:]))
