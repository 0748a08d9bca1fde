import math
from typing import Dict, List, Tuple

from ..models import DEFAULT_NEXT_AUTO_ID, StudentRow
from .text_normalizer import normalize_text

GRADE_KEYS = ("n1", "n2", "n3", "n4")
TEXT_KEYS = ("studentId", "documentNumber", "name", "subject")
PASSING_AVERAGE = 3.0


def _to_score(value: object) -> float:
    try:
        score = float(str(value).strip())
    except (TypeError, ValueError):
        return 0.0
    return score if math.isfinite(score) else 0.0


def compute_average(row: Dict[str, object]) -> float:
    """n1~n4 평균. 빈 칸/숫자가 아닌 값은 0점으로 계산한다."""
    scores = [_to_score(row.get(key)) for key in GRADE_KEYS]
    return round(sum(scores) / len(GRADE_KEYS), 2)


def is_passing(average: float) -> bool:
    return average >= PASSING_AVERAGE


def clean_row(row: Dict[str, object]) -> Dict[str, object]:
    cleaned = dict(row)
    for key in TEXT_KEYS:
        cleaned[key] = normalize_text(row.get(key))
    for key in GRADE_KEYS:
        cleaned[key] = _to_score(row.get(key))
    cleaned["average"] = compute_average(row)
    return StudentRow.model_validate(cleaned).model_dump(by_alias=True)


def recalculate_rows(rows: List[object]) -> List[Dict[str, object]]:
    return [clean_row(row) for row in rows if isinstance(row, dict)]


def assign_student_id(
    row: Dict[str, object],
    next_auto_id: int,
    auto_id_enabled: bool,
) -> Tuple[Dict[str, object], int]:
    """자동 번호가 켜져 있고 studentId가 비어 있으면 nextAutoId를 부여."""
    if not auto_id_enabled or normalize_text(row.get("studentId")):
        return row, next_auto_id
    counter = next_auto_id or DEFAULT_NEXT_AUTO_ID
    assigned = dict(row)
    assigned["studentId"] = str(counter)
    return assigned, counter + 1


def summarize_rows(rows: List[Dict[str, object]]) -> Dict[str, object]:
    averages = [compute_average(row) for row in rows if isinstance(row, dict)]
    passing = sum(1 for avg in averages if is_passing(avg))
    return {
        "count": len(averages),
        "passing": passing,
        "failing": len(averages) - passing,
        "class_average": round(sum(averages) / len(averages), 2) if averages else 0.0,
    }
