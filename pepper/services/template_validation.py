"""
Normalización y validación de un caso entrante en dialecto Dashboard.

La normalización limpia estados y fechas. Una fecha imposible de
interpretar se elimina (solo ese campo) y se registra un aviso; nunca
rechaza el caso completo. La validación devuelve la lista de errores
que impiden cualquier escritura.
"""
import re
from typing import Any, Dict, List, Optional, Tuple

from pepper.core.exceptions import DateFormatError
from pepper.core.logger import StructuredLogger, get_logger
from pepper.services.date_normalizer import is_canonical_date, normalize_date
from pepper.services.schema_translator import format_last_action
from pepper.services.status_normalizer import DASHBOARD_STATUSES, normalize_dashboard_status

CASE_ID_RE = re.compile(r"^\d+$")

REQUIRED_FIELDS = (
    ("court", "Court / Judicial Office is required."),
    ("plaintiff", "Plaintiff is required."),
    ("defendant", "Defendant is required."),
    ("last_action", "Last action is required."),
    ("client", "Client is required."),
    ("practice", "Practice area is required."),
    ("type", "Case type is required."),
    ("attorney", "Attorney is required."),
    ("stage", "Stage is required."),
    ("summary", "Summary is required."),
)

STRING_FIELDS = tuple(name for name, _ in REQUIRED_FIELDS) + ("case_id", "status", "hearing")


def _safe_date(
    value: Any, field: str, case_id: Optional[str], logger: StructuredLogger, dropped: List[str]
) -> Optional[str]:
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    try:
        return normalize_date(value)
    except DateFormatError as e:
        logger.warning(
            "Dropping unparseable date",
            case_id=case_id,
            action="normalize",
            field=field,
            value=str(e.value),
        )
        dropped.append(field)
        return None


def normalize_template(
    raw: Dict[str, Any], logger: Optional[StructuredLogger] = None
) -> Tuple[Dict[str, Any], List[str]]:
    """
    Normaliza un caso entrante.

    Args:
        raw: Payload recibido (dialecto Dashboard)
        logger: Logger estructurado

    Returns:
        (caso normalizado, campos de fecha descartados)
    """
    logger = logger or get_logger()
    data = dict(raw)
    dropped: List[str] = []

    if isinstance(data.get("last_action"), dict):
        data["last_action"] = format_last_action(data["last_action"]) or ""

    for field in STRING_FIELDS:
        value = data.get(field)
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            value = str(value)
        if isinstance(value, str):
            data[field] = value.strip()

    case_id = data.get("case_id") or None

    if "status" in data:
        data["status"] = normalize_dashboard_status(data["status"])

    hearing = data.get("hearing")
    if not hearing or (isinstance(hearing, str) and hearing.lower() == "none"):
        data["hearing"] = "none"
    else:
        data["hearing"] = _safe_date(hearing, "hearing", case_id, logger, dropped) or "none"

    important_dates = []
    for index, entry in enumerate(data.get("important_dates") or []):
        item = dict(entry)
        item["title"] = (item.get("title") or "").strip()
        item["date"] = _safe_date(
            item.get("date"), f"important_dates[{index}].date", case_id, logger, dropped
        )
        important_dates.append(item)
    data["important_dates"] = important_dates

    deadlines = []
    for index, entry in enumerate(data.get("deadlines") or []):
        item = dict(entry)
        item["title"] = (item.get("title") or "").strip()
        item["due"] = _safe_date(
            item.get("due"), f"deadlines[{index}].due", case_id, logger, dropped
        )
        item["caseId"] = case_id
        item["completed"] = bool(item.get("completed", False))
        deadlines.append(item)
    data["deadlines"] = deadlines

    data["recent_activity"] = [
        {**entry, "id": str(entry.get("id"))} for entry in (data.get("recent_activity") or [])
    ]

    return data, dropped


def validate_template(data: Dict[str, Any]) -> List[str]:
    """
    Valida un caso ya normalizado.

    Returns:
        Lista de errores (vacía si es válido)
    """
    errors: List[str] = []

    case_id = data.get("case_id")
    if not case_id:
        errors.append("Case ID is required.")
    elif not isinstance(case_id, str) or not CASE_ID_RE.match(case_id):
        errors.append("Case ID must contain only numbers.")

    for field, message in REQUIRED_FIELDS:
        value = data.get(field)
        if not isinstance(value, str) or not value.strip():
            errors.append(message)

    if data.get("status") not in DASHBOARD_STATUSES:
        errors.append(f"Status must be one of: {', '.join(DASHBOARD_STATUSES)}.")

    hearing = data.get("hearing")
    if hearing != "none" and not is_canonical_date(hearing):
        errors.append("Hearing must be a date in YYYY-MM-DD format or 'none'.")

    for index, entry in enumerate(data.get("important_dates") or [], start=1):
        if not entry.get("title"):
            errors.append(f"Important date #{index} must have a title.")

    for index, entry in enumerate(data.get("deadlines") or [], start=1):
        if not entry.get("title"):
            errors.append(f"Deadline #{index} must have a title.")

    return errors
