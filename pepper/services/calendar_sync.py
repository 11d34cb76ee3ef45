"""
Adaptador de calendario (colaborador externo, best effort).

Contrato: sync(user_id, case_data) -> {success, created, skipped, message}.
NUNCA lanza: cualquier fallo se devuelve como success=False.
"""
from datetime import datetime, time, timedelta
from typing import Any, Dict, List, Optional, Protocol

import requests
from requests.exceptions import RequestException

from pepper.core.logger import StructuredLogger, get_logger
from pepper.services.date_normalizer import try_normalize_date

HEARING_START = time(9, 0)
HEARING_DURATION = timedelta(minutes=90)


def sync_result(
    success: bool, created: int = 0, skipped: int = 0, message: str = ""
) -> Dict[str, Any]:
    return {"success": success, "created": created, "skipped": skipped, "message": message}


def _all_day(title: str, day: str, description: str, kind: str) -> Dict[str, Any]:
    end = (datetime.fromisoformat(day) + timedelta(days=1)).date().isoformat()
    return {
        "title": title,
        "description": description,
        "start": day,
        "end": end,
        "all_day": True,
        "event_type": kind,
    }


def build_calendar_events(case: Dict[str, Any]) -> List[Dict[str, Any]]:
    """
    Eventos de calendario de un caso (dialecto Dashboard).

    - Deadlines no completados con fecha válida: todo el día
    - Audiencia: 09:00-10:30
    - Fechas importantes: todo el día
    - Última actuación judicial: todo el día
    """
    case_id = case.get("case_id") or ""
    case_name = case.get("client") or case_id
    events: List[Dict[str, Any]] = []

    for deadline in case.get("deadlines") or []:
        if deadline.get("completed") or not deadline.get("title"):
            continue
        due = try_normalize_date(deadline.get("due")) if deadline.get("due") else None
        if not due:
            continue
        events.append(
            _all_day(
                f"Deadline: {deadline['title']}",
                due,
                f"Case: {case_name}\nOwner: {deadline.get('owner') or 'Unassigned'}",
                "deadline",
            )
        )

    hearing = case.get("hearing")
    hearing_day = try_normalize_date(hearing) if hearing and hearing != "none" else None
    if hearing_day:
        start = datetime.combine(datetime.fromisoformat(hearing_day).date(), HEARING_START)
        events.append(
            {
                "title": f"Hearing: {case_name}",
                "description": (
                    f"Case: {case_name}\nStage: {case.get('stage') or 'N/A'}\n"
                    f"Attorney: {case.get('attorney') or 'N/A'}"
                ),
                "start": start.isoformat(),
                "end": (start + HEARING_DURATION).isoformat(),
                "all_day": False,
                "event_type": "hearing",
            }
        )

    for important in case.get("important_dates") or []:
        day = try_normalize_date(important.get("date")) if important.get("date") else None
        if not day or not important.get("title"):
            continue
        events.append(
            _all_day(
                important["title"],
                day,
                f"Case: {case_name}\nImportant date for {case_id}",
                "important_date",
            )
        )

    actuaciones = case.get("cpnu_actuaciones") or []
    if actuaciones:
        latest = actuaciones[0]
        day = latest.get("fecha_actuacion") or latest.get("fecha_registro")
        day = try_normalize_date(day) if day else None
        if day and latest.get("descripcion"):
            events.append(
                _all_day(
                    f"CPNU: {latest['descripcion']}",
                    day,
                    f"Case: {case_name}\nActuacion from CPNU",
                    "actuacion",
                )
            )

    return events


class CalendarSyncAdapter(Protocol):
    def sync(self, user_id: str, case_data: Dict[str, Any]) -> Dict[str, Any]:
        ...


class NullCalendarSyncAdapter:
    """Calendario deshabilitado."""

    def sync(self, user_id: str, case_data: Dict[str, Any]) -> Dict[str, Any]:
        return sync_result(True, message="Calendar sync disabled")


class HttpCalendarSyncAdapter:
    """Envía los eventos del caso a un servicio de calendario por HTTP."""

    def __init__(
        self,
        base_url: str,
        timeout: float = 15,
        session: Optional[requests.Session] = None,
        logger: Optional[StructuredLogger] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        self.logger = logger or get_logger()

    def sync(self, user_id: str, case_data: Dict[str, Any]) -> Dict[str, Any]:
        case_id = case_data.get("case_id")
        events = build_calendar_events(case_data)
        if not events:
            return sync_result(True, message="No events to sync")

        try:
            response = self.session.post(
                f"{self.base_url}/events",
                json={"user_id": user_id, "case_id": case_id, "events": events},
                timeout=self.timeout,
            )
            response.raise_for_status()
            payload = response.json()
        except (RequestException, ValueError) as e:
            self.logger.warning(
                "Calendar sync failed", case_id=case_id, action="calendar_sync", error_message=str(e)
            )
            return sync_result(False, message=f"Calendar sync failed: {e}")

        created = int(payload.get("created", 0)) if isinstance(payload, dict) else 0
        skipped = int(payload.get("skipped", 0)) if isinstance(payload, dict) else 0
        return sync_result(
            True,
            created=created,
            skipped=skipped,
            message=f"Synced {created} events ({skipped} skipped)",
        )
