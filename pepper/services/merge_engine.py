"""
Motor de fusión de un caso existente con una actualización entrante.

Reglas:
- Escalares: gana el entrante, salvo campos protegidos (estado de
  sincronización judicial, lápida, versión) que solo cambian por sus
  propios flujos.
- Campos congelados (tribunal, partes, tipo, abogado) se conservan si el caso
  ya pasó por el bootstrap judicial.
- important_dates / deadlines: unión aditiva por clave compuesta; una
  entrada existente nunca se sobrescribe.
- recent_activity: se conserva la existente si no llega ninguna; un cambio
  de estado antepone una entrada; máximo `limit` entradas.
- sidebar_case.status siempre refleja el estado calculado.
"""
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from pepper.services.schema_translator import CPNU_FIELDS, TOMBSTONE_FIELDS, build_sidebar_case
from pepper.services.status_normalizer import status_change_message

DEFAULT_ACTIVITY_LIMIT = 10

PROTECTED_FIELDS = CPNU_FIELDS + TOMBSTONE_FIELDS + ("version",)

FROZEN_FIELDS = ("court", "plaintiff", "defendant", "client", "practice", "type", "attorney")

INFO_UPDATED_MESSAGE = "Case information updated"


@dataclass
class MergeResult:
    record: Dict[str, Any]
    status_changed: bool = False
    previous_status: Optional[str] = None
    is_create: bool = False


def important_date_key(entry: Dict[str, Any]) -> Tuple[str, str]:
    return (str(entry.get("title") or "").strip(), str(entry.get("date") or ""))


def deadline_key(entry: Dict[str, Any]) -> Tuple[str, str]:
    return (str(entry.get("title") or "").strip(), str(entry.get("due") or ""))


def union_by_key(
    existing: Iterable[Dict[str, Any]],
    incoming: Iterable[Dict[str, Any]],
    key: Callable[[Dict[str, Any]], Tuple],
) -> List[Dict[str, Any]]:
    """Existentes en su orden, seguidas de las entrantes con clave nueva."""
    merged: List[Dict[str, Any]] = []
    seen = set()
    for entry in list(existing or []) + list(incoming or []):
        entry_key = key(entry)
        if entry_key in seen:
            continue
        seen.add(entry_key)
        merged.append(dict(entry))
    return merged


def make_activity(message: str, now: datetime, prefix: str = "activity") -> Dict[str, str]:
    return {
        "id": f"{prefix}-{int(now.timestamp() * 1000)}",
        "message": message,
        "time": now.isoformat(),
    }


def prepend_activity(
    record: Dict[str, Any], entry: Dict[str, Any], limit: int = DEFAULT_ACTIVITY_LIMIT
) -> None:
    """Añade una entrada al principio de recent_activity y recorta."""
    record["recent_activity"] = ([entry] + list(record.get("recent_activity") or []))[:limit]


def strip_protected(incoming: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in incoming.items() if k not in PROTECTED_FIELDS}


def merge_case(
    existing: Optional[Dict[str, Any]],
    incoming: Dict[str, Any],
    *,
    now: datetime,
    limit: int = DEFAULT_ACTIVITY_LIMIT,
) -> MergeResult:
    """
    Fusiona un caso entrante (dialecto Dashboard) con el existente.

    Args:
        existing: case.json existente, o None si es una creación
        incoming: Caso entrante ya normalizado y validado
        now: Momento de la escritura
        limit: Máximo de entradas en recent_activity

    Returns:
        MergeResult con el registro resultante
    """
    incoming = strip_protected(incoming)

    if existing is None:
        record = dict(incoming)
        record["important_dates"] = union_by_key([], incoming.get("important_dates"), important_date_key)
        record["deadlines"] = union_by_key([], incoming.get("deadlines"), deadline_key)
        record["recent_activity"] = list(incoming.get("recent_activity") or [])[:limit]
        _sync_sidebar(record)
        return MergeResult(record=record, is_create=True)

    record = {**existing, **incoming}

    if existing.get("cpnu_bootstrap_done"):
        for field in FROZEN_FIELDS:
            if existing.get(field):
                record[field] = existing[field]

    record["important_dates"] = union_by_key(
        existing.get("important_dates"), incoming.get("important_dates"), important_date_key
    )
    record["deadlines"] = union_by_key(
        existing.get("deadlines"), incoming.get("deadlines"), deadline_key
    )

    if incoming.get("recent_activity"):
        record["recent_activity"] = list(incoming["recent_activity"])
    else:
        record["recent_activity"] = list(existing.get("recent_activity") or [])

    previous_status = existing.get("status")
    status_changed = bool(record.get("status")) and record.get("status") != previous_status

    if status_changed:
        prepend_activity(
            record, make_activity(status_change_message(record["status"]), now, "status"), limit
        )
    elif not record["recent_activity"]:
        record["recent_activity"] = [make_activity(INFO_UPDATED_MESSAGE, now, "update")]

    record["recent_activity"] = record["recent_activity"][:limit]
    _sync_sidebar(record)

    return MergeResult(
        record=record, status_changed=status_changed, previous_status=previous_status
    )


def _sync_sidebar(record: Dict[str, Any]) -> None:
    sidebar = dict(record.get("sidebar_case") or build_sidebar_case(record))
    sidebar["status"] = record.get("status") or ""
    record["sidebar_case"] = sidebar
