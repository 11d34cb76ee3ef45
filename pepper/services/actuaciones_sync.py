"""
Sincronización incremental de actuaciones tras el bootstrap.

Solo añade actuaciones nuevas (fecha_registro posterior a la última
conocida). Nunca toca los campos congelados del bootstrap.
"""
import copy
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from pepper.core.exceptions import ValidationException
from pepper.services.bootstrap_gate import actuacion_last_action, normalize_actuaciones
from pepper.services.date_normalizer import try_normalize_date
from pepper.services.merge_engine import DEFAULT_ACTIVITY_LIMIT, make_activity, prepend_activity
from pepper.services.schema_translator import format_last_action


@dataclass
class ActuacionesChanges:
    has_changes: bool
    latest_fecha_registro: Optional[str]
    new_actuaciones: List[Dict[str, Any]] = field(default_factory=list)


def detect_actuaciones_changes(
    current_fecha_registro: Optional[str], scraped: List[Dict[str, Any]]
) -> ActuacionesChanges:
    """
    Compara las actuaciones del registro con la última fecha conocida.

    Args:
        current_fecha_registro: Última fecha de registro almacenada (YYYY-MM-DD)
        scraped: Actuaciones devueltas por el scraper

    Returns:
        ActuacionesChanges con las actuaciones nuevas (más reciente primero)
    """
    normalized = [a for a in normalize_actuaciones(scraped) if a.get("fecha_registro")]
    current = try_normalize_date(current_fecha_registro) if current_fecha_registro else None

    if not normalized:
        return ActuacionesChanges(has_changes=False, latest_fecha_registro=current)

    latest = normalized[0]["fecha_registro"]
    if current is None:
        new = normalized
    else:
        new = [a for a in normalized if a["fecha_registro"] > current]

    return ActuacionesChanges(
        has_changes=bool(new),
        latest_fecha_registro=max(latest, current) if current else latest,
        new_actuaciones=new,
    )


def merge_actuaciones(
    existing: List[Dict[str, Any]], new: List[Dict[str, Any]]
) -> List[Dict[str, Any]]:
    """Une sin duplicados por (fecha_registro, descripcion), más reciente primero."""
    merged: Dict[Tuple[str, str], Dict[str, Any]] = {}
    for item in list(new or []) + list(existing or []):
        key = (item.get("fecha_registro") or "", (item.get("descripcion") or "").strip())
        merged.setdefault(key, dict(item))
    return sorted(merged.values(), key=lambda a: a.get("fecha_registro") or "", reverse=True)


def apply_actuaciones_sync(
    case: Dict[str, Any],
    scraped: List[Dict[str, Any]],
    *,
    now: datetime,
    limit: int = DEFAULT_ACTIVITY_LIMIT,
) -> Tuple[Dict[str, Any], ActuacionesChanges]:
    """
    Aplica una sincronización incremental sobre una copia del caso.

    Raises:
        ValidationException: si el caso está eliminado o sin bootstrap
    """
    if case.get("is_deleted"):
        raise ValidationException("Cannot sync deleted case", field="case_id")
    if not case.get("cpnu_bootstrap_done") or not case.get("radicado_cpnu"):
        raise ValidationException(
            "Case must be bootstrapped with CPNU before automatic sync", field="case_id"
        )

    changes = detect_actuaciones_changes(case.get("cpnu_last_fecha_registro"), scraped)
    updated = copy.deepcopy(case)
    updated["cpnu_last_sync_at"] = now.isoformat()

    if not changes.has_changes:
        updated["cpnu_last_sync_status"] = "no_changes"
        return updated, changes

    actuaciones = merge_actuaciones(updated.get("cpnu_actuaciones") or [], changes.new_actuaciones)
    updated["cpnu_actuaciones"] = actuaciones
    updated["cpnu_last_fecha_registro"] = changes.latest_fecha_registro
    updated["cpnu_last_sync_status"] = "success"

    last_action = format_last_action(actuacion_last_action(actuaciones[0]))
    if last_action:
        updated["last_action"] = last_action

    count = len(changes.new_actuaciones)
    prepend_activity(
        updated,
        make_activity(f"New Actuaciones detected from CPNU ({count} new)", now, "cpnu"),
        limit,
    )
    return updated, changes
