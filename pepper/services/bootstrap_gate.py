"""
Bootstrap con la rama judicial: importación única de campos congelados.

CRÍTICO:
- cpnu_bootstrap_done pasa de False a True una sola vez por caso
- Un caso eliminado no se sincroniza
- El resultado se calcula sobre una copia: si algo falla antes de
  persistir, el caso almacenado no cambia
"""
import copy
from datetime import datetime
from typing import Any, Dict, List, Optional

from pepper.core.exceptions import AlreadyBootstrappedException, ValidationException
from pepper.services.date_normalizer import try_normalize_date
from pepper.services.merge_engine import DEFAULT_ACTIVITY_LIMIT, make_activity, prepend_activity
from pepper.services.registry_scraper import is_valid_radicado
from pepper.services.schema_translator import (
    DEFAULT_ATTORNEY,
    build_sidebar_case,
    format_last_action,
    join_parties,
)


def _clean(value: Any) -> Optional[str]:
    if not isinstance(value, str):
        return None
    return value.strip() or None


def select_attorney(sujetos: Dict[str, Any]) -> Optional[str]:
    """Defensor privado > defensor público > None."""
    return _clean(sujetos.get("defensorPrivado")) or _clean(sujetos.get("defensorPublico"))


def normalize_actuaciones(actuaciones: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """
    Normaliza fechas de actuaciones y las ordena de más reciente a más antigua.

    Las que no tienen fecha_registro válida se conservan al final.
    """
    normalized = []
    for item in actuaciones or []:
        if not isinstance(item, dict):
            continue
        entry = dict(item)
        entry["fecha_registro"] = try_normalize_date(item.get("fecha_registro")) if item.get("fecha_registro") else None
        entry["fecha_actuacion"] = try_normalize_date(item.get("fecha_actuacion")) if item.get("fecha_actuacion") else None
        entry["descripcion"] = (item.get("descripcion") or "").strip()
        normalized.append(entry)
    normalized.sort(key=lambda a: a["fecha_registro"] or "", reverse=True)
    return normalized


def actuacion_last_action(actuacion: Optional[Dict[str, Any]]) -> Optional[Dict[str, Optional[str]]]:
    """Última actuación -> {title, date} (fecha de actuación o de registro)."""
    if not actuacion or not actuacion.get("descripcion"):
        return None
    return {
        "title": actuacion["descripcion"],
        "date": actuacion.get("fecha_actuacion") or actuacion.get("fecha_registro"),
    }


def ensure_can_bootstrap(case: Dict[str, Any], case_id: str) -> None:
    """
    Precondiciones del bootstrap.

    Raises:
        ValidationException: si el caso está eliminado
        AlreadyBootstrappedException: si el cerrojo ya está puesto
    """
    if case.get("is_deleted"):
        raise ValidationException("Cannot sync deleted case", field="case_id")
    if case.get("cpnu_bootstrap_done"):
        raise AlreadyBootstrappedException(case_id, bootstrapped_at=case.get("cpnu_bootstrap_at"))


def try_bootstrap(
    case: Dict[str, Any],
    scrape: Dict[str, Any],
    *,
    radicado: str,
    user_id: str,
    now: datetime,
    limit: int = DEFAULT_ACTIVITY_LIMIT,
) -> Dict[str, Any]:
    """
    Aplica el scrape judicial a un caso (dialecto Dashboard).

    Args:
        case: Caso existente (no se modifica)
        scrape: {datosProceso, sujetosProcesales, actuaciones}
        radicado: Número de radicación de 23 dígitos
        user_id: Usuario que lanza el bootstrap
        now: Momento del bootstrap
        limit: Máximo de entradas en recent_activity

    Returns:
        Copia del caso con campos congelados y cerrojo puesto

    Raises:
        ValidationException, AlreadyBootstrappedException
    """
    case_id = case.get("case_id") or ""
    ensure_can_bootstrap(case, case_id)
    if not is_valid_radicado(radicado):
        raise ValidationException("Radicado must be exactly 23 digits", field="radicado")

    datos = scrape.get("datosProceso") or {}
    sujetos = scrape.get("sujetosProcesales") or {}
    actuaciones = normalize_actuaciones(scrape.get("actuaciones") or [])

    updated = copy.deepcopy(case)

    court = _clean(datos.get("despacho"))
    clase_proceso = _clean(datos.get("claseProceso"))
    plaintiff = _clean(sujetos.get("demandante"))
    defendant = _clean(sujetos.get("demandado"))
    attorney = select_attorney(sujetos)

    if court:
        updated["court"] = court
    if clase_proceso:
        updated["practice"] = clase_proceso
        updated["type"] = clase_proceso
    if plaintiff:
        updated["plaintiff"] = plaintiff
    if defendant:
        updated["defendant"] = defendant
    if plaintiff or defendant:
        updated["client"] = join_parties(
            updated.get("plaintiff"), updated.get("defendant"), case_id
        )
    updated["attorney"] = attorney or DEFAULT_ATTORNEY
    updated["cpnu_clase_proceso"] = clase_proceso

    latest = actuaciones[0] if actuaciones else None
    last_action = format_last_action(actuacion_last_action(latest))
    if last_action:
        updated["last_action"] = last_action

    updated.update(
        {
            "radicado_cpnu": radicado,
            "linked_cpnu": True,
            "cpnu_actuaciones": actuaciones,
            "cpnu_last_fecha_registro": latest.get("fecha_registro") if latest else None,
            "cpnu_last_sync_at": now.isoformat(),
            "cpnu_last_sync_status": "success",
            "cpnu_bootstrap_done": True,
            "cpnu_bootstrap_at": now.isoformat(),
            "cpnu_bootstrap_by": user_id,
        }
    )

    prepend_activity(
        updated,
        make_activity(f"Case synchronized with CPNU (Radicado: {radicado})", now, "cpnu"),
        limit,
    )
    sidebar = build_sidebar_case(updated)
    updated["sidebar_case"] = sidebar
    return updated
