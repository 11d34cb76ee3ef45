"""
Traducción bidireccional Dashboard Template <-> Master Case Document.

Ambas funciones son totales: nunca lanzan por campos opcionales ausentes,
cada hueco se rellena con un valor por defecto documentado.

LIMITACIÓN ACEPTADA: el estado pasa por una tabla con pérdida, así que
MCD -> Dashboard -> MCD no conserva el valor original
("appeals" -> "active" -> "in_progress").
"""
import re
from datetime import datetime
from typing import Any, Dict, Optional, Tuple

from pepper.services.date_normalizer import try_normalize_date
from pepper.services.status_normalizer import (
    dashboard_to_mcd_status,
    mcd_to_dashboard_status,
)

PARTY_SEPARATOR = " vs. "

NOT_SPECIFIED = "Not specified"
UNKNOWN_PARTY = "Unknown"
DEFAULT_CASE_TYPE = "General"
DEFAULT_OWNER = "Unassigned"
DEFAULT_ATTORNEY = "N/A"
DEFAULT_STAGE = "Discovery"
DEFAULT_SUMMARY = "No summary provided"
NO_ACTIONS = "No actions recorded"
NO_HEARING = "none"

# Campos de sincronización con la rama judicial que viajan igual en ambos dialectos
CPNU_FIELDS = (
    "radicado_cpnu",
    "linked_cpnu",
    "cpnu_bootstrap_done",
    "cpnu_bootstrap_at",
    "cpnu_bootstrap_by",
    "cpnu_last_fecha_registro",
    "cpnu_last_sync_at",
    "cpnu_last_sync_status",
    "cpnu_actuaciones",
    "cpnu_clase_proceso",
)

TOMBSTONE_FIELDS = ("is_deleted", "deleted_at", "deleted_by")

_LAST_ACTION_RE = re.compile(r"^(?P<title>.*\S)\s+-\s+(?P<date>\S+)$")


# =========================================================
# HELPERS
# =========================================================


def _text(value: Any) -> str:
    return value.strip() if isinstance(value, str) else ""


def split_client(client: Any) -> Tuple[Optional[str], Optional[str]]:
    """
    Deriva (demandante, demandado) de "Demandante vs. Demandado".

    Sin separador, todo el texto es el demandante.
    """
    text = _text(client)
    if not text:
        return None, None
    if PARTY_SEPARATOR not in text:
        return text, None
    plaintiff, defendant = text.split(PARTY_SEPARATOR, 1)
    return plaintiff.strip() or None, defendant.strip() or None


def join_parties(plaintiff: Optional[str], defendant: Optional[str], fallback: str) -> str:
    if plaintiff and defendant:
        return f"{plaintiff}{PARTY_SEPARATOR}{defendant}"
    return plaintiff or defendant or fallback


def format_last_action(last_action: Any) -> Optional[str]:
    """{title, date} -> "title - date" (o solo title si no hay fecha)."""
    if isinstance(last_action, str):
        return last_action.strip() or None
    if not isinstance(last_action, dict):
        return None
    title = _text(last_action.get("title"))
    if not title:
        return None
    action_date = try_normalize_date(last_action.get("date")) if last_action.get("date") else None
    return f"{title} - {action_date}" if action_date else title


def parse_last_action(text: Any) -> Optional[Dict[str, Optional[str]]]:
    """ "title - date" -> {title, date}. Si el sufijo no es fecha, date es None."""
    if isinstance(text, dict):
        return {
            "title": _text(text.get("title")),
            "date": try_normalize_date(text.get("date")) if text.get("date") else None,
        }
    value = _text(text)
    if not value:
        return None
    match = _LAST_ACTION_RE.match(value)
    if match:
        parsed_date = try_normalize_date(match.group("date"))
        if parsed_date:
            return {"title": match.group("title"), "date": parsed_date}
    return {"title": value, "date": None}


def build_sidebar_case(template: Dict[str, Any]) -> Dict[str, str]:
    return {
        "id": template.get("case_id") or "",
        "name": template.get("client") or template.get("case_id") or "",
        "type": template.get("practice") or template.get("type") or DEFAULT_CASE_TYPE,
        "status": template.get("status") or "",
    }


# =========================================================
# MCD -> DASHBOARD TEMPLATE
# =========================================================


def to_dashboard_template(mcd: Dict[str, Any], now: Optional[datetime] = None) -> Dict[str, Any]:
    """
    Convierte un MCD al dialecto Dashboard Template.

    Args:
        mcd: MCD como dict (ver MasterCaseDocument.to_dict)
        now: Momento para la actividad sintética si el MCD no trae created_at

    Returns:
        Dict con la forma de case.json
    """
    case_id = _text(mcd.get("case_id"))
    parties = mcd.get("parties") or {}
    plaintiff = _text(parties.get("plaintiff")) or None
    defendant = _text(parties.get("defendant")) or None
    case_type = _text(mcd.get("case_type")) or DEFAULT_CASE_TYPE
    status = mcd_to_dashboard_status(mcd.get("status"))

    created = mcd.get("created_at") or (now or datetime.utcnow()).isoformat()
    source = _text(mcd.get("source")) or "manual"
    recent_activity = [
        {"id": f"{case_id}-created", "message": f"Case created via {source}", "time": created}
    ]

    next_actions = mcd.get("next_actions") or []
    last_action = (
        format_last_action(mcd.get("last_action"))
        or (_text(next_actions[0].get("title")) if next_actions else None)
        or NO_ACTIONS
    )

    deadlines = []
    for deadline in mcd.get("deadlines") or []:
        deadlines.append(
            {
                "title": _text(deadline.get("title")),
                "caseId": case_id,
                "due": try_normalize_date(deadline.get("due_date")) if deadline.get("due_date") else None,
                "owner": _text(deadline.get("owner")) or DEFAULT_OWNER,
                "completed": bool(deadline.get("completed", False)),
            }
        )

    template: Dict[str, Any] = {
        "case_id": case_id,
        "court": _text(mcd.get("court")) or NOT_SPECIFIED,
        "plaintiff": plaintiff or NOT_SPECIFIED,
        "defendant": defendant or NOT_SPECIFIED,
        "last_action": last_action,
        "client": join_parties(plaintiff, defendant, case_id),
        "practice": case_type,
        "type": case_type,
        "attorney": _text(mcd.get("attorney")) or DEFAULT_ATTORNEY,
        "status": status,
        "stage": DEFAULT_STAGE,
        "summary": _text(mcd.get("summary")) or DEFAULT_SUMMARY,
        "hearing": NO_HEARING,
        "important_dates": [],
        "recent_activity": recent_activity,
        "deadlines": deadlines,
        "version": int(mcd.get("version") or 0),
    }
    for field in CPNU_FIELDS + TOMBSTONE_FIELDS:
        if field in mcd:
            template[field] = mcd[field]
    template["sidebar_case"] = build_sidebar_case(template)
    return template


# =========================================================
# DASHBOARD TEMPLATE -> MCD
# =========================================================


def to_master_case_document(
    template: Dict[str, Any],
    *,
    user_id: str,
    user_email: Optional[str] = None,
    source: str = "dashboard-agent",
    status: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Convierte un Dashboard Template al dialecto MCD.

    Las partes salen de "client" partido por " vs. "; si falta un lado se
    usan plaintiff/defendant del template y, en último caso, "Unknown".
    Tras el bootstrap judicial mandan plaintiff/defendant del template.

    Args:
        template: case.json ya normalizado
        user_id: Propietario del caso
        user_email: Email del propietario (opcional)
        source: Origen del registro
        status: Estado MCD explícito; si es None se traduce el del template

    Returns:
        Dict MCD (sin last_documents/next_actions de un MCD previo)
    """
    case_id = _text(template.get("case_id")).upper()
    client_plaintiff, client_defendant = split_client(template.get("client"))
    if template.get("cpnu_bootstrap_done"):
        plaintiff = _text(template.get("plaintiff")) or client_plaintiff or UNKNOWN_PARTY
        defendant = _text(template.get("defendant")) or client_defendant or UNKNOWN_PARTY
    else:
        plaintiff = client_plaintiff or _text(template.get("plaintiff")) or UNKNOWN_PARTY
        defendant = client_defendant or _text(template.get("defendant")) or UNKNOWN_PARTY

    attorney = _text(template.get("attorney"))
    if attorney == DEFAULT_ATTORNEY:
        attorney = ""

    deadlines = []
    for deadline in template.get("deadlines") or []:
        deadlines.append(
            {
                "title": _text(deadline.get("title")),
                "due_date": try_normalize_date(deadline.get("due")) if deadline.get("due") else None,
                "case_id": case_id,
                "owner": _text(deadline.get("owner")) or DEFAULT_OWNER,
                "completed": bool(deadline.get("completed", False)),
            }
        )

    mcd: Dict[str, Any] = {
        "case_id": case_id,
        "user_id": user_id,
        "user_email": user_email,
        "parties": {"plaintiff": plaintiff, "defendant": defendant, "other": []},
        "case_type": _text(template.get("practice")) or _text(template.get("type")) or DEFAULT_CASE_TYPE,
        "status": status or dashboard_to_mcd_status(template.get("status")),
        "deadlines": deadlines,
        "last_documents": [],
        "next_actions": [],
        "summary": _text(template.get("summary")) or None,
        "court": _text(template.get("court")) or None,
        "attorney": attorney or None,
        "last_action": parse_last_action(template.get("last_action")),
        "source": source,
        "version": int(template.get("version") or 0),
    }
    for field in CPNU_FIELDS + TOMBSTONE_FIELDS:
        if field in template:
            mcd[field] = template[field]
    return mcd
