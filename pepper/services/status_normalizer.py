"""
Normalización de estados de caso y mapeo entre taxonomías.

Hay dos taxonomías cerradas:
- Dashboard Template (3 valores): active / pending / urgent
- Master Case Document (6 valores): new / review / in_progress /
  appeals / pending_decision / closed

Todo se expresa como tablas explícitas para que cualquier hueco sea
visible en los tests. El mapeo entre taxonomías es con pérdida:
"appeals" -> "active" -> "in_progress" (limitación aceptada).
"""
from typing import Any, Optional

DASHBOARD_STATUSES = ("active", "pending", "urgent")

MCD_STATUSES = ("new", "review", "in_progress", "appeals", "pending_decision", "closed")

DEFAULT_DASHBOARD_STATUS = "pending"
DEFAULT_MCD_STATUS = "new"

# =========================================================
# SINÓNIMOS (ES/EN) -> TOKEN CANÓNICO
# =========================================================

DASHBOARD_SYNONYMS = {
    "active": "active",
    "activo": "active",
    "activa": "active",
    "pending": "pending",
    "pendiente": "pending",
    "urgent": "urgent",
    "urgente": "urgent",
}

MCD_SYNONYMS = {
    "new": "new",
    "nuevo": "new",
    "nueva": "new",
    "review": "review",
    "revision": "review",
    "revisión": "review",
    "in_progress": "in_progress",
    "in progress": "in_progress",
    "en_progreso": "in_progress",
    "en progreso": "in_progress",
    "en curso": "in_progress",
    "appeals": "appeals",
    "apelacion": "appeals",
    "apelación": "appeals",
    "apelaciones": "appeals",
    "pending_decision": "pending_decision",
    "pending decision": "pending_decision",
    "pendiente_decision": "pending_decision",
    "pendiente de decision": "pending_decision",
    "pendiente de decisión": "pending_decision",
    "closed": "closed",
    "cerrado": "closed",
    "cerrada": "closed",
}

# =========================================================
# MAPEO ENTRE TAXONOMÍAS
# =========================================================

DASHBOARD_TO_MCD = {
    "active": "in_progress",
    "pending": "review",
    "urgent": "new",
}

MCD_TO_DASHBOARD = {
    "new": "urgent",
    "review": "pending",
    "in_progress": "active",
    "appeals": "active",
    "pending_decision": "pending",
    "closed": "pending",
}

STATUS_LABELS = {
    "active": "Active",
    "pending": "Pending",
    "urgent": "Urgent",
}


def _normalize(value: Any, synonyms: dict) -> Any:
    if not isinstance(value, str):
        return value
    key = value.strip().lower()
    # Token desconocido: se devuelve tal cual, la validación es del llamador
    return synonyms.get(key, value)


def normalize_dashboard_status(value: Any) -> Any:
    """Normaliza un estado libre (ES/EN) a active/pending/urgent."""
    return _normalize(value, DASHBOARD_SYNONYMS)


def normalize_mcd_status(value: Any) -> Any:
    """Normaliza un estado libre (ES/EN) a la taxonomía de 6 valores."""
    return _normalize(value, MCD_SYNONYMS)


def is_dashboard_status(value: Any) -> bool:
    return value in DASHBOARD_STATUSES


def is_mcd_status(value: Any) -> bool:
    return value in MCD_STATUSES


def dashboard_to_mcd_status(value: Optional[str]) -> str:
    """Estado Dashboard -> MCD. Valores fuera de tabla caen a 'new'."""
    return DASHBOARD_TO_MCD.get(normalize_dashboard_status(value), DEFAULT_MCD_STATUS)


def mcd_to_dashboard_status(value: Optional[str]) -> str:
    """Estado MCD -> Dashboard. Valores fuera de tabla caen a 'pending'."""
    return MCD_TO_DASHBOARD.get(normalize_mcd_status(value), DEFAULT_DASHBOARD_STATUS)


def status_change_message(status: str) -> str:
    """Mensaje de actividad para un cambio de estado."""
    label = STATUS_LABELS.get(status, str(status).replace("_", " ").title())
    return f"Case status changed to {label}"
