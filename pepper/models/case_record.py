"""
Esquemas Pydantic de los dos dialectos de un caso.

- DashboardTemplate: forma de case.json en el almacén de ficheros
- QuestionnaireSubmission: entrada en dialecto MCD (cuestionario manual)

Son el chequeo explícito de forma en la frontera: un dict solo se trata
como caso si valida contra uno de estos modelos.
"""
from __future__ import annotations

from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, Field, ValidationError, field_validator


# =========================================================
# PIEZAS COMUNES
# =========================================================


class ImportantDate(BaseModel):
    title: str = ""
    date: Optional[str] = None


class ActivityEntry(BaseModel):
    id: str
    message: str
    time: str

    @field_validator("id", mode="before")
    @classmethod
    def _id_as_str(cls, v):
        return str(v)


class Actuacion(BaseModel):
    """Actuación procesal devuelta por la rama judicial."""

    model_config = {"extra": "allow"}

    fecha_registro: Optional[str] = None
    descripcion: str = ""
    fecha_actuacion: Optional[str] = None


class CpnuState(BaseModel):
    """Estado de la sincronización con el registro judicial (ambos dialectos)."""

    radicado_cpnu: Optional[str] = None
    linked_cpnu: bool = False
    cpnu_bootstrap_done: bool = False
    cpnu_bootstrap_at: Optional[str] = None
    cpnu_bootstrap_by: Optional[str] = None
    cpnu_last_fecha_registro: Optional[str] = None
    cpnu_last_sync_at: Optional[str] = None
    cpnu_last_sync_status: Optional[str] = None
    cpnu_actuaciones: List[Actuacion] = Field(default_factory=list)
    cpnu_clase_proceso: Optional[str] = None


# =========================================================
# DIALECTO A: DASHBOARD TEMPLATE
# =========================================================


class DashboardDeadline(BaseModel):
    title: str = ""
    caseId: Optional[str] = None
    due: Optional[str] = None
    owner: str = ""
    completed: bool = False


class SidebarCase(BaseModel):
    id: str = ""
    name: str = ""
    type: str = ""
    status: str = ""


class DashboardTemplate(CpnuState):
    """case.json tal como se guarda en el almacén de ficheros."""

    model_config = {"extra": "ignore"}

    case_id: str
    court: str = ""
    plaintiff: str = ""
    defendant: str = ""
    last_action: str = ""
    client: str = ""
    practice: str = ""
    type: str = ""
    attorney: str = ""
    status: str = ""
    stage: str = ""
    summary: str = ""
    hearing: str = "none"
    important_dates: List[ImportantDate] = Field(default_factory=list)
    recent_activity: List[ActivityEntry] = Field(default_factory=list)
    deadlines: List[DashboardDeadline] = Field(default_factory=list)
    sidebar_case: Optional[SidebarCase] = None

    is_deleted: bool = False
    deleted_at: Optional[str] = None
    deleted_by: Optional[str] = None

    version: int = 0


# =========================================================
# DIALECTO B: MASTER CASE DOCUMENT
# =========================================================


class Parties(BaseModel):
    plaintiff: Optional[str] = None
    defendant: Optional[str] = None
    other: List[str] = Field(default_factory=list)


class McdDeadline(BaseModel):
    title: str = ""
    due_date: Optional[Any] = None
    case_id: Optional[str] = None
    owner: str = "Unassigned"
    completed: bool = False


class LastDocument(BaseModel):
    name: str
    uploaded_at: Optional[str] = None
    type: Optional[str] = None


NEXT_ACTION_PRIORITIES = ("urgent", "pending", "normal")

PRIORITY_SYNONYMS = {
    "high": "urgent",
    "alta": "urgent",
    "urgente": "urgent",
    "medium": "pending",
    "media": "pending",
    "pendiente": "pending",
    "low": "normal",
    "baja": "normal",
}


class NextAction(BaseModel):
    title: str
    description: Optional[str] = None
    priority: str = "normal"

    @field_validator("priority", mode="before")
    @classmethod
    def _known_priority(cls, v):
        if v is None:
            return "normal"
        text = str(v).strip().lower()
        text = PRIORITY_SYNONYMS.get(text, text)
        if text not in NEXT_ACTION_PRIORITIES:
            raise ValueError(f"Priority must be one of: {', '.join(NEXT_ACTION_PRIORITIES)}.")
        return text


class LastAction(BaseModel):
    title: str = ""
    date: Optional[Any] = None


class CpnuPreview(BaseModel):
    """Datos de la rama judicial ya consultados al rellenar el cuestionario."""

    model_config = {"extra": "allow"}

    datosProceso: Dict[str, Any] = Field(default_factory=dict)
    sujetosProcesales: Dict[str, Any] = Field(default_factory=dict)
    actuaciones: List[Dict[str, Any]] = Field(default_factory=list)


class QuestionnaireSubmission(BaseModel):
    """Caso enviado desde el cuestionario manual (dialecto MCD)."""

    model_config = {"extra": "ignore"}

    case_id: str = Field(..., min_length=1)
    parties: Parties = Field(default_factory=Parties)
    case_type: Optional[str] = None
    status: Optional[str] = None
    deadlines: List[McdDeadline] = Field(default_factory=list)
    last_documents: List[LastDocument] = Field(default_factory=list)
    next_actions: List[NextAction] = Field(default_factory=list)
    summary: Optional[str] = None
    court: Optional[str] = None
    attorney: Optional[str] = None
    last_action: Optional[Union[LastAction, str]] = None
    user_email: Optional[str] = None
    mcd_file_path: Optional[str] = None
    source: str = "questionnaire"
    cpnu_preview: Optional[CpnuPreview] = None

    @field_validator("case_id")
    @classmethod
    def _strip_case_id(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Case ID is required.")
        return v


# =========================================================
# RESPUESTAS
# =========================================================


class DeleteResult(BaseModel):
    success: bool = True
    case_id: str
    already_deleted: bool = False
    message: str
    deleted_at: Optional[str] = None
    stores: List[str] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)


# =========================================================
# DETECCIÓN DE DIALECTO
# =========================================================

DIALECT_DASHBOARD = "dashboard"
DIALECT_MCD = "mcd"

# Claves que solo aparecen en uno de los dos dialectos
DASHBOARD_ONLY_KEYS = frozenset({"client", "practice", "stage", "sidebar_case", "recent_activity"})
MCD_ONLY_KEYS = frozenset({"parties", "case_type", "last_documents", "next_actions"})


def detect_dialect(data: Any) -> Optional[str]:
    """
    Determina en qué dialecto viene un caso.

    Usa la etiqueta "dialect" si existe; si no, las claves exclusivas de
    cada dialecto. En ambos casos el dict debe validar contra el modelo
    correspondiente. Devuelve None si no es un caso reconocible.
    """
    if not isinstance(data, dict):
        return None

    dialect = data.get("dialect")
    if dialect not in (DIALECT_DASHBOARD, DIALECT_MCD):
        keys = set(data)
        if keys & MCD_ONLY_KEYS and not keys & DASHBOARD_ONLY_KEYS:
            dialect = DIALECT_MCD
        else:
            dialect = DIALECT_DASHBOARD

    model = DashboardTemplate if dialect == DIALECT_DASHBOARD else QuestionnaireSubmission
    try:
        model.model_validate(data)
    except ValidationError:
        return None
    return dialect
