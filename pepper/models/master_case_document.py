"""
Master Case Document (MCD): registro del caso en el almacén documental.

CRÍTICO:
- Un registro por (case_id, user_id), con restricción de unicidad
- case_id siempre en mayúsculas
- Nunca se borra físicamente: is_deleted es la lápida
- version se incrementa en cada escritura (detección de lost updates)
- cpnu_bootstrap_done es un cerrojo de un solo sentido
"""
from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from sqlalchemy import JSON, Boolean, DateTime, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, validates

from pepper.core.database import Base

MCD_SCALAR_FIELDS = (
    "user_email",
    "case_type",
    "status",
    "summary",
    "court",
    "attorney",
    "mcd_file_path",
    "source",
    "radicado_cpnu",
    "linked_cpnu",
    "cpnu_bootstrap_done",
    "cpnu_bootstrap_by",
    "cpnu_last_fecha_registro",
    "cpnu_last_sync_status",
    "cpnu_clase_proceso",
    "is_deleted",
    "deleted_by",
)

MCD_JSON_FIELDS = (
    "parties",
    "deadlines",
    "last_documents",
    "next_actions",
    "last_action",
    "cpnu_actuaciones",
)

MCD_DATETIME_FIELDS = (
    "cpnu_bootstrap_at",
    "cpnu_last_sync_at",
    "deleted_at",
)


def _to_iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def _from_iso(value: Any) -> Optional[datetime]:
    if value is None or isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value).replace("Z", "+00:00")).replace(tzinfo=None)


class MasterCaseDocument(Base):
    """Caso en dialecto MCD (taxonomía de estados de 6 valores)."""

    __tablename__ = "master_case_documents"

    __table_args__ = (
        UniqueConstraint("case_id", "user_id", name="uq_mcd_case_user"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    case_id: Mapped[str] = mapped_column(
        String(64), nullable=False, index=True, comment="Identificador del caso (mayúsculas)"
    )

    user_id: Mapped[str] = mapped_column(
        String(128), nullable=False, index=True, comment="Propietario del caso"
    )

    user_email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    parties: Mapped[dict] = mapped_column(
        JSON, nullable=False, default=dict, comment="{plaintiff, defendant, other[]}"
    )

    case_type: Mapped[str] = mapped_column(String(128), nullable=False, default="General")

    status: Mapped[str] = mapped_column(
        String(32),
        nullable=False,
        default="new",
        comment="new, review, in_progress, appeals, pending_decision, closed",
    )

    deadlines: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    last_documents: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    next_actions: Mapped[list] = mapped_column(JSON, nullable=False, default=list)

    summary: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    court: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    attorney: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    last_action: Mapped[Optional[dict]] = mapped_column(
        JSON, nullable=True, comment="{title, date}"
    )

    mcd_file_path: Mapped[Optional[str]] = mapped_column(String(512), nullable=True)

    source: Mapped[str] = mapped_column(
        String(32),
        nullable=False,
        default="manual",
        comment="document, questionnaire, manual, dashboard-agent",
    )

    # Registro judicial (CPNU)
    radicado_cpnu: Mapped[Optional[str]] = mapped_column(String(23), nullable=True)
    linked_cpnu: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    cpnu_bootstrap_done: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    cpnu_bootstrap_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    cpnu_bootstrap_by: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    cpnu_last_fecha_registro: Mapped[Optional[str]] = mapped_column(String(10), nullable=True)
    cpnu_last_sync_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    cpnu_last_sync_status: Mapped[Optional[str]] = mapped_column(
        String(16), nullable=True, comment="success, error, no_changes"
    )
    cpnu_actuaciones: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    cpnu_clase_proceso: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    # Lápida
    is_deleted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, index=True)
    deleted_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    deleted_by: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)

    version: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, comment="Se incrementa en cada escritura"
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.utcnow
    )

    @validates("case_id")
    def _uppercase_case_id(self, key, value):
        return value.strip().upper() if isinstance(value, str) else value

    def to_dict(self) -> dict[str, Any]:
        """Representación MCD plana (fechas en ISO 8601)."""
        data: dict[str, Any] = {
            "case_id": self.case_id,
            "user_id": self.user_id,
            "version": self.version or 0,
            "created_at": _to_iso(self.created_at),
            "updated_at": _to_iso(self.updated_at),
        }
        for field in MCD_SCALAR_FIELDS:
            data[field] = getattr(self, field)
        for field in MCD_JSON_FIELDS:
            value = getattr(self, field)
            data[field] = _copy_json(value)
        for field in MCD_DATETIME_FIELDS:
            data[field] = _to_iso(getattr(self, field))
        return data

    def apply(self, data: dict[str, Any]) -> None:
        """Copia los campos MCD presentes en data sobre el registro."""
        for field in MCD_SCALAR_FIELDS:
            if field in data:
                setattr(self, field, data[field])
        for field in MCD_JSON_FIELDS:
            if field in data:
                # Reasignar (no mutar) para que SQLAlchemy detecte el cambio
                setattr(self, field, _copy_json(data[field]))
        for field in MCD_DATETIME_FIELDS:
            if field in data:
                setattr(self, field, _from_iso(data[field]))

    def __repr__(self) -> str:
        return (
            f"<MasterCaseDocument {self.case_id} user={self.user_id} "
            f"status={self.status} v{self.version}>"
        )


def _copy_json(value: Any) -> Any:
    if isinstance(value, list):
        return [_copy_json(item) for item in value]
    if isinstance(value, dict):
        return {k: _copy_json(v) for k, v in value.items()}
    return value
