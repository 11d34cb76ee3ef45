"""
Acceso al almacén documental (Master Case Documents).

Cada escritura confirma su propia transacción: no hay transacción
compartida con el almacén de ficheros.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from pepper.core.exceptions import DatabaseException
from pepper.models.master_case_document import MasterCaseDocument


class CaseDocumentStore:
    """Repositorio de MasterCaseDocument por (case_id, user_id)."""

    def __init__(self, db: Session):
        self.db = db

    def find(
        self, user_id: str, case_id: str, *, include_deleted: bool = False
    ) -> Optional[MasterCaseDocument]:
        query = self.db.query(MasterCaseDocument).filter(
            MasterCaseDocument.case_id == case_id.strip().upper(),
            MasterCaseDocument.user_id == user_id,
        )
        if not include_deleted:
            query = query.filter(MasterCaseDocument.is_deleted.is_(False))
        return query.first()

    def current_version(self, record: MasterCaseDocument) -> int:
        """Versión actual en base de datos (no la cacheada en la sesión)."""
        version = (
            self.db.query(MasterCaseDocument.version)
            .filter(MasterCaseDocument.id == record.id)
            .scalar()
        )
        return version or 0

    def create(self, data: Dict[str, Any], *, version: int = 1) -> MasterCaseDocument:
        """
        Crea un MCD nuevo.

        Raises:
            DatabaseException: si falla la escritura (incluida la unicidad)
        """
        now = datetime.utcnow()
        record = MasterCaseDocument(
            case_id=data["case_id"],
            user_id=data["user_id"],
            created_at=now,
            updated_at=now,
        )
        record.apply(data)
        record.version = version
        self.db.add(record)
        self._commit(record.case_id, "create")
        return record

    def update(
        self,
        record: MasterCaseDocument,
        data: Dict[str, Any],
        *,
        read_version: Optional[int] = None,
        version: Optional[int] = None,
    ) -> Tuple[MasterCaseDocument, bool]:
        """
        Actualiza un MCD existente.

        Last-writer-wins: nunca bloquea. Si read_version no coincide con la
        versión en base de datos, otro escritor se adelantó y se devuelve
        conflict=True para que el llamador lo registre.

        Args:
            record: Registro a actualizar
            data: Campos MCD a copiar
            read_version: Versión leída antes de fusionar (opcional)
            version: Versión a escribir; por defecto la actual + 1

        Returns:
            (registro, conflict)
        """
        conflict = False
        if read_version is not None:
            conflict = self.current_version(record) != read_version

        record.apply(data)
        record.version = version if version is not None else (record.version or 0) + 1
        record.updated_at = datetime.utcnow()
        self._commit(record.case_id, "update")
        return record, conflict

    def list_case_ids(self, user_id: str) -> List[str]:
        rows = (
            self.db.query(MasterCaseDocument.case_id)
            .filter(
                MasterCaseDocument.user_id == user_id,
                MasterCaseDocument.is_deleted.is_(False),
            )
            .all()
        )
        return sorted(row[0] for row in rows)

    def list_sync_candidates(self) -> List[MasterCaseDocument]:
        """Casos vinculados a la rama judicial, ya bootstrapeados y no eliminados."""
        return (
            self.db.query(MasterCaseDocument)
            .filter(
                MasterCaseDocument.linked_cpnu.is_(True),
                MasterCaseDocument.cpnu_bootstrap_done.is_(True),
                MasterCaseDocument.radicado_cpnu.isnot(None),
                MasterCaseDocument.is_deleted.is_(False),
            )
            .order_by(MasterCaseDocument.user_id, MasterCaseDocument.case_id)
            .all()
        )

    def list_closed_before(self, cutoff: datetime) -> List[MasterCaseDocument]:
        return (
            self.db.query(MasterCaseDocument)
            .filter(
                MasterCaseDocument.status == "closed",
                MasterCaseDocument.updated_at < cutoff,
                MasterCaseDocument.is_deleted.is_(False),
            )
            .all()
        )

    def _commit(self, case_id: str, operation: str) -> None:
        try:
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise DatabaseException(
                f"Document store {operation} failed for case {case_id}",
                details={"case_id": case_id, "operation": operation},
                original_error=e,
            )
