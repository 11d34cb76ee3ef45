"""
Eliminación lógica idempotente en los dos almacenes.

- Marca la lápida en cada almacén que tenga el caso vivo
- Si ya estaba eliminado, devuelve éxito sin tocar deleted_at/deleted_by
- Nunca borra ficheros ni filas
"""
from datetime import datetime
from typing import Optional

from pepper.core.exceptions import CaseNotFoundException, PepperException
from pepper.core.logger import StructuredLogger, get_logger
from pepper.models.case_record import DeleteResult
from pepper.services.case_document_store import CaseDocumentStore
from pepper.services.case_locator import CaseLocation
from pepper.services.file_store import CaseFileStore

ALREADY_DELETED_MESSAGE = "Case is already deleted."
DELETED_MESSAGE = "Case deleted successfully."


class SoftDeleteController:
    def __init__(
        self,
        file_store: CaseFileStore,
        document_store: CaseDocumentStore,
        logger: Optional[StructuredLogger] = None,
    ):
        self.file_store = file_store
        self.document_store = document_store
        self.logger = logger or get_logger()

    def soft_delete(
        self, location: CaseLocation, *, deleted_by: str, now: datetime
    ) -> DeleteResult:
        """
        Elimina lógicamente el caso localizado.

        Args:
            location: Resultado del localizador
            deleted_by: Usuario (o proceso) que elimina
            now: Momento de la eliminación

        Returns:
            DeleteResult (already_deleted=True si no había nada vivo)

        Raises:
            CaseNotFoundException: si ningún almacén conoce el caso
            PepperException: si falla la escritura del único almacén con el caso
        """
        case_id = location.case_id

        if not location.is_update:
            if location.fs_tombstone is None and location.store_tombstone is None:
                raise CaseNotFoundException(case_id)
            previous = (
                location.fs_tombstone.get("deleted_at")
                if location.fs_tombstone is not None
                else _iso(location.store_tombstone.deleted_at)
            )
            self.logger.info(
                "Soft delete on already deleted case", case_id=case_id, action="soft_delete"
            )
            return DeleteResult(
                case_id=case_id,
                already_deleted=True,
                message=ALREADY_DELETED_MESSAGE,
                deleted_at=previous,
            )

        deleted_at = now.isoformat()
        version = location.highest_version + 1
        result = DeleteResult(case_id=case_id, message=DELETED_MESSAGE, deleted_at=deleted_at)

        if location.exists_in_fs:
            record = dict(location.fs_record)
            record.update(
                {
                    "is_deleted": True,
                    "deleted_at": deleted_at,
                    "deleted_by": deleted_by,
                    "version": version,
                }
            )
            self.file_store.write(location.user_id, case_id, record)
            result.stores.append("file")

        if location.exists_in_store:
            try:
                self.document_store.update(
                    location.store_record,
                    {"is_deleted": True, "deleted_at": now, "deleted_by": deleted_by},
                    version=version,
                )
                result.stores.append("mcd")
            except PepperException as e:
                if not result.stores:
                    raise
                self.logger.error(
                    "Document store tombstone failed after file tombstone",
                    case_id=case_id,
                    action="soft_delete",
                    error=e,
                )
                result.warnings.append(f"mcd: {e.message}")

        self.logger.info(
            "Case soft deleted", case_id=case_id, action="soft_delete", stores=result.stores
        )
        return result


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None
