"""
Localizador de casos en los dos almacenes.

Un registro solo "existe" si no tiene la lápida is_deleted. Si está en
ambos almacenes, el de ficheros manda para lecturas y fusiones.
"""
from dataclasses import dataclass
from typing import Any, Dict, Optional

from pepper.core.exceptions import FileStoreException
from pepper.core.logger import StructuredLogger, get_logger
from pepper.models.case_record import DIALECT_MCD, DashboardTemplate, detect_dialect
from pepper.models.master_case_document import MasterCaseDocument
from pepper.services.case_document_store import CaseDocumentStore
from pepper.services.file_store import CaseFileStore
from pepper.services.schema_translator import to_dashboard_template


@dataclass
class CaseLocation:
    """Resultado de localizar (usuario, caso) en ambos almacenes."""

    user_id: str
    case_id: str
    fs_record: Optional[Dict[str, Any]] = None
    store_record: Optional[MasterCaseDocument] = None
    fs_tombstone: Optional[Dict[str, Any]] = None
    store_tombstone: Optional[MasterCaseDocument] = None
    fs_unreadable: bool = False
    store_read_version: Optional[int] = None

    @property
    def exists_in_fs(self) -> bool:
        return self.fs_record is not None

    @property
    def exists_in_store(self) -> bool:
        return self.store_record is not None

    @property
    def is_update(self) -> bool:
        return self.exists_in_fs or self.exists_in_store

    @property
    def source(self) -> Optional[str]:
        if self.exists_in_fs:
            return "file"
        if self.exists_in_store:
            return "mcd"
        return None

    @property
    def existing_template(self) -> Optional[Dict[str, Any]]:
        """Registro existente en dialecto Dashboard (ficheros primero)."""
        if self.fs_record is not None:
            return self.fs_record
        if self.store_record is not None:
            return to_dashboard_template(self.store_record.to_dict())
        return None

    @property
    def store_version(self) -> int:
        if self.store_record is None:
            return 0
        return self.store_read_version or 0

    @property
    def current_version(self) -> int:
        """Mayor versión vista en cualquiera de los dos almacenes."""
        fs_version = int(self.fs_record.get("version") or 0) if self.fs_record else 0
        return max(fs_version, self.store_version)

    @property
    def highest_version(self) -> int:
        """Como current_version pero contando también las lápidas."""
        versions = [self.current_version]
        if self.fs_tombstone:
            versions.append(int(self.fs_tombstone.get("version") or 0))
        if self.store_tombstone is not None:
            versions.append(self.store_tombstone.version or 0)
        return max(versions)

    @property
    def is_deleted_everywhere(self) -> bool:
        return not self.is_update and (
            self.fs_tombstone is not None or self.store_tombstone is not None
        )


class DualStoreLocator:
    """Determina en qué almacén(es) vive un caso."""

    def __init__(
        self,
        file_store: CaseFileStore,
        document_store: CaseDocumentStore,
        logger: Optional[StructuredLogger] = None,
    ):
        self.file_store = file_store
        self.document_store = document_store
        self.logger = logger or get_logger()

    def locate(self, user_id: str, case_id: str) -> CaseLocation:
        location = CaseLocation(user_id=user_id, case_id=case_id)

        fs_data = self._read_fs(location)
        if fs_data is not None:
            if fs_data.get("is_deleted"):
                location.fs_tombstone = fs_data
            else:
                location.fs_record = fs_data

        store_record = self.document_store.find(user_id, case_id, include_deleted=True)
        if store_record is not None:
            location.store_read_version = store_record.version or 0
            if store_record.is_deleted:
                location.store_tombstone = store_record
            else:
                location.store_record = store_record

        return location

    def _read_fs(self, location: CaseLocation) -> Optional[Dict[str, Any]]:
        try:
            raw = self.file_store.read(location.user_id, location.case_id)
        except FileStoreException as e:
            location.fs_unreadable = True
            self.logger.warning(
                "case.json unreadable, treating as absent",
                case_id=location.case_id,
                action="locate",
                error_message=e.message,
            )
            return None
        if raw is None:
            return None

        dialect = detect_dialect(raw)
        if dialect is None:
            location.fs_unreadable = True
            self.logger.warning(
                "case.json does not match any case schema, treating as absent",
                case_id=location.case_id,
                action="locate",
            )
            return None
        if dialect == DIALECT_MCD:
            # Ficheros antiguos guardados en dialecto MCD
            raw = to_dashboard_template(raw)
        return DashboardTemplate.model_validate(raw).model_dump()
