"""
Servicio de sincronización de casos entre los dos almacenes.

FLUJO DE ESCRITURA (save):
1. Normalizar estado y fechas
2. Validar (errores -> nada se escribe)
3. Localizar en ficheros y en el almacén documental
4. Fusionar con el registro existente
5. Escribir case.json (principal, su fallo se propaga)
6. Escribir el MCD (espejo, best effort)
7. Generar documento y sincronizar calendario (best effort)

No hay transacción compartida entre almacenes: el fichero es la fuente
de verdad y el MCD un espejo. Sin expected_version el último escritor
gana; con expected_version se rechaza una escritura basada en una
versión obsoleta.
"""
import re
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional, Protocol

from pydantic import ValidationError
from sqlalchemy.orm import Session

from pepper.core.config import Settings, get_settings
from pepper.core.exceptions import (
    CaseNotFoundException,
    ConcurrentModificationException,
    PartialWriteError,
    PepperException,
    ValidationException,
    wrap_exception,
)
from pepper.core.logger import StructuredLogger
from pepper.models.case_record import DashboardTemplate, DeleteResult, QuestionnaireSubmission
from pepper.models.master_case_document import MasterCaseDocument
from pepper.services.base import BaseService
from pepper.services.bootstrap_gate import try_bootstrap
from pepper.services.calendar_sync import (
    CalendarSyncAdapter,
    HttpCalendarSyncAdapter,
    NullCalendarSyncAdapter,
    sync_result,
)
from pepper.services.case_document_store import CaseDocumentStore
from pepper.services.case_locator import CaseLocation, DualStoreLocator
from pepper.services.date_normalizer import try_normalize_date
from pepper.services.file_store import CaseFileStore
from pepper.services.merge_engine import MergeResult, merge_case
from pepper.services.schema_translator import (
    CPNU_FIELDS,
    parse_last_action,
    to_dashboard_template,
    to_master_case_document,
)
from pepper.services.soft_delete import SoftDeleteController
from pepper.services.status_normalizer import (
    MCD_STATUSES,
    is_mcd_status,
    mcd_to_dashboard_status,
    normalize_mcd_status,
)
from pepper.services.template_validation import normalize_template, validate_template

RADICADO_CASE_ID_RE = re.compile(r"^\d{23}$")

# Campos que solo vive en el MCD y que una escritura desde el dashboard conserva
STORE_ONLY_FIELDS = ("last_documents", "next_actions", "mcd_file_path", "source")

# Campos del MCD que se reflejan en case.json tras un cuestionario
QUESTIONNAIRE_TEMPLATE_FIELDS = (
    "court",
    "plaintiff",
    "defendant",
    "client",
    "practice",
    "type",
    "attorney",
    "status",
    "summary",
    "last_action",
    "deadlines",
)


class DocumentRenderer(Protocol):
    def render(self, user_id: str, case_data: Dict[str, Any]) -> Any:
        ...


class CaseSyncService(BaseService):
    """Fachada de operaciones sobre un caso: save, get, list_all, delete."""

    def __init__(
        self,
        db: Session,
        *,
        settings: Optional[Settings] = None,
        file_store: Optional[CaseFileStore] = None,
        calendar: Optional[CalendarSyncAdapter] = None,
        document_renderer: Optional[DocumentRenderer] = None,
        clock: Optional[Callable[[], datetime]] = None,
        logger: Optional[StructuredLogger] = None,
    ):
        super().__init__(db, logger)
        self.settings = settings or get_settings()
        self.file_store = file_store or CaseFileStore(self.settings.cases_dir)
        self.document_store = CaseDocumentStore(db)
        self.locator = DualStoreLocator(self.file_store, self.document_store, self.logger)
        self.soft_delete_controller = SoftDeleteController(
            self.file_store, self.document_store, self.logger
        )
        self.calendar = calendar or self._default_calendar()
        self.document_renderer = document_renderer
        self.clock = clock or datetime.utcnow

    def _default_calendar(self) -> CalendarSyncAdapter:
        if self.settings.calendar_available:
            return HttpCalendarSyncAdapter(
                self.settings.calendar_sync_url,
                timeout=self.settings.calendar_timeout_seconds,
                logger=self.logger,
            )
        return NullCalendarSyncAdapter()

    @property
    def activity_limit(self) -> int:
        return self.settings.recent_activity_limit

    # =========================================================
    # SAVE
    # =========================================================

    def save(
        self,
        user_id: str,
        payload: Dict[str, Any],
        *,
        expected_version: Optional[int] = None,
        user_email: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Crea o actualiza un caso enviado en dialecto Dashboard.

        Args:
            user_id: Propietario del caso
            payload: Caso entrante
            expected_version: Versión sobre la que el cliente hizo sus cambios
            user_email: Email del propietario (para el MCD)

        Returns:
            Resumen {success, caseId, isUpdate, version, fileLocation, operations}

        Raises:
            ValidationException: datos inválidos (nada se escribe)
            ConcurrentModificationException: expected_version obsoleta
            FileStoreException: fallo al escribir case.json
        """
        if not isinstance(payload, dict):
            raise ValidationException("Case payload must be a JSON object")

        normalized, dropped = normalize_template(payload, self.logger)
        errors = validate_template(normalized)
        if errors:
            self._log_warning(
                "Case rejected by validation",
                case_id=normalized.get("case_id"),
                action="save",
                errors=errors,
            )
            raise ValidationException("Invalid case data", errors=errors)

        case_id = normalized["case_id"]
        location = self.locator.locate(user_id, case_id)
        self._check_expected_version(location, expected_version)

        now = self.clock()
        merge = self._merge(location, normalized, now)
        version = location.highest_version + 1
        record = self._finalize(merge.record, version)

        operations = self._write_through(location, record, user_email=user_email)
        operations["documentGeneration"] = self._render_document(user_id, record)
        operations["calendarSync"] = self._sync_calendar(user_id, record)

        self._log_info(
            "Case saved",
            case_id=case_id,
            action="save",
            is_update=location.is_update,
            version=version,
            status_changed=merge.status_changed,
        )

        return {
            "success": True,
            "caseId": case_id,
            "isUpdate": location.is_update,
            "version": version,
            "message": "Case updated successfully" if location.is_update else "Case created successfully",
            "fileLocation": {"json": {"relativePath": self.file_store.relative_path(user_id, case_id)}},
            "droppedFields": dropped,
            "operations": operations,
        }

    def _check_expected_version(self, location: CaseLocation, expected_version: Optional[int]) -> None:
        if expected_version is None:
            return
        if expected_version != location.current_version:
            self._log_warning(
                "Stale write rejected",
                case_id=location.case_id,
                action="save",
                expected_version=expected_version,
                current_version=location.current_version,
            )
            raise ConcurrentModificationException(
                location.case_id, expected_version, location.current_version
            )

    def _merge(self, location: CaseLocation, incoming: Dict[str, Any], now: datetime) -> MergeResult:
        try:
            existing = location.existing_template
            return merge_case(existing, incoming, now=now, limit=self.activity_limit)
        except Exception as e:
            # Registro existente inutilizable: se trata como creación
            self._log_error(
                "Merge with existing record failed, treating as create",
                error=e,
                case_id=location.case_id,
                action="merge",
            )
            return merge_case(None, incoming, now=now, limit=self.activity_limit)

    def _finalize(self, record: Dict[str, Any], version: int) -> Dict[str, Any]:
        record = dict(record)
        record.update({"version": version, "is_deleted": False, "deleted_at": None, "deleted_by": None})
        try:
            return DashboardTemplate.model_validate(record).model_dump()
        except ValidationError as e:
            raise ValidationException(
                "Merged case does not match the dashboard schema",
                errors=[err["msg"] for err in e.errors()],
            )

    # =========================================================
    # ESCRITURA EN AMBOS ALMACENES
    # =========================================================

    def _write_through(
        self,
        location: CaseLocation,
        record: Dict[str, Any],
        *,
        user_email: Optional[str] = None,
        source: str = "dashboard-agent",
        mcd_overrides: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """
        Escribe case.json y después el MCD.

        El fallo de case.json se propaga; el del MCD se devuelve en mcdSync.
        """
        user_id = location.user_id
        case_id = record["case_id"]

        self.file_store.write(user_id, case_id, record)

        existing = location.store_record or location.store_tombstone
        try:
            mcd_data = to_master_case_document(
                record, user_id=user_id, user_email=user_email, source=source
            )
            if existing is not None:
                mcd_data = self._preserve_store_fields(existing, mcd_data, record)
            if mcd_overrides:
                mcd_data.update(mcd_overrides)

            if existing is not None:
                stored, conflict = self.document_store.update(
                    existing,
                    mcd_data,
                    read_version=location.store_read_version,
                    version=record["version"],
                )
                mcd_sync = {"success": True, "mcdUpdated": True}
                if location.store_tombstone is not None and location.store_record is None:
                    mcd_sync["mcdRestored"] = True
                if conflict:
                    mcd_sync["conflict"] = True
                    self._log_warning(
                        "Lost update detected on document store, last writer wins",
                        case_id=case_id,
                        action="mcd_sync",
                        read_version=location.store_read_version,
                    )
            else:
                stored = self.document_store.create(mcd_data, version=record["version"])
                mcd_sync = {"success": True, "mcdCreated": True}

            self.file_store.write_mcd_mirror(user_id, case_id, stored.to_dict())
        except Exception as e:
            error = wrap_exception(
                e, PartialWriteError, operation="mcdSync", message="Document store sync failed"
            )
            self._log_error(
                "Document store sync failed after file write",
                error=error,
                case_id=case_id,
                action="mcd_sync",
            )
            mcd_sync = {"success": False, "error": error.message}

        return {"mcdSync": mcd_sync}

    def _preserve_store_fields(
        self, existing: MasterCaseDocument, mcd_data: Dict[str, Any], record: Dict[str, Any]
    ) -> Dict[str, Any]:
        data = dict(mcd_data)
        for field in STORE_ONLY_FIELDS:
            value = getattr(existing, field)
            if value:
                data[field] = value
        if not data.get("user_email"):
            data["user_email"] = existing.user_email
        if not data.get("attorney") and existing.attorney:
            data["attorney"] = existing.attorney
        other = (existing.parties or {}).get("other") or []
        if other:
            data["parties"] = {**data["parties"], "other": list(other)}
        # Conservar el estado fino del MCD si el dashboard no lo cambió
        if existing.status and mcd_to_dashboard_status(existing.status) == record.get("status"):
            data["status"] = existing.status
        return data

    def _render_document(self, user_id: str, record: Dict[str, Any]) -> Dict[str, Any]:
        if self.document_renderer is None:
            return {"success": True, "skipped": True}
        try:
            self.document_renderer.render(user_id, record)
            return {"success": True}
        except Exception as e:
            self._log_error(
                "Document generation failed", error=e, case_id=record.get("case_id"), action="render"
            )
            return {"success": False, "error": str(e)}

    def _sync_calendar(self, user_id: str, record: Dict[str, Any]) -> Dict[str, Any]:
        try:
            return self.calendar.sync(user_id, record)
        except Exception as e:
            self._log_error(
                "Calendar adapter raised", error=e, case_id=record.get("case_id"), action="calendar_sync"
            )
            return sync_result(False, message=str(e))

    # =========================================================
    # LECTURA
    # =========================================================

    def get(self, user_id: str, case_id: str) -> Dict[str, Any]:
        """
        Devuelve el caso en dialecto Dashboard (ficheros primero).

        Raises:
            CaseNotFoundException: ausente o eliminado en ambos almacenes
        """
        location = self.locator.locate(user_id, case_id)
        if not location.is_update:
            raise CaseNotFoundException(case_id)
        return {"case": location.existing_template, "source": location.source}

    def list_all(self, user_id: str) -> List[str]:
        """Unión de identificadores de ambos almacenes, sin eliminados."""
        case_ids = set(self.document_store.list_case_ids(user_id))
        for folder in self.file_store.list_case_ids(user_id):
            location = self.locator.locate(user_id, folder)
            if location.exists_in_fs:
                case_ids.add(location.fs_record["case_id"].upper())
        return sorted(case_ids)

    # =========================================================
    # ELIMINACIÓN
    # =========================================================

    def delete(self, user_id: str, case_id: str, *, deleted_by: Optional[str] = None) -> DeleteResult:
        """Eliminación lógica idempotente."""
        location = self.locator.locate(user_id, case_id)
        return self.soft_delete_controller.soft_delete(
            location, deleted_by=deleted_by or user_id, now=self.clock()
        )

    def archive_closed_cases(self, *, now: Optional[datetime] = None) -> Dict[str, Any]:
        """
        Elimina lógicamente los casos cerrados más antiguos que la retención.

        Returns:
            {archived, errors, case_ids}
        """
        now = now or self.clock()
        cutoff = now - timedelta(days=self.settings.closed_case_retention_days)
        summary: Dict[str, Any] = {"archived": 0, "errors": 0, "case_ids": []}

        for record in self.document_store.list_closed_before(cutoff):
            try:
                location = self.locator.locate(record.user_id, record.case_id)
                self.soft_delete_controller.soft_delete(location, deleted_by="retention", now=now)
                summary["archived"] += 1
                summary["case_ids"].append(record.case_id)
            except PepperException as e:
                summary["errors"] += 1
                self._log_error(
                    "Retention cleanup failed", error=e, case_id=record.case_id, action="retention"
                )

        self._log_info("Closed case retention finished", action="retention", **summary)
        return summary

    # =========================================================
    # CUESTIONARIO (DIALECTO MCD)
    # =========================================================

    def submit_questionnaire(
        self, user_id: str, submission: QuestionnaireSubmission
    ) -> Dict[str, Any]:
        """
        Crea o actualiza un caso desde el cuestionario manual.

        - Radicado de 23 dígitos como case_id: queda vinculado a la rama judicial
        - Un caso eliminado se restaura
        - Una actualización nunca vacía el abogado
        - Con vista previa judicial, el bootstrap queda hecho al crear

        Raises:
            ValidationException: estado desconocido
        """
        case_id = submission.case_id.upper()
        status = normalize_mcd_status(submission.status or "new")
        if not is_mcd_status(status):
            raise ValidationException(
                f"Status must be one of: {', '.join(MCD_STATUSES)}.", field="status"
            )

        location = self.locator.locate(user_id, case_id)
        existing_store = location.store_record or location.store_tombstone
        now = self.clock()
        version = location.highest_version + 1

        mcd_overrides = self._questionnaire_fields(case_id, submission, status, existing_store)
        template = to_dashboard_template({**mcd_overrides, "case_id": case_id, "version": version}, now=now)
        if existing_store is not None:
            # Los campos judiciales ya almacenados no se pisan
            stored = existing_store.to_dict()
            for field in CPNU_FIELDS:
                if stored.get(field) not in (None, [], False):
                    template[field] = stored[field]

        if location.fs_record is not None:
            incoming = {k: template[k] for k in QUESTIONNAIRE_TEMPLATE_FIELDS}
            record = merge_case(location.fs_record, incoming, now=now, limit=self.activity_limit).record
            for field in ("radicado_cpnu", "linked_cpnu"):
                if not record.get(field) and template.get(field):
                    record[field] = template[field]
        else:
            record = template

        bootstrapped = False
        preview = submission.cpnu_preview
        if (
            preview is not None
            and RADICADO_CASE_ID_RE.match(case_id)
            and not record.get("cpnu_bootstrap_done")
        ):
            record = try_bootstrap(
                record,
                preview.model_dump(),
                radicado=case_id,
                user_id=user_id,
                now=now,
                limit=self.activity_limit,
            )
            bootstrapped = True

        record = self._finalize(record, version)

        # El estado de 6 valores del cuestionario manda sobre la traducción
        overrides = {"status": status, "source": submission.source}
        for field in ("last_documents", "next_actions", "mcd_file_path", "user_email"):
            if mcd_overrides.get(field):
                overrides[field] = mcd_overrides[field]
        other_parties = mcd_overrides["parties"].get("other")
        if other_parties:
            parties = to_master_case_document(record, user_id=user_id)["parties"]
            overrides["parties"] = {**parties, "other": other_parties}

        operations = self._write_through(
            location,
            record,
            user_email=submission.user_email,
            source=submission.source,
            mcd_overrides=overrides,
        )
        operations["calendarSync"] = self._sync_calendar(user_id, record)

        restored = location.store_tombstone is not None and not location.is_update
        self._log_info(
            "Questionnaire case saved",
            case_id=case_id,
            action="questionnaire",
            is_update=location.is_update,
            restored=restored,
            bootstrapped=bootstrapped,
        )
        return {
            "success": True,
            "caseId": case_id,
            "isUpdate": location.is_update,
            "restored": restored,
            "bootstrapped": bootstrapped,
            "version": version,
            "fileLocation": {"json": {"relativePath": self.file_store.relative_path(user_id, case_id)}},
            "operations": operations,
        }

    def _questionnaire_fields(
        self,
        case_id: str,
        submission: QuestionnaireSubmission,
        status: str,
        existing: Optional[MasterCaseDocument],
    ) -> Dict[str, Any]:
        deadlines = []
        for deadline in submission.deadlines:
            due = try_normalize_date(deadline.due_date) if deadline.due_date else None
            if deadline.due_date and due is None:
                self._log_warning(
                    "Dropping unparseable deadline date",
                    case_id=case_id,
                    action="questionnaire",
                    value=str(deadline.due_date),
                )
            deadlines.append(
                {
                    "title": deadline.title.strip(),
                    "due_date": due,
                    "case_id": case_id,
                    "owner": deadline.owner or "Unassigned",
                    "completed": deadline.completed,
                }
            )

        attorney = (submission.attorney or "").strip() or None
        if attorney is None and existing is not None:
            attorney = existing.attorney

        fields: Dict[str, Any] = {
            "parties": submission.parties.model_dump(),
            "case_type": (submission.case_type or "").strip() or "General",
            "status": status,
            "deadlines": deadlines,
            "last_documents": [doc.model_dump() for doc in submission.last_documents],
            "next_actions": [action.model_dump() for action in submission.next_actions],
            "summary": submission.summary,
            "court": submission.court,
            "attorney": attorney,
            "last_action": parse_last_action(
                submission.last_action.model_dump()
                if hasattr(submission.last_action, "model_dump")
                else submission.last_action
            ),
            "user_email": submission.user_email,
            "mcd_file_path": submission.mcd_file_path,
            "source": submission.source,
        }
        if RADICADO_CASE_ID_RE.match(case_id):
            fields["radicado_cpnu"] = case_id
            fields["linked_cpnu"] = True
        return fields
