"""
Sincronización con la rama judicial (CPNU).

- bootstrap_sync: importación única de campos congelados
- sync_case_actuaciones: actuaciones nuevas de un caso ya bootstrapeado
- run_auto_sync: lo anterior para todos los casos vinculados, aislando
  los errores de cada caso
"""
from typing import Any, Dict, List, Optional, Set, Tuple

from sqlalchemy.orm import Session

from pepper.core.exceptions import (
    CaseNotFoundException,
    ExternalServiceException,
    PepperException,
    ValidationException,
)
from pepper.services.actuaciones_sync import apply_actuaciones_sync
from pepper.services.bootstrap_gate import ensure_can_bootstrap, select_attorney, try_bootstrap
from pepper.services.case_locator import CaseLocation
from pepper.services.case_sync_service import CaseSyncService
from pepper.services.file_store import sanitize_segment
from pepper.services.registry_scraper import (
    HttpRegistryScraper,
    RegistryScraper,
    is_valid_radicado,
    scrape_with_deadline,
)


class RegistrySyncService(CaseSyncService):
    """Operaciones de sincronización con el registro judicial."""

    def __init__(self, db: Session, *, scraper: Optional[RegistryScraper] = None, **kwargs):
        super().__init__(db, **kwargs)
        if scraper is None and self.settings.cpnu_scraper_url:
            scraper = HttpRegistryScraper(self.settings.cpnu_scraper_url)
        self.scraper = scraper

    # =========================================================
    # HELPERS
    # =========================================================

    def _locate_live(self, user_id: str, case_id: str) -> CaseLocation:
        location = self.locator.locate(user_id, case_id)
        if location.is_update:
            return location
        if location.is_deleted_everywhere:
            raise ValidationException("Cannot sync deleted case", field="case_id")
        raise CaseNotFoundException(case_id)

    def _scrape(self, radicado: str, case_id: str) -> Dict[str, Any]:
        if self.scraper is None:
            raise ExternalServiceException("connection", "Registry scraper is not configured")
        try:
            return scrape_with_deadline(
                self.scraper,
                radicado,
                scrape_timeout=self.settings.cpnu_scrape_timeout_seconds,
                request_timeout=self.settings.cpnu_request_timeout_seconds,
            )
        except ExternalServiceException as e:
            self._log_error(
                "Registry scrape failed",
                error=e,
                case_id=case_id,
                action="cpnu_scrape",
                category=e.category,
            )
            raise

    # =========================================================
    # BOOTSTRAP
    # =========================================================

    def bootstrap_sync(
        self, user_id: str, case_id: str, radicado: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Importa una única vez los campos congelados desde la rama judicial.

        Args:
            user_id: Usuario que lanza la sincronización
            case_id: Caso a sincronizar
            radicado: Número de radicación; por defecto el del caso

        Returns:
            {success, message, case, data, operations}

        Raises:
            CaseNotFoundException: el caso no existe
            ValidationException: caso eliminado o radicado inválido
            AlreadyBootstrappedException: el cerrojo ya estaba puesto
            ExternalServiceException: fallo categorizado del scraper
        """
        location = self._locate_live(user_id, case_id)
        case = location.existing_template

        # Antes de scrapear: un caso ya bootstrapeado no vuelve a consultar el registro
        ensure_can_bootstrap(case, case_id)

        radicado = (radicado or case.get("radicado_cpnu") or case.get("case_id") or "").strip()
        if not is_valid_radicado(radicado):
            raise ValidationException(
                "Radicado must be exactly 23 digits", field="radicado"
            )

        scrape = self._scrape(radicado, case_id)

        now = self.clock()
        updated = try_bootstrap(
            case, scrape, radicado=radicado, user_id=user_id, now=now, limit=self.activity_limit
        )
        updated = self._finalize(updated, location.highest_version + 1)

        # Abogado del registro (puede ser None) aunque el MCD tuviera otro
        attorney = select_attorney(scrape.get("sujetosProcesales") or {})
        operations = self._write_through(location, updated, mcd_overrides={"attorney": attorney})
        operations["calendarSync"] = self._sync_calendar(user_id, updated)

        self._log_info(
            "CPNU bootstrap completed",
            case_id=case_id,
            action="cpnu_bootstrap",
            radicado=radicado,
            actuaciones=len(updated.get("cpnu_actuaciones") or []),
        )
        return {
            "success": True,
            "message": f"Case synchronized with CPNU (Radicado: {radicado})",
            "case": updated,
            "data": {
                "radicado": radicado,
                "datosProceso": scrape.get("datosProceso") or {},
                "sujetosProcesales": scrape.get("sujetosProcesales") or {},
                "actuacionesCount": len(scrape.get("actuaciones") or []),
            },
            "operations": operations,
        }

    # =========================================================
    # SINCRONIZACIÓN INCREMENTAL
    # =========================================================

    def sync_case_actuaciones(self, user_id: str, case_id: str) -> Dict[str, Any]:
        """
        Incorpora actuaciones nuevas a un caso ya bootstrapeado.

        Si el scraper falla se registra cpnu_last_sync_status="error" y el
        error se propaga.

        Returns:
            {success, caseId, hasChanges, newActuaciones, operations}
        """
        location = self._locate_live(user_id, case_id)
        case = location.existing_template
        radicado = case.get("radicado_cpnu")
        if not case.get("cpnu_bootstrap_done") or not radicado:
            raise ValidationException(
                "Case must be bootstrapped with CPNU before automatic sync", field="case_id"
            )

        try:
            scrape = self._scrape(radicado, case_id)
        except ExternalServiceException:
            self._mark_sync_error(location, case)
            raise

        now = self.clock()
        updated, changes = apply_actuaciones_sync(
            case, scrape.get("actuaciones") or [], now=now, limit=self.activity_limit
        )
        updated = self._finalize(updated, location.highest_version + 1)
        operations = self._write_through(location, updated)
        if changes.has_changes:
            operations["calendarSync"] = self._sync_calendar(user_id, updated)

        self._log_info(
            "CPNU actuaciones sync finished",
            case_id=case_id,
            action="cpnu_auto_sync",
            has_changes=changes.has_changes,
            new_actuaciones=len(changes.new_actuaciones),
        )
        return {
            "success": True,
            "caseId": updated["case_id"],
            "hasChanges": changes.has_changes,
            "newActuaciones": len(changes.new_actuaciones),
            "latestFechaRegistro": changes.latest_fecha_registro,
            "operations": operations,
        }

    def _mark_sync_error(self, location: CaseLocation, case: Dict[str, Any]) -> None:
        record = dict(case)
        record["cpnu_last_sync_status"] = "error"
        record["cpnu_last_sync_at"] = self.clock().isoformat()
        try:
            record = self._finalize(record, location.highest_version + 1)
            self._write_through(location, record)
        except PepperException as e:
            self._log_error(
                "Could not record CPNU sync error", error=e, case_id=location.case_id, action="cpnu_auto_sync"
            )

    def _sync_candidates(self) -> List[Tuple[str, str]]:
        """(usuario, caso) vinculados y bootstrapeados en cualquiera de los almacenes."""
        candidates: Set[Tuple[str, str]] = set()
        seen_folders: Set[Tuple[str, str]] = set()
        for record in self.document_store.list_sync_candidates():
            candidates.add((record.user_id, record.case_id))
            seen_folders.add((sanitize_segment(record.user_id), sanitize_segment(record.case_id)))

        root = self.file_store.root
        if root.is_dir():
            for user_dir in sorted(p for p in root.iterdir() if p.is_dir()):
                for folder in self.file_store.list_case_ids(user_dir.name):
                    if (user_dir.name, folder) in seen_folders:
                        continue
                    location = self.locator.locate(user_dir.name, folder)
                    case = location.fs_record
                    if (
                        case
                        and case.get("linked_cpnu")
                        and case.get("cpnu_bootstrap_done")
                        and case.get("radicado_cpnu")
                    ):
                        candidates.add((user_dir.name, case["case_id"].upper()))
        return sorted(candidates)

    def run_auto_sync(self) -> Dict[str, Any]:
        """
        Sincroniza todos los casos vinculados.

        Returns:
            {processed, updated, no_changes, errors, error_details}
        """
        summary: Dict[str, Any] = {
            "processed": 0,
            "updated": 0,
            "no_changes": 0,
            "errors": 0,
            "error_details": [],
        }

        for user_id, case_id in self._sync_candidates():
            summary["processed"] += 1
            try:
                result = self.sync_case_actuaciones(user_id, case_id)
            except Exception as e:
                # Un caso que falla no detiene al resto
                summary["errors"] += 1
                summary["error_details"].append(
                    {
                        "user_id": user_id,
                        "case_id": case_id,
                        "error": e.message if isinstance(e, PepperException) else str(e),
                    }
                )
                self._log_error(
                    "Auto sync failed for case", error=e, case_id=case_id, action="cpnu_auto_sync"
                )
                continue

            if result["hasChanges"]:
                summary["updated"] += 1
            else:
                summary["no_changes"] += 1

        self._log_info(
            "CPNU auto sync finished",
            action="cpnu_auto_sync",
            processed=summary["processed"],
            updated=summary["updated"],
            no_changes=summary["no_changes"],
            errors=summary["errors"],
        )
        return summary
