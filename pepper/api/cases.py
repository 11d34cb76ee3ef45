"""
ENDPOINTS DE GESTIÓN DE CASOS.

PRINCIPIO: Esta capa NO contiene lógica de negocio. Traduce HTTP a
operaciones del servicio de sincronización; los errores los mapea el
handler de PepperException registrado en main.py.
"""
from __future__ import annotations

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Body, Depends, Header, Query

from pepper.api.deps import get_sync_service, get_user_id
from pepper.models.case_record import DeleteResult, QuestionnaireSubmission
from pepper.services.registry_sync_service import RegistrySyncService


router = APIRouter(
    prefix="/case",
    tags=["cases"],
)


@router.post(
    "/save",
    summary="Crear o actualizar un caso",
    description=(
        "Recibe un caso en dialecto Dashboard, lo fusiona con el existente "
        "y lo escribe en ambos almacenes. Con expected_version se rechaza "
        "(409) una escritura basada en una versión obsoleta."
    ),
)
def save_case(
    payload: Dict[str, Any] = Body(...),
    expected_version: Optional[int] = Query(None, ge=0),
    x_user_email: Optional[str] = Header(None),
    user_id: str = Depends(get_user_id),
    service: RegistrySyncService = Depends(get_sync_service),
) -> Dict[str, Any]:
    return service.save(
        user_id, payload, expected_version=expected_version, user_email=x_user_email
    )


@router.post(
    "/questionnaire",
    summary="Guardar un caso desde el cuestionario",
)
def submit_questionnaire(
    submission: QuestionnaireSubmission,
    user_id: str = Depends(get_user_id),
    service: RegistrySyncService = Depends(get_sync_service),
) -> Dict[str, Any]:
    return service.submit_questionnaire(user_id, submission)


@router.get(
    "/list",
    summary="Listar casos del usuario",
    description="Unión de ambos almacenes, sin casos eliminados.",
)
def list_cases(
    user_id: str = Depends(get_user_id),
    service: RegistrySyncService = Depends(get_sync_service),
) -> Dict[str, List[str]]:
    return {"cases": service.list_all(user_id)}


@router.get(
    "/{case_id}",
    summary="Consultar un caso",
    description="Devuelve case.json si existe; si no, el MCD traducido. 404 si no existe.",
)
def get_case(
    case_id: str,
    user_id: str = Depends(get_user_id),
    service: RegistrySyncService = Depends(get_sync_service),
) -> Dict[str, Any]:
    return service.get(user_id, case_id)


@router.delete(
    "/{case_id}",
    response_model=DeleteResult,
    summary="Eliminar un caso (lógicamente)",
    description="Idempotente: una segunda llamada devuelve already_deleted=true.",
)
def delete_case(
    case_id: str,
    user_id: str = Depends(get_user_id),
    service: RegistrySyncService = Depends(get_sync_service),
) -> DeleteResult:
    return service.delete(user_id, case_id)


@router.post(
    "/retention",
    summary="Archivar casos cerrados antiguos",
    description="Elimina lógicamente los casos cerrados que superan la retención configurada.",
)
def archive_closed_cases(
    service: RegistrySyncService = Depends(get_sync_service),
) -> Dict[str, Any]:
    return service.archive_closed_cases()


# =========================================================
# ENDPOINTS NO EXPUESTOS
# =========================================================

# Borrado físico -> no existe, solo lápidas
# PUT /case/{case_id} -> se usa POST /case/save (fusión, nunca reemplazo)
