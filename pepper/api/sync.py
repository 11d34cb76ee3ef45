"""
ENDPOINTS DE SINCRONIZACIÓN CON LA RAMA JUDICIAL (CPNU).
"""
from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from pepper.api.deps import get_sync_service, get_user_id
from pepper.services.registry_sync_service import RegistrySyncService


router = APIRouter(
    prefix="/sync",
    tags=["sync"],
)


class BootstrapRequest(BaseModel):
    radicado: Optional[str] = None


# /sync/auto debe registrarse antes que /sync/{case_id}
@router.post(
    "/auto",
    summary="Sincronizar actuaciones de todos los casos vinculados",
)
def run_auto_sync(
    service: RegistrySyncService = Depends(get_sync_service),
) -> Dict[str, Any]:
    return service.run_auto_sync()


@router.post(
    "/{case_id}",
    summary="Bootstrap CPNU (una sola vez)",
    description=(
        "Importa los campos congelados desde la rama judicial. "
        "Una segunda llamada devuelve 409."
    ),
)
def bootstrap_case(
    case_id: str,
    request: Optional[BootstrapRequest] = None,
    user_id: str = Depends(get_user_id),
    service: RegistrySyncService = Depends(get_sync_service),
) -> Dict[str, Any]:
    radicado = request.radicado if request else None
    return service.bootstrap_sync(user_id, case_id, radicado)


@router.post(
    "/{case_id}/actuaciones",
    summary="Sincronizar actuaciones nuevas de un caso",
)
def sync_actuaciones(
    case_id: str,
    user_id: str = Depends(get_user_id),
    service: RegistrySyncService = Depends(get_sync_service),
) -> Dict[str, Any]:
    return service.sync_case_actuaciones(user_id, case_id)
