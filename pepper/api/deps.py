"""
Dependencias compartidas por los routers.

La autenticación queda fuera de este servicio: el usuario llega en la
cabecera X-User-Id, ya validado por el gateway.
"""
from typing import Optional

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.orm import Session

from pepper.core.database import get_db
from pepper.services.registry_sync_service import RegistrySyncService


def get_user_id(x_user_id: Optional[str] = Header(None)) -> str:
    if not x_user_id or not x_user_id.strip():
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Falta la cabecera X-User-Id",
        )
    return x_user_id.strip()


def get_sync_service(db: Session = Depends(get_db)) -> RegistrySyncService:
    """Servicio por request, sobre la sesión de esa request."""
    return RegistrySyncService(db)
