from contextlib import asynccontextmanager
from typing import Any, Dict

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from pepper.api.cases import router as cases_router
from pepper.api.sync import router as sync_router
from pepper.core.config import get_settings
from pepper.core.database import init_db
from pepper.core.exceptions import ExternalServiceException, PepperException, ValidationException
from pepper.core.logger import get_logger


# =========================================================
# CARGA DE ENTORNO
# =========================================================

load_dotenv()


# =========================================================
# FASTAPI APP (ENTRYPOINT ASGI)
# =========================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    get_logger().info("Pepper case sync started", action="startup")
    yield


settings = get_settings()

app = FastAPI(
    title=settings.app_name,
    description="Sincronización de casos entre el almacén de ficheros y el almacén documental",
    version=settings.app_version,
    lifespan=lifespan,
)

app.include_router(cases_router)
app.include_router(sync_router)


# =========================================================
# ERRORES
# =========================================================

def error_payload(exc: PepperException) -> Dict[str, Any]:
    payload = exc.to_dict()
    payload["success"] = False
    if isinstance(exc, ValidationException):
        payload["errors"] = exc.errors
    if isinstance(exc, ExternalServiceException):
        payload["errorCategory"] = exc.category
    return payload


@app.exception_handler(PepperException)
async def pepper_exception_handler(request: Request, exc: PepperException):
    if exc.http_status >= 500:
        get_logger().error(
            "Request failed", action="api", error=exc, path=request.url.path
        )
    return JSONResponse(status_code=exc.http_status, content=error_payload(exc))


@app.get("/")
async def root():
    """Endpoint raíz."""
    return {
        "service": settings.app_name,
        "version": settings.app_version,
        "status": "operational",
        "endpoints": [
            "POST /case/save",
            "POST /case/questionnaire",
            "GET /case/list",
            "GET /case/{case_id}",
            "DELETE /case/{case_id}",
            "POST /sync/{case_id}",
            "POST /sync/{case_id}/actuaciones",
            "POST /sync/auto",
        ],
    }


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "service": settings.app_name, "version": settings.app_version}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
