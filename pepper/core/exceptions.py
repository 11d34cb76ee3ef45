"""
Sistema de excepciones estandarizado para Pepper.

Todas las excepciones del sistema heredan de PepperException y siguen
un formato consistente con:
- Código de error único
- Mensaje descriptivo
- Detalles adicionales (dict)
- Severity level
- Código HTTP con el que se expone en la API
"""
from enum import Enum
from typing import Any, Dict, List, Optional


class ErrorSeverity(str, Enum):
    """Niveles de severidad para errores."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class PepperException(Exception):
    """
    Excepción base del sistema Pepper.

    Todas las excepciones custom deben heredar de esta clase.
    """

    http_status: int = 500

    def __init__(
        self,
        code: str,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        severity: ErrorSeverity = ErrorSeverity.MEDIUM,
        original_error: Optional[Exception] = None
    ):
        """
        Inicializa una excepción Pepper.

        Args:
            code: Código único del error (ej: "CASE_NOT_FOUND")
            message: Mensaje descriptivo para humanos
            details: Detalles adicionales (dict)
            severity: Nivel de severidad
            original_error: Excepción original si es un wrap
        """
        self.code = code
        self.message = message
        self.details = details or {}
        self.severity = severity
        self.original_error = original_error

        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """
        Convierte la excepción a diccionario (para API/logging).

        Returns:
            Dict con información de la excepción
        """
        result = {
            "error_code": self.code,
            "message": self.message,
            "severity": self.severity.value,
            "details": self.details
        }

        if self.original_error:
            result["original_error"] = {
                "type": type(self.original_error).__name__,
                "message": str(self.original_error)
            }

        return result

    def __str__(self) -> str:
        base = f"[{self.code}] {self.message}"
        if self.details:
            base += f" | Details: {self.details}"
        return base


# =========================================================
# EXCEPCIONES DE CONFIGURACIÓN
# =========================================================

class ConfigurationException(PepperException):
    """Error de configuración del sistema."""

    def __init__(self, message: str, **kwargs):
        super().__init__(
            code="CONFIG_ERROR",
            message=message,
            severity=ErrorSeverity.CRITICAL,
            **kwargs
        )


# =========================================================
# EXCEPCIONES DE ALMACENES
# =========================================================

class DatabaseException(PepperException):
    """Error relacionado con el almacén documental."""

    def __init__(self, message: str, **kwargs):
        super().__init__(
            code="DATABASE_ERROR",
            message=message,
            severity=ErrorSeverity.HIGH,
            **kwargs
        )


class FileStoreException(PepperException):
    """Error leyendo o escribiendo case.json."""

    def __init__(self, message: str, path: Optional[str] = None, **kwargs):
        super().__init__(
            code="FILE_STORE_ERROR",
            message=message,
            details={"path": path} if path else None,
            severity=ErrorSeverity.HIGH,
            **kwargs
        )


class CaseNotFoundException(PepperException):
    """Caso ausente de ambos almacenes (o eliminado lógicamente)."""

    http_status = 404

    def __init__(self, case_id: str, **kwargs):
        super().__init__(
            code="CASE_NOT_FOUND",
            message=f"Case not found: {case_id}",
            details={"case_id": case_id},
            severity=ErrorSeverity.LOW,
            **kwargs
        )


class ConcurrentModificationException(PepperException):
    """La versión esperada por el cliente no coincide con la almacenada."""

    http_status = 409

    def __init__(self, case_id: str, expected_version: int, current_version: int, **kwargs):
        super().__init__(
            code="CONCURRENT_MODIFICATION",
            message=(
                f"Case {case_id} was modified concurrently "
                f"(expected version {expected_version}, found {current_version})"
            ),
            details={
                "case_id": case_id,
                "expected_version": expected_version,
                "current_version": current_version,
            },
            severity=ErrorSeverity.MEDIUM,
            **kwargs
        )


class PartialWriteError(PepperException):
    """
    Un efecto secundario falló tras escribir el registro principal.

    Nunca se propaga al llamador: se registra en el resumen `operations`.
    """

    def __init__(self, operation: str, message: str, **kwargs):
        super().__init__(
            code="PARTIAL_WRITE",
            message=message,
            details={"operation": operation},
            severity=ErrorSeverity.MEDIUM,
            **kwargs
        )
        self.operation = operation


# =========================================================
# EXCEPCIONES DE VALIDACIÓN
# =========================================================

class ValidationException(PepperException):
    """Error de validación de datos (se rechaza antes de escribir)."""

    http_status = 400

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        errors: Optional[List[str]] = None,
        **kwargs
    ):
        details = kwargs.pop("details", None) or {}
        if field:
            details["field"] = field
        if errors:
            details["errors"] = list(errors)

        super().__init__(
            code="VALIDATION_ERROR",
            message=message,
            details=details,
            severity=ErrorSeverity.LOW,
            **kwargs
        )
        self.errors = list(errors or [])


class DateFormatError(ValidationException):
    """Fecha imposible de normalizar a YYYY-MM-DD."""

    def __init__(self, value: Any, field: Optional[str] = None, **kwargs):
        super().__init__(
            message=f"Invalid date format: {value!r}",
            field=field,
            details={"value": str(value)},
            **kwargs
        )
        self.code = "DATE_FORMAT_ERROR"
        self.value = value


class AlreadyBootstrappedException(PepperException):
    """El bootstrap CPNU ya se ejecutó para este caso."""

    http_status = 409

    def __init__(self, case_id: str, bootstrapped_at: Optional[str] = None, **kwargs):
        super().__init__(
            code="ALREADY_BOOTSTRAPPED",
            message="Bootstrap already completed for this case. Use automatic sync for updates.",
            details={"case_id": case_id, "bootstrapped_at": bootstrapped_at},
            severity=ErrorSeverity.LOW,
            **kwargs
        )


# =========================================================
# EXCEPCIONES DE SERVICIOS EXTERNOS
# =========================================================

EXTERNAL_ERROR_CATEGORIES = ("timeout", "connection", "not_found", "validation", "other")

EXTERNAL_ERROR_HTTP_STATUS = {
    "timeout": 504,
    "connection": 503,
    "not_found": 404,
    "validation": 400,
    "other": 500,
}

EXTERNAL_ERROR_USER_MESSAGES = {
    "timeout": "La conexión con la rama judicial tardó demasiado, intenta nuevamente",
    "connection": "No se pudo conectar a la informacion de la rama judicial, intenta nuevamente",
    "not_found": "No se encontró el radicado en la información de la rama judicial",
    "other": "Error al sincronizar con la rama judicial, intenta nuevamente",
}


class ExternalServiceException(PepperException):
    """
    Fallo categorizado del scraper del registro judicial.

    La categoría determina el código HTTP y el mensaje localizado
    que se muestra al usuario.
    """

    def __init__(self, category: str, message: str, **kwargs):
        if category not in EXTERNAL_ERROR_CATEGORIES:
            category = "other"
        super().__init__(
            code=f"EXTERNAL_{category.upper()}",
            message=message,
            details={"category": category},
            severity=ErrorSeverity.HIGH if category == "other" else ErrorSeverity.MEDIUM,
            **kwargs
        )
        self.category = category

    @property
    def http_status(self) -> int:
        return EXTERNAL_ERROR_HTTP_STATUS[self.category]

    @property
    def user_message(self) -> str:
        # Los errores de validación ya traen un mensaje apto para el usuario
        if self.category == "validation":
            return self.message
        return EXTERNAL_ERROR_USER_MESSAGES[self.category]

    def to_dict(self) -> Dict[str, Any]:
        result = super().to_dict()
        result["user_message"] = self.user_message
        return result


# =========================================================
# UTILIDADES
# =========================================================

def wrap_exception(
    original_error: Exception,
    pepper_exception_class: type,
    **kwargs
) -> PepperException:
    """
    Envuelve una excepción genérica en una PepperException.

    Args:
        original_error: Excepción original
        pepper_exception_class: Clase de PepperException a usar
        **kwargs: Argumentos adicionales para la excepción

    Returns:
        PepperException: Excepción wrapeada
    """
    if isinstance(original_error, PepperException):
        return original_error

    return pepper_exception_class(
        original_error=original_error,
        **kwargs
    )
