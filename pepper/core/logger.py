"""
Sistema de logging estructurado para Pepper.

Formato JSON con case_id y action en cada entrada, para poder
reconstruir qué pasó en cada almacén durante una sincronización.
"""
import json
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional


class StructuredLogger:
    """
    Logger estructurado con formato JSON.

    Cada log incluye:
    - timestamp ISO8601
    - level (INFO/WARNING/ERROR)
    - case_id (si aplica)
    - action (save, bootstrap, soft_delete, ...)
    - message
    - extra_data (opcional)
    """

    def __init__(self, name: str, log_file: Optional[Path] = None, level: str = "INFO"):
        """
        Inicializa el logger estructurado.

        Args:
            name: Nombre del logger (ej: "pepper.sync")
            log_file: Ruta al archivo de log (opcional)
            level: Nivel mínimo de log
        """
        self.logger = logging.getLogger(name)
        self.logger.setLevel(getattr(logging, level, logging.INFO))
        self.logger.handlers = []
        self.logger.propagate = False

        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setFormatter(JsonFormatter())
        self.logger.addHandler(console_handler)

        if log_file:
            log_file.parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(log_file)
            file_handler.setFormatter(JsonFormatter())
            self.logger.addHandler(file_handler)

    def info(
        self, message: str, case_id: Optional[str] = None, action: Optional[str] = None, **extra
    ):
        """Log nivel INFO."""
        self._log(logging.INFO, message, case_id, action, extra)

    def warning(
        self, message: str, case_id: Optional[str] = None, action: Optional[str] = None, **extra
    ):
        """Log nivel WARNING."""
        self._log(logging.WARNING, message, case_id, action, extra)

    def error(
        self,
        message: str,
        case_id: Optional[str] = None,
        action: Optional[str] = None,
        error: Optional[Exception] = None,
        **extra,
    ):
        """Log nivel ERROR."""
        if error:
            extra["error_type"] = type(error).__name__
            extra["error_message"] = str(error)
        self._log(logging.ERROR, message, case_id, action, extra)

    def _log(
        self,
        level: int,
        message: str,
        case_id: Optional[str],
        action: Optional[str],
        extra: dict[str, Any],
    ):
        log_data = {"case_id": case_id, "action": action, **extra}
        log_data = {k: v for k, v in log_data.items() if v is not None}

        self.logger.log(level, message, extra={"data": log_data})


class JsonFormatter(logging.Formatter):
    """Formatter que convierte logs a JSON."""

    def format(self, record: logging.LogRecord) -> str:
        log_obj = {
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "message": record.getMessage(),
            "logger": record.name,
        }

        if hasattr(record, "data"):
            log_obj.update(record.data)

        if record.exc_info:
            log_obj["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_obj, ensure_ascii=False, default=str)


_default_logger: Optional[StructuredLogger] = None


def get_logger(name: str = "pepper.sync", log_file: Optional[Path] = None) -> StructuredLogger:
    """
    Obtiene o crea el logger estructurado.

    Si no se indica log_file se usa el de la configuración (puede ser None,
    en cuyo caso solo se escribe a stdout).

    Args:
        name: Nombre del logger
        log_file: Ruta al archivo de log

    Returns:
        Logger estructurado
    """
    global _default_logger

    if _default_logger is None:
        from pepper.core.config import get_settings

        settings = get_settings()
        _default_logger = StructuredLogger(
            name, log_file or settings.log_file, level=settings.log_level
        )

    return _default_logger


def log_info(message: str, case_id: Optional[str] = None, action: Optional[str] = None, **extra):
    """Atajo para log INFO."""
    get_logger().info(message, case_id=case_id, action=action, **extra)


def log_warning(message: str, case_id: Optional[str] = None, action: Optional[str] = None, **extra):
    """Atajo para log WARNING."""
    get_logger().warning(message, case_id=case_id, action=action, **extra)


def log_error(
    message: str,
    case_id: Optional[str] = None,
    action: Optional[str] = None,
    error: Optional[Exception] = None,
    **extra,
):
    """Atajo para log ERROR."""
    get_logger().error(message, case_id=case_id, action=action, error=error, **extra)
