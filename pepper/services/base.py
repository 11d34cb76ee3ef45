"""
Servicio base.

Proporciona a todos los servicios:
- Logging estructurado
- Acceso al almacén documental
"""
from typing import Optional

from sqlalchemy.orm import Session

from pepper.core.logger import StructuredLogger, get_logger


class BaseService:
    """
    Clase base para todos los servicios.

    Los servicios encapsulan la lógica de negocio y orquestan
    operaciones entre los dos almacenes y los colaboradores externos.
    """

    def __init__(
        self,
        db: Session,
        logger: Optional[StructuredLogger] = None
    ):
        """
        Args:
            db: Sesión de base de datos
            logger: Logger estructurado (opcional)
        """
        self.db = db
        self.logger = logger or get_logger()

    def _log_info(self, message: str, **kwargs):
        self.logger.info(message, **kwargs)

    def _log_warning(self, message: str, **kwargs):
        self.logger.warning(message, **kwargs)

    def _log_error(self, message: str, error: Optional[Exception] = None, **kwargs):
        self.logger.error(message, error=error, **kwargs)
