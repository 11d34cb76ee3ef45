"""
Configuración del motor de sincronización de casos con Pydantic Settings.

Centraliza:
- Rutas del almacén de ficheros (case.json por usuario)
- Conexión al almacén documental (MCD)
- Timeouts del scraper del registro judicial (CPNU)
- Calendario y retención de casos cerrados
"""
from pathlib import Path
from typing import Literal, Optional

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Configuración global de Pepper.

    Todas las variables se pueden sobrescribir con variables de entorno
    (el nombre del campo en mayúsculas, p.ej. CASES_DIR).
    """

    # =========================================================
    # ENTORNO Y DEPLOYMENT
    # =========================================================

    environment: Literal["development", "staging", "production"] = Field(
        default="development", description="Entorno de ejecución"
    )

    debug: bool = Field(default=False, description="Modo debug (solo para development)")

    app_name: str = Field(default="Pepper Case Sync")

    app_version: str = Field(default="1.0.0")

    # =========================================================
    # ALMACENES
    # =========================================================

    database_url: str = Field(
        default="sqlite:///./runtime/db/pepper.db",
        description="URL del almacén documental (Master Case Documents)",
    )

    cases_dir: Path = Field(
        default=Path("./runtime/cases"),
        description="Raíz del almacén de ficheros: <cases_dir>/<user>/<CASE_ID>/case.json",
    )

    recent_activity_limit: int = Field(
        default=10,
        ge=1,
        le=100,
        description="Máximo de entradas en recent_activity tras cada escritura",
    )

    # =========================================================
    # REGISTRO JUDICIAL (CPNU)
    # =========================================================

    cpnu_scraper_url: Optional[str] = Field(
        default=None,
        description="URL del servicio scraper de la rama judicial",
    )

    cpnu_scrape_timeout_seconds: int = Field(
        default=90,
        ge=5,
        le=300,
        description="Timeout de un scrape individual",
    )

    cpnu_request_timeout_seconds: int = Field(
        default=120,
        ge=5,
        le=600,
        description="Timeout global de la petición de bootstrap",
    )

    # =========================================================
    # CALENDARIO
    # =========================================================

    calendar_sync_enabled: bool = Field(
        default=False, description="Sincronizar eventos del caso con el calendario"
    )

    calendar_sync_url: Optional[str] = Field(
        default=None, description="Endpoint del servicio de calendario"
    )

    calendar_timeout_seconds: int = Field(default=15, ge=1, le=120)

    # =========================================================
    # RETENCIÓN
    # =========================================================

    closed_case_retention_days: int = Field(
        default=90,
        ge=1,
        description="Días que un caso cerrado permanece visible antes de archivarse",
    )

    # =========================================================
    # LOGGING
    # =========================================================

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(default="INFO")

    log_file: Optional[Path] = Field(
        default=None, description="Fichero de log JSON (opcional, además de stdout)"
    )

    # =========================================================
    # VALIDACIONES CUSTOM
    # =========================================================

    @field_validator("database_url")
    @classmethod
    def validate_database_url(cls, v):
        """Valida formato de URL de base de datos."""
        if not v.startswith(("sqlite:///", "postgresql://", "postgresql+psycopg2://")):
            raise ValueError(
                "database_url debe empezar con sqlite:///, postgresql:// o postgresql+psycopg2://"
            )
        return v

    @model_validator(mode="after")
    def validate_timeouts(self):
        """El timeout global debe cubrir al menos un scrape completo."""
        if self.cpnu_request_timeout_seconds < self.cpnu_scrape_timeout_seconds:
            raise ValueError(
                "CPNU_REQUEST_TIMEOUT_SECONDS debe ser >= CPNU_SCRAPE_TIMEOUT_SECONDS"
            )
        if self.environment == "production" and self.debug:
            raise ValueError("DEBUG debe estar deshabilitado en producción")
        return self

    # =========================================================
    # PROPIEDADES COMPUTADAS
    # =========================================================

    @property
    def calendar_available(self) -> bool:
        """El calendario solo se usa si está habilitado y tiene endpoint."""
        return self.calendar_sync_enabled and bool(self.calendar_sync_url)

    model_config = SettingsConfigDict(
        env_file=str(Path(__file__).resolve().parents[2] / ".env"),
        env_file_encoding="utf-8",
        case_sensitive=False,
        validate_assignment=True,
        extra="ignore",
    )


# =========================================================
# INSTANCIA GLOBAL (SINGLETON)
# =========================================================

_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """
    Obtiene la configuración global (singleton).

    Returns:
        Settings: Configuración global validada
    """
    global _settings

    if _settings is None:
        _settings = Settings()

    return _settings


# =========================================================
# HELPERS
# =========================================================


def reload_settings() -> Settings:
    """
    Recarga la configuración (útil para tests).

    Returns:
        Settings: Nueva instancia de configuración
    """
    global _settings
    _settings = None
    return get_settings()


def print_config() -> None:
    """Imprime configuración actual (sin secrets)."""
    config = get_settings()

    print("\n" + "=" * 60)
    print("PEPPER - CONFIGURACIÓN")
    print("=" * 60)
    print(f"Environment:     {config.environment}")
    print(f"Debug:           {config.debug}")
    print(f"Version:         {config.app_version}")
    print(f"Database:        {config.database_url.split('/')[-1]}")
    print(f"Cases dir:       {config.cases_dir}")
    print(f"CPNU scraper:    {config.cpnu_scraper_url or 'N/A'}")
    print(f"CPNU timeouts:   {config.cpnu_scrape_timeout_seconds}s / {config.cpnu_request_timeout_seconds}s")
    print(f"Calendar:        {config.calendar_available}")
    print(f"Log Level:       {config.log_level}")
    print("=" * 60 + "\n")


if __name__ == "__main__":
    print_config()
