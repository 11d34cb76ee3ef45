"""
Normalización de fechas a YYYY-MM-DD.

Orden de intento:
1. YYYY-MM-DD canónico (se valida que la fecha exista)
2. DD-MM-YYYY o DD/MM/YYYY (formato de la rama judicial)
3. Parse genérico (ISO con hora, "December 21, 2025", ...)

Las fechas nunca se desplazan a UTC: se conserva el día de calendario
que escribió el usuario.
"""
import re
from datetime import date, datetime
from typing import Any, Optional

from dateutil import parser as date_parser

from pepper.core.exceptions import DateFormatError

CANONICAL_RE = re.compile(r"^(\d{4})-(\d{2})-(\d{2})$")
DAY_FIRST_RE = re.compile(r"^(\d{1,2})[-/](\d{1,2})[-/](\d{4})$")
ISO_PREFIX_RE = re.compile(r"^(\d{4}-\d{2}-\d{2})[T ]")


def _build(year: int, month: int, day: int, raw: Any) -> str:
    try:
        return date(year, month, day).isoformat()
    except ValueError as e:
        # Fechas imposibles tipo 30 de febrero
        raise DateFormatError(raw, original_error=e)


def normalize_date(value: Any) -> str:
    """
    Convierte una fecha heterogénea a YYYY-MM-DD.

    Args:
        value: str, date o datetime

    Returns:
        Fecha canónica

    Raises:
        DateFormatError: si no se puede interpretar
    """
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if not isinstance(value, str) or not value.strip():
        raise DateFormatError(value)

    text = value.strip()

    match = CANONICAL_RE.match(text)
    if match:
        year, month, day = (int(part) for part in match.groups())
        return _build(year, month, day, value)

    match = DAY_FIRST_RE.match(text)
    if match:
        day, month, year = (int(part) for part in match.groups())
        return _build(year, month, day, value)

    match = ISO_PREFIX_RE.match(text)
    if match:
        return normalize_date(match.group(1))

    try:
        parsed = date_parser.parse(text)
    except (ValueError, OverflowError) as e:
        raise DateFormatError(value, original_error=e)

    return parsed.date().isoformat()


def try_normalize_date(value: Any) -> Optional[str]:
    """Como normalize_date pero devuelve None si la fecha no es válida."""
    try:
        return normalize_date(value)
    except DateFormatError:
        return None


def is_canonical_date(value: Any) -> bool:
    if not isinstance(value, str) or not CANONICAL_RE.match(value):
        return False
    return try_normalize_date(value) == value
