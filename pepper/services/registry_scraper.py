"""
Cliente del scraper del registro judicial (CPNU).

El scraper es un servicio externo. Contrato:
    scrape(radicado, timeout) -> {datosProceso, sujetosProcesales, actuaciones[]}

Todo fallo sale como ExternalServiceException con categoría
timeout | connection | not_found | validation | other.
"""
import re
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from typing import Any, Dict, Optional, Protocol

import requests
from requests.exceptions import ConnectionError, Timeout

from pepper.core.exceptions import ExternalServiceException, PepperException

RADICADO_RE = re.compile(r"^\d{23}$")

# Palabras clave por categoría, evaluadas en orden
_CATEGORY_KEYWORDS = (
    ("timeout", ("timed out", "timeout")),
    (
        "connection",
        (
            "browser",
            "connection",
            "network",
            "failed to initialize",
            "fetch failed",
            "econnrefused",
            "enotfound",
            "max retries exceeded",
        ),
    ),
    ("not_found", ("not found", "no results found", "may not exist", "old data")),
    (
        "validation",
        (
            "radicado must be",
            "invalid",
            "validation",
            "varios registros",
            "mismo número",
            "duplicado",
        ),
    ),
)


def categorize_error_message(message: Optional[str]) -> str:
    """Clasifica un error del scraper a partir de su mensaje."""
    if not message:
        return "other"
    text = message.lower()
    for category, keywords in _CATEGORY_KEYWORDS:
        if any(keyword in text for keyword in keywords):
            return category
    return "other"


def is_valid_radicado(radicado: Any) -> bool:
    return isinstance(radicado, str) and bool(RADICADO_RE.match(radicado))


def validate_radicado(radicado: Any) -> str:
    """
    Raises:
        ExternalServiceException: categoría validation si no son 23 dígitos
    """
    value = radicado.strip() if isinstance(radicado, str) else radicado
    if not is_valid_radicado(value):
        raise ExternalServiceException(
            "validation", "Radicado must be exactly 23 digits"
        )
    return value


class RegistryScraper(Protocol):
    def scrape(self, radicado: str, timeout: float) -> Dict[str, Any]:
        ...


class HttpRegistryScraper:
    """Scraper remoto expuesto por HTTP (POST {base_url}/scrape)."""

    def __init__(self, base_url: str, session: Optional[requests.Session] = None):
        self.base_url = base_url.rstrip("/")
        self.session = session or requests.Session()

    def scrape(self, radicado: str, timeout: float) -> Dict[str, Any]:
        radicado = validate_radicado(radicado)
        try:
            response = self.session.post(
                f"{self.base_url}/scrape", json={"radicado": radicado}, timeout=timeout
            )
        except Timeout as e:
            raise ExternalServiceException(
                "timeout", f"Scrape timed out after {timeout}s", original_error=e
            )
        except ConnectionError as e:
            raise ExternalServiceException(
                "connection", "Connection to registry scraper failed", original_error=e
            )

        if response.status_code == 404:
            raise ExternalServiceException("not_found", f"Radicado {radicado} not found")
        if response.status_code in (400, 422):
            raise ExternalServiceException("validation", _error_message(response))
        if response.status_code >= 500:
            message = _error_message(response)
            raise ExternalServiceException(categorize_error_message(message), message)

        try:
            payload = response.json()
        except ValueError as e:
            raise ExternalServiceException(
                "other", "Registry scraper returned invalid JSON", original_error=e
            )
        data = payload.get("data", payload) if isinstance(payload, dict) else None
        if not isinstance(data, dict) or "datosProceso" not in data:
            raise ExternalServiceException("other", "Registry scraper returned an unexpected payload")
        data.setdefault("sujetosProcesales", {})
        data.setdefault("actuaciones", [])
        return data


def _error_message(response: requests.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        return response.text or f"HTTP {response.status_code}"
    if isinstance(payload, dict):
        return str(payload.get("error") or payload.get("message") or payload)
    return str(payload)


def scrape_with_deadline(
    scraper: RegistryScraper,
    radicado: str,
    *,
    scrape_timeout: float,
    request_timeout: float,
) -> Dict[str, Any]:
    """
    Ejecuta el scrape con un tope global de tiempo.

    El scraper recibe scrape_timeout; si aun así no responde dentro de
    request_timeout se devuelve un error de timeout sin esperar al hilo.

    Raises:
        ExternalServiceException: cualquier fallo, ya categorizado
    """
    executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="cpnu-scrape")
    future = executor.submit(scraper.scrape, radicado, scrape_timeout)
    try:
        return future.result(timeout=request_timeout)
    except FutureTimeoutError as e:
        future.cancel()
        raise ExternalServiceException(
            "timeout", f"Registry request exceeded {request_timeout}s", original_error=e
        )
    except PepperException:
        raise
    except Exception as e:
        raise ExternalServiceException(
            categorize_error_message(str(e)), str(e) or type(e).__name__, original_error=e
        )
    finally:
        executor.shutdown(wait=False)
