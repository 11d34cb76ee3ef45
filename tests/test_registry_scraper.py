"""
Tests del cliente HTTP del scraper y de la categorización de errores.
"""
import pytest
from requests.exceptions import ConnectionError, Timeout

from conftest import RADICADO, SCRAPE
from pepper.core.exceptions import ExternalServiceException
from pepper.services.registry_scraper import (
    HttpRegistryScraper,
    categorize_error_message,
    is_valid_radicado,
    validate_radicado,
)


class FakeResponse:
    def __init__(self, status_code=200, payload=None, text=""):
        self.status_code = status_code
        self._payload = payload
        self.text = text

    def json(self):
        if self._payload is None:
            raise ValueError("No JSON object could be decoded")
        return self._payload


class FakeSession:
    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.requests = []

    def post(self, url, json=None, timeout=None):
        self.requests.append({"url": url, "json": json, "timeout": timeout})
        if self.error is not None:
            raise self.error
        return self.response


def _scraper(**kwargs):
    session = FakeSession(**kwargs)
    return HttpRegistryScraper("http://scraper.local/", session=session), session


@pytest.mark.parametrize(
    "message,category",
    [
        ("Navigation timeout of 30000 ms exceeded", "timeout"),
        ("Request timed out", "timeout"),
        ("Browser failed to initialize", "connection"),
        ("fetch failed", "connection"),
        ("getaddrinfo ENOTFOUND consultaprocesos.ramajudicial.gov.co", "connection"),
        ("No results found for radicado", "not_found"),
        ("The process may not exist", "not_found"),
        ("Radicado must be exactly 23 digits", "validation"),
        ("Se encontraron varios registros con el mismo número", "validation"),
        ("Unexpected token < in JSON", "other"),
        ("", "other"),
        (None, "other"),
    ],
)
def test_categorize_error_message(message, category):
    assert categorize_error_message(message) == category


def test_radicado_validation():
    assert is_valid_radicado(RADICADO)
    assert not is_valid_radicado("1100131030012024001230")
    assert not is_valid_radicado("1100131030012024001230A")
    assert not is_valid_radicado(None)
    assert validate_radicado(f" {RADICADO} ") == RADICADO
    with pytest.raises(ExternalServiceException) as exc_info:
        validate_radicado("123")
    assert exc_info.value.category == "validation"
    assert exc_info.value.user_message == "Radicado must be exactly 23 digits"


def test_scrape_success_with_data_wrapper():
    scraper, session = _scraper(response=FakeResponse(200, {"success": True, "data": dict(SCRAPE)}))

    data = scraper.scrape(RADICADO, timeout=90)

    assert data["datosProceso"] == SCRAPE["datosProceso"]
    assert len(data["actuaciones"]) == 2
    assert session.requests == [
        {"url": "http://scraper.local/scrape", "json": {"radicado": RADICADO}, "timeout": 90}
    ]


def test_scrape_success_with_bare_payload():
    scraper, _ = _scraper(response=FakeResponse(200, {"datosProceso": {"despacho": "Juzgado"}}))

    data = scraper.scrape(RADICADO, timeout=90)

    assert data["sujetosProcesales"] == {}
    assert data["actuaciones"] == []


@pytest.mark.parametrize(
    "kwargs,category",
    [
        ({"error": Timeout("read timed out")}, "timeout"),
        ({"error": ConnectionError("refused")}, "connection"),
        ({"response": FakeResponse(404, {"error": "not found"})}, "not_found"),
        ({"response": FakeResponse(422, {"error": "Radicado must be 23 digits"})}, "validation"),
        ({"response": FakeResponse(500, {"error": "Browser failed to initialize"})}, "connection"),
        ({"response": FakeResponse(502, None, text="Bad gateway")}, "other"),
        ({"response": FakeResponse(200, None)}, "other"),
        ({"response": FakeResponse(200, {"success": True, "data": {"unexpected": 1}})}, "other"),
    ],
)
def test_scrape_failures_are_categorized(kwargs, category):
    scraper, _ = _scraper(**kwargs)

    with pytest.raises(ExternalServiceException) as exc_info:
        scraper.scrape(RADICADO, timeout=90)

    assert exc_info.value.category == category


def test_invalid_radicado_never_reaches_the_network():
    scraper, session = _scraper(response=FakeResponse(200, dict(SCRAPE)))

    with pytest.raises(ExternalServiceException):
        scraper.scrape("123", timeout=90)
    assert session.requests == []


@pytest.mark.parametrize(
    "category,status,message",
    [
        ("timeout", 504, "La conexión con la rama judicial tardó demasiado, intenta nuevamente"),
        ("connection", 503, "No se pudo conectar a la informacion de la rama judicial, intenta nuevamente"),
        ("not_found", 404, "No se encontró el radicado en la información de la rama judicial"),
        ("other", 500, "Error al sincronizar con la rama judicial, intenta nuevamente"),
    ],
)
def test_external_error_mapping(category, status, message):
    error = ExternalServiceException(category, "scraper failure")

    assert error.http_status == status
    assert error.user_message == message
    assert error.to_dict()["user_message"] == message


def test_unknown_category_falls_back_to_other():
    assert ExternalServiceException("weird", "boom").category == "other"
