"""Fixtures pytest del motor de sincronización de casos."""
import copy
from datetime import datetime, timedelta

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import pepper.models.master_case_document  # noqa: F401
from pepper.core.config import Settings
from pepper.core.database import Base
from pepper.core.exceptions import ExternalServiceException
from pepper.services.calendar_sync import build_calendar_events, sync_result
from pepper.services.file_store import CaseFileStore
from pepper.services.registry_sync_service import RegistrySyncService

USER_ID = "user-1"

RADICADO = "11001310300120240012300"

SCRAPE = {
    "datosProceso": {
        "despacho": "Juzgado 01 Civil del Circuito de Bogotá",
        "claseProceso": "Verbal",
    },
    "sujetosProcesales": {
        "demandante": "Ana Pérez",
        "demandado": "Acme SAS",
        "defensorPrivado": "Luis Gómez",
        "defensorPublico": "Defensoría del Pueblo",
    },
    "actuaciones": [
        {
            "fecha_registro": "10-01-2025",
            "fecha_actuacion": "09-01-2025",
            "descripcion": "Auto admite demanda",
        },
        {
            "fecha_registro": "15-01-2025",
            "fecha_actuacion": "15-01-2025",
            "descripcion": "Notificación personal",
        },
    ],
}


@pytest.fixture(scope="function")
def db_session():
    """Sesión DB en memoria para tests (compartida entre hilos del TestClient)."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    Session = sessionmaker(bind=engine, expire_on_commit=False)
    session = Session()

    yield session

    session.close()
    Base.metadata.drop_all(engine)


@pytest.fixture
def settings(tmp_path):
    return Settings(
        cases_dir=tmp_path / "cases",
        database_url="sqlite:///:memory:",
        cpnu_scraper_url=None,
        calendar_sync_enabled=False,
        recent_activity_limit=10,
    )


class FixedClock:
    """Reloj controlable para fechas de actividad y lápidas."""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


class FakeScraper:
    """Scraper en memoria: respuesta por radicado o una excepción."""

    def __init__(self, responses=None, default=None):
        self.responses = dict(responses or {})
        self.default = default
        self.calls = []

    def scrape(self, radicado, timeout):
        self.calls.append(radicado)
        response = self.responses.get(radicado, self.default)
        if response is None:
            raise ExternalServiceException("not_found", f"Radicado {radicado} not found")
        if isinstance(response, Exception):
            raise response
        return copy.deepcopy(response)


class FakeCalendar:
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.calls = []

    def sync(self, user_id, case_data):
        self.calls.append((user_id, case_data["case_id"]))
        if self.fail:
            raise RuntimeError("calendar service down")
        return sync_result(True, created=len(build_calendar_events(case_data)))


@pytest.fixture
def clock():
    return FixedClock(datetime(2025, 3, 1, 10, 0, 0))


@pytest.fixture
def calendar():
    return FakeCalendar()


@pytest.fixture
def scraper():
    return FakeScraper({RADICADO: SCRAPE})


@pytest.fixture
def make_service(db_session, settings, calendar, clock):
    def _make(**kwargs):
        params = {
            "settings": settings,
            "file_store": CaseFileStore(settings.cases_dir),
            "calendar": calendar,
            "clock": clock,
        }
        params.update(kwargs)
        return RegistrySyncService(db_session, **params)

    return _make


@pytest.fixture
def service(make_service, scraper):
    return make_service(scraper=scraper)


@pytest.fixture
def template():
    """Caso válido en dialecto Dashboard."""

    def _template(case_id: str = "12345", **overrides):
        data = {
            "case_id": case_id,
            "court": "Juzgado 1 Civil",
            "plaintiff": "Ana Perez",
            "defendant": "Acme SAS",
            "last_action": "Demanda radicada - 2025-01-10",
            "client": "Ana Perez vs. Acme SAS",
            "practice": "Civil",
            "type": "Civil",
            "attorney": "Luis Gomez",
            "status": "active",
            "stage": "Discovery",
            "summary": "Incumplimiento de contrato",
            "hearing": "none",
            "important_dates": [],
            "recent_activity": [],
            "deadlines": [
                {
                    "title": "Contestar demanda",
                    "caseId": case_id,
                    "due": "2025-01-01",
                    "owner": "Luis",
                    "completed": False,
                }
            ],
        }
        data.update(overrides)
        return data

    return _template
