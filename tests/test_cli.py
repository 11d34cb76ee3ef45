"""
Tests del CLI de tareas programadas.
"""
from contextlib import contextmanager
from datetime import datetime

import pytest

import pepper.cli as cli
from conftest import RADICADO, USER_ID
from pepper.models.case_record import QuestionnaireSubmission
from pepper.models.master_case_document import MasterCaseDocument


@pytest.fixture
def patched_cli(monkeypatch, db_session, make_service, scraper, settings):
    """El CLI trabaja sobre la sesión y el servicio del test."""

    @contextmanager
    def _session():
        yield db_session

    def _service(db, settings=None):
        kwargs = {"scraper": scraper}
        if settings is not None:
            kwargs["settings"] = settings
        return make_service(**kwargs)

    monkeypatch.setattr(cli, "get_session", _session)
    monkeypatch.setattr(cli, "RegistrySyncService", _service)
    monkeypatch.setattr(
        cli, "get_settings", lambda: settings.model_copy(update={"cpnu_scraper_url": "http://scraper.local"})
    )
    return cli


def test_auto_sync_requires_scraper_url(monkeypatch, settings, capsys):
    monkeypatch.setattr(cli, "get_settings", lambda: settings)

    assert cli.main(["auto-sync"]) == 2
    assert "CPNU_SCRAPER_URL" in capsys.readouterr().out


def test_auto_sync_job(patched_cli, service, template, capsys):
    service.save(USER_ID, template(case_id=RADICADO))
    service.bootstrap_sync(USER_ID, RADICADO)

    assert patched_cli.main(["auto-sync"]) == 0

    out = capsys.readouterr().out
    assert "AUTO SYNC CPNU" in out
    assert '"processed": 1' in out


def test_retention_job(patched_cli, service, db_session, capsys):
    service.submit_questionnaire(
        USER_ID,
        QuestionnaireSubmission(
            case_id="12345", parties={"plaintiff": "Ana", "defendant": "Acme"}, status="closed"
        ),
    )
    record = db_session.query(MasterCaseDocument).filter_by(case_id="12345").one()
    record.updated_at = datetime(2024, 1, 1)
    db_session.commit()

    assert patched_cli.main(["retention", "--days", "30"]) == 0

    assert '"archived": 1' in capsys.readouterr().out
    assert service.list_all(USER_ID) == []


def test_unknown_command_exits():
    with pytest.raises(SystemExit):
        cli.main(["rebuild"])
