"""
Tests del cuestionario manual (entrada en dialecto MCD).
"""
import pytest
from pydantic import ValidationError as PydanticValidationError

from conftest import RADICADO, SCRAPE, USER_ID
from pepper.core.exceptions import AlreadyBootstrappedException, ValidationException
from pepper.models.case_record import QuestionnaireSubmission
from pepper.models.master_case_document import MasterCaseDocument


def _mcd(db_session, case_id=RADICADO):
    return (
        db_session.query(MasterCaseDocument)
        .filter_by(case_id=case_id, user_id=USER_ID)
        .one()
    )


def _submission(**overrides):
    data = {
        "case_id": RADICADO,
        "parties": {"plaintiff": "Ana Pérez", "defendant": "Acme SAS", "other": ["Aseguradora XYZ"]},
        "case_type": "Civil",
        "status": "Apelación",
        "summary": "Recurso contra sentencia de primera instancia",
        "court": "Tribunal Superior de Bogotá",
        "attorney": "Luis Gómez",
        "deadlines": [{"title": "Sustentar recurso", "due_date": "21-12-2025", "owner": "Luis"}],
        "next_actions": [{"title": "Preparar sustentación", "priority": "urgent"}],
        "last_action": {"title": "Recurso interpuesto", "date": "2025-02-01"},
        "user_email": "luis@firma.co",
    }
    data.update(overrides)
    return QuestionnaireSubmission(**data)


def test_questionnaire_creates_case(service, db_session):
    result = service.submit_questionnaire(USER_ID, _submission())

    assert result["success"] is True
    assert result["isUpdate"] is False
    assert result["restored"] is False
    assert result["bootstrapped"] is False
    assert result["version"] == 1
    assert result["operations"]["mcdSync"]["mcdCreated"] is True

    mcd = _mcd(db_session)
    assert mcd.status == "appeals"
    assert mcd.source == "questionnaire"
    assert mcd.radicado_cpnu == RADICADO
    assert mcd.linked_cpnu is True
    assert mcd.parties["other"] == ["Aseguradora XYZ"]
    assert mcd.next_actions == [
        {"title": "Preparar sustentación", "description": None, "priority": "urgent"}
    ]
    assert mcd.deadlines[0]["due_date"] == "2025-12-21"

    case = service.get(USER_ID, RADICADO)
    assert case["source"] == "file"
    assert case["case"]["status"] == "active"
    assert case["case"]["client"] == "Ana Pérez vs. Acme SAS"
    assert case["case"]["last_action"] == "Recurso interpuesto - 2025-02-01"
    assert case["case"]["deadlines"][0]["due"] == "2025-12-21"


def test_questionnaire_rejects_unknown_status(service):
    with pytest.raises(ValidationException) as exc_info:
        service.submit_questionnaire(USER_ID, _submission(status="archivado"))
    assert exc_info.value.details["field"] == "status"


def test_next_action_priority_synonyms_are_mapped():
    submission = _submission(
        next_actions=[
            {"title": "A", "priority": "Alta"},
            {"title": "B", "priority": "media"},
            {"title": "C", "priority": "low"},
            {"title": "D"},
        ]
    )
    assert [action.priority for action in submission.next_actions] == [
        "urgent",
        "pending",
        "normal",
        "normal",
    ]


def test_next_action_rejects_unknown_priority():
    with pytest.raises(PydanticValidationError):
        _submission(next_actions=[{"title": "Preparar sustentación", "priority": "banana"}])


def test_questionnaire_update_never_blanks_attorney(service, db_session):
    service.submit_questionnaire(USER_ID, _submission())

    result = service.submit_questionnaire(USER_ID, _submission(attorney="", summary="Actualizado"))

    assert result["isUpdate"] is True
    assert _mcd(db_session).attorney == "Luis Gómez"
    case = service.get(USER_ID, RADICADO)["case"]
    assert case["attorney"] == "Luis Gómez"
    assert case["summary"] == "Actualizado"


def test_questionnaire_restores_deleted_case(service, db_session):
    service.submit_questionnaire(USER_ID, _submission())
    service.delete(USER_ID, RADICADO)

    result = service.submit_questionnaire(USER_ID, _submission())

    assert result["restored"] is True
    assert result["operations"]["mcdSync"]["mcdRestored"] is True
    assert _mcd(db_session).is_deleted is False
    assert service.list_all(USER_ID) == [RADICADO]


def test_questionnaire_with_preview_sets_bootstrap_latch(service, scraper, db_session):
    result = service.submit_questionnaire(USER_ID, _submission(cpnu_preview=SCRAPE))

    assert result["bootstrapped"] is True
    assert _mcd(db_session).cpnu_bootstrap_done is True
    case = service.get(USER_ID, RADICADO)["case"]
    assert case["cpnu_bootstrap_done"] is True
    assert case["court"] == "Juzgado 01 Civil del Circuito de Bogotá"

    with pytest.raises(AlreadyBootstrappedException):
        service.bootstrap_sync(USER_ID, RADICADO)
    assert scraper.calls == []


def test_questionnaire_keeps_stored_registry_state(service, db_session):
    service.submit_questionnaire(USER_ID, _submission(cpnu_preview=SCRAPE))

    service.submit_questionnaire(USER_ID, _submission(summary="Segunda versión"))

    mcd = _mcd(db_session)
    assert mcd.cpnu_bootstrap_done is True
    assert len(mcd.cpnu_actuaciones) == 2


def test_questionnaire_drops_bad_deadline_dates(service, db_session):
    deadlines = [{"title": "Sustentar recurso", "due_date": "not-a-date"}]

    service.submit_questionnaire(USER_ID, _submission(deadlines=deadlines))

    assert _mcd(db_session).deadlines[0]["due_date"] is None


def test_non_radicado_case_is_not_linked(service, db_session):
    service.submit_questionnaire(USER_ID, _submission(case_id="555"))

    mcd = _mcd(db_session, "555")
    assert mcd.radicado_cpnu is None
    assert mcd.linked_cpnu is False


def test_dashboard_save_keeps_questionnaire_status(service, template, db_session):
    service.submit_questionnaire(USER_ID, _submission())

    service.save(USER_ID, template(case_id=RADICADO, deadlines=[], status="active"))

    mcd = _mcd(db_session)
    assert mcd.status == "appeals"
    assert mcd.next_actions[0]["title"] == "Preparar sustentación"
    assert mcd.parties["other"] == ["Aseguradora XYZ"]
