"""
Tests de la sincronización incremental de actuaciones y del auto-sync.
"""
import copy
from datetime import datetime

import pytest

from conftest import RADICADO, SCRAPE, USER_ID
from pepper.core.exceptions import ExternalServiceException, ValidationException
from pepper.services.actuaciones_sync import (
    apply_actuaciones_sync,
    detect_actuaciones_changes,
    merge_actuaciones,
)

OTHER_RADICADO = "05001310300220230045600"

NEW_ACTUACION = {
    "fecha_registro": "20-01-2025",
    "fecha_actuacion": "20-01-2025",
    "descripcion": "Fija fecha de audiencia",
}


def _with_new_actuacion(scrape=SCRAPE):
    data = copy.deepcopy(scrape)
    data["actuaciones"].append(dict(NEW_ACTUACION))
    return data


@pytest.fixture
def bootstrapped_case(service, template):
    service.save(USER_ID, template(case_id=RADICADO, deadlines=[]))
    service.bootstrap_sync(USER_ID, RADICADO)
    return RADICADO


# =========================================================
# DETECCIÓN
# =========================================================


def test_detect_without_previous_sync():
    changes = detect_actuaciones_changes(None, SCRAPE["actuaciones"])

    assert changes.has_changes
    assert changes.latest_fecha_registro == "2025-01-15"
    assert len(changes.new_actuaciones) == 2


def test_detect_only_newer_actuaciones():
    scraped = SCRAPE["actuaciones"] + [NEW_ACTUACION]

    changes = detect_actuaciones_changes("2025-01-15", scraped)

    assert changes.has_changes
    assert changes.latest_fecha_registro == "2025-01-20"
    assert [a["descripcion"] for a in changes.new_actuaciones] == ["Fija fecha de audiencia"]


def test_detect_no_changes():
    changes = detect_actuaciones_changes("2025-01-15", SCRAPE["actuaciones"])

    assert not changes.has_changes
    assert changes.latest_fecha_registro == "2025-01-15"
    assert changes.new_actuaciones == []


def test_merge_keeps_same_day_actuaciones():
    existing = [{"fecha_registro": "2025-01-15", "descripcion": "Notificación personal"}]
    new = [
        {"fecha_registro": "2025-01-15", "descripcion": "Notificación personal"},
        {"fecha_registro": "2025-01-15", "descripcion": "Traslado de la demanda"},
        {"fecha_registro": "2025-01-20", "descripcion": "Fija fecha de audiencia"},
    ]

    merged = merge_actuaciones(existing, new)

    assert [(a["fecha_registro"], a["descripcion"]) for a in merged] == [
        ("2025-01-20", "Fija fecha de audiencia"),
        ("2025-01-15", "Notificación personal"),
        ("2025-01-15", "Traslado de la demanda"),
    ]


def test_apply_requires_bootstrap(template):
    with pytest.raises(ValidationException):
        apply_actuaciones_sync(template(), SCRAPE["actuaciones"], now=datetime(2025, 3, 1))


# =========================================================
# SERVICIO
# =========================================================


def test_sync_adds_new_actuaciones(service, scraper, bootstrapped_case, clock):
    before = service.get(USER_ID, bootstrapped_case)["case"]
    scraper.responses[RADICADO] = _with_new_actuacion()
    clock.advance(days=1)

    result = service.sync_case_actuaciones(USER_ID, bootstrapped_case)

    assert result["success"] is True
    assert result["hasChanges"] is True
    assert result["newActuaciones"] == 1
    assert result["latestFechaRegistro"] == "2025-01-20"

    case = service.get(USER_ID, bootstrapped_case)["case"]
    assert len(case["cpnu_actuaciones"]) == 3
    assert case["cpnu_actuaciones"][0]["descripcion"] == "Fija fecha de audiencia"
    assert case["cpnu_last_fecha_registro"] == "2025-01-20"
    assert case["cpnu_last_sync_status"] == "success"
    assert case["cpnu_last_sync_at"] == "2025-03-02T10:00:00"
    assert case["last_action"] == "Fija fecha de audiencia - 2025-01-20"
    assert case["recent_activity"][0]["message"] == "New Actuaciones detected from CPNU (1 new)"
    for field in ("court", "plaintiff", "defendant", "attorney"):
        assert case[field] == before[field]


def test_sync_without_changes(service, bootstrapped_case):
    result = service.sync_case_actuaciones(USER_ID, bootstrapped_case)

    assert result["hasChanges"] is False
    assert result["newActuaciones"] == 0
    case = service.get(USER_ID, bootstrapped_case)["case"]
    assert case["cpnu_last_sync_status"] == "no_changes"
    assert len(case["cpnu_actuaciones"]) == 2


def test_sync_requires_bootstrap(service, template):
    service.save(USER_ID, template(case_id=RADICADO, deadlines=[]))

    with pytest.raises(ValidationException):
        service.sync_case_actuaciones(USER_ID, RADICADO)


def test_sync_error_is_recorded_and_raised(service, scraper, bootstrapped_case):
    scraper.responses[RADICADO] = ExternalServiceException("other", "Unexpected scraper failure")

    with pytest.raises(ExternalServiceException):
        service.sync_case_actuaciones(USER_ID, bootstrapped_case)

    case = service.get(USER_ID, bootstrapped_case)["case"]
    assert case["cpnu_last_sync_status"] == "error"
    assert case["cpnu_bootstrap_done"] is True


# =========================================================
# AUTO-SYNC
# =========================================================


def test_auto_sync_isolates_failures(service, scraper, template):
    scraper.responses[OTHER_RADICADO] = copy.deepcopy(SCRAPE)
    service.save(USER_ID, template(case_id=RADICADO, deadlines=[]))
    service.save("user-2", template(case_id=OTHER_RADICADO, deadlines=[]))
    service.save(USER_ID, template(case_id="12345"))
    service.bootstrap_sync(USER_ID, RADICADO)
    service.bootstrap_sync("user-2", OTHER_RADICADO)

    scraper.responses[RADICADO] = _with_new_actuacion()
    scraper.responses[OTHER_RADICADO] = ExternalServiceException("connection", "Browser failed")

    summary = service.run_auto_sync()

    assert summary["processed"] == 2
    assert summary["updated"] == 1
    assert summary["no_changes"] == 0
    assert summary["errors"] == 1
    assert summary["error_details"] == [
        {"user_id": "user-2", "case_id": OTHER_RADICADO, "error": "Browser failed"}
    ]
    assert service.get(USER_ID, RADICADO)["case"]["cpnu_last_sync_status"] == "success"


def test_auto_sync_picks_up_file_only_cases(service, bootstrapped_case, db_session):
    from pepper.models.master_case_document import MasterCaseDocument

    db_session.query(MasterCaseDocument).delete()
    db_session.commit()
    db_session.expunge_all()

    summary = service.run_auto_sync()

    assert summary["processed"] == 1
    assert summary["no_changes"] == 1


def test_auto_sync_skips_deleted_cases(service, bootstrapped_case):
    service.delete(USER_ID, bootstrapped_case)

    assert service.run_auto_sync()["processed"] == 0
