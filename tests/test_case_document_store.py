"""
Tests del repositorio de Master Case Documents.
"""
from datetime import datetime

import pytest

from pepper.core.exceptions import DatabaseException
from pepper.models.master_case_document import MasterCaseDocument
from pepper.services.case_document_store import CaseDocumentStore


def _mcd(case_id="abc-1", user_id="user-1", **overrides):
    data = {
        "case_id": case_id,
        "user_id": user_id,
        "parties": {"plaintiff": "Ana Pérez", "defendant": "Acme SAS", "other": []},
        "case_type": "Civil",
        "status": "in_progress",
        "deadlines": [],
        "last_documents": [],
        "next_actions": [],
        "source": "manual",
    }
    data.update(overrides)
    return data


@pytest.fixture
def store(db_session):
    return CaseDocumentStore(db_session)


def test_create_uppercases_case_id(store):
    record = store.create(_mcd(case_id=" abc-1 "), version=3)

    assert record.case_id == "ABC-1"
    assert record.version == 3
    assert store.find("user-1", "abc-1") is record


def test_find_is_scoped_by_user(store):
    store.create(_mcd())

    assert store.find("user-2", "ABC-1") is None


def test_unique_case_per_user(store):
    store.create(_mcd())

    with pytest.raises(DatabaseException) as exc_info:
        store.create(_mcd())

    assert exc_info.value.details["operation"] == "create"
    # Otro usuario sí puede tener el mismo case_id
    assert store.create(_mcd(user_id="user-2")).case_id == "ABC-1"


def test_find_hides_tombstones_unless_asked(store):
    record = store.create(_mcd())
    store.update(record, {"is_deleted": True, "deleted_at": "2025-03-01T10:00:00", "deleted_by": "user-1"})

    assert store.find("user-1", "ABC-1") is None
    tombstone = store.find("user-1", "ABC-1", include_deleted=True)
    assert tombstone.is_deleted is True
    assert tombstone.deleted_at == datetime(2025, 3, 1, 10, 0)
    assert store.list_case_ids("user-1") == []


def test_update_increments_version(store):
    record = store.create(_mcd())

    updated, conflict = store.update(record, {"status": "closed"}, read_version=1)

    assert conflict is False
    assert updated.version == 2
    assert updated.status == "closed"


def test_update_reports_lost_update(store, db_session):
    record = store.create(_mcd())
    db_session.query(MasterCaseDocument).filter(MasterCaseDocument.id == record.id).update(
        {"version": 5}
    )
    db_session.commit()

    updated, conflict = store.update(record, {"summary": "Mi versión"}, read_version=1, version=2)

    # Nunca bloquea: se escribe igualmente y se informa del conflicto
    assert conflict is True
    assert updated.version == 2
    assert updated.summary == "Mi versión"


def test_json_fields_are_copied(store):
    parties = {"plaintiff": "Ana", "defendant": "Acme", "other": ["Tercero"]}
    record = store.create(_mcd(parties=parties))

    parties["other"].append("Otro")

    assert record.parties["other"] == ["Tercero"]
    assert record.to_dict()["parties"]["other"] == ["Tercero"]


def test_list_sync_candidates(store):
    store.create(_mcd(case_id="1", radicado_cpnu="1" * 23, linked_cpnu=True, cpnu_bootstrap_done=True))
    store.create(_mcd(case_id="2", radicado_cpnu="2" * 23, linked_cpnu=True, cpnu_bootstrap_done=False))
    store.create(_mcd(case_id="3", linked_cpnu=False))
    deleted = store.create(
        _mcd(case_id="4", radicado_cpnu="4" * 23, linked_cpnu=True, cpnu_bootstrap_done=True)
    )
    store.update(deleted, {"is_deleted": True})

    assert [r.case_id for r in store.list_sync_candidates()] == ["1"]


def test_list_closed_before(store, db_session):
    old = store.create(_mcd(case_id="1", status="closed"))
    old.updated_at = datetime(2024, 1, 1)
    db_session.commit()
    store.create(_mcd(case_id="2", status="closed"))
    open_old = store.create(_mcd(case_id="3", status="in_progress"))
    open_old.updated_at = datetime(2024, 1, 1)
    db_session.commit()

    closed = store.list_closed_before(datetime(2025, 1, 1))

    assert [r.case_id for r in closed] == ["1"]
