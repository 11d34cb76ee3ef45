"""
La migración del almacén documental debe coincidir con el modelo ORM.
"""
import importlib.util
from pathlib import Path

from alembic.migration import MigrationContext
from alembic.operations import Operations
from sqlalchemy import create_engine, inspect

from pepper.models.master_case_document import MasterCaseDocument

MIGRATION = (
    Path(__file__).resolve().parents[1]
    / "migrations"
    / "versions"
    / "20250301_1000_create_master_case_documents.py"
)


def _load_migration():
    spec = importlib.util.spec_from_file_location("mcd_migration", MIGRATION)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


def test_migration_matches_model():
    migration = _load_migration()
    engine = create_engine("sqlite:///:memory:")

    with engine.begin() as connection:
        with Operations.context(MigrationContext.configure(connection)):
            migration.upgrade()

        inspector = inspect(connection)
        columns = {c["name"] for c in inspector.get_columns("master_case_documents")}
        unique = inspector.get_unique_constraints("master_case_documents")

    assert columns == set(MasterCaseDocument.__table__.columns.keys())
    assert [u["column_names"] for u in unique] == [["case_id", "user_id"]]


def test_migration_downgrade():
    migration = _load_migration()
    engine = create_engine("sqlite:///:memory:")

    with engine.begin() as connection:
        with Operations.context(MigrationContext.configure(connection)):
            migration.upgrade()
            migration.downgrade()

        assert "master_case_documents" not in inspect(connection).get_table_names()
