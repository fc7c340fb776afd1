from pathlib import Path

import allure
from sqlalchemy import inspect, text

from leetcode_tracker.storage.documents import SqliteDocumentStore

pytestmark = [
    allure.epic("State"),
    allure.feature("Schema Migrations"),
]


def test_alembic_schema_is_initialized_to_head(tmp_path: Path) -> None:
    documents = SqliteDocumentStore(tmp_path / "migrations.db", user_id="alice", user_name="Alice")
    try:
        documents.init_schema()
        # second run is a no-op
        documents.init_schema()

        with documents.engine.connect() as connection:
            version = connection.execute(text("SELECT version_num FROM alembic_version")).scalar_one()
            users = connection.execute(text("SELECT user_id, display_name FROM users")).all()
        tables = set(inspect(documents.engine).get_table_names())
    finally:
        documents.close()

    assert version == "20261019_0001"
    assert [tuple(row) for row in users] == [("alice", "Alice")]
    assert {"users", "state_documents"} <= tables
