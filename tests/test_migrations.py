from __future__ import annotations

from pathlib import Path

import pytest
from alembic import command
from alembic.config import Config
from sqlalchemy import create_engine, inspect

from budget_tracker.accounts import MultiAccountState
from budget_tracker.persistence import SqlSnapshotGateway, snapshot_from_state
from db.client import dispose_engines
from tests.helpers.records import make_tx

_ALEMBIC_DIR = Path(__file__).resolve().parents[1] / "libs" / "db" / "alembic"


@pytest.fixture
def migrated_url(tmp_path, monkeypatch):
    url = f"sqlite+pysqlite:///{tmp_path / 'migrated.sqlite'}"
    monkeypatch.setenv("DATABASE_URL", url)
    cfg = Config()
    cfg.set_main_option("script_location", str(_ALEMBIC_DIR))
    command.upgrade(cfg, "head")
    yield url
    dispose_engines()


def test_upgrade_creates_snapshot_table(migrated_url):
    engine = create_engine(migrated_url)
    try:
        insp = inspect(engine)
        assert "bt_user_snapshots" in insp.get_table_names()
        columns = {c["name"] for c in insp.get_columns("bt_user_snapshots")}
        assert columns == {"user_id", "document", "last_updated", "created_at", "updated_at"}
    finally:
        engine.dispose()


def test_sql_gateway_works_against_migrated_schema(migrated_url, ids):
    state = MultiAccountState.initial(ids=ids)
    state.live.transactions.append(make_tx(1, "-2.5", description="Tea"))
    gateway = SqlSnapshotGateway(migrated_url)

    gateway.save("carol", snapshot_from_state(state))

    loaded = gateway.load("carol")
    assert loaded is not None
    assert loaded.accounts_data["default"].transactions[0].description == "Tea"
