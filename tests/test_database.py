# tests/test_database.py
import importlib

from tool_rental.constants import SCHEMA_VERSION
from tool_rental.database import get_connection
from tool_rental.database.versioning import get_current_version, set_current_version


def test_get_connection_bootstraps_schema(tmp_path):
    path = tmp_path / "nested" / "shop.db"
    con = get_connection(path)
    try:
        assert path.exists()
        assert get_current_version(con) == SCHEMA_VERSION
        assert con.execute("PRAGMA foreign_keys").fetchone()[0] == 1
        assert con.execute("PRAGMA journal_mode").fetchone()[0].lower() == "wal"
        tables = {r["name"] for r in con.execute("SELECT name FROM sqlite_master WHERE type='table'")}
        assert {"rentals", "rental_items", "ledger_days", "ledger_entries", "ledger_intents"} <= tables
    finally:
        con.close()


def test_get_connection_is_idempotent_and_keeps_version(tmp_path):
    path = tmp_path / "shop.db"
    con = get_connection(path)
    with con:
        set_current_version(con, "0.9.0")
    con.close()

    con = get_connection(path)
    try:
        assert get_current_version(con) == "0.9.0"
    finally:
        con.close()


def test_db_path_follows_environment(monkeypatch, tmp_path):
    import tool_rental.config as config

    monkeypatch.setenv("TOOL_RENTAL_DATA_DIR", str(tmp_path))
    monkeypatch.delenv("TOOL_RENTAL_DB", raising=False)
    try:
        reloaded = importlib.reload(config)
        assert reloaded.DB_PATH == tmp_path / "toolrental.db"
    finally:
        monkeypatch.undo()
        importlib.reload(config)
