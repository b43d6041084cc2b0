import os
import sys
import tempfile

# Add the parent directory (backend) to the Python path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

# Point the app at a throwaway catalog before config is imported
_CATALOG_DIR = tempfile.mkdtemp(prefix="splice-tests-")
os.environ["CATALOG_DATABASE_URL"] = f"sqlite:///{os.path.join(_CATALOG_DIR, 'catalog.db')}"

import pytest
import sqlite3
from fastapi.testclient import TestClient
from sqlalchemy import create_engine

from main import app
from core.catalog_db import init_catalog
from core.join_catalog import JoinCatalog
from core.join_service import CrossSourceJoinService
from core.suggestion_cache import JoinSuggestionCache
from models.table import ColumnDescriptor, TableDescriptor


@pytest.fixture(scope="session")
def client():
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def catalog_engine(tmp_path):
    engine = create_engine(f"sqlite:///{tmp_path / 'catalog.db'}")
    init_catalog(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def join_service(catalog_engine):
    return CrossSourceJoinService(JoinCatalog(catalog_engine), JoinSuggestionCache(catalog_engine))


@pytest.fixture
def make_table():
    """Build a TableDescriptor from (column_name, data_type) pairs."""
    def _make(table_name, columns, data_source_id=1, schema="public"):
        return TableDescriptor(
            schema_name=schema,
            table_name=table_name,
            data_source_id=data_source_id,
            columns=[
                ColumnDescriptor(schema_name=schema, table_name=table_name,
                                 column_name=name, data_type=data_type)
                for name, data_type in columns
            ],
        )
    return _make


@pytest.fixture
def crm_db(tmp_path):
    path = str(tmp_path / "crm.db")
    conn = sqlite3.connect(path)
    cur = conn.cursor()
    cur.execute("CREATE TABLE customers (id INTEGER PRIMARY KEY, email TEXT UNIQUE, country TEXT);")
    cur.execute("CREATE TABLE orders (id INTEGER PRIMARY KEY, customer_id INTEGER, total REAL, order_date TIMESTAMP);")
    cur.executemany(
        "INSERT INTO customers (email, country) VALUES (?, ?);",
        [("a@example.com", "US"), ("b@example.com", "US"), ("c@example.com", "DE")],
    )
    cur.executemany(
        "INSERT INTO orders (customer_id, total, order_date) VALUES (?, ?, ?);",
        [(1, 10.0, "2026-01-01"), (1, 25.5, "2026-02-01"), (3, 7.25, "2026-03-01")],
    )
    conn.commit()
    conn.close()
    return path


@pytest.fixture
def ads_db(tmp_path):
    path = str(tmp_path / "ads.db")
    conn = sqlite3.connect(path)
    cur = conn.cursor()
    cur.execute("CREATE TABLE ad_clicks (click_id INTEGER PRIMARY KEY, customer_key INTEGER, campaign_code VARCHAR(32), clicked_at TIMESTAMP);")
    cur.execute("INSERT INTO ad_clicks (customer_key, campaign_code, clicked_at) VALUES (1, 'SPRING', '2026-01-02');")
    conn.commit()
    conn.close()
    return path
