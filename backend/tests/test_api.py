import pytest
from unittest.mock import patch


def _column(table, name, data_type, schema="public"):
    return {"schema": schema, "table_name": table, "column_name": name, "data_type": data_type}


def _table(table, columns, data_source_id):
    return {
        "schema": "public",
        "table_name": table,
        "data_source_id": data_source_id,
        "columns": [_column(table, name, data_type) for name, data_type in columns],
    }


@pytest.fixture
def crm_source(client, crm_db):
    response = client.post("/api/sources", json={"db_type": "sqlite", "name": "crm", "file_path": crm_db})
    assert response.status_code == 201
    return response.json()


@pytest.fixture
def ads_source(client, ads_db):
    response = client.post("/api/sources", json={"db_type": "sqlite", "name": "ads", "file_path": ads_db})
    assert response.status_code == 201
    return response.json()


def test_health_check(client):
    with patch("api.health._check_catalog", return_value={"status": "up", "error": None}), \
         patch("api.health._check_ollama", return_value={"status": "up", "model": "qwen2.5-coder:3b"}):

        response = client.get("/api/health")
        assert response.status_code == 200
        assert response.json() == {
            "status": "ok",
            "services": {
                "catalog": {"status": "up", "error": None},
                "ollama": {"status": "up", "model": "qwen2.5-coder:3b"}
            }
        }


def test_health_check_degraded(client):
    with patch("api.health._check_ollama", return_value={"status": "down", "error": "refused"}):
        body = client.get("/api/health").json()
    assert body["status"] == "degraded"
    assert body["services"]["catalog"]["status"] == "up"


def test_register_and_list_sources(client, crm_source):
    assert crm_source["name"] == "crm"
    assert sorted(crm_source["tables"]) == ["customers", "orders"]

    listed = client.get("/api/sources").json()
    assert any(s["data_source_id"] == crm_source["data_source_id"] for s in listed)

    response = client.delete(f"/api/sources/{crm_source['data_source_id']}")
    assert response.status_code == 200
    assert client.delete(f"/api/sources/{crm_source['data_source_id']}").status_code == 404


def test_register_unreachable_source(client):
    response = client.post("/api/sources", json={
        "db_type": "sqlite", "name": "broken", "file_path": "/nonexistent/dir/broken.db",
    })
    assert response.status_code == 400


def test_suggest_joins(client):
    response = client.post("/api/joins/suggest", json={
        "left": _table("orders", [("customer_id", "INTEGER"), ("total", "NUMERIC")], 701),
        "right": _table("customers", [("customer_key", "BIGINT"), ("email", "TEXT")], 702),
    })
    assert response.status_code == 200
    suggestions = response.json()
    assert suggestions[0]["left_column_path"] == "public.orders.customer_id"
    assert suggestions[0]["confidence"] == 95


def test_suggest_joins_rejects_table_without_columns(client):
    response = client.post("/api/joins/suggest", json={
        "left": {"schema": "public", "table_name": "empty", "data_source_id": 1, "columns": []},
        "right": _table("customers", [("id", "INTEGER")], 2),
    })
    assert response.status_code == 422


def test_saved_join_is_popular_and_ranked_first(client):
    join_def = {
        "left_data_source_id": 901, "left_table": "orders", "left_column": "total",
        "right_data_source_id": 902, "right_table": "customers", "right_column": "email",
    }
    assert client.post("/api/joins/catalog", json=join_def).status_code == 201
    assert client.post("/api/joins/catalog", json=join_def).status_code == 201

    popular = client.get("/api/joins/catalog/popular",
                         params={"left_data_source_id": 902, "right_data_source_id": 901}).json()
    assert len(popular) == 1
    assert popular[0]["usage_count"] == 2

    suggestions = client.post("/api/joins/suggest", json={
        "left": _table("orders", [("customer_id", "INTEGER"), ("total", "NUMERIC")], 901),
        "right": _table("customers", [("customer_key", "BIGINT"), ("email", "TEXT")], 902),
    }).json()
    assert suggestions[0]["reason"] == "Previously used join (2 times)"
    assert suggestions[0]["confidence"] == 100


def test_invalid_join_type_is_rejected(client):
    response = client.post("/api/joins/catalog", json={
        "left_data_source_id": 1, "left_table": "a", "left_column": "x",
        "right_data_source_id": 2, "right_table": "b", "right_column": "y",
        "join_type": "CROSS",
    })
    assert response.status_code == 422


def test_suggest_from_reflected_tables(client, crm_source, ads_source):
    response = client.post("/api/joins/suggest/reflect", json={
        "left": {"data_source_id": crm_source["data_source_id"], "table_name": "orders"},
        "right": {"data_source_id": ads_source["data_source_id"], "table_name": "ad_clicks"},
        "include_catalog": False,
    })
    assert response.status_code == 200
    top = response.json()[0]
    assert top["left_column_path"] == "main.orders.customer_id"
    assert top["right_column_path"] == "main.ad_clicks.customer_key"


def test_suggest_from_missing_table(client, crm_source):
    response = client.post("/api/joins/suggest/reflect", json={
        "left": {"data_source_id": crm_source["data_source_id"], "table_name": "nope"},
        "right": {"data_source_id": crm_source["data_source_id"], "table_name": "orders"},
    })
    assert response.status_code == 404


def test_schema_suggestions_and_stats(client, crm_source):
    ds_id = crm_source["data_source_id"]

    suggestions = client.post(f"/api/joins/schema/{ds_id}").json()
    assert any(s["left_column"] == "id" and s["right_column"] == "id" for s in suggestions)

    stats = client.get(f"/api/joins/stats/{ds_id}").json()
    assert stats["total"] == len(suggestions)

    response = client.delete(f"/api/joins/schema/{ds_id}")
    assert response.json() == {"message": f"Removed {len(suggestions)} cached suggestions."}
    assert client.get(f"/api/joins/stats/{ds_id}").json()["total"] == 0


def test_validate_sql(client):
    body = client.post("/api/sql/validate", json={"sql": "DROP TABLE users;"}).json()
    assert body["safe"] is False
    assert body["blockedOperations"] == ["DROP"]

    body = client.post("/api/sql/validate", json={"sql": "DELETE FROM users;"}).json()
    assert body["safe"] is True
    assert len(body["warnings"]) == 1


def test_execute_defaults_to_dry_run(client, crm_source):
    response = client.post("/api/sql/execute", json={
        "data_source_id": crm_source["data_source_id"],
        "sql": "UPDATE customers SET country = 'USA' WHERE country = 'US'",
    })
    body = response.json()
    assert body["success"] is True
    assert body["dry_run"] is True
    assert body["rows_affected"] == 2

    estimate = client.post("/api/sql/estimate", json={
        "data_source_id": crm_source["data_source_id"],
        "sql": "DELETE FROM customers WHERE country = 'US'",
    }).json()
    assert estimate == {"estimated_rows": 2}


def test_execute_wraps_single_statement_in_transaction(client, crm_source):
    body = client.post("/api/sql/execute", json={
        "data_source_id": crm_source["data_source_id"],
        "sql": "UPDATE orders SET total = 0 WHERE total < 10",
        "dry_run": False,
        "wrap_in_transaction": True,
    }).json()
    assert body["success"] is True
    assert body["rows_affected"] == 1
    assert body["rollback_available"] is True


def test_execute_unknown_source(client):
    response = client.post("/api/sql/execute", json={"data_source_id": 99999, "sql": "SELECT 1"})
    assert response.status_code == 404


def test_references_fail_closed_on_sqlite(client, crm_source):
    body = client.post("/api/sql/references", json={
        "data_source_id": crm_source["data_source_id"],
        "schema_name": "main", "table_name": "customers", "columns": ["email"],
    }).json()
    assert body["table_exists"] is False
    assert body["columns"] == {"valid": False, "missing_columns": ["email"]}


def test_draft_cleaning_sql(client, crm_source):
    with patch("api.sql.OllamaClient") as MockClient:
        MockClient.return_value.__enter__.return_value.generate.return_value = (
            "```sql\nUPDATE customers SET email = lower(email) WHERE email <> lower(email);\n```"
        )
        response = client.post("/api/sql/draft", json={
            "data_source_id": crm_source["data_source_id"],
            "table_name": "customers",
            "instruction": "lowercase all emails",
        })
    assert response.status_code == 200
    body = response.json()
    assert body["sql"].startswith("UPDATE customers")
    assert body["validation"]["safe"] is True


def test_draft_cleaning_sql_llm_down(client, crm_source):
    with patch("api.sql.OllamaClient") as MockClient:
        MockClient.return_value.__enter__.return_value.generate.side_effect = RuntimeError("Ollama failed after 3 attempts")
        response = client.post("/api/sql/draft", json={
            "data_source_id": crm_source["data_source_id"],
            "table_name": "customers",
            "instruction": "lowercase all emails",
        })
    assert response.status_code == 502
