from unittest.mock import MagicMock, patch

import pytest
from core.join_service import CATALOG_CONFIDENCE, MAX_SUGGESTIONS, CrossSourceJoinService
from models.joins import JoinDefinition


@pytest.fixture
def orders(make_table):
    return make_table("orders", [("id", "INTEGER"), ("customer_id", "INTEGER"), ("total", "NUMERIC")],
                      data_source_id=1)


@pytest.fixture
def customers(make_table):
    return make_table("customers", [("customer_key", "BIGINT"), ("email", "VARCHAR"), ("name", "TEXT")],
                      data_source_id=2)


def test_suggest_joins_matches_normalized_names(join_service, orders, customers):
    suggestions = join_service.suggest_joins(orders, customers)
    top = suggestions[0]
    assert top.left_column == "customer_id"
    assert top.right_column == "customer_key"
    assert top.confidence == 95
    assert top.left_column_path == "public.orders.customer_id"
    assert top.right_column_path == "public.customers.customer_key"
    assert top.suggested_join_type == "INNER"
    assert top.reason.endswith("types are compatible (INTEGER, BIGINT)")


def test_incompatible_types_are_never_suggested(join_service, make_table):
    left = make_table("a", [("user_id", "INTEGER")])
    right = make_table("b", [("user_id", "TEXT")])
    assert join_service.suggest_joins(left, right) == []


def test_dissimilar_names_are_not_suggested(join_service, make_table):
    left = make_table("orders", [("customer_id", "INTEGER")])
    right = make_table("customers", [("id", "INTEGER")])
    assert join_service.suggest_joins(left, right) == []


def test_suggestions_are_capped_and_sorted(join_service, make_table):
    names = ["account_id", "user_id", "order_id", "region_code", "product_key",
             "store_id", "vendor_id", "invoice_id"]
    left = make_table("left_t", [(n, "INTEGER") for n in names])
    right = make_table("right_t", [(n, "BIGINT") for n in names])

    suggestions = join_service.suggest_joins(left, right)

    assert len(suggestions) == MAX_SUGGESTIONS
    confidences = [s.confidence for s in suggestions]
    assert confidences == sorted(confidences, reverse=True)
    assert all(0 < c <= 100 for c in confidences)


def test_long_names_are_truncated_before_matching(join_service, make_table):
    prefix = "x" * 255
    left = make_table("a", [(prefix + "_first", "INTEGER")])
    right = make_table("b", [(prefix + "_second", "INTEGER")])
    assert join_service.suggest_joins(left, right)[0].confidence == 95


def test_suggest_joins_does_not_touch_the_catalog(orders, customers):
    catalog = MagicMock()
    CrossSourceJoinService(catalog).suggest_joins(orders, customers)
    catalog.assert_not_called()
    catalog.popular.assert_not_called()


def test_combined_suggestions_put_catalog_joins_first(join_service, orders, customers):
    join_service.save_join_to_catalog(JoinDefinition(
        left_data_source_id=1, left_table="orders", left_column="total",
        right_data_source_id=2, right_table="customers", right_column="email",
    ))

    combined = join_service.get_combined_suggestions(orders, customers)

    assert combined[0].left_column == "total"
    assert combined[0].right_column == "email"
    assert combined[0].confidence == CATALOG_CONFIDENCE
    assert combined[0].reason == "Previously used join (1 times)"
    assert combined[1].left_column == "customer_id"


def test_combined_suggestions_drop_heuristic_duplicates(join_service, orders, customers):
    join_def = JoinDefinition(
        left_data_source_id=1, left_table="orders", left_column="customer_id",
        right_data_source_id=2, right_table="customers", right_column="customer_key",
    )
    join_service.save_join_to_catalog(join_def)
    join_service.save_join_to_catalog(join_def)

    combined = join_service.get_combined_suggestions(orders, customers)
    pairs = [(s.left_column, s.right_column) for s in combined]

    assert pairs.count(("customer_id", "customer_key")) == 1
    assert combined[0].confidence == CATALOG_CONFIDENCE
    assert combined[0].reason == "Previously used join (2 times)"


def test_combined_suggestions_orient_reverse_catalog_entries(join_service, orders, customers):
    join_service.save_join_to_catalog(JoinDefinition(
        left_data_source_id=2, left_table="customers", left_column="name",
        right_data_source_id=1, right_table="orders", right_column="id",
    ))

    top = join_service.get_combined_suggestions(orders, customers)[0]

    assert (top.left_table, top.left_column) == ("orders", "id")
    assert (top.right_table, top.right_column) == ("customers", "name")
    assert top.left_column_path == "public.orders.id"


def test_combined_suggestions_ignore_catalog_joins_for_other_tables(join_service, orders, customers):
    join_service.save_join_to_catalog(JoinDefinition(
        left_data_source_id=1, left_table="shipments", left_column="total",
        right_data_source_id=2, right_table="customers", right_column="email",
    ))
    combined = join_service.get_combined_suggestions(orders, customers)
    assert all(s.confidence < CATALOG_CONFIDENCE for s in combined)


def test_catalog_failure_degrades_to_heuristics(orders, customers):
    catalog = MagicMock()
    catalog.popular.side_effect = RuntimeError("catalog offline")
    service = CrossSourceJoinService(catalog)

    assert service.get_popular_joins(1, 2) == []
    combined = service.get_combined_suggestions(orders, customers)
    assert combined == service.suggest_joins(orders, customers)


def test_save_join_propagates_store_errors():
    catalog = MagicMock()
    catalog.record_join.side_effect = RuntimeError("disk full")
    service = CrossSourceJoinService(catalog)
    with pytest.raises(RuntimeError):
        service.save_join_to_catalog(JoinDefinition(
            left_data_source_id=1, left_table="a", left_column="x",
            right_data_source_id=2, right_table="b", right_column="y",
        ))


def test_popular_joins_default_limit_comes_from_settings(orders):
    catalog = MagicMock()
    catalog.popular.return_value = []
    with patch("core.join_service.settings") as mock_settings:
        mock_settings.POPULAR_JOINS_LIMIT = 7
        CrossSourceJoinService(catalog).get_popular_joins(1, 2)
    catalog.popular.assert_called_once_with(1, 2, 7)


def test_schema_suggestions_are_cached_until_schema_changes(join_service, make_table):
    tables = [
        make_table("orders", [("id", "INTEGER"), ("customer_id", "INTEGER")], data_source_id=5),
        make_table("customers", [("customer_id", "INTEGER"), ("email", "TEXT")], data_source_id=5),
        make_table("payments", [("order_id", "INTEGER")], data_source_id=5),
    ]

    first = join_service.get_schema_suggestions(5, "public", tables)
    assert first
    assert first[0].confidence_score == 95

    with patch.object(join_service, "suggest_joins") as mock_suggest:
        cached = join_service.get_schema_suggestions(5, "public", tables)
        mock_suggest.assert_not_called()
    assert [s.confidence_score for s in cached] == [s.confidence_score for s in first]

    tables.append(make_table("refunds", [("order_id", "INTEGER")], data_source_id=5))
    with patch.object(join_service, "suggest_joins", return_value=[]) as mock_suggest:
        assert join_service.get_schema_suggestions(5, "public", tables) == []
        assert mock_suggest.call_count == 6


def test_schema_without_join_candidates_is_not_recomputed(join_service, make_table):
    tables = [
        make_table("events", [("payload", "JSONB")], data_source_id=6),
        make_table("metrics", [("value", "NUMERIC")], data_source_id=6),
    ]
    assert join_service.get_schema_suggestions(6, "public", tables) == []

    with patch.object(join_service, "suggest_joins") as mock_suggest:
        assert join_service.get_schema_suggestions(6, "public", tables) == []
        mock_suggest.assert_not_called()


def test_schema_suggestions_need_a_cache(catalog_engine, make_table):
    from core.join_catalog import JoinCatalog
    service = CrossSourceJoinService(JoinCatalog(catalog_engine))
    with pytest.raises(RuntimeError):
        service.get_schema_suggestions(1, None, [make_table("a", [("id", "INTEGER")])])
    assert service.get_catalog_stats(1).total == 0
