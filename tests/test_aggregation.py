import pytest

from sqlalchemy import event

from cache import ResultCache
from filters import InvalidFilter, compile_filter
from fx_rates import CurrencyRateMap
from models import (
    UAT,
    UNKNOWN_ECONOMIC_CODE,
    UNKNOWN_ECONOMIC_NAME,
    AccountCategory,
    EconomicClassification,
    Entity,
)
from schemas import AnalyticsFilter, ExcludeFilter, GroupingOptions
from services import AnalyticsService, LineItemAggregator, sanitize_pagination

from helpers import expense_filter, year_period


def test_rows_are_grouped_by_classification_pair_and_sorted(service) -> None:
    result = service.get_aggregated_line_items(expense_filter())

    assert result.total_count == 5
    assert [row.amount for row in result.rows] == [3000.0, 1500.0, 800.0, 500.0, 300.0]
    top = result.rows[0]
    assert (top.functional_code, top.economic_code) == ("65.02.03", "10.01.01")
    assert top.functional_name == "Invatamant prescolar"
    assert top.economic_name == "Salarii de baza"
    assert top.count == 2
    assert top.year is None


def test_missing_economic_code_uses_the_unknown_bucket(service) -> None:
    result = service.get_aggregated_line_items(expense_filter())

    unknown = [row for row in result.rows if row.economic_code == UNKNOWN_ECONOMIC_CODE]
    assert len(unknown) == 1
    assert unknown[0].economic_name == UNKNOWN_ECONOMIC_NAME
    assert unknown[0].amount == pytest.approx(300.0)


def test_total_count_counts_groups_not_page_rows(service) -> None:
    page = service.get_aggregated_line_items(expense_filter(), limit=2, offset=1)

    assert page.total_count == 5
    assert [row.amount for row in page.rows] == [1500.0, 800.0]


def test_grouped_total_matches_raw_amounts(service) -> None:
    items = service.get_grouped_items(expense_filter(), GroupingOptions())

    assert sum(item.value for item in items) == pytest.approx(6100.0)


def test_account_category_and_year_scope_rows(service) -> None:
    revenue = service.get_aggregated_line_items(
        AnalyticsFilter(
            account_category=AccountCategory.revenue, report_period=year_period("2023")
        )
    )
    assert revenue.total_count == 1
    assert revenue.rows[0].amount == pytest.approx(10000.0)

    two_years = service.get_aggregated_line_items(
        expense_filter(report_period=year_period("2022", "2023"))
    )
    assert two_years.rows[0].amount == pytest.approx(3900.0)


def test_aggregate_thresholds_apply_to_group_totals(service) -> None:
    result = service.get_aggregated_line_items(
        expense_filter(aggregate_min_amount=800, aggregate_max_amount=2000)
    )

    assert result.total_count == 2
    assert [row.amount for row in result.rows] == [1500.0, 800.0]


def test_excluded_prefix_is_removed_in_every_mode(seeded) -> None:
    exclude = ExcludeFilter(functional_prefixes=["70."])
    for normalization in ("total", "total_currency", "per_capita_currency"):
        service = AnalyticsService(
            seeded,
            cache=ResultCache(max_items=10, max_bytes=1024 * 1024),
            rates=CurrencyRateMap({2023: 4.0}),
        )
        result = service.get_aggregated_line_items(
            expense_filter(exclude=exclude, normalization=normalization)
        )
        assert result.total_count == 4
        assert all(not row.functional_code.startswith("70") for row in result.rows)


def test_missing_period_is_rejected_before_the_cache_is_consulted(
    service, result_cache
) -> None:
    with pytest.raises(InvalidFilter):
        service.get_aggregated_line_items(
            AnalyticsFilter(account_category=AccountCategory.expense)
        )

    assert result_cache.stats().misses == 0


def test_pagination_is_sanitized() -> None:
    assert sanitize_pagination(None, None, 1000) == (None, 0)
    assert sanitize_pagination(5000, -3, 1000) == (1000, 0)
    assert sanitize_pagination(-1, 10, 1000) == (0, 10)


def test_zero_limit_returns_no_rows_but_keeps_the_count(service) -> None:
    result = service.get_aggregated_line_items(expense_filter(), limit=0)

    assert result.rows == []
    assert result.total_count == 5


def test_ties_are_ordered_by_classification_codes(territory, add_line_item) -> None:
    add_line_item("4562589", "66.02.06", "10.01.01", "100.00")
    add_line_item("4562589", "65.02.04", "20.01.01", "100.00")
    add_line_item("4562589", "65.02.04", "10.01.01", "100.00")
    service = AnalyticsService(
        territory, cache=ResultCache(max_items=10, max_bytes=1024 * 1024)
    )

    result = service.get_aggregated_line_items(expense_filter())

    assert [(row.functional_code, row.economic_code) for row in result.rows] == [
        ("65.02.04", "10.01.01"),
        ("65.02.04", "20.01.01"),
        ("66.02.06", "10.01.01"),
    ]


def test_missing_and_stored_unknown_codes_share_one_group(
    territory, add_line_item
) -> None:
    territory.add(
        EconomicClassification(
            economic_code=UNKNOWN_ECONOMIC_CODE, economic_name="Nedefinit"
        )
    )
    territory.flush()
    add_line_item("4562589", "65.02.03", None, "200.00")
    add_line_item("4562589", "65.02.03", UNKNOWN_ECONOMIC_CODE, "100.00")

    results = {}
    for normalization in ("total", "total_currency"):
        service = AnalyticsService(
            territory,
            cache=ResultCache(max_items=10, max_bytes=1024 * 1024),
            rates=CurrencyRateMap({2023: 1.0}),
        )
        results[normalization] = service.get_aggregated_line_items(
            expense_filter(normalization=normalization)
        )

    for result in results.values():
        assert result.total_count == 1
        assert [(row.economic_code, row.amount) for row in result.rows] == [
            (UNKNOWN_ECONOMIC_CODE, pytest.approx(300.0))
        ]
        assert result.rows[0].count == 2


def test_entity_linked_by_fiscal_code_counts_in_its_county(
    territory, add_line_item
) -> None:
    territory.add(
        UAT(
            id=4,
            uat_key="CJ",
            uat_code="4305857",
            siruta_code="CJ",
            name="Judetul Cluj",
            county_code="CJ",
            county_name="Cluj",
            region="Nord-Vest",
            population=50000,
        )
    )
    territory.add(
        Entity(
            cui="4305857",
            name="Consiliul Judetean Cluj",
            uat_id=None,
            entity_type="admin_county_council",
        )
    )
    territory.flush()
    add_line_item("4305857", "70.02.01", "71.01.01", "5000.00")
    service = AnalyticsService(
        territory, cache=ResultCache(max_items=10, max_bytes=1024 * 1024)
    )

    scoped = expense_filter(county_codes=["CJ"])
    totals = service.get_aggregated_line_items(scoped)
    per_capita = service.get_aggregated_line_items(
        expense_filter(county_codes=["CJ"], normalization="per_capita")
    )

    assert service.resolve_population_denominator(scoped) == 50000
    assert totals.total_count == 1
    assert totals.rows[0].amount == pytest.approx(5000.0)
    assert per_capita.rows[0].amount == pytest.approx(0.1)


def test_currency_modes_skip_the_group_count_query(seeded) -> None:
    statements = []

    def _record(conn, cursor, statement, parameters, context, executemany):
        statements.append(statement)

    engine = seeded.get_bind()
    event.listen(engine, "before_cursor_execute", _record)
    try:
        rows, total_count = LineItemAggregator(seeded).aggregate(
            compile_filter(expense_filter(normalization="total_currency"))
        )
    finally:
        event.remove(engine, "before_cursor_execute", _record)

    assert total_count is None
    assert len(rows) == 5
    assert len(statements) == 1
