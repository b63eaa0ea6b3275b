import copy
from datetime import date, datetime

import pytest

from aggregation import category_trends, month_overview, recent_transactions, summarize
from models import InsightType
from conftest import NOW

HOUSING = {"id": 2, "name": "Housing", "type": "expense", "icon": "🏠", "color": "blue"}
DINING = {"id": 5, "name": "Dining", "type": "expense", "icon": "🍽️", "color": "orange"}


def test_empty_input_produces_zeroed_summary() -> None:
    summary = summarize([], [], now=NOW)

    assert summary.total_income == 0
    assert summary.total_expenses == 0
    assert summary.savings_rate == 0
    assert summary.avg_transaction_amount == 0
    assert summary.largest_category.name == "None"
    assert summary.largest_category.amount == 0
    assert summary.category_stats == []
    assert summary.monthly_data == []
    assert summary.insights == []
    assert summary.generated_at == NOW


def test_none_inputs_are_treated_as_empty_lists() -> None:
    summary = summarize(None, None, None, now=NOW)
    assert summary.transaction_count == 0
    assert summary.insights == []


def test_single_month_income_and_housing_expense() -> None:
    transactions = [
        {"id": 1, "type": "income", "amount": 500000, "date": "2025-03-01"},
        {"id": 2, "type": "expense", "amount": 100000, "category": 2, "date": "2025-03-05"},
    ]

    summary = summarize(transactions, [HOUSING], now=NOW)

    assert summary.total_income == 500000
    assert summary.total_expenses == 100000
    assert summary.savings_rate == 80
    assert summary.largest_category.name == "Housing"
    assert summary.largest_category.amount == 100000
    assert len(summary.monthly_data) == 1
    bucket = summary.monthly_data[0]
    assert bucket.key == "2025-03"
    assert bucket.income == 500000
    assert bucket.expenses == 100000
    assert bucket.savings == 400000
    assert summary.avg_transaction_amount == 300000


def test_unknown_category_id_falls_back_to_uncategorized() -> None:
    transactions = [{"id": 1, "type": "expense", "amount": 2500, "category": 42}]

    summary = summarize(transactions, [HOUSING], now=NOW)

    assert len(summary.category_stats) == 1
    stat = summary.category_stats[0]
    assert stat.name == "Uncategorized"
    assert stat.icon == "📦"
    assert stat.color == "gray"
    assert stat.total == 2500
    assert stat.count == 1


def test_embedded_category_snapshot_used_when_category_was_deleted() -> None:
    transactions = [
        {
            "id": 1,
            "type": "expense",
            "amount": 900,
            "category": 77,
            "category_details": {"name": "Travel", "icon": "✈️", "color": "cyan"},
        }
    ]

    summary = summarize(transactions, [HOUSING], now=NOW)

    stat = summary.category_stats[0]
    assert stat.name == "Travel"
    assert stat.icon == "✈️"
    assert stat.color == "cyan"
    assert stat.category_id == 77


def test_live_category_wins_over_stale_snapshot() -> None:
    transactions = [
        {
            "type": "expense",
            "amount": 900,
            "category": 2,
            "category_details": {"name": "Old name"},
        }
    ]
    summary = summarize(transactions, [HOUSING], now=NOW)
    assert summary.category_stats[0].name == "Housing"


def test_same_category_across_months_shares_one_stat() -> None:
    transactions = [
        {"type": "expense", "amount": 300, "category": 2, "date": "2025-01-10"},
        {"type": "expense", "amount": 200, "category": 2, "date": "2025-02-10"},
    ]

    summary = summarize(transactions, [HOUSING], now=NOW)

    assert len(summary.category_stats) == 1
    assert summary.category_stats[0].count == 2
    assert summary.category_stats[0].total == 500
    assert [m.key for m in summary.monthly_data] == ["2025-01", "2025-02"]


def test_income_never_populates_category_stats() -> None:
    transactions = [
        {"type": "income", "amount": 1000, "category": 1, "date": "2025-01-10"},
    ]
    summary = summarize(transactions, [{"id": 1, "name": "Salary", "type": "income"}], now=NOW)
    assert summary.category_stats == []
    assert summary.largest_category.name == "None"


def test_spending_increase_insight_reports_delta() -> None:
    transactions = [
        {"type": "income", "amount": 1000, "date": "2025-01-01"},
        {"type": "expense", "amount": 100, "category": 2, "date": "2025-01-05"},
        {"type": "expense", "amount": 115, "category": 2, "date": "2025-02-05"},
    ]

    summary = summarize(transactions, [HOUSING], now=NOW)

    titles = [i.title for i in summary.insights]
    assert titles == ["High Spending in Housing", "Great Savings Rate", "Spending Increase"]
    increase = summary.insights[2]
    assert increase.type == InsightType.warning
    assert increase.amount == pytest.approx(15)
    assert "15 FCFA" in increase.message


def test_malformed_amounts_coerce_to_zero() -> None:
    transactions = [
        {"type": "expense", "amount": "abc", "category": 2},
        {"type": "expense", "amount": None, "category": 2},
        {"type": "expense", "category": 2},
        {"type": "expense", "amount": "1,500", "category": 2},
        {"type": "income", "amount": float("nan")},
    ]

    summary = summarize(transactions, [HOUSING], now=NOW)

    assert summary.total_expenses == 1500
    assert summary.total_income == 0
    assert summary.savings_rate == 0
    assert summary.category_stats[0].count == 4


def test_out_of_range_amounts_count_as_zero() -> None:
    transactions = [
        {"type": "expense", "amount": 10**400, "category": 2, "date": "2025-03-02"},
        {"type": "expense", "amount": "sNaN", "category": 2, "date": "2025-03-03"},
        {"type": "income", "amount": 5, "date": "2025-03-01"},
    ]
    budgets = [{"id": 1, "category": 2, "amount": 10**400, "spent_amount": 10**400}]

    summary = summarize(transactions, [HOUSING], budgets, now=NOW)

    assert summary.transaction_count == 3
    assert summary.total_expenses == 0
    assert summary.total_income == 5
    assert summary.category_stats[0].count == 2
    assert all(i.title != "Budget Alert" for i in summary.insights)


def test_missing_dates_count_in_totals_but_not_months() -> None:
    transactions = [
        {"type": "income", "amount": 1000, "date": None},
        {"type": "expense", "amount": 400, "date": "not a date"},
        {"type": "expense", "amount": 100, "date": "2025-03-04T09:30:00Z"},
    ]

    summary = summarize(transactions, [], now=NOW)

    assert summary.total_income == 1000
    assert summary.total_expenses == 500
    assert len(summary.monthly_data) == 1
    assert summary.monthly_data[0].expenses == 100
    assert summary.monthly_data[0].income == 0


def test_monthly_data_keeps_latest_six_in_order() -> None:
    transactions = [
        {"type": "expense", "amount": 10, "date": f"2024-{month:02d}-15"}
        for month in (12, 3, 7, 1, 9, 5, 11, 2)
    ]

    summary = summarize(transactions, [], now=NOW)

    keys = [m.key for m in summary.monthly_data]
    assert len(keys) == 6
    assert keys == sorted(keys)
    assert keys == ["2024-03", "2024-05", "2024-07", "2024-09", "2024-11", "2024-12"]


def test_savings_rate_can_go_negative() -> None:
    transactions = [
        {"type": "income", "amount": 100},
        {"type": "expense", "amount": 150},
    ]
    assert summarize(transactions, [], now=NOW).savings_rate == -50


def test_category_ties_keep_encounter_order() -> None:
    transactions = [
        {"type": "expense", "amount": 50, "category": 5},
        {"type": "expense", "amount": 50, "category": 2},
        {"type": "expense", "amount": 80, "category": 99},
    ]

    summary = summarize(transactions, [HOUSING, DINING], now=NOW)

    assert [s.name for s in summary.category_stats] == [
        "Uncategorized",
        "Dining",
        "Housing",
    ]
    assert [s.percentage for s in summary.category_stats] == [44, 28, 28]


def test_repeated_calls_are_identical_and_do_not_mutate_input() -> None:
    transactions = [
        {"type": "expense", "amount": 50, "category": 5, "date": "2025-01-03"},
        {"type": "income", "amount": 500, "date": "2025-02-03"},
        {"type": "expense", "amount": 70, "category": 2, "date": "2025-02-04"},
    ]
    categories = [HOUSING, DINING]
    before = copy.deepcopy(transactions)

    first = summarize(transactions, categories, now=NOW)
    second = summarize(transactions, categories, now=NOW)

    assert first == second
    assert transactions == before


def test_insights_never_exceed_three() -> None:
    transactions = [
        {"type": "expense", "amount": 100, "category": 2, "date": "2025-01-03"},
        {"type": "expense", "amount": 100, "category": 5, "date": "2025-01-04"},
        {"type": "expense", "amount": 300, "category": 5, "date": "2025-02-04"},
    ]
    budgets = [{"amount": 100, "spent_amount": 95}]

    summary = summarize(transactions, [HOUSING, DINING], budgets, now=NOW)

    assert len(summary.insights) == 3
    assert summary.insights[0].title == "High Spending in Dining"


def test_budget_alert_only_in_dashboard_variant() -> None:
    transactions = [
        {"type": "income", "amount": 1000, "date": "2025-03-01"},
        {"type": "expense", "amount": 750, "category": 2, "date": "2025-03-02"},
    ]
    budgets = [
        {"id": 1, "category": 2, "amount": 100, "spent_amount": 90},
        {"id": 2, "category": 5, "amount": 100, "spent_amount": 10},
    ]

    analytics = summarize(transactions, [HOUSING], None, now=NOW)
    dashboard = summarize(transactions, [HOUSING], budgets, now=NOW)

    assert [i.title for i in analytics.insights] == ["High Spending in Housing"]
    assert [i.title for i in dashboard.insights] == [
        "High Spending in Housing",
        "Budget Alert",
    ]
    assert dashboard.insights[1].message == "1 budget is near the limit."


def test_unreadable_records_are_skipped() -> None:
    transactions = ["garbage", 12, {"type": "expense", "amount": 10}]
    summary = summarize(transactions, ["nope"], now=NOW)
    assert summary.transaction_count == 1
    assert summary.total_expenses == 10


def test_month_overview_limits_to_current_month() -> None:
    transactions = [
        {"type": "income", "amount": 1000, "date": "2025-03-01"},
        {"type": "expense", "amount": 300, "category": 2, "date": "2025-03-02"},
        {"type": "expense", "amount": 100, "category": 5, "date": "2025-03-10"},
        {"type": "expense", "amount": 999, "category": 5, "date": "2025-02-10"},
        {"type": "expense", "amount": 50, "category": 5},
    ]

    overview = month_overview(transactions, [HOUSING, DINING], NOW, top=1)

    assert overview.month_name == "March"
    assert overview.income == 1000
    assert overview.expenses == 400
    assert overview.balance == 600
    assert overview.savings_rate == 60
    assert [c.name for c in overview.top_categories] == ["Housing"]
    assert overview.top_categories[0].percentage == 75
    assert overview.active_category_count == 2
    assert overview.days_left == 11


def test_recent_transactions_newest_first_with_undated_last() -> None:
    transactions = [
        {"id": 1, "date": "2025-01-01"},
        {"id": 2},
        {"id": 3, "date": "2025-03-01"},
        {"id": 4, "date": date(2025, 2, 1)},
        {"id": 5, "date": datetime(2024, 12, 31, 8, 0)},
    ]

    recent = recent_transactions(transactions, limit=4)

    assert [t.id for t in recent] == [3, 4, 1, 5]


GROCERIES = {"id": 3, "name": "Groceries", "type": "expense", "icon": "🛒", "color": "green"}

TREND_TRANSACTIONS = [
    {"type": "expense", "amount": 100000, "category": 2, "date": "2025-01-03"},
    {"type": "expense", "amount": 100000, "category": 2, "date": "2025-02-03"},
    {"type": "expense", "amount": 50000, "category": 3, "date": "2025-02-10"},
    {"type": "expense", "amount": 110000, "category": 2, "date": "2025-03-03"},
    {"type": "expense", "amount": 40000, "category": 3, "date": "2025-03-12"},
    {"type": "income", "amount": 600000, "date": "2025-03-01"},
    {"type": "expense", "amount": 999, "category": 3},
]


def test_category_trends_series_average_and_change() -> None:
    trends = category_trends(TREND_TRANSACTIONS, [HOUSING, GROCERIES])

    assert [t.name for t in trends] == ["Housing", "Groceries"]
    housing, groceries = trends
    assert housing.months == ["2025-01", "2025-02", "2025-03"]
    assert housing.series == [100000, 100000, 110000]
    assert housing.average == pytest.approx(310000 / 3)
    assert housing.change == 10
    assert housing.direction == "up"

    assert groceries.series == [0, 50000, 40000]
    assert groceries.average == pytest.approx(30000)
    assert groceries.change == -20
    assert groceries.direction == "down"


def test_category_trends_follow_the_six_month_window() -> None:
    transactions = [
        {"type": "expense", "amount": 10, "category": 2, "date": f"2024-{m:02d}-01"}
        for m in range(1, 9)
    ]
    (trend,) = category_trends(transactions, [HOUSING])
    assert trend.months[0] == "2024-03"
    assert len(trend.series) == 6
    assert trend.change == 0
    assert trend.direction == "flat"


def test_category_trends_selection_by_name_or_id() -> None:
    by_name = category_trends(TREND_TRANSACTIONS, [HOUSING, GROCERIES], category="HOUSING")
    by_id = category_trends(TREND_TRANSACTIONS, [HOUSING, GROCERIES], category="3")
    assert [t.name for t in by_name] == ["Housing"]
    assert [t.name for t in by_id] == ["Groceries"]
    assert category_trends(TREND_TRANSACTIONS, [HOUSING], category="Travel") == []


def test_category_trends_from_empty_data() -> None:
    assert category_trends([], []) == []
    (trend,) = category_trends(
        [{"type": "expense", "amount": 10, "category": 2, "date": "2025-03-01"}], [HOUSING]
    )
    assert trend.average == 10
    assert trend.change == 0
