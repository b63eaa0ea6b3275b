from __future__ import annotations

import calendar
import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Iterable, Optional, Sequence
from zoneinfo import ZoneInfo

from pydantic import BaseModel, ValidationError

from config import get_settings
from insights import Insight, InsightContext, generate_insights
from models import Budget, Category, CategorySnapshot, Transaction, TransactionType
from normalize import MONTH_LABELS, month_key, round_half_up

logger = logging.getLogger(__name__)

UNCATEGORIZED = CategorySnapshot(name="Uncategorized", color="gray", icon="📦")
DEFAULT_COLOR = "gray"
DEFAULT_ICON = "📦"
MONTHS_KEPT = 6


@dataclass
class CategoryStat:
    name: str
    total: float = 0.0
    count: int = 0
    color: str = DEFAULT_COLOR
    icon: str = DEFAULT_ICON
    category_id: Optional[object] = None
    percentage: int = 0


@dataclass
class MonthBucket:
    key: str
    year: int
    month: int
    label: str
    income: float = 0.0
    expenses: float = 0.0
    savings: float = 0.0

    def add(self, txn_type: TransactionType, amount: float) -> None:
        if txn_type == TransactionType.income:
            self.income += amount
        else:
            self.expenses += amount
        self.savings = self.income - self.expenses


@dataclass(frozen=True)
class LargestCategory:
    name: str
    amount: float


NO_CATEGORY = LargestCategory(name="None", amount=0)


@dataclass
class FinancialSummary:
    category_stats: list[CategoryStat] = field(default_factory=list)
    monthly_data: list[MonthBucket] = field(default_factory=list)
    total_income: float = 0.0
    total_expenses: float = 0.0
    avg_transaction_amount: float = 0.0
    largest_category: LargestCategory = NO_CATEGORY
    savings_rate: int = 0
    insights: list[Insight] = field(default_factory=list)
    transaction_count: int = 0
    generated_at: Optional[datetime] = None


@dataclass
class CategoryTrend:
    name: str
    color: str
    icon: str
    category_id: Optional[object]
    months: list[str]
    series: list[float]
    average: float = 0.0
    change: int = 0
    direction: str = "flat"


@dataclass
class MonthOverview:
    year: int
    month: int
    month_name: str
    income: float
    expenses: float
    balance: float
    savings_rate: int
    top_categories: list[CategoryStat]
    active_category_count: int
    days_left: int


def current_time() -> datetime:
    return datetime.now(ZoneInfo(get_settings().timezone))


def _coerce_records(items: Optional[Iterable[object]], model: type[BaseModel]) -> list:
    out = []
    for item in items or []:
        if isinstance(item, model):
            out.append(item)
            continue
        try:
            out.append(model.model_validate(item))
        except ValidationError as exc:
            logger.warning(
                f"aggregation: skipping unreadable {model.__name__} record: {exc.error_count()} errors"
            )
    return out


def coerce_transactions(items: Optional[Iterable[object]]) -> list[Transaction]:
    return _coerce_records(items, Transaction)


def coerce_categories(items: Optional[Iterable[object]]) -> list[Category]:
    return _coerce_records(items, Category)


def coerce_budgets(items: Optional[Iterable[object]]) -> list[Budget]:
    return _coerce_records(items, Budget)


class CategoryLookup:
    """Resolves a transaction to the category it should be grouped under."""

    def __init__(self, categories: Sequence[Category]) -> None:
        self._by_id: dict[str, Category] = {}
        for category in categories:
            if category.id is not None:
                self._by_id.setdefault(str(category.id), category)

    def get(self, category_id: object) -> Optional[Category]:
        if category_id is None:
            return None
        return self._by_id.get(str(category_id))

    def resolve(self, txn: Transaction) -> CategorySnapshot:
        live = self.get(txn.category)
        if live is not None and live.name:
            return CategorySnapshot(
                id=live.id, name=live.name, icon=live.icon, color=live.color
            )
        details = txn.category_details
        if details is not None and details.name:
            if details.id is None and txn.category is not None:
                return details.model_copy(update={"id": txn.category})
            return details
        return UNCATEGORIZED


def _percentage(part: float, whole: float) -> int:
    if whole <= 0:
        return 0
    return round_half_up(part / whole * 100)


def savings_rate(income: float, expenses: float) -> int:
    if income <= 0:
        return 0
    return round_half_up((income - expenses) / income * 100)


def _accumulate_categories(
    transactions: Iterable[Transaction], lookup: CategoryLookup
) -> list[CategoryStat]:
    stats: dict[str, CategoryStat] = {}
    for txn in transactions:
        if txn.type == TransactionType.income:
            continue
        resolved = lookup.resolve(txn)
        name = resolved.name or UNCATEGORIZED.name
        stat = stats.get(name)
        if stat is None:
            stat = CategoryStat(
                name=name,
                color=resolved.color or DEFAULT_COLOR,
                icon=resolved.icon or DEFAULT_ICON,
                category_id=resolved.id,
            )
            stats[name] = stat
        stat.total += txn.amount
        stat.count += 1
    # sorted() is stable, ties keep encounter order.
    return sorted(stats.values(), key=lambda s: s.total, reverse=True)


def _bucket_months(transactions: Iterable[Transaction]) -> dict[str, MonthBucket]:
    months: dict[str, MonthBucket] = {}
    for txn in transactions:
        if txn.date is None:
            continue
        key = month_key(txn.date)
        bucket = months.get(key)
        if bucket is None:
            bucket = MonthBucket(
                key=key,
                year=txn.date.year,
                month=txn.date.month,
                label=MONTH_LABELS[txn.date.month - 1],
            )
            months[key] = bucket
        bucket.add(txn.type, txn.amount)
    return months


def summarize(
    transactions: Optional[Iterable[object]],
    categories: Optional[Iterable[object]],
    budgets: Optional[Iterable[object]] = None,
    now: Optional[datetime] = None,
) -> FinancialSummary:
    """
    Derive the dashboard/analytics figures from raw API records.

    Pure function: inputs are never mutated and nothing is kept between calls.
    Malformed records degrade (zero amount, no month bucket, "Uncategorized")
    rather than raising. Pass ``budgets`` to enable the budget-near-limit
    insight; leave it as ``None`` for the analytics variant.
    """
    now = now or current_time()
    txns = coerce_transactions(transactions)
    lookup = CategoryLookup(coerce_categories(categories))
    budget_list = coerce_budgets(budgets) if budgets is not None else None

    total_income = 0.0
    total_expenses = 0.0
    for txn in txns:
        if txn.type == TransactionType.income:
            total_income += txn.amount
        else:
            total_expenses += txn.amount
    months = _bucket_months(txns)

    category_stats = _accumulate_categories(txns, lookup)
    for stat in category_stats:
        stat.percentage = _percentage(stat.total, total_expenses)
    monthly_data = [months[key] for key in sorted(months)][-MONTHS_KEPT:]

    if category_stats:
        top = category_stats[0]
        largest = LargestCategory(name=top.name, amount=top.total)
    else:
        largest = NO_CATEGORY

    rate = savings_rate(total_income, total_expenses)
    count = len(txns)
    avg = (total_income + total_expenses) / count if count > 0 else 0.0

    insights: list[Insight] = []
    if count:
        insights = generate_insights(
            InsightContext(
                category_stats=category_stats,
                monthly_data=monthly_data,
                total_expenses=total_expenses,
                savings_rate=rate,
                budgets=budget_list,
            )
        )

    return FinancialSummary(
        category_stats=category_stats,
        monthly_data=monthly_data,
        total_income=total_income,
        total_expenses=total_expenses,
        avg_transaction_amount=avg,
        largest_category=largest,
        savings_rate=rate,
        insights=insights,
        transaction_count=count,
        generated_at=now,
    )


def _selects(selector: str, trend: CategoryTrend) -> bool:
    wanted = selector.strip().lower()
    return trend.name.lower() == wanted or (
        trend.category_id is not None and str(trend.category_id) == selector.strip()
    )


def category_trends(
    transactions: Optional[Iterable[object]],
    categories: Optional[Iterable[object]],
    *,
    category: Optional[str] = None,
) -> list[CategoryTrend]:
    """
    Monthly expense series per category over the months shown in the summary.

    ``change`` compares the last month with the one before it, in percent;
    it stays 0 when the previous month had no spending. ``category`` keeps a
    single trend, matched by name (case-insensitive) or id.
    """
    txns = coerce_transactions(transactions)
    lookup = CategoryLookup(coerce_categories(categories))
    keys = sorted(_bucket_months(txns))[-MONTHS_KEPT:]
    slots = {key: i for i, key in enumerate(keys)}

    trends: dict[str, CategoryTrend] = {}
    for txn in txns:
        if txn.type == TransactionType.income or txn.date is None:
            continue
        slot = slots.get(month_key(txn.date))
        if slot is None:
            continue
        resolved = lookup.resolve(txn)
        name = resolved.name or UNCATEGORIZED.name
        trend = trends.get(name)
        if trend is None:
            trend = CategoryTrend(
                name=name,
                color=resolved.color or DEFAULT_COLOR,
                icon=resolved.icon or DEFAULT_ICON,
                category_id=resolved.id,
                months=list(keys),
                series=[0.0] * len(keys),
            )
            trends[name] = trend
        trend.series[slot] += txn.amount

    out = sorted(trends.values(), key=lambda t: sum(t.series), reverse=True)
    if category:
        out = [t for t in out if _selects(category, t)]
    for trend in out:
        trend.average = sum(trend.series) / len(trend.series)
        if len(trend.series) >= 2:
            previous, latest = trend.series[-2:]
            trend.change = _percentage(latest - previous, previous)
        if trend.change > 0:
            trend.direction = "up"
        elif trend.change < 0:
            trend.direction = "down"
    return out


def month_overview(
    transactions: Optional[Iterable[object]],
    categories: Optional[Iterable[object]],
    now: Optional[datetime] = None,
    *,
    top: int = 5,
) -> MonthOverview:
    now = now or current_time()
    today = now.date()
    in_month = [
        t
        for t in coerce_transactions(transactions)
        if t.date is not None
        and t.date.year == today.year
        and t.date.month == today.month
    ]
    lookup = CategoryLookup(coerce_categories(categories))

    income = sum(t.amount for t in in_month if t.type == TransactionType.income)
    expenses = sum(t.amount for t in in_month if t.type != TransactionType.income)
    stats = _accumulate_categories(in_month, lookup)
    for stat in stats:
        stat.percentage = _percentage(stat.total, expenses)

    days_in_month = calendar.monthrange(today.year, today.month)[1]
    return MonthOverview(
        year=today.year,
        month=today.month,
        month_name=calendar.month_name[today.month],
        income=income,
        expenses=expenses,
        balance=income - expenses,
        savings_rate=savings_rate(income, expenses),
        top_categories=stats[:top],
        active_category_count=len(stats),
        days_left=days_in_month - today.day,
    )


def recent_transactions(
    transactions: Optional[Iterable[object]], limit: int = 5
) -> list[Transaction]:
    txns = coerce_transactions(transactions)
    dated = sorted(
        (t for t in txns if t.date is not None), key=lambda t: t.date, reverse=True
    )
    undated = [t for t in txns if t.date is None]
    return (dated + undated)[:limit]


def within(txn: Transaction, start: date, end: date) -> bool:
    return txn.date is not None and start <= txn.date <= end
