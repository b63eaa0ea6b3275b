from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable, Optional, Sequence

from models import Budget, InsightType
from normalize import format_fcfa, round_half_up

if TYPE_CHECKING:  # pragma: no cover
    from aggregation import CategoryStat, MonthBucket

MAX_INSIGHTS = 3
HIGH_SPENDING_SHARE = 0.3
SAVINGS_TARGET = 20
GREAT_SAVINGS_RATE = 30
SPENDING_INCREASE_PCT = 10
SPENDING_DECREASE_PCT = -5
BUDGET_NEAR_LIMIT_PCT = 80


@dataclass(frozen=True)
class Insight:
    type: InsightType
    title: str
    message: str
    icon: str
    amount: Optional[float] = None


@dataclass(frozen=True)
class InsightContext:
    category_stats: Sequence[CategoryStat]
    monthly_data: Sequence[MonthBucket]
    total_expenses: float
    savings_rate: int
    # None means the caller did not ask for budget checks.
    budgets: Optional[Sequence[Budget]] = None


def high_spending_categories(ctx: InsightContext) -> list[Insight]:
    out: list[Insight] = []
    threshold = ctx.total_expenses * HIGH_SPENDING_SHARE
    for stat in ctx.category_stats:
        if stat.total > threshold:
            share = round_half_up(stat.total / ctx.total_expenses * 100)
            out.append(
                Insight(
                    type=InsightType.warning,
                    title=f"High Spending in {stat.name}",
                    message=(
                        f"{stat.name} accounts for {share}% of your expenses. "
                        "Consider setting a budget for this category."
                    ),
                    icon=stat.icon,
                    amount=stat.total,
                )
            )
    return out


def savings_rate_rule(ctx: InsightContext) -> list[Insight]:
    if ctx.savings_rate < SAVINGS_TARGET:
        return [
            Insight(
                type=InsightType.warning,
                title="Low Savings Rate",
                message=(
                    f"Your savings rate is {ctx.savings_rate}%. "
                    f"Try to save at least {SAVINGS_TARGET}% of your income."
                ),
                icon="⚠️",
            )
        ]
    if ctx.savings_rate > GREAT_SAVINGS_RATE:
        return [
            Insight(
                type=InsightType.success,
                title="Great Savings Rate",
                message=(
                    f"You're saving {ctx.savings_rate}% of your income. Great job!"
                ),
                icon="🎯",
            )
        ]
    return []


def month_over_month(ctx: InsightContext) -> list[Insight]:
    if len(ctx.monthly_data) < 2:
        return []
    previous, current = ctx.monthly_data[-2], ctx.monthly_data[-1]
    if previous.expenses <= 0:
        return []
    delta = current.expenses - previous.expenses
    change = delta / previous.expenses * 100
    if change > SPENDING_INCREASE_PCT:
        return [
            Insight(
                type=InsightType.warning,
                title="Spending Increase",
                message=(
                    f"Your expenses in {current.label} are up "
                    f"{round_half_up(change)}% compared to {previous.label} "
                    f"(+{format_fcfa(delta)})."
                ),
                icon="📈",
                amount=delta,
            )
        ]
    if change < SPENDING_DECREASE_PCT:
        return [
            Insight(
                type=InsightType.success,
                title="Spending Decrease",
                message=(
                    f"You spent {round_half_up(-change)}% less in {current.label} "
                    f"than in {previous.label}. Saved {format_fcfa(-delta)}."
                ),
                icon="📉",
                amount=-delta,
            )
        ]
    return []


def budgets_near_limit(ctx: InsightContext) -> list[Insight]:
    if not ctx.budgets:
        return []
    at_risk = [
        b for b in ctx.budgets if (b.percentage_used or 0) >= BUDGET_NEAR_LIMIT_PCT
    ]
    if not at_risk:
        return []
    count = len(at_risk)
    verb = "budgets are" if count > 1 else "budget is"
    return [
        Insight(
            type=InsightType.warning,
            title="Budget Alert",
            message=f"{count} {verb} near the limit.",
            icon="🔔",
            amount=float(count),
        )
    ]


RULES: tuple[Callable[[InsightContext], list[Insight]], ...] = (
    high_spending_categories,
    savings_rate_rule,
    month_over_month,
    budgets_near_limit,
)


def generate_insights(
    ctx: InsightContext, *, limit: int = MAX_INSIGHTS
) -> list[Insight]:
    """Evaluate every rule in priority order and keep the first ``limit`` hits."""
    candidates: list[Insight] = []
    for rule in RULES:
        candidates.extend(rule(ctx))
    return candidates[:limit]
