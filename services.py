from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from rapidfuzz.distance import Levenshtein

from aggregation import (
    CategoryLookup,
    CategoryTrend,
    FinancialSummary,
    MonthOverview,
    category_trends,
    coerce_budgets,
    coerce_categories,
    coerce_transactions,
    current_time,
    month_overview,
    recent_transactions,
    summarize,
    within,
)
from api_client import ApiClient, ApiError
from config import get_settings
from insights import BUDGET_NEAR_LIMIT_PCT
from models import Budget, Category, Transaction, TransactionType, UserProfile
from normalize import round_half_up
from periods import Period
from schemas import (
    BudgetIn,
    CategoryIn,
    LoginIn,
    ProfileUpdateIn,
    RegisterIn,
    TransactionIn,
)

logger = logging.getLogger(__name__)

DEFAULT_CATEGORIES: tuple[CategoryIn, ...] = (
    CategoryIn(name="Salary", type=TransactionType.income, icon="💰", color="green"),
    CategoryIn(name="Freelance", type=TransactionType.income, icon="💻", color="blue"),
    CategoryIn(name="Investment", type=TransactionType.income, icon="📈", color="purple"),
    CategoryIn(name="Business", type=TransactionType.income, icon="🏢", color="indigo"),
    CategoryIn(name="Gift", type=TransactionType.income, icon="🎁", color="pink"),
    CategoryIn(name="Housing", type=TransactionType.expense, icon="🏠", color="blue"),
    CategoryIn(name="Groceries", type=TransactionType.expense, icon="🛒", color="green"),
    CategoryIn(name="Dining", type=TransactionType.expense, icon="🍽️", color="orange"),
    CategoryIn(
        name="Transportation", type=TransactionType.expense, icon="🚗", color="amber"
    ),
    CategoryIn(
        name="Entertainment", type=TransactionType.expense, icon="🎬", color="purple"
    ),
    CategoryIn(name="Utilities", type=TransactionType.expense, icon="💡", color="yellow"),
    CategoryIn(name="Shopping", type=TransactionType.expense, icon="🛍️", color="pink"),
    CategoryIn(name="Healthcare", type=TransactionType.expense, icon="🏥", color="red"),
    CategoryIn(name="Education", type=TransactionType.expense, icon="📚", color="indigo"),
    CategoryIn(name="Insurance", type=TransactionType.expense, icon="🛡️", color="cyan"),
    CategoryIn(
        name="Subscriptions", type=TransactionType.expense, icon="📱", color="emerald"
    ),
    CategoryIn(name="Other", type=TransactionType.expense, icon="📦", color="gray"),
)


@dataclass
class TransactionFilters:
    type: Optional[TransactionType] = None
    query: Optional[str] = None


@dataclass(frozen=True)
class TransactionTotals:
    income: float
    expenses: float
    balance: float
    count: int


@dataclass(frozen=True)
class BudgetProgress:
    budgeted: float
    spent: float
    percentage_used: int
    at_risk_count: int
    budgets: list[Budget]


@dataclass
class Dashboard:
    summary: FinancialSummary
    month: MonthOverview
    recent: list[Transaction]
    budgets: BudgetProgress


@dataclass
class Analytics:
    summary: FinancialSummary
    category_trends: list[CategoryTrend]


class CategoryService:
    def __init__(self, client: ApiClient) -> None:
        self.client = client

    def _seed_defaults(self) -> list[dict]:
        created: list[dict] = []
        for data in DEFAULT_CATEGORIES:
            try:
                created.append(self.client.create("categories", data.model_dump(mode="json")))
            except ApiError as exc:
                logger.warning(f"category_seed_failed: name={data.name} error={exc}")
        logger.info(f"category_seed: created={len(created)}")
        return created

    def list_all(self) -> list[Category]:
        rows = self.client.list("categories")
        if not rows:
            rows = self._seed_defaults()
        return coerce_categories(rows)

    def by_type(self, txn_type: TransactionType) -> list[Category]:
        return [c for c in self.list_all() if c.type == txn_type]

    def get(self, category_id: object) -> Category:
        category = CategoryLookup(self.list_all()).get(category_id)
        if category is None:
            raise ValueError("Category not found")
        return category

    def create(self, data: CategoryIn) -> Category:
        return Category.model_validate(
            self.client.create("categories", data.model_dump(mode="json"))
        )

    def update(self, category_id: object, data: CategoryIn) -> Category:
        return Category.model_validate(
            self.client.update("categories", category_id, data.model_dump(mode="json"))
        )

    def delete(self, category_id: object) -> None:
        self.client.delete("categories", category_id)


def matches_query(query: str, fields: list[Optional[str]]) -> bool:
    """
    Case-insensitive substring match over ``fields``.

    Query words of four or more characters also match a field word within one
    edit, so "grocries" still finds "Groceries".
    """
    needle = query.strip().lower()
    if not needle:
        return True
    haystacks = [(f or "").lower() for f in fields]
    if any(needle in h for h in haystacks):
        return True
    words = [w for h in haystacks for w in h.split()]
    for term in needle.split():
        if term in " ".join(haystacks):
            continue
        if len(term) < 4:
            return False
        if not any(Levenshtein.distance(term, w) <= 1 for w in words):
            return False
    return True


class TransactionService:
    def __init__(self, client: ApiClient) -> None:
        self.client = client

    def list_all(self) -> list[Transaction]:
        return coerce_transactions(self.client.list("transactions"))

    def get(self, transaction_id: object) -> Transaction:
        return Transaction.model_validate(self.client.get("transactions", transaction_id))

    def create(self, data: TransactionIn) -> Transaction:
        return Transaction.model_validate(
            self.client.create("transactions", data.model_dump(mode="json"))
        )

    def update(self, transaction_id: object, data: TransactionIn) -> Transaction:
        return Transaction.model_validate(
            self.client.update(
                "transactions", transaction_id, data.model_dump(mode="json")
            )
        )

    def delete(self, transaction_id: object) -> None:
        self.client.delete("transactions", transaction_id)

    @staticmethod
    def filter(
        transactions: list[Transaction],
        filters: TransactionFilters,
        categories: Optional[list[Category]] = None,
    ) -> list[Transaction]:
        lookup = CategoryLookup(categories or [])
        out: list[Transaction] = []
        for txn in transactions:
            if filters.type is not None and txn.type != filters.type:
                continue
            if filters.query:
                category_name = lookup.resolve(txn).name
                if not matches_query(
                    filters.query, [txn.description, category_name, txn.merchant]
                ):
                    continue
            out.append(txn)
        return out

    @staticmethod
    def totals(transactions: list[Transaction]) -> TransactionTotals:
        income = sum(t.amount for t in transactions if t.type == TransactionType.income)
        expenses = sum(
            t.amount for t in transactions if t.type != TransactionType.income
        )
        return TransactionTotals(
            income=income,
            expenses=expenses,
            balance=income - expenses,
            count=len(transactions),
        )


class BudgetService:
    def __init__(self, client: ApiClient) -> None:
        self.client = client

    def list_all(self) -> list[Budget]:
        return coerce_budgets(self.client.list("budgets"))

    def create(self, data: BudgetIn) -> Budget:
        return Budget.model_validate(
            self.client.create("budgets", data.model_dump(mode="json"))
        )

    def update(self, budget_id: object, data: BudgetIn) -> Budget:
        return Budget.model_validate(
            self.client.update("budgets", budget_id, data.model_dump(mode="json"))
        )

    def delete(self, budget_id: object) -> None:
        self.client.delete("budgets", budget_id)

    @staticmethod
    def progress(budgets: list[Budget]) -> BudgetProgress:
        budgeted = sum(b.amount for b in budgets)
        spent = sum(b.spent_amount for b in budgets)
        used = round_half_up(spent / budgeted * 100) if budgeted > 0 else 0
        at_risk = sum(
            1 for b in budgets if (b.percentage_used or 0) >= BUDGET_NEAR_LIMIT_PCT
        )
        return BudgetProgress(
            budgeted=budgeted,
            spent=spent,
            percentage_used=used,
            at_risk_count=at_risk,
            budgets=budgets,
        )


class AuthService:
    def __init__(self, client: ApiClient) -> None:
        self.client = client

    @staticmethod
    def _tokens(payload: object) -> tuple[str, Optional[str], UserProfile]:
        if not isinstance(payload, dict) or not payload.get("access"):
            raise ApiError("Authentication response did not contain a token")
        user = UserProfile.model_validate(payload.get("user") or {})
        return payload["access"], payload.get("refresh"), user

    def login(self, data: LoginIn) -> tuple[str, Optional[str], UserProfile]:
        return self._tokens(self.client.login(data.email, data.password))

    def register(self, data: RegisterIn) -> tuple[str, Optional[str], UserProfile]:
        if data.password != data.password2:
            raise ValueError("Passwords do not match")
        return self._tokens(self.client.register(data.model_dump(exclude_none=True)))

    def profile(self) -> UserProfile:
        return UserProfile.model_validate(self.client.profile())

    def update_profile(self, data: ProfileUpdateIn) -> UserProfile:
        return UserProfile.model_validate(
            self.client.update_profile(data.model_dump(exclude_none=True))
        )


class DashboardService:
    def __init__(self, client: ApiClient) -> None:
        self.client = client
        self.transactions = TransactionService(client)
        self.categories = CategoryService(client)
        self.budgets = BudgetService(client)

    def dashboard(self, now: Optional[datetime] = None) -> Dashboard:
        now = now or current_time()
        transactions = self.transactions.list_all()
        categories = self.categories.list_all()
        budgets = self.budgets.list_all()
        return Dashboard(
            summary=summarize(transactions, categories, budgets, now),
            month=month_overview(transactions, categories, now),
            recent=recent_transactions(transactions),
            budgets=BudgetService.progress(budgets),
        )

    def analytics(
        self,
        period: Period,
        now: Optional[datetime] = None,
        *,
        category: Optional[str] = None,
    ) -> Analytics:
        now = now or current_time()
        transactions = self.transactions.list_all()
        if period.bounded:
            transactions = [t for t in transactions if within(t, period.start, period.end)]
        categories = self.categories.list_all()
        return Analytics(
            summary=summarize(transactions, categories, None, now),
            category_trends=category_trends(transactions, categories, category=category),
        )


@dataclass
class _CacheEntry:
    dashboard: Dashboard
    stored_at: float
    read_at: float


class SummaryCache:
    """
    Latest dashboard per session token.

    Every invalidation bumps a generation counter. A dashboard computed before
    an invalidation is never stored, so a slow refresh cannot bring back
    figures from before a write. Sessions not read within ``max_age_secs``
    are dropped and no longer refreshed.
    """

    def __init__(self, max_age_secs: Optional[int] = None) -> None:
        if max_age_secs is None:
            max_age_secs = get_settings().summary_max_age_secs
        self.max_age_secs = max_age_secs
        self._entries: dict[str, _CacheEntry] = {}
        self._generation = 0
        self._lock = threading.Lock()

    def generation(self) -> int:
        with self._lock:
            return self._generation

    def get(self, token: str) -> Optional[Dashboard]:
        now = time.monotonic()
        with self._lock:
            entry = self._entries.get(token)
            if entry is None:
                return None
            if now - entry.stored_at > self.max_age_secs:
                del self._entries[token]
                return None
            entry.read_at = now
            return entry.dashboard

    def put(
        self, token: str, dashboard: Dashboard, *, generation: Optional[int] = None
    ) -> bool:
        """Store ``dashboard``; skipped when invalidated since ``generation``."""
        now = time.monotonic()
        with self._lock:
            if generation is not None and generation != self._generation:
                return False
            previous = self._entries.get(token)
            read_at = previous.read_at if previous is not None else now
            self._entries[token] = _CacheEntry(dashboard, now, read_at)
            return True

    def invalidate(self, token: str) -> None:
        with self._lock:
            self._generation += 1
            self._entries.pop(token, None)

    def tokens(self) -> list[str]:
        now = time.monotonic()
        with self._lock:
            idle = [
                token
                for token, entry in self._entries.items()
                if now - entry.read_at > self.max_age_secs
            ]
            for token in idle:
                del self._entries[token]
            return list(self._entries)

    def refresh_all(self, client_factory=ApiClient) -> int:
        refreshed = 0
        for token in self.tokens():
            generation = self.generation()
            try:
                dashboard = DashboardService(client_factory(token)).dashboard()
            except ApiError as exc:
                logger.warning(f"summary_refresh_failed: status={exc.status} error={exc}")
                self.invalidate(token)
                continue
            if self.put(token, dashboard, generation=generation):
                refreshed += 1
            else:
                logger.info("summary_refresh_skipped: invalidated during refresh")
        return refreshed
