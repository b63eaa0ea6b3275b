from datetime import datetime
from typing import Any, Optional

import pytest

from api_client import ApiError

NOW = datetime(2025, 3, 20, 12, 0)


class FakeApiClient:
    """In-memory stand-in for the remote finance API."""

    def __init__(self, token: Optional[str] = "test-token", **resources: list[dict]):
        self.token = token
        self.store: dict[str, list[dict]] = {
            name: [dict(row) for row in rows] for name, rows in resources.items()
        }
        self.calls: list[tuple[str, str]] = []
        self.user = {"id": 1, "email": "ada@example.com", "first_name": "Ada"}
        self._next_id = 1000

    def _rows(self, resource: str) -> list[dict]:
        return self.store.setdefault(resource, [])

    def _find(self, resource: str, item_id: object) -> dict:
        for row in self._rows(resource):
            if str(row.get("id")) == str(item_id):
                return row
        raise ApiError("Not found", status=404, detail={"detail": "Not found."})

    def list(self, resource: str) -> list[dict]:
        self.calls.append(("list", resource))
        return [dict(row) for row in self._rows(resource)]

    def get(self, resource: str, item_id: object) -> dict:
        self.calls.append(("get", resource))
        return dict(self._find(resource, item_id))

    def create(self, resource: str, payload: dict[str, Any]) -> dict:
        self.calls.append(("create", resource))
        self._next_id += 1
        row = {"id": self._next_id, **payload}
        self._rows(resource).append(row)
        return dict(row)

    def update(self, resource: str, item_id: object, payload: dict[str, Any]) -> dict:
        self.calls.append(("update", resource))
        row = self._find(resource, item_id)
        row.update(payload)
        return dict(row)

    def delete(self, resource: str, item_id: object) -> None:
        self.calls.append(("delete", resource))
        row = self._find(resource, item_id)
        self._rows(resource).remove(row)

    def login(self, email: str, password: str) -> dict:
        if password != "secret":
            raise ApiError(
                "Login failed", status=401, detail={"error": "Invalid credentials"}
            )
        return {"access": "access-123", "refresh": "refresh-456", "user": self.user}

    def register(self, payload: dict[str, Any]) -> dict:
        self.user = {"id": 2, "email": payload["email"]}
        return {"access": "access-new", "refresh": "refresh-new", "user": self.user}

    def profile(self) -> dict:
        return dict(self.user)

    def update_profile(self, payload: dict[str, Any]) -> dict:
        self.user.update(payload)
        return dict(self.user)


CATEGORIES = [
    {"id": 1, "name": "Salary", "type": "income", "icon": "💰", "color": "green"},
    {"id": 2, "name": "Housing", "type": "expense", "icon": "🏠", "color": "blue"},
    {"id": 3, "name": "Groceries", "type": "expense", "icon": "🛒", "color": "green"},
]

TRANSACTIONS = [
    {
        "id": 1,
        "amount": "500000.00",
        "type": "income",
        "category": 1,
        "date": "2025-03-01",
        "description": "March salary",
        "merchant": "Acme",
    },
    {
        "id": 2,
        "amount": "150000.00",
        "type": "expense",
        "category": 2,
        "date": "2025-03-02",
        "description": "Rent payment",
        "merchant": "Landlord",
    },
    {
        "id": 3,
        "amount": "42000.00",
        "type": "expense",
        "category": 3,
        "date": "2025-02-15",
        "description": "Weekly shop",
        "merchant": "Mahima",
    },
]

BUDGETS = [
    {"id": 1, "category": 2, "amount": "160000", "spent_amount": "150000"},
    {"id": 2, "category": 3, "amount": "100000", "spent_amount": "42000"},
]


@pytest.fixture
def fake_client() -> FakeApiClient:
    return FakeApiClient(
        transactions=TRANSACTIONS, categories=CATEGORIES, budgets=BUDGETS
    )
