import datetime as dt
from enum import Enum
from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, field_validator, model_validator

from normalize import coerce_amount, parse_date


class TransactionType(str, Enum):
    income = "income"
    expense = "expense"


class InsightType(str, Enum):
    warning = "warning"
    success = "success"
    info = "info"


RecordId = Union[int, str]


def _optional_text(value: object) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, str):
        return value
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return None


def _optional_id(value: object) -> Optional[RecordId]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, str)):
        return value
    return None


def _transaction_type(value: object) -> TransactionType:
    # Anything that is not explicitly income is classified as an expense.
    if value == TransactionType.income.value:
        return TransactionType.income
    return TransactionType.expense


class CategorySnapshot(BaseModel):
    """Denormalized copy of a category embedded in a transaction."""

    model_config = ConfigDict(extra="ignore")

    id: Optional[RecordId] = None
    name: Optional[str] = None
    icon: Optional[str] = None
    color: Optional[str] = None

    @field_validator("name", "icon", "color", mode="before")
    @classmethod
    def _text(cls, value: object) -> Optional[str]:
        return _optional_text(value)

    @field_validator("id", mode="before")
    @classmethod
    def _ident(cls, value: object) -> Optional[RecordId]:
        return _optional_id(value)


class Category(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: Optional[RecordId] = None
    name: Optional[str] = None
    type: TransactionType = TransactionType.expense
    icon: Optional[str] = None
    color: Optional[str] = None

    @field_validator("name", "icon", "color", mode="before")
    @classmethod
    def _text(cls, value: object) -> Optional[str]:
        return _optional_text(value)

    @field_validator("id", mode="before")
    @classmethod
    def _ident(cls, value: object) -> Optional[RecordId]:
        return _optional_id(value)

    @field_validator("type", mode="before")
    @classmethod
    def _type(cls, value: object) -> TransactionType:
        return _transaction_type(value)


class Transaction(BaseModel):
    """
    A transaction as returned by the remote API.

    Every field is optional: missing or malformed values are degraded instead
    of rejecting the record. The sign is carried by ``type``; ``amount`` is a
    magnitude.
    """

    model_config = ConfigDict(extra="ignore")

    id: Optional[RecordId] = None
    amount: float = 0.0
    type: TransactionType = TransactionType.expense
    category: Optional[RecordId] = None
    category_details: Optional[CategorySnapshot] = None
    date: Optional[dt.date] = None
    description: Optional[str] = None
    merchant: Optional[str] = None
    notes: Optional[str] = None

    @field_validator("description", "merchant", "notes", mode="before")
    @classmethod
    def _text(cls, value: object) -> Optional[str]:
        return _optional_text(value)

    @field_validator("id", "category", mode="before")
    @classmethod
    def _ident(cls, value: object) -> Optional[RecordId]:
        return _optional_id(value)

    @field_validator("amount", mode="before")
    @classmethod
    def _amount(cls, value: object) -> float:
        return coerce_amount(value)

    @field_validator("type", mode="before")
    @classmethod
    def _type(cls, value: object) -> TransactionType:
        return _transaction_type(value)

    @field_validator("date", mode="before")
    @classmethod
    def _date(cls, value: object) -> Optional[dt.date]:
        return parse_date(value)

    @field_validator("category_details", mode="before")
    @classmethod
    def _details(cls, value: object) -> object:
        if isinstance(value, (dict, CategorySnapshot)):
            return value
        return None


class Budget(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: Optional[RecordId] = None
    category: Optional[RecordId] = None
    amount: float = 0.0
    spent_amount: float = 0.0
    percentage_used: Optional[float] = None

    @field_validator("id", "category", mode="before")
    @classmethod
    def _ident(cls, value: object) -> Optional[RecordId]:
        return _optional_id(value)

    @field_validator("amount", "spent_amount", mode="before")
    @classmethod
    def _amounts(cls, value: object) -> float:
        return coerce_amount(value)

    @field_validator("percentage_used", mode="before")
    @classmethod
    def _percentage(cls, value: object) -> Optional[float]:
        if value is None:
            return None
        return coerce_amount(value)

    @model_validator(mode="after")
    def _derive_percentage(self) -> "Budget":
        if self.percentage_used is None:
            if self.amount > 0:
                self.percentage_used = self.spent_amount / self.amount * 100
            else:
                self.percentage_used = 0.0
        return self


class UserProfile(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: Optional[RecordId] = None
    email: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    date_joined: Optional[str] = None
