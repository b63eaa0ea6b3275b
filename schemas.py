from datetime import date
from decimal import Decimal
from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from models import TransactionType


class TransactionIn(BaseModel):
    amount: Decimal = Field(..., ge=0, decimal_places=2)
    type: TransactionType
    category: Optional[Union[int, str]] = None
    date: date
    description: str = Field(..., min_length=1, max_length=200)
    merchant: Optional[str] = Field(default=None, max_length=100)
    notes: Optional[str] = Field(default=None, max_length=500)


class CategoryIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    type: TransactionType
    icon: str = Field(default="📦", max_length=8)
    color: str = Field(default="gray", max_length=20)


class BudgetIn(BaseModel):
    category: Union[int, str]
    amount: Decimal = Field(..., gt=0, decimal_places=2)


class LoginIn(BaseModel):
    email: str = Field(..., min_length=3, max_length=254)
    password: str = Field(..., min_length=1)


class RegisterIn(BaseModel):
    email: str = Field(..., min_length=3, max_length=254)
    password: str = Field(..., min_length=8)
    password2: str = Field(..., min_length=8)
    first_name: Optional[str] = Field(default=None, max_length=150)
    last_name: Optional[str] = Field(default=None, max_length=150)


class ProfileUpdateIn(BaseModel):
    model_config = ConfigDict(extra="forbid")

    first_name: Optional[str] = Field(default=None, max_length=150)
    last_name: Optional[str] = Field(default=None, max_length=150)
    email: Optional[str] = Field(default=None, min_length=3, max_length=254)
