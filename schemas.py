import datetime as dt
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from models import AccountKind, AlertPeriod, CategoryKind, TransactionKind


class AccountIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    kind: AccountKind = AccountKind.checking
    initial_balance_cents: int = 0
    accrues: bool = True
    color: Optional[str] = Field(default=None, max_length=7)
    icon: Optional[str] = Field(default=None, max_length=16)


class AccountUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    kind: Optional[AccountKind] = None
    initial_balance_cents: Optional[int] = None
    accrues: Optional[bool] = None
    color: Optional[str] = Field(default=None, max_length=7)
    icon: Optional[str] = Field(default=None, max_length=16)


class CategoryIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    kind: CategoryKind
    icon: Optional[str] = Field(default=None, max_length=16)
    color: Optional[str] = Field(default=None, max_length=7)


class TransactionIn(BaseModel):
    account_id: int
    category_id: int
    amount_cents: int = Field(..., gt=0)
    kind: TransactionKind
    description: str = Field(default="", max_length=200)
    date: dt.date


class TransactionUpdate(BaseModel):
    """Editable fields of a posted transaction.

    Kind and installment/recurring linkage are fixed at creation, so they are
    rejected here instead of silently ignored.
    """

    model_config = ConfigDict(extra="forbid")

    account_id: Optional[int] = None
    category_id: Optional[int] = None
    amount_cents: Optional[int] = Field(default=None, gt=0)
    description: Optional[str] = Field(default=None, max_length=200)
    date: Optional[dt.date] = None


class InstallmentPlanIn(BaseModel):
    description: str = Field(..., min_length=1, max_length=200)
    total_amount_cents: int = Field(..., gt=0)
    installment_amount_cents: int = Field(..., gt=0)
    installment_count: int = Field(..., ge=1)
    category_id: int
    account_id: int
    start_date: dt.date
    already_paid: int = Field(default=0, ge=0)


class RecurringRuleIn(BaseModel):
    account_id: int
    category_id: int
    description: str = Field(..., min_length=1, max_length=200)
    amount_cents: int = Field(..., gt=0)
    kind: CategoryKind
    day_of_month: int = Field(..., ge=1, le=31)
    active: bool = True


class AlertIn(BaseModel):
    category_id: int
    limit_amount_cents: int = Field(..., gt=0)
    period: AlertPeriod = AlertPeriod.monthly
    active: bool = True


class GoalIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=120)
    target_amount_cents: int = Field(..., gt=0)
    current_amount_cents: int = Field(default=0, ge=0)
    deadline: Optional[dt.date] = None
    color: Optional[str] = Field(default=None, max_length=7)
    icon: Optional[str] = Field(default=None, max_length=16)


class ToggleIn(BaseModel):
    active: bool


class GoalProgressIn(BaseModel):
    current_amount_cents: int = Field(..., ge=0)
