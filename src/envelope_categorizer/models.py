from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel


class AccountType(str, Enum):
    CHECKING = "CHECKING"
    SAVINGS = "SAVINGS"
    CREDIT_CARD = "CREDIT_CARD"
    CASH = "CASH"
    INVESTMENT = "INVESTMENT"

    @property
    def display_name(self) -> str:
        return self.value.replace("_", " ").title()


class Account(BaseModel):
    name: str
    type: AccountType = AccountType.CHECKING


class Envelope(BaseModel):
    name: str
    id: Optional[str] = None  # ledger ID, if the caller has one


class Transaction(BaseModel):
    description: str
    amount: Decimal
    date: datetime
    account: Account
    envelope: Optional[Envelope] = None
    id: Optional[str] = None


class CategorizationResult(BaseModel):
    envelope: Envelope
    confidence: float  # 0.0 to 1.0
    source: str  # "ensemble"
