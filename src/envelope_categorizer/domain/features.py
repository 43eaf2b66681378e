from __future__ import annotations

import math
import re
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any

from envelope_categorizer.errors import TransactionValidationError
from envelope_categorizer.models import AccountType, Transaction

_NON_TOKEN_CHARS = re.compile(r"[^a-z0-9\s]")


def tokenize(text: str) -> list[str]:
    """Lower-case, drop everything outside ``[a-z0-9\\s]`` and split on whitespace."""
    return _NON_TOKEN_CHARS.sub("", text.lower()).split()


@dataclass(frozen=True)
class TransactionFeatures:
    """Feature tuple shared by training and prediction.

    ``label`` is the envelope name (or a subscription marker) and is only
    required when the sample is used for training.
    """
    description: str
    amount: float
    timestamp: datetime
    account_type: AccountType
    account_name: str
    label: str | None = None
    tokens: tuple[str, ...] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        if not isinstance(self.description, str):
            raise TransactionValidationError("Transaction description is required")
        try:
            amount = float(self.amount)
        except (TypeError, ValueError) as exc:
            raise TransactionValidationError(f"Invalid transaction amount {self.amount!r}") from exc
        if not math.isfinite(amount) or amount <= 0:
            raise TransactionValidationError(f"Transaction amount must be positive, got {self.amount!r}")
        object.__setattr__(self, "amount", amount)
        if not isinstance(self.timestamp, datetime):
            raise TransactionValidationError("Transaction timestamp is required")
        if not isinstance(self.account_type, AccountType):
            raise TransactionValidationError(f"Unknown account type {self.account_type!r}")
        if self.account_name is None:
            raise TransactionValidationError("Transaction account name is required")
        object.__setattr__(self, "tokens", tuple(tokenize(self.description)))

    @property
    def day_of_week(self) -> int:
        return self.timestamp.weekday()

    @property
    def month(self) -> int:
        return self.timestamp.month


def require_label(sample: TransactionFeatures) -> str:
    if not sample.label:
        raise TransactionValidationError(
            f"Training sample '{sample.description[:50]}' has no label"
        )
    return sample.label


def from_transaction(tx: Transaction) -> TransactionFeatures:
    if tx.account is None:
        raise TransactionValidationError("Transaction has no account")
    return TransactionFeatures(
        description=tx.description,
        amount=float(tx.amount),
        timestamp=tx.date,
        account_type=tx.account.type,
        account_name=tx.account.name,
        label=tx.envelope.name if tx.envelope else None,
    )


def parse_date(value: str | datetime | None) -> datetime:
    if isinstance(value, datetime):
        return value
    if isinstance(value, str) and value:
        try:
            return datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError as exc:
            raise TransactionValidationError(f"Invalid transaction date '{value}'") from exc
    raise TransactionValidationError("Transaction date is required")


def parse_amount(value: Any) -> float:
    if value is None or value == "":
        raise TransactionValidationError("Transaction amount is required")
    try:
        return float(Decimal(str(value)))
    except (InvalidOperation, ValueError) as exc:
        raise TransactionValidationError(f"Invalid transaction amount '{value}'") from exc


def parse_account_type(value: Any) -> AccountType:
    if isinstance(value, AccountType):
        return value
    if isinstance(value, str):
        key = value.strip().upper().replace(" ", "_")
        try:
            return AccountType(key)
        except ValueError:
            pass
    raise TransactionValidationError(f"Unknown account type {value!r}")


def from_record(record: dict[str, Any]) -> TransactionFeatures:
    """Build features from a plain history record (e.g. a decoded JSON row)."""
    description = record.get("description")
    if description is None:
        raise TransactionValidationError("Transaction description is required")
    account_name = record.get("account_name")
    if not account_name:
        raise TransactionValidationError("Transaction account name is required")
    label = record.get("label") or record.get("envelope") or None

    return TransactionFeatures(
        description=str(description),
        amount=parse_amount(record.get("amount")),
        timestamp=parse_date(record.get("date") or record.get("timestamp")),
        account_type=parse_account_type(record.get("account_type")),
        account_name=str(account_name),
        label=str(label) if label else None,
    )
