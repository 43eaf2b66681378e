from collections.abc import Iterable
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal

from envelope_categorizer.domain.timefmt import months_before, to_local_naive
from envelope_categorizer.models import Transaction

FREQUENCY_WEIGHT = 0.5
AMOUNT_WEIGHT = 0.5
LOOKBACK_MONTHS = 1


def suggest_envelopes_for_account(
    transactions: Iterable[Transaction],
    account_name: str,
    now: datetime | None = None,
) -> dict[str, float]:
    """Score the envelopes an account paid into over the last month.

    Each envelope gets ``0.5 * share of transactions + 0.5 * share of amount``,
    the amount share rounded half-up to two decimals. Aware dates are compared
    in local time.
    """
    cutoff = months_before(to_local_naive(now or datetime.now()), LOOKBACK_MONTHS)
    recent = [
        tx for tx in transactions
        if tx.account.name == account_name and tx.envelope is not None and to_local_naive(tx.date) > cutoff
    ]
    if not recent:
        return {}

    counts: dict[str, int] = {}
    amounts: dict[str, Decimal] = {}
    for tx in recent:
        name = tx.envelope.name
        counts[name] = counts.get(name, 0) + 1
        amounts[name] = amounts.get(name, Decimal("0")) + tx.amount

    total_amount = sum(amounts.values(), Decimal("0"))
    scores: dict[str, float] = {}
    for name, count in counts.items():
        frequency_score = count / len(recent)
        if total_amount:
            amount_score = float((amounts[name] / total_amount).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))
        else:
            amount_score = 0.0
        scores[name] = FREQUENCY_WEIGHT * frequency_score + AMOUNT_WEIGHT * amount_score
    return scores
