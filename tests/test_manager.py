from datetime import datetime, timedelta
from decimal import Decimal
from unittest.mock import patch

import pytest

from envelope_categorizer.manager import CategorizerService
from envelope_categorizer.models import Account, AccountType, Envelope, Transaction
from envelope_categorizer.services.history import InMemoryHistoryProvider

EVERYDAY = Account(name="Everyday", type=AccountType.CHECKING)
VISA = Account(name="Visa", type=AccountType.CREDIT_CARD)


def make_tx(
    description: str,
    amount: str,
    envelope: str | None = None,
    account: Account = EVERYDAY,
    day: int = 0,
) -> Transaction:
    return Transaction(
        description=description,
        amount=Decimal(amount),
        date=datetime(2024, 3, 1) + timedelta(days=day),
        account=account,
        envelope=Envelope(name=envelope) if envelope else None,
    )


@pytest.fixture
def history() -> InMemoryHistoryProvider:
    provider = InMemoryHistoryProvider()
    for day in range(6):
        provider.add(make_tx("Walmart Supercenter", f"{50 + day}.00", "Groceries", day=day))
        provider.add(make_tx("Uber Trip", f"{12 + day}.50", "Transport", VISA, day=day))
    provider.add(make_tx("Mystery Payment", "20.00"))
    provider.add(make_tx("Refund Walmart", "-15.00", "Groceries"))
    return provider


@pytest.fixture
def service(history: InMemoryHistoryProvider) -> CategorizerService:
    return CategorizerService(history=history, min_account_samples=50, min_probability=0.05)


def test_retrain_reports_counts(service: CategorizerService) -> None:
    result = service.retrain()

    assert result == {"status": "success", "trained": 12, "skipped": 2, "total": 14}
    assert set(service.ensemble.general_model.model.labels) == {"Groceries", "Transport"}


def test_categorize_returns_sorted_results(service: CategorizerService) -> None:
    service.retrain()

    results = service.categorize(make_tx("Walmart", "53.00", day=10))

    assert results
    assert results[0].envelope.name == "Groceries"
    assert results[0].source == "ensemble"
    confidences = [result.confidence for result in results]
    assert confidences == sorted(confidences, reverse=True)
    assert all(confidence > 0.05 for confidence in confidences)


def test_categorize_before_training_is_empty(service: CategorizerService) -> None:
    assert service.categorize(make_tx("Walmart", "53.00")) == []


def test_retrain_without_history() -> None:
    service = CategorizerService()
    assert service.retrain() == {"status": "success", "trained": 0, "skipped": 0, "total": 0}
    assert service.suggest_envelopes("Everyday") == {}


def test_retrain_picks_up_new_history(service: CategorizerService, history: InMemoryHistoryProvider) -> None:
    service.retrain()
    history.add(make_tx("Netflix.com", "15.49", "Entertainment", VISA))

    result = service.retrain()

    assert result["trained"] == 13
    assert "Entertainment" in service.ensemble.general_model.model.labels


def test_categorize_orders_ensemble_output(service: CategorizerService) -> None:
    with patch.object(service.ensemble, "predict", return_value={"Dining": 0.2, "Groceries": 0.7, "Fuel": 0.1}):
        results = service.categorize(make_tx("Anything", "1.00"))

    assert [result.envelope.name for result in results] == ["Groceries", "Dining", "Fuel"]


def test_subscription_learning(service: CategorizerService) -> None:
    netflix = make_tx("Netflix.com", "15.49", account=VISA)
    assert service.subscription_probability(netflix) == 0.5

    service.learn_subscription(netflix, is_subscription=True)
    service.learn_subscription(make_tx("Walmart Supercenter", "80.00"), is_subscription=False)

    assert service.subscription_probability(make_tx("Netflix.com", "15.49", account=VISA, day=30)) > 0.5


def test_suggest_envelopes_uses_history(service: CategorizerService) -> None:
    suggestions = service.suggest_envelopes("Everyday", now=datetime(2024, 3, 20))
    assert set(suggestions) == {"Groceries"}
