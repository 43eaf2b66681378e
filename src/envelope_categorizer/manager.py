from datetime import datetime
from typing import Any

from envelope_categorizer.classifiers.ensemble import ClassifierEnsemble
from envelope_categorizer.classifiers.naive_bayes import (
    NON_SUBSCRIPTION_LABEL,
    SUBSCRIPTION_LABEL,
    NaiveBayesClassifier,
)
from envelope_categorizer.core import settings
from envelope_categorizer.domain.features import TransactionFeatures, from_transaction
from envelope_categorizer.errors import TransactionValidationError
from envelope_categorizer.logger import get_logger
from envelope_categorizer.models import CategorizationResult, Envelope, Transaction
from envelope_categorizer.services.history import TransactionHistoryProvider
from envelope_categorizer.services.suggestions import suggest_envelopes_for_account

logger = get_logger(__name__)


class CategorizerService:
    def __init__(
        self,
        history: TransactionHistoryProvider | None = None,
        min_account_samples: int | None = None,
        min_probability: float | None = None,
    ) -> None:
        self.history = history
        self.ensemble = ClassifierEnsemble(
            min_account_samples=(
                settings.ACCOUNT_MODEL_MIN_SAMPLES if min_account_samples is None else min_account_samples
            ),
            min_probability=(
                settings.PREDICTION_MIN_PROBABILITY if min_probability is None else min_probability
            ),
            sample_source=self._load_samples,
        )
        self.subscriptions = NaiveBayesClassifier(subscription_mode=True)
        self.last_load: dict[str, int] = {"trained": 0, "skipped": 0, "total": 0}

    def _load_samples(self) -> list[TransactionFeatures]:
        if self.history is None:
            logger.warning("[TRAIN] No transaction history provider configured.")
            self.last_load = {"trained": 0, "skipped": 0, "total": 0}
            return []

        transactions = self.history.fetch_transactions()
        samples: list[TransactionFeatures] = []
        skipped_uncategorized = 0
        skipped_invalid = 0
        for tx in transactions:
            if tx.envelope is None:
                skipped_uncategorized += 1
                continue
            try:
                samples.append(from_transaction(tx))
            except TransactionValidationError as e:
                logger.debug("[TRAIN] Skipping transaction %s: %s", tx.id, e.detail)
                skipped_invalid += 1

        logger.info(
            "[TRAIN] Loaded %s transactions. Usable: %s, Skipped (no envelope): %s, Skipped (invalid): %s",
            len(transactions),
            len(samples),
            skipped_uncategorized,
            skipped_invalid,
        )
        self.last_load = {
            "trained": len(samples),
            "skipped": skipped_uncategorized + skipped_invalid,
            "total": len(transactions),
        }
        return samples

    def retrain(self) -> dict[str, Any]:
        """
        Rebuild the envelope models from the full transaction history.
        """
        self.ensemble.retrain()
        return {"status": "success", **self.last_load}

    def predict_envelopes(self, transaction: Transaction) -> dict[str, float]:
        return self.ensemble.predict(from_transaction(transaction))

    def categorize(self, transaction: Transaction) -> list[CategorizationResult]:
        predictions = self.predict_envelopes(transaction)
        results = [
            CategorizationResult(
                envelope=Envelope(name=name),
                confidence=probability,
                source="ensemble",
            )
            for name, probability in sorted(predictions.items(), key=lambda item: item[1], reverse=True)
        ]
        if results:
            logger.debug(
                "[PREDICT] '%s' -> '%s' (confidence: %.2f)",
                transaction.description[:50],
                results[0].envelope.name,
                results[0].confidence,
            )
        else:
            logger.debug("[PREDICT] No envelope suggestion for '%s'", transaction.description[:50])
        return results

    def learn_subscription(self, transaction: Transaction, is_subscription: bool) -> None:
        label = SUBSCRIPTION_LABEL if is_subscription else NON_SUBSCRIPTION_LABEL
        self.subscriptions.train_incremental(from_transaction(transaction), label)

    def subscription_probability(self, transaction: Transaction) -> float:
        return self.subscriptions.predict_binary(from_transaction(transaction))

    def suggest_envelopes(self, account_name: str, now: datetime | None = None) -> dict[str, float]:
        if self.history is None:
            return {}
        return suggest_envelopes_for_account(self.history.fetch_transactions(), account_name, now=now)
