import math
import threading
from collections import Counter
from collections.abc import Iterable
from dataclasses import dataclass, field

from envelope_categorizer.domain.features import TransactionFeatures, require_label
from envelope_categorizer.logger import get_logger
from envelope_categorizer.models import AccountType

from .base import Classifier
from .stats import GaussianParams, RunningGaussian, laplace, normalize_log_scores

logger = get_logger(__name__)

ALPHA = 1.0  # Laplace smoothing

WORD_WEIGHT = 0.4
AMOUNT_WEIGHT = 0.25
TIME_WEIGHT = 0.15
ACCOUNT_TYPE_WEIGHT = 0.1
ACCOUNT_NAME_WEIGHT = 0.1

DAYS_PER_WEEK = 7
MONTHS_PER_YEAR = 12
ACCOUNT_TYPES = tuple(AccountType)

SUBSCRIPTION_LABEL = "SUBSCRIPTION"
NON_SUBSCRIPTION_LABEL = "NON_SUBSCRIPTION"

NEUTRAL_PROBABILITY = 0.5


@dataclass(frozen=True)
class ProbabilityModel:
    """Immutable set of probability tables produced by one training run.

    Days are ``datetime.weekday()`` values (0 is Monday) and months run from
    1 to 12. Lookups for buckets the tables do not hold fall back to the
    uniform smoothed value for that feature.
    """
    category_priors: dict[str, float] = field(default_factory=dict)
    word_likelihoods: dict[str, dict[str, float]] = field(default_factory=dict)
    amount_distributions: dict[str, GaussianParams] = field(default_factory=dict)
    day_of_week_likelihoods: dict[str, dict[int, float]] = field(default_factory=dict)
    month_likelihoods: dict[str, dict[int, float]] = field(default_factory=dict)
    account_type_likelihoods: dict[str, dict[AccountType, float]] = field(default_factory=dict)
    account_name_likelihoods: dict[str, dict[str, float]] = field(default_factory=dict)
    vocabulary: frozenset[str] = frozenset()
    account_names: frozenset[str] = frozenset()
    sample_count: int = 0

    @property
    def labels(self) -> list[str]:
        return list(self.category_priors)

    @property
    def is_trained(self) -> bool:
        return bool(self.category_priors)

    def word_likelihood(self, label: str, token: str) -> float:
        row = self.word_likelihoods.get(label, {})
        if token in row:
            return row[token]
        return ALPHA / (max(len(self.vocabulary), 1) * ALPHA)

    def day_likelihood(self, label: str, day: int) -> float:
        return self.day_of_week_likelihoods.get(label, {}).get(day, ALPHA / (DAYS_PER_WEEK * ALPHA))

    def month_likelihood(self, label: str, month: int) -> float:
        return self.month_likelihoods.get(label, {}).get(month, ALPHA / (MONTHS_PER_YEAR * ALPHA))

    def account_type_likelihood(self, label: str, account_type: AccountType) -> float:
        return self.account_type_likelihoods.get(label, {}).get(
            account_type, ALPHA / (len(ACCOUNT_TYPES) * ALPHA)
        )

    def account_name_likelihood(self, label: str, account_name: str) -> float:
        return self.account_name_likelihoods.get(label, {}).get(
            account_name, ALPHA / (max(len(self.account_names), 1) * ALPHA)
        )

    def log_score(self, label: str, sample: TransactionFeatures) -> float:
        word_score = sum(math.log(self.word_likelihood(label, token)) for token in sample.tokens)
        amount_score = self.amount_distributions[label].log_density(sample.amount)
        day_score = math.log(self.day_likelihood(label, sample.day_of_week))
        month_score = math.log(self.month_likelihood(label, sample.month))
        account_type_score = math.log(self.account_type_likelihood(label, sample.account_type))
        account_name_score = math.log(self.account_name_likelihood(label, sample.account_name))

        return (
            math.log(self.category_priors[label])
            + WORD_WEIGHT * word_score
            + AMOUNT_WEIGHT * amount_score
            + TIME_WEIGHT * (day_score + month_score)
            + ACCOUNT_TYPE_WEIGHT * account_type_score
            + ACCOUNT_NAME_WEIGHT * account_name_score
        )

    def predict(self, sample: TransactionFeatures) -> dict[str, float]:
        scores = {label: self.log_score(label, sample) for label in self.category_priors}
        return normalize_log_scores(scores)


class _LabelCounts:
    """Raw feature counts for the samples of one label."""

    def __init__(self) -> None:
        self.count = 0
        self.words: Counter[str] = Counter()
        self.days: Counter[int] = Counter()
        self.months: Counter[int] = Counter()
        self.account_types: Counter[AccountType] = Counter()
        self.account_names: Counter[str] = Counter()
        self.amounts = RunningGaussian()

    def add(self, sample: TransactionFeatures) -> None:
        self.count += 1
        self.words.update(sample.tokens)
        self.days[sample.day_of_week] += 1
        self.months[sample.month] += 1
        self.account_types[sample.account_type] += 1
        self.account_names[sample.account_name] += 1
        self.amounts.add(sample.amount)


def _build_model(
    counts: dict[str, _LabelCounts],
    vocabulary: list[str],
    account_names: list[str],
    label_buckets: int,
) -> ProbabilityModel:
    total = sum(label_counts.count for label_counts in counts.values())
    model = ProbabilityModel(
        vocabulary=frozenset(vocabulary),
        account_names=frozenset(account_names),
        sample_count=total,
    )

    for label, label_counts in counts.items():
        model.category_priors[label] = laplace(label_counts.count, total, label_buckets, ALPHA)

        total_words = sum(label_counts.words.values())
        model.word_likelihoods[label] = {
            token: laplace(label_counts.words[token], total_words, len(vocabulary), ALPHA)
            for token in vocabulary
        }

        model.amount_distributions[label] = label_counts.amounts.params

        model.day_of_week_likelihoods[label] = {
            day: laplace(label_counts.days[day], label_counts.count, DAYS_PER_WEEK, ALPHA)
            for day in range(DAYS_PER_WEEK)
        }
        model.month_likelihoods[label] = {
            month: laplace(label_counts.months[month], label_counts.count, MONTHS_PER_YEAR, ALPHA)
            for month in range(1, MONTHS_PER_YEAR + 1)
        }

        model.account_type_likelihoods[label] = {
            account_type: laplace(
                label_counts.account_types[account_type], label_counts.count, len(ACCOUNT_TYPES), ALPHA
            )
            for account_type in ACCOUNT_TYPES
        }
        model.account_name_likelihoods[label] = {
            name: laplace(label_counts.account_names[name], label_counts.count, len(account_names), ALPHA)
            for name in account_names
        }

    return model


def build_probability_model(samples: Iterable[TransactionFeatures]) -> ProbabilityModel:
    """Compute every table from scratch over labelled samples."""
    counts: dict[str, _LabelCounts] = {}
    vocabulary: dict[str, None] = {}
    account_names: dict[str, None] = {}

    for sample in samples:
        counts.setdefault(require_label(sample), _LabelCounts()).add(sample)
        vocabulary.update(dict.fromkeys(sample.tokens))
        account_names[sample.account_name] = None

    return _build_model(counts, list(vocabulary), list(account_names), label_buckets=len(counts))


class NaiveBayesClassifier(Classifier):
    """Hybrid Naive Bayes over words, amount, timing and account identity.

    Envelope mode (the default) rebuilds its tables on every ``train`` call.
    Subscription mode keeps SUBSCRIPTION / NON_SUBSCRIPTION counts that grow
    one sample at a time through ``train_incremental``; ``predict_binary``
    answers P(subscription) in either mode.

    Models are immutable snapshots swapped in under a lock, so readers never
    see a half-built table.
    """

    def __init__(self, subscription_mode: bool = False) -> None:
        self.subscription_mode = subscription_mode
        self._lock = threading.Lock()
        self._model = ProbabilityModel()
        self._reset_binary()

    @property
    def model(self) -> ProbabilityModel:
        return self._model

    @property
    def binary_model(self) -> ProbabilityModel:
        return self._binary_model

    def _reset_binary(self) -> None:
        self._binary_counts = {
            SUBSCRIPTION_LABEL: _LabelCounts(),
            NON_SUBSCRIPTION_LABEL: _LabelCounts(),
        }
        self._binary_vocabulary: dict[str, None] = {}
        self._binary_account_names: dict[str, None] = {}
        self._binary_model = ProbabilityModel()

    def _learn_binary(self, sample: TransactionFeatures, label: str) -> None:
        target = SUBSCRIPTION_LABEL if label == SUBSCRIPTION_LABEL else NON_SUBSCRIPTION_LABEL
        self._binary_counts[target].add(sample)
        self._binary_vocabulary.update(dict.fromkeys(sample.tokens))
        self._binary_account_names[sample.account_name] = None

    def _rebuild_binary_model(self) -> None:
        self._binary_model = _build_model(
            self._binary_counts,
            list(self._binary_vocabulary),
            list(self._binary_account_names),
            label_buckets=2,
        )

    def train(self, samples: Iterable[TransactionFeatures]) -> None:
        samples = list(samples)
        mode = "subscription" if self.subscription_mode else "envelope"
        if not samples:
            logger.warning("[TRAIN] No transactions available for training; keeping the current %s model.", mode)
            return

        labels = [require_label(sample) for sample in samples]
        logger.info("[TRAIN] Training Naive Bayes with %s transactions in %s mode", len(samples), mode)

        if self.subscription_mode:
            with self._lock:
                self._reset_binary()
                for sample, label in zip(samples, labels):
                    self._learn_binary(sample, label)
                self._rebuild_binary_model()
            vocabulary_size = len(self._binary_model.vocabulary)
        else:
            model = build_probability_model(samples)
            with self._lock:
                self._model = model
            vocabulary_size = len(model.vocabulary)

        logger.info("[TRAIN] Training complete. Vocabulary size: %s", vocabulary_size)

    def train_incremental(self, sample: TransactionFeatures, label: str | None = None) -> None:
        label = label or require_label(sample)
        with self._lock:
            self._learn_binary(sample, label)
            self._rebuild_binary_model()
            logger.debug(
                "[TRAIN] Learned '%s' as %s (subscription=%s, non-subscription=%s)",
                sample.description[:50],
                label,
                self._binary_counts[SUBSCRIPTION_LABEL].count,
                self._binary_counts[NON_SUBSCRIPTION_LABEL].count,
            )

    def predict_binary(self, sample: TransactionFeatures) -> float:
        with self._lock:
            model = self._binary_model
        if model.sample_count == 0:
            return NEUTRAL_PROBABILITY

        probability = model.predict(sample).get(SUBSCRIPTION_LABEL, math.nan)
        if math.isnan(probability):
            return NEUTRAL_PROBABILITY
        return probability

    def predict(self, sample: TransactionFeatures) -> dict[str, float]:
        if self.subscription_mode:
            probability = self.predict_binary(sample)
            return {
                SUBSCRIPTION_LABEL: probability,
                NON_SUBSCRIPTION_LABEL: 1.0 - probability,
            }

        model = self._model
        if not model.is_trained:
            logger.debug("[PREDICT] Model not trained yet; no prediction for '%s'", sample.description[:50])
            return {}
        return model.predict(sample)
