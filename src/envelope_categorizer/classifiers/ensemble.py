import threading
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType

from envelope_categorizer.domain.features import TransactionFeatures, require_label
from envelope_categorizer.logger import get_logger
from envelope_categorizer.models import AccountType

from .base import Classifier
from .naive_bayes import NaiveBayesClassifier

logger = get_logger(__name__)

GENERAL_WEIGHT = 0.4
ACCOUNT_TYPE_WEIGHT = 0.3
ACCOUNT_NAME_WEIGHT = 0.3

DEFAULT_MIN_ACCOUNT_SAMPLES = 50
DEFAULT_MIN_PROBABILITY = 0.05

SampleSource = Callable[[], Iterable[TransactionFeatures]]


@dataclass(frozen=True)
class EnsembleState:
    general: NaiveBayesClassifier = field(default_factory=NaiveBayesClassifier)
    account_type_models: Mapping[AccountType, NaiveBayesClassifier] = field(default_factory=dict)
    account_models: Mapping[str, NaiveBayesClassifier] = field(default_factory=dict)


def _train_model(samples: list[TransactionFeatures]) -> NaiveBayesClassifier:
    model = NaiveBayesClassifier()
    model.train(samples)
    return model


class ClassifierEnsemble(Classifier):
    """General model blended with account-type and per-account models.

    Account-type models exist for every type that has samples; per-account
    models only for accounts with at least ``min_account_samples`` samples.
    Any slice without its own model is answered by the general model.
    Readers never take the lock; writers are serialised.
    """

    def __init__(
        self,
        min_account_samples: int = DEFAULT_MIN_ACCOUNT_SAMPLES,
        min_probability: float = DEFAULT_MIN_PROBABILITY,
        sample_source: SampleSource | None = None,
    ) -> None:
        self.min_account_samples = min_account_samples
        self.min_probability = min_probability
        self.sample_source = sample_source
        self._state = EnsembleState()
        self._samples: list[TransactionFeatures] = []
        self._write_lock = threading.RLock()

    @property
    def state(self) -> EnsembleState:
        return self._state

    @property
    def general_model(self) -> NaiveBayesClassifier:
        return self._state.general

    @property
    def account_type_models(self) -> Mapping[AccountType, NaiveBayesClassifier]:
        return MappingProxyType(dict(self._state.account_type_models))

    @property
    def account_models(self) -> Mapping[str, NaiveBayesClassifier]:
        return MappingProxyType(dict(self._state.account_models))

    def swap(self, state: EnsembleState) -> EnsembleState:
        """Install a new state and return the one it replaced."""
        with self._write_lock:
            previous = self._state
            self._state = state
        return previous

    def build_state(self, samples: list[TransactionFeatures]) -> EnsembleState:
        by_type: dict[AccountType, list[TransactionFeatures]] = {}
        by_account: dict[str, list[TransactionFeatures]] = {}
        for sample in samples:
            by_type.setdefault(sample.account_type, []).append(sample)
            by_account.setdefault(sample.account_name, []).append(sample)

        account_type_models = {
            account_type: _train_model(by_type[account_type])
            for account_type in AccountType
            if by_type.get(account_type)
        }

        account_models: dict[str, NaiveBayesClassifier] = {}
        for account_name, account_samples in by_account.items():
            if len(account_samples) >= self.min_account_samples:
                account_models[account_name] = _train_model(account_samples)
            else:
                logger.debug(
                    "[ENSEMBLE] Account '%s' has %s samples (< %s); using the general model.",
                    account_name,
                    len(account_samples),
                    self.min_account_samples,
                )

        return EnsembleState(
            general=_train_model(samples),
            account_type_models=account_type_models,
            account_models=account_models,
        )

    def train_all(self, samples: Iterable[TransactionFeatures]) -> None:
        samples = list(samples)
        if not samples:
            logger.warning("[ENSEMBLE] No transactions available for training; keeping current models.")
            return
        for sample in samples:
            require_label(sample)

        with self._write_lock:
            state = self.build_state(samples)
            self.swap(state)
            self._samples = samples
        logger.info(
            "[ENSEMBLE] Trained with %s transactions: %s account-type models, %s account models",
            len(samples),
            len(state.account_type_models),
            len(state.account_models),
        )

    def train(self, samples: Iterable[TransactionFeatures]) -> None:
        self.train_all(samples)

    def retrain(self) -> None:
        """Rebuild every model from the sample source, or from the last training set.

        The specialised maps are replaced wholesale; an empty refresh keeps the
        current state. Loading, building and swapping happen under the write
        lock, so overlapping rebuilds install in the order they started.
        """
        with self._write_lock:
            samples = list(self.sample_source()) if self.sample_source else list(self._samples)
            self.train_all(samples)

    def predict(self, sample: TransactionFeatures) -> dict[str, float]:
        state = self._state
        general = state.general.predict(sample)
        by_type = state.account_type_models.get(sample.account_type, state.general).predict(sample)
        by_account = state.account_models.get(sample.account_name, state.general).predict(sample)

        labels = dict.fromkeys([*general, *by_type, *by_account])
        blended = {
            label: GENERAL_WEIGHT * general.get(label, 0.0)
            + ACCOUNT_TYPE_WEIGHT * by_type.get(label, 0.0)
            + ACCOUNT_NAME_WEIGHT * by_account.get(label, 0.0)
            for label in labels
        }

        total = sum(blended.values())
        if not total > 0:
            return {}

        return {
            label: score / total
            for label, score in blended.items()
            if score / total > self.min_probability
        }
