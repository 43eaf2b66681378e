from abc import ABC, abstractmethod
from collections.abc import Iterable

from envelope_categorizer.domain.features import TransactionFeatures


class Classifier(ABC):
    @abstractmethod
    def train(self, samples: Iterable[TransactionFeatures]) -> None:
        """Rebuild the model from labelled samples."""
        pass

    @abstractmethod
    def predict(self, sample: TransactionFeatures) -> dict[str, float]:
        """Return a label -> probability mapping for the sample."""
        pass
