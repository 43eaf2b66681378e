import math
from collections.abc import Mapping
from dataclasses import dataclass

MIN_STD_DEV = 0.01

_LOG_2PI = math.log(2 * math.pi)


@dataclass(frozen=True)
class GaussianParams:
    mean: float
    std_dev: float

    def __post_init__(self) -> None:
        if not self.std_dev > MIN_STD_DEV:
            object.__setattr__(self, "std_dev", MIN_STD_DEV)

    def log_density(self, x: float) -> float:
        z_score = (x - self.mean) / self.std_dev
        return -0.5 * (_LOG_2PI + 2 * math.log(self.std_dev) + z_score * z_score)


class RunningGaussian:
    """Welford accumulator for an amount distribution that grows one sample at a time."""

    def __init__(self) -> None:
        self.count = 0
        self.mean = 0.0
        self._m2 = 0.0

    def add(self, value: float) -> None:
        self.count += 1
        delta = value - self.mean
        self.mean += delta / self.count
        self._m2 += delta * (value - self.mean)

    @property
    def variance(self) -> float:
        if self.count == 0:
            return 0.0
        return max(self._m2 / self.count, 0.0)

    @property
    def params(self) -> GaussianParams:
        return GaussianParams(self.mean, math.sqrt(self.variance))


def laplace(count: float, total: float, buckets: int, alpha: float) -> float:
    return (count + alpha) / (total + alpha * buckets)


def normalize_log_scores(scores: Mapping[str, float]) -> dict[str, float]:
    """Turn log scores into a probability distribution using log-sum-exp.

    Labels whose score is not finite get no probability mass. When no label
    has a finite score the result is empty.
    """
    finite = {label: score for label, score in scores.items() if math.isfinite(score)}
    if not finite:
        return {}
    max_score = max(finite.values())
    weights = {label: math.exp(score - max_score) for label, score in finite.items()}
    total = sum(weights.values())
    return {label: weights.get(label, 0.0) / total for label in scores}
