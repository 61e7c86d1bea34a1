"""
Shapes raw model output into ranked category predictions.

A model provider gives back ``(label, score)`` pairs with no guarantees:
labels may repeat, order is arbitrary and scores may drift slightly outside
[0, 1]. :class:`PredictionRankingPolicy` turns that into a
:class:`PredictionResult` where every category appears once, every
probability is in range and the list is sorted most confident first.
"""

import math
import numbers
from collections import OrderedDict
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, List, Optional, Tuple

DEFAULT_SENTINEL = "unknown"


class PredictionReason(str, Enum):
    """Why a result carries the sentinel instead of a real category."""
    NO_PREDICTION = "no_prediction"
    MODEL_UNAVAILABLE = "model_unavailable"


@dataclass(frozen=True)
class Hypothesis:
    category: str
    probability: float


@dataclass(frozen=True)
class PredictionResult:
    """
    Ranked hypotheses for one description.

    ``top_label`` is the category of the first hypothesis, or the sentinel
    when there is none. ``reason`` is ``None`` for a normal prediction.
    """
    hypotheses: Tuple[Hypothesis, ...] = ()
    top_label: str = DEFAULT_SENTINEL
    reason: Optional[PredictionReason] = None

    def as_pairs(self) -> List[Tuple[str, float]]:
        return [(h.category, h.probability) for h in self.hypotheses]

    def probabilities(self) -> "OrderedDict[str, float]":
        return OrderedDict(self.as_pairs())

    def __len__(self) -> int:
        return len(self.hypotheses)


def clamp_probability(value: float) -> float:
    """
    Forces a score into [0.0, 1.0]. NaN becomes 0.0.

    :param value: Raw score reported by the model.
    :type value: float
    :return: The clamped probability.
    :rtype: float
    """
    value = float(value)
    if math.isnan(value):
        return 0.0
    return min(1.0, max(0.0, value))


@dataclass
class PredictionRankingPolicy:
    """
    Deduplicates, clamps, sorts and truncates raw ``(label, score)`` pairs.

    Ties are broken by the position at which a category first appears in the
    raw output, which is the model's native label order. The result therefore
    depends only on the raw output, so the same input always ranks the same
    way.

    :param min_probability: Hypotheses whose clamped probability is strictly
                            below this value are dropped (0.0 keeps everything).
    :type min_probability: float
    :param sentinel: Category used as ``top_label`` when nothing survives.
    :type sentinel: str
    """
    min_probability: float = 0.0
    sentinel: str = DEFAULT_SENTINEL

    def normalize(self, raw: Iterable[Tuple[str, float]], k: Optional[int] = None) -> PredictionResult:
        """
        Builds a :class:`PredictionResult` from raw model output.

        :param raw: ``(category, probability)`` pairs in the model's native order.
        :type raw: iterable of tuple(str, float)
        :param k: Maximum number of hypotheses to keep. ``None`` keeps all.
        :type k: int, optional
        :return: Ranked result. Empty (with the sentinel and ``NO_PREDICTION``)
                 if nothing usable was produced.
        :rtype: PredictionResult
        :raises ValueError: If ``k`` is given and is not a positive integer.
        """
        if k is not None:
            validate_k(k)

        # category -> (best probability, first position)
        best = {}
        for position, (category, probability) in enumerate(raw):
            category = str(category)
            probability = clamp_probability(probability)
            if category in best:
                seen, first = best[category]
                best[category] = (max(seen, probability), first)
            else:
                best[category] = (probability, position)

        ranked = sorted(best.items(), key=lambda item: (-item[1][0], item[1][1]))
        hypotheses = [
            Hypothesis(category, probability)
            for category, (probability, _) in ranked
            if probability >= self.min_probability
        ]
        if k is not None:
            hypotheses = hypotheses[:k]

        if not hypotheses:
            return PredictionResult(top_label=self.sentinel, reason=PredictionReason.NO_PREDICTION)
        return PredictionResult(hypotheses=tuple(hypotheses), top_label=hypotheses[0].category)

    def unavailable(self) -> PredictionResult:
        """Result returned when no model could be loaded."""
        return PredictionResult(top_label=self.sentinel, reason=PredictionReason.MODEL_UNAVAILABLE)


def validate_k(k: int) -> int:
    # bool is an int subclass, reject it explicitly
    if isinstance(k, bool) or not isinstance(k, numbers.Integral) or k < 1:
        raise ValueError(f"k must be a positive integer, got {k!r}")
    return k
