"""
Transaction category prediction.

This module works with any model provider that exposes ``load()`` and
``classify(text)``. To use it with a saved Keras model:
::

    from category_classifier import CategoryClassifier
    from category_classifier.keras_provider import KerasModelProvider

    provider = KerasModelProvider("models/transactions.keras")
    # or a W&B artifact
    provider = KerasModelProvider("acme/transactions/category-clf:v3")
    classifier = CategoryClassifier(provider)
    classifier.initialize()
    classifier.predict_top("STARBUCKS #1234")
    classifier.predict_ranked("STARBUCKS #1234", k=3)

Or use it as a CLI tool:
::

    python -m category_classifier predict \
        --load_model="models/transactions.keras" \
        --input_text="coffee shop purchase" \
        --k=3

"""

import logging
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, List, Optional, Tuple, Union

import yaml

from .errors import ClassifierError
from .ranking import (
    DEFAULT_SENTINEL,
    PredictionRankingPolicy,
    PredictionReason,
    PredictionResult,
    validate_k,
)

logger = logging.getLogger(__name__)


@dataclass
class Config:
    """
    Configuration for a trained category model and for how its output is served.

    Stored as ``<model>_config.yml`` next to the saved model.
    """
    dataset_name: str = "undefined"
    """Name of the dataset the model was trained on."""
    codes: List[str] = None
    """The category vocabulary, in the order of the model's output layer."""
    architecture: str = "v0.1.5"
    """Version tag for the model architecture."""
    stop_words_file: Optional[str] = None
    """Path to a text file containing stopwords, one per line."""
    min_words: int = 1
    """Inputs with this many words or fewer are replaced by padding tokens."""
    embedding_model: str = 'https://www.kaggle.com/models/google/universal-sentence-encoder/tensorFlow2/multilingual/2'
    """URL or path to the TensorFlow Hub embedding model."""
    max_description_length: int = 2000
    """Descriptions longer than this many characters are truncated."""
    default_k: int = 13
    """Number of hypotheses returned when the caller does not ask for a count."""
    min_probability: float = 0.0
    """Hypotheses below this probability are left out of ranked results."""
    sentinel: str = DEFAULT_SENTINEL
    """Category reported when no real prediction is available."""

    @classmethod
    def from_yaml(cls, path: str) -> "Config":
        with open(path, 'r') as f:
            data = yaml.safe_load(f) or {}
        # Training-only keys (epochs, learning_rate...) may be present in the file
        known = {k: v for k, v in data.items() if k in cls.__dataclass_fields__}
        return cls(**known)


def load_config(config: Optional[Union[str, Config]]) -> Config:
    """
    Loads the configuration from a file path or a Config object.

    :param config: A path to a YAML config file, a Config object or None (defaults).
    :type config: str, Config, optional
    :return: The configuration.
    :rtype: Config
    :raises TypeError: If config is of an unsupported type.
    """
    if config is None:
        return Config()
    if isinstance(config, Config):
        return config
    if isinstance(config, str):
        loaded = Config.from_yaml(config)
        logger.info("Loaded config from %s.", config)
        return loaded
    raise TypeError(f"Unsupported config type: {type(config)}")


class ModelProvider:
    """
    Supplies a loadable classification artifact.

    ``classify`` returns ``(label, score)`` pairs with no ordering or
    uniqueness guarantee. ``config`` is available after ``load()``.
    """
    config: Optional[Config] = None

    def load(self) -> None:
        raise NotImplementedError

    def classify(self, text: str) -> Iterable[Tuple[str, float]]:
        raise NotImplementedError


class ClassifierState(str, Enum):
    UNLOADED = "unloaded"
    LOADED = "loaded"
    UNAVAILABLE = "unavailable"


class CategoryClassifier:
    """
    Predicts transaction categories from free-text descriptions.

    The classifier owns exactly one model provider. The provider is loaded at
    most once, under a lock, either explicitly with :meth:`initialize` or on
    the first prediction. After loading, predictions only read the model, so
    one instance can be shared by concurrent callers.

    If loading fails the classifier becomes ``UNAVAILABLE`` for good (until
    :meth:`reset`) and every prediction returns the sentinel category with an
    empty hypothesis list instead of raising.

    :param provider: The model provider to wrap.
    :type provider: ModelProvider
    :param config: Overrides the provider's config for serving options
                   (sentinel, default_k, min_probability, max_description_length).
    :type config: str, Config, optional
    """

    def __init__(self, provider: ModelProvider, config: Optional[Union[str, Config]] = None):
        self.provider = provider
        self._config_override = load_config(config) if config is not None else None
        self.config = self._config_override or Config()
        self.policy = self._make_policy(self.config)
        self._state = ClassifierState.UNLOADED
        self._lock = threading.Lock()
        self.failure_reason: Optional[str] = None
        self.load_count = 0

    @staticmethod
    def _make_policy(config: Config) -> PredictionRankingPolicy:
        return PredictionRankingPolicy(min_probability=config.min_probability, sentinel=config.sentinel)

    @property
    def state(self) -> ClassifierState:
        return self._state

    @property
    def sentinel(self) -> str:
        return self.config.sentinel

    def initialize(self) -> ClassifierState:
        """
        Loads the model once.

        Calling it again after success or failure returns the current state
        without touching the provider.

        :return: ``LOADED`` or ``UNAVAILABLE``.
        :rtype: ClassifierState
        """
        if self._state is not ClassifierState.UNLOADED:
            return self._state
        with self._lock:
            # Another caller may have finished loading while we waited
            if self._state is not ClassifierState.UNLOADED:
                return self._state
            self.load_count += 1
            try:
                self.provider.load()
            except ClassifierError as e:
                return self._mark_unavailable(f"{type(e).__name__}: {e}")
            except Exception as e:
                logger.error("Unexpected error while loading the category model", exc_info=True)
                return self._mark_unavailable(f"{type(e).__name__}: {e}")

            if self._config_override is None and self.provider.config is not None:
                self.config = self.provider.config
                self.policy = self._make_policy(self.config)
            self._state = ClassifierState.LOADED
            logger.info("Category model loaded (%s categories).", len(self.config.codes or []))
            return self._state

    def _mark_unavailable(self, reason: str) -> ClassifierState:
        self.failure_reason = reason
        self._state = ClassifierState.UNAVAILABLE
        logger.error("Category model unavailable, predictions will return %r: %s", self.sentinel, reason)
        return self._state

    def reset(self) -> None:
        """
        Forgets a failed load attempt so the next initialize() tries again.

        Only allowed while not LOADED: a loaded model is never replaced under
        concurrent readers.

        :raises RuntimeError: If the classifier is LOADED.
        """
        with self._lock:
            if self._state is ClassifierState.LOADED:
                raise RuntimeError("reset() is only allowed before a successful load")
            self._state = ClassifierState.UNLOADED
            self.failure_reason = None

    def _truncate(self, description: str) -> str:
        description = description or ""
        limit = self.config.max_description_length
        if limit and len(description) > limit:
            logger.debug("Truncating description from %s to %s characters.", len(description), limit)
            return description[:limit]
        return description

    def _rank(self, description: str, k: Optional[int]) -> PredictionResult:
        if self.initialize() is not ClassifierState.LOADED:
            return self.policy.unavailable()
        text = self._truncate(description)
        try:
            result = self.policy.normalize(list(self.provider.classify(text)), k)
        except Exception:
            # Malformed pairs (non-numeric score, wrong arity) land here too
            logger.exception("Model failed to classify %r", text[:80])
            return self.policy.normalize([], k)
        logger.debug("Transaction: %r -> %s, hypotheses: %s", text[:80], result.top_label, result.as_pairs())
        return result

    def predict_top(self, description: str) -> str:
        """
        Returns the most probable category, or the sentinel when there is none.

        :param description: Transaction description. Empty strings are allowed.
        :type description: str
        :return: A category from the model's vocabulary or the sentinel.
        :rtype: str
        """
        return self._rank(description, 1).top_label

    def predict_ranked(self, description: str, k: Optional[int] = None) -> PredictionResult:
        """
        Returns up to ``k`` hypotheses, most probable first.

        :param description: Transaction description. Empty strings are allowed.
        :type description: str
        :param k: Number of hypotheses to return. Defaults to ``config.default_k``.
                  Larger than the vocabulary returns every category.
        :type k: int, optional
        :return: The ranked result. ``reason`` tells apart an unloaded model
                 (``MODEL_UNAVAILABLE``) from a model that had nothing to say
                 (``NO_PREDICTION``).
        :rtype: PredictionResult
        :raises ValueError: If ``k`` is not a positive integer.
        """
        if k is None:
            # The provider's config (and its default_k) is only known after loading
            self.initialize()
            k = self.config.default_k
        validate_k(k)
        return self._rank(description, k)

    def describe(self) -> dict:
        """Summary used by status endpoints."""
        return {
            "state": self._state.value,
            "categories": list(self.config.codes or []),
            "sentinel": self.sentinel,
            "failure_reason": self.failure_reason,
        }


__all__ = [
    "CategoryClassifier",
    "ClassifierState",
    "Config",
    "ModelProvider",
    "PredictionReason",
    "load_config",
]
