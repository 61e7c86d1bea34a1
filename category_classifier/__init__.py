from .category_classifier import CategoryClassifier, ClassifierState, Config, ModelProvider, load_config
from .errors import ClassifierError, ConversionFailure, ModelLoadFailure
from .ranking import Hypothesis, PredictionRankingPolicy, PredictionReason, PredictionResult

__all__ = [
    "CategoryClassifier",
    "ClassifierError",
    "ClassifierState",
    "Config",
    "ConversionFailure",
    "Hypothesis",
    "ModelLoadFailure",
    "ModelProvider",
    "PredictionRankingPolicy",
    "PredictionReason",
    "PredictionResult",
    "load_config",
]
