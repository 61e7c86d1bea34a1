import logging
import os
from datetime import datetime, timezone
from typing import Optional

from category_classifier import CategoryClassifier
from category_classifier.ranking import PredictionResult
from app.schema import CategoryProbability, PredictionResponse

logger = logging.getLogger(__name__)


def get_model_url() -> str:
    """
    Reads the model location (local path or W&B artifact) from CATEGORY_MODEL.
    Kept in its own function so tests can patch it.
    """
    model_url = os.getenv("CATEGORY_MODEL", "").strip()
    if not model_url:
        logger.warning("CATEGORY_MODEL is not set, the classifier will be unavailable.")
    return model_url


def load_classifier(model_url: str, config: Optional[str] = None) -> CategoryClassifier:
    """
    Builds the process-wide classifier and loads its model.

    Never raises for model problems: a model that cannot be loaded leaves the
    classifier UNAVAILABLE and its predictions degrade to the sentinel.
    """
    from category_classifier.keras_provider import KerasModelProvider

    logger.info("Loading category model from %s", model_url)
    classifier = CategoryClassifier(KerasModelProvider(model_url, config=config))
    state = classifier.initialize()
    logger.info("Category classifier state: %s", state.value)
    return classifier


def to_response(text: str, result: PredictionResult) -> PredictionResponse:
    return PredictionResponse(
        text=text,
        top_label=result.top_label,
        hypotheses=[CategoryProbability(category=c, probability=p) for c, p in result.as_pairs()],
        reason=result.reason.value if result.reason else None,
        timestamp=int(datetime.now(timezone.utc).timestamp()),
    )


def predict_category(text: str, k: Optional[int], classifier: CategoryClassifier) -> dict:
    """
    1. Runs the ranked prediction.
    2. Shapes it for the response.
    """
    result = classifier.predict_ranked(text, k)
    return to_response(text, result).model_dump()
