"""
Command line access to a category model.

python -m category_classifier predict \
    --load_model="models/transactions.keras" \
    --input_text="coffee shop purchase" \
    --k=3

python -m category_classifier top \
    --load_model="acme/transactions/category-clf:v3" \
    --input_text="Trader Joe's"
"""
from pprint import pprint
from typing import Optional

import fire

from .category_classifier import CategoryClassifier, ClassifierState


def _build(load_model: str, config: Optional[str] = None) -> CategoryClassifier:
    # Imported here so `--help` works without TensorFlow startup cost
    from .keras_provider import KerasModelProvider

    classifier = CategoryClassifier(KerasModelProvider(load_model, config=config))
    if classifier.initialize() is not ClassifierState.LOADED:
        print(f"Model unavailable: {classifier.failure_reason}")
    return classifier


def predict(load_model: str, input_text: str, k: Optional[int] = None, config: Optional[str] = None):
    """
    Print the ranked categories for a description.

    :param load_model: Path to the saved Keras model file or W&B artifact name.
    :type load_model: str
    :param input_text: The transaction description to classify.
    :type input_text: str
    :param k: Number of categories to print.
    :type k: int, optional
    :param config: Path to a YAML config overriding the one stored with the model.
    :type config: str, optional
    """
    classifier = _build(load_model, config)
    result = classifier.predict_ranked(input_text, k)
    print(f"Top category: {result.top_label}")
    pprint(result.as_pairs())


def top(load_model: str, input_text: str, config: Optional[str] = None):
    """
    Print only the most probable category for a description.

    :param load_model: Path to the saved Keras model file or W&B artifact name.
    :type load_model: str
    :param input_text: The transaction description to classify.
    :type input_text: str
    """
    classifier = _build(load_model, config)
    print(classifier.predict_top(input_text))


def main():
    fire.Fire({
        'predict': predict,
        'top': top,
    })


if __name__ == "__main__":
    main()
