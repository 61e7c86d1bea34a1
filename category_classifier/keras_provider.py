"""
Model provider backed by a saved Keras model.

The model takes a batch of strings and returns one softmax vector per string,
with one entry per category in ``config.codes``. It can be read from a local
``.keras`` file (with ``<name>_config.yml`` beside it) or downloaded from a
W&B model artifact that contains both files.
"""

import os
import logging
import re
from pathlib import Path
from typing import Iterator, List, Optional, Tuple, Union

import numpy as np
import yaml

import tensorflow as tf
import tensorflow_text  # noqa: F401  registers ops used by multilingual sentence encoders
import tensorflow_hub as hub
from tensorflow.keras.saving import register_keras_serializable

import wandb

import dotenv

from .category_classifier import Config, ModelProvider, load_config
from .errors import ConversionFailure, ModelLoadFailure

dotenv.load_dotenv()

logger = logging.getLogger(__name__)

PUNCTUATION_TOKENS = {"?": "QUESTION_MARK", ".": "PERIOD", ",": "COMMA", "!": "EXCLAMATION_MARK"}


@register_keras_serializable()
class HubLayer(tf.keras.layers.Layer):
    """
    A custom Keras layer to load and use a TensorFlow Hub module.

    Registered so that saved category models embedding a Hub sentence
    encoder can be deserialized.

    :param hub_url: The URL of the TensorFlow Hub module to load.
    :type hub_url: str
    :param trainable: Whether the loaded Hub module should be trainable.
    :type trainable: bool, optional
    """
    def __init__(self, hub_url, trainable=False, **kwargs):
        super().__init__(**kwargs)
        self.hub_url = hub_url
        self.hub_module = hub.load(hub_url)
        self.hub_module.trainable = trainable

    def call(self, inputs: tf.Tensor) -> tf.Tensor:
        return self.hub_module(inputs)

    def get_config(self):
        config = super().get_config()
        config.update({"hub_url": self.hub_url})
        return config


def fetch_artifact_from_wandb(model_full_name: str) -> Tuple[str, str]:
    """
    Download a model artifact from W&B and return the paths to the model and config files.

    :param model_full_name: The W&B artifact full name, formatted as
                            "entity/project/artifact_name:version".
    :type model_full_name: str
    :return: A tuple with the local Keras model file and the config file.
    :rtype: tuple[str, str]
    :raises ModelLoadFailure: If the name is malformed, the artifact cannot be
                              fetched or it lacks the model or config file.
    """
    parts = model_full_name.split("/")
    if len(parts) != 3 or ":" not in parts[2]:
        raise ModelLoadFailure(
            f"Invalid model_full_name format: '{model_full_name}'. "
            f"Expected format: 'entity/project/artifact_name:version'"
        )

    try:
        api = wandb.Api()
        artifact = api.artifact(model_full_name, type='model')
    except (wandb.errors.CommError, ValueError) as e:
        raise ModelLoadFailure(f"Could not fetch artifact '{model_full_name}' from W&B: {e}") from e

    models_dir = Path(os.path.dirname(__file__)) / "models"
    models_dir.mkdir(exist_ok=True)
    download_path = artifact.download(root=models_dir)

    model_file, config_file = None, None
    # Only look at files listed in the artifact manifest, not everything in models_dir
    for f in artifact.files():
        if f.name.endswith((".keras", ".h5")):
            model_file = os.path.join(download_path, f.name)
        elif f.name.endswith("_config.yml"):
            config_file = os.path.join(download_path, f.name)

    if not model_file:
        raise ModelLoadFailure(f"Model file (.keras or .h5) not found in W&B artifact '{model_full_name}'.")
    if not config_file:
        raise ModelLoadFailure(f"Config file (_config.yml) not found in W&B artifact '{model_full_name}'.")
    return model_file, config_file


def model_output_size_of(model) -> int:
    """Number of units in the model's last output."""
    if hasattr(model, "output_shape"):
        return model.output_shape[-1]
    return model.outputs[0].shape[-1]


def config_path_for(model_path: str) -> str:
    """``models/tx.keras`` -> ``models/tx_config.yml``"""
    base, _ = os.path.splitext(model_path.rstrip('/'))
    return f"{base}_config.yml"


class KerasModelProvider(ModelProvider):
    """
    Loads a Keras category model and classifies descriptions with it.

    :param load_model: A path to a saved Keras model or a W&B artifact name.
    :type load_model: str
    :param config: A path to a YAML config file or a Config object. If None,
                   the config stored next to the model is used.
    :type config: str, Config, optional
    """

    def __init__(self, load_model: str, config: Optional[Union[str, Config]] = None):
        self.load_model = load_model
        self._config_source = config
        self.config: Optional[Config] = None
        self.model = None
        self.codes: List[str] = []
        self.stop_words: List[str] = []

    def load(self) -> None:
        """
        Resolves, loads and validates the model.

        :raises ModelLoadFailure: If the model or its config cannot be read.
        :raises ConversionFailure: If the model does not fit the configured categories.
        """
        config_source = self._config_source
        if os.path.exists(self.load_model):
            local_model_path = self.load_model
            if config_source is None:
                config_source = config_path_for(local_model_path)
        else:
            # Not a local path, assume it's a W&B artifact
            local_model_path, artifact_config = fetch_artifact_from_wandb(self.load_model)
            if config_source is None:
                config_source = artifact_config

        try:
            self.config = load_config(config_source)
        except (OSError, yaml.YAMLError, TypeError) as e:
            raise ModelLoadFailure(f"Could not read config {config_source!r}: {e}") from e

        try:
            self.model = tf.keras.models.load_model(local_model_path)
        except Exception as e:
            raise ModelLoadFailure(f"Could not load Keras model from {local_model_path}: {e}") from e
        logger.info("Loaded Keras model from %s.", local_model_path)

        self.codes = list(self.config.codes or [])
        self._validate_model_config_compatibility()
        self._load_stop_words(self.config.stop_words_file)

    def _validate_model_config_compatibility(self) -> None:
        """
        Checks that the model's output size matches the number of categories in the config.

        :raises ConversionFailure: On a mismatch or an empty vocabulary.
        """
        if not self.codes:
            raise ConversionFailure("Config does not list any category codes.")
        if len(set(self.codes)) != len(self.codes):
            raise ConversionFailure(f"Config lists duplicate category codes: {self.codes}")
        try:
            model_output_size = model_output_size_of(self.model)
        except (AttributeError, IndexError, TypeError) as e:
            raise ConversionFailure(f"Cannot read the model's output shape: {e}") from e
        if model_output_size != len(self.codes):
            raise ConversionFailure(
                f"Model-config mismatch: the model outputs {model_output_size} categories, "
                f"but the config lists {len(self.codes)} (codes: {self.codes})."
            )

    def _load_stop_words(self, stop_words_file: Optional[str]) -> None:
        if stop_words_file is None:
            self.stop_words = []
            return
        try:
            with open(stop_words_file, 'r', encoding='utf-8') as f:
                self.stop_words = [w for w in f.read().split('\n') if w]
        except OSError as e:
            raise ModelLoadFailure(f"Could not read stop words from {stop_words_file}: {e}") from e
        logger.info("Loaded %s stop words from %s.", len(self.stop_words), stop_words_file)

    def preprocess_text(self, text: tf.Tensor) -> tf.Tensor:
        """
        Applies the preprocessing the model was trained with to one 0-D string tensor.

        Steps:
        1. Lowercasing.
        2. Stopword removal (if configured).
        3. Replacing inputs with ``min_words`` words or fewer by "<>" padding tokens.
        4. Spelling out punctuation, which some sentence encoders ignore.

        :param text: A 0-D string tensor containing the raw text.
        :type text: tf.Tensor
        :return: A 0-D string tensor containing the preprocessed text.
        :rtype: tf.Tensor
        """
        text = tf.strings.lower(text)
        if self.stop_words:
            words = tf.strings.split(text)
            words = tf.boolean_mask(words, tf.reduce_all(tf.not_equal(words[:, None], tf.constant(self.stop_words)), axis=1))
            text = tf.strings.reduce_join(words, separator=' ')

        if self.config.min_words:
            words = tf.strings.split(text)
            words = tf.boolean_mask(words, tf.reduce_all(tf.not_equal(words[:, None], tf.constant(list(PUNCTUATION_TOKENS))), axis=1))
            if tf.less_equal(tf.shape(words)[0], self.config.min_words):
                text = tf.constant(' '.join(["<>"] * (self.config.min_words + 1)))

        for p, t in PUNCTUATION_TOKENS.items():
            text = tf.strings.regex_replace(text, re.escape(p), f" {t} ")
        text = tf.strings.regex_replace(text, r"\s+", " ")
        return tf.strings.strip(text)

    def classify(self, text: str) -> Iterator[Tuple[str, float]]:
        """
        Yields ``(category, probability)`` in the model's output order.

        :param text: The description to classify.
        :type text: str
        """
        if self.model is None:
            raise RuntimeError("Model not loaded. Call load() first.")
        inputs = tf.expand_dims(self.preprocess_text(tf.constant(text, dtype=tf.string)), 0)
        probs = np.asarray(self.model(inputs, training=False))[0]
        for code, prob in zip(self.codes, probs):
            yield code, float(prob)
