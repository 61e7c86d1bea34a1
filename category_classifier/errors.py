"""
Errors raised while preparing a category model for inference.

Both are raised by a model provider's ``load()`` and caught by
:class:`CategoryClassifier`, which degrades to the sentinel category instead
of letting them reach the presentation layer.
"""


class ClassifierError(Exception):
    """Base class for classifier failures."""


class ModelLoadFailure(ClassifierError):
    """The model artifact is missing, corrupt, unreachable or incompatible."""


class ConversionFailure(ClassifierError):
    """The artifact loaded but cannot be used as a category classifier."""
