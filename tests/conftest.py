import os
import sys

import pytest

# Add the project root to the path to allow importing 'app', 'db' and 'category_classifier'
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from category_classifier import Config, ModelLoadFailure, ModelProvider


class StubProvider(ModelProvider):
    """Model provider with canned outputs that counts load() calls."""

    def __init__(self, outputs=None, default=None, fail_with=None, codes=None):
        self.outputs = outputs or {}
        self.default = default if default is not None else [
            ("groceries", 0.05), ("dining", 0.6), ("transport", 0.25), ("utilities", 0.1),
        ]
        self.fail_with = fail_with
        self.config = Config(dataset_name="stub", codes=codes or ["groceries", "dining", "transport", "utilities"])
        self.load_calls = 0
        self.seen = []

    def load(self):
        self.load_calls += 1
        if self.fail_with is not None:
            raise self.fail_with

    def classify(self, text):
        self.seen.append(text)
        return list(self.outputs.get(text, self.default))


@pytest.fixture
def stub_provider():
    return StubProvider(outputs={
        "Trader Joe's": [("groceries", 0.7), ("dining", 0.2), ("groceries", 0.9)],
    })


@pytest.fixture
def failing_provider():
    return StubProvider(fail_with=ModelLoadFailure("artifact missing"))
