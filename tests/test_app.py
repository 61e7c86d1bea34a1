import pytest
from unittest.mock import MagicMock

from fastapi.testclient import TestClient

from app.app import app
from category_classifier import CategoryClassifier
from db.display_store import DisplayStore
from conftest import StubProvider


def initialized(classifier):
    classifier.initialize()
    return classifier


# --- Fixtures ---

@pytest.fixture(scope="function", autouse=True)
def mock_app_dependencies(monkeypatch, stub_provider):
    """
    Auto-used fixture replacing model loading and MongoDB with in-memory stand-ins.
    """
    mock_collection = MagicMock()
    mock_collection.find_one.return_value = {"hidden": False}
    monkeypatch.setattr("app.app.get_display_store", lambda: DisplayStore(mock_collection))

    monkeypatch.delenv("CATEGORY_CONFIG", raising=False)
    classifier = CategoryClassifier(stub_provider)
    mock_load = MagicMock(side_effect=lambda url, config=None: initialized(classifier))
    monkeypatch.setattr("app.services.load_classifier", mock_load)
    monkeypatch.setattr("app.services.get_model_url", lambda: "models/tx.keras")

    yield mock_collection, classifier, mock_load


@pytest.fixture(scope="function")
def client():
    """Provides a TestClient for making in-memory requests to the app."""
    with TestClient(app) as test_client:
        yield test_client

# --- Unit Tests ---

def test_root_reports_classifier_state(client, mock_app_dependencies):
    _, _, mock_load = mock_app_dependencies
    response = client.get("/")
    assert response.status_code == 200
    data = response.json()
    assert data["state"] == "loaded"
    assert data["sentinel"] == "unknown"
    assert "groceries" in data["categories"]
    mock_load.assert_called_once_with("models/tx.keras", None)


def test_predict_ranked_categories(client):
    response = client.post("/predict", params={"text": "Trader Joe's", "k": 2})
    assert response.status_code == 200
    data = response.json()
    assert data["top_label"] == "groceries"
    assert data["hypotheses"] == [
        {"category": "groceries", "probability": 0.9},
        {"category": "dining", "probability": 0.2},
    ]
    assert data["reason"] is None
    assert isinstance(data["timestamp"], int)


def test_predict_default_k(client):
    response = client.post("/predict", params={"text": "coffee shop purchase"})
    assert response.status_code == 200
    assert len(response.json()["hypotheses"]) == 4


def test_predict_empty_text(client):
    response = client.post("/predict", params={"text": ""})
    assert response.status_code == 200
    assert response.json()["top_label"] == "dining"


def test_predict_rejects_non_positive_k(client):
    response = client.post("/predict", params={"text": "coffee", "k": 0})
    assert response.status_code == 422


def test_predict_with_unavailable_model(monkeypatch):
    """A model that fails to load still answers, with the sentinel category."""
    failing = CategoryClassifier(StubProvider(fail_with=OSError("no such file")))
    monkeypatch.setattr("app.services.load_classifier", lambda url, config=None: initialized(failing))

    with TestClient(app) as test_client:
        status = test_client.get("/").json()
        response = test_client.post("/predict", params={"text": "anything", "k": 5})

    assert status["state"] == "unavailable"
    assert response.status_code == 200
    data = response.json()
    assert data["top_label"] == "unknown"
    assert data["hypotheses"] == []
    assert data["reason"] == "model_unavailable"


def test_predict_internal_error(client, monkeypatch):
    monkeypatch.setattr("app.services.predict_category", MagicMock(side_effect=RuntimeError("boom")))
    response = client.post("/predict", params={"text": "coffee"})
    assert response.status_code == 500
    assert "boom" in response.json()["detail"]


def test_visibility_flag_roundtrip(client, mock_app_dependencies):
    mock_collection, _, _ = mock_app_dependencies
    assert client.get("/display/visibility").json() == {"hidden": False}

    mock_collection.find_one.return_value = {"hidden": True}
    response = client.put("/display/visibility", params={"hidden": True})
    assert response.status_code == 200
    assert response.json() == {"hidden": True}
    assert mock_collection.update_one.call_args[0][1]["$set"]["hidden"] is True


def test_request_refresh(client, mock_app_dependencies):
    mock_collection, _, _ = mock_app_dependencies
    response = client.post("/display/refresh")
    assert response.status_code == 200
    data = response.json()
    assert isinstance(data["requested_at"], int)
    mock_collection.update_one.assert_called_once()


def test_get_refresh_schedule(client):
    data = client.get("/display/refresh").json()
    assert data["requested_at"] is None
    assert data["next_refresh"] % 3600 == 0


def test_acknowledge_refresh(client, mock_app_dependencies):
    mock_collection, _, _ = mock_app_dependencies
    mock_collection.find_one.return_value = {"refresh_requested_at": 100, "refreshed_at": 200}
    response = client.post("/display/refresh/ack")
    assert response.status_code == 200
    data = response.json()
    assert data["requested_at"] == 100
    assert data["next_refresh"] % 3600 == 0
    assert "refreshed_at" in mock_collection.update_one.call_args[0][1]["$set"]
