from category_classifier import CategoryClassifier
from category_classifier import __main__ as cli


def test_predict_prints_ranked_categories(monkeypatch, capsys, stub_provider):
    classifier = CategoryClassifier(stub_provider)
    monkeypatch.setattr(cli, "_build", lambda load_model, config=None: classifier)

    cli.predict(load_model="models/tx.keras", input_text="Trader Joe's", k=2)

    out = capsys.readouterr().out
    assert "Top category: groceries" in out
    assert "('dining', 0.2)" in out


def test_top_prints_sentinel_when_unavailable(monkeypatch, capsys, failing_provider):
    classifier = CategoryClassifier(failing_provider)
    monkeypatch.setattr(cli, "_build", lambda load_model, config=None: classifier)

    cli.top(load_model="models/missing.keras", input_text="anything")

    assert capsys.readouterr().out.strip() == "unknown"
