import pytest
from fastapi.testclient import TestClient

from algenova import settings as settings_module
from backend.app import main as api


@pytest.fixture
def client(monkeypatch, tmp_path) -> TestClient:
    monkeypatch.setattr(settings_module, "_DATA_FILE", str(tmp_path / "algenova.json"))
    monkeypatch.delenv("ALGENOVA_SETTINGS", raising=False)
    return TestClient(api.app)


def test_root_and_ping(client: TestClient) -> None:
    response = client.get("/")
    assert response.status_code == 200
    assert response.text == "AlgeNova API is running..."

    response = client.get("/ping")
    assert response.status_code == 200
    assert response.text == "pong"


def test_help_catalog(client: TestClient) -> None:
    body = client.get("/api/math/help").json()
    assert body["supported_operations"]
    inputs = [example["input"] for example in body["examples"]]
    assert "2x + 5 = 13" in inputs
    assert "∫x^2" in inputs
    assert "series(exp(x), x, 0, 4)" in inputs


def test_solve_equation(client: TestClient) -> None:
    response = client.post("/api/math/solve", json={"formula": "2x + 5 = 13"})
    assert response.status_code == 200
    body = response.json()
    assert body["type"] == "equation"
    assert body["parsed_formula"] == "2*x+5=13"
    assert body["final_answer"] == ["x = 4"]
    assert body["verification"][0]["is_correct"] is True
    assert body["steps"][0]["step_number"] == 1
    assert body["summary"]["total_steps"] == len(body["steps"])


def test_solve_expression(client: TestClient) -> None:
    body = client.post("/api/math/solve", json={"formula": "two plus three"}).json()
    assert body["final_answer"] == "5"


def test_solve_special(client: TestClient) -> None:
    body = client.post("/api/math/solve", json={"formula": "law of cosines"}).json()
    assert body["type"] == "special"
    assert body["special_name"] == "Law of cosines"
    assert body["steps"] == []


@pytest.mark.parametrize("payload", [{}, {"formula": 42}, {"formula": "   "}, {"formula": None}])
def test_missing_formula(client: TestClient, payload) -> None:
    response = client.post("/api/math/solve", json=payload)
    assert response.status_code == 400
    body = response.json()
    assert body["error"] == "No formula provided. Please provide a mathematical expression to solve."
    assert body["example"] == {"formula": "2x + 5 = 13"}


def test_malformed_body(client: TestClient) -> None:
    response = client.post("/api/math/solve", content="not json",
                           headers={"Content-Type": "application/json"})
    assert response.status_code == 400
    assert response.json()["example"] == {"formula": "2x + 5 = 13"}


def test_unsupported_formula(client: TestClient) -> None:
    response = client.post("/api/math/solve", json={"formula": "d/dx("})
    assert response.status_code == 400
    body = response.json()
    assert body["error"] == "Invalid or unsupported formula."
    assert body["formula"] == "d/dx("
    assert body["details"]


def test_unexpected_error_is_reported(client: TestClient, monkeypatch) -> None:
    def _boom(formula, settings=None):
        raise RuntimeError("boom")

    monkeypatch.setattr(api, "solve_problem", _boom)
    response = client.post("/api/math/solve", json={"formula": "1+1"})
    assert response.status_code == 400
    assert response.json()["details"] == "boom"
