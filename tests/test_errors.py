import json

from pymongo.errors import DuplicateKeyError

from tourbook import config
from tourbook.errors import AppError, normalize_error, send_prod_error


def test_operational_error_status():
    assert AppError("missing", 404).status == "fail"
    assert AppError("broken", 500).status == "error"


def test_duplicate_key_is_normalized():
    err = DuplicateKeyError(
        "E11000 duplicate key error collection: tourbook.tours index: name_1",
        11000,
        {"keyValue": {"name": "The Forest Hiker"}},
    )

    error = normalize_error(err)

    assert error.status_code == 400
    assert error.message == 'Duplicate field value: "The Forest Hiker". Please use another value!'


def test_unknown_errors_are_not_normalized():
    assert normalize_error(RuntimeError("boom")) is None


def test_production_hides_unexpected_errors():
    response = send_prod_error(RuntimeError("secret detail"), None)

    assert response.status_code == 500
    assert json.loads(response.body) == {"status": "error", "message": "Something went very wrong!"}


def test_unknown_route_in_development(client):
    res = client.get("/api/v1/nowhere")

    assert res.status_code == 404
    body = res.json()
    assert body["message"] == "Can't find /api/v1/nowhere on this server!"
    assert "stack" in body


def test_unknown_route_in_production(client, monkeypatch):
    monkeypatch.setattr(config, "APP_ENV", "production")

    res = client.get("/api/v1/nowhere")

    assert res.status_code == 404
    assert res.json() == {"status": "fail", "message": "Can't find /api/v1/nowhere on this server!"}


def test_validation_errors_in_production(client, monkeypatch, admin):
    from conftest import auth_header

    monkeypatch.setattr(config, "APP_ENV", "production")

    res = client.post("/api/v1/tours", json={"name": "The Forest Hiker"}, headers=auth_header(admin))

    assert res.status_code == 400
    body = res.json()
    assert body["status"] == "fail"
    assert body["message"].startswith("Invalid input data.")
    assert "stack" not in body
