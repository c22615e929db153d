import logging
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from app.core.settings import settings
from app.main import app


def test_health(api_client):
    response = api_client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_lifespan_validates_settings_on_startup(caplog):
    with caplog.at_level(logging.INFO, logger="medflow.startup"):
        with TestClient(app) as client:
            assert client.get("/health").status_code == 200
    assert "MedFlow API started (env=test)" in caplog.text


def test_lifespan_refuses_invalid_settings(monkeypatch):
    monkeypatch.setattr(settings, "default_consultation_fee", Decimal("0"))
    with pytest.raises(RuntimeError, match="DEFAULT_CONSULTATION_FEE"):
        with TestClient(app):
            pass
