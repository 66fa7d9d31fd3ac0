# ================================
# TEST FIXTURES (tests/conftest.py)
# ================================

import os
import io
import tempfile

# Settings are read at import time, so the environment is prepared first
_TEST_ROOT = tempfile.mkdtemp(prefix="invoicing-tests-")
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["DEBUG"] = "true"
os.environ["RATE_LIMIT_PER_MINUTE"] = "0"
os.environ["ENABLE_SCHEDULER"] = "false"
os.environ["BACKUP_ENABLED"] = "false"
os.environ["GEMINI_API_KEY"] = ""
os.environ["UPLOAD_DIR"] = os.path.join(_TEST_ROOT, "uploads")
os.environ["EXPORT_DIR"] = os.path.join(_TEST_ROOT, "exports")
os.environ["BACKUP_DIR"] = os.path.join(_TEST_ROOT, "backups")

import pytest
from datetime import date, timedelta
from fastapi.testclient import TestClient
from PIL import Image

from app.main import app
from app.core.database import engine, SessionLocal
from app.models import Base

API = "/api/v1"


@pytest.fixture(autouse=True)
def database():
    """Fresh schema for every test"""
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client():
    # Not used as a context manager: startup tasks (migrations, scheduler) stay off
    return TestClient(app)


@pytest.fixture
def db_session():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def auth_headers(client):
    response = client.post(f"{API}/auth/register", json={
        "username": "owner",
        "email": "owner@example.com",
        "password": "secret123"
    })
    assert response.status_code == 201, response.text
    return {"Authorization": f"Bearer {response.json()['access_token']}"}


@pytest.fixture
def customer(client, auth_headers):
    response = client.post(f"{API}/customers/", headers=auth_headers, json={
        "name": "Jane Smith",
        "email": "jane@example.com",
        "phone": "(512) 555-0101",
        "billing_address": "1 Elm St\nAustin, TX 78701"
    })
    assert response.status_code == 201, response.text
    return response.json()


@pytest.fixture
def property_(client, auth_headers, customer):
    response = client.post(f"{API}/customers/{customer['id']}/properties", headers=auth_headers, json={
        "name": "Main House",
        "address": "1 Elm St",
        "city": "Austin",
        "state": "TX",
        "zip_code": "78701"
    })
    assert response.status_code == 201, response.text
    return response.json()


def invoice_payload(customer_id, **overrides):
    """Two lines (100 + 100) at 8.25% tax: 200.00 / 16.50 / 216.50"""
    payload = {
        "customer_id": customer_id,
        "invoice_date": date.today().isoformat(),
        "due_date": (date.today() + timedelta(days=30)).isoformat(),
        "tax_rate": "8.25",
        "line_items": [
            {"description": "Interior painting", "quantity": "2", "unit_price": "50.00"},
            {"description": "Trim work", "quantity": "1", "unit_price": "100.00"},
        ],
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def invoice(client, auth_headers, customer):
    response = client.post(f"{API}/invoices/", headers=auth_headers, json=invoice_payload(customer["id"]))
    assert response.status_code == 201, response.text
    return response.json()


def png_bytes(width=8, height=6):
    buffer = io.BytesIO()
    Image.new("RGB", (width, height), color=(200, 30, 30)).save(buffer, format="PNG")
    return buffer.getvalue()
