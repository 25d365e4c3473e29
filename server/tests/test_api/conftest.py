# Shared API test fixtures

import pytest
import os
import sys
from pathlib import Path

import httpx
from fastapi.testclient import TestClient

# project path
project_root = Path(__file__).parent.parent.parent
sys.path.insert(0, str(project_root))

# test environment
os.environ['CONFIG_ENV'] = 'test'

from api.main import app
from api.auth.dependencies import get_database, jwt_manager
from api.orders.routes import get_messaging_service
from db.manager import DatabaseManager
from db.schema import initialize_schema
from db.supporting_operations import SupportingOperations
from services.messaging_service import MessagingService


@pytest.fixture
def api_db_path(tmp_path):
    """File database shared by request handlers and background notifications"""
    db_path = str(tmp_path / "api_test.db")
    with DatabaseManager(db_path, auto_connect=True) as db:
        initialize_schema(db)
    return db_path


@pytest.fixture
def gateway_requests():
    """Requests received by the fake messaging gateway"""
    return []


@pytest.fixture
def client(api_db_path, gateway_requests):
    """FastAPI test client wired to the test database and a fake gateway"""
    def override_get_database():
        db = DatabaseManager(api_db_path, auto_connect=True)
        try:
            yield db
        finally:
            db.close()

    def gateway(request: httpx.Request) -> httpx.Response:
        gateway_requests.append(request)
        return httpx.Response(202, json={"accepted": True})

    messaging = MessagingService(gateway_url="https://gateway.test/messages",
                                 transport=httpx.MockTransport(gateway))

    app.dependency_overrides[get_database] = override_get_database
    app.dependency_overrides[get_messaging_service] = lambda: messaging

    yield TestClient(app)

    app.dependency_overrides.clear()


@pytest.fixture
def users(api_db_path):
    """One account per role, plus a second customer"""
    with DatabaseManager(api_db_path, auto_connect=True) as db:
        support_ops = SupportingOperations(db)
        return {
            'customer': support_ops.register_user(name="API Customer", contact="api.customer@example.com"),
            'other_customer': support_ops.register_user(name="Other Customer", contact="+251911999999"),
            'manager': support_ops.register_user(name="API Manager", role="catering_manager"),
            'chef': support_ops.register_user(name="API Chef", role="chef"),
        }


def _headers(user):
    token = jwt_manager.create_access_token({"user_id": user['user_id'], "role": user['role']})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def customer_headers(users):
    return _headers(users['customer'])


@pytest.fixture
def other_customer_headers(users):
    return _headers(users['other_customer'])


@pytest.fixture
def manager_headers(users):
    return _headers(users['manager'])


@pytest.fixture
def chef_headers(users):
    return _headers(users['chef'])


@pytest.fixture
def create_order(client, customer_headers):
    """Place an order through checkout and return its data"""
    def _create(order_type="scheduled", unit_price_cents=50000, quantity=2, headers=None):
        payload = {
            "line_items": [{"menu_item_id": 11, "name": "Wedding buffet", "quantity": quantity,
                            "unit_price_cents": unit_price_cents}],
            "order_type": order_type,
            "delivery_address": "CMC, Addis Ababa"
        }
        if order_type == "scheduled":
            payload["delivery_date"] = "2025-12-27"

        response = client.post("/api/orders", json=payload, headers=headers or customer_headers)
        assert response.status_code == 201
        return response.json()["data"]
    return _create
