# Test configuration and fixtures

import pytest
import os
import sys
from pathlib import Path

# project path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

# test environment
os.environ['CONFIG_ENV'] = 'test'

from db.manager import DatabaseManager
from db.schema import initialize_schema
from db.order_store import OrderStore
from db.payment_ledger import PaymentLedger
from db.status_transitions import StatusTransitionEngine
from db.schedule_assigner import ScheduleAssigner
from db.supporting_operations import SupportingOperations


@pytest.fixture
def test_db():
    """Test database (in memory) with the full schema"""
    db = DatabaseManager(":memory:", auto_connect=True)
    initialize_schema(db)

    yield db
    db.close()


@pytest.fixture
def events():
    """Events handed to the sink, in emission order"""
    return []


@pytest.fixture
def event_sink(events):
    return events.append


@pytest.fixture
def support_ops(test_db):
    return SupportingOperations(test_db)


@pytest.fixture
def store(test_db):
    return OrderStore(test_db)


@pytest.fixture
def ledger(test_db, event_sink):
    return PaymentLedger(test_db, event_sink=event_sink)


@pytest.fixture
def engine(test_db, ledger, event_sink):
    return StatusTransitionEngine(test_db, ledger=ledger, event_sink=event_sink)


@pytest.fixture
def assigner(test_db):
    return ScheduleAssigner(test_db)


@pytest.fixture
def sample_customer(support_ops):
    """Active customer with an email contact"""
    return support_ops.register_user(name="Test Customer", contact="customer@example.com")


@pytest.fixture
def sample_manager(support_ops):
    return support_ops.register_user(name="Test Manager", contact="manager@example.com",
                                     role="catering_manager")


@pytest.fixture
def sample_chef(support_ops):
    return support_ops.register_user(name="Test Chef", contact="chef@example.com", role="chef")


@pytest.fixture
def sample_urgent_order(store, sample_customer):
    """Urgent order totalling 1000.00"""
    return store.create_order(
        customer_id=sample_customer['user_id'],
        line_items=[{"menu_item_id": 1, "name": "Doro Wat platter", "quantity": 2,
                     "unit_price_cents": 50000}],
        order_type="urgent",
        delivery_address="Bole, Addis Ababa"
    )


@pytest.fixture
def sample_scheduled_order(store, sample_customer):
    """Scheduled order totalling 1000.00"""
    return store.create_order(
        customer_id=sample_customer['user_id'],
        line_items=[
            {"menu_item_id": 1, "name": "Doro Wat platter", "quantity": 1, "unit_price_cents": 60000},
            {"menu_item_id": 2, "name": "Injera basket", "quantity": 4, "unit_price_cents": 10000}
        ],
        order_type="scheduled",
        delivery_date="2025-12-20",
        delivery_address="Kazanchis, Addis Ababa"
    )
