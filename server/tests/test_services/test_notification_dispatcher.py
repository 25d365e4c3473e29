# Notification dispatcher tests

import httpx
import pytest

from db.errors import NotificationFailure
from db.manager import DatabaseManager
from db.schema import initialize_schema
from db.order_store import OrderStore
from db.payment_ledger import PaymentLedger
from db.status_transitions import StatusTransitionEngine
from db.supporting_operations import SupportingOperations
from services.events import StatusChanged, PaymentRecorded, emit
from services.messaging_service import MessagingService
from services.notification_dispatcher import NotificationDispatcher, dispatch_in_background


class RecordingMessaging:
    """Messaging double that records deliveries and can be told to fail"""

    def __init__(self, fail=False):
        self.fail = fail
        self.sent = []

    def send(self, contact, message):
        if not contact:
            raise NotificationFailure("no contact")
        if self.fail:
            raise NotificationFailure("gateway down")
        self.sent.append((contact, message))
        return True


@pytest.fixture
def messaging():
    return RecordingMessaging()


@pytest.fixture
def dispatcher(test_db, messaging):
    return NotificationDispatcher(test_db, messaging)


class TestBuildMessage:

    def test_ready_message_includes_remaining_balance(self, dispatcher, ledger, sample_scheduled_order):
        order_id = sample_scheduled_order['order_id']
        ledger.record_payment(order_id, 40000, 'cash')

        message = dispatcher.build_message(
            StatusChanged(order_id=order_id, previous_status='preparing', new_status='ready'),
            ledger.get_order(order_id)
        )

        assert "ready" in message
        assert "600.00 ETB" in message

    def test_ready_message_when_fully_paid(self, dispatcher, ledger, sample_urgent_order):
        order_id = sample_urgent_order['order_id']
        ledger.record_payment(order_id, 100000, 'cash')

        message = dispatcher.build_message(
            StatusChanged(order_id=order_id, previous_status='preparing', new_status='ready'),
            ledger.get_order(order_id)
        )

        assert "fully paid" in message

    def test_cancelled_message_includes_reason(self, dispatcher, engine, sample_urgent_order):
        order = engine.cancel_order(sample_urgent_order['order_id'], reason="Kitchen closed")

        message = dispatcher.build_message(
            StatusChanged(order_id=order['order_id'], previous_status='pending', new_status='cancelled'),
            order
        )

        assert "cancelled" in message
        assert "Kitchen closed" in message

    def test_payment_message(self, dispatcher, ledger, sample_urgent_order):
        order_id = sample_urgent_order['order_id']
        result = ledger.record_payment(order_id, 25000, 'cash')

        message = dispatcher.build_message(
            PaymentRecorded(order_id=order_id, amount_cents=25000, new_paid_cents=25000,
                            payment_status='partially_paid'),
            result['order']
        )

        assert "250.00 ETB" in message
        assert "Remaining balance: 750.00 ETB" in message


class TestDispatch:

    def test_dispatch_delivers_and_records(self, dispatcher, messaging, sample_urgent_order):
        order_id = sample_urgent_order['order_id']

        delivered = dispatcher.dispatch(
            StatusChanged(order_id=order_id, previous_status='pending', new_status='cancelled')
        )

        assert delivered is True
        assert messaging.sent[0][0] == "customer@example.com"

        history = dispatcher.notification_history(order_id)
        assert len(history) == 1
        assert history[0]['status'] == 'sent'
        assert history[0]['event_type'] == 'status_changed'

    def test_failed_delivery_is_recorded_not_raised(self, test_db, sample_urgent_order):
        dispatcher = NotificationDispatcher(test_db, RecordingMessaging(fail=True))
        order_id = sample_urgent_order['order_id']

        delivered = dispatcher.dispatch(
            PaymentRecorded(order_id=order_id, amount_cents=100, new_paid_cents=100,
                            payment_status='partially_paid')
        )

        assert delivered is False
        history = dispatcher.notification_history(order_id)
        assert history[0]['status'] == 'failed'
        assert history[0]['error'] == "delivery failed"

    def test_unknown_order_is_not_raised(self, dispatcher, messaging):
        delivered = dispatcher.dispatch(
            StatusChanged(order_id=99999, previous_status='pending', new_status='cancelled')
        )

        assert delivered is False
        assert messaging.sent == []

    def test_customer_without_contact(self, test_db, store, support_ops, dispatcher):
        customer = support_ops.register_user(name="No Contact")
        order = store.create_order(
            customer_id=customer['user_id'],
            line_items=[{"menu_item_id": 1, "quantity": 1, "unit_price_cents": 1000}],
            order_type="urgent"
        )

        delivered = dispatcher.dispatch(
            StatusChanged(order_id=order['order_id'], previous_status='pending', new_status='cancelled')
        )

        assert delivered is False

    def test_notification_failure_does_not_block_transition(self, test_db, sample_urgent_order):
        dispatcher = NotificationDispatcher(test_db, RecordingMessaging(fail=True))
        engine = StatusTransitionEngine(test_db, event_sink=dispatcher.dispatch)

        order = engine.cancel_order(sample_urgent_order['order_id'])

        assert order['status'] == 'cancelled'
        assert dispatcher.notification_history(order['order_id'])[0]['status'] == 'failed'

    def test_ledger_events_reach_customer(self, test_db, messaging, sample_urgent_order):
        dispatcher = NotificationDispatcher(test_db, messaging)
        ledger = PaymentLedger(test_db, event_sink=dispatcher.dispatch)

        ledger.record_payment(sample_urgent_order['order_id'], 100000, 'cash')

        assert len(messaging.sent) == 1
        assert "fully paid" in messaging.sent[0][1]


class TestBackgroundDispatch:

    def test_dispatch_in_background_opens_own_connection(self, tmp_path):
        db_path = str(tmp_path / "notify.db")
        with DatabaseManager(db_path, auto_connect=True) as db:
            initialize_schema(db)
            customer = SupportingOperations(db).register_user(name="File Customer", contact="file@example.com")
            order = OrderStore(db).create_order(
                customer_id=customer['user_id'],
                line_items=[{"menu_item_id": 1, "quantity": 1, "unit_price_cents": 1000}],
                order_type="urgent"
            )

        captured = []

        def handler(request):
            captured.append(request)
            return httpx.Response(202)

        service = MessagingService(gateway_url="https://gateway.test/messages",
                                   transport=httpx.MockTransport(handler))

        dispatch_in_background(db_path, service, StatusChanged(
            order_id=order['order_id'], previous_status='pending', new_status='cancelled'
        ))

        assert len(captured) == 1
        with DatabaseManager(db_path, auto_connect=True) as db:
            history = NotificationDispatcher(db, service).notification_history(order['order_id'])
        assert history[0]['status'] == 'sent'


class TestEmit:

    def test_emit_without_sink(self):
        emit(None, StatusChanged(order_id=1, previous_status='pending', new_status='cancelled'))

    def test_emit_swallows_sink_errors(self):
        def sink(event):
            raise RuntimeError("boom")

        emit(sink, StatusChanged(order_id=1, previous_status='pending', new_status='cancelled'))
