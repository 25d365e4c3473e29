# End-to-end fulfillment scenarios across the store, ledger, engine and assigner

import logging
import sqlite3
import pytest

from db.errors import ValidationError, StateError, ConflictError


def _create(store, customer, order_type, total_cents):
    return store.create_order(
        customer_id=customer['user_id'],
        line_items=[{"menu_item_id": 7, "name": "Catering package", "quantity": 1,
                     "unit_price_cents": total_cents}],
        order_type=order_type,
        delivery_date="2025-12-24" if order_type == 'scheduled' else None
    )


class TestFulfillmentScenarios:

    def test_urgent_order_needs_full_payment_before_confirmation(self, store, ledger, engine, sample_customer):
        order_id = _create(store, sample_customer, 'urgent', 50000)['order_id']

        result = ledger.record_payment(order_id, 30000, 'cash')
        assert result['order']['payment_status'] == 'partially_paid'
        assert result['order']['remaining_cents'] == 20000

        with pytest.raises(StateError):
            engine.request_transition(order_id, 'confirmed')

        result = ledger.record_payment(order_id, 20000, 'cash')
        assert result['order']['paid_cents'] == 50000
        assert result['order']['payment_status'] == 'paid'

        assert engine.request_transition(order_id, 'confirmed')['status'] == 'confirmed'

    def test_scheduled_order_delivers_only_when_paid(self, store, ledger, engine, sample_customer):
        order_id = _create(store, sample_customer, 'scheduled', 100000)['order_id']

        ledger.record_payment(order_id, 40000, 'bank_transfer')
        assert ledger.minimum_upfront_met(order_id) is True

        assert engine.request_transition(order_id, 'confirmed')['status'] == 'confirmed'
        engine.request_transition(order_id, 'preparing')
        assert engine.request_transition(order_id, 'ready')['status'] == 'ready'

        with pytest.raises(StateError) as exc_info:
            engine.request_transition(order_id, 'delivered')
        assert "partially_paid" in str(exc_info.value)

        assert ledger.record_payment(order_id, 60000, 'cash')['order']['payment_status'] == 'paid'
        assert engine.request_transition(order_id, 'delivered')['status'] == 'delivered'

    def test_negative_payment_changes_nothing(self, store, ledger, sample_customer):
        order = _create(store, sample_customer, 'urgent', 50000)

        with pytest.raises(ValidationError):
            ledger.record_payment(order['order_id'], -10, 'cash')

        assert store.get_order(order['order_id']) == order

    def test_overpayment_changes_nothing(self, store, ledger, sample_customer):
        order = _create(store, sample_customer, 'urgent', 50000)

        with pytest.raises(ValidationError):
            ledger.record_payment(order['order_id'], 50001, 'cash')

        assert store.get_order(order['order_id']) == order
        assert ledger.payment_history(order['order_id']) == []

    def test_duplicate_assignment_keeps_first(self, store, assigner, support_ops, sample_customer):
        order_id = _create(store, sample_customer, 'scheduled', 100000)['order_id']
        staff_a = support_ops.register_user(name="Staff A", role="chef")
        staff_b = support_ops.register_user(name="Staff B", role="chef")

        assigner.assign(order_id, staff_a['user_id'], "Morning", "2025-12-24")
        with pytest.raises(ConflictError):
            assigner.assign(order_id, staff_b['user_id'], "Morning", "2025-12-24")

        assert assigner.get_assignment(order_id)['staff_id'] == staff_a['user_id']

    def test_skipping_to_ready_rejected(self, store, engine, sample_customer):
        order_id = _create(store, sample_customer, 'urgent', 50000)['order_id']

        with pytest.raises(StateError):
            engine.request_transition(order_id, "Ready")

        assert store.get_order(order_id)['status'] == 'pending'


class TestIntegrityCheck:
    """Stored state stays consistent with the payment history"""

    def test_consistent_database_passes(self, test_db, store, ledger, engine, assigner,
                                        sample_customer, sample_chef):
        order_id = _create(store, sample_customer, 'urgent', 50000)['order_id']
        ledger.record_payment(order_id, 50000, 'cash')
        assigner.assign(order_id, sample_chef['user_id'], "Morning", "2025-12-24")
        for label in ("Accepted", "Preparing", "Ready", "Delivered"):
            engine.request_transition(order_id, label)

        test_db.check_integrity()

    def test_paid_amount_drift_detected(self, test_db, store, ledger, sample_customer):
        order_id = _create(store, sample_customer, 'urgent', 50000)['order_id']
        ledger.record_payment(order_id, 10000, 'cash')
        test_db.execute_single("UPDATE orders SET paid_cents = 20000 WHERE order_id = ?", [order_id])

        with pytest.raises(RuntimeError) as exc_info:
            test_db.check_integrity()

        assert "payment history" in str(exc_info.value)

    def test_database_rejects_overpaid_row(self, test_db, store, sample_customer):
        order_id = _create(store, sample_customer, 'urgent', 50000)['order_id']

        with pytest.raises(sqlite3.IntegrityError):
            test_db.execute_single("UPDATE orders SET paid_cents = 50001 WHERE order_id = ?", [order_id])


class TestTransactionRollback:

    def test_failed_operation_rolls_back_earlier_ones(self, test_db, store, sample_customer, caplog):
        order_id = _create(store, sample_customer, 'urgent', 50000)['order_id']

        def set_address():
            test_db.conn.execute("UPDATE orders SET delivery_address = 'Piassa' WHERE order_id = ?",
                                 [order_id])

        def overpay():
            test_db.conn.execute("UPDATE orders SET paid_cents = 50001 WHERE order_id = ?", [order_id])

        with caplog.at_level(logging.DEBUG, logger="DatabaseManager"):
            with pytest.raises(sqlite3.IntegrityError):
                test_db.execute_transaction([set_address, overpay])

        assert store.get_order(order_id)['delivery_address'] is None
        errors = [record.getMessage() for record in caplog.records if record.levelno >= logging.ERROR]
        assert len(errors) == 1
        assert "failed (IntegrityError)" in errors[0]

    def test_rejected_operation_logged_as_warning(self, test_db, ledger, sample_urgent_order, caplog):
        with caplog.at_level(logging.DEBUG, logger="DatabaseManager"):
            with pytest.raises(ValidationError):
                ledger.record_payment(sample_urgent_order['order_id'], 100001, 'cash')

        assert not [record for record in caplog.records if record.levelno >= logging.ERROR]
        assert any("rejected" in record.getMessage() for record in caplog.records
                   if record.levelno == logging.WARNING)
