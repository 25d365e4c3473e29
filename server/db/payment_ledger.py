# Payment ledger
# Records payments against an order and derives payment status and balance.
# This is the only module that computes payment_status, remaining balance and
# the upfront threshold; other components read them through it.

import logging
import sqlite3
from datetime import datetime
from typing import List, Optional, Dict, Any, Tuple

from .manager import DatabaseManager
from .order_store import OrderStore
from .errors import ValidationError, StateError, ConflictError
from services.events import PaymentRecorded, EventSink, emit
from utils.validators import validate_payment_method, validate_positive_integer, validate_string_length

logger = logging.getLogger(__name__)

DEFAULT_UPFRONT_PERCENT = {
    'urgent': 100,
    'scheduled': 40
}


def payment_status_for(paid_cents: int, total_cents: int) -> str:
    """
    Derive payment status from the paid and total amounts

    unpaid iff nothing paid; paid iff paid >= total; partially_paid otherwise
    """
    if paid_cents <= 0:
        return 'unpaid'
    if paid_cents >= total_cents:
        return 'paid'
    return 'partially_paid'


class PaymentLedger:
    """
    Payment ledger

    Every mutation increments orders.paid_cents with a conditional UPDATE that
    re-checks the overpayment bound against the stored value, so concurrent
    payments and status changes on the same order never lose each other.
    """

    def __init__(self, db_manager: DatabaseManager, event_sink: Optional[EventSink] = None,
                 upfront_percent: Optional[Dict[str, int]] = None):
        self.db = db_manager
        self.orders = OrderStore(db_manager)
        self.event_sink = event_sink
        self.upfront_percent = dict(DEFAULT_UPFRONT_PERCENT)
        if upfront_percent:
            self.upfront_percent.update(upfront_percent)

    # ===== derived fields =====

    def upfront_percent_for(self, order_type: str) -> int:
        return self.upfront_percent[order_type]

    def upfront_required_cents(self, order: Dict[str, Any]) -> int:
        """Minimum paid amount before the order may be confirmed, rounded up to the cent"""
        percent = self.upfront_percent_for(order['order_type'])
        return -(-order['total_cents'] * percent // 100)

    def describe(self, order: Dict[str, Any]) -> Dict[str, Any]:
        """
        Return a copy of an order record with the derived payment fields attached
        """
        paid = order['paid_cents']
        total = order['total_cents']
        described = dict(order)
        described.update({
            'payment_status': payment_status_for(paid, total),
            'remaining_cents': total - paid,
            'upfront_percent': self.upfront_percent_for(order['order_type']),
            'upfront_required_cents': self.upfront_required_cents(order),
            'minimum_upfront_met': self._upfront_met(order)
        })
        return described

    def _upfront_met(self, order: Dict[str, Any]) -> bool:
        percent = self.upfront_percent_for(order['order_type'])
        return order['paid_cents'] * 100 >= order['total_cents'] * percent

    def gate_clause(self, target_status: str) -> Tuple[str, List[Any]]:
        """
        SQL predicate over the stored row that must hold for the order to enter
        target_status. Evaluated inside the status UPDATE so the gate reads
        paid_cents and order_type at apply time.
        """
        if target_status == 'confirmed':
            cases = " ".join("WHEN ? THEN ?" for _ in self.upfront_percent)
            params: List[Any] = []
            for order_type, percent in sorted(self.upfront_percent.items()):
                params.extend([order_type, percent])
            return f"paid_cents * 100 >= total_cents * (CASE order_type {cases} END)", params
        if target_status == 'delivered':
            return "paid_cents >= total_cents", []
        return "1 = 1", []

    def gate_failure(self, order: Dict[str, Any], target_status: str) -> Optional[str]:
        """
        Explain why the payment gate for target_status is unmet, or None when it holds
        """
        if target_status == 'confirmed' and not self._upfront_met(order):
            percent = self.upfront_percent_for(order['order_type'])
            # truncated, not rounded
            paid_percent = order['paid_cents'] * 10000 // order['total_cents'] / 100
            return (f"cannot confirm: {self.upfront_required_cents(order)/100:.2f} required upfront "
                    f"({percent}% of total), {order['paid_cents']/100:.2f} paid ({paid_percent:.2f}%)")
        if target_status == 'delivered':
            status = payment_status_for(order['paid_cents'], order['total_cents'])
            if status != 'paid':
                return (f"cannot deliver: payment status is {status}, "
                        f"remaining balance {(order['total_cents'] - order['paid_cents'])/100:.2f}")
        return None

    # ===== queries =====

    def minimum_upfront_met(self, order_id: int) -> bool:
        """Whether the order has paid the upfront threshold defined by its type"""
        return self._upfront_met(self.orders.get_order(order_id))

    def remaining_balance(self, order_id: int) -> int:
        order = self.orders.get_order(order_id)
        return order['total_cents'] - order['paid_cents']

    def payment_status(self, order_id: int) -> str:
        order = self.orders.get_order(order_id)
        return payment_status_for(order['paid_cents'], order['total_cents'])

    def get_order(self, order_id: int) -> Dict[str, Any]:
        """Fetch an order with its derived payment fields"""
        return self.describe(self.orders.get_order(order_id))

    def payment_history(self, order_id: int) -> List[Dict[str, Any]]:
        """
        Payments recorded against the order, oldest first

        Raises:
            NotFoundError: unknown order
        """
        self.orders.get_order(order_id)

        rows = self.db.conn.execute("""
            SELECT payment_id, transaction_no, external_ref, order_id, amount_cents, method, notes,
                   paid_after_cents, recorded_by, created_at
            FROM payments
            WHERE order_id = ?
            ORDER BY payment_id
        """, [order_id]).fetchall()

        return [{
            'payment_id': row['payment_id'],
            'transaction_no': row['transaction_no'],
            'external_ref': row['external_ref'],
            'order_id': row['order_id'],
            'amount_cents': row['amount_cents'],
            'method': row['method'],
            'notes': row['notes'],
            'paid_after_cents': row['paid_after_cents'],
            'recorded_by': row['recorded_by'],
            'created_at': row['created_at']
        } for row in rows]

    # ===== mutations =====

    def _generate_transaction_no(self) -> str:
        """PAY + date + six digit daily sequence"""
        date_prefix = f"PAY{datetime.now().strftime('%Y%m%d')}"

        max_seq = self.db.conn.execute("""
            SELECT MAX(CAST(substr(transaction_no, 12, 6) AS INTEGER))
            FROM payments
            WHERE transaction_no LIKE ?
        """, [f"{date_prefix}%"]).fetchone()[0]

        seq = (max_seq or 0) + 1
        return f"{date_prefix}{seq:06d}"

    def _validate_payment_input(self, amount_cents: Any, method: str, notes: Optional[str],
                                external_ref: Optional[str]):
        if not validate_positive_integer(amount_cents):
            raise ValidationError(f"Payment amount must be a positive whole number of cents; got {amount_cents!r}")
        if not validate_payment_method(method):
            raise ValidationError(
                f"Payment method must be one of cash, bank_transfer, mobile_money, other; got {method!r}"
            )
        if notes is not None and not validate_string_length(notes, 0, 500):
            raise ValidationError("Payment notes must be at most 500 characters")
        if external_ref is not None and not validate_string_length(external_ref, 1, 100):
            raise ValidationError("Payment reference must be 1 to 100 characters")

    def record_payment(self, order_id: int, amount_cents: int, method: str,
                       notes: Optional[str] = None, recorded_by: Optional[int] = None,
                       external_ref: Optional[str] = None) -> Dict[str, Any]:
        """
        Record a payment against an order

        Args:
            order_id: order ID
            amount_cents: amount paid, > 0 and not above the remaining balance
            method: cash/bank_transfer/mobile_money/other
            notes: optional free text
            recorded_by: staff member recording the payment
            external_ref: gateway or bank transaction reference, unique across payments

        Returns:
            the updated order with derived payment fields and the new payment record

        Raises:
            ValidationError: bad amount or method, or overpayment
            StateError: the order is cancelled
            ConflictError: external_ref was already recorded
            NotFoundError: unknown order
        """
        if isinstance(external_ref, str):
            external_ref = external_ref.strip()
        self._validate_payment_input(amount_cents, method, notes, external_ref)
        amount_cents = int(amount_cents)

        def record_payment_operation():
            order = self.orders.get_order(order_id)

            if order['status'] == 'cancelled':
                raise StateError(f"Order {order_id} is cancelled and cannot accept payments")

            remaining = order['total_cents'] - order['paid_cents']
            if amount_cents > remaining:
                raise ValidationError(
                    f"Payment of {amount_cents/100:.2f} exceeds remaining balance {remaining/100:.2f}"
                )

            cursor = self.db.conn.execute("""
                UPDATE orders
                SET paid_cents = paid_cents + ?,
                    updated_at = CURRENT_TIMESTAMP
                WHERE order_id = ?
                  AND status != 'cancelled'
                  AND paid_cents + ? <= total_cents
            """, [amount_cents, order_id, amount_cents])

            if cursor.rowcount == 0:
                # another writer changed the order between the read and the update
                current = self.orders.get_order(order_id)
                if current['status'] == 'cancelled':
                    raise StateError(f"Order {order_id} is cancelled and cannot accept payments")
                current_remaining = current['total_cents'] - current['paid_cents']
                raise ValidationError(
                    f"Payment of {amount_cents/100:.2f} exceeds remaining balance {current_remaining/100:.2f}"
                )

            paid_after = self.db.conn.execute(
                "SELECT paid_cents FROM orders WHERE order_id = ?", [order_id]
            ).fetchone()[0]

            transaction_no = self._generate_transaction_no()
            try:
                payment_cursor = self.db.conn.execute("""
                    INSERT INTO payments (transaction_no, external_ref, order_id, amount_cents, method,
                                          notes, paid_after_cents, recorded_by, created_at)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, CURRENT_TIMESTAMP)
                """, [transaction_no, external_ref, order_id, amount_cents, method, notes,
                      paid_after, recorded_by])
            except sqlite3.IntegrityError as e:
                # the paid_cents increment above is rolled back with the transaction
                if external_ref is not None and 'external_ref' in str(e):
                    raise ConflictError(f"Payment reference {external_ref} is already recorded")
                raise

            return {
                'payment_id': payment_cursor.lastrowid,
                'transaction_no': transaction_no,
                'external_ref': external_ref,
                'order_id': order_id,
                'amount_cents': amount_cents,
                'method': method,
                'notes': notes,
                'paid_after_cents': paid_after,
                'recorded_by': recorded_by
            }

        payment = self.db.execute_transaction([record_payment_operation])[0]
        order = self.get_order(order_id)

        logger.info(f"Payment {payment['transaction_no']} of {amount_cents/100:.2f} recorded on order "
                    f"{order_id} via {method}; paid {order['paid_cents']/100:.2f}/"
                    f"{order['total_cents']/100:.2f} ({order['payment_status']})")

        emit(self.event_sink, PaymentRecorded(
            order_id=order_id,
            amount_cents=amount_cents,
            new_paid_cents=payment['paid_after_cents'],
            payment_status=payment_status_for(payment['paid_after_cents'], order['total_cents'])
        ))

        return {
            'order': order,
            'payment': payment
        }
