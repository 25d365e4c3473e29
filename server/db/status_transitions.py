# Order lifecycle state machine
# pending -> confirmed -> preparing -> ready -> delivered, or -> cancelled from any non-terminal status

import logging
from typing import List, Optional, Dict, Any

from .manager import DatabaseManager
from .order_store import OrderStore
from .payment_ledger import PaymentLedger
from .errors import ValidationError, StateError
from services.events import StatusChanged, EventSink, emit

logger = logging.getLogger(__name__)

LIFECYCLE = ['pending', 'confirmed', 'preparing', 'ready', 'delivered']
TERMINAL_STATUSES = {'delivered', 'cancelled'}

# Display labels used by staff screens, plus the canonical values themselves.
# Anything else is rejected rather than guessed.
STATUS_LABELS = {
    'Pending': 'pending',
    'Accepted': 'confirmed',
    'Confirmed': 'confirmed',
    'Preparing': 'preparing',
    'Ready': 'ready',
    'Delivered': 'delivered',
    'Cancelled': 'cancelled',
    'Canceled': 'cancelled',
}
STATUS_LABELS.update({status: status for status in LIFECYCLE + ['cancelled']})


def normalize_status_label(label: str) -> str:
    """
    Map a display label or canonical value to the canonical status

    Raises:
        ValidationError: unrecognized label
    """
    if not isinstance(label, str) or label.strip() not in STATUS_LABELS:
        raise ValidationError(
            f"Unknown order status {label!r}; expected one of {', '.join(sorted(STATUS_LABELS))}"
        )
    return STATUS_LABELS[label.strip()]


def next_statuses(current_status: str) -> List[str]:
    """Statuses reachable from current_status in one transition"""
    if current_status in TERMINAL_STATUSES:
        return []
    position = LIFECYCLE.index(current_status)
    return [LIFECYCLE[position + 1], 'cancelled']


class StatusTransitionEngine:
    """
    Status transition engine

    Validates a requested transition against the lifecycle, consults the payment
    ledger for the confirmation and delivery gates, and applies the change with a
    single UPDATE that re-checks the expected status and the gate on the stored row.
    """

    def __init__(self, db_manager: DatabaseManager, ledger: Optional[PaymentLedger] = None,
                 event_sink: Optional[EventSink] = None):
        self.db = db_manager
        self.orders = OrderStore(db_manager)
        self.ledger = ledger or PaymentLedger(db_manager)
        self.event_sink = event_sink

    def _check_transition(self, order: Dict[str, Any], target_status: str):
        current_status = order['status']

        if current_status == target_status:
            raise StateError(f"Order {order['order_id']} is already {current_status}")

        if target_status not in next_statuses(current_status):
            if current_status in TERMINAL_STATUSES:
                raise StateError(
                    f"Order {order['order_id']} is {current_status}; no further transitions are allowed"
                )
            raise StateError(
                f"Cannot move order {order['order_id']} from {current_status} to {target_status}; "
                f"next allowed status is {next_statuses(current_status)[0]} or cancelled"
            )

        gate_failure = self.ledger.gate_failure(order, target_status)
        if gate_failure:
            raise StateError(gate_failure)

    def allowed_transitions(self, order_id: int) -> List[str]:
        """
        Statuses the order may move to right now, taking the payment gates into account
        """
        order = self.orders.get_order(order_id)
        return [status for status in next_statuses(order['status'])
                if self.ledger.gate_failure(order, status) is None]

    def request_transition(self, order_id: int, target_status_label: str,
                           operator_id: Optional[int] = None,
                           reason: Optional[str] = None) -> Dict[str, Any]:
        """
        Move an order to a new lifecycle status

        Args:
            order_id: order ID
            target_status_label: display label ("Accepted", "Ready") or canonical status
            operator_id: staff member requesting the change
            reason: cancellation reason, stored when the target is cancelled

        Returns:
            the updated order with derived payment fields

        Raises:
            ValidationError: unrecognized label
            StateError: transition not allowed or payment gate unmet
            NotFoundError: unknown order
        """
        target_status = normalize_status_label(target_status_label)

        def rejection(message: str) -> StateError:
            # explain the failed write against the row as it is stored now
            current = self.orders.get_order(order_id)
            self._check_transition(current, target_status)
            return StateError(message)

        def advance_operation():
            position = LIFECYCLE.index(target_status)
            if position == 0:
                raise rejection(f"Order {order_id} cannot move back to {target_status}")
            expected_status = LIFECYCLE[position - 1]

            # status step and payment gate are both evaluated by the UPDATE itself
            gate_sql, gate_params = self.ledger.gate_clause(target_status)
            cursor = self.db.conn.execute(f"""
                UPDATE orders
                SET status = ?,
                    updated_at = CURRENT_TIMESTAMP
                WHERE order_id = ? AND status = ? AND {gate_sql}
            """, [target_status, order_id, expected_status] + gate_params)

            if cursor.rowcount == 0:
                raise rejection(f"Order {order_id} changed concurrently, retry the transition")
            return expected_status

        def cancel_operation():
            # status only moves forward, so this settles within len(LIFECYCLE) rounds
            for _ in LIFECYCLE:
                order = self.orders.get_order(order_id)
                self._check_transition(order, target_status)

                cursor = self.db.conn.execute("""
                    UPDATE orders
                    SET status = 'cancelled',
                        cancelled_at = CURRENT_TIMESTAMP,
                        cancel_reason = ?,
                        updated_at = CURRENT_TIMESTAMP
                    WHERE order_id = ? AND status = ?
                """, [reason, order_id, order['status']])

                if cursor.rowcount == 1:
                    return order['status']
            raise rejection(f"Order {order_id} changed concurrently, retry the cancellation")

        operation = cancel_operation if target_status == 'cancelled' else advance_operation
        previous_status = self.db.execute_transaction([operation])[0]
        order = self.ledger.get_order(order_id)

        logger.info(f"Order {order_id} moved {previous_status} -> {target_status}"
                    + (f" by user {operator_id}" if operator_id is not None else ""))

        emit(self.event_sink, StatusChanged(
            order_id=order_id,
            previous_status=previous_status,
            new_status=target_status
        ))

        return order

    def accept_order(self, order_id: int, operator_id: Optional[int] = None) -> Dict[str, Any]:
        """Catering manager accepts a pending order, confirming it"""
        return self.request_transition(order_id, 'Accepted', operator_id=operator_id)

    def cancel_order(self, order_id: int, reason: str = "Cancelled by staff",
                     operator_id: Optional[int] = None) -> Dict[str, Any]:
        return self.request_transition(order_id, 'cancelled', operator_id=operator_id, reason=reason)
