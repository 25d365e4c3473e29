# Customer notification on lifecycle and payment events
# Best effort: a failed delivery is logged and recorded, never raised

import logging
from typing import Optional, Dict, Any

from db.manager import DatabaseManager
from db.order_store import OrderStore
from db.payment_ledger import PaymentLedger
from db.errors import NotificationFailure
from .events import DomainEvent, StatusChanged, PaymentRecorded
from .messaging_service import MessagingService

logger = logging.getLogger(__name__)


STATUS_MESSAGES = {
    'confirmed': "Your order #{order_id} has been confirmed. Total {total:.2f} ETB, paid {paid:.2f} ETB.",
    'preparing': "Our kitchen has started preparing your order #{order_id}.",
    'ready': ("Your order #{order_id} is ready for delivery. "
              "Remaining balance: {remaining:.2f} ETB. Please complete your payment to receive it."),
    'delivered': "Your order #{order_id} has been delivered. Thank you for ordering with us!",
    'cancelled': "Your order #{order_id} has been cancelled.",
    'pending': "Your order #{order_id} is pending.",
}


class NotificationDispatcher:
    """
    Notification dispatcher

    Consumes StatusChanged and PaymentRecorded events after their mutation has
    committed. Each delivery attempt is recorded in the notifications table.
    """

    def __init__(self, db_manager: DatabaseManager, messaging: MessagingService):
        self.db = db_manager
        self.orders = OrderStore(db_manager)
        self.ledger = PaymentLedger(db_manager)
        self.messaging = messaging

    def build_message(self, event: DomainEvent, order: Dict[str, Any]) -> str:
        """Render the customer message for an event"""
        described = self.ledger.describe(order)
        values = {
            'order_id': order['order_id'],
            'total': described['total_cents'] / 100,
            'paid': described['paid_cents'] / 100,
            'remaining': described['remaining_cents'] / 100,
        }

        if isinstance(event, StatusChanged):
            message = STATUS_MESSAGES[event.new_status].format(**values)
            if event.new_status == 'ready' and described['remaining_cents'] == 0:
                message = f"Your order #{order['order_id']} is ready for delivery and fully paid."
            if event.new_status == 'cancelled' and order.get('cancel_reason'):
                message += f" Reason: {order['cancel_reason']}"
            return message

        if isinstance(event, PaymentRecorded):
            if event.payment_status == 'paid':
                return (f"We received your payment of {event.amount_cents/100:.2f} ETB for order "
                        f"#{order['order_id']}. Your order is fully paid.")
            return (f"We received your payment of {event.amount_cents/100:.2f} ETB for order "
                    f"#{order['order_id']}. Remaining balance: {values['remaining']:.2f} ETB.")

        raise NotificationFailure(f"Unsupported event {type(event).__name__}")

    def notify(self, customer_contact: Optional[str], message: str) -> bool:
        """
        Send one message through the messaging gateway

        Returns:
            whether the gateway accepted the message
        """
        try:
            return self.messaging.send(customer_contact, message)
        except NotificationFailure as e:
            logger.error(f"Notification failed: {str(e)}")
            return False

    def _record_attempt(self, order_id: int, event_type: str, contact: Optional[str],
                        message: str, delivered: bool, error: Optional[str] = None):
        self.db.execute_single("""
            INSERT INTO notifications (order_id, event_type, contact, message, status, error, created_at)
            VALUES (?, ?, ?, ?, ?, ?, CURRENT_TIMESTAMP)
        """, [order_id, event_type, contact, message, 'sent' if delivered else 'failed', error])

    def dispatch(self, event: DomainEvent) -> bool:
        """
        Notify the customer about an event

        Returns:
            whether the notification was delivered; failures are logged, never raised
        """
        try:
            order = self.orders.get_order(event.order_id)
            contact = self.orders.get_customer_contact(event.order_id)
            message = self.build_message(event, order)

            delivered = self.notify(contact, message)
            self._record_attempt(event.order_id, event.event_type, contact, message, delivered,
                                 None if delivered else "delivery failed")
            return delivered

        except Exception as e:
            failure = NotificationFailure(f"{event.event_type} notification for order {event.order_id}: {str(e)}")
            logger.error(str(failure), exc_info=True)
            return False

    def notification_history(self, order_id: int) -> list:
        rows = self.db.conn.execute("""
            SELECT notification_id, order_id, event_type, contact, message, status, error, created_at
            FROM notifications WHERE order_id = ?
            ORDER BY notification_id
        """, [order_id]).fetchall()
        return [dict(row) for row in rows]


def dispatch_in_background(db_path: str, messaging: MessagingService, event: DomainEvent):
    """
    Background task entry point: the request's connection is closed by the time
    this runs, so the dispatcher opens its own
    """
    try:
        with DatabaseManager(db_path, auto_connect=True) as db:
            NotificationDispatcher(db, messaging).dispatch(event)
    except Exception as e:
        logger.error(f"Background notification for order {event.order_id} failed: {str(e)}")
