# Order persistence
# Source of truth for lifecycle and payment state; creation, lookup and listing

import json
import logging
from typing import List, Optional, Dict, Any

from .manager import DatabaseManager
from .errors import ValidationError, NotFoundError
from utils.validators import (
    validate_date, validate_order_type, validate_order_status,
    validate_positive_integer, validate_non_negative_integer, validate_string_length
)

logger = logging.getLogger(__name__)

ORDER_COLUMNS = """
    order_id, customer_id, line_items, total_cents, order_type, status, paid_cents,
    delivery_date, delivery_address, schedule_id, created_at, updated_at,
    cancelled_at, cancel_reason
"""


class OrderStore:
    """
    Order records

    The store never applies a lifecycle, payment or schedule mutation itself;
    those go through StatusTransitionEngine, PaymentLedger and ScheduleAssigner,
    which issue their own compare-and-apply updates.
    """

    def __init__(self, db_manager: DatabaseManager):
        self.db = db_manager

    @staticmethod
    def _row_to_order(row) -> Dict[str, Any]:
        return {
            'order_id': row['order_id'],
            'customer_id': row['customer_id'],
            'line_items': json.loads(row['line_items']) if row['line_items'] else [],
            'total_cents': row['total_cents'],
            'order_type': row['order_type'],
            'status': row['status'],
            'paid_cents': row['paid_cents'],
            'delivery_date': row['delivery_date'],
            'delivery_address': row['delivery_address'],
            'schedule_id': row['schedule_id'],
            'created_at': row['created_at'],
            'updated_at': row['updated_at'],
            'cancelled_at': row['cancelled_at'],
            'cancel_reason': row['cancel_reason']
        }

    def _normalize_line_items(self, line_items: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        """Validate line items and freeze the unit price at order time"""
        if not line_items:
            raise ValidationError("Order must contain at least one line item")

        normalized = []
        for index, item in enumerate(line_items, start=1):
            if not isinstance(item, dict):
                raise ValidationError(f"Line item {index} is malformed")

            menu_item_id = item.get('menu_item_id')
            quantity = item.get('quantity')
            unit_price_cents = item.get('unit_price_cents')

            if menu_item_id is None or menu_item_id == '':
                raise ValidationError(f"Line item {index} is missing menu_item_id")
            if not validate_positive_integer(quantity):
                raise ValidationError(f"Line item {index} quantity must be a positive integer")
            if not validate_non_negative_integer(unit_price_cents):
                raise ValidationError(f"Line item {index} unit_price_cents must be a non-negative integer")

            normalized.append({
                'menu_item_id': menu_item_id,
                'name': item.get('name'),
                'quantity': int(quantity),
                'unit_price_cents': int(unit_price_cents)
            })
        return normalized

    def _verify_customer(self, customer_id: int):
        customer = self.db.conn.execute(
            "SELECT status FROM users WHERE user_id = ?", [customer_id]
        ).fetchone()
        if not customer:
            raise NotFoundError(f"Customer {customer_id} does not exist")
        if customer['status'] != 'active':
            raise ValidationError(f"Customer {customer_id} account is not active")

    def create_order(self, customer_id: int, line_items: List[Dict[str, Any]], order_type: str,
                     delivery_date: Optional[str] = None,
                     delivery_address: Optional[str] = None) -> Dict[str, Any]:
        """
        Create an order from checkout

        Args:
            customer_id: ordering customer
            line_items: [{menu_item_id, name?, quantity, unit_price_cents}]
            order_type: urgent/scheduled
            delivery_date: YYYY-MM-DD, required for scheduled orders
            delivery_address: free text

        Returns:
            the stored order (status=pending, paid_cents=0)

        Raises:
            ValidationError: malformed input
            NotFoundError: unknown customer
        """
        if not validate_order_type(order_type):
            raise ValidationError(f"order_type must be one of urgent, scheduled; got {order_type!r}")

        if order_type == 'scheduled' and not delivery_date:
            raise ValidationError("delivery_date is required for scheduled orders")
        if delivery_date is not None and not validate_date(delivery_date):
            raise ValidationError(f"delivery_date must be YYYY-MM-DD; got {delivery_date!r}")
        if delivery_address is not None and not validate_string_length(delivery_address, 0, 500):
            raise ValidationError("delivery_address must be at most 500 characters")

        items = self._normalize_line_items(line_items)
        total_cents = sum(item['quantity'] * item['unit_price_cents'] for item in items)
        if total_cents <= 0:
            raise ValidationError("Order total must be greater than zero")

        def create_order_operation():
            self._verify_customer(customer_id)

            cursor = self.db.conn.execute("""
                INSERT INTO orders (customer_id, line_items, total_cents, order_type, status,
                                    paid_cents, delivery_date, delivery_address,
                                    created_at, updated_at)
                VALUES (?, ?, ?, ?, 'pending', 0, ?, ?, CURRENT_TIMESTAMP, CURRENT_TIMESTAMP)
            """, [customer_id, json.dumps(items), total_cents, order_type,
                  delivery_date, delivery_address])
            return cursor.lastrowid

        order_id = self.db.execute_transaction([create_order_operation])[0]
        logger.info(f"Order {order_id} created for customer {customer_id}: "
                    f"{order_type}, total {total_cents/100:.2f}")
        return self.get_order(order_id)

    def find_order(self, order_id: int) -> Optional[Dict[str, Any]]:
        row = self.db.conn.execute(
            f"SELECT {ORDER_COLUMNS} FROM orders WHERE order_id = ?", [order_id]
        ).fetchone()
        return self._row_to_order(row) if row else None

    def get_order(self, order_id: int) -> Dict[str, Any]:
        """
        Raises:
            NotFoundError: unknown order
        """
        order = self.find_order(order_id)
        if order is None:
            raise NotFoundError(f"Order {order_id} does not exist")
        return order

    def _validate_pagination(self, offset: int, limit: int, max_limit: int):
        if offset < 0:
            raise ValidationError("offset must not be negative")
        if limit <= 0 or limit > max_limit:
            raise ValidationError(f"limit must be between 1 and {max_limit}")

    def list_orders(self, status: str = None, customer_id: int = None,
                    offset: int = 0, limit: int = 50) -> Dict[str, Any]:
        """
        List orders, newest first

        Args:
            status: filter by lifecycle status
            customer_id: filter by customer
            offset: pagination offset
            limit: page size (1..200)

        Returns:
            {'orders': [...], 'total_count': n}
        """
        self._validate_pagination(offset, limit, 200)

        conditions = []
        params = []
        if status is not None:
            if not validate_order_status(status):
                raise ValidationError(f"Unknown order status {status!r}")
            conditions.append("status = ?")
            params.append(status)
        if customer_id is not None:
            conditions.append("customer_id = ?")
            params.append(customer_id)

        where_clause = f"WHERE {' AND '.join(conditions)}" if conditions else ""

        total_count = self.db.conn.execute(
            f"SELECT COUNT(*) FROM orders {where_clause}", params
        ).fetchone()[0]

        rows = self.db.conn.execute(f"""
            SELECT {ORDER_COLUMNS} FROM orders
            {where_clause}
            ORDER BY created_at DESC, order_id DESC
            LIMIT ? OFFSET ?
        """, params + [limit, offset]).fetchall()

        return {
            'orders': [self._row_to_order(row) for row in rows],
            'total_count': total_count
        }

    def get_customer_contact(self, order_id: int) -> Optional[str]:
        """Contact identifier of the customer who placed the order"""
        row = self.db.conn.execute("""
            SELECT u.contact FROM orders o
            JOIN users u ON u.user_id = o.customer_id
            WHERE o.order_id = ?
        """, [order_id]).fetchone()
        return row['contact'] if row else None
