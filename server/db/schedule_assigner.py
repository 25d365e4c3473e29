# Staff schedule assignment
# Binds exactly one staff member and shift to an order; a second assignment is rejected

import sqlite3
import logging
from typing import List, Optional, Dict, Any

from .manager import DatabaseManager
from .order_store import OrderStore
from .supporting_operations import SupportingOperations
from .errors import ValidationError, StateError, ConflictError
from utils.validators import validate_date, validate_string_length

logger = logging.getLogger(__name__)

SCHEDULE_COLUMNS = "schedule_id, order_id, staff_id, shift_label, date, status, assigned_by, created_at"


class ScheduleAssigner:
    """
    Schedule assigner

    Duplicate detection is authoritative at the data layer: schedules.order_id is
    UNIQUE and the order's schedule_id is only written while it is still NULL.
    Callers should treat ConflictError as the answer instead of pre-filtering.
    """

    def __init__(self, db_manager: DatabaseManager):
        self.db = db_manager
        self.orders = OrderStore(db_manager)
        self.users = SupportingOperations(db_manager)

    @staticmethod
    def _row_to_schedule(row) -> Dict[str, Any]:
        return {
            'schedule_id': row['schedule_id'],
            'order_id': row['order_id'],
            'staff_id': row['staff_id'],
            'shift_label': row['shift_label'],
            'date': row['date'],
            'status': row['status'],
            'assigned_by': row['assigned_by'],
            'created_at': row['created_at']
        }

    def assign(self, order_id: int, staff_id: int, shift_label: str, date: str,
               assigned_by: Optional[int] = None) -> Dict[str, Any]:
        """
        Assign a staff member and shift to an order

        Args:
            order_id: order ID
            staff_id: staff member doing the fulfillment
            shift_label: e.g. Morning, Evening
            date: shift date YYYY-MM-DD
            assigned_by: manager making the assignment

        Returns:
            the created schedule

        Raises:
            ValidationError: malformed shift or date
            NotFoundError: unknown order or staff member
            StateError: order is cancelled or delivered
            ConflictError: order already scheduled
        """
        if not validate_string_length(shift_label, 1, 50) or not shift_label.strip():
            raise ValidationError("shift_label must be 1-50 characters")
        if not validate_date(date):
            raise ValidationError(f"date must be YYYY-MM-DD; got {date!r}")

        def assign_operation():
            order = self.orders.get_order(order_id)
            self.users.verify_staff(staff_id)

            if order['schedule_id'] is not None:
                raise ConflictError(f"Order {order_id} is already scheduled")

            if order['status'] in ('cancelled', 'delivered'):
                raise StateError(f"Order {order_id} is {order['status']} and cannot be scheduled")

            try:
                cursor = self.db.conn.execute("""
                    INSERT INTO schedules (order_id, staff_id, shift_label, date, status,
                                           assigned_by, created_at)
                    VALUES (?, ?, ?, ?, 'assigned', ?, CURRENT_TIMESTAMP)
                """, [order_id, staff_id, shift_label.strip(), date, assigned_by])
            except sqlite3.IntegrityError as e:
                if 'UNIQUE' in str(e).upper():
                    raise ConflictError(f"Order {order_id} is already scheduled")
                raise

            schedule_id = cursor.lastrowid

            update = self.db.conn.execute("""
                UPDATE orders
                SET schedule_id = ?, updated_at = CURRENT_TIMESTAMP
                WHERE order_id = ? AND schedule_id IS NULL
                  AND status NOT IN ('cancelled', 'delivered')
            """, [schedule_id, order_id])

            if update.rowcount == 0:
                current = self.orders.get_order(order_id)
                if current['schedule_id'] is not None:
                    raise ConflictError(f"Order {order_id} is already scheduled")
                raise StateError(f"Order {order_id} is {current['status']} and cannot be scheduled")

            return schedule_id

        schedule_id = self.db.execute_transaction([assign_operation])[0]
        logger.info(f"Order {order_id} scheduled to staff {staff_id} on {date} ({shift_label})")

        return self.get_schedule(schedule_id)

    def is_assigned(self, order_id: int) -> bool:
        """Whether the order already has a schedule"""
        return self.orders.get_order(order_id)['schedule_id'] is not None

    def get_schedule(self, schedule_id: int) -> Optional[Dict[str, Any]]:
        row = self.db.conn.execute(
            f"SELECT {SCHEDULE_COLUMNS} FROM schedules WHERE schedule_id = ?", [schedule_id]
        ).fetchone()
        return self._row_to_schedule(row) if row else None

    def get_assignment(self, order_id: int) -> Optional[Dict[str, Any]]:
        """
        Raises:
            NotFoundError: unknown order
        """
        self.orders.get_order(order_id)
        row = self.db.conn.execute(
            f"SELECT {SCHEDULE_COLUMNS} FROM schedules WHERE order_id = ?", [order_id]
        ).fetchone()
        return self._row_to_schedule(row) if row else None

    def list_schedules(self, staff_id: int = None, date: str = None) -> List[Dict[str, Any]]:
        """
        List schedules, optionally for one staff member and/or one date

        Args:
            staff_id: filter by staff member
            date: filter by shift date YYYY-MM-DD
        """
        conditions = []
        params = []
        if staff_id is not None:
            conditions.append("staff_id = ?")
            params.append(staff_id)
        if date is not None:
            if not validate_date(date):
                raise ValidationError(f"date must be YYYY-MM-DD; got {date!r}")
            conditions.append("date = ?")
            params.append(date)

        where_clause = f"WHERE {' AND '.join(conditions)}" if conditions else ""
        rows = self.db.conn.execute(f"""
            SELECT {SCHEDULE_COLUMNS} FROM schedules
            {where_clause}
            ORDER BY date, schedule_id
        """, params).fetchall()

        return [self._row_to_schedule(row) for row in rows]
