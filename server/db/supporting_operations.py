# -*- coding: utf-8 -*-
# Supporting operations over the users table
# Accounts are owned by account management; the fulfillment core only registers
# seed users and looks up customers and staff

import logging
from typing import Optional, Dict, Any

from .manager import DatabaseManager
from .errors import ValidationError, NotFoundError
from utils.validators import validate_user_role, validate_string_length, is_staff_role

logger = logging.getLogger(__name__)


class SupportingOperations:
    """
    Customer and staff lookups
    """
    def __init__(self, db_manager: DatabaseManager):
        self.db = db_manager

    def _validate_user_info(self, name: str, contact: str = None, role: str = 'customer'):
        """Validate user fields"""
        if not name or not validate_string_length(name.strip(), 1, 100):
            raise ValidationError("User name must be 1-100 characters")

        if contact is not None and not validate_string_length(contact, 0, 200):
            raise ValidationError("Contact must be at most 200 characters")

        if not validate_user_role(role):
            raise ValidationError(f"Unknown role {role!r}")

    def register_user(self, name: str, contact: str = None, role: str = 'customer') -> Dict[str, Any]:
        """
        Register a customer or staff member

        Args:
            name: display name
            contact: email address or phone number used for notifications
            role: customer/chef/catering_manager/system_admin

        Returns:
            the registered user
        """
        self._validate_user_info(name, contact, role)

        def register_user_operation():
            cursor = self.db.conn.execute("""
                INSERT INTO users (name, contact, role, status, created_at, updated_at)
                VALUES (?, ?, ?, 'active', CURRENT_TIMESTAMP, CURRENT_TIMESTAMP)
            """, [name.strip(), contact, role])
            return cursor.lastrowid

        user_id = self.db.execute_transaction([register_user_operation])[0]
        logger.info(f"Registered {role} {user_id}")
        return self.get_user_by_id(user_id)

    def get_user_by_id(self, user_id: int) -> Optional[Dict[str, Any]]:
        """
        Args:
            user_id: user ID

        Returns:
            user dict or None
        """
        result = self.db.conn.execute("""
            SELECT user_id, name, contact, role, status, created_at, updated_at
            FROM users
            WHERE user_id = ?
        """, [user_id]).fetchone()

        if result:
            return {
                'user_id': result['user_id'],
                'name': result['name'],
                'contact': result['contact'],
                'role': result['role'],
                'status': result['status'],
                'created_at': result['created_at'],
                'updated_at': result['updated_at']
            }
        return None

    def verify_staff(self, staff_id: int) -> Dict[str, Any]:
        """
        Return the staff member, which must exist, be active and hold a staff role

        Raises:
            NotFoundError: no active staff member with this ID
        """
        user = self.get_user_by_id(staff_id)
        if not user or user['status'] != 'active' or not is_staff_role(user['role']):
            raise NotFoundError(f"Staff member {staff_id} does not exist")
        return user

    def set_user_status(self, user_id: int, status: str) -> Dict[str, Any]:
        """
        Activate or suspend an account

        Raises:
            ValidationError: unknown status
            NotFoundError: unknown user
        """
        if status not in ('active', 'suspended'):
            raise ValidationError(f"Unknown user status {status!r}")

        def set_status_operation():
            cursor = self.db.conn.execute("""
                UPDATE users SET status = ?, updated_at = CURRENT_TIMESTAMP
                WHERE user_id = ?
            """, [status, user_id])
            if cursor.rowcount == 0:
                raise NotFoundError(f"User {user_id} does not exist")

        self.db.execute_transaction([set_status_operation])
        return self.get_user_by_id(user_id)
