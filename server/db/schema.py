# Table and index definitions
# Shared by scripts/init_db.py, the application startup and the test fixtures

import logging

from .manager import DatabaseManager

logger = logging.getLogger(__name__)


TABLES = [
    # users: customers and staff, owned by account management
    ("users", """
    CREATE TABLE IF NOT EXISTS users (
        user_id INTEGER PRIMARY KEY,
        name VARCHAR(100) NOT NULL,
        contact VARCHAR(200),                       -- email address or phone number
        role VARCHAR(30) NOT NULL DEFAULT 'customer', -- customer/chef/catering_manager/system_admin
        status VARCHAR(20) DEFAULT 'active',        -- active/suspended
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )
    """),

    ("orders", """
    CREATE TABLE IF NOT EXISTS orders (
        order_id INTEGER PRIMARY KEY,
        customer_id INTEGER NOT NULL,
        line_items TEXT NOT NULL,                   -- JSON list of {menu_item_id, name, quantity, unit_price_cents}
        total_cents INTEGER NOT NULL CHECK (total_cents > 0),
        order_type VARCHAR(20) NOT NULL CHECK (order_type IN ('urgent', 'scheduled')),
        status VARCHAR(20) NOT NULL DEFAULT 'pending'
            CHECK (status IN ('pending', 'confirmed', 'preparing', 'ready', 'delivered', 'cancelled')),
        paid_cents INTEGER NOT NULL DEFAULT 0 CHECK (paid_cents >= 0 AND paid_cents <= total_cents),
        delivery_date DATE,
        delivery_address TEXT,
        schedule_id INTEGER,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        cancelled_at TIMESTAMP,
        cancel_reason TEXT,
        FOREIGN KEY (customer_id) REFERENCES users(user_id),
        CHECK (order_type = 'urgent' OR delivery_date IS NOT NULL)
    )
    """),

    # payments: append-only, never updated or deleted
    ("payments", """
    CREATE TABLE IF NOT EXISTS payments (
        payment_id INTEGER PRIMARY KEY,
        transaction_no VARCHAR(32) UNIQUE NOT NULL, -- PAY20250101000001
        external_ref VARCHAR(100) UNIQUE, -- gateway or bank reference, NULL for cash
        order_id INTEGER NOT NULL,
        amount_cents INTEGER NOT NULL CHECK (amount_cents > 0),
        method VARCHAR(20) NOT NULL CHECK (method IN ('cash', 'bank_transfer', 'mobile_money', 'other')),
        notes TEXT,
        paid_after_cents INTEGER NOT NULL,
        recorded_by INTEGER,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        FOREIGN KEY (order_id) REFERENCES orders(order_id),
        FOREIGN KEY (recorded_by) REFERENCES users(user_id)
    )
    """),

    ("schedules", """
    CREATE TABLE IF NOT EXISTS schedules (
        schedule_id INTEGER PRIMARY KEY,
        order_id INTEGER NOT NULL UNIQUE,           -- one schedule per order
        staff_id INTEGER NOT NULL,
        shift_label VARCHAR(50) NOT NULL,
        date DATE NOT NULL,
        status VARCHAR(20) NOT NULL DEFAULT 'assigned',
        assigned_by INTEGER,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        FOREIGN KEY (order_id) REFERENCES orders(order_id),
        FOREIGN KEY (staff_id) REFERENCES users(user_id)
    )
    """),

    # notifications: one row per delivery attempt
    ("notifications", """
    CREATE TABLE IF NOT EXISTS notifications (
        notification_id INTEGER PRIMARY KEY,
        order_id INTEGER NOT NULL,
        event_type VARCHAR(30) NOT NULL,
        contact VARCHAR(200),
        message TEXT NOT NULL,
        status VARCHAR(10) NOT NULL,                -- sent/failed
        error TEXT,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )
    """),
]

INDEXES = [
    "CREATE INDEX IF NOT EXISTS idx_users_role ON users(role)",
    "CREATE INDEX IF NOT EXISTS idx_orders_customer_id ON orders(customer_id)",
    "CREATE INDEX IF NOT EXISTS idx_orders_status ON orders(status)",
    "CREATE INDEX IF NOT EXISTS idx_orders_created_at ON orders(created_at)",
    "CREATE INDEX IF NOT EXISTS idx_payments_order_id ON payments(order_id)",
    "CREATE INDEX IF NOT EXISTS idx_schedules_staff_date ON schedules(staff_id, date)",
    "CREATE INDEX IF NOT EXISTS idx_notifications_order_id ON notifications(order_id)",
]


def create_tables(db_manager: DatabaseManager):
    """Create every table"""
    for table_name, create_sql in TABLES:
        try:
            db_manager.execute_single(create_sql)
            logger.debug(f"Table ready: {table_name}")
        except Exception as e:
            logger.error(f"Failed to create table {table_name}: {e}")
            raise


def create_indexes(db_manager: DatabaseManager):
    for index_sql in INDEXES:
        db_manager.execute_single(index_sql)


def initialize_schema(db_manager: DatabaseManager):
    """Create tables and indexes; safe to run repeatedly"""
    create_tables(db_manager)
    create_indexes(db_manager)
