# Database connection and transaction management
# Core component shared by every order, payment and schedule operation

import sqlite3
import logging
import os
from datetime import datetime
from typing import List, Dict, Any, Callable

from .errors import FulfillmentError

CORE_TABLES = ['users', 'orders', 'payments', 'schedules', 'notifications']


class DatabaseManager:
    """
    Database manager

    Owns the SQLite connection, transaction handling and maintenance helpers.
    """

    def __init__(self, db_path: str, auto_connect: bool = False, busy_timeout_ms: int = 5000):
        """
        Initialize the database manager

        Args:
            db_path: path of the database file (":memory:" for tests)
            auto_connect: connect immediately
            busy_timeout_ms: how long a writer waits for a competing write lock
        """
        self.db_path = db_path
        self.busy_timeout_ms = busy_timeout_ms
        self.conn = None
        self._is_connected = False

        self.logger = logging.getLogger(self.__class__.__name__)

        if auto_connect:
            self.connect()

    def connect(self) -> sqlite3.Connection:
        """
        Open the database connection

        Returns:
            SQLite connection object

        Raises:
            ConnectionError: when the connection cannot be opened
        """
        try:
            if self.conn is not None:
                self.logger.warning("Connection already open, closing it first")
                self.close()

            db_dir = os.path.dirname(self.db_path)
            if db_dir and not os.path.exists(db_dir):
                os.makedirs(db_dir, exist_ok=True)
                self.logger.info(f"Created database directory: {db_dir}")

            self.conn = sqlite3.connect(
                self.db_path,
                check_same_thread=False,
                timeout=self.busy_timeout_ms / 1000.0
            )
            self.conn.row_factory = sqlite3.Row
            self._is_connected = True
            self.logger.info(f"Connected to database: {self.db_path}")

            self._configure_database()

            return self.conn

        except Exception as e:
            self.logger.error(f"Failed to connect to database: {str(e)}")
            raise ConnectionError(f"Cannot connect to database {self.db_path}: {str(e)}")

    def close(self):
        """
        Close the database connection
        """
        if self.conn is not None:
            try:
                self.conn.close()
                self.logger.info("Database connection closed")
            except Exception as e:
                self.logger.error(f"Error while closing database connection: {str(e)}")
            finally:
                self.conn = None
                self._is_connected = False

    def _configure_database(self):
        """
        Apply SQLite pragmas
        """
        try:
            optimizations = [
                "PRAGMA foreign_keys = ON",
                "PRAGMA journal_mode = WAL",       # readers never block the single writer
                "PRAGMA synchronous = NORMAL",
                f"PRAGMA busy_timeout = {int(self.busy_timeout_ms)}",
                "PRAGMA temp_store = MEMORY"
            ]

            for opt in optimizations:
                self.conn.execute(opt)

            self.logger.debug("Database pragmas configured")

        except Exception as e:
            self.logger.warning(f"Warning while configuring database pragmas: {str(e)}")

    def is_connected(self) -> bool:
        return self._is_connected and self.conn is not None

    def ensure_connected(self):
        """
        Raises:
            ConnectionError: when connect() has not been called
        """
        if not self.is_connected():
            raise ConnectionError("Database is not connected, call connect() first")

    def execute_transaction(self, operations: List[Callable]) -> List[Any]:
        """
        Run operations serially inside one transaction

        Args:
            operations: callables, each returning its own result

        Returns:
            list of the operation results

        Raises:
            ConnectionError: database not connected
            Exception: the original exception of the failing operation, after rollback
        """
        self.ensure_connected()

        if not operations:
            self.logger.warning("Empty transaction operation list")
            return []

        results = []
        transaction_id = datetime.now().strftime("%Y%m%d%H%M%S%f")

        try:
            self.logger.debug(f"Transaction {transaction_id} started with {len(operations)} operation(s)")

            for i, operation in enumerate(operations):
                self.logger.debug(f"Transaction {transaction_id} running operation {i+1}/{len(operations)}")
                result = operation()
                results.append(result)

            self.conn.commit()
            self.logger.debug(f"Transaction {transaction_id} committed")

            return results

        except Exception as e:
            if isinstance(e, FulfillmentError):
                self.logger.warning(f"Transaction {transaction_id} rejected: {e.message}")
            else:
                self.logger.error(f"Transaction {transaction_id} failed ({type(e).__name__}): {str(e)}")
            try:
                self.conn.rollback()
                self.logger.debug(f"Transaction {transaction_id} rolled back")
            except Exception as rollback_error:
                self.logger.error(f"Transaction rollback failed: {str(rollback_error)}")

            raise

    def execute_single(self, query: str, params: List = None) -> Any:
        """
        Execute one SQL statement, committing DDL and DML immediately

        Args:
            query: SQL statement
            params: statement parameters

        Returns:
            the sqlite cursor
        """
        self.ensure_connected()

        try:
            if params:
                result = self.conn.execute(query, params)
            else:
                result = self.conn.execute(query)

            if query.strip().upper().startswith(('CREATE', 'DROP', 'ALTER', 'INSERT', 'UPDATE', 'DELETE')):
                self.conn.commit()

            return result

        except Exception as e:
            self.logger.error(f"SQL statement failed: {query[:100]}..., error: {str(e)}")
            raise

    def get_table_info(self, table_name: str) -> Dict[str, Any]:
        """
        Describe a table

        Args:
            table_name: table name

        Returns:
            columns and record count
        """
        self.ensure_connected()

        if table_name not in CORE_TABLES:
            raise ValueError(f"Unknown table {table_name}")

        columns_result = self.conn.execute(f"PRAGMA table_info('{table_name}')").fetchall()

        if not columns_result:
            raise ValueError(f"Table {table_name} does not exist")

        columns = []
        for col in columns_result:
            columns.append({
                'name': col[1],
                'type': col[2],
                'not_null': bool(col[3]),
                'default_value': col[4],
                'primary_key': bool(col[5])
            })

        count_result = self.conn.execute(f"SELECT COUNT(*) FROM {table_name}").fetchone()
        record_count = count_result[0] if count_result else 0

        return {
            'table_name': table_name,
            'columns': columns,
            'record_count': record_count
        }

    def vacuum(self):
        self.ensure_connected()
        self.logger.info("Database VACUUM started")
        self.conn.execute("VACUUM")
        self.logger.info("Database VACUUM finished")

    def analyze(self):
        self.ensure_connected()
        self.logger.info("Database ANALYZE started")
        self.conn.execute("ANALYZE")
        self.logger.info("Database ANALYZE finished")

    def perform_maintenance(self):
        """
        Run VACUUM, ANALYZE and the integrity check
        """
        self.ensure_connected()

        self.logger.info("Database maintenance started")
        self.vacuum()
        self.analyze()
        self.check_integrity()
        self.logger.info("Database maintenance finished")

    def check_integrity(self):
        """
        Check that the core tables exist and that stored orders respect the payment
        and scheduling invariants

        Raises:
            RuntimeError: listing every violation found
        """
        self.ensure_connected()

        self.logger.info("Database integrity check started")

        for table in CORE_TABLES:
            result = self.conn.execute("""
                SELECT COUNT(*) FROM sqlite_master
                WHERE type='table' AND name=?
            """, (table,)).fetchone()

            if not result or result[0] == 0:
                raise RuntimeError(f"Core table {table} does not exist")

        integrity_issues = []

        out_of_range = self.conn.execute("""
            SELECT order_id, paid_cents, total_cents FROM orders
            WHERE paid_cents < 0 OR paid_cents > total_cents
        """).fetchall()
        integrity_issues.extend(
            [f"order {row[0]} has paid_cents {row[1]} outside 0..{row[2]}" for row in out_of_range]
        )

        ledger_mismatch = self.conn.execute("""
            SELECT o.order_id, o.paid_cents, COALESCE(SUM(p.amount_cents), 0) AS ledger_total
            FROM orders o
            LEFT JOIN payments p ON p.order_id = o.order_id
            GROUP BY o.order_id
            HAVING o.paid_cents != COALESCE(SUM(p.amount_cents), 0)
        """).fetchall()
        integrity_issues.extend(
            [f"order {row[0]} paid_cents {row[1]} differs from payment history total {row[2]}"
             for row in ledger_mismatch]
        )

        undelivered_unpaid = self.conn.execute("""
            SELECT order_id FROM orders
            WHERE status = 'delivered' AND paid_cents < total_cents
        """).fetchall()
        integrity_issues.extend([f"order {row[0]} delivered without full payment" for row in undelivered_unpaid])

        dangling_schedules = self.conn.execute("""
            SELECT o.order_id FROM orders o
            LEFT JOIN schedules s ON s.schedule_id = o.schedule_id
            WHERE o.schedule_id IS NOT NULL AND (s.schedule_id IS NULL OR s.order_id != o.order_id)
        """).fetchall()
        integrity_issues.extend([f"order {row[0]} references a mismatched schedule" for row in dangling_schedules])

        if integrity_issues:
            error_msg = "Database integrity check found problems:\n" + "\n".join(integrity_issues)
            self.logger.error(error_msg)
            raise RuntimeError(error_msg)

        self.logger.info("Database integrity check passed")

    def __enter__(self):
        if not self.is_connected():
            self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def __del__(self):
        if self.is_connected():
            self.close()
