#!/usr/bin/env python3
# Database initialization script
# Creates the schema and, outside production, seeds one account per role

import sys
import logging
from pathlib import Path

project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from db.manager import DatabaseManager, CORE_TABLES
from db.schema import initialize_schema
from db.supporting_operations import SupportingOperations
from utils.config import Config
from utils.security import JWTManager

SEED_USERS = [
    ('System Admin', 'admin@catering.local', 'system_admin'),
    ('Catering Manager', 'manager@catering.local', 'catering_manager'),
    ('Head Chef', 'chef@catering.local', 'chef'),
    ('Sample Customer', '+251911121314', 'customer'),
]


def insert_seed_users(db_manager: DatabaseManager, config: Config):
    """
    Register one user per role when the users table is empty, and log a
    development token for each
    """
    existing = db_manager.execute_single("SELECT COUNT(*) FROM users").fetchone()[0]
    if existing:
        logging.info(f"users table already has {existing} record(s), skipping seed data")
        return

    support_ops = SupportingOperations(db_manager)
    jwt_manager = JWTManager(
        secret_key=config.get("auth.jwt_secret_key"),
        algorithm=config.get("auth.jwt_algorithm", "HS256"),
        access_token_expire_minutes=config.get("auth.access_token_expire_minutes", 1440)
    )

    for name, contact, role in SEED_USERS:
        user = support_ops.register_user(name=name, contact=contact, role=role)
        token = jwt_manager.create_access_token({"user_id": user['user_id'], "role": role})
        logging.info(f"Seeded {role} {user['user_id']} ({name}); dev token: {token}")


def main():
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(levelname)s - %(message)s'
    )

    config = Config()
    db_path = config.get_database_config()['path']

    logging.info(f"Initializing database: {db_path}")
    logging.info(f"Config environment: {config.env}")

    try:
        with DatabaseManager(db_path, auto_connect=True) as db_manager:
            initialize_schema(db_manager)

            if config.env != 'production':
                insert_seed_users(db_manager, config)

            try:
                db_manager.perform_maintenance()
            except Exception as e:
                logging.warning(f"Database maintenance failed (initialization still succeeded): {e}")

            logging.info("Database initialized. Table status:")
            for table_name in CORE_TABLES:
                info = db_manager.get_table_info(table_name)
                logging.info(f"  - {table_name}: {info['record_count']} record(s)")

    except Exception as e:
        logging.error(f"Database initialization failed: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
