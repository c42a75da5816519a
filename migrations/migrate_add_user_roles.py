#!/usr/bin/env python3
"""
Migration script to add the user_roles table used for upload authorization.

Usage:
    python migrations/migrate_add_user_roles.py
    python migrations/migrate_add_user_roles.py --grant-admin <user_id>
"""

import argparse
import os
import sys
import uuid
from datetime import datetime

from dotenv import load_dotenv
from sqlalchemy import create_engine, text, inspect

# Load environment variables
load_dotenv()

DATABASE_URL = os.environ.get("DATABASE_URL")

if not DATABASE_URL:
    print("ERROR: DATABASE_URL environment variable is required.")
    sys.exit(1)

# Heroku uses postgres:// but SQLAlchemy 2.0+ requires postgresql://
if DATABASE_URL.startswith("postgres://"):
    DATABASE_URL = DATABASE_URL.replace("postgres://", "postgresql://", 1)

engine = create_engine(DATABASE_URL)


def table_exists(connection, table_name):
    """Check if a table exists."""
    inspector = inspect(connection)
    return table_name in inspector.get_table_names()


def run_migration():
    print("Running migration to add user_roles table...")
    print(f"Database: {engine.url.host}:{engine.url.port}/{engine.url.database}")

    with engine.connect() as connection:
        if not table_exists(connection, 'user_roles'):
            print("Creating user_roles table...")
            connection.execute(text("""
                CREATE TABLE user_roles (
                    id VARCHAR PRIMARY KEY,
                    user_id VARCHAR NOT NULL,
                    role VARCHAR NOT NULL,
                    created_at TIMESTAMP NOT NULL,
                    CONSTRAINT uq_user_roles_user_id_role UNIQUE (user_id, role),
                    CONSTRAINT ck_user_roles_role CHECK (role IN ('admin', 'teacher', 'student'))
                )
            """))
            connection.execute(text(
                "CREATE INDEX idx_user_roles_user_id_role ON user_roles (user_id, role)"
            ))
            connection.execute(text(
                "CREATE INDEX ix_user_roles_user_id ON user_roles (user_id)"
            ))
            connection.commit()
            print("✓ Successfully created user_roles table.")
        else:
            print("✓ Table 'user_roles' already exists.")

    print("\n✓ Migration completed successfully!")


def grant_admin(user_id):
    """Give a user the admin role, required for every upload bucket."""
    with engine.connect() as connection:
        existing = connection.execute(
            text("SELECT 1 FROM user_roles WHERE user_id = :user_id AND role = 'admin'"),
            {"user_id": user_id},
        ).first()
        if existing:
            print(f"✓ User {user_id} is already an admin.")
            return
        connection.execute(
            text("INSERT INTO user_roles (id, user_id, role, created_at) VALUES (:id, :user_id, 'admin', :created_at)"),
            {"id": str(uuid.uuid4()), "user_id": user_id, "created_at": datetime.utcnow()},
        )
        connection.commit()
        print(f"✓ Granted admin role to user {user_id}.")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description=__doc__, formatter_class=argparse.RawDescriptionHelpFormatter)
    parser.add_argument("--grant-admin", metavar="USER_ID", help="grant the admin role to this user id")
    args = parser.parse_args()

    run_migration()
    if args.grant_admin:
        grant_admin(args.grant_admin)
