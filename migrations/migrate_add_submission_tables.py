#!/usr/bin/env python3
"""
Migration script to add the gateway's submission tables.

This script:
1. Creates contact_submissions table
2. Creates admission_applications table
3. Creates rate_limit_records table (used when RATE_LIMIT_BACKEND=database)
"""

import os
import sys

from dotenv import load_dotenv
from sqlalchemy import create_engine, text, inspect

# Load environment variables
load_dotenv()

DATABASE_URL = os.environ.get("DATABASE_URL")
if not DATABASE_URL:
    print("ERROR: DATABASE_URL environment variable is required.")
    sys.exit(1)

# Fix Heroku postgres:// URL
if DATABASE_URL.startswith("postgres://"):
    DATABASE_URL = DATABASE_URL.replace("postgres://", "postgresql://", 1)

engine = create_engine(DATABASE_URL)


def table_exists(connection, table_name):
    """Check if a table exists."""
    inspector = inspect(connection)
    return table_name in inspector.get_table_names()


def run_migration():
    print("Running migration to add submission tables...")
    print(f"Database: {engine.url.host}:{engine.url.port}/{engine.url.database}")
    print()

    with engine.connect() as connection:
        print("1. Checking contact_submissions table...")
        if not table_exists(connection, 'contact_submissions'):
            connection.execute(text("""
                CREATE TABLE contact_submissions (
                    id VARCHAR PRIMARY KEY,
                    name VARCHAR(100) NOT NULL,
                    email VARCHAR(255) NOT NULL,
                    subject VARCHAR(200) NOT NULL,
                    message TEXT NOT NULL,
                    status VARCHAR DEFAULT 'new',
                    created_at TIMESTAMP NOT NULL
                )
            """))
            connection.execute(text(
                "CREATE INDEX idx_contact_submissions_email ON contact_submissions (email)"
            ))
            connection.execute(text(
                "CREATE INDEX ix_contact_submissions_created_at ON contact_submissions (created_at)"
            ))
            print("   ✓ Created contact_submissions table.")
        else:
            print("   ✓ Table 'contact_submissions' already exists.")

        print("\n2. Checking admission_applications table...")
        if not table_exists(connection, 'admission_applications'):
            connection.execute(text("""
                CREATE TABLE admission_applications (
                    id VARCHAR PRIMARY KEY,
                    student_name VARCHAR(100) NOT NULL,
                    date_of_birth DATE NOT NULL,
                    gender VARCHAR NOT NULL,
                    parent_name VARCHAR(100) NOT NULL,
                    parent_email VARCHAR(255) NOT NULL,
                    parent_phone VARCHAR(20) NOT NULL,
                    address VARCHAR(500) NOT NULL,
                    grade_applying_for VARCHAR(50) NOT NULL,
                    previous_school VARCHAR(200),
                    additional_info TEXT,
                    status VARCHAR DEFAULT 'pending',
                    created_at TIMESTAMP NOT NULL,
                    updated_at TIMESTAMP NOT NULL
                )
            """))
            connection.execute(text(
                "CREATE INDEX idx_admission_applications_parent_email ON admission_applications (parent_email)"
            ))
            connection.execute(text(
                "CREATE INDEX idx_admission_applications_status ON admission_applications (status)"
            ))
            connection.execute(text(
                "CREATE INDEX ix_admission_applications_created_at ON admission_applications (created_at)"
            ))
            print("   ✓ Created admission_applications table.")
        else:
            print("   ✓ Table 'admission_applications' already exists.")

        print("\n3. Checking rate_limit_records table...")
        if not table_exists(connection, 'rate_limit_records'):
            connection.execute(text("""
                CREATE TABLE rate_limit_records (
                    id VARCHAR PRIMARY KEY,
                    scope VARCHAR NOT NULL,
                    count INTEGER NOT NULL DEFAULT 1,
                    reset_time DOUBLE PRECISION NOT NULL
                )
            """))
            connection.execute(text(
                "CREATE INDEX idx_rate_limit_records_scope_reset_time ON rate_limit_records (scope, reset_time)"
            ))
            print("   ✓ Created rate_limit_records table.")
        else:
            print("   ✓ Table 'rate_limit_records' already exists.")

        connection.commit()

    print("\n✓ Migration completed successfully!")


if __name__ == "__main__":
    run_migration()
