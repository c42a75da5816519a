"""Database setup and configuration."""

import logging
import uuid
from datetime import datetime

from sqlalchemy import create_engine, CheckConstraint, Column, String, DateTime, Index, UniqueConstraint
from sqlalchemy.exc import IntegrityError, ProgrammingError
from sqlalchemy.orm import declarative_base, sessionmaker

from school_gateway.shared.config import get_settings

# DATABASE_URL should be set as an environment variable (e.g., from Heroku)
DATABASE_URL = get_settings().database_url

if not DATABASE_URL:
    raise ValueError(
        "DATABASE_URL environment variable is required. "
        "Please set it to your PostgreSQL connection string."
    )

# PostgreSQL connection pool configuration
engine_kwargs = {
    "pool_pre_ping": True,  # Verify connections before using
    "pool_recycle": 3600,  # Recycle connections after 1 hour
}

engine = create_engine(DATABASE_URL, **engine_kwargs)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()

ADMIN_ROLE = "admin"
USER_ROLES = ("admin", "teacher", "student")


class UserRole(Base):
    """Role membership for an identity issued by the hosted auth service."""
    __tablename__ = "user_roles"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String, nullable=False, index=True)
    role = Column(String, nullable=False)  # admin, teacher, student
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint('user_id', 'role', name='uq_user_roles_user_id_role'),
        CheckConstraint(
            "role IN (" + ", ".join(f"'{role}'" for role in USER_ROLES) + ")",
            name='ck_user_roles_role',
        ),
        Index('idx_user_roles_user_id_role', 'user_id', 'role'),
    )


def init_db(bind=None):
    """Initialize database tables."""
    # Register every model on Base.metadata before create_all
    from school_gateway.shared.contact import database as contact_database  # noqa: F401
    from school_gateway.shared.admission import database as admission_database  # noqa: F401
    from school_gateway.shared.rate_limit import database as rate_limit_database  # noqa: F401

    try:
        # Use checkfirst=True to avoid errors if tables already exist
        Base.metadata.create_all(bind=bind or engine, checkfirst=True)
        logging.info("Database tables initialized successfully")
    except (IntegrityError, ProgrammingError) as e:
        # Duplicate type/constraint errors happen when another worker created the tables first
        error_str = str(e)
        if "pg_type_typname_nsp_index" in error_str or "duplicate key" in error_str.lower():
            logging.info("Database types already exist, skipping type creation (safe to ignore)")
        else:
            logging.warning(f"Database integrity/programming error (may be safe to ignore): {error_str}")


def get_db():
    """Dependency to get database session."""
    db = SessionLocal()
    try:
        yield db
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()
