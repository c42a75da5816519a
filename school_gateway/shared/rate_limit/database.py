"""Database models for shared submission rate limiting."""

from sqlalchemy import Column, String, Integer, Float, Index

from school_gateway.shared.auth.database import Base


class RateLimitRow(Base):
    """Fixed-window counter shared by every gateway instance."""
    __tablename__ = "rate_limit_records"

    id = Column(String, primary_key=True)  # '<scope>:<client identity>'
    scope = Column(String, nullable=False)  # 'contact' or 'admission'
    count = Column(Integer, nullable=False, default=1)
    reset_time = Column(Float, nullable=False)  # epoch seconds when the window expires

    __table_args__ = (
        Index('idx_rate_limit_records_scope_reset_time', 'scope', 'reset_time'),
    )
