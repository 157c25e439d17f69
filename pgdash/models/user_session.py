"""User session tracking for login state and revocation."""

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text

from pgdash.database import Base
from pgdash.utils.clock import utcnow


class UserSession(Base):
    """One issued login. Valid while not revoked and before expires_at."""

    __tablename__ = "sessions"

    # Opaque random identifier; also the second half of the session cookie
    id = Column(String(64), primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    ip_address = Column(String(45), nullable=True)  # IPv6 compatible
    user_agent = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False, index=True)
    revoked_at = Column(DateTime(timezone=True), nullable=True)
