"""
SQLAlchemy ORM models for database tables
"""

from datetime import datetime, timezone
from sqlalchemy import Column, String, Integer, DateTime, ForeignKey, JSON, UniqueConstraint, Index
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class VerifiedUserModel(Base):
    """SQLAlchemy ORM model for verified_users table"""

    __tablename__ = "verified_users"

    user_id = Column(String(32), primary_key=True)
    username = Column(String(255), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    last_updated = Column(DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)

    verifications = relationship(
        "UserVerificationModel",
        back_populates="user",
        cascade="all, delete-orphan",
        lazy="selectin"
    )

    def __repr__(self):
        return f"<VerifiedUser(user_id='{self.user_id}', username='{self.username}')>"


class UserVerificationModel(Base):
    """SQLAlchemy ORM model for user_verifications table"""

    __tablename__ = "user_verifications"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(32), ForeignKey("verified_users.user_id", ondelete="CASCADE"), nullable=False)
    network = Column(String(32), nullable=False)
    wallet_address = Column(String(42), nullable=False)
    verified_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    verification_result = Column(JSON, nullable=False)

    user = relationship("VerifiedUserModel", back_populates="verifications")

    __table_args__ = (
        UniqueConstraint('user_id', 'network', name='uq_user_verifications_user_network'),
        Index('idx_user_verifications_network', 'network'),
        Index('idx_user_verifications_verified_at', 'verified_at'),
    )

    def __repr__(self):
        return f"<UserVerification(user_id='{self.user_id}', network='{self.network}', wallet='{self.wallet_address}')>"
