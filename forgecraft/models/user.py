"""
User Model
Database model for platform users and their cached token balance.
"""

from datetime import datetime
from sqlalchemy import Column, String, DateTime, Integer
from sqlalchemy.orm import relationship

from forgecraft.core.database import Base


class User(Base):
    """Platform user. Accounts are issued by the auth service."""

    __tablename__ = "users"

    id = Column(String, primary_key=True)
    email = Column(String, unique=True, nullable=False, index=True)
    display_name = Column(String, nullable=True)

    # Cached projection of the token ledger; written only together with a
    # TokenTransaction row.
    token_balance = Column(Integer, nullable=False, default=0)

    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    projects = relationship("Project", back_populates="user", cascade="all, delete-orphan")
    transactions = relationship("TokenTransaction", back_populates="user", cascade="all, delete-orphan")
