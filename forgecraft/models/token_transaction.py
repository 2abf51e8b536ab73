"""
Token Transaction Model
Append-only ledger of token balance changes.
"""

import uuid
from datetime import datetime
from sqlalchemy import Column, String, DateTime, Integer, ForeignKey
from sqlalchemy.orm import relationship

from forgecraft.core.database import Base


class TransactionType:
    """Ledger entry types."""
    WELCOME_BONUS = "WELCOME_BONUS"
    REFERRAL_BONUS = "REFERRAL_BONUS"
    DAILY_CLAIM = "DAILY_CLAIM"
    GENERATION_COST = "GENERATION_COST"
    CHECKPOINT_COST = "CHECKPOINT_COST"
    DEPLOY_COST = "DEPLOY_COST"
    ADMIN_ADJUSTMENT = "ADMIN_ADJUSTMENT"
    SUBSCRIPTION_REFILL = "SUBSCRIPTION_REFILL"
    TOKEN_PACK_PURCHASE = "TOKEN_PACK_PURCHASE"

    ALL = (
        WELCOME_BONUS,
        REFERRAL_BONUS,
        DAILY_CLAIM,
        GENERATION_COST,
        CHECKPOINT_COST,
        DEPLOY_COST,
        ADMIN_ADJUSTMENT,
        SUBSCRIPTION_REFILL,
        TOKEN_PACK_PURCHASE,
    )


class TokenTransaction(Base):
    """Immutable ledger entry. Negative amount = debit."""

    __tablename__ = "token_transactions"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String, ForeignKey("users.id"), nullable=False, index=True)
    amount = Column(Integer, nullable=False)
    type = Column(String, nullable=False)
    description = Column(String, nullable=True)
    reference = Column(String, nullable=True, index=True)  # e.g. generation job id
    created_at = Column(DateTime, default=datetime.utcnow, index=True)

    user = relationship("User", back_populates="transactions")
