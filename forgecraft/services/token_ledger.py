"""
Token Ledger Service
Owns user token balances. Every balance change is written together with an
append-only TokenTransaction row in the same database transaction.
"""

import logging
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from forgecraft.models.token_transaction import TokenTransaction, TransactionType
from forgecraft.models.user import User

logger = logging.getLogger(__name__)


class InsufficientBalanceError(Exception):
    """Debit would take the balance below zero."""

    def __init__(self, required: int, available: int):
        super().__init__(
            f"Insufficient token balance: required {required}, available {available}"
        )
        self.required = required
        self.available = available


class UserNotFoundError(Exception):
    """Ledger operation on a user that does not exist."""

    def __init__(self, user_id: str):
        super().__init__(f"User not found: {user_id}")
        self.user_id = user_id


class TokenLedgerService:
    """
    Atomic debit/credit on the cached balance plus the transaction log.

    The balance column is only ever changed with a single UPDATE statement
    (conditional for debits), so two concurrent debits can never both pass
    the balance check when only one is affordable.
    """

    def __init__(self, db: Session):
        self.db = db

    def get_balance(self, user_id: str) -> int:
        """Current cached balance, read from the database (not the identity map)."""
        balance = self.db.query(User.token_balance).filter(User.id == user_id).scalar()
        if balance is None:
            raise UserNotFoundError(user_id)
        return int(balance)

    def debit(
        self,
        user_id: str,
        amount: int,
        type: str,
        description: str,
        reference: Optional[str] = None,
        commit: bool = True,
    ) -> int:
        """
        Decrement the balance by `amount` and append a `-amount` ledger row.

        Returns:
            New balance

        Raises:
            InsufficientBalanceError: balance - amount would be negative
        """
        amount = self._validate(amount, type)

        updated = (
            self.db.query(User)
            .filter(User.id == user_id, User.token_balance >= amount)
            .update(
                {User.token_balance: User.token_balance - amount},
                synchronize_session=False,
            )
        )
        if not updated:
            available = self.get_balance(user_id)
            raise InsufficientBalanceError(required=amount, available=available)

        self.db.add(TokenTransaction(
            user_id=user_id,
            amount=-amount,
            type=type,
            description=description,
            reference=reference,
        ))
        return self._finish(user_id, commit)

    def credit(
        self,
        user_id: str,
        amount: int,
        type: str,
        description: str,
        reference: Optional[str] = None,
        commit: bool = True,
    ) -> int:
        """Increment the balance and append a positive ledger row. Returns the new balance."""
        amount = self._validate(amount, type)

        updated = (
            self.db.query(User)
            .filter(User.id == user_id)
            .update(
                {User.token_balance: User.token_balance + amount},
                synchronize_session=False,
            )
        )
        if not updated:
            raise UserNotFoundError(user_id)

        self.db.add(TokenTransaction(
            user_id=user_id,
            amount=amount,
            type=type,
            description=description,
            reference=reference,
        ))
        return self._finish(user_id, commit)

    def history(self, user_id: str, page: int = 1, limit: int = 20) -> Dict[str, Any]:
        """Paginated ledger entries, newest first."""
        page = max(page, 1)
        limit = max(min(limit, 100), 1)
        query = self.db.query(TokenTransaction).filter(TokenTransaction.user_id == user_id)
        total = query.count()
        items = (
            query.order_by(TokenTransaction.created_at.desc())
            .offset((page - 1) * limit)
            .limit(limit)
            .all()
        )
        return {
            "items": items,
            "total": total,
            "page": page,
            "page_size": limit,
            "total_pages": (total + limit - 1) // limit,
        }

    def _validate(self, amount: int, type: str) -> int:
        if type not in TransactionType.ALL:
            raise ValueError(f"Unknown transaction type: {type}")
        if int(amount) != amount or amount < 0:
            raise ValueError(f"Token amounts must be non-negative integers, got {amount}")
        return int(amount)

    def _finish(self, user_id: str, commit: bool) -> int:
        self.db.flush()
        balance = self.get_balance(user_id)
        if commit:
            self.db.commit()
        logger.debug(f"Ledger updated for {user_id}: balance={balance}")
        return balance
