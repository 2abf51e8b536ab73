"""
Token Schemas
Pydantic models for token balance and ledger history responses.
"""

from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel


class TokenBalanceResponse(BaseModel):
    user_id: str
    balance: int


class TokenTransactionResponse(BaseModel):
    """One ledger entry. Negative amounts are charges."""
    id: str
    amount: int
    type: str
    description: str
    reference: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


class TokenHistoryResponse(BaseModel):
    """Paginated ledger entries, newest first."""
    items: List[TokenTransactionResponse]
    total: int
    page: int
    page_size: int
    total_pages: int
