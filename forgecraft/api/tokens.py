"""
Token API Routes
Balance and ledger history for the current user.
"""

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from forgecraft.api.deps import get_db, get_current_user_id
from forgecraft.schemas.tokens import TokenBalanceResponse, TokenHistoryResponse
from forgecraft.services.token_ledger import TokenLedgerService, UserNotFoundError

router = APIRouter()


@router.get("/balance", response_model=TokenBalanceResponse)
async def get_token_balance(
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    """Current token balance."""
    try:
        balance = TokenLedgerService(db).get_balance(user_id)
    except UserNotFoundError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User not found"
        )
    return TokenBalanceResponse(user_id=user_id, balance=balance)


@router.get("/history", response_model=TokenHistoryResponse)
async def get_token_history(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    """Ledger entries, newest first."""
    return TokenLedgerService(db).history(user_id, page=page, limit=limit)
