"""
API Dependencies
Common dependencies for FastAPI routes (database sessions, caller identity).
"""

from typing import Generator, Optional

from fastapi import Header, HTTPException, status

from forgecraft.core.database import SessionLocal


def get_db() -> Generator:
    """Get database session."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_current_user_id(x_user_id: Optional[str] = Header(None, alias="X-User-Id")) -> str:
    """Authenticated user id, set by the upstream auth layer."""
    if not x_user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing user identity"
        )
    return x_user_id
