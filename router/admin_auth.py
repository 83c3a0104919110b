from fastapi import APIRouter, Depends, Query
from sqlalchemy import func
from sqlalchemy.orm import Session
from typing import List, Optional

from models import TokenBlacklist
from schemas import TokenBlacklistOut, Principal
from db import get_db, transaction
from dependencies import allow_admin, cleanup_expired_cache
from utils import utc_now

router = APIRouter(prefix="/admin/auth", tags=["Admin Auth Management"])


@router.get("/blacklist", response_model=List[TokenBlacklistOut])
def view_blacklist(
    skip: int = Query(0, ge=0, description="Number of records to skip"),
    limit: int = Query(50, ge=1, le=100, description="Maximum records to return"),
    principal_type: Optional[str] = Query(None, description="admin, company or employee"),
    principal_id: Optional[int] = Query(None),
    db: Session = Depends(get_db),
    admin: Principal = Depends(allow_admin)
):
    """
    View revoked tokens (admin only), most recent first.

    **Query Parameters:**
    - **skip** / **limit**: pagination (max 100)
    - **principal_type** + **principal_id**: only one account's tokens
    """
    query = db.query(TokenBlacklist)

    if principal_type:
        query = query.filter(TokenBlacklist.principal_type == principal_type)
    if principal_id is not None:
        query = query.filter(TokenBlacklist.principal_id == principal_id)

    return query.order_by(TokenBlacklist.blacklisted_at.desc())\
        .offset(skip)\
        .limit(limit)\
        .all()


@router.get("/blacklist/stats")
def blacklist_stats(
    db: Session = Depends(get_db),
    admin: Principal = Depends(allow_admin)
):
    """
    **Returns:**
    - **total_blacklisted**: Total tokens in blacklist
    - **expired_tokens**: Tokens past their natural expiry
    - **active_blacklisted**: Tokens still within their validity period
    - **by_reason** / **by_principal_type**: grouped counts
    """
    now = utc_now()

    total = db.query(TokenBlacklist).count()
    expired = db.query(TokenBlacklist).filter(TokenBlacklist.token_exp < now).count()

    by_reason = db.query(
        TokenBlacklist.reason,
        func.count(TokenBlacklist.id).label('count')
    ).group_by(TokenBlacklist.reason).all()

    by_type = db.query(
        TokenBlacklist.principal_type,
        func.count(TokenBlacklist.id).label('count')
    ).group_by(TokenBlacklist.principal_type).all()

    return {
        "total_blacklisted": total,
        "expired_tokens": expired,
        "active_blacklisted": total - expired,
        "by_reason": {reason: count for reason, count in by_reason},
        "by_principal_type": {kind: count for kind, count in by_type},
        "timestamp": now.isoformat()
    }


@router.delete("/blacklist/cleanup")
def manual_cleanup(
    db: Session = Depends(get_db),
    admin: Principal = Depends(allow_admin)
):
    """
    Remove expired blacklist entries now instead of waiting for the nightly job.
    """
    now = utc_now()

    with transaction(db):
        deleted = db.query(TokenBlacklist).filter(
            TokenBlacklist.token_exp < now
        ).delete(synchronize_session=False)
    cleanup_expired_cache()

    return {
        "message": "Cleanup completed successfully",
        "deleted_count": deleted,
        "timestamp": now.isoformat()
    }
