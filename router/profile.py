"""
Profile Router
==============
Own-profile view/edit and password change for every principal kind.
"""

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from db import get_db, transaction
from dependencies import get_current_principal
from errors import NotFoundError, PersistenceError
from schemas import ProfileOut, ProfileUpdate, ChangePasswordRequest, PasswordChangeResponse, Principal
from services import profile_service

router = APIRouter(prefix="/profile", tags=["Profile"])


@router.get("/me", response_model=ProfileOut)
def read_my_profile(
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal)
):
    try:
        return profile_service.get_profile(db, principal.kind, principal.id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.put("/me", response_model=ProfileOut)
def update_my_profile(
    update: ProfileUpdate,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal)
):
    """Update display name and picture reference."""
    try:
        with transaction(db):
            profile = profile_service.update_profile(
                db, principal.kind, principal.id, update.name, update.profile_pic
            )
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except PersistenceError as e:
        raise HTTPException(status_code=500, detail=f"Database error: {str(e)}")
    return profile


# ============================================================================
# CHANGE PASSWORD (Logged-in principal)
# ============================================================================

@router.post("/change-password", response_model=PasswordChangeResponse)
def change_password(
    data: ChangePasswordRequest,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal)
):
    """
    Change the caller's password.

    **Requirements:**
    - Must provide correct current password
    - New password must match confirmation

    Tokens issued before the change stay valid until they expire or the
    principal logs out.
    """
    if data.new_password != data.confirm_password:
        raise HTTPException(status_code=400, detail="New password and confirmation do not match")

    try:
        with transaction(db):
            changed_at = profile_service.change_password(
                db, principal.kind, principal.id, data.current_password, data.new_password
            )
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except PersistenceError as e:
        raise HTTPException(status_code=500, detail=f"Database error: {str(e)}")

    return PasswordChangeResponse(
        success=True,
        message="Password changed successfully",
        changed_at=changed_at
    )
