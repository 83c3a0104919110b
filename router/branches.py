"""
Branches Router - Company Branch Management
============================================
Companies manage their own branches; branch staff may read their own branch.
"""

from fastapi import APIRouter, Depends, HTTPException, status, Path
from sqlalchemy.orm import Session
from typing import List

from db import get_db, transaction
from dependencies import (
    allow_company,
    allow_supervisors,
    assert_branch_scope,
)
from errors import NotFoundError, PersistenceError
from schemas import BranchCreate, BranchOut, BranchSummaryOut, EmployeeOut, StatusUpdate, Principal
from services import org_service

router = APIRouter(prefix="/branches", tags=["Branches"])


def _scoped_branch(db: Session, branch_id: int, principal: Principal):
    try:
        branch = org_service.get_branch(db, branch_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    assert_branch_scope(principal, branch)
    return branch


# ============================================================================
# CREATE BRANCH
# ============================================================================

@router.post("", response_model=BranchOut, status_code=status.HTTP_201_CREATED)
def create_branch(
    branch: BranchCreate,
    db: Session = Depends(get_db),
    company: Principal = Depends(allow_company)
):
    """Add a (non-main) branch to the caller's company."""
    try:
        with transaction(db):
            db_branch = org_service.create_branch(db, branch.branch_name, company.company_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except PersistenceError as e:
        raise HTTPException(status_code=500, detail=f"Database error: {str(e)}")

    db.refresh(db_branch)
    return db_branch


# ============================================================================
# GET BRANCHES
# ============================================================================

@router.get("", response_model=List[BranchOut])
def get_branches(
    db: Session = Depends(get_db),
    principal: Principal = Depends(allow_supervisors)
):
    """
    Branches of the caller's company, main branch first.

    Managers and assistant managers only see their own branch.
    """
    branches = org_service.list_branches(db, principal.company_id)
    if principal.role != "company":
        branches = [b for b in branches if b.id == principal.branch_id]
    return branches


@router.get("/{branch_id}", response_model=BranchOut)
def get_branch(
    branch_id: int = Path(...),
    db: Session = Depends(get_db),
    principal: Principal = Depends(allow_supervisors)
):
    return _scoped_branch(db, branch_id, principal)


@router.get("/{branch_id}/summary", response_model=BranchSummaryOut)
def get_branch_summary(
    branch_id: int = Path(...),
    db: Session = Depends(get_db),
    principal: Principal = Depends(allow_supervisors)
):
    """Branch with employee counts per role."""
    _scoped_branch(db, branch_id, principal)
    return org_service.get_branch_with_employee_counts(db, branch_id)


@router.get("/{branch_id}/employees", response_model=List[EmployeeOut])
def get_branch_active_employees(
    branch_id: int = Path(...),
    db: Session = Depends(get_db),
    principal: Principal = Depends(allow_supervisors)
):
    """Active employees of the branch, ordered by role then name."""
    _scoped_branch(db, branch_id, principal)
    return org_service.get_active_employees_in_branch(db, branch_id)


# ============================================================================
# UPDATE BRANCH STATUS
# ============================================================================

@router.patch("/{branch_id}/status", response_model=BranchOut)
def set_branch_status(
    branch_id: int = Path(...),
    update: StatusUpdate = ...,
    db: Session = Depends(get_db),
    company: Principal = Depends(allow_company)
):
    """
    Activate or deactivate a branch (company only).

    The flag cascades to every employee of the branch.
    """
    _scoped_branch(db, branch_id, company)

    try:
        with transaction(db):
            branch = org_service.toggle_branch_status(db, branch_id, update.is_active)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except PersistenceError as e:
        raise HTTPException(status_code=500, detail=f"Database error: {str(e)}")

    db.refresh(branch)
    return branch
