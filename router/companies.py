"""
Companies Router - Admin Company Management
============================================
Creating a company also creates its main branch.
"""

from fastapi import APIRouter, Depends, HTTPException, status, Path
from sqlalchemy.orm import Session
from typing import List

from db import get_db, transaction
from dependencies import allow_admin
from errors import NotFoundError, PersistenceError
from schemas import CompanyCreate, CompanyUpdate, CompanyOut, StatusUpdate, DashboardOut, Principal
from services import org_service

router = APIRouter(prefix="/companies", tags=["Companies"])


# ============================================================================
# CREATE COMPANY
# ============================================================================

@router.post("", response_model=CompanyOut, status_code=status.HTTP_201_CREATED)
def create_company(
    company: CompanyCreate,
    db: Session = Depends(get_db),
    admin: Principal = Depends(allow_admin)
):
    """
    Create a company account (admin only).

    A "Main Branch" flagged is_main_branch=true is created in the same
    transaction; no company ever exists without it.
    """
    try:
        with transaction(db):
            db_company = org_service.create_company(
                db,
                company_name=company.company_name,
                username=company.username,
                password=company.password,
                profile_pic=company.profile_pic,
                created_by=admin.id,
            )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except PersistenceError as e:
        raise HTTPException(status_code=500, detail=f"Database error: {str(e)}")

    db.refresh(db_company)
    return db_company


# ============================================================================
# GET COMPANIES
# ============================================================================

@router.get("", response_model=List[CompanyOut], dependencies=[Depends(allow_admin)])
def get_companies(db: Session = Depends(get_db)):
    """All companies, newest first."""
    return org_service.list_companies(db)


@router.get("/{company_id}", response_model=CompanyOut, dependencies=[Depends(allow_admin)])
def get_company(
    company_id: int = Path(...),
    db: Session = Depends(get_db)
):
    try:
        return org_service.get_company(db, company_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))


# ============================================================================
# UPDATE COMPANY
# ============================================================================

@router.patch("/{company_id}", response_model=CompanyOut, dependencies=[Depends(allow_admin)])
def update_company(
    company_id: int = Path(...),
    updates: CompanyUpdate = ...,
    db: Session = Depends(get_db)
):
    try:
        with transaction(db):
            company = org_service.update_company_profile(
                db, company_id, updates.company_name, updates.profile_pic
            )
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except PersistenceError as e:
        raise HTTPException(status_code=500, detail=f"Database error: {str(e)}")

    db.refresh(company)
    return company


@router.patch("/{company_id}/status", response_model=CompanyOut, dependencies=[Depends(allow_admin)])
def set_company_status(
    company_id: int = Path(...),
    update: StatusUpdate = ...,
    db: Session = Depends(get_db)
):
    """
    Activate or deactivate a company.

    The new flag cascades to every branch and every employee of the company.
    Deactivated employees are refused at login and on their next request.
    """
    try:
        with transaction(db):
            company = org_service.toggle_company_status(db, company_id, update.is_active)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except PersistenceError as e:
        raise HTTPException(status_code=500, detail=f"Database error: {str(e)}")

    db.refresh(company)
    return company


# ============================================================================
# ADMIN DASHBOARD
# ============================================================================

dashboard_router = APIRouter(prefix="/admin", tags=["Admin Dashboard"])

@dashboard_router.get("/dashboard", response_model=DashboardOut, dependencies=[Depends(allow_admin)])
def admin_dashboard(db: Session = Depends(get_db)):
    """Company, branch and employee totals plus the five newest companies."""
    return org_service.get_dashboard_stats(db)
