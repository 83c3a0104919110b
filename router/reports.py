"""
Reports Router - Daily Reports
===============================
"""
from fastapi import APIRouter, Depends, HTTPException, status, Path, Query
from sqlalchemy.orm import Session
from typing import List, Optional
from datetime import date

from db import get_db, transaction
from dependencies import get_current_principal, allow_employee_family, allow_report_readers, forbidden
from errors import NotFoundError, PersistenceError
from schemas import ReportSubmit, ReportOut, ReportSummaryOut, Principal
from services.report_service import submit_report, list_reports, get_report, get_reports_summary

router = APIRouter(prefix="/reports", tags=["Reports"])


def _scope_filters(principal: Principal, employee_id: Optional[int], branch_id: Optional[int]) -> dict:
    """Narrow report filters to what the caller may see."""
    if principal.role == "employee":
        if employee_id is not None and employee_id != principal.id:
            raise forbidden()
        return {"employee_id": principal.id}

    if principal.role in ("manager", "asst_manager"):
        if branch_id is not None and branch_id != principal.branch_id:
            raise forbidden()
        return {"employee_id": employee_id, "branch_id": principal.branch_id}

    if principal.role == "company":
        return {"employee_id": employee_id, "branch_id": branch_id, "company_id": principal.company_id}

    return {"employee_id": employee_id, "branch_id": branch_id}


@router.post("", response_model=ReportOut, status_code=status.HTTP_201_CREATED)
def submit_daily_report(
    report: ReportSubmit,
    db: Session = Depends(get_db),
    principal: Principal = Depends(allow_employee_family)
):
    """
    Submit the caller's report for a date.

    Submitting again for the same date replaces the content of the existing
    report; the id stays the same.
    """
    try:
        with transaction(db):
            db_report = submit_report(db, principal.id, report.report_date, report.content)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except PersistenceError as e:
        raise HTTPException(status_code=500, detail=f"Database error: {str(e)}")

    db.refresh(db_report)
    return db_report


@router.get("", response_model=List[ReportOut])
def get_reports(
    employee_id: Optional[int] = Query(None),
    branch_id: Optional[int] = Query(None),
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal)
):
    """Reports visible to the caller, latest date first."""
    filters = _scope_filters(principal, employee_id, branch_id)
    return list_reports(db, start_date=start_date, end_date=end_date, **filters)


@router.get("/summary", response_model=ReportSummaryOut)
def get_summary(
    branch_id: Optional[int] = Query(None),
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    db: Session = Depends(get_db),
    principal: Principal = Depends(allow_report_readers)
):
    """
    Totals for a period.

    Returns:
        {"total_reports": 12, "employee_count": 4, "branch_count": 2, ...}
    """
    filters = _scope_filters(principal, None, branch_id)
    filters.pop("employee_id", None)
    return get_reports_summary(db, start_date=start_date, end_date=end_date, **filters)


@router.get("/{report_id}", response_model=ReportOut)
def get_single_report(
    report_id: int = Path(...),
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal)
):
    try:
        report = get_report(db, report_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))

    employee = report.employee
    if principal.role == "employee" and employee.id != principal.id:
        raise forbidden()
    if principal.role in ("manager", "asst_manager") and employee.branch_id != principal.branch_id:
        raise forbidden()
    if principal.role == "company" and employee.company_id != principal.company_id:
        raise forbidden()
    return report
