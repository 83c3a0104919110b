"""
Report Service - Daily Reports
===============================
One report per employee per day; resubmitting the same day overwrites it.
"""

from datetime import date
from typing import Optional

from sqlalchemy.orm import Session, joinedload

from errors import NotFoundError
from models import Employee, Report
from utils import utc_now


def submit_report(db: Session, employee_id: int, report_date: date, content: str) -> Report:
    """
    Create or update the employee's report for report_date.

    Returns:
        Report: Same row (same id) on every submission for that date
    """
    if not db.query(Employee.id).filter(Employee.id == employee_id).first():
        raise NotFoundError("Employee not found")

    now = utc_now()
    report = db.query(Report).filter(
        Report.employee_id == employee_id,
        Report.report_date == report_date
    ).first()

    if report:
        report.content = content
        report.updated_at = now
    else:
        report = Report(
            employee_id=employee_id,
            report_date=report_date,
            content=content,
            created_at=now,
            updated_at=now,
        )
        db.add(report)

    db.flush()
    return report


def _report_query(db: Session):
    return db.query(Report).join(Employee, Employee.id == Report.employee_id).options(
        joinedload(Report.employee).joinedload(Employee.branch)
    )


def list_reports(
    db: Session,
    employee_id: Optional[int] = None,
    branch_id: Optional[int] = None,
    company_id: Optional[int] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
) -> list[Report]:
    """Reports with employee name/role and branch name, latest date first."""
    query = _report_query(db)

    if employee_id is not None:
        query = query.filter(Report.employee_id == employee_id)

    if branch_id is not None:
        query = query.filter(Employee.branch_id == branch_id)

    if company_id is not None:
        query = query.filter(Employee.company_id == company_id)

    if start_date is not None:
        query = query.filter(Report.report_date >= start_date)

    if end_date is not None:
        query = query.filter(Report.report_date <= end_date)

    return query.order_by(Report.report_date.desc(), Report.id.desc()).all()


def get_report(db: Session, report_id: int) -> Report:
    report = _report_query(db).filter(Report.id == report_id).first()
    if not report:
        raise NotFoundError("Report not found")
    return report


def get_reports_summary(
    db: Session,
    branch_id: Optional[int] = None,
    company_id: Optional[int] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
) -> dict:
    reports = list_reports(
        db,
        branch_id=branch_id,
        company_id=company_id,
        start_date=start_date,
        end_date=end_date,
    )
    return {
        "total_reports": len(reports),
        "employee_count": len({r.employee_id for r in reports}),
        "branch_count": len({r.employee.branch_id for r in reports}),
        "start_date": start_date,
        "end_date": end_date,
    }
