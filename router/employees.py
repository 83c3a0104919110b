# employees.py
from fastapi import APIRouter, Depends, HTTPException, status, Query
from sqlalchemy.orm import Session
from typing import List, Optional

from db import get_db, transaction
from dependencies import allow_company, allow_supervisors, assert_branch_scope, forbidden
from errors import NotFoundError, PersistenceError
from schemas import (
    EmployeeCreate,
    EmployeeOut,
    EmployeeRoleUpdate,
    EmployeeBranchUpdate,
    StatusUpdate,
    Principal,
    EmployeeRole,
)
from services import org_service

router = APIRouter(prefix="/employees", tags=["Employees"])

# Roles each supervisor may hire
CREATABLE_ROLES = {
    "company": {"manager", "asst_manager", "employee"},
    "manager": {"asst_manager", "employee"},
    "asst_manager": {"employee"},
}


def _scoped_employee(db: Session, employee_id: int, principal: Principal):
    try:
        employee = org_service.get_employee(db, employee_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    assert_branch_scope(principal, employee.branch)
    return employee


@router.post("", response_model=EmployeeOut, status_code=status.HTTP_201_CREATED)
def create_employee(
    employee: EmployeeCreate,
    db: Session = Depends(get_db),
    principal: Principal = Depends(allow_supervisors)
):
    """
    Create an employee account.

    - company: any role, any branch of the company
    - manager: asst_manager or employee, own branch only
    - asst_manager: employee, own branch only
    """
    if employee.role not in CREATABLE_ROLES[principal.role]:
        raise forbidden(f"{principal.role} cannot create a {employee.role}")
    if principal.role != "company" and employee.branch_id != principal.branch_id:
        raise forbidden("Employees can only be added to your own branch")

    try:
        with transaction(db):
            db_employee = org_service.create_employee(
                db,
                employee_name=employee.employee_name,
                username=employee.username,
                password=employee.password,
                profile_pic=employee.profile_pic,
                role=employee.role,
                company_id=principal.company_id,
                branch_id=employee.branch_id,
                created_by=principal.role,
                created_by_id=principal.id,
            )
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except PersistenceError as e:
        raise HTTPException(status_code=500, detail=f"Database error: {str(e)}")

    db.refresh(db_employee)
    return db_employee


@router.get("", response_model=List[EmployeeOut])
def read_employees(
    branch_id: Optional[int] = Query(None, description="Filter by branch"),
    role: Optional[EmployeeRole] = Query(None, description="Filter by role"),
    db: Session = Depends(get_db),
    principal: Principal = Depends(allow_supervisors)
):
    """Employees of the caller's company (company) or branch (managers)."""
    if principal.role != "company":
        if branch_id is not None and branch_id != principal.branch_id:
            raise forbidden()
        branch_id = principal.branch_id

    return org_service.list_employees(
        db,
        company_id=principal.company_id,
        branch_id=branch_id,
        role=role,
    )


@router.get("/{employee_id}", response_model=EmployeeOut)
def read_employee(
    employee_id: int,
    db: Session = Depends(get_db),
    principal: Principal = Depends(allow_supervisors)
):
    return _scoped_employee(db, employee_id, principal)


@router.patch("/{employee_id}/status", response_model=EmployeeOut)
def set_employee_status(
    employee_id: int,
    update: StatusUpdate,
    db: Session = Depends(get_db),
    principal: Principal = Depends(allow_supervisors)
):
    """Activate or deactivate one employee. Managers only reach staff they could hire."""
    employee = _scoped_employee(db, employee_id, principal)
    if employee.role not in CREATABLE_ROLES[principal.role]:
        raise forbidden()

    try:
        with transaction(db):
            employee = org_service.toggle_employee_status(db, employee_id, update.is_active)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except PersistenceError as e:
        raise HTTPException(status_code=500, detail=f"Database error: {str(e)}")

    db.refresh(employee)
    return employee


@router.patch("/{employee_id}/role", response_model=EmployeeOut)
def set_employee_role(
    employee_id: int,
    update: EmployeeRoleUpdate,
    db: Session = Depends(get_db),
    company: Principal = Depends(allow_company)
):
    _scoped_employee(db, employee_id, company)

    try:
        with transaction(db):
            employee = org_service.update_employee_role(db, employee_id, update.role)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except PersistenceError as e:
        raise HTTPException(status_code=500, detail=f"Database error: {str(e)}")

    db.refresh(employee)
    return employee


@router.patch("/{employee_id}/branch", response_model=EmployeeOut)
def set_employee_branch(
    employee_id: int,
    update: EmployeeBranchUpdate,
    db: Session = Depends(get_db),
    company: Principal = Depends(allow_company)
):
    """
    Move an employee to another branch of the same company.

    Completion rows of tasks already assigned to the old branch stay with
    the employee; the new branch's existing tasks are not back-filled.
    """
    _scoped_employee(db, employee_id, company)

    try:
        with transaction(db):
            employee = org_service.update_employee_branch(db, employee_id, update.branch_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except PersistenceError as e:
        raise HTTPException(status_code=500, detail=f"Database error: {str(e)}")

    db.refresh(employee)
    return employee
