"""
Organisation Service
====================
Companies, branches and employees, including the cascading active flag:

    company  -> all its branches and employees
    branch   -> all its employees
"""

import logging
from typing import Optional

from sqlalchemy.orm import Session, joinedload

from auth import hash_password
from errors import NotFoundError
from models import Branch, Company, Employee, EMPLOYEE_ROLES
from utils import utc_now

logger = logging.getLogger(__name__)

MAIN_BRANCH_NAME = "Main Branch"


# ============================================================================
# COMPANIES
# ============================================================================

def get_company(db: Session, company_id: int) -> Company:
    company = db.query(Company).filter(Company.id == company_id).first()
    if not company:
        raise NotFoundError("Company not found")
    return company


def list_companies(db: Session) -> list[Company]:
    return db.query(Company).order_by(Company.created_at.desc(), Company.id.desc()).all()


def create_company(
    db: Session,
    company_name: str,
    username: str,
    password: str,
    profile_pic: Optional[str],
    created_by: Optional[int],
) -> Company:
    """
    Create a company and its main branch in one go.

    Returns:
        Company: Flushed company; its main branch is company.branches[0]
    """
    existing = db.query(Company).filter(Company.username == username).first()
    if existing:
        raise ValueError("Username already registered")

    now = utc_now()
    company = Company(
        company_name=company_name,
        username=username,
        hashed_password=hash_password(password),
        profile_pic=profile_pic,
        is_active=True,
        created_by=created_by,
        created_at=now,
        updated_at=now,
    )
    db.add(company)
    db.flush()

    main_branch = Branch(
        branch_name=MAIN_BRANCH_NAME,
        company_id=company.id,
        is_main_branch=True,
        is_active=True,
        created_at=now,
        updated_at=now,
    )
    db.add(main_branch)
    db.flush()

    logger.info(f"Company {company.id} ({company_name}) created with main branch {main_branch.id}")
    return company


def update_company_profile(db: Session, company_id: int, company_name: Optional[str], profile_pic: Optional[str]) -> Company:
    company = get_company(db, company_id)
    if company_name is not None:
        company.company_name = company_name.strip()
    company.profile_pic = profile_pic
    company.updated_at = utc_now()
    db.flush()
    return company


def toggle_company_status(db: Session, company_id: int, is_active: bool) -> Company:
    """Set the flag on the company, every branch and every employee it owns."""
    company = get_company(db, company_id)
    now = utc_now()

    company.is_active = is_active
    company.updated_at = now

    branches = db.query(Branch).filter(Branch.company_id == company_id).update(
        {Branch.is_active: is_active, Branch.updated_at: now},
    )
    employees = db.query(Employee).filter(Employee.company_id == company_id).update(
        {Employee.is_active: is_active, Employee.updated_at: now},
    )
    db.flush()

    logger.info(f"Company {company_id} is_active={is_active} (cascaded to {branches} branches, {employees} employees)")
    return company


# ============================================================================
# BRANCHES
# ============================================================================

def get_branch(db: Session, branch_id: int) -> Branch:
    branch = db.query(Branch).filter(Branch.id == branch_id).first()
    if not branch:
        raise NotFoundError("Branch not found")
    return branch


def list_branches(db: Session, company_id: int) -> list[Branch]:
    """Main branch first, then newest."""
    return db.query(Branch).filter(
        Branch.company_id == company_id
    ).order_by(
        Branch.is_main_branch.desc(),
        Branch.created_at.desc(),
        Branch.id.desc(),
    ).all()


def create_branch(db: Session, branch_name: str, company_id: int) -> Branch:
    company = get_company(db, company_id)
    if not company.is_active:
        raise ValueError("Cannot add a branch to an inactive company")

    now = utc_now()
    branch = Branch(
        branch_name=branch_name,
        company_id=company_id,
        is_main_branch=False,
        is_active=True,
        created_at=now,
        updated_at=now,
    )
    db.add(branch)
    db.flush()
    return branch


def toggle_branch_status(db: Session, branch_id: int, is_active: bool) -> Branch:
    """Set the flag on the branch and every employee in it."""
    branch = get_branch(db, branch_id)
    if is_active and not branch.company.is_active:
        raise ValueError("Cannot activate a branch of an inactive company")

    now = utc_now()
    branch.is_active = is_active
    branch.updated_at = now

    employees = db.query(Employee).filter(Employee.branch_id == branch_id).update(
        {Employee.is_active: is_active, Employee.updated_at: now},
    )
    db.flush()

    logger.info(f"Branch {branch_id} is_active={is_active} (cascaded to {employees} employees)")
    return branch


def get_branch_with_employee_counts(db: Session, branch_id: int) -> dict:
    branch = get_branch(db, branch_id)
    roles = [row.role for row in db.query(Employee.role).filter(Employee.branch_id == branch_id).all()]

    return {
        "id": branch.id,
        "branch_name": branch.branch_name,
        "company_id": branch.company_id,
        "is_main_branch": branch.is_main_branch,
        "is_active": branch.is_active,
        "created_at": branch.created_at,
        "updated_at": branch.updated_at,
        "employee_counts": {
            "total": len(roles),
            "managers": roles.count("manager"),
            "asst_managers": roles.count("asst_manager"),
            "general_employees": roles.count("employee"),
        },
    }


# ============================================================================
# EMPLOYEES
# ============================================================================

def get_employee(db: Session, employee_id: int) -> Employee:
    employee = db.query(Employee).options(
        joinedload(Employee.branch)
    ).filter(Employee.id == employee_id).first()
    if not employee:
        raise NotFoundError("Employee not found")
    return employee


def list_employees(
    db: Session,
    company_id: Optional[int] = None,
    branch_id: Optional[int] = None,
    role: Optional[str] = None,
) -> list[Employee]:
    query = db.query(Employee).options(joinedload(Employee.branch))

    if company_id is not None:
        query = query.filter(Employee.company_id == company_id)

    if branch_id is not None:
        query = query.filter(Employee.branch_id == branch_id)

    if role is not None:
        query = query.filter(Employee.role == role)

    return query.order_by(Employee.role, Employee.created_at.desc(), Employee.id.desc()).all()


def get_active_employees_in_branch(db: Session, branch_id: int) -> list[Employee]:
    return db.query(Employee).options(joinedload(Employee.branch)).filter(
        Employee.branch_id == branch_id,
        Employee.is_active == True
    ).order_by(Employee.role, Employee.employee_name).all()


def create_employee(
    db: Session,
    employee_name: str,
    username: str,
    password: str,
    profile_pic: Optional[str],
    role: str,
    company_id: int,
    branch_id: int,
    created_by: str,
    created_by_id: int,
) -> Employee:
    if role not in EMPLOYEE_ROLES:
        raise ValueError(f"Invalid employee role: {role}")

    branch = get_branch(db, branch_id)
    if branch.company_id != company_id:
        raise ValueError("Branch does not belong to this company")

    existing = db.query(Employee).filter(Employee.username == username).first()
    if existing:
        raise ValueError("Username already registered")

    now = utc_now()
    employee = Employee(
        employee_name=employee_name,
        username=username,
        hashed_password=hash_password(password),
        profile_pic=profile_pic,
        role=role,
        company_id=company_id,
        branch_id=branch_id,
        # A new hire in an inactive branch starts inactive too
        is_active=bool(branch.is_active),
        created_by=created_by,
        created_by_id=created_by_id,
        created_at=now,
        updated_at=now,
    )
    db.add(employee)
    db.flush()

    logger.info(f"Employee {employee.id} ({role}) created in branch {branch_id} by {created_by}:{created_by_id}")
    return employee


def toggle_employee_status(db: Session, employee_id: int, is_active: bool) -> Employee:
    employee = get_employee(db, employee_id)
    if is_active and not (employee.branch.is_active and employee.company.is_active):
        raise ValueError("Cannot activate an employee of an inactive branch or company")

    employee.is_active = is_active
    employee.updated_at = utc_now()
    db.flush()
    return employee


def update_employee_role(db: Session, employee_id: int, role: str) -> Employee:
    if role not in EMPLOYEE_ROLES:
        raise ValueError(f"Invalid employee role: {role}")

    employee = get_employee(db, employee_id)
    employee.role = role
    employee.updated_at = utc_now()
    db.flush()
    return employee


def update_employee_branch(db: Session, employee_id: int, branch_id: int) -> Employee:
    employee = get_employee(db, employee_id)
    branch = get_branch(db, branch_id)
    if branch.company_id != employee.company_id:
        raise ValueError("Cannot move an employee to another company's branch")
    if employee.is_active and not branch.is_active:
        raise ValueError("Cannot move an employee to an inactive branch")

    employee.branch_id = branch.id
    employee.branch = branch
    employee.updated_at = utc_now()
    db.flush()
    return employee


# ============================================================================
# ADMIN DASHBOARD
# ============================================================================

def get_dashboard_stats(db: Session) -> dict:
    companies = list_companies(db)
    return {
        "total_companies": len(companies),
        "active_companies": sum(1 for c in companies if c.is_active),
        "total_branches": db.query(Branch).count(),
        "total_employees": db.query(Employee).count(),
        "recent_companies": companies[:5],
    }
