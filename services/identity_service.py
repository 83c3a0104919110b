"""
Identity Service
================
Credential checks and principal resolution for admins, companies and
employees (manager / asst_manager / employee).

Every lookup re-checks the active-status chain; nothing is cached.
"""

import logging
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, joinedload

from auth import verify_password
from errors import AuthFailure
from models import Admin, Company, Employee, EMPLOYEE_ROLES
from schemas import Principal

logger = logging.getLogger(__name__)


def principal_kind(role: str) -> Optional[str]:
    """Table a (claimed or stored) role lives in."""
    if role in ("admin", "company"):
        return role
    if role in EMPLOYEE_ROLES:
        return "employee"
    return None


# ============================================================================
# ACTIVE-STATUS CHAIN
# ============================================================================

def employee_chain_active(employee: Employee) -> bool:
    """Employee, its branch and its company must all be active."""
    return bool(
        employee.is_active
        and employee.branch is not None
        and employee.branch.is_active
        and employee.company is not None
        and employee.company.is_active
    )


def _admin_principal(admin: Admin) -> Principal:
    return Principal(
        id=admin.id,
        username=admin.username,
        name=admin.profile_name,
        role="admin",
        profile_pic=admin.profile_pic,
    )


def _company_principal(company: Company) -> Principal:
    return Principal(
        id=company.id,
        username=company.username,
        name=company.company_name,
        role="company",
        profile_pic=company.profile_pic,
        company_id=company.id,
    )


def _employee_principal(employee: Employee) -> Principal:
    # Stored role wins over whatever role the caller claimed
    return Principal(
        id=employee.id,
        username=employee.username,
        name=employee.employee_name,
        role=employee.role,
        profile_pic=employee.profile_pic,
        company_id=employee.company_id,
        branch_id=employee.branch_id,
    )


def _find_account(db: Session, kind: str, username: str):
    if kind == "admin":
        return db.query(Admin).filter(Admin.username == username).first()
    if kind == "company":
        return db.query(Company).filter(Company.username == username).first()
    return db.query(Employee).options(
        joinedload(Employee.branch),
        joinedload(Employee.company),
    ).filter(Employee.username == username).first()


# ============================================================================
# AUTHENTICATE
# ============================================================================

def authenticate(db: Session, username: str, password: str, claimed_role: str) -> Principal:
    """
    Verify a (username, password, role) triple.

    The claimed role only selects the table to search; for employees the
    stored role is returned. Raises AuthFailure for every kind of denial so
    callers cannot tell an unknown username from a wrong password.
    """
    if not username or not password:
        raise AuthFailure("Missing credentials")

    kind = principal_kind(claimed_role)
    if kind is None:
        logger.warning(f"Login rejected for {username}: unknown role {claimed_role!r}")
        raise AuthFailure("Unknown role")

    try:
        account = _find_account(db, kind, username)
    except SQLAlchemyError as e:
        # Fail closed on lookup errors
        logger.error(f"Account lookup failed for {username}: {str(e)}")
        raise AuthFailure("Lookup failed") from e

    if account is None:
        logger.warning(f"Login rejected: no {kind} named {username}")
        raise AuthFailure("Not found")

    if kind == "company" and not account.is_active:
        logger.warning(f"Login rejected for company {username}: inactive")
        raise AuthFailure("Inactive")

    if kind == "employee" and not employee_chain_active(account):
        logger.warning(f"Login rejected for employee {username}: inactive employee, branch or company")
        raise AuthFailure("Inactive")

    if not verify_password(password, account.hashed_password):
        logger.warning(f"Login rejected for {username}: bad password")
        raise AuthFailure("Bad password")

    if kind == "admin":
        principal = _admin_principal(account)
    elif kind == "company":
        principal = _company_principal(account)
    else:
        principal = _employee_principal(account)

    logger.info(f"✅ Login: {principal.username} ({principal.role})")
    return principal


# ============================================================================
# RELOAD FROM TOKEN
# ============================================================================

def load_principal(db: Session, kind: str, principal_id: int) -> Optional[Principal]:
    """
    Rebuild the principal for a token subject.

    Returns None when the record is gone or any link of its active-status
    chain has been switched off since the token was issued.
    """
    if kind == "admin":
        admin = db.query(Admin).filter(Admin.id == principal_id).first()
        return _admin_principal(admin) if admin else None

    if kind == "company":
        company = db.query(Company).filter(Company.id == principal_id).first()
        if company is None or not company.is_active:
            return None
        return _company_principal(company)

    if kind == "employee":
        employee = db.query(Employee).options(
            joinedload(Employee.branch),
            joinedload(Employee.company),
        ).filter(Employee.id == principal_id).first()
        if employee is None or not employee_chain_active(employee):
            return None
        return _employee_principal(employee)

    return None


# ============================================================================
# AUTHORIZATION GATE
# ============================================================================

def authorize(principal: Optional[Principal], allowed_roles) -> bool:
    """True iff there is a principal and its role is one of allowed_roles."""
    return principal is not None and principal.role in set(allowed_roles)
