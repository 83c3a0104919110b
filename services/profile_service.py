from sqlalchemy.orm import Session

from auth import hash_password, verify_password
from errors import NotFoundError
from models import Admin, Company, Employee
from utils import utc_now


def _load_account(db: Session, kind: str, principal_id: int):
    if kind == "admin":
        account = db.query(Admin).filter(Admin.id == principal_id).first()
    elif kind == "company":
        account = db.query(Company).filter(Company.id == principal_id).first()
    else:
        account = db.query(Employee).filter(Employee.id == principal_id).first()

    if not account:
        raise NotFoundError(f"{kind.capitalize()} not found")
    return account


def get_profile(db: Session, kind: str, principal_id: int) -> dict:
    account = _load_account(db, kind, principal_id)

    if kind == "admin":
        return {
            "id": account.id,
            "username": account.username,
            "name": account.profile_name,
            "role": "admin",
            "profile_pic": account.profile_pic,
        }

    if kind == "company":
        return {
            "id": account.id,
            "username": account.username,
            "name": account.company_name,
            "role": "company",
            "profile_pic": account.profile_pic,
            "company_id": account.id,
            "company_name": account.company_name,
        }

    return {
        "id": account.id,
        "username": account.username,
        "name": account.employee_name,
        "role": account.role,
        "profile_pic": account.profile_pic,
        "company_id": account.company_id,
        "company_name": account.company.company_name if account.company else None,
        "branch_id": account.branch_id,
        "branch_name": account.branch_name,
    }


def update_profile(db: Session, kind: str, principal_id: int, name: str, profile_pic) -> dict:
    account = _load_account(db, kind, principal_id)
    name = name.strip()

    if kind == "admin":
        account.profile_name = name
    elif kind == "company":
        account.company_name = name
    else:
        account.employee_name = name

    account.profile_pic = profile_pic
    account.updated_at = utc_now()
    db.flush()
    return get_profile(db, kind, principal_id)


def change_password(db: Session, kind: str, principal_id: int, current_password: str, new_password: str):
    account = _load_account(db, kind, principal_id)

    if not verify_password(current_password, account.hashed_password):
        raise ValueError("Current password is incorrect")

    account.hashed_password = hash_password(new_password)
    account.updated_at = utc_now()
    db.flush()
    return account.updated_at
