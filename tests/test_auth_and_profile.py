from datetime import timedelta

import pytest

from dependencies import blacklist_cache, cleanup_expired_cache
from errors import AuthFailure
from models import Branch, Company, Employee, TokenBlacklist
from schemas import Principal
from services.identity_service import authenticate, authorize
from utils import utc_now

from conftest import STAFF_PASSWORD


def test_login_and_me_for_every_kind(client, org):
    r = client.get("/auth/me", headers=org.admin)
    assert r.status_code == 200
    assert r.json()["role"] == "admin"

    me = client.get("/auth/me", headers=org.company).json()
    assert me["role"] == "company"
    assert me["company_id"] == org.company_id

    me = client.get("/auth/me", headers=org.emp1).json()
    assert me["role"] == "employee"
    assert me["branch_id"] == org.b1_id
    assert me["company_id"] == org.company_id


def test_token_response_carries_principal(client, org):
    r = client.post("/token", data={"username": "mira", "password": STAFF_PASSWORD, "role": "manager"})
    assert r.status_code == 200
    body = r.json()
    assert body["token_type"] == "bearer"
    assert body["expires_in"] > 0
    assert body["principal"]["username"] == "mira"
    assert body["principal"]["role"] == "manager"


def test_wrong_password_and_unknown_user_look_the_same(client, org):
    wrong = client.post("/token", data={"username": "eli", "password": "nope-nope", "role": "employee"})
    missing = client.post("/token", data={"username": "ghost", "password": "nope-nope", "role": "employee"})
    assert wrong.status_code == missing.status_code == 401
    assert wrong.json()["detail"] == missing.json()["detail"] == "Invalid username or password"


def test_claimed_role_selects_table(client, org):
    # A company username is not found among employees
    r = client.post("/token", data={"username": "acme", "password": "acmepass1", "role": "employee"})
    assert r.status_code == 401


def test_unknown_role_is_denied(db, org):
    with pytest.raises(AuthFailure):
        authenticate(db, "eli", STAFF_PASSWORD, "superuser")


def test_stored_role_wins_over_claimed_role(db, org):
    principal = authenticate(db, "mira", STAFF_PASSWORD, "employee")
    assert principal.role == "manager"


def test_inactive_branch_denies_login_even_if_employee_active(db, org):
    branch = db.query(Branch).filter(Branch.id == org.b1_id).first()
    branch.is_active = False
    db.commit()

    employee = db.query(Employee).filter(Employee.id == org.ids.emp1).first()
    assert employee.is_active is True
    with pytest.raises(AuthFailure):
        authenticate(db, "eli", STAFF_PASSWORD, "employee")


def test_inactive_company_denies_login_even_if_branch_active(db, org):
    company = db.query(Company).filter(Company.id == org.company_id).first()
    company.is_active = False
    db.commit()

    with pytest.raises(AuthFailure):
        authenticate(db, "eli", STAFF_PASSWORD, "employee")
    with pytest.raises(AuthFailure):
        authenticate(db, "acme", "acmepass1", "company")


def test_deactivation_ends_existing_session(client, org):
    assert client.get("/auth/me", headers=org.emp1).status_code == 200

    r = client.patch(f"/branches/{org.b1_id}/status", json={"is_active": False}, headers=org.company)
    assert r.status_code == 200

    assert client.get("/auth/me", headers=org.emp1).status_code == 401
    assert client.get("/auth/me", headers=org.main_emp).status_code == 200


def test_missing_or_garbage_token(client):
    assert client.get("/auth/me").status_code == 401
    r = client.get("/auth/me", headers={"Authorization": "Bearer not-a-jwt"})
    assert r.status_code == 401


def test_logout_revokes_token_and_is_idempotent(client, db, org):
    r = client.post("/logout", headers=org.emp1)
    assert r.status_code == 200
    assert r.json()["message"] == "Logged out successfully"

    assert client.get("/auth/me", headers=org.emp1).status_code == 401

    r = client.post("/logout", headers=org.emp1)
    assert r.status_code == 200
    assert r.json()["message"] == "Already logged out"

    row = db.query(TokenBlacklist).one()
    assert row.principal_type == "employee"
    assert row.principal_id == org.ids.emp1
    assert row.username == "eli"

    # Other sessions are untouched
    assert client.get("/auth/me", headers=org.emp2).status_code == 200


def test_role_gate_returns_403(client, org):
    assert client.get("/companies", headers=org.company).status_code == 403
    assert client.post("/branches", json={"branch_name": "X"}, headers=org.manager).status_code == 403
    assert client.get("/admin/dashboard", headers=org.emp1).status_code == 403


def test_authorize_is_a_pure_role_check():
    manager = Principal(id=1, username="m", role="manager", company_id=1, branch_id=1)
    assert authorize(manager, {"manager", "asst_manager"}) is True
    assert authorize(manager, {"company"}) is False
    assert authorize(manager, set()) is False
    assert authorize(None, {"manager"}) is False


def test_profile_read_and_update(client, org):
    r = client.get("/profile/me", headers=org.emp1)
    assert r.status_code == 200
    assert r.json()["name"] == "Eli One"
    assert r.json()["branch_name"] == "B1"
    assert r.json()["company_name"] == "Acme"

    r = client.put("/profile/me", json={"name": "  Eli Uno ", "profile_pic": "avatars/eli.png"}, headers=org.emp1)
    assert r.status_code == 200
    assert r.json()["name"] == "Eli Uno"
    assert r.json()["profile_pic"] == "avatars/eli.png"

    r = client.get("/profile/me", headers=org.admin)
    assert r.json()["role"] == "admin"


def test_change_password(client, org):
    payload = {"current_password": STAFF_PASSWORD, "new_password": "newpass99", "confirm_password": "newpass99"}
    r = client.post("/profile/change-password", json=payload, headers=org.emp2)
    assert r.status_code == 200
    assert r.json()["success"] is True

    old = client.post("/token", data={"username": "ana", "password": STAFF_PASSWORD, "role": "employee"})
    assert old.status_code == 401
    new = client.post("/token", data={"username": "ana", "password": "newpass99", "role": "employee"})
    assert new.status_code == 200


def test_change_password_rejects_wrong_current_or_mismatch(client, org):
    wrong = {"current_password": "not-it-123", "new_password": "newpass99", "confirm_password": "newpass99"}
    r = client.post("/profile/change-password", json=wrong, headers=org.company)
    assert r.status_code == 400
    assert r.json()["detail"] == "Current password is incorrect"

    mismatch = {"current_password": "acmepass1", "new_password": "newpass99", "confirm_password": "newpass98"}
    r = client.post("/profile/change-password", json=mismatch, headers=org.company)
    assert r.status_code == 400


def test_admin_blacklist_views(client, org):
    client.post("/logout", headers=org.emp1)

    r = client.get("/admin/auth/blacklist", headers=org.admin)
    assert r.status_code == 200
    assert len(r.json()) == 1

    r = client.get("/admin/auth/blacklist", params={"principal_type": "company"}, headers=org.admin)
    assert r.json() == []

    stats = client.get("/admin/auth/blacklist/stats", headers=org.admin).json()
    assert stats["total_blacklisted"] == 1
    assert stats["active_blacklisted"] == 1
    assert stats["by_principal_type"] == {"employee": 1}

    r = client.delete("/admin/auth/blacklist/cleanup", headers=org.admin)
    assert r.status_code == 200
    assert r.json()["deleted_count"] == 0

    assert client.get("/admin/auth/blacklist", headers=org.company).status_code == 403


def test_cache_cleanup_drops_only_expired_entries():
    now = utc_now()
    blacklist_cache["expired-jti"] = now - timedelta(minutes=1)
    blacklist_cache["live-jti"] = now + timedelta(hours=1)

    cleanup_expired_cache()

    assert "expired-jti" not in blacklist_cache
    assert "live-jti" in blacklist_cache
