from models import Branch, Company, Employee
from services import org_service

from conftest import STAFF_PASSWORD


def test_new_company_has_exactly_one_main_branch(db):
    company = org_service.create_company(db, "Acme", "acme", "acmepass1", None, None)
    db.commit()

    branches = db.query(Branch).filter(Branch.company_id == company.id).all()
    assert len(branches) == 1
    assert branches[0].is_main_branch is True
    assert branches[0].branch_name == "Main Branch"
    assert company.main_branch.id == branches[0].id


def test_company_api_creates_main_branch(client, admin_headers, login):
    r = client.post(
        "/companies",
        json={"company_name": "Globex", "username": "globex", "password": "globex123"},
        headers=admin_headers,
    )
    assert r.status_code == 201
    assert r.json()["is_active"] is True

    company = login("globex", "globex123", "company")
    branches = client.get("/branches", headers=company).json()
    assert len(branches) == 1
    assert branches[0]["is_main_branch"] is True


def test_duplicate_company_username_rejected(client, admin_headers):
    payload = {"company_name": "Acme", "username": "acme", "password": "acmepass1"}
    assert client.post("/companies", json=payload, headers=admin_headers).status_code == 201
    r = client.post("/companies", json=payload, headers=admin_headers)
    assert r.status_code == 400


def test_branch_list_puts_main_branch_first(client, org):
    branches = client.get("/branches", headers=org.company).json()
    assert [b["id"] for b in branches] == [org.main_branch_id, org.b1_id]

    # Managers only see their own branch
    branches = client.get("/branches", headers=org.manager).json()
    assert [b["id"] for b in branches] == [org.b1_id]


def test_branch_summary_counts_roles(client, org):
    r = client.get(f"/branches/{org.b1_id}/summary", headers=org.company)
    assert r.status_code == 200
    assert r.json()["employee_counts"] == {
        "total": 3,
        "managers": 1,
        "asst_managers": 0,
        "general_employees": 2,
    }

    assert client.get(f"/branches/{org.main_branch_id}/summary", headers=org.manager).status_code == 403


def test_branch_deactivation_cascades_to_employees(client, db, org):
    r = client.patch(f"/branches/{org.b1_id}/status", json={"is_active": False}, headers=org.company)
    assert r.status_code == 200
    assert r.json()["is_active"] is False

    b1_staff = db.query(Employee).filter(Employee.branch_id == org.b1_id).all()
    assert len(b1_staff) == 3
    assert all(not e.is_active for e in b1_staff)

    for username in ("mira", "eli", "ana"):
        r = client.post("/token", data={"username": username, "password": STAFF_PASSWORD, "role": "employee"})
        assert r.status_code == 401

    main_staff = db.query(Employee).filter(Employee.id == org.ids.main_emp).one()
    assert main_staff.is_active is True


def test_company_deactivation_cascades_to_branches_and_employees(client, db, org):
    r = client.patch(f"/companies/{org.company_id}/status", json={"is_active": False}, headers=org.admin)
    assert r.status_code == 200

    assert db.query(Company).filter(Company.id == org.company_id).one().is_active is False
    assert db.query(Branch).filter(Branch.company_id == org.company_id, Branch.is_active == True).count() == 0
    assert db.query(Employee).filter(Employee.company_id == org.company_id, Employee.is_active == True).count() == 0

    r = client.post("/token", data={"username": "acme", "password": "acmepass1", "role": "company"})
    assert r.status_code == 401


def test_cannot_reactivate_employee_under_inactive_branch(client, org):
    client.patch(f"/branches/{org.b1_id}/status", json={"is_active": False}, headers=org.company)
    r = client.patch(f"/employees/{org.ids.emp1}/status", json={"is_active": True}, headers=org.company)
    assert r.status_code == 400


def test_hiring_rules_by_role(client, org, login):
    asst = {
        "employee_name": "Ada Assistant",
        "username": "ada",
        "password": STAFF_PASSWORD,
        "role": "asst_manager",
        "branch_id": org.b1_id,
    }
    assert client.post("/employees", json=asst, headers=org.manager).status_code == 201

    ada = login("ada", STAFF_PASSWORD, "asst_manager")
    manager = dict(asst, username="max", role="manager")
    assert client.post("/employees", json=manager, headers=ada).status_code == 403

    # Managers cannot hire into another branch
    other_branch = dict(asst, username="otto", role="employee", branch_id=org.main_branch_id)
    assert client.post("/employees", json=other_branch, headers=org.manager).status_code == 403

    # Employees cannot hire at all
    plain = dict(asst, username="pat", role="employee")
    assert client.post("/employees", json=plain, headers=org.emp1).status_code == 403


def test_duplicate_employee_username_rejected(client, org):
    payload = {
        "employee_name": "Eli Again",
        "username": "eli",
        "password": STAFF_PASSWORD,
        "role": "employee",
        "branch_id": org.b1_id,
    }
    r = client.post("/employees", json=payload, headers=org.company)
    assert r.status_code == 400


def test_employee_listing_is_scoped(client, org):
    everyone = client.get("/employees", headers=org.company).json()
    assert {e["id"] for e in everyone} == {org.ids.manager, org.ids.emp1, org.ids.emp2, org.ids.main_emp}

    b1_only = client.get("/employees", headers=org.manager).json()
    assert {e["id"] for e in b1_only} == {org.ids.manager, org.ids.emp1, org.ids.emp2}
    assert all(e["branch_name"] == "B1" for e in b1_only)

    assert client.get(f"/employees/{org.ids.main_emp}", headers=org.manager).status_code == 403


def test_role_change_applies_on_next_request(client, org):
    r = client.patch(f"/employees/{org.ids.emp1}/role", json={"role": "asst_manager"}, headers=org.company)
    assert r.status_code == 200

    # Same token, new stored role
    assert client.get("/auth/me", headers=org.emp1).json()["role"] == "asst_manager"
    assert client.get("/employees", headers=org.emp1).status_code == 200


def test_move_employee_between_branches(client, db, org):
    r = client.patch(f"/employees/{org.ids.emp2}/branch", json={"branch_id": org.main_branch_id}, headers=org.company)
    assert r.status_code == 200
    assert r.json()["branch_id"] == org.main_branch_id
    assert r.json()["branch_name"] == "Main Branch"

    other = org_service.create_company(db, "Other", "other", "otherpass1", None, None)
    db.commit()
    other_branch_id = other.main_branch.id

    r = client.patch(f"/employees/{org.ids.emp2}/branch", json={"branch_id": other_branch_id}, headers=org.company)
    assert r.status_code == 400


def test_active_employee_cannot_move_into_inactive_branch(client, db, org):
    r = client.post("/branches", json={"branch_name": "B2"}, headers=org.company)
    b2_id = r.json()["id"]
    client.patch(f"/branches/{b2_id}/status", json={"is_active": False}, headers=org.company)

    r = client.patch(f"/employees/{org.ids.emp1}/branch", json={"branch_id": b2_id}, headers=org.company)
    assert r.status_code == 400

    employee = db.query(Employee).filter(Employee.id == org.ids.emp1).one()
    assert employee.branch_id == org.b1_id
    assert employee.is_active is True

    # Nobody who cannot log in ends up on B2's roster
    r = client.post("/tasks", json={"title": "Restock", "assigned_to": "branch", "assigned_id": b2_id}, headers=org.company)
    details = client.get(f"/tasks/{r.json()['id']}/details", headers=org.company).json()
    assert details["total_count"] == 0


def test_admin_dashboard(client, org):
    r = client.get("/admin/dashboard", headers=org.admin)
    assert r.status_code == 200
    stats = r.json()
    assert stats["total_companies"] == 1
    assert stats["active_companies"] == 1
    assert stats["total_branches"] == 2
    assert stats["total_employees"] == 4
    assert stats["recent_companies"][0]["company_name"] == "Acme"
