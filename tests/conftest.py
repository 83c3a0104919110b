import os
import tempfile
from types import SimpleNamespace

import pytest

# Settings must exist before db/auth are imported
_tmp_dir = tempfile.mkdtemp(prefix="orgdesk-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_tmp_dir, 'test.db')}"
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["ENABLE_SCHEDULER"] = "false"

from fastapi.testclient import TestClient  # noqa: E402

from create_admin import create_admin  # noqa: E402
from db import SessionLocal, engine  # noqa: E402
from dependencies import blacklist_cache  # noqa: E402
from main import app  # noqa: E402
from models import Base  # noqa: E402

ADMIN_PASSWORD = "rootpass1"
STAFF_PASSWORD = "staffpass1"


@pytest.fixture(autouse=True)
def reset_db():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    blacklist_cache.clear()
    yield


@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def login(client):
    def _login(username, password, role):
        r = client.post("/token", data={"username": username, "password": password, "role": role})
        assert r.status_code == 200, r.text
        return {"Authorization": f"Bearer {r.json()['access_token']}"}
    return _login


@pytest.fixture
def admin_headers(db, login):
    create_admin(db, "root", ADMIN_PASSWORD)
    return login("root", ADMIN_PASSWORD, "admin")


@pytest.fixture
def org(client, login, admin_headers):
    """
    Company "Acme" with its main branch and branch "B1".

    B1 holds three active staff: a manager and two employees.
    The main branch holds one employee.
    """
    r = client.post(
        "/companies",
        json={"company_name": "Acme", "username": "acme", "password": "acmepass1"},
        headers=admin_headers,
    )
    assert r.status_code == 201, r.text
    company_id = r.json()["id"]
    company = login("acme", "acmepass1", "company")

    main_branch_id = client.get("/branches", headers=company).json()[0]["id"]
    r = client.post("/branches", json={"branch_name": "B1"}, headers=company)
    assert r.status_code == 201, r.text
    b1_id = r.json()["id"]

    def hire(name, username, role, branch_id):
        r = client.post(
            "/employees",
            json={
                "employee_name": name,
                "username": username,
                "password": STAFF_PASSWORD,
                "role": role,
                "branch_id": branch_id,
            },
            headers=company,
        )
        assert r.status_code == 201, r.text
        return r.json()["id"]

    ids = SimpleNamespace(
        manager=hire("Mira Manager", "mira", "manager", b1_id),
        emp1=hire("Eli One", "eli", "employee", b1_id),
        emp2=hire("Ana Two", "ana", "employee", b1_id),
        main_emp=hire("Sam Main", "sam", "employee", main_branch_id),
    )

    return SimpleNamespace(
        company_id=company_id,
        main_branch_id=main_branch_id,
        b1_id=b1_id,
        ids=ids,
        admin=admin_headers,
        company=company,
        manager=login("mira", STAFF_PASSWORD, "manager"),
        emp1=login("eli", STAFF_PASSWORD, "employee"),
        emp2=login("ana", STAFF_PASSWORD, "employee"),
        main_emp=login("sam", STAFF_PASSWORD, "employee"),
    )
