from models import Message, Report


def test_resubmitting_a_report_updates_the_same_row(client, db, org):
    r = client.post("/reports", json={"report_date": "2026-03-02", "content": "Opened the store"}, headers=org.emp1)
    assert r.status_code == 201
    first = r.json()

    r = client.post("/reports", json={"report_date": "2026-03-02", "content": "  Opened and closed  "}, headers=org.emp1)
    assert r.status_code == 201
    second = r.json()

    assert second["id"] == first["id"]
    assert second["content"] == "Opened and closed"
    assert db.query(Report).count() == 1


def test_report_fields_and_scoping(client, org):
    client.post("/reports", json={"report_date": "2026-03-02", "content": "Eli day 1"}, headers=org.emp1)
    client.post("/reports", json={"report_date": "2026-03-03", "content": "Eli day 2"}, headers=org.emp1)
    client.post("/reports", json={"report_date": "2026-03-02", "content": "Ana day 1"}, headers=org.emp2)
    client.post("/reports", json={"report_date": "2026-03-02", "content": "Sam day 1"}, headers=org.main_emp)

    own = client.get("/reports", headers=org.emp1).json()
    assert [r["report_date"] for r in own] == ["2026-03-03", "2026-03-02"]
    assert own[0]["employee_name"] == "Eli One"
    assert own[0]["employee_role"] == "employee"
    assert own[0]["branch_name"] == "B1"

    assert client.get("/reports", params={"employee_id": org.ids.emp2}, headers=org.emp1).status_code == 403

    branch = client.get("/reports", headers=org.manager).json()
    assert len(branch) == 3

    everything = client.get("/reports", headers=org.company).json()
    assert len(everything) == 4

    ranged = client.get("/reports", params={"start_date": "2026-03-03"}, headers=org.company).json()
    assert [r["content"] for r in ranged] == ["Eli day 2"]

    sam_report = [r for r in everything if r["content"] == "Sam day 1"][0]
    assert client.get(f"/reports/{sam_report['id']}", headers=org.manager).status_code == 403
    assert client.get(f"/reports/{sam_report['id']}", headers=org.company).status_code == 200


def test_report_summary(client, org):
    client.post("/reports", json={"report_date": "2026-03-02", "content": "a"}, headers=org.emp1)
    client.post("/reports", json={"report_date": "2026-03-03", "content": "b"}, headers=org.emp1)
    client.post("/reports", json={"report_date": "2026-03-02", "content": "c"}, headers=org.main_emp)

    summary = client.get("/reports/summary", headers=org.company).json()
    assert summary["total_reports"] == 3
    assert summary["employee_count"] == 2
    assert summary["branch_count"] == 2

    assert client.get("/reports/summary", headers=org.manager).json()["total_reports"] == 2
    assert client.get("/reports/summary", headers=org.emp1).status_code == 403


def test_blank_report_is_rejected(client, org):
    r = client.post("/reports", json={"report_date": "2026-03-02", "content": "   "}, headers=org.emp1)
    assert r.status_code == 422


def test_branch_message_reaches_branch_inboxes(client, org):
    r = client.post(
        "/messages",
        json={"receiver_type": "branch", "receiver_id": org.b1_id, "message_text": "Stocktake friday"},
        headers=org.company,
    )
    assert r.status_code == 201
    message_id = r.json()["id"]
    assert r.json()["sender_type"] == "company"

    inbox = client.get("/messages/inbox", headers=org.emp1).json()
    assert [m["id"] for m in inbox] == [message_id]
    assert client.get("/messages/inbox", headers=org.main_emp).json() == []

    detail = client.get(f"/messages/{message_id}", headers=org.emp1).json()
    assert detail["sender_name"] == "Acme"
    assert detail["receiver_name"] == "B1"

    assert client.get(f"/messages/{message_id}", headers=org.main_emp).status_code == 403

    sent = client.get("/messages/sent", headers=org.company).json()
    assert [m["id"] for m in sent] == [message_id]


def test_admin_message_sender_name(client, org):
    r = client.post(
        "/messages",
        json={"receiver_type": "company", "receiver_id": org.company_id, "message_text": "Welcome"},
        headers=org.admin,
    )
    message_id = r.json()["id"]
    detail = client.get(f"/messages/{message_id}", headers=org.company).json()
    assert detail["sender_name"] == "System Administrator"
    assert detail["receiver_name"] == "Acme"


def test_message_to_missing_receiver(client, org):
    r = client.post(
        "/messages",
        json={"receiver_type": "employee", "receiver_id": 9999, "message_text": "Hello?"},
        headers=org.company,
    )
    assert r.status_code == 404


def test_deleting_a_message_only_flags_it(client, db, org):
    r = client.post(
        "/messages",
        json={"receiver_type": "employee", "receiver_id": org.ids.emp2, "message_text": "See me"},
        headers=org.manager,
    )
    message_id = r.json()["id"]

    # Only the sender may delete
    assert client.delete(f"/messages/{message_id}", headers=org.emp2).status_code == 404

    assert client.delete(f"/messages/{message_id}", headers=org.manager).status_code == 204

    row = db.query(Message).filter(Message.id == message_id).one()
    assert row.is_deleted is True

    assert client.get("/messages/inbox", headers=org.emp2).json() == []
    assert client.get("/messages/sent", headers=org.manager).json() == []
    assert client.get("/messages", headers=org.admin).json() == []
    assert client.get(f"/messages/{message_id}", headers=org.emp2).status_code == 404
    assert client.delete(f"/messages/{message_id}", headers=org.manager).status_code == 404


def test_promoted_employee_keeps_their_sent_messages(client, org):
    r = client.post(
        "/messages",
        json={"receiver_type": "branch", "receiver_id": org.b1_id, "message_text": "Shift swap?"},
        headers=org.emp1,
    )
    message_id = r.json()["id"]
    assert r.json()["sender_type"] == "employee"

    r = client.patch(f"/employees/{org.ids.emp1}/role", json={"role": "manager"}, headers=org.company)
    assert r.status_code == 200

    assert [m["id"] for m in client.get("/messages/sent", headers=org.emp1).json()] == [message_id]
    assert client.get(f"/messages/{message_id}", headers=org.emp1).json()["sender_name"] == "Eli One"
    assert client.delete(f"/messages/{message_id}", headers=org.emp1).status_code == 204
    assert client.get("/messages/sent", headers=org.emp1).json() == []
