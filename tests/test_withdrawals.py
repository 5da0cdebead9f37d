from app.core.status_notes import DEDUCTION_MARKER


def seed_withdrawal(db, user_id, amount, status="pending", status_notes=None):
    return db.seed(
        "withdrawal_requests",
        user_id=user_id,
        amount=amount,
        status=status,
        status_notes=status_notes,
        payment_method_info={"type": "gcash", "phone": "09171234567"},
        processed_at=None,
    )


def test_create_withdrawal_request(client, db, make_user):
    user, headers = make_user(withdrawable_balance=500)

    response = client.post(
        "/api/v1/withdrawal-requests",
        json={"amount": 200, "payment_method_info": {"type": "gcash"}},
        headers=headers,
    )

    assert response.status_code == 200
    body = response.json()
    assert body["message"] == "Withdrawal request created successfully"
    assert body["withdrawal_request"]["status"] == "pending"
    assert body["withdrawal_request"]["amount"] == 200
    # nothing is deducted until accounting approves
    assert db.row("profiles", user["id"])["withdrawable_balance"] == 500


def test_create_withdrawal_rejects_invalid_amount(client, make_user):
    _, headers = make_user(withdrawable_balance=500)

    for amount in (0, -5, None):
        response = client.post("/api/v1/withdrawal-requests", json={"amount": amount}, headers=headers)
        assert response.status_code == 400
        assert response.json()["detail"] == "Valid amount is required"


def test_create_withdrawal_reports_available_balance(client, make_user):
    _, headers = make_user(top_up_balance=1000, withdrawable_balance=50)

    response = client.post("/api/v1/withdrawal-requests", json={"amount": 80}, headers=headers)

    assert response.status_code == 400
    assert response.json()["detail"] == {"message": "Insufficient balance", "available_balance": 50.0}


def test_create_withdrawal_requires_token(client):
    response = client.post("/api/v1/withdrawal-requests", json={"amount": 10})
    assert response.status_code == 401


def test_list_own_withdrawals_newest_first(client, db, make_user):
    user, headers = make_user(withdrawable_balance=500)
    other, _ = make_user(withdrawable_balance=500)
    older = seed_withdrawal(db, user["id"], 10)
    older["created_at"] = "2026-01-01T00:00:00+00:00"
    newer = seed_withdrawal(db, user["id"], 20)
    newer["created_at"] = "2026-02-01T00:00:00+00:00"
    seed_withdrawal(db, other["id"], 30)

    response = client.get("/api/v1/withdrawal-requests", headers=headers)

    assert response.status_code == 200
    ids = [w["id"] for w in response.json()["withdrawal_requests"]]
    assert ids == [newer["id"], older["id"]]


def test_accounting_list_hydrates_usernames(client, db, make_user):
    owner, _ = make_user(username="juan", withdrawable_balance=100)
    _, headers = make_user(role="accounting")
    seed_withdrawal(db, owner["id"], 40)

    response = client.get("/api/v1/accounting/withdrawals", headers=headers)

    assert response.status_code == 200
    withdrawals = response.json()["withdrawals"]
    assert len(withdrawals) == 1
    assert withdrawals[0]["username"] == "juan"


def test_plain_user_cannot_open_accounting_portal(client, make_user):
    _, headers = make_user(role="user")
    response = client.get("/api/v1/accounting/withdrawals", headers=headers)
    assert response.status_code == 403


def test_merchant_cannot_process_withdrawals(client, db, make_user):
    owner, _ = make_user(withdrawable_balance=100)
    _, headers = make_user(role="merchant")
    request = seed_withdrawal(db, owner["id"], 40)

    response = client.post(
        "/api/v1/accounting/withdrawals", json={"id": request["id"], "action": "approve"}, headers=headers
    )

    assert response.status_code == 403
    assert db.row("withdrawal_requests", request["id"])["status"] == "pending"


def test_approve_deducts_balance_and_sets_marker(client, db, make_user):
    owner, _ = make_user(top_up_balance=100, withdrawable_balance=300)
    _, headers = make_user(role="accounting")
    request = seed_withdrawal(db, owner["id"], 120)

    response = client.post(
        "/api/v1/accounting/withdrawals", json={"id": request["id"], "action": "approve"}, headers=headers
    )

    assert response.status_code == 200
    assert response.json() == {"ok": True, "id": request["id"], "status": "approved", "withdrawable_balance": 180.0}
    stored = db.row("withdrawal_requests", request["id"])
    assert stored["status"] == "approved"
    assert stored["processed_at"] is not None
    assert DEDUCTION_MARKER in stored["status_notes"].split()
    profile = db.row("profiles", owner["id"])
    assert profile["withdrawable_balance"] == 180.0
    assert profile["top_up_balance"] == 100.0
    assert profile["balance"] == 280.0


def test_admin_may_approve(client, db, make_user):
    owner, _ = make_user(withdrawable_balance=50)
    _, headers = make_user(role="admin")
    request = seed_withdrawal(db, owner["id"], 50)

    response = client.post(
        "/api/v1/accounting/withdrawals", json={"id": request["id"], "action": "approve"}, headers=headers
    )

    assert response.status_code == 200
    assert db.row("profiles", owner["id"])["withdrawable_balance"] == 0


def test_second_approval_conflicts_and_deducts_once(client, db, make_user):
    owner, _ = make_user(withdrawable_balance=300)
    _, headers = make_user(role="accounting")
    request = seed_withdrawal(db, owner["id"], 100)
    body = {"id": request["id"], "action": "approve"}

    first = client.post("/api/v1/accounting/withdrawals", json=body, headers=headers)
    second = client.post("/api/v1/accounting/withdrawals", json=body, headers=headers)

    assert first.status_code == 200
    assert second.status_code == 409
    assert db.row("profiles", owner["id"])["withdrawable_balance"] == 200.0


def test_marker_blocks_approval_of_pending_request(client, db, make_user):
    owner, _ = make_user(withdrawable_balance=300)
    _, headers = make_user(role="accounting")
    request = seed_withdrawal(db, owner["id"], 100, status_notes=DEDUCTION_MARKER)

    response = client.post(
        "/api/v1/accounting/withdrawals", json={"id": request["id"], "action": "approve"}, headers=headers
    )

    assert response.status_code == 409
    assert db.row("profiles", owner["id"])["withdrawable_balance"] == 300


def test_approve_with_insufficient_balance(client, db, make_user):
    owner, _ = make_user(top_up_balance=500, withdrawable_balance=20)
    _, headers = make_user(role="accounting")
    request = seed_withdrawal(db, owner["id"], 100)

    response = client.post(
        "/api/v1/accounting/withdrawals", json={"id": request["id"], "action": "approve"}, headers=headers
    )

    assert response.status_code == 400
    assert response.json()["detail"]["available_balance"] == 20.0
    stored = db.row("withdrawal_requests", request["id"])
    assert stored["status"] == "pending"
    assert stored["status_notes"] is None


def test_approve_unknown_request(client, make_user):
    _, headers = make_user(role="accounting")
    response = client.post(
        "/api/v1/accounting/withdrawals", json={"id": "does-not-exist", "action": "approve"}, headers=headers
    )
    assert response.status_code == 404


def test_failed_deduction_keeps_request_approved(client, db, make_user):
    owner, _ = make_user(withdrawable_balance=300)
    _, headers = make_user(role="accounting")
    request = seed_withdrawal(db, owner["id"], 100)
    db.fail_next("profiles", "update")

    response = client.post(
        "/api/v1/accounting/withdrawals", json={"id": request["id"], "action": "approve"}, headers=headers
    )

    assert response.status_code == 500
    stored = db.row("withdrawal_requests", request["id"])
    assert stored["status"] == "approved"
    assert DEDUCTION_MARKER in stored["status_notes"].split()
    assert db.row("profiles", owner["id"])["withdrawable_balance"] == 300

    retry = client.post(
        "/api/v1/accounting/withdrawals", json={"id": request["id"], "action": "approve"}, headers=headers
    )
    assert retry.status_code == 409
    assert db.row("profiles", owner["id"])["withdrawable_balance"] == 300


def test_reject_leaves_balance_untouched(client, db, make_user):
    owner, _ = make_user(withdrawable_balance=300)
    _, headers = make_user(role="accounting")
    request = seed_withdrawal(db, owner["id"], 100)

    response = client.post(
        "/api/v1/accounting/withdrawals",
        json={"id": request["id"], "action": "reject", "note": "wrong account"},
        headers=headers,
    )

    assert response.status_code == 200
    assert response.json()["status"] == "rejected"
    stored = db.row("withdrawal_requests", request["id"])
    assert stored["status"] == "rejected"
    assert "note:wrong_account" in stored["status_notes"]
    assert db.row("profiles", owner["id"])["withdrawable_balance"] == 300

    approve_after_reject = client.post(
        "/api/v1/accounting/withdrawals", json={"id": request["id"], "action": "approve"}, headers=headers
    )
    assert approve_after_reject.status_code == 409


def test_process_validates_payload(client, make_user):
    _, headers = make_user(role="accounting")

    missing = client.post("/api/v1/accounting/withdrawals", json={"action": "approve"}, headers=headers)
    invalid = client.post("/api/v1/accounting/withdrawals", json={"id": "abc", "action": "hold"}, headers=headers)

    assert missing.status_code == 400
    assert missing.json()["detail"] == "Missing id"
    assert invalid.status_code == 400
    assert invalid.json()["detail"] == "Invalid action"


def test_approval_survives_balance_change_between_steps(client, db, make_user):
    owner, _ = make_user(withdrawable_balance=300)
    _, headers = make_user(role="accounting")
    request = seed_withdrawal(db, owner["id"], 100)

    def top_up_lands(db):
        profile = db.row("profiles", owner["id"])
        profile.update(top_up_balance=50, balance=350)

    db.after("withdrawal_requests", "update", top_up_lands)

    response = client.post(
        "/api/v1/accounting/withdrawals", json={"id": request["id"], "action": "approve"}, headers=headers
    )

    assert response.status_code == 200
    assert response.json()["withdrawable_balance"] == 200.0
    profile = db.row("profiles", owner["id"])
    assert (profile["top_up_balance"], profile["withdrawable_balance"], profile["balance"]) == (50.0, 200.0, 250.0)
