def seed_method(db, owner_id, **values):
    defaults = {
        "user_id": owner_id,
        "type": "gcash",
        "label": "GCash",
        "is_public": False,
        "is_default": False,
        "qr_code_path": None,
    }
    return db.seed("payment_methods", **{**defaults, **values})


def test_first_method_becomes_default(client, db, make_user):
    user, headers = make_user()

    response = client.post(
        "/api/v1/payment-methods",
        data={"type": "bank", "label": "BDO", "account_number": "0012-3456-7890"},
        headers=headers,
    )

    assert response.status_code == 201
    body = response.json()
    assert body["is_default"] is True
    assert body["account_number_last4"] == "7890"
    assert body["qr_url"] is None


def test_new_default_clears_previous(client, db, make_user):
    user, headers = make_user()
    old = seed_method(db, user["id"], is_default=True)

    response = client.post(
        "/api/v1/payment-methods",
        data={"type": "gcash", "phone": "09171234567", "is_default": "true"},
        files={"qr_code": ("qr.png", b"qr-bytes", "image/png")},
        headers=headers,
    )

    assert response.status_code == 201
    body = response.json()
    assert body["is_default"] is True
    assert body["qr_code_path"].startswith(f"{user['id']}/")
    assert body["qr_url"].startswith("https://storage.test/payment-method-qr-codes/")
    assert db.row("payment_methods", old["id"])["is_default"] is False


def test_invalid_type_rejected(client, make_user):
    _, headers = make_user()
    response = client.post("/api/v1/payment-methods", data={"type": "paypal"}, headers=headers)
    assert response.status_code == 422


def test_delete_only_own_method(client, db, make_user):
    user, headers = make_user()
    other, _ = make_user()
    mine = seed_method(db, user["id"])
    theirs = seed_method(db, other["id"])

    assert client.delete(f"/api/v1/payment-methods/{theirs['id']}", headers=headers).status_code == 404
    assert client.delete(f"/api/v1/payment-methods/{mine['id']}", headers=headers).status_code == 204
    assert db.row("payment_methods", mine["id"]) is None
    assert db.row("payment_methods", theirs["id"]) is not None


def test_public_methods_for_top_up(client, db, make_user):
    admin, _ = make_user(role="admin")
    _, headers = make_user()
    shown = seed_method(db, admin["id"], is_public=True, qr_code_path=f"{admin['id']}/1-qr.png")
    seed_method(db, admin["id"], is_public=False)

    response = client.get("/api/v1/payment-methods/public", headers=headers)

    assert response.status_code == 200
    methods = response.json()
    assert [m["id"] for m in methods] == [shown["id"]]
    assert "token=signed" in methods[0]["qr_url"]


def test_admin_list_default_first(client, db, make_user):
    admin, headers = make_user(role="admin")
    plain = seed_method(db, admin["id"], created_at="2026-05-02T00:00:00+00:00")
    default = seed_method(db, admin["id"], is_default=True, created_at="2026-05-01T00:00:00+00:00")

    response = client.get("/api/v1/admin/payment-methods", headers=headers)

    assert [m["id"] for m in response.json()] == [default["id"], plain["id"]]


def test_admin_actions(client, db, make_user):
    admin, headers = make_user(role="admin")
    method = seed_method(db, admin["id"])
    url = f"/api/v1/admin/payment-methods/{method['id']}/action"

    activated = client.post(url, json={"action": "activate"}, headers=headers)
    assert activated.json()["message"] == "Payment method activated."
    assert db.row("payment_methods", method["id"])["is_public"] is True

    deactivated = client.post(url, json={"action": "deactivate"}, headers=headers)
    assert deactivated.json()["message"] == "Payment method deactivated."
    assert db.row("payment_methods", method["id"])["is_public"] is False

    deleted = client.post(url, json={"action": "delete"}, headers=headers)
    assert deleted.json()["message"] == "Payment method deleted."
    assert db.row("payment_methods", method["id"]) is None

    assert client.post(url, json={"action": "archive"}, headers=headers).status_code == 422


def test_admin_edit_filters_fields(client, db, make_user):
    admin, headers = make_user(role="admin")
    owner, _ = make_user()
    old_default = seed_method(db, owner["id"], is_default=True)
    method = seed_method(db, owner["id"])
    url = f"/api/v1/admin/payment-methods/{method['id']}"

    nothing = client.patch(url, json={"updates": {"user_id": admin["id"]}}, headers=headers)
    assert nothing.status_code == 400
    assert nothing.json()["detail"] == "No valid fields provided for update"

    response = client.patch(url, json={"updates": {"label": "Payroll", "is_default": True, "user_id": admin["id"]}},
                            headers=headers)
    assert response.status_code == 200
    assert response.json()["message"] == "Payment method updated."
    stored = db.row("payment_methods", method["id"])
    assert stored["label"] == "Payroll"
    assert stored["is_default"] is True
    assert stored["user_id"] == owner["id"]
    assert db.row("payment_methods", old_default["id"])["is_default"] is False


def test_merchant_cannot_manage_payment_methods(client, make_user):
    _, headers = make_user(role="merchant")
    assert client.get("/api/v1/admin/payment-methods", headers=headers).status_code == 403
