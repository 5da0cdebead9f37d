def test_register_creates_profile_and_referral(client, db, make_user):
    referrer, _ = make_user(username="ate_joy", referral_code="JOY123")
    db.rpc_results["get_referrer_id_by_code"] = lambda params: referrer["id"] if params["code"] == "JOY123" else None

    response = client.post("/api/v1/auth/register", json={
        "username": "  New.User ",
        "password": "secret123",
        "first_name": "New",
        "last_name": "User",
        "referral_code": "JOY123",
    })

    assert response.status_code == 201
    body = response.json()
    assert body["username"] == "new.user"
    assert body["email"] == "new.user@users.firststeps.app"
    assert body["referred_by"] == referrer["id"]
    profile = db.row("profiles", body["user_id"])
    assert profile["role"] == "user"
    referrals = db.rows("referrals")
    assert len(referrals) == 1
    assert referrals[0]["referrer_id"] == referrer["id"]
    assert referrals[0]["referred_id"] == body["user_id"]
    assert referrals[0]["status"] == "active"


def test_register_with_unknown_referral_code_still_succeeds(client, db):
    db.rpc_results["get_referrer_id_by_code"] = None

    response = client.post("/api/v1/auth/register", json={
        "username": "solo", "password": "secret123", "first_name": "So", "last_name": "Lo", "referral_code": "NOPE",
    })

    assert response.status_code == 201
    assert response.json()["referred_by"] is None
    assert db.rows("referrals") == []


def test_register_rejects_taken_and_invalid_usernames(client, db):
    payload = {"username": "taken", "password": "secret123", "first_name": "A", "last_name": "B"}
    assert client.post("/api/v1/auth/register", json=payload).status_code == 201

    duplicate = client.post("/api/v1/auth/register", json=payload)
    invalid = client.post("/api/v1/auth/register", json={**payload, "username": "a b"})

    assert duplicate.status_code == 400
    assert invalid.status_code == 400


def test_login_with_username_then_me(client, db):
    client.post("/api/v1/auth/register", json={
        "username": "pedro", "password": "secret123", "first_name": "Pedro", "last_name": "Penduko",
    })

    login = client.post("/api/v1/auth/login", json={"username": "Pedro", "password": "secret123"})
    assert login.status_code == 200
    headers = {"Authorization": f"Bearer {login.json()['access_token']}"}

    me = client.get("/api/v1/auth/me", headers=headers)
    assert me.status_code == 200
    body = me.json()
    assert body["username"] == "pedro"
    assert body["role"] == "user"
    assert "withdrawals:create" in body["permissions"]
    assert "withdrawals:process" not in body["permissions"]


def test_login_with_wrong_password(client, db):
    client.post("/api/v1/auth/register", json={
        "username": "maria", "password": "secret123", "first_name": "M", "last_name": "C",
    })
    response = client.post("/api/v1/auth/login", json={"username": "maria", "password": "wrong-password"})
    assert response.status_code == 401


def test_invalid_token_is_unauthorized(client):
    response = client.get("/api/v1/auth/me", headers={"Authorization": "Bearer not-a-token"})
    assert response.status_code == 401


def test_user_without_profile_is_forbidden(client, db):
    db.auth.add_user("orphan-id", "orphan@users.firststeps.app", token="orphan-token")
    response = client.get("/api/v1/profiles/me", headers={"Authorization": "Bearer orphan-token"})
    assert response.status_code == 403


def test_callback_only_follows_same_site_paths(client):
    inside = client.get("/auth/callback?next=/merchant/portal", follow_redirects=False)
    outside = client.get("/auth/callback?next=//evil.example.com", follow_redirects=False)
    backslash = client.get("/auth/callback", params={"next": "/\\evil.example.com"}, follow_redirects=False)
    absolute = client.get("/auth/callback?next=https://evil.example.com", follow_redirects=False)

    assert inside.status_code == 307
    assert inside.headers["location"] == "/merchant/portal"
    assert outside.headers["location"] == "/dashboard"
    assert absolute.headers["location"] == "/dashboard"
    assert backslash.headers["location"] == "/dashboard"


def test_profile_me_and_update(client, db, make_user):
    user, headers = make_user(top_up_balance=100, withdrawable_balance=25.5)
    db.row("profiles", user["id"])["withdrawable_balance"] = None

    me = client.get("/api/v1/profiles/me", headers=headers)
    assert me.status_code == 200
    assert me.json()["withdrawable_balance"] == 0
    assert me.json()["top_up_balance"] == 100

    updated = client.put("/api/v1/profiles/me", json={"first_name": " Juan "}, headers=headers)
    assert updated.status_code == 200
    assert updated.json()["first_name"] == "Juan"


def test_admin_users_total_earnings(client, db, make_user):
    _, headers = make_user(role="admin")
    earner, _ = make_user(username="earner")
    package = db.seed("packages", name="Starter", price=500, commission_rate=10, is_active=True)
    db.seed("commissions", user_id=earner["id"], amount=40, level=1, status="paid")
    db.seed("commissions", user_id=earner["id"], amount=99, level=1, status="pending")
    db.seed("user_packages", user_id=earner["id"], package_id=package["id"], status="withdrawn",
            withdrawn_at="2026-04-01T00:00:00+00:00")

    response = client.get("/api/v1/admin/users", headers=headers)

    assert response.status_code == 200
    by_name = {u["username"]: u for u in response.json()}
    assert by_name["earner"]["total_earnings"] == 540.0


def test_admin_sets_role(client, db, make_user):
    _, headers = make_user(role="admin")
    target, _ = make_user()

    ok = client.post("/api/v1/admin/users", json={"userId": target["id"], "role": "merchant"}, headers=headers)
    bad = client.post("/api/v1/admin/users", json={"userId": target["id"], "role": "owner"}, headers=headers)

    assert ok.json() == {"ok": True}
    assert db.row("profiles", target["id"])["role"] == "merchant"
    assert bad.status_code == 400


def test_impersonation_link(client, db, make_user):
    admin, headers = make_user(role="admin")
    target, _ = make_user(username="target")

    response = client.post(
        "/api/v1/admin/impersonate",
        json={"userId": target["id"]},
        headers={**headers, "Origin": "https://admin.firststeps.test"},
    )
    self_response = client.post("/api/v1/admin/impersonate", json={"userId": admin["id"]}, headers=headers)
    missing = client.post("/api/v1/admin/impersonate", json={"userId": "nobody"}, headers=headers)

    assert response.status_code == 200
    link = response.json()["action_link"]
    assert "type=magiclink" in link
    assert "redirect_to=https://admin.firststeps.test/auth/impersonate-callback" in link
    assert self_response.status_code == 400
    assert missing.status_code == 404


def test_logout(client, make_user):
    _, headers = make_user()

    response = client.post("/api/v1/auth/logout", headers=headers)

    assert response.status_code == 200
    assert response.json() == {"message": "Logged out successfully"}
    assert client.post("/api/v1/auth/logout").status_code == 401
