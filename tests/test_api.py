from credentials.tokens import issue_token
from rbac.service import get_role_by_code


def test_health(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json() == {"status": "ok"}


def test_unknown_route_uses_error_envelope(client):
    r = client.get("/v1/nowhere")
    assert r.status_code == 404
    body = r.json()
    assert body["status"] == "error"
    assert body["code"] == "HTTP_404"
    assert "/v1/nowhere" in body["message"]


def test_missing_or_bad_token_is_401(client):
    r = client.get("/v1/users")
    assert r.status_code == 401
    assert r.json()["status"] == "error"

    r = client.get("/v1/users", headers={"Authorization": "Bearer nope"})
    assert r.status_code == 401


def test_admin_creates_and_lists_users(client, admin_headers):
    r = client.post(
        "/v1/users",
        json={"email": "new@example.com", "password": "long-enough", "gender": "FEMALE"},
        headers=admin_headers,
    )
    assert r.status_code == 201
    created = r.json()
    assert created["email"] == "new@example.com"
    assert created["name"] == "Bạn"
    assert "password" not in created

    r = client.get("/v1/users", headers=admin_headers)
    assert r.status_code == 200
    emails = {u["email"] for u in r.json()["users"]}
    assert emails == {"admin@example.com", "new@example.com"}


def test_duplicate_email_maps_to_409(client, admin_headers):
    payload = {"email": "twice@example.com", "password": "long-enough"}
    assert client.post("/v1/users", json=payload, headers=admin_headers).status_code == 201

    r = client.post("/v1/users", json=payload, headers=admin_headers)
    assert r.status_code == 409
    assert r.json()["code"] == "DUPLICATE_KEY"


def test_request_validation_error_envelope(client, admin_headers):
    r = client.post("/v1/users", json={"email": "x@example.com", "password": "short"}, headers=admin_headers)
    assert r.status_code == 422
    assert r.json()["code"] == "VALIDATION_ERROR"


def test_member_cannot_create_users(client, member):
    _, headers = member
    r = client.post("/v1/users", json={"email": "x@example.com", "password": "long-enough"}, headers=headers)
    assert r.status_code == 403
    assert r.json()["code"] == "PERMISSION_DENIED"


def test_member_reads_and_edits_own_profile(client, member):
    user, headers = member
    r = client.get("/v1/users/profile", headers=headers)
    assert r.status_code == 200
    assert r.json()["id"] == user.id

    r = client.patch("/v1/users/profile", json={"name": "Minh", "phone_number": "0912345678"}, headers=headers)
    assert r.status_code == 200
    assert r.json()["name"] == "Minh"
    assert r.json()["phone_number"] == "0912345678"


def test_soft_delete_via_api_revokes_access(client, admin_headers, member):
    user, headers = member

    r = client.delete(f"/v1/users/{user.id}", headers=admin_headers)
    assert r.status_code == 200
    assert r.json()["is_deleted"] is True
    assert r.json()["deleted_at"] is not None

    assert client.get(f"/v1/users/{user.id}", headers=admin_headers).status_code == 404
    assert client.get("/v1/users/profile", headers=headers).status_code == 401


def test_verify_email_and_effective_permissions(client, admin_headers, member):
    user, _ = member

    r = client.post(f"/v1/users/{user.id}/verify-email", headers=admin_headers)
    assert r.status_code == 200
    assert r.json()["email_verified"] is True
    assert r.json()["last_login_at"] is not None

    r = client.get(f"/v1/users/{user.id}/permissions", headers=admin_headers)
    assert r.json() == {"user_id": user.id, "permissions": ["USER_VIEW"]}


def test_system_role_delete_is_forbidden(client, db, admin_headers):
    admin_role = get_role_by_code(db, "ADMIN")
    r = client.delete(f"/v1/roles/{admin_role.id}", headers=admin_headers)
    assert r.status_code == 403
    assert r.json()["code"] == "SYSTEM_PROTECTED"


def test_role_permission_lifecycle(client, admin_headers, member):
    user, member_headers = member

    role = client.post("/v1/roles", json={"role_name": "Editor", "role_code": "EDITOR"}, headers=admin_headers).json()
    perm = client.post(
        "/v1/permissions",
        json={"permission_name": "Edit posts", "permission_code": "POST_EDIT", "module": "post"},
        headers=admin_headers,
    ).json()

    r = client.put(f"/v1/roles/{role['id']}/permissions/{perm['id']}", headers=admin_headers)
    assert r.status_code == 200
    r = client.put(f"/v1/users/{user.id}/roles/{role['id']}", headers=admin_headers)
    assert r.status_code == 200

    r = client.get(f"/v1/users/{user.id}/permissions", headers=admin_headers)
    assert r.json()["permissions"] == ["POST_EDIT", "USER_VIEW"]

    r = client.delete(f"/v1/roles/{role['id']}/permissions/{perm['id']}", headers=admin_headers)
    assert r.status_code == 200
    assert r.json()["is_deleted"] is True

    r = client.get(f"/v1/roles/{role['id']}/permissions", headers=member_headers)
    assert r.json()["permissions"] == []

    r = client.get(f"/v1/users/{user.id}/permissions", headers=admin_headers)
    assert r.json()["permissions"] == ["USER_VIEW"]


def test_revoke_own_token_and_logout(client, db, member):
    user, headers = member
    spare, spare_raw = issue_token(db, user_id=user.id, token_type="API")

    r = client.post(f"/v1/tokens/{spare.id}/revoke", headers=headers)
    assert r.status_code == 200
    assert r.json()["is_revoked"] is True
    assert client.get("/v1/tokens", headers={"Authorization": f"Bearer {spare_raw}"}).status_code == 401

    r = client.post("/v1/tokens/logout", headers=headers)
    assert r.status_code == 200
    assert client.get("/v1/users/profile", headers=headers).status_code == 401


def test_cannot_revoke_someone_elses_token_without_permission(client, db, member, make_user):
    _, headers = member
    other = make_user(role_code="USER")
    token, _ = issue_token(db, user_id=other.id)

    r = client.post(f"/v1/tokens/{token.id}/revoke", headers=headers)
    assert r.status_code == 404


def test_admin_can_revoke_any_token(client, db, admin_headers, make_user):
    other = make_user(role_code="USER")
    token, _ = issue_token(db, user_id=other.id)

    r = client.post(f"/v1/tokens/{token.id}/revoke", headers=admin_headers)
    assert r.status_code == 200
    assert r.json()["is_revoked"] is True


def test_security_headers_on_every_response(client):
    for r in (client.get("/health"), client.get("/v1/users"), client.get("/v1/nowhere")):
        assert r.headers["X-Content-Type-Options"] == "nosniff"
        assert r.headers["X-Frame-Options"] == "SAMEORIGIN"
        assert r.headers["Referrer-Policy"] == "no-referrer"
        assert r.headers["Strict-Transport-Security"].startswith("max-age=")
        assert "default-src 'self'" in r.headers["Content-Security-Policy"]


def test_oversized_body_is_refused_before_the_route(client, admin_headers):
    payload = {"email": "big@example.com", "password": "long-enough", "name": "x" * 20000}
    r = client.post("/v1/users", json=payload, headers=admin_headers)

    assert r.status_code == 413
    assert r.json()["code"] == "PAYLOAD_TOO_LARGE"
    assert r.headers["X-Content-Type-Options"] == "nosniff"
    emails = {u["email"] for u in client.get("/v1/users", headers=admin_headers).json()["users"]}
    assert "big@example.com" not in emails


def test_body_under_the_limit_passes(client, admin_headers):
    payload = {"email": "small@example.com", "password": "long-enough", "name": "x" * 50}
    assert client.post("/v1/users", json=payload, headers=admin_headers).status_code == 201
