"""Users API: administration and assignments."""

from factory_erp.models.audit_log import AuditLog
from factory_erp.models.user import User
from factory_erp.models.user_role import UserRole

from conftest import DEFAULT_PASSWORD, auth_headers, make_role, make_user


def test_create_user_with_roles(client, db, admin, admin_headers):
    role = make_role(db, "Warehouse", [("inventory", "read")])

    response = client.post(
        "/api/users",
        json={
            "name": "Karim",
            "email": "Karim@Example.com",
            "password": "secret123",
            "roleIds": [role.id],
        },
        headers=admin_headers,
    )

    assert response.status_code == 201
    body = response.json()
    assert body["email"] == "karim@example.com"
    assert [r["name"] for r in body["roles"]] == ["Warehouse"]
    assert "hashed_password" not in body
    entry = db.query(AuditLog).filter(AuditLog.action == "user.created").one()
    assert entry.actor_id == admin.id


def test_create_user_conflicts_and_validation(client, admin, admin_headers):
    taken = client.post(
        "/api/users",
        json={"name": "Dup", "email": admin.email, "password": "secret123"},
        headers=admin_headers,
    )
    short = client.post(
        "/api/users",
        json={"name": "Short", "email": "short@example.com", "password": "123"},
        headers=admin_headers,
    )
    unknown_role = client.post(
        "/api/users",
        json={"name": "Ghost", "email": "ghost@example.com", "password": "secret123", "roleIds": [999]},
        headers=admin_headers,
    )

    assert taken.status_code == 409
    assert short.status_code == 400
    assert short.json()["code"] == "password_too_short"
    assert unknown_role.status_code == 404


def test_list_users_filters(client, db, admin_headers):
    role = make_role(db, "Drivers", [("sales", "read")])
    make_user(db, "driver1@example.com", name="Driver One", roles=[role])
    make_user(db, "driver2@example.com", name="Driver Two", active=False)

    by_role = client.get("/api/users", params={"roleId": role.id}, headers=admin_headers).json()
    by_search = client.get("/api/users", params={"search": "Driver"}, headers=admin_headers).json()
    inactive = client.get("/api/users", params={"active": "false"}, headers=admin_headers).json()

    assert [u["email"] for u in by_role["users"]] == ["driver1@example.com"]
    assert by_search["pagination"]["total"] == 2
    assert [u["email"] for u in inactive["users"]] == ["driver2@example.com"]


def test_update_user_role_set_keeps_history(client, db, admin_headers):
    first = make_role(db, "First", [("reports", "read")])
    second = make_role(db, "Second", [("sales", "read")])
    user = make_user(db, "history@example.com", roles=[first])

    response = client.put(f"/api/users/{user.id}", json={"roleIds": [second.id]}, headers=admin_headers)

    assert response.status_code == 200
    db.expire_all()
    assignments = {a.role_id: a.is_active for a in db.query(UserRole).filter(UserRole.user_id == user.id)}
    assert assignments == {first.id: False, second.id: True}


def test_set_user_roles_replaces_active_set(client, db, admin_headers):
    first = make_role(db, "Packing", [("inventory", "read")])
    second = make_role(db, "Shipping", [("sales", "read")])
    user = make_user(db, "packer@example.com", roles=[first])

    response = client.put(
        f"/api/users/{user.id}/roles", json={"roleIds": [second.id, second.id]}, headers=admin_headers
    )

    assert response.status_code == 200
    assert [r["name"] for r in response.json()["roles"] if r["assignmentActive"]] == ["Shipping"]
    db.expire_all()
    assignments = {a.role_id: a.is_active for a in db.query(UserRole).filter(UserRole.user_id == user.id)}
    assert assignments == {first.id: False, second.id: True}


def test_delete_deactivates_and_cannot_target_self(client, db, admin, admin_headers):
    role = make_role(db, "Short Lived", [("reports", "read")])
    user = make_user(db, "leaver@example.com", roles=[role])

    self_delete = client.delete(f"/api/users/{admin.id}", headers=admin_headers)
    response = client.delete(f"/api/users/{user.id}", headers=admin_headers)

    assert self_delete.status_code == 400
    assert self_delete.json()["code"] == "cannot_delete_self"
    assert response.status_code == 200
    db.expire_all()
    leaver = db.get(User, user.id)
    assert leaver is not None and leaver.is_active is False
    assert all(not a.is_active for a in leaver.role_assignments)
    login = client.post("/api/auth/login", json={"email": "leaver@example.com", "password": DEFAULT_PASSWORD})
    assert login.status_code == 401


def test_assign_and_revoke_role(client, db, admin_headers):
    role = make_role(db, "Auditor", [("accounting", "read")])
    user = make_user(db, "auditor@example.com")
    headers = auth_headers(user)

    assigned = client.post(f"/api/users/{user.id}/roles", json={"roleId": role.id}, headers=admin_headers)
    assert assigned.status_code == 201
    assert [p["name"] for p in client.get("/api/user/permissions", headers=headers).json()["permissions"]] == [
        "accounting.read"
    ]

    revoked = client.patch(f"/api/users/{user.id}/roles/{role.id}", json={"active": False}, headers=admin_headers)
    assert revoked.status_code == 200
    assert client.get("/api/user/permissions", headers=headers).json()["permissions"] == []

    missing = client.patch(f"/api/users/{user.id}/roles/9999", json={"active": True}, headers=admin_headers)
    assert missing.status_code == 404


def test_reset_password(client, db, admin_headers):
    user = make_user(db, "reset@example.com")

    response = client.post(
        f"/api/users/{user.id}/reset-password",
        json={"newPassword": "brand-new"},
        headers=admin_headers,
    )

    assert response.status_code == 200
    login = client.post("/api/auth/login", json={"email": "reset@example.com", "password": "brand-new"})
    assert login.status_code == 200


def test_users_routes_require_users_permissions(client, db):
    user = make_user(db, "plain@example.com")
    headers = auth_headers(user)

    assert client.get("/api/users", headers=headers).status_code == 403
    assert client.get(f"/api/users/{user.id}", headers=headers).status_code == 403
