"""Roles API and the end-to-end effect of role changes on access."""

from factory_erp.models.role import Role, RolePermission
from factory_erp.models.user_role import UserRole

from conftest import auth_headers, make_role, make_user


def _matrix(module, **actions):
    return {"module": module, "actions": actions}


def test_list_and_get_roles(client, admin_headers):
    listed = client.get("/api/roles", params={"limit": 2}, headers=admin_headers)

    assert listed.status_code == 200
    body = listed.json()
    assert body["pagination"]["total"] == 4
    assert body["pagination"]["totalPages"] == 2
    assert len(body["roles"]) == 2

    role_id = body["roles"][0]["id"]
    single = client.get(f"/api/roles/{role_id}", headers=admin_headers)
    assert single.status_code == 200
    assert len(single.json()["permissions"]) == 12


def test_predefined_roles(client, admin_headers):
    response = client.get("/api/roles/predefined", headers=admin_headers)
    names = [r["name"] for r in response.json()["roles"]]
    assert names == ["مدير النظام", "مدير", "مشرف عام", "مستخدم"]


def test_create_role_translates_matrix(client, db, admin_headers):
    response = client.post(
        "/api/roles",
        json={
            "name": "  Purchasing Clerk ",
            "description": "Creates orders",
            "permissions": [
                _matrix("purchases", view=True, create=True, approve=True, duplicate=True),
                _matrix("suppliers", view=True, edit=False),
            ],
        },
        headers=admin_headers,
    )

    assert response.status_code == 201
    body = response.json()
    assert body["name"] == "Purchasing Clerk"
    purchases = next(p for p in body["permissions"] if p["module"] == "purchases")
    assert purchases["actions"]["view"] and purchases["actions"]["create"]
    assert not purchases["actions"]["approve"]
    role = db.get(Role, body["id"])
    assert role.permission_pairs == {("purchases", "read"), ("purchases", "create"), ("suppliers", "read")}


def test_create_role_validation(client, admin_headers):
    short = client.post("/api/roles", json={"name": "x"}, headers=admin_headers)
    duplicate = client.post("/api/roles", json={"name": "مدير"}, headers=admin_headers)
    unknown = client.post(
        "/api/roles",
        json={"name": "Chat Mod", "permissions": [_matrix("chat", view=True)]},
        headers=admin_headers,
    )

    assert short.status_code == 400
    assert short.json()["code"] == "role_name_invalid"
    assert duplicate.status_code == 409
    assert duplicate.json()["code"] == "role_name_exists"
    assert unknown.status_code == 400
    assert unknown.json()["code"] == "unknown_permission"


def test_update_role_replaces_permissions_atomically(client, db, admin_headers):
    role = make_role(db, "Stock Keeper", [("inventory", "read"), ("inventory", "update")])

    failed = client.put(
        f"/api/roles/{role.id}",
        json={"permissions": [_matrix("inventory", view=True), _matrix("ghost", view=True)]},
        headers=admin_headers,
    )
    assert failed.status_code == 400
    db.expire_all()
    assert db.get(Role, role.id).permission_pairs == {("inventory", "read"), ("inventory", "update")}

    updated = client.put(
        f"/api/roles/{role.id}",
        json={"name": "Stock Lead", "permissions": [_matrix("inventory", view=True, print=True)]},
        headers=admin_headers,
    )
    assert updated.status_code == 200
    db.expire_all()
    refreshed = db.get(Role, role.id)
    assert refreshed.name == "Stock Lead"
    assert refreshed.permission_pairs == {("inventory", "read"), ("inventory", "export")}


def test_delete_role_blocked_while_assigned(client, db, admin_headers):
    role = make_role(db, "Temp", [("reports", "read")])
    user = make_user(db, "temp@example.com", roles=[role])

    blocked = client.delete(f"/api/roles/{role.id}", headers=admin_headers)
    assert blocked.status_code == 409
    assert blocked.json()["code"] == "role_in_use"

    client.patch(f"/api/users/{user.id}/roles/{role.id}", json={"active": False}, headers=admin_headers)
    role_id = role.id
    deleted = client.delete(f"/api/roles/{role_id}", headers=admin_headers)

    assert deleted.status_code == 200
    db.expire_all()
    assert db.get(Role, role_id) is None
    assert db.query(RolePermission).filter(RolePermission.role_id == role_id).count() == 0
    assert db.query(UserRole).filter(UserRole.role_id == role_id).count() == 0


def test_roles_routes_require_roles_permissions(client, db):
    viewer_role = make_role(db, "Role Viewer", [("roles", "read")])
    user = make_user(db, "viewer@example.com", roles=[viewer_role])
    headers = auth_headers(user)

    assert client.get("/api/roles", headers=headers).status_code == 200
    denied = client.post("/api/roles", json={"name": "Sneaky"}, headers=headers)
    assert denied.status_code == 403
    assert denied.json()["code"] == "permission_denied"
    assert client.delete(f"/api/roles/{viewer_role.id}", headers=headers).status_code == 403


def test_editor_role_end_to_end(client, db, admin_headers):
    created = client.post(
        "/api/roles",
        json={"name": "Editor", "permissions": [_matrix("users", view=True, edit=True)]},
        headers=admin_headers,
    )
    editor_id = created.json()["id"]
    target = make_user(db, "target@example.com", name="Target")
    editor = make_user(db, "editor@example.com", name="Ed")
    client.post(f"/api/users/{editor.id}/roles", json={"roleId": editor_id}, headers=admin_headers)
    headers = auth_headers(editor)

    assert client.get("/api/users", headers=headers).status_code == 200
    assert client.put(f"/api/users/{target.id}", json={"name": "Renamed"}, headers=headers).status_code == 200
    assert client.delete(f"/api/users/{target.id}", headers=headers).status_code == 403
    assert client.post(
        "/api/users",
        json={"name": "New", "email": "new@example.com", "password": "secret123"},
        headers=headers,
    ).status_code == 403

    # Same token, role switched off: grants disappear on the next request
    client.patch(f"/api/roles/{editor_id}/toggle", headers=admin_headers)
    assert client.get("/api/users", headers=headers).status_code == 403
    assert client.get("/api/user/permissions", headers=headers).json()["permissions"] == []
