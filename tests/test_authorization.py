"""Authorization resolver: union semantics and active flags."""

from factory_erp.models.role import RolePermission
from factory_erp.services.authorization_service import authorization_service
from factory_erp.services.role_service import role_service
from factory_erp.services.user_service import user_service

from conftest import make_role, make_user


def test_union_over_roles_without_double_counting(db):
    viewer = make_role(db, "Viewer", [("users", "read"), ("roles", "read")])
    editor = make_role(db, "Editor", [("users", "read"), ("users", "update")])
    user = make_user(db, "union@example.com", roles=[viewer, editor])

    resolved = authorization_service.resolve_permissions(db, user.id)

    assert resolved == {"users": {"read", "update"}, "roles": {"read"}}


def test_user_without_roles_has_nothing(db):
    user = make_user(db, "nobody@example.com")
    assert authorization_service.resolve_permissions(db, user.id) == {}


def test_role_without_links_grants_nothing(db):
    empty = make_role(db, "Empty", [])
    user = make_user(db, "empty@example.com", roles=[empty])
    assert authorization_service.resolve_permissions(db, user.id) == {}


def test_set_role_permissions_is_idempotent(db):
    role = make_role(db, "Buyer", [])
    user = make_user(db, "buyer@example.com", roles=[role])
    pairs = [("purchases", "read"), ("purchases", "create"), ("purchases", "read")]

    role_service.set_role_permissions(db, role.id, pairs)
    first = authorization_service.resolve_permissions(db, user.id)
    first_rows = db.query(RolePermission).filter(RolePermission.role_id == role.id).count()

    role_service.set_role_permissions(db, role.id, pairs)
    second = authorization_service.resolve_permissions(db, user.id)
    second_rows = db.query(RolePermission).filter(RolePermission.role_id == role.id).count()

    assert first == second == {"purchases": {"read", "create"}}
    assert first_rows == second_rows == 2


def test_set_role_permissions_replaces_whole_set(db):
    role = make_role(db, "Clerk", [("suppliers", "read"), ("suppliers", "create")])
    role_service.set_role_permissions(db, role.id, [("inventory", "read")])
    db.expire_all()
    assert role_service.get_role(db, role.id).permission_pairs == {("inventory", "read")}


def test_deactivating_one_assignment_removes_exactly_its_grants(db):
    readers = make_role(db, "Readers", [("users", "read"), ("suppliers", "read")])
    writers = make_role(db, "Writers", [("suppliers", "update")])
    user = make_user(db, "tworoles@example.com", roles=[readers, writers])

    user_service.set_assignment_active(db, user.id, writers.id, False)

    assert authorization_service.resolve_permissions(db, user.id) == {
        "users": {"read"},
        "suppliers": {"read"},
    }


def test_inactive_role_grants_nothing(db):
    role = make_role(db, "Seasonal", [("sales", "read")])
    user = make_user(db, "seasonal@example.com", roles=[role])

    role_service.toggle_role(db, role.id)

    assert authorization_service.resolve_permissions(db, user.id) == {}
    assert authorization_service.active_role_names(db, user.id) == []


def test_user_permissions_payload_groups_by_module(db):
    role = make_role(db, "Mixed", [("users", "read"), ("roles", "read"), ("roles", "update")])
    user = make_user(db, "mixed@example.com", roles=[role])

    payload = authorization_service.user_permissions_payload(db, user)

    assert {p["name"] for p in payload["permissions"]} == {"users.read", "roles.read", "roles.update"}
    assert len(payload["groupedPermissions"]["roles"]) == 2
    assert [r["name"] for r in payload["roles"]] == ["Mixed"]


def test_user_permissions_payload_lists_only_active_roles(db):
    kept = make_role(db, "Kept", [("reports", "read")])
    paused = make_role(db, "Paused", [("sales", "read")])
    revoked = make_role(db, "Revoked", [("customers", "read")])
    user = make_user(db, "roles@example.com", roles=[kept, paused, revoked])

    role_service.toggle_role(db, paused.id)
    user_service.set_assignment_active(db, user.id, revoked.id, False)
    db.expire_all()

    payload = authorization_service.user_permissions_payload(db, user)

    assert [r["name"] for r in payload["roles"]] == ["Kept"]
    assert [role.name for role in user.active_roles] == ["Kept"]
    assert [p["name"] for p in payload["permissions"]] == ["reports.read"]
