"""Seed routine and application wiring."""

from factory_erp.db.seeds import run_seeds
from factory_erp.models.role import Permission, Role, RolePermission
from factory_erp.models.user import User
from factory_erp.models.user_role import UserRole
from factory_erp.permissions import all_permission_pairs
from factory_erp.services.authorization_service import authorization_service


def _counts(db):
    return tuple(
        db.query(model).count()
        for model in (Permission, Role, RolePermission, User, UserRole)
    )


def test_seed_is_idempotent(db):
    admin = run_seeds(db)
    first = _counts(db)
    run_seeds(db)

    assert _counts(db) == first
    assert first[0] == len(all_permission_pairs())
    assert first[1] == 4
    assert authorization_service.active_role_names(db, admin.id) == ["مدير النظام"]


def test_seed_does_not_overwrite_edited_roles(db):
    run_seeds(db)
    supervisor = db.query(Role).filter(Role.name == "مشرف عام").one()
    supervisor.description = "edited"
    db.commit()

    run_seeds(db)

    db.expire_all()
    assert db.query(Role).filter(Role.name == "مشرف عام").one().description == "edited"


def test_seeded_grants(db):
    admin = run_seeds(db)
    manager = db.query(Role).filter(Role.name == "مدير").one()

    assert len(authorization_service.resolve_permissions(db, admin.id)["purchases"]) == 5
    assert ("roles", "read") in manager.permission_pairs
    assert ("roles", "update") not in manager.permission_pairs


def test_health_and_request_id(client):
    response = client.get("/api/health")
    echoed = client.get("/api/health", headers={"X-Request-Id": "edge-42", "Accept-Language": "en"})
    forged = client.get("/api/health", headers={"X-Request-Id": "not a valid id; drop table"})

    assert response.status_code == 200
    assert response.json() == {"status": "ok", "database": True, "cache": True}
    assert response.headers["X-Request-Id"]
    assert response.headers["Content-Language"] == "ar"
    assert echoed.headers["X-Request-Id"] == "edge-42"
    assert echoed.headers["Content-Language"] == "en"
    assert forged.headers["X-Request-Id"] != "not a valid id; drop table"


def test_request_validation_is_localized(client, admin_headers):
    response = client.post(
        "/api/purchase-orders",
        json={"items": []},
        headers={**admin_headers, "Accept-Language": "en-US,en;q=0.9"},
    )
    assert response.status_code == 400
    assert response.json() == {"detail": "The submitted data is invalid", "code": "validation_failed"}
