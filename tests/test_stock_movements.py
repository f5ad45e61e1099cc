"""Manual stock adjustments and movement history."""

from factory_erp.models.raw_material import RawMaterial, StockMovement

from conftest import auth_headers, make_role, make_user


def _adjust(client, headers, material_id, **body):
    return client.post(f"/api/raw-materials/{material_id}/stock", json=body, headers=headers)


def test_in_and_out_adjust_quantity_and_record_movements(client, db, admin, admin_headers, materials):
    resin = materials[0]

    added = _adjust(client, admin_headers, resin.id, type="IN", quantity=25, reason="COUNT", notes="recount")
    removed = _adjust(client, admin_headers, resin.id, type="OUT", quantity=40, reason="PRODUCTION")

    assert added.status_code == 200
    assert added.json()["material"]["quantity"] == 125
    assert added.json()["stockMovement"]["notes"] == "recount"
    assert added.json()["stockMovement"]["user"] == {"name": admin.name}
    assert removed.status_code == 200
    assert removed.json()["material"]["quantity"] == 85
    assert removed.json()["message"] == "تم خصم 40.0 kg من مخزون Resin"

    db.expire_all()
    assert db.get(RawMaterial, resin.id).quantity == 85
    movements = db.query(StockMovement).filter(StockMovement.raw_material_id == resin.id).all()
    assert sorted((m.type, m.quantity) for m in movements) == [("IN", 25), ("OUT", 40)]


def test_out_beyond_stock_is_rejected_without_side_effects(client, db, admin_headers, materials):
    pigment = materials[1]

    response = client.post(
        f"/api/raw-materials/{pigment.id}/stock",
        json={"type": "OUT", "quantity": 1, "reason": "PRODUCTION"},
        headers={**admin_headers, "Accept-Language": "en"},
    )

    assert response.status_code == 400
    assert response.json()["code"] == "stock_insufficient"
    assert response.json()["detail"] == "Insufficient stock. Current quantity: 0.0"
    db.expire_all()
    assert db.get(RawMaterial, pigment.id).quantity == 0
    assert db.query(StockMovement).count() == 0


def test_adjustment_validation(client, admin_headers, materials):
    resin = materials[0]

    bad_type = _adjust(client, admin_headers, resin.id, type="MOVE", quantity=1, reason="X")
    zero = _adjust(client, admin_headers, resin.id, type="IN", quantity=0, reason="X")
    no_reason = _adjust(client, admin_headers, resin.id, type="IN", quantity=1)
    missing = _adjust(client, admin_headers, 9999, type="IN", quantity=1, reason="X")

    assert bad_type.json()["code"] == "stock_type_invalid"
    assert zero.json()["code"] == "stock_quantity_invalid"
    assert no_reason.json()["code"] == "stock_fields_required"
    assert missing.status_code == 404


def test_history_is_newest_first_and_filterable(client, admin_headers, materials):
    resin = materials[0]
    _adjust(client, admin_headers, resin.id, type="IN", quantity=1, reason="FIRST")
    _adjust(client, admin_headers, resin.id, type="OUT", quantity=2, reason="SECOND")
    _adjust(client, admin_headers, resin.id, type="IN", quantity=3, reason="THIRD")

    history = client.get(f"/api/raw-materials/{resin.id}/stock", headers=admin_headers).json()
    only_in = client.get(
        f"/api/raw-materials/{resin.id}/stock", params={"type": "IN"}, headers=admin_headers
    ).json()
    second_page = client.get(
        f"/api/raw-materials/{resin.id}/stock", params={"page": 2, "limit": 2}, headers=admin_headers
    ).json()

    assert history["material"] == {"id": resin.id, "name": "Resin"}
    assert [m["reason"] for m in history["stockMovements"]] == ["THIRD", "SECOND", "FIRST"]
    assert [m["reason"] for m in only_in["stockMovements"]] == ["THIRD", "FIRST"]
    assert [m["reason"] for m in second_page["stockMovements"]] == ["FIRST"]
    assert second_page["pagination"] == {"page": 2, "limit": 2, "total": 3, "totalPages": 2}


def test_stock_routes_require_inventory_permissions(client, db, materials):
    resin = materials[0]
    reader = make_role(db, "Stock Reader", [("inventory", "read")])
    user = make_user(db, "stock@example.com", roles=[reader])
    headers = auth_headers(user)

    assert client.get(f"/api/raw-materials/{resin.id}/stock", headers=headers).status_code == 200
    assert _adjust(client, headers, resin.id, type="IN", quantity=1, reason="X").status_code == 403
