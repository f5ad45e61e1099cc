"""Purchase-order lifecycle through the API."""

import re
from datetime import datetime, timedelta, timezone

import pytest

from factory_erp.models.purchase_order import PurchaseOrder, PurchaseOrderStatus
from factory_erp.models.raw_material import RawMaterial, StockMovement
from factory_erp.models.supplier import Supplier

from conftest import auth_headers, make_role, make_user

ORDER_NUMBER = re.compile(r"^PO-\d{4}-\d{2}-\d{4}$")


@pytest.fixture
def order(client, admin_headers, supplier, materials):
    resin, pigment = materials
    response = client.post(
        "/api/purchase-orders",
        json={
            "supplierId": supplier.id,
            "items": [
                {"rawMaterialId": resin.id, "quantity": 50, "unitPrice": 16},
                {"rawMaterialId": pigment.id, "quantity": 10, "unitPrice": 5},
            ],
            "notes": "urgent",
        },
        headers=admin_headers,
    )
    assert response.status_code == 201
    return response.json()


def _approve(client, order, headers):
    return client.post(f"/api/purchase-orders/{order['id']}/approve", json={"notes": "ok"}, headers=headers)


def test_create_order(order):
    assert ORDER_NUMBER.match(order["orderNumber"])
    assert order["orderNumber"].endswith("-0001")
    assert order["status"] == "DRAFT"
    assert order["totalAmount"] == 850
    assert [i["totalPrice"] for i in order["items"]] == [800, 50]
    assert order["isOverdue"] is False


@pytest.mark.parametrize(
    "items, code",
    [
        ([], "order_items_required"),
        ([{"rawMaterialId": 1, "quantity": 0, "unitPrice": 3}], "order_item_invalid"),
        ([{"rawMaterialId": 1, "quantity": 2, "unitPrice": -1}], "order_item_invalid"),
    ],
)
def test_create_order_rejects_bad_items(client, admin_headers, supplier, materials, items, code):
    response = client.post(
        "/api/purchase-orders",
        json={"supplierId": supplier.id, "items": items},
        headers=admin_headers,
    )
    assert response.status_code == 400
    assert response.json()["code"] == code


def test_create_order_requires_active_supplier(client, db, admin_headers, supplier, materials):
    supplier.is_active = False
    db.commit()

    response = client.post(
        "/api/purchase-orders",
        json={"supplierId": supplier.id, "items": [{"rawMaterialId": materials[0].id, "quantity": 1, "unitPrice": 1}]},
        headers=admin_headers,
    )

    assert response.status_code == 400
    assert response.json()["code"] == "supplier_inactive"


def test_numbers_increase_within_the_month(client, admin_headers, order):
    second = client.post(f"/api/purchase-orders/{order['id']}/duplicate", headers=admin_headers)

    assert second.status_code == 201
    assert second.json()["orderNumber"].endswith("-0002")
    assert second.json()["status"] == "DRAFT"
    assert order["orderNumber"] in second.json()["notes"]
    preview = client.get("/api/purchase-orders/generate-number", headers=admin_headers).json()
    assert preview["orderNumber"].endswith("-0003")


def test_creator_cannot_approve_own_order(client, admin_headers, order):
    response = _approve(client, order, admin_headers)
    assert response.status_code == 403
    assert response.json()["code"] == "order_self_approval"


def test_full_lifecycle_updates_stock_and_supplier(client, db, admin_headers, approver_headers, order, supplier, materials):
    resin, pigment = materials
    submitted = client.post(f"/api/purchase-orders/{order['id']}/submit", headers=admin_headers)
    assert submitted.json()["status"] == "PENDING"

    approved = _approve(client, order, approver_headers)
    assert approved.status_code == 200
    assert approved.json()["order"]["status"] == "APPROVED"
    assert order["orderNumber"] in approved.json()["message"]
    assert "ملاحظات الاعتماد: ok" in approved.json()["order"]["notes"]

    pigment_item = next(i for i in approved.json()["order"]["items"] if i["rawMaterialId"] == pigment.id)
    executed = client.post(
        f"/api/purchase-orders/{order['id']}/execute",
        json={
            "actualDeliveryDate": datetime.now(timezone.utc).isoformat(),
            "receivedItems": [{"itemId": pigment_item["id"], "receivedQuantity": 8}],
        },
        headers=approver_headers,
    )
    assert executed.status_code == 200
    assert executed.json()["order"]["status"] == "EXECUTED"

    db.expire_all()
    resin_row = db.get(RawMaterial, resin.id)
    pigment_row = db.get(RawMaterial, pigment.id)
    assert resin_row.quantity == 150
    assert resin_row.unit_cost == pytest.approx(12.0)
    assert pigment_row.quantity == 8
    assert pigment_row.unit_cost == pytest.approx(5.0)
    movements = db.query(StockMovement).filter(StockMovement.reference == order["orderNumber"]).all()
    assert sorted(m.quantity for m in movements) == [8, 50]
    assert all(m.type == "IN" for m in movements)
    assert db.get(Supplier, supplier.id).total_purchases == 850

    again = client.post(
        f"/api/purchase-orders/{order['id']}/execute",
        json={"actualDeliveryDate": datetime.now(timezone.utc).isoformat()},
        headers=approver_headers,
    )
    assert again.status_code == 400
    assert again.json()["code"] == "order_invalid_state"


def test_execute_validations(client, admin_headers, approver_headers, order):
    _approve(client, order, approver_headers)
    url = f"/api/purchase-orders/{order['id']}/execute"

    no_date = client.post(url, json={}, headers=approver_headers)
    foreign = client.post(
        url,
        json={"actualDeliveryDate": "2026-01-01T00:00:00", "receivedItems": [{"itemId": 999, "receivedQuantity": 1}]},
        headers=approver_headers,
    )
    negative = client.post(
        url,
        json={
            "actualDeliveryDate": "2026-01-01T00:00:00",
            "receivedItems": [{"itemId": order["items"][0]["id"], "receivedQuantity": -1}],
        },
        headers=approver_headers,
    )

    assert no_date.json()["code"] == "order_delivery_date_required"
    assert foreign.json()["code"] == "order_item_not_in_order"
    assert negative.json()["code"] == "order_received_negative"


def test_reject_requires_reason_and_returns_to_draft(client, approver_headers, order):
    _approve(client, order, approver_headers)
    url = f"/api/purchase-orders/{order['id']}/reject"

    missing = client.post(url, json={"reason": "  "}, headers=approver_headers)
    rejected = client.post(url, json={"reason": "price too high"}, headers=approver_headers)

    assert missing.status_code == 400
    assert missing.json()["code"] == "order_reason_required"
    body = rejected.json()["order"]
    assert body["status"] == "DRAFT"
    assert body["approvedAt"] is None
    assert "سبب الرفض: price too high" in body["notes"]


@pytest.mark.parametrize("approve_first, restored_status", [(True, "APPROVED"), (False, "DRAFT")])
def test_cancel_and_restore(client, approver_headers, admin_headers, order, approve_first, restored_status):
    if approve_first:
        _approve(client, order, approver_headers)

    cancelled = client.post(
        f"/api/purchase-orders/{order['id']}/cancel",
        json={"reason": "supplier delay"},
        headers=admin_headers,
    )
    restored = client.post(f"/api/purchase-orders/{order['id']}/restore", headers=admin_headers)

    assert cancelled.json()["order"]["status"] == "CANCELLED"
    assert cancelled.json()["order"]["cancelReason"] == "supplier delay"
    assert restored.json()["order"]["status"] == restored_status
    assert restored.json()["order"]["cancelReason"] is None


def test_cancel_and_restore_notes_are_appended(client, admin_headers, order):
    cancelled = client.post(
        f"/api/purchase-orders/{order['id']}/cancel",
        json={"reason": "supplier delay", "notes": "reorder next month"},
        headers=admin_headers,
    )
    restored = client.post(
        f"/api/purchase-orders/{order['id']}/restore",
        json={"notes": "supplier confirmed"},
        headers=admin_headers,
    )

    assert cancelled.status_code == 200
    assert cancelled.json()["order"]["notes"].splitlines() == [
        "urgent",
        "سبب الإلغاء: supplier delay",
        "ملاحظات الإلغاء: reorder next month",
    ]
    assert restored.json()["order"]["notes"].splitlines()[-1] == "تم استعادة الأمر: supplier confirmed"


def test_update_only_while_editable(client, admin_headers, approver_headers, order, materials):
    resin = materials[0]
    updated = client.put(
        f"/api/purchase-orders/{order['id']}",
        json={"items": [{"rawMaterialId": resin.id, "quantity": 2, "unitPrice": 10}]},
        headers=admin_headers,
    )
    assert updated.status_code == 200
    assert updated.json()["totalAmount"] == 20
    assert len(updated.json()["items"]) == 1

    _approve(client, order, approver_headers)
    locked = client.put(f"/api/purchase-orders/{order['id']}", json={"notes": "late edit"}, headers=admin_headers)
    assert locked.status_code == 400


def test_delete_only_draft_or_cancelled(client, db, admin_headers, approver_headers, order):
    _approve(client, order, approver_headers)
    blocked = client.delete(f"/api/purchase-orders/{order['id']}", headers=admin_headers)
    assert blocked.status_code == 400

    client.post(f"/api/purchase-orders/{order['id']}/cancel", json={"reason": "no longer needed"}, headers=admin_headers)
    deleted = client.delete(f"/api/purchase-orders/{order['id']}", headers=admin_headers)
    assert deleted.status_code == 200
    db.expire_all()
    assert db.get(PurchaseOrder, order["id"]) is None


def test_clear_and_stats(client, db, admin_headers, order):
    client.post(f"/api/purchase-orders/{order['id']}/duplicate", headers=admin_headers)

    stats = client.get("/api/purchase-orders/stats", headers=admin_headers).json()
    assert stats["totalOrders"] == 2
    assert stats["byStatus"]["DRAFT"] == 2
    assert stats["totalAmount"] == 1700
    assert stats["executedAmount"] == 0

    cleared = client.delete("/api/purchase-orders/clear", headers=admin_headers)
    assert cleared.status_code == 200
    assert cleared.json()["count"] == 2
    db.expire_all()
    assert db.query(PurchaseOrder).count() == 0


def test_list_is_cached_and_invalidated(client, admin_headers, cache, order, supplier, materials):
    first = client.get("/api/purchase-orders", headers=admin_headers).json()
    assert first["pagination"]["total"] == 1
    assert any(key.startswith("purchase-orders:") for key in cache._local.keys())

    client.post(
        "/api/purchase-orders",
        json={
            "supplierId": supplier.id,
            "items": [{"rawMaterialId": materials[0].id, "quantity": 1, "unitPrice": 1}],
            "expectedDeliveryDate": (datetime.now(timezone.utc) - timedelta(days=3)).isoformat(),
        },
        headers=admin_headers,
    )

    second = client.get("/api/purchase-orders", headers=admin_headers).json()
    assert second["pagination"]["total"] == 2
    overdue = [o for o in second["orders"] if o["isOverdue"]]
    assert len(overdue) == 1
    assert overdue[0]["daysSinceCreated"] == 0

    approved = client.get("/api/purchase-orders", params={"status": "APPROVED"}, headers=admin_headers).json()
    assert approved["orders"] == []
    by_number = client.get("/api/purchase-orders", params={"search": order["orderNumber"]}, headers=admin_headers)
    assert [o["id"] for o in by_number.json()["orders"]] == [order["id"]]


def test_purchase_routes_require_purchases_permissions(client, db, order):
    reader_role = make_role(db, "PO Reader", [("purchases", "read")])
    reader = make_user(db, "poreader@example.com", roles=[reader_role])
    headers = auth_headers(reader)

    assert client.get("/api/purchase-orders", headers=headers).status_code == 200
    assert client.get(f"/api/purchase-orders/{order['id']}", headers=headers).status_code == 200
    assert client.post(f"/api/purchase-orders/{order['id']}/duplicate", headers=headers).status_code == 403
    assert client.post(f"/api/purchase-orders/{order['id']}/submit", headers=headers).status_code == 403
    assert client.delete("/api/purchase-orders/clear", headers=headers).status_code == 403
    db.expire_all()
    assert db.get(PurchaseOrder, order["id"]).status == PurchaseOrderStatus.DRAFT
