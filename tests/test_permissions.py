"""Permission catalog and action translation."""

import pytest

from factory_erp.permissions import (
    CLIENT_ACTIONS, MODULE_NAMES, catalog_payload, is_known_permission,
    matrix_to_pairs, pairs_to_matrix, to_persisted_action, translate_client_action,
)
from factory_erp.services.authorization_service import authorization_service


@pytest.mark.parametrize(
    "client_action, persisted",
    [
        ("view", "read"),
        ("edit", "update"),
        ("print", "export"),
        ("create", "create"),
        ("delete", "delete"),
        ("duplicate", None),
        ("approve", None),
    ],
)
def test_translation_table(client_action, persisted):
    assert translate_client_action(client_action) == persisted


@pytest.mark.parametrize("value", ["", "VIEW", "archive", "read", None, 42, ["view"]])
def test_translation_is_total_and_denies_unknown(value):
    assert translate_client_action(value) is None


def test_persisted_names_pass_through():
    assert to_persisted_action("read") == "read"
    assert to_persisted_action("export") == "export"
    assert to_persisted_action("view") == "read"
    assert to_persisted_action("approve") is None


def test_check_permission_translates_and_denies_by_default():
    granted = {"users": {"read", "update"}}
    assert authorization_service.check_permission(granted, "users", "view")
    assert authorization_service.check_permission(granted, "users", "read")
    assert authorization_service.check_permission(granted, "users", "edit")
    assert not authorization_service.check_permission(granted, "users", "delete")
    assert not authorization_service.check_permission(granted, "users", "approve")
    assert not authorization_service.check_permission(granted, "users", "duplicate")
    assert not authorization_service.check_permission(granted, "roles", "view")
    assert not authorization_service.check_permission({}, "users", "view")


def test_known_permissions():
    assert is_known_permission("purchases", "update")
    assert not is_known_permission("purchases", "approve")
    assert not is_known_permission("chat", "read")


def test_catalog_payload_shape():
    payload = catalog_payload()
    assert [m["name"] for m in payload["modules"]] == list(MODULE_NAMES)
    assert set(payload["actions"]) == set(CLIENT_ACTIONS)
    assert set(payload["persistedActions"]) == {"create", "read", "update", "delete", "export"}
    users = next(p for p in payload["permissions"] if p["module"] == "users")
    assert users["displayNameEn"] == "Users"
    assert len(users["actions"]) == len(CLIENT_ACTIONS)


def test_matrix_drops_untranslatable_actions():
    entries = [
        {"module": "purchases", "actions": {"view": True, "approve": True, "duplicate": True, "edit": False}},
        {"module": "purchases", "actions": {"view": True, "print": True}},
    ]
    assert matrix_to_pairs(entries) == [("purchases", "read"), ("purchases", "export")]


def test_pairs_render_every_module():
    matrix = pairs_to_matrix({("suppliers", "read"), ("suppliers", "delete")})
    assert len(matrix) == len(MODULE_NAMES)
    suppliers = next(m for m in matrix if m["module"] == "suppliers")
    assert suppliers["actions"] == {
        "view": True, "create": False, "edit": False, "delete": True,
        "duplicate": False, "approve": False, "print": False,
    }
