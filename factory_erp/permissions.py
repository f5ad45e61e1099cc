"""Static permission catalog and the client action vocabulary.

The persisted vocabulary (``create, read, update, delete, export``) is the
only one stored in the database. The client screens speak a second
vocabulary (``view, edit, print`` …); ``translate_client_action`` maps it
onto the persisted one and is the only place the two meet.
"""

from typing import Dict, List, Optional, Tuple

SYSTEM_MODULES: List[Dict[str, str]] = [
    {"name": "dashboard", "display_name": "الداش بورد", "display_name_en": "Dashboard",
     "description": "لوحة التحكم الرئيسية والإحصائيات", "category": "الرئيسية"},
    {"name": "users", "display_name": "إدارة المستخدمين", "display_name_en": "Users",
     "description": "إدارة حسابات المستخدمين والموظفين", "category": "إدارة النظام"},
    {"name": "roles", "display_name": "إدارة الأدوار", "display_name_en": "Roles",
     "description": "إدارة أدوار المستخدمين والصلاحيات", "category": "إدارة النظام"},
    {"name": "products", "display_name": "إدارة المنتجات", "display_name_en": "Products",
     "description": "إدارة كتالوج المنتجات والخدمات", "category": "المخزون"},
    {"name": "inventory", "display_name": "إدارة المخزون", "display_name_en": "Inventory",
     "description": "تتبع المخزون والخامات والكميات", "category": "المخزون"},
    {"name": "sales", "display_name": "إدارة المبيعات", "display_name_en": "Sales",
     "description": "إدارة عمليات البيع والفواتير", "category": "المبيعات"},
    {"name": "purchases", "display_name": "إدارة المشتريات", "display_name_en": "Purchases",
     "description": "إدارة أوامر الشراء", "category": "المشتريات"},
    {"name": "customers", "display_name": "إدارة العملاء", "display_name_en": "Customers",
     "description": "إدارة بيانات العملاء والعلاقات", "category": "العلاقات"},
    {"name": "suppliers", "display_name": "إدارة الموردين", "display_name_en": "Suppliers",
     "description": "إدارة بيانات الموردين والعلاقات", "category": "العلاقات"},
    {"name": "accounting", "display_name": "المحاسبة", "display_name_en": "Accounting",
     "description": "إدارة الحسابات والقيود المحاسبية", "category": "المالية"},
    {"name": "reports", "display_name": "التقارير", "display_name_en": "Reports",
     "description": "إنشاء وعرض التقارير المختلفة", "category": "التقارير"},
    {"name": "settings", "display_name": "إعدادات النظام", "display_name_en": "Settings",
     "description": "إعدادات عامة للنظام", "category": "إدارة النظام"},
]

MODULE_NAMES = tuple(m["name"] for m in SYSTEM_MODULES)

# Persisted vocabulary
PERSISTED_ACTIONS = ("create", "read", "update", "delete", "export")

PERSISTED_ACTION_LABELS = {
    "create": {"ar": "إضافة", "en": "Create"},
    "read": {"ar": "عرض", "en": "Read"},
    "update": {"ar": "تعديل", "en": "Update"},
    "delete": {"ar": "مسح", "en": "Delete"},
    "export": {"ar": "تصدير", "en": "Export"},
}

# Client-facing vocabulary
CLIENT_ACTIONS = ("view", "create", "edit", "delete", "duplicate", "approve", "print")

ACTION_LABELS = {
    "view": "عرض",
    "create": "إضافة",
    "edit": "تعديل",
    "delete": "مسح",
    "duplicate": "نسخ",
    "approve": "إعتماد",
    "print": "طباعة",
}

# duplicate/approve have no stored counterpart: they never grant anything.
CLIENT_TO_PERSISTED = {
    "view": "read",
    "edit": "update",
    "print": "export",
    "create": "create",
    "delete": "delete",
    "duplicate": None,
    "approve": None,
}

PERSISTED_TO_CLIENT = {
    persisted: client
    for client, persisted in CLIENT_TO_PERSISTED.items()
    if persisted is not None
}


def translate_client_action(action) -> Optional[str]:
    """Map a client action name to the persisted vocabulary.

    Total over any input: unknown or untranslatable names return ``None``.
    """
    if not isinstance(action, str):
        return None
    return CLIENT_TO_PERSISTED.get(action)


def to_persisted_action(action) -> Optional[str]:
    """Accept either vocabulary and return the persisted action, or ``None``."""
    if isinstance(action, str) and action in PERSISTED_ACTIONS:
        return action
    return translate_client_action(action)


def permission_name(module: str, action: str) -> str:
    return f"{module}.{action}"


def permission_label(module: str, action: str, language: str = "ar") -> str:
    module_info = next((m for m in SYSTEM_MODULES if m["name"] == module), None)
    module_label = module
    if module_info:
        module_label = module_info["display_name_en"] if language == "en" else module_info["display_name"]
    action_label = PERSISTED_ACTION_LABELS.get(action, {}).get(language, action)
    return f"{action_label} {module_label}"


def all_permission_pairs() -> List[Tuple[str, str]]:
    """Every (module, action) pair the system recognizes."""
    return [(module, action) for module in MODULE_NAMES for action in PERSISTED_ACTIONS]


def is_known_permission(module: str, action: str) -> bool:
    return module in MODULE_NAMES and action in PERSISTED_ACTIONS


def catalog_payload() -> Dict:
    """Shape returned by ``GET /api/permissions``."""
    permissions = [
        {
            "module": module["name"],
            "displayName": module["display_name"],
            "displayNameEn": module["display_name_en"],
            "description": module["description"],
            "actions": [
                {"action": action, "label": label, "available": True}
                for action, label in ACTION_LABELS.items()
            ],
        }
        for module in SYSTEM_MODULES
    ]
    return {
        "modules": SYSTEM_MODULES,
        "actions": ACTION_LABELS,
        "persistedActions": PERSISTED_ACTION_LABELS,
        "permissions": permissions,
    }


def empty_action_matrix() -> Dict[str, bool]:
    return {action: False for action in CLIENT_ACTIONS}


def pairs_to_matrix(pairs) -> List[Dict]:
    """Render persisted (module, action) pairs as the client per-module matrix."""
    matrix = {module: empty_action_matrix() for module in MODULE_NAMES}
    for module, action in pairs:
        client_action = PERSISTED_TO_CLIENT.get(action)
        if module in matrix and client_action:
            matrix[module][client_action] = True
    return [{"module": module, "actions": matrix[module]} for module in MODULE_NAMES]


def matrix_to_pairs(entries) -> List[Tuple[str, str]]:
    """Translate client matrix entries into persisted (module, action) pairs.

    Enabled actions with no persisted counterpart are dropped.
    """
    pairs = []
    seen = set()
    for entry in entries or []:
        module = entry.get("module")
        for action, enabled in (entry.get("actions") or {}).items():
            if not enabled:
                continue
            persisted = to_persisted_action(action)
            if persisted is None:
                continue
            pair = (module, persisted)
            if pair not in seen:
                seen.add(pair)
                pairs.append(pair)
    return pairs
