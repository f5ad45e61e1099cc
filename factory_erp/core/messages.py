"""Bilingual (Arabic/English) user-facing messages.

Every error and success payload is built from a message key so that
handlers never put raw exception text, ids or stack traces in front of
the caller. Arabic is the primary language.
"""

from typing import Optional

from factory_erp.core.config import settings

SUPPORTED_LANGUAGES = ("ar", "en")

MESSAGES = {
    # Generic
    "internal_error": {
        "ar": "حدث خطأ في الخادم",
        "en": "An internal server error occurred",
    },
    "validation_failed": {
        "ar": "البيانات المدخلة غير صالحة",
        "en": "The submitted data is invalid",
    },
    # Auth
    "invalid_credentials": {
        "ar": "البريد الإلكتروني أو كلمة المرور غير صحيحة",
        "en": "Invalid email or password",
    },
    "not_authenticated": {
        "ar": "غير مصرح لك بالوصول",
        "en": "Not authenticated",
    },
    "session_expired": {
        "ar": "انتهت صلاحية الجلسة، يرجى تسجيل الدخول مجددا",
        "en": "Your session is invalid or has expired",
    },
    "permission_denied": {
        "ar": "ليس لديك صلاحية لتنفيذ هذا الإجراء",
        "en": "You do not have permission to perform this action",
    },
    "login_success": {
        "ar": "تم تسجيل الدخول بنجاح",
        "en": "Signed in successfully",
    },
    "logout_success": {
        "ar": "تم تسجيل الخروج بنجاح",
        "en": "Signed out successfully",
    },
    "current_password_invalid": {
        "ar": "كلمة المرور الحالية غير صحيحة",
        "en": "The current password is incorrect",
    },
    "password_too_short": {
        "ar": "كلمة المرور يجب أن تكون 6 أحرف على الأقل",
        "en": "Password must be at least 6 characters",
    },
    "profile_updated": {
        "ar": "تم تحديث الملف الشخصي بنجاح",
        "en": "Profile updated successfully",
    },
    # Users
    "user_not_found": {
        "ar": "المستخدم غير موجود",
        "en": "User not found",
    },
    "email_exists": {
        "ar": "البريد الإلكتروني مستخدم بالفعل",
        "en": "Email is already in use",
    },
    "user_fields_required": {
        "ar": "الاسم والبريد الإلكتروني وكلمة المرور مطلوبة",
        "en": "Name, email and password are required",
    },
    "cannot_delete_self": {
        "ar": "لا يمكنك حذف حسابك الخاص",
        "en": "You cannot delete your own account",
    },
    "user_deactivated": {
        "ar": "تم تعطيل المستخدم بنجاح",
        "en": "User deactivated successfully",
    },
    "password_reset": {
        "ar": "تم إعادة تعيين كلمة المرور بنجاح",
        "en": "Password reset successfully",
    },
    "assignment_not_found": {
        "ar": "الدور غير مسند لهذا المستخدم",
        "en": "The role is not assigned to this user",
    },
    # Roles
    "role_not_found": {
        "ar": "الدور غير موجود",
        "en": "Role not found",
    },
    "role_name_exists": {
        "ar": "يوجد دور بنفس الاسم بالفعل",
        "en": "A role with this name already exists",
    },
    "role_name_invalid": {
        "ar": "اسم الدور مطلوب ويجب أن يكون على الأقل حرفين",
        "en": "Role name is required and must be at least 2 characters",
    },
    "role_in_use": {
        "ar": "لا يمكن حذف الدور لوجود مستخدمين نشطين مرتبطين به",
        "en": "The role cannot be deleted while active users hold it",
    },
    "unknown_permission": {
        "ar": "الصلاحية {module}.{action} غير معرفة",
        "en": "Permission {module}.{action} is not defined",
    },
    "role_updated": {
        "ar": "تم تحديث الدور بنجاح",
        "en": "Role updated successfully",
    },
    "role_deleted": {
        "ar": "تم حذف الدور بنجاح",
        "en": "Role deleted successfully",
    },
    # Suppliers
    "supplier_not_found": {
        "ar": "المورد غير موجود",
        "en": "Supplier not found",
    },
    "supplier_inactive": {
        "ar": "المورد غير نشط",
        "en": "Supplier is inactive",
    },
    "supplier_name_required": {
        "ar": "اسم المورد مطلوب",
        "en": "Supplier name is required",
    },
    "supplier_has_orders": {
        "ar": "لا يمكن حذف المورد لوجود أوامر شراء مرتبطة به",
        "en": "The supplier cannot be deleted while purchase orders reference it",
    },
    "supplier_deleted": {
        "ar": "تم حذف المورد بنجاح",
        "en": "Supplier deleted successfully",
    },
    # Raw materials
    "raw_material_not_found": {
        "ar": "بعض الخامات غير موجودة",
        "en": "One or more raw materials were not found",
    },
    "raw_material_in_use": {
        "ar": "لا يمكن حذف الخام لارتباطه بأوامر شراء",
        "en": "The raw material cannot be deleted while purchase orders reference it",
    },
    "raw_material_deleted": {
        "ar": "تم حذف الخام بنجاح",
        "en": "Raw material deleted successfully",
    },
    "stock_fields_required": {
        "ar": "الحقول المطلوبة: النوع، الكمية، السبب",
        "en": "Type, quantity and reason are required",
    },
    "stock_type_invalid": {
        "ar": "نوع الحركة يجب أن يكون IN أو OUT",
        "en": "Movement type must be IN or OUT",
    },
    "stock_quantity_invalid": {
        "ar": "الكمية يجب أن تكون رقم موجب",
        "en": "Quantity must be a positive number",
    },
    "stock_insufficient": {
        "ar": "الكمية المتاحة غير كافية. الكمية الحالية: {available}",
        "en": "Insufficient stock. Current quantity: {available}",
    },
    "stock_added": {
        "ar": "تم إضافة {quantity} {unit} إلى مخزون {name}",
        "en": "Added {quantity} {unit} to {name} stock",
    },
    "stock_removed": {
        "ar": "تم خصم {quantity} {unit} من مخزون {name}",
        "en": "Removed {quantity} {unit} from {name} stock",
    },
    # Purchase orders
    "order_not_found": {
        "ar": "أمر الشراء غير موجود",
        "en": "Purchase order not found",
    },
    "order_items_required": {
        "ar": "الحقول المطلوبة: المورد، عناصر الطلب",
        "en": "Supplier and at least one item are required",
    },
    "order_item_invalid": {
        "ar": "الكمية وسعر الوحدة يجب أن يكونا أكبر من صفر",
        "en": "Quantity and unit price must be greater than zero",
    },
    "order_invalid_state": {
        "ar": "لا يمكن تنفيذ هذا الإجراء على أمر الشراء في حالته الحالية",
        "en": "This action is not allowed in the purchase order's current status",
    },
    "order_self_approval": {
        "ar": "لا يمكنك اعتماد أمر الشراء الذي أنشأته بنفسك",
        "en": "You cannot approve a purchase order you created",
    },
    "order_reason_required": {
        "ar": "يجب تقديم السبب",
        "en": "A reason is required",
    },
    "order_delivery_date_required": {
        "ar": "تاريخ الاستلام الفعلي مطلوب",
        "en": "The actual delivery date is required",
    },
    "order_item_not_in_order": {
        "ar": "عنصر غير موجود في أمر الشراء",
        "en": "The item does not belong to this purchase order",
    },
    "order_received_negative": {
        "ar": "الكمية المستلمة يجب أن تكون أكبر من أو تساوي صفر",
        "en": "Received quantity must be zero or greater",
    },
    "order_number_unavailable": {
        "ar": "تعذر توليد رقم أمر الشراء، يرجى المحاولة مرة أخرى",
        "en": "Could not allocate a purchase order number, please retry",
    },
    "order_number_generated": {
        "ar": "تم توليد رقم أمر الشراء بنجاح",
        "en": "Purchase order number generated",
    },
    "order_approved": {
        "ar": "تم اعتماد أمر الشراء {order_number} بنجاح",
        "en": "Purchase order {order_number} approved",
    },
    "order_rejected": {
        "ar": "تم رفض أمر الشراء {order_number}",
        "en": "Purchase order {order_number} rejected",
    },
    "order_executed": {
        "ar": "تم تنفيذ أمر الشراء {order_number} بنجاح",
        "en": "Purchase order {order_number} executed",
    },
    "order_cancelled": {
        "ar": "تم إلغاء أمر الشراء {order_number} بنجاح",
        "en": "Purchase order {order_number} cancelled",
    },
    "order_restored": {
        "ar": "تم استعادة أمر الشراء {order_number} بنجاح",
        "en": "Purchase order {order_number} restored",
    },
    "order_deleted": {
        "ar": "تم حذف أمر الشراء بنجاح",
        "en": "Purchase order deleted",
    },
    "orders_cleared": {
        "ar": "تم حذف {count} من أوامر الشراء",
        "en": "{count} purchase orders deleted",
    },
}


def resolve_language(accept_language: Optional[str]) -> str:
    """Pick ``en`` or ``ar`` from an Accept-Language header value."""
    if accept_language:
        primary = accept_language.split(",")[0].strip().lower()
        for lang in SUPPORTED_LANGUAGES:
            if primary.startswith(lang):
                return lang
    return settings.DEFAULT_LANGUAGE


def translate(key: str, language: Optional[str] = None, **params) -> str:
    """Return the localized text for ``key``; unknown keys fall back to the generic error."""
    entry = MESSAGES.get(key) or MESSAGES["internal_error"]
    text = entry.get(language or settings.DEFAULT_LANGUAGE) or entry["ar"]
    if params:
        try:
            return text.format(**params)
        except (KeyError, IndexError):
            return text
    return text
