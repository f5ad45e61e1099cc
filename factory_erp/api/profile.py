"""Profile API router: the caller's own account."""

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from factory_erp.api.deps import actor_id, get_language
from factory_erp.core.messages import translate
from factory_erp.core.security import require_session
from factory_erp.db.session import get_db
from factory_erp.schemas.schemas import ProfileOut, ProfileUpdateRequest
from factory_erp.services.audit_service import audit_service
from factory_erp.services.auth_service import auth_service

router = APIRouter(prefix="/profile", tags=["profile"])


@router.get("", response_model=ProfileOut)
async def get_profile(
    claims: dict = Depends(require_session),
    db: Session = Depends(get_db),
):
    return auth_service.get_user(db, actor_id(claims))


@router.put("")
async def update_profile(
    body: ProfileUpdateRequest,
    request: Request,
    claims: dict = Depends(require_session),
    db: Session = Depends(get_db),
    language: str = Depends(get_language),
):
    """Update name/phone; a password change needs the current password."""
    user = auth_service.update_profile(
        db,
        actor_id(claims),
        name=body.name,
        phone=body.phone,
        current_password=body.current_password,
        new_password=body.new_password,
    )
    audit_service.log_from_request(
        db, request, claims,
        action="profile.updated",
        resource_type="user",
        resource_id=user.id,
        new_value={"name": user.name, "phone": user.phone, "passwordChanged": bool(body.new_password)},
    )
    return {
        "message": translate("profile_updated", language),
        "user": ProfileOut.model_validate(user),
    }
