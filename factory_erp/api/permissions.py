"""Permission catalog and the caller's effective permissions."""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from factory_erp.api.deps import actor_id
from factory_erp.core.security import require_session
from factory_erp.db.session import get_db
from factory_erp.permissions import catalog_payload
from factory_erp.services.auth_service import auth_service
from factory_erp.services.authorization_service import authorization_service

router = APIRouter(tags=["permissions"])


@router.get("/permissions")
async def list_permissions(claims: dict = Depends(require_session)):
    """Static module/action catalog used to build the role editor."""
    return catalog_payload()


@router.get("/user/permissions")
async def my_permissions(
    claims: dict = Depends(require_session),
    db: Session = Depends(get_db),
):
    user = auth_service.get_user(db, actor_id(claims))
    return authorization_service.user_permissions_payload(db, user)
