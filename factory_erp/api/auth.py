"""Auth API router: login, logout, session, verify."""

from fastapi import APIRouter, Depends, Request, Response
from sqlalchemy.orm import Session

from factory_erp.api.deps import actor_id, get_language
from factory_erp.core.config import settings
from factory_erp.core.messages import translate
from factory_erp.core.rate_limiter import limiter
from factory_erp.core.security import require_session, session_cookie_options
from factory_erp.db.session import get_db
from factory_erp.schemas.schemas import LoginRequest
from factory_erp.services.audit_service import audit_service
from factory_erp.services.auth_service import auth_service

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/login")
@limiter.limit(settings.LOGIN_RATE_LIMIT)
async def login(
    request: Request,
    response: Response,
    body: LoginRequest,
    db: Session = Depends(get_db),
    language: str = Depends(get_language),
):
    """Verify credentials and set the session cookie."""
    result = auth_service.authenticate(db, body.email, body.password)
    response.set_cookie(value=result["token"], **session_cookie_options())
    user = result["user"]
    audit_service.log_from_request(
        db, request,
        actor={"userId": user["id"], "email": user["email"]},
        action="user.login",
        resource_type="user",
        resource_id=user["id"],
    )
    return {
        "success": True,
        "message": translate("login_success", language),
        "user": user,
    }


@router.post("/logout")
async def logout(response: Response, language: str = Depends(get_language)):
    """Clear the session cookie."""
    response.delete_cookie(settings.SESSION_COOKIE_NAME, path="/")
    return {"success": True, "message": translate("logout_success", language)}


@router.get("/session")
async def session(
    claims: dict = Depends(require_session),
    db: Session = Depends(get_db),
):
    """Current session user, re-read from the database."""
    return {"user": auth_service.get_session_user(db, actor_id(claims))}


@router.get("/verify")
async def verify(claims: dict = Depends(require_session)):
    return {"valid": True, **claims}
