"""Audit service: append-only audit trail for logins and mutations."""

import json
from typing import Optional, Any
from sqlalchemy.orm import Session
from fastapi import Request

from factory_erp.models.audit_log import AuditLog


class AuditService:
    """Records immutable audit log entries."""

    @staticmethod
    def log(
        db: Session,
        actor_id: Optional[int],
        actor_email: Optional[str],
        action: str,
        resource_type: str,
        resource_id: Optional[Any] = None,
        old_value: Optional[Any] = None,
        new_value: Optional[Any] = None,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> AuditLog:
        """Write a single audit log record.

        Args:
            action: e.g. "user.login", "role.updated", "purchase_order.approved"
            resource_type: user, role, supplier, raw_material, purchase_order

        Commits immediately; callers log after their own mutation committed.
        """
        entry = AuditLog(
            actor_id=actor_id,
            actor_email=actor_email,
            action=action,
            resource_type=resource_type,
            resource_id=str(resource_id) if resource_id is not None else None,
            old_value_json=json.dumps(old_value, default=str, ensure_ascii=False) if old_value else None,
            new_value_json=json.dumps(new_value, default=str, ensure_ascii=False) if new_value else None,
            ip_address=ip_address,
            user_agent=user_agent,
        )
        db.add(entry)
        db.commit()
        return entry

    @staticmethod
    def log_from_request(
        db: Session,
        request: Request,
        actor: Optional[dict],
        action: str,
        resource_type: str,
        resource_id: Optional[Any] = None,
        old_value: Optional[Any] = None,
        new_value: Optional[Any] = None,
    ) -> AuditLog:
        """Write audit log extracting actor, IP and user-agent from the request."""
        ip = request.client.host if request.client else None
        ua = request.headers.get("user-agent", "")[:500]
        actor = actor or {}
        return AuditService.log(
            db=db,
            actor_id=actor.get("userId"),
            actor_email=actor.get("email"),
            action=action,
            resource_type=resource_type,
            resource_id=resource_id,
            old_value=old_value,
            new_value=new_value,
            ip_address=ip,
            user_agent=ua,
        )


audit_service = AuditService()
