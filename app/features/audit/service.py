"""
Audit logging helpers.
"""
from typing import Any, Dict, Optional
from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.features.audit.models import AuditLog
from app.utils import get_logger


log = get_logger(__name__)


async def create_audit_log(
    db: AsyncSession,
    user_id: Optional[str],
    action: str,
    resource_type: str,
    resource_id: Optional[str] = None,
    organization_id: Optional[str] = None,
    details: Optional[Dict[str, Any]] = None,
    request: Optional[Request] = None,
) -> AuditLog:
    """
    Create an audit log entry.

    Args:
        db: Database session
        user_id: User performing the action (None for anonymous actions)
        action: Action performed (e.g., "create", "accept", "replace_permissions")
        resource_type: Type of resource (e.g., "invitation", "user", "organization")
        resource_id: ID of the resource
        organization_id: Organization context
        details: Additional details; never include tokens or passwords
        request: Incoming request, used for client IP and user agent

    Returns:
        Created AuditLog object
    """
    audit_log = AuditLog(
        user_id=user_id,
        action=action,
        resource_type=resource_type,
        resource_id=resource_id,
        organization_id=organization_id,
        details=details,
        ip_address=request.client.host if request is not None and request.client else None,
        user_agent=request.headers.get("user-agent") if request is not None else None,
    )

    db.add(audit_log)
    await db.commit()
    await db.refresh(audit_log)

    log.info(f"Audit: user={user_id} action={action} resource={resource_type}:{resource_id} org={organization_id}")

    return audit_log
