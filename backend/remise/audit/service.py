import secrets
from datetime import datetime
from typing import Any

from fastapi import Request
from sqlalchemy import select
from sqlalchemy.orm import Session

from remise.audit.models import AuditLog
from remise.core.config import settings


def client_info(request: Request | None) -> tuple[str, str]:
    if request is None:
        return "unknown", "unknown"
    ip_address = request.client.host if request.client else "unknown"
    # forwarding headers are client-controlled unless a proxy in front rewrites them
    if settings.TRUST_PROXY_HEADERS:
        forwarded_for = request.headers.get("x-forwarded-for")
        if forwarded_for:
            ip_address = forwarded_for.split(",")[0].strip()
        else:
            ip_address = request.headers.get("x-real-ip") or ip_address
    return ip_address or "unknown", request.headers.get("user-agent") or "unknown"


def write_audit_log(
    db: Session,
    *,
    action: str,
    user_id: str | None = None,
    username: str | None = None,
    resource: str | None = None,
    resource_type: str | None = None,
    details: dict[str, Any] | None = None,
    success: bool = True,
    severity: str = "info",
    request: Request | None = None,
) -> AuditLog:
    ip_address, user_agent = client_info(request)
    row = AuditLog(
        id=f"al_{secrets.token_hex(12)}",
        timestamp=datetime.utcnow(),
        user_id=user_id,
        username=username,
        action=action,
        resource=resource,
        resource_type=resource_type,
        details=details,
        ip_address=ip_address,
        user_agent=user_agent[:512],
        success=success,
        severity=severity,
    )
    db.add(row)
    db.commit()
    return row


def log_auth_attempt(
    db: Session,
    *,
    username: str,
    success: bool,
    user_id: str | None = None,
    reason: str | None = None,
    request: Request | None = None,
) -> AuditLog:
    return write_audit_log(
        db,
        action="login" if success else "login_failed",
        user_id=user_id,
        username=username,
        details={"reason": reason} if reason else None,
        success=success,
        severity="info" if success else "warning",
        request=request,
    )


def log_evidence_access(
    db: Session,
    *,
    user_id: str,
    username: str,
    action: str,
    evidence_id: int | None = None,
    item_id: int | None = None,
    details: dict[str, Any] | None = None,
    request: Request | None = None,
) -> AuditLog:
    if evidence_id is not None:
        resource = f"evidence:{evidence_id}"
    elif item_id is not None:
        resource = f"item:{item_id}"
    else:
        resource = None
    return write_audit_log(
        db,
        action=action,
        user_id=user_id,
        username=username,
        resource=resource,
        resource_type="evidence",
        details={"evidence_id": evidence_id, "item_id": item_id, **(details or {})},
        severity="warning" if action == "evidence_deleted" else "info",
        request=request,
    )


def log_admin_action(
    db: Session,
    *,
    user_id: str,
    username: str,
    action: str,
    resource: str | None = None,
    resource_type: str = "user",
    details: dict[str, Any] | None = None,
    request: Request | None = None,
) -> AuditLog:
    return write_audit_log(
        db,
        action=action,
        user_id=user_id,
        username=username,
        resource=resource,
        resource_type=resource_type,
        details=details,
        severity="warning",
        request=request,
    )


def query_audit_logs(
    db: Session,
    *,
    user_id: str | None = None,
    action: str | None = None,
    resource_type: str | None = None,
    success: bool | None = None,
    start: datetime | None = None,
    end: datetime | None = None,
    limit: int = 100,
    offset: int = 0,
) -> list[AuditLog]:
    stmt = select(AuditLog)
    if user_id:
        stmt = stmt.where(AuditLog.user_id == user_id)
    if action:
        stmt = stmt.where(AuditLog.action == action)
    if resource_type:
        stmt = stmt.where(AuditLog.resource_type == resource_type)
    if success is not None:
        stmt = stmt.where(AuditLog.success == success)
    if start:
        stmt = stmt.where(AuditLog.timestamp >= start)
    if end:
        stmt = stmt.where(AuditLog.timestamp <= end)
    return list(
        db.execute(stmt.order_by(AuditLog.timestamp.desc()).limit(limit).offset(offset)).scalars().all()
    )
