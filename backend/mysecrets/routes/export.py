# mysecrets/routes/export.py
from __future__ import annotations

from datetime import datetime, timezone

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from mysecrets.core.database import get_db
from mysecrets.dependencies.auth import get_current_user
from mysecrets.dependencies.services import get_audit_sink, get_client_ip
from mysecrets.models.user import User
from mysecrets.schemas.export import ExportOut
from mysecrets.services.audit import AuditSink
from mysecrets.services.secrets import export_rows

router = APIRouter(prefix="/export", tags=["export"], dependencies=[Depends(get_current_user)])


@router.get("/secrets", response_model=ExportOut)
def export_secrets(
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    audit: AuditSink = Depends(get_audit_sink),
    ip: str | None = Depends(get_client_ip),
):
    rows = export_rows(db, user.id)
    audit.record_export(user_id=user.id, secret_count=len(rows), ip_address=ip)
    return {
        "exported_at": datetime.now(timezone.utc),
        "count": len(rows),
        "rows": rows,
    }
