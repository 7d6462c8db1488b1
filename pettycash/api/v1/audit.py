"""
Audit Log API Routes - Read-only history of ledger mutations
"""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import List, Optional

from pettycash.core.database import get_db
from pettycash.core.security import PermissionChecker, Permissions
from pettycash.schemas import AuditLogResponse
from pettycash.services.audit_service import AuditService

router = APIRouter(
    prefix="/audit-logs",
    tags=["Audit"],
    dependencies=[Depends(PermissionChecker([Permissions.AUDIT_VIEW]))]
)


@router.get("", response_model=List[AuditLogResponse])
async def list_audit_logs(
    user_id: Optional[int] = None,
    action: Optional[str] = None,
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db)
):
    return AuditService(db).get_recent(user_id=user_id, action=action, limit=limit, offset=offset)


@router.get("/{resource_type}/{resource_id}", response_model=List[AuditLogResponse])
async def resource_history(
    resource_type: str,
    resource_id: int,
    limit: int = Query(50, ge=1, le=500),
    db: Session = Depends(get_db)
):
    """History of one record, e.g. /audit-logs/PettyCashAccount/3"""
    return AuditService(db).get_by_resource(resource_type, resource_id, limit=limit)
