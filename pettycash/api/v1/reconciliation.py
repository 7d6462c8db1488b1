"""
Reconciliation API Routes - "Moved to system" flag
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from pettycash.core.database import get_db
from pettycash.core.security import get_current_caller, PermissionChecker, Permissions
from pettycash.schemas import (
    Caller, ReconcilableKindEnum,
    PettyCashTransactionResponse, CustomerTransactionResponse, InvoiceResponse,
    MarkMovedBatchRequest, MarkMovedBatchResponse, ReconciliationSummaryResponse
)
from pettycash.services.reconciliation_service import ReconciliationService

router = APIRouter(prefix="/reconciliation", tags=["Reconciliation"])

RESPONSE_SCHEMAS = {
    ReconcilableKindEnum.PETTY_CASH: PettyCashTransactionResponse,
    ReconcilableKindEnum.CUSTOMER: CustomerTransactionResponse,
    ReconcilableKindEnum.INVOICE: InvoiceResponse,
}


@router.get("/summary", response_model=ReconciliationSummaryResponse,
            dependencies=[Depends(PermissionChecker([Permissions.MARK_MOVED_TO_SYSTEM]))])
async def reconciliation_summary(db: Session = Depends(get_db)):
    """How many records are still queued for the external system"""
    return ReconciliationService(db).queue_summary()


@router.post("/{kind}/mark-moved", response_model=MarkMovedBatchResponse,
             dependencies=[Depends(PermissionChecker([Permissions.MARK_MOVED_TO_SYSTEM]))])
async def mark_many_moved(
    kind: ReconcilableKindEnum,
    request: MarkMovedBatchRequest,
    db: Session = Depends(get_db),
    caller: Caller = Depends(get_current_caller)
):
    result = ReconciliationService(db).mark_many(kind, request.ids, caller)
    db.commit()
    return result


@router.post("/{kind}/{record_id}/mark-moved",
             dependencies=[Depends(PermissionChecker([Permissions.MARK_MOVED_TO_SYSTEM]))])
async def mark_moved(
    kind: ReconcilableKindEnum,
    record_id: int,
    db: Session = Depends(get_db),
    caller: Caller = Depends(get_current_caller)
):
    """Mark one record as moved to system; repeating it is harmless"""
    record = ReconciliationService(db).mark_moved(kind, record_id, caller)
    db.commit()
    db.refresh(record)
    return RESPONSE_SCHEMAS[kind].model_validate(record)
