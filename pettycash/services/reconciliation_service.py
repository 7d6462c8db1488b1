"""
Reconciliation Service - "Moved to system" tracking

Records start ``in_queue`` and end ``moved``. Marking is idempotent and
never reverts. Authorization happens before these methods are called.
"""
from typing import Dict, List
from sqlalchemy.orm import Session
from sqlalchemy import func
import logging

from pettycash.core.exceptions import NotFoundError
from pettycash.models import (
    PettyCashTransaction, CustomerTransaction, Invoice, ReconciliationStatus
)
from pettycash.schemas import Caller, ReconcilableKindEnum
from pettycash.services.audit_service import AuditService, AuditAction

logger = logging.getLogger(__name__)

RECONCILABLE_MODELS = {
    ReconcilableKindEnum.PETTY_CASH: PettyCashTransaction,
    ReconcilableKindEnum.CUSTOMER: CustomerTransaction,
    ReconcilableKindEnum.INVOICE: Invoice,
}


class ReconciliationService:
    def __init__(self, db: Session):
        self.db = db
        self.audit = AuditService(db)

    def _get(self, kind: ReconcilableKindEnum, record_id: int):
        model = RECONCILABLE_MODELS[kind]
        record = self.db.query(model).filter(model.id == record_id).with_for_update().first()
        if not record:
            raise NotFoundError(f"{model.__name__} {record_id} not found")
        return record

    def mark_moved(self, kind: ReconcilableKindEnum, record_id: int, caller: Caller):
        """Move one record to ``moved``; already-moved records come back unchanged"""
        record = self._get(kind, record_id)

        if record.mark_moved(moved_by=caller.username):
            self.db.flush()
            self.audit.log(
                action=AuditAction.MARKED_MOVED,
                resource_type=type(record).__name__,
                resource_id=record.id,
                description=f"Marked {kind.value} {record.id} as moved to system",
                caller=caller
            )
        else:
            logger.debug(f"{kind.value} {record.id} already moved; nothing to do")

        return record

    def mark_many(self, kind: ReconcilableKindEnum, record_ids: List[int], caller: Caller) -> Dict:
        """Batch variant; unknown ids fail the whole batch"""
        marked, already_moved = [], []
        for record_id in sorted(set(record_ids)):
            record = self._get(kind, record_id)
            if record.is_moved_to_system:
                already_moved.append(record.id)
                continue
            self.mark_moved(kind, record_id, caller)
            marked.append(record.id)

        return {'kind': kind, 'marked': marked, 'already_moved': already_moved}

    def queue_summary(self) -> Dict:
        """Count of records per status, per kind"""
        summary = {}
        for kind, model in RECONCILABLE_MODELS.items():
            counts = {status.value: 0 for status in ReconciliationStatus}
            rows = self.db.query(
                model.reconciliation_status, func.count(model.id)
            ).group_by(model.reconciliation_status).all()
            for status, count in rows:
                counts[status] = count
            summary[kind.value.replace('-', '_')] = counts
        return summary
