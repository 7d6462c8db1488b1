"""
Audit Logging Service
Records who moved which money, in the same session as the mutation
"""
from sqlalchemy.orm import Session
from sqlalchemy import desc
from typing import Optional, List, Dict
import json
import logging

from pettycash.models import AuditLog
from pettycash.schemas import Caller

logger = logging.getLogger(__name__)


class AuditAction:
    """Constants for audit actions"""
    # Petty cash accounts
    ACCOUNT_CREATED = "ACCOUNT_CREATED"
    ACCOUNT_UPDATED = "ACCOUNT_UPDATED"
    ACCOUNT_RETIRED = "ACCOUNT_RETIRED"

    # Ledger movements
    CREDIT_RECORDED = "CREDIT_RECORDED"
    DEBIT_RECORDED = "DEBIT_RECORDED"
    TRANSFER_COMPLETED = "TRANSFER_COMPLETED"
    TRANSACTION_UPDATED = "TRANSACTION_UPDATED"

    # Reconciliation
    MARKED_MOVED = "MARKED_MOVED"

    # Customer ledger
    CUSTOMER_CREATED = "CUSTOMER_CREATED"
    CUSTOMER_TRANSACTION_RECORDED = "CUSTOMER_TRANSACTION_RECORDED"
    CUSTOMER_TRANSACTION_UPDATED = "CUSTOMER_TRANSACTION_UPDATED"
    INVOICE_RECORDED = "INVOICE_RECORDED"
    INVOICE_UPDATED = "INVOICE_UPDATED"


class AuditService:
    """Service for recording and retrieving audit logs"""

    def __init__(self, db: Session):
        self.db = db

    def log(
        self,
        action: str,
        resource_type: str,
        resource_id: Optional[int] = None,
        description: Optional[str] = None,
        old_values: Optional[Dict] = None,
        new_values: Optional[Dict] = None,
        caller: Optional[Caller] = None,
        ip_address: Optional[str] = None,
        status: str = "success",
        error_message: Optional[str] = None
    ) -> AuditLog:
        """
        Create an audit log entry.

        Args:
            action: The action being performed (use AuditAction constants)
            resource_type: Type of resource being affected (e.g., 'PettyCashAccount')
            resource_id: ID of the affected resource
            description: Human-readable description of the action
            old_values: Dictionary of values before the change (for updates)
            new_values: Dictionary of values after the change
            caller: Identity that issued the intent
            ip_address: Client IP address
            status: 'success' or 'failure'
            error_message: Error message if status is not success

        Returns:
            The created AuditLog instance
        """
        old_values_json = json.dumps(old_values, default=str) if old_values else None
        new_values_json = json.dumps(new_values, default=str) if new_values else None

        audit_log = AuditLog(
            action=action,
            resource_type=resource_type,
            resource_id=resource_id,
            description=description,
            old_values=old_values_json,
            new_values=new_values_json,
            user_id=caller.user_id if caller else None,
            username=caller.username if caller else None,
            ip_address=ip_address,
            status=status,
            error_message=error_message
        )

        self.db.add(audit_log)
        self.db.flush()  # Flush to get the ID without committing

        logger.info(
            f"Audit: {action} {resource_type}(id={resource_id}) "
            f"by user={caller.username if caller else None} status={status}"
        )

        return audit_log

    def get_by_resource(
        self,
        resource_type: str,
        resource_id: int,
        limit: int = 50
    ) -> List[AuditLog]:
        """Get audit history for a specific resource"""
        return self.db.query(AuditLog).filter(
            AuditLog.resource_type == resource_type,
            AuditLog.resource_id == resource_id
        ).order_by(desc(AuditLog.timestamp), desc(AuditLog.id)).limit(limit).all()

    def get_recent(
        self,
        user_id: Optional[int] = None,
        action: Optional[str] = None,
        limit: int = 100,
        offset: int = 0
    ) -> List[AuditLog]:
        """Get recent audit logs with optional filters"""
        query = self.db.query(AuditLog)

        if user_id:
            query = query.filter(AuditLog.user_id == user_id)
        if action:
            query = query.filter(AuditLog.action == action)

        return query.order_by(desc(AuditLog.timestamp), desc(AuditLog.id)).offset(offset).limit(limit).all()
