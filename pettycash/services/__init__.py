# Services Package
from pettycash.services.audit_service import AuditService, AuditAction
from pettycash.services.transaction_service import TransactionLogService
from pettycash.services.account_service import AccountService
from pettycash.services.transfer_service import TransferService
from pettycash.services.retirement_service import RetirementService
from pettycash.services.reconciliation_service import ReconciliationService
from pettycash.services.customer_service import CustomerService

__all__ = [
    'AuditService',
    'AuditAction',
    'TransactionLogService',
    'AccountService',
    'TransferService',
    'RetirementService',
    'ReconciliationService',
    'CustomerService',
]
