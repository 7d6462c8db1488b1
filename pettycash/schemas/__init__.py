"""
Pydantic Schemas for API Validation
"""
from pydantic import BaseModel, Field, ConfigDict
from typing import List, Optional, Set
from datetime import datetime, date
from decimal import Decimal
from enum import Enum


# ==================== ENUMS ====================

class TransactionTypeEnum(str, Enum):
    CREDIT = "credit"
    DEBIT = "debit"
    TRANSFER = "transfer"


class CustomerTransactionTypeEnum(str, Enum):
    CREDIT = "credit"
    DEBIT = "debit"


class ReconciliationStatusEnum(str, Enum):
    IN_QUEUE = "in_queue"
    MOVED = "moved"


class ReconcilableKindEnum(str, Enum):
    PETTY_CASH = "petty-cash-transactions"
    CUSTOMER = "customer-transactions"
    INVOICE = "invoices"


class RetirementStatusEnum(str, Enum):
    READY_TO_DELETE = "ready_to_delete"
    REQUIRES_TRANSFER = "requires_transfer"


class RetirementStepEnum(str, Enum):
    CONFIRM = "confirm"
    TRANSFER = "transfer"
    DELETE = "delete"


# ==================== AUTH SCHEMAS ====================

class Caller(BaseModel):
    """Pre-validated identity of whoever issued the intent"""
    user_id: Optional[int] = None
    username: str
    permissions: Set[str] = Field(default_factory=set)
    is_superuser: bool = False

    def has_permissions(self, required: Set[str]) -> bool:
        return self.is_superuser or set(required).issubset(self.permissions)


# ==================== PAGINATION ====================

class PageMeta(BaseModel):
    current_page: int
    last_page: int
    per_page: int
    total: int


# ==================== PETTY CASH ACCOUNT SCHEMAS ====================

class PettyCashAccountCreate(BaseModel):
    owner_id: int
    owner_name: Optional[str] = Field(None, max_length=255)
    account_name: Optional[str] = Field(None, min_length=2, max_length=255)
    opening_balance: Decimal = Field(default=Decimal("0.00"), ge=0, max_digits=15, decimal_places=2)
    accepts_incoming: bool = True


class PettyCashAccountUpdate(BaseModel):
    account_name: Optional[str] = Field(None, min_length=2, max_length=255)
    opening_balance: Optional[Decimal] = Field(None, ge=0, max_digits=15, decimal_places=2)
    accepts_incoming: Optional[bool] = None


class PettyCashAccountSummary(BaseModel):
    id: int
    account_code: str
    account_name: str
    current_balance: Decimal
    accepts_incoming: bool

    model_config = ConfigDict(from_attributes=True)


class PettyCashAccountResponse(PettyCashAccountSummary):
    owner_id: int
    owner_name: Optional[str] = None
    opening_balance: Decimal
    status: str
    deleted_at: Optional[datetime] = None
    deleted_by: Optional[str] = None
    created_at: datetime
    updated_at: Optional[datetime] = None


class PettyCashAccountPage(PageMeta):
    data: List[PettyCashAccountResponse]


class BalanceCheckResponse(BaseModel):
    account_id: int
    opening_balance: Decimal
    current_balance: Decimal
    replayed_balance: Decimal
    transaction_count: int
    is_consistent: bool


# ==================== PETTY CASH TRANSACTION SCHEMAS ====================

class LedgerEntryRequest(BaseModel):
    amount: Decimal = Field(..., gt=0, max_digits=15, decimal_places=2)
    transaction_date: date = Field(default_factory=date.today)
    reference: Optional[str] = Field(None, max_length=100)
    description: Optional[str] = Field(None, max_length=500)


class TransferRequest(LedgerEntryRequest):
    from_account_id: int
    to_account_id: int


class PettyCashTransactionUpdate(BaseModel):
    amount: Optional[Decimal] = Field(None, gt=0, max_digits=15, decimal_places=2)
    description: Optional[str] = Field(None, max_length=500)


class PettyCashTransactionResponse(BaseModel):
    id: int
    transaction_number: str
    type: TransactionTypeEnum
    amount: Decimal
    from_account_id: Optional[int] = None
    to_account_id: Optional[int] = None
    transaction_date: date
    reference: Optional[str] = None
    description: Optional[str] = None
    created_by_id: Optional[int] = None
    created_by_name: Optional[str] = None
    reconciliation_status: ReconciliationStatusEnum
    is_moved_to_system: bool
    moved_at: Optional[datetime] = None
    moved_by: Optional[str] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class PettyCashTransactionPage(PageMeta):
    data: List[PettyCashTransactionResponse]


class TransactionFilters(BaseModel):
    account_id: Optional[int] = None
    type: Optional[TransactionTypeEnum] = None
    reconciliation_status: Optional[ReconciliationStatusEnum] = None
    date_from: Optional[date] = None
    date_to: Optional[date] = None
    page: int = Field(default=1, ge=1)
    per_page: Optional[int] = Field(default=None, ge=1)


# ==================== RETIREMENT SCHEMAS ====================

class RetirementPlanResponse(BaseModel):
    account_id: int
    step: RetirementStepEnum = RetirementStepEnum.CONFIRM
    status: RetirementStatusEnum
    balance: Decimal
    next_step: RetirementStepEnum
    eligible_destinations: List[PettyCashAccountSummary] = []


class RetirementRequest(BaseModel):
    destination_account_id: Optional[int] = None
    transaction_date: date = Field(default_factory=date.today)
    reference: Optional[str] = Field(None, max_length=100)


class RetirementResultResponse(BaseModel):
    account: PettyCashAccountResponse
    transfer: Optional[PettyCashTransactionResponse] = None


# ==================== CUSTOMER SCHEMAS ====================

class CustomerCreate(BaseModel):
    name: str = Field(..., min_length=2, max_length=255)
    phone: Optional[str] = Field(None, max_length=50)
    opening_outstanding: Decimal = Field(default=Decimal("0.00"), ge=0, max_digits=15, decimal_places=2)


class CustomerResponse(BaseModel):
    id: int
    name: str
    phone: Optional[str] = None
    opening_outstanding: Decimal
    outstanding_amount: Decimal
    is_active: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class CustomerTransactionCreate(BaseModel):
    type: CustomerTransactionTypeEnum
    amount: Decimal = Field(..., gt=0, max_digits=15, decimal_places=2)
    payment_mode: str = Field(default="cash", min_length=1, max_length=30)
    transaction_date: date = Field(default_factory=date.today)
    note: Optional[str] = Field(None, max_length=500)
    collected_by_id: Optional[int] = None
    collected_by_name: Optional[str] = Field(None, max_length=100)


class CustomerTransactionUpdate(BaseModel):
    amount: Optional[Decimal] = Field(None, gt=0, max_digits=15, decimal_places=2)
    note: Optional[str] = Field(None, max_length=500)


class CustomerTransactionResponse(BaseModel):
    id: int
    transaction_number: str
    customer_id: int
    invoice_id: Optional[int] = None
    type: CustomerTransactionTypeEnum
    amount: Decimal
    payment_mode: str
    collected_by_id: Optional[int] = None
    collected_by_name: Optional[str] = None
    transaction_date: date
    note: Optional[str] = None
    reconciliation_status: ReconciliationStatusEnum
    is_moved_to_system: bool
    moved_at: Optional[datetime] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class CustomerTransactionFilters(BaseModel):
    customer_id: Optional[int] = None
    type: Optional[CustomerTransactionTypeEnum] = None
    payment_mode: Optional[str] = None
    reconciliation_status: Optional[ReconciliationStatusEnum] = None
    date_from: Optional[date] = None
    date_to: Optional[date] = None
    page: int = Field(default=1, ge=1)
    per_page: Optional[int] = Field(default=None, ge=1)


class CustomerTransactionListPage(PageMeta):
    data: List[CustomerTransactionResponse]


class CustomerTransactionPage(CustomerTransactionListPage):
    customer: CustomerResponse
    current_balance: Decimal


# ==================== INVOICE SCHEMAS ====================

class InvoiceCreate(BaseModel):
    amount: Decimal = Field(..., gt=0, max_digits=15, decimal_places=2)
    invoice_date: date = Field(default_factory=date.today)
    note: Optional[str] = Field(None, max_length=500)
    payment_mode: str = Field(default="credit", max_length=30)


class InvoiceUpdate(BaseModel):
    amount: Optional[Decimal] = Field(None, gt=0, max_digits=15, decimal_places=2)
    note: Optional[str] = Field(None, max_length=500)


class InvoiceResponse(BaseModel):
    id: int
    invoice_number: str
    customer_id: int
    amount: Decimal
    invoice_date: date
    note: Optional[str] = None
    reconciliation_status: ReconciliationStatusEnum
    is_moved_to_system: bool
    moved_at: Optional[datetime] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


# ==================== RECONCILIATION SCHEMAS ====================

class MarkMovedBatchRequest(BaseModel):
    ids: List[int] = Field(..., min_length=1)


class MarkMovedBatchResponse(BaseModel):
    kind: ReconcilableKindEnum
    marked: List[int]
    already_moved: List[int]


class ReconciliationSummaryResponse(BaseModel):
    petty_cash_transactions: dict
    customer_transactions: dict
    invoices: dict


# ==================== AUDIT SCHEMAS ====================

class AuditLogResponse(BaseModel):
    id: int
    timestamp: datetime
    user_id: Optional[int] = None
    username: Optional[str] = None
    action: str
    resource_type: str
    resource_id: Optional[int] = None
    description: Optional[str] = None
    old_values: Optional[str] = None
    new_values: Optional[str] = None
    status: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)
