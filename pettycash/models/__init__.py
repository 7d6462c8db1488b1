"""
SQLAlchemy Models for the Petty Cash / Customer Ledger
"""
from datetime import datetime
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from sqlalchemy import (
    Column, Integer, String, Text, Boolean, DateTime, Date, Numeric,
    ForeignKey, Index, CheckConstraint
)
from sqlalchemy.orm import relationship
import enum

from pettycash.core.database import Base
from pettycash.core.exceptions import InsufficientFundsError, ValidationError

CENT = Decimal("0.01")
# Largest value a Numeric(15, 2) column holds
MAX_MONEY = Decimal("9999999999999.99")


def to_money(value) -> Decimal:
    """Normalize a numeric value to a two-place Decimal"""
    if value is None:
        return Decimal("0.00")
    try:
        if not isinstance(value, Decimal):
            value = Decimal(str(value))
        if not value.is_finite() or abs(value) > MAX_MONEY:
            raise ValidationError(f"Amount {value} is out of range")
        return value.quantize(CENT, rounding=ROUND_HALF_UP)
    except InvalidOperation:
        raise ValidationError(f"Invalid amount: {value}")


# ==================== ENUMS ====================

class AccountStatus(enum.Enum):
    ACTIVE = "active"
    DELETED = "deleted"


class TransactionType(enum.Enum):
    CREDIT = "credit"
    DEBIT = "debit"
    TRANSFER = "transfer"


class ReconciliationStatus(enum.Enum):
    IN_QUEUE = "in_queue"
    MOVED = "moved"


# ==================== MIXINS ====================

class BalancedMixin:
    """
    Shared balance behaviour for anything that holds money.

    Subclasses name the column that carries the running balance in
    ``__balance_attr__``. Neither operation validates the amount sign;
    callers reject non-positive amounts before getting here.
    """
    __balance_attr__ = "current_balance"

    @property
    def balance(self) -> Decimal:
        return to_money(getattr(self, self.__balance_attr__))

    def apply_credit(self, amount: Decimal) -> Decimal:
        new_balance = to_money(self.balance + to_money(amount))
        setattr(self, self.__balance_attr__, new_balance)
        return new_balance

    def apply_debit(self, amount: Decimal) -> Decimal:
        amount = to_money(amount)
        if self.balance < amount:
            raise InsufficientFundsError(
                f"Insufficient funds in '{self.ledger_label}'. "
                f"Available balance: {self.balance:,.2f}, "
                f"Transaction amount: {amount:,.2f}",
                available=self.balance,
                requested=amount
            )
        new_balance = self.balance - amount
        setattr(self, self.__balance_attr__, new_balance)
        return new_balance

    @property
    def ledger_label(self) -> str:
        return f"{type(self).__name__} {self.id}"


class ReconcilableMixin:
    """One-way in_queue -> moved flag for externally synchronised records"""

    @property
    def is_moved_to_system(self) -> bool:
        return self.reconciliation_status == ReconciliationStatus.MOVED.value

    def mark_moved(self, moved_by: str = None) -> bool:
        """Returns True if the status changed, False if it was already moved"""
        if self.is_moved_to_system:
            return False
        self.reconciliation_status = ReconciliationStatus.MOVED.value
        self.moved_at = datetime.utcnow()
        self.moved_by = moved_by
        return True


# ==================== PETTY CASH ====================

class PettyCashAccount(BalancedMixin, Base):
    """Petty cash holding owned by one staff identity"""
    __tablename__ = 'petty_cash_accounts'

    id = Column(Integer, primary_key=True)
    account_code = Column(String(20), nullable=False, unique=True)
    account_name = Column(String(255), nullable=False)
    owner_id = Column(Integer, nullable=False)
    owner_name = Column(String(255), nullable=True)
    opening_balance = Column(Numeric(15, 2), nullable=False, default=Decimal("0.00"))
    current_balance = Column(Numeric(15, 2), nullable=False, default=Decimal("0.00"))
    accepts_incoming = Column(Boolean, nullable=False, default=True)
    status = Column(String(20), nullable=False, default=AccountStatus.ACTIVE.value)
    deleted_at = Column(DateTime, nullable=True)
    deleted_by = Column(String(100), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    outgoing_transactions = relationship(
        "PettyCashTransaction", foreign_keys="PettyCashTransaction.from_account_id",
        back_populates="from_account"
    )
    incoming_transactions = relationship(
        "PettyCashTransaction", foreign_keys="PettyCashTransaction.to_account_id",
        back_populates="to_account"
    )

    @property
    def is_active(self) -> bool:
        return self.status == AccountStatus.ACTIVE.value

    @property
    def ledger_label(self) -> str:
        return self.account_name

    __table_args__ = (
        CheckConstraint('opening_balance >= 0', name='ck_petty_cash_opening_non_negative'),
        CheckConstraint('current_balance >= 0', name='ck_petty_cash_balance_non_negative'),
        Index('ix_petty_cash_accounts_owner_id', 'owner_id'),
        Index('ix_petty_cash_accounts_status', 'status'),
    )


class PettyCashTransaction(ReconcilableMixin, Base):
    """Credit, debit or transfer against petty cash accounts"""
    __tablename__ = 'petty_cash_transactions'

    id = Column(Integer, primary_key=True)
    transaction_number = Column(String(20), nullable=False, unique=True)
    type = Column(String(20), nullable=False)  # credit, debit, transfer
    amount = Column(Numeric(15, 2), nullable=False)
    from_account_id = Column(Integer, ForeignKey('petty_cash_accounts.id'), nullable=True)
    to_account_id = Column(Integer, ForeignKey('petty_cash_accounts.id'), nullable=True)
    transaction_date = Column(Date, nullable=False)
    reference = Column(String(100), nullable=True)
    description = Column(Text, nullable=True)
    created_by_id = Column(Integer, nullable=True)
    created_by_name = Column(String(100), nullable=True)
    reconciliation_status = Column(String(20), nullable=False, default=ReconciliationStatus.IN_QUEUE.value)
    moved_at = Column(DateTime, nullable=True)
    moved_by = Column(String(100), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    from_account = relationship("PettyCashAccount", foreign_keys=[from_account_id],
                                back_populates="outgoing_transactions")
    to_account = relationship("PettyCashAccount", foreign_keys=[to_account_id],
                              back_populates="incoming_transactions")

    @property
    def account_ids(self):
        """Referenced account ids, ascending (the lock order)"""
        return sorted({i for i in (self.from_account_id, self.to_account_id) if i is not None})

    __table_args__ = (
        CheckConstraint('amount > 0', name='ck_petty_cash_tx_amount_positive'),
        CheckConstraint(
            "(type = 'credit' AND to_account_id IS NOT NULL AND from_account_id IS NULL) OR "
            "(type = 'debit' AND from_account_id IS NOT NULL AND to_account_id IS NULL) OR "
            "(type = 'transfer' AND from_account_id IS NOT NULL AND to_account_id IS NOT NULL "
            "AND from_account_id <> to_account_id)",
            name='ck_petty_cash_tx_shape'
        ),
        Index('ix_petty_cash_tx_from_account', 'from_account_id'),
        Index('ix_petty_cash_tx_to_account', 'to_account_id'),
        Index('ix_petty_cash_tx_date', 'transaction_date'),
        Index('ix_petty_cash_tx_reconciliation', 'reconciliation_status'),
    )


# ==================== CUSTOMER LEDGER ====================

class Customer(BalancedMixin, Base):
    """Customer with a running outstanding amount"""
    __tablename__ = 'customers'
    __balance_attr__ = "outstanding_amount"

    id = Column(Integer, primary_key=True)
    name = Column(String(255), nullable=False)
    phone = Column(String(50), nullable=True)
    opening_outstanding = Column(Numeric(15, 2), nullable=False, default=Decimal("0.00"))
    outstanding_amount = Column(Numeric(15, 2), nullable=False, default=Decimal("0.00"))
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    transactions = relationship("CustomerTransaction", back_populates="customer")
    invoices = relationship("Invoice", back_populates="customer")

    @property
    def ledger_label(self) -> str:
        return self.name

    __table_args__ = (
        CheckConstraint('outstanding_amount >= 0', name='ck_customer_outstanding_non_negative'),
    )


class Invoice(ReconcilableMixin, Base):
    """Order/invoice that a customer transaction may mirror"""
    __tablename__ = 'invoices'

    id = Column(Integer, primary_key=True)
    invoice_number = Column(String(20), nullable=False, unique=True)
    customer_id = Column(Integer, ForeignKey('customers.id'), nullable=False)
    amount = Column(Numeric(15, 2), nullable=False)
    invoice_date = Column(Date, nullable=False)
    note = Column(Text, nullable=True)
    reconciliation_status = Column(String(20), nullable=False, default=ReconciliationStatus.IN_QUEUE.value)
    moved_at = Column(DateTime, nullable=True)
    moved_by = Column(String(100), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    customer = relationship("Customer", back_populates="invoices")

    __table_args__ = (
        CheckConstraint('amount > 0', name='ck_invoice_amount_positive'),
        Index('ix_invoices_customer_id', 'customer_id'),
    )


class CustomerTransaction(ReconcilableMixin, Base):
    """Credit or debit against a customer's outstanding amount"""
    __tablename__ = 'customer_transactions'

    id = Column(Integer, primary_key=True)
    transaction_number = Column(String(20), nullable=False, unique=True)
    customer_id = Column(Integer, ForeignKey('customers.id'), nullable=False)
    invoice_id = Column(Integer, ForeignKey('invoices.id', ondelete='SET NULL'), nullable=True)
    type = Column(String(20), nullable=False)  # credit, debit
    amount = Column(Numeric(15, 2), nullable=False)
    payment_mode = Column(String(30), nullable=False, default="cash")
    collected_by_id = Column(Integer, nullable=True)
    collected_by_name = Column(String(100), nullable=True)
    transaction_date = Column(Date, nullable=False)
    note = Column(Text, nullable=True)
    reconciliation_status = Column(String(20), nullable=False, default=ReconciliationStatus.IN_QUEUE.value)
    moved_at = Column(DateTime, nullable=True)
    moved_by = Column(String(100), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    customer = relationship("Customer", back_populates="transactions")
    invoice = relationship("Invoice")

    @property
    def is_linked_to_order(self) -> bool:
        return self.invoice_id is not None

    __table_args__ = (
        CheckConstraint('amount > 0', name='ck_customer_tx_amount_positive'),
        CheckConstraint("type IN ('credit', 'debit')", name='ck_customer_tx_type'),
        Index('ix_customer_tx_customer_id', 'customer_id'),
        Index('ix_customer_tx_date', 'transaction_date'),
        Index('ix_customer_tx_reconciliation', 'reconciliation_status'),
    )


# ==================== AUDIT ====================

class AuditLog(Base):
    """Audit trail for ledger mutations"""
    __tablename__ = 'audit_logs'

    id = Column(Integer, primary_key=True)
    timestamp = Column(DateTime, default=datetime.utcnow, nullable=False)

    # Who performed the action
    user_id = Column(Integer, nullable=True)
    username = Column(String(100), nullable=True)
    ip_address = Column(String(50), nullable=True)

    # What action was performed
    action = Column(String(50), nullable=False)
    resource_type = Column(String(100), nullable=False)
    resource_id = Column(Integer, nullable=True)

    # Details
    description = Column(Text, nullable=True)
    old_values = Column(Text, nullable=True)  # JSON string of old values
    new_values = Column(Text, nullable=True)  # JSON string of new values

    # Status
    status = Column(String(20), default='success')  # success, failure
    error_message = Column(Text, nullable=True)

    __table_args__ = (
        Index('ix_audit_logs_timestamp', 'timestamp'),
        Index('ix_audit_logs_user_id', 'user_id'),
        Index('ix_audit_logs_resource', 'resource_type', 'resource_id'),
        Index('ix_audit_logs_action', 'action'),
    )
