"""
Customer Ledger Service - Outstanding Amounts, Customer Transactions, Invoices
"""
from typing import Optional, Dict
from sqlalchemy.orm import Session
from sqlalchemy import func
from decimal import Decimal
from datetime import date
import logging

from pettycash.core.exceptions import (
    NotFoundError, ValidationError, LinkedToOrderError
)
from pettycash.models import (
    Customer, CustomerTransaction, Invoice, TransactionType, to_money
)
from pettycash.schemas import Caller, CustomerTransactionFilters
from pettycash.services.account_service import require_positive_amount
from pettycash.services.audit_service import AuditService, AuditAction
from pettycash.services.numbering import get_next_number
from pettycash.services.pagination import paginate

logger = logging.getLogger(__name__)

CUSTOMER_TRANSACTION_TYPES = (TransactionType.CREDIT.value, TransactionType.DEBIT.value)


def _apply_delta(customer: Customer, tx_type: str, delta: Decimal):
    """Re-apply the change in a transaction's amount to the customer's balance"""
    if delta == 0:
        return
    grows = (tx_type == TransactionType.CREDIT.value) == (delta > 0)
    if grows:
        customer.apply_credit(abs(delta))
    else:
        customer.apply_debit(abs(delta))


class CustomerService:
    """
    Same balance rules as petty cash, scoped to a customer: a credit
    raises ``outstanding_amount``, a debit lowers it, and it never goes
    below zero. There is no transfer between customers.
    """

    def __init__(self, db: Session):
        self.db = db
        self.audit = AuditService(db)

    # ---------- customers ----------

    def get_by_id(self, customer_id: int) -> Optional[Customer]:
        return self.db.query(Customer).filter(Customer.id == customer_id).first()

    def get_or_404(self, customer_id: int, lock: bool = False) -> Customer:
        query = self.db.query(Customer).filter(Customer.id == customer_id)
        if lock:
            query = query.with_for_update()
        customer = query.first()
        if not customer:
            raise NotFoundError(f"Customer {customer_id} not found")
        return customer

    def create_customer(self, name: str, caller: Caller, phone: str = None,
                        opening_outstanding=Decimal("0.00")) -> Customer:
        opening_outstanding = to_money(opening_outstanding)
        if opening_outstanding < 0:
            raise ValidationError("Opening outstanding amount cannot be negative")

        customer = Customer(
            name=name,
            phone=phone,
            opening_outstanding=opening_outstanding,
            outstanding_amount=opening_outstanding,
            is_active=True
        )
        self.db.add(customer)
        self.db.flush()

        self.audit.log(
            action=AuditAction.CUSTOMER_CREATED,
            resource_type="Customer",
            resource_id=customer.id,
            new_values={'name': name, 'opening_outstanding': opening_outstanding},
            caller=caller
        )
        return customer

    # ---------- transactions ----------

    def get_transaction(self, transaction_id: int) -> CustomerTransaction:
        transaction = self.db.query(CustomerTransaction).filter(
            CustomerTransaction.id == transaction_id
        ).first()
        if not transaction:
            raise NotFoundError(f"Customer transaction {transaction_id} not found")
        return transaction

    def record(self, customer_id: int, tx_type: str, amount, caller: Caller,
               payment_mode: str = "cash", transaction_date: date = None, note: str = None,
               collected_by_id: int = None, collected_by_name: str = None,
               invoice: Invoice = None) -> CustomerTransaction:
        """Record a credit or debit and move the outstanding amount with it"""
        if tx_type not in CUSTOMER_TRANSACTION_TYPES:
            raise ValidationError(f"Customer transactions must be credit or debit, not '{tx_type}'")
        if not payment_mode:
            raise ValidationError("Payment mode is required")
        amount = require_positive_amount(amount)

        customer = self.get_or_404(customer_id, lock=True)
        if tx_type == TransactionType.CREDIT.value:
            customer.apply_credit(amount)
        else:
            customer.apply_debit(amount)

        transaction = CustomerTransaction(
            transaction_number=get_next_number(
                self.db, CustomerTransaction, CustomerTransaction.transaction_number, "CT"
            ),
            customer_id=customer.id,
            invoice_id=invoice.id if invoice else None,
            type=tx_type,
            amount=amount,
            payment_mode=payment_mode,
            collected_by_id=collected_by_id if collected_by_id is not None else caller.user_id,
            collected_by_name=collected_by_name or caller.username,
            transaction_date=transaction_date or date.today(),
            note=note
        )
        self.db.add(transaction)
        self.db.flush()

        self.audit.log(
            action=AuditAction.CUSTOMER_TRANSACTION_RECORDED,
            resource_type="CustomerTransaction",
            resource_id=transaction.id,
            description=f"{transaction.transaction_number}: {tx_type} {amount:,.2f} for {customer.name}",
            new_values={'outstanding_amount': customer.balance},
            caller=caller
        )
        return transaction

    def update_transaction(self, transaction_id: int, caller: Caller,
                           amount=None, note: str = None) -> CustomerTransaction:
        """Edit amount/note; order-backed transactions must be edited via the invoice"""
        transaction = self.get_transaction(transaction_id)
        if transaction.is_linked_to_order:
            raise LinkedToOrderError(
                f"Transaction {transaction.transaction_number} mirrors invoice "
                f"{transaction.invoice.invoice_number}; edit the invoice instead"
            )
        return self._apply_edit(transaction, caller, amount, note)

    def _apply_edit(self, transaction: CustomerTransaction, caller: Caller,
                    amount=None, note: str = None) -> CustomerTransaction:
        old_values = {'amount': transaction.amount, 'note': transaction.note}

        if amount is not None:
            amount = require_positive_amount(amount)
            customer = self.get_or_404(transaction.customer_id, lock=True)
            _apply_delta(customer, transaction.type, amount - to_money(transaction.amount))
            transaction.amount = amount
        if note is not None:
            transaction.note = note

        self.db.flush()

        self.audit.log(
            action=AuditAction.CUSTOMER_TRANSACTION_UPDATED,
            resource_type="CustomerTransaction",
            resource_id=transaction.id,
            old_values=old_values,
            new_values={'amount': transaction.amount, 'note': transaction.note},
            caller=caller
        )
        return transaction

    def search_transactions(self, filters: CustomerTransactionFilters) -> Dict:
        """Page of customer transactions across all customers, newest first"""
        query = self.db.query(CustomerTransaction)

        if filters.customer_id:
            query = query.filter(CustomerTransaction.customer_id == filters.customer_id)
        if filters.type:
            query = query.filter(CustomerTransaction.type == filters.type.value)
        if filters.payment_mode:
            query = query.filter(CustomerTransaction.payment_mode == filters.payment_mode)
        if filters.reconciliation_status:
            query = query.filter(
                CustomerTransaction.reconciliation_status == filters.reconciliation_status.value
            )
        if filters.date_from:
            query = query.filter(CustomerTransaction.transaction_date >= filters.date_from)
        if filters.date_to:
            query = query.filter(CustomerTransaction.transaction_date <= filters.date_to)

        query = query.order_by(
            CustomerTransaction.transaction_date.desc(),
            CustomerTransaction.id.desc()
        )
        return paginate(query, filters.page, filters.per_page)

    def list_transactions(self, customer_id: int, filters: CustomerTransactionFilters) -> Dict:
        """One customer's ledger, with their current outstanding amount"""
        customer = self.get_or_404(customer_id)
        page = self.search_transactions(filters.model_copy(update={'customer_id': customer.id}))
        page['customer'] = customer
        page['current_balance'] = customer.balance
        return page

    def replay_outstanding(self, customer: Customer) -> Decimal:
        """Opening outstanding plus credits minus debits, from full history"""
        totals = dict(self.db.query(
            CustomerTransaction.type, func.sum(CustomerTransaction.amount)
        ).filter(
            CustomerTransaction.customer_id == customer.id
        ).group_by(CustomerTransaction.type).all())

        return (
            to_money(customer.opening_outstanding)
            + to_money(totals.get(TransactionType.CREDIT.value))
            - to_money(totals.get(TransactionType.DEBIT.value))
        )

    # ---------- invoices ----------

    def get_invoice(self, invoice_id: int) -> Invoice:
        invoice = self.db.query(Invoice).filter(Invoice.id == invoice_id).first()
        if not invoice:
            raise NotFoundError(f"Invoice {invoice_id} not found")
        return invoice

    def record_invoice(self, customer_id: int, amount, caller: Caller,
                       invoice_date: date = None, note: str = None,
                       payment_mode: str = "credit") -> Invoice:
        """Raise an invoice and the credit transaction that mirrors it"""
        amount = require_positive_amount(amount)
        customer = self.get_or_404(customer_id)

        invoice = Invoice(
            invoice_number=get_next_number(self.db, Invoice, Invoice.invoice_number, "INV"),
            customer_id=customer.id,
            amount=amount,
            invoice_date=invoice_date or date.today(),
            note=note
        )
        self.db.add(invoice)
        self.db.flush()

        self.record(
            customer.id, TransactionType.CREDIT.value, amount, caller,
            payment_mode=payment_mode,
            transaction_date=invoice.invoice_date,
            note=note or f"Invoice {invoice.invoice_number}",
            invoice=invoice
        )

        self.audit.log(
            action=AuditAction.INVOICE_RECORDED,
            resource_type="Invoice",
            resource_id=invoice.id,
            description=f"{invoice.invoice_number}: {amount:,.2f} for {customer.name}",
            caller=caller
        )
        return invoice

    def update_invoice(self, invoice_id: int, caller: Caller, amount=None,
                       note: str = None) -> Invoice:
        """Edit an invoice; its mirrored ledger transactions follow"""
        invoice = self.get_invoice(invoice_id)
        old_values = {'amount': invoice.amount, 'note': invoice.note}

        mirrored = self.db.query(CustomerTransaction).filter(
            CustomerTransaction.invoice_id == invoice.id
        ).all()
        for transaction in mirrored:
            self._apply_edit(transaction, caller, amount=amount, note=note)

        if amount is not None:
            invoice.amount = require_positive_amount(amount)
        if note is not None:
            invoice.note = note
        self.db.flush()

        self.audit.log(
            action=AuditAction.INVOICE_UPDATED,
            resource_type="Invoice",
            resource_id=invoice.id,
            old_values=old_values,
            new_values={'amount': invoice.amount, 'note': invoice.note},
            caller=caller
        )
        return invoice
