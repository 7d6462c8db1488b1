"""
Customer Ledger API Routes - Customers, Customer Transactions, Invoices
"""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import Optional
from datetime import date

from pettycash.core.database import get_db
from pettycash.core.security import get_current_caller, PermissionChecker, Permissions
from pettycash.schemas import (
    Caller,
    CustomerCreate, CustomerResponse,
    CustomerTransactionCreate, CustomerTransactionUpdate, CustomerTransactionResponse,
    CustomerTransactionFilters, CustomerTransactionPage, CustomerTransactionListPage,
    CustomerTransactionTypeEnum,
    ReconciliationStatusEnum,
    InvoiceCreate, InvoiceUpdate, InvoiceResponse
)
from pettycash.services.customer_service import CustomerService

router = APIRouter(tags=["Customer Ledger"])


# ==================== CUSTOMERS ====================

@router.post("/customers", response_model=CustomerResponse, status_code=201,
             dependencies=[Depends(PermissionChecker([Permissions.CUSTOMERS_CREATE]))])
async def create_customer(
    customer_data: CustomerCreate,
    db: Session = Depends(get_db),
    caller: Caller = Depends(get_current_caller)
):
    customer = CustomerService(db).create_customer(
        customer_data.name, caller,
        phone=customer_data.phone,
        opening_outstanding=customer_data.opening_outstanding
    )
    db.commit()
    db.refresh(customer)
    return customer


@router.get("/customers/{customer_id}", response_model=CustomerResponse,
            dependencies=[Depends(PermissionChecker([Permissions.CUSTOMERS_VIEW]))])
async def get_customer(customer_id: int, db: Session = Depends(get_db)):
    return CustomerService(db).get_or_404(customer_id)


# ==================== CUSTOMER TRANSACTIONS ====================

@router.get("/customers/{customer_id}/transactions", response_model=CustomerTransactionPage,
            dependencies=[Depends(PermissionChecker([Permissions.CUSTOMERS_VIEW]))])
async def list_customer_transactions(
    customer_id: int,
    type: Optional[CustomerTransactionTypeEnum] = None,
    payment_mode: Optional[str] = None,
    reconciliation_status: Optional[ReconciliationStatusEnum] = None,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    page: int = Query(1, ge=1),
    per_page: Optional[int] = Query(None, ge=1),
    db: Session = Depends(get_db)
):
    """A customer's ledger with their current outstanding amount"""
    filters = CustomerTransactionFilters(
        type=type,
        payment_mode=payment_mode,
        reconciliation_status=reconciliation_status,
        date_from=date_from,
        date_to=date_to,
        page=page,
        per_page=per_page
    )
    return CustomerService(db).list_transactions(customer_id, filters)


@router.get("/customer-transactions", response_model=CustomerTransactionListPage,
            dependencies=[Depends(PermissionChecker([Permissions.CUSTOMERS_VIEW]))])
async def search_customer_transactions(
    customer_id: Optional[int] = None,
    type: Optional[CustomerTransactionTypeEnum] = None,
    payment_mode: Optional[str] = None,
    reconciliation_status: Optional[ReconciliationStatusEnum] = None,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    page: int = Query(1, ge=1),
    per_page: Optional[int] = Query(None, ge=1),
    db: Session = Depends(get_db)
):
    """Customer transactions across all customers, newest first"""
    filters = CustomerTransactionFilters(
        customer_id=customer_id,
        type=type,
        payment_mode=payment_mode,
        reconciliation_status=reconciliation_status,
        date_from=date_from,
        date_to=date_to,
        page=page,
        per_page=per_page
    )
    return CustomerService(db).search_transactions(filters)


@router.post("/customers/{customer_id}/transactions", response_model=CustomerTransactionResponse,
             status_code=201,
             dependencies=[Depends(PermissionChecker([Permissions.CUSTOMER_TRANSACTIONS_CREATE]))])
async def create_customer_transaction(
    customer_id: int,
    transaction_data: CustomerTransactionCreate,
    db: Session = Depends(get_db),
    caller: Caller = Depends(get_current_caller)
):
    transaction = CustomerService(db).record(
        customer_id,
        transaction_data.type.value,
        transaction_data.amount,
        caller,
        payment_mode=transaction_data.payment_mode,
        transaction_date=transaction_data.transaction_date,
        note=transaction_data.note,
        collected_by_id=transaction_data.collected_by_id,
        collected_by_name=transaction_data.collected_by_name
    )
    db.commit()
    db.refresh(transaction)
    return transaction


@router.put("/customer-transactions/{transaction_id}", response_model=CustomerTransactionResponse,
            dependencies=[Depends(PermissionChecker([Permissions.CUSTOMER_TRANSACTIONS_UPDATE]))])
async def update_customer_transaction(
    transaction_id: int,
    update_data: CustomerTransactionUpdate,
    db: Session = Depends(get_db),
    caller: Caller = Depends(get_current_caller)
):
    """Edit amount/note; invoice-backed transactions are refused"""
    transaction = CustomerService(db).update_transaction(
        transaction_id, caller,
        amount=update_data.amount,
        note=update_data.note
    )
    db.commit()
    db.refresh(transaction)
    return transaction


# ==================== INVOICES ====================

@router.post("/customers/{customer_id}/invoices", response_model=InvoiceResponse, status_code=201,
             dependencies=[Depends(PermissionChecker([Permissions.INVOICES_CREATE]))])
async def create_invoice(
    customer_id: int,
    invoice_data: InvoiceCreate,
    db: Session = Depends(get_db),
    caller: Caller = Depends(get_current_caller)
):
    invoice = CustomerService(db).record_invoice(
        customer_id,
        invoice_data.amount,
        caller,
        invoice_date=invoice_data.invoice_date,
        note=invoice_data.note,
        payment_mode=invoice_data.payment_mode
    )
    db.commit()
    db.refresh(invoice)
    return invoice


@router.put("/invoices/{invoice_id}", response_model=InvoiceResponse,
            dependencies=[Depends(PermissionChecker([Permissions.INVOICES_UPDATE]))])
async def update_invoice(
    invoice_id: int,
    update_data: InvoiceUpdate,
    db: Session = Depends(get_db),
    caller: Caller = Depends(get_current_caller)
):
    """Edit an invoice; the mirrored ledger transaction follows it"""
    invoice = CustomerService(db).update_invoice(
        invoice_id, caller,
        amount=update_data.amount,
        note=update_data.note
    )
    db.commit()
    db.refresh(invoice)
    return invoice
