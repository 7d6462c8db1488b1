"""
Petty Cash API Routes - Accounts, Credits/Debits, Transfers, Retirement, Transactions
"""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import Optional
from datetime import date

from pettycash.core.database import get_db
from pettycash.core.security import get_current_caller, PermissionChecker, Permissions
from pettycash.schemas import (
    Caller,
    PettyCashAccountCreate, PettyCashAccountUpdate, PettyCashAccountResponse,
    PettyCashAccountPage, BalanceCheckResponse,
    LedgerEntryRequest, TransferRequest,
    PettyCashTransactionUpdate, PettyCashTransactionResponse, PettyCashTransactionPage,
    TransactionFilters, TransactionTypeEnum, ReconciliationStatusEnum,
    RetirementPlanResponse, RetirementRequest, RetirementResultResponse
)
from pettycash.services.account_service import AccountService
from pettycash.services.transaction_service import TransactionLogService
from pettycash.services.transfer_service import TransferService
from pettycash.services.retirement_service import RetirementService

router = APIRouter(prefix="/petty-cash", tags=["Petty Cash"])


# ==================== ACCOUNTS ====================

@router.get("/accounts", response_model=PettyCashAccountPage,
            dependencies=[Depends(PermissionChecker([Permissions.PETTY_CASH_VIEW]))])
async def list_accounts(
    page: int = Query(1, ge=1),
    per_page: Optional[int] = Query(None, ge=1),
    include_deleted: bool = False,
    accepts_incoming: Optional[bool] = None,
    owner_id: Optional[int] = None,
    db: Session = Depends(get_db)
):
    """List petty cash accounts"""
    return AccountService(db).list_accounts(
        include_deleted=include_deleted,
        accepts_incoming=accepts_incoming,
        owner_id=owner_id,
        page=page,
        per_page=per_page
    )


@router.post("/accounts", response_model=PettyCashAccountResponse, status_code=201,
             dependencies=[Depends(PermissionChecker([Permissions.PETTY_CASH_CREATE]))])
async def create_account(
    account_data: PettyCashAccountCreate,
    db: Session = Depends(get_db),
    caller: Caller = Depends(get_current_caller)
):
    """Open a petty cash account for a staff member"""
    account = AccountService(db).create(
        owner_id=account_data.owner_id,
        caller=caller,
        opening_balance=account_data.opening_balance,
        accepts_incoming=account_data.accepts_incoming,
        owner_name=account_data.owner_name,
        account_name=account_data.account_name
    )
    db.commit()
    db.refresh(account)
    return account


@router.get("/accounts/{account_id}", response_model=PettyCashAccountResponse,
            dependencies=[Depends(PermissionChecker([Permissions.PETTY_CASH_VIEW]))])
async def get_account(account_id: int, db: Session = Depends(get_db)):
    """Get a petty cash account, including retired ones"""
    return AccountService(db).get_or_404(account_id)


@router.put("/accounts/{account_id}", response_model=PettyCashAccountResponse,
            dependencies=[Depends(PermissionChecker([Permissions.PETTY_CASH_UPDATE]))])
async def update_account(
    account_id: int,
    update_data: PettyCashAccountUpdate,
    db: Session = Depends(get_db),
    caller: Caller = Depends(get_current_caller)
):
    """Administrative correction of name, opening balance or incoming flag"""
    account = AccountService(db).update_config(
        account_id,
        caller,
        opening_balance=update_data.opening_balance,
        accepts_incoming=update_data.accepts_incoming,
        account_name=update_data.account_name
    )
    db.commit()
    db.refresh(account)
    return account


@router.get("/accounts/{account_id}/ledger", response_model=BalanceCheckResponse,
            dependencies=[Depends(PermissionChecker([Permissions.PETTY_CASH_VIEW]))])
async def check_account_balance(account_id: int, db: Session = Depends(get_db)):
    """Compare the stored balance with a replay of the account's history"""
    account = AccountService(db).get_or_404(account_id)
    return TransactionLogService(db).verify_balance(account)


@router.post("/accounts/{account_id}/credit", response_model=PettyCashTransactionResponse, status_code=201,
             dependencies=[Depends(PermissionChecker([Permissions.PETTY_CASH_CREDIT]))])
async def record_credit(
    account_id: int,
    entry: LedgerEntryRequest,
    db: Session = Depends(get_db),
    caller: Caller = Depends(get_current_caller)
):
    """Add money to an account"""
    transaction = AccountService(db).credit(
        account_id, entry.amount, caller,
        transaction_date=entry.transaction_date,
        reference=entry.reference,
        description=entry.description
    )
    db.commit()
    db.refresh(transaction)
    return transaction


@router.post("/accounts/{account_id}/debit", response_model=PettyCashTransactionResponse, status_code=201,
             dependencies=[Depends(PermissionChecker([Permissions.PETTY_CASH_DEBIT]))])
async def record_debit(
    account_id: int,
    entry: LedgerEntryRequest,
    db: Session = Depends(get_db),
    caller: Caller = Depends(get_current_caller)
):
    """Spend money from an account"""
    transaction = AccountService(db).debit(
        account_id, entry.amount, caller,
        transaction_date=entry.transaction_date,
        reference=entry.reference,
        description=entry.description
    )
    db.commit()
    db.refresh(transaction)
    return transaction


# ==================== RETIREMENT ====================

@router.get("/accounts/{account_id}/retirement", response_model=RetirementPlanResponse,
            dependencies=[Depends(PermissionChecker([Permissions.PETTY_CASH_DELETE]))])
async def begin_retirement(account_id: int, db: Session = Depends(get_db)):
    """What must happen before this account can be deleted"""
    return RetirementService(db).begin(account_id)


@router.post("/accounts/{account_id}/retirement", response_model=RetirementResultResponse,
             dependencies=[Depends(PermissionChecker([Permissions.PETTY_CASH_DELETE]))])
async def complete_retirement(
    account_id: int,
    request: RetirementRequest,
    db: Session = Depends(get_db),
    caller: Caller = Depends(get_current_caller)
):
    """Drain the balance to another account (if any) and delete, in one commit"""
    result = RetirementService(db).complete(
        account_id, caller,
        destination_account_id=request.destination_account_id,
        transaction_date=request.transaction_date,
        reference=request.reference
    )
    db.commit()
    db.refresh(result['account'])
    if result['transfer'] is not None:
        db.refresh(result['transfer'])
    return result


# ==================== TRANSFERS ====================

@router.post("/transfers", response_model=PettyCashTransactionResponse, status_code=201,
             dependencies=[Depends(PermissionChecker([Permissions.PETTY_CASH_TRANSFER]))])
async def create_transfer(
    transfer_data: TransferRequest,
    db: Session = Depends(get_db),
    caller: Caller = Depends(get_current_caller)
):
    """Move money between two petty cash accounts"""
    transaction = TransferService(db).transfer(
        transfer_data.from_account_id,
        transfer_data.to_account_id,
        transfer_data.amount,
        caller,
        transaction_date=transfer_data.transaction_date,
        reference=transfer_data.reference,
        description=transfer_data.description
    )
    db.commit()
    db.refresh(transaction)
    return transaction


# ==================== TRANSACTIONS ====================

@router.get("/transactions", response_model=PettyCashTransactionPage,
            dependencies=[Depends(PermissionChecker([Permissions.PETTY_CASH_VIEW]))])
async def list_transactions(
    account_id: Optional[int] = None,
    type: Optional[TransactionTypeEnum] = None,
    reconciliation_status: Optional[ReconciliationStatusEnum] = None,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    page: int = Query(1, ge=1),
    per_page: Optional[int] = Query(None, ge=1),
    db: Session = Depends(get_db)
):
    """List petty cash transactions with filters"""
    filters = TransactionFilters(
        account_id=account_id,
        type=type,
        reconciliation_status=reconciliation_status,
        date_from=date_from,
        date_to=date_to,
        page=page,
        per_page=per_page
    )
    return TransactionLogService(db).list_transactions(filters)


@router.get("/transactions/{transaction_id}", response_model=PettyCashTransactionResponse,
            dependencies=[Depends(PermissionChecker([Permissions.PETTY_CASH_VIEW]))])
async def get_transaction(transaction_id: int, db: Session = Depends(get_db)):
    return TransactionLogService(db).get_or_404(transaction_id)


@router.put("/transactions/{transaction_id}", response_model=PettyCashTransactionResponse,
            dependencies=[Depends(PermissionChecker([Permissions.PETTY_CASH_UPDATE]))])
async def update_transaction(
    transaction_id: int,
    update_data: PettyCashTransactionUpdate,
    db: Session = Depends(get_db),
    caller: Caller = Depends(get_current_caller)
):
    """Correct a transaction's amount or description"""
    transaction = TransactionLogService(db).update(
        transaction_id, caller,
        amount=update_data.amount,
        description=update_data.description
    )
    db.commit()
    db.refresh(transaction)
    return transaction
