"""
Petty Cash Account Service - Accounts, Credits, Debits, Deletion
"""
from typing import Optional, List, Dict, Iterable
from sqlalchemy.orm import Session
from sqlalchemy import func, or_
from decimal import Decimal
from datetime import date, datetime
import logging

from pettycash.core.exceptions import (
    NotFoundError, ValidationError, NonZeroBalanceError
)
from pettycash.models import (
    PettyCashAccount, PettyCashTransaction, AccountStatus, TransactionType, to_money
)
from pettycash.schemas import Caller
from pettycash.services.audit_service import AuditService, AuditAction
from pettycash.services.numbering import get_next_number
from pettycash.services.pagination import paginate
from pettycash.services.transaction_service import TransactionLogService

logger = logging.getLogger(__name__)


def require_positive_amount(amount) -> Decimal:
    if amount is None:
        raise ValidationError("Amount is required")
    amount = to_money(amount)
    if amount <= 0:
        raise ValidationError("Amount must be greater than zero")
    return amount


class AccountService:
    """
    The only component that mutates petty cash balances.

    Every method flushes but never commits; the request handler owns the
    unit of work.
    """

    def __init__(self, db: Session):
        self.db = db
        self.transactions = TransactionLogService(db)
        self.audit = AuditService(db)

    # ---------- reads ----------

    def get_by_id(self, account_id: int) -> Optional[PettyCashAccount]:
        return self.db.query(PettyCashAccount).filter(
            PettyCashAccount.id == account_id
        ).first()

    def get_or_404(self, account_id: int) -> PettyCashAccount:
        account = self.get_by_id(account_id)
        if not account:
            raise NotFoundError(f"Petty cash account {account_id} not found")
        return account

    def get_active(self, account_id: int, lock: bool = False) -> PettyCashAccount:
        """Fetch an account that can still be mutated; retired ones read as missing"""
        query = self.db.query(PettyCashAccount).filter(
            PettyCashAccount.id == account_id,
            PettyCashAccount.status == AccountStatus.ACTIVE.value
        )
        if lock:
            query = query.with_for_update()
        account = query.first()
        if not account:
            raise NotFoundError(f"Petty cash account {account_id} not found")
        return account

    def lock_accounts(self, account_ids: Iterable[int]) -> Dict[int, PettyCashAccount]:
        """
        Lock rows in ascending id order so two opposite transfers cannot
        deadlock. Missing ids raise NotFoundError; retired accounts are
        returned and left to the caller to judge.
        """
        ids = sorted(set(account_ids))
        accounts = self.db.query(PettyCashAccount).filter(
            PettyCashAccount.id.in_(ids)
        ).order_by(PettyCashAccount.id).with_for_update().all()

        found = {account.id: account for account in accounts}
        for account_id in ids:
            if account_id not in found:
                raise NotFoundError(f"Petty cash account {account_id} not found")
        return found

    def list_accounts(self, include_deleted: bool = False, accepts_incoming: bool = None,
                      owner_id: int = None, page: int = 1, per_page: int = None) -> Dict:
        query = self.db.query(PettyCashAccount)

        if not include_deleted:
            query = query.filter(PettyCashAccount.status == AccountStatus.ACTIVE.value)
        if accepts_incoming is not None:
            query = query.filter(PettyCashAccount.accepts_incoming == accepts_incoming)
        if owner_id:
            query = query.filter(PettyCashAccount.owner_id == owner_id)

        return paginate(query.order_by(PettyCashAccount.id), page, per_page)

    def eligible_destinations(self, source: PettyCashAccount) -> List[PettyCashAccount]:
        """Accounts that may receive a transfer from ``source``"""
        return self.db.query(PettyCashAccount).filter(
            PettyCashAccount.id != source.id,
            PettyCashAccount.status == AccountStatus.ACTIVE.value,
            PettyCashAccount.accepts_incoming.is_(True)
        ).order_by(PettyCashAccount.account_name).all()

    def has_transactions(self, account_id: int) -> bool:
        return self.db.query(func.count(PettyCashTransaction.id)).filter(or_(
            PettyCashTransaction.from_account_id == account_id,
            PettyCashTransaction.to_account_id == account_id
        )).scalar() > 0

    # ---------- writes ----------

    def create(self, owner_id: int, caller: Caller, opening_balance=Decimal("0.00"),
               accepts_incoming: bool = True, owner_name: str = None,
               account_name: str = None) -> PettyCashAccount:
        opening_balance = to_money(opening_balance)
        if opening_balance < 0:
            raise ValidationError("Opening balance cannot be negative")

        account = PettyCashAccount(
            account_code=get_next_number(
                self.db, PettyCashAccount, PettyCashAccount.account_code, "PCA"
            ),
            account_name=account_name or f"{owner_name or f'User {owner_id}'} Petty Cash",
            owner_id=owner_id,
            owner_name=owner_name,
            opening_balance=opening_balance,
            current_balance=opening_balance,
            accepts_incoming=accepts_incoming,
            status=AccountStatus.ACTIVE.value
        )
        self.db.add(account)
        self.db.flush()

        self.audit.log(
            action=AuditAction.ACCOUNT_CREATED,
            resource_type="PettyCashAccount",
            resource_id=account.id,
            description=f"Opened {account.account_code} with {opening_balance:,.2f}",
            new_values={
                'owner_id': owner_id,
                'opening_balance': opening_balance,
                'accepts_incoming': accepts_incoming
            },
            caller=caller
        )
        return account

    def credit(self, account_id: int, amount, caller: Caller, transaction_date: date = None,
               reference: str = None, description: str = None) -> PettyCashTransaction:
        """Add money to an account"""
        amount = require_positive_amount(amount)
        account = self.get_active(account_id, lock=True)

        account.apply_credit(amount)
        transaction = self.transactions.append(
            TransactionType.CREDIT, amount, transaction_date, caller,
            to_account=account, reference=reference, description=description
        )

        self.audit.log(
            action=AuditAction.CREDIT_RECORDED,
            resource_type="PettyCashAccount",
            resource_id=account.id,
            description=f"{transaction.transaction_number}: credit {amount:,.2f}",
            new_values={'current_balance': account.balance},
            caller=caller
        )
        return transaction

    def debit(self, account_id: int, amount, caller: Caller, transaction_date: date = None,
              reference: str = None, description: str = None) -> PettyCashTransaction:
        """Take money out of an account; never below zero"""
        amount = require_positive_amount(amount)
        account = self.get_active(account_id, lock=True)

        account.apply_debit(amount)
        transaction = self.transactions.append(
            TransactionType.DEBIT, amount, transaction_date, caller,
            from_account=account, reference=reference, description=description
        )

        self.audit.log(
            action=AuditAction.DEBIT_RECORDED,
            resource_type="PettyCashAccount",
            resource_id=account.id,
            description=f"{transaction.transaction_number}: debit {amount:,.2f}",
            new_values={'current_balance': account.balance},
            caller=caller
        )
        return transaction

    def update_config(self, account_id: int, caller: Caller, opening_balance=None,
                      accepts_incoming: bool = None, account_name: str = None) -> PettyCashAccount:
        """
        Administrative correction of an account.

        The opening balance can only be changed before the first
        transaction; the current balance moves by the same delta so the
        replay still agrees. After that it is fixed.
        """
        account = self.get_active(account_id, lock=True)
        old_values = {
            'account_name': account.account_name,
            'opening_balance': account.opening_balance,
            'accepts_incoming': account.accepts_incoming
        }

        if opening_balance is not None:
            opening_balance = to_money(opening_balance)
            if opening_balance < 0:
                raise ValidationError("Opening balance cannot be negative")
            if opening_balance != to_money(account.opening_balance):
                if self.has_transactions(account.id):
                    raise ValidationError(
                        "Opening balance cannot be changed once the account has transactions"
                    )
                account.current_balance = opening_balance
                account.opening_balance = opening_balance

        if accepts_incoming is not None:
            account.accepts_incoming = accepts_incoming
        if account_name:
            account.account_name = account_name

        self.db.flush()

        self.audit.log(
            action=AuditAction.ACCOUNT_UPDATED,
            resource_type="PettyCashAccount",
            resource_id=account.id,
            old_values=old_values,
            new_values={
                'account_name': account.account_name,
                'opening_balance': account.opening_balance,
                'accepts_incoming': account.accepts_incoming
            },
            caller=caller
        )
        return account

    def delete(self, account_id: int, caller: Caller) -> PettyCashAccount:
        """Soft-delete an empty account; history stays resolvable"""
        account = self.get_active(account_id, lock=True)
        return self.mark_deleted(account, caller)

    def mark_deleted(self, account: PettyCashAccount, caller: Caller) -> PettyCashAccount:
        """Delete an account already locked by the caller, re-checking it is empty"""
        if account.balance != 0:
            logger.warning(
                f"Refusing to delete petty cash account {account.id} "
                f"holding {account.balance:,.2f}"
            )
            raise NonZeroBalanceError(
                f"Account '{account.account_name}' still holds {account.balance:,.2f}. "
                "Transfer the balance before deleting.",
                balance=account.balance
            )

        account.status = AccountStatus.DELETED.value
        account.deleted_at = datetime.utcnow()
        account.deleted_by = caller.username
        self.db.flush()

        self.audit.log(
            action=AuditAction.ACCOUNT_RETIRED,
            resource_type="PettyCashAccount",
            resource_id=account.id,
            description=f"Retired {account.account_code}",
            caller=caller
        )
        return account
