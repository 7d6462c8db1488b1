"""
Transaction Log Service - Petty Cash Ledger Entries, Listing, Balance Replay
"""
from typing import Optional, Dict
from sqlalchemy.orm import Session
from sqlalchemy import func, or_
from decimal import Decimal
from datetime import date
import logging

from pettycash.core.exceptions import (
    NotFoundError, ValidationError, DestinationNotAcceptingError
)
from pettycash.models import (
    PettyCashAccount, PettyCashTransaction, TransactionType, to_money
)
from pettycash.schemas import Caller, TransactionFilters
from pettycash.services.audit_service import AuditService, AuditAction
from pettycash.services.numbering import get_next_number
from pettycash.services.pagination import paginate

logger = logging.getLogger(__name__)


class TransactionLogService:
    """Append-mostly record of petty cash credits, debits and transfers"""

    def __init__(self, db: Session):
        self.db = db

    def get_by_id(self, transaction_id: int) -> Optional[PettyCashTransaction]:
        return self.db.query(PettyCashTransaction).filter(
            PettyCashTransaction.id == transaction_id
        ).first()

    def get_or_404(self, transaction_id: int) -> PettyCashTransaction:
        transaction = self.get_by_id(transaction_id)
        if not transaction:
            raise NotFoundError(f"Petty cash transaction {transaction_id} not found")
        return transaction

    def get_next_number(self) -> str:
        return get_next_number(
            self.db, PettyCashTransaction, PettyCashTransaction.transaction_number, "PCT"
        )

    def append(self, tx_type: TransactionType, amount: Decimal,
               transaction_date: date, caller: Caller,
               from_account: PettyCashAccount = None,
               to_account: PettyCashAccount = None,
               reference: str = None, description: str = None) -> PettyCashTransaction:
        """Record a ledger event. Balances are moved by the caller, not here."""
        transaction = PettyCashTransaction(
            transaction_number=self.get_next_number(),
            type=tx_type.value,
            amount=to_money(amount),
            from_account_id=from_account.id if from_account else None,
            to_account_id=to_account.id if to_account else None,
            transaction_date=transaction_date or date.today(),
            reference=reference,
            description=description,
            created_by_id=caller.user_id,
            created_by_name=caller.username
        )
        self.db.add(transaction)
        self.db.flush()
        return transaction

    def list_transactions(self, filters: TransactionFilters) -> Dict:
        """Page of transactions, newest first"""
        query = self.db.query(PettyCashTransaction)

        if filters.account_id:
            query = query.filter(or_(
                PettyCashTransaction.from_account_id == filters.account_id,
                PettyCashTransaction.to_account_id == filters.account_id
            ))
        if filters.type:
            query = query.filter(PettyCashTransaction.type == filters.type.value)
        if filters.reconciliation_status:
            query = query.filter(
                PettyCashTransaction.reconciliation_status == filters.reconciliation_status.value
            )
        if filters.date_from:
            query = query.filter(PettyCashTransaction.transaction_date >= filters.date_from)
        if filters.date_to:
            query = query.filter(PettyCashTransaction.transaction_date <= filters.date_to)

        query = query.order_by(
            PettyCashTransaction.transaction_date.desc(),
            PettyCashTransaction.id.desc()
        )
        return paginate(query, filters.page, filters.per_page)

    def replay_balance(self, account: PettyCashAccount) -> Decimal:
        """Recompute a balance from the opening balance and full history"""
        incoming = self.db.query(func.sum(PettyCashTransaction.amount)).filter(
            PettyCashTransaction.to_account_id == account.id
        ).scalar() or Decimal("0")

        outgoing = self.db.query(func.sum(PettyCashTransaction.amount)).filter(
            PettyCashTransaction.from_account_id == account.id
        ).scalar() or Decimal("0")

        return to_money(account.opening_balance) + to_money(incoming) - to_money(outgoing)

    def verify_balance(self, account: PettyCashAccount) -> Dict:
        """Compare the incrementally maintained balance with a full replay"""
        replayed = self.replay_balance(account)
        count = self.db.query(func.count(PettyCashTransaction.id)).filter(or_(
            PettyCashTransaction.from_account_id == account.id,
            PettyCashTransaction.to_account_id == account.id
        )).scalar()

        if replayed != account.balance:
            logger.error(
                f"Balance drift on petty cash account {account.id}: "
                f"stored={account.balance} replayed={replayed}"
            )

        return {
            'account_id': account.id,
            'opening_balance': to_money(account.opening_balance),
            'current_balance': account.balance,
            'replayed_balance': replayed,
            'transaction_count': count,
            'is_consistent': replayed == account.balance,
        }

    def update(self, transaction_id: int, caller: Caller,
               amount: Decimal = None, description: str = None) -> PettyCashTransaction:
        """
        Correct the amount and/or description of a transaction.

        An amount change is re-applied as a delta to every account the
        transaction references, with the same locking and non-negativity
        rules as a fresh credit/debit/transfer.
        """
        from pettycash.services.account_service import AccountService

        transaction = self.get_or_404(transaction_id)
        old_values = {'amount': transaction.amount, 'description': transaction.description}

        if amount is not None:
            amount = to_money(amount)
            if amount <= 0:
                raise ValidationError("Amount must be greater than zero")

            delta = amount - to_money(transaction.amount)
            if delta != 0:
                accounts = AccountService(self.db).lock_accounts(transaction.account_ids)
                for account in accounts.values():
                    if not account.is_active:
                        raise ValidationError(
                            f"Cannot change the amount of {transaction.transaction_number}: "
                            f"account '{account.account_name}' has been retired"
                        )

                source = accounts.get(transaction.from_account_id)
                destination = accounts.get(transaction.to_account_id)

                if (delta > 0 and destination is not None and source is not None
                        and not destination.accepts_incoming):
                    raise DestinationNotAcceptingError(
                        f"Account '{destination.account_name}' does not accept incoming amounts"
                    )

                # Debit side first so a shortfall raises before anything moves
                if delta > 0:
                    if source is not None:
                        source.apply_debit(delta)
                    if destination is not None:
                        destination.apply_credit(delta)
                else:
                    if destination is not None:
                        destination.apply_debit(-delta)
                    if source is not None:
                        source.apply_credit(-delta)

                transaction.amount = amount

        if description is not None:
            transaction.description = description

        self.db.flush()

        AuditService(self.db).log(
            action=AuditAction.TRANSACTION_UPDATED,
            resource_type="PettyCashTransaction",
            resource_id=transaction.id,
            description=f"Updated {transaction.transaction_number}",
            old_values=old_values,
            new_values={'amount': transaction.amount, 'description': transaction.description},
            caller=caller
        )
        return transaction
