"""
Transfer Service - Moves value between two petty cash accounts
"""
from sqlalchemy.orm import Session
from datetime import date
import logging

from pettycash.core.exceptions import (
    NotFoundError, SameAccountError, DestinationNotAcceptingError
)
from pettycash.models import PettyCashAccount, PettyCashTransaction, TransactionType
from pettycash.schemas import Caller
from pettycash.services.account_service import AccountService, require_positive_amount
from pettycash.services.audit_service import AuditService, AuditAction
from pettycash.services.transaction_service import TransactionLogService

logger = logging.getLogger(__name__)


class TransferService:
    def __init__(self, db: Session):
        self.db = db
        self.accounts = AccountService(db)
        self.transactions = TransactionLogService(db)
        self.audit = AuditService(db)

    def transfer(self, from_account_id: int, to_account_id: int, amount, caller: Caller,
                 transaction_date: date = None, reference: str = None,
                 description: str = None) -> PettyCashTransaction:
        """
        Debit one account and credit another as a single ledger event.

        Both rows are locked in ascending id order, every precondition is
        checked before either balance moves, and exactly one ``transfer``
        transaction is appended. Nothing is committed here.
        """
        amount = require_positive_amount(amount)

        if from_account_id == to_account_id:
            raise SameAccountError("Cannot transfer funds to the same account")

        locked = self.accounts.lock_accounts([from_account_id, to_account_id])
        source = locked[from_account_id]
        destination = locked[to_account_id]

        return self.transfer_locked(
            source, destination, amount, caller,
            transaction_date=transaction_date, reference=reference, description=description
        )

    def transfer_locked(self, source: PettyCashAccount, destination: PettyCashAccount,
                        amount, caller: Caller, transaction_date: date = None,
                        reference: str = None, description: str = None) -> PettyCashTransaction:
        """Transfer between two accounts the caller has already locked"""
        amount = require_positive_amount(amount)

        if source.id == destination.id:
            raise SameAccountError("Cannot transfer funds to the same account")
        for account in (source, destination):
            if not account.is_active:
                raise NotFoundError(f"Petty cash account {account.id} not found")
        if not destination.accepts_incoming:
            logger.warning(
                f"Transfer {source.id}->{destination.id} rejected: destination not accepting"
            )
            raise DestinationNotAcceptingError(
                f"Account '{destination.account_name}' does not accept incoming amounts"
            )

        # apply_debit raises InsufficientFundsError before anything moves
        source.apply_debit(amount)
        destination.apply_credit(amount)

        transaction = self.transactions.append(
            TransactionType.TRANSFER, amount, transaction_date, caller,
            from_account=source, to_account=destination,
            reference=reference,
            description=description or f"Transfer from {source.account_name} to {destination.account_name}"
        )

        self.audit.log(
            action=AuditAction.TRANSFER_COMPLETED,
            resource_type="PettyCashTransaction",
            resource_id=transaction.id,
            description=f"{transaction.transaction_number}: {amount:,.2f} "
                        f"{source.account_code} -> {destination.account_code}",
            new_values={
                'from_balance': source.balance,
                'to_balance': destination.balance
            },
            caller=caller
        )
        logger.info(
            f"Transfer {transaction.transaction_number} of {amount:,.2f} "
            f"from account {source.id} to account {destination.id}"
        )
        return transaction
