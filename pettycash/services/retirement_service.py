"""
Retirement Service - Drain-then-delete protocol for petty cash accounts

    confirm --(balance == 0)--> delete
    confirm --(balance  > 0)--> transfer --> delete

The transfer and the delete run in the caller's single unit of work, so
there is never a drained-but-still-active account to resume from.
"""
from typing import Dict
from sqlalchemy.orm import Session
from datetime import date
import logging

from pettycash.core.exceptions import NonZeroBalanceError, NotFoundError
from pettycash.schemas import Caller, RetirementStatusEnum, RetirementStepEnum
from pettycash.services.account_service import AccountService
from pettycash.services.transfer_service import TransferService

logger = logging.getLogger(__name__)


class RetirementService:
    def __init__(self, db: Session):
        self.db = db
        self.accounts = AccountService(db)
        self.transfers = TransferService(db)

    def begin(self, account_id: int) -> Dict:
        """The confirm step: what has to happen before this account can go"""
        account = self.accounts.get_active(account_id)
        balance = account.balance

        if balance == 0:
            return {
                'account_id': account.id,
            'step': RetirementStepEnum.CONFIRM,
                'status': RetirementStatusEnum.READY_TO_DELETE,
                'balance': balance,
                'next_step': RetirementStepEnum.DELETE,
                'eligible_destinations': [],
            }

        return {
            'account_id': account.id,
            'step': RetirementStepEnum.CONFIRM,
            'status': RetirementStatusEnum.REQUIRES_TRANSFER,
            'balance': balance,
            'next_step': RetirementStepEnum.TRANSFER,
            'eligible_destinations': self.accounts.eligible_destinations(account),
        }

    def complete(self, account_id: int, caller: Caller, destination_account_id: int = None,
                 transaction_date: date = None, reference: str = None) -> Dict:
        """
        Drain the full balance into ``destination_account_id`` if there is
        one, then delete. Any failure leaves the account active with its
        balance untouched.
        """
        account = self.accounts.lock_accounts([account_id])[account_id]
        if not account.is_active:
            raise NotFoundError(f"Petty cash account {account_id} not found")

        transfer = None
        balance = account.balance
        if balance > 0:
            if destination_account_id is None:
                raise NonZeroBalanceError(
                    f"Account '{account.account_name}' holds {balance:,.2f}; "
                    "choose an account to receive it before deleting.",
                    balance=balance
                )
            destination = account
            if destination_account_id != account_id:
                destination = self.accounts.lock_accounts(
                    [account_id, destination_account_id]
                )[destination_account_id]
            # Whole balance only; a partial drain never unblocks deletion
            transfer = self.transfers.transfer_locked(
                account, destination, balance, caller,
                transaction_date=transaction_date,
                reference=reference,
                description=f"Balance transfer before closing {account.account_name}"
            )
        elif destination_account_id is not None:
            logger.info(
                f"Account {account.id} already empty; ignoring destination {destination_account_id}"
            )

        # Re-verified under the same lock that drained it
        self.accounts.mark_deleted(account, caller)
        logger.info(f"Retired petty cash account {account.id}")

        return {'account': account, 'transfer': transfer}
