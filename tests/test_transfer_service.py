"""
Tests for transfers between petty cash accounts
"""
import pytest
from decimal import Decimal

from pettycash.core.exceptions import (
    DestinationNotAcceptingError, InsufficientFundsError, NotFoundError, SameAccountError
)
from pettycash.models import AuditLog, PettyCashTransaction
from pettycash.services import AccountService, AuditAction, TransferService


@pytest.fixture()
def accounts(db, caller):
    service = AccountService(db)
    source = service.create(owner_id=1, caller=caller, opening_balance=Decimal("100"),
                            accepts_incoming=False, account_name="Account A")
    destination = service.create(owner_id=2, caller=caller, opening_balance=Decimal("0"),
                                 accepts_incoming=True, account_name="Account B")
    return source, destination


class TestTransfer:

    def test_transfer_moves_value_atomically(self, db, caller, accounts):
        source, destination = accounts

        transaction = TransferService(db).transfer(source.id, destination.id, Decimal("100"), caller)

        assert source.current_balance == Decimal("0.00")
        assert destination.current_balance == Decimal("100.00")
        assert transaction.type == "transfer"
        assert transaction.from_account_id == source.id
        assert transaction.to_account_id == destination.id
        assert transaction.amount == Decimal("100.00")
        assert db.query(PettyCashTransaction).count() == 1

    def test_overdraw_leaves_both_balances_untouched(self, db, caller, accounts):
        source, destination = accounts

        with pytest.raises(InsufficientFundsError) as exc_info:
            TransferService(db).transfer(source.id, destination.id, Decimal("150"), caller)

        assert "Available balance: 100.00" in exc_info.value.message
        assert source.current_balance == Decimal("100.00")
        assert destination.current_balance == Decimal("0.00")
        assert db.query(PettyCashTransaction).count() == 0

    def test_destination_must_accept_incoming(self, db, caller, accounts):
        source, destination = accounts
        service = TransferService(db)
        service.transfer(source.id, destination.id, Decimal("40"), caller)

        with pytest.raises(DestinationNotAcceptingError):
            service.transfer(destination.id, source.id, Decimal("10"), caller)

        assert destination.current_balance == Decimal("40.00")
        assert source.current_balance == Decimal("60.00")

    def test_same_account_rejected(self, db, caller, accounts):
        source, _ = accounts

        with pytest.raises(SameAccountError):
            TransferService(db).transfer(source.id, source.id, Decimal("1"), caller)

    def test_unknown_destination(self, db, caller, accounts):
        source, _ = accounts

        with pytest.raises(NotFoundError):
            TransferService(db).transfer(source.id, 999, Decimal("1"), caller)

    def test_retired_destination_reads_as_missing(self, db, caller, accounts):
        source, _ = accounts
        empty = AccountService(db).create(owner_id=3, caller=caller)
        AccountService(db).delete(empty.id, caller)

        with pytest.raises(NotFoundError):
            TransferService(db).transfer(source.id, empty.id, Decimal("1"), caller)

        assert source.current_balance == Decimal("100.00")

    def test_transfer_is_audited(self, db, caller, accounts):
        source, destination = accounts

        transaction = TransferService(db).transfer(source.id, destination.id, Decimal("5"), caller)

        entry = db.query(AuditLog).filter(
            AuditLog.action == AuditAction.TRANSFER_COMPLETED
        ).one()
        assert entry.resource_id == transaction.id
        assert source.account_code in entry.description


class TestSequenceScenario:

    def test_drain_then_delete_without_transfer(self, db, caller, accounts):
        source, destination = accounts
        transfers = TransferService(db)
        account_service = AccountService(db)

        with pytest.raises(InsufficientFundsError):
            transfers.transfer(source.id, destination.id, Decimal("150"), caller)
        transfers.transfer(source.id, destination.id, Decimal("100"), caller)
        account_service.delete(source.id, caller)

        assert not source.is_active
        assert destination.current_balance == Decimal("100.00")
        assert db.query(PettyCashTransaction).count() == 1
