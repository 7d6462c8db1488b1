"""
Tests for the confirm -> transfer -> delete retirement flow
"""
import pytest
from decimal import Decimal

from pettycash.core.exceptions import (
    DestinationNotAcceptingError, NonZeroBalanceError, NotFoundError, SameAccountError
)
from pettycash.schemas import RetirementStatusEnum, RetirementStepEnum
from pettycash.services import AccountService, RetirementService


@pytest.fixture()
def ledger(db, caller):
    service = AccountService(db)
    return {
        'holding': service.create(owner_id=1, caller=caller, opening_balance=Decimal("50"),
                                  account_name="Holding"),
        'open': service.create(owner_id=2, caller=caller, account_name="Open"),
        'closed': service.create(owner_id=3, caller=caller, accepts_incoming=False,
                                 account_name="Closed"),
        'empty': service.create(owner_id=4, caller=caller, accepts_incoming=False,
                                account_name="Empty"),
    }


class TestBegin:

    def test_empty_account_is_ready_to_delete(self, db, ledger):
        plan = RetirementService(db).begin(ledger['empty'].id)

        assert plan['status'] == RetirementStatusEnum.READY_TO_DELETE
        assert plan['next_step'] == RetirementStepEnum.DELETE
        assert plan['eligible_destinations'] == []

    def test_funded_account_requires_transfer(self, db, ledger):
        plan = RetirementService(db).begin(ledger['holding'].id)

        assert plan['status'] == RetirementStatusEnum.REQUIRES_TRANSFER
        assert plan['next_step'] == RetirementStepEnum.TRANSFER
        assert plan['balance'] == Decimal("50.00")
        assert [a.id for a in plan['eligible_destinations']] == [ledger['open'].id]

    def test_retired_account_cannot_begin(self, db, caller, ledger):
        AccountService(db).delete(ledger['empty'].id, caller)

        with pytest.raises(NotFoundError):
            RetirementService(db).begin(ledger['empty'].id)


class TestComplete:

    def test_empty_account_deleted_without_transfer(self, db, caller, ledger):
        result = RetirementService(db).complete(ledger['empty'].id, caller)

        assert result['transfer'] is None
        assert result['account'].status == "deleted"

    def test_destination_ignored_for_empty_account(self, db, caller, ledger):
        result = RetirementService(db).complete(
            ledger['empty'].id, caller, destination_account_id=ledger['open'].id
        )

        assert result['transfer'] is None
        assert ledger['open'].current_balance == Decimal("0.00")

    def test_unknown_destination_ignored_for_empty_account(self, db, caller, ledger):
        result = RetirementService(db).complete(ledger['empty'].id, caller, destination_account_id=999)

        assert result['transfer'] is None
        assert result['account'].status == "deleted"

    def test_unknown_destination_refused_for_funded_account(self, db, caller, ledger):
        with pytest.raises(NotFoundError):
            RetirementService(db).complete(ledger['holding'].id, caller, destination_account_id=999)

        assert ledger['holding'].is_active
        assert ledger['holding'].current_balance == Decimal("50.00")

    def test_plan_is_the_confirm_step(self, db, ledger):
        assert RetirementService(db).begin(ledger['holding'].id)['step'] == RetirementStepEnum.CONFIRM

    def test_funded_account_needs_destination(self, db, caller, ledger):
        with pytest.raises(NonZeroBalanceError):
            RetirementService(db).complete(ledger['holding'].id, caller)

        assert ledger['holding'].is_active
        assert ledger['holding'].current_balance == Decimal("50.00")

    def test_full_balance_drained_then_deleted(self, db, caller, ledger):
        result = RetirementService(db).complete(
            ledger['holding'].id, caller,
            destination_account_id=ledger['open'].id, reference="CLOSE-1"
        )

        assert result['transfer'].amount == Decimal("50.00")
        assert result['transfer'].reference == "CLOSE-1"
        assert ledger['holding'].status == "deleted"
        assert ledger['holding'].current_balance == Decimal("0.00")
        assert ledger['open'].current_balance == Decimal("50.00")

    def test_refusing_destination_leaves_account_active(self, db, caller, ledger):
        with pytest.raises(DestinationNotAcceptingError):
            RetirementService(db).complete(
                ledger['holding'].id, caller, destination_account_id=ledger['closed'].id
            )

        assert ledger['holding'].is_active
        assert ledger['holding'].current_balance == Decimal("50.00")
        assert ledger['closed'].current_balance == Decimal("0.00")

    def test_destination_cannot_be_the_account_itself(self, db, caller, ledger):
        with pytest.raises(SameAccountError):
            RetirementService(db).complete(
                ledger['holding'].id, caller, destination_account_id=ledger['holding'].id
            )

        assert ledger['holding'].is_active
