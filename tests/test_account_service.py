"""
Tests for petty cash accounts: creation, credit, debit, configuration and deletion
"""
import pytest
from decimal import Decimal

from pettycash.core.exceptions import (
    InsufficientFundsError, NonZeroBalanceError, NotFoundError, ValidationError
)
from pettycash.models import AuditLog, PettyCashTransaction
from pettycash.services import AccountService, AuditAction


class TestCreateAccount:

    def test_create_sets_balance_to_opening(self, db, caller):
        account = AccountService(db).create(
            owner_id=7, caller=caller, opening_balance=Decimal("250.00"), owner_name="Asha"
        )

        assert account.account_code == "PCA-00001"
        assert account.account_name == "Asha Petty Cash"
        assert account.current_balance == Decimal("250.00")
        assert account.opening_balance == Decimal("250.00")
        assert account.accepts_incoming is True
        assert account.is_active

    def test_codes_are_sequential(self, db, caller):
        service = AccountService(db)
        first = service.create(owner_id=1, caller=caller)
        second = service.create(owner_id=2, caller=caller)

        assert first.account_code == "PCA-00001"
        assert second.account_code == "PCA-00002"

    def test_negative_opening_balance_rejected(self, db, caller):
        with pytest.raises(ValidationError):
            AccountService(db).create(owner_id=1, caller=caller, opening_balance=Decimal("-1"))

    def test_creation_is_audited(self, db, caller):
        account = AccountService(db).create(owner_id=1, caller=caller)

        entry = db.query(AuditLog).filter(AuditLog.resource_id == account.id).one()
        assert entry.action == AuditAction.ACCOUNT_CREATED
        assert entry.username == "cashier"


class TestCreditDebit:

    def test_credit_raises_balance_and_logs_transaction(self, db, caller):
        service = AccountService(db)
        account = service.create(owner_id=1, caller=caller, opening_balance=Decimal("10"))

        transaction = service.credit(account.id, Decimal("15.50"), caller, reference="R-1")

        assert account.current_balance == Decimal("25.50")
        assert transaction.type == "credit"
        assert transaction.to_account_id == account.id
        assert transaction.from_account_id is None
        assert transaction.transaction_number == "PCT-00001"
        assert transaction.reconciliation_status == "in_queue"
        assert transaction.created_by_name == "cashier"

    def test_debit_cannot_go_below_zero(self, db, caller):
        service = AccountService(db)
        account = service.create(owner_id=1, caller=caller, opening_balance=Decimal("20"))

        with pytest.raises(InsufficientFundsError) as exc_info:
            service.debit(account.id, Decimal("20.01"), caller)

        assert exc_info.value.available == Decimal("20.00")
        assert exc_info.value.requested == Decimal("20.01")
        assert account.current_balance == Decimal("20.00")
        assert db.query(PettyCashTransaction).count() == 0

    def test_debit_to_exactly_zero(self, db, caller):
        service = AccountService(db)
        account = service.create(owner_id=1, caller=caller, opening_balance=Decimal("20"))

        service.debit(account.id, Decimal("20"), caller)

        assert account.current_balance == Decimal("0.00")

    @pytest.mark.parametrize("amount", [Decimal("0"), Decimal("-5"), None])
    def test_non_positive_amount_rejected(self, db, caller, amount):
        service = AccountService(db)
        account = service.create(owner_id=1, caller=caller, opening_balance=Decimal("20"))

        with pytest.raises(ValidationError):
            service.credit(account.id, amount, caller)
        with pytest.raises(ValidationError):
            service.debit(account.id, amount, caller)

    @pytest.mark.parametrize("amount", [Decimal("1e27"), Decimal("10000000000000"), Decimal("NaN")])
    def test_out_of_range_amount_rejected(self, db, caller, amount):
        service = AccountService(db)
        account = service.create(owner_id=1, caller=caller, opening_balance=Decimal("20"))

        with pytest.raises(ValidationError):
            service.credit(account.id, amount, caller)

        assert account.current_balance == Decimal("20.00")
        assert db.query(PettyCashTransaction).count() == 0

    def test_credit_cannot_push_balance_past_column_limit(self, db, caller):
        service = AccountService(db)
        account = service.create(owner_id=1, caller=caller, opening_balance=Decimal("9999999999999.00"))

        with pytest.raises(ValidationError):
            service.credit(account.id, Decimal("1"), caller)

        assert account.current_balance == Decimal("9999999999999.00")

    def test_unknown_account(self, db, caller):
        with pytest.raises(NotFoundError):
            AccountService(db).credit(999, Decimal("1"), caller)


class TestUpdateConfig:

    def test_opening_balance_editable_before_first_transaction(self, db, caller):
        service = AccountService(db)
        account = service.create(owner_id=1, caller=caller, opening_balance=Decimal("100"))

        service.update_config(account.id, caller, opening_balance=Decimal("80"))

        assert account.opening_balance == Decimal("80.00")
        assert account.current_balance == Decimal("80.00")

    def test_opening_balance_fixed_after_first_transaction(self, db, caller):
        service = AccountService(db)
        account = service.create(owner_id=1, caller=caller, opening_balance=Decimal("100"))
        service.debit(account.id, Decimal("10"), caller)

        with pytest.raises(ValidationError):
            service.update_config(account.id, caller, opening_balance=Decimal("200"))

        assert account.opening_balance == Decimal("100.00")
        assert account.current_balance == Decimal("90.00")

    def test_toggle_accepts_incoming_and_rename(self, db, caller):
        service = AccountService(db)
        account = service.create(owner_id=1, caller=caller)

        service.update_config(account.id, caller, accepts_incoming=False, account_name="Front Desk")

        assert account.accepts_incoming is False
        assert account.account_name == "Front Desk"


class TestDelete:

    def test_delete_requires_zero_balance(self, db, caller):
        service = AccountService(db)
        account = service.create(owner_id=1, caller=caller, opening_balance=Decimal("5"))

        with pytest.raises(NonZeroBalanceError) as exc_info:
            service.delete(account.id, caller)

        assert exc_info.value.balance == Decimal("5.00")
        assert account.is_active

    def test_deleted_account_is_hidden_but_resolvable(self, db, caller):
        service = AccountService(db)
        account = service.create(owner_id=1, caller=caller)

        service.delete(account.id, caller)

        assert account.status == "deleted"
        assert account.deleted_by == "cashier"
        assert service.get_or_404(account.id) is account
        assert service.list_accounts()['total'] == 0
        assert service.list_accounts(include_deleted=True)['total'] == 1
        with pytest.raises(NotFoundError):
            service.credit(account.id, Decimal("1"), caller)


class TestListAccounts:

    def test_filters_and_page_size_clamp(self, db, caller):
        service = AccountService(db)
        for owner_id in range(1, 4):
            service.create(owner_id=owner_id, caller=caller, accepts_incoming=owner_id != 2)

        page = service.list_accounts(per_page=2)
        assert page['total'] == 3
        assert page['last_page'] == 2
        assert len(page['data']) == 2

        assert service.list_accounts(accepts_incoming=False)['total'] == 1
        assert service.list_accounts(owner_id=3)['data'][0].owner_id == 3
        assert service.list_accounts(per_page=1000)['per_page'] == 100
