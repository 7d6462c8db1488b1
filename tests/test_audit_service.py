from decimal import Decimal

from pettycash.services import AccountService, AuditAction, AuditService


def test_history_for_resource_newest_first(db, caller) -> None:
    accounts = AccountService(db)
    account = accounts.create(owner_id=1, caller=caller, opening_balance=Decimal("10"))
    accounts.credit(account.id, Decimal("5"), caller)

    history = AuditService(db).get_by_resource("PettyCashAccount", account.id)

    assert [entry.action for entry in history] == [
        AuditAction.CREDIT_RECORDED, AuditAction.ACCOUNT_CREATED
    ]
    assert '"current_balance": "15.00"' in history[0].new_values


def test_recent_filters_by_action(db, caller) -> None:
    accounts = AccountService(db)
    first = accounts.create(owner_id=1, caller=caller)
    accounts.create(owner_id=2, caller=caller)
    accounts.delete(first.id, caller)

    recent = AuditService(db).get_recent(action=AuditAction.ACCOUNT_RETIRED)

    assert len(recent) == 1
    assert recent[0].resource_id == first.id
    assert len(AuditService(db).get_recent(user_id=1)) == 3
