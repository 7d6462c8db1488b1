"""
Tests for customer outstanding amounts, customer transactions and invoices
"""
import pytest
from datetime import date
from decimal import Decimal

from pettycash.core.exceptions import (
    InsufficientFundsError, LinkedToOrderError, NotFoundError, ValidationError
)
from pettycash.models import CustomerTransaction
from pettycash.schemas import CustomerTransactionFilters, CustomerTransactionTypeEnum
from pettycash.services import CustomerService


@pytest.fixture()
def customer(db, caller):
    return CustomerService(db).create_customer("Ravi Traders", caller, phone="98450")


class TestCustomerTransactions:

    def test_credit_raises_and_debit_lowers_outstanding(self, db, caller, customer):
        service = CustomerService(db)

        credit = service.record(customer.id, "credit", Decimal("100"), caller)
        service.record(customer.id, "debit", Decimal("40"), caller, payment_mode="upi")

        assert customer.outstanding_amount == Decimal("60.00")
        assert credit.transaction_number == "CT-00001"
        assert credit.collected_by_name == "cashier"
        assert credit.collected_by_id == 1

    def test_outstanding_never_negative(self, db, caller, customer):
        service = CustomerService(db)
        service.record(customer.id, "credit", Decimal("100"), caller)

        with pytest.raises(InsufficientFundsError):
            service.record(customer.id, "debit", Decimal("150"), caller)

        assert customer.outstanding_amount == Decimal("100.00")
        assert db.query(CustomerTransaction).count() == 1

    def test_only_credit_or_debit(self, db, caller, customer):
        with pytest.raises(ValidationError):
            CustomerService(db).record(customer.id, "transfer", Decimal("1"), caller)

    def test_unknown_customer(self, db, caller):
        with pytest.raises(NotFoundError):
            CustomerService(db).record(404, "credit", Decimal("1"), caller)

    def test_edit_amount_reapplies_delta(self, db, caller, customer):
        service = CustomerService(db)
        transaction = service.record(customer.id, "credit", Decimal("100"), caller)

        service.update_transaction(transaction.id, caller, amount=Decimal("80"), note="fixed")

        assert transaction.amount == Decimal("80.00")
        assert transaction.note == "fixed"
        assert customer.outstanding_amount == Decimal("80.00")
        assert service.replay_outstanding(customer) == Decimal("80.00")

    def test_listing_includes_current_balance(self, db, caller, customer):
        service = CustomerService(db)
        service.record(customer.id, "credit", Decimal("10"), caller, transaction_date=date(2024, 3, 1))
        service.record(customer.id, "debit", Decimal("4"), caller, transaction_date=date(2024, 3, 2))

        page = service.list_transactions(customer.id, CustomerTransactionFilters())
        credits = service.list_transactions(
            customer.id, CustomerTransactionFilters(type=CustomerTransactionTypeEnum.CREDIT)
        )

        assert page['current_balance'] == Decimal("6.00")
        assert [t.type for t in page['data']] == ["debit", "credit"]
        assert credits['total'] == 1

    def test_search_spans_customers(self, db, caller, customer):
        service = CustomerService(db)
        other = service.create_customer("Meena Stores", caller)
        service.record(customer.id, "credit", Decimal("10"), caller, transaction_date=date(2024, 3, 1))
        service.record(other.id, "credit", Decimal("20"), caller, transaction_date=date(2024, 3, 2))
        service.record(other.id, "debit", Decimal("5"), caller, transaction_date=date(2024, 3, 3))

        everything = service.search_transactions(CustomerTransactionFilters())
        others = service.search_transactions(CustomerTransactionFilters(customer_id=other.id))

        assert everything['total'] == 3
        assert [t.customer_id for t in everything['data']] == [other.id, other.id, customer.id]
        assert [t.type for t in others['data']] == ["debit", "credit"]
        assert 'current_balance' not in everything

    def test_out_of_range_amount_rejected(self, db, caller, customer):
        with pytest.raises(ValidationError):
            CustomerService(db).record(customer.id, "credit", Decimal("1e27"), caller)

        assert customer.outstanding_amount == Decimal("0.00")
        assert db.query(CustomerTransaction).count() == 0


class TestInvoices:

    def test_invoice_creates_mirrored_credit(self, db, caller, customer):
        invoice = CustomerService(db).record_invoice(customer.id, Decimal("200"), caller)

        mirrored = db.query(CustomerTransaction).filter(
            CustomerTransaction.invoice_id == invoice.id
        ).one()
        assert invoice.invoice_number == "INV-00001"
        assert mirrored.type == "credit"
        assert mirrored.payment_mode == "credit"
        assert mirrored.amount == Decimal("200.00")
        assert customer.outstanding_amount == Decimal("200.00")

    def test_linked_transaction_cannot_be_edited_directly(self, db, caller, customer):
        service = CustomerService(db)
        invoice = service.record_invoice(customer.id, Decimal("200"), caller)
        mirrored = db.query(CustomerTransaction).filter_by(invoice_id=invoice.id).one()

        with pytest.raises(LinkedToOrderError):
            service.update_transaction(mirrored.id, caller, amount=Decimal("10"))

        assert mirrored.amount == Decimal("200.00")

    def test_invoice_edit_flows_to_ledger(self, db, caller, customer):
        service = CustomerService(db)
        invoice = service.record_invoice(customer.id, Decimal("200"), caller)
        service.record(customer.id, "debit", Decimal("40"), caller)

        service.update_invoice(invoice.id, caller, amount=Decimal("150"))

        mirrored = db.query(CustomerTransaction).filter_by(invoice_id=invoice.id).one()
        assert invoice.amount == Decimal("150.00")
        assert mirrored.amount == Decimal("150.00")
        assert customer.outstanding_amount == Decimal("110.00")
        assert service.replay_outstanding(customer) == Decimal("110.00")
