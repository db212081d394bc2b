"""Tests for TransactionWriter validation order and parsing."""

import uuid
from decimal import Decimal
from unittest.mock import MagicMock

import pytest

from ledger_service.errors import NotFoundError, StorageError, ValidationError
from ledger_service.models import LedgerEntry, TransactionType
from ledger_service.store import LedgerStore
from ledger_service.writer import TransactionWriter, parse_amount, parse_transaction_type


class TestParseAmount:
    @pytest.mark.parametrize("raw, expected", [
        ("100.50", Decimal("100.50")),
        ("0.0001", Decimal("0.0001")),
        (" 42 ", Decimal("42")),
        (7, Decimal("7")),
        ("1.50000", Decimal("1.5")),
        ("99999999999999.9999", Decimal("99999999999999.9999")),
    ])
    def test_accepts(self, raw, expected):
        assert parse_amount(raw) == expected

    @pytest.mark.parametrize("raw", [
        "0", "-1", "-0.01", "abc", "", "NaN", "Infinity", "0.00001",
        "1000000000000000", 1.5, True, None,
        "1_000", "1e2", "+5", ".5", "5.", "1,000", "\u0663",
    ])
    def test_rejects(self, raw):
        with pytest.raises(ValidationError):
            parse_amount(raw)


class TestParseTransactionType:
    def test_accepts_lowercase_values(self):
        assert parse_transaction_type("credit") is TransactionType.CREDIT
        assert parse_transaction_type("debit") is TransactionType.DEBIT

    def test_passes_enum_through(self):
        assert parse_transaction_type(TransactionType.DEBIT) is TransactionType.DEBIT

    @pytest.mark.parametrize("raw", ["Credit", "DEBIT", "refund", "", None])
    def test_rejects_unknown(self, raw):
        with pytest.raises(ValidationError):
            parse_transaction_type(raw)


class TestCreateEntryOrdering:
    @pytest.fixture
    def fake_store(self):
        return MagicMock(spec=LedgerStore)

    @pytest.mark.parametrize("amount, kind", [("0", "credit"), ("-3", "debit"), ("10", "transfer")])
    def test_validation_happens_before_store_access(self, fake_store, amount, kind):
        writer = TransactionWriter(fake_store)
        with pytest.raises(ValidationError):
            writer.create_entry(uuid.uuid4(), amount, kind)

        fake_store.account_exists.assert_not_called()
        fake_store.append.assert_not_called()

    def test_unknown_account_never_appends(self, fake_store):
        fake_store.account_exists.return_value = False
        writer = TransactionWriter(fake_store)

        with pytest.raises(NotFoundError):
            writer.create_entry(uuid.uuid4(), "10", "credit")
        fake_store.append.assert_not_called()

    def test_storage_error_propagates(self, fake_store):
        fake_store.account_exists.return_value = True
        fake_store.append.side_effect = StorageError("Failed to create transaction")
        writer = TransactionWriter(fake_store)

        with pytest.raises(StorageError):
            writer.create_entry(uuid.uuid4(), "10", "credit")
        fake_store.append.assert_called_once()

    def test_append_receives_parsed_entry(self, fake_store):
        fake_store.account_exists.return_value = True
        fake_store.append.side_effect = lambda entry: entry
        writer = TransactionWriter(fake_store)
        account_id = uuid.uuid4()

        entry = writer.create_entry(account_id, "12.34", "debit", "Coffee")

        assert isinstance(entry, LedgerEntry)
        assert entry.account_id == account_id
        assert entry.amount == Decimal("12.34")
        assert entry.transaction_type is TransactionType.DEBIT
        assert entry.description == "Coffee"


class TestCreateEntry:
    def test_create_credit_transaction(self, writer, create_test_user):
        user_id = create_test_user()
        entry = writer.create_entry(user_id, "100.50", "credit", "Test credit")

        assert entry.amount == Decimal("100.50")
        assert entry.transaction_type == TransactionType.CREDIT
        assert entry.id is not None
        assert entry.created_at is not None

    def test_create_debit_transaction(self, writer, create_test_user):
        user_id = create_test_user()
        writer.create_entry(user_id, "200.00", "credit", "Initial deposit")
        entry = writer.create_entry(user_id, "50.25", "debit", "Test debit")

        assert entry.amount == Decimal("50.25")
        assert entry.transaction_type == TransactionType.DEBIT

    def test_invalid_user_id(self, writer, store):
        missing = uuid.uuid4()
        with pytest.raises(NotFoundError):
            writer.create_entry(missing, "100.50", "credit", "Test credit")
        assert store.list_by_account(missing) == []
