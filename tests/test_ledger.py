from __future__ import annotations

import unittest
from datetime import datetime, timedelta, timezone
from unittest.mock import Mock

from fortunespin.errors import (
    AccountNotFoundError,
    InsufficientBalanceError,
    ValidationError,
)
from fortunespin.ledger import MAX_DESCRIPTION_LENGTH, AccountState, Ledger, LedgerLimits
from fortunespin.models import TransactionKind
from fortunespin.store import PointStore


def _account(balance: int) -> AccountState:
    return AccountState(
        id=1,
        user_id=7,
        balance=balance,
        version=3,
        updated_at=datetime.now(timezone.utc) - timedelta(minutes=5),
    )


class LedgerArithmeticTests(unittest.TestCase):
    def setUp(self) -> None:
        self.store = Mock(spec=PointStore)
        self.ledger = Ledger(
            self.store,
            LedgerLimits(min_tx_amount=5, max_tx_amount=500, max_balance=1000),
        )

    def test_credit_adds_points(self) -> None:
        account = _account(100)
        credited = self.ledger.credit(account, 50)
        self.assertEqual(credited.balance, 150)
        self.assertEqual(credited.version, account.version)
        self.assertGreater(credited.updated_at, account.updated_at)
        self.assertEqual(account.balance, 100)

    def test_credit_rejects_non_positive_amounts(self) -> None:
        account = _account(100)
        for amount in (0, -10):
            with self.subTest(amount=amount):
                with self.assertRaises(ValidationError):
                    self.ledger.credit(account, amount)
        self.assertEqual(account.balance, 100)

    def test_credit_enforces_transaction_range(self) -> None:
        for amount in (4, 501):
            with self.subTest(amount=amount):
                with self.assertRaises(ValidationError):
                    self.ledger.credit(_account(0), amount)

    def test_credit_rejects_non_integer_amounts(self) -> None:
        for amount in (10.5, True, "10"):
            with self.subTest(amount=amount):
                with self.assertRaises(ValidationError):
                    self.ledger.credit(_account(0), amount)  # type: ignore[arg-type]

    def test_credit_over_max_balance_fails(self) -> None:
        account = _account(900)
        with self.assertRaises(ValidationError):
            self.ledger.credit(account, 101)
        self.assertEqual(account.balance, 900)
        self.assertEqual(self.ledger.credit(account, 100).balance, 1000)

    def test_debit_removes_points(self) -> None:
        self.assertEqual(self.ledger.debit(_account(100), 40).balance, 60)
        self.assertEqual(self.ledger.debit(_account(40), 40).balance, 0)

    def test_debit_more_than_balance_fails(self) -> None:
        account = _account(30)
        with self.assertRaises(InsufficientBalanceError) as ctx:
            self.ledger.debit(account, 31)
        self.assertEqual(ctx.exception.balance, 30)
        self.assertEqual(ctx.exception.amount, 31)
        self.assertEqual(account.balance, 30)

    def test_debit_enforces_transaction_range(self) -> None:
        for amount in (0, 4, 501):
            with self.subTest(amount=amount):
                with self.assertRaises(ValidationError):
                    self.ledger.debit(_account(1000), amount)

    def test_insufficient_balance_is_a_validation_error(self) -> None:
        self.assertTrue(issubclass(InsufficientBalanceError, ValidationError))


class RecordTransactionTests(unittest.TestCase):
    def setUp(self) -> None:
        self.ledger = Ledger(Mock(spec=PointStore))

    def test_record_transaction(self) -> None:
        tx = self.ledger.record_transaction(7, 50, TransactionKind.GACHA, "Gacha reward: Silver Coin")
        self.assertEqual(tx.user_id, 7)
        self.assertEqual(tx.amount, 50)
        self.assertIs(tx.kind, TransactionKind.GACHA)
        self.assertEqual(tx.signed_amount, 50)
        self.assertIsNotNone(tx.created_at.tzinfo)
        self.assertIsNone(tx.id)

    def test_spend_transaction_is_negative_in_ledger_sum(self) -> None:
        tx = self.ledger.record_transaction(7, 20, "spend", "Shop")  # type: ignore[arg-type]
        self.assertIs(tx.kind, TransactionKind.SPEND)
        self.assertEqual(tx.signed_amount, -20)

    def test_empty_description_fails(self) -> None:
        for description in ("", "   "):
            with self.subTest(description=description):
                with self.assertRaises(ValidationError):
                    self.ledger.record_transaction(7, 10, TransactionKind.SPEND, description)

    def test_description_must_fit_the_column(self) -> None:
        longest = "d" * MAX_DESCRIPTION_LENGTH
        tx = self.ledger.record_transaction(7, 10, TransactionKind.SPEND, longest)
        self.assertEqual(tx.description, longest)
        with self.assertRaises(ValidationError):
            self.ledger.record_transaction(7, 10, TransactionKind.SPEND, longest + "d")

    def test_amount_range_is_enforced(self) -> None:
        with self.assertRaises(ValidationError):
            self.ledger.record_transaction(7, 0, TransactionKind.GACHA, "x")
        with self.assertRaises(ValidationError):
            self.ledger.record_transaction(7, 100_001, TransactionKind.GACHA, "x")


class GetAccountTests(unittest.TestCase):
    def test_missing_account_raises(self) -> None:
        store = Mock(spec=PointStore)
        store.get_user_account.return_value = None
        with self.assertRaises(AccountNotFoundError):
            Ledger(store).get_account(7)

    def test_returns_store_account(self) -> None:
        store = Mock(spec=PointStore)
        account = _account(10)
        store.get_user_account.return_value = account
        self.assertIs(Ledger(store).get_account(7, for_update=True), account)
        store.get_user_account.assert_called_once_with(7, for_update=True)


if __name__ == "__main__":
    unittest.main()
