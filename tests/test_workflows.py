from __future__ import annotations

import unittest
from unittest.mock import patch

from sqlalchemy import func, select, update

from fortunespin.config import Settings
from fortunespin.db.engine import get_sessionmaker, make_engine
from fortunespin.errors import (
    AccountNotFoundError,
    InsufficientBalanceError,
    StorageError,
    UserNotFoundError,
    ValidationError,
)
from fortunespin.models import (
    Base,
    DrawResult,
    PointTransaction,
    TransactionKind,
    User,
    UserPointAccount,
)
from fortunespin.rewards import Rarity, RewardDefinition, build_catalog, load_catalog
from fortunespin.workflows import AwardOrchestrator


class FixedRandom:
    """Random source replaying a fixed sequence of samples."""

    def __init__(self, *values: float) -> None:
        self._values = list(values)

    def random(self) -> float:
        return self._values.pop(0)


BRONZE, SILVER, GOLD, DIAMOND = 0.1, 0.61, 0.97, 0.99


class AwardWorkflowTests(unittest.TestCase):
    def setUp(self) -> None:
        self.engine = make_engine("sqlite+pysqlite:///:memory:")
        Base.metadata.create_all(self.engine)
        self.Session = get_sessionmaker(self.engine)
        self.catalog = load_catalog()
        self.settings = Settings(history_default_limit=3)

    def tearDown(self) -> None:
        self.engine.dispose()

    def _seed_user(self, session, name: str = "player") -> User:
        user = User(name=name)
        session.add(user)
        session.flush()
        return user

    def _awards(self, session, *samples: float, settings: Settings | None = None) -> AwardOrchestrator:
        return AwardOrchestrator(
            session,
            catalog=self.catalog,
            random_source=FixedRandom(*samples),
            settings=settings or self.settings,
        )

    def _count(self, session, model) -> int:
        return session.scalar(select(func.count()).select_from(model))

    def test_first_draw_creates_account_and_credit(self) -> None:
        with self.Session.begin() as session:
            user = self._seed_user(session)
            result = self._awards(session, SILVER).execute_draw(user.id)

        self.assertIsNotNone(result.id)
        self.assertEqual(result.reward_name, "Silver Coin")
        self.assertIs(result.rarity, Rarity.RARE)
        self.assertEqual(result.points_earned, 50)

        with self.Session() as session:
            account = session.scalars(
                select(UserPointAccount).where(UserPointAccount.user_id == user.id)
            ).one()
            self.assertEqual(account.balance, 50)
            self.assertEqual(account.version, 1)

            transactions = session.scalars(select(PointTransaction)).all()
            self.assertEqual(len(transactions), 1)
            tx = transactions[0]
            self.assertIs(tx.kind, TransactionKind.GACHA)
            self.assertEqual(tx.amount, 50)
            self.assertEqual(tx.description, "Gacha reward: Silver Coin")
            self.assertEqual(tx.draw_result_id, result.id)

    def test_draws_accumulate_on_existing_account(self) -> None:
        with self.Session.begin() as session:
            user = self._seed_user(session)
            awards = self._awards(session, BRONZE, GOLD, DIAMOND)
            for _ in range(3):
                awards.execute_draw(user.id)
            self.assertEqual(awards.get_balance(user.id), 10 + 200 + 1000)
            self.assertEqual(self._count(session, UserPointAccount), 1)
            self.assertEqual(self._count(session, PointTransaction), 3)

    def test_unknown_user_is_rejected_without_side_effects(self) -> None:
        with self.Session.begin() as session:
            awards = self._awards(session, SILVER)
            with self.assertRaises(UserNotFoundError):
                awards.execute_draw(404)
            with self.assertRaises(UserNotFoundError):
                awards.get_history(404, 5)
            with self.assertRaises(UserNotFoundError):
                awards.get_balance(404)
            self.assertEqual(self._count(session, DrawResult), 0)
            self.assertEqual(self._count(session, UserPointAccount), 0)

    def test_history_returns_most_recent_first(self) -> None:
        with self.Session.begin() as session:
            user = self._seed_user(session)
            awards = self._awards(session, BRONZE, SILVER, GOLD, DIAMOND, BRONZE)
            results = [awards.execute_draw(user.id) for _ in range(5)]

            history = awards.get_history(user.id, 2)
            self.assertEqual([r.id for r in history], [results[4].id, results[3].id])

            default_page = awards.get_history(user.id)
            self.assertEqual(len(default_page), 3)

    def test_history_limit_must_be_positive(self) -> None:
        with self.Session.begin() as session:
            user = self._seed_user(session)
            awards = self._awards(session)
            for limit in (0, -1):
                with self.subTest(limit=limit):
                    with self.assertRaises(ValidationError):
                        awards.get_history(user.id, limit)
                    with self.assertRaises(ValidationError):
                        awards.get_transaction_history(user.id, limit)

    def test_balance_is_zero_before_first_draw(self) -> None:
        with self.Session.begin() as session:
            user = self._seed_user(session)
            self.assertEqual(self._awards(session).get_balance(user.id), 0)

    def test_credit_over_max_balance_leaves_nothing_behind(self) -> None:
        settings = Settings(max_balance=60, max_tx_amount=60)
        self.catalog = build_catalog([
            RewardDefinition(1, "Pebble", Rarity.COMMON, 10, 0.5),
            RewardDefinition(2, "Shell", Rarity.RARE, 50, 0.5),
        ])
        with self.Session.begin() as session:
            user = self._seed_user(session)
            awards = self._awards(session, SILVER, BRONZE, BRONZE, settings=settings)
            awards.execute_draw(user.id)
            awards.execute_draw(user.id)
            with self.assertRaises(ValidationError):
                awards.execute_draw(user.id)

            self.assertEqual(awards.get_balance(user.id), 60)
            self.assertEqual(self._count(session, DrawResult), 2)
            self.assertEqual(self._count(session, PointTransaction), 2)

    def test_storage_failure_rolls_back_the_whole_award(self) -> None:
        with self.Session.begin() as session:
            user = self._seed_user(session)
            awards = self._awards(session, GOLD)
            with patch.object(
                awards.store, "save_transaction", side_effect=StorageError("write failed")
            ):
                with self.assertLogs("fortunespin.workflows", "ERROR"):
                    with self.assertRaises(StorageError):
                        awards.execute_draw(user.id)

            self.assertEqual(self._count(session, DrawResult), 0)
            self.assertEqual(self._count(session, UserPointAccount), 0)
            self.assertEqual(awards.get_balance(user.id), 0)
            self.assertTrue(awards.reconcile_account(user.id).consistent)

    def test_spend_points(self) -> None:
        with self.Session.begin() as session:
            user = self._seed_user(session)
            awards = self._awards(session, GOLD)
            awards.execute_draw(user.id)

            tx = awards.spend_points(user.id, 150, "Avatar frame")
            self.assertIs(tx.kind, TransactionKind.SPEND)
            self.assertEqual(tx.amount, 150)
            self.assertEqual(awards.get_balance(user.id), 50)

            with self.assertRaises(InsufficientBalanceError):
                awards.spend_points(user.id, 51, "Too expensive")
            self.assertEqual(awards.get_balance(user.id), 50)

            history = awards.get_transaction_history(user.id, 10)
            self.assertEqual(
                [(t.kind, t.amount) for t in history],
                [(TransactionKind.SPEND, 150), (TransactionKind.GACHA, 200)],
            )

    def test_spend_storage_failure_keeps_balance(self) -> None:
        with self.Session.begin() as session:
            user = self._seed_user(session)
            awards = self._awards(session, GOLD)
            awards.execute_draw(user.id)
            with patch.object(
                awards.store, "save_transaction", side_effect=StorageError("write failed")
            ):
                with self.assertLogs("fortunespin.workflows", "ERROR"):
                    with self.assertRaises(StorageError):
                        awards.spend_points(user.id, 50, "Badge")
            self.assertEqual(awards.get_balance(user.id), 200)
            self.assertTrue(awards.reconcile_account(user.id).consistent)

    def test_spend_without_account_fails(self) -> None:
        with self.Session.begin() as session:
            user = self._seed_user(session)
            with self.assertRaises(AccountNotFoundError):
                self._awards(session).spend_points(user.id, 10, "Nothing to spend")

    def test_spend_requires_description(self) -> None:
        with self.Session.begin() as session:
            user = self._seed_user(session)
            awards = self._awards(session, SILVER)
            awards.execute_draw(user.id)
            with self.assertRaises(ValidationError):
                awards.spend_points(user.id, 10, " ")
            self.assertEqual(awards.get_balance(user.id), 50)

    def test_reconcile_detects_out_of_band_balance_change(self) -> None:
        with self.Session.begin() as session:
            user = self._seed_user(session)
            awards = self._awards(session, BRONZE, SILVER)
            awards.execute_draw(user.id)
            awards.execute_draw(user.id)
            awards.spend_points(user.id, 20, "Sticker")

            report = awards.reconcile_account(user.id)
            self.assertTrue(report.consistent)
            self.assertEqual(report.stored_balance, 40)
            self.assertEqual(report.ledger_balance, 40)
            self.assertEqual(report.draw_count, 2)
            self.assertEqual(report.draw_credit_count, 2)

            session.execute(
                update(UserPointAccount)
                .where(UserPointAccount.user_id == user.id)
                .values(balance=UserPointAccount.balance + 7)
            )
            with self.assertLogs("fortunespin.workflows", "WARNING"):
                report = awards.reconcile_account(user.id)
            self.assertFalse(report.consistent)
            self.assertEqual(report.balance_difference, 7)

    def test_results_serialize_for_clients(self) -> None:
        with self.Session.begin() as session:
            user = self._seed_user(session)
            awards = self._awards(session, DIAMOND)
            result = awards.execute_draw(user.id)
            payload = result.to_dict()
            self.assertEqual(payload["item_name"], "Diamond")
            self.assertEqual(payload["rarity"], "Legendary")
            self.assertEqual(payload["points_earned"], 1000)
            self.assertTrue(payload["created_at"].endswith("+00:00"))

            tx_payload = awards.get_transaction_history(user.id, 1)[0].to_dict()
            self.assertEqual(tx_payload["type"], "gacha")
            self.assertEqual(tx_payload["amount"], 1000)

    def test_orchestrator_needs_startup_catalog_and_settings(self) -> None:
        with self.Session.begin() as session:
            with self.assertRaises(TypeError):
                AwardOrchestrator(session)  # type: ignore[call-arg]
            with self.assertRaises(TypeError):
                AwardOrchestrator(session, settings=self.settings)  # type: ignore[call-arg]

    def test_orchestrators_share_one_catalog(self) -> None:
        with self.Session.begin() as session:
            first = self._awards(session)
            second = self._awards(session)
            self.assertIs(first.catalog, self.catalog)
            self.assertIs(second.catalog, first.catalog)

    def test_catalog_outside_ledger_limits_is_rejected_before_any_draw(self) -> None:
        with self.Session.begin() as session:
            user = self._seed_user(session)
            with self.assertRaises(ValidationError):
                self._awards(session, DIAMOND, settings=Settings(max_tx_amount=500))
            self.assertEqual(self._count(session, DrawResult), 0)
            self.assertEqual(self._count(session, UserPointAccount), 0)
            self.assertEqual(self._awards(session).get_balance(user.id), 0)


if __name__ == "__main__":
    unittest.main()
