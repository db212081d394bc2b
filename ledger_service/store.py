"""
Durable ledger storage.

LedgerStore is the only code that talks SQL about ledger entries. Every
operation opens its own session on the shared Database handle, and every
SQLAlchemy failure leaves here as a StorageError with the transaction
rolled back.
"""

import uuid
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Callable, List, Optional, Tuple

from sqlalchemy import Numeric, case, func
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from .db import Database
from .errors import NotFoundError, StorageError
from .logging_config import get_logger
from .models import LedgerEntry, TransactionType, User, utcnow
from .types import MONEY_PRECISION, MONEY_SCALE, uses_text_money

logger = get_logger("store")

BalanceSnapshot = Tuple[Decimal, datetime]

# smallest step both SQLite and PostgreSQL timestamps keep
TIMESTAMP_RESOLUTION = timedelta(microseconds=1)


def signed_amount(kind: TransactionType, amount: Decimal) -> Decimal:
    if kind is TransactionType.CREDIT:
        return amount
    if kind is TransactionType.DEBIT:
        return -amount
    raise ValueError(f"unknown transaction type: {kind!r}")


class LedgerStore:
    def __init__(self, db: Database, clock: Optional[Callable[[], datetime]] = None) -> None:
        self._db = db
        self._clock = clock or utcnow

    @staticmethod
    def _account_row_exists(session: Session, account_id: uuid.UUID, lock: bool = False) -> bool:
        stmt = select(User.id).where(User.id == account_id)
        if lock:
            # FOR SHARE on PostgreSQL; ignored by SQLite
            stmt = stmt.with_for_update(read=True)
        return session.exec(stmt).first() is not None

    def _next_timestamp(self, session: Session, account_id: uuid.UUID) -> datetime:
        """Clock time, pushed past the account's newest entry if the clock lags."""
        now = self._clock()
        latest = session.exec(
            select(func.max(LedgerEntry.created_at)).where(LedgerEntry.account_id == account_id)
        ).first()
        if latest is not None and now <= latest:
            return latest + TIMESTAMP_RESOLUTION
        return now

    def account_exists(self, account_id: uuid.UUID) -> bool:
        try:
            with self._db.session() as session:
                return self._account_row_exists(session, account_id)
        except SQLAlchemyError as exc:
            logger.error("Failed to check user existence: %s", exc)
            raise StorageError(
                "Failed to check user existence", details={"account_id": str(account_id)}
            ) from exc

    def append(self, entry: LedgerEntry) -> LedgerEntry:
        """
        Insert one entry as a single atomic unit.

        The account is re-checked inside the same transaction as the insert,
        so an entry is never committed against a missing account. The entry's
        ``created_at`` is strictly later than every earlier entry of the same
        account. On any failure the transaction is rolled back and nothing
        becomes visible.
        """
        with self._db.session() as session:
            try:
                if not self._account_row_exists(session, entry.account_id, lock=True):
                    raise NotFoundError(
                        "User not found", details={"account_id": str(entry.account_id)}
                    )
                entry.created_at = self._next_timestamp(session, entry.account_id)
                session.add(entry)
                session.commit()
                session.refresh(entry)
            except SQLAlchemyError as exc:
                session.rollback()
                logger.error("Failed to create transaction: %s", exc)
                raise StorageError(
                    "Failed to create transaction",
                    details={"account_id": str(entry.account_id)},
                ) from exc
        return entry

    def list_by_account(self, account_id: uuid.UUID) -> List[LedgerEntry]:
        # id breaks ties between concurrent appends that landed on one instant
        stmt = (
            select(LedgerEntry)
            .where(LedgerEntry.account_id == account_id)
            .order_by(LedgerEntry.created_at.desc(), LedgerEntry.id.desc())
        )
        try:
            with self._db.session() as session:
                return list(session.exec(stmt).all())
        except SQLAlchemyError as exc:
            logger.error("Failed to fetch transactions: %s", exc)
            raise StorageError(
                "Failed to fetch transactions", details={"account_id": str(account_id)}
            ) from exc

    def aggregate_by_account(self, account_id: uuid.UUID) -> Optional[BalanceSnapshot]:
        """
        Fold an account's history into ``(signed_sum, last_created_at)``.

        Returns None when the account has no entries at all, which is not the
        same thing as a zero balance. PostgreSQL sums in NUMERIC; SQLite keeps
        amounts as text, so there the rows are summed as Decimal here.
        """
        try:
            with self._db.session() as session:
                if uses_text_money(session.get_bind().dialect):
                    return self._fold_entries(session, account_id)
                return self._sum_in_database(session, account_id)
        except SQLAlchemyError as exc:
            logger.error("Failed to fetch balance: %s", exc)
            raise StorageError(
                "Failed to fetch balance", details={"account_id": str(account_id)}
            ) from exc

    @staticmethod
    def _sum_in_database(session: Session, account_id: uuid.UUID) -> Optional[BalanceSnapshot]:
        signed = case(
            (LedgerEntry.transaction_type == TransactionType.CREDIT, LedgerEntry.amount),
            (LedgerEntry.transaction_type == TransactionType.DEBIT, -LedgerEntry.amount),
        )
        stmt = (
            select(
                func.sum(signed, type_=Numeric(MONEY_PRECISION, MONEY_SCALE)),
                func.max(LedgerEntry.created_at),
            )
            .where(LedgerEntry.account_id == account_id)
            .group_by(LedgerEntry.account_id)
        )
        row = session.exec(stmt).first()
        if row is None:
            return None
        balance, last_updated = row
        return Decimal(balance), last_updated

    @staticmethod
    def _fold_entries(session: Session, account_id: uuid.UUID) -> Optional[BalanceSnapshot]:
        stmt = select(
            LedgerEntry.transaction_type, LedgerEntry.amount, LedgerEntry.created_at
        ).where(LedgerEntry.account_id == account_id)
        rows = session.exec(stmt).all()
        if not rows:
            return None
        balance = sum((signed_amount(kind, amount) for kind, amount, _ in rows), Decimal("0"))
        return balance, max(created_at for _, _, created_at in rows)
