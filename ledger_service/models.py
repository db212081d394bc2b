import enum
import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict
from sqlalchemy import CheckConstraint, Column, Index, String
from sqlalchemy import Enum as SAEnum
from sqlalchemy import event
from sqlmodel import Field, SQLModel

from .errors import ImmutableEntryError
from .types import Money, UTCDateTime


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TransactionType(str, enum.Enum):
    CREDIT = "credit"
    DEBIT = "debit"


class User(SQLModel, table=True):
    """Account row owned by the identity side; the ledger only reads it."""

    __tablename__ = "users"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    email: str = Field(sa_column=Column(String(255), unique=True, nullable=False))
    password_hash: str = Field(sa_column=Column(String(255), nullable=False))
    name: str = Field(sa_column=Column(String(255), nullable=False))
    created_at: datetime = Field(
        default_factory=utcnow, sa_column=Column(UTCDateTime(), nullable=False)
    )
    updated_at: datetime = Field(
        default_factory=utcnow, sa_column=Column(UTCDateTime(), nullable=False)
    )


class LedgerEntry(SQLModel, table=True):
    """One immutable credit or debit against one account."""

    __tablename__ = "transactions"
    __table_args__ = (
        CheckConstraint("CAST(amount AS NUMERIC) > 0", name="ck_transactions_amount_positive"),
        Index("idx_transactions_account_created", "account_id", "created_at"),
    )

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    account_id: uuid.UUID = Field(foreign_key="users.id", nullable=False)
    amount: Decimal = Field(sa_column=Column(Money(), nullable=False))
    transaction_type: TransactionType = Field(
        sa_column=Column(
            SAEnum(
                TransactionType,
                name="transaction_type",
                values_callable=lambda kinds: [k.value for k in kinds],
            ),
            nullable=False,
        )
    )
    description: Optional[str] = None
    # assigned by LedgerStore.append
    created_at: Optional[datetime] = Field(
        default=None, sa_column=Column(UTCDateTime(), nullable=False)
    )


@event.listens_for(LedgerEntry, "before_update")
def _reject_entry_update(mapper, connection, target):
    raise ImmutableEntryError(
        "Ledger entries cannot be modified", details={"entry_id": str(target.id)}
    )


@event.listens_for(LedgerEntry, "before_delete")
def _reject_entry_delete(mapper, connection, target):
    raise ImmutableEntryError(
        "Ledger entries cannot be deleted", details={"entry_id": str(target.id)}
    )


# ---- API shapes ----

class CreateTransactionIn(BaseModel):
    # kept as raw strings so the writer owns amount/type validation
    amount: str
    transaction_type: str
    description: Optional[str] = None


class LedgerEntryOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    account_id: uuid.UUID
    amount: Decimal
    transaction_type: TransactionType
    description: Optional[str] = None
    created_at: datetime


class AccountBalance(BaseModel):
    account_id: uuid.UUID
    balance: Decimal
    last_updated: Optional[datetime] = None


class RegisterIn(BaseModel):
    email: str
    password: str
    name: str


class LoginIn(BaseModel):
    email: str
    password: str


class UpdateProfileIn(BaseModel):
    name: str


class UserOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    email: str
    name: str
    created_at: datetime
    updated_at: datetime


class AuthOut(BaseModel):
    token: str
    user: UserOut


class RegisterOut(AuthOut):
    message: str = "User registered successfully"
