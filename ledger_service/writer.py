"""
Write path for the ledger.

TransactionWriter is the only way entries are created. Checks run in a fixed
order (validation, then account existence, then the atomic append) and the
first failure stops the rest.
"""

import re
import uuid
from decimal import Decimal
from typing import Any, Optional

from .errors import NotFoundError, ValidationError
from .logging_config import get_logger
from .models import LedgerEntry, TransactionType
from .store import LedgerStore
from .types import MONEY_PRECISION, MONEY_SCALE

logger = get_logger("writer")

AMOUNT_SCALE = MONEY_SCALE
AMOUNT_INTEGER_DIGITS = MONEY_PRECISION - MONEY_SCALE
# ASCII digits with an optional fraction: no exponents, underscores or "+"
AMOUNT_PATTERN = re.compile(r"-?\d+(\.\d+)?", re.ASCII)


def parse_amount(raw: Any) -> Decimal:
    """Parse a positive decimal amount that fits the ledger column exactly."""
    if isinstance(raw, Decimal):
        value = raw
    elif isinstance(raw, (str, int)) and not isinstance(raw, bool):
        text = str(raw).strip()
        if not AMOUNT_PATTERN.fullmatch(text):
            raise ValidationError("Invalid amount", details={"amount": str(raw)})
        value = Decimal(text)
    else:
        raise ValidationError("Amount must be a decimal string", details={"amount": repr(raw)})

    if not value.is_finite():
        raise ValidationError("Invalid amount", details={"amount": str(raw)})
    if value <= 0:
        raise ValidationError("Amount must be greater than zero", details={"amount": str(raw)})
    if value.normalize().as_tuple().exponent < -AMOUNT_SCALE:
        raise ValidationError(
            f"Amount supports at most {AMOUNT_SCALE} decimal places", details={"amount": str(raw)}
        )
    if value.adjusted() >= AMOUNT_INTEGER_DIGITS:
        raise ValidationError("Amount is too large", details={"amount": str(raw)})
    return value


def parse_transaction_type(raw: Any) -> TransactionType:
    if isinstance(raw, TransactionType):
        return raw
    try:
        return TransactionType(raw)
    except ValueError:
        raise ValidationError(
            "transaction_type must be 'credit' or 'debit'",
            details={"transaction_type": str(raw)},
        )


class TransactionWriter:
    def __init__(self, store: LedgerStore) -> None:
        self._store = store

    def create_entry(
        self,
        account_id: uuid.UUID,
        amount: Any,
        transaction_type: Any,
        description: Optional[str] = None,
    ) -> LedgerEntry:
        value = parse_amount(amount)
        kind = parse_transaction_type(transaction_type)

        if not self._store.account_exists(account_id):
            raise NotFoundError("User not found", details={"account_id": str(account_id)})

        entry = LedgerEntry(
            account_id=account_id,
            amount=value,
            transaction_type=kind,
            description=description,
        )
        persisted = self._store.append(entry)
        logger.info(
            "Created %s of %s for user %s (entry %s)",
            kind.value,
            value,
            account_id,
            persisted.id,
        )
        return persisted
