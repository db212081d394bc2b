"""
Column types for money and timestamps.

``Money`` is NUMERIC(19, 4) where the database has an exact decimal type. On
SQLite it is stored as a fixed-point string, since SQLite NUMERIC columns hold
IEEE doubles and would round anything past ~15 significant digits.

``UTCDateTime`` always hands back timezone-aware UTC datetimes, including on
SQLite, which drops the offset on the way in.
"""

from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import DateTime, Numeric, String
from sqlalchemy.types import TypeDecorator

MONEY_PRECISION = 19
MONEY_SCALE = 4
_QUANTUM = Decimal(1).scaleb(-MONEY_SCALE)


def uses_text_money(dialect) -> bool:
    return dialect.name == "sqlite"


class Money(TypeDecorator):
    impl = Numeric(MONEY_PRECISION, MONEY_SCALE)
    cache_ok = True

    def load_dialect_impl(self, dialect):
        if uses_text_money(dialect):
            # sign, 15 integer digits, point, 4 fraction digits
            return dialect.type_descriptor(String(MONEY_PRECISION + 2))
        return dialect.type_descriptor(Numeric(MONEY_PRECISION, MONEY_SCALE))

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        value = Decimal(value).quantize(_QUANTUM)
        if uses_text_money(dialect):
            return format(value, "f")
        return value

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return Decimal(value).quantize(_QUANTUM)


class UTCDateTime(TypeDecorator):
    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            raise ValueError("naive datetime passed to a UTC column")
        return value.astimezone(timezone.utc)

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        if isinstance(value, str):
            value = datetime.fromisoformat(value)
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)
