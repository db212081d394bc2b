"""Account ledger service: append-only monetary entries and derived balances."""

__version__ = "0.1.0"
