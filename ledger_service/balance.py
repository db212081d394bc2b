import uuid

from .errors import NotFoundError
from .logging_config import get_logger
from .models import AccountBalance
from .store import LedgerStore

logger = get_logger("balance")


class BalanceAggregator:
    """
    Read path for an account's financial position.

    An account with no entries is reported as not found rather than as a
    zero balance; the store's aggregate does not distinguish a registered
    account without history from an unknown id.
    """

    def __init__(self, store: LedgerStore) -> None:
        self._store = store

    def get_balance(self, account_id: uuid.UUID) -> AccountBalance:
        snapshot = self._store.aggregate_by_account(account_id)
        if snapshot is None:
            raise NotFoundError("No transactions found", details={"account_id": str(account_id)})

        balance, last_updated = snapshot
        logger.debug("Balance for user %s: %s", account_id, balance)
        return AccountBalance(account_id=account_id, balance=balance, last_updated=last_updated)
