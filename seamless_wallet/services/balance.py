import logging
from dataclasses import dataclass
from decimal import Decimal

from sqlalchemy import text
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from seamless_wallet.models import Account
from seamless_wallet.services.errors import BalanceLimitExceeded, TransientStoreFailure
from seamless_wallet.utils.money import MAX_MONEY, to_money

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BalanceChange:
    balance_before: Decimal
    balance_after: Decimal
    applied: bool


class BalanceMutator:
    """
    Applies and reverses balance changes on one account row, always inside
    the caller's transaction and under that row's exclusive lock.
    """

    def __init__(self, db: Session, lock_timeout_ms: int = 5000):
        self.db = db
        self.lock_timeout_ms = lock_timeout_ms

    def lock_account(self, account_id: int) -> Account:
        """
        SELECT ... FOR UPDATE on the account. Concurrent mutations of the
        same account serialize here; other accounts are unaffected.
        """
        try:
            if self.db.get_bind().dialect.name == "postgresql":
                self.db.execute(text(f"SET LOCAL lock_timeout = '{int(self.lock_timeout_ms)}ms'"))
            account = (
                self.db.query(Account)
                .filter(Account.id == account_id)
                .with_for_update()
                .populate_existing()
                .one_or_none()
            )
        except OperationalError as e:
            logger.warning(f"Could not lock account {account_id} within {self.lock_timeout_ms}ms: {e}")
            raise TransientStoreFailure()

        if account is None:
            # sessions reference accounts by FK; a missing row is a store fault
            raise LookupError(f"Account {account_id} not found")
        return account

    def debit(self, account: Account, amount: Decimal) -> BalanceChange:
        """Rejected (no mutation) when the balance would go below zero."""
        before = to_money(account.wallet_balance)
        after = before - amount
        if after < 0:
            logger.warning(f"Insufficient funds on account {account.id}: balance {before}, debit {amount}")
            return BalanceChange(before, before, applied=False)
        account.wallet_balance = after
        logger.info(f"Account {account.id} debited {amount}: {before} -> {after}")
        return BalanceChange(before, after, applied=True)

    def credit(self, account: Account, amount: Decimal) -> BalanceChange:
        before = to_money(account.wallet_balance)
        after = before + amount
        if after > MAX_MONEY:
            logger.warning(f"Credit of {amount} would take account {account.id} past {MAX_MONEY}")
            raise BalanceLimitExceeded(balance=before)
        account.wallet_balance = after
        logger.info(f"Account {account.id} credited {amount}: {before} -> {after}")
        return BalanceChange(before, after, applied=True)

    def adjust_total_bet(self, account: Account, delta: Decimal) -> None:
        total = to_money(account.total_bet_amount) + delta
        account.total_bet_amount = min(max(total, Decimal("0.00")), MAX_MONEY)
