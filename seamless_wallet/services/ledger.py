import logging
import uuid
from dataclasses import dataclass
from decimal import Decimal
from typing import Callable, Optional, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from seamless_wallet.models import (
    SeamlessTransaction,
    TransactionType,
    TransactionStatus,
    TRANSACTION_ID_PREFIX,
)
from seamless_wallet.services.errors import DuplicateTransaction
from seamless_wallet.utils.money import ZERO

logger = logging.getLogger(__name__)


@dataclass
class LedgerEffect:
    """What a handler computed for a new ledger row."""
    account_id: int
    amount: Decimal
    balance_before: Decimal
    balance_after: Decimal
    status: TransactionStatus = TransactionStatus.SUCCESS
    related_transaction_id: Optional[int] = None


def new_transaction_id(tx_type: TransactionType) -> str:
    return f"{TRANSACTION_ID_PREFIX[tx_type]}_{uuid.uuid4().hex}"


def rollback_key(original: SeamlessTransaction) -> str:
    """Provider-side key of the rollback row for ``original``."""
    return f"rollback:{original.type.value}:{original.provider_transaction_id}"


class TransactionLedger:
    """
    Append-only record of balance-affecting events, keyed by
    (type, provider transaction id). The lookup in record_or_replay is what
    makes provider retries safe.
    """

    def __init__(self, db: Session):
        self.db = db

    def find(self, tx_type: TransactionType, provider_transaction_id: str) -> Optional[SeamlessTransaction]:
        return (
            self.db.query(SeamlessTransaction)
            .filter(
                SeamlessTransaction.type == tx_type,
                SeamlessTransaction.provider_transaction_id == provider_transaction_id,
            )
            .first()
        )

    def find_original(self, provider_transaction_id: str) -> Optional[SeamlessTransaction]:
        """Debit or credit row a rollback refers to; the newest one if both exist."""
        return (
            self.db.query(SeamlessTransaction)
            .filter(
                SeamlessTransaction.provider_transaction_id == provider_transaction_id,
                SeamlessTransaction.type.in_([TransactionType.DEBIT, TransactionType.CREDIT]),
            )
            .order_by(SeamlessTransaction.id.desc())
            .first()
        )

    def find_rollback_of(self, original: SeamlessTransaction) -> Optional[SeamlessTransaction]:
        return (
            self.db.query(SeamlessTransaction)
            .filter(
                SeamlessTransaction.type == TransactionType.ROLLBACK,
                SeamlessTransaction.related_transaction_id == original.id,
            )
            .first()
        )

    def record_or_replay(
        self,
        tx_type: TransactionType,
        provider_transaction_id: str,
        compute_effect: Callable[[], LedgerEffect],
        **attributes,
    ) -> Tuple[SeamlessTransaction, bool]:
        """
        Returns ``(row, replayed)``.

        An existing row for (tx_type, provider_transaction_id) is returned
        untouched with ``replayed=True`` and ``compute_effect`` is not
        called. Otherwise the effect is computed inside the caller's
        transaction and persisted as a new row.
        """
        existing = self.find(tx_type, provider_transaction_id)
        if existing is not None:
            logger.info(
                f"Replaying {tx_type.value} {provider_transaction_id}: "
                f"status={existing.status.value} balance_after={existing.balance_after}"
            )
            return existing, True

        effect = compute_effect()
        row = self._append(tx_type, provider_transaction_id, effect, **attributes)
        return row, False

    def record_balance_query(self, account_id: int, balance: Decimal, **attributes) -> SeamlessTransaction:
        """Audit row for a balance callback. Never touches the balance."""
        effect = LedgerEffect(
            account_id=account_id,
            amount=ZERO,
            balance_before=balance,
            balance_after=balance,
        )
        provider_transaction_id = f"balance_{uuid.uuid4().hex}"
        return self._append(TransactionType.BALANCE, provider_transaction_id, effect, **attributes)

    def mark_rolled_back(self, original: SeamlessTransaction) -> None:
        original.status = TransactionStatus.ROLLEDBACK

    def _append(
        self,
        tx_type: TransactionType,
        provider_transaction_id: str,
        effect: LedgerEffect,
        **attributes,
    ) -> SeamlessTransaction:
        row = SeamlessTransaction(
            transaction_id=new_transaction_id(tx_type),
            provider_transaction_id=provider_transaction_id,
            type=tx_type,
            account_id=effect.account_id,
            amount=effect.amount,
            balance_before=effect.balance_before,
            balance_after=effect.balance_after,
            status=effect.status,
            related_transaction_id=effect.related_transaction_id,
            **{k: v for k, v in attributes.items() if v is not None},
        )
        self.db.add(row)
        try:
            self.db.flush()
        except IntegrityError:
            # lost an insert race for the same key; the caller replays
            raise DuplicateTransaction(tx_type, provider_transaction_id)
        return row
