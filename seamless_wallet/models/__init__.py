from seamless_wallet.models.account import Account
from seamless_wallet.models.game_session import GameSession
from seamless_wallet.models.seamless_transaction import (
    SeamlessTransaction,
    TransactionType,
    TransactionStatus,
    TRANSACTION_ID_PREFIX,
)

__all__ = [
    "Account",
    "GameSession",
    "SeamlessTransaction",
    "TransactionType",
    "TransactionStatus",
    "TRANSACTION_ID_PREFIX",
]
