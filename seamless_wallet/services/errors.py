from decimal import Decimal
from typing import Optional

class SeamlessError(Exception):
    """
    Base class for outcomes the provider protocol reports in the response
    body. ``status`` is the provider status code, ``msg`` its message.
    """
    status = "500"
    msg = "Internal server error"

    def __init__(self, msg: Optional[str] = None, balance: Optional[Decimal] = None):
        self.msg = msg or self.msg
        self.balance = balance
        super().__init__(self.msg)

class SignatureInvalid(SeamlessError):
    status = "403"
    msg = "INVALID_SIGNATURE"

class InvalidRequest(SeamlessError):
    status = "400"
    msg = "Invalid request"

class SessionNotFound(SeamlessError):
    status = "404"
    msg = "SESSION_NOT_FOUND"

class InsufficientFunds(SeamlessError):
    status = "403"
    msg = "Insufficient funds"

class BalanceLimitExceeded(SeamlessError):
    """The credit would take the balance past what the ledger can store."""
    status = "400"
    msg = "Balance limit exceeded"

class TransactionOwnershipConflict(SeamlessError):
    """The provider transaction id is already recorded for another account."""
    status = "409"
    msg = "DUPLICATE_TRANSACTION_ID"

class OriginalTransactionNotFound(SeamlessError):
    status = "404"
    msg = "TRANSACTION_NOT_FOUND"

class TransientStoreFailure(SeamlessError):
    """Lock wait or connection timeout; the provider is expected to retry."""
    status = "500"
    msg = "TEMPORARY_FAILURE"

class DuplicateTransaction(Exception):
    """
    Not a failure: raised when a concurrent insert of the same
    (type, provider transaction id) lost the race. The dispatcher replays
    the winner's row.
    """
    def __init__(self, tx_type, provider_transaction_id: str):
        self.tx_type = tx_type
        self.provider_transaction_id = provider_transaction_id
        super().__init__(f"{tx_type} {provider_transaction_id} already recorded")
