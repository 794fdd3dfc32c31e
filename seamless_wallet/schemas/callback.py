from decimal import Decimal
from enum import Enum
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field, constr, field_validator

from seamless_wallet.utils.money import parse_amount

# Provider status vocabulary. Always sent with HTTP 200.
class ResponseStatus(str, Enum):
    OK = "200"
    BAD_REQUEST = "400"
    FORBIDDEN = "403"
    NOT_FOUND = "404"
    REQUEST_TIMEOUT = "408"
    CONFLICT = "409"
    INTERNAL_ERROR = "500"

class CallbackAction(str, Enum):
    BALANCE = "balance"
    DEBIT = "debit"
    CREDIT = "credit"
    ROLLBACK = "rollback"

# ==== Request Models ====

class CallbackRequest(BaseModel):
    """Fields shared by every provider callback."""
    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True)

    remote_id: constr(min_length=1, max_length=100) = Field(..., description="Provider player id")
    session_id: Optional[str] = Field(None, description="Provider session id (informational)")
    provider: Optional[str] = None
    game_id: Optional[str] = None
    game_id_hash: Optional[str] = None
    currency: Optional[str] = None
    username: Optional[str] = None

class BalanceCallback(CallbackRequest):
    pass

class TransactionCallback(CallbackRequest):
    transaction_id: constr(min_length=1, max_length=128) = Field(..., description="Provider transaction id")
    amount: Decimal = Field(..., description="Non-negative amount, at most two decimals")
    round_id: Optional[str] = None
    gameplay_final: bool = False

    @field_validator("amount", mode="before")
    @classmethod
    def validate_amount(cls, v):
        return parse_amount(v)

    @field_validator(
        "gameplay_final", "is_freeround_bet", "is_freeround_win", "is_jackpot_win",
        mode="before", check_fields=False,
    )
    @classmethod
    def validate_flag(cls, v):
        # providers send empty strings for unset flags
        if v is None or v == "":
            return False
        return v

class DebitCallback(TransactionCallback):
    is_freeround_bet: bool = False
    jackpot_contribution_in_amount: Decimal = Decimal("0.00")

    @field_validator("jackpot_contribution_in_amount", mode="before")
    @classmethod
    def validate_jackpot_contribution(cls, v):
        if v in (None, ""):
            return Decimal("0.00")
        return parse_amount(v)

class CreditCallback(TransactionCallback):
    is_freeround_win: bool = False
    is_jackpot_win: bool = False

class RollbackCallback(CallbackRequest):
    # id of the transaction being reversed
    transaction_id: constr(min_length=1, max_length=128) = Field(..., description="Provider transaction id to reverse")
    amount: Optional[str] = None  # informational; the original row's amount is authoritative
    round_id: Optional[str] = None

CALLBACK_REQUEST_TYPES = {
    CallbackAction.BALANCE: BalanceCallback,
    CallbackAction.DEBIT: DebitCallback,
    CallbackAction.CREDIT: CreditCallback,
    CallbackAction.ROLLBACK: RollbackCallback,
}

# ==== Response Models ====

class CallbackResponse(BaseModel):
    status: str
    balance: Optional[str] = None
    transactionId: Optional[str] = None
    msg: Optional[str] = None

    def to_body(self) -> dict:
        return self.model_dump(exclude_none=True)
