import enum
from sqlalchemy import (
    Column, Integer, String, Numeric, Boolean, DateTime, Enum, ForeignKey,
    Index, UniqueConstraint, func
)
from sqlalchemy.orm import relationship
from seamless_wallet.database import Base

class TransactionType(str, enum.Enum):
    BALANCE = "balance"
    DEBIT = "debit"
    CREDIT = "credit"
    ROLLBACK = "rollback"

class TransactionStatus(str, enum.Enum):
    SUCCESS = "success"
    FAILED = "failed"
    ROLLEDBACK = "rolledback"

def _enum_values(enum_cls):
    return [member.value for member in enum_cls]

# internal transaction id prefixes, one per type
TRANSACTION_ID_PREFIX = {
    TransactionType.BALANCE: "bal",
    TransactionType.DEBIT: "deb",
    TransactionType.CREDIT: "crd",
    TransactionType.ROLLBACK: "rbk",
}

class SeamlessTransaction(Base):
    """
    Append-only ledger row, one per provider transaction id and type.
    Only status may change after insert (success -> rolledback).
    """
    __tablename__ = "seamless_transactions"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    transaction_id = Column(String(64), unique=True, nullable=False)
    account_id = Column(Integer, ForeignKey("accounts.id"), nullable=False, index=True)
    game_session_id = Column(Integer, ForeignKey("game_sessions.id"), nullable=True)
    remote_id = Column(String(100), nullable=True)

    provider_transaction_id = Column(String(128), nullable=False)
    provider = Column(String(50), nullable=False, default="unknown")
    game_id = Column(String(50), nullable=True)
    game_id_hash = Column(String(100), nullable=True)
    round_id = Column(String(100), nullable=True, index=True)

    type = Column(Enum(TransactionType, native_enum=False, length=10, values_callable=_enum_values), nullable=False)
    amount = Column(Numeric(15, 2), nullable=False, default=0)
    balance_before = Column(Numeric(15, 2), nullable=False)
    balance_after = Column(Numeric(15, 2), nullable=False)
    status = Column(
        Enum(TransactionStatus, native_enum=False, length=10, values_callable=_enum_values),
        nullable=False,
        default=TransactionStatus.SUCCESS
    )
    related_transaction_id = Column(Integer, ForeignKey("seamless_transactions.id"), nullable=True)

    # provider round flags
    is_freeround_bet = Column(Boolean, nullable=False, default=False)
    is_freeround_win = Column(Boolean, nullable=False, default=False)
    is_jackpot_win = Column(Boolean, nullable=False, default=False)
    jackpot_contribution_in_amount = Column(Numeric(15, 2), nullable=False, default=0)
    gameplay_final = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now(), nullable=False)

    account = relationship("Account", back_populates="transactions")
    game_session = relationship("GameSession")
    related_transaction = relationship("SeamlessTransaction", remote_side=[id])

    __table_args__ = (
        UniqueConstraint("type", "provider_transaction_id", name="uq_seamless_transactions_type_provider_tx"),
        # at most one rollback row may point at a given original
        Index(
            "uq_seamless_transactions_related_transaction_id",
            related_transaction_id,
            unique=True,
        ),
        Index("ix_seamless_transactions_provider_tx", provider_transaction_id),
        Index("ix_seamless_transactions_account_created", account_id, created_at.desc()),
    )

    def to_dict(self) -> dict:
        return {
            "transaction_id": self.transaction_id,
            "provider_transaction_id": self.provider_transaction_id,
            "type": self.type.value if self.type else None,
            "amount": str(self.amount),
            "balance_before": str(self.balance_before),
            "balance_after": str(self.balance_after),
            "status": self.status.value if self.status else None,
            "related_transaction_id": self.related_transaction_id,
            "round_id": self.round_id,
        }
