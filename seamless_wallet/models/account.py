from sqlalchemy import Column, Integer, String, Numeric, DateTime, CheckConstraint, func
from sqlalchemy.orm import relationship
from seamless_wallet.database import Base

class Account(Base):
    __tablename__ = "accounts"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    username = Column(String(64), unique=True, nullable=False, index=True)
    currency = Column(String(3), nullable=False)
    # authoritative balance; the platform is the source of truth, not the provider
    wallet_balance = Column(Numeric(15, 2), nullable=False, default=0, server_default="0.00")
    # wager statistic consumed by the rebate jobs
    total_bet_amount = Column(Numeric(15, 2), nullable=False, default=0, server_default="0.00")

    created_at = Column(DateTime, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now(), nullable=False)

    game_sessions = relationship("GameSession", back_populates="account")
    transactions = relationship("SeamlessTransaction", back_populates="account")

    __table_args__ = (
        CheckConstraint("wallet_balance >= 0", name="ck_accounts_wallet_balance_non_negative"),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "username": self.username,
            "currency": self.currency,
            "wallet_balance": str(self.wallet_balance),
            "total_bet_amount": str(self.total_bet_amount),
        }
