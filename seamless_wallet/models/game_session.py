from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey, Index, func
from sqlalchemy.orm import relationship
from seamless_wallet.database import Base

class GameSession(Base):
    """
    Binds a provider remote player id and session token to an account.
    Rows are created by the game-launch flow; this service only reads them,
    refreshes last_activity and closes idle ones.
    """
    __tablename__ = "game_sessions"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    account_id = Column(Integer, ForeignKey("accounts.id"), nullable=False, index=True)
    remote_id = Column(String(100), nullable=False, index=True)
    session_token = Column(String(128), unique=True, nullable=False)
    provider = Column(String(50), nullable=True)
    game_id = Column(String(50), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    last_activity = Column(DateTime, nullable=True)
    created_at = Column(DateTime, server_default=func.now(), nullable=False)
    closed_at = Column(DateTime, nullable=True)

    account = relationship("Account", back_populates="game_sessions")

    __table_args__ = (
        Index("ix_game_sessions_remote_active_created", remote_id, is_active, created_at.desc()),
    )
