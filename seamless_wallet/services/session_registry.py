import logging
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.orm import Session

from seamless_wallet.models import GameSession
from seamless_wallet.services.errors import SessionNotFound
from seamless_wallet.utils.timeutils import utcnow

logger = logging.getLogger(__name__)

class SessionRegistry:
    """
    Resolves provider remote player ids to the internal account through the
    game sessions written by the launch flow.
    """

    def __init__(self, db: Session):
        self.db = db

    def find_active_session(self, remote_id: str) -> Optional[GameSession]:
        """
        Most recently created active session for the remote id. A player
        logged in through several launches may have more than one active
        session; the newest one wins.
        """
        return (
            self.db.query(GameSession)
            .filter(GameSession.remote_id == str(remote_id), GameSession.is_active.is_(True))
            .order_by(GameSession.created_at.desc(), GameSession.id.desc())
            .first()
        )

    def resolve_session(self, remote_id: str, session_token: Optional[str] = None) -> GameSession:
        """
        Returns the active session for ``remote_id`` or raises SessionNotFound.

        ``session_token`` is the provider's session_id parameter. It does not
        take part in the lookup; a mismatch is only logged.
        """
        game_session = self.find_active_session(remote_id)
        if game_session is None:
            logger.warning(f"No active game session for remote_id={remote_id}")
            raise SessionNotFound()

        if session_token and session_token != game_session.session_token:
            logger.info(
                f"Provider session_id {session_token} differs from resolved session "
                f"{game_session.session_token} (remote_id={remote_id})"
            )
        return game_session

    def touch(self, game_session: GameSession, now: Optional[datetime] = None) -> None:
        game_session.last_activity = now or utcnow()

    def close_session(self, session_token: str, now: Optional[datetime] = None) -> bool:
        game_session = (
            self.db.query(GameSession)
            .filter(GameSession.session_token == session_token, GameSession.is_active.is_(True))
            .first()
        )
        if game_session is None:
            return False
        game_session.is_active = False
        game_session.closed_at = now or utcnow()
        logger.info(f"Game session {session_token} closed")
        return True

    def close_idle_sessions(self, max_idle_seconds: int, now: Optional[datetime] = None) -> int:
        """
        Closes active sessions with no callback for ``max_idle_seconds``.
        Sessions that never saw a callback are measured from creation.
        Returns the number of sessions closed.
        """
        now = now or utcnow()
        cutoff = now - timedelta(seconds=max_idle_seconds)
        idle_sessions = (
            self.db.query(GameSession)
            .filter(GameSession.is_active.is_(True))
            .all()
        )
        closed = 0
        for game_session in idle_sessions:
            last_seen = game_session.last_activity or game_session.created_at
            if last_seen is not None and last_seen < cutoff:
                game_session.is_active = False
                game_session.closed_at = now
                closed += 1
        if closed:
            logger.info(f"Closed {closed} idle game session(s) older than {cutoff.isoformat()}")
        return closed
