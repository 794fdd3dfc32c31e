from datetime import timedelta

from seamless_wallet.models import GameSession
from seamless_wallet.scripts.cleanup_sessions import cleanup_idle_sessions
from seamless_wallet.utils.timeutils import utcnow


def test_cleanup_closes_only_idle_sessions(session_factory, make_player):
    _, idle_remote, idle_token = make_player()
    _, busy_remote, busy_token = make_player()

    db = session_factory()
    try:
        now = utcnow()
        for game_session in db.query(GameSession).all():
            game_session.created_at = now - timedelta(hours=3)
            game_session.last_activity = (
                now - timedelta(hours=2) if game_session.session_token == idle_token else now
            )
        db.commit()
    finally:
        db.close()

    assert cleanup_idle_sessions(3600, session_factory=session_factory) == 1

    db = session_factory()
    try:
        states = {s.session_token: s.is_active for s in db.query(GameSession).all()}
    finally:
        db.close()
    assert states == {idle_token: False, busy_token: True}
