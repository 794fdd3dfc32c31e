"""Closes game sessions that have seen no callback within the expiry window."""
import argparse
import logging

from seamless_wallet.config.settings import settings
from seamless_wallet.database import SessionLocal, transaction_scope
from seamless_wallet.services.session_registry import SessionRegistry

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def cleanup_idle_sessions(max_idle_seconds: int, session_factory=SessionLocal) -> int:
    with transaction_scope(session_factory) as db:
        closed = SessionRegistry(db).close_idle_sessions(max_idle_seconds)
    logger.info(f"Idle session cleanup finished: {closed} closed")
    return closed


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Close idle seamless game sessions")
    parser.add_argument(
        "--max-idle-seconds",
        type=int,
        default=settings.SEAMLESS_SESSION_EXPIRY_SECONDS,
        help="sessions idle longer than this are closed",
    )
    args = parser.parse_args()
    cleanup_idle_sessions(args.max_idle_seconds)
