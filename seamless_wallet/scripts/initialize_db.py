"""
Creates the wallet tables and seeds a demo account with an active game
session, so provider callbacks can be exercised against a fresh database.

    python -m seamless_wallet.scripts.initialize_db --remote-id demo_remote_1
"""
import argparse
import logging
import uuid
from decimal import Decimal

from seamless_wallet.config.settings import settings
from seamless_wallet.database import Base, SessionLocal, engine
from seamless_wallet.models import Account, GameSession

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def initialize_database(username: str, remote_id: str, balance: Decimal, currency: str) -> None:
    try:
        logger.info("Creating database tables if they don't exist...")
        Base.metadata.create_all(bind=engine)
        logger.info("Database tables checked/created.")
    except Exception as e:
        logger.error(f"Error creating database tables: {e}", exc_info=True)
        raise

    db = SessionLocal()
    try:
        account = db.query(Account).filter(Account.username == username).first()
        if account is None:
            account = Account(username=username, currency=currency, wallet_balance=balance)
            db.add(account)
            db.flush()
            logger.info(f"Created account {username} with balance {balance} {currency}")
        else:
            logger.info(f"Account {username} already exists (balance {account.wallet_balance}). Skipping.")

        active = (
            db.query(GameSession)
            .filter(GameSession.remote_id == remote_id, GameSession.is_active.is_(True))
            .count()
        )
        if not active:
            game_session = GameSession(
                account_id=account.id,
                remote_id=remote_id,
                session_token=uuid.uuid4().hex,
                provider="demo",
                is_active=True,
            )
            db.add(game_session)
            logger.info(f"Opened game session {game_session.session_token} for remote_id={remote_id}")

        db.commit()
    except Exception as e:
        db.rollback()
        logger.error(f"Error seeding demo data: {e}", exc_info=True)
        raise
    finally:
        db.close()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Create tables and seed a demo wallet account")
    parser.add_argument("--username", default="demo_player")
    parser.add_argument("--remote-id", default="demo_remote_1")
    parser.add_argument("--balance", default="100.00")
    parser.add_argument("--currency", default=settings.SEAMLESS_DEFAULT_CURRENCY)
    args = parser.parse_args()

    initialize_database(args.username, args.remote_id, Decimal(args.balance), args.currency)
