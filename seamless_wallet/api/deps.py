import logging
from typing import Callable

from fastapi import Depends
from sqlalchemy.orm import Session

from seamless_wallet.config.settings import settings
from seamless_wallet.database import get_session_factory
from seamless_wallet.services.dispatcher import WalletEngine
from seamless_wallet.utils.signature import SignatureValidator

logger = logging.getLogger(__name__)


def get_signature_validator() -> SignatureValidator:
    if not settings.SEAMLESS_VERIFY_SIGNATURE:
        logger.warning("Callback signature verification is disabled")
    return SignatureValidator(settings.SEAMLESS_SALT_KEY, enabled=settings.SEAMLESS_VERIFY_SIGNATURE)


def get_wallet_engine(
    session_factory: Callable[[], Session] = Depends(get_session_factory),
    signature_validator: SignatureValidator = Depends(get_signature_validator),
) -> WalletEngine:
    """Wallet engine bound to the configured store and salt key."""
    return WalletEngine(
        session_factory,
        signature_validator,
        lock_timeout_ms=settings.SEAMLESS_LOCK_TIMEOUT_MS,
        record_balance_requests=settings.SEAMLESS_RECORD_BALANCE_REQUESTS,
        rollback_not_found_status=settings.SEAMLESS_ROLLBACK_NOT_FOUND_STATUS,
    )
