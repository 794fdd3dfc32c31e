"""
Provider callback signature validation.

The provider appends ``key=sha1(salt + query)`` to every callback, where
``query`` is the remaining parameters joined as ``k=v&k=v`` in the order the
provider sent them.
"""
import hashlib
import hmac
import logging
from typing import Iterable, Mapping, Sequence, Tuple, Union

logger = logging.getLogger(__name__)

SIGNATURE_PARAM = "key"

Params = Union[Mapping[str, str], Sequence[Tuple[str, str]]]


def _items(params: Params) -> Iterable[Tuple[str, str]]:
    if isinstance(params, Mapping):
        return params.items()
    return params


class SignatureValidator:
    """Authenticates provider callbacks with the shared salt key."""

    def __init__(self, salt_key: str, enabled: bool = True):
        self.salt_key = salt_key or ""
        self.enabled = enabled

    @staticmethod
    def canonical_string(params: Params) -> str:
        """
        Rebuilds the signed string. Received order is kept as-is: if the
        provider reorders fields between signing and sending, validation
        fails.
        """
        return "&".join(
            f"{name}={'' if value is None else value}"
            for name, value in _items(params)
            if name != SIGNATURE_PARAM
        )

    def compute(self, params: Params) -> str:
        payload = self.salt_key + self.canonical_string(params)
        return hashlib.sha1(payload.encode("utf-8")).hexdigest()

    def provided_signature(self, params: Params):
        for name, value in _items(params):
            if name == SIGNATURE_PARAM:
                return value
        return None

    def is_valid(self, params: Params) -> bool:
        """Accept/reject. Never raises: a bad signature is a normal outcome."""
        if not self.enabled:
            return True
        try:
            provided = self.provided_signature(params)
            if not provided or not isinstance(provided, str):
                logger.warning("Callback without signature rejected")
                return False
            expected = self.compute(params)
            return hmac.compare_digest(expected, provided.strip().lower())
        except Exception as e:
            logger.warning(f"Signature validation failed with error: {e}")
            return False
