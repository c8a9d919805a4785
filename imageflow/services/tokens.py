"""
Token Service - Single Responsibility: issue and verify bearer tokens.

A token is base64(HMAC-SHA256(key=secret, msg=identity)). Tokens carry no
expiry; their lifetime is the lifetime of the secret.
"""
import base64
import hashlib
import hmac
import logging
from typing import Optional

from ..errors import CryptoError
from ..protocols import ISecretSource

logger = logging.getLogger(__name__)


def issue_token(identity: str, secret: Optional[str]) -> str:
    """
    Derive the bearer token for an identity.

    Args:
        identity: Caller identity (e.g. an email)
        secret: Shared symmetric key

    Returns:
        Base64 encoded HMAC-SHA256 digest

    Raises:
        KeyError: secret is missing or empty
        CryptoError: keyed hash could not be initialized
        ValueError: identity is empty
    """
    if not secret:
        raise KeyError("token secret is not available")
    if not identity:
        raise ValueError("identity must not be empty")

    try:
        key = secret.encode("utf-8") if isinstance(secret, str) else secret
        mac = hmac.new(key, identity.encode("utf-8"), hashlib.sha256)
    except (TypeError, ValueError, AttributeError) as exc:
        raise CryptoError(f"cannot initialize HMAC-SHA256: {exc}") from exc

    return base64.b64encode(mac.digest()).decode("ascii")


def verify_token(identity: str, secret: Optional[str], candidate: str) -> bool:
    """Check candidate against the token for identity. Never raises."""
    if not isinstance(candidate, str) or not candidate:
        return False
    try:
        expected = issue_token(identity, secret)
    except (KeyError, ValueError, CryptoError) as exc:
        logger.warning(f"[token] verification failed for {identity!r}: {exc}")
        return False
    # Lone surrogates (e.g. "\ud800" from JSON) must compare unequal, not raise
    return hmac.compare_digest(expected.encode("ascii"), candidate.encode("utf-8", "surrogatepass"))


class TokenService:
    """
    Issues and verifies tokens with a secret from one source.

    Both directions resolve the secret through the same ISecretSource so a
    token issued here always verifies here.
    """

    def __init__(self, secret_source: ISecretSource):
        self._secrets = secret_source

    def issue(self, identity: str) -> str:
        """Fetch the secret fresh and issue a token."""
        secret = self._secrets.get_secret()
        token = issue_token(identity, secret)
        logger.info(f"[token] issued token for {identity}")
        return token

    def verify(self, identity: str, token: str) -> bool:
        try:
            secret = self._secrets.get_secret()
        except Exception as exc:
            logger.warning(f"[token] secret unavailable during verification: {exc}")
            return False
        valid = verify_token(identity, secret, token)
        if not valid:
            logger.info(f"[token] rejected token for {identity}")
        return valid
