"""
Short-lived signed credentials for the WhatsApp API.

Every outbound call carries a freshly minted HS256 JWT that describes the
marketplace user and their vendor affiliation. Credentials are never cached
or stored; the only persisted state is the signing secret.
"""

import secrets
import string
import time
from typing import Callable, Optional

import jwt
from pydantic import ValidationError as PydanticValidationError

from ..config import AppConfig, get_config
from ..constants import Limits, OptionName
from ..exceptions import RepositoryError, SigningFailedError, UnauthorizedError
from ..repositories.option_repository import OptionRepository
from ..schemas.identity_schema import CallerIdentity, CredentialClaims
from ..utils.logger import get_logger

ALGORITHM = "HS256"
BEARER_PREFIX = "Bearer "

_SECRET_CLASSES = (string.ascii_letters, string.digits, string.punctuation)


def generate_secret(length: int = Limits.SECRET_LENGTH) -> str:
    """Random secret with at least one letter, one digit and one punctuation mark."""
    alphabet = "".join(_SECRET_CLASSES)
    while True:
        secret = "".join(secrets.choice(alphabet) for _ in range(length))
        if all(any(ch in chars for ch in secret) for chars in _SECRET_CLASSES):
            return secret


class TokenIssuer:
    """
    Mints and validates credentials and owns the signing secret.

    The secret comes from config.security.signing_secret when set, otherwise
    from the option store, otherwise it is generated on first use.
    """

    def __init__(
        self,
        config: Optional[AppConfig] = None,
        option_repository: Optional[OptionRepository] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.config = config or get_config()
        self.option_repository = option_repository
        self.clock = clock
        self.logger = get_logger()
        self._secret: Optional[str] = self.config.security.signing_secret

    def _stored_secret(self) -> Optional[str]:
        if self.option_repository is None:
            return None
        return self.option_repository.get_option(OptionName.JWT_SECRET.value)

    def _persist_secret(self, secret: str) -> None:
        if self.option_repository is not None:
            self.option_repository.update_option(OptionName.JWT_SECRET.value, secret)

    def ensure_secret(self) -> str:
        """Return the active secret, loading or generating it if needed."""
        if self._secret:
            return self._secret

        stored = self._stored_secret()
        if stored:
            self._secret = stored
            return stored

        secret = generate_secret()
        self._persist_secret(secret)
        self._secret = secret
        self.logger.info("Generated new credential signing secret")
        return secret

    def rotate_secret(self) -> str:
        """
        Replace the signing secret.

        Every credential signed with the previous secret stops validating
        immediately.
        """
        secret = generate_secret()
        self._persist_secret(secret)
        self._secret = secret
        self.logger.warning("Credential signing secret rotated; outstanding credentials revoked")
        return secret

    def issue_credential(self, identity: Optional[CallerIdentity]) -> str:
        """
        Mint a credential for the given caller.

        Raises:
            UnauthorizedError: No identity, or none of its roles is allowed
            SigningFailedError: No secret could be provisioned or signing failed
        """
        if identity is None:
            raise UnauthorizedError("No authenticated user")

        allowed = set(self.config.security.allowed_roles)
        if not allowed.intersection(identity.roles):
            self.logger.warning(
                "Unauthorized credential request",
                extra={
                    "user_id": identity.user_id,
                    "username": identity.username,
                    "roles": ",".join(identity.roles),
                },
            )
            raise UnauthorizedError(user_id=identity.user_id)

        try:
            secret = self.ensure_secret()
        except RepositoryError as e:
            raise SigningFailedError("Signing secret unavailable", cause=e)

        claims = CredentialClaims.for_identity(
            identity,
            issued_at=int(self.clock()),
            lifetime=Limits.TOKEN_LIFETIME_SECONDS,
            issuer=self.config.security.issuer,
        )

        try:
            return jwt.encode(claims.model_dump(), secret, algorithm=ALGORITHM)
        except (jwt.PyJWTError, TypeError, ValueError) as e:
            raise SigningFailedError(cause=e, user_id=identity.user_id)

    def validate_credential(self, token: Optional[str]) -> Optional[CredentialClaims]:
        """Decode a credential; None for anything empty, malformed, forged or expired."""
        if not token:
            return None

        secret = self._secret or self._stored_secret()
        if not secret:
            return None

        try:
            # Expiry is judged against self.clock, the same clock that stamped it
            payload = jwt.decode(
                token,
                secret,
                algorithms=[ALGORITHM],
                options={"verify_exp": False, "verify_iat": False, "require": ["exp", "iat"]},
            )
            claims = CredentialClaims.model_validate(payload)
        except (jwt.PyJWTError, PydanticValidationError) as e:
            self.logger.debug("Credential rejected", extra={"reason": type(e).__name__})
            return None

        if claims.exp <= int(self.clock()):
            self.logger.debug("Credential rejected", extra={"reason": "expired"})
            return None
        return claims

    def validate_bearer_header(self, header: Optional[str]) -> Optional[CredentialClaims]:
        if not header or not header.startswith(BEARER_PREFIX):
            return None
        return self.validate_credential(header[len(BEARER_PREFIX) :].strip())
