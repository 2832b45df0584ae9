import logging
import uuid
from datetime import datetime, timedelta, timezone

import jwt
from fastapi import HTTPException

from siteportal.config import settings

logger = logging.getLogger(__name__)


class AuthService:
    """Verifies session tokens issued by the identity provider.

    Tokens are HS256 JWTs whose ``sub`` claim is the person id.
    ``create_access_token`` mints the same shape for tooling and tests.
    """

    @staticmethod
    def create_access_token(
        person_id: str | uuid.UUID, expires_minutes: int | None = None
    ) -> str:
        now = datetime.now(timezone.utc)
        minutes = expires_minutes or settings.jwt_access_token_minutes
        payload = {
            "sub": str(person_id),
            "iat": now,
            "exp": now + timedelta(minutes=minutes),
            "typ": "access",
        }
        return jwt.encode(
            payload, settings.jwt_secret, algorithm=settings.jwt_algorithm
        )

    @staticmethod
    def decode_token(token: str) -> dict:
        try:
            payload = jwt.decode(
                token, settings.jwt_secret, algorithms=[settings.jwt_algorithm]
            )
        except jwt.ExpiredSignatureError:
            raise HTTPException(status_code=401, detail="Session expired")
        except jwt.InvalidTokenError as e:
            logger.info("Rejected session token: %s", e)
            raise HTTPException(status_code=401, detail="Invalid session token")
        if not payload.get("sub"):
            raise HTTPException(status_code=401, detail="Invalid session token")
        return payload


auth_service = AuthService()
