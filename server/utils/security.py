# JWT handling
# Tokens are issued by the external session service; this side only needs to
# verify them (and mint them for scripts and tests)

import jwt
from datetime import datetime, timedelta, timezone
from typing import Dict, Any, Optional


class JWTManager:
    """
    JWT token manager
    """

    def __init__(self, secret_key: str, algorithm: str = "HS256",
                 access_token_expire_minutes: int = 1440):
        self.secret_key = secret_key
        self.algorithm = algorithm
        self.access_token_expire_minutes = access_token_expire_minutes

    def create_access_token(self, data: Dict[str, Any]) -> str:
        """
        Create an access token

        Args:
            data: claims, usually user_id and role

        Returns:
            encoded JWT
        """
        to_encode = data.copy()

        now = datetime.now(timezone.utc)
        expire = now + timedelta(minutes=self.access_token_expire_minutes)
        to_encode.update({"exp": expire, "iat": now})

        return jwt.encode(to_encode, self.secret_key, algorithm=self.algorithm)

    def verify_token(self, token: str) -> Optional[Dict[str, Any]]:
        """
        Verify a token

        Args:
            token: encoded JWT

        Returns:
            decoded claims, or None when expired or invalid
        """
        try:
            return jwt.decode(token, self.secret_key, algorithms=[self.algorithm])
        except jwt.ExpiredSignatureError:
            return None
        except jwt.InvalidTokenError:
            return None
