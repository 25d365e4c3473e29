# Request dependencies: database connection and authenticated caller

import logging
from fastapi import HTTPException, Depends, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from .models import TokenData
from db.manager import DatabaseManager
from db.supporting_operations import SupportingOperations
from utils.config import Config
from utils.security import JWTManager

logger = logging.getLogger(__name__)

config = Config()
jwt_manager = JWTManager(
    secret_key=config.get("auth.jwt_secret_key", "development-secret-key"),
    algorithm=config.get("auth.jwt_algorithm", "HS256"),
    access_token_expire_minutes=config.get("auth.access_token_expire_minutes", 1440)
)
security = HTTPBearer()


def get_database():
    """Open a database connection for the duration of one request"""
    db_config = config.get_database_config()
    db_manager = DatabaseManager(
        db_config["path"],
        auto_connect=True,
        busy_timeout_ms=db_config.get("busy_timeout_ms", 5000)
    )
    try:
        yield db_manager
    finally:
        db_manager.close()


def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: DatabaseManager = Depends(get_database)
) -> TokenData:
    """Resolve the caller from the bearer token; the role is read from the users table"""
    payload = jwt_manager.verify_token(credentials.credentials)
    if not payload or "user_id" not in payload:
        logger.warning("Rejected request with an invalid or expired token")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication failed, please sign in again"
        )

    user_info = SupportingOperations(db).get_user_by_id(payload["user_id"])
    if not user_info or user_info["status"] != "active":
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User does not exist or is suspended"
        )

    return TokenData(
        user_id=user_info["user_id"],
        role=user_info["role"],
        exp=payload.get("exp")
    )


def get_staff_user(current_user: TokenData = Depends(get_current_user)) -> TokenData:
    """Staff only (chef, catering manager, system admin)"""
    if not current_user.is_staff:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Staff role required"
        )
    return current_user
