# Authentication module: verifies caller tokens issued by the session service

from .dependencies import get_current_user, get_staff_user, get_database, jwt_manager
from .models import TokenData

__all__ = [
    "get_current_user",
    "get_staff_user",
    "get_database",
    "jwt_manager",
    "TokenData"
]
