# Authentication data models

from typing import Optional
from pydantic import BaseModel


class TokenData(BaseModel):
    """Authenticated caller, passed explicitly into every core operation"""
    user_id: int
    role: str
    exp: Optional[int] = None

    @property
    def is_staff(self) -> bool:
        return self.role in ('chef', 'catering_manager', 'system_admin')
