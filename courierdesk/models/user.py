from enum import Enum
from datetime import datetime
from typing import Optional
from pydantic import BaseModel, EmailStr

class UserRole(str, Enum):
    ADMIN = "admin"
    COURIER = "courier"

class Courier(BaseModel):
    id: str
    name: str
    email: Optional[EmailStr] = None
    role: UserRole = UserRole.COURIER
    created_at: Optional[datetime] = None

class AuthUser(BaseModel):
    """Authenticated user as seen by the endpoints.

    ``role`` is None when the profile could not be loaded during session
    bootstrap; such a user is authenticated but holds no permissions.
    """
    id: str
    email: Optional[str] = None
    name: Optional[str] = None
    role: Optional[UserRole] = None
    degraded: bool = False
