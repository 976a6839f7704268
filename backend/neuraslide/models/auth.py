"""
User, team and authentication schemas.
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from neuraslide.models.common import CamelModel


class UserRole(str, Enum):
    OWNER = "owner"
    ADMIN = "admin"
    MEMBER = "member"
    VIEWER = "viewer"


class User(CamelModel):
    """Public view of a user. Never carries the password hash."""
    id: str
    email: str
    name: str
    role: UserRole
    email_verified: bool = False
    is_active: bool = True
    team_id: Optional[str] = None
    last_login_at: Optional[datetime] = None
    created_at: datetime
    updated_at: Optional[datetime] = None


class Team(CamelModel):
    id: str
    name: str
    owner_id: str
    plan: str = "free"
    created_at: datetime


class SignupRequest(CamelModel):
    email: str
    password: str
    name: str
    team_name: Optional[str] = None


class LoginRequest(CamelModel):
    email: str
    password: str


class ChangePasswordRequest(CamelModel):
    current_password: str
    new_password: str


class ResetPasswordRequest(CamelModel):
    token: str
    new_password: str


class AuthResult(CamelModel):
    user: User
    access_token: str
    team: Optional[Team] = None
    email_verification_token: Optional[str] = None
