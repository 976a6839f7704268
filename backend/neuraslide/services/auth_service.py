"""
Authentication service: signup, login, password lifecycle and email
verification.

Tokens are stateless JWTs, so logout needs no server-side work.
"""

from typing import Optional

from fastapi import Depends
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
import structlog

from neuraslide.db.models import TeamModel, UserModel, utcnow
from neuraslide.infrastructure.config import Settings, get_settings
from neuraslide.infrastructure.database import Database, get_database
from neuraslide.infrastructure.exceptions import (
    AuthenticationError,
    AuthorizationError,
    BadRequestError,
    ConflictError,
    NotFoundError,
)
from neuraslide.infrastructure.security import (
    EMAIL_VERIFICATION,
    PASSWORD_RESET,
    create_access_token,
    create_special_token,
    decode_special_token,
    hash_password,
    verify_password,
)
from neuraslide.models.auth import AuthResult, SignupRequest, Team, User, UserRole

logger = structlog.get_logger()


def normalize_email(email: str) -> str:
    return email.strip().lower()


class AuthService:
    """Account lifecycle backed by the users and teams tables."""

    def __init__(self, db: Database, settings: Settings):
        self.db = db
        self.settings = settings

    def _issue_token(self, user: UserModel) -> str:
        return create_access_token(self.settings, user.id, user.email, user.role, user.team_id)

    async def _find_by_email(self, session, email: str) -> Optional[UserModel]:
        result = await session.execute(select(UserModel).where(UserModel.email == normalize_email(email)))
        return result.scalar_one_or_none()

    # -----------------------------------------------------------------------
    # Signup / Login
    # -----------------------------------------------------------------------

    async def signup(self, data: SignupRequest) -> AuthResult:
        """Create a user, and a team owned by them when ``team_name`` is given."""
        async with self.db.session() as session:
            if await self._find_by_email(session, data.email):
                raise ConflictError("User with this email already exists")

            is_admin = normalize_email(data.email) in self.settings.admin_email_list
            user = UserModel(
                email=normalize_email(data.email),
                password=hash_password(data.password),
                name=data.name.strip(),
                role=UserRole.ADMIN.value if is_admin else UserRole.MEMBER.value,
            )
            session.add(user)
            try:
                await session.flush()
            except IntegrityError:
                raise ConflictError("User with this email already exists")

            team_row = None
            if data.team_name:
                team_row = TeamModel(name=data.team_name.strip(), owner_id=user.id)
                session.add(team_row)
                await session.flush()
                user.team_id = team_row.id
                if not is_admin:
                    user.role = UserRole.OWNER.value
                await session.flush()

            await session.refresh(user)
            token = self._issue_token(user)
            verification = create_special_token(self.settings, user.id, EMAIL_VERIFICATION)

            logger.info("user_signed_up", user_id=user.id, team_id=user.team_id)
            return AuthResult(
                user=User.model_validate(user),
                access_token=token,
                team=Team.model_validate(team_row) if team_row else None,
                email_verification_token=None if self.settings.is_production else verification,
            )

    async def login(self, email: str, password: str) -> AuthResult:
        async with self.db.session() as session:
            user = await self._find_by_email(session, email)
            if user is None or not verify_password(password, user.password):
                logger.info("login_failed")
                raise AuthenticationError("Invalid email or password")
            if not user.is_active:
                raise AuthorizationError("Account has been suspended")

            user.last_login_at = utcnow()
            await session.flush()
            await session.refresh(user)

            team_row = await session.get(TeamModel, user.team_id) if user.team_id else None
            logger.info("user_logged_in", user_id=user.id)
            return AuthResult(
                user=User.model_validate(user),
                access_token=self._issue_token(user),
                team=Team.model_validate(team_row) if team_row else None,
            )

    async def get_user(self, user_id: str) -> User:
        async with self.db.session() as session:
            user = await session.get(UserModel, user_id)
            if user is None:
                raise NotFoundError("User not found")
            return User.model_validate(user)

    # -----------------------------------------------------------------------
    # Passwords
    # -----------------------------------------------------------------------

    async def forgot_password(self, email: str) -> Optional[str]:
        """
        Issue a password reset token if the account exists.

        The caller answers identically either way so the endpoint cannot be
        used to discover registered emails. Returns the token outside
        production so it can be exercised without a mail provider.
        """
        async with self.db.session() as session:
            user = await self._find_by_email(session, email)
            if user is None:
                logger.info("password_reset_unknown_email")
                return None
            token = create_special_token(self.settings, user.id, PASSWORD_RESET)
            logger.info("password_reset_requested", user_id=user.id)
            return None if self.settings.is_production else token

    async def reset_password(self, token: str, new_password: str) -> None:
        user_id = decode_special_token(self.settings, token, PASSWORD_RESET)
        if user_id is None:
            raise BadRequestError("Invalid or expired reset token")

        async with self.db.session() as session:
            user = await session.get(UserModel, user_id)
            if user is None:
                raise BadRequestError("Invalid or expired reset token")
            user.password = hash_password(new_password)
            await session.flush()
        logger.info("password_reset_completed", user_id=user_id)

    async def change_password(self, user_id: str, current_password: str, new_password: str) -> None:
        async with self.db.session() as session:
            user = await session.get(UserModel, user_id)
            if user is None:
                raise NotFoundError("User not found")
            if not verify_password(current_password, user.password):
                raise BadRequestError("Current password is incorrect")
            user.password = hash_password(new_password)
            await session.flush()
        logger.info("password_changed", user_id=user_id)

    async def verify_email(self, token: str) -> User:
        user_id = decode_special_token(self.settings, token, EMAIL_VERIFICATION)
        if user_id is None:
            raise BadRequestError("Invalid or expired verification token")

        async with self.db.session() as session:
            user = await session.get(UserModel, user_id)
            if user is None:
                raise BadRequestError("Invalid or expired verification token")
            user.email_verified = True
            await session.flush()
            await session.refresh(user)
            logger.info("email_verified", user_id=user_id)
            return User.model_validate(user)


def get_auth_service(
    db: Database = Depends(get_database),
    settings: Settings = Depends(get_settings),
) -> AuthService:
    return AuthService(db, settings)
