"""
Authentication API endpoints.
"""

from typing import Any

from fastapi import APIRouter, Body, Depends
import structlog

from neuraslide.infrastructure.auth import Identity, require_auth
from neuraslide.infrastructure.responses import created_response, success_response
from neuraslide.models.auth import ChangePasswordRequest, LoginRequest, ResetPasswordRequest, SignupRequest
from neuraslide.services.auth_service import AuthService, get_auth_service
from neuraslide.validators.auth import (
    validate_change_password,
    validate_forgot_password,
    validate_login,
    validate_reset_password,
    validate_signup,
    validate_verify_email,
)
from neuraslide.validators.base import ensure_valid, parse_as

router = APIRouter()
logger = structlog.get_logger()

RESET_SENT_MESSAGE = "If the email exists, a reset link has been sent"


@router.post("/signup")
async def signup(payload: Any = Body(None), service: AuthService = Depends(get_auth_service)):
    """Register a new user, optionally creating their team."""
    ensure_valid(validate_signup(payload))
    result = await service.signup(parse_as(SignupRequest, payload))
    return created_response("User registered successfully", result)


@router.post("/login")
async def login(payload: Any = Body(None), service: AuthService = Depends(get_auth_service)):
    ensure_valid(validate_login(payload))
    data = parse_as(LoginRequest, payload)
    result = await service.login(data.email, data.password)
    return success_response("Login successful", result)


@router.post("/logout")
async def logout(identity: Identity = Depends(require_auth)):
    """Tokens are stateless; the client discards its copy."""
    logger.info("user_logged_out", user_id=identity.user_id)
    return success_response("Logout successful")


@router.get("/me")
async def me(identity: Identity = Depends(require_auth), service: AuthService = Depends(get_auth_service)):
    user = await service.get_user(identity.user_id)
    return success_response("User retrieved successfully", {"user": user})


@router.post("/forgot-password")
async def forgot_password(payload: Any = Body(None), service: AuthService = Depends(get_auth_service)):
    """Same answer whether or not the email is registered."""
    ensure_valid(validate_forgot_password(payload))
    token = await service.forgot_password(payload["email"])
    return success_response(RESET_SENT_MESSAGE, {"resetToken": token} if token else None)


@router.post("/reset-password")
async def reset_password(payload: Any = Body(None), service: AuthService = Depends(get_auth_service)):
    ensure_valid(validate_reset_password(payload))
    data = parse_as(ResetPasswordRequest, payload)
    await service.reset_password(data.token, data.new_password)
    return success_response("Password reset successfully")


@router.post("/change-password")
async def change_password(
    payload: Any = Body(None),
    identity: Identity = Depends(require_auth),
    service: AuthService = Depends(get_auth_service),
):
    ensure_valid(validate_change_password(payload))
    data = parse_as(ChangePasswordRequest, payload)
    await service.change_password(identity.user_id, data.current_password, data.new_password)
    return success_response("Password changed successfully")


@router.post("/verify-email")
async def verify_email(payload: Any = Body(None), service: AuthService = Depends(get_auth_service)):
    ensure_valid(validate_verify_email(payload))
    user = await service.verify_email(payload["token"])
    return success_response("Email verified successfully", {"user": user})
