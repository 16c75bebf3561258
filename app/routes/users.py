"""
Account and follow-graph endpoints.
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from app.deps import get_services
from app.responses import to_response
from app.routes.paging import page_kwargs
from core.errors import ValidationIssue
from core.images import decode_base64_image
from core.services.container import Services
from core.services.shared import _tool_error_payload


router = APIRouter(prefix="/users", tags=["users"])


# =============================================================================
# Schemas
# =============================================================================

class RegisterRequest(BaseModel):
    username: str
    passwd_hash: str
    email: str


class LoginRequest(BaseModel):
    email: Optional[str] = None
    username: Optional[str] = None
    passwd_hash: str


class UpdateProfileRequest(BaseModel):
    session_token: str
    bio: Optional[str] = None
    location: Optional[str] = None


class ChangePasswordRequest(BaseModel):
    session_token: str
    current_passwd_hash: str
    new_passwd_hash: str


class ChangeAvatarRequest(BaseModel):
    session_token: str
    image_base64: str
    content_type: Optional[str] = None


class FollowRequest(BaseModel):
    session_token: str
    target_username: str
    action: str = "follow"


# =============================================================================
# Endpoints
# =============================================================================

@router.get("/checkUsername")
def check_username(username: str = Query(...), services: Services = Depends(get_services)):
    return to_response(services.users.check_username(username))


@router.post("/register")
def register(body: RegisterRequest, services: Services = Depends(get_services)):
    result = services.users.register(body.username, body.passwd_hash, body.email)
    return to_response(result, success_status=201)


@router.post("/login")
def login(body: LoginRequest, services: Services = Depends(get_services)):
    identifier = body.email or body.username
    if not identifier:
        issue = ValidationIssue("Missing email or username", field="email", error_type="required")
        return to_response(_tool_error_payload("login", issue))
    return to_response(services.users.login(identifier, body.passwd_hash))


@router.get("/profile")
def get_profile(
    session_token: Optional[str] = Query(None),
    username: Optional[str] = Query(None),
    services: Services = Depends(get_services),
):
    return to_response(services.users.get_profile(session_token, username))


@router.post("/update")
def update_profile(body: UpdateProfileRequest, services: Services = Depends(get_services)):
    return to_response(services.users.update_profile(body.session_token, body.bio, body.location))


@router.post("/changePassword")
def change_password(body: ChangePasswordRequest, services: Services = Depends(get_services)):
    result = services.users.change_password(
        body.session_token,
        body.current_passwd_hash,
        body.new_passwd_hash,
    )
    return to_response(result)


@router.post("/follow")
def follow_user(body: FollowRequest, services: Services = Depends(get_services)):
    return to_response(services.follows.follow_user(body.session_token, body.target_username, body.action))


@router.get("/listFollowers")
def list_followers(
    session_token: Optional[str] = Query(None),
    username: Optional[str] = Query(None),
    limit: Optional[int] = Query(None),
    cursor: Optional[str] = Query(None),
    services: Services = Depends(get_services),
):
    result = services.follows.list_followers(session_token, username, **page_kwargs(limit, cursor))
    return to_response(result)


@router.get("/listFollowing")
def list_following(
    session_token: Optional[str] = Query(None),
    username: Optional[str] = Query(None),
    limit: Optional[int] = Query(None),
    cursor: Optional[str] = Query(None),
    services: Services = Depends(get_services),
):
    result = services.follows.list_following(session_token, username, **page_kwargs(limit, cursor))
    return to_response(result)


@router.post("/changeAvatar")
def change_avatar(body: ChangeAvatarRequest, services: Services = Depends(get_services)):
    try:
        image, content_type = decode_base64_image(body.image_base64, body.content_type)
    except ValidationIssue as issue:
        return to_response(_tool_error_payload("change_avatar", issue))
    return to_response(services.users.change_avatar(body.session_token, image, content_type))
