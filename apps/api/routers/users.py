"""User account, session and channel endpoints."""

from typing import Optional

from fastapi import APIRouter, Body, Depends, File, Form, Request, UploadFile
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_db
from routers.auth_scope import REFRESH_COOKIE, AuthContext, clear_auth_cookies, get_auth_context, set_auth_cookies
from routers.envelope import api_response
from routers.rate_limit import auth_rate_limit
from services.object_store import ObjectStore, discard_staged, get_object_store, stage_upload
from services.users import (
    change_password_service,
    get_channel_profile_service,
    get_public_user,
    get_watch_history_service,
    login_user_service,
    logout_user_service,
    refresh_access_token_service,
    register_user_service,
    update_account_service,
    update_user_image_service,
)

router = APIRouter()


class LoginRequest(BaseModel):
    username: Optional[str] = None
    email: Optional[str] = None
    password: Optional[str] = None


class RefreshTokenRequest(BaseModel):
    refresh_token: Optional[str] = None


class ChangePasswordRequest(BaseModel):
    old_password: Optional[str] = None
    new_password: Optional[str] = None


class UpdateAccountRequest(BaseModel):
    full_name: Optional[str] = None
    email: Optional[str] = None


@router.post("/register")
async def register_user(
    full_name: str = Form(default=""),
    email: str = Form(default=""),
    username: str = Form(default=""),
    password: str = Form(default=""),
    avatar: Optional[UploadFile] = File(default=None),
    cover_image: Optional[UploadFile] = File(default=None),
    _rate_limit: None = Depends(auth_rate_limit("register")),
    db: AsyncSession = Depends(get_db),
    storage: ObjectStore = Depends(get_object_store),
):
    avatar_path = cover_path = None
    try:
        avatar_path = await stage_upload(avatar)
        cover_path = await stage_upload(cover_image)
        user = await register_user_service(
            full_name=full_name,
            email=email,
            username=username,
            password=password,
            avatar_path=avatar_path,
            cover_image_path=cover_path,
            db=db,
            storage=storage,
        )
    finally:
        discard_staged(avatar_path, cover_path)
    return api_response(user, "User registered successfully", status_code=201)


@router.post("/login")
async def login_user(
    request: LoginRequest,
    _rate_limit: None = Depends(auth_rate_limit("login")),
    db: AsyncSession = Depends(get_db),
):
    result = await login_user_service(
        username=request.username,
        email=request.email,
        password=request.password,
        db=db,
    )
    response = api_response(result, "User logged in successfully")
    set_auth_cookies(response, result["access_token"], result["refresh_token"])
    return response


@router.post("/logout")
async def logout_user(
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    await logout_user_service(user_id=auth.user_id, db=db)
    response = api_response({}, "User logged out")
    clear_auth_cookies(response)
    return response


@router.post("/refresh-token")
async def refresh_access_token(
    http_request: Request,
    request: Optional[RefreshTokenRequest] = Body(default=None),
    _rate_limit: None = Depends(auth_rate_limit("refresh")),
    db: AsyncSession = Depends(get_db),
):
    incoming = http_request.cookies.get(REFRESH_COOKIE) or (request.refresh_token if request else None)
    tokens = await refresh_access_token_service(refresh_token=incoming, db=db)
    response = api_response(tokens, "Access token refreshed")
    set_auth_cookies(response, tokens["access_token"], tokens["refresh_token"])
    return response


@router.post("/change-password")
async def change_password(
    request: ChangePasswordRequest,
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    await change_password_service(
        user_id=auth.user_id,
        old_password=request.old_password,
        new_password=request.new_password,
        db=db,
    )
    return api_response({}, "Password changed successfully")


@router.get("/current-user")
async def get_current_user(
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    user = await get_public_user(db, auth.user_id)
    return api_response(user, "User fetched successfully")


@router.patch("/update-account")
async def update_account(
    request: UpdateAccountRequest,
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    user = await update_account_service(
        user_id=auth.user_id,
        full_name=request.full_name,
        email=request.email,
        db=db,
    )
    return api_response(user, "Account details updated successfully")


async def _replace_user_image(
    field_name: str,
    upload: Optional[UploadFile],
    auth: AuthContext,
    db: AsyncSession,
    storage: ObjectStore,
):
    staged = await stage_upload(upload)
    try:
        return await update_user_image_service(
            user_id=auth.user_id,
            field_name=field_name,
            image_path=staged,
            db=db,
            storage=storage,
        )
    finally:
        discard_staged(staged)


@router.patch("/avatar")
async def update_avatar(
    avatar: Optional[UploadFile] = File(default=None),
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
    storage: ObjectStore = Depends(get_object_store),
):
    user = await _replace_user_image("avatar", avatar, auth, db, storage)
    return api_response(user, "Avatar image updated successfully")


@router.patch("/cover-image")
async def update_cover_image(
    cover_image: Optional[UploadFile] = File(default=None),
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
    storage: ObjectStore = Depends(get_object_store),
):
    user = await _replace_user_image("cover_image", cover_image, auth, db, storage)
    return api_response(user, "Cover image updated successfully")


@router.get("/c/{username}")
async def get_channel_profile(
    username: str,
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    channel = await get_channel_profile_service(username=username, viewer_id=auth.user_id, db=db)
    return api_response(channel, "User channel fetched successfully")


@router.get("/history")
async def get_watch_history(
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    history = await get_watch_history_service(user_id=auth.user_id, db=db)
    return api_response(history, "Watch history fetched successfully")
