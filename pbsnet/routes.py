"""
HTTP routes for the pbsnet API.
"""

from __future__ import annotations

import logging
from typing import Optional, Union

from fastapi import APIRouter, Body, Depends, File, Query, UploadFile
from fastapi.concurrency import run_in_threadpool

from pbsnet.bridge import IdentityBridge
from pbsnet.dependencies import (
    get_current_user,
    get_identity_bridge,
    get_media_service,
    get_profile_store,
    get_system_data_store,
    require_admin,
)
from pbsnet.errors import InvalidInput
from pbsnet.media import MediaService
from pbsnet.profiles import ProfileStore, SearchFilters
from pbsnet.schemas import (
    AdminSubclassResponse,
    AdminUpdateRequest,
    AdminUpdateResponse,
    AdminViewRequest,
    AdminViewResponse,
    ApiKeyResponse,
    ForgotPasswordRequest,
    GoogleRedirectResponse,
    HealthResponse,
    JsonMergeResponse,
    LoginRequest,
    LoginResponse,
    MeResponse,
    MessageResponse,
    OAuthSuccessRequest,
    PasswordRequest,
    PictureResponse,
    PublicProfileResponse,
    RegisterRequest,
    RegisterResponse,
    RetrieveKeyRequest,
    RetrieveKeyResponse,
    SearchResponse,
    UpdateMeRequest,
    UsernameRequest,
)
from pbsnet.system_data import SystemDataStore
from pbsnet.tokens import TokenClaims

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/health", response_model=HealthResponse)
def health():
    return HealthResponse(status="ok")


# Authentication


@router.post("/auth/register", response_model=RegisterResponse, status_code=201)
def register(
    payload: RegisterRequest, bridge: IdentityBridge = Depends(get_identity_bridge)
):
    user_id = bridge.register(payload.email, payload.password, payload.name)
    return RegisterResponse(message="Registration Successful", userId=user_id)


@router.post("/auth/login", response_model=LoginResponse)
def login(payload: LoginRequest, bridge: IdentityBridge = Depends(get_identity_bridge)):
    result = bridge.login(payload.identifier, payload.password)
    return LoginResponse(message="Login OK", token=result.token, userId=result.user_id)


@router.get("/auth/google", response_model=GoogleRedirectResponse)
def google_login_url(bridge: IdentityBridge = Depends(get_identity_bridge)):
    return GoogleRedirectResponse(redirectUrl=bridge.google_redirect_url())


@router.post("/auth/oauth-success", response_model=LoginResponse)
def oauth_success(
    payload: OAuthSuccessRequest, bridge: IdentityBridge = Depends(get_identity_bridge)
):
    """
    Exchange a platform session JWT (after a Google login) for our own token.
    """
    result = bridge.oauth_exchange(payload.appwriteJwt)
    return LoginResponse(
        message="OAuth Login Success", token=result.token, userId=result.user_id
    )


@router.post("/auth/forgot-password", response_model=MessageResponse)
def forgot_password(
    payload: ForgotPasswordRequest, bridge: IdentityBridge = Depends(get_identity_bridge)
):
    bridge.request_password_recovery(payload.email)
    return MessageResponse(message="Recovery link sent")


@router.post("/auth/retrieve-key", response_model=RetrieveKeyResponse)
def retrieve_key(
    payload: RetrieveKeyRequest, bridge: IdentityBridge = Depends(get_identity_bridge)
):
    key = bridge.retrieve_api_key(payload.identifier, payload.password)
    return RetrieveKeyResponse(status="success", user_api_key=key)


# Own profile


@router.get("/me", response_model=MeResponse)
def get_me(
    user: TokenClaims = Depends(get_current_user),
    profiles: ProfileStore = Depends(get_profile_store),
    media: MediaService = Depends(get_media_service),
):
    profile = profiles.get(user.user_id)
    pic_url = (
        media.build_view_url(profile.profile_pic_id, admin=True)
        if profile.profile_pic_id
        else None
    )
    return MeResponse(
        full_name=profile.full_name,
        username=profile.username,
        email=profile.email,
        mobile=profile.mobile,
        post_name=profile.post_name,
        office_name=profile.office_name,
        pbs_name=profile.pbs_name,
        api_key=profile.api_key,
        profile_pic_id=profile.profile_pic_id,
        profile_pic_url=pic_url,
        personal_json=profile.personal_json,
    )


@router.put("/me", response_model=MessageResponse)
def update_me(
    payload: UpdateMeRequest,
    user: TokenClaims = Depends(get_current_user),
    profiles: ProfileStore = Depends(get_profile_store),
):
    profiles.update_core(user.user_id, payload.model_dump(exclude_none=True))
    return MessageResponse(message="Updated")


@router.patch("/me/json", response_model=JsonMergeResponse)
def merge_my_json(
    partial: dict = Body(...),
    user: TokenClaims = Depends(get_current_user),
    profiles: ProfileStore = Depends(get_profile_store),
):
    merged = profiles.merge_json(user.user_id, partial)
    return JsonMergeResponse(message="JSON Updated", data=merged)


@router.post("/me/username", response_model=MessageResponse)
def set_my_username(
    payload: UsernameRequest,
    user: TokenClaims = Depends(get_current_user),
    profiles: ProfileStore = Depends(get_profile_store),
):
    profiles.set_username(user.user_id, payload.newUsername)
    return MessageResponse(message="Username Updated")


@router.post("/me/pic", response_model=PictureResponse)
async def upload_my_picture(
    avatar: Optional[UploadFile] = File(None),
    user: TokenClaims = Depends(get_current_user),
    media: MediaService = Depends(get_media_service),
):
    if avatar is None:
        raise InvalidInput("No file uploaded")
    content = await avatar.read()
    file_id = await run_in_threadpool(
        media.replace_profile_picture, user.user_id, content, avatar.filename
    )
    return PictureResponse(message="Profile Picture Updated", fileId=file_id)


@router.post("/me/pass", response_model=MessageResponse)
def change_my_password(
    payload: PasswordRequest,
    user: TokenClaims = Depends(get_current_user),
    bridge: IdentityBridge = Depends(get_identity_bridge),
):
    bridge.change_password(user.user_id, payload.newPassword)
    return MessageResponse(message="Password Changed")


@router.post("/me/key", response_model=ApiKeyResponse)
def regenerate_my_key(
    user: TokenClaims = Depends(get_current_user),
    profiles: ProfileStore = Depends(get_profile_store),
):
    key = profiles.generate_api_key(user.user_id)
    return ApiKeyResponse(message="Key Generated", key=key)


# Directory


@router.get(
    "/users/search",
    response_model=SearchResponse,
    dependencies=[Depends(get_current_user)],
)
def search_users(
    pbs: Optional[str] = Query(None),
    office: Optional[str] = Query(None),
    mobile: Optional[str] = Query(None),
    designation: Optional[str] = Query(None),
    username: Optional[str] = Query(None),
    search: Optional[str] = Query(None),
    page: int = Query(1, ge=1),
    profiles: ProfileStore = Depends(get_profile_store),
):
    filters = SearchFilters(
        pbs=pbs,
        office=office,
        mobile=mobile,
        designation=designation,
        username=username,
        name_search=search,
    )
    return SearchResponse(users=profiles.search(filters, page=page))


@router.get(
    "/profile/{username}",
    response_model=PublicProfileResponse,
    dependencies=[Depends(get_current_user)],
)
def public_profile(
    username: str,
    profiles: ProfileStore = Depends(get_profile_store),
):
    return PublicProfileResponse(**profiles.get_public_by_username(username))


# Admin (shared-secret gated)


@router.post(
    "/admin/user-app-data/view",
    response_model=Union[AdminSubclassResponse, AdminViewResponse],
    dependencies=[Depends(require_admin)],
)
def admin_view_app_data(
    payload: AdminViewRequest,
    profiles: ProfileStore = Depends(get_profile_store),
    system_data: SystemDataStore = Depends(get_system_data_store),
):
    profile = profiles.find_by_api_key(payload.target_user_key)
    if payload.subclass:
        return AdminSubclassResponse(
            user=profile.full_name,
            subclass_data=system_data.get_subclass(profile.user_id, payload.subclass),
        )
    return AdminViewResponse(
        full_name=profile.full_name,
        username=profile.username,
        email=profile.email,
        mobile=profile.mobile,
        designation=profile.post_name,
        office=profile.office_name,
        pbs=profile.pbs_name,
        personal_json=profile.personal_json,
        app_json=system_data.get_all(profile.user_id),
    )


@router.patch(
    "/admin/user-app-data",
    response_model=AdminUpdateResponse,
    dependencies=[Depends(require_admin)],
)
def admin_update_app_data(
    payload: AdminUpdateRequest,
    profiles: ProfileStore = Depends(get_profile_store),
    system_data: SystemDataStore = Depends(get_system_data_store),
):
    if not payload.subclass or payload.data is None:
        raise InvalidInput("Subclass and Data required")
    profile = profiles.find_by_api_key(payload.target_user_key)
    updated = system_data.upsert_subclass(profile.user_id, payload.subclass, payload.data)
    logger.info("System data '%s' updated for %s", payload.subclass, profile.user_id)
    return AdminUpdateResponse(
        message=f"System Data Updated for '{payload.subclass}'", updated_data=updated
    )
