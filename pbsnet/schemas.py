"""
Pydantic schemas for the pbsnet API.

Field names follow the JSON the frontend already speaks, so some are camelCase.
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field


class MessageResponse(BaseModel):
    message: str


class RegisterRequest(BaseModel):
    email: str = Field(..., min_length=3, max_length=320)
    password: str
    name: str = Field(..., max_length=128)


class RegisterResponse(BaseModel):
    message: str
    userId: str


class LoginRequest(BaseModel):
    identifier: str
    password: str


class LoginResponse(BaseModel):
    message: str
    token: str
    userId: str


class GoogleRedirectResponse(BaseModel):
    redirectUrl: str


class OAuthSuccessRequest(BaseModel):
    appwriteJwt: Optional[str] = None


class ForgotPasswordRequest(BaseModel):
    email: str


class RetrieveKeyRequest(BaseModel):
    identifier: str
    password: str


class RetrieveKeyResponse(BaseModel):
    status: str
    user_api_key: str


class MeResponse(BaseModel):
    full_name: str
    username: Optional[str] = None
    email: str
    mobile: Optional[str] = None
    post_name: Optional[str] = None
    office_name: Optional[str] = None
    pbs_name: Optional[str] = None
    api_key: Optional[str] = None
    profile_pic_id: Optional[str] = None
    profile_pic_url: Optional[str] = None
    personal_json: dict


class UpdateMeRequest(BaseModel):
    full_name: Optional[str] = Field(default=None, max_length=128)
    mobile: Optional[str] = Field(default=None, max_length=32)
    post_name: Optional[str] = None
    office_name: Optional[str] = None
    pbs_name: Optional[str] = None


class JsonMergeResponse(BaseModel):
    message: str
    data: dict


class UsernameRequest(BaseModel):
    newUsername: str


class PasswordRequest(BaseModel):
    newPassword: str


class ApiKeyResponse(BaseModel):
    message: str
    key: str


class PictureResponse(BaseModel):
    message: str
    fileId: str


class SearchResult(BaseModel):
    name: str
    username: Optional[str] = None
    pbs: Optional[str] = None
    designation: Optional[str] = None
    office: Optional[str] = None
    pic_url: Optional[str] = None


class SearchResponse(BaseModel):
    users: list[SearchResult]


class PublicProfileResponse(BaseModel):
    full_name: str
    username: Optional[str] = None
    post_name: Optional[str] = None
    pbs_name: Optional[str] = None
    office_name: Optional[str] = None
    mobile: Optional[str] = None
    email: str
    profile_pic_url: Optional[str] = None
    personal_json: dict


class AdminViewRequest(BaseModel):
    target_user_key: Optional[str] = None
    subclass: Optional[str] = None


class AdminSubclassResponse(BaseModel):
    user: str
    subclass_data: dict


class AdminViewResponse(BaseModel):
    full_name: str
    username: Optional[str] = None
    email: str
    mobile: Optional[str] = None
    designation: Optional[str] = None
    office: Optional[str] = None
    pbs: Optional[str] = None
    personal_json: dict
    app_json: dict


class AdminUpdateRequest(BaseModel):
    target_user_key: Optional[str] = None
    subclass: Optional[str] = None
    data: Optional[dict] = None


class AdminUpdateResponse(BaseModel):
    message: str
    updated_data: dict


class HealthResponse(BaseModel):
    status: str
