from typing import Optional

from pydantic import BaseModel, ConfigDict


class AccessTokenResponse(BaseModel):
    access_token: str
    token_type: str = "Bearer"
    expires_in: int = 21600
    scope: Optional[str] = None
    user_id: Optional[int] = None
    refresh_token: Optional[str] = None


class StoredToken(BaseModel):
    access_token: str
    refresh_token: Optional[str] = None
    expires_at: float = 0.0
    user_id: Optional[int] = None


class ItemDetail(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str
    title: Optional[str] = None
    price: Optional[float] = None
    seller_id: Optional[int] = None


class UserProfile(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: int
    nickname: Optional[str] = None


class TelegramSendResult(BaseModel):
    ok: bool
    description: Optional[str] = None
    error_code: Optional[int] = None
