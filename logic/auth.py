import asyncio
import logging
import time
from typing import Dict, Optional
from urllib.parse import urlencode

import httpx
from pydantic import ValidationError

from clients.exceptions import AuthError
from models.meli_models import AccessTokenResponse, StoredToken
from utils.config import Settings
from utils.utils import read_json_mapping, write_json_atomic

# Refresh a bit before Mercado Libre considers the token expired
EXPIRY_MARGIN_SECONDS = 60


class TokenStore:
    def __init__(self, path: str):
        self.path = path

    def load(self) -> Optional[StoredToken]:
        data = read_json_mapping(self.path)
        if not data:
            return None
        try:
            return StoredToken.model_validate(data)
        except ValidationError:
            logging.warning(f"Token file {self.path} is invalid, ignoring it.")
            return None

    def save(self, token: StoredToken) -> None:
        write_json_atomic(self.path, token.model_dump())


class MeliAuthHandler:
    def __init__(self, settings: Settings, http_client: httpx.AsyncClient, token_store: TokenStore):
        self.logger = logging.getLogger(self.__class__.__name__)
        self.token_url = f"{settings.BASE_URL.rstrip('/')}/oauth/token"
        self.authorization_base_url = settings.AUTH_URL

        self._app_id = settings.APP_ID
        self._client_secret = settings.CLIENT_SECRET
        self._redirect_uri = settings.REDIRECT_URI

        self._client = http_client
        self._store = token_store
        self._lock = asyncio.Lock()

        self._token: Optional[StoredToken] = token_store.load()
        if self._token is None and settings.ACCESS_TOKEN:
            # expires_at=0 forces a refresh on first use when a refresh token is known
            self._token = StoredToken(
                access_token=settings.ACCESS_TOKEN,
                refresh_token=settings.REFRESH_TOKEN,
                expires_at=0.0 if settings.REFRESH_TOKEN else float("inf"),
            )

    @property
    def token(self) -> Optional[StoredToken]:
        return self._token

    def authorization_url(self) -> str:
        if not self._app_id or not self._redirect_uri:
            raise AuthError("APP_ID and REDIRECT_URI are required to build the authorization URL.")
        query = urlencode({
            "response_type": "code",
            "client_id": self._app_id,
            "redirect_uri": self._redirect_uri,
        })
        return f"{self.authorization_base_url}?{query}"

    async def get_auth_headers(self) -> Dict[str, str]:
        if self._token is None:
            self.logger.debug("No access token configured, calling public endpoint.")
            return {}

        if time.time() >= self._token.expires_at - EXPIRY_MARGIN_SECONDS:
            async with self._lock:
                # another caller may have refreshed while we waited
                if time.time() >= self._token.expires_at - EXPIRY_MARGIN_SECONDS:
                    self.logger.info("Token is invalid or expired. Fetching a new one.")
                    await self.refresh()

        return {"Authorization": f"Bearer {self._token.access_token}"}

    async def exchange_code(self, code: str) -> AccessTokenResponse:
        if not code:
            raise AuthError("Authorization code is required.")
        self.logger.info("Exchanging authorization code for an access token...")
        return await self._request_token({
            "grant_type": "authorization_code",
            "client_id": self._app_id,
            "client_secret": self._client_secret,
            "code": code,
            "redirect_uri": self._redirect_uri,
        })

    async def refresh(self) -> AccessTokenResponse:
        if self._token is None or not self._token.refresh_token:
            raise AuthError("No refresh token available, authorize the application again via /auth.")
        self.logger.info("Requesting new access token from Mercado Libre...")
        return await self._request_token({
            "grant_type": "refresh_token",
            "client_id": self._app_id,
            "client_secret": self._client_secret,
            "refresh_token": self._token.refresh_token,
        })

    async def _request_token(self, payload: Dict[str, Optional[str]]) -> AccessTokenResponse:
        headers = {
            "Accept": "application/json",
            "Content-Type": "application/x-www-form-urlencoded",
        }
        try:
            response = await self._client.post(self.token_url, data=payload, headers=headers)
            response.raise_for_status()
            token_data = AccessTokenResponse.model_validate(response.json())
        except httpx.HTTPStatusError as e:
            self.logger.critical(f"Could not authenticate with Mercado Libre. {e.response.text}")
            raise AuthError(f"Token request failed with HTTP {e.response.status_code}.") from e
        except httpx.RequestError as e:
            raise AuthError(f"Network error while requesting token: {e}") from e
        except (ValueError, ValidationError) as e:
            raise AuthError(f"Invalid token response: {e}") from e

        previous_refresh = self._token.refresh_token if self._token else None
        self._token = StoredToken(
            access_token=token_data.access_token,
            # Mercado Libre rotates refresh tokens, keep the old one if none came back
            refresh_token=token_data.refresh_token or previous_refresh,
            expires_at=time.time() + token_data.expires_in,
            user_id=token_data.user_id,
        )
        self._store.save(self._token)
        self.logger.info("New token acquired successfully.")
        return token_data
