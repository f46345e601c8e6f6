import logging
from typing import Any, Dict, Optional

import httpx
from tenacity import RetryCallState, retry, retry_if_exception_type, stop_after_delay

from clients.exceptions import AuthError, FetchError, RateLimitError

DEFAULT_RETRY_AFTER = 5


def _get_retry_after_seconds(retry_state: "RetryCallState") -> float:
    exception = retry_state.outcome.exception()
    if isinstance(exception, RateLimitError) and exception.retry_after is not None:
        logging.warning(f"Rate limit hit. Retrying after {exception.retry_after} seconds...")
        return exception.retry_after
    logging.warning(f"Rate limit hit. Retrying after {DEFAULT_RETRY_AFTER} seconds (default)...")
    return DEFAULT_RETRY_AFTER


def _parse_retry_after(response: httpx.Response) -> Optional[float]:
    value = response.headers.get("Retry-After")
    if not value:
        return None
    try:
        return max(float(value), 0.0)
    except ValueError:
        return None


class BaseHttpClient:

    def __init__(self, base_url: str, client: httpx.AsyncClient, auth_handler: Optional[Any] = None):
        self.logger = logging.getLogger(self.__class__.__name__)
        if not base_url:
            raise ValueError("Base URL is required.")

        self.base_url = base_url.rstrip("/")
        self.auth_handler = auth_handler

        self._client = client

    async def get(
        self,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        authenticated: bool = True,
        retry_rate_limit: bool = True,
    ) -> Any:
        """
        GET `path` and return the decoded JSON.

        With retry_rate_limit=False a 429 raises RateLimitError right away, for
        secondary lookups that must not hold up the caller.
        """
        if retry_rate_limit:
            return await self._get_with_retry(path, params, authenticated)
        return await self._get_once(path, params, authenticated)

    @retry(
        stop=stop_after_delay(60),
        retry=retry_if_exception_type(RateLimitError),
        wait=_get_retry_after_seconds,
        reraise=True,
    )
    async def _get_with_retry(self, path: str, params: Optional[Dict[str, Any]], authenticated: bool) -> Any:
        return await self._get_once(path, params, authenticated)

    async def _get_once(self, path: str, params: Optional[Dict[str, Any]], authenticated: bool) -> Any:
        headers = {"Accept": "application/json"}
        if authenticated and self.auth_handler:
            try:
                auth_headers = await self.auth_handler.get_auth_headers()
            except AuthError as e:
                raise FetchError(f"Could not authenticate GET {path}: {e}") from e
            headers.update(auth_headers)

        url = f"{self.base_url}/{path.lstrip('/')}"

        try:
            self.logger.debug(f"GET {url}")
            response = await self._client.get(url, params=params, headers=headers)
        except httpx.RequestError as e:
            self.logger.error(f"A network error occurred: {e}")
            raise FetchError(f"Network error on GET {path}: {e}") from e

        if response.status_code == 429:
            raise RateLimitError(
                f"Too Many Requests on GET {path}",
                retry_after=_parse_retry_after(response),
                body=response.text,
            )

        try:
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise FetchError(f"HTTP Error on GET {path}", status_code=e.response.status_code,
                             body=e.response.text) from e

        try:
            return response.json()
        except ValueError as e:
            raise FetchError(f"Malformed JSON on GET {path}", status_code=response.status_code,
                             body=response.text) from e
