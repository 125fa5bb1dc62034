"""
REST State Storage

Talks to the persistence server's two endpoints:

    GET  {base_url}/user-state/{id}  ->  {"state": AppState}
    POST {base_url}/user-state/{id}  <-  AppState   (upsert)

DESIGN DECISION: Only the initial load is retried (connection errors,
a few quick attempts). Saves are never retried here; the state store's
next debounce cycle re-sends the latest state anyway.
"""

from typing import Optional

import httpx
import structlog
from pydantic import ValidationError
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from finflow.config import get_settings
from finflow.models.ledger import AppState
from finflow.services.storage.interface import (
    ConnectionError,
    StateStorageInterface,
    StorageError,
)


logger = structlog.get_logger(__name__)


class RestStateStorage(StateStorageInterface):
    """
    HTTP implementation of the state document store.

    Pass an `httpx.AsyncClient` to reuse connections (or to inject a
    mock transport in tests); otherwise a short-lived client is
    opened per request.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout_seconds: Optional[float] = None,
        client: Optional[httpx.AsyncClient] = None,
        load_attempts: int = 3,
    ):
        if base_url is None or timeout_seconds is None:
            settings = get_settings().state_store
            base_url = base_url or settings.base_url
            timeout_seconds = timeout_seconds or settings.request_timeout_seconds
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout_seconds
        self._client = client
        self._load_attempts = max(1, load_attempts)

    def _url(self, user_id: str) -> str:
        return f"{self._base_url}/user-state/{user_id}"

    async def _request(self, method: str, url: str, **kwargs) -> httpx.Response:
        try:
            if self._client is not None:
                return await self._client.request(
                    method, url, timeout=self._timeout, **kwargs
                )
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                return await client.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            raise ConnectionError(f"HTTP error talking to state store: {e}") from e

    async def load_state(self, user_id: str) -> Optional[AppState]:
        url = self._url(user_id)

        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self._load_attempts),
            wait=wait_exponential(multiplier=0.5, min=0.5, max=2),
            retry=retry_if_exception_type(ConnectionError),
            reraise=True,
        ):
            with attempt:
                response = await self._request("GET", url)

        if response.status_code == 404:
            logger.info("state_not_found", user_id=user_id)
            return None

        if not response.is_success:
            raise StorageError(
                f"State store returned status {response.status_code}: {response.text}"
            )

        try:
            payload = response.json()
        except ValueError as e:
            raise StorageError(f"Invalid JSON response: {e}") from e

        document = payload.get("state") if isinstance(payload, dict) else None
        if not document:
            return None

        try:
            return AppState.from_document(document)
        except ValidationError as e:
            raise StorageError(f"Stored state is invalid: {e}") from e

    async def save_state(self, user_id: str, state: AppState) -> bool:
        response = await self._request(
            "POST",
            self._url(user_id),
            json=state.to_document(),
        )

        if not response.is_success:
            raise StorageError(
                f"State store returned status {response.status_code}: {response.text}"
            )

        return True
