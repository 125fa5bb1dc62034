"""
Host Runtime Bridge

DESIGN DECISION: Nothing in the ledger reads a global host object.
Components that need haptics, back navigation or the user identity get
a HostBridge injected, so they can be tested without a Telegram client.

The Telegram bridge verifies the WebApp `initData` string before it
trusts the user id inside it:

    secret_key = HMAC_SHA256(key="WebAppData", msg=bot_token)
    hash       = hex(HMAC_SHA256(key=secret_key, msg=data_check_string))

where data_check_string is every field except `hash`, as `key=value`,
sorted by key and joined with newlines.
"""

import hashlib
import hmac
import json
import time
from abc import ABC, abstractmethod
from typing import Callable, Optional
from urllib.parse import parse_qsl

import structlog


logger = structlog.get_logger(__name__)


class InitDataError(Exception):
    """Telegram initData is missing, malformed, forged or expired."""
    pass


class HostBridge(ABC):
    """Capabilities the host runtime offers to the app."""

    @abstractmethod
    def haptic_success(self) -> None:
        pass

    @abstractmethod
    def haptic_error(self) -> None:
        pass

    @abstractmethod
    def on_back(self, callback: Optional[Callable[[], None]]) -> None:
        """Register (or with None, clear) the back-button handler."""
        pass

    @abstractmethod
    def current_user_id(self) -> str:
        """Opaque key used to address the user's state document."""
        pass


class NullHostBridge(HostBridge):
    """
    Host bridge for tests and local runs.

    Records every haptic signal so tests can assert on them.
    """

    def __init__(self, user_id: str = "local"):
        self._user_id = user_id
        self.haptics: list[str] = []
        self.back_handler: Optional[Callable[[], None]] = None

    def haptic_success(self) -> None:
        self.haptics.append("success")

    def haptic_error(self) -> None:
        self.haptics.append("error")

    def on_back(self, callback: Optional[Callable[[], None]]) -> None:
        self.back_handler = callback

    def press_back(self) -> None:
        if self.back_handler is not None:
            self.back_handler()

    def current_user_id(self) -> str:
        return self._user_id


def validate_init_data(
    init_data: str,
    bot_token: str,
    max_age_seconds: int = 86400,
    now: Optional[float] = None,
) -> dict[str, str]:
    """
    Verify a Telegram WebApp initData query string.

    Args:
        init_data: Raw query string as delivered by the WebApp
        bot_token: Token of the bot that opened the Mini App
        max_age_seconds: Reject data older than this (0 disables the check)
        now: Current unix time, for tests

    Returns:
        The decoded fields (without `hash`)

    Raises:
        InitDataError: If the signature or age check fails
    """
    if not init_data:
        raise InitDataError("initData is empty")

    fields = dict(parse_qsl(init_data, keep_blank_values=True))
    received_hash = fields.pop("hash", None)
    if not received_hash:
        raise InitDataError("initData has no hash")

    data_check_string = "\n".join(
        f"{key}={value}" for key, value in sorted(fields.items())
    )
    secret_key = hmac.new(b"WebAppData", bot_token.encode(), hashlib.sha256).digest()
    expected_hash = hmac.new(
        secret_key, data_check_string.encode(), hashlib.sha256
    ).hexdigest()

    if not hmac.compare_digest(expected_hash, received_hash):
        raise InitDataError("initData signature mismatch")

    if max_age_seconds:
        try:
            auth_date = int(fields.get("auth_date", "0"))
        except ValueError:
            raise InitDataError("initData auth_date is not a number")
        current = time.time() if now is None else now
        if current - auth_date > max_age_seconds:
            raise InitDataError("initData has expired")

    return fields


class TelegramHostBridge(HostBridge):
    """
    Host bridge backed by a verified Telegram WebApp session.

    Haptic and back-button calls are forwarded to `emit`, which the
    presentation layer wires to the WebApp JS API (e.g. a
    postMessage channel). Without an emitter they are only logged.
    """

    def __init__(
        self,
        init_data: str,
        bot_token: str,
        max_age_seconds: int = 86400,
        emit: Optional[Callable[[str, dict], None]] = None,
    ):
        fields = validate_init_data(init_data, bot_token, max_age_seconds)
        try:
            user = json.loads(fields.get("user", "{}"))
        except ValueError:
            raise InitDataError("initData user is not valid JSON")
        if not isinstance(user, dict) or "id" not in user:
            raise InitDataError("initData has no user id")

        self._user_id = str(user["id"])
        self.user = user
        self._emit = emit
        self._back_handler: Optional[Callable[[], None]] = None

    def _send(self, event: str, payload: Optional[dict] = None) -> None:
        if self._emit is None:
            logger.debug("host_event", event=event, **(payload or {}))
            return
        self._emit(event, payload or {})

    def haptic_success(self) -> None:
        self._send("haptic", {"type": "notification", "style": "success"})

    def haptic_error(self) -> None:
        self._send("haptic", {"type": "notification", "style": "error"})

    def on_back(self, callback: Optional[Callable[[], None]]) -> None:
        self._back_handler = callback
        self._send("back_button", {"visible": callback is not None})

    def handle_back(self) -> None:
        """Called by the presentation layer when the host reports a back press."""
        if self._back_handler is not None:
            self._back_handler()

    def current_user_id(self) -> str:
        return self._user_id
