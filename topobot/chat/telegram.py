"""Telegram Bot API transport using long polling over ``requests``."""

from __future__ import annotations

import logging
import os
import threading
from typing import Any, Dict, List, Mapping, Optional

import requests

from .host import APOLOGY, ChatHost

logger = logging.getLogger(__name__)

API_ROOT = "https://api.telegram.org"
TOKEN_ENV = "TOPOBOT_TELEGRAM_TOKEN"
POLL_TIMEOUT = 30
RETRY_DELAY = 5.0


class TelegramError(RuntimeError):
    """The Bot API answered with ``ok: false``."""


class TelegramBot:
    def __init__(
        self,
        token: str,
        host: ChatHost,
        *,
        session: Optional[requests.Session] = None,
        poll_timeout: int = POLL_TIMEOUT,
    ) -> None:
        if not token:
            raise ValueError("Telegram bot token must not be empty")
        self._token = token
        self.host = host
        self.session = session if session is not None else requests.Session()
        self.poll_timeout = poll_timeout
        self.offset: Optional[int] = None

    @classmethod
    def from_env(cls, host: ChatHost, **kwargs: Any) -> "TelegramBot":
        token = os.getenv(TOKEN_ENV, "").strip()
        if not token:
            raise RuntimeError(f"Set {TOKEN_ENV} to the bot token before serving")
        return cls(token, host, **kwargs)

    # ------------------------------------------------------------------
    # Bot API calls

    def _call(self, method: str, **payload: Any) -> Any:
        response = self.session.post(
            f"{API_ROOT}/bot{self._token}/{method}",
            json=payload,
            timeout=self.poll_timeout + 10,
        )
        response.raise_for_status()
        data = response.json()
        if not data.get("ok"):
            raise TelegramError(f"{method} failed: {data.get('description', 'unknown error')}")
        return data.get("result")

    def get_me(self) -> Dict[str, Any]:
        return self._call("getMe")

    def get_updates(self) -> List[Dict[str, Any]]:
        payload: Dict[str, Any] = {"timeout": self.poll_timeout, "allowed_updates": ["message"]}
        if self.offset is not None:
            payload["offset"] = self.offset
        return self._call("getUpdates", **payload) or []

    def send_message(self, chat_id: str, text: str) -> None:
        self._call("sendMessage", chat_id=chat_id, text=text)

    def download_file(self, file_id: str) -> bytes:
        info = self._call("getFile", file_id=file_id)
        response = self.session.get(
            f"{API_ROOT}/file/bot{self._token}/{info['file_path']}",
            timeout=self.poll_timeout,
        )
        response.raise_for_status()
        return response.content

    # ------------------------------------------------------------------
    # Update handling

    def handle_update(self, update: Mapping[str, Any]) -> Optional[str]:
        """Route one update through the host and send the reply, if any."""

        message = update.get("message")
        chat = message.get("chat") if message else None
        if not chat or "id" not in chat:
            return None
        chat_id = str(chat["id"])
        if "text" in message:
            reply = self.host.handle_text(chat_id, message["text"])
        elif message.get("photo"):
            reply = self._handle_photo(chat_id, message["photo"])
        else:
            return None
        self.send_message(chat_id, reply)
        return reply

    def _handle_photo(self, chat_id: str, sizes: List[Mapping[str, Any]]) -> str:
        if not self.host.awaiting_photo(chat_id):
            return self.host.handle_photo(chat_id, b"")
        largest = max(
            sizes,
            key=lambda size: (size.get("file_size", 0), size.get("width", 0) * size.get("height", 0)),
        )
        try:
            payload = self.download_file(largest["file_id"])
        except (requests.RequestException, TelegramError):
            logger.exception("Could not download photo for chat %s", chat_id)
            return APOLOGY
        return self.host.handle_photo(chat_id, payload)

    def poll_once(self) -> int:
        updates = self.get_updates()
        for update in updates:
            self.offset = int(update["update_id"]) + 1
            try:
                self.handle_update(update)
            except (requests.RequestException, TelegramError) as exc:
                logger.error("Failed to answer update %s: %s", update.get("update_id"), exc)
            except Exception:
                logger.exception("Skipping update %s", update.get("update_id"))
        return len(updates)

    def run(self, stop: Optional[threading.Event] = None) -> None:
        stop = stop if stop is not None else threading.Event()
        me = self.get_me()
        logger.info("Telegram bot @%s is polling for updates", me.get("username", "?"))
        while not stop.is_set():
            try:
                self.poll_once()
            except (requests.RequestException, TelegramError) as exc:
                logger.warning("Polling failed, retrying in %.0fs: %s", RETRY_DELAY, exc)
                stop.wait(RETRY_DELAY)
        logger.info("Telegram bot stopped")


__all__ = ["TOKEN_ENV", "TelegramBot", "TelegramError"]
