"""Notification channels (webhook, Telegram)."""

from __future__ import annotations

import asyncio
import json
import logging
from abc import ABC, abstractmethod
from typing import Any
from urllib.parse import quote_plus

import requests
from telegram import Bot
from telegram.error import TelegramError

from . import config

logger = logging.getLogger(__name__)

PLACEHOLDER = "#NOTIFY#"


class DeliveryError(RuntimeError):
    """Raised by a channel when a message could not be delivered."""


class NotificationChannel(ABC):
    """Abstract base class for notification channels."""

    kind: str = "unknown"

    def __init__(self, id: int, name: str = "", enabled: bool = True) -> None:
        self.id = int(id)
        self.name = name or f"{self.kind}-{self.id}"
        self.enabled = enabled

    @abstractmethod
    def send(self, text: str) -> None:
        """Deliver ``text``; raise ``DeliveryError`` on failure."""
        pass

    @abstractmethod
    def to_dict(self) -> dict[str, Any]:
        pass

    def __repr__(self) -> str:
        return f"<{type(self).__name__} id={self.id} name={self.name!r}>"


class WebhookChannel(NotificationChannel):
    """HTTP webhook.

    ``#NOTIFY#`` in the URL is replaced with the URL-encoded message. For
    POST requests the body template gets the same substitution: JSON bodies
    receive a JSON-escaped string, form bodies are a JSON object of fields
    whose values are substituted verbatim.
    """

    kind = "webhook"

    def __init__(
        self,
        id: int,
        url: str,
        name: str = "",
        method: str = "POST",
        body_type: str = "json",
        body: str = "",
        verify_ssl: bool = True,
        enabled: bool = True,
        timeout_s: float | None = None,
    ) -> None:
        super().__init__(id, name, enabled)
        self.url = url
        self.method = method.upper()
        if self.method not in {"GET", "POST"}:
            raise ValueError(f"Unsupported webhook method: {method}")
        self.body_type = body_type.lower()
        if self.body_type not in {"json", "form"}:
            raise ValueError(f"Unsupported webhook body type: {body_type}")
        self.body = body
        self.verify_ssl = verify_ssl
        self.timeout_s = timeout_s or config.NOTIFY_TIMEOUT_S

    def _request_kwargs(self, text: str) -> dict[str, Any]:
        kwargs: dict[str, Any] = {"timeout": self.timeout_s, "verify": self.verify_ssl}
        if self.method != "POST":
            return kwargs
        if self.body_type == "json":
            escaped = json.dumps(text)[1:-1]
            kwargs["data"] = self.body.replace(PLACEHOLDER, escaped).encode("utf-8")
            kwargs["headers"] = {"Content-Type": "application/json"}
        else:
            try:
                fields = json.loads(self.body or "{}")
            except ValueError as exc:
                raise DeliveryError(f"Invalid form body template: {exc}") from exc
            kwargs["data"] = {
                str(key): str(value).replace(PLACEHOLDER, text)
                for key, value in fields.items()
            }
        return kwargs

    def send(self, text: str) -> None:
        url = self.url.replace(PLACEHOLDER, quote_plus(text))
        kwargs = self._request_kwargs(text)
        try:
            resp = requests.request(self.method, url, **kwargs)
        except requests.RequestException as exc:
            raise DeliveryError(f"{self.name}: {exc}") from exc
        if not resp.ok:
            raise DeliveryError(
                f"{self.name}: HTTP {resp.status_code} {(resp.text or '')[:200]}"
            )
        logger.debug("Webhook %s delivered (%s %s)", self.name, self.method, resp.status_code)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "type": self.kind,
            "enabled": self.enabled,
            "url": self.url,
            "method": self.method,
            "body_type": self.body_type,
            "body": self.body,
            "verify_ssl": self.verify_ssl,
        }


class TelegramChannel(NotificationChannel):
    """Telegram chat reached through a bot.

    ``send`` runs on a private event loop so worker threads can call it; code
    already inside an event loop should await ``send_async`` instead.
    """

    kind = "telegram"

    def __init__(
        self,
        id: int,
        chat_id: int | str,
        name: str = "",
        token: str | None = None,
        enabled: bool = True,
        timeout_s: float | None = None,
    ) -> None:
        super().__init__(id, name, enabled)
        self.chat_id = chat_id
        self.token = token or config.TELEGRAM_BOT_TOKEN
        self.timeout_s = timeout_s or config.NOTIFY_TIMEOUT_S

    async def send_async(self, text: str) -> None:
        if not self.token:
            raise DeliveryError(f"{self.name}: no Telegram bot token configured")
        try:
            async with Bot(self.token) as bot:
                await bot.send_message(
                    chat_id=self.chat_id,
                    text=text,
                    read_timeout=self.timeout_s,
                    connect_timeout=self.timeout_s,
                )
        except TelegramError as exc:
            raise DeliveryError(f"{self.name}: {exc}") from exc
        logger.debug("Telegram message sent to chat %s", self.chat_id)

    def send(self, text: str) -> None:
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            asyncio.run(self.send_async(text))
            return
        raise DeliveryError(
            f"{self.name}: send() called inside a running event loop; "
            "await send_async() or broadcast from a worker thread"
        )

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "type": self.kind,
            "enabled": self.enabled,
            "chat_id": self.chat_id,
        }
        # Fall back to TELEGRAM_BOT_TOKEN on load when not stored
        if self.token and self.token != config.TELEGRAM_BOT_TOKEN:
            data["token"] = self.token
        return data


def build_channel(data: dict[str, Any]) -> NotificationChannel:
    """Build a channel from its persisted dict shape."""
    kind = str(data.get("type") or "webhook").lower()
    common = {
        "id": int(data["id"]),
        "name": str(data.get("name") or ""),
        "enabled": bool(data.get("enabled", True)),
    }
    if kind == "webhook":
        return WebhookChannel(
            url=str(data["url"]),
            method=str(data.get("method") or "POST"),
            body_type=str(data.get("body_type") or "json"),
            body=str(data.get("body") or ""),
            verify_ssl=bool(data.get("verify_ssl", True)),
            **common,
        )
    if kind == "telegram":
        return TelegramChannel(
            chat_id=data["chat_id"],
            token=data.get("token") or None,
            **common,
        )
    raise ValueError(f"Unknown channel type: {kind}")
