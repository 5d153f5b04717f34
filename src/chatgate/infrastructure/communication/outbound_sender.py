"""Outbound sender that posts replies to the chat server's ``/send`` endpoint."""

from __future__ import annotations

import json
import time
from typing import Any
from urllib.parse import urljoin, urlparse

import aiohttp
import structlog

from chatgate.core.domain.config_schema import CHANNEL_ID, AppConfig, resolve_account
from chatgate.core.domain.errors import ConfigError, TransportError
from chatgate.core.interfaces.channel import OutboundDeliveryResult
from chatgate.infrastructure.security.signing import signature_headers

logger = structlog.get_logger(__name__)


def build_send_url(base_url: str) -> str:
    normalized = base_url if base_url.endswith("/") else f"{base_url}/"
    return urljoin(normalized, "send")


def is_https_url(value: str) -> bool:
    try:
        return urlparse(value).scheme == "https"
    except ValueError:
        return False


class HttpOutboundSender:
    """Deliver replies over HTTP, one POST per message.

    The account (base URL, token, security settings) is resolved from the
    configuration on every call, so one sender serves all accounts. Uses a
    shared ``aiohttp.ClientSession`` created lazily and closed via
    ``close()``.
    """

    def __init__(self, config: AppConfig, *, timeout_seconds: float = 10.0) -> None:
        self._config = config
        self._timeout_seconds = timeout_seconds
        self._session: aiohttp.ClientSession | None = None

    @property
    def channel(self) -> str:
        return CHANNEL_ID

    async def send_message(
        self,
        *,
        to: str,
        text: str,
        account_id: str,
        reply_to_id: str | None = None,
    ) -> OutboundDeliveryResult:
        """POST ``{chatId, text, replyToId?, accountId}`` to ``<baseUrl>/send``.

        Raises:
            ConfigError: If the base URL is missing, or is not https while
                ``require_https`` is enabled.
            TransportError: If the server answers with a non-2xx status.
        """
        account = resolve_account(self._config, account_id)
        if not account.base_url:
            raise ConfigError(
                "Channel base_url is not configured",
                details={"account_id": account.account_id},
            )
        security = account.config.security
        if security.require_https and not is_https_url(account.base_url):
            raise ConfigError(
                "Channel base_url must use https when require_https is enabled",
                details={"account_id": account.account_id, "base_url": account.base_url},
            )

        payload: dict[str, Any] = {"chatId": to, "text": text}
        if reply_to_id:
            payload["replyToId"] = reply_to_id
        payload["accountId"] = account.account_id
        body = json.dumps(payload, ensure_ascii=False)

        headers = {"Content-Type": "application/json"}
        if account.token:
            headers["Authorization"] = f"Bearer {account.token}"
        if security.should_sign_outbound and security.hmac_secret:
            headers.update(
                signature_headers(
                    secret=security.hmac_secret,
                    timestamp=int(time.time() * 1000),
                    body=body,
                )
            )

        session = await self._get_session()
        url = build_send_url(account.base_url)
        try:
            async with session.post(url, data=body.encode("utf-8"), headers=headers) as response:
                if response.status < 200 or response.status >= 300:
                    detail = await response.text()
                    logger.error(
                        "outbound.send_failed",
                        account_id=account.account_id,
                        chat_id=to,
                        status=response.status,
                        response=detail[:200],
                    )
                    raise TransportError(
                        f"Send failed ({response.status} {response.reason})",
                        status_code=response.status,
                        details={"account_id": account.account_id, "chat_id": to},
                    )
                data = await self._read_json(response)
        except aiohttp.ClientError as exc:
            logger.error(
                "outbound.send_failed",
                account_id=account.account_id,
                chat_id=to,
                error=str(exc),
            )
            raise TransportError(
                f"Send failed: {exc}",
                details={"account_id": account.account_id, "chat_id": to},
            ) from exc

        message_id = data.get("messageId")
        if not isinstance(message_id, str) or not message_id.strip():
            message_id = f"{CHANNEL_ID}-{int(time.time() * 1000)}"
        return OutboundDeliveryResult(
            channel=CHANNEL_ID,
            message_id=message_id.strip(),
            chat_id=to,
        )

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        if self._session and not self._session.closed:
            await self._session.close()
            self._session = None

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            timeout = aiohttp.ClientTimeout(total=self._timeout_seconds)
            self._session = aiohttp.ClientSession(timeout=timeout)
        return self._session

    @staticmethod
    async def _read_json(response: aiohttp.ClientResponse) -> dict[str, Any]:
        try:
            data = await response.json(content_type=None)
        except (json.JSONDecodeError, aiohttp.ContentTypeError, UnicodeDecodeError):
            return {}
        return data if isinstance(data, dict) else {}
