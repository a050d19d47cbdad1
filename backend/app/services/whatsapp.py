"""
WhatsApp channel access.

The WhatsApp session itself (QR pairing, credentials, socket reconnects) lives in
an HTTP gateway sidecar. This module owns the connection to that gateway:
`ConnectionManager` tracks the session state and hands out a `ChannelHandle`
only while the session is open. Callers get the manager injected instead of
reading a process-wide socket.
"""
import asyncio
import logging
from enum import Enum
from typing import Any, Dict, Optional

import httpx

from app.core.config import (
    RECONNECT_DELAY_SECONDS,
    SEND_TIMEOUT_SECONDS,
    WHATSAPP_GATEWAY_TOKEN,
    WHATSAPP_GATEWAY_URL,
)
from app.utils.phone import phone_from_jid

logger = logging.getLogger(__name__)


class ChannelError(Exception):
    """Base class for messaging channel failures."""


class ChannelUnavailableError(ChannelError):
    """No open WhatsApp session."""


class ChannelTimeoutError(ChannelError):
    """The send did not complete within the bound."""


class ChannelSendError(ChannelError):
    """Transport failure or the gateway rejected the message."""


class ConnectionStatus(str, Enum):
    DISCONNECTED = "disconnected"
    QR_PENDING = "qr_pending"
    CONNECTED = "connected"


# Session states reported by the gateway that mean the socket is usable.
_OPEN_STATES = {"open", "connected"}
_LOGGED_OUT_STATES = {"logged_out", "loggedOut"}


class ChannelHandle:
    """Send-side of an open session."""

    def __init__(self, client: httpx.AsyncClient, send_timeout: float = SEND_TIMEOUT_SECONDS):
        self._client = client
        self.send_timeout = send_timeout

    async def send(self, jid: str, payload: Dict[str, Any]) -> None:
        try:
            response = await asyncio.wait_for(
                self._client.post("/messages", json={"jid": jid, "payload": payload}),
                timeout=self.send_timeout,
            )
        except (asyncio.TimeoutError, httpx.TimeoutException) as e:
            raise ChannelTimeoutError(f"Timed out after {self.send_timeout}s sending to {jid}") from e
        except httpx.HTTPError as e:
            raise ChannelSendError(f"Transport error sending to {jid}: {e}") from e

        if response.status_code >= 400:
            raise ChannelSendError(
                f"Gateway rejected message to {jid}: {response.status_code} {response.text}"
            )
        logger.debug(f"[WHATSAPP] Message delivered to gateway for {jid}")


class ConnectionManager:

    def __init__(
        self,
        base_url: str = WHATSAPP_GATEWAY_URL,
        token: Optional[str] = WHATSAPP_GATEWAY_TOKEN,
        send_timeout: float = SEND_TIMEOUT_SECONDS,
        reconnect_delay: float = RECONNECT_DELAY_SECONDS,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.status = ConnectionStatus.DISCONNECTED
        self.latest_qr: Optional[str] = None
        self.session_phone: Optional[str] = None
        self._token = token
        self._send_timeout = send_timeout
        self._reconnect_delay = reconnect_delay
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None
        self._handle: Optional[ChannelHandle] = None
        self._running = False

    def _build_client(self) -> httpx.AsyncClient:
        headers = {"Authorization": f"Bearer {self._token}"} if self._token else {}
        return httpx.AsyncClient(
            base_url=self.base_url,
            headers=headers,
            timeout=httpx.Timeout(self._send_timeout),
            transport=self._transport,
        )

    async def connect(self) -> Optional[ChannelHandle]:
        """Check the gateway session and refresh the handle. Returns None while the session is closed."""
        if self._client is None:
            self._client = self._build_client()

        try:
            response = await self._client.get("/session/status")
            response.raise_for_status()
            session = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"[WHATSAPP] Could not reach gateway at {self.base_url}: {e}")
            self._mark_closed()
            return None

        self._apply_session(session)
        return self.current_handle()

    def _apply_session(self, session: Dict[str, Any]):
        state = session.get("status")
        qr = session.get("qr")

        if state in _OPEN_STATES:
            if self.status != ConnectionStatus.CONNECTED:
                logger.info("[WHATSAPP] Session open")
            self.status = ConnectionStatus.CONNECTED
            self.latest_qr = None
            if session.get("phone"):
                self.session_phone = phone_from_jid(session["phone"])
            self._handle = ChannelHandle(self._client, self._send_timeout)
            return

        if state in _LOGGED_OUT_STATES:
            logger.warning("[WHATSAPP] Session logged out, waiting for a new pairing")
            self.session_phone = None

        self._mark_closed()
        if qr:
            self.latest_qr = qr
            self.status = ConnectionStatus.QR_PENDING

    def _mark_closed(self):
        if self.status == ConnectionStatus.CONNECTED:
            logger.warning("[WHATSAPP] Session closed")
        self.status = ConnectionStatus.DISCONNECTED
        self._handle = None

    def current_handle(self) -> Optional[ChannelHandle]:
        if self.status != ConnectionStatus.CONNECTED:
            return None
        return self._handle

    async def run(self):
        """Keep the session watched, reconnecting whenever it drops."""
        self._running = True
        logger.info("[WHATSAPP] Connection watcher started")
        while self._running:
            handle = await self.connect()
            if handle is None:
                logger.info(f"[WHATSAPP] Not connected, retrying in {self._reconnect_delay}s")
            await asyncio.sleep(self._reconnect_delay)
        logger.info("[WHATSAPP] Connection watcher stopped")

    def stop(self):
        self._running = False

    async def close(self):
        self.stop()
        self._mark_closed()
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "ConnectionManager":
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()
