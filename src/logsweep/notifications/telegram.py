"""Telegram completion notification.

Sends one message per run to the Bot API ``sendMessage`` endpoint, optionally
through an HTTP proxy. Disabled unless both a bot token and a chat id are
configured. Delivery failures are logged and never fail the run: by the time
a notification is sent, the filesystem changes are already committed.
"""

from __future__ import annotations

import ipaddress
import logging
import socket
from typing import Dict, List, Optional
from urllib.parse import urlsplit

import requests

from ..exceptions import NotificationError
from ..rotation import RotationResult

logger = logging.getLogger(__name__)

TELEGRAM_API_URL = "https://api.telegram.org"
PRIVATE_NETWORK = ipaddress.ip_network("10.0.0.0/8")


def parse_proxy_url(proxy_url: str) -> Dict[str, str]:
    """Turn ``user:password@host[:port]`` into a ``requests`` proxies mapping.

    A scheme may be given explicitly; ``http://`` is assumed otherwise.

    Raises:
        NotificationError: if the value has no host or an invalid port
    """
    value = proxy_url.strip()
    if "://" not in value:
        value = f"http://{value}"

    parts = urlsplit(value)
    try:
        port = parts.port
    except ValueError as e:
        raise NotificationError(f"Bad proxy configuration: invalid port in '{proxy_url}'") from e
    if not parts.hostname:
        raise NotificationError(f"Bad proxy configuration: no host in '{proxy_url}'")
    if parts.username is not None and parts.password is None:
        raise NotificationError("Bad proxy configuration: expected <user>:<password>@<host>")

    logger.debug(f"[Telegram] Using proxy {parts.hostname}:{port or 'default'}")
    return {"http": value, "https": value}


def _local_addresses() -> List[str]:
    addresses: List[str] = []
    try:
        for info in socket.getaddrinfo(socket.gethostname(), None, socket.AF_INET):
            addresses.append(info[4][0])
    except OSError as e:
        logger.debug(f"[Telegram] Host address lookup failed: {e}")

    # Address of the default route; connect() on UDP sends nothing.
    try:
        with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as probe:
            probe.connect(("10.255.255.255", 1))
            addresses.append(probe.getsockname()[0])
    except OSError as e:
        logger.debug(f"[Telegram] Default route lookup failed: {e}")

    return addresses


def get_host_ip() -> Optional[str]:
    """First local IPv4 address in 10.0.0.0/8, else any non-loopback one."""
    fallback = None
    for address in _local_addresses():
        try:
            ip = ipaddress.ip_address(address)
        except ValueError:
            continue
        if ip.is_loopback or ip.is_unspecified:
            continue
        if ip in PRIVATE_NETWORK:
            return address
        fallback = fallback or address
    return fallback


def render_message(result: RotationResult, host_ip: Optional[str] = None) -> str:
    """Format the completion message (Telegram Markdown)."""
    lines = []
    if host_ip:
        lines.append(f"Log cleanup finished on `{host_ip}`")
    else:
        lines.append("Log cleanup finished")
    if result.dry_run:
        lines.append("_Dry run: nothing was changed._")
    lines.append(f"Elapsed time: *{result.elapsed:.2f}s*")
    if result.cutoffs is not None:
        lines.append(
            f"Files archived for the period `{result.cutoffs.delete_from:%d.%m.%Y}` - "
            f"`{result.cutoffs.archive_from:%d.%m.%Y}`: *{result.archived} files*."
        )
    else:
        lines.append(f"Files archived: *{result.archived} files*.")
    lines.append(f"Files deleted: *{result.deleted}*")
    return "\n".join(lines) + "\n"


class TelegramNotifier:
    """Delivers the run summary to a Telegram chat."""

    def __init__(
        self,
        bot_token: Optional[str] = None,
        chat_id: Optional[str] = None,
        proxy_url: Optional[str] = None,
        timeout: float = 10.0,
        include_host_ip: bool = True,
        session: Optional[requests.Session] = None,
    ) -> None:
        """Initialize the notifier.

        Args:
            bot_token: Telegram bot token
            chat_id: Chat to send the message to
            proxy_url: Optional proxy as ``user:password@host[:port]``
            timeout: HTTP timeout in seconds
            include_host_ip: Mention this host's address in the message
            session: Pre-built session (tests)
        """
        self._bot_token = bot_token
        self._chat_id = chat_id
        self._proxy_url = proxy_url
        self._timeout = timeout
        self._include_host_ip = include_host_ip
        self._session = session

    def is_enabled(self) -> bool:
        """Check if both token and chat id are configured."""
        return bool(self._bot_token and self._chat_id)

    def disabled_reason(self) -> Optional[str]:
        """Console message explaining why nothing will be sent, or None."""
        if not self._bot_token:
            return "No notification sent since no telegram token provided"
        if not self._chat_id:
            return "Cannot send message without chat id provided"
        return None

    def _safe(self, error: object) -> str:
        # The token is part of the request URL; keep it out of logs.
        text = str(error)
        if self._bot_token:
            text = text.replace(self._bot_token, "<token>")
        return text

    def _build_session(self) -> requests.Session:
        if self._session is not None:
            return self._session
        session = requests.Session()
        if self._proxy_url:
            session.proxies.update(parse_proxy_url(self._proxy_url))
        return session

    def notify(self, result: RotationResult) -> bool:
        """Send the summary of ``result``.

        Returns:
            True if Telegram accepted the message
        """
        reason = self.disabled_reason()
        if reason:
            # Shown on the console by the caller.
            logger.debug(f"[Telegram] {reason}")
            return False

        try:
            session = self._build_session()
        except NotificationError as e:
            logger.error(f"[Telegram] {e}")
            return False

        host_ip = get_host_ip() if self._include_host_ip else None
        payload = {
            "chat_id": self._chat_id,
            "text": render_message(result, host_ip),
            "parse_mode": "Markdown",
        }
        url = f"{TELEGRAM_API_URL}/bot{self._bot_token}/sendMessage"

        try:
            response = session.post(url, json=payload, timeout=self._timeout)
        except requests.RequestException as e:
            logger.error(f"[Telegram] Failed to send message to telegram: {self._safe(e)}")
            return False

        try:
            data = response.json()
        except ValueError:
            data = {}

        if response.ok and data.get("ok", False):
            logger.info(f"[Telegram] Notification sent to chat {self._chat_id}")
            return True

        description = data.get("description") or f"HTTP {response.status_code}"
        logger.error(f"[Telegram] Failed to send message to telegram: {self._safe(description)}")
        return False
