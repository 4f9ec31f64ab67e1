"""Completion notifications."""

from .telegram import TelegramNotifier, get_host_ip, parse_proxy_url, render_message

__all__ = [
    "TelegramNotifier",
    "get_host_ip",
    "parse_proxy_url",
    "render_message",
]
