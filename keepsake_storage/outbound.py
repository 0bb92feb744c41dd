"""
Outgoing message resolution.

A sent message is formatted as ``[YYYY-MM-DD] from: text`` and handed to
the first delivery route that works:

1. Native share, when the channel offers one
2. WhatsApp link, when a WhatsApp target is configured
3. mailto link, when an e-mail target is configured
4. Clipboard

Delivery is best-effort: failures are logged and reported in the result,
never raised.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Protocol
from urllib.parse import quote

from .models import Settings, day_iso

logger = logging.getLogger(__name__)

SHARE_TITLE = "Message"

# Characters encodeURIComponent leaves unescaped
_URI_SAFE = "!~*'()"


class OutboundRoute(Enum):
    SHARE = "share"
    WHATSAPP = "whatsapp"
    EMAIL = "email"
    CLIPBOARD = "clipboard"


class OutboundChannel(Protocol):
    """Platform hooks supplied by the UI collaborator.

    ``share`` may be None when the platform has no native share sheet.
    """

    share: Callable[[str, str], Awaitable[None]] | None

    async def open_url(self, url: str) -> None: ...

    async def copy_to_clipboard(self, text: str) -> None: ...


@dataclass
class OutboundAction:
    """Resolved non-share delivery route."""

    route: OutboundRoute
    payload: str
    url: str | None = None


@dataclass
class OutboundResult:
    """Outcome of a delivery attempt."""

    delivered: bool
    route: OutboundRoute | None = None
    url: str | None = None
    error: str | None = None


def format_outgoing(from_name: str, text: str, day: date | None = None) -> str:
    """Format an outgoing message, or return "" for blank text."""
    body = (text or "").strip()
    if not body:
        return ""
    return f"[{day_iso(day)}] {from_name}: {body}"


def whatsapp_url(target: str, payload: str) -> str:
    return f"https://wa.me/{quote(target, safe=_URI_SAFE)}?text={quote(payload, safe=_URI_SAFE)}"


def mailto_url(target: str, payload: str, subject: str = SHARE_TITLE) -> str:
    return (
        f"mailto:{quote(target, safe=_URI_SAFE)}"
        f"?subject={quote(subject, safe=_URI_SAFE)}&body={quote(payload, safe=_URI_SAFE)}"
    )


def resolve_outbound(payload: str, settings: Settings) -> OutboundAction:
    """Pick the configured delivery route for ``payload`` (share excluded)."""
    whatsapp = settings.to_whatsapp.strip()
    if whatsapp:
        return OutboundAction(OutboundRoute.WHATSAPP, payload, whatsapp_url(whatsapp, payload))

    email = settings.to_email.strip()
    if email:
        return OutboundAction(OutboundRoute.EMAIL, payload, mailto_url(email, payload))

    return OutboundAction(OutboundRoute.CLIPBOARD, payload)


async def send_outbound(payload: str, settings: Settings, channel: OutboundChannel) -> OutboundResult:
    """Deliver ``payload`` through the first route that works.

    Args:
        payload: Formatted message text
        settings: Current settings (supplies WhatsApp/e-mail targets)
        channel: Platform hooks

    Returns:
        OutboundResult describing the route used, or the failure
    """
    if not payload:
        return OutboundResult(delivered=False, error="empty message")

    share = getattr(channel, "share", None)
    if share is not None:
        try:
            await share(payload, SHARE_TITLE)
            return OutboundResult(delivered=True, route=OutboundRoute.SHARE)
        except Exception as e:
            logger.info(f"Native share unavailable, falling back: {e}")

    action = resolve_outbound(payload, settings)
    try:
        if action.url is not None:
            await channel.open_url(action.url)
        else:
            await channel.copy_to_clipboard(payload)
    except Exception as e:
        logger.warning(f"Outbound delivery via {action.route.value} failed: {e}")
        return OutboundResult(delivered=False, route=action.route, url=action.url, error=str(e))

    return OutboundResult(delivered=True, route=action.route, url=action.url)
