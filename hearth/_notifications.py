from __future__ import annotations

import base64
import json
import logging
import typing as tp
from dataclasses import dataclass, field

from hearth._config import OfflineConfig

logger = logging.getLogger("hearth.notifications")

__all__ = ("NotificationOptions", "parse_push_payload", "resolve_click_url", "url_base64_to_bytes")

DEFAULT_TAG = "default"
DEFAULT_VIBRATION_PATTERN = (100, 50, 100)


@dataclass
class NotificationOptions:
    title: str
    body: str
    icon: str
    badge: str
    tag: str = DEFAULT_TAG
    data: tp.Dict[str, tp.Any] = field(default_factory=dict)
    vibrate: tp.List[int] = field(default_factory=lambda: list(DEFAULT_VIBRATION_PATTERN))
    actions: tp.List[tp.Any] = field(default_factory=list)
    require_interaction: bool = False
    renotify: bool = True


def parse_push_payload(payload: tp.Union[bytes, str, None], config: OfflineConfig) -> NotificationOptions:
    """
    Build the notification to show for a push message.

    A JSON object payload is merged over the configured defaults. Any other
    payload is shown verbatim as the notification body.

    Examples:
        >>> config = OfflineConfig()
        >>> parse_push_payload(b'{"title": "New lesson"}', config).title
        'New lesson'
        >>> parse_push_payload(b"plain text", config).body
        'plain text'
    """
    data: tp.Dict[str, tp.Any] = {
        "title": config.notification_title,
        "body": config.notification_body,
        "icon": config.notification_icon,
        "badge": config.notification_badge,
        "tag": DEFAULT_TAG,
        "data": {},
    }

    if payload:
        text = payload.decode("utf-8", errors="replace") if isinstance(payload, bytes) else payload
        try:
            parsed = json.loads(text)
        except ValueError as exc:
            logger.debug(f"Push payload is not JSON: {exc}")
            data["body"] = text
        else:
            if isinstance(parsed, dict):
                data.update(parsed)
            else:
                data["body"] = text

    return NotificationOptions(
        title=data["title"],
        body=data["body"],
        icon=data.get("icon") or config.notification_icon,
        badge=data.get("badge") or config.notification_badge,
        tag=data.get("tag") or DEFAULT_TAG,
        data=data.get("data") or {},
        actions=data.get("actions") or [],
        require_interaction=bool(data.get("requireInteraction", False)),
    )


def resolve_click_url(data: tp.Optional[tp.Mapping[str, tp.Any]]) -> str:
    """
    Path to open when a notification is clicked.

    Known notification types route to their screen; otherwise an explicit
    `url` is used, and the root page as a last resort.
    """
    data = data or {}
    kind = data.get("type")

    if kind == "streak_reminder":
        return "/study"
    if kind == "lesson_available":
        lesson_id = data.get("lessonId")
        return f"/study/lesson/{lesson_id}" if lesson_id else "/study"
    if kind == "achievement":
        return "/study/achievements"
    if kind == "election":
        return "/vote"
    if data.get("url"):
        return str(data["url"])
    return "/"


def url_base64_to_bytes(value: str) -> bytes:
    """Decode a base64url string (such as a VAPID public key) whose padding was stripped."""
    padding = "=" * ((4 - len(value) % 4) % 4)
    return base64.urlsafe_b64decode(value + padding)
