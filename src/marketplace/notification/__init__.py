"""Notifier factory.

Provides get_notifier() / set_notifier() to swap implementations:
- InAppNotifier (default) persists Notification rows
- RecordingNotifier for tests
"""

import structlog

from marketplace.notification.in_app import InAppNotifier
from marketplace.notification.port import NotificationType, Notifier

logger = structlog.get_logger(__name__)

_current_notifier: Notifier | None = None


def get_notifier() -> Notifier:
    global _current_notifier
    if _current_notifier is None:
        _current_notifier = InAppNotifier()
    return _current_notifier


def set_notifier(notifier: Notifier) -> None:
    """Override the active notifier (useful for tests)."""
    global _current_notifier
    _current_notifier = notifier


def reset_notifier() -> None:
    global _current_notifier
    _current_notifier = None


def notify_quietly(
    user_id,
    message: str,
    link: str | None = None,
    notification_type: NotificationType = NotificationType.ORDER_UPDATE,
) -> bool:
    """Send a notification, logging instead of raising if delivery fails."""
    try:
        get_notifier().notify(str(user_id), message, link, notification_type)
    except Exception:
        logger.exception("Notification delivery failed", user_id=str(user_id), link=link)
        return False
    return True
