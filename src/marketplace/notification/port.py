"""Notifier port — abstract interface for telling a user something happened."""

from abc import ABC, abstractmethod
from enum import Enum


class NotificationType(Enum):
    ORDER_UPDATE = "ORDER_UPDATE"
    SYSTEM_MESSAGE = "SYSTEM_MESSAGE"
    GENERIC = "GENERIC"


class Notifier(ABC):
    """Fire-and-forget notification dispatch.

    Adapters may raise on delivery problems; callers in the fulfillment core
    log and swallow those errors so a notification never aborts a business
    operation.
    """

    @abstractmethod
    def notify(
        self,
        user_id: str,
        message: str,
        link: str | None = None,
        notification_type: NotificationType = NotificationType.ORDER_UPDATE,
    ) -> None: ...
