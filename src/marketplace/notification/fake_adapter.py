"""Recording notifier — keeps notifications in memory for test assertions."""

from marketplace.notification.port import NotificationType, Notifier


class NotificationDeliveryError(Exception):
    pass


class RecordingNotifier(Notifier):
    def __init__(self) -> None:
        self.sent: list[dict] = []
        self.should_succeed = True
        self.failure_reason = "Notification delivery failed"

    def configure(self, should_succeed: bool = True, failure_reason: str = "Notification delivery failed") -> None:
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason

    def notify(
        self,
        user_id: str,
        message: str,
        link: str | None = None,
        notification_type: NotificationType = NotificationType.ORDER_UPDATE,
    ) -> None:
        if not self.should_succeed:
            raise NotificationDeliveryError(self.failure_reason)

        self.sent.append(
            {
                "user_id": str(user_id),
                "message": message,
                "link": link,
                "notification_type": notification_type.value,
            }
        )

    def sent_to(self, user_id: str) -> list[dict]:
        return [n for n in self.sent if n["user_id"] == str(user_id)]

    def reset(self) -> None:
        self.sent.clear()
        self.should_succeed = True
        self.failure_reason = "Notification delivery failed"
