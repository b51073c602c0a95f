"""In-app notifications — persisted rows the storefront shows in the user's inbox."""

from datetime import UTC, datetime

from protean.fields import Boolean, DateTime, Identifier, String
from protean.utils.globals import current_domain

from marketplace.domain import marketplace
from marketplace.notification.port import NotificationType, Notifier


@marketplace.aggregate
class Notification:
    user_id = Identifier(required=True)
    message = String(required=True, max_length=1000)
    link = String(max_length=500)
    notification_type = String(
        max_length=50,
        choices=NotificationType,
        default=NotificationType.GENERIC.value,
    )
    is_read = Boolean(default=False)
    created_at = DateTime()

    def mark_read(self):
        self.is_read = True


@marketplace.repository(part_of=Notification)
class NotificationRepository:
    def for_user(self, user_id) -> list[Notification]:
        return self._dao.query.filter(user_id=str(user_id)).order_by("-created_at").all().items


class InAppNotifier(Notifier):
    def notify(
        self,
        user_id: str,
        message: str,
        link: str | None = None,
        notification_type: NotificationType = NotificationType.ORDER_UPDATE,
    ) -> None:
        current_domain.repository_for(Notification).add(
            Notification(
                user_id=str(user_id),
                message=message,
                link=link,
                notification_type=notification_type.value,
                created_at=datetime.now(UTC),
            )
        )
