"""Notification center - in-session notifications, toasts and platform alerts."""

from __future__ import annotations

import logging
import time
from typing import Callable, Protocol

from ..schemas.entities import Notification, Severity, Toast

logger = logging.getLogger(__name__)


class PlatformAlertSink(Protocol):
    """Desktop/OS-level alert surface."""

    def permission_granted(self) -> bool: ...

    def show(self, title: str, message: str) -> None: ...


class NotificationCenter:
    """Holds the session's notifications (newest first) and active toasts.

    Notifications live for the session only; the single mutation is marking
    one as read.
    """

    def __init__(
        self,
        toast_ttl_seconds: float = 5.0,
        push_alerts_enabled: bool = False,
        alert_sink: PlatformAlertSink | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.toast_ttl_seconds = toast_ttl_seconds
        self.push_alerts_enabled = push_alerts_enabled
        self.alert_sink = alert_sink
        self._clock = clock
        self._notifications: list[Notification] = []
        self._toasts: list[Toast] = []

    @property
    def notifications(self) -> list[Notification]:
        return list(self._notifications)

    def unread_count(self) -> int:
        return sum(1 for n in self._notifications if not n.read)

    def notify(
        self,
        title: str,
        message: str,
        severity: Severity = "info",
        related_to: str | None = None,
    ) -> Notification:
        notification = Notification(
            title=title, message=message, severity=severity, related_to=related_to
        )
        self._notifications.insert(0, notification)
        self._toasts.append(
            Toast(
                title=title,
                message=message,
                severity=severity,
                expires_at=self._clock() + self.toast_ttl_seconds,
            )
        )
        log_level = logging.WARNING if severity == "alert" else logging.DEBUG
        logger.log(log_level, "Notification [%s] %s: %s", severity, title, message)
        self._platform_alert(title, message)
        return notification

    def _platform_alert(self, title: str, message: str) -> None:
        if not self.push_alerts_enabled or self.alert_sink is None:
            return
        try:
            if self.alert_sink.permission_granted():
                self.alert_sink.show(title, message)
        except Exception as e:
            logger.warning("Platform alert failed: %s", e)

    def mark_read(self, notification_id: str) -> bool:
        for idx, notification in enumerate(self._notifications):
            if notification.id == notification_id:
                self._notifications[idx] = notification.model_copy(update={"read": True})
                return True
        return False

    def mark_all_read(self) -> None:
        self._notifications = [n.model_copy(update={"read": True}) for n in self._notifications]

    def active_toasts(self) -> list[Toast]:
        """Toasts not yet expired; expired ones are dropped."""
        now = self._clock()
        self._toasts = [t for t in self._toasts if t.expires_at > now]
        return list(self._toasts)

    def dismiss_toast(self, toast_id: str) -> None:
        self._toasts = [t for t in self._toasts if t.id != toast_id]
