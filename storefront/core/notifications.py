import asyncio
import logging
import time
from typing import Callable, List, Optional

from storefront.config import settings
from storefront.schemas.notification import NotificationMessage, Severity

logger = logging.getLogger(__name__)

Listener = Callable[[Optional[NotificationMessage]], None]

# Fallback only: emitters inside this package always tag severity explicitly
ERROR_KEYWORDS = (
    "error",
    "failed",
    "unable",
    "could not",
    "please sign in",
    "vui lòng đăng nhập",
    "không thể",
)


def infer_severity(text: str) -> Severity:
    lowered = (text or "").lower()
    if any(keyword in lowered for keyword in ERROR_KEYWORDS):
        return Severity.ERROR
    return Severity.INFO


class NotificationRelay:
    """
    Single-slot transient message surface.

    A new message replaces whatever is pending. Expiry is checked against the
    clock whenever the slot is read; inside a running event loop a dismissal
    is also scheduled so listeners hear about it.
    """

    def __init__(self, default_duration: Optional[float] = None, clock: Callable[[], float] = time.monotonic):
        self.default_duration = default_duration if default_duration is not None else settings.CART_NOTIFY_SECONDS
        self._clock = clock
        self._message: Optional[NotificationMessage] = None
        self._timer: Optional[asyncio.TimerHandle] = None
        self._listeners: List[Listener] = []

    @property
    def current(self) -> Optional[NotificationMessage]:
        if self._message is not None and self._clock() >= self._message.expires_at:
            self._clear()
        return self._message

    @property
    def has_message(self) -> bool:
        return self.current is not None

    def emit(self, text: str, severity: Optional[Severity] = None, duration: Optional[float] = None) -> NotificationMessage:
        if severity is None:
            severity = infer_severity(text)
        message = NotificationMessage(
            text=text,
            severity=severity,
            created_at=self._clock(),
            duration=duration if duration is not None else self.default_duration,
        )
        self._cancel_timer()
        self._message = message
        self._schedule(message)
        logger.info(f"Notification [{severity.value}] {text}")
        self._notify()
        return message

    def success(self, text: str, duration: Optional[float] = None) -> NotificationMessage:
        return self.emit(text, Severity.SUCCESS, duration)

    def info(self, text: str, duration: Optional[float] = None) -> NotificationMessage:
        return self.emit(text, Severity.INFO, duration)

    def warning(self, text: str, duration: Optional[float] = None) -> NotificationMessage:
        return self.emit(text, Severity.WARNING, duration)

    def error(self, text: str, duration: Optional[float] = None) -> NotificationMessage:
        return self.emit(text, Severity.ERROR, duration)

    def dismiss(self) -> None:
        if self._message is not None:
            self._clear()

    def navigate(self, path: Optional[str] = None) -> None:
        # A message from the previous view must not follow the user around
        logger.debug(f"View changed to {path}, dropping pending notification")
        self.dismiss()

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _schedule(self, message: NotificationMessage) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return  # no loop: expiry is enforced lazily by `current`
        self._timer = loop.call_later(message.duration, self._expire, message)

    def _expire(self, message: NotificationMessage) -> None:
        self._timer = None
        if self._message is message:
            self._clear()

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _clear(self) -> None:
        self._cancel_timer()
        self._message = None
        self._notify()

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener(self._message)
