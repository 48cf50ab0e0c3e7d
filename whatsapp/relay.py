"""Fan-out of session notifications, one FIFO queue per subscriber."""

import queue
import threading

from whatsapp.models import Notification


class NotificationRelay:

    def __init__(self):
        self._subscribers = []
        self._lock = threading.Lock()

    def subscribe(self, replay=()):
        """Register a subscriber; its queue starts with the replay notifications."""
        subscription = queue.Queue()
        for notification in replay:
            subscription.put(notification)
        with self._lock:
            self._subscribers.append(subscription)
        return subscription

    def unsubscribe(self, subscription):
        """Stop delivering to the subscriber; its consumer reads None once the queue is drained."""
        with self._lock:
            if subscription not in self._subscribers:
                return
            self._subscribers.remove(subscription)
        subscription.put(None)

    def publish(self, type, payload=None):
        notification = Notification(type=type, payload=payload)
        with self._lock:
            subscribers = list(self._subscribers)
        for subscription in subscribers:
            subscription.put(notification)
        return notification

    @property
    def subscriber_count(self):
        with self._lock:
            return len(self._subscribers)
