"""ORM models.

Importing this package registers every table with ``Base.metadata``.
"""

from nodegaze.engine.models.base import Base, TimestampMixin, UTCDateTime, utcnow
from nodegaze.engine.models.delivery import AttemptStatus, DeliveryAttempt, DeliveryJob, JobStatus
from nodegaze.engine.models.event import Event, EventSeverity, EventType
from nodegaze.engine.models.notification import Notification, NotificationType

ALL_MODELS = [Event, Notification, DeliveryAttempt, DeliveryJob]

__all__ = [
    "ALL_MODELS",
    "AttemptStatus",
    "Base",
    "DeliveryAttempt",
    "DeliveryJob",
    "Event",
    "EventSeverity",
    "EventType",
    "JobStatus",
    "Notification",
    "NotificationType",
    "TimestampMixin",
    "UTCDateTime",
    "utcnow",
]
