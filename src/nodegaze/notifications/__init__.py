"""Notifications — endpoint matching, payload formatting and delivery."""

from __future__ import annotations

from nodegaze.notifications.dispatcher import DeliveryDispatcher, SendTestResult
from nodegaze.notifications.formatter import Payload, format_payload, verify_signature
from nodegaze.notifications.lane import EndpointLane, QueuedJob
from nodegaze.notifications.matcher import match, select_endpoints
from nodegaze.notifications.retry import Outcome, RetryPolicy, classify_status

__all__ = [
    "DeliveryDispatcher",
    "EndpointLane",
    "Outcome",
    "Payload",
    "QueuedJob",
    "RetryPolicy",
    "SendTestResult",
    "classify_status",
    "format_payload",
    "match",
    "select_endpoints",
    "verify_signature",
]
