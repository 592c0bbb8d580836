"""
Webhook notifications for job status transitions.
"""

from .sender import SIGNATURE_HEADER, TIMESTAMP_HEADER, WebhookSender, compute_signature
from .types import DeliveryResult, JobStatusUpdate

__all__ = [
    "WebhookSender",
    "JobStatusUpdate",
    "DeliveryResult",
    "compute_signature",
    "TIMESTAMP_HEADER",
    "SIGNATURE_HEADER",
]
