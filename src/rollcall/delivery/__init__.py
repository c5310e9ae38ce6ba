"""Document generation and delivery adapters."""

from rollcall.delivery.base import Delivery, DeliveryError, TransientDeliveryError
from rollcall.delivery.documents import DocumentGenerator
from rollcall.delivery.email import EmailDelivery
from rollcall.delivery.printer import LocalPrinter
from rollcall.delivery.webhook import EVENT_FAILED, EVENT_PROCESSED, WebhookNotifier

__all__ = [
    "EVENT_FAILED",
    "EVENT_PROCESSED",
    "Delivery",
    "DeliveryError",
    "DocumentGenerator",
    "EmailDelivery",
    "LocalPrinter",
    "TransientDeliveryError",
    "WebhookNotifier",
]
