"""Customer notifications on shipment status changes.

Delivery is fire-and-forget: callers schedule ``safe_notify`` as a
background task, so a failing provider never fails the request that
changed the status.
"""

import logging
from typing import Any, Protocol

import httpx

from core.exceptions import NetworkError, ServiceUnavailableError
from core.retry import RetryConfig, with_retry

logger = logging.getLogger(__name__)

STATUS_MESSAGES = {
    "PICKED_UP": "has been picked up",
    "IN_TRANSIT": "is in transit",
    "CUSTOMS_CLEARANCE": "is in customs clearance",
    "OUT_FOR_DELIVERY": "is out for delivery",
    "FAILED_ATTEMPT": "could not be delivered",
    "DELIVERED": "has been delivered",
    "CANCELLED": "has been cancelled",
}


class ShipmentContact(Protocol):
    waybill_number: str
    receiver_name: str
    receiver_phone: str


def status_message(waybill_number: str, status: str, location: str) -> str:
    phrase = STATUS_MESSAGES.get(status, f"is now {status}")
    return f"Shipment {waybill_number} {phrase} ({location})."


class NotificationDispatcher(Protocol):
    async def notify_status_change(
        self, shipment: ShipmentContact, status: str, location: str
    ) -> None: ...


class LoggingNotificationDispatcher:
    """Logs the message that would be sent; used when no provider is configured."""

    async def notify_status_change(
        self, shipment: ShipmentContact, status: str, location: str
    ) -> None:
        logger.info(
            f"Notify {shipment.receiver_phone}: "
            f"{status_message(shipment.waybill_number, status, location)}"
        )


class WebhookNotificationDispatcher:
    """POSTs status notifications to an external SMS/email gateway."""

    def __init__(self, url: str, timeout: float = 5.0, max_retries: int = 3):
        self.url = url
        self.timeout = timeout
        self.retry_config = RetryConfig(max_attempts=max_retries)

    async def _post(self, body: dict[str, Any]) -> None:
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(self.url, json=body)
        except httpx.TimeoutException as e:
            raise NetworkError(f"Notification webhook timed out after {self.timeout}s") from e
        except httpx.NetworkError as e:
            raise NetworkError(f"Network error: {e}") from e

        if response.status_code >= 500:
            raise ServiceUnavailableError(
                f"Notification webhook error: {response.status_code}",
                details={"status_code": response.status_code},
            )
        response.raise_for_status()

    async def notify_status_change(
        self, shipment: ShipmentContact, status: str, location: str
    ) -> None:
        body = {
            "waybillNumber": shipment.waybill_number,
            "recipientName": shipment.receiver_name,
            "recipientPhone": shipment.receiver_phone,
            "status": status,
            "location": location,
            "message": status_message(shipment.waybill_number, status, location),
        }
        await with_retry(
            lambda: self._post(body),
            self.retry_config,
            operation_name=f"notify {shipment.waybill_number}",
        )


async def safe_notify(
    dispatcher: NotificationDispatcher, shipment: ShipmentContact, status: str, location: str
) -> None:
    """Run a notification, logging and swallowing any failure."""
    try:
        await dispatcher.notify_status_change(shipment, status, location)
    except Exception:
        logger.exception(f"Notification failed for {shipment.waybill_number}")


def create_dispatcher(settings: Any) -> NotificationDispatcher:
    """Pick the dispatcher for NotificationSettings; no webhook URL means log only."""
    if settings.webhook_url:
        return WebhookNotificationDispatcher(
            settings.webhook_url,
            timeout=settings.timeout_seconds,
            max_retries=settings.max_retries,
        )
    return LoggingNotificationDispatcher()
