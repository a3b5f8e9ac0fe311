"""Shipment registration and tracking status history."""

import logging
import random
from typing import Any

from sqlalchemy.orm import sessionmaker

from core.exceptions import NotFoundError, StateError, ValidationError
from db.repositories import ShipmentRepository, TrackingEventRepository
from db.schema import Shipment, TrackingEvent
from db.transaction import transaction
from db.utils import as_utc
from pubsub.channels import TrackingStatusEvent, waybill_topic
from pubsub.publisher import EventPublisher
from shipments.status import ShipmentStatus
from vehicle.service import VehicleSnapshot, VehicleTrackingService

logger = logging.getLogger(__name__)

WAYBILL_PREFIX = "KPL-"
MAX_WAYBILL_ATTEMPTS = 20


def status_event(waybill_number: str, event: TrackingEvent) -> TrackingStatusEvent:
    return TrackingStatusEvent(
        waybill_number=waybill_number,
        status=event.status,
        location=event.location,
        remarks=event.remarks,
        timestamp=as_utc(event.timestamp),
    )


class ShipmentService:
    """Creates shipments and records their status changes.

    Status changes are committed together with their tracking event, then
    published to the shipment's topic. Moving a shipment to IN_TRANSIT starts
    its simulated vehicle.
    """

    def __init__(
        self,
        session_factory: sessionmaker[Any],
        publisher: EventPublisher,
        vehicle_tracking: VehicleTrackingService | None = None,
        rng: random.Random | None = None,
    ):
        self._session_factory = session_factory
        self._publisher = publisher
        self._vehicle_tracking = vehicle_tracking
        self._rng = rng or random.Random()

    def _generate_waybill(self, repo: ShipmentRepository) -> str:
        for _ in range(MAX_WAYBILL_ATTEMPTS):
            candidate = f"{WAYBILL_PREFIX}{self._rng.randint(10000, 99999)}"
            if not repo.waybill_exists(candidate):
                return candidate
        raise StateError("Could not allocate a unique waybill number")

    def create_shipment(
        self,
        sender_name: str,
        sender_phone: str,
        receiver_name: str,
        receiver_phone: str,
        origin: str,
        destination: str,
        sender_address: str | None = None,
        receiver_address: str | None = None,
        weight: float | None = None,
        price: float | None = None,
    ) -> Shipment:
        with self._session_factory() as session, transaction(session):
            repo = ShipmentRepository(session)
            shipment = repo.create(
                waybill_number=self._generate_waybill(repo),
                sender_name=sender_name,
                sender_phone=sender_phone,
                sender_address=sender_address,
                receiver_name=receiver_name,
                receiver_phone=receiver_phone,
                receiver_address=receiver_address,
                origin=origin,
                destination=destination,
                weight=weight,
                price=price,
            )
            TrackingEventRepository(session).create(
                shipment.id, ShipmentStatus.PENDING, origin, "Shipment created"
            )

        logger.info(f"Shipment {shipment.waybill_number} created: {origin} -> {destination}")
        return shipment

    def get_shipment(self, waybill_number: str) -> Shipment:
        """Shipment with its tracking events, newest first."""
        with self._session_factory() as session:
            shipment = ShipmentRepository(session).get_by_waybill(
                waybill_number, with_events=True
            )
            if shipment is None:
                raise NotFoundError("Shipment not found", details={"waybill": waybill_number})
            return shipment

    def list_shipments(self) -> list[Shipment]:
        with self._session_factory() as session:
            return ShipmentRepository(session).list_all()

    def record_status(
        self,
        waybill_number: str,
        status: str,
        location: str,
        remarks: str | None = None,
        signature: str | None = None,
    ) -> tuple[Shipment, TrackingEvent]:
        if not waybill_number or not status or not location:
            raise ValidationError("Missing required fields")
        try:
            new_status = ShipmentStatus(status)
        except ValueError:
            raise ValidationError(
                f"Unknown status: {status}", details={"status": status}
            ) from None

        with self._session_factory() as session, transaction(session):
            repo = ShipmentRepository(session)
            shipment = repo.get_by_waybill(waybill_number)
            if shipment is None:
                raise NotFoundError("Shipment not found", details={"waybill": waybill_number})

            event = TrackingEventRepository(session).create(
                shipment.id, new_status, location, remarks
            )
            repo.update_status(shipment, new_status, receiver_signature=signature)

        self._publisher.publish(
            waybill_topic(waybill_number), status_event(waybill_number, event).to_payload()
        )
        logger.info(f"Shipment {waybill_number} status -> {new_status} at {location}")

        if new_status == ShipmentStatus.IN_TRANSIT and self._vehicle_tracking is not None:
            try:
                self._vehicle_tracking.start_tracking(waybill_number)
            except Exception:
                logger.exception(f"Could not start vehicle tracking for {waybill_number}")

        return shipment, event

    def tracking_snapshot(self, waybill_number: str) -> dict[str, Any]:
        """Everything a tracking stream sends on connect."""
        shipment = self.get_shipment(waybill_number)
        vehicle: VehicleSnapshot | None = None
        if self._vehicle_tracking is not None:
            vehicle = self._vehicle_tracking.get_snapshot(waybill_number, create=False)

        return {
            "type": "snapshot",
            "waybillNumber": shipment.waybill_number,
            "status": shipment.current_status,
            "origin": shipment.origin,
            "destination": shipment.destination,
            "events": [
                status_event(shipment.waybill_number, event).to_payload()
                for event in shipment.events
            ],
            "vehicle": vehicle.model_dump(mode="json", by_alias=True) if vehicle else None,
        }
