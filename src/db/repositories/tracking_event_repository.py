"""Tracking event history for shipments."""

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..schema import TrackingEvent


class TrackingEventRepository:
    def __init__(self, session: Session):
        self.session = session

    def create(
        self, shipment_id: int, status: str, location: str, remarks: str | None = None
    ) -> TrackingEvent:
        event = TrackingEvent(
            shipment_id=shipment_id,
            status=status,
            location=location,
            remarks=remarks,
        )
        self.session.add(event)
        self.session.flush()
        return event

    def list_for_shipment(self, shipment_id: int) -> list[TrackingEvent]:
        """Events for a shipment, newest first."""
        stmt = (
            select(TrackingEvent)
            .where(TrackingEvent.shipment_id == shipment_id)
            .order_by(TrackingEvent.timestamp.desc(), TrackingEvent.id.desc())
        )
        return list(self.session.execute(stmt).scalars())
