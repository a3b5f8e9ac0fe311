"""Shipment repository with waybill lookups and status updates."""

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from shipments.status import ShipmentStatus

from ..schema import Shipment


class ShipmentRepository:
    """Repository for shipment CRUD operations."""

    def __init__(self, session: Session):
        self.session = session

    def create(
        self,
        waybill_number: str,
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
        """Create a new shipment in PENDING status."""
        shipment = Shipment(
            waybill_number=waybill_number,
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
            current_status=ShipmentStatus.PENDING.value,
        )
        self.session.add(shipment)
        self.session.flush()
        return shipment

    def get(self, shipment_id: int) -> Shipment | None:
        return self.session.get(Shipment, shipment_id)

    def get_by_waybill(self, waybill_number: str, with_events: bool = False) -> Shipment | None:
        stmt = select(Shipment).where(Shipment.waybill_number == waybill_number)
        if with_events:
            stmt = stmt.options(selectinload(Shipment.events))
        return self.session.execute(stmt).scalar_one_or_none()

    def waybill_exists(self, waybill_number: str) -> bool:
        stmt = select(Shipment.id).where(Shipment.waybill_number == waybill_number)
        return self.session.execute(stmt).first() is not None

    def list_all(self) -> list[Shipment]:
        """All shipments, newest first."""
        stmt = select(Shipment).order_by(Shipment.created_at.desc(), Shipment.id.desc())
        return list(self.session.execute(stmt).scalars())

    def update_status(
        self, shipment: Shipment, status: str, receiver_signature: str | None = None
    ) -> None:
        shipment.current_status = status
        if status == ShipmentStatus.DELIVERED and receiver_signature:
            shipment.receiver_signature = receiver_signature
