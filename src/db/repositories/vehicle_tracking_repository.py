"""Vehicle tracking rows backing the position simulation."""

import json

from sqlalchemy import func, select
from sqlalchemy.orm import Session, joinedload

from ..schema import Shipment, VehicleTracking


class VehicleTrackingRepository:
    """Repository for per-shipment simulated vehicle state."""

    def __init__(self, session: Session):
        self.session = session

    def create(
        self,
        shipment_id: int,
        route: list[tuple[float, float]],
        total_distance: float,
        is_active: bool,
        heading: float = 0.0,
        is_city_zone: bool = False,
        speed: float = 40.0,
    ) -> VehicleTracking:
        start_lat, start_lng = route[0]
        tracking = VehicleTracking(
            shipment_id=shipment_id,
            route_path=json.dumps([list(point) for point in route]),
            current_latitude=start_lat,
            current_longitude=start_lng,
            current_speed=speed,
            heading=heading,
            total_distance=total_distance,
            is_active=is_active,
            is_city_zone=is_city_zone,
        )
        self.session.add(tracking)
        self.session.flush()
        return tracking

    def get(self, tracking_id: int) -> VehicleTracking | None:
        return self.session.get(VehicleTracking, tracking_id)

    def get_for_shipment(self, shipment_id: int) -> VehicleTracking | None:
        stmt = select(VehicleTracking).where(VehicleTracking.shipment_id == shipment_id)
        return self.session.execute(stmt).scalar_one_or_none()

    def list_active(self) -> list[tuple[int, str]]:
        """(tracking id, waybill number) for active, unpaused trackings."""
        stmt = (
            select(VehicleTracking.id, Shipment.waybill_number)
            .join(Shipment, VehicleTracking.shipment_id == Shipment.id)
            .where(VehicleTracking.is_active.is_(True), VehicleTracking.is_paused.is_(False))
            .order_by(VehicleTracking.id)
        )
        return [(row.id, row.waybill_number) for row in self.session.execute(stmt)]

    def get_with_shipment(self, tracking_id: int) -> VehicleTracking | None:
        stmt = (
            select(VehicleTracking)
            .options(joinedload(VehicleTracking.shipment))
            .where(VehicleTracking.id == tracking_id)
        )
        return self.session.execute(stmt).scalar_one_or_none()

    def count(self, active_only: bool = False) -> int:
        stmt = select(func.count()).select_from(VehicleTracking)
        if active_only:
            stmt = stmt.where(VehicleTracking.is_active.is_(True))
        return self.session.execute(stmt).scalar_one()
