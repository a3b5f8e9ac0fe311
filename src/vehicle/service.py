"""Persistent vehicle tracking driven by the position simulation.

Each tick loads one tracking row at a time, advances it, commits, and only
then publishes the resulting events to the shipment's topic. A failure on
one shipment is logged and surfaced to its stream without stopping the
cycle for the others.
"""

import logging
import threading
from collections.abc import Callable
from datetime import datetime
from typing import Any, Literal

from sqlalchemy.orm import Session, sessionmaker

from app_logging import log_waybill_context
from core.exceptions import NotFoundError
from core.models import CamelModel
from db.repositories import (
    ShipmentRepository,
    TrackingEventRepository,
    VehicleTrackingRepository,
)
from db.schema import Shipment, VehicleTracking
from db.transaction import transaction
from db.utils import as_utc, utc_now
from geo.places import generate_route
from pubsub.channels import (
    GeoPoint,
    StreamErrorEvent,
    TrackingStatusEvent,
    VehiclePositionEvent,
    waybill_topic,
)
from pubsub.publisher import EventPublisher
from shipments.status import TERMINAL_STATUSES, ShipmentStatus
from vehicle.simulation import PositionSimulator, Route, VehicleState

logger = logging.getLogger(__name__)

ARRIVAL_REMARKS = "Vehicle arrived at destination"


class VehicleSnapshot(CamelModel):
    waybill_number: str
    tracking_id: int
    route: list[tuple[float, float]]
    current_position: GeoPoint
    completed_path: list[tuple[float, float]]
    remaining_path: list[tuple[float, float]]
    progress: float
    progress_percent: float
    speed: float
    heading: float
    is_active: bool
    is_paused: bool
    is_city_zone: bool
    last_update: datetime


class TickOutcome(CamelModel):
    tracking_id: int
    waybill_number: str
    status: Literal["advanced", "completed", "skipped", "deactivated", "error"]
    position: GeoPoint | None = None
    progress: float | None = None
    speed: float | None = None
    error: str | None = None


class SimulationStatus(CamelModel):
    active: int
    total: int
    timestamp: datetime


def _state_from_row(tracking: VehicleTracking) -> VehicleState:
    return VehicleState(
        position=(tracking.current_latitude, tracking.current_longitude),
        distance_completed_m=tracking.distance_completed,
        progress=tracking.progress,
        speed_kmh=tracking.current_speed,
        heading=tracking.heading,
        route_index=tracking.route_index,
        is_active=tracking.is_active,
        is_city_zone=tracking.is_city_zone,
        last_update=as_utc(tracking.last_update_time),
    )


def _apply_state(tracking: VehicleTracking, state: VehicleState) -> None:
    tracking.current_latitude, tracking.current_longitude = state.position
    tracking.distance_completed = state.distance_completed_m
    tracking.progress = state.progress
    tracking.current_speed = state.speed_kmh
    tracking.heading = state.heading
    tracking.route_index = state.route_index
    tracking.is_active = state.is_active
    tracking.is_city_zone = state.is_city_zone
    tracking.last_update_time = state.last_update


def position_event(
    tracking: VehicleTracking, waybill_number: str, is_completed: bool = False
) -> VehiclePositionEvent:
    return VehiclePositionEvent(
        waybill_number=waybill_number,
        tracking_id=tracking.id,
        position=GeoPoint(lat=tracking.current_latitude, lng=tracking.current_longitude),
        heading=tracking.heading,
        progress=tracking.progress,
        progress_percent=min(tracking.progress * 100.0, 100.0),
        speed=tracking.current_speed,
        is_active=tracking.is_active,
        is_city_zone=tracking.is_city_zone,
        is_completed=is_completed,
        timestamp=as_utc(tracking.last_update_time),
    )


def build_snapshot(tracking: VehicleTracking, waybill_number: str) -> VehicleSnapshot:
    route = tracking.waypoints
    cut = min(tracking.route_index, len(route) - 1)
    return VehicleSnapshot(
        waybill_number=waybill_number,
        tracking_id=tracking.id,
        route=route,
        current_position=GeoPoint(lat=tracking.current_latitude, lng=tracking.current_longitude),
        completed_path=route[: cut + 1],
        remaining_path=route[cut + 1 :],
        progress=tracking.progress,
        progress_percent=min(tracking.progress * 100.0, 100.0),
        speed=tracking.current_speed,
        heading=tracking.heading,
        is_active=tracking.is_active,
        is_paused=tracking.is_paused,
        is_city_zone=tracking.is_city_zone,
        last_update=as_utc(tracking.last_update_time),
    )


class VehicleTrackingService:
    """Creates, advances and reports simulated vehicles for shipments."""

    def __init__(
        self,
        session_factory: sessionmaker[Any],
        publisher: EventPublisher,
        simulator: PositionSimulator | None = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self._session_factory = session_factory
        self._publisher = publisher
        self._simulator = simulator or PositionSimulator()
        self._clock = clock
        self._tick_lock = threading.Lock()

    def _require_shipment(self, session: Session, waybill_number: str) -> Shipment:
        shipment = ShipmentRepository(session).get_by_waybill(waybill_number)
        if shipment is None:
            raise NotFoundError("Shipment not found", details={"waybill": waybill_number})
        return shipment

    def _create_tracking(self, session: Session, shipment: Shipment) -> VehicleTracking:
        route = Route.from_waypoints(generate_route(shipment.origin, shipment.destination))
        state = self._simulator.start(route, self._clock())
        tracking = VehicleTrackingRepository(session).create(
            shipment_id=shipment.id,
            route=list(route.waypoints),
            total_distance=route.total_distance_m,
            is_active=shipment.current_status == ShipmentStatus.IN_TRANSIT,
            heading=state.heading,
            is_city_zone=state.is_city_zone,
            speed=state.speed_kmh,
        )
        tracking.last_update_time = state.last_update
        logger.info(
            f"Vehicle tracking created for {shipment.waybill_number} "
            f"({route.total_distance_m / 1000:.1f} km, {len(route.waypoints)} waypoints)"
        )
        return tracking

    def start_tracking(self, waybill_number: str) -> VehicleSnapshot:
        """Put the shipment's vehicle on the road.

        Tracking is created if missing. An existing vehicle that was only
        looked up before the shipment entered transit is activated from where
        it stands; a completed one stays completed.
        """
        with self._session_factory() as session, transaction(session):
            shipment = self._require_shipment(session, waybill_number)
            tracking = VehicleTrackingRepository(session).get_for_shipment(shipment.id)
            if tracking is None:
                tracking = self._create_tracking(session, shipment)
            elif (
                not tracking.is_active
                and tracking.progress < 1.0
                and shipment.current_status == ShipmentStatus.IN_TRANSIT
            ):
                tracking.is_active = True
                tracking.last_update_time = self._clock()
                logger.info(f"Vehicle tracking activated for {waybill_number}")
            return build_snapshot(tracking, waybill_number)

    def get_snapshot(self, waybill_number: str, create: bool = True) -> VehicleSnapshot | None:
        """Current vehicle view for a shipment.

        Without ``create`` a shipment that has no tracking yet returns None.
        Tracking created here for a shipment that is not in transit is parked
        at the origin and stays inactive until ``start_tracking``.
        """
        with self._session_factory() as session, transaction(session):
            shipment = self._require_shipment(session, waybill_number)
            tracking = VehicleTrackingRepository(session).get_for_shipment(shipment.id)
            if tracking is None:
                if not create:
                    return None
                tracking = self._create_tracking(session, shipment)
            return build_snapshot(tracking, waybill_number)

    def update_tracking(
        self,
        waybill_number: str,
        latitude: float | None = None,
        longitude: float | None = None,
        speed: float | None = None,
        is_paused: bool | None = None,
    ) -> VehicleSnapshot:
        """Manual override of position, speed or pause state.

        The last-update clock is reset so the next tick only covers time
        elapsed after the override; resuming a paused vehicle does not make
        it jump ahead by the paused duration.
        """
        with self._session_factory() as session, transaction(session):
            shipment = self._require_shipment(session, waybill_number)
            tracking = VehicleTrackingRepository(session).get_for_shipment(shipment.id)
            if tracking is None:
                raise NotFoundError(
                    "Vehicle tracking not found", details={"waybill": waybill_number}
                )

            if latitude is not None and longitude is not None:
                tracking.current_latitude = latitude
                tracking.current_longitude = longitude
            if speed is not None:
                tracking.current_speed = speed
            if is_paused is not None:
                tracking.is_paused = is_paused
            tracking.last_update_time = self._clock()
            session.flush()

            event = position_event(tracking, waybill_number)
            snapshot = build_snapshot(tracking, waybill_number)

        self._publisher.publish(waybill_topic(waybill_number), event.to_payload())
        return snapshot

    def tick(self) -> list[TickOutcome]:
        """Run one simulation cycle over every active, unpaused vehicle."""
        with self._tick_lock:
            now = self._clock()
            with self._session_factory() as session:
                active = VehicleTrackingRepository(session).list_active()

            logger.debug(f"Simulation cycle processing {len(active)} active vehicles")
            outcomes = []
            for tracking_id, waybill_number in active:
                with log_waybill_context(waybill_number, tracking_id=tracking_id):
                    try:
                        outcomes.append(self._advance_one(tracking_id, waybill_number, now))
                    except Exception as e:
                        logger.exception(f"Simulation tick failed for {waybill_number}")
                        self._publisher.publish(
                            waybill_topic(waybill_number),
                            StreamErrorEvent(message="simulation tick failed").to_payload(),
                        )
                        outcomes.append(
                            TickOutcome(
                                tracking_id=tracking_id,
                                waybill_number=waybill_number,
                                status="error",
                                error=str(e),
                            )
                        )
            return outcomes

    def _advance_one(self, tracking_id: int, waybill_number: str, now: datetime) -> TickOutcome:
        status_event: TrackingStatusEvent | None = None

        with self._session_factory() as session, transaction(session):
            tracking = VehicleTrackingRepository(session).get_with_shipment(tracking_id)
            if tracking is None or not tracking.is_active or tracking.is_paused:
                return TickOutcome(
                    tracking_id=tracking_id, waybill_number=waybill_number, status="skipped"
                )

            shipment = tracking.shipment
            if shipment.current_status in TERMINAL_STATUSES:
                tracking.is_active = False
                logger.info(f"Deactivated tracking for {shipment.current_status} shipment")
                return TickOutcome(
                    tracking_id=tracking_id, waybill_number=waybill_number, status="deactivated"
                )

            if shipment.current_status != ShipmentStatus.IN_TRANSIT:
                # Held in place; the clock moves so resuming does not jump ahead
                tracking.last_update_time = now
                return TickOutcome(
                    tracking_id=tracking_id, waybill_number=waybill_number, status="skipped"
                )

            route = Route.from_waypoints(tracking.waypoints)
            result = self._simulator.advance(route, _state_from_row(tracking), now)
            if result is None:
                return TickOutcome(
                    tracking_id=tracking_id, waybill_number=waybill_number, status="skipped"
                )

            _apply_state(tracking, result.state)

            if result.is_completed:
                ShipmentRepository(session).update_status(shipment, ShipmentStatus.DELIVERED)
                arrival = TrackingEventRepository(session).create(
                    shipment.id,
                    ShipmentStatus.DELIVERED,
                    shipment.destination,
                    ARRIVAL_REMARKS,
                )
                status_event = TrackingStatusEvent(
                    waybill_number=waybill_number,
                    status=arrival.status,
                    location=arrival.location,
                    remarks=arrival.remarks,
                    timestamp=as_utc(arrival.timestamp),
                )
                logger.info("Vehicle arrived at destination")

            event = position_event(tracking, waybill_number, is_completed=result.is_completed)

        topic = waybill_topic(waybill_number)
        self._publisher.publish(topic, event.to_payload())
        if status_event is not None:
            self._publisher.publish(topic, status_event.to_payload())

        return TickOutcome(
            tracking_id=tracking_id,
            waybill_number=waybill_number,
            status="completed" if result.is_completed else "advanced",
            position=event.position,
            progress=event.progress,
            speed=event.speed,
        )

    def status(self) -> SimulationStatus:
        with self._session_factory() as session:
            repo = VehicleTrackingRepository(session)
            return SimulationStatus(
                active=repo.count(active_only=True),
                total=repo.count(),
                timestamp=self._clock(),
            )
