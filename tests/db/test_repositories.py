import pytest

from db.repositories import (
    MessageRepository,
    ShipmentRepository,
    TrackingEventRepository,
    VehicleTrackingRepository,
)
from db.transaction import transaction
from db.utils import as_utc
from shipments.status import ShipmentStatus
from tests.factories import shipment_fields

pytestmark = pytest.mark.unit


def create_shipment(session, waybill: str):
    return ShipmentRepository(session).create(waybill_number=waybill, **shipment_fields())


class TestShipmentRepository:
    def test_create_defaults_to_pending(self, session_factory):
        with session_factory() as session, transaction(session):
            shipment = create_shipment(session, "KPL-10001")

        assert shipment.id is not None
        assert shipment.current_status == "PENDING"

    def test_lookup_by_waybill(self, session_factory):
        with session_factory() as session, transaction(session):
            create_shipment(session, "KPL-10001")

        with session_factory() as session:
            repo = ShipmentRepository(session)
            assert repo.get_by_waybill("KPL-10001").origin == "Dar es Salaam"
            assert repo.get_by_waybill("KPL-99999") is None
            assert repo.waybill_exists("KPL-10001")
            assert not repo.waybill_exists("KPL-99999")

    def test_signature_kept_only_on_delivery(self, session_factory):
        with session_factory() as session, transaction(session):
            repo = ShipmentRepository(session)
            shipment = create_shipment(session, "KPL-10001")
            repo.update_status(shipment, ShipmentStatus.OUT_FOR_DELIVERY, "ignored-signature")
            assert shipment.receiver_signature is None
            repo.update_status(shipment, ShipmentStatus.DELIVERED, "data:image/png;base64,AAA")

        assert shipment.current_status == "DELIVERED"
        assert shipment.receiver_signature == "data:image/png;base64,AAA"

    def test_events_loaded_newest_first(self, session_factory):
        with session_factory() as session, transaction(session):
            shipment = create_shipment(session, "KPL-10001")
            events = TrackingEventRepository(session)
            events.create(shipment.id, ShipmentStatus.PENDING, "Dar es Salaam")
            events.create(shipment.id, ShipmentStatus.PICKED_UP, "Kariakoo", "Collected")

        with session_factory() as session:
            loaded = ShipmentRepository(session).get_by_waybill("KPL-10001", with_events=True)
            listed = TrackingEventRepository(session).list_for_shipment(loaded.id)

        assert [e.status for e in loaded.events] == ["PICKED_UP", "PENDING"]
        assert [e.status for e in listed] == ["PICKED_UP", "PENDING"]

    def test_rollback_on_error(self, session_factory):
        with pytest.raises(RuntimeError):
            with session_factory() as session, transaction(session):
                create_shipment(session, "KPL-10001")
                raise RuntimeError("boom")

        with session_factory() as session:
            assert ShipmentRepository(session).list_all() == []


class TestMessageRepository:
    def test_thread_covers_both_directions(self, session_factory):
        with session_factory() as session, transaction(session):
            repo = MessageRepository(session)
            repo.create("user-7", "user-42", content="one")
            repo.create("user-42", "user-7", content="two")
            repo.create("user-7", "user-99", content="other thread")

        with session_factory() as session:
            thread = MessageRepository(session).thread("user-7", "user-42")

        assert [m.content for m in thread] == ["one", "two"]
        assert as_utc(thread[0].created_at) <= as_utc(thread[1].created_at)


class TestVehicleTrackingRepository:
    ROUTE = [(-6.8, 39.28), (-6.82, 38.5), (-6.82, 37.66)]

    def test_route_round_trips_as_waypoints(self, session_factory):
        with session_factory() as session, transaction(session):
            shipment = create_shipment(session, "KPL-10001")
            tracking = VehicleTrackingRepository(session).create(
                shipment.id, self.ROUTE, total_distance=180_000.0, is_active=True
            )

        assert tracking.waypoints == self.ROUTE
        assert (tracking.current_latitude, tracking.current_longitude) == self.ROUTE[0]
        assert tracking.progress == 0.0

    def test_list_active_skips_paused_and_inactive(self, session_factory):
        with session_factory() as session, transaction(session):
            repo = VehicleTrackingRepository(session)
            ids = []
            for n, (active, paused) in enumerate([(True, False), (True, True), (False, False)]):
                shipment = create_shipment(session, f"KPL-1000{n}")
                tracking = repo.create(shipment.id, self.ROUTE, 1.0, is_active=active)
                tracking.is_paused = paused
                ids.append(tracking.id)

        with session_factory() as session:
            repo = VehicleTrackingRepository(session)
            assert repo.list_active() == [(ids[0], "KPL-10000")]
            assert repo.count() == 3
            assert repo.count(active_only=True) == 2
            assert repo.get_with_shipment(ids[1]).shipment.waybill_number == "KPL-10001"
