"""SQLAlchemy ORM models for logistics persistence."""

import json
from datetime import datetime

from sqlalchemy import Boolean, Float, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

from .utils import utc_now


class Base(DeclarativeBase):
    pass


class Shipment(Base):
    __tablename__ = "shipments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    waybill_number: Mapped[str] = mapped_column(String, unique=True, nullable=False)
    sender_name: Mapped[str] = mapped_column(String, nullable=False)
    sender_phone: Mapped[str] = mapped_column(String, nullable=False)
    sender_address: Mapped[str | None] = mapped_column(String, nullable=True)
    receiver_name: Mapped[str] = mapped_column(String, nullable=False)
    receiver_phone: Mapped[str] = mapped_column(String, nullable=False)
    receiver_address: Mapped[str | None] = mapped_column(String, nullable=True)
    origin: Mapped[str] = mapped_column(String, nullable=False)
    destination: Mapped[str] = mapped_column(String, nullable=False)
    weight: Mapped[float | None] = mapped_column(Float, nullable=True)
    price: Mapped[float | None] = mapped_column(Float, nullable=True)
    current_status: Mapped[str] = mapped_column(String, nullable=False, default="PENDING")
    receiver_signature: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(default=lambda: utc_now())
    updated_at: Mapped[datetime] = mapped_column(
        default=lambda: utc_now(),
        onupdate=lambda: utc_now(),
    )

    events: Mapped[list["TrackingEvent"]] = relationship(
        back_populates="shipment",
        order_by="TrackingEvent.id.desc()",
        cascade="all, delete-orphan",
    )

    __table_args__ = (Index("idx_shipment_status", "current_status"),)


class TrackingEvent(Base):
    __tablename__ = "tracking_events"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    shipment_id: Mapped[int] = mapped_column(ForeignKey("shipments.id"), nullable=False)
    status: Mapped[str] = mapped_column(String, nullable=False)
    location: Mapped[str] = mapped_column(String, nullable=False)
    remarks: Mapped[str | None] = mapped_column(String, nullable=True)
    timestamp: Mapped[datetime] = mapped_column(default=lambda: utc_now())

    shipment: Mapped[Shipment] = relationship(back_populates="events")

    __table_args__ = (Index("idx_tracking_event_shipment", "shipment_id"),)


class Message(Base):
    __tablename__ = "messages"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    sender_id: Mapped[str] = mapped_column(String, nullable=False)
    receiver_id: Mapped[str] = mapped_column(String, nullable=False)
    content: Mapped[str | None] = mapped_column(Text, nullable=True)
    attachment: Mapped[str | None] = mapped_column(String, nullable=True)
    attachment_type: Mapped[str | None] = mapped_column(String, nullable=True)
    is_read: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(default=lambda: utc_now())

    __table_args__ = (
        Index("idx_message_sender_receiver", "sender_id", "receiver_id"),
        Index("idx_message_created", "created_at"),
    )


class VehicleTracking(Base):
    __tablename__ = "vehicle_tracking"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    shipment_id: Mapped[int] = mapped_column(
        ForeignKey("shipments.id"), unique=True, nullable=False
    )
    route_path: Mapped[str] = mapped_column(Text, nullable=False)  # JSON [[lat, lng], ...]
    current_latitude: Mapped[float] = mapped_column(Float, nullable=False)
    current_longitude: Mapped[float] = mapped_column(Float, nullable=False)
    current_speed: Mapped[float] = mapped_column(Float, default=40.0)
    heading: Mapped[float] = mapped_column(Float, default=0.0)
    progress: Mapped[float] = mapped_column(Float, default=0.0)
    distance_completed: Mapped[float] = mapped_column(Float, default=0.0)
    total_distance: Mapped[float] = mapped_column(Float, nullable=False)
    route_index: Mapped[int] = mapped_column(Integer, default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    is_paused: Mapped[bool] = mapped_column(Boolean, default=False)
    is_city_zone: Mapped[bool] = mapped_column(Boolean, default=False)
    last_update_time: Mapped[datetime] = mapped_column(default=lambda: utc_now())
    created_at: Mapped[datetime] = mapped_column(default=lambda: utc_now())
    updated_at: Mapped[datetime] = mapped_column(
        default=lambda: utc_now(),
        onupdate=lambda: utc_now(),
    )

    shipment: Mapped[Shipment] = relationship()

    __table_args__ = (Index("idx_vehicle_tracking_active", "is_active", "is_paused"),)

    @property
    def waypoints(self) -> list[tuple[float, float]]:
        return [(float(lat), float(lng)) for lat, lng in json.loads(self.route_path)]
