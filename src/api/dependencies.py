"""FastAPI dependency injection providers."""

from typing import Annotated

from fastapi import Depends, Request

from api.streaming import StreamManager
from chat.service import ChatService
from notifications.dispatcher import NotificationDispatcher
from settings import Settings
from shipments.service import ShipmentService
from vehicle.service import VehicleTrackingService


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_stream_manager(request: Request) -> StreamManager:
    return request.app.state.stream_manager


def get_chat_service(request: Request) -> ChatService:
    """Retrieve ChatService from app state."""
    return request.app.state.chat_service


def get_shipment_service(request: Request) -> ShipmentService:
    return request.app.state.shipment_service


def get_vehicle_tracking(request: Request) -> VehicleTrackingService:
    return request.app.state.vehicle_tracking


def get_notifier(request: Request) -> NotificationDispatcher:
    return request.app.state.notifier


SettingsDep = Annotated[Settings, Depends(get_settings)]
StreamManagerDep = Annotated[StreamManager, Depends(get_stream_manager)]
ChatServiceDep = Annotated[ChatService, Depends(get_chat_service)]
ShipmentServiceDep = Annotated[ShipmentService, Depends(get_shipment_service)]
VehicleTrackingDep = Annotated[VehicleTrackingService, Depends(get_vehicle_tracking)]
NotifierDep = Annotated[NotificationDispatcher, Depends(get_notifier)]
