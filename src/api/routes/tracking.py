import asyncio
import logging

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query

from api.auth import verify_api_key
from api.dependencies import (
    NotifierDep,
    SettingsDep,
    ShipmentServiceDep,
    StreamManagerDep,
)
from api.models.shipments import ShipmentDetailResponse, TrackingEventResponse
from api.models.tracking import TrackingUpdateRequest
from api.streaming import EventStreamChannel, EventStreamResponse, event_stream_response
from core.exceptions import NotFoundError, ValidationError
from notifications.dispatcher import safe_notify
from pubsub.channels import waybill_topic
from shipments.service import ShipmentService

logger = logging.getLogger(__name__)

router = APIRouter()

TRACKING_HEARTBEAT_COMMENT = "keep-alive"


@router.post(
    "", response_model=TrackingEventResponse, dependencies=[Depends(verify_api_key)]
)
def update_tracking(
    body: TrackingUpdateRequest,
    background_tasks: BackgroundTasks,
    shipments: ShipmentServiceDep,
    notifier: NotifierDep,
) -> TrackingEventResponse:
    """Record a status change and notify the receiver in the background."""
    try:
        shipment, event = shipments.record_status(
            waybill_number=body.waybill_number,
            status=body.status,
            location=body.location,
            remarks=body.remarks,
            signature=body.signature,
        )
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=e.message) from e
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=e.message) from e

    background_tasks.add_task(safe_notify, notifier, shipment, event.status, event.location)
    return TrackingEventResponse.model_validate(event)


@router.get("", response_model=ShipmentDetailResponse)
def get_tracking(
    shipments: ShipmentServiceDep,
    waybill_number: str | None = Query(default=None, alias="waybillNumber"),
) -> ShipmentDetailResponse:
    """Public tracking lookup: shipment plus its event history."""
    if not waybill_number:
        raise HTTPException(status_code=400, detail="Missing waybillNumber")
    try:
        shipment = shipments.get_shipment(waybill_number)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=e.message) from e
    return ShipmentDetailResponse.model_validate(shipment)


async def load_tracking_snapshot(
    channel: EventStreamChannel,
    shipments: ShipmentService,
    waybill_number: str,
    retry_interval: float,
) -> None:
    """Fetch the snapshot, retrying every ``retry_interval`` until it is sent.

    Each failed attempt is reported as an error frame; the stream stays open.
    Held live updates follow the snapshot once it goes out.
    """
    while channel.is_open:
        try:
            snapshot = await asyncio.to_thread(shipments.tracking_snapshot, waybill_number)
        except NotFoundError:
            channel.send_error({"status": 404})
        except Exception:
            logger.exception(f"Tracking snapshot failed for {waybill_number}")
            channel.send_error({"message": "stream fetch failed"})
        else:
            channel.start_live(snapshot)
            return
        await asyncio.sleep(retry_interval)


@router.get("/stream")
async def tracking_stream(
    streams: StreamManagerDep,
    settings: SettingsDep,
    shipments: ShipmentServiceDep,
    waybill_number: str | None = Query(default=None, alias="waybillNumber"),
) -> EventStreamResponse:
    """Live tracking feed: current snapshot first, then pushed updates.

    The channel subscribes before the snapshot is read and holds updates
    until the snapshot is sent, so nothing is lost or delivered out of order.
    A failed snapshot is retried on the simulation tick interval.
    """
    if not waybill_number:
        raise HTTPException(status_code=400, detail="Missing waybillNumber")

    channel = streams.open(
        waybill_topic(waybill_number),
        heartbeat_interval=settings.stream.tracking_heartbeat_seconds,
        heartbeat_comment=TRACKING_HEARTBEAT_COMMENT,
        hold_live=True,
    )
    channel.spawn(
        load_tracking_snapshot(
            channel, shipments, waybill_number, settings.simulation.tick_interval_seconds
        )
    )
    return event_stream_response(channel)
